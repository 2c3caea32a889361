"""HTML/XML output for the public page routes."""

from datetime import datetime, timezone
from html import escape
from typing import Iterable, Mapping, Optional

from pagestore.models.page import PageIndexEntry, PageMeta
from pagestore.services.normalizer import build_page_url
from pagestore.services.seo import inject_seo_meta


def render_page_html(meta: PageMeta, html: str) -> str:
    """Return the stored *html* with *meta*'s SEO tags injected into its head."""
    return inject_seo_meta(html, meta.seo)


def render_index_html(entries: Iterable[PageIndexEntry], site_name: str, base_url: str = "") -> str:
    rows = []
    for entry in entries:
        url = build_page_url(entry.page_id, entry.seo.display_title, base_url)
        rows.append(
            f'<li><a href="{escape(url)}">{escape(entry.seo.display_title, quote=False)}</a>'
            f"<p>{escape(entry.seo.description, quote=False)}</p>"
            f"<small>{escape(entry.page_id, quote=False)}</small></li>"
        )
    name = escape(site_name, quote=False)
    return (
        '<!doctype html><html><head><meta charset="utf-8">'
        f"<title>{name}</title></head>"
        f"<body><main><h1>{name}</h1><ul>{''.join(rows)}</ul></main></body></html>"
    )


def render_404_html(site_name: str) -> str:
    name = escape(site_name, quote=False)
    return (
        '<!doctype html><html><head><meta charset="utf-8">'
        f"<title>Page not found | {name}</title></head>"
        '<body><main><h1>Page not found</h1><p><a href="/">Back to index</a></p></main></body></html>'
    )


def render_sitemap_xml(
    entries: Iterable[PageIndexEntry],
    base_url: str,
    updated_at: Optional[Mapping[str, int]] = None,
) -> str:
    """Return a sitemaps.org ``urlset`` with one ``<url>`` per entry.

    *updated_at* maps page ids to unix timestamps used for ``<lastmod>``;
    pages without one are listed without it.
    """
    updated_at = updated_at or {}
    urls = []
    for entry in entries:
        loc = build_page_url(entry.page_id, entry.seo.display_title, base_url)
        parts = [f"<loc>{escape(loc, quote=False)}</loc>"]
        timestamp = updated_at.get(entry.page_id)
        if timestamp:
            day = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
            parts.append(f"<lastmod>{day}</lastmod>")
        urls.append(f"<url>{''.join(parts)}</url>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{''.join(urls)}</urlset>"
    )
