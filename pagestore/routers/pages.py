"""Public read routes: page index, rendered pages and the sitemap."""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, Response

from pagestore.config import get_settings
from pagestore.dependencies import get_page_store
from pagestore.exceptions import CorruptRecordError, PageNotFoundError, PageStoreError
from pagestore.services.normalizer import parse_page_id_from_slug
from pagestore.services.render import (
    render_404_html,
    render_index_html,
    render_page_html,
    render_sitemap_xml,
)
from pagestore.services.store import PageStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_base_url(request: Request) -> str:
    """Prefer the request's Host (and X-Forwarded-Proto), then ``SITE_URL``."""
    host = request.headers.get("host", "").strip()
    if host:
        scheme = request.headers.get("x-forwarded-proto", "").strip() or "http"
        return f"{scheme}://{host}".rstrip("/")
    settings = get_settings()
    if not settings.SITE_URL:
        logger.warning("SITE_URL is not set and the request has no Host header; URLs will be relative")
    return settings.SITE_URL


def _not_found() -> HTMLResponse:
    return HTMLResponse(render_404_html(get_settings().SITE_NAME), status_code=404)


@router.get("/", response_class=HTMLResponse, summary="Page index")
def index(store: PageStore = Depends(get_page_store)) -> HTMLResponse:
    return HTMLResponse(render_index_html(store.list_page_entries(), get_settings().SITE_NAME))


@router.get("/pages/{slug:path}", response_class=HTMLResponse, summary="Render a page")
def page(slug: str, store: PageStore = Depends(get_page_store)) -> HTMLResponse:
    """Render the page addressed by ``{title}+{id}``.

    The trailing id may be either the directory id or the page_uid.
    """
    page_id = parse_page_id_from_slug(slug)
    if page_id is None:
        return _not_found()

    resolved = page_id if store.page_exists(page_id) else store.resolve_page_id_by_uid(page_id)
    if resolved is None:
        return _not_found()

    try:
        meta, html = store.load_page(resolved)
    except (PageNotFoundError, CorruptRecordError) as exc:
        logger.warning("Cannot render page %s: %s", resolved, exc)
        return _not_found()

    rendered = render_page_html(meta, html)
    try:
        store.increment_view_count(resolved)
    except PageStoreError as exc:
        logger.warning("Increment view count failed for %s: %s", resolved, exc)
    return HTMLResponse(rendered)


@router.get("/sitemap.xml", summary="XML sitemap")
def sitemap(request: Request, store: PageStore = Depends(get_page_store)) -> Response:
    entries = store.list_page_entries()
    updated_at: Dict[str, int] = {}
    for entry in entries:
        try:
            updated_at[entry.page_id] = store.get_page_meta(entry.page_id).updated_at
        except (PageNotFoundError, CorruptRecordError) as exc:
            logger.warning("Sitemap: no lastmod for %s: %s", entry.page_id, exc)
    xml = render_sitemap_xml(entries, _resolve_base_url(request), updated_at)
    return Response(content=xml, media_type="application/xml")
