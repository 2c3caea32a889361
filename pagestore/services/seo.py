"""Rewrite a page's ``<head>`` with its stored SEO metadata.

:func:`inject_seo_meta` never fails: whatever shape the stored HTML has, the
result contains exactly one ``<title>``, one description ``<meta>`` and, when
keywords are set, one keywords ``<meta>``.  Existing SEO tags inside the head
are removed first, so injecting the same metadata twice is a no-op.
"""

import html as html_lib
import re
from typing import Optional, Tuple

from pagestore.models.page import SeoMeta
from pagestore.services.tokenizer import Token, tokenize

# name="..." / name='...' / name=bare inside a <meta ...> tag
_META_NAME_RE = re.compile(
    r"""[ \t\n\r\f/]name[ \t\n\r\f]*=[ \t\n\r\f]*(?:"([^"]*)"|'([^']*)'|([^ \t\n\r\f>]+))""",
    re.IGNORECASE,
)

_SEO_META_NAMES = {"description", "keywords"}


def _meta_name(tag_html: str) -> Optional[str]:
    match = _META_NAME_RE.search(tag_html)
    if match is None:
        return None
    value = next(group for group in match.groups() if group is not None)
    return value.rstrip("/").strip().lower()


def build_seo_tags(seo: SeoMeta) -> str:
    """Return the ``<title>``/``<meta>`` markup for *seo*, values escaped."""
    tags = [
        f"<title>{html_lib.escape(seo.display_title, quote=False)}</title>",
        f'<meta name="description" content="{html_lib.escape(seo.description)}">',
    ]
    # keywords are joined as given; the tag is dropped only when the result is blank
    keywords = ", ".join(seo.keywords or [])
    if keywords.strip():
        tags.append(f'<meta name="keywords" content="{html_lib.escape(keywords)}">')
    return "".join(tags)


def strip_seo_tags(head_html: str) -> str:
    """Remove ``<title>`` elements and description/keywords ``<meta>`` tags."""
    pieces = []
    pos = 0
    tokens = tokenize(head_html, strict=False)
    for token in tokens:
        if token.kind != "open":
            continue
        if token.name == "title":
            end = token.end
            if not token.self_closing:
                close = next((t for t in tokens if t.kind == "close" and t.name == "title"), None)
                # an unterminated <title> swallows the rest of the head
                end = close.end if close is not None else len(head_html)
            pieces.append(head_html[pos : token.start])
            pos = end
        elif token.name == "meta" and _meta_name(head_html[token.start : token.end]) in _SEO_META_NAMES:
            pieces.append(head_html[pos : token.start])
            pos = token.end
    pieces.append(head_html[pos:])
    return "".join(pieces)


def _find_head_body(html: str) -> Optional[Tuple[int, int]]:
    """Return the (start, end) span between ``<head ...>`` and ``</head>``."""
    tokens = tokenize(html, strict=False)
    for token in tokens:
        if token.kind == "open" and token.name == "head" and not token.self_closing:
            for inner in tokens:
                if inner.kind == "close" and inner.name == "head":
                    return token.end, inner.start
            return None
    return None


def _find_open_tag(html: str, name: str) -> Optional[Token]:
    for token in tokenize(html, strict=False):
        if token.kind == "open" and token.name == name:
            return token
    return None


def inject_seo_meta(html: str, seo: SeoMeta) -> str:
    """Return *html* with its SEO tags replaced by those built from *seo*.

    Placement, first match wins:

    1. inside an existing ``<head>...</head>``, after removing old SEO tags;
    2. as a new ``<head>`` right after the ``<html ...>`` start tag;
    3. as a new ``<head>`` right before the ``<body ...>`` start tag;
    4. as a new ``<head>`` at the very start of the document.
    """
    tags = build_seo_tags(seo)

    head = _find_head_body(html)
    if head is not None:
        start, end = head
        return html[:start] + tags + strip_seo_tags(html[start:end]) + html[end:]

    new_head = f"<head>{tags}</head>"

    html_tag = _find_open_tag(html, "html")
    if html_tag is not None:
        return html[: html_tag.end] + new_head + html[html_tag.end :]

    body_tag = _find_open_tag(html, "body")
    if body_tag is not None:
        return html[: body_tag.start] + new_head + html[body_tag.start :]

    return new_head + html
