"""Identifier normalisation: directory-safe page ids and public page URLs."""

import re
from typing import Optional
from urllib.parse import quote

# Placeholder used when nothing of the caller's id survives sanitization
DEFAULT_PAGE_ID = "page"

_UNSAFE_ID_CHARS_RE = re.compile(r"[^A-Za-z0-9_\-]")

# Characters left literal in the title part of a page URL.  Everything else
# (space, quotes, <>, `, #, ?, {}, /, \, +, controls, non-ASCII) is
# percent-encoded; "+" in particular must be, since it separates title and id.
_TITLE_SAFE_CHARS = "!$%&()*,-.:;=@[]^_|~"

_SLUG_SEPARATOR = "+"


def sanitize_page_id(page_id: str) -> str:
    """Map *page_id* to a name usable as a single directory component.

    ASCII letters, digits, ``-`` and ``_`` are kept; every other character
    becomes ``_``.  The mapping is idempotent.
    """
    sanitized = _UNSAFE_ID_CHARS_RE.sub("_", page_id)
    return sanitized or DEFAULT_PAGE_ID


def build_page_url(page_id: str, title: str, base_url: str = "") -> str:
    """Return ``{base_url}/pages/{title}+{page_id}`` with the title percent-encoded."""
    encoded_title = quote(title, safe=_TITLE_SAFE_CHARS)
    return f"{base_url.rstrip('/')}/pages/{encoded_title}{_SLUG_SEPARATOR}{page_id}"


def parse_page_id_from_slug(slug: str) -> Optional[str]:
    """Return the page id at the end of a ``{title}+{id}`` slug.

    Only the right-most ``+`` is significant, so titles containing ``+``
    still parse.  A slug with no ``+`` at all is taken to be a bare id.
    Returns *None* when no id remains.
    """
    page_id = slug.rsplit(_SLUG_SEPARATOR, 1)[-1].strip()
    return page_id or None
