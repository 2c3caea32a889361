"""Forward scanner over the structural tokens of an HTML document.

This is not an HTML parser.  It recognises just enough markup to balance
tags and to find the ``<html>``/``<head>``/``<body>`` boundaries:

``comment``
    ``<!-- ... -->``, terminated only by the literal ``-->``.
``declaration``
    ``<!DOCTYPE ...>`` and other ``<! ...>`` / ``<? ...>`` constructs,
    terminated by the first unquoted ``>``.
``open`` / ``close``
    Start and end tags.  Names are lower-cased; a ``>`` inside a single- or
    double-quoted attribute value does not end the tag.
``raw_text``
    A ``<script>`` or ``<style>`` element, from its start tag through its
    matching end tag.  Its body is skipped verbatim, so ``a < b`` inside a
    script is never mistaken for markup.

Text between tokens is not reported; every token carries ``start``/``end``
offsets (end exclusive) into the original string so callers can slice it.
"""

import re
from typing import Dict, Iterator, Literal, NamedTuple, Optional

TokenKind = Literal["comment", "declaration", "open", "close", "raw_text"]

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

RAW_TEXT_ELEMENTS = frozenset({"script", "style"})

_ASCII_WS = " \t\n\r\f"

_TAG_NAME_RE = re.compile(r"[ \t\n\r\f]*([A-Za-z0-9:\-]+)")

# Everything up to the first ">" that is not inside a quoted value.  Each
# alternative starts with a different character, so a failed match (unclosed
# quote, no ">") backtracks linearly.
_TAG_END_RE = re.compile(r"""(?:[^'">]|"[^"]*"|'[^']*')*>""")

_RAW_TEXT_CLOSE_RE: Dict[str, "re.Pattern[str]"] = {
    name: re.compile(rf"</{name}[ \t\n\r\f]*>", re.IGNORECASE) for name in RAW_TEXT_ELEMENTS
}


class HtmlSyntaxError(ValueError):
    """Raised in strict mode when a construct cannot be tokenized."""

    def __init__(self, message: str, offset: int):
        self.message = message
        self.offset = offset
        super().__init__(f"{message} at index {offset}")


class Token(NamedTuple):
    kind: TokenKind
    start: int
    end: int
    name: str = ""
    self_closing: bool = False


def find_tag_end(html: str, pos: int) -> Optional[int]:
    """Return the index of the first unquoted ``>`` at or after *pos*."""
    match = _TAG_END_RE.match(html, pos)
    if match is None:
        return None
    return match.end() - 1


def _is_self_closing(html: str, name_end: int, gt: int) -> bool:
    body = html[name_end:gt].rstrip(_ASCII_WS)
    return body.endswith("/")


def tokenize(html: str, start: int = 0, strict: bool = True) -> Iterator[Token]:
    """Yield the structural tokens of *html* from *start* onwards.

    In strict mode any construct that cannot be closed, or a ``<`` with no tag
    name after it, raises :class:`HtmlSyntaxError`.  In lenient mode a stray
    ``<`` is treated as text and scanning stops quietly at the first
    unterminated construct; the HTML rewriter relies on that to stay
    best-effort.
    """
    pos = start
    while True:
        lt = html.find("<", pos)
        if lt == -1:
            return

        if html.startswith("<!--", lt):
            close = html.find("-->", lt + 4)
            if close == -1:
                if strict:
                    raise HtmlSyntaxError("unterminated comment", lt)
                return
            pos = close + 3
            yield Token("comment", lt, pos)
            continue

        if html.startswith("<!", lt) or html.startswith("<?", lt):
            gt = find_tag_end(html, lt + 2)
            if gt is None:
                if strict:
                    raise HtmlSyntaxError("unterminated declaration", lt)
                return
            pos = gt + 1
            yield Token("declaration", lt, pos)
            continue

        closing = html.startswith("</", lt)
        name_match = _TAG_NAME_RE.match(html, lt + (2 if closing else 1))
        if name_match is None:
            if strict:
                raise HtmlSyntaxError("missing tag name", lt)
            pos = lt + 1
            continue

        name = name_match.group(1).lower()
        gt = find_tag_end(html, name_match.end())
        if gt is None:
            if strict:
                kind = "closing" if closing else "opening"
                raise HtmlSyntaxError(f"unterminated {kind} tag <{'/' if closing else ''}{name}>", lt)
            return

        if closing:
            pos = gt + 1
            yield Token("close", lt, pos, name)
            continue

        self_closing = _is_self_closing(html, name_match.end(), gt)
        if name in RAW_TEXT_ELEMENTS and not self_closing:
            close_match = _RAW_TEXT_CLOSE_RE[name].search(html, gt + 1)
            if close_match is None:
                if strict:
                    raise HtmlSyntaxError(f"unterminated <{name}>", lt)
                return
            pos = close_match.end()
            yield Token("raw_text", lt, pos, name)
            continue

        pos = gt + 1
        yield Token("open", lt, pos, name, self_closing)
