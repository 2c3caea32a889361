"""Structural HTML linter run before any page HTML is written to disk."""

import logging
from typing import List, Tuple

from pagestore.exceptions import HtmlValidationError
from pagestore.services.tokenizer import VOID_ELEMENTS, HtmlSyntaxError, tokenize

logger = logging.getLogger(__name__)


def _byte_offset(html: str, index: int) -> int:
    return len(html[:index].encode("utf-8", errors="surrogatepass"))


def validate_html(html: str) -> None:
    """Check that *html* is non-empty and its tags are balanced.

    Offsets in error messages are UTF-8 byte offsets into *html*.

    Raises:
        HtmlValidationError: on empty input, a NUL byte, text that cannot be
            encoded as UTF-8, an unterminated construct, or an
            unbalanced/mismatched tag.
    """
    if not html.strip():
        raise HtmlValidationError("html is empty or whitespace")

    nul = html.find("\x00")
    if nul != -1:
        offset = _byte_offset(html, nul)
        raise HtmlValidationError(f"html contains NUL byte at byte {offset}", offset)

    try:
        html.encode("utf-8")
    except UnicodeEncodeError as exc:
        offset = _byte_offset(html, exc.start)
        raise HtmlValidationError(f"html is not valid UTF-8 (lone surrogate) at byte {offset}", offset) from exc

    # (tag name, index of its "<")
    stack: List[Tuple[str, int]] = []
    try:
        for token in tokenize(html):
            if token.kind == "open":
                if not token.self_closing and token.name not in VOID_ELEMENTS:
                    stack.append((token.name, token.start))
                continue

            if token.kind != "close":
                continue

            offset = _byte_offset(html, token.start)
            if not stack:
                raise HtmlValidationError(
                    f"unexpected closing tag </{token.name}> at byte {offset}", offset
                )
            open_name, open_index = stack.pop()
            if open_name != token.name:
                raise HtmlValidationError(
                    f"mismatched closing tag </{token.name}> at byte {offset}, "
                    f"expected </{open_name}> for tag opened at byte "
                    f"{_byte_offset(html, open_index)}",
                    offset,
                )
    except HtmlSyntaxError as exc:
        offset = _byte_offset(html, exc.offset)
        raise HtmlValidationError(f"{exc.message} at byte {offset}", offset) from exc

    if stack:
        name, open_index = stack[-1]
        offset = _byte_offset(html, open_index)
        raise HtmlValidationError(f"unclosed tag <{name}> starting at byte {offset}", offset)

    logger.debug("HTML validated (%d chars)", len(html))
