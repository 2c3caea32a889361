"""Error types raised by the page store and their HTTP translations.

Every store operation either succeeds or raises one of the
:class:`PageStoreError` subclasses below.  Nothing is retried: the web layer
maps each kind to a status code and reports it as-is.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PageStoreError(Exception):
    """Base class for every error raised by :mod:`pagestore`."""


class PageAlreadyExistsError(PageStoreError):
    def __init__(self, page_id: str):
        self.page_id = page_id
        super().__init__(f"page already exists: {page_id}")


class PageNotFoundError(PageStoreError):
    def __init__(self, page_id: str, message: Optional[str] = None):
        self.page_id = page_id
        super().__init__(message or f"page not found: {page_id}")


class HtmlValidationError(PageStoreError):
    """Malformed HTML.  Raised before any file is written."""

    def __init__(self, message: str, byte_offset: Optional[int] = None):
        self.message = message
        self.byte_offset = byte_offset
        super().__init__(message)


class CorruptRecordError(PageStoreError):
    """A metadata or index document could not be deserialized."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"corrupt record {path}: {reason}")


class UidExhaustedError(PageStoreError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"could not generate a unique id after {attempts} attempts")


class StorageIOError(PageStoreError):
    """Wraps an underlying filesystem failure (permissions, disk full, ...)."""

    def __init__(self, action: str, path: str):
        self.action = action
        self.path = path
        super().__init__(f"{action} failed for {path}")


# Exception handlers
def page_not_found_handler(request: Request, exc: PageNotFoundError):
    logger.info(exc)
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


def page_already_exists_handler(request: Request, exc: PageAlreadyExistsError):
    logger.info(exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


def html_validation_handler(request: Request, exc: HtmlValidationError):
    logger.info("Rejected HTML: %s", exc)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "byte_offset": exc.byte_offset},
    )


def page_store_error_handler(request: Request, exc: PageStoreError):
    logger.error("Page store failure for %s: %s", request.url, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )
