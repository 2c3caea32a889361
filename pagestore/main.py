import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pagestore.config import get_settings
from pagestore.exceptions import (
    HtmlValidationError,
    PageAlreadyExistsError,
    PageNotFoundError,
    PageStoreError,
    html_validation_handler,
    page_already_exists_handler,
    page_not_found_handler,
    page_store_error_handler,
)
from pagestore.routers.api import limiter, router as api_router
from pagestore.routers.pages import router as pages_router

settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": settings.LOG_LEVEL, "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="pagestore",
    description="Stores HTML pages with SEO metadata and serves them with the metadata injected.",
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_exception_handler(PageNotFoundError, page_not_found_handler)
app.add_exception_handler(PageAlreadyExistsError, page_already_exists_handler)
app.add_exception_handler(HtmlValidationError, html_validation_handler)
app.add_exception_handler(PageStoreError, page_store_error_handler)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(api_router)
app.include_router(pages_router)


@app.get("/health", summary="Health check")
async def health() -> dict:
    return {"status": "ok"}
