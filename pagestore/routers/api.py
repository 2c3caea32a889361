"""JSON API for creating, reading, updating and deleting pages.

Pages are addressed by their permanent ``page_uid``; the store maps it back
to the directory id.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from pagestore.config import get_settings
from pagestore.dependencies import get_page_store
from pagestore.exceptions import CorruptRecordError, PageNotFoundError, PageStoreError
from pagestore.models.page import PageMeta, SeoMeta
from pagestore.models.request import PageIdsRequest, PushPageRequest, UpdatePageRequest
from pagestore.models.response import (
    PageDetail,
    PageListResponse,
    PageLookupResponse,
    PageMetaResponse,
    PageSummary,
    PushPageResponse,
    RebuildIndexResponse,
)
from pagestore.services.normalizer import build_page_url
from pagestore.services.store import PageStore

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(prefix="/api")


def _write_limit() -> str:
    return get_settings().WRITE_RATE_LIMIT


def _page_url(meta: PageMeta) -> str:
    return build_page_url(meta.page_uid, meta.seo.display_title, get_settings().SITE_URL)


def _resolve(store: PageStore, page_uid: str) -> str:
    page_id = store.resolve_page_id_by_uid(page_uid)
    if page_id is None:
        raise PageNotFoundError(page_uid)
    return page_id


@router.post(
    "/pages",
    response_model=PushPageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a page",
    description="Validates the HTML, assigns a new page_uid and stores the page.",
)
@limiter.limit(_write_limit)
def push_page(
    request: Request,
    body: PushPageRequest,
    store: PageStore = Depends(get_page_store),
) -> PushPageResponse:
    meta = PageMeta(
        seo=SeoMeta(seo_title=body.seo_title, description=body.description, keywords=body.keywords)
    )
    saved = store.create_page_auto_id(meta, body.html)
    return PushPageResponse(
        page_id=saved.page_uid,
        url=_page_url(saved),
        meta=PageMetaResponse.from_meta(saved),
    )


@router.get("/pages", response_model=PageListResponse, summary="List all pages")
def list_pages(store: PageStore = Depends(get_page_store)) -> PageListResponse:
    pages: List[PageSummary] = []
    for entry in store.list_page_entries():
        try:
            meta = store.get_page_meta(entry.page_id)
        except (PageNotFoundError, CorruptRecordError) as exc:
            logger.warning("Skipping unreadable page %s: %s", entry.page_id, exc)
            continue
        pages.append(
            PageSummary(
                page_id=meta.page_uid or entry.page_id,
                url=_page_url(meta),
                meta=PageMetaResponse.from_meta(meta),
            )
        )
    return PageListResponse(pages=pages)


@router.post("/pages/lookup", response_model=PageLookupResponse, summary="Fetch several pages by uid")
def lookup_pages(body: PageIdsRequest, store: PageStore = Depends(get_page_store)) -> PageLookupResponse:
    pages: List[PageDetail] = []
    errors: List[str] = []
    for page_uid in (i.strip() for i in body.ids):
        if not page_uid:
            continue
        try:
            meta, html = store.load_page(_resolve(store, page_uid))
        except PageStoreError as exc:
            errors.append(f"{page_uid}: {exc}")
            continue
        pages.append(
            PageDetail(
                page_id=meta.page_uid,
                url=_page_url(meta),
                meta=PageMetaResponse.from_meta(meta),
                html=html,
            )
        )
    return PageLookupResponse(pages=pages, errors=errors)


@router.get("/pages/{page_uid}", response_model=PageDetail, summary="Fetch one page by uid")
def get_page(page_uid: str, store: PageStore = Depends(get_page_store)) -> PageDetail:
    meta, html = store.load_page(_resolve(store, page_uid))
    return PageDetail(
        page_id=meta.page_uid,
        url=_page_url(meta),
        meta=PageMetaResponse.from_meta(meta),
        html=html,
    )


@router.patch("/pages/{page_uid}", response_model=PushPageResponse, summary="Update a page")
@limiter.limit(_write_limit)
def update_page(
    request: Request,
    page_uid: str,
    body: UpdatePageRequest,
    store: PageStore = Depends(get_page_store),
) -> PushPageResponse:
    """Apply a partial update.

    Only the supplied fields change.  An HTML-only update leaves ``meta.json``'s
    SEO fields alone and a metadata-only update leaves ``index.html`` alone.
    """
    if not body.touches_meta and body.html is None:
        raise HTTPException(status_code=422, detail="No fields to update.")

    page_id = _resolve(store, page_uid)

    if not body.touches_meta:
        saved = store.update_page_html(page_id, body.html)
    else:
        seo_updates = {}
        if body.seo_title is not None:
            seo_updates["seo_title"] = body.seo_title
            seo_updates["title"] = body.seo_title
        if body.description is not None:
            seo_updates["description"] = body.description
        if body.keywords is not None:
            seo_updates["keywords"] = body.keywords
        saved = store.update_page_seo(page_id, seo_updates, body.html)

    return PushPageResponse(
        page_id=saved.page_uid,
        url=_page_url(saved),
        meta=PageMetaResponse.from_meta(saved),
    )


@router.delete(
    "/pages/{page_uid}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a page",
)
@limiter.limit(_write_limit)
def delete_page(
    request: Request,
    page_uid: str,
    store: PageStore = Depends(get_page_store),
) -> Response:
    store.delete_page(_resolve(store, page_uid))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/index/rebuild", response_model=RebuildIndexResponse, summary="Rebuild the page index")
def rebuild_index(store: PageStore = Depends(get_page_store)) -> RebuildIndexResponse:
    index = store.rebuild_index()
    return RebuildIndexResponse(pages_indexed=len(index.pages))
