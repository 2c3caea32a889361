from typing import List, Optional

from pydantic import BaseModel

from pagestore.models.page import PageMeta


class SeoMetaResponse(BaseModel):
    seo_title: str
    description: str
    keywords: Optional[List[str]] = None


class PageMetaResponse(BaseModel):
    seo: SeoMetaResponse
    page_uid: str
    created_at: int
    updated_at: int
    view_count: int

    @classmethod
    def from_meta(cls, meta: PageMeta) -> "PageMetaResponse":
        return cls(
            seo=SeoMetaResponse(
                seo_title=meta.seo.display_title,
                description=meta.seo.description,
                keywords=meta.seo.keywords,
            ),
            page_uid=meta.page_uid,
            created_at=meta.created_at,
            updated_at=meta.updated_at,
            view_count=meta.view_count,
        )


class PageSummary(BaseModel):
    page_id: str
    url: str
    meta: PageMetaResponse


class PageDetail(PageSummary):
    html: str


class PushPageResponse(BaseModel):
    page_id: str
    url: str
    meta: PageMetaResponse


class PageListResponse(BaseModel):
    pages: List[PageSummary]


class PageLookupResponse(BaseModel):
    pages: List[PageDetail]
    # one "<id>: <reason>" message per id that could not be loaded
    errors: List[str]


class RebuildIndexResponse(BaseModel):
    pages_indexed: int
