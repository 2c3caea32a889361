from typing import List, Optional

from pydantic import BaseModel, Field


class PushPageRequest(BaseModel):
    seo_title: str
    description: str = ""
    keywords: Optional[List[str]] = None
    html: str


class UpdatePageRequest(BaseModel):
    """Partial update: fields left as ``None`` keep their stored value."""

    seo_title: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[List[str]] = None
    html: Optional[str] = None

    @property
    def touches_meta(self) -> bool:
        return any(v is not None for v in (self.seo_title, self.description, self.keywords))


class PageIdsRequest(BaseModel):
    ids: List[str] = Field(
        min_length=1,
        max_length=100,
        description="page_uid values to fetch (at most 100).",
    )
