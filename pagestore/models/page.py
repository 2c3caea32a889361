from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


def _fold_unknown_fields(data: Any, known: set) -> Any:
    """Move keys the model does not declare into ``extra``.

    Documents written by newer versions keep their additional fields across a
    load/modify/save cycle instead of having them dropped on parse.
    """
    if not isinstance(data, dict):
        return data
    unknown = {k: v for k, v in data.items() if k not in known}
    if not unknown:
        return data
    folded = {k: v for k, v in data.items() if k in known}
    extra = dict(folded.get("extra") or {})
    for key, value in unknown.items():
        extra.setdefault(key, value)
    folded["extra"] = extra
    return folded


class SeoMeta(BaseModel):
    """SEO fields injected into a page's ``<head>`` at render time."""

    title: str = ""
    seo_title: str = ""
    description: str = ""
    keywords: Optional[List[str]] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_extra(cls, data: Any) -> Any:
        return _fold_unknown_fields(data, set(cls.model_fields))

    @model_validator(mode="after")
    def _backfill_titles(self) -> "SeoMeta":
        # ``title`` is the legacy name of ``seo_title``; either one fills the other
        if not self.seo_title and self.title:
            self.seo_title = self.title
        elif not self.title and self.seo_title:
            self.title = self.seo_title
        return self

    @property
    def display_title(self) -> str:
        return self.seo_title or self.title


class PageMeta(BaseModel):
    """Contents of ``<page-dir>/meta.json``."""

    seo: SeoMeta = Field(default_factory=SeoMeta)
    page_uid: str = ""
    created_at: int = 0  # unix seconds
    updated_at: int = 0  # unix seconds
    view_count: int = Field(default=0, ge=0)
    extra: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_extra(cls, data: Any) -> Any:
        return _fold_unknown_fields(data, set(cls.model_fields))


class PageIndexEntry(BaseModel):
    page_id: str
    seo: SeoMeta = Field(default_factory=SeoMeta)
    page_uid: str = ""
    original_id: Optional[str] = None


class StoreIndex(BaseModel):
    """Contents of ``index.json``: sanitized page id -> summary."""

    pages: Dict[str, PageIndexEntry] = Field(default_factory=dict)

    def sorted_copy(self) -> "StoreIndex":
        return StoreIndex(pages={k: self.pages[k] for k in sorted(self.pages)})
