"""Filesystem-backed page storage with a self-healing index.

On-disk layout::

    <base_dir>/
      index.json          StoreIndex: sanitized page id -> summary
      <page_id>/
        meta.json         PageMeta
        index.html        raw page HTML

The page directories are the source of truth.  ``index.json`` is a cache
used for listing and existence checks; whenever it is missing or cannot be
parsed it is rebuilt from the directories.

Every document is written to ``<path>.tmp`` and renamed over the target, so
readers never see a partial file.  Within one process, writers to the same
page are serialized by a per-page lock, and every read-modify-write of the
index happens under a single index lock (always taken after the page lock).
"""

import logging
import os
import shutil
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from pagestore.exceptions import (
    CorruptRecordError,
    PageAlreadyExistsError,
    PageNotFoundError,
    PageStoreError,
    StorageIOError,
)
from pagestore.models.page import PageIndexEntry, PageMeta, SeoMeta, StoreIndex
from pagestore.services import precedence
from pagestore.services.normalizer import sanitize_page_id
from pagestore.services.uid import generate_uid, generate_unique_id
from pagestore.services.validator import validate_html

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
META_FILENAME = "meta.json"
HTML_FILENAME = "index.html"
TMP_SUFFIX = ".tmp"


def atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* via a temp file and an atomic rename.

    On failure the temp file is removed and *path* is left as it was.
    """
    tmp_path = path.with_name(path.name + TMP_SUFFIX)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # newline="" keeps the caller's line endings byte-for-byte
        with open(tmp_path, "w", encoding="utf-8", newline="") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except (OSError, UnicodeError) as exc:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError as cleanup_exc:
            logger.warning("Could not remove %s: %s", tmp_path, cleanup_exc)
        raise StorageIOError("write", str(path)) from exc


def _read_text(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def _now() -> int:
    return int(time.time())


def _read_optional(path: Path) -> Optional[str]:
    """Raw contents of *path*, or *None* if it does not exist."""
    try:
        return _read_text(path)
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        raise StorageIOError("read", str(path)) from exc


class _PageLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class PageStore:
    def __init__(self, base_dir: Union[str, Path] = "data") -> None:
        self.base_dir = Path(base_dir)
        self._index_lock = threading.RLock()
        # Entries live only while some thread holds or waits for them
        self._page_locks: Dict[str, _PageLock] = {}
        self._page_locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Paths and locks
    # ------------------------------------------------------------------

    def _page_dir(self, safe_id: str) -> Path:
        return self.base_dir / safe_id

    def _index_path(self) -> Path:
        return self.base_dir / INDEX_FILENAME

    @contextmanager
    def _page_lock(self, safe_id: str) -> Iterator[None]:
        with self._page_locks_guard:
            entry = self._page_locks.get(safe_id)
            if entry is None:
                entry = self._page_locks[safe_id] = _PageLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._page_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._page_locks[safe_id]

    # ------------------------------------------------------------------
    # Record I/O
    # ------------------------------------------------------------------

    def _read_meta(self, safe_id: str) -> PageMeta:
        meta_path = self._page_dir(safe_id) / META_FILENAME
        try:
            raw = _read_text(meta_path)
        except FileNotFoundError as exc:
            raise PageNotFoundError(safe_id) from exc
        except UnicodeDecodeError as exc:
            raise CorruptRecordError(str(meta_path), str(exc)) from exc
        except OSError as exc:
            raise StorageIOError("read", str(meta_path)) from exc
        try:
            return PageMeta.model_validate_json(raw)
        except ValueError as exc:
            raise CorruptRecordError(str(meta_path), str(exc)) from exc

    def _read_existing_meta(self, safe_id: str) -> Optional[PageMeta]:
        """Like :meth:`_read_meta` but *None* for a missing or unparsable record."""
        try:
            return self._read_meta(safe_id)
        except PageNotFoundError:
            return None
        except CorruptRecordError as exc:
            logger.warning("Overwriting unreadable metadata for %s: %s", safe_id, exc.reason)
            return None

    # ------------------------------------------------------------------
    # Index (callers hold self._index_lock)
    # ------------------------------------------------------------------

    def _load_index(self) -> StoreIndex:
        index_path = self._index_path()
        try:
            raw = _read_text(index_path)
        except FileNotFoundError:
            logger.info("Index %s missing, rebuilding", index_path)
            return self._rebuild_index_locked()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Index %s unreadable (%s), rebuilding", index_path, exc)
            return self._rebuild_index_locked()
        try:
            return StoreIndex.model_validate_json(raw)
        except ValueError as exc:
            logger.warning("Index %s is corrupt (%s), rebuilding", index_path, exc)
            return self._rebuild_index_locked()

    def _save_index(self, index: StoreIndex) -> None:
        atomic_write(self._index_path(), index.sorted_copy().model_dump_json(indent=2))

    def _rebuild_index_locked(self) -> StoreIndex:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            page_dirs = sorted(p for p in self.base_dir.iterdir() if p.is_dir())
        except OSError as exc:
            raise StorageIOError("scan", str(self.base_dir)) from exc

        index = StoreIndex()
        for page_dir in page_dirs:
            try:
                meta = PageMeta.model_validate_json(_read_text(page_dir / META_FILENAME))
            except (OSError, ValueError) as exc:
                logger.warning("Skipping %s while rebuilding index: %s", page_dir.name, exc)
                continue
            index.pages[page_dir.name] = PageIndexEntry(
                page_id=page_dir.name,
                seo=meta.seo,
                page_uid=meta.page_uid,
            )

        self._save_index(index)
        logger.info("Index rebuilt", extra={"pages": len(index.pages)})
        return index

    def _exists(self, safe_id: str) -> bool:
        with self._index_lock:
            if safe_id in self._load_index().pages:
                return True
        return self._page_dir(safe_id).is_dir()

    # ------------------------------------------------------------------
    # Persist
    # ------------------------------------------------------------------

    def _persist(
        self,
        safe_id: str,
        caller_id: str,
        meta: Optional[PageMeta],
        html: Optional[str],
        seo_updates: Optional[Mapping[str, Any]] = None,
    ) -> PageMeta:
        """Merge *meta* with the stored record and write it (and *html*, if given).

        The caller holds the page lock.  ``meta=None`` keeps the stored
        metadata; ``html=None`` leaves ``index.html`` untouched.
        *seo_updates* is applied on top of the resulting SEO fields.

        ``index.html`` is written before ``meta.json``, which acts as the
        commit record.  If any write fails the page is restored to its
        previous files (a new page's directory is removed) and the error
        is re-raised.
        """
        if html is not None:
            validate_html(html)

        existing = self._read_existing_meta(safe_id)
        with self._index_lock:
            indexed = self._load_index().pages.get(safe_id)

        if meta is not None:
            base = meta
        elif existing is not None:
            base = existing
        else:
            base = PageMeta(seo=indexed.seo if indexed else SeoMeta())
        if seo_updates:
            base = base.model_copy(update={"seo": base.seo.model_copy(update=dict(seo_updates))})

        now = _now()
        created_at = precedence.resolve_created_at(
            existing.created_at if existing else None, base.created_at, now
        )
        saved = base.model_copy(
            update={
                "page_uid": precedence.resolve_page_uid(
                    existing.page_uid if existing else None,
                    indexed.page_uid if indexed else None,
                    base.page_uid,
                    generate_uid,
                ),
                "created_at": created_at,
                "updated_at": precedence.resolve_updated_at(
                    created_at, now, existing.updated_at if existing else None
                ),
                "view_count": precedence.resolve_view_count(
                    existing.view_count if existing else None, base.view_count
                ),
            },
            deep=True,
        )

        page_dir = self._page_dir(safe_id)
        meta_path = page_dir / META_FILENAME
        html_path = page_dir / HTML_FILENAME
        is_new = not page_dir.is_dir()

        # path -> previous contents (None: the file did not exist)
        previous_files: Dict[Path, Optional[str]] = {}
        if not is_new:
            if html is not None:
                previous_files[html_path] = _read_optional(html_path)
            previous_files[meta_path] = _read_optional(meta_path)

        try:
            if html is not None:
                atomic_write(html_path, html)
            atomic_write(meta_path, saved.model_dump_json(indent=2))

            with self._index_lock:
                index = self._load_index()
                previous = index.pages.get(safe_id)
                if previous is not None and previous.original_id:
                    original_id = previous.original_id
                else:
                    original_id = caller_id if caller_id != safe_id else None
                index.pages[safe_id] = PageIndexEntry(
                    page_id=safe_id,
                    seo=saved.seo,
                    page_uid=saved.page_uid,
                    original_id=original_id,
                )
                self._save_index(index)
        except PageStoreError:
            self._roll_back(safe_id, is_new, previous_files)
            raise

        return saved

    def _roll_back(self, safe_id: str, is_new: bool, previous_files: Dict[Path, Optional[str]]) -> None:
        """Undo a failed :meth:`_persist`.  Failures here are logged only."""
        page_dir = self._page_dir(safe_id)
        try:
            if is_new:
                if page_dir.exists():
                    shutil.rmtree(page_dir)
            else:
                for path, text in previous_files.items():
                    if text is None:
                        path.unlink(missing_ok=True)
                    else:
                        atomic_write(path, text)
        except (OSError, PageStoreError) as exc:
            logger.error("Rollback of page %s failed: %s", safe_id, exc)
            return
        logger.warning("Rolled back failed write", extra={"page_id": safe_id, "new": is_new})

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_page(self, page_id: str, meta: PageMeta, html: str) -> PageMeta:
        """Store a new page under *page_id* and return its persisted metadata.

        Raises:
            PageAlreadyExistsError: if the sanitized id is indexed or its
                directory exists.
            HtmlValidationError: if *html* is malformed (nothing is written).
        """
        safe_id = sanitize_page_id(page_id)
        with self._page_lock(safe_id):
            if self._exists(safe_id):
                raise PageAlreadyExistsError(safe_id)
            saved = self._persist(safe_id, page_id, meta, html)
        logger.info("Page created", extra={"page_id": safe_id, "page_uid": saved.page_uid})
        return saved

    def create_page_auto_id(self, meta: PageMeta, html: str) -> PageMeta:
        """Store a new page under a freshly generated id, which is also its uid."""
        with self._index_lock:
            index = self._load_index()
            taken = set(index.pages)
            taken.update(entry.page_uid for entry in index.pages.values() if entry.page_uid)
            try:
                taken.update(p.name for p in self.base_dir.iterdir() if p.is_dir())
            except OSError as exc:
                raise StorageIOError("scan", str(self.base_dir)) from exc
        page_id = generate_unique_id(taken)
        return self.create_page(page_id, meta.model_copy(update={"page_uid": page_id}), html)

    def update_page(self, page_id: str, meta: PageMeta, html: str) -> PageMeta:
        """Replace metadata and HTML, keeping ``page_uid`` and ``created_at``."""
        return self._update(page_id, meta, html)

    def update_page_meta(self, page_id: str, meta: PageMeta) -> PageMeta:
        """Replace metadata only; ``index.html`` is not touched."""
        return self._update(page_id, meta, None)

    def update_page_html(self, page_id: str, html: str) -> PageMeta:
        """Replace HTML only; SEO metadata is kept, ``updated_at`` refreshed."""
        return self._update(page_id, None, html)

    def update_page_seo(
        self,
        page_id: str,
        seo_updates: Mapping[str, Any],
        html: Optional[str] = None,
    ) -> PageMeta:
        """Change only the given SEO fields, and replace HTML if *html* is set.

        The stored metadata is read and merged under the page lock, so
        concurrent partial updates of different fields all survive.
        """
        return self._update(page_id, None, html, seo_updates)

    def _update(
        self,
        page_id: str,
        meta: Optional[PageMeta],
        html: Optional[str],
        seo_updates: Optional[Mapping[str, Any]] = None,
    ) -> PageMeta:
        safe_id = sanitize_page_id(page_id)
        with self._page_lock(safe_id):
            if not self._exists(safe_id):
                raise PageNotFoundError(safe_id)
            saved = self._persist(safe_id, page_id, meta, html, seo_updates)
        logger.info(
            "Page updated",
            extra={
                "page_id": safe_id,
                "meta": meta is not None or bool(seo_updates),
                "html": html is not None,
            },
        )
        return saved

    def load_page(self, page_id: str) -> Tuple[PageMeta, str]:
        """Return ``(meta, html)`` for *page_id*.

        Raises:
            PageNotFoundError: if either document is missing.
            CorruptRecordError: if ``meta.json`` cannot be parsed.
        """
        safe_id = sanitize_page_id(page_id)
        page_dir = self._page_dir(safe_id)
        if not page_dir.is_dir():
            raise PageNotFoundError(safe_id)
        html_path = page_dir / HTML_FILENAME
        with self._page_lock(safe_id):
            meta = self._read_meta(safe_id)
            try:
                html = _read_text(html_path)
            except FileNotFoundError as exc:
                raise PageNotFoundError(safe_id, f"page html missing: {safe_id}") from exc
            except (OSError, UnicodeDecodeError) as exc:
                raise StorageIOError("read", str(html_path)) from exc
        return meta, html

    def get_page_meta(self, page_id: str) -> PageMeta:
        meta, _ = self.load_page(page_id)
        return meta

    def get_page_html(self, page_id: str) -> str:
        _, html = self.load_page(page_id)
        return html

    def page_exists(self, page_id: str) -> bool:
        return self._exists(sanitize_page_id(page_id))

    def resolve_page_id_by_uid(self, uid: str) -> Optional[str]:
        """Return the directory id of the page whose ``page_uid`` is *uid*.

        Tries *uid* itself as a directory id first, then scans the index.
        Returns *None* when no page matches; I/O failures still raise.
        """
        if not uid:
            return None

        if sanitize_page_id(uid) == uid:
            try:
                meta = self._read_meta(uid)
            except (PageNotFoundError, CorruptRecordError):
                meta = None
            if meta is not None and meta.page_uid in (uid, ""):
                return uid

        with self._index_lock:
            entries = list(self._load_index().pages.values())

        for entry in entries:
            if entry.page_uid == uid:
                return entry.page_id

        # Entries written before uids were indexed carry no page_uid
        for entry in entries:
            if entry.page_uid:
                continue
            try:
                meta = self._read_meta(entry.page_id)
            except (PageNotFoundError, CorruptRecordError):
                continue
            if meta.page_uid == uid:
                return entry.page_id
        return None

    def delete_page(self, page_id: str) -> None:
        """Remove the page directory and its index entry together."""
        safe_id = sanitize_page_id(page_id)
        with self._page_lock(safe_id):
            if not self._exists(safe_id):
                raise PageNotFoundError(safe_id)
            page_dir = self._page_dir(safe_id)
            with self._index_lock:
                try:
                    shutil.rmtree(page_dir)
                except FileNotFoundError:
                    logger.warning("Page %s was indexed but had no directory", safe_id)
                except OSError as exc:
                    raise StorageIOError("remove", str(page_dir)) from exc
                index = self._load_index()
                index.pages.pop(safe_id, None)
                self._save_index(index)
        logger.info("Page deleted", extra={"page_id": safe_id})

    def list_pages(self) -> List[str]:
        with self._index_lock:
            return sorted(self._load_index().pages)

    def list_page_entries(self) -> List[PageIndexEntry]:
        with self._index_lock:
            pages = self._load_index().pages
            return [pages[page_id] for page_id in sorted(pages)]

    def rebuild_index(self) -> StoreIndex:
        """Rewrite ``index.json`` from the page directories.

        Directories whose metadata is missing or unparsable are skipped.
        """
        with self._index_lock:
            return self._rebuild_index_locked()

    def increment_view_count(self, page_id: str) -> int:
        """Bump ``view_count`` and return the new value.

        A view is not an edit: ``updated_at`` and the index are left alone.
        """
        safe_id = sanitize_page_id(page_id)
        with self._page_lock(safe_id):
            meta = self._read_meta(safe_id)
            meta = meta.model_copy(update={"view_count": meta.view_count + 1})
            atomic_write(self._page_dir(safe_id) / META_FILENAME, meta.model_dump_json(indent=2))
        return meta.view_count
