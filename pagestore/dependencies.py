from functools import lru_cache

from pagestore.config import get_settings
from pagestore.services.store import PageStore


@lru_cache
def get_page_store() -> PageStore:
    return PageStore(get_settings().DATA_DIR)
