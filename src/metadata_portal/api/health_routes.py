from fastapi import APIRouter, Depends

from ..core.cache import InMemoryCache
from .dependencies import get_cache

router = APIRouter(tags=["health"])


@router.get("/health")
def health(cache=Depends(get_cache)):
    entries = len(cache) if isinstance(cache, InMemoryCache) else None
    return {"status": "ok", "cache_entries": entries}
