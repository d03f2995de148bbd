"""HTTP query API for the handbook search index."""

import asyncio
import datetime
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from config.search_config import SearchConfig
from indexer.errors import SearchIndexError
from indexer.models import SearchHit
from indexer.search_index import SearchIndex
from observability.prometheus_metrics import METRICS_CONTENT_TYPE, get_metrics_payload
from pipelines.corpus import CorpusLoader

logger = logging.getLogger(__name__)


class SearchService:
    """Owns the live index and gates queries on its readiness.

    ``initialize_index`` may be awaited any number of times; only the first
    call loads the corpus. ``reload`` builds a fresh index and swaps it in.
    """

    def __init__(self, config: Optional[SearchConfig] = None, docs_dir: Optional[str] = None):
        self.config = config or SearchConfig()
        self.docs_dir = docs_dir or self.config.get_corpus_root()
        self._index: Optional[SearchIndex] = None
        self._init_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._index is not None and self._index.is_ready

    @property
    def index(self) -> Optional[SearchIndex]:
        return self._index

    def _build_index(self) -> SearchIndex:
        prebuilt = self.config.get_prebuilt_index_path()
        if prebuilt and Path(prebuilt).is_file():
            logger.info("Hydrating search index from %s", prebuilt)
            return SearchIndex.load(prebuilt, self.config)

        sections = CorpusLoader.from_config(self.config, root=self.docs_dir).load_sections()
        return SearchIndex(self.config).build(sections)

    async def initialize_index(self) -> None:
        """Readiness gate: load and index the corpus once."""
        if self.is_ready:
            return
        async with self._init_lock:
            if self.is_ready:
                return
            self._index = await asyncio.to_thread(self._build_index)

    async def reload(self) -> int:
        """Rebuild from source and atomically replace the live index."""
        async with self._init_lock:
            fresh = await asyncio.to_thread(self._build_index)
            previous, self._index = self._index, fresh
        if previous is not None:
            previous.close()
        return len(fresh)

    async def search(self, query: str) -> List[SearchHit]:
        if not query:
            return []
        await self.initialize_index()
        return self._index.search(query)


class SearchRequest(BaseModel):
    q: str


def _serialize(hits: List[SearchHit]) -> List[dict]:
    return [hit.model_dump(mode="json", by_alias=True) for hit in hits]


def create_app(service: Optional[SearchService] = None) -> FastAPI:
    """Create the API application around ``service`` (a default one if omitted)."""
    service = service or SearchService()
    app = FastAPI(title="Handbook Search API", version="0.1.0")
    app.state.search_service = service

    @app.on_event("startup")
    async def startup_event():
        try:
            await service.initialize_index()
            logger.info("Search index ready")
        except SearchIndexError as e:
            logger.error(f"Failed to initialize search index: {e}")
            raise

    @app.on_event("shutdown")
    async def shutdown_event():
        if service.index is not None:
            service.index.close()

    @app.get("/health")
    def health():
        return {
            "ok": True,
            "index_ready": service.is_ready,
            "blocks": len(service.index) if service.index is not None else 0,
            "time": datetime.datetime.now(datetime.timezone.utc).isoformat()
        }

    @app.get("/search")
    async def search_get(q: str = Query(default="")):
        return await _run_search(q)

    @app.post("/search")
    async def search_post(req: SearchRequest):
        return await _run_search(req.q)

    async def _run_search(q: str):
        try:
            hits = await service.search(q)
        except SearchIndexError as e:
            logger.error(f"Search error: {e}")
            raise HTTPException(status_code=503, detail="Search index unavailable")
        return {"query": q, "count": len(hits), "results": _serialize(hits)}

    @app.post("/reload")
    async def reload_index():
        try:
            blocks = await service.reload()
        except SearchIndexError as e:
            logger.error(f"Index reload failed: {e}")
            raise HTTPException(status_code=500, detail="Index reload failed")
        return {"ok": True, "blocks": blocks}

    @app.get("/metrics")
    def metrics():
        return Response(content=get_metrics_payload(), media_type=METRICS_CONTENT_TYPE)

    return app


# Served with: uvicorn server.search_api:app
app = create_app()
