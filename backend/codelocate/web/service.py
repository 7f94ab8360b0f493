"""Application-side coordination of indexing passes and queries."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi import Request

from ..core import Embedder, make_embedder
from ..exceptions import IndexBusyError
from ..indexing import CodeIndexer, IndexProgress, IndexReport
from ..search import SemanticSearcher, make_searcher
from ..storage import VectorIndex, make_vector_index

logger = logging.getLogger(__name__)


class IndexingService:
    """Owns the startup index task, on-save re-indexing and the searcher for one project."""

    def __init__(self, cfg: Dict, embedder: Embedder, index: VectorIndex) -> None:
        self.cfg = cfg
        self.root = Path(cfg.get("project_root") or Path.cwd()).resolve()
        self.indexer = CodeIndexer(self.root, cfg, embedder, index, progress=self._on_progress)
        self.searcher: SemanticSearcher = make_searcher(cfg, embedder, index)
        self.progress: Dict = {"current": 0, "total": 0, "current_file": None, "status": "idle"}
        self.last_report: Optional[IndexReport] = None
        self._full_task: Optional[asyncio.Task] = None

    @property
    def project(self) -> str:
        return self.indexer.project

    @property
    def running(self) -> bool:
        return self._full_task is not None and not self._full_task.done()

    def _on_progress(self, progress: IndexProgress) -> None:
        self.progress = dataclasses.asdict(progress)

    def start_full_index(self) -> asyncio.Task:
        """Start a full index in the background.

        Raises:
            IndexBusyError: A pass is already running for this project.
        """
        if self.running or self.indexer.busy:
            raise IndexBusyError(self.project)
        self.progress = {"current": 0, "total": 0, "current_file": None, "status": "indexing"}
        self._full_task = asyncio.create_task(self._run_full_index())
        return self._full_task

    async def _run_full_index(self) -> IndexReport:
        logger.info(f"Starting full index of {self.project}")
        try:
            report = await self.indexer.index_project()
        except IndexBusyError as e:
            logger.warning(str(e))
            report = IndexReport(project=self.project, mode="full", success=False, error=str(e))
        self.last_report = report
        if report.success:
            logger.info(
                f"Full index finished: {report.units_indexed} units from "
                f"{report.files_indexed}/{report.files_scanned} files in {report.duration_seconds:.1f}s"
            )
        return report

    async def index_file(self, path: Path) -> IndexReport:
        report = await self.indexer.index_file(path)
        if not report.skipped:
            self.last_report = report
        return report

    async def remove_file(self, path: Path) -> IndexReport:
        report = await self.indexer.remove_file(path)
        self.last_report = report
        return report

    async def shutdown(self) -> None:
        """Cancel a running full index and wait for it to unwind."""
        task = self._full_task
        if task is None or task.done():
            return
        logger.info(f"Cancelling full index of {self.project}")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def build_service(
    cfg: Dict,
    embedder: Optional[Embedder] = None,
    index: Optional[VectorIndex] = None,
) -> IndexingService:
    root = Path(cfg.get("project_root") or Path.cwd())
    embedder = embedder or make_embedder(cfg)
    index = index or make_vector_index(cfg, repo_path=root)
    return IndexingService(cfg, embedder, index)


def get_service(request: Request) -> IndexingService:
    return request.app.state.service
