"""Code indexing logic: scan, extract, embed and upsert."""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as _dt
import logging
import threading
import time
import weakref
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..core import CodeUnit, Embedder, UnitExtractor, get_language_for_file
from ..exceptions import (
    CodeIndexError,
    EmbeddingServiceError,
    IndexBusyError,
    IndexServiceError,
    ParseError,
    SourceReadError,
)
from ..storage import IndexItem, VectorIndex
from .scanner import scan_sources

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class IndexProgress:
    current: int
    total: int
    current_file: Optional[str]
    status: str


@dataclasses.dataclass
class IndexReport:
    """Outcome of one indexing pass."""

    project: str
    mode: str
    success: bool = True
    error: Optional[str] = None
    skipped: bool = False
    files_scanned: int = 0
    files_indexed: int = 0
    units_indexed: int = 0
    stale_removed: int = 0
    skipped_files: Dict[str, str] = dataclasses.field(default_factory=dict)
    duration_seconds: float = 0.0

    def as_dict(self) -> Dict:
        return dataclasses.asdict(self)


_PROJECT_LOCKS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)
_PROJECT_LOCKS_GUARD = threading.Lock()


def project_lock(root: Path) -> asyncio.Lock:
    """Lock for one project root, shared by every indexer on the running event loop.

    Outside a running loop a fresh, unlocked lock is returned.
    """
    key = str(Path(root).resolve())
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.Lock()
    with _PROJECT_LOCKS_GUARD:
        locks = _PROJECT_LOCKS.setdefault(loop, {})
        lock = locks.get(key)
        if lock is None:
            lock = locks[key] = asyncio.Lock()
        return lock


def _in_files(key: str, files: Iterable[str]) -> bool:
    return any(key.startswith(f"{rel}::") for rel in files)


class CodeIndexer:
    """Drives full-project and single-file indexing for one project root.

    Both passes only append or overwrite by key, unless ``indexing.prune_stale``
    is set: then keys stored for a re-indexed file that the new pass did not
    produce are deleted, and a full pass also deletes keys of files that are no
    longer found under the root.
    """

    def __init__(
        self,
        root: Path,
        cfg: Dict,
        embedder: Embedder,
        index: VectorIndex,
        progress: Optional[Callable[[IndexProgress], None]] = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.project = str(self.root)
        self.cfg = cfg
        self.embedder = embedder
        self.index = index
        self.progress = progress

        idx_cfg = cfg.get("indexing", {})
        self.extractor = UnitExtractor(
            id_scheme=idx_cfg.get("id_scheme", "ordinal"),
            strict=bool(idx_cfg.get("strict_parsing", True)),
        )
        self.prune_stale = bool(idx_cfg.get("prune_stale", True))

        max_concurrency = int(cfg.get("embedding", {}).get("max_concurrency", 1))
        if not getattr(embedder, "reentrant", False):
            max_concurrency = 1
        self.max_concurrency = max(1, max_concurrency)
    @property
    def _lock(self) -> asyncio.Lock:
        return project_lock(self.root)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def index_project(self) -> IndexReport:
        """Index every supported file under the root.

        Raises:
            IndexBusyError: Another pass holds this project.
        """
        if self._lock.locked():
            raise IndexBusyError(self.project)
        async with self._lock:
            report = IndexReport(project=self.project, mode="full")
            started = time.monotonic()
            try:
                await self._index_project(report)
            except CodeIndexError as e:
                report.success = False
                report.error = str(e)
                logger.error(f"Full index of {self.project} failed: {e}")
                self._notify(IndexProgress(0, 0, None, "error"))
            report.duration_seconds = time.monotonic() - started
            return report

    async def index_file(self, path: Path) -> IndexReport:
        """Re-index one file; missing files and unsupported extensions are skipped."""
        path = self._absolute(path)
        rel = self._relative(path)
        report = IndexReport(project=self.project, mode="file")
        started = time.monotonic()

        async with self._lock:
            if get_language_for_file(path.name) is None or not path.is_file():
                logger.debug(f"Skipping re-index of {rel}: missing or unsupported")
                report.skipped = True
                return report

            report.files_scanned = 1
            try:
                units = self._extract_file(path, report)
                if units is None:
                    report.skipped = True
                else:
                    items = await self._embed_files([units])
                    if items:
                        await self._upsert(items)
                    report.files_indexed = 1
                    report.units_indexed = len(items)
                    if self.prune_stale:
                        stored = await self._keys(file_path=rel)
                        report.stale_removed = await self._delete(stored - {i.id for i in items})
                    logger.info(f"Re-indexed {rel} with {len(items)} units")
            except CodeIndexError as e:
                report.success = False
                report.error = str(e)
                logger.error(f"Re-index of {rel} failed: {e}")
            report.duration_seconds = time.monotonic() - started
            return report

    async def remove_file(self, path: Path) -> IndexReport:
        """Delete every unit stored for one file."""
        rel = self._relative(self._absolute(path))
        report = IndexReport(project=self.project, mode="remove")
        async with self._lock:
            try:
                report.stale_removed = await self._delete(await self._keys(file_path=rel))
            except CodeIndexError as e:
                report.success = False
                report.error = str(e)
                logger.error(f"Removing {rel} from the index failed: {e}")
        return report

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def _index_project(self, report: IndexReport) -> None:
        files = await asyncio.to_thread(scan_sources, self.root, self.cfg)
        report.files_scanned = len(files)
        logger.info(f"Indexing {len(files)} files under {self.project}")

        # Extraction is single-threaded so ordinals never depend on scheduling.
        per_file: List[List[CodeUnit]] = []
        for n, path in enumerate(files, start=1):
            rel = self._relative(path)
            self._notify(IndexProgress(n - 1, len(files), rel, "indexing"))
            units = self._extract_file(path, report)
            if units is None:
                continue
            report.files_indexed += 1
            if units:
                per_file.append(units)
            await asyncio.sleep(0)

        items = await self._embed_files(per_file)
        if items:
            await self._upsert(items)
            logger.info(f"Indexed {len(items)} code units from {len(per_file)} files")
        else:
            logger.warning(f"No code units found under {self.project}")
        report.units_indexed = len(items)

        if self.prune_stale:
            fresh = {item.id for item in items}
            stored = await self._keys(project=self.project)
            stale = {k for k in stored - fresh if not _in_files(k, report.skipped_files)}
            report.stale_removed = await self._delete(stale)

        self._notify(IndexProgress(len(files), len(files), None, "indexed"))

    def _extract_file(self, path: Path, report: IndexReport) -> Optional[List[CodeUnit]]:
        """Extract one file; returns None when the file is skipped for a parse error."""
        rel = self._relative(path)
        language = get_language_for_file(path.name)
        try:
            source = path.read_bytes()
        except OSError as e:
            raise SourceReadError(f"Cannot read {path}: {e}") from e
        try:
            return self.extractor.extract(source, language, rel)
        except ParseError as e:
            logger.warning(f"Skipping {rel}: {e}")
            report.skipped_files[rel] = str(e)
            return None

    async def _embed_files(self, per_file: List[List[CodeUnit]]) -> List[IndexItem]:
        """Embed each file's units in one call, at most ``max_concurrency`` files at a time."""
        if not per_file:
            return []
        semaphore = asyncio.Semaphore(self.max_concurrency)
        indexed_at = _dt.datetime.now(_dt.timezone.utc).isoformat()

        async def embed_file(units: List[CodeUnit]) -> List[IndexItem]:
            async with semaphore:
                try:
                    vectors = await asyncio.to_thread(self.embedder.embed, [u.code_text for u in units])
                except EmbeddingServiceError:
                    raise
                except Exception as e:
                    raise EmbeddingServiceError(f"Embedding failed for {units[0].file_path}: {e}") from e
            if len(vectors) != len(units):
                raise EmbeddingServiceError(
                    f"Embedder returned {len(vectors)} vectors for {len(units)} units of {units[0].file_path}"
                )
            items = []
            for unit, vector in zip(units, vectors):
                unit.embedding = list(vector)
                items.append(IndexItem(id=unit.index_key, vector=unit.embedding, metadata=unit.metadata(self.project, indexed_at)))
            return items

        batches = await asyncio.gather(*(embed_file(units) for units in per_file))
        return [item for batch in batches for item in batch]

    # ------------------------------------------------------------------
    # Vector index calls
    # ------------------------------------------------------------------

    async def _call_index(self, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except IndexServiceError:
            raise
        except Exception as e:
            raise IndexServiceError(f"Vector index call {fn.__name__} failed: {e}") from e

    async def _upsert(self, items: List[IndexItem]) -> None:
        await self._call_index(self.index.upsert, items)

    async def _keys(self, file_path: Optional[str] = None, project: Optional[str] = None) -> Set[str]:
        return await self._call_index(self.index.keys, file_path=file_path, project=project)

    async def _delete(self, keys: Iterable[str]) -> int:
        keys = sorted(keys)
        if keys:
            await self._call_index(self.index.delete, keys)
            logger.info(f"Removed {len(keys)} stale units")
        return len(keys)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _absolute(self, path: Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    def _relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.resolve().as_posix()

    def _notify(self, progress: IndexProgress) -> None:
        if self.progress is not None:
            self.progress(progress)


def build_index(root: Path, cfg: Dict, embedder: Embedder, index: VectorIndex) -> IndexReport:
    """Run a full index outside an event loop (Wrapper)."""
    indexer = CodeIndexer(root, cfg, embedder, index)
    return asyncio.run(indexer.index_project())
