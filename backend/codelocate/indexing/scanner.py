"""Source scanner: walk a project and collect files with recognised extensions."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from ..core.languages import SUPPORTED_EXTENSIONS
from ..exceptions import SourceReadError

logger = logging.getLogger(__name__)


def _match_any(path: str, globs: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(path, g) for g in globs)


def _sorted_entries(directory: Path) -> List[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda e: e.name)


def iter_source_files(
    root: Path,
    extensions: Iterable[str] = SUPPORTED_EXTENSIONS,
    exclude_globs: Sequence[str] = (),
    max_file_size_kb: int = 0,
) -> Iterator[Path]:
    """Yield files under ``root`` whose extension is recognised, depth first.

    Entries of each directory are visited in name order. Directory symlinks
    are not followed. ``exclude_globs`` match POSIX paths relative to the
    root; ``max_file_size_kb`` of 0 disables the size limit.

    Raises:
        SourceReadError: The root is missing, not a directory, or unreadable.
    """
    root = Path(root)
    if not root.is_dir():
        raise SourceReadError(f"Project root is not a readable directory: {root}")
    try:
        entries = _sorted_entries(root)
    except OSError as e:
        raise SourceReadError(f"Cannot read project root {root}: {e}") from e

    exts = {e.lower() for e in extensions}
    yield from _walk(root, root, entries, exts, list(exclude_globs), max_file_size_kb)


def _walk(root: Path, directory: Path, entries, exts, exclude_globs, max_kb) -> Iterator[Path]:
    for entry in entries:
        path = directory / entry.name
        rel = path.relative_to(root).as_posix()

        if entry.is_dir(follow_symlinks=False):
            if _match_any(rel + "/", exclude_globs):
                continue
            try:
                children = _sorted_entries(path)
            except OSError as e:
                logger.warning(f"Skipping unreadable directory {path}: {e}")
                continue
            yield from _walk(root, path, children, exts, exclude_globs, max_kb)
            continue

        if not entry.is_file():
            continue
        if os.path.splitext(entry.name)[1].lower() not in exts:
            continue
        if _match_any(rel, exclude_globs):
            continue
        if max_kb > 0:
            try:
                if entry.stat().st_size / 1024.0 > max_kb:
                    logger.debug(f"Skipping {rel}: larger than {max_kb} KB")
                    continue
            except OSError:
                continue
        yield path


def scan_sources(root: Path, cfg: dict | None = None) -> List[Path]:
    """Collect candidate source files for a project using config filters."""
    cfg = cfg or {}
    return list(
        iter_source_files(
            root,
            exclude_globs=cfg.get("exclude_globs", ()),
            max_file_size_kb=int(cfg.get("max_file_size_kb", 0) or 0),
        )
    )
