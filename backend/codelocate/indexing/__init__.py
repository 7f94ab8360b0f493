"""Indexing functionality for codelocate."""

from .indexer import CodeIndexer, IndexProgress, IndexReport, build_index, project_lock
from .scanner import iter_source_files, scan_sources

__all__ = [
    "CodeIndexer",
    "IndexProgress",
    "IndexReport",
    "build_index",
    "project_lock",
    "iter_source_files",
    "scan_sources",
]
