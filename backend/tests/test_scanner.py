from __future__ import annotations

from pathlib import Path

import pytest

from codelocate.config import load_config
from codelocate.exceptions import SourceReadError
from codelocate.indexing import iter_source_files, scan_sources

from conftest import write


def _rel(root: Path, paths) -> list:
    return [p.relative_to(root).as_posix() for p in paths]


def test_depth_first_order_and_extension_filter(project: Path):
    write(project / "b.py", "")
    write(project / "a" / "z.js", "")
    write(project / "a" / "inner" / "x.java", "")
    write(project / "a" / "notes.md", "")
    write(project / "c.txt", "")
    write(project / "C.PY", "")

    found = _rel(project, iter_source_files(project))

    assert found == ["C.PY", "a/inner/x.java", "a/z.js", "b.py"]


def test_restricts_to_given_extensions(project: Path):
    write(project / "a.py", "")
    write(project / "b.js", "")

    assert _rel(project, iter_source_files(project, extensions={".js"})) == ["b.js"]


def test_exclude_globs_prune_directories(project: Path):
    write(project / "src" / "app.py", "")
    write(project / "node_modules" / "lib" / "index.js", "")
    write(project / "src" / "node_modules" / "dep.js", "")

    cfg = load_config(project)

    assert _rel(project, scan_sources(project, cfg)) == ["src/app.py"]


def test_no_filters_by_default(project: Path):
    write(project / "node_modules" / "index.js", "")

    assert _rel(project, scan_sources(project)) == ["node_modules/index.js"]


def test_size_limit(project: Path):
    write(project / "big.py", "x = 1\n" * 400)
    write(project / "small.py", "x = 1\n")

    found = _rel(project, iter_source_files(project, max_file_size_kb=1))

    assert found == ["small.py"]


def test_missing_root_raises(tmp_path: Path):
    with pytest.raises(SourceReadError) as exc_info:
        scan_sources(tmp_path / "nope")

    assert isinstance(exc_info.value, OSError)
