from __future__ import annotations

import threading
import time
from typing import List

from fastapi.testclient import TestClient
from qdrant_client import QdrantClient

from codelocate.config import load_config
from codelocate.web import create_app

from conftest import RecordingIndex, write

SEARCH_JS = """\
function binarySearch(sorted, target) {
  let lo = 0;
  let hi = sorted.length - 1;
  while (lo <= hi) {
    const mid = (lo + hi) >> 1;
    if (sorted[mid] === target) return mid;
    if (sorted[mid] < target) lo = mid + 1; else hi = mid - 1;
  }
  return -1;
}
"""


def _app(project, embedder, index, on_startup=False):
    cfg = load_config(project, overrides={"indexing": {"index_on_startup": on_startup}})
    return create_app(cfg, embedder=embedder, index=index)


def _wait_idle(client, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = client.get("/api/index/status").json()
        if not status["running"]:
            return status
        time.sleep(0.05)
    raise AssertionError("indexing did not finish")


def test_startup_index_then_search(project, embedder, index):
    write(project / "search.js", SEARCH_JS)

    with TestClient(_app(project, embedder, index, on_startup=True)) as client:
        status = _wait_idle(client)
        assert status["last_report"]["units_indexed"] == 1

        resp = client.post("/api/search", json={"query": "binary search"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["results"][0]["token"] == "binarySearch"
    assert body["results"][0]["file"] == "search.js"
    assert "Similarity:" in body["message"]


def test_search_on_empty_index_is_not_an_error(project, embedder, index):
    with TestClient(_app(project, embedder, index)) as client:
        resp = client.post("/api/search", json={"query": "binary search"})

    assert resp.status_code == 200
    assert resp.json() == {"results": [], "message": "No similar matches found."}


def test_full_index_wait_and_file_hooks(project, embedder, index):
    path = write(project / "search.js", SEARCH_JS)

    with TestClient(_app(project, embedder, index)) as client:
        resp = client.post("/api/index", json={"wait": True})
        assert resp.status_code == 200
        assert resp.json()["status"] == "indexed"
        assert resp.json()["report"]["units_indexed"] == 1

        write(project / "sort.js", "function quickSort(a) { return a; }\n")
        resp = client.post("/api/index/file", json={"path": str(project / "sort.js")})
        assert resp.status_code == 202
        assert index.keys(file_path="sort.js") == {"sort.js::sort.js_quickSort_0"}

        path.unlink()
        resp = client.delete("/api/index/file", params={"path": "search.js"})
        assert resp.status_code == 200
        assert resp.json()["report"]["stale_removed"] == 1

        health = client.get("/api/health").json()

    assert health["status"] == "ok"
    assert health["indexed_units"] == 1


def test_progress_stream_ends_when_idle(project, embedder, index):
    with TestClient(_app(project, embedder, index)) as client:
        resp = client.get("/api/index/progress")

    assert resp.status_code == 200
    assert "event: progress" in resp.text
    assert '"running": false' in resp.text


def test_search_request_cannot_widen_result_count(project, embedder, index):
    for n in range(6):
        write(project / f"search{n}.js", f"function search{n}(items) {{ return items[{n}]; }}\n")

    with TestClient(_app(project, embedder, index)) as client:
        client.post("/api/index", json={"wait": True})
        wide = client.post("/api/search", json={"query": "search", "top_k": 50})
        narrow = client.post("/api/search", json={"query": "search", "top_k": 1})

    assert wide.status_code == 200
    assert len(wide.json()["results"]) == 3
    assert len(narrow.json()["results"]) == 1


class ThreadRecordingIndex(RecordingIndex):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.count_threads: List[str] = []

    def count(self):
        self.count_threads.append(threading.current_thread().name)
        return super().count()


def test_health_counts_units_off_the_event_loop(project, embedder):
    index = ThreadRecordingIndex(QdrantClient(location=":memory:"), "test_units")

    with TestClient(_app(project, embedder, index)) as client:
        health = client.get("/api/health").json()

    assert health == {"status": "ok", "project": str(project.resolve()), "indexed_units": 0}
    assert index.count_threads
    assert all(name.startswith("asyncio") for name in index.count_threads)
