from __future__ import annotations

import asyncio

from codelocate.config import load_config
from codelocate.indexing import CodeIndexer
from codelocate.search import NO_MATCHES_MESSAGE, SearchHit, SemanticSearcher, format_matches, make_searcher
from codelocate.storage import IndexMatch

from conftest import write

ALGORITHMS = """\
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

function bubbleSort(arr) {
  for (let i = 0; i < arr.length; i++) {
    for (let j = 0; j + 1 < arr.length - i; j++) {
      if (arr[j] > arr[j + 1]) { const t = arr[j]; arr[j] = arr[j + 1]; arr[j + 1] = t; }
    }
  }
  return arr;
}

function mergeLists(left, right) {
  return left.concat(right);
}

function reverseString(text) {
  return text.split("").reverse().join("");
}

function parseConfig(raw) {
  return JSON.parse(raw);
}
"""


def _indexed(project, embedder, index):
    write(project / "algorithms.js", ALGORITHMS)
    cfg = load_config(project)
    asyncio.run(CodeIndexer(project, cfg, embedder, index).index_project())
    return make_searcher(cfg, embedder, index)


def test_empty_index_returns_no_hits(embedder, index):
    searcher = SemanticSearcher(embedder, index)

    assert searcher.search("binary search") == []


def test_binary_search_is_top_match(project, embedder, index):
    searcher = _indexed(project, embedder, index)

    hits = searcher.search("binary search")

    assert hits[0].token == "binarySearch"
    assert hits[0].file == "algorithms.js"
    assert hits[0].snippet.startswith("function binarySearch(sorted, target) {")


def test_results_capped_at_three_and_sorted(project, embedder, index):
    searcher = _indexed(project, embedder, index)

    hits = searcher.search("sort the array of numbers")

    assert len(hits) == 3
    scores = [float(h.score) for h in hits]
    assert scores == sorted(scores, reverse=True)
    assert all(len(h.score.split(".")[1]) == 3 for h in hits)


def test_explicit_top_k(project, embedder, index):
    searcher = _indexed(project, embedder, index)

    assert len(searcher.search("text", top_k=1)) == 1
    assert len(searcher.search("text", top_k=10)) == 5


def test_blank_query_returns_no_hits(project, embedder, index):
    searcher = _indexed(project, embedder, index)

    assert searcher.search("   ") == []
    assert embedder.calls[-1] != ["   "]


class StaticIndex:
    def __init__(self, matches):
        self.matches = matches

    def query(self, vector, top_k, include_metadata=True):
        return list(self.matches)


def test_orders_matches_and_fills_missing_metadata(embedder):
    index = StaticIndex([
        IndexMatch(id="a", score=0.25, metadata={"filename": "a.py", "token": "low", "code": "def low(): ..."}),
        IndexMatch(id="b", score=0.91234, metadata={}),
        IndexMatch(id="c", score=0.5, metadata={"filename": "c.py", "token": "mid", "code": "def mid(): ..."}),
        IndexMatch(id="d", score=0.1, metadata={"filename": "d.py", "token": "tiny", "code": "def tiny(): ..."}),
    ])

    hits = SemanticSearcher(embedder, index).search("anything")

    assert [h.score for h in hits] == ["0.912", "0.500", "0.250"]
    assert hits[0] == SearchHit(file="Unknown file", token="[Unknown]", snippet="[No code]", score="0.912")


def test_format_matches():
    assert format_matches([]) == NO_MATCHES_MESSAGE

    message = format_matches([SearchHit(file="sort.js", token="quickSort", snippet="function quickSort() {}", score="0.812")])

    assert "sort.js (quickSort)" in message
    assert "function quickSort() {}" in message
    assert "Similarity: 0.812" in message
