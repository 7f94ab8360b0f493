from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class IndexRequest(BaseModel):
    wait: bool = False


class FileIndexRequest(BaseModel):
    path: str


class IndexResponse(BaseModel):
    status: str
    project: str
    report: Optional[Dict[str, Any]] = None


class IndexStatusResponse(BaseModel):
    project: str
    running: bool
    progress: Dict[str, Any]
    last_report: Optional[Dict[str, Any]] = None


class SearchRequest(BaseModel):
    query: str
    top_k: Optional[int] = None


class SearchResult(BaseModel):
    file: str
    token: str
    snippet: str
    score: str


class SearchResponse(BaseModel):
    results: List[SearchResult]
    message: str
