"""Search routes."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from ...exceptions import CodeIndexError
from ...search import format_matches
from ..schemas import SearchRequest, SearchResponse, SearchResult
from ..service import IndexingService, get_service

router = APIRouter()


@router.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest, service: IndexingService = Depends(get_service)):
    # A request may narrow the configured result count, never widen it.
    top_k = service.searcher.top_k
    if request.top_k is not None:
        top_k = min(request.top_k, top_k)
    try:
        hits = await asyncio.to_thread(service.searcher.search, request.query, top_k)
    except CodeIndexError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return SearchResponse(
        results=[SearchResult(**hit.as_dict()) for hit in hits],
        message=format_matches(hits),
    )
