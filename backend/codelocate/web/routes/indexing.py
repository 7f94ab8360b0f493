"""Indexing routes with SSE support."""

import asyncio
import json
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from ...exceptions import IndexBusyError
from ..schemas import FileIndexRequest, IndexRequest, IndexResponse, IndexStatusResponse
from ..service import IndexingService, get_service

router = APIRouter(prefix="/index")


@router.post("", response_model=IndexResponse)
async def start_indexing(request: IndexRequest, service: IndexingService = Depends(get_service)):
    """Start a full index of the project; with ``wait`` the response carries the report."""
    try:
        task = service.start_full_index()
    except IndexBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if not request.wait:
        return IndexResponse(status="started", project=service.project)

    report = await task
    return IndexResponse(
        status="indexed" if report.success else "error",
        project=service.project,
        report=report.as_dict(),
    )


@router.post("/file", status_code=202, response_model=IndexResponse)
async def reindex_file(
    request: FileIndexRequest,
    background_tasks: BackgroundTasks,
    service: IndexingService = Depends(get_service),
):
    """File-save hook: re-index one file after the response is sent."""
    background_tasks.add_task(service.index_file, Path(request.path))
    return IndexResponse(status="scheduled", project=service.project)


@router.delete("/file", response_model=IndexResponse)
async def remove_file(path: str, service: IndexingService = Depends(get_service)):
    """File-delete hook: drop every unit stored for the file."""
    report = await service.remove_file(Path(path))
    if not report.success:
        raise HTTPException(status_code=503, detail=report.error)
    return IndexResponse(status="removed", project=service.project, report=report.as_dict())


@router.get("/status", response_model=IndexStatusResponse)
async def index_status(service: IndexingService = Depends(get_service)):
    last = service.last_report.as_dict() if service.last_report else None
    return IndexStatusResponse(
        project=service.project,
        running=service.running,
        progress=service.progress,
        last_report=last,
    )


@router.get("/progress")
async def index_progress(service: IndexingService = Depends(get_service)):
    """SSE endpoint for real-time indexing progress."""

    async def event_generator():
        while True:
            yield {"event": "progress", "data": json.dumps({"running": service.running, **service.progress})}
            if not service.running:
                break
            await asyncio.sleep(1)

    return EventSourceResponse(event_generator())
