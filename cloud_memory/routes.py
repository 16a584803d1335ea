"""
HTTP routes for the memory backend.
"""

from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
)

from cloud_memory.cleanup import RetentionCleanup, verify_batch_secret
from cloud_memory.config import Settings, get_settings
from cloud_memory.db import DbClient
from cloud_memory.dependencies import (
    get_cleanup_job,
    get_db_client,
    get_memory_service,
    get_pagination_service,
    get_stats_service,
)
from cloud_memory.memories import MemoryWriteService
from cloud_memory.pagination import PaginationService
from cloud_memory.schemas import (
    CleanupResponse,
    DeletedPhotosRequest,
    HealthResponse,
    ImageUploadResponse,
    MemoryCreatedResponse,
    MemoryListResponse,
    MemoryResponse,
    SummaryResponse,
)
from cloud_memory.stats import AggregateStatsService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.post("/image", response_model=ImageUploadResponse)
async def upload_image(
    image: UploadFile | None = File(None),
    memories: MemoryWriteService = Depends(get_memory_service),
):
    data = await image.read() if image else None
    stored = memories.upload_image(data, image.content_type if image else None)
    return ImageUploadResponse(
        message="File uploaded successfully!", fileLocation=stored.url
    )


@router.post("/memory", response_model=MemoryCreatedResponse, status_code=201)
async def create_memory(
    background_tasks: BackgroundTasks,
    image: UploadFile | None = File(None),
    nickname: str | None = Form(None),
    message: str | None = Form(None),
    location: str | None = Form(None),
    size: str | None = Form(None),
    memories: MemoryWriteService = Depends(get_memory_service),
    stats: AggregateStatsService = Depends(get_stats_service),
):
    """
    Store an uploaded photo with its message.

    The stats update runs after the response is sent and never changes it.
    """
    data = await image.read() if image else None
    record = memories.create_memory(
        image=data,
        content_type=image.content_type if image else None,
        nickname=nickname,
        message=message,
        location=location,
        size=size,
    )
    background_tasks.add_task(stats.record_memory_added, record.size, record.nickname)
    return MemoryCreatedResponse(
        message="Memory saved successfully!",
        memory=MemoryResponse(**record.as_dict()),
    )


@router.get(
    "/memories", response_model=MemoryListResponse, response_model_exclude_none=True
)
def list_memories(
    location: str | None = Query(None),
    date: str | None = Query(None),
    cursor_id: str | None = Query(None, alias="cursorId"),
    limit: int | None = Query(None),
    pagination: PaginationService = Depends(get_pagination_service),
):
    page = pagination.list_page(
        limit=limit, cursor_id=cursor_id, location=location, date=date
    )
    return MemoryListResponse(**page.as_dict())


@router.get("/memories/{memory_id}", response_model=MemoryResponse)
def get_memory(memory_id: int, db: DbClient = Depends(get_db_client)):
    record = db.get_memory(memory_id)
    if not record:
        raise HTTPException(status_code=404, detail="Memory not found")
    return MemoryResponse(**record.as_dict())


@router.get("/cloud-cleanup-summary", response_model=SummaryResponse)
def cloud_cleanup_summary(stats: AggregateStatsService = Depends(get_stats_service)):
    return SummaryResponse(**stats.get_summary())


@router.post("/cloud-cleanup-summary/deleted-photos", response_model=SummaryResponse)
def register_deleted_photos(
    payload: DeletedPhotosRequest,
    stats: AggregateStatsService = Depends(get_stats_service),
):
    return SummaryResponse(**stats.record_photos_deleted(payload.count))


@router.delete("/batch/memories", response_model=CleanupResponse)
def delete_expired_memories(
    request: Request,
    settings: Settings = Depends(get_settings),
    cleanup: RetentionCleanup = Depends(get_cleanup_job),
):
    verify_batch_secret(
        request.headers.get(settings.batch_secret_header), settings.batch_secret
    )
    result = cleanup.run()
    return CleanupResponse(**result.as_dict())
