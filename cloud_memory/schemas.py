"""
Pydantic schemas for the memory backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class MemoryResponse(BaseModel):
    id: int
    nickname: str
    imageUrl: str
    message: str
    location: Literal["MOUNTAIN", "SEA", "SKY"]
    size: int
    createdAt: datetime


class MemoryCreatedResponse(BaseModel):
    message: str
    memory: MemoryResponse


class CursorResponse(BaseModel):
    createdAt: datetime
    id: int


class MemoryListResponse(BaseModel):
    items: list[MemoryResponse]
    nextCursor: Optional[CursorResponse] = None


class SummaryResponse(BaseModel):
    deletedPhotoCount: int
    peopleCount: int
    avgPhotoSize: float
    totalPhotoSize: int


class DeletedPhotosRequest(BaseModel):
    count: int = Field(..., ge=0, le=2**63 - 1)


class CleanupResponse(BaseModel):
    deletedCount: int
    cutoff: datetime


class ImageUploadResponse(BaseModel):
    message: str
    fileLocation: str


class HealthResponse(BaseModel):
    status: Literal["ok"]
