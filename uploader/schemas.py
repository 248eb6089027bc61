"""Pydantic schemas for the remote store endpoints."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CheckRequest(BaseModel):
    """Request body for POST /check."""
    model_config = ConfigDict(populate_by_name=True)

    hash: str
    filename: str
    file_size: int = Field(alias="fileSize")


class CheckResponse(BaseModel):
    """Response body for POST /check."""
    uploaded: bool
    uploaded_chunks: List[int] = []
    url: Optional[str] = None


class MergeRequest(BaseModel):
    """Request body for POST /merge."""
    model_config = ConfigDict(populate_by_name=True)

    hash: str
    filename: str
    size: int
    total_chunks: int = Field(alias="totalChunks")


class MergeResponse(BaseModel):
    """Response body for POST /merge."""
    success: bool = True
    url: Optional[str] = None


class UploadChunkResponse(BaseModel):
    """Response body for POST /upload."""
    success: bool = True
    chunk_index: Optional[int] = Field(default=None, alias="chunkIndex")


class StoreErrorResponse(BaseModel):
    """Error body returned by the store on any failing endpoint."""
    error: str
