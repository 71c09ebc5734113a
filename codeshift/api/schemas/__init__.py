"""Pydantic schemas for API request/response models."""

from .migration import ChunkSearchRequest, MigrationRequestBody, MigrationResponse

__all__ = [
    'ChunkSearchRequest',
    'MigrationRequestBody',
    'MigrationResponse',
]
