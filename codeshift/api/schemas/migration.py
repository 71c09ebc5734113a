"""Migration request/response schemas.

Requests accept camelCase (the wire format) or snake_case keys. Required
request fields are optional here so the orchestrator can report every
missing field at once instead of FastAPI rejecting the body.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MigrationRequestBody(BaseModel):
    """Start a migration for an indexed session."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId", description="Indexed session id")
    user_id: Optional[str] = Field(None, alias="userId", description="Requesting user id")
    command: Optional[str] = Field(None, description="Natural-language migration command")
    target_technology: Optional[str] = Field(
        None, alias="targetTechnology", description="Target technology tag, e.g. prisma"
    )
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="threshold, limit, chunkTypes, languages, includeDependencies, includeRelatedFiles",
    )

    def to_request(self) -> dict:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "command": self.command,
            "target_technology": self.target_technology,
            "options": self.options,
        }


class MigrationResponse(BaseModel):
    """Migration report (success) or failure envelope."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., description="Whether the migration completed")
    migration_id: Optional[str] = Field(None, alias="migrationId", description="Identifier of this migration run")
    command: Optional[str] = Field(None, description="Command as received")
    target_technology: Optional[str] = Field(None, alias="targetTechnology", description="Target technology tag")
    plan: Optional[dict] = Field(None, description="Eight-section plan with metadata and timeline")
    results: List[dict] = Field(default_factory=list, description="Per-file rewrite results")
    errors: List[dict] = Field(default_factory=list, description="Per-file failures")
    validation: Optional[dict] = Field(None, description="Validation report")
    statistics: Optional[dict] = Field(None, description="Run statistics and recovery telemetry")
    error: Optional[str] = Field(None, description="Error message if failed")
    step: Optional[str] = Field(None, description="Failing pipeline step")


class ChunkSearchRequest(BaseModel):
    """Filtered chunk search within a session."""
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = Field(None, description="Free-text query")
    chunk_type: Optional[List[str]] = Field(None, alias="chunkType", description="Chunk kinds")
    language: Optional[List[str]] = Field(None, description="Languages")
    min_complexity: Optional[int] = Field(None, alias="minComplexity", ge=1, le=10)
    max_complexity: Optional[int] = Field(None, alias="maxComplexity", ge=1, le=10)
    is_async: Optional[bool] = Field(None, alias="isAsync")
    file_path: Optional[str] = Field(None, alias="filePath", description="File path substring")
    offset: int = Field(0, ge=0)
    limit: int = Field(50, ge=1, le=500)
