"""FastAPI dependencies for codeshift.

Provides the migration services built at startup via FastAPI's
Depends() injection system.
"""

import logging

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


async def get_orchestrator(request: Request):
    """Get MigrationOrchestrator from app state."""
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Migration service not available")
    return orchestrator


async def get_chunk_store(request: Request):
    """Get the ChunkStore from app state."""
    return request.app.state.services.store


async def get_llm_gateway(request: Request):
    """Get the LLMGateway from app state."""
    return request.app.state.services.llm
