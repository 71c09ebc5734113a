"""Migration API routes.

  POST /migrations — run the migration pipeline for an indexed session
  GET  /sessions/{session_id}/statistics — chunk aggregates for a session
  POST /sessions/{session_id}/search — filtered chunk search
  GET  /llm/metrics — LLM gateway usage metrics
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...core.constants import STEP_CHUNK_DISCOVERY, STEP_PLAN_GENERATION, STEP_VALIDATION
from ...core.errors import MigrationError
from ...core.store.base import SearchCriteria
from ..deps import get_chunk_store, get_llm_gateway, get_orchestrator
from ..schemas.migration import ChunkSearchRequest, MigrationRequestBody, MigrationResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["migration"])

_STEP_STATUS = {
    STEP_VALIDATION: 400,
    STEP_CHUNK_DISCOVERY: 502,
    STEP_PLAN_GENERATION: 502,
}


def status_for_step(step: str) -> int:
    return _STEP_STATUS.get(step, 500)


# ── Migrations ──────────────────────────────────────────────────────────

@router.post("/migrations", response_model=MigrationResponse)
async def run_migration(
    data: MigrationRequestBody,
    orchestrator=Depends(get_orchestrator),
):
    """Run validate → analyze → retrieve → plan → rewrite → validate."""
    report = await orchestrator.process_migration(data.to_request())
    if not report.get("success"):
        step = report.get("step", "execution")
        logger.warning(f"Migration request failed at {step}: {report.get('error')}")
        return JSONResponse(status_code=status_for_step(step), content=report)
    return report


# ── Sessions ────────────────────────────────────────────────────────────

@router.get("/sessions/{session_id}/statistics")
async def session_statistics(session_id: str, store=Depends(get_chunk_store)):
    """Aggregate statistics for a session's chunks."""
    try:
        stats = await asyncio.to_thread(store.get_project_statistics, session_id)
    except MigrationError as e:
        logger.error(f"Failed to get statistics for {session_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {"success": True, "session_id": session_id, "statistics": stats}


@router.post("/sessions/{session_id}/search")
async def search_session_chunks(
    session_id: str,
    data: ChunkSearchRequest,
    store=Depends(get_chunk_store),
):
    """Search chunks by kind, language, complexity, async flag, path and text."""
    criteria = SearchCriteria(
        query=data.query,
        chunk_type=data.chunk_type,
        language=data.language,
        min_complexity=data.min_complexity,
        max_complexity=data.max_complexity,
        is_async=data.is_async,
        file_path=data.file_path,
        offset=data.offset,
        limit=data.limit,
    )
    try:
        chunks = await asyncio.to_thread(store.search_chunks, session_id, criteria)
    except MigrationError as e:
        logger.error(f"Chunk search failed for {session_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return {
        "success": True,
        "session_id": session_id,
        "count": len(chunks),
        "chunks": [c.to_dict(include_embedding=False) for c in chunks],
    }


# ── LLM metrics ─────────────────────────────────────────────────────────

@router.get("/llm/metrics")
async def llm_metrics(llm=Depends(get_llm_gateway)):
    """Call counts, tokens, latency, errors and estimated cost."""
    return llm.get_metrics()
