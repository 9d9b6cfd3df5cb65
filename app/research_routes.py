"""
Thesis Research API Routes.

SSE streaming of a research run, a blocking variant, session lookup and
the follow-up actions on a finished session.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.config import get_settings
from app.schemas import (
    InterrogationRequest,
    InterrogationResponse,
    SessionResponse,
    ThesisRunRequest,
    UserVerdictRequest,
)
from core.pipeline import prompts
from core.pipeline.events import Phase, ProgressEmitter
from core.pipeline.runner import PipelineRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/research", tags=["research"])

# Runner is built once on first request (singleton)
_runner: Optional[PipelineRunner] = None


def get_runner() -> PipelineRunner:
    """Get or create the pipeline runner."""
    global _runner
    if _runner is None:
        _runner = PipelineRunner.from_settings(get_settings())
    return _runner


@router.post("/thesis/stream")
async def stream_thesis(
    request: ThesisRunRequest,
    runner: PipelineRunner = Depends(get_runner),
):
    """
    Research a thesis, streaming phase events via SSE.

    The last event is either ``complete`` (content is the serialized run)
    or ``error``.
    """
    try:
        thesis = request.to_thesis()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    session_id = request.session_id or str(uuid.uuid4())
    logger.info(f"[API] Starting thesis run {session_id} ({thesis.strategy.value})")

    async def generate_events():
        """Generate SSE events from the pipeline."""
        async for event in runner.stream(thesis, session_id):
            yield event.to_sse()

    return StreamingResponse(
        generate_events(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Session-Id": session_id,
        }
    )


@router.post("/thesis")
async def run_thesis(
    request: ThesisRunRequest,
    runner: PipelineRunner = Depends(get_runner),
):
    """Research a thesis and return the finished run."""
    try:
        thesis = request.to_thesis()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    emitter = ProgressEmitter()
    run = await runner.run(thesis, request.session_id, emitter)
    if run is None:
        errors = [e.content for e in emitter.events if e.phase == Phase.ERROR]
        raise HTTPException(
            status_code=502,
            detail=f"Research run failed: {errors[-1] if errors else 'unknown error'}"
        )
    return run.to_dict()


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    runner: PipelineRunner = Depends(get_runner),
):
    """Get a persisted research session."""
    session = await runner.store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


@router.post("/sessions/{session_id}/verdict")
async def record_user_verdict(
    session_id: str,
    request: UserVerdictRequest,
    runner: PipelineRunner = Depends(get_runner),
):
    """Record the user's own invest/pass/watch decision on a session."""
    saved = await runner.store.save_user_verdict(
        session_id, request.to_decision(), request.confidence, request.note
    )
    if not saved:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"success": True}


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    runner: PipelineRunner = Depends(get_runner),
):
    """Delete a session together with its opportunities."""
    if not await runner.store.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    logger.info(f"[API] Deleted session {session_id}")
    return {"success": True}


@router.post("/sessions/{session_id}/interrogate", response_model=InterrogationResponse)
async def interrogate_session(
    session_id: str,
    request: InterrogationRequest,
    runner: PipelineRunner = Depends(get_runner),
):
    """
    Ask a follow-up question about one analyzed opportunity.

    The interrogator sees the thesis, the stored research report, the
    strategy analysis, both critiques and the council verdict.
    """
    session = await runner.store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")

    analysis = await runner.store.get_analysis(session_id, request.ticker)
    if not analysis or not analysis.get("research"):
        target = request.ticker or "this session"
        raise HTTPException(status_code=400, detail=f"No research report available for {target}")

    agent = runner.analyzer.roster.interrogator
    if agent is None:
        raise HTTPException(status_code=503, detail="Interrogation agent not configured")

    ticker = analysis["opportunity"]["ticker"]
    prompt = prompts.interrogation_prompt(session["thesis"], analysis, request.question)
    try:
        answer = await agent.generate(prompt)
    except Exception as e:
        logger.error(f"[API] Interrogation of {session_id}/{ticker} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to generate response: {e}")

    return InterrogationResponse(session_id=session_id, ticker=ticker, response=answer)



@router.get("/council")
async def get_council(runner: PipelineRunner = Depends(get_runner)):
    """Which council agents are configured for this deployment."""
    return {
        "roles": runner.analyzer.roster.available_roles(),
        "research": runner.analyzer.research is not None,
        "debate": runner.debate is not None,
    }
