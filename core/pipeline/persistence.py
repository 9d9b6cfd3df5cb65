"""
Research Session Persistence.

Saves session status, discovered opportunities and final results so a run
can be reviewed after the stream ends. Every write is an upsert keyed by
session id, so retrying a call with the same data leaves the same rows.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.pipeline.errors import PersistenceError
from core.pipeline.models import AnalyzedOpportunity, Decision, Opportunity, PipelineRun, Thesis
from db.database import create_db_engine, create_session_factory, init_db, session_scope
from db.models import ResearchOpportunityRecord, ResearchSessionRecord

logger = logging.getLogger(__name__)

STATUS_RESEARCHING = "researching"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class SessionStore(ABC):
    """Storage collaborator used by the pipeline runner."""

    @abstractmethod
    async def mark_researching(self, session_id: str, thesis: Thesis) -> None:
        ...

    @abstractmethod
    async def save_discovered(self, session_id: str, opportunities: Sequence[Opportunity]) -> None:
        ...

    @abstractmethod
    async def save_result(self, session_id: str, run: PipelineRun) -> None:
        ...

    @abstractmethod
    async def mark_failed(self, session_id: str, reason: str) -> None:
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def save_user_verdict(
        self,
        session_id: str,
        decision: Decision,
        confidence: int,
        note: str = "",
    ) -> bool:
        """Record the user's own decision. False when the session is unknown."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Remove a session and its opportunities. False when it is unknown."""

    @abstractmethod
    async def get_analysis(
        self,
        session_id: str,
        ticker: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Stored analysis for one opportunity; the top-ranked one by default."""


def _opportunity_row(
    session_id: str,
    rank: int,
    opportunity: Opportunity,
    analyzed: Optional[AnalyzedOpportunity] = None,
) -> ResearchOpportunityRecord:
    row = ResearchOpportunityRecord(
        session_id=session_id,
        rank=rank,
        ticker=opportunity.ticker,
        company_name=opportunity.company_name,
        thesis=opportunity.thesis,
        alignment_score=opportunity.score,
        risk_level=opportunity.risk_level.value,
        metrics=dict(opportunity.metrics),
    )
    if analyzed is not None:
        row.analysis = analyzed.to_dict()
        row.errors = list(analyzed.errors)
        row.score = analyzed.score
        if analyzed.verdict is not None:
            row.decision = analyzed.verdict.decision.value
            row.confidence = analyzed.verdict.confidence
    return row


def _user_verdict(record: ResearchSessionRecord) -> Optional[Dict[str, Any]]:
    if record.user_decision is None:
        return None
    return {
        "decision": record.user_decision,
        "confidence": record.user_confidence,
        "note": record.user_note or "",
        "recorded_at": record.user_verdict_at.isoformat() if record.user_verdict_at else None,
    }


class SqlSessionStore(SessionStore):
    """
    SQLAlchemy-backed store.

    SQLAlchemy sessions are blocking, so each call runs in the default
    thread pool.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_db_engine(database_url, echo=echo)
        self.SessionLocal = create_session_factory(self.engine)
        init_db(self.engine)
        logger.info(f"Research persistence initialized at {database_url}")

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except SQLAlchemyError as e:
            raise PersistenceError(f"{fn.__name__} failed: {e}") from e

    # =========================================================================
    # Blocking implementations
    # =========================================================================

    def _mark_researching(self, session_id: str, thesis: Thesis) -> None:
        with session_scope(self.SessionLocal) as session:
            record = session.get(ResearchSessionRecord, session_id)
            if record is None:
                record = ResearchSessionRecord(id=session_id, created_at=datetime.now(timezone.utc))
                session.add(record)
            record.thesis = thesis.text
            record.title = thesis.title
            record.strategy = thesis.strategy.value
            record.status = STATUS_RESEARCHING
            record.error = None
        logger.info(f"Session {session_id} marked researching")

    def _replace_opportunities(self, session, session_id: str, rows: List[ResearchOpportunityRecord]):
        session.query(ResearchOpportunityRecord).filter(
            ResearchOpportunityRecord.session_id == session_id
        ).delete(synchronize_session=False)
        session.add_all(rows)

    def _save_discovered(self, session_id: str, opportunities: Sequence[Opportunity]) -> None:
        with session_scope(self.SessionLocal) as session:
            rows = [
                _opportunity_row(session_id, rank, o)
                for rank, o in enumerate(opportunities)
            ]
            self._replace_opportunities(session, session_id, rows)
        logger.info(f"Session {session_id}: saved {len(opportunities)} discovered opportunities")

    def _save_result(self, session_id: str, run: PipelineRun) -> None:
        with session_scope(self.SessionLocal) as session:
            record = session.get(ResearchSessionRecord, session_id)
            if record is None:
                record = ResearchSessionRecord(id=session_id, created_at=run.started_at)
                session.add(record)
            record.thesis = run.thesis.text
            record.title = run.thesis.title
            record.strategy = run.thesis.strategy.value
            record.status = STATUS_COMPLETED
            record.final_verdict = run.final_verdict.to_dict()
            record.summary = run.summary.to_dict()
            record.report = run.to_dict()
            record.error = None
            record.completed_at = run.completed_at

            rows = [
                _opportunity_row(session_id, rank, a.opportunity, a)
                for rank, a in enumerate(run.analyzed)
            ]
            self._replace_opportunities(session, session_id, rows)
        logger.info(f"Session {session_id} completed: {run.final_verdict.decision.value}")

    def _mark_failed(self, session_id: str, reason: str) -> None:
        with session_scope(self.SessionLocal) as session:
            record = session.get(ResearchSessionRecord, session_id)
            if record is None:
                logger.warning(f"Session {session_id} not found, cannot mark failed")
                return
            record.status = STATUS_FAILED
            record.error = reason

    def _get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        with session_scope(self.SessionLocal) as session:
            record = session.get(ResearchSessionRecord, session_id)
            if record is None:
                return None
            return {
                "id": record.id,
                "thesis": record.thesis,
                "title": record.title,
                "strategy": record.strategy,
                "status": record.status,
                "final_verdict": record.final_verdict,
                "summary": record.summary,
                "error": record.error,
                "user_verdict": _user_verdict(record),
                "created_at": record.created_at.isoformat() if record.created_at else None,
                "completed_at": record.completed_at.isoformat() if record.completed_at else None,
                "opportunities": [
                    {
                        "rank": o.rank,
                        "ticker": o.ticker,
                        "company_name": o.company_name,
                        "thesis": o.thesis,
                        "alignment_score": o.alignment_score,
                        "risk_level": o.risk_level,
                        "metrics": o.metrics,
                        "decision": o.decision,
                        "confidence": o.confidence,
                        "score": o.score,
                        "errors": o.errors,
                    }
                    for o in record.opportunities
                ],
            }

    def _save_user_verdict(self, session_id: str, decision: Decision, confidence: int, note: str) -> bool:
        with session_scope(self.SessionLocal) as session:
            record = session.get(ResearchSessionRecord, session_id)
            if record is None:
                return False
            record.user_decision = decision.value
            record.user_confidence = confidence
            record.user_note = note
            record.user_verdict_at = datetime.now(timezone.utc)
        logger.info(f"Session {session_id}: user verdict {decision.value} ({confidence}%)")
        return True

    def _delete_session(self, session_id: str) -> bool:
        with session_scope(self.SessionLocal) as session:
            record = session.get(ResearchSessionRecord, session_id)
            if record is None:
                return False
            # Opportunity rows go with it through the delete-orphan cascade
            session.delete(record)
        logger.info(f"Session {session_id} deleted")
        return True

    def _get_analysis(self, session_id: str, ticker: Optional[str]) -> Optional[Dict[str, Any]]:
        with session_scope(self.SessionLocal) as session:
            query = session.query(ResearchOpportunityRecord).filter(
                ResearchOpportunityRecord.session_id == session_id
            )
            if ticker:
                query = query.filter(ResearchOpportunityRecord.ticker == ticker.strip().upper())
            row = query.order_by(ResearchOpportunityRecord.rank).first()
            return row.analysis if row is not None else None

    # =========================================================================
    # SessionStore
    # =========================================================================

    async def mark_researching(self, session_id: str, thesis: Thesis) -> None:
        await self._run(self._mark_researching, session_id, thesis)

    async def save_discovered(self, session_id: str, opportunities: Sequence[Opportunity]) -> None:
        await self._run(self._save_discovered, session_id, list(opportunities))

    async def save_result(self, session_id: str, run: PipelineRun) -> None:
        await self._run(self._save_result, session_id, run)

    async def mark_failed(self, session_id: str, reason: str) -> None:
        await self._run(self._mark_failed, session_id, reason)

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await self._run(self._get_session, session_id)

    async def save_user_verdict(
        self,
        session_id: str,
        decision: Decision,
        confidence: int,
        note: str = "",
    ) -> bool:
        return await self._run(self._save_user_verdict, session_id, decision, confidence, note)

    async def delete_session(self, session_id: str) -> bool:
        return await self._run(self._delete_session, session_id)

    async def get_analysis(
        self,
        session_id: str,
        ticker: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        return await self._run(self._get_analysis, session_id, ticker)
