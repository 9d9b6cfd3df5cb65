from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Integer, Float, DateTime,
    ForeignKey, Text, JSON, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResearchSessionRecord(Base):
    """One thesis research run"""
    __tablename__ = "research_sessions"

    id = Column(String(64), primary_key=True)
    thesis = Column(Text, nullable=False)
    title = Column(String(200), nullable=True)
    strategy = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False)  # 'researching', 'completed', 'failed'

    # Final results
    final_verdict = Column(JSON, nullable=True)  # {decision, confidence, rationale}
    summary = Column(JSON, nullable=True)
    report = Column(JSON, nullable=True)  # full serialized run
    error = Column(Text, nullable=True)

    # The user's own decision, recorded after reviewing the run
    user_decision = Column(String(10), nullable=True)  # 'invest', 'pass', 'watch'
    user_confidence = Column(Integer, nullable=True)
    user_note = Column(Text, nullable=True)
    user_verdict_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utc_now)
    updated_at = Column(DateTime(timezone=True), default=_utc_now, onupdate=_utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    opportunities = relationship(
        "ResearchOpportunityRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ResearchOpportunityRecord.rank",
    )


class ResearchOpportunityRecord(Base):
    """A discovered opportunity and, once analyzed, its results"""
    __tablename__ = "research_opportunities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), ForeignKey("research_sessions.id"), nullable=False)
    rank = Column(Integer, nullable=False)
    ticker = Column(String(10), nullable=False)
    company_name = Column(String(200), nullable=False)
    thesis = Column(Text, nullable=True)
    alignment_score = Column(Integer, nullable=False)
    risk_level = Column(String(10), nullable=False)
    metrics = Column(JSON, nullable=True)

    # Analysis results (null until analyzed)
    decision = Column(String(10), nullable=True)  # 'invest', 'pass', 'watch'
    confidence = Column(Integer, nullable=True)
    score = Column(Float, nullable=True)
    analysis = Column(JSON, nullable=True)
    errors = Column(JSON, nullable=True)

    session = relationship("ResearchSessionRecord", back_populates="opportunities")

    __table_args__ = (
        Index("ix_research_opportunities_session_ticker", "session_id", "ticker", unique=True),
    )
