from pydantic import BaseModel, Field
from typing import Literal, Optional

from core.pipeline.models import Decision, Strategy, Thesis


class ThesisRunRequest(BaseModel):
    """Request to research an investment thesis"""
    thesis: str = Field(..., min_length=1)
    strategy: str = "general"  # value | special-situations | distressed | general
    title: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    model_config = {"populate_by_name": True}

    def to_thesis(self) -> Thesis:
        return Thesis(
            text=self.thesis.strip(),
            strategy=Strategy.parse(self.strategy),
            title=self.title,
        )


class VerdictResponse(BaseModel):
    decision: str
    confidence: int
    rationale: str


class SessionOpportunityResponse(BaseModel):
    rank: int
    ticker: str
    company_name: str
    thesis: Optional[str] = None
    alignment_score: int
    risk_level: str
    metrics: Optional[dict] = None
    decision: Optional[str] = None
    confidence: Optional[int] = None
    score: Optional[float] = None
    errors: Optional[list[str]] = None


class UserVerdictResponse(BaseModel):
    decision: str
    confidence: int
    note: str = ""
    recorded_at: Optional[str] = None


class SessionResponse(BaseModel):
    id: str
    thesis: str
    title: Optional[str] = None
    strategy: str
    status: str
    final_verdict: Optional[VerdictResponse] = None
    summary: Optional[dict] = None
    error: Optional[str] = None
    user_verdict: Optional[UserVerdictResponse] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    opportunities: list[SessionOpportunityResponse] = []


class UserVerdictRequest(BaseModel):
    """The user's own decision on a finished run"""
    decision: Literal["invest", "pass", "watch"]
    confidence: int = Field(..., ge=0, le=100)
    note: str = ""

    def to_decision(self) -> Decision:
        return Decision(self.decision)


class InterrogationRequest(BaseModel):
    """A follow-up question about one analyzed opportunity"""
    question: str = Field(..., min_length=1)
    ticker: Optional[str] = None  # defaults to the top-ranked opportunity


class InterrogationResponse(BaseModel):
    session_id: str = Field(serialization_alias="sessionId")
    ticker: str
    response: str
