"""
Deep Research

Long-form due diligence reports per opportunity, with a chat model fallback.
"""
from core.research.deep_research import (
    ResearchService,
    DeepResearchService,
    GeminiInteractionsClient
)

__all__ = [
    "ResearchService",
    "DeepResearchService",
    "GeminiInteractionsClient"
]
