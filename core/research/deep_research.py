"""
Deep Research

Long-form due diligence per opportunity. The primary provider is Gemini's
background Interactions API (create, then poll until completed); if it
fails or exceeds its wait limit, a standard chat model writes the report
from the same prompt.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

import requests

from core.config.constants import CONSTANTS
from core.langchain.agents import TextGenerator
from core.pipeline.errors import ResearchError, ResearchTimeoutError
from core.pipeline.models import Opportunity, ResearchReport, ResearchStep
from core.pipeline.prompts import research_prompt

logger = logging.getLogger(__name__)

INTERACTIONS_URL = "https://generativelanguage.googleapis.com/v1beta/interactions"
DEEP_RESEARCH_AGENT = "deep-research-pro-preview-12-2025"

StepCallback = Callable[[ResearchStep], None]


class GeminiInteractionsClient:
    """Minimal blocking client for the Gemini Interactions REST API."""

    def __init__(
        self,
        api_key: str,
        agent: str = DEEP_RESEARCH_AGENT,
        base_url: str = INTERACTIONS_URL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("GEMINI_API_KEY or GOOGLE_API_KEY not set")
        self.api_key = api_key
        self.agent = agent
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or CONSTANTS.research.REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @property
    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    def create(self, prompt: str) -> Dict[str, Any]:
        """Start a background research interaction."""
        response = self.session.post(
            self.base_url,
            json={"input": prompt, "agent": self.agent, "background": True},
            headers=self._headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def get(self, interaction_id: str) -> Dict[str, Any]:
        response = self.session.get(
            f"{self.base_url}/{interaction_id}",
            headers=self._headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()


def _report_text(interaction: Dict[str, Any]) -> str:
    outputs = interaction.get("outputs") or []
    if not outputs:
        return ""
    last = outputs[-1]
    return (last.get("text") or "") if isinstance(last, dict) else str(last)


class ResearchService(ABC):
    """Produces one ResearchReport per opportunity, or raises ResearchError."""

    @abstractmethod
    async def research(
        self,
        opportunity: Opportunity,
        on_step: Optional[StepCallback] = None,
    ) -> ResearchReport:
        ...


class DeepResearchService(ResearchService):
    """
    Gemini deep research with a single fallback.

    Args:
        client: Interactions client, or None to go straight to the fallback
        fallback: Text generator used when the primary provider fails
        poll_interval: Seconds between status polls
        max_wait: Total seconds to wait for the primary before giving up
        sleep: Awaitable sleep, injectable for tests
    """

    def __init__(
        self,
        client: Optional[GeminiInteractionsClient] = None,
        fallback: Optional[TextGenerator] = None,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if client is None and fallback is None:
            raise ValueError("DeepResearchService needs a client or a fallback")
        self.client = client
        self.fallback = fallback
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else CONSTANTS.research.POLL_INTERVAL_SECONDS
        )
        self.max_wait = max_wait if max_wait is not None else CONSTANTS.research.MAX_WAIT_SECONDS
        self._sleep = sleep

    async def _call(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def stream_deep_research(self, prompt: str) -> AsyncIterator[ResearchStep]:
        """
        Run one background interaction, yielding progress steps.

        The last step has kind "complete" and carries the report text.
        Raises ResearchError on failure and ResearchTimeoutError when the
        interaction outlives ``max_wait``.
        """
        yield ResearchStep("thinking", "Starting deep research with Gemini...")
        interaction = await self._call(self.client.create, prompt)
        interaction_id = interaction.get("id") or interaction.get("name")
        if not interaction_id:
            raise ResearchError("Interactions API returned no id")

        yield ResearchStep(
            "thinking",
            f"Deep research initiated (ID: {interaction_id}). Waiting for completion...",
            interaction_id,
        )

        started = time.monotonic()
        last_status = None
        while True:
            status = interaction.get("status", "")
            if status != last_status:
                last_status = status
                yield ResearchStep(
                    "progress", f"Research status: {status or 'pending'}", interaction_id
                )

            if status == "completed":
                report = _report_text(interaction)
                if not report.strip():
                    raise ResearchError(f"Interaction {interaction_id} completed without a report")
                yield ResearchStep(
                    "analyzing", "Research completed. Processing final report...", interaction_id
                )
                yield ResearchStep("complete", report, interaction_id)
                return
            if status in ("failed", "cancelled"):
                raise ResearchError(str(interaction.get("error") or f"Deep research {status}"))

            waited = time.monotonic() - started
            if waited >= self.max_wait:
                raise ResearchTimeoutError(interaction_id, waited)

            await self._sleep(self.poll_interval)
            interaction = await self._call(self.client.get, interaction_id)

    async def _run_primary(self, prompt: str, on_step: StepCallback) -> Tuple[str, Optional[str]]:
        """Report text and interaction id from one deep research run."""
        async for step in self.stream_deep_research(prompt):
            if step.kind == "complete":
                return step.content, step.interaction_id
            on_step(step)
        raise ResearchError("Deep research ended without a report")

    async def _run_fallback(self, prompt: str, on_step: StepCallback) -> str:
        on_step(ResearchStep("thinking", f"Running standard research with {self.fallback.name}..."))
        report = await self.fallback.generate(prompt)
        on_step(ResearchStep("analyzing", "Analysis complete. Generating report..."))
        return report

    async def research(
        self,
        opportunity: Opportunity,
        on_step: Optional[StepCallback] = None,
    ) -> ResearchReport:
        prompt = research_prompt(opportunity)
        primary_error: Optional[Exception] = None
        steps: List[ResearchStep] = []

        def record(step: ResearchStep) -> None:
            steps.append(step)
            if on_step:
                on_step(step)

        if self.client is not None:
            try:
                content, interaction_id = await self._run_primary(prompt, record)
                logger.info(f"[RESEARCH] {opportunity.ticker}: deep research complete")
                return ResearchReport(
                    content=content,
                    provider="gemini-deep-research",
                    interaction_id=interaction_id,
                    steps=tuple(steps),
                )
            except Exception as e:
                primary_error = e
                logger.warning(
                    f"[RESEARCH] {opportunity.ticker}: deep research unavailable, "
                    f"falling back: {e}"
                )

        if self.fallback is None:
            raise ResearchError(f"Deep research failed: {primary_error}")

        try:
            content = await self._run_fallback(prompt, record)
        except Exception as e:
            reason = f"fallback {self.fallback.name} failed: {e}"
            if primary_error is not None:
                reason = f"primary failed: {primary_error}; {reason}"
            raise ResearchError(reason) from e

        logger.info(f"[RESEARCH] {opportunity.ticker}: fallback research complete")
        return ResearchReport(content=content, provider=self.fallback.name, steps=tuple(steps))
