"""
Phase events for SSE streaming.

The runner reports progress through a ProgressEmitter; callers read the
events back in order from ``ProgressEmitter.stream()``. A ``complete`` or
``error`` event ends the stream.
"""

import asyncio
import json
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, List, Optional, Tuple

from pydantic import BaseModel, Field


class Phase(str, Enum):
    """Stages reported to callers."""
    STARTING = "starting"
    RESEARCHING = "researching"
    STRATEGY_ANALYSIS = "strategy_analysis"
    CRITIQUE = "critique"
    VERDICT = "verdict"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_PHASES = (Phase.COMPLETE, Phase.ERROR)


def utc_now() -> datetime:
    """Timezone-aware current time; every pipeline timestamp uses it."""
    return datetime.now(timezone.utc)


class PhaseEvent(BaseModel):
    """A single progress event in the SSE stream."""

    phase: Phase = Field(..., description="Pipeline phase")
    agent: Optional[str] = Field(default=None, description="Agent doing the work")
    content: Optional[str] = Field(
        default=None,
        description="Progress text; the serialized run for complete events"
    )
    timestamp: str = Field(
        default_factory=lambda: utc_now().isoformat(),
        description="ISO-8601 time the event was emitted"
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

    def to_sse(self) -> str:
        """Convert to Server-Sent Events format."""
        return f"data: {json.dumps(self.to_dict())}\n\n"


class _EndOfStream:
    """Queue sentinel marking that no more events will arrive."""

    def __repr__(self) -> str:
        return "<end-of-stream>"


END_OF_STREAM = _EndOfStream()


class ProgressEmitter:
    """
    Ordered, single-producer event channel.

    Every emitted event is appended to an in-memory log (kept on the final
    run) and pushed onto a queue. A terminal event closes the channel; any
    emit after that raises.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._log: List[PhaseEvent] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> Tuple[PhaseEvent, ...]:
        return tuple(self._log)

    def emit(
        self,
        phase: Phase,
        agent: Optional[str] = None,
        content: Optional[str] = None,
    ) -> PhaseEvent:
        if self._closed:
            raise RuntimeError(f"Cannot emit {phase.value} after the stream ended")
        event = PhaseEvent(phase=phase, agent=agent, content=content)
        self._log.append(event)
        self._queue.put_nowait(event)
        if phase in TERMINAL_PHASES:
            self.close()
        return event

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(END_OF_STREAM)

    async def stream(self) -> AsyncIterator[PhaseEvent]:
        """Yield events in emission order until the channel closes."""
        while True:
            item = await self._queue.get()
            if item is END_OF_STREAM:
                return
            yield item
