"""Stage-progress events published while an analysis runs."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("tradelens")

# ── Stages and statuses ──────────────────────────────────────────────────

DATA_COLLECTION = "data_collection"
TECHNICAL_CALCULATION = "technical_calculation"
SIGNAL_AGGREGATION = "signal_aggregation"
AI_THINKING = "ai_thinking"
FINAL_VERDICT = "final_verdict"
STAGES = (
    DATA_COLLECTION,
    TECHNICAL_CALCULATION,
    SIGNAL_AGGREGATION,
    AI_THINKING,
    FINAL_VERDICT,
)

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETE = "complete"
STATUSES = (PENDING, IN_PROGRESS, COMPLETE)


@dataclass(frozen=True)
class StageUpdate:
    """One progress notification for a pipeline stage."""

    stage: str
    progress: int  # 0–100
    status: str
    duration_ms: Optional[int] = None
    data: Optional[dict] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __post_init__(self) -> None:
        if self.stage not in STAGES:
            raise ValueError(f"Unknown stage '{self.stage}'")
        if self.status not in STATUSES:
            raise ValueError(f"Unknown stage status '{self.status}'")

    def to_message(self) -> dict[str, Any]:
        """Wire form sent to WebSocket clients."""
        message: dict[str, Any] = {
            "type": "analysis_stage",
            "stage": self.stage,
            "progress": self.progress,
            "status": self.status,
            "timestamp": self.timestamp,
        }
        if self.duration_ms is not None:
            message["duration"] = self.duration_ms
        if self.data is not None:
            message["data"] = self.data
        return message


def thought_message(thought: str, full_thinking: str) -> dict[str, Any]:
    """Wire form of one streamed reasoning fragment."""
    return {
        "type": "ai_thinking_stream",
        "thought": thought,
        "fullThinking": full_thinking,
    }


StageEmitter = Callable[[StageUpdate], Awaitable[None]]


async def safe_emit(emitter: Optional[StageEmitter], update: StageUpdate) -> None:
    """Publish *update*, logging and swallowing any emitter failure."""
    if emitter is None:
        return
    try:
        await emitter(update)
    except Exception as exc:
        logger.warning(
            "Stage emitter failed on %s/%d: %s", update.stage, update.progress, exc,
        )
