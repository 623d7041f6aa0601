"""Judgment oracle protocol.

Defines the capability interface the analysis pipeline consults for an
external directional judgment.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

from tradelens.oracle.models import AnalysisSnapshot, ExternalJudgment

# Receives (latest_thought, full_thinking_so_far)
ThoughtObserver = Callable[[str, str], Awaitable[None]]


@runtime_checkable
class JudgmentOracle(Protocol):
    """Interface that every external judgment source must satisfy."""

    async def judge(
        self,
        snapshot: AnalysisSnapshot,
        on_thought: Optional[ThoughtObserver] = None,
    ) -> Optional[ExternalJudgment]:
        """Return a judgment for *snapshot*, or None if none could be obtained."""
        ...
