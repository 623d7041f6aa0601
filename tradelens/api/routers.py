"""API routers — /timeframes, /analysis and the /ws/analysis stream.

No business logic. Delegates every run to the injected ``AnalysisPipeline``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from tradelens.analysis.events import StageUpdate, thought_message
from tradelens.analysis.pipeline import AnalysisPipeline
from tradelens.market.timeframes import ANCHOR_TIMEFRAMES, DURATION_LABELS, validate_timeframe

logger = logging.getLogger("tradelens")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_pipeline: Optional[AnalysisPipeline] = None  # Set via configure_routers()


def configure_routers(pipeline: Optional[AnalysisPipeline]) -> None:
    """Inject the analysis pipeline from the application startup.

    Args:
        pipeline: An ``AnalysisPipeline`` instance (or duck-type for tests).
    """
    global _pipeline  # noqa: PLW0603
    _pipeline = pipeline


def _require_pipeline() -> AnalysisPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=503, detail="Analysis pipeline not configured")
    return _pipeline


class AnalysisRequest(BaseModel):
    pair: str
    timeframe: Optional[str] = None


# ── Endpoints ────────────────────────────────────────────────────────────


@router.get("/timeframes")
async def get_timeframes():
    """Supported timeframes with their anchor and holding-duration label."""
    return {
        "timeframes": [
            {
                "timeframe": tf,
                "anchor": ANCHOR_TIMEFRAMES[tf],
                "duration": DURATION_LABELS[tf],
            }
            for tf in ANCHOR_TIMEFRAMES
        ]
    }


@router.post("/analysis")
async def post_analysis(body: AnalysisRequest):
    """Run one analysis without progress streaming and return the Prediction."""
    pipeline = _require_pipeline()
    if body.timeframe is not None:
        try:
            validate_timeframe(body.timeframe)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    prediction = await pipeline.run_analysis(body.pair, body.timeframe)
    return prediction.to_dict()


# ── WebSocket ────────────────────────────────────────────────────────────


def _parse_start_message(message: object) -> tuple[str, Optional[str]]:
    """Extract (pair, timeframe) from a ``start_analysis`` message.

    Raises ``ValueError`` describing the first problem found.
    """
    if not isinstance(message, dict):
        raise ValueError("Message must be a JSON object")
    if message.get("type") != "start_analysis":
        raise ValueError(f"Unknown message type: {message.get('type')!r}")

    pair = message.get("pair")
    if not isinstance(pair, str) or not pair.strip():
        raise ValueError("start_analysis requires a 'pair'")

    timeframe = message.get("timeframe")
    if timeframe is not None:
        if not isinstance(timeframe, str):
            raise ValueError("'timeframe' must be a string")
        validate_timeframe(timeframe)
    return pair.strip(), timeframe


@router.websocket("/ws/analysis")
async def ws_analysis(websocket: WebSocket) -> None:
    """Stream stage updates, reasoning fragments and the final prediction.

    One analysis runs per ``start_analysis`` message; the socket stays open
    for further requests until the client disconnects.
    """
    await websocket.accept()

    async def send_stage(update: StageUpdate) -> None:
        await websocket.send_json(update.to_message())

    async def send_thought(thought: str, full_thinking: str) -> None:
        await websocket.send_json(thought_message(thought, full_thinking))

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            try:
                pair, timeframe = _parse_start_message(message)
            except ValueError as exc:
                await websocket.send_json({"type": "error", "message": str(exc)})
                continue

            pipeline = _pipeline
            if pipeline is None:
                await websocket.send_json(
                    {"type": "error", "message": "Analysis pipeline not configured"}
                )
                continue

            logger.info("WebSocket analysis requested: %s %s", pair, timeframe or "default")
            prediction = await pipeline.run_analysis(
                pair, timeframe, emitter=send_stage, on_thought=send_thought,
            )
            await websocket.send_json({"type": "prediction", "prediction": prediction.to_dict()})
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
