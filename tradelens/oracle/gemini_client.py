"""Gemini judgment gate — streaming generateContent calls with model fallback.

Each model in the configured chain is tried in order; the first one that
returns a parseable judgment wins.  The whole chain runs under a single
timeout so a slow model can never stall an analysis request.
"""

import asyncio
import json
import logging
from typing import Optional

import httpx

from tradelens.config import Config
from tradelens.oracle.base import ThoughtObserver
from tradelens.oracle.models import AnalysisSnapshot, ExternalJudgment, parse_judgment
from tradelens.oracle.prompts import (
    RESPONSE_SCHEMA,
    SYSTEM_PROMPT,
    build_analysis_text,
    clean_thought,
)

logger = logging.getLogger("tradelens")

_THINKING_BUDGET = 8192


class OracleResponseError(Exception):
    """Raised when a model streams no usable JSON answer."""


class GeminiJudgmentGate:
    """``JudgmentOracle`` backed by the Gemini REST streaming endpoint."""

    def __init__(
        self,
        config: Config,
        models: Optional[tuple[str, ...]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._config = config
        self._base_url = config.gemini_base_url
        self._models = models or config.gemini_models
        self._timeout = timeout if timeout is not None else config.oracle_timeout_seconds
        self._headers = {
            "x-goog-api-key": config.gemini_api_key,
            "Content-Type": "application/json",
        }

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    # ── Public API ───────────────────────────────────────────────────────

    async def judge(
        self,
        snapshot: AnalysisSnapshot,
        on_thought: Optional[ThoughtObserver] = None,
    ) -> Optional[ExternalJudgment]:
        """Ask the model chain for a judgment on *snapshot*.

        Returns ``None`` when every model fails or the time budget runs out.
        """
        try:
            return await asyncio.wait_for(
                self._judge_with_fallback(snapshot, on_thought),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Gemini judgment timed out after %.1fs for %s",
                self._timeout, snapshot.pair,
            )
            return None

    # ── Fallback chain ───────────────────────────────────────────────────

    async def _judge_with_fallback(
        self,
        snapshot: AnalysisSnapshot,
        on_thought: Optional[ThoughtObserver],
    ) -> Optional[ExternalJudgment]:
        body = self._build_request_body(snapshot)

        for model in self._models:
            try:
                judgment = await self._call_model(model, body, on_thought)
            except (httpx.HTTPError, OracleResponseError, json.JSONDecodeError) as exc:
                logger.warning("Gemini model %s failed: %s", model, exc)
                continue

            if judgment is None:
                logger.warning("Gemini model %s returned an unusable judgment", model)
                continue

            logger.info(
                "Gemini %s decision for %s: %s | %d%%",
                model, snapshot.pair, judgment.direction, judgment.confidence,
            )
            return judgment

        logger.error("All Gemini models failed for %s", snapshot.pair)
        return None

    def _build_request_body(self, snapshot: AnalysisSnapshot) -> dict:
        return {
            "system_instruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [
                {"role": "user", "parts": [{"text": build_analysis_text(snapshot)}]}
            ],
            "generationConfig": {
                "temperature": 0.3,
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
                "thinkingConfig": {
                    "thinkingBudget": _THINKING_BUDGET,
                    "includeThoughts": True,
                },
            },
        }

    # ── Streaming call ───────────────────────────────────────────────────

    async def _call_model(
        self,
        model: str,
        body: dict,
        on_thought: Optional[ThoughtObserver],
    ) -> Optional[ExternalJudgment]:
        """Stream one model's answer, forwarding cleaned thoughts as they arrive."""
        url = f"{self._base_url}/models/{model}:streamGenerateContent"
        thinking = ""
        json_text = ""

        async with httpx.AsyncClient() as client:
            async with client.stream(
                "POST",
                url,
                params={"alt": "sse"},
                headers=self._headers,
                json=body,
                timeout=self._timeout,
            ) as resp:
                resp.raise_for_status()
                async for line in resp.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    chunk = json.loads(line[len("data:"):].strip())
                    for part in _parts(chunk):
                        text = part.get("text")
                        if not text:
                            continue
                        if part.get("thought"):
                            thought = clean_thought(text)
                            if thought:
                                thinking = f"{thinking}{thought} "
                                await _notify(on_thought, thought, thinking.strip())
                        else:
                            json_text += text

        if not json_text:
            raise OracleResponseError(f"No JSON content in {model} response")

        return parse_judgment(
            json.loads(json_text),
            model=model,
            thinking_process=thinking.strip(),
        )


def _parts(chunk: dict) -> list[dict]:
    candidates = chunk.get("candidates") or []
    if not candidates:
        return []
    parts = (candidates[0].get("content") or {}).get("parts")
    return parts if isinstance(parts, list) else []


async def _notify(observer: Optional[ThoughtObserver], thought: str, full: str) -> None:
    """Deliver a thought to the observer; observer failures never reach the caller."""
    if observer is None:
        return
    try:
        await observer(thought, full)
    except Exception as exc:
        logger.warning("Thought observer failed: %s", exc)
