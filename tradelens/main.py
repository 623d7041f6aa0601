"""TradeLens — application entry point.

Boots the FastAPI server and provides the CLI entry point for serving the
streaming API or running a single analysis from the terminal.
"""

import logging

from fastapi import FastAPI

from tradelens.api.routers import router

app = FastAPI(title="TradeLens Analysis API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("tradelens")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


def build_pipeline(config):
    """Wire the Binance client and Gemini gate into an ``AnalysisPipeline``."""
    from tradelens.analysis.pipeline import AnalysisPipeline
    from tradelens.market.binance_client import BinanceClient
    from tradelens.oracle.gemini_client import GeminiJudgmentGate

    return AnalysisPipeline(
        config=config,
        provider=BinanceClient(config),
        oracle=GeminiJudgmentGate(config),
    )


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate command."""
    import argparse
    import asyncio

    from tradelens.config import load_config

    parser = argparse.ArgumentParser(description="TradeLens trade-signal analysis")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP/WebSocket API (default)")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port (default: API_PORT)")

    analyze = sub.add_parser("analyze", help="Run one analysis and print the prediction")
    analyze.add_argument("pair", help="Trading pair, e.g. BTC/USDT")
    analyze.add_argument("--timeframe", default=None, help="Entry timeframe, e.g. M15")

    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    pipeline = build_pipeline(config)

    if args.command == "analyze":
        asyncio.run(_run_analyze(pipeline, args.pair, args.timeframe))
    else:
        host = getattr(args, "host", "0.0.0.0")
        port = getattr(args, "port", None) or config.api_port
        _run_server(pipeline, host, port)


def _run_server(pipeline, host: str, port: int) -> None:
    """Serve the API with the pipeline injected into the routers."""
    import uvicorn

    from tradelens.api.routers import configure_routers

    configure_routers(pipeline=pipeline)
    logger.info("TradeLens API listening on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")


async def _run_analyze(pipeline, pair: str, timeframe) -> None:
    """Run one analysis and print the prediction as JSON."""
    import json

    async def _log_stage(update) -> None:
        logger.info("[%s] %d%% %s", update.stage, update.progress, update.status)

    prediction = await pipeline.run_analysis(pair, timeframe, emitter=_log_stage)
    print(json.dumps(prediction.to_dict(), indent=2))


if __name__ == "__main__":
    _run_cli()
