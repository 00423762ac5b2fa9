"""ConfluenceFX — application entry point.

Boots the FastAPI server and provides the CLI for one-shot analysis of
candle files.
"""

import logging

from fastapi import FastAPI

from confluencefx.api.routers import router

app = FastAPI(title="ConfluenceFX Signal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("confluencefx")


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv=None) -> int:
    """Parse CLI arguments and dispatch to the chosen command."""
    import argparse

    from confluencefx.config import load_config

    parser = argparse.ArgumentParser(description="ConfluenceFX signal engine")
    parser.add_argument("--env", help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze one symbol from candle files")
    analyze.add_argument("symbol", help="Instrument, e.g. EUR_USD")
    analyze.add_argument("--h1", required=True, help="H1 candles (.csv/.json/.parquet)")
    analyze.add_argument("--h4", help="H4 candles")
    analyze.add_argument("--d1", help="D1 candles")
    analyze.add_argument("--price", type=float, help="Current price (default: last H1 close)")
    analyze.add_argument("--spread-z", type=float, help="Current spread z-score")
    analyze.add_argument("--now", help="Evaluation time, ISO-8601 (default: last H1 bar)")
    analyze.add_argument(
        "--entries", action="store_true", help="Rank entry options instead of recommending"
    )

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, help="Port (default: API_PORT)")

    args = parser.parse_args(argv)
    config = load_config(args.env)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from confluencefx.engine import SignalEngine

    engine = SignalEngine.from_config(config)

    if args.command == "serve":
        import uvicorn

        from confluencefx.api.routers import configure_routers

        configure_routers(engine)
        port = args.port or config.api_port
        logger.info("Starting ConfluenceFX API on %s:%d", args.host, port)
        uvicorn.run(app, host=args.host, port=port, log_level=config.log_level.lower())
        return 0

    return _run_analyze(engine, args)


def _run_analyze(engine, args) -> int:
    import json

    from confluencefx.candles import load_candles
    from confluencefx.engine import SignalRequest, to_payload
    from confluencefx.strategy.base import MissingMarketDataError
    from confluencefx.strategy.models import parse_candle_time

    now = None
    if args.now:
        now = parse_candle_time(args.now)
        if now is None:
            logger.error("--now is not an ISO-8601 timestamp: %s", args.now)
            return 2

    try:
        h1 = load_candles(args.h1)
        if not h1:
            logger.error("No H1 candles in %s", args.h1)
            return 2
        request = SignalRequest(
            symbol=args.symbol,
            candles_h1=tuple(h1),
            current_price=args.price if args.price is not None else h1[-1].close,
            now=now,
            candles_h4=tuple(load_candles(args.h4)) if args.h4 else None,
            candles_d1=tuple(load_candles(args.d1)) if args.d1 else None,
            spread_z=args.spread_z,
        )
        if args.entries:
            result = engine.analyze_entries(request)
        else:
            result = engine.recommend(request)
    except MissingMarketDataError as exc:
        logger.error("Insufficient market data: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid input: %s", exc)
        return 2
    print(json.dumps(to_payload(result), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(_run_cli())
