#!/usr/bin/env python3
"""Main entry point for the debate arena."""

import asyncio
import json
import logging
import os
import sys

from config.settings import AppConfig, get_default_config
from debate_engine.core import ArenaEngine
from debate_engine.models import SweepSummary

SWEEPS = ("expired", "ai-tasks", "tournaments", "verdicts")


def setup_logging(config: AppConfig | None = None):
    """Configure logging for the server and the command line sweeps."""
    level = config.system.log_level if config else "INFO"
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress noisy third-party loggers
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""

    print("Debate Arena")
    print("=" * 40)
    print("Available entry points:")
    print()
    print("Web server (API + scheduler routes):")
    print("   python main.py --web")
    print()
    print("One-off scheduler sweeps:")
    print(f"   python main.py sweep <{'|'.join(SWEEPS)}>")
    print()
    print("Seed the judge personas:")
    print("   python main.py seed-judges")
    print()


def start_web_server():
    """Start the FastAPI web server."""

    setup_logging(get_default_config())

    import uvicorn

    from web.api import app

    port = int(os.environ.get("PORT", 8000))

    print("Starting Debate Arena web server...")
    print(f"API Documentation: http://localhost:{port}/docs")

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info", access_log=True)


async def run_sweep(engine: ArenaEngine, name: str) -> SweepSummary:
    """Run one sweep and wait for the background work it queued."""
    try:
        if name == "expired":
            summary = engine.sweep_expired()
        elif name == "ai-tasks":
            summary = await engine.sweep_ai_tasks()
        elif name == "tournaments":
            summary = engine.sweep_tournaments()
        else:
            summary = engine.sweep_verdicts()
        return summary
    finally:
        await engine.close()


def main():
    """Main entry point."""
    args = sys.argv[1:]

    # Check for production environment (Railway, Docker, Heroku, etc.)
    is_production = any([
        "RAILWAY_ENVIRONMENT" in os.environ,
        "DYNO" in os.environ,  # Heroku
        os.environ.get("ENVIRONMENT") == "production"
    ])

    if "--web" in args or (not args and is_production):
        start_web_server()
        return

    if args[:1] == ["sweep"] and len(args) == 2 and args[1] in SWEEPS:
        config = get_default_config()
        setup_logging(config)
        summary = asyncio.run(run_sweep(ArenaEngine(config), args[1]))
        print(json.dumps(summary.to_dict(), indent=2))
        sys.exit(1 if summary.errors else 0)

    if args == ["seed-judges"]:
        config = get_default_config()
        setup_logging(config)
        created = ArenaEngine(config).seed_judges()
        print(f"Seeded {created} judges")
        return

    print_usage()
    if args and args[0] not in ("--help", "-h"):
        sys.exit(2)


if __name__ == "__main__":
    main()
