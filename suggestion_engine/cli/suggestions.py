"""Command-line interface for the suggestion engine.

Usage::

    python -m suggestion_engine.cli worker
    python -m suggestion_engine.cli suggest 367520 [--json]
    python -m suggestion_engine.cli enqueue 367520 [--retry]
    python -m suggestion_engine.cli generate-missing [--limit 50] [--run]

``suggest`` computes and prints without touching the database.  The other
commands use the same SQLite file as the API server, so a standalone
``worker`` can process jobs enqueued over HTTP.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from suggestion_engine.utils.errors import SuggestionEngineError
from suggestion_engine.utils.logging import configure_logging


def _components() -> tuple[dict[str, Any], dict[str, Any]]:
    # Deferred: importing main builds settings and the app object.
    from suggestion_engine.main import build_components, config, settings

    return build_components(settings, config), config


async def _close(components: dict[str, Any]) -> None:
    await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_suggest(args: argparse.Namespace) -> int:
    components, _ = _components()
    engine = components["engine"]
    try:
        source, ranked = await engine.rank(args.appid)
    finally:
        await _close(components)

    from suggestion_engine.services.fuser import build_reason

    rows = [
        {
            "targetId": c.target_id,
            "title": c.title,
            "score": round(c.best_score, 4),
            "sources": c.sources,
            "reason": build_reason(c),
        }
        for c in ranked
    ]
    if args.json:
        print(json.dumps({"appid": source.appid, "title": source.title, "suggestions": rows}, indent=2))
        return 0

    print(f"Suggestions for {source.title} ({source.appid})")
    print("=" * 60)
    if not rows:
        print("  (none)")
    for i, row in enumerate(rows, start=1):
        print(f"{i:>3}. {row['title'] or row['targetId']:<40} {row['score']:.3f}  [{', '.join(row['sources'])}]")
        print(f"     {row['reason']}")
    return 0


async def _handle_enqueue(args: argparse.Namespace) -> int:
    from suggestion_engine.main import initialize_stores

    components, cfg = _components()
    try:
        await initialize_stores(components, cfg)
        result = await components["scheduler"].enqueue(args.appid, retry=args.retry)
    finally:
        await _close(components)

    print(
        json.dumps(
            {
                "jobId": result.job.id if result.job else None,
                "status": result.status.value,
                "created": result.created,
                "alreadyFresh": result.already_fresh,
            }
        )
    )
    return 0


async def _handle_generate_missing(args: argparse.Namespace) -> int:
    from suggestion_engine.main import initialize_stores

    components, cfg = _components()
    scheduler = components["scheduler"]
    try:
        await initialize_stores(components, cfg)
        enqueued = await scheduler.generate_missing(limit=args.limit)
        print(f"Enqueued {len(enqueued)} games")
        if args.run and enqueued:
            ran = await scheduler.run_until_idle()
            print(f"Ran {ran} jobs")
    finally:
        await _close(components)
    return 0


async def _handle_worker(args: argparse.Namespace) -> int:
    from suggestion_engine.main import initialize_stores

    components, cfg = _components()
    scheduler = components["scheduler"]
    try:
        await initialize_stores(components, cfg)
        await scheduler.run_forever()
    finally:
        await scheduler.stop()
        await _close(components)
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m suggestion_engine.cli",
        description="Compute and schedule game suggestions.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("worker", help="Run the job worker loop (no HTTP server)")

    suggest_parser = subparsers.add_parser(
        "suggest", help="Compute suggestions for one game and print them (not persisted)"
    )
    suggest_parser.add_argument("appid", type=int, help="Source game appid")
    suggest_parser.add_argument("--json", action="store_true", help="Print JSON")

    enqueue_parser = subparsers.add_parser("enqueue", help="Enqueue a generation job")
    enqueue_parser.add_argument("appid", type=int, help="Source game appid")
    enqueue_parser.add_argument(
        "--retry", action="store_true", help="Requeue even if the job already finished"
    )

    missing_parser = subparsers.add_parser(
        "generate-missing", help="Enqueue jobs for catalog games with no suggestions"
    )
    missing_parser.add_argument("--limit", type=int, default=None, help="Max games to enqueue")
    missing_parser.add_argument(
        "--run", action="store_true", help="Run the enqueued jobs inline before exiting"
    )

    return parser


_HANDLERS = {
    "worker": _handle_worker,
    "suggest": _handle_suggest,
    "enqueue": _handle_enqueue,
    "generate-missing": _handle_generate_missing,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    from suggestion_engine.config.settings import Settings

    # Logs go to stderr so --json output on stdout stays machine-readable.
    configure_logging(
        log_level=args.log_level or Settings().log_level,
        stream=sys.stderr,
    )

    try:
        return asyncio.run(_HANDLERS[args.command](args))
    except KeyboardInterrupt:
        return 130
    except SuggestionEngineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
