#!/usr/bin/env python3
"""Run benchmarks from the command line without starting the API server."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from backend.config import settings
from backend.connectors.registry import ConnectionRegistry
from backend.core.orchestrator import TestOrchestrator
from backend.core.progress_stream import encode_event
from backend.core.sequential_runner import SequentialRunner
from backend.models import (
    CompleteEvent,
    DatabaseType,
    ErrorEvent,
    OperationType,
    ProgressEvent,
    TestResult,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Benchmark write/read/update on Cassandra, MongoDB and CockroachDB."
    )
    parser.add_argument(
        "--database",
        choices=[db.value for db in DatabaseType],
        default=None,
        help="Run a single cell on this backend (requires --operation).",
    )
    parser.add_argument(
        "--operation",
        choices=[op.value for op in OperationType],
        default=None,
        help="Operation for a single cell run.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--all",
        action="store_true",
        help="Run the full matrix once (default when no cell is given).",
    )
    mode.add_argument(
        "--repeat",
        action="store_true",
        help="Run every cell repeatedly and report average/min/max.",
    )
    parser.add_argument(
        "--repeat-count",
        type=int,
        default=None,
        help=f"Iterations per cell in --repeat mode (default {settings.REPEAT_COUNT}).",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Print progress events while the matrix runs.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON instead of a table.",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        help="Logging level (DEBUG, INFO, WARNING, ...).",
    )
    return parser


def _format_result(result: TestResult) -> str:
    status = "OK" if result.data_integrity else "FAIL"
    line = (
        f"{result.database:<12} {result.operation:<7} "
        f"{result.time_taken:>12,.2f}ms {result.record_count:>8,} {status}"
    )
    if result.error:
        line += f"  ({result.error})"
    return line


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.progress:>3}%] {event.status:<9} {event.message}")


async def _run_single(orchestrator: TestOrchestrator, args: argparse.Namespace) -> int:
    result = await orchestrator.run(args.database, args.operation)
    if args.json:
        print(json.dumps(result.model_dump(mode="json", by_alias=True)))
    else:
        print(_format_result(result))
    return 0 if result.succeeded else 1


async def _run_matrix(runner: SequentialRunner, args: argparse.Namespace) -> int:
    if not args.stream:
        outcome = await runner.run_all()
        if args.json:
            print(json.dumps(outcome.model_dump(mode="json", by_alias=True)))
        else:
            for result in outcome.results:
                print(_format_result(result))
            summary = outcome.summary
            print(
                f"[benchmark] {summary.successful_tests}/{summary.total_tests} passed, "
                f"{summary.failed_tests} failed"
            )
        return 0 if outcome.summary.failed_tests == 0 else 1

    return await _consume(runner.stream_matrix(), args)


async def _run_repeated(runner: SequentialRunner, args: argparse.Namespace) -> int:
    return await _consume(runner.stream_repeated(), args)


async def _consume(events, args: argparse.Namespace) -> int:
    exit_code = 1
    async for event in events:
        if args.json:
            print(json.dumps(encode_event(event)))
            if isinstance(event, CompleteEvent):
                exit_code = 0
            continue
        if isinstance(event, ProgressEvent):
            if args.stream or args.repeat:
                _print_progress(event)
        elif isinstance(event, CompleteEvent):
            for result in event.results:
                if isinstance(result, TestResult):
                    print(_format_result(result))
                else:
                    print(
                        f"{result.database:<12} {result.operation:<7} "
                        f"avg={result.average:,.2f}ms min={result.min:,.2f}ms "
                        f"max={result.max:,.2f}ms"
                    )
            exit_code = 0
        elif isinstance(event, ErrorEvent):
            print(f"[benchmark] aborted: {event.error}", file=sys.stderr)
    return exit_code


async def _run_benchmark(args: argparse.Namespace) -> int:
    registry = ConnectionRegistry()
    orchestrator = TestOrchestrator(registry)
    runner = SequentialRunner(orchestrator, repeat_count=args.repeat_count)
    try:
        if args.database is not None:
            return await _run_single(orchestrator, args)
        if args.repeat:
            return await _run_repeated(runner, args)
        return await _run_matrix(runner, args)
    finally:
        await registry.close_all()


def _validate(args: argparse.Namespace) -> Optional[str]:
    if (args.database is None) != (args.operation is None):
        return "--database and --operation must be given together"
    if args.database is not None and (args.all or args.repeat):
        return "--database/--operation cannot be combined with --all or --repeat"
    if args.repeat_count is not None and args.repeat_count < 1:
        return "--repeat-count must be >= 1"
    return None


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    problem = _validate(args)
    if problem:
        parser.error(problem)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )
    logging.getLogger("cassandra").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    try:
        return asyncio.run(_run_benchmark(args))
    except KeyboardInterrupt:
        print("[benchmark] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
