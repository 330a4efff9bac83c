"""Run single-shot polling cycles from the command line."""

from __future__ import annotations

import argparse
import asyncio
import os
import typing as typ
from pathlib import Path

from buildwatch.events.sink import RecordingEventSink
from buildwatch.monitor.errors import MastersConfigError, UnknownMasterError
from buildwatch.monitor.factory import build_service
from buildwatch.travis.errors import TravisConfigError

if typ.TYPE_CHECKING:
    from buildwatch.monitor.cycle import CycleResult
    from buildwatch.monitor.factory import MonitorService


def _print_result(result: CycleResult) -> None:
    if result.error is not None:
        print(f"{result.master}: cycle failed: {result.error}")
        return
    print(
        f"{result.master}: {len(result.changes)} changed / "
        f"{len(result.failures)} failed "
        f"(started {result.started_at.isoformat()})"
    )
    for change in result.changes:
        extra = f" backfilled={list(change.backfilled)}" if change.backfilled else ""
        print(
            f"  {change.kind} {change.current.slug} "
            f"#{change.current.last_build_number} "
            f"{change.current.last_build_state}{extra}"
        )
    for failure in result.failures:
        print(f"  failed {failure.slug}: {failure.category} {failure.message}")
    if result.resync_error is not None:
        print(f"  repository resync failed: {result.resync_error}")


def _print_recorded(recorder: RecordingEventSink) -> None:
    for event in recorder.events:
        print(
            f"  event {event.project} #{event.build.number} "
            f"{event.build.result} {event.build.url}"
        )
    recorder.events.clear()


async def _run(
    service: MonitorService,
    masters: list[str],
    *,
    sweep_ttl: bool,
    recorder: RecordingEventSink | None = None,
) -> int:
    exit_code = 0
    try:
        await service.prepare()
        for master in masters:
            if sweep_ttl:
                migrated = await service.monitor.sweep_ttls(master)
                print(f"{master}: migrated {migrated} cache record(s) without TTL")
            result = await service.monitor.run_cycle(master)
            _print_result(result)
            if recorder is not None:
                _print_recorded(recorder)
            if not result.succeeded:
                exit_code = 1
    finally:
        await service.aclose()
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """Poll the configured masters once and print what changed.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when configuration is invalid or a
        cycle could not list repositories.

    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("masters", type=Path, help="YAML masters file")
    parser.add_argument(
        "--database-url",
        default=os.environ.get("BUILDWATCH_DATABASE_URL"),
        help="SQLAlchemy URL of the build cache (default: BUILDWATCH_DATABASE_URL)",
    )
    parser.add_argument(
        "--master",
        action="append",
        default=None,
        help="Master to poll; repeat for several (default: all)",
    )
    parser.add_argument(
        "--sweep-ttl",
        action="store_true",
        help="Give legacy cache records a TTL before polling",
    )
    parser.add_argument(
        "--print-events",
        action="store_true",
        help="Print events instead of posting them; the cache is still updated",
    )
    args = parser.parse_args(argv)

    if not args.database_url:
        parser.error("--database-url or BUILDWATCH_DATABASE_URL is required")

    recorder = RecordingEventSink() if args.print_events else None
    try:
        service = build_service(args.database_url, args.masters, sink=recorder)
    except MastersConfigError as exc:
        print(f"Masters configuration {args.masters} is invalid:")
        for issue in exc.issues:
            print(f"  - {issue}")
        return 1
    except TravisConfigError as exc:
        print(f"Travis configuration is invalid: {exc}")
        return 1
    except ValueError as exc:
        print(f"Monitor configuration is invalid: {exc}")
        return 1

    masters = args.master or list(service.monitor.masters)
    unknown = [m for m in masters if m not in service.monitor.masters]
    if unknown:
        asyncio.run(service.aclose())
        print(UnknownMasterError(unknown[0]))
        return 1

    return asyncio.run(
        _run(service, masters, sweep_ttl=args.sweep_ttl, recorder=recorder)
    )


if __name__ == "__main__":
    raise SystemExit(main())
