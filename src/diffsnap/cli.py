"""Command line interface for diffsnap."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, NoReturn

from pydantic import ValidationError

from .engine import DiffSnapEngine
from .errors import DiffSnapError, ErrorCode
from .models import BranchSummary, CaptureRequest, WatchRequest
from .runtime import configure_logging

logger = logging.getLogger(__name__)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(2, f"{self.prog}: error: {message}\nRun 'diffsnap --help' for usage.\n")


def _print_branches(branches: list[dict[str, Any]]) -> None:
    for branch in branches:
        marker = "*" if branch.get("current") else "-"
        state = "obsolete" if branch.get("obsolete") else "current"
        print(
            f"{marker} {branch.get('name')} [{state}] "
            f"snapshots={branch.get('count')} latest={branch.get('latest') or 'n/a'}"
        )


def _print_payload(payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
        return

    status = payload.get("status", "unknown").upper()
    message = payload.get("message", "")
    print(f"[{status}] {message}")

    if payload.get("status") == "error":
        error_code = payload.get("error_code", "")
        suggestion = payload.get("suggestion", "")
        if error_code:
            print(f"error_code: {error_code}")
        if suggestion:
            print(f"suggestion: {suggestion}")
        return

    for key in (
        "outcome",
        "branch",
        "filename",
        "count",
        "current_branch",
        "output_dir",
        "max_snapshots",
        "schedule",
        "command",
    ):
        if key in payload and payload[key] not in ("", None):
            print(f"{key}: {payload[key]}")

    if "watched" in payload and "branches" in payload:
        details = payload.get("details") or {}
        if details.get("watch_state") == "unknown":
            print(f"watched: unknown ({details.get('scheduler_error', '')})")
        else:
            print(f"watched: {'yes' if payload['watched'] else 'no'}")

    if payload.get("evicted"):
        print(f"evicted: {', '.join(payload['evicted'])}")

    if "config" in payload and isinstance(payload["config"], dict):
        print("config:")
        for config_key, config_value in payload["config"].items():
            print(f"  {config_key}: {config_value}")

    if "key" in payload and "value" in payload:
        print(f"{payload['key']}: {payload.get('value')}")

    if "branches" in payload:
        _print_branches(payload["branches"])

    if payload.get("deleted"):
        for name in payload["deleted"]:
            print(f"deleted: {name}")
    elif payload.get("candidates"):
        _print_branches(payload["candidates"])


def _error_payload(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, DiffSnapError):
        return exc.to_payload()
    if isinstance(exc, ValidationError):
        errors: Any
        try:
            errors = exc.errors(include_context=False, include_input=False)
        except TypeError:
            errors = exc.errors()
        return {
            "status": "error",
            "error_code": ErrorCode.INVALID_INPUT.value,
            "message": "Input validation failed",
            "suggestion": "Check command arguments and constraints.",
            "details": {"errors": errors},
        }
    return {
        "status": "error",
        "error_code": ErrorCode.INTERNAL_ERROR.value,
        "message": str(exc),
        "suggestion": "Retry with DIFFSNAP_LOG_LEVEL=DEBUG for diagnostics.",
        "details": {},
    }


def _prompt_confirm(candidates: list[BranchSummary]) -> bool:
    print("Snapshots of the following branches will be deleted:", file=sys.stderr)
    for candidate in candidates:
        print(
            f"  {candidate.name}: {candidate.count} snapshot(s), "
            f"latest {candidate.latest or 'n/a'}",
            file=sys.stderr,
        )
    print("Proceed? [y/N] ", end="", file=sys.stderr, flush=True)
    answer = sys.stdin.readline()
    return answer.strip().lower() in {"y", "yes"}


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="diffsnap",
        description="Rotating per-branch snapshots of uncommitted git changes",
    )
    parser.add_argument("-d", "--directory", default=".", help="Repository directory")
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    subparsers = parser.add_subparsers(dest="command")

    def _add(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--json",
            action="store_true",
            default=argparse.SUPPRESS,
            help="Output machine-readable JSON",
        )
        return sub

    config = _add("config", "Get or set diffsnap config values")
    config.add_argument("key", nargs="?", help="Config key")
    config.add_argument("value", nargs="?", help="Config value to set")
    config.add_argument("--list", action="store_true", help="List all config values")

    run = _add("run", "Capture one snapshot of uncommitted changes")
    run.add_argument("-l", "--label", default=None, help="Label appended to the snapshot name")

    watch = _add("watch", "Capture snapshots on a recurring cron schedule")
    schedule = watch.add_mutually_exclusive_group()
    schedule.add_argument("-m", "--minutes", type=int, help="Interval in minutes (1-59)")
    schedule.add_argument("--cron", help="Full cron schedule expression, used verbatim")

    _add("unwatch", "Remove the recurring capture job")

    clean = _add("clean", "Delete snapshots of obsolete branches, or of one named branch")
    clean.add_argument("branch", nargs="?", help="Branch to remove regardless of its status")
    clean.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    _add("status", "Show stored branches and watch state")

    return parser


def _run_command(engine: DiffSnapEngine, args: argparse.Namespace) -> dict[str, Any]:
    if args.command == "config":
        if args.key and args.value is not None:
            return {
                "status": "success",
                "message": f"Config key '{args.key}' updated",
                "config": engine.set_config(args.key, args.value),
            }
        if args.key and not args.list:
            config = engine.get_config()
            if args.key not in config:
                raise DiffSnapError(
                    ErrorCode.INVALID_INPUT,
                    f"Unsupported config key '{args.key}'",
                    f"Use one of: {', '.join(config)}",
                )
            return {
                "status": "success",
                "message": "Config value retrieved",
                "key": args.key,
                "value": config[args.key],
            }
        return {"status": "success", "message": "Config listed", "config": engine.get_config()}

    if args.command == "run":
        return engine.capture(CaptureRequest(label=args.label)).model_dump(mode="json")

    if args.command == "watch":
        request = WatchRequest(minutes=args.minutes, cron=args.cron)
        return engine.watch(request).model_dump(mode="json")

    if args.command == "unwatch":
        return engine.unwatch().model_dump(mode="json")

    if args.command == "clean":
        if args.yes:
            confirm = lambda _candidates: True  # noqa: E731
        else:
            confirm = _prompt_confirm
        return engine.clean(confirm, branch=args.branch).model_dump(mode="json")

    return engine.get_status().model_dump(mode="json")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    as_json = bool(getattr(args, "json", False))

    try:
        engine = DiffSnapEngine.open(args.directory)
        configure_logging(engine.log_level)
        logger.debug("Running command %s in %s", args.command or "status", engine.repository.root)
        response = _run_command(engine, args)
        _print_payload(response, as_json=as_json)
        return 0
    except Exception as exc:  # noqa: BLE001
        payload = _error_payload(exc)
        _print_payload(payload, as_json=as_json)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
