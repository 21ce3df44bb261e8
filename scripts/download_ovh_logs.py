#!/usr/bin/env python3
"""Download daily access logs of an OVH web-hosting account for a date range."""

from __future__ import annotations

import argparse
import contextlib
import json
import os
import re
import sys
import time
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, TextIO

import requests
import yaml
from tqdm import tqdm

from ovh_log_naming import (
    PARTIAL_SUFFIX,
    archive_path,
    archive_url,
    partial_path,
    partial_url,
)

DEFAULT_TIMEOUT_SECONDS = 60
USER_ENV_VAR = "OVH_LOGS_USER"
PASSWORD_ENV_VAR = "OVH_LOGS_PASSWORD"
INFO_PREFIX = "[-]"
FAILURE_PREFIX = "[!]"


class LogFetchError(RuntimeError):
    """Base class for conditions that abort the whole run."""


class TransportError(LogFetchError):
    def __init__(self, url: str, exc: BaseException) -> None:
        super().__init__(f"Request to '{url}' failed: {format_exception_message(exc)}")
        self.url = url


class HttpStatusError(LogFetchError):
    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        status = f"{status_code} {reason or ''}".strip()
        super().__init__(f"Could not access URL '{url}' - '{status}'")
        self.url = url
        self.status_code = status_code


class OutputWriteError(LogFetchError):
    def __init__(self, path: Path, exc: BaseException) -> None:
        super().__init__(f"Could not write output file '{path}': {format_exception_message(exc)}")
        self.path = path


class PartialCleanupError(LogFetchError):
    pass


@dataclass
class DownloadStats:
    downloaded: int = 0
    skipped_existing: int = 0
    planned: int = 0
    partial_removed: int = 0
    partial_downloaded: int = 0
    bytes_written: int = 0


class TeeStream:
    def __init__(self, *streams: object) -> None:
        self.streams = streams

    def write(self, text: str) -> int:
        for stream in self.streams:
            stream.write(text)
        return len(text)

    def flush(self) -> None:
        for stream in self.streams:
            stream.flush()

    def isatty(self) -> bool:
        return any(getattr(stream, "isatty", lambda: False)() for stream in self.streams)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def local_today() -> date:
    return date.today()


def default_to_date(today: Optional[date] = None) -> date:
    # Wall-clock dependent: "yesterday" on this machine, not on the log server.
    return (today or local_today()) - timedelta(days=1)


def _log_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if value is None:
        return "null"
    text = str(value)
    if re.fullmatch(r"[A-Za-z0-9._:/+\-]+", text):
        return text
    return json.dumps(text, ensure_ascii=True)


def _format_event(prefix: str, event: str, fields: Dict[str, object]) -> str:
    parts = [prefix, event]
    for key, value in fields.items():
        parts.append(f"{key}={_log_value(value)}")
    return " ".join(parts)


def log_event(event: str, **fields: object) -> None:
    tqdm.write(_format_event(INFO_PREFIX, event, fields), file=sys.stdout)


def log_failure(event: str, **fields: object) -> None:
    tqdm.write(_format_event(FAILURE_PREFIX, event, fields), file=sys.stderr)


def format_exception_message(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return text
    rep = repr(exc).strip()
    if rep and rep != f"{type(exc).__name__}()":
        return rep
    return type(exc).__name__


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    raise ValueError(f"Cannot parse boolean from value '{value}'.")


def load_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise SystemExit(f"Config file not found: {path}")
    suffix = path.suffix.lower()
    raw = path.read_text(encoding="utf-8")
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(raw)
    elif suffix == ".json":
        data = json.loads(raw)
    else:
        raise SystemExit("Unsupported config file extension. Use .yaml/.yml or .json.")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SystemExit("Config root must be a mapping/object.")
    return data


def flatten_config(data: Dict[str, Any]) -> Dict[str, Any]:
    flattened: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            for nested_key, nested_value in value.items():
                flattened[f"{key}_{nested_key}"] = nested_value
        else:
            flattened[key] = value
    return flattened


def _coerce_config_date(value: object, key: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError as exc:
            raise SystemExit(f"Config key '{key}' must be YYYY-MM-DD.") from exc
    raise SystemExit(f"Config key '{key}' must be a date string (YYYY-MM-DD).")


def config_to_parser_defaults(config_data: Dict[str, Any]) -> Dict[str, Any]:
    cfg = flatten_config(config_data)
    defaults: Dict[str, Any] = {}
    scalar_map = {
        "output": "output",
        "download_output": "output",
        "user": "user",
        "credentials_user": "user",
        "password": "password",
        "credentials_password": "password",
        "url_user": "url_user",
        "site_url_user": "url_user",
        "url_cluster": "url_cluster",
        "site_url_cluster": "url_cluster",
        "logs_dir": "logs_dir",
        "logging_logs_dir": "logs_dir",
    }
    bool_map = {
        "partial": "partial",
        "download_partial": "partial",
        "dry_run": "dry_run",
        "download_dry_run": "dry_run",
        "progress": "progress",
        "logging_progress": "progress",
    }
    date_map = {
        "from": "from_date",
        "from_date": "from_date",
        "download_from": "from_date",
        "to": "to_date",
        "to_date": "to_date",
        "download_to": "to_date",
    }

    for source_key, target_key in scalar_map.items():
        if source_key in cfg and cfg[source_key] is not None:
            defaults[target_key] = str(cfg[source_key])
    for source_key, target_key in bool_map.items():
        if source_key in cfg:
            try:
                defaults[target_key] = _parse_bool(cfg[source_key])
            except ValueError as exc:
                raise SystemExit(f"Config key '{source_key}': {exc}") from exc
    for source_key, target_key in date_map.items():
        if source_key in cfg:
            defaults[target_key] = _coerce_config_date(cfg[source_key], source_key)
    for source_key in ("timeout_seconds", "network_timeout_seconds"):
        if source_key in cfg:
            try:
                defaults["timeout_seconds"] = float(cfg[source_key])
            except (TypeError, ValueError) as exc:
                raise SystemExit(f"Config key '{source_key}' must be a number.") from exc
    return defaults


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}'. Use YYYY-MM-DD.") from exc


def iter_days(from_date: date, to_date: date) -> Iterator[date]:
    day = from_date
    while day <= to_date:
        yield day
        day += timedelta(days=1)


def count_days(from_date: date, to_date: date) -> int:
    return max(0, (to_date - from_date).days + 1)


class OvhLogsClient:
    """Basic-auth GET client. One session is reused for the whole run."""

    def __init__(
        self,
        user: str,
        password: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.session = session if session is not None else requests.Session()
        self.session.auth = (user, password)

    def fetch(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            raise TransportError(url, exc) from exc
        try:
            if not 200 <= response.status_code < 300:
                raise HttpStatusError(url, response.status_code, response.reason)
            return response.content
        finally:
            response.close()

    def close(self) -> None:
        self.session.close()


def write_output(path: Path, content: bytes) -> int:
    tmp_path = path.with_name(path.name + ".part")
    try:
        tmp_path.write_bytes(content)
        os.replace(tmp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise OutputWriteError(path, exc) from exc
    return len(content)


def fetch_archives(
    client: OvhLogsClient,
    output: Path,
    from_date: date,
    to_date: date,
    url_user: str,
    url_cluster: str,
    stats: DownloadStats,
    *,
    dry_run: bool = False,
    progress: Optional[bool] = None,
    progress_file: Optional[TextIO] = None,
) -> None:
    """Fetch every missing full-day archive between the two dates (inclusive).

    Days whose archive already exists locally are skipped without any request.
    The first failing request aborts the loop by propagating its exception.
    """
    days = tqdm(
        iter_days(from_date, to_date),
        total=count_days(from_date, to_date),
        desc="Days",
        unit="day",
        disable=None if progress is None else not progress,
        file=progress_file,
    )
    for day in days:
        path = archive_path(output, day, url_user, url_cluster)
        if path.exists():
            log_event("SKIP_EXISTING", day=day.isoformat(), path=path)
            stats.skipped_existing += 1
            continue

        url = archive_url(day, url_user, url_cluster)
        if dry_run:
            log_event("PLAN_FETCH", day=day.isoformat(), url=url, path=path)
            stats.planned += 1
            continue

        log_event("FETCH", day=day.isoformat(), path=path)
        content = client.fetch(url)
        stats.bytes_written += write_output(path, content)
        stats.downloaded += 1


def select_partial_logs(entries: Iterable[Path]) -> List[Path]:
    # Only the last extension counts: "x.log.gz" ends in ".gz" and is kept.
    return [entry for entry in sorted(entries) if entry.suffix == PARTIAL_SUFFIX]


def clean_partial_logs(output: Path, *, dry_run: bool = False) -> int:
    try:
        entries = list(output.iterdir())
    except OSError as exc:
        raise PartialCleanupError(
            f"Could not list output directory '{output}': {format_exception_message(exc)}"
        ) from exc

    removed = 0
    for path in select_partial_logs(entries):
        if dry_run:
            log_event("PLAN_REMOVE_PARTIAL", path=path)
            continue
        log_event("REMOVE_PARTIAL", path=path)
        try:
            path.unlink()
        except OSError as exc:
            raise PartialCleanupError(
                f"Could not remove file '{path}': {format_exception_message(exc)}"
            ) from exc
        removed += 1
    return removed


def fetch_partial(
    client: OvhLogsClient,
    output: Path,
    today: date,
    url_user: str,
    url_cluster: str,
    stats: DownloadStats,
    *,
    dry_run: bool = False,
) -> None:
    stats.partial_removed += clean_partial_logs(output, dry_run=dry_run)

    path = partial_path(output, today, url_user, url_cluster)
    url = partial_url(today, url_user, url_cluster)
    if dry_run:
        log_event("PLAN_FETCH_PARTIAL", day=today.isoformat(), url=url, path=path)
        return

    log_event("FETCH_PARTIAL", day=today.isoformat(), path=path)
    content = client.fetch(url)
    stats.bytes_written += write_output(path, content)
    stats.partial_downloaded += 1


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", help="Path to YAML/JSON config file.")
    pre_args, _ = pre_parser.parse_known_args(argv)
    config_defaults: Dict[str, Any] = {}
    if pre_args.config:
        config_defaults = config_to_parser_defaults(load_config_file(Path(pre_args.config)))

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", help="Path to YAML/JSON config file.")
    parser.add_argument(
        "-f",
        "--from",
        dest="from_date",
        type=parse_date,
        required="from_date" not in config_defaults,
        help="Earliest date to get logs from (YYYY-MM-DD). Logs at this date must exist.",
    )
    parser.add_argument(
        "-t",
        "--to",
        dest="to_date",
        type=parse_date,
        default=None,
        help="Latest date to get logs from, inclusive (YYYY-MM-DD). Defaults to yesterday.",
    )
    parser.add_argument(
        "-P",
        "--partial",
        action="store_true",
        help=(
            "Also get today's partial log. Erases every '*.log' file from the output "
            "folder before fetching it."
        ),
    )
    parser.add_argument(
        "-o",
        "--output",
        required="output" not in config_defaults,
        help=(
            "Existing folder to store logs in. It should only hold files managed by this "
            "tool, since unknown '.log' files are removed by --partial."
        ),
    )
    parser.add_argument("-u", "--user", help=f"Basic auth username. Falls back to {USER_ENV_VAR}.")
    parser.add_argument("-p", "--password", help=f"Basic auth password. Falls back to {PASSWORD_ENV_VAR}.")
    parser.add_argument(
        "-U",
        "--url-user",
        required="url_user" not in config_defaults,
        help="Account name used in the log URLs and filenames.",
    )
    parser.add_argument(
        "-C",
        "--url-cluster",
        required="url_cluster" not in config_defaults,
        help="Cluster name used in the log URLs and filenames.",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="HTTP timeout in seconds.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Show planned downloads without downloading files.")
    parser.add_argument(
        "--logs-dir",
        default=None,
        help="Directory where per-run logs and summaries are written. Disabled when omitted.",
    )
    parser.add_argument(
        "--progress",
        dest="progress",
        action="store_true",
        default=None,
        help="Always show the progress bar (default: only on a terminal).",
    )
    parser.add_argument(
        "--no-progress",
        dest="progress",
        action="store_false",
        help="Never show the progress bar.",
    )

    if config_defaults:
        parser.set_defaults(**config_defaults)

    return parser.parse_args(argv)


def resolve_run_options(args: argparse.Namespace, today: date) -> None:
    args.user = args.user or os.getenv(USER_ENV_VAR)
    args.password = args.password or os.getenv(PASSWORD_ENV_VAR)
    if not args.user or not args.password:
        raise SystemExit(
            f"Missing credentials. Set --user/--password or env vars {USER_ENV_VAR}, {PASSWORD_ENV_VAR}."
        )
    if args.to_date is None:
        args.to_date = default_to_date(today)
    if args.timeout_seconds <= 0:
        raise SystemExit("--timeout-seconds must be greater than 0.")
    args.output = Path(args.output)
    if not args.output.is_dir():
        raise SystemExit(f"Output directory not found: {args.output}")


def build_summary(
    args: argparse.Namespace,
    stats: DownloadStats,
    status: str,
    started_at: str,
    elapsed_seconds: float,
    error: Optional[str],
) -> Dict[str, Any]:
    return {
        "status": status,
        "started_at": started_at,
        "finished_at": utc_now_iso(),
        "elapsed_seconds": round(elapsed_seconds, 3),
        "from_date": args.from_date.isoformat(),
        "to_date": args.to_date.isoformat(),
        "partial": args.partial,
        "dry_run": args.dry_run,
        "output": str(args.output),
        "url_user": args.url_user,
        "url_cluster": args.url_cluster,
        "stats": asdict(stats),
        "error": error,
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    today = local_today()
    resolve_run_options(args, today)

    run_started_at = utc_now_iso()
    run_started_monotonic = time.monotonic()
    original_stdout = sys.stdout
    original_stderr = sys.stderr
    run_dir: Optional[Path] = None
    run_log_handle: Optional[TextIO] = None
    if args.logs_dir:
        run_dir = Path(args.logs_dir) / datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir.mkdir(parents=True, exist_ok=True)
        run_log_handle = open(run_dir / "run.log", "a", encoding="utf-8")
        sys.stdout = TeeStream(original_stdout, run_log_handle)
        sys.stderr = TeeStream(original_stderr, run_log_handle)

    stats = DownloadStats()
    # Anything that escapes before RUN_DONE leaves the run marked failed.
    status = "failed"
    fatal_error: Optional[str] = None
    client = OvhLogsClient(args.user, args.password, timeout_seconds=args.timeout_seconds)
    try:
        if run_dir is not None:
            log_event("RUN_PATHS", run_dir=run_dir, run_log=run_dir / "run.log")
        if args.config:
            log_event("RUN_CONFIG", config=args.config)
        log_event(
            "RUN_START",
            from_date=args.from_date.isoformat(),
            to_date=args.to_date.isoformat(),
            output=args.output,
            partial=args.partial,
            dry_run=args.dry_run,
        )
        if args.from_date > args.to_date:
            log_event("RANGE_EMPTY", from_date=args.from_date.isoformat(), to_date=args.to_date.isoformat())

        fetch_archives(
            client,
            args.output,
            args.from_date,
            args.to_date,
            args.url_user,
            args.url_cluster,
            stats,
            dry_run=args.dry_run,
            progress=args.progress,
            progress_file=original_stderr,
        )
        if args.partial:
            fetch_partial(
                client,
                args.output,
                today,
                args.url_user,
                args.url_cluster,
                stats,
                dry_run=args.dry_run,
            )
        log_event("RUN_DONE", **asdict(stats))
        status = "completed"
    except LogFetchError as exc:
        fatal_error = str(exc)
        log_failure("FATAL", error=fatal_error)
    except Exception as exc:  # noqa: BLE001
        fatal_error = f"{type(exc).__name__}: {format_exception_message(exc)}"
        log_failure("FATAL", error=fatal_error)
    except KeyboardInterrupt:
        fatal_error = "KeyboardInterrupt"
        log_failure("INTERRUPTED")
        raise
    finally:
        client.close()
        if run_dir is not None:
            summary = build_summary(
                args,
                stats,
                status,
                run_started_at,
                time.monotonic() - run_started_monotonic,
                fatal_error,
            )
            (run_dir / "summary.json").write_text(json.dumps(summary, indent=2), encoding="utf-8")
        sys.stdout = original_stdout
        sys.stderr = original_stderr
        if run_log_handle is not None:
            run_log_handle.close()

    return 0 if status == "completed" else 1


if __name__ == "__main__":
    raise SystemExit(main())
