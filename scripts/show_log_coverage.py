#!/usr/bin/env python3
"""Show which days of a range have a downloaded OVH log archive."""

from __future__ import annotations

import argparse
import json
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from download_ovh_logs import default_to_date, iter_days, parse_date
from ovh_log_naming import archive_path, parse_archive_date


def find_archive_dates(output: Path, url_user: str, url_cluster: str) -> List[date]:
    found = []
    for path in output.iterdir():
        day = parse_archive_date(path.name, url_user, url_cluster)
        if day is not None and path.is_file():
            found.append(day)
    return sorted(found)


def _build_payload(
    output: Path,
    url_user: str,
    url_cluster: str,
    from_date: date,
    to_date: date,
) -> Dict[str, object]:
    rows = []
    missing = []
    for day in iter_days(from_date, to_date):
        present = archive_path(output, day, url_user, url_cluster).is_file()
        rows.append({"day": day.isoformat(), "present": present})
        if not present:
            missing.append(day.isoformat())

    return {
        "output": str(output),
        "from_date": from_date.isoformat(),
        "to_date": to_date.isoformat(),
        "day_count": len(rows),
        "present_count": len(rows) - len(missing),
        "missing": missing,
        "days": rows,
    }


def _print_text(payload: Dict[str, object]) -> None:
    print(f"Output directory: {payload['output']}")
    print(f"Range: {payload['from_date']} .. {payload['to_date']}")
    print("day\tstatus")
    for row in payload["days"]:  # type: ignore[attr-defined]
        print(f"{row['day']}\t{'present' if row['present'] else 'missing'}")
    print("")
    print(f"Present: {payload['present_count']}/{payload['day_count']}")
    missing: List[str] = payload["missing"]  # type: ignore[assignment]
    if missing:
        print(f"Missing: {', '.join(missing)}")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-o", "--output", required=True, help="Folder holding the downloaded logs.")
    parser.add_argument("-U", "--url-user", required=True, help="Account name used in the log filenames.")
    parser.add_argument("-C", "--url-cluster", required=True, help="Cluster name used in the log filenames.")
    parser.add_argument(
        "-f",
        "--from",
        dest="from_date",
        type=parse_date,
        help="First day to check (YYYY-MM-DD). Defaults to the oldest archive found.",
    )
    parser.add_argument(
        "-t",
        "--to",
        dest="to_date",
        type=parse_date,
        help="Last day to check, inclusive (YYYY-MM-DD). Defaults to yesterday.",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text output.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    output = Path(args.output)
    if not output.is_dir():
        raise SystemExit(f"Output directory not found: {output}")

    from_date = args.from_date
    if from_date is None:
        found = find_archive_dates(output, args.url_user, args.url_cluster)
        if not found:
            raise SystemExit("No log archives found. Pass --from to choose the first day.")
        from_date = found[0]
    to_date = args.to_date or default_to_date()
    if from_date > to_date:
        raise SystemExit("--from must be on or before --to.")

    payload = _build_payload(output, args.url_user, args.url_cluster, from_date, to_date)
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        _print_text(payload)


if __name__ == "__main__":
    main()
