#!/usr/bin/env python3
"""URL and filename conventions for OVH web-hosting access logs."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Optional

HOSTING_DOMAIN = "hosting.ovh.net"
ARCHIVE_SUFFIX = ".log.gz"
PARTIAL_SUFFIX = ".log"


def format_remote_date(day: date) -> str:
    return day.strftime("%d-%m-%Y")


def format_remote_month(day: date) -> str:
    return day.strftime("%m-%Y")


def format_local_date(day: date) -> str:
    # Year first so directory listings sort chronologically.
    return day.strftime("%Y-%m-%d")


def site_host(account: str, cluster: str) -> str:
    return f"{account}.{cluster}.{HOSTING_DOMAIN}"


def logs_base_url(account: str, cluster: str) -> str:
    return f"https://logs.{cluster}.{HOSTING_DOMAIN}/{site_host(account, cluster)}"


def archive_url(day: date, account: str, cluster: str) -> str:
    """URL of the compressed log of a finished day."""
    host = site_host(account, cluster)
    return (
        f"{logs_base_url(account, cluster)}/logs/logs-{format_remote_month(day)}/"
        f"{host}-{format_remote_date(day)}{ARCHIVE_SUFFIX}"
    )


def partial_url(day: date, account: str, cluster: str) -> str:
    """URL of the in-progress log. The provider only serves it for the current day."""
    host = site_host(account, cluster)
    return f"{logs_base_url(account, cluster)}/osl/{host}-{format_remote_date(day)}{PARTIAL_SUFFIX}"


def build_filename(day: date, account: str, cluster: str) -> str:
    return f"{site_host(account, cluster)}-{format_local_date(day)}"


def archive_path(output: Path, day: date, account: str, cluster: str) -> Path:
    return output / (build_filename(day, account, cluster) + ARCHIVE_SUFFIX)


def partial_path(output: Path, day: date, account: str, cluster: str) -> Path:
    return output / (build_filename(day, account, cluster) + PARTIAL_SUFFIX)


def parse_archive_date(name: str, account: str, cluster: str) -> Optional[date]:
    prefix = f"{site_host(account, cluster)}-"
    if not name.startswith(prefix) or not name.endswith(ARCHIVE_SUFFIX):
        return None
    raw = name[len(prefix) : -len(ARCHIVE_SUFFIX)]
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None
