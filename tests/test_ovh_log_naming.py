from datetime import date, timedelta
from pathlib import Path

from ovh_log_naming import (
    archive_path,
    archive_url,
    build_filename,
    format_local_date,
    format_remote_date,
    format_remote_month,
    parse_archive_date,
    partial_path,
    partial_url,
)


def test_date_formats():
    day = date(2023, 5, 7)
    assert format_remote_date(day) == "07-05-2023"
    assert format_remote_month(day) == "05-2023"
    assert format_local_date(day) == "2023-05-07"


def test_archive_url():
    url = archive_url(date(2023, 5, 7), "foo", "bar")
    assert url == (
        "https://logs.bar.hosting.ovh.net/foo.bar.hosting.ovh.net/"
        "logs/logs-05-2023/foo.bar.hosting.ovh.net-07-05-2023.log.gz"
    )


def test_partial_url():
    url = partial_url(date(2023, 5, 7), "foo", "bar")
    assert url == (
        "https://logs.bar.hosting.ovh.net/foo.bar.hosting.ovh.net/"
        "osl/foo.bar.hosting.ovh.net-07-05-2023.log"
    )


def test_build_filename():
    assert build_filename(date(2023, 5, 7), "foo", "bar") == "foo.bar.hosting.ovh.net-2023-05-07"


def test_filenames_sort_chronologically():
    start = date(2022, 12, 25)
    days = [start + timedelta(days=offset) for offset in range(400)]
    names = [build_filename(day, "foo", "bar") for day in days]
    assert names == sorted(names)
    # Remote format would not sort across month/year boundaries.
    assert build_filename(date(2023, 1, 9), "a", "b") < build_filename(date(2023, 10, 1), "a", "b")


def test_local_paths():
    out = Path("/srv/logs")
    day = date(2023, 1, 2)
    assert archive_path(out, day, "foo", "bar") == out / "foo.bar.hosting.ovh.net-2023-01-02.log.gz"
    assert partial_path(out, day, "foo", "bar") == out / "foo.bar.hosting.ovh.net-2023-01-02.log"


def test_parse_archive_date():
    assert parse_archive_date("foo.bar.hosting.ovh.net-2023-01-02.log.gz", "foo", "bar") == date(2023, 1, 2)
    assert parse_archive_date("foo.bar.hosting.ovh.net-2023-01-02.log", "foo", "bar") is None
    assert parse_archive_date("other.bar.hosting.ovh.net-2023-01-02.log.gz", "foo", "bar") is None
    assert parse_archive_date("foo.bar.hosting.ovh.net-garbage.log.gz", "foo", "bar") is None
