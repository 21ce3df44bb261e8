import json
from datetime import date

import pytest

import show_log_coverage


def _touch(directory, name):
    (directory / name).write_bytes(b"")


def test_find_archive_dates_ignores_other_files(tmp_path):
    _touch(tmp_path, "foo.bar.hosting.ovh.net-2023-01-03.log.gz")
    _touch(tmp_path, "foo.bar.hosting.ovh.net-2023-01-01.log.gz")
    _touch(tmp_path, "foo.bar.hosting.ovh.net-2023-01-04.log")
    _touch(tmp_path, "baz.bar.hosting.ovh.net-2022-12-01.log.gz")

    assert show_log_coverage.find_archive_dates(tmp_path, "foo", "bar") == [date(2023, 1, 1), date(2023, 1, 3)]


def test_json_report_lists_missing_days(tmp_path, capsys):
    _touch(tmp_path, "foo.bar.hosting.ovh.net-2023-01-01.log.gz")
    _touch(tmp_path, "foo.bar.hosting.ovh.net-2023-01-03.log.gz")

    show_log_coverage.main(
        ["-o", str(tmp_path), "-U", "foo", "-C", "bar", "--to", "2023-01-04", "--json"]
    )

    payload = json.loads(capsys.readouterr().out)
    assert payload["from_date"] == "2023-01-01"
    assert payload["day_count"] == 4
    assert payload["present_count"] == 2
    assert payload["missing"] == ["2023-01-02", "2023-01-04"]


def test_text_report(tmp_path, capsys):
    _touch(tmp_path, "foo.bar.hosting.ovh.net-2023-01-01.log.gz")

    show_log_coverage.main(
        ["-o", str(tmp_path), "-U", "foo", "-C", "bar", "--from", "2023-01-01", "--to", "2023-01-02"]
    )

    out = capsys.readouterr().out
    assert "2023-01-01\tpresent" in out
    assert "2023-01-02\tmissing" in out
    assert "Present: 1/2" in out


def test_requires_start_when_directory_is_empty(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        show_log_coverage.main(["-o", str(tmp_path), "-U", "foo", "-C", "bar", "--to", "2023-01-02"])
    assert "No log archives found" in str(excinfo.value)
