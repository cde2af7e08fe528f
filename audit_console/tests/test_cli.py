"""Tests for the command-line entry point."""

import json

import pytest

from audit_console import cli
from audit_console.utils.errors import TransportError


@pytest.fixture(autouse=True)
def patched_gateway(monkeypatch, mock_gateway):
    monkeypatch.setattr(cli, "Gateway", lambda config: mock_gateway)
    return mock_gateway


def test_reports(capsys):
    assert cli.main(["reports"]) == 0

    out = capsys.readouterr().out
    assert "rep-a" in out
    assert "Total: 2 reports" in out


def test_issues_json(capsys):
    assert cli.main(["--json", "issues", "rep-a"]) == 0

    issues = json.loads(capsys.readouterr().out)
    assert [issue["rowId"] for issue in issues] == ["3", "3", "7", "10", "12", "20", "n/a"]


def test_indicators(capsys):
    assert cli.main(["indicators", "rep-a"]) == 0

    out = capsys.readouterr().out
    assert "[ERROR] Missing column: email" in out
    assert "9 alerts" in out


def test_compare(capsys):
    assert cli.main(["compare", "rep-a", "rep-b"]) == 0

    assert "Delta:    -3" in capsys.readouterr().out


def test_compare_same_report_fails(capsys):
    assert cli.main(["compare", "rep-a", "rep-a"]) == 1

    assert "Choose two different reports to compare." in capsys.readouterr().err


def test_download_writes_raw_bytes(tmp_path, capsys):
    target = tmp_path / "out" / "report.json"

    assert cli.main(["download", "rep-a", "--output", str(target)]) == 0

    assert target.read_bytes() == b'{"id": "rep-a"}'


def test_gateway_failure_reported(patched_gateway, capsys):
    patched_gateway.list_reports.side_effect = TransportError("connection refused")

    assert cli.main(["reports"]) == 1

    assert "Unable to load reports: connection refused" in capsys.readouterr().err
