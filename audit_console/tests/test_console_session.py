"""Tests for the console session controller with a mocked gateway."""

from unittest.mock import Mock

import pytest

from audit_console.config.settings import SessionConfig
from audit_console.services.console_session import ConsoleSession, SessionRegistry
from audit_console.utils.errors import IndexOutOfRange, NotFound, TransportError


@pytest.fixture
def session(mock_gateway):
    return ConsoleSession(mock_gateway, SessionConfig(default_dataset_name="fresh"))


def test_new_session_starts_with_default_config(session):
    assert session.state.config.dataset_name == "fresh"
    assert session.state.report is None
    assert session.state.message == ""


def test_start_loads_template_and_history(session, mock_gateway, template_config):
    session.start()

    mock_gateway.fetch_template.assert_called_once()
    mock_gateway.list_reports.assert_called_once()
    assert session.state.config is template_config
    assert [item.id for item in session.state.reports] == ["rep-a", "rep-b"]


def test_template_failure_keeps_config(session, mock_gateway):
    mock_gateway.fetch_template.side_effect = TransportError("engine down")
    before = session.state.config

    session.start()

    assert session.state.config is before
    assert session.state.message == "Unable to load template: engine down"
    assert len(session.state.reports) == 2


def test_reports_failure_keeps_history(session, mock_gateway, stored_reports):
    session.refresh_reports()
    mock_gateway.list_reports.side_effect = TransportError('{"detail":"db locked"}')

    assert session.refresh_reports() is False
    assert session.state.reports == stored_reports
    assert session.state.message == 'Unable to load reports: {"detail":"db locked"}'


def test_edits_apply_to_session_config(session):
    session.add_schema_field()
    session.update_schema_field(0, {"allowed_values": "x, y"})
    session.add_rule()

    config = session.state.config
    assert config.schema_fields[0].allowed_values == ["x", "y"]
    assert config.rules[0].name == "Rule 1"

    with pytest.raises(IndexOutOfRange):
        session.remove_rule(3)


def test_run_audit_requires_file(session, mock_gateway):
    assert session.run_audit() is None

    assert session.state.message == "Upload a CSV/Excel file first."
    mock_gateway.run_audit.assert_not_called()


def test_run_audit_success(session, mock_gateway, full_report):
    session.select_file("customers.csv", b"id,age\n1,34\n")

    report = session.run_audit()

    assert report is full_report
    assert session.state.report is full_report
    assert session.state.message == "Audit completed successfully."
    assert session.state.is_running is False
    args = mock_gateway.run_audit.call_args[0]
    assert args[0] == b"id,age\n1,34\n"
    assert args[2] == "customers.csv"
    mock_gateway.list_reports.assert_called_once()


def test_run_audit_sends_snapshot_of_config(session, mock_gateway):
    session.select_file("customers.csv", b"id\n1\n")
    session.add_rule()

    session.run_audit()

    sent = mock_gateway.run_audit.call_args[0][1]
    assert sent == session.state.config
    assert sent is not session.state.config


def test_run_audit_failure_keeps_previous_report(session, mock_gateway, previous_report):
    session.state.report = previous_report
    session.select_file("customers.csv", b"id\n1\n")
    mock_gateway.run_audit.side_effect = TransportError("bad csv")

    assert session.run_audit() is None

    assert session.state.report is previous_report
    assert session.state.message == "Audit failed: bad csv"
    assert session.state.is_running is False
    mock_gateway.list_reports.assert_not_called()


def test_run_audit_while_running_is_rejected(session, mock_gateway):
    session.select_file("customers.csv", b"id\n1\n")
    session.state.is_running = True

    assert session.run_audit() is None

    assert session.state.message == "An audit is already running."
    mock_gateway.run_audit.assert_not_called()


def test_select_file_infers_columns(session, mock_gateway):
    columns = session.select_file("customers.csv", b"id,age,city\n")

    assert columns == ["id", "age", "city"]
    assert session.state.columns == ["id", "age", "city"]
    mock_gateway.infer_columns.assert_called_once_with(b"id,age,city\n", "customers.csv")


def test_columns_for_superseded_file_are_discarded(session, mock_gateway):
    calls = []

    def infer(content, name):
        calls.append(name)
        if name == "first.csv":
            # The operator picks another file before the first inference returns.
            session.select_file("second.csv", b"b\n")
            return ["a"]
        return ["b"]

    mock_gateway.infer_columns.side_effect = infer

    assert session.select_file("first.csv", b"a\n") == []

    assert calls == ["first.csv", "second.csv"]
    assert session.state.selected_file.name == "second.csv"
    assert session.state.columns == ["b"]


def test_clear_file(session):
    session.select_file("customers.csv", b"id\n")

    session.clear_file()

    assert session.state.selected_file is None
    assert session.state.columns == []


def test_load_report(session, full_report):
    assert session.load_report("rep-a") is full_report
    assert session.state.report is full_report


def test_load_report_not_found_keeps_current(session, mock_gateway, full_report):
    session.load_report("rep-a")
    mock_gateway.get_report.side_effect = NotFound("gone")

    assert session.load_report("gone") is None

    assert session.state.report is full_report
    assert session.state.message == "Unable to load report: Report 'gone' not found"


def test_stale_report_response_is_discarded(session, mock_gateway, full_report, previous_report):
    def get_report(report_id):
        if report_id == "rep-a":
            # A newer load is issued while this one is in flight.
            session.load_report("rep-b")
            return full_report
        return previous_report

    mock_gateway.get_report.side_effect = get_report

    assert session.load_report("rep-a") is None
    assert session.state.report is previous_report


def test_stale_report_failure_keeps_newer_message(session, mock_gateway, previous_report):
    def get_report(report_id):
        if report_id == "rep-a":
            session.load_report("rep-b")
            raise TransportError("boom")
        return previous_report

    mock_gateway.get_report.side_effect = get_report

    assert session.load_report("rep-a") is None

    assert session.state.report is previous_report
    assert session.state.message == ""


def test_stale_reports_failure_is_discarded(session, mock_gateway, stored_reports):
    def list_reports():
        if mock_gateway.list_reports.call_count == 1:
            session.refresh_reports()
            raise TransportError("timeout")
        return stored_reports

    mock_gateway.list_reports.side_effect = list_reports

    assert session.refresh_reports() is False

    assert session.state.reports == stored_reports
    assert session.state.message == ""


def test_delete_current_report_clears_selection(session, mock_gateway):
    session.load_report("rep-a")
    session.select_for_comparison("rep-a", "rep-b")
    session.compare_selected()

    assert session.delete_report("rep-a") is True

    mock_gateway.delete_report.assert_called_once_with("rep-a")
    assert session.state.report is None
    assert session.state.compare_a is None
    assert session.state.compare_b == "rep-b"
    assert session.state.comparison is None
    assert session.state.breakdown is None
    assert session.state.message == "Report deleted."
    mock_gateway.list_reports.assert_called_once()


def test_delete_other_report_keeps_current(session, full_report):
    session.load_report("rep-a")

    session.delete_report("rep-b")

    assert session.state.report is full_report


def test_delete_failure(session, mock_gateway, full_report):
    session.load_report("rep-a")
    mock_gateway.delete_report.side_effect = TransportError("locked")

    assert session.delete_report("rep-a") is False

    assert session.state.report is full_report
    assert session.state.message == "Unable to delete report: locked"


def test_download_report(session, mock_gateway):
    assert session.download_report("rep-a") == b'{"id": "rep-a"}'

    mock_gateway.download_report.side_effect = NotFound("rep-x")
    assert session.download_report("rep-x") is None
    assert session.state.message == "Unable to download report: Report 'rep-x' not found"


def test_compare_selected(session, mock_gateway):
    session.select_for_comparison("rep-a", "rep-b")

    result = session.compare_selected()

    assert result.delta == -3
    assert session.state.comparison is result
    assert session.state.breakdown["rules"][0] == {"rule": "amount_positive", "a": 2, "b": 1, "delta": -1}
    assert mock_gateway.get_report.call_count == 2


@pytest.mark.parametrize("pair", [("rep-a", "rep-a"), ("rep-a", None), ("", "rep-b")])
def test_compare_invalid_selection_makes_no_calls(session, mock_gateway, pair):
    session.select_for_comparison(*pair)

    assert session.compare_selected() is None

    assert session.state.message == "Choose two different reports to compare."
    mock_gateway.get_report.assert_not_called()


def test_compare_aborts_when_one_fetch_fails(session, mock_gateway, full_report):
    def get_report(report_id):
        if report_id == "rep-b":
            raise TransportError("timeout")
        return full_report

    mock_gateway.get_report.side_effect = get_report
    session.select_for_comparison("rep-a", "rep-b")

    assert session.compare_selected() is None

    assert session.state.comparison is None
    assert session.state.message == "Comparison failed: timeout"
    assert mock_gateway.get_report.call_count == 2


def test_view_without_report(session):
    view = session.view()

    assert view["report"] is None
    assert view["issues"] == []
    assert view["indicators"] == []
    assert view["status"] is None
    assert view["config"]["dataset_name"] == "fresh"
    assert view["config"]["schema"] == []


def test_view_with_report(session):
    session.load_report("rep-a")

    view = session.view()

    assert view["report"]["id"] == "rep-a"
    assert view["report"]["config"]["schema"][0]["name"] == "id"
    assert len(view["issues"]) == 7
    assert view["issues"][0]["rowId"] == "3"
    assert len(view["indicators"]) == 9
    assert view["status"] == "error"
    assert view["issue_summary"]["total"] == 7


def test_registry_evicts_oldest(mock_gateway):
    registry = SessionRegistry(lambda: mock_gateway, SessionConfig(max_sessions=2))

    first = registry.create()
    second = registry.create()
    third = registry.create()

    assert len(registry) == 2
    assert registry.get(third.session_id) is third
    assert registry.get(second.session_id) is second
    with pytest.raises(KeyError):
        registry.get(first.session_id)


def test_registry_remove():
    registry = SessionRegistry(Mock)

    session = registry.create()

    assert registry.remove(session.session_id) is True
    assert registry.remove(session.session_id) is False
    assert len(registry) == 0
