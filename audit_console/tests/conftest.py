"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import Mock

import pytest

from audit_console.clients.gateway import Gateway
from audit_console.config.models import AuditConfig
from audit_console.utils.reports import AuditReport, StoredReportMetadata


def _load(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def report_payload(fixtures_dir: Path) -> Dict[str, Any]:
    """Raw JSON of a report touching every issue source."""
    return _load(fixtures_dir / "report_full.json")


@pytest.fixture
def full_report(report_payload: Dict[str, Any]) -> AuditReport:
    return AuditReport.model_validate(report_payload)


@pytest.fixture
def previous_report(fixtures_dir: Path) -> AuditReport:
    return AuditReport.model_validate(_load(fixtures_dir / "report_previous.json"))


@pytest.fixture
def clean_report(fixtures_dir: Path) -> AuditReport:
    return AuditReport.model_validate(_load(fixtures_dir / "report_clean.json"))


@pytest.fixture
def template_config(fixtures_dir: Path) -> AuditConfig:
    return AuditConfig.model_validate(_load(fixtures_dir / "template.json"))


@pytest.fixture
def stored_reports(fixtures_dir: Path) -> List[StoredReportMetadata]:
    return [StoredReportMetadata.model_validate(item) for item in _load(fixtures_dir / "reports_index.json")]


@pytest.fixture
def mock_gateway(template_config, stored_reports, full_report, previous_report):
    """Gateway double answering from the JSON fixtures."""
    reports = {full_report.id: full_report, previous_report.id: previous_report}
    gateway = Mock(spec=Gateway)
    gateway.fetch_template = Mock(return_value=template_config)
    gateway.list_reports = Mock(return_value=stored_reports)
    gateway.get_report = Mock(side_effect=lambda report_id: reports[report_id])
    gateway.run_audit = Mock(return_value=full_report)
    gateway.delete_report = Mock(return_value=True)
    gateway.download_report = Mock(return_value=b'{"id": "rep-a"}')
    gateway.infer_columns = Mock(return_value=["id", "age", "city"])
    return gateway
