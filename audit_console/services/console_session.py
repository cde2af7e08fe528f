"""Per-operator session state and the event handlers that drive it.

Every handler runs one operator or lifecycle event to completion. Gateway
calls happen outside the session lock; their results are applied only if
the request is still the latest one issued for its channel, so a slow
response never overwrites newer state. Gateway failures become a status
message and leave config, report and history untouched.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..analyzers.aggregator import derive_indicators, derive_issue_log, summarize
from ..analyzers.comparator import ComparisonResult, compare, compare_breakdown, ensure_distinct_selection
from ..clients.gateway import Gateway
from ..clients.logging import get_logger, log_derivation
from ..config.models import AuditConfig, RuleDefinition, SchemaField
from ..config.settings import SessionConfig
from ..utils.errors import ConsoleError, ValidationError
from ..utils.issues import DerivedIssue, Indicator
from ..utils.reports import AuditReport, StoredReportMetadata
from .config_model import ConfigModel
from .status_calculator import calculate_report_status

logger = get_logger(__name__)


@dataclass
class SelectedFile:
    name: str
    content: bytes
    token: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class SessionState:
    config: AuditConfig
    report: Optional[AuditReport] = None
    reports: List[StoredReportMetadata] = field(default_factory=list)
    selected_file: Optional[SelectedFile] = None
    columns: List[str] = field(default_factory=list)
    compare_a: Optional[str] = None
    compare_b: Optional[str] = None
    comparison: Optional[ComparisonResult] = None
    breakdown: Optional[Dict[str, List[Dict[str, Any]]]] = None
    message: str = ""
    is_running: bool = False


class ConsoleSession:
    def __init__(
        self,
        gateway: Gateway,
        settings: Optional[SessionConfig] = None,
        state: Optional[SessionState] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self._gateway = gateway
        self._settings = settings or SessionConfig()
        self.state = state or SessionState(config=AuditConfig(dataset_name=self._settings.default_dataset_name))
        self._lock = threading.RLock()
        self._sequence = itertools.count(1)
        self._latest: Dict[str, int] = {}

    # Request tagging

    def _tag(self, channel: str) -> int:
        with self._lock:
            tag = next(self._sequence)
            self._latest[channel] = tag
            return tag

    def _is_current(self, channel: str, tag: int) -> bool:
        if self._latest.get(channel) != tag:
            logger.info(
                "Discarding stale response",
                extra={"session_id": self.session_id, "channel": channel, "tag": tag},
            )
            return False
        return True

    def _fail(
        self,
        prefix: str,
        exc: ConsoleError,
        channel: Optional[str] = None,
        tag: Optional[int] = None,
    ) -> None:
        with self._lock:
            if channel is not None and not self._is_current(channel, tag):
                return
            self.state.message = f"{prefix}: {exc.message}"
        logger.warning(prefix, extra={"session_id": self.session_id, "error": exc.message})

    # Lifecycle

    def start(self) -> None:
        """Initial load: template config and report history."""
        self.load_template()
        self.refresh_reports()

    def load_template(self) -> bool:
        tag = self._tag("template")
        try:
            template = self._gateway.fetch_template()
        except ConsoleError as exc:
            self._fail("Unable to load template", exc, "template", tag)
            return False
        with self._lock:
            if not self._is_current("template", tag):
                return False
            self.state.config = template
        return True

    def refresh_reports(self) -> bool:
        tag = self._tag("reports")
        try:
            reports = self._gateway.list_reports()
        except ConsoleError as exc:
            self._fail("Unable to load reports", exc, "reports", tag)
            return False
        with self._lock:
            if not self._is_current("reports", tag):
                return False
            self.state.reports = reports
        return True

    # Configuration edits

    def _edit(self, operation: str, *args: Any) -> Any:
        with self._lock:
            return getattr(ConfigModel(self.state.config), operation)(*args)

    def add_schema_field(self) -> SchemaField:
        return self._edit("add_schema_field")

    def update_schema_field(self, index: int, partial: Dict[str, Any]) -> SchemaField:
        return self._edit("update_schema_field", index, partial)

    def remove_schema_field(self, index: int) -> SchemaField:
        return self._edit("remove_schema_field", index)

    def add_rule(self) -> RuleDefinition:
        return self._edit("add_rule")

    def update_rule(self, index: int, partial: Dict[str, Any]) -> RuleDefinition:
        return self._edit("update_rule", index, partial)

    def remove_rule(self, index: int) -> RuleDefinition:
        return self._edit("remove_rule", index)

    def update_dataset(self, dataset_name: Optional[str] = None, primary_key: Any = None) -> AuditConfig:
        return self._edit("update_dataset", dataset_name, primary_key)

    # Dataset upload and audit runs

    def select_file(self, name: str, content: bytes) -> List[str]:
        """Select the dataset to upload and infer its columns (best effort)."""
        selected = SelectedFile(name=name, content=content)
        with self._lock:
            self.state.selected_file = selected
            self.state.columns = []
        columns = self._gateway.infer_columns(content, name)
        with self._lock:
            current = self.state.selected_file
            if current is None or current.token != selected.token:
                logger.info(
                    "Discarding columns for superseded file",
                    extra={"session_id": self.session_id, "upload_name": name},
                )
                return []
            self.state.columns = columns
        return columns

    def clear_file(self) -> None:
        with self._lock:
            self.state.selected_file = None
            self.state.columns = []

    def run_audit(self) -> Optional[AuditReport]:
        with self._lock:
            selected = self.state.selected_file
            if selected is None:
                self.state.message = "Upload a CSV/Excel file first."
                return None
            if self.state.is_running:
                self.state.message = "An audit is already running."
                return None
            config = self.state.config.model_copy(deep=True)
            self.state.is_running = True
            self.state.message = "Running audit..."
        tag = self._tag("report")

        try:
            report = self._gateway.run_audit(selected.content, config, selected.name)
        except ConsoleError as exc:
            self._fail("Audit failed", exc)
            return None
        finally:
            with self._lock:
                self.state.is_running = False

        with self._lock:
            if self._is_current("report", tag):
                self.state.report = report
            self.state.message = "Audit completed successfully."
        logger.info(
            "Audit completed",
            extra={"session_id": self.session_id, "report_id": report.id, "issues_found": report.summary.issues_found},
        )
        self.refresh_reports()
        return report

    # Report history

    def load_report(self, report_id: str) -> Optional[AuditReport]:
        tag = self._tag("report")
        try:
            report = self._gateway.get_report(report_id)
        except ConsoleError as exc:
            self._fail("Unable to load report", exc, "report", tag)
            return None
        with self._lock:
            if not self._is_current("report", tag):
                return None
            self.state.report = report
        return report

    def delete_report(self, report_id: str) -> bool:
        try:
            deleted = self._gateway.delete_report(report_id)
        except ConsoleError as exc:
            self._fail("Unable to delete report", exc)
            return False
        if not deleted:
            with self._lock:
                self.state.message = f"Unable to delete report: {report_id}"
            return False

        with self._lock:
            state = self.state
            if state.report is not None and state.report.id == report_id:
                state.report = None
            if report_id in (state.compare_a, state.compare_b):
                state.compare_a = None if state.compare_a == report_id else state.compare_a
                state.compare_b = None if state.compare_b == report_id else state.compare_b
            if state.comparison is not None and report_id in (
                state.comparison.report_a_id,
                state.comparison.report_b_id,
            ):
                state.comparison = None
                state.breakdown = None
            state.message = "Report deleted."
        self.refresh_reports()
        return True

    def download_report(self, report_id: str) -> Optional[bytes]:
        try:
            return self._gateway.download_report(report_id)
        except ConsoleError as exc:
            self._fail("Unable to download report", exc)
            return None

    # Comparison

    def select_for_comparison(self, report_a_id: Optional[str], report_b_id: Optional[str]) -> None:
        with self._lock:
            self.state.compare_a = report_a_id or None
            self.state.compare_b = report_b_id or None

    def compare_selected(self) -> Optional[ComparisonResult]:
        with self._lock:
            report_a_id, report_b_id = self.state.compare_a, self.state.compare_b
        try:
            ensure_distinct_selection(report_a_id, report_b_id)
        except ValidationError as exc:
            with self._lock:
                self.state.message = exc.message
            return None

        tag = self._tag("comparison")
        try:
            report_a, report_b = self._fetch_pair(report_a_id, report_b_id)
        except ConsoleError as exc:
            self._fail("Comparison failed", exc, "comparison", tag)
            return None

        result = compare(report_a, report_b)
        breakdown = compare_breakdown(report_a, report_b)
        with self._lock:
            if not self._is_current("comparison", tag):
                return None
            self.state.comparison = result
            self.state.breakdown = breakdown
        return result

    def _fetch_pair(self, report_a_id: str, report_b_id: str) -> Tuple[AuditReport, AuditReport]:
        # Leaving the executor waits for both calls, even when one has failed.
        with ThreadPoolExecutor(max_workers=self._settings.comparison_workers) as executor:
            future_a = executor.submit(self._gateway.get_report, report_a_id)
            future_b = executor.submit(self._gateway.get_report, report_b_id)
            return future_a.result(), future_b.result()

    # Derived views

    def derive(self) -> Tuple[List[DerivedIssue], List[Indicator]]:
        with self._lock:
            report = self.state.report
        if report is None:
            return [], []
        issues = derive_issue_log(report)
        indicators = derive_indicators(report)
        log_derivation(
            logger,
            report.id,
            len(issues),
            len(indicators),
            summarize(issues)["by_severity"],
        )
        return issues, indicators

    def issue_log(self) -> List[DerivedIssue]:
        return self.derive()[0]

    def indicators(self) -> List[Indicator]:
        return self.derive()[1]

    def view(self) -> Dict[str, Any]:
        """Snapshot of everything the console renders."""
        issues, indicators = self.derive()
        with self._lock:
            state = self.state
            return {
                "session_id": self.session_id,
                "message": state.message,
                "is_running": state.is_running,
                "config": state.config.model_dump(mode="json", by_alias=True, exclude_none=True),
                "file": state.selected_file.name if state.selected_file else None,
                "columns": list(state.columns),
                "report": state.report.model_dump(mode="json", by_alias=True) if state.report else None,
                "issues": [issue.to_dict() for issue in issues],
                "issue_summary": summarize(issues),
                "indicators": [indicator.to_dict() for indicator in indicators],
                "status": calculate_report_status(indicators) if state.report else None,
                "reports": [item.model_dump(mode="json") for item in state.reports],
                "compare": {"a": state.compare_a, "b": state.compare_b},
                "comparison": state.comparison.to_dict() if state.comparison else None,
                "breakdown": state.breakdown,
            }


class SessionRegistry:
    """In-process registry of console sessions, oldest evicted first."""

    def __init__(self, gateway_factory, settings: Optional[SessionConfig] = None):
        self._gateway_factory = gateway_factory
        self._settings = settings or SessionConfig()
        self._sessions: "OrderedDict[str, ConsoleSession]" = OrderedDict()
        self._lock = threading.Lock()

    def create(self) -> ConsoleSession:
        session = ConsoleSession(self._gateway_factory(), self._settings)
        with self._lock:
            self._sessions[session.session_id] = session
            while len(self._sessions) > self._settings.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Session evicted", extra={"session_id": evicted})
        return session

    def get(self, session_id: str) -> ConsoleSession:
        with self._lock:
            return self._sessions[session_id]

    def remove(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
