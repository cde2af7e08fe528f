"""HTTP client for the audit engine and its report store."""

from __future__ import annotations

from typing import Any, List, Optional, Type, TypeVar
from urllib.parse import quote

import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from requests.exceptions import RequestException

from ..config.models import AuditConfig, serialize_config
from ..config.settings import GatewayConfig
from ..utils.errors import NotFound, TransportError
from ..utils.reports import AuditReport, StoredReportMetadata
from ..utils.timing import timed_call
from .logging import get_logger, log_gateway_call

logger = get_logger(__name__)

DEFAULT_UPLOAD_NAME = "dataset.csv"

ModelT = TypeVar("ModelT", bound=BaseModel)


class Gateway:
    """Thin wrapper around the audit engine's HTTP API.

    Each method is an independent request/response call; the gateway holds
    no session state beyond the pooled HTTP connection. There is no retry
    policy: failures surface immediately as TransportError.
    """

    def __init__(self, config: Optional[GatewayConfig] = None, http: Optional[requests.Session] = None):
        self._config = config or GatewayConfig()
        self._http = http or requests.Session()
        self._http.headers.setdefault("User-Agent", self._config.user_agent)

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def url(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send one request, raising TransportError on connection failure or non-2xx."""
        response: Optional[requests.Response] = None
        failure: Optional[RequestException] = None
        with timed_call() as timing:
            try:
                response = self._http.request(
                    method,
                    self.url(path),
                    timeout=self._config.request_timeout_seconds,
                    **kwargs,
                )
            except RequestException as exc:
                failure = exc
        if response is None:
            log_gateway_call(logger, operation, timing["duration_ms"], error=str(failure))
            raise TransportError(str(failure), operation=operation) from failure

        if not response.ok:
            # The engine's error body is shown to the operator verbatim.
            body = response.text
            log_gateway_call(logger, operation, timing["duration_ms"], response.status_code, error=body or "empty body")
            raise TransportError(body, status_code=response.status_code, operation=operation)

        log_gateway_call(logger, operation, timing["duration_ms"], response.status_code)
        return response

    @staticmethod
    def _json(response: requests.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from audit engine: {exc}", response.status_code, operation) from exc

    @staticmethod
    def _parse(model: Type[ModelT], payload: Any, operation: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            raise TransportError(f"Malformed response from audit engine: {exc}", operation=operation) from exc

    def fetch_template(self) -> AuditConfig:
        response = self._request("fetch_template", "GET", "/config/template")
        return self._parse(AuditConfig, self._json(response, "fetch_template"), "fetch_template")

    def list_reports(self) -> List[StoredReportMetadata]:
        response = self._request("list_reports", "GET", "/reports")
        payload = self._json(response, "list_reports") or []
        return [self._parse(StoredReportMetadata, item, "list_reports") for item in payload]

    def get_report(self, report_id: str) -> AuditReport:
        try:
            response = self._request("get_report", "GET", _report_path(report_id))
        except TransportError as exc:
            if exc.status_code == 404:
                raise NotFound(report_id) from exc
            raise
        return self._parse(AuditReport, self._json(response, "get_report"), "get_report")

    def run_audit(
        self,
        file_bytes: bytes,
        config: AuditConfig,
        filename: str = DEFAULT_UPLOAD_NAME,
    ) -> AuditReport:
        """Upload a dataset with its configuration and return the engine's report.

        The engine picks its processing strategy from the dataset size; that
        choice is reported back in ``summary.engine_used``.
        """
        files = {"file": (filename, file_bytes)}
        data = {"config": serialize_config(config)}
        response = self._request("run_audit", "POST", "/audit/run", files=files, data=data)
        return self._parse(AuditReport, self._json(response, "run_audit"), "run_audit")

    def delete_report(self, report_id: str) -> bool:
        try:
            self._request("delete_report", "DELETE", _report_path(report_id))
        except TransportError as exc:
            if exc.status_code == 404:
                raise NotFound(report_id) from exc
            raise
        return True

    def download_report(self, report_id: str) -> bytes:
        """Return the stored report exactly as the store serves it."""
        try:
            response = self._request("download_report", "GET", _report_path(report_id, "/download"))
        except TransportError as exc:
            if exc.status_code == 404:
                raise NotFound(report_id) from exc
            raise
        return response.content

    def infer_columns(self, file_bytes: bytes, filename: str = DEFAULT_UPLOAD_NAME) -> List[str]:
        """Best-effort column discovery; failures are logged and yield no columns."""
        try:
            response = self._request(
                "infer_columns", "POST", "/dataset/columns", files={"file": (filename, file_bytes)}
            )
            payload = self._json(response, "infer_columns")
        except TransportError as exc:
            logger.warning(
                "Column inference unavailable",
                extra={"upload_name": filename, "error": exc.message},
            )
            return []
        return _column_names(payload)


def _report_path(report_id: str, suffix: str = "") -> str:
    return f"/reports/{quote(report_id, safe='')}{suffix}"


def _column_names(payload: Any) -> List[str]:
    if isinstance(payload, dict):
        payload = payload.get("columns", [])
    if not isinstance(payload, list):
        return []
    return [str(column) for column in payload]

