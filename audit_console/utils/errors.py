"""Custom exception classes for audit console errors."""

from __future__ import annotations


class ConsoleError(Exception):
    """Base exception for audit console failures."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.message = message
        self.transient = transient


class TransportError(ConsoleError):
    """Raised when the audit engine is unreachable or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, operation: str | None = None):
        super().__init__(message or "Request failed", transient=True)
        self.status_code = status_code
        self.operation = operation


class ValidationError(ConsoleError):
    """Raised when operator input is malformed or incomplete."""


class IndexOutOfRange(ConsoleError):
    """Raised when a structural edit references a position that does not exist."""

    def __init__(self, collection: str, index: int, length: int):
        super().__init__(f"{collection} index {index} out of range (length {length})")
        self.collection = collection
        self.index = index
        self.length = length


class NotFound(ConsoleError):
    """Raised when a requested report id is unknown to the report store."""

    def __init__(self, report_id: str):
        super().__init__(f"Report '{report_id}' not found")
        self.report_id = report_id
