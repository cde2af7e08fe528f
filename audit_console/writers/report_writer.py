"""Persist downloaded reports to the local filesystem."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ReportWriter:
    """Hands raw report bytes to the operating environment unparsed."""

    def __init__(self, output_dir: Optional[Path] = None):
        self._output_dir = output_dir or Path.cwd()

    def default_path(self, report_id: str) -> Path:
        return self._output_dir / f"report_{report_id}.json"

    def write(self, report_id: str, payload: bytes, path: Optional[Path] = None) -> Path:
        """Write report bytes to disk.

        Args:
            report_id: Id of the downloaded report, used for the default file name
            payload: Raw bytes as served by the report store
            path: Optional explicit destination

        Returns:
            The path written to.
        """
        target = path or self.default_path(report_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)
        logger.info("Report written", extra={"report_id": report_id, "path": str(target), "bytes": len(payload)})
        return target
