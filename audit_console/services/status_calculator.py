"""Calculate an overall report status from its indicators."""

from __future__ import annotations

import logging
from typing import Dict, Iterable

from ..utils.issues import Indicator

logger = logging.getLogger(__name__)


def severity_counts(indicators: Iterable[Indicator]) -> Dict[str, int]:
    counts = {"error": 0, "warning": 0, "info": 0}
    for indicator in indicators:
        counts[indicator.severity] = counts.get(indicator.severity, 0) + 1
    return counts


def calculate_report_status(indicators: Iterable[Indicator]) -> str:
    """Calculate report status from indicator severities.

    Args:
        indicators: Indicators derived from a single report.

    Returns:
        "error", "warning", or "healthy". Info-only indicators count as healthy.
    """
    counts = severity_counts(indicators)

    logger.debug("Status calculation", extra={"by_severity": counts})

    # Priority-based status: error > warning > healthy
    if counts["error"] > 0:
        return "error"
    elif counts["warning"] > 0:
        return "warning"
    else:
        return "healthy"
