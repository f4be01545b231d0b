"""
boundary.py — Per-section fault boundary.

Every renderer draws each section (and each side-data panel) through
`guarded()`. An exception inside is logged, handed to the telemetry
collaborator, and replaced by the renderer's own fallback for that section.
Sibling sections are never affected.
"""

import logging
from typing import Any, Callable, Optional, TypeVar

from cab_report.telemetry import LogTelemetry, TelemetryReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def preview(source: str, limit: int) -> tuple[str, bool]:
    """Raw-text preview for a fallback block.

    Returns:
        (text, truncated) where text is at most `limit` characters.
    """
    if len(source) <= limit:
        return source, False
    return source[:limit], True


def guarded(
    render: Callable[[], T],
    fallback: Callable[[BaseException], T],
    context: dict[str, Any],
    telemetry: Optional[TelemetryReporter] = None,
) -> T:
    """Run `render`; on any exception report it and return `fallback(exc)`.

    Args:
        render: Zero-argument callable producing the section output.
        fallback: Builds replacement output from the caught exception.
        context: Identifies the failing unit (section id, renderer name).
        telemetry: Reporter to notify; LogTelemetry when None.

    Returns:
        Whatever render (or fallback) returns.
    """
    try:
        return render()
    except Exception as exc:
        logger.exception(
            "Render fault in %s %s; showing raw fallback",
            context.get("renderer", "renderer"), context.get("section_id", "?"),
        )
        reporter = telemetry or LogTelemetry()
        try:
            reporter.report(exc, context)
        except Exception:
            logger.exception("Telemetry reporter raised while reporting a render fault")
        return fallback(exc)
