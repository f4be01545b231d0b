"""
telemetry.py — Error reporting collaborator.

Render faults caught by a section boundary are handed to a TelemetryReporter.
Reporters must never raise: a failure to report is logged and dropped, so
that reporting cannot turn a contained fault into a page-wide one.

    LogTelemetry        structured log line (default)
    WebhookTelemetry    JSON POST to ERROR_WEBHOOK_URL, dry-run when unset
    RecordingTelemetry  keeps reports in memory

The webhook URL is read exclusively from the environment (.env file
supported). No URLs in config.yaml.
"""

import json
import logging
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import requests

from cab_report.settings import DEFAULT_SETTINGS, TelemetrySettings

logger = logging.getLogger(__name__)


def _load_env(env_path: str = ".env") -> dict[str, str]:
    """Load environment variables, falling back to .env file parsing.

    Returns:
        Dict of environment variable name → value.
    """
    env = dict(os.environ)

    path = Path(env_path)
    if path.exists():
        with open(path, "r") as fh:
            for line in fh:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, val = line.split("=", 1)
                    key = key.strip()
                    val = val.strip().strip('"').strip("'")
                    if key not in env and val:
                        env[key] = val
    return env


def build_payload(error: BaseException, context: dict[str, Any]) -> dict[str, Any]:
    """Serializable description of a caught fault."""
    return {
        "error_type": type(error).__name__,
        "message": str(error),
        "context": {k: v if isinstance(v, (str, int, float, bool)) or v is None else str(v)
                    for k, v in context.items()},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class TelemetryReporter:
    """Interface: report(error, context) and never raise."""

    def report(self, error: BaseException, context: dict[str, Any]) -> None:
        raise NotImplementedError


class LogTelemetry(TelemetryReporter):
    def report(self, error: BaseException, context: dict[str, Any]) -> None:
        logger.error("Render fault reported: %s", json.dumps(build_payload(error, context)))


class RecordingTelemetry(TelemetryReporter):
    def __init__(self):
        self.reports: list[dict[str, Any]] = []

    def report(self, error: BaseException, context: dict[str, Any]) -> None:
        self.reports.append(build_payload(error, context))


class WebhookTelemetry(TelemetryReporter):
    """POST fault reports to a webhook with bounded retries.

    Args:
        settings: Telemetry settings (env var name, timeout, attempts).
        url: Explicit webhook URL; read from the environment when None.
        backoff: Base seconds for exponential backoff between attempts.
    """

    def __init__(
        self,
        settings: TelemetrySettings = DEFAULT_SETTINGS.telemetry,
        url: Optional[str] = None,
        backoff: float = 2.0,
    ):
        self.settings = settings
        self.url = (url if url is not None else _load_env().get(settings.webhook_env, "")).strip()
        self.backoff = backoff

    def report(self, error: BaseException, context: dict[str, Any]) -> None:
        payload = build_payload(error, context)

        if not self.url:
            logger.warning(
                "%s not set, telemetry dry-run mode.\n%s",
                self.settings.webhook_env,
                json.dumps(payload, indent=2),
            )
            return

        attempts = max(1, self.settings.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                resp = requests.post(self.url, json=payload, timeout=self.settings.timeout)
                if 200 <= resp.status_code < 300:
                    logger.info("Fault report delivered (attempt %d)", attempt)
                    return
                logger.warning("Telemetry webhook returned %s (attempt %d)", resp.status_code, attempt)
            except requests.RequestException as exc:
                logger.warning("Telemetry request failed (attempt %d): %s", attempt, exc)
            if attempt < attempts and self.backoff:
                time.sleep(self.backoff ** attempt)

        logger.error("Fault report not delivered after %d attempts", attempts)
