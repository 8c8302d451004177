"""
Run results and the Slack summary.

Scenario results are plain dataclasses so worker processes can hand them
back to the parent. The Slack summary is a single chat.postMessage with a
section block of pass/fail counts and a link to the full report.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from preservation_e2e.exceptions import ConfigurationError, ReportingError
from preservation_e2e.logging_config import get_logger

logger = get_logger(__name__)

SLACK_API = "https://slack.com/api"


class ScenarioStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass
class ScenarioResult:
    name: str
    suite: str
    status: ScenarioStatus
    duration: float = 0.0
    error: Optional[str] = None
    traceback: Optional[str] = None
    screenshot: Optional[str] = None
    teardown_failures: List[str] = field(default_factory=list)
    worker: int = 0

    @property
    def ok(self) -> bool:
        return self.status == ScenarioStatus.PASSED and not self.teardown_failures


@dataclass
class RunSummary:
    results: List[ScenarioResult]
    environment: str
    started: datetime
    duration: float = 0.0

    @property
    def passed(self) -> List[ScenarioResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[ScenarioResult]:
        return [r for r in self.results if not r.ok and r.status != ScenarioStatus.SKIPPED]

    @property
    def ok(self) -> bool:
        return bool(self.results) and not self.failed

    @property
    def status(self) -> str:
        return "passed" if self.ok else "failed"


def build_slack_message(summary: RunSummary, report_url: Optional[str] = None) -> Dict[str, Any]:
    """Message body (text plus blocks) for chat.postMessage."""
    admonition = ":white_check_mark:" if summary.ok else ":warning:"
    when = summary.started.strftime("%H:%M")
    section: Dict[str, Any] = {
        "type": "section",
        "text": {
            "type": "mrkdwn",
            "text": f"*Test Run {summary.status}* on *{summary.environment}* at {when} {admonition}",
        },
        "fields": [
            {"type": "mrkdwn", "text": "*Tests Failing*"},
            {"type": "mrkdwn", "text": "*Tests Passing*"},
            {"type": "mrkdwn", "text": str(len(summary.failed))},
            {"type": "mrkdwn", "text": str(len(summary.passed))},
        ],
    }
    blocks: List[Dict[str, Any]] = [section]

    if summary.failed:
        names = "\n".join(f"• `{r.name}` ({r.status.value})" for r in summary.failed)
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": names}})

    if report_url:
        section["accessory"] = {
            "type": "button",
            "text": {"type": "plain_text", "text": "View", "emoji": True},
            "url": report_url,
        }
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"*<{report_url}|See test results>*"}})

    return {"text": "Test run completed", "blocks": blocks}


class SlackReporter:
    """Posts run summaries through the Slack Web API with a bot token."""

    def __init__(self, token: str, channel: str, report_url: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.token = token
        self.channel = channel
        self.report_url = report_url
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SlackReporter":
        if not settings.slack_token or not settings.slack_channel:
            raise ConfigurationError("--slack needs SLACK_TOKEN and SLACK_CHANNEL")
        return cls(settings.slack_token, settings.slack_channel, settings.report_url)

    def _call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self.session.post(
            f"{SLACK_API}/{method}",
            json=payload or {},
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=self.timeout,
        )
        if response.status_code != 200:
            raise ReportingError(f"Slack {method} returned HTTP {response.status_code}: {response.text}")
        body = response.json()
        if not body.get("ok"):
            raise ReportingError(f"Slack {method} failed: {body.get('error', 'unknown error')}")
        return body

    def post(self, summary: RunSummary) -> str:
        """Send the summary; returns the message timestamp."""
        identity = self._call("auth.test")
        if not identity.get("bot_id"):
            raise ReportingError("SLACK_TOKEN is not a bot token")

        logger.info(f"Sending notification to {self.channel}")
        body = self._call("chat.postMessage", {
            "channel": self.channel,
            **build_slack_message(summary, self.report_url),
        })
        message = body.get("message") or {}
        if not message.get("ts"):
            raise ReportingError("Slack message had no timestamp")
        return message["ts"]
