"""
Per-worker scenario context.

One ScenarioContext is built per worker process and handed to every
scenario that worker runs. It carries the shared clients and a teardown
stack that is emptied after each scenario.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar

from playwright.sync_api import BrowserContext, Page

from preservation_e2e.api_client import PresentationApiClient
from preservation_e2e.config import Settings
from preservation_e2e.exceptions import ConfigurationError, HarnessError, ScenarioTimeoutError
from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.base import Screen
from preservation_e2e.pages.deposit import NEW_FOLDER_PATH
from preservation_e2e.polling import PollPolicy
from preservation_e2e.s3_client import S3TransferHelper

logger = get_logger(__name__)

S = TypeVar("S", bound=Screen)


@dataclass
class ScenarioContext:
    settings: Settings
    api: Optional[PresentationApiClient] = None
    storage: Optional[S3TransferHelper] = None
    page: Optional[Page] = None
    browser_context: Optional[BrowserContext] = None
    scenario_name: Optional[str] = None
    scenario_timeout: Optional[float] = None
    _teardown: List[Tuple[str, Callable[..., Any], tuple, dict]] = field(default_factory=list, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    deadline: Optional[float] = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Scenario lifecycle
    # ------------------------------------------------------------------

    def begin(self, name: str, timeout: float) -> None:
        if self._teardown:
            raise HarnessError(f"Teardown from {self.scenario_name} was never run")
        self.scenario_name = name
        self.scenario_timeout = timeout
        self.deadline = self.clock() + timeout

    def remaining(self) -> float:
        """Seconds left before the current scenario's limit."""
        if self.deadline is None:
            return float("inf")
        return self.deadline - self.clock()

    def check_deadline(self) -> None:
        if self.remaining() <= 0:
            raise ScenarioTimeoutError(
                f"Scenario {self.scenario_name} ran past its {self.scenario_timeout:.0f}s limit"
            )

    def add_teardown(self, description: str, func: Callable[..., Any], *args, **kwargs) -> None:
        """Register cleanup; steps run last-in first-out after the scenario."""
        self._teardown.append((description, func, args, kwargs))

    def run_teardown(self) -> List[Tuple[str, BaseException]]:
        """
        Run every registered cleanup step, newest first.

        A failing step does not stop the others; failures are logged and
        returned so the runner can report them against the scenario.
        """
        failures = []
        while self._teardown:
            description, func, args, kwargs = self._teardown.pop()
            try:
                func(*args, **kwargs)
                logger.debug(f"Teardown: {description}", extra={"scenario": self.scenario_name})
            except Exception as e:
                logger.error(
                    f"Teardown step failed: {description}: {e}",
                    extra={"scenario": self.scenario_name, "error_type": type(e).__name__},
                )
                failures.append((description, e))
        return failures

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def poll_policy(self, interval: Optional[float] = None, timeout: Optional[float] = None) -> PollPolicy:
        """
        A poll policy that gives up before the scenario does.

        The timeout must be below the scenario limit and is cut to whatever
        is left of it; no wait starts once the limit has passed.
        """
        interval = self.settings.poll_interval if interval is None else interval
        timeout = self.settings.poll_timeout if timeout is None else timeout
        limit = self.scenario_timeout or self.settings.scenario_timeout
        if timeout >= limit:
            raise ConfigurationError(
                f"Poll timeout {timeout}s must be below the scenario timeout {limit}s"
            )
        self.check_deadline()
        return PollPolicy(interval=interval, timeout=min(timeout, self.remaining()))

    def require_api(self) -> PresentationApiClient:
        if self.api is None:
            raise HarnessError(f"Scenario {self.scenario_name} needs the Presentation API client")
        return self.api

    def require_storage(self) -> S3TransferHelper:
        if self.storage is None:
            raise HarnessError(f"Scenario {self.scenario_name} needs S3 access")
        return self.storage

    def require_page(self) -> Page:
        if self.page is None:
            raise HarnessError(f"Scenario {self.scenario_name} needs a browser page")
        return self.page

    def screen(self, screen_class: Type[S]) -> S:
        """A screen on the worker page, with UI waits capped at the time left."""
        page = self.require_page()
        if self.deadline is not None:
            budget_ms = max(self.remaining(), 0.0) * 1000
            page.set_default_timeout(min(self.settings.ui_timeout_ms, budget_ms))
        return screen_class(page)

    def test_file(self, name: str, folder: str = NEW_FOLDER_PATH) -> Path:
        """Path of a bundled test file under TEST_DATA_DIR/deposit."""
        path = Path(self.settings.test_data_dir) / "deposit" / folder / name
        if not path.is_file():
            raise ConfigurationError(f"Test data file not found: {path} (set TEST_DATA_DIR)")
        return path
