from pathlib import Path

from playwright.sync_api import expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.base import Screen, by_role

logger = get_logger(__name__)


class LoginScreen(Screen):
    """Interactive sign-in, done once before the UI scenarios run."""

    path = "/"

    sign_in_heading = by_role("heading", "Sign in")
    username_input = by_role("textbox", "username@leeds.ac.uk")
    next_button = by_role("button", "Next")
    password_input = by_role("textbox", "Enter the password")
    sign_in_button = by_role("button", "Sign in")

    def is_signed_out(self) -> bool:
        return self.sign_in_heading.is_visible()

    def login(self, username: str, password: str, home_url: str) -> bool:
        """
        Sign in if the identity provider's page is showing.

        Returns False when a stored session was still valid and nothing
        had to be typed.
        """
        self.page.goto(self.path, wait_until="networkidle")
        if not self.is_signed_out():
            logger.info("Existing frontend session is still valid")
            return False

        self.username_input.fill(username)
        self.next_button.click()
        self.password_input.fill(password)
        self.sign_in_button.click()
        expect(self.page, "After login, we have landed on the correct URL").to_have_url(
            home_url.rstrip("/") + "/", timeout=10_000
        )
        logger.info(f"Signed in to the frontend as {username}")
        return True

    def save_session(self, path: str) -> str:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.page.context.storage_state(path=path)
        return path
