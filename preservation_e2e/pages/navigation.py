from playwright.sync_api import expect

from preservation_e2e.pages.base import Screen, by_role

TEST_ROOT = "_for_tests/playwright-testing"


class NavigationScreen(Screen):
    """Left-hand navigation and the shared test root."""

    base_path = f"/{TEST_ROOT}"
    base_browse_path = f"/browse/{TEST_ROOT}"
    base_api_path = f"/repository/{TEST_ROOT}/"
    path = base_browse_path

    dashboard_link = by_role("link", "Dashboard")
    browse_link = by_role("link", "Browse")
    deposits_link = by_role("link", "Deposits")
    browse_repository_link = by_role("link", "Browse the repository")
    connectivity_checks_link = by_role("link", "View connectivity checks")

    base_browse_heading = by_role("heading", "Browse - Playwright Testing")
    homepage_heading = by_role("heading", "Home page")
    repository_browse_heading = by_role("heading", "Browse - repository")
    deposits_heading = by_role("heading", "Deposits")
    connectivity_checks_heading = by_role("heading", "Connectivity Checks")

    def go_to_test_root(self) -> None:
        self.goto()
        expect(self.base_browse_heading, "The page heading is shown").to_be_visible()

    def open_dashboard(self) -> None:
        self.dashboard_link.click()
        expect(self.homepage_heading, "The Dashboard link leads to the home page").to_be_visible()
        expect(self.browse_repository_link, "The home page offers the repository browser").to_be_visible()
        expect(self.connectivity_checks_link, "The home page offers connectivity checks").to_be_visible()

    def open_browse(self) -> None:
        self.browse_link.click()
        expect(self.repository_browse_heading, "Browse leads to the repository root").to_be_visible()

    def open_deposits(self) -> None:
        self.deposits_link.click()
        expect(self.deposits_heading, "Deposits leads to the deposit listing").to_be_visible()
