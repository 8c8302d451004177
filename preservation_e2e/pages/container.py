from playwright.sync_api import Locator, expect

from preservation_e2e.pages.base import Screen, by_role
from preservation_e2e.pages.navigation import NavigationScreen


class ContainerScreen(Screen):
    """Browse view of a container, with the New Folder dialog."""

    path = NavigationScreen.base_browse_path

    created_container_message = "Created Container"
    container_title = "Playwright Container Testing"
    container_slug = "Playwright-Container-Slug"

    new_folder_button = by_role("button", "New Folder")
    folder_path_name_input = by_role("textbox", "Folder path name")
    folder_title_input = by_role("textbox", "Folder title")
    create_folder_button = by_role("button", "Create New Folder")
    alert_message = by_role("alert")
    base_browse_heading = NavigationScreen.base_browse_heading
    table_rows = by_role("row")
    breadcrumbs = by_role("navigation")

    def get_started(self) -> None:
        self.goto()
        expect(self.base_browse_heading, "The page heading is shown").to_be_visible()
        expect(self.new_folder_button, "The New Folder button is shown").to_be_visible()

    def fill_new_folder(self, slug: str, title: str) -> None:
        self.new_folder_button.click()
        self.folder_path_name_input.fill(slug)
        self.folder_title_input.fill(title)
        self.create_folder_button.click()

    def create_container(self, slug: str, title: str) -> None:
        self.fill_new_folder(slug, title)
        expect(self.alert_message, "The successful created container message is shown").to_contain_text(
            self.created_container_message
        )
        expect(self.alert_message, "The created container message references the correct title").to_contain_text(title)

    def folder_link(self, title: str) -> Locator:
        return self.page.get_by_role("link", name=title, exact=True)

    def container_row(self, title: str) -> Locator:
        return self.table_rows.filter(has=self.page.get_by_role("link", name=title))

    def check_container_title(self, title: str) -> None:
        expect(
            self.page.get_by_role("heading", name=f"Browse - {title.lower()}"),
            "We have successfully navigated into the Container",
        ).to_be_visible()

    def open_container(self, title: str) -> None:
        self.folder_link(title).click()
        self.check_container_title(title)

    def breadcrumb_link(self, name: str) -> Locator:
        return self.breadcrumbs.get_by_role("link", name=name)
