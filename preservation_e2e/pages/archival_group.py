"""
Import job pages and the archival group browse view.

Job completion is observed by reloading the import job result page and
reading its status field, since the page does not update itself.
"""

from typing import Optional

from playwright.sync_api import Locator, expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.base import Screen, by_css, by_label, by_role
from preservation_e2e.pages.deposit import DepositScreen
from preservation_e2e.polling import PollPolicy, StatusMatcher, poll_until

logger = get_logger(__name__)

JOB_COMPLETED = StatusMatcher.exact("completed")


class ArchivalGroupScreen(Screen):
    run_import_button = by_role("button", "Run Import (Preserve)")
    import_job_heading = by_role("heading", "Import Job Result")

    # Diff / import job fields
    status = by_label("status")
    deposit = by_label("deposit")
    archival_group = by_label("archival group", exact=True)
    archival_group_name = by_label("archival group name")
    source_version = by_label("source version")
    new_version = by_label("new version")
    containers_to_add = by_label("containers to add")
    binaries_to_add = by_label("binaries to add")
    binaries_to_patch = by_label("binaries to patch")
    containers_to_delete = by_label("containers to delete")
    binaries_to_delete = by_label("binaries to delete")
    containers_to_rename = by_label("containers to rename")
    binaries_to_rename = by_label("binaries to rename")
    date_begun = by_label("date begun")
    date_finished = by_label("date finished")
    created = by_label("created", exact=True)
    created_by = by_label("created by")
    import_job = by_label("import job", exact=True)
    original_import_job = by_label("original import job")
    containers_added = by_label("containers added")
    binaries_added = by_label("binaries added")
    binaries_patched = by_label("binaries patched")
    containers_deleted = by_label("containers deleted")
    binaries_deleted = by_label("binaries deleted")
    containers_renamed = by_label("containers renamed")
    binaries_renamed = by_label("binaries renamed")

    # Archival group browse view
    breadcrumbs = by_role("navigation")
    versions_button = by_role("link", "Versions")
    iiif_button = by_role("link", "IIIF")
    go_to_archival_group_button = by_role("link", "Go to Archival Group")
    new_deposit_button = DepositScreen.new_deposit_button
    create_deposit_modal_button = by_role("button", "Create New Deposit")
    copy_files_from_s3_checkbox = by_role("checkbox").within(by_role("dialog"))
    resource_rows = by_css("tbody tr").within(by_role("table", "table-resources"))

    def list_items(self, field: Locator) -> Locator:
        return field.get_by_role("listitem")

    def expect_no_pending_changes(self) -> None:
        for name in ("binaries_to_patch", "containers_to_delete", "binaries_to_delete",
                     "containers_to_rename", "binaries_to_rename"):
            expect(getattr(self, name), f"{name.replace('_', ' ').capitalize()} is empty").to_be_empty()

    def expect_no_modified_binaries(self) -> None:
        for name in ("binaries_patched", "containers_deleted", "binaries_deleted",
                     "containers_renamed", "binaries_renamed"):
            expect(getattr(self, name), f"{name.replace('_', ' ').capitalize()} is empty").to_be_empty()

    def run_import(self) -> str:
        """Start the import from the diff page; returns the import job result URL."""
        self.run_import_button.click()
        expect(self.import_job_heading, "We can see the import job title").to_be_visible()
        return self.page.url

    def read_status(self) -> Optional[str]:
        self.page.reload()
        expect(self.status, "The Status of the job is visible").to_be_visible()
        text = self.status.text_content()
        return text.strip() if text else text

    def wait_for_job_completion(self, policy: PollPolicy, matcher: StatusMatcher = JOB_COMPLETED) -> str:
        status = poll_until(
            self.read_status, matcher, policy,
            description=f"import job at {self.page.url} to reach {matcher!r}",
        )
        logger.info(f"Import job reached status {status}")
        return status

    def resource_path(self, index: int) -> Locator:
        return self.resource_rows.nth(index).get_by_label("td-path")

    def breadcrumb(self, name: str) -> Locator:
        return self.breadcrumbs.get_by_role("link", name=name)

    def history_item(self, name: str) -> Optional[str]:
        row = self.page.get_by_role("row").filter(
            has=self.page.get_by_role("rowheader").get_by_text(name, exact=True)
        )
        return row.get_by_role("cell").text_content()

    def resource_field(self, row_header: str) -> Locator:
        """Value cell of a binary's property table (Name, Size, Digest...)."""
        return self.page.get_by_role("row").filter(
            has=self.page.get_by_role("rowheader", name=row_header, exact=True)
        ).get_by_role("cell")

    def create_deposit_from_archival_group(self, url: str, copy_from_s3: bool = False) -> None:
        self.page.goto(url)
        expect(self.new_deposit_button, "Can see the New Deposit button").to_be_visible()
        self.new_deposit_button.click()
        if copy_from_s3:
            self.copy_files_from_s3_checkbox.check()
        self.create_deposit_modal_button.click()
