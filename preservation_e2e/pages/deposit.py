"""
Deposit screen: properties form, the files table and the Actions menu.

Rows of the files table are addressed by their data-path attribute, which
is the path relative to the deposit root (``objects/some-folder/file.png``).
"""

import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from playwright.sync_api import Locator, expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.base import Screen, by_css, by_label, by_role, by_text
from preservation_e2e.pages.navigation import NavigationScreen
from preservation_e2e.polling import PollPolicy, StatusMatcher, poll_until
from preservation_e2e.schemas import DepositHandle

logger = get_logger(__name__)

DEPOSIT_URL = re.compile(r"/deposits/(\w{12})")

OBJECTS_FOLDER = "objects"
METS_FILE = "mets.xml"
TEST_IMAGE = "test_image.png"
TEST_WORD_DOC = "test_word_document.docx"
TEST_PDF_DOC = "test_pdf_document.pdf"
NEW_FOLDER_TITLE = "New test folder inside objects"
NEW_FOLDER_PATH = f"{OBJECTS_FOLDER}/new-test-folder-inside-objects"
ARCHIVAL_GROUP_NAME = "Playwright test archival group name"
DEPOSIT_NOTE = "Playwright test archival group note"
VALID_SLUG_PREFIX = "playwright-valid-slug-abcd"
ACCESS_CONDITIONS = ("Open", "Restricted", "Staff", "Closed")
BITCURATOR_REPORT = "metadata/brunnhilde/csv_reports/mimetypes.csv"
IN_DEPOSIT_AND_METS = "Both"

PIPELINE_FINISHED = StatusMatcher.pattern(r"completed.*")


def deposit_id_from_url(url: str) -> str:
    match = DEPOSIT_URL.search(url)
    if not match:
        raise ValueError(f"Not a deposit URL: {url}")
    return match.group(1)


class DepositScreen(Screen):
    path = NavigationScreen.base_browse_path

    base_browse_heading = NavigationScreen.base_browse_heading
    deposits_link = NavigationScreen.deposits_link
    deposits_heading = NavigationScreen.deposits_heading

    # New deposit dialog
    new_deposit_button = by_role("button", "New Deposit")
    modal_create_button = by_role("button", "Create New Deposit")
    modal_archival_slug = by_css("#archivalGroupSlug")
    modal_archival_name = by_css("#archivalGroupProposedName")
    slug_display = by_css("#slugDisplay")

    # Properties
    archival_group_input = by_css("#agPathUnderRoot")
    archival_group_name_input = by_css("#agName")
    deposit_note_input = by_css("#submissionText")
    update_properties_button = by_role("button", "Update properties")
    alert_message = by_role("alert")

    # Files table
    files_table = by_role("table", "table-deposit-files")
    upload_file_icon = by_label("upload file", exact=True)
    new_folder_icon = by_label("new folder", exact=True)
    row_checkbox = by_role("checkbox").within(by_label("select-row"))

    # Upload dialog
    file_upload_widget = by_label("Choose a file to upload")
    file_upload_submit_button = by_role("button", "Upload file").within(by_label("Upload file"))
    file_name_field = by_label("File name")
    checksum_field = by_label("Checksum")

    # New folder dialog
    new_folder_name_input = by_css("#newFolderName")
    new_folder_dialog_button = by_role("button", "Create new folder")

    # Actions menu
    actions_menu = by_role("button", "Actions")
    delete_selected_button = by_role("button", "Delete selected...")
    delete_from_mets_and_deposit = by_css("#deleteFromMetsAndDeposit")
    delete_from_deposit_only = by_css("#deleteFromDeposit")
    delete_item_modal_button = by_role("button", "Delete", exact=True)
    delete_deposit_button = by_role("button", "Delete Deposit")
    delete_deposit_modal_button = by_css("#deleteDepositButton")
    confirm_delete_deposit = by_role("checkbox").within(by_role("dialog"))
    release_lock_button = by_role("button", "Release lock")
    lock_button = by_role("button", "Lock deposit")
    refresh_storage_button = by_role("button", "Refresh storage")
    select_all_non_mets_button = by_role("button", "Select all non-METS")
    run_pipeline_button = by_role("button", "Run pipeline")
    cancel_pipeline_button = by_role("button", "Stop pipeline run")

    # Pipeline jobs, newest last
    pipeline_job_rows = by_role("row").within(by_role("table", "table-deposit-pipeline-jobs"))
    pipeline_job_status = by_label("td-status").within(pipeline_job_rows.nth(-1))

    # Import jobs
    create_diff_import_job_button = by_role("button", "Create diff import job")
    run_import_button = by_role("button", "Run Import (Preserve)")
    no_import_jobs_text = by_text("There are no submitted import jobs for this Deposit")

    # Rights and access conditions
    open_access_conditions_button = by_role("button", "Set rights and access conditions")
    save_access_conditions_button = by_role("button", "Save")
    close_access_conditions_button = by_role("button", "Close").nth(0)

    def get_started(self) -> None:
        self.goto()
        expect(self.base_browse_heading, "The page heading is shown").to_be_visible()

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def directory_row(self, path: str) -> Locator:
        return self.page.locator(f'[data-type="directory"][data-path="{path}"]')

    def file_row(self, path: str) -> Locator:
        return self.page.locator(f'[data-type="file"][data-path="{path}"]')

    def upload_icon_for(self, folder_path: str) -> Locator:
        return self.find("upload_file_icon", within=self.directory_row(folder_path))

    def new_folder_icon_for(self, folder_path: str) -> Locator:
        return self.find("new_folder_icon", within=self.directory_row(folder_path))

    def checkbox_for(self, row: Locator) -> Locator:
        return self.find("row_checkbox", within=row)

    def select_area_for(self, row: Locator) -> Locator:
        return row.get_by_label("select-row")

    def deposit_link(self, deposit_id: str) -> Locator:
        return self.page.get_by_role("link", name=deposit_id)

    # ------------------------------------------------------------------
    # Composite actions
    # ------------------------------------------------------------------

    def create_deposit(self, slug: Optional[str] = None, name: Optional[str] = None) -> DepositHandle:
        """
        Create a deposit from the New Deposit dialog on the current page.

        With a slug, the proposed name is typed first and the slug field is
        then retyped key by key so the page's slug generator sees every
        keystroke.
        """
        self.new_deposit_button.click()
        if slug:
            expect(self.modal_archival_slug, "Slug field has loaded").to_be_visible()
            self.modal_archival_name.fill(name or slug)
            self.modal_archival_slug.click()
            self.modal_archival_slug.clear()
            self.modal_archival_slug.press_sequentially(slug)
            expect(self.slug_display, "The slug is as expected").to_have_text(slug)
        self.modal_create_button.click()

        expect(self.page, "We have been navigated into the new Deposit page").to_have_url(DEPOSIT_URL)
        if slug:
            expect(self.page.get_by_role("heading", name=slug), "The slug is listed in the deposit title").to_be_visible()

        url = self.page.url
        handle = DepositHandle(id=deposit_id_from_url(url), url=url)
        logger.info(f"Created deposit {handle.id} through the UI", extra={"deposit_id": handle.id})
        return handle

    def update_properties(self, name: str, note: str) -> None:
        self.archival_group_name_input.fill(name)
        self.deposit_note_input.fill(note)
        self.update_properties_button.click()
        expect(self.alert_message, "Successful update message is shown").to_have_text("Deposit successfully updated")

    def check_properties(self, name: str, note: str) -> None:
        expect(self.archival_group_name_input, "The Archival Group Name is correct").to_have_value(name)
        expect(self.deposit_note_input, "The archival group Note is correct").to_have_value(note)

    def upload_file(self, local_path: str, upload_button: Locator, clear_name: bool = False,
                    expected_path: Optional[str] = None) -> None:
        upload_button.click()
        self.file_upload_widget.set_input_files(str(Path(local_path)))
        if clear_name:
            self.file_name_field.fill("")
        self.file_upload_submit_button.click()
        if expected_path:
            expect(self.file_row(expected_path), f"{expected_path} is shown in the Deposit table").to_be_visible()

    def create_sub_folder(self, new_folder_icon: Locator, title: str, expected_path: str) -> Locator:
        new_folder_icon.click()
        self.new_folder_name_input.fill(title)
        self.new_folder_dialog_button.click()
        row = self.directory_row(expected_path)
        expect(row, "The new folder has been created in the correct place in the hierarchy").to_be_visible()
        return row

    def delete_items(self, rows: Sequence[Locator], from_mets: bool = True) -> None:
        for row in rows:
            self.checkbox_for(row).click()
        self.actions_menu.click()
        self.delete_selected_button.click()
        if from_mets:
            self.delete_from_mets_and_deposit.click()
        else:
            self.delete_from_deposit_only.click()
        self.delete_item_modal_button.click()
        for row in rows:
            expect(row, "The deleted item has gone from the table").to_be_hidden()
        expect(self.alert_message, "Success message is shown").to_contain_text(f"{len(rows)} item(s) DELETED.")

    def lock(self) -> None:
        self.actions_menu.click()
        self.lock_button.click()
        expect(self.alert_message, "The banner alerting us the Deposit is locked is shown").to_contain_text("Deposit locked")

    def release_lock(self) -> None:
        self.actions_menu.click()
        expect(self.release_lock_button, "There is a menu option to release the lock").to_be_visible()
        self.release_lock_button.click()
        expect(self.alert_message, "The banner alerting us the Deposit is unlocked is shown").to_contain_text("Lock released")

    def expect_locked_by_other(self) -> None:
        expect(self.alert_message, "The banner alerting us the Deposit is locked is shown").to_contain_text(
            "This Deposit is locked by"
        )

    def expect_rows_editable(self, rows: Iterable[Locator], upload_button: Locator, editable: bool = True) -> None:
        for row in rows:
            checkbox = self.checkbox_for(row)
            if editable:
                expect(checkbox, "The row checkbox is shown").to_be_visible()
            else:
                expect(checkbox, "The row checkbox is hidden").to_be_hidden()
        if editable:
            expect(upload_button, "There is an option to upload files").to_be_visible()
        else:
            expect(upload_button, "There is no option to upload files").to_be_hidden()

    def delete_current_deposit(self, deposit_id: Optional[str] = None) -> None:
        self.actions_menu.click()
        self.delete_deposit_button.click()
        expect(self.delete_deposit_modal_button, "Delete button is initially disabled").to_be_disabled()
        self.confirm_delete_deposit.check()
        self.delete_deposit_modal_button.click()
        if deposit_id:
            expect(
                self.page.get_by_text(f"Deposit {deposit_id} successfully deleted"),
                "We see the message telling us the deposit has been deleted",
            ).to_be_visible()

    def refresh_storage(self) -> None:
        self.actions_menu.click()
        self.refresh_storage_button.click()

    def create_diff_import_job(self) -> None:
        self.create_diff_import_job_button.click()
        expect(self.run_import_button, "The diff import job has been created").to_be_visible()

    def set_access_conditions_and_rights(self, access_conditions: List[str], rights_statement: str,
                                         save: bool = True) -> None:
        self.open_access_conditions_button.click()
        self.page.select_option("#accessRestrictionsSelect", access_conditions)
        self.page.select_option("#rightsStatementSelect", rights_statement)
        if save:
            self.save_access_conditions_button.click()
        else:
            self.close_access_conditions_button.click()
        expect(self.page.get_by_role("dialog"), "The rights dialog has closed").not_to_be_visible()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run_pipeline(self) -> None:
        self.actions_menu.click()
        expect(self.cancel_pipeline_button, "Stopping the pipeline is disabled before it runs").to_be_disabled()
        self.run_pipeline_button.click()
        expect(self.alert_message, "We see the Deposit Locked message").to_contain_text(
            "Deposit locked and pipeline run message sent."
        )

    def expect_pipeline_running(self) -> None:
        """Open the Actions menu and check the deposit is locked against edits while the pipeline runs."""
        self.actions_menu.click()
        expect(self.release_lock_button, "There is a menu option to release the lock").to_be_visible()
        expect(self.lock_button, "There is no menu option to lock").to_be_hidden()
        for name in ("select_all_non_mets_button", "run_pipeline_button",
                     "delete_selected_button", "refresh_storage_button"):
            expect(getattr(self, name), f"{name.replace('_', ' ').capitalize()} is disabled").to_be_disabled()
        expect(self.cancel_pipeline_button, "Stopping the pipeline is enabled").to_be_enabled()
        expect(self.create_diff_import_job_button, "No import job while the pipeline runs").to_have_class(
            re.compile(r"\bdisabled\b")
        )

    def read_pipeline_status(self) -> Optional[str]:
        self.page.reload()
        expect(self.pipeline_job_status, "The Status of the pipeline job is visible").to_be_visible()
        text = self.pipeline_job_status.text_content()
        status = text.strip() if text else text
        if not PIPELINE_FINISHED(status):
            expect(self.alert_message, "We see the Please Refresh message").to_contain_text(
                "Please refresh for status updates"
            )
        return status

    def wait_for_pipeline(self, policy: PollPolicy, matcher: StatusMatcher = PIPELINE_FINISHED) -> str:
        status = poll_until(
            self.read_pipeline_status, matcher, policy,
            description=f"pipeline job at {self.page.url} to reach {matcher!r}",
        )
        logger.info(f"Pipeline job reached status {status}")
        return status

    def cancel_pipeline(self) -> None:
        self.actions_menu.click()
        self.cancel_pipeline_button.click()
        expect(self.pipeline_job_status, "The cancelled pipeline finished with errors").to_have_text("completedWithErrors")
        expect(self.alert_message, "We see the Pipeline cancelled banner").to_contain_text(
            "Force complete of pipeline succeeded and lock released"
        )

    def expect_unlocked(self) -> None:
        self.actions_menu.click()
        expect(self.release_lock_button, "There is no option to release a lock").to_be_hidden()
        expect(self.lock_button, "There is a menu option to lock").to_be_visible()
        self.page.keyboard.press("Escape")
