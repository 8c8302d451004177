from playwright.sync_api import expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.deposit import (
    NEW_FOLDER_PATH,
    TEST_IMAGE,
    TEST_WORD_DOC,
    VALID_SLUG_PREFIX,
    DepositScreen,
)
from preservation_e2e.scenarios.deposits import populate_deposit
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.schemas import LockOutcome
from preservation_e2e.utils import generate_unique_id

logger = get_logger(__name__)

LOCKED_CONFLICT_MESSAGE = "Conflict: Deposit is locked by another user:"


@scenario("deposit_locking", "ui", timeout=300.0)
def deposit_locking(ctx):
    """A deposit locked by one identity is read-only to the other until released or forced."""
    api = ctx.require_api()
    screen = ctx.screen(DepositScreen)
    screen.get_started()

    slug = f"{VALID_SLUG_PREFIX}-{generate_unique_id()}".lower()
    handle = screen.create_deposit(slug=slug)
    ctx.add_teardown(f"delete deposit {handle.id}", api.delete_deposit, handle.id)
    populate_deposit(ctx, screen)

    rows = [screen.file_row(f"{NEW_FOLDER_PATH}/{name}") for name in (TEST_IMAGE, TEST_WORD_DOC)]
    upload_button = screen.upload_icon_for(NEW_FOLDER_PATH)

    # Locked by the API identity: the UI user can neither import nor edit
    assert api.lock_deposit(handle.id) is LockOutcome.LOCKED, "The API could not lock a fresh deposit"
    screen.page.reload()
    screen.expect_locked_by_other()

    screen.create_diff_import_job_button.click()
    screen.run_import_button.click()
    expect(screen.alert_message, "The import is refused while the deposit is locked").to_contain_text(
        LOCKED_CONFLICT_MESSAGE
    )
    expect(screen.run_import_button, "The job did not progress").to_be_visible()

    screen.page.goto(handle.url)
    screen.expect_rows_editable(rows, upload_button, editable=False)
    screen.release_lock()
    screen.expect_rows_editable(rows, upload_button, editable=True)

    # Locked by the UI user: the API identity is refused until it forces the lock
    screen.lock()
    refused = api.patch_deposit(handle.id, submissionText="This update should fail")
    assert refused.conflict, f"PATCH of a deposit locked in the UI returned {refused.status}, expected 409"
    assert api.lock_deposit(handle.id) is LockOutcome.CONFLICT, "A second identity took the lock without force"
    assert api.lock_deposit(handle.id, force=True) is LockOutcome.LOCKED, "Forcing the lock failed"

    api.patch_deposit(handle.id, submissionText="This update should work").require_success()
    logger.info(f"Forced the lock on deposit {handle.id}", extra={"deposit_id": handle.id})

    screen.page.reload()
    expect(screen.deposit_note_input, "We see the updated note on the page").to_have_value("This update should work")
    screen.release_lock()

    screen.page.goto(handle.url)
    screen.delete_current_deposit(handle.id)
