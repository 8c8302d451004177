"""
Preserve a deposit as a new archival group through the UI.

The import job page is reloaded until the job completes, then the preserved
archival group is checked through the Presentation API and, when configured,
its binaries through the Storage API.
"""

from playwright.sync_api import expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.mets import (
    ACCESS_RESTRICTION,
    USE_AND_REPRODUCTION,
    assert_access_condition,
    assert_administrative_entry,
)
from preservation_e2e.pages.archival_group import ArchivalGroupScreen
from preservation_e2e.pages.deposit import (
    ARCHIVAL_GROUP_NAME,
    DEPOSIT_NOTE,
    DEPOSIT_URL,
    METS_FILE,
    OBJECTS_FOLDER,
    TEST_IMAGE,
    TEST_WORD_DOC,
    VALID_SLUG_PREFIX,
    DepositScreen,
    deposit_id_from_url,
)
from preservation_e2e.pages.navigation import TEST_ROOT, NavigationScreen
from preservation_e2e.scenarios.deposits import delete_deposit_if_active
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.utils import generate_unique_id

logger = get_logger(__name__)

ACCESS_CONDITION = "Restricted"
RIGHTS_STATEMENT = "No Copyright - United States"
CONTENT_TYPES = {
    TEST_IMAGE: "image/png",
    TEST_WORD_DOC: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


@scenario("archival_group", "ui", timeout=300.0)
def archival_group(ctx):
    """Create an archival group from a deposit and verify what was preserved."""
    api = ctx.require_api()
    deposits = ctx.screen(DepositScreen)
    screen = ctx.screen(ArchivalGroupScreen)
    deposits.get_started()

    slug = f"{VALID_SLUG_PREFIX}-{generate_unique_id()}".lower()
    archival_group_path = f"{TEST_ROOT}/{slug}"
    handle = deposits.create_deposit(slug=slug)
    ctx.add_teardown(f"delete deposit {handle.id}", delete_deposit_if_active, api, handle.id)

    deposits.update_properties(ARCHIVAL_GROUP_NAME, DEPOSIT_NOTE)
    for name in (TEST_IMAGE, TEST_WORD_DOC):
        deposits.upload_file(
            str(ctx.test_file(name)),
            deposits.upload_icon_for(OBJECTS_FOLDER),
            expected_path=f"{OBJECTS_FOLDER}/{name}",
        )
    deposits.set_access_conditions_and_rights([ACCESS_CONDITION], RIGHTS_STATEMENT)

    # Diff: objects plus two files and the METS, nothing to change
    deposits.create_diff_import_job()
    expect(screen.list_items(screen.containers_to_add), "Only objects is to be added").to_have_count(1)
    expect(screen.list_items(screen.binaries_to_add), "Two files and the METS are to be added").to_have_count(3)
    expect(screen.binaries_to_add, "The METS file is to be added").to_contain_text(METS_FILE)
    screen.expect_no_pending_changes()

    job_url = screen.run_import()
    logger.info(f"Import job started at {job_url}", extra={"deposit_id": handle.id, "uri": job_url})
    screen.wait_for_job_completion(ctx.poll_policy())
    expect(screen.new_version, "The first version was created").to_have_text("v1")
    expect(screen.list_items(screen.binaries_added), "Three binaries were added").to_have_count(3)
    screen.expect_no_modified_binaries()

    # Preserved state through the API
    manifest = api.get_archival_group_mets(archival_group_path)
    for name in (TEST_IMAGE, TEST_WORD_DOC):
        assert_administrative_entry(manifest, f"{OBJECTS_FOLDER}/{name}")
    assert_access_condition(manifest, ACCESS_CONDITION, ACCESS_RESTRICTION)
    assert_access_condition(manifest, RIGHTS_STATEMENT, USE_AND_REPRODUCTION)

    group = api.get_archival_group(archival_group_path)
    assert group.binary_named(METS_FILE) is not None, f"{METS_FILE} is not a binary of {archival_group_path}"

    storage = ctx.settings.storage_api_endpoint
    if storage:
        for name, content_type in CONTENT_TYPES.items():
            uri = f"{storage.rstrip('/')}/content/{archival_group_path}/{OBJECTS_FOLDER}/{name}"
            content, returned_type = api.fetch_binary(uri)
            assert returned_type.startswith(content_type), f"{uri} served as {returned_type!r}"
            assert content == ctx.test_file(name).read_bytes(), f"{uri} content differs from the upload"
    else:
        logger.warning("STORAGE_API_ENDPOINT not set; skipping binary content checks")

    # The archival group in the browser
    archival_group_url = f"{NavigationScreen.base_browse_path}/{slug}"
    screen.goto(archival_group_url)
    expect(screen.breadcrumbs.get_by_text(slug), "The archival group is the last breadcrumb").to_be_visible()
    assert ctx.settings.created_by_agent.rsplit("/", 1)[-1] in (screen.history_item("Created by") or "")

    # The source deposit is now a read-only record of the import
    deposits.goto(handle.url)
    expect(deposits.update_properties_button, "Properties can no longer be updated").to_be_disabled()
    expect(deposits.create_diff_import_job_button, "No further import can be created").to_be_hidden()

    # A further deposit from the archival group starts with its files in the METS only
    screen.create_deposit_from_archival_group(archival_group_url, copy_from_s3=False)
    expect(screen.page, "We have been navigated into the new Deposit page").to_have_url(DEPOSIT_URL)
    follow_up = deposit_id_from_url(screen.page.url)
    ctx.add_teardown(f"delete deposit {follow_up}", delete_deposit_if_active, api, follow_up)
    follow_up_mets, _ = api.get_deposit_mets(follow_up)
    for name in (TEST_IMAGE, TEST_WORD_DOC):
        assert_administrative_entry(follow_up_mets, f"{OBJECTS_FOLDER}/{name}")
    deposits.delete_current_deposit(follow_up)
