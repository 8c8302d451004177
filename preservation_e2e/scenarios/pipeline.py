"""
Run the BitCurator pipeline over a deposit through the UI.

The deposit holds two files uploaded in the browser and a PDF written
straight to its S3 location. The pipeline locks the deposit while it runs;
the deposit page is reloaded until the latest pipeline job finishes, after
which the METS carries a SHA-256 digest and a PRONOM format for each file
and the metadata/ folder holds the BitCurator reports.
"""

from playwright.sync_api import expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.mets import assert_administrative_entry, assert_digest, assert_format
from preservation_e2e.pages.archival_group import ArchivalGroupScreen
from preservation_e2e.pages.deposit import (
    ARCHIVAL_GROUP_NAME,
    BITCURATOR_REPORT,
    DEPOSIT_NOTE,
    IN_DEPOSIT_AND_METS,
    METS_FILE,
    NEW_FOLDER_PATH,
    OBJECTS_FOLDER,
    TEST_IMAGE,
    TEST_PDF_DOC,
    TEST_WORD_DOC,
    VALID_SLUG_PREFIX,
    DepositScreen,
)
from preservation_e2e.pages.navigation import TEST_ROOT, NavigationScreen
from preservation_e2e.s3_client import sha256_digest
from preservation_e2e.scenarios.deposits import delete_deposit_if_active, populate_deposit
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.utils import generate_unique_id

logger = get_logger(__name__)

DIGEST_ALGORITHM = "SHA256"
METADATA_FOLDER = "metadata"

PIPELINE_FILES = (TEST_IMAGE, TEST_WORD_DOC, TEST_PDF_DOC)

# name -> (PRONOM key, format name)
PRONOM_FORMATS = {
    TEST_WORD_DOC: ("fmt/412", "Microsoft Word for Windows"),
    TEST_PDF_DOC: ("fmt/276", "Acrobat PDF 1.7 - Portable Document Format"),
}


def prepare_pipeline_deposit(ctx, deposits: DepositScreen):
    """Create a named deposit with two browser uploads and one PDF written directly to S3."""
    api = ctx.require_api()
    storage = ctx.require_storage()
    deposits.get_started()

    slug = f"{VALID_SLUG_PREFIX}-{generate_unique_id()}".lower()
    handle = deposits.create_deposit(slug=slug)
    ctx.add_teardown(f"delete deposit {handle.id}", delete_deposit_if_active, api, handle.id)

    deposits.update_properties(ARCHIVAL_GROUP_NAME, DEPOSIT_NOTE)
    populate_deposit(ctx, deposits)

    deposit = api.get_deposit(handle.id)
    storage.upload(deposit.files, str(ctx.test_file(TEST_PDF_DOC)), f"{NEW_FOLDER_PATH}/{TEST_PDF_DOC}")
    return handle, slug


def run_pipeline_to_completion(ctx, refresh_storage: bool) -> None:
    api = ctx.require_api()
    deposits = ctx.screen(DepositScreen)
    screen = ctx.screen(ArchivalGroupScreen)
    handle, slug = prepare_pipeline_deposit(ctx, deposits)
    if refresh_storage:
        deposits.refresh_storage()

    deposits.run_pipeline()
    deposits.expect_pipeline_running()
    refused = api.patch_deposit(handle.id, submissionText="This update should fail")
    assert refused.conflict, f"PATCH during a pipeline run returned {refused.status}, expected 409"

    status = deposits.wait_for_pipeline(ctx.poll_policy(interval=5.0, timeout=420.0))
    assert status == "completed", f"Pipeline for deposit {handle.id} finished as {status!r}"
    logger.info(f"Pipeline completed for deposit {handle.id}", extra={"deposit_id": handle.id, "status": status})

    expect(deposits.alert_message, "There are no banner messages as the pipeline is complete").to_be_hidden()
    expect(
        deposits.select_area_for(deposits.file_row(BITCURATOR_REPORT)),
        "Metadata file present and listed as in both the Deposit and the METS",
    ).to_have_text(IN_DEPOSIT_AND_METS)
    deposits.expect_unlocked()

    manifest, _ = api.get_deposit_mets(handle.id)
    for name in PIPELINE_FILES:
        path = f"{NEW_FOLDER_PATH}/{name}"
        digest = sha256_digest(ctx.test_file(name).read_bytes())
        assert_digest(manifest, path, DIGEST_ALGORITHM, digest)
        expect(deposits.file_row(path).get_by_label("hash"), f"The hash of {name} is shown").to_have_text(digest[:8])
    for name, (registry_key, format_name) in PRONOM_FORMATS.items():
        path = f"{NEW_FOLDER_PATH}/{name}"
        assert_format(manifest, path, format_name, registry_key)
        row = deposits.file_row(path)
        expect(row.get_by_label("pronom"), f"The PRONOM key of {name} is shown").to_have_text(registry_key)

    # Preserve, then check the archival group holds the metadata folder as well
    deposits.create_diff_import_job()
    screen.expect_no_pending_changes()
    screen.run_import()
    screen.wait_for_job_completion(ctx.poll_policy())
    expect(screen.new_version, "The first version was created").to_have_text("v1")

    archival_group_path = f"{TEST_ROOT}/{slug}"
    screen.goto(f"{NavigationScreen.base_browse_path}/{slug}")
    expect(screen.resource_rows, "Objects, metadata and the METS are the only resources").to_have_count(3)
    expect(screen.resource_path(0), "The metadata folder is listed").to_have_text(METADATA_FOLDER)
    expect(screen.resource_path(1), "The objects folder is listed").to_have_text(OBJECTS_FOLDER)
    expect(screen.resource_path(2), "The METS file is listed").to_have_text(METS_FILE)

    preserved = api.get_archival_group_mets(archival_group_path)
    for name in (TEST_IMAGE, TEST_WORD_DOC):
        assert_administrative_entry(preserved, f"{NEW_FOLDER_PATH}/{name}")


@scenario("deposit_pipeline", "ui", timeout=600.0)
def deposit_pipeline(ctx):
    """Run the pipeline after refreshing storage and preserve the result."""
    run_pipeline_to_completion(ctx, refresh_storage=True)


@scenario("deposit_pipeline_without_refresh", "ui", timeout=600.0)
def deposit_pipeline_without_refresh(ctx):
    """The pipeline finds a file written to S3 without a storage refresh."""
    run_pipeline_to_completion(ctx, refresh_storage=False)


@scenario("deposit_pipeline_cancel", "ui", timeout=240.0)
def deposit_pipeline_cancel(ctx):
    """Stopping a running pipeline force-completes it with errors and releases the lock."""
    deposits = ctx.screen(DepositScreen)
    handle, _ = prepare_pipeline_deposit(ctx, deposits)

    deposits.run_pipeline()
    deposits.cancel_pipeline()
    logger.info(f"Pipeline cancelled for deposit {handle.id}", extra={"deposit_id": handle.id})
    deposits.expect_unlocked()
    deposits.delete_current_deposit(handle.id)
