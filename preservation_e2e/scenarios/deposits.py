from preservation_e2e.exceptions import ApiStatusError
from preservation_e2e.logging_config import get_logger
from preservation_e2e.mets import assert_absent, assert_digest, assert_file_present, assert_folder_absent
from preservation_e2e.pages.deposit import (
    ARCHIVAL_GROUP_NAME,
    DEPOSIT_NOTE,
    METS_FILE,
    NEW_FOLDER_PATH,
    NEW_FOLDER_TITLE,
    OBJECTS_FOLDER,
    TEST_IMAGE,
    TEST_WORD_DOC,
    VALID_SLUG_PREFIX,
    DepositScreen,
)
from preservation_e2e.s3_client import sha256_digest
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.utils import generate_unique_id

logger = get_logger(__name__)

TEST_FOLDER_SEGMENTS = (OBJECTS_FOLDER, NEW_FOLDER_TITLE)


def delete_deposit_if_active(api, deposit_id: str) -> None:
    """Preserved deposits become inactive and stay as a record of the import."""
    try:
        deposit = api.get_deposit(deposit_id)
    except ApiStatusError as e:
        if e.status == 404:
            return
        raise
    if deposit.active is False:
        logger.debug(f"Deposit {deposit_id} is inactive, leaving it", extra={"deposit_id": deposit_id})
        return
    api.delete_deposit(deposit_id)


def populate_deposit(ctx, screen: DepositScreen) -> None:
    """Add the test sub-folder under objects and upload the image and Word document into it."""
    screen.create_sub_folder(screen.new_folder_icon_for(OBJECTS_FOLDER), NEW_FOLDER_TITLE, NEW_FOLDER_PATH)
    for name in (TEST_IMAGE, TEST_WORD_DOC):
        screen.upload_file(
            str(ctx.test_file(name)),
            screen.upload_icon_for(NEW_FOLDER_PATH),
            expected_path=f"{NEW_FOLDER_PATH}/{name}",
        )


@scenario("deposit_lifecycle", "ui", timeout=240.0)
def deposit_lifecycle(ctx):
    """Create a deposit, edit it, upload files and check its METS before and after deletion."""
    api = ctx.require_api()
    screen = ctx.screen(DepositScreen)
    screen.get_started()

    slug = f"{VALID_SLUG_PREFIX}-{generate_unique_id()}".lower()
    handle = screen.create_deposit(slug=slug)
    ctx.add_teardown(f"delete deposit {handle.id}", api.delete_deposit, handle.id)

    screen.expect_visible(screen.directory_row(OBJECTS_FOLDER), "The objects folder is listed")
    screen.expect_visible(screen.file_row(METS_FILE), "The METS file is listed")

    screen.update_properties(ARCHIVAL_GROUP_NAME, DEPOSIT_NOTE)
    screen.page.reload()
    screen.check_properties(ARCHIVAL_GROUP_NAME, DEPOSIT_NOTE)

    populate_deposit(ctx, screen)

    image_path = f"{NEW_FOLDER_PATH}/{TEST_IMAGE}"
    word_path = f"{NEW_FOLDER_PATH}/{TEST_WORD_DOC}"

    manifest, _ = api.get_deposit_mets(handle.id)
    assert_file_present(manifest, image_path, TEST_FOLDER_SEGMENTS, TEST_IMAGE, mime_type="image/png")
    assert_file_present(manifest, word_path, TEST_FOLDER_SEGMENTS, TEST_WORD_DOC)
    assert_digest(manifest, image_path, "SHA256", sha256_digest(ctx.test_file(TEST_IMAGE).read_bytes()))
    logger.info(f"METS lists both uploads for deposit {handle.id}", extra={"deposit_id": handle.id})

    screen.delete_items([screen.file_row(image_path)])
    manifest, _ = api.get_deposit_mets(handle.id)
    assert_absent(manifest, image_path, TEST_IMAGE)
    assert_file_present(manifest, word_path, TEST_FOLDER_SEGMENTS, TEST_WORD_DOC)

    screen.delete_items([screen.file_row(word_path)])
    screen.delete_items([screen.directory_row(NEW_FOLDER_PATH)])
    manifest, _ = api.get_deposit_mets(handle.id)
    assert_absent(manifest, word_path, TEST_WORD_DOC)
    assert_folder_absent(manifest, NEW_FOLDER_PATH, NEW_FOLDER_TITLE)

    screen.delete_current_deposit(handle.id)
