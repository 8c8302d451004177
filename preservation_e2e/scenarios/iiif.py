from playwright.sync_api import expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.archival_group import ArchivalGroupScreen
from preservation_e2e.pages.deposit import DEPOSIT_URL, NEW_FOLDER_PATH, TEST_IMAGE, DepositScreen, deposit_id_from_url
from preservation_e2e.pages.iiif import ARCHIVAL_GROUP_PATH, ARCHIVAL_GROUP_PID, IIIFScreen, check_manifest_rewritten
from preservation_e2e.polling import poll_until
from preservation_e2e.scenarios.deposits import delete_deposit_if_active
from preservation_e2e.scenarios.registry import scenario

logger = get_logger(__name__)

EXPORTING_MESSAGE = "The server is currently exporting files into this Deposit"
CANVASES_WITH_IMAGE = 4
CANVASES_WITHOUT_IMAGE = 3


@scenario("iiif_manifest", "ui", timeout=600.0)
def iiif_manifest(ctx):
    """A new version of a preserved item is republished in its IIIF manifest."""
    api = ctx.require_api()
    deposits = ctx.screen(DepositScreen)
    screen = ctx.screen(ArchivalGroupScreen)

    screen.create_deposit_from_archival_group(ARCHIVAL_GROUP_PATH, copy_from_s3=True)
    expect(screen.page, "We have been navigated into the new Deposit page").to_have_url(DEPOSIT_URL)
    deposit_id = deposit_id_from_url(screen.page.url)
    ctx.add_teardown(f"delete deposit {deposit_id}", delete_deposit_if_active, api, deposit_id)

    exporting = screen.page.get_by_text(EXPORTING_MESSAGE)

    def exporting_banners() -> int:
        screen.page.reload()
        return exporting.count()

    poll_until(exporting_banners, lambda count: count == 0, ctx.poll_policy(),
               description=f"export into deposit {deposit_id} to finish")

    # Alternate between versions with and without the image on each run
    image_row = deposits.file_row(f"{NEW_FOLDER_PATH}/{TEST_IMAGE}")
    if image_row.is_visible():
        deposits.delete_items([image_row])
        expected_canvases = CANVASES_WITHOUT_IMAGE
    else:
        deposits.upload_file(
            str(ctx.test_file(TEST_IMAGE)),
            deposits.upload_icon_for(NEW_FOLDER_PATH),
            expected_path=f"{NEW_FOLDER_PATH}/{TEST_IMAGE}",
        )
        expected_canvases = CANVASES_WITH_IMAGE

    deposits.create_diff_import_job()
    screen.run_import()
    screen.wait_for_job_completion(ctx.poll_policy())

    viewer = ctx.screen(IIIFScreen)
    viewer.goto()
    expect(viewer.archival_group_heading, "The archival group page has loaded").to_be_visible()
    manifest_tab = viewer.open_manifest()
    try:
        manifest = viewer.read_manifest(manifest_tab)
        assert manifest.get("type") == "Manifest", f"Manifest type is {manifest.get('type')!r}"
        assert ARCHIVAL_GROUP_PID in manifest.get("id", ""), f"Manifest id {manifest.get('id')!r} is for another item"

        # The builder can take minutes to consume the activity stream
        policy = ctx.poll_policy(interval=30.0, timeout=ctx.scenario_timeout - 180.0)
        manifest = viewer.wait_for_canvas_count(manifest_tab, expected_canvases, policy)

        domain = ctx.settings.leeds_domain
        if domain:
            expected_id = f"{domain}/presentation/cc/{ARCHIVAL_GROUP_PID}"
            assert manifest["id"] == expected_id, f"Manifest id is {manifest['id']!r}, expected {expected_id!r}"
            check_manifest_rewritten(manifest, domain)
        else:
            logger.warning("LEEDS_DOMAIN not set; skipping manifest rewrite checks")
    finally:
        manifest_tab.close()
