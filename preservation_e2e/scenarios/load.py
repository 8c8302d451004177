"""
Load scenarios.

These push larger volumes through the same flows as the api and ui suites.
Their inputs come from the environment (FILES_SOURCE_DIR, SOURCE_DEPOSIT,
LOAD_FOLDER_DEPTH, LOAD_FOLDER_BREADTH) and they are meant to be run with
several workers at once.
"""

import time
from pathlib import Path
from typing import List

from preservation_e2e.exceptions import ConfigurationError
from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.container import ContainerScreen
from preservation_e2e.pages.deposit import METS_FILE, OBJECTS_FOLDER
from preservation_e2e.pages.navigation import TEST_ROOT, NavigationScreen
from preservation_e2e.scenarios.api_import import dated_archival_group_uri, preserve, verify_preserved
from preservation_e2e.scenarios.containers import delete_container_if_present
from preservation_e2e.scenarios.deposits import delete_deposit_if_active
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.utils import format_duration, format_throughput, generate_unique_id, second_of_day

logger = get_logger(__name__)

GOOBI_TESTS_ROOT = "goobi-tests/basic-1"
CLONE_TESTS_ROOT = "native-tests/basic-1"


@scenario("load_api_create_deposit", "load", timeout=1800.0, needs_browser=False)
def load_api_create_deposit(ctx):
    """Preserve every file under FILES_SOURCE_DIR, described by its own mets.xml."""
    ctx.settings.require("files_source_dir")
    api = ctx.require_api()
    storage = ctx.require_storage()

    source = Path(ctx.settings.files_source_dir)
    if not (source / METS_FILE).is_file() or not (source / OBJECTS_FOLDER).is_dir():
        raise ConfigurationError(f"FILES_SOURCE_DIR {source} must hold {METS_FILE} and an {OBJECTS_FOLDER}/ folder")

    archival_group_uri = dated_archival_group_uri(api, GOOBI_TESTS_ROOT)
    deposit = api.create_deposit()
    ctx.add_teardown(f"delete deposit {deposit.deposit_id}", delete_deposit_if_active, api, deposit.deposit_id)

    started = time.monotonic()
    storage.upload(deposit.files, str(source / METS_FILE), METS_FILE)
    paths = storage.upload_directory(deposit.files, str(source / OBJECTS_FOLDER), prefix=OBJECTS_FOLDER)
    total_bytes = sum(p.stat().st_size for p in (source / OBJECTS_FOLDER).rglob("*") if p.is_file())
    elapsed = time.monotonic() - started
    logger.info(
        f"Uploaded {len(paths)} file(s) in {format_duration(elapsed)} ({format_throughput(total_bytes, elapsed)})",
        extra={"deposit_id": deposit.deposit_id, "duration_ms": int(elapsed * 1000)},
    )

    patched = api.patch_deposit(
        deposit,
        archivalGroup=archival_group_uri,
        submissionText="You can write what you like here",
    ).require_success()
    assert archival_group_uri in patched.body, f"PATCH did not set the archival group: {patched.body}"

    started = time.monotonic()
    preserve(ctx, deposit, archival_group_uri)
    elapsed = time.monotonic() - started
    logger.info(
        f"Preserved {len(paths)} file(s) in {format_duration(elapsed)}",
        extra={"deposit_id": deposit.deposit_id, "duration_ms": int(elapsed * 1000)},
    )
    verify_preserved(ctx, archival_group_uri, paths)


@scenario("load_api_clone_deposit", "load", timeout=1800.0, needs_browser=False)
def load_api_clone_deposit(ctx):
    """Copy the working files of SOURCE_DEPOSIT into an empty deposit and preserve them."""
    ctx.settings.require("source_deposit")
    api = ctx.require_api()
    storage = ctx.require_storage()

    archival_group_uri = dated_archival_group_uri(api, CLONE_TESTS_ROOT, prefix="load-test")
    sod = second_of_day()
    deposit = api.create_deposit(
        template="None",
        archival_group=archival_group_uri,
        archival_group_name=f"Deposit for load test {sod}",
        submission_text="An empty deposit we will copy files into, including METS",
    )
    ctx.add_teardown(f"delete deposit {deposit.deposit_id}", delete_deposit_if_active, api, deposit.deposit_id)

    copied = storage.clone_prefix(ctx.settings.source_deposit, deposit.files)
    assert copied > 0, f"Nothing to copy under {ctx.settings.source_deposit}"

    preserve(ctx, deposit, archival_group_uri)
    group = api.get_archival_group(archival_group_uri)
    assert group.binary_named(METS_FILE) is not None, f"{archival_group_uri} has no {METS_FILE} binary"


def build_folder_tree(ctx, screen: ContainerScreen, parent_path: str, slug: str, title: str,
                      depth: int, breadth: int) -> List[str]:
    """
    Create ``breadth`` child folders under the open container, then recurse into each.

    Children are named ``{slug}-{n}`` / ``{title} {n}``. Every folder gets a
    teardown step, so they are removed deepest first.
    """
    created = []
    children = []
    for n in range(1, breadth + 1):
        child_slug = f"{slug}-{n}"
        child_title = f"{title} {n}"
        child_path = f"{parent_path}/{child_slug}"
        screen.create_container(child_slug, child_title)
        ctx.add_teardown(f"delete container {child_path}", delete_container_if_present, ctx.api, child_path)
        created.append(child_path)
        children.append((child_path, child_slug, child_title))

    if depth > 1:
        for child_path, child_slug, child_title in children:
            screen.goto(f"/browse/{parent_path}")
            screen.open_container(child_title)
            created.extend(build_folder_tree(ctx, screen, child_path, child_slug, child_title, depth - 1, breadth))
    return created


@scenario("load_ui_container_depth", "load", timeout=3600.0, needs_browser=True)
def load_ui_container_depth(ctx):
    """Create a nested folder tree through the New Folder dialog."""
    api = ctx.require_api()
    screen = ctx.screen(ContainerScreen)
    depth = ctx.settings.load_folder_depth
    breadth = ctx.settings.load_folder_breadth
    if depth < 1 or breadth < 1:
        raise ConfigurationError("LOAD_FOLDER_DEPTH and LOAD_FOLDER_BREADTH must both be at least 1")

    screen.get_started()
    unique_id = generate_unique_id()
    root_slug = f"{screen.container_slug}-{unique_id}".lower()
    root_path = f"{TEST_ROOT}/{root_slug}"

    # Without a title the folder is listed by its slug
    screen.create_container(root_slug, "")
    screen.expect_alert(root_slug)
    ctx.add_teardown(f"delete container {root_path}", delete_container_if_present, api, root_path)
    screen.open_container(root_slug)

    started = time.monotonic()
    created = build_folder_tree(ctx, screen, root_path, unique_id, unique_id, depth, breadth)
    elapsed = time.monotonic() - started
    logger.info(
        f"Created {len(created)} folder(s) {depth} deep in {format_duration(elapsed)}",
        extra={"scenario": ctx.scenario_name, "duration_ms": int(elapsed * 1000)},
    )

    # The deepest first-born folder is reachable by clicking down from the root
    screen.goto(NavigationScreen.base_browse_path)
    screen.open_container(root_slug)
    title = unique_id
    for _ in range(depth):
        title = f"{title} 1"
        screen.open_container(title)
    screen.expect_visible(screen.breadcrumb_link(root_slug), "The root folder is in the breadcrumbs")

    for path in created:
        assert api.resource_exists(path), f"{path} was not created"
