from typing import Optional

from preservation_e2e.api_client import PresentationApiClient
from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.container import ContainerScreen
from preservation_e2e.pages.navigation import TEST_ROOT, NavigationScreen
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.schemas import Container, ResourceType
from preservation_e2e.utils import check_date_within_seconds, generate_unique_id

logger = get_logger(__name__)

VERIFICATION_SLUG_PREFIX = "playwright-container-testing"


def delete_container_if_present(api: PresentationApiClient, path: str) -> None:
    if api.resource_exists(path):
        api.delete_resource(path)


def verify_new_container(container: Container, path: str, created_by: str, name: Optional[str] = None,
                         max_age_seconds: float = 30.0) -> None:
    """A freshly created, empty container as reported by the API."""
    assert container.type == ResourceType.CONTAINER.value, f"Type is {container.type!r}, expected Container"
    assert container.id.rstrip("/").endswith(path.strip("/")), f"ID {container.id!r} does not end with {path!r}"
    if name is not None:
        assert container.name == name, f"Name is {container.name!r}, expected {name!r}"
    assert container.containers == [], f"Containers is not empty: {container.containers}"
    assert container.binaries == [], f"Binaries is not empty: {container.binaries}"
    assert container.created is not None, "Created date is missing"
    assert container.last_modified == container.created, (
        f"Created ({container.created}) and last modified ({container.last_modified}) dates differ"
    )
    check_date_within_seconds(container.created.isoformat(), max_age_seconds)
    assert created_by in (container.created_by or ""), f"createdBy is {container.created_by!r}"
    assert created_by in (container.last_modified_by or ""), f"lastModifiedBy is {container.last_modified_by!r}"


def verify_deleted(api: PresentationApiClient, path: str) -> None:
    assert not api.resource_exists(path), f"{path} can still be retrieved after deletion"


@scenario("container_verification", "api", timeout=120.0)
def container_verification(ctx):
    """Create, verify and delete a container through the API."""
    api = ctx.require_api()
    api.ensure_path(TEST_ROOT)

    path = f"{TEST_ROOT}/{VERIFICATION_SLUG_PREFIX}-{generate_unique_id()}"
    api.create_container(path)
    ctx.add_teardown(f"delete container {path}", delete_container_if_present, api, path)

    verify_new_container(api.get_container(path), path, ctx.settings.created_by_agent)
    api.delete_resource(path)
    verify_deleted(api, path)
    logger.info(f"Verified container lifecycle for {path}", extra={"scenario": ctx.scenario_name})


@scenario("create_container", "ui", timeout=180.0)
def create_container(ctx):
    """
    Create a container through the New Folder dialog and check it in the API.

    The dialog now derives and sanitises slugs itself and does not yet reject
    an existing slug, so neither case is asserted here.
    """
    api = ctx.require_api()
    screen = ctx.screen(ContainerScreen)
    unique_id = generate_unique_id()
    title = f"{screen.container_title} {unique_id}"
    slug = f"{screen.container_slug}-{unique_id}".lower()
    path = f"{TEST_ROOT}/{slug}"

    screen.get_started()
    screen.create_container(slug, title)
    ctx.add_teardown(f"delete container {path}", delete_container_if_present, api, path)
    screen.expect_visible(screen.folder_link(title), "The new Container is visible on the page")
    screen.expect_visible(screen.container_row(title).get_by_role("cell").nth(1), "The new Container row is shown")

    verify_new_container(api.get_container(path), path, ctx.settings.created_by_agent, name=title)

    screen.open_container(title)
    api.delete_resource(path)
    verify_deleted(api, path)


@scenario("navigation", "ui", timeout=60.0)
def navigation(ctx):
    """The left-hand navigation links lead to their pages."""
    screen = ctx.screen(NavigationScreen)
    screen.go_to_test_root()
    screen.open_dashboard()
    screen.open_browse()
    screen.open_deposits()
