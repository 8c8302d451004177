import re

from playwright.sync_api import expect

from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.deposit import DEPOSIT_NOTE, VALID_SLUG_PREFIX
from preservation_e2e.pages.navigation import TEST_ROOT
from preservation_e2e.pages.search import (
    EXPECTED_TITLE_FOR_IRN,
    EXPECTED_TITLE_FOR_PID,
    IRN_TO_SEARCH_FOR,
    PID_TO_SEARCH_FOR,
    SearchScreen,
)
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.utils import generate_unique_id

logger = get_logger(__name__)

SEARCH_URL = re.compile(r".*/Search.*")


def check_term_variants(screen: SearchScreen, term: str, deposit_name: str) -> None:
    """The term matches exactly, case-insensitively, and as a prefix."""
    for variant, exact in ((term, True), (term.upper(), True), (term[:-2], False)):
        screen.search(variant)
        screen.check_deposit_results(deposit_name, expected=1, exact=exact)


@scenario("search", "ui", timeout=300.0)
def search(ctx):
    """Identity service lookups by PID and IRN, then deposit search by each of its fields."""
    api = ctx.require_api()
    screen = ctx.screen(SearchScreen)

    screen.search(PID_TO_SEARCH_FOR)
    screen.check_identifier_result(EXPECTED_TITLE_FOR_PID)
    expect(screen.page, "The search has its own page").to_have_url(SEARCH_URL)

    screen.search(IRN_TO_SEARCH_FOR)
    screen.check_identifier_result(EXPECTED_TITLE_FOR_IRN)

    unique_id = generate_unique_id()
    name = f"This is a unique name for a deposit {unique_id}"
    slug = f"{VALID_SLUG_PREFIX}{unique_id}"
    note = f"{DEPOSIT_NOTE}{unique_id}"
    deposit = api.create_deposit(
        archival_group=f"{api.base_url}/repository/{TEST_ROOT}/{slug}",
        archival_group_name=name,
        submission_text=note,
    )
    ctx.add_teardown(f"delete deposit {deposit.deposit_id}", api.delete_deposit, deposit.deposit_id)

    for term in (slug, deposit.deposit_id, note, name):
        check_term_variants(screen, term, name)
    logger.info(f"Deposit {deposit.deposit_id} found by every field", extra={"deposit_id": deposit.deposit_id})
