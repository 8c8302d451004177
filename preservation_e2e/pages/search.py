import re
from typing import Optional

from playwright.sync_api import Locator, expect

from preservation_e2e.pages.base import Screen, by_label, by_role
from preservation_e2e.pages.navigation import NavigationScreen

PID_TO_SEARCH_FOR = "pdc7mlqc"
EXPECTED_TITLE_FOR_PID = "UAT Test 1"
IRN_TO_SEARCH_FOR = "1000008"
EXPECTED_TITLE_FOR_IRN = "UAT Test 8"

NON_ZERO_COUNT = re.compile(r"^\s*[1-9]\d*\s*$")


class SearchScreen(Screen):
    """Global search box and the per-service result tabs."""

    path = NavigationScreen.base_browse_path

    search_box = by_role("textbox", "Search")
    fedora_tab = by_role("tab", "Fedora")
    deposit_tab = by_role("tab", "Deposit")
    identifier_tab = by_role("tab", "Identifier")
    faq_tab = by_role("tab", "FAQ")
    all_tabs = by_role("tab").within(by_role("tablist"))

    fedora_tab_count = by_label("fedora-tab-count").within(fedora_tab)
    deposit_tab_count = by_label("deposit-tab-count").within(deposit_tab)
    identifier_tab_count = by_label("identifier-tab-count").within(identifier_tab)

    identifier_tab_heading = by_role("heading", "Identifier")
    identifier_item_name = by_label("td-identifier-title")
    deposit_tab_heading = by_role("heading", "Deposits")
    deposit_item_name = by_label("td-deposits-ArchivalGroupName")
    results_table_rows = by_role("row").within(by_role("table", "table-deposit-files"))

    def check_all_tabs_present(self) -> None:
        expect(self.fedora_tab, "The Fedora results tab is visible").to_be_visible()
        expect(self.deposit_tab, "The Deposits results tab is visible").to_be_visible()
        expect(self.identifier_tab, "The Identifier results tab is visible").to_be_visible()
        expect(self.faq_tab, "The FAQ results tab is visible").to_be_visible()
        expect(self.all_tabs, "There are only 4 tabs").to_have_count(4)

    def search(self, term: str) -> None:
        self.goto()
        self.search_box.fill(term)
        self.search_box.press("Enter")
        self.check_all_tabs_present()

    @staticmethod
    def count_of(locator: Locator) -> int:
        text = locator.text_content() or "0"
        return int(text.strip() or 0)

    def check_identifier_result(self, expected_title: str) -> None:
        expect(self.identifier_tab_count, "One identifier matches").to_have_text("1")
        self.identifier_tab.click()
        expect(self.identifier_tab_heading, "The tab header is correct and visible").to_be_visible()
        expect(self.identifier_item_name, "The Item name is correct in the result").to_have_text(expected_title)

    def check_deposit_results(self, deposit_name: str, expected: int = 1, exact: bool = True) -> Optional[int]:
        """
        Check the deposit tab for ``deposit_name``.

        With exact the tab count and the listed rows must equal ``expected``;
        otherwise at least ``expected`` results are required (partial terms
        may match other deposits). The other services must find nothing.
        """
        if exact:
            expect(self.deposit_tab_count, "The deposit tab count is correct").to_have_text(str(expected))
        else:
            expect(self.deposit_tab_count, "The deposit tab count has rendered").to_have_text(NON_ZERO_COUNT)
            found = self.count_of(self.deposit_tab_count)
            assert found >= expected, f"Expected at least {expected} deposit results, found {found}"
        expect(self.fedora_tab_count, "No Fedora results").to_have_text("0")
        expect(self.identifier_tab_count, "No identifier results").to_have_text("0")

        self.deposit_tab.click()
        expect(self.deposit_tab_heading, "The tab header is correct and visible").to_be_visible()
        expect(
            self.deposit_item_name.filter(has_text=deposit_name).first,
            "The Item name is correct in the result",
        ).to_be_visible()

        if exact:
            expect(self.page.get_by_text(f"{expected} records found"), "The correct number of results are listed").to_be_visible()
        # row 0 is the header
        expect(self.results_table_rows.nth(expected), f"At least {expected} result rows are listed").to_be_visible()
        rows = self.results_table_rows.count() - 1
        if exact:
            assert rows == expected, f"Expected {expected} result rows, found {rows}"
        else:
            assert rows >= expected, f"Expected at least {expected} result rows, found {rows}"
        return rows
