import pytest

from preservation_e2e.pages.base import LocatorDescriptor, Screen, by_css, by_label, by_role, by_text
from preservation_e2e.exceptions import PollTimeoutError
from preservation_e2e.pages.deposit import DepositScreen, deposit_id_from_url
from preservation_e2e.polling import PollPolicy
from preservation_e2e.pages.search import SearchScreen


class FakeLocator:
    """Records the chain of locator calls that produced it."""

    def __init__(self, chain=()):
        self.chain = tuple(chain)

    def _then(self, name, /, *args, **kwargs):
        return FakeLocator(self.chain + ((name, args, tuple(sorted(kwargs.items()))),))

    def get_by_role(self, role, **kwargs):
        return self._then("get_by_role", role, **kwargs)

    def get_by_label(self, text, **kwargs):
        return self._then("get_by_label", text, **kwargs)

    def get_by_text(self, text, **kwargs):
        return self._then("get_by_text", text, **kwargs)

    def get_by_placeholder(self, text, **kwargs):
        return self._then("get_by_placeholder", text, **kwargs)

    def get_by_title(self, text, **kwargs):
        return self._then("get_by_title", text, **kwargs)

    def locator(self, selector):
        return self._then("locator", selector)

    def filter(self, **kwargs):
        return self._then("filter", **kwargs)

    def nth(self, index):
        return self._then("nth", index)


class FakePage(FakeLocator):
    def __init__(self):
        super().__init__()
        self.visited = []

    def goto(self, url, **kwargs):
        self.visited.append(url)


class SampleScreen(Screen):
    path = "/browse"

    heading = by_role("heading", "Browse")
    dialog = by_role("dialog")
    save = by_role("button", "Save", exact=True).within(dialog)
    rows = by_css("tr.row").filter("Deposit").nth(2)
    notes = by_label("Notes")


class ChildScreen(SampleScreen):
    heading = by_role("heading", "Child")
    extra = by_text("Extra", exact=False)


def test_descriptor_resolves_against_page_on_access():
    page = FakePage()
    screen = SampleScreen(page)
    assert screen.heading.chain == (("get_by_role", ("heading",), (("name", "Browse"),)),)


def test_descriptor_is_resolved_fresh_each_time():
    screen = SampleScreen(FakePage())
    assert screen.heading is not screen.heading


def test_class_access_returns_descriptor():
    assert isinstance(SampleScreen.heading, LocatorDescriptor)
    assert SampleScreen.heading.attr_name == "heading"


def test_within_resolves_parent_first():
    screen = SampleScreen(FakePage())
    assert screen.save.chain == (
        ("get_by_role", ("dialog",), ()),
        ("get_by_role", ("button",), (("exact", True), ("name", "Save"))),
    )


def test_filter_and_nth_apply_after_lookup():
    screen = SampleScreen(FakePage())
    assert [step[0] for step in screen.rows.chain] == ["locator", "filter", "nth"]
    assert screen.rows.chain[1][2] == (("has_text", "Deposit"),)


def test_chained_copies_leave_original_untouched():
    base = by_role("button", "Save")
    child = base.nth(1)
    assert base.index is None
    assert child.index == 1


def test_describe():
    assert SampleScreen.save.describe() == "role='dialog' >> role='button'[name='Save']"
    assert "tr.row" in repr(SampleScreen.rows)


def test_unknown_kind_rejected():
    with pytest.raises(ValueError):
        LocatorDescriptor("xpath", "//div")


def test_locators_include_inherited_and_overridden():
    locators = ChildScreen.locators()
    assert set(locators) == {"heading", "dialog", "save", "rows", "notes", "extra"}
    assert locators["heading"].name == "Child"


def test_find_within_another_locator():
    screen = SampleScreen(FakePage())
    row = FakeLocator([("locator", ("tr",), ())])
    assert screen.find("notes", within=row).chain == (
        ("locator", ("tr",), ()),
        ("get_by_label", ("Notes",), ()),
    )


def test_goto_uses_screen_path():
    page = FakePage()
    SampleScreen(page).goto()
    SampleScreen(page).goto("/deposits")
    assert page.visited == ["/browse", "/deposits"]


def test_goto_without_path_fails():
    with pytest.raises(ValueError):
        Screen(FakePage()).goto()


def test_deposit_rows_are_addressed_by_data_path():
    screen = DepositScreen(FakePage())
    row = screen.file_row("objects/test_image.png")
    assert row.chain == (("locator", ('[data-type="file"][data-path="objects/test_image.png"]',), ()),)


def test_deposit_id_from_url():
    assert deposit_id_from_url("https://ui.example.org/deposits/abcd1234efgh") == "abcd1234efgh"
    with pytest.raises(ValueError):
        deposit_id_from_url("https://ui.example.org/browse")


class RecordingLocator:
    """Logs reads and clicks in order, alongside the waits logged by RecordingExpect."""

    def __init__(self, events, path="", tab_count="3", row_count=4):
        self.events = events
        self.path = path
        self.tab_count = tab_count
        self.row_count = row_count

    def _child(self, step):
        return RecordingLocator(self.events, f"{self.path}>{step}" if self.path else step,
                                self.tab_count, self.row_count)

    def get_by_role(self, role, **kwargs):
        return self._child(f"{role}:{kwargs.get('name', '')}")

    def get_by_label(self, text, **kwargs):
        return self._child(text)

    def get_by_text(self, text, **kwargs):
        return self._child(text)

    def filter(self, has_text=None):
        return self._child(f"has:{has_text}")

    def nth(self, index):
        return self._child(f"nth:{index}")

    @property
    def first(self):
        return self._child("first")

    def text_content(self):
        self.events.append(("read", self.path))
        return self.tab_count if self.path.endswith("deposit-tab-count") else "0"

    def count(self):
        self.events.append(("count", self.path))
        return self.row_count

    def click(self):
        self.events.append(("click", self.path))


class RecordingExpect:
    def __init__(self, locator):
        self.locator = locator

    def __getattr__(self, assertion):
        def check(*args, **kwargs):
            self.locator.events.append(("wait", self.locator.path, assertion))
        return check


@pytest.fixture
def search_screen(monkeypatch):
    monkeypatch.setattr("preservation_e2e.pages.search.expect", lambda locator, message=None: RecordingExpect(locator))
    return SearchScreen(RecordingLocator([]))


def first_index(events, kind, fragment):
    return next(i for i, (k, path, *_) in enumerate(events) if k == kind and fragment in path)


def test_partial_search_waits_for_counts_before_reading(search_screen):
    rows = search_screen.check_deposit_results("Box", expected=2, exact=False)
    events = search_screen.page.events

    assert rows == 3
    assert first_index(events, "wait", "deposit-tab-count") < first_index(events, "read", "deposit-tab-count")
    row_wait = first_index(events, "wait", "table-deposit-files>row:>nth:2")
    assert row_wait < first_index(events, "count", "table-deposit-files")


def test_exact_search_waits_for_record_total_before_counting_rows(search_screen):
    search_screen.page.row_count = 2
    search_screen.page.tab_count = "1"
    assert search_screen.check_deposit_results("Box", expected=1) == 1
    events = search_screen.page.events
    assert first_index(events, "wait", "1 records found") < first_index(events, "count", "table-deposit-files")
    assert not [e for e in events if e[0] == "read"]


class PipelineLocator(RecordingLocator):
    def __init__(self, events, path="", state=None):
        super().__init__(events, path)
        self.state = state if state is not None else {"current": None}

    def _child(self, step):
        return PipelineLocator(self.events, f"{self.path}>{step}" if self.path else step, self.state)

    def text_content(self):
        return self.state["current"] if self.path.endswith("td-status") else ""


class PipelinePage(PipelineLocator):
    """Deposit page whose latest pipeline job reports the next status on every reload."""

    url = "https://ui.example.org/deposits/abcd1234efgh"

    def __init__(self, statuses):
        super().__init__([])
        self.statuses = list(statuses)

    def reload(self):
        self.events.append(("reload", ""))
        if self.statuses:
            self.state["current"] = self.statuses.pop(0)


@pytest.fixture
def pipeline_screen(monkeypatch):
    monkeypatch.setattr("preservation_e2e.pages.deposit.expect", lambda locator, message=None: RecordingExpect(locator))

    def make(*statuses):
        return DepositScreen(PipelinePage(statuses))
    return make


def refresh_banner_waits(events):
    return [e for e in events if e[0] == "wait" and e[1] == "alert:" and e[2] == "to_contain_text"]


def test_pipeline_status_is_read_from_the_latest_job():
    steps = DepositScreen(FakePage()).pipeline_job_status.chain
    assert steps == (
        ("get_by_role", ("table",), (("name", "table-deposit-pipeline-jobs"),)),
        ("get_by_role", ("row",), ()),
        ("nth", (-1,), ()),
        ("get_by_label", ("td-status",), ()),
    )


def test_pipeline_wait_reloads_until_completed(pipeline_screen):
    screen = pipeline_screen("waiting", "running", "completed")
    assert screen.wait_for_pipeline(PollPolicy(interval=0.01, timeout=5.0)) == "completed"
    events = screen.page.events
    assert [e for e in events if e[0] == "reload"] == [("reload", "")] * 3
    assert len(refresh_banner_waits(events)) == 2


def test_pipeline_wait_accepts_completed_with_errors(pipeline_screen):
    screen = pipeline_screen("running", "completedWithErrors")
    assert screen.wait_for_pipeline(PollPolicy(interval=0.01, timeout=5.0)) == "completedWithErrors"
    assert len(refresh_banner_waits(screen.page.events)) == 1


def test_pipeline_wait_times_out_with_last_status(pipeline_screen):
    screen = pipeline_screen(*["running"] * 50)
    with pytest.raises(PollTimeoutError) as excinfo:
        screen.wait_for_pipeline(PollPolicy(interval=0.01, timeout=0.05))
    assert excinfo.value.last_value == "running"


def test_pipeline_running_checks_the_menu_is_locked(pipeline_screen):
    screen = pipeline_screen()
    screen.expect_pipeline_running()
    events = screen.page.events
    assert events[0] == ("click", "button:Actions")
    disabled = {path for kind, path, *rest in events if kind == "wait" and rest == ["to_be_disabled"]}
    assert disabled == {
        "button:Select all non-METS", "button:Run pipeline", "button:Delete selected...", "button:Refresh storage",
    }
    assert ("wait", "button:Stop pipeline run", "to_be_enabled") in events
    assert ("wait", "button:Create diff import job", "to_have_class") in events
