import pytest

from preservation_e2e.exceptions import ApiStatusError, PollTimeoutError, ResourceNotReady, TransientApiError
from preservation_e2e.polling import PollPolicy, StatusMatcher, poll_until, wait_for_status


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def sequence(*values):
    items = list(values)

    def observe():
        value = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(value, Exception):
            raise value
        return value

    return observe


@pytest.fixture
def clock():
    return FakeClock()


def test_returns_first_matching_value_without_sleeping(clock):
    value = poll_until(lambda: "done", lambda v: v == "done", PollPolicy(1, 10), clock=clock, sleep=clock.sleep)
    assert value == "done"
    assert clock.sleeps == []


def test_polls_until_predicate_holds(clock):
    observe = sequence("waiting", "running", "completed")
    value = poll_until(observe, StatusMatcher.exact("completed"), PollPolicy(2, 60), clock=clock, sleep=clock.sleep)
    assert value == "completed"
    assert clock.sleeps == [2, 2]


def test_timeout_carries_last_observed_value(clock):
    with pytest.raises(PollTimeoutError) as excinfo:
        poll_until(lambda: "running", lambda v: v == "completed", PollPolicy(2, 5),
                   description="import job", clock=clock, sleep=clock.sleep)
    err = excinfo.value
    assert err.last_value == "running"
    assert err.description == "import job"
    assert err.attempts == 4
    assert err.elapsed == pytest.approx(5)
    assert "running" in str(err)


def test_last_sleep_is_clipped_to_deadline(clock):
    with pytest.raises(PollTimeoutError):
        poll_until(lambda: 1, lambda v: False, PollPolicy(2, 5), clock=clock, sleep=clock.sleep)
    assert clock.sleeps == [2, 2, 1]


def test_retryable_errors_keep_polling(clock):
    observe = sequence(ResourceNotReady("404"), TransientApiError("503"), "ready")
    assert poll_until(observe, lambda v: v == "ready", PollPolicy(1, 10), clock=clock, sleep=clock.sleep) == "ready"


def test_timeout_after_only_retryable_errors_reports_error(clock):
    with pytest.raises(PollTimeoutError) as excinfo:
        poll_until(sequence(ResourceNotReady("not there")), lambda v: True, PollPolicy(1, 2),
                   clock=clock, sleep=clock.sleep)
    assert excinfo.value.last_value is None
    assert isinstance(excinfo.value.last_error, ResourceNotReady)
    assert "not there" in str(excinfo.value)


def test_fatal_errors_propagate_immediately(clock):
    observe = sequence(ApiStatusError("GET", "/deposits/x", 500, "boom"), "ready")
    with pytest.raises(ApiStatusError):
        poll_until(observe, lambda v: True, PollPolicy(1, 10), clock=clock, sleep=clock.sleep)
    assert clock.sleeps == []


def test_exact_matcher_does_not_match_substrings():
    matcher = StatusMatcher.exact("completed")
    assert matcher("completed")
    assert not matcher("completed-with-errors")
    assert not matcher(None)


def test_pattern_matcher_matches_whole_value():
    matcher = StatusMatcher.pattern("completed|completed-with-errors")
    assert matcher.is_pattern
    assert matcher("completed-with-errors")
    assert not matcher("not-completed")


@pytest.mark.parametrize("interval, timeout", [(0, 10), (-1, 10), (5, 2)])
def test_policy_rejects_invalid_values(interval, timeout):
    with pytest.raises(ValueError):
        PollPolicy(interval, timeout)


def test_policy_from_millis():
    assert PollPolicy.from_millis(500, 30000) == PollPolicy(0.5, 30.0)


def test_wait_for_status_returns_body_after_two_fetches(clock):
    bodies = [
        {"id": "job/1", "status": "waiting"},
        {"id": "job/1", "status": "completed", "dateFinished": "2024-01-01T00:00:00Z"},
    ]
    fetches = []

    def fetch():
        fetches.append(1)
        return bodies[len(fetches) - 1]

    body = wait_for_status(fetch, StatusMatcher.exact("completed"), PollPolicy(1, 30),
                           clock=clock, sleep=clock.sleep)
    assert body["dateFinished"] == "2024-01-01T00:00:00Z"
    assert len(fetches) == 2


def test_wait_for_status_reports_last_status_on_timeout(clock):
    with pytest.raises(PollTimeoutError) as excinfo:
        wait_for_status(lambda: {"status": "running", "big": "x" * 100}, StatusMatcher.exact("completed"),
                        PollPolicy(1, 2), clock=clock, sleep=clock.sleep)
    assert excinfo.value.last_value == "running"


@pytest.mark.parametrize("observed, expected", [
    ("completed", True),
    ("completedWithErrors", True),
    ("waiting", False),
    ("notcompleted", False),
    (None, False),
])
def test_completed_prefix_pattern(observed, expected):
    assert StatusMatcher.pattern("completed.*").matches(observed) is expected


def test_default_policy_is_two_seconds_for_a_minute():
    assert PollPolicy() == PollPolicy(interval=2.0, timeout=60.0)


def test_waiting_then_completed_with_default_policy(clock):
    statuses = iter(["waiting", "completed"])
    body = wait_for_status(lambda: {"status": next(statuses)}, StatusMatcher.exact("completed"), PollPolicy(),
                           clock=clock, sleep=clock.sleep)
    assert body == {"status": "completed"}
    assert clock.sleeps == [2.0]
    assert clock.now < 60.0
