import pytest

from preservation_e2e.api_client import JOB_DONE, ApiResult
from preservation_e2e.exceptions import (
    ApiStatusError,
    ConfigurationError,
    DepositConflictError,
    PollTimeoutError,
    ResourceNotReady,
    TransientApiError,
)
from preservation_e2e.polling import PollPolicy
from preservation_e2e.scenarios.api_import import storage_activity_totp
from preservation_e2e.scenarios.containers import container_verification
from preservation_e2e.scenarios.context import ScenarioContext
from preservation_e2e.schemas import ImportJobResult, LockOutcome

DEPOSIT_ID = "abcd1234efgh"
DEPOSIT_URI = f"https://api.example.org/deposits/{DEPOSIT_ID}"


def deposit_body(**extra):
    body = {
        "id": DEPOSIT_URI,
        "type": "Deposit",
        "files": f"s3://preservation-working/deposits/{DEPOSIT_ID}/",
        "status": "new",
        "active": True,
    }
    body.update(extra)
    return body


def test_requests_carry_auth_headers(api, request_context):
    request_context.add("GET", f"/deposits/{DEPOSIT_ID}", body=deposit_body())
    api.get_deposit(DEPOSIT_ID)
    headers = request_context.calls[0]["headers"]
    assert headers["Authorization"] == "Bearer test-token"
    assert headers["X-Client-Identity"] == "Playwright-tests"


def test_create_deposit_sends_aliased_fields(api, request_context):
    request_context.add("POST", "/deposits", status=201, body=deposit_body())
    deposit = api.create_deposit(template="RootLevel", archival_group_name="Test group", submission_text="Note")
    assert deposit.deposit_id == DEPOSIT_ID
    assert request_context.calls[0]["data"] == {
        "type": "Deposit",
        "template": "RootLevel",
        "archivalGroupName": "Test group",
        "submissionText": "Note",
    }


def test_unexpected_status_raises_with_details(api, request_context):
    request_context.add("POST", "/deposits", status=500, body="database unavailable")
    with pytest.raises(ApiStatusError) as excinfo:
        api.create_deposit()
    assert excinfo.value.status == 500
    assert excinfo.value.method == "POST"
    assert "database unavailable" in str(excinfo.value)


def test_lock_outcomes(api, request_context):
    path = f"/deposits/{DEPOSIT_ID}/lock"
    request_context.add("POST", path, status=204).add("POST", path, status=409, body="locked")
    assert api.lock_deposit(DEPOSIT_ID) == LockOutcome.LOCKED
    assert api.lock_deposit(DEPOSIT_ID) == LockOutcome.CONFLICT


def test_force_lock_sends_force_parameter(api, request_context):
    request_context.add("POST", f"/deposits/{DEPOSIT_ID}/lock", status=204)
    api.lock_deposit(DEPOSIT_ID, force=True)
    assert request_context.calls[0]["params"] == {"force": "true"}


def test_lock_failure_other_than_conflict_raises(api, request_context):
    request_context.add("POST", f"/deposits/{DEPOSIT_ID}/lock", status=403)
    with pytest.raises(ApiStatusError):
        api.lock_deposit(DEPOSIT_ID)


def test_patch_conflict_is_a_value_until_required(api, request_context):
    request_context.add("PATCH", f"/deposits/{DEPOSIT_ID}", status=409, body="Deposit is locked")
    result = api.patch_deposit(DEPOSIT_ID, submissionText="changed")
    assert result.conflict
    with pytest.raises(DepositConflictError):
        result.require_success()


def test_api_result_require_success():
    assert ApiResult("GET", "/x", 200, "{}").require_success().ok
    with pytest.raises(ApiStatusError) as excinfo:
        ApiResult("GET", "/x", 422, "unprocessable").require_success()
    assert not isinstance(excinfo.value, DepositConflictError)


def test_delete_deposit_tolerates_missing(api, request_context):
    request_context.add("DELETE", f"/deposits/{DEPOSIT_ID}", status=404)
    api.delete_deposit(DEPOSIT_ID)


def test_deposit_mets_returns_etag(api, request_context, sample_mets):
    request_context.add("GET", f"/deposits/{DEPOSIT_ID}/mets", body=sample_mets, headers={"etag": '"v1"'})
    manifest, etag = api.get_deposit_mets(DEPOSIT_URI)
    assert etag == '"v1"'
    assert manifest.structural_labels()[0] == "__ROOT"


def test_add_to_mets_sends_if_match(api, request_context):
    request_context.add("POST", f"/deposits/{DEPOSIT_ID}/mets", body={"items": []})
    api.add_to_deposit_mets(DEPOSIT_ID, ["objects/a.png"], '"v1"')
    call = request_context.calls[0]
    assert call["headers"]["If-Match"] == '"v1"'
    assert call["data"] == ["objects/a.png"]


def test_ensure_path_creates_missing_segments(api, request_context):
    request_context.add("GET", "/repository/_for_tests", body={"id": "x", "type": "Container"})
    request_context.add("PUT", "/repository/_for_tests/a", status=201, body={"id": "a", "type": "Container"})
    request_context.add("PUT", "/repository/_for_tests/a/b", status=201, body={"id": "b", "type": "Container"})
    created = api.ensure_path("_for_tests/a/b")
    assert created == ["/repository/_for_tests/a", "/repository/_for_tests/a/b"]
    assert [c["method"] for c in request_context.calls] == ["GET", "GET", "PUT", "GET", "PUT"]


def test_ensure_path_stops_on_server_error(api, request_context):
    request_context.add("GET", "/repository/_for_tests", status=500)
    with pytest.raises(ApiStatusError):
        api.ensure_path("_for_tests/a")


@pytest.mark.parametrize("status", [404, 410])
def test_resource_exists_treats_gone_as_absent(api, request_context, status):
    request_context.add("GET", "/repository/a/b", status=status)
    assert api.resource_exists("a/b") is False


def test_poll_json_classifies_statuses(api, request_context):
    request_context.add("GET", "/jobs/1", status=404)
    with pytest.raises(ResourceNotReady):
        api._poll_json("https://api.example.org/jobs/1")

    request_context.add("GET", "/jobs/2", status=503)
    with pytest.raises(TransientApiError):
        api._poll_json("/jobs/2")

    request_context.add("GET", "/jobs/3", status=401)
    with pytest.raises(ApiStatusError):
        api._poll_json("/jobs/3")


def test_wait_for_import_job(api, request_context):
    path = f"/deposits/{DEPOSIT_ID}/importjobs/results/1"
    request_context.add("GET", path, status=404)
    request_context.add("GET", path, body={"id": path, "status": "running"})
    request_context.add("GET", path, body={"id": path, "status": "completed", "newVersion": "v1"})
    job = ImportJobResult(id=f"https://api.example.org{path}", status="waiting")
    finished = api.wait_for_import_job(job, PollPolicy(interval=0.001, timeout=5))
    assert finished.status == "completed"
    assert finished.new_version == "v1"


def test_wait_for_import_job_accepts_completed_with_errors(api, request_context):
    path = "/importjobs/results/partial"
    request_context.add("GET", path, body={"id": path, "status": "running"})
    request_context.add("GET", path, body={"id": path, "status": "completedWithErrors", "errors": [{"message": "x"}]})
    assert JOB_DONE.matches("completedWithErrors")
    finished = api.wait_for_import_job(ImportJobResult(id=path, status="waiting"), PollPolicy(interval=0.001, timeout=5))
    assert finished.status == "completedWithErrors"


def test_wait_for_import_job_times_out(api, request_context):
    path = "/importjobs/results/stuck"
    request_context.add("GET", path, body={"id": path, "status": "running"})
    with pytest.raises(PollTimeoutError) as excinfo:
        api.wait_for_import_job(ImportJobResult(id=path, status="waiting"), PollPolicy(interval=0.01, timeout=0.05))
    assert excinfo.value.last_value == "running"


def test_activity_pages_walk_backwards(api, request_context):
    request_context.add("GET", "/activity/archivalgroups/collection", body={
        "id": "https://api.example.org/activity/archivalgroups/collection",
        "type": "OrderedCollection",
        "last": {"id": "https://api.example.org/activity/archivalgroups/pages/2"},
    })
    request_context.add("GET", "/activity/archivalgroups/pages/2", body={
        "id": "p2", "orderedItems": [{"type": "Create"}], "prev": {"id": "/activity/archivalgroups/pages/1"},
    })
    request_context.add("GET", "/activity/archivalgroups/pages/1", body={"id": "p1", "orderedItems": []})
    collection = api.get_activity_collection()
    pages = list(api.iter_activity_pages(collection))
    assert [p.id for p in pages] == ["p2", "p1"]
    assert list(api.iter_activity_pages(collection, limit=1))[0].id == "p2"


def test_container_verification_scenario(api, request_context, settings, monkeypatch):
    monkeypatch.setattr("preservation_e2e.scenarios.containers.generate_unique_id", lambda: "abc123")
    path = "/repository/_for_tests/playwright-testing/playwright-container-testing-abc123"
    request_context.add("GET", "/repository/_for_tests", body={"id": "t", "type": "Container"})
    request_context.add("GET", "/repository/_for_tests/playwright-testing", body={"id": "p", "type": "Container"})
    request_context.add("PUT", path, status=201, body={"id": f"https://api.example.org{path}", "type": "Container"})

    from datetime import datetime, timezone
    now = datetime.now(timezone.utc).isoformat()
    request_context.add("GET", path, body={
        "id": f"https://api.example.org{path}",
        "type": "Container",
        "containers": [],
        "binaries": [],
        "created": now,
        "lastModified": now,
        "createdBy": "https://api.example.org/agents/dlipdev",
        "lastModifiedBy": "https://api.example.org/agents/dlipdev",
    })
    request_context.add("DELETE", path, status=204)
    request_context.add("GET", path, status=410)

    ctx = ScenarioContext(settings=settings, api=api)
    ctx.begin("container_verification", 120.0)
    try:
        container_verification(ctx)
    finally:
        failures = ctx.run_teardown()

    assert failures == []
    methods = [(c["method"], c["path"]) for c in request_context.calls]
    assert ("DELETE", path) in methods


STORAGE_ACTIVITY = "https://storage.example.org/activity/importjobs/collection"


def test_storage_activity_scenario_sends_one_time_password(api, request_context, settings):
    request_context.add("GET", STORAGE_ACTIVITY, body={"id": STORAGE_ACTIVITY, "type": "OrderedCollection"})
    ctx = ScenarioContext(settings=settings.model_copy(update={"totp_secret": "12345678901234567890"}), api=api)
    ctx.begin("storage_activity_totp", 60.0)
    storage_activity_totp(ctx)

    call = request_context.calls[-1]
    assert call["path"] == STORAGE_ACTIVITY
    assert call["headers"]["x-activity-api"].isdigit()
    assert len(call["headers"]["x-activity-api"]) == 8
    assert "Authorization" not in call["headers"]


def test_storage_activity_scenario_fails_on_rejected_code(api, request_context, settings):
    request_context.add("GET", STORAGE_ACTIVITY, status=401, body={"error": "bad code"})
    ctx = ScenarioContext(settings=settings.model_copy(update={"totp_secret": "12345678901234567890"}), api=api)
    ctx.begin("storage_activity_totp", 60.0)
    with pytest.raises(ApiStatusError) as excinfo:
        storage_activity_totp(ctx)
    assert excinfo.value.status == 401


def test_storage_activity_scenario_needs_totp_secret(api, settings):
    ctx = ScenarioContext(settings=settings, api=api)
    ctx.begin("storage_activity_totp", 60.0)
    with pytest.raises(ConfigurationError):
        storage_activity_totp(ctx)
