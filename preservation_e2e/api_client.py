"""
Presentation API client.

Wraps a Playwright APIRequestContext created once per worker and passed to
scenarios through the ScenarioContext; nothing here is module-level state.
Every call attaches headers from the worker's auth provider.

Statuses that a scenario is expected to reason about (409 on a locked
deposit, 404 on a resource that does not exist yet) come back as values;
anything else unexpected raises ApiStatusError.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from playwright.sync_api import APIRequestContext, APIResponse, Error as PlaywrightError, Playwright

from preservation_e2e.exceptions import (
    ApiStatusError,
    DepositConflictError,
    ResourceNotReady,
    TransientApiError,
)
from preservation_e2e.logging_config import get_logger
from preservation_e2e.mets import MetsManifest
from preservation_e2e.polling import PollPolicy, StatusMatcher, wait_for_status
from preservation_e2e.schemas import (
    ActivityCollection,
    ActivityPage,
    ArchivalGroup,
    Container,
    Deposit,
    DepositCreate,
    ImportJob,
    ImportJobResult,
    LockOutcome,
)

logger = get_logger(__name__)

ABSENT_STATUSES = (404, 410)
TRANSIENT_STATUSES = (502, 503, 504)
JOB_DONE = StatusMatcher.pattern(r"completed.*")


@dataclass
class ApiResult:
    """Status and body of a call whose outcome the caller decides on."""

    method: str
    url: str
    status: int
    body: str

    @classmethod
    def from_response(cls, method: str, response: APIResponse) -> "ApiResult":
        return cls(method, response.url, response.status, response.text())

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def conflict(self) -> bool:
        return self.status == 409

    def require_success(self) -> "ApiResult":
        if self.conflict:
            raise DepositConflictError(self.method, self.url, self.status, self.body)
        if not self.ok:
            raise ApiStatusError(self.method, self.url, self.status, self.body)
        return self


class PresentationApiClient:
    """Typed access to the Presentation API for one worker."""

    def __init__(self, request_context: APIRequestContext, auth, base_url: Optional[str] = None):
        self._request = request_context
        self._auth = auth
        self.base_url = (base_url or "").rstrip("/")

    @classmethod
    def create(cls, playwright: Playwright, settings, auth) -> "PresentationApiClient":
        settings.require("preservation_api_endpoint")
        context = playwright.request.new_context(base_url=settings.preservation_api_endpoint)
        return cls(context, auth, settings.preservation_api_endpoint)

    def dispose(self) -> None:
        self._request.dispose()

    def with_auth(self, auth, base_url: str) -> "PresentationApiClient":
        """A client for another service that shares this worker's request context."""
        return PresentationApiClient(self._request, auth, base_url)

    # ------------------------------------------------------------------
    # Low-level requests
    # ------------------------------------------------------------------

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(self._auth.get_auth_headers())
        if extra:
            headers.update(extra)
        return headers

    def relative(self, uri: str) -> str:
        """Strip the API base from an absolute resource URI."""
        if self.base_url and uri.startswith(self.base_url):
            return uri[len(self.base_url):] or "/"
        return uri

    def fetch(self, method: str, path: str, data: Any = None, params: Optional[Dict[str, Any]] = None,
              headers: Optional[Dict[str, str]] = None) -> APIResponse:
        logger.debug(f"{method} {path}", extra={"uri": path})
        kwargs: Dict[str, Any] = {"method": method, "headers": self._headers(headers)}
        if data is not None:
            kwargs["data"] = data
        if params:
            kwargs["params"] = params
        return self._request.fetch(path, **kwargs)

    def call(self, method: str, path: str, expected: Iterable[int] = (200,), **kwargs) -> APIResponse:
        response = self.fetch(method, path, **kwargs)
        if response.status not in tuple(expected):
            raise ApiStatusError(method, response.url, response.status, response.text())
        return response

    def call_for_result(self, method: str, path: str, **kwargs) -> ApiResult:
        return ApiResult.from_response(method, self.fetch(method, path, **kwargs))

    def get_json(self, path: str, **kwargs) -> Dict[str, Any]:
        return self.call("GET", path, **kwargs).json()

    # ------------------------------------------------------------------
    # Repository (containers, archival groups, binaries)
    # ------------------------------------------------------------------

    @staticmethod
    def repository_path(path: str) -> str:
        path = path.strip("/")
        if path.startswith("repository/") or path == "repository":
            return f"/{path}"
        return f"/repository/{path}"

    def get_container(self, path: str) -> Container:
        return Container.model_validate(self.get_json(self.repository_path(path)))

    def get_archival_group(self, path: str) -> ArchivalGroup:
        return ArchivalGroup.model_validate(self.get_json(self.repository_path(self.relative(path))))

    def resource_exists(self, path: str) -> bool:
        response = self.fetch("GET", self.repository_path(path))
        if response.status in ABSENT_STATUSES:
            return False
        if not response.ok:
            raise ApiStatusError("GET", response.url, response.status, response.text())
        return True

    def create_container(self, path: str, name: Optional[str] = None) -> Container:
        data = {"type": "Container", "name": name} if name else None
        response = self.call("PUT", self.repository_path(path), expected=(200, 201), data=data)
        logger.info(f"Created container {path}", extra={"uri": response.url})
        return Container.model_validate(response.json())

    def delete_resource(self, path: str) -> None:
        self.call("DELETE", self.repository_path(path), expected=(200, 204))

    def ensure_path(self, path: str) -> List[str]:
        """
        Create any missing containers along a repository path.

        Outside a deposit only containers can be created, so every missing
        segment becomes a container. Returns the paths that were created.
        """
        created = []
        build_path = "/repository"
        for part in path.split("/"):
            if not part:
                continue
            build_path += "/" + part
            response = self.fetch("GET", build_path)
            logger.debug(f"status: {response.status} for path: {build_path}")
            if response.status == 404:
                self.call("PUT", build_path, expected=(200, 201))
                created.append(build_path)
            elif not response.ok:
                raise ApiStatusError("GET", response.url, response.status, response.text())
        return created

    def get_archival_group_mets(self, path: str) -> MetsManifest:
        response = self.call("GET", self.repository_path(path), params={"view": "mets"},
                             headers={"Accept": "application/xml"})
        return MetsManifest.from_bytes(response.body())

    def fetch_binary(self, uri: str) -> Tuple[bytes, str]:
        """Raw content and content-type from the Storage API (absolute URI)."""
        response = self.call("GET", uri, headers={"Accept": "*/*"})
        return response.body(), response.headers.get("content-type", "")

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    def deposit_path(self, deposit: Union[str, Deposit]) -> str:
        if isinstance(deposit, Deposit):
            return self.relative(deposit.id)
        if deposit.startswith("http") or deposit.startswith("/deposits/"):
            return self.relative(deposit)
        return f"/deposits/{deposit}"

    def create_deposit(self, request: Optional[DepositCreate] = None, **fields) -> Deposit:
        request = request or DepositCreate(**fields)
        response = self.call("POST", "/deposits", expected=(201,), data=request.to_payload())
        deposit = Deposit.model_validate(response.json())
        logger.info(f"Created deposit {deposit.deposit_id}", extra={"deposit_id": deposit.deposit_id})
        return deposit

    def get_deposit(self, deposit: Union[str, Deposit]) -> Deposit:
        return Deposit.model_validate(self.get_json(self.deposit_path(deposit)))

    def patch_deposit(self, deposit: Union[str, Deposit], **fields) -> ApiResult:
        """PATCH deposit properties; a 409 (deposit locked elsewhere) is returned, not raised."""
        return self.call_for_result("PATCH", self.deposit_path(deposit), data=fields)

    def lock_deposit(self, deposit: Union[str, Deposit], force: bool = False) -> LockOutcome:
        params = {"force": "true"} if force else None
        result = self.call_for_result("POST", self.deposit_path(deposit) + "/lock", params=params)
        if result.conflict:
            logger.info(f"Lock refused for {self.deposit_path(deposit)}: held by another identity")
            return LockOutcome.CONFLICT
        result.require_success()
        return LockOutcome.LOCKED

    def delete_deposit(self, deposit: Union[str, Deposit]) -> None:
        self.call("DELETE", self.deposit_path(deposit), expected=(200, 204, 404))

    def get_deposit_mets(self, deposit: Union[str, Deposit]) -> Tuple[MetsManifest, Optional[str]]:
        """The deposit's working METS and its ETag (needed to post changes back)."""
        response = self.call("GET", self.deposit_path(deposit) + "/mets", headers={"Accept": "application/xml"})
        return MetsManifest.from_bytes(response.body()), response.headers.get("etag")

    def add_to_deposit_mets(self, deposit: Union[str, Deposit], paths: List[str],
                            etag: Optional[str] = None) -> Dict[str, Any]:
        """Ask the service to add deposit files to its METS; returns the affected items."""
        headers = {"If-Match": etag} if etag else None
        response = self.call("POST", self.deposit_path(deposit) + "/mets", data=paths, headers=headers)
        return response.json()

    def get_deposit_filesystem(self, deposit: Union[str, Deposit]) -> Dict[str, Any]:
        return self.get_json(self.deposit_path(deposit) + "/filesystem")

    def request_import_job_diff(self, deposit: Union[str, Deposit]) -> ApiResult:
        """GET the diff without raising; a 422 means the deposit has files not yet in its METS."""
        return self.call_for_result("GET", self.deposit_path(deposit) + "/importjobs/diff")

    def get_import_job_diff(self, deposit: Union[str, Deposit]) -> ImportJob:
        return ImportJob.model_validate(self.get_json(self.deposit_path(deposit) + "/importjobs/diff"))

    def execute_import_job(self, deposit: Union[str, Deposit], job: Union[ImportJob, Dict[str, Any]]) -> ImportJobResult:
        payload = job.model_dump(by_alias=True, exclude_none=True) if isinstance(job, ImportJob) else job
        response = self.call("POST", self.deposit_path(deposit) + "/importjobs", expected=(200, 201), data=payload)
        return ImportJobResult.model_validate(response.json())

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _poll_json(self, uri: str) -> Dict[str, Any]:
        path = self.relative(uri)
        try:
            response = self.fetch("GET", path)
        except PlaywrightError as e:
            raise TransientApiError(f"GET {path} failed: {e}") from e
        if response.status == 404:
            raise ResourceNotReady(f"GET {path} returned 404")
        if response.status in TRANSIENT_STATUSES:
            raise TransientApiError(f"GET {path} returned {response.status}")
        if not response.ok:
            raise ApiStatusError("GET", response.url, response.status, response.text())
        return response.json()

    def wait_for_status(self, uri: str, matcher: StatusMatcher, policy: PollPolicy, **kwargs) -> Dict[str, Any]:
        return wait_for_status(
            lambda: self._poll_json(uri), matcher, policy,
            description=f"{self.relative(uri)} status {matcher!r}", **kwargs,
        )

    def wait_for_import_job(self, result: ImportJobResult, policy: PollPolicy,
                            matcher: StatusMatcher = JOB_DONE) -> ImportJobResult:
        body = self.wait_for_status(result.id, matcher, policy)
        return ImportJobResult.model_validate(body)

    # ------------------------------------------------------------------
    # Activity stream
    # ------------------------------------------------------------------

    def get_activity_collection(self, stream: str = "archivalgroups") -> ActivityCollection:
        return ActivityCollection.model_validate(self.get_json(f"/activity/{stream}/collection"))

    def iter_activity_pages(self, collection: ActivityCollection, limit: Optional[int] = None) -> Iterator[ActivityPage]:
        """Walk the collection backwards from its last page."""
        link = collection.last
        count = 0
        while link and (limit is None or count < limit):
            page = ActivityPage.model_validate(self.get_json(self.relative(link["id"])))
            yield page
            count += 1
            link = page.prev
