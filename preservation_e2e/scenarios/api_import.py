"""
Deposit to archival group through the Presentation API alone.

Files are written straight into the deposit's S3 working area, the service
is asked for a diff import job, the job is executed and polled until it
completes, and the preserved archival group is then checked.
"""

from typing import Dict, List, Optional

from preservation_e2e.auth import ActivityTotpAuth
from preservation_e2e.logging_config import get_logger
from preservation_e2e.mets import MetsManifest, assert_administrative_entry, assert_digest, assert_file_entry
from preservation_e2e.pages.deposit import METS_FILE, OBJECTS_FOLDER, TEST_IMAGE, TEST_PDF_DOC, TEST_WORD_DOC
from preservation_e2e.scenarios.deposits import delete_deposit_if_active
from preservation_e2e.scenarios.registry import scenario
from preservation_e2e.schemas import ArchivalGroup, Deposit, ImportJobResult, ImportJobStatus
from preservation_e2e.utils import second_of_day, ymd

logger = get_logger(__name__)

IMPORT_TESTS_ROOT = "api-tests/basic-1"
NATIVE_TESTS_ROOT = "native-tests/basic-1"
DIGEST_ALGORITHM = "SHA256"
ACTIVITY_PAGE_LIMIT = 50
STORAGE_ACTIVITY_PATH = "/activity/importjobs/collection"

TEST_FILE_TYPES = {
    TEST_IMAGE: "image/png",
    TEST_WORD_DOC: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    TEST_PDF_DOC: "application/pdf",
}


def dated_archival_group_uri(api, root: str, prefix: str = "ms-10315") -> str:
    """A fresh archival group URI under a dated parent container, creating the parents."""
    parent = f"{root}/{ymd()}"
    api.ensure_path(parent)
    return f"{api.base_url}/repository/{parent}/{prefix}-{second_of_day()}"


def upload_test_files(ctx, deposit: Deposit) -> Dict[str, str]:
    """Upload the bundled test files into objects/ with checksums; returns path -> SHA-256."""
    storage = ctx.require_storage()
    digests = {}
    for name in TEST_FILE_TYPES:
        path = f"{OBJECTS_FOLDER}/{name}"
        digests[path] = storage.upload(deposit.files, str(ctx.test_file(name)), path, with_checksum=True)
    return digests


def preserve(ctx, deposit: Deposit, archival_group_uri: str) -> ImportJobResult:
    """Execute the deposit's diff import job and wait for it to complete."""
    api = ctx.require_api()
    job = api.get_import_job_diff(deposit)
    result = api.execute_import_job(deposit, job)

    diff_uri = f"{deposit.id}/importjobs/diff"
    assert result.type == "ImportJobResult", f"Executing the job returned a {result.type}"
    assert result.status == ImportJobStatus.WAITING.value, f"New import job is {result.status!r}, expected waiting"
    assert result.original_import_job == diff_uri, (
        f"originalImportJob is {result.original_import_job!r}, expected {diff_uri!r}"
    )
    assert result.archival_group == archival_group_uri, (
        f"Import job targets {result.archival_group!r}, expected {archival_group_uri!r}"
    )

    finished = api.wait_for_import_job(result, ctx.poll_policy())
    logger.info(
        f"Import job {finished.id} finished as {finished.status}",
        extra={"deposit_id": deposit.deposit_id, "uri": finished.id, "status": finished.status},
    )
    assert not finished.errors, f"Import job {finished.id} reported errors: {finished.errors}"
    return finished


def verify_preserved(ctx, archival_group_uri: str, paths: List[str]) -> MetsManifest:
    """The archival group's own METS and storage map list every preserved path."""
    api = ctx.require_api()
    group = api.get_archival_group(archival_group_uri)
    assert group.type == "ArchivalGroup", f"{archival_group_uri} is a {group.type}"

    mets_binary = group.binary_named(METS_FILE)
    assert mets_binary is not None, f"{archival_group_uri} has no {METS_FILE} binary"
    content, _ = api.fetch_binary(mets_binary["content"])
    manifest = MetsManifest.from_bytes(content)

    for path in paths:
        adm_id = assert_administrative_entry(manifest, path)
        assert_file_entry(manifest, path, adm_id)

    stored = (group.storage_map or {}).get("files", {})
    missing = [p for p in [METS_FILE] + list(paths) if p not in stored]
    assert not missing, f"Storage map of {archival_group_uri} is missing {missing}"
    return manifest


def verify_content_types(ctx, group: ArchivalGroup, content_types: Dict[str, str]) -> None:
    """Binaries come back from the Storage API with their content types; the Presentation API has no such route."""
    api = ctx.require_api()
    storage = ctx.settings.storage_api_endpoint
    if not storage:
        logger.warning("STORAGE_API_ENDPOINT not set; skipping binary content checks")
        return
    base_path = api.relative(group.id).replace("/repository/", "", 1).strip("/")
    for path, content_type in content_types.items():
        content_path = f"/content/{base_path}/{path}"
        content, returned_type = api.fetch_binary(f"{storage.rstrip('/')}{content_path}")
        assert content, f"{content_path} is empty"
        assert returned_type.startswith(content_type), (
            f"{content_path} served as {returned_type!r}, expected {content_type!r}"
        )
        status = api.fetch("GET", content_path).status
        assert status == 404, f"Presentation API answered {status} for {content_path}, expected 404"


def verify_digests(manifest: MetsManifest, digests: Dict[str, Optional[str]]) -> None:
    for path, digest in digests.items():
        if digest:
            assert_digest(manifest, path, DIGEST_ALGORITHM, digest)


@scenario("import_deposit", "api", timeout=300.0)
def import_deposit(ctx):
    """Upload files with checksums, preserve them and check the result."""
    api = ctx.require_api()
    archival_group_uri = dated_archival_group_uri(api, IMPORT_TESTS_ROOT)
    deposit = api.create_deposit(
        archival_group=archival_group_uri,
        archival_group_name=f"API import test {second_of_day()}",
        submission_text="Files uploaded with checksums and preserved through the API",
    )
    ctx.add_teardown(f"delete deposit {deposit.deposit_id}", delete_deposit_if_active, api, deposit.deposit_id)
    assert (deposit.files or "").startswith("s3://"), f"Deposit files location is {deposit.files!r}"

    digests = upload_test_files(ctx, deposit)

    # Files written behind the service's back must be added to its METS first
    if api.request_import_job_diff(deposit).status == 422:
        _, etag = api.get_deposit_mets(deposit)
        api.add_to_deposit_mets(deposit, list(digests), etag)

    preserve(ctx, deposit, archival_group_uri)
    manifest = verify_preserved(ctx, archival_group_uri, list(digests))
    verify_digests(manifest, digests)
    verify_content_types(
        ctx,
        api.get_archival_group(archival_group_uri),
        {f"{OBJECTS_FOLDER}/{name}": content_type for name, content_type in TEST_FILE_TYPES.items()},
    )


@scenario("native_deposit", "api", timeout=300.0)
def native_deposit(ctx):
    """A RootLevel deposit whose METS is built up by asking the service to add files."""
    api = ctx.require_api()
    archival_group_uri = dated_archival_group_uri(api, NATIVE_TESTS_ROOT)
    sod = second_of_day()
    deposit = api.create_deposit(
        template="RootLevel",
        archival_group=archival_group_uri,
        archival_group_name=f"Native test {sod}",
        submission_text="This is going to create a METS file and edit the METS as we go",
    )
    ctx.add_teardown(f"delete deposit {deposit.deposit_id}", delete_deposit_if_active, api, deposit.deposit_id)

    digests = upload_test_files(ctx, deposit)
    paths = list(digests)

    refused = api.request_import_job_diff(deposit)
    assert refused.status == 422, f"Diff with files missing from the METS returned {refused.status}, expected 422"

    _, etag = api.get_deposit_mets(deposit)
    filesystem = api.get_deposit_filesystem(deposit)
    objects = [d for d in filesystem.get("directories", []) if d.get("localPath") == OBJECTS_FOLDER]
    assert objects and len(objects[0].get("files", [])) == len(paths), (
        f"Deposit filesystem lists {objects[0].get('files') if objects else None} under objects, expected {paths}"
    )

    affected = api.add_to_deposit_mets(deposit, paths, etag)
    added = [item for item in affected.get("items", []) if not item.get("isDir")]
    assert len(added) == len(paths), f"METS update affected {len(added)} file(s), expected {len(paths)}"

    preserve(ctx, deposit, archival_group_uri)
    manifest = verify_preserved(ctx, archival_group_uri, paths)
    verify_digests(manifest, digests)


@scenario("activity_stream", "api", timeout=120.0)
def activity_stream(ctx):
    """The archival group activity stream can be walked back from its last page."""
    api = ctx.require_api()
    collection = api.get_activity_collection()
    assert "/activity/archivalgroups" in collection.id, f"Collection id is {collection.id!r}"
    assert collection.type == "OrderedCollection", f"Collection type is {collection.type!r}"

    pages = 0
    items = 0
    for page in api.iter_activity_pages(collection, limit=ACTIVITY_PAGE_LIMIT):
        pages += 1
        items += len(page.ordered_items)
    logger.info(f"Walked {pages} activity page(s) with {items} item(s)", extra={"scenario": ctx.scenario_name})


@scenario("storage_activity_totp", "api", timeout=60.0)
def storage_activity_totp(ctx):
    """The Storage API import job activity stream accepts a one-time password header."""
    api = ctx.require_api()
    ctx.settings.require("storage_api_endpoint", "totp_secret")
    storage = api.with_auth(ActivityTotpAuth.from_settings(ctx.settings), ctx.settings.storage_api_endpoint)

    uri = f"{storage.base_url}{STORAGE_ACTIVITY_PATH}"
    body = storage.call("GET", uri).json()
    assert isinstance(body, dict), f"GET {uri} did not return a JSON object"
    logger.info(f"Storage activity stream answered with a {body.get('type')}", extra={"uri": uri})
