"""
Shared fixtures.

Nothing here opens a browser or the network: Playwright request contexts and
pages are replaced by small fakes that record what was asked of them.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from preservation_e2e.config import Settings

IMAGE_DIGEST = "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08"

SAMPLE_METS = f"""<?xml version="1.0" encoding="utf-8"?>
<mets:mets xmlns:mets="http://www.loc.gov/METS/"
           xmlns:premis="http://www.loc.gov/premis/v3"
           xmlns:mods="http://www.loc.gov/mods/v3"
           xmlns:xlink="http://www.w3.org/1999/xlink">
  <mets:dmdSec ID="DMD_ROOT">
    <mets:mdWrap MDTYPE="MODS">
      <mets:xmlData>
        <mods:mods>
          <mods:accessCondition type="restriction on access">Restricted</mods:accessCondition>
          <mods:accessCondition type="use and reproduction">No Copyright - United States</mods:accessCondition>
        </mods:mods>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:amdSec ID="ADM_OBJECTS">
    <mets:techMD ID="TECH_OBJECTS">
      <mets:mdWrap MDTYPE="PREMIS:OBJECT"><mets:xmlData>
        <premis:object><premis:originalName>objects</premis:originalName></premis:object>
      </mets:xmlData></mets:mdWrap>
    </mets:techMD>
  </mets:amdSec>
  <mets:amdSec ID="ADM_FOLDER">
    <mets:techMD ID="TECH_FOLDER">
      <mets:mdWrap MDTYPE="PREMIS:OBJECT"><mets:xmlData>
        <premis:object><premis:originalName>objects/new-test-folder-inside-objects</premis:originalName></premis:object>
      </mets:xmlData></mets:mdWrap>
    </mets:techMD>
  </mets:amdSec>
  <mets:amdSec ID="ADM_IMAGE">
    <mets:techMD ID="TECH_IMAGE">
      <mets:mdWrap MDTYPE="PREMIS:OBJECT"><mets:xmlData>
        <premis:object>
          <premis:objectCharacteristics>
            <premis:fixity>
              <premis:messageDigestAlgorithm>SHA256</premis:messageDigestAlgorithm>
              <premis:messageDigest>{IMAGE_DIGEST}</premis:messageDigest>
            </premis:fixity>
            <premis:format>
              <premis:formatDesignation><premis:formatName>Portable Network Graphics</premis:formatName></premis:formatDesignation>
              <premis:formatRegistry><premis:formatRegistryKey>fmt/13</premis:formatRegistryKey></premis:formatRegistry>
            </premis:format>
          </premis:objectCharacteristics>
          <premis:originalName> objects/new-test-folder-inside-objects/test_image.png </premis:originalName>
        </premis:object>
      </mets:xmlData></mets:mdWrap>
    </mets:techMD>
  </mets:amdSec>
  <mets:amdSec ID="ADM_WORD">
    <mets:techMD ID="TECH_WORD">
      <mets:mdWrap MDTYPE="PREMIS:OBJECT"><mets:xmlData>
        <premis:object><premis:originalName>objects/new-test-folder-inside-objects/test_word_document.docx</premis:originalName></premis:object>
      </mets:xmlData></mets:mdWrap>
    </mets:techMD>
  </mets:amdSec>
  <mets:fileSec>
    <mets:fileGrp USE="OBJECTS">
      <mets:file ID="FILE_IMAGE" ADMID="ADM_IMAGE" MIMETYPE="image/png">
        <mets:FLocat LOCTYPE="URL" xlink:href="objects/new-test-folder-inside-objects/test_image.png"/>
      </mets:file>
      <mets:file ID="FILE_WORD" ADMID="ADM_WORD" MIMETYPE="application/vnd.openxmlformats-officedocument.wordprocessingml.document">
        <mets:FLocat LOCTYPE="URL" xlink:href="objects/new-test-folder-inside-objects/test_word_document.docx"/>
      </mets:file>
    </mets:fileGrp>
  </mets:fileSec>
  <mets:structMap TYPE="PHYSICAL">
    <mets:div LABEL="__ROOT" TYPE="Directory">
      <mets:div LABEL="objects" ADMID="ADM_OBJECTS" TYPE="Directory">
        <mets:div LABEL="New test folder inside objects" ADMID="ADM_FOLDER" TYPE="Directory">
          <mets:div LABEL="test_image.png" ADMID="ADM_IMAGE" TYPE="Item">
            <mets:fptr FILEID="FILE_IMAGE"/>
          </mets:div>
          <mets:div LABEL="test_word_document.docx" ADMID="ADM_WORD" TYPE="Item">
            <mets:fptr FILEID="FILE_WORD"/>
          </mets:div>
        </mets:div>
      </mets:div>
    </mets:div>
  </mets:structMap>
</mets:mets>
"""


@pytest.fixture
def sample_mets() -> str:
    return SAMPLE_METS


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        preservation_api_endpoint="https://api.example.org",
        frontend_base_url="https://ui.example.org",
        storage_api_endpoint="https://storage.example.org",
        api_client_id="client-id",
        api_client_secret="client-secret",
        api_tenant_id="tenant",
        api_scope="api://preservation/.default",
        aws_profile=None,
        test_data_dir=str(tmp_path / "test-data"),
        results_dir=str(tmp_path / "results"),
        session_file=str(tmp_path / ".auth" / "frontend.json"),
        poll_interval=0.01,
        poll_timeout=0.05,
        scenario_timeout=60.0,
    )


class FakeResponse:
    """Stands in for playwright's APIResponse."""

    def __init__(self, status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None,
                 url: str = ""):
        self.status = status
        self.url = url
        self.headers = dict(headers or {})
        if isinstance(body, (dict, list)):
            self._body = json.dumps(body).encode("utf-8")
            self.headers.setdefault("content-type", "application/json")
        elif isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body or b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def body(self) -> bytes:
        return self._body

    def text(self) -> str:
        return self._body.decode("utf-8")

    def json(self):
        return json.loads(self._body)

    def dispose(self) -> None:
        pass


class FakeRequestContext:
    """
    Stands in for playwright's APIRequestContext.

    Responses are queued per (METHOD, path); the last queued response for a
    route is reused once the queue runs down to it.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[FakeResponse]] = {}
        self.calls: List[Dict[str, Any]] = []
        self.disposed = False

    def add(self, method: str, path: str, status: int = 200, body: Any = None,
            headers: Optional[Dict[str, str]] = None) -> "FakeRequestContext":
        self.routes.setdefault((method.upper(), path), []).append(
            FakeResponse(status, body, headers, url=path)
        )
        return self

    def fetch(self, url, method="GET", headers=None, data=None, params=None, **kwargs):
        path = url.split("?", 1)[0]
        for prefix in ("https://api.example.org", "http://localhost:5000"):
            if path.startswith(prefix):
                path = path[len(prefix):]
        self.calls.append({"method": method, "path": path, "headers": headers or {}, "data": data,
                           "params": params})
        queue = self.routes.get((method.upper(), path))
        if not queue:
            return FakeResponse(404, {"error": f"no route for {method} {path}"}, url=path)
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def dispose(self) -> None:
        self.disposed = True


class StaticAuth:
    def __init__(self, token: str = "test-token"):
        self.token = token
        self.invalidated = 0

    def get_auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "X-Client-Identity": "Playwright-tests"}

    def invalidate(self) -> None:
        self.invalidated += 1


@pytest.fixture
def request_context() -> FakeRequestContext:
    return FakeRequestContext()


@pytest.fixture
def api(request_context):
    from preservation_e2e.api_client import PresentationApiClient
    return PresentationApiClient(request_context, StaticAuth(), "https://api.example.org")
