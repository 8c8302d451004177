"""
IIIF viewer and raw manifest tabs.

The manifest tab renders the JSON inside a single <pre>. The IIIF builder
consumes the archival group activity stream asynchronously, so a freshly
preserved version shows up in the manifest only after some delay.
"""

import json
from typing import Any, Dict, List

from playwright.sync_api import Page

from preservation_e2e.exceptions import ResourceNotReady
from preservation_e2e.logging_config import get_logger
from preservation_e2e.pages.base import Screen, by_role
from preservation_e2e.polling import PollPolicy, poll_until

logger = get_logger(__name__)

ARCHIVAL_GROUP_PID = "c54x355t"
ARCHIVAL_GROUP_PATH = f"/browse/cc/{ARCHIVAL_GROUP_PID}"
ARCHIVAL_GROUP_HEADING = "UAT Test 8"


class IIIFScreen(Screen):
    path = ARCHIVAL_GROUP_PATH

    manifest_link = by_role("link", "IIIF Manifest Link")
    archival_group_heading = by_role("heading", ARCHIVAL_GROUP_HEADING)
    iiif_button = by_role("link", "IIIF")

    def open_manifest(self) -> Page:
        """Open the viewer from the archival group, then its raw manifest; returns the manifest tab."""
        context = self.page.context
        with context.expect_page() as viewer_info:
            self.iiif_button.click()
        viewer = viewer_info.value
        viewer.wait_for_load_state()

        with context.expect_page() as manifest_info:
            type(self).manifest_link.resolve(viewer).click()
        manifest_tab = manifest_info.value
        manifest_tab.wait_for_load_state()
        return manifest_tab

    @staticmethod
    def read_manifest(page: Page) -> Dict[str, Any]:
        return json.loads(page.inner_text("pre"))

    def wait_for_canvas_count(self, page: Page, expected: int, policy: PollPolicy) -> Dict[str, Any]:
        """Reload the manifest tab until it lists ``expected`` canvases."""
        state = {"first": True}

        def observe() -> Dict[str, Any]:
            if not state["first"]:
                page.reload()
            state["first"] = False
            try:
                return self.read_manifest(page)
            except ValueError as e:
                raise ResourceNotReady(f"Manifest is not JSON yet: {e}") from e

        manifest = poll_until(
            observe,
            lambda body: len(body.get("items", [])) == expected,
            policy,
            description=f"manifest at {page.url} to list {expected} canvases",
        )
        logger.info(f"Manifest lists {expected} canvases")
        return manifest


def manifest_rewrite_problems(manifest: Dict[str, Any], domain: str) -> List[str]:
    """Every id in the manifest body that does not use the public domain."""
    problems = []

    def check(value, expected_prefix, what):
        if not isinstance(value, str) or expected_prefix not in value:
            problems.append(f"{what} {value!r} does not contain {expected_prefix!r}")

    for canvas in manifest.get("items", []):
        check(canvas.get("id"), f"{domain}/canvases", "Canvas id")

        for thumbnail in canvas.get("thumbnail") or []:
            check(thumbnail.get("id"), f"{domain}/thumbs", "Thumbnail id")
            services = thumbnail.get("service") or []
            if len(services) > 0:
                check(services[0].get("@id"), f"{domain}/thumbs/v2", "Thumbnail image service")
            if len(services) > 1:
                check(services[1].get("id"), f"{domain}/thumbs", "Thumbnail image service")

        for annotation_page in canvas.get("items", []):
            check(annotation_page.get("id"), f"{domain}/canvases", "Annotation page id")
            for annotation in annotation_page.get("items", []):
                body = annotation.get("body") or {}
                check(annotation.get("id"), f"{domain}/canvases", "Annotation id")
                check(body.get("id"), f"{domain}/", "Annotation body id")
                check(annotation.get("target"), f"{domain}/canvases", "Annotation target")
                services = body.get("service") or []
                if len(services) > 0:
                    check(services[0].get("@id"), f"{domain}/image/v2", "Image service")
                if len(services) > 1:
                    check(services[1].get("id"), f"{domain}/image", "Image service")
    return problems


def check_manifest_rewritten(manifest: Dict[str, Any], domain: str) -> None:
    problems = manifest_rewrite_problems(manifest, domain)
    if problems:
        raise AssertionError(
            f"{len(problems)} manifest id(s) not rewritten to {domain}:\n  " + "\n  ".join(problems)
        )
