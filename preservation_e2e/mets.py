"""
METS manifest queries and structural assertions.

A preserved file appears in three regions of a METS document that are linked
by identifiers rather than nesting:

    mets:amdSec        administrative metadata, keyed by premis:originalName
    mets:fileSec       mets:file (ADMID -> amdSec ID) with mets:FLocat hrefs
    mets:structMap     nested mets:div by LABEL, mets:fptr FILEID -> file ID

MetsManifest exposes typed accessors over those regions; the assert_* functions
build on them and raise MetsAssertionError with a message naming the path.
All comparisons are exact after stripping surrounding whitespace.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from lxml import etree

from preservation_e2e.exceptions import MetsAssertionError

NAMESPACES: Dict[str, str] = {
    "mets": "http://www.loc.gov/METS/",
    "premis": "http://www.loc.gov/premis/v3",
    "xlink": "http://www.w3.org/1999/xlink",
    "mods": "http://www.loc.gov/mods/v3",
}

ROOT_LABEL = "__ROOT"

ACCESS_RESTRICTION = "restriction on access"
USE_AND_REPRODUCTION = "use and reproduction"


def _text(element) -> str:
    return (element.text or "").strip() if element is not None else ""


def _attr(element, name: str) -> str:
    return (element.get(name) or "").strip()


@dataclass(frozen=True)
class AdministrativeSection:
    id: str
    original_name: str
    digest_algorithms: Tuple[str, ...]
    digests: Tuple[str, ...]
    format_names: Tuple[str, ...]
    format_keys: Tuple[str, ...]
    element: etree._Element = field(repr=False, compare=False)


@dataclass(frozen=True)
class FileEntry:
    id: str
    adm_id: str
    mime_type: str
    hrefs: Tuple[str, ...]
    element: etree._Element = field(repr=False, compare=False)


@dataclass(frozen=True)
class StructuralNode:
    label: str
    adm_id: str
    file_ids: Tuple[str, ...]
    element: etree._Element = field(repr=False, compare=False)

    def children(self, namespaces: Dict[str, str] = NAMESPACES) -> List["StructuralNode"]:
        return [StructuralNode.from_element(div) for div in self.element.findall("mets:div", namespaces)]

    @classmethod
    def from_element(cls, element, namespaces: Dict[str, str] = NAMESPACES) -> "StructuralNode":
        return cls(
            label=_attr(element, "LABEL"),
            adm_id=_attr(element, "ADMID"),
            file_ids=tuple(_attr(fptr, "FILEID") for fptr in element.findall("mets:fptr", namespaces)),
            element=element,
        )


class MetsManifest:
    """A parsed, read-only METS document."""

    def __init__(self, root: etree._Element, namespaces: Optional[Dict[str, str]] = None):
        self.root = root
        self.ns = dict(namespaces or NAMESPACES)
        self._xlink_href = "{%s}href" % self.ns["xlink"]

    @classmethod
    def from_bytes(cls, content: Union[bytes, str], namespaces: Optional[Dict[str, str]] = None) -> "MetsManifest":
        if isinstance(content, str):
            content = content.encode("utf-8")
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            root = etree.fromstring(content, parser)
        except etree.XMLSyntaxError as e:
            raise MetsAssertionError(f"METS document is not well-formed XML: {e}") from e
        return cls(root, namespaces)

    from_string = from_bytes

    def xpath(self, expression: str, element=None) -> list:
        return (element if element is not None else self.root).xpath(expression, namespaces=self.ns)

    # ---- administrative metadata ----

    def administrative_sections(self) -> List[AdministrativeSection]:
        sections = []
        for amd in self.xpath("//mets:amdSec"):
            names = self.xpath(".//premis:originalName", amd)
            sections.append(AdministrativeSection(
                id=_attr(amd, "ID"),
                original_name=_text(names[0]) if names else "",
                digest_algorithms=tuple(_text(e) for e in self.xpath(".//premis:messageDigestAlgorithm", amd)),
                digests=tuple(_text(e) for e in self.xpath(".//premis:messageDigest", amd)),
                format_names=tuple(_text(e) for e in self.xpath(".//premis:formatName", amd)),
                format_keys=tuple(_text(e) for e in self.xpath(".//premis:formatRegistryKey", amd)),
                element=amd,
            ))
        return sections

    def find_administrative_sections_by_path(self, path: str) -> List[AdministrativeSection]:
        wanted = path.strip()
        return [s for s in self.administrative_sections() if s.original_name == wanted]

    # ---- file section ----

    def file_entries(self) -> List[FileEntry]:
        entries = []
        for f in self.xpath("//mets:fileSec//mets:file"):
            entries.append(FileEntry(
                id=_attr(f, "ID"),
                adm_id=_attr(f, "ADMID"),
                mime_type=_attr(f, "MIMETYPE"),
                hrefs=tuple(_attr(loc, self._xlink_href) for loc in self.xpath("mets:FLocat", f)),
                element=f,
            ))
        return entries

    def find_file_entries_by_admin_id(self, adm_id: str) -> List[FileEntry]:
        wanted = adm_id.strip()
        return [e for e in self.file_entries() if e.adm_id == wanted]

    def file_locations(self) -> List[str]:
        return [_attr(loc, self._xlink_href) for loc in self.xpath("//mets:FLocat")]

    # ---- structural map ----

    def structure_map(self):
        """The PHYSICAL structMap, or the first one when none is typed."""
        maps = self.xpath("//mets:structMap")
        if not maps:
            raise MetsAssertionError("METS document has no mets:structMap")
        physical = [m for m in maps if _attr(m, "TYPE").upper() == "PHYSICAL"]
        return (physical or maps)[0]

    def find_structural_nodes_by_path(self, segments: Sequence[str],
                                      root_label: str = ROOT_LABEL) -> List[StructuralNode]:
        """
        All nodes reached by matching each label against direct child divs.

        The path starts at the root div; root_label is prepended when missing.
        """
        current = [self.structure_map()]
        for segment in _rooted(segments, root_label):
            wanted = segment.strip()
            current = [
                div
                for parent in current
                for div in parent.findall("mets:div", self.ns)
                if _attr(div, "LABEL") == wanted
            ]
            if not current:
                return []
        return [StructuralNode.from_element(div, self.ns) for div in current]

    def find_structural_node_by_path(self, segments: Sequence[str],
                                     root_label: str = ROOT_LABEL) -> StructuralNode:
        nodes = self.find_structural_nodes_by_path(segments, root_label)
        if len(nodes) != 1:
            raise MetsAssertionError(
                f"Expected exactly one structMap node at {'/'.join(segments)!r}, found {len(nodes)}"
            )
        return nodes[0]

    def structural_labels(self) -> List[str]:
        return [_attr(div, "LABEL") for div in self.structure_map().iter("{%s}div" % self.ns["mets"])]

    # ---- descriptive metadata ----

    def descriptive_access_conditions(self) -> List[Tuple[str, str]]:
        """(type, value) pairs of mods:accessCondition inside mets:dmdSec."""
        return [
            (_attr(cond, "type"), _text(cond))
            for cond in self.xpath("//mets:dmdSec//mods:accessCondition")
        ]


def _rooted(segments: Sequence[str], root_label: str = ROOT_LABEL) -> List[str]:
    segments = [s for s in segments if s is not None]
    if segments and segments[0].strip() == root_label:
        return list(segments)
    return [root_label] + list(segments)


def assert_administrative_entry(manifest: MetsManifest, path: str, should_exist: bool = True) -> Optional[str]:
    """
    Check an amdSec exists (exactly once) or is absent for a logical path.

    Returns the amdSec ID when it should exist, otherwise None.
    """
    matches = manifest.find_administrative_sections_by_path(path)
    if should_exist:
        if len(matches) != 1:
            raise MetsAssertionError(
                f"Expected one amdSec with originalName {path!r}, found {len(matches)}"
            )
        return matches[0].id
    if matches:
        raise MetsAssertionError(
            f"Expected no amdSec with originalName {path!r}, found {len(matches)} "
            f"({', '.join(m.id for m in matches)})"
        )
    return None


def assert_file_entry(manifest: MetsManifest, path: str, adm_id: str, mime_type: Optional[str] = None) -> str:
    """Find the fileSec entry referencing adm_id whose FLocat is path; return its ID."""
    entries = manifest.find_file_entries_by_admin_id(adm_id)
    if not entries:
        raise MetsAssertionError(f"No mets:file references ADMID {adm_id!r}")
    wanted = path.strip()
    located = [e for e in entries if wanted in e.hrefs]
    if len(located) != 1:
        raise MetsAssertionError(
            f"Expected one mets:file with ADMID {adm_id!r} and FLocat {path!r}, found {len(located)}"
        )
    entry = located[0]
    if mime_type is not None and entry.mime_type != mime_type.strip():
        raise MetsAssertionError(
            f"mets:file {entry.id} for {path!r} has MIMETYPE {entry.mime_type!r}, expected {mime_type!r}"
        )
    return entry.id


def assert_structural_path(manifest: MetsManifest, segments: Sequence[str],
                           adm_id: Optional[str] = None, root_label: str = ROOT_LABEL) -> StructuralNode:
    """
    Walk the structMap from the root div through each label.

    Exactly one div must match at every level. When adm_id is given the final
    node's ADMID must equal it.
    """
    path = _rooted(segments, root_label)
    for depth, label in enumerate(path, 1):
        matched = manifest.find_structural_nodes_by_path(path[:depth], root_label)
        if len(matched) != 1:
            raise MetsAssertionError(
                f"structMap level {depth} ({'/'.join(path[:depth])}): expected exactly one div "
                f"labelled {label!r}, found {len(matched)}"
            )
    node = matched[0]
    if adm_id is not None and node.adm_id != adm_id.strip():
        raise MetsAssertionError(
            f"structMap node {'/'.join(path)!r} has ADMID {node.adm_id!r}, expected {adm_id!r}"
        )
    return node


def assert_file_in_structure(manifest: MetsManifest, folder_segments: Sequence[str], file_label: str,
                             adm_id: Optional[str], file_id: str) -> StructuralNode:
    """The file's div sits under the folder path and points at file_id via mets:fptr."""
    node = assert_structural_path(manifest, list(folder_segments) + [file_label], adm_id)
    if file_id.strip() not in node.file_ids:
        raise MetsAssertionError(
            f"structMap node {file_label!r} has fptr FILEIDs {list(node.file_ids)}, expected {file_id!r}"
        )
    return node


def assert_file_present(manifest: MetsManifest, path: str, folder_segments: Sequence[str],
                        file_label: str, mime_type: Optional[str] = None) -> Tuple[str, str]:
    """Administrative, file and structural entries all agree for one file."""
    adm_id = assert_administrative_entry(manifest, path, True)
    file_id = assert_file_entry(manifest, path, adm_id, mime_type)
    assert_file_in_structure(manifest, folder_segments, file_label, adm_id, file_id)
    return adm_id, file_id


def assert_digest(manifest: MetsManifest, path: str, algorithm: str, digest: str) -> None:
    section = _single_section(manifest, path)
    if len(section.digest_algorithms) != 1 or len(section.digests) != 1:
        raise MetsAssertionError(
            f"amdSec {section.id} for {path!r} should have one digest algorithm and one digest, "
            f"found {len(section.digest_algorithms)} and {len(section.digests)}"
        )
    if section.digest_algorithms[0] != algorithm.strip():
        raise MetsAssertionError(
            f"Digest algorithm for {path!r} is {section.digest_algorithms[0]!r}, expected {algorithm!r}"
        )
    if section.digests[0] != digest.strip():
        raise MetsAssertionError(
            f"Digest for {path!r} is {section.digests[0]!r}, expected {digest!r}"
        )


def assert_format(manifest: MetsManifest, path: str, format_name: str, registry_key: str) -> None:
    """PRONOM format name and registry key recorded for the file."""
    section = _single_section(manifest, path)
    if list(section.format_names) != [format_name.strip()]:
        raise MetsAssertionError(
            f"Format name for {path!r} is {list(section.format_names)}, expected {format_name!r}"
        )
    if list(section.format_keys) != [registry_key.strip()]:
        raise MetsAssertionError(
            f"Format registry key for {path!r} is {list(section.format_keys)}, expected {registry_key!r}"
        )


def assert_absent(manifest: MetsManifest, path: str, label: str) -> None:
    """A deleted file must be gone from the amdSecs, the FLocats and the structMap."""
    assert_administrative_entry(manifest, path, False)
    wanted = path.strip()
    hrefs = [href for href in manifest.file_locations() if href == wanted]
    if hrefs:
        raise MetsAssertionError(f"FLocat still references {path!r} ({len(hrefs)} times)")
    _assert_label_absent(manifest, label)


def assert_folder_absent(manifest: MetsManifest, path: str, label: str) -> None:
    assert_administrative_entry(manifest, path, False)
    _assert_label_absent(manifest, label)


def assert_access_condition(manifest: MetsManifest, value: str, condition_type: str,
                            should_exist: bool = True) -> None:
    wanted = (condition_type.strip(), value.strip())
    found = manifest.descriptive_access_conditions().count(wanted)
    if should_exist and found != 1:
        raise MetsAssertionError(
            f"Expected one mods:accessCondition type={condition_type!r} value={value!r}, found {found}"
        )
    if not should_exist and found:
        raise MetsAssertionError(
            f"mods:accessCondition type={condition_type!r} value={value!r} should have been removed"
        )


def _single_section(manifest: MetsManifest, path: str) -> AdministrativeSection:
    sections = manifest.find_administrative_sections_by_path(path)
    if len(sections) != 1:
        raise MetsAssertionError(f"Expected one amdSec with originalName {path!r}, found {len(sections)}")
    return sections[0]


def _assert_label_absent(manifest: MetsManifest, label: str) -> None:
    count = manifest.structural_labels().count(label.strip())
    if count:
        raise MetsAssertionError(f"structMap still has {count} div(s) labelled {label!r}")
