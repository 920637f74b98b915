"""Post-compile document checks.

Operates in log-only mode: findings are reported, never repaired and never
block compilation. Callers decide whether to act on them.

Known data-quality smell: a string base-type response declaration whose
qti-mapping carries more than one qti-map-entry. The compiler permits it;
this module only detects it.
"""
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List, Tuple

from qticraft.services.compiler import QTI_NS, QTI_SCHEMA_LOCATION, placement_problems

logger = logging.getLogger("qticraft.qti_checks")

_XSI_SCHEMA_LOCATION = "{http://www.w3.org/2001/XMLSchema-instance}schemaLocation"
_SLOT_ELEMENT_RE = re.compile(r"<slot[\s/>]")


def _q(tag: str) -> str:
    return f"{{{QTI_NS}}}{tag}"


@dataclass(frozen=True)
class MappingIssue:
    response_identifier: str
    entry_count: int
    keys: tuple[str, ...]


def find_multi_entry_string_mappings(xml: str) -> list[MappingIssue]:
    """String response declarations whose mapping has more than one entry."""
    root = ET.fromstring(xml.encode("utf-8"))
    issues = []
    for decl in root.iter(_q("qti-response-declaration")):
        if decl.get("base-type") != "string":
            continue
        mapping = decl.find(_q("qti-mapping"))
        if mapping is None:
            continue
        entries = mapping.findall(_q("qti-map-entry"))
        if len(entries) > 1:
            issues.append(MappingIssue(
                response_identifier=decl.get("identifier", ""),
                entry_count=len(entries),
                keys=tuple(e.get("map-key", "") for e in entries),
            ))
    return issues


def check_document(xml: str, expected_kind: str, temp_prefix: str = "nice-tmp_") -> Tuple[bool, List[str]]:
    """Run structural checks on one compiled document.

    Returns (passed: bool, failures: list[str]). MULTI_ENTRY_MAPPING
    findings are listed but do not fail the document.
    """
    failures: List[str] = []
    warnings: List[str] = []

    # ── Check 1: Well-formed, single root ─────────────────────────────────
    try:
        root = ET.fromstring(xml.encode("utf-8"))
    except ET.ParseError as e:
        failures.append(f"NOT_WELL_FORMED: {e}")
        logger.warning("[qti_checks] %s", failures[-1])
        return False, failures

    expected_tag = _q(f"qti-assessment-{expected_kind}")
    if root.tag != expected_tag:
        failures.append(f"ROOT_MISMATCH: got {root.tag}, expected {expected_tag}")

    # ── Check 2: Fixed namespace and schema location ──────────────────────
    if root.get(_XSI_SCHEMA_LOCATION) != QTI_SCHEMA_LOCATION:
        failures.append(f"SCHEMA_LOCATION: got '{root.get(_XSI_SCHEMA_LOCATION)}'")

    # ── Check 3: Identity ─────────────────────────────────────────────────
    identifier = root.get("identifier") or ""
    if not identifier:
        failures.append("IDENTIFIER: root has no identifier")
    elif temp_prefix and identifier.startswith(temp_prefix):
        failures.append(f"TEMP_IDENTIFIER: '{identifier}' carries the temporary prefix")
    if not (root.get("title") or "").strip():
        failures.append("TITLE: root has no title")

    # ── Check 4: Every slot resolved ──────────────────────────────────────
    if _SLOT_ELEMENT_RE.search(xml):
        failures.append("LEFTOVER_SLOT: unresolved <slot> placeholder in output")

    # ── Check 5: Interaction and prompt placement ─────────────────────────
    for problem in placement_problems(root):
        code = "PROMPT_PLACEMENT" if "qti-prompt" in problem else "TEXT_ENTRY_PLACEMENT"
        failures.append(f"{code}: {problem}")

    # ── Check 6: Multi-entry string mappings (detection only) ─────────────
    if expected_kind == "item":
        for issue in find_multi_entry_string_mappings(xml):
            warnings.append(
                f"MULTI_ENTRY_MAPPING: {issue.response_identifier} has "
                f"{issue.entry_count} entries {list(issue.keys)}"
            )

    for line in failures + warnings:
        logger.warning("[qti_checks] %s %s", identifier or "?", line)
    return len(failures) == 0, failures + warnings
