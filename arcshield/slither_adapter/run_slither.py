"""Adapter that invokes Slither and normalises its detector results."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml

from arcshield.schema.models import Finding
from arcshield.tools.runner import ToolError, ToolOk, ToolResult, ToolUnavailable, probe, run_json_tool

_LOG = logging.getLogger(__name__)

_DETECTORS_PATH = Path(__file__).with_name("detectors.yaml")
_TABLES: Dict[str, Any] = yaml.safe_load(_DETECTORS_PATH.read_text(encoding="utf-8"))

IMPACT_TO_SEVERITY: Dict[str, str] = dict(_TABLES["impact_severity"])
DEFAULT_SEVERITY: str = _TABLES["default_severity"]
CONFIDENCE_LEVELS: List[str] = list(_TABLES["confidence_levels"])
REMEDIATIONS: Dict[str, str] = dict(_TABLES["remediations"])
FALLBACK_REMEDIATION: str = _TABLES["fallback_remediation"]

DEFAULT_EXCLUDES = ("node_modules", "lib", "test")
NO_CONTRACTS_MARKER = "No contract found"

_SLITHER_BIN = os.environ.get("ARCSHIELD_SLITHER_BIN", "slither")


def run_slither(target_dir: str, exclude_paths: Optional[Sequence[str]] = None) -> List[Finding]:
    """Run Slither on ``target_dir`` and convert its detectors into ``Finding`` objects.

    Never raises for tool problems: a missing install, a failed run, or
    unreadable output all yield an empty list and a log message.
    """

    excludes = DEFAULT_EXCLUDES if exclude_paths is None else tuple(exclude_paths)
    result = analyze_with_slither(target_dir, excludes)

    if isinstance(result, ToolUnavailable):
        _LOG.info("[Slither] Not installed - skipping smart contract analysis")
        _LOG.info("[Slither] Install with: pip install slither-analyzer")
        return []
    if isinstance(result, ToolError):
        if NO_CONTRACTS_MARKER in result.message:
            _LOG.info("[Slither] No Solidity contracts found")
        elif result.kind == "parse":
            _LOG.warning("[Slither] %s", result.message)
        else:
            _LOG.warning("[Slither] Error: %s", result.message)
        return []

    findings = parse_detectors(result.payload)
    _LOG.info("[Slither] Found %d issue(s)", len(findings))
    return findings


def analyze_with_slither(target_dir: str, exclude_paths: Sequence[str] = DEFAULT_EXCLUDES) -> ToolResult:
    """Check availability, then run Slither once with JSON output on stdout.

    A report whose envelope says ``"success": false`` is returned as a
    ``ToolError`` carrying Slither's own error text.
    """

    if not is_slither_installed():
        return ToolUnavailable("slither")

    target = Path(target_dir).resolve()
    args = [_SLITHER_BIN, str(target), "--json", "-"]
    for fragment in exclude_paths:
        args.extend(["--filter-paths", fragment])
    result = run_json_tool("slither", args, cwd=target if target.is_dir() else target.parent)
    payload = result.payload if isinstance(result, ToolOk) else None
    if isinstance(payload, Mapping) and payload.get("success") is False:
        return ToolError("slither", str(payload.get("error") or "slither reported success=false"))
    return result


def is_slither_installed() -> bool:
    return probe([_SLITHER_BIN, "--version"])


def parse_detectors(payload: Any) -> List[Finding]:
    """Map a decoded Slither report to findings, numbering ``SC-001`` onwards."""

    findings: List[Finding] = []
    for detector in _iter_detectors(payload):
        finding = _parse_detector(detector, len(findings) + 1)
        if finding is not None:
            findings.append(finding)
    return findings


def _iter_detectors(payload: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(payload, Mapping):
        return []
    # `slither --json -` wraps results as {"success", "error", "results": {...}}.
    container = payload.get("results") if isinstance(payload.get("results"), Mapping) else payload
    detectors = container.get("detectors") or []
    return [d for d in detectors if isinstance(d, Mapping)]


def _parse_detector(detector: Mapping[str, Any], ordinal: int) -> Optional[Finding]:
    element = next(
        (e for e in detector.get("elements") or [] if isinstance(e, Mapping) and e.get("source_mapping")),
        None,
    )
    if element is None:
        return None

    check = str(detector.get("check", "unknown"))
    source_mapping = element["source_mapping"]
    file_path = source_mapping.get("filename_relative") or "Unknown"
    lines = source_mapping.get("lines") or []
    line_number = lines[0] if lines and lines[0] else 1

    parent = (element.get("type_specific_fields") or {}).get("parent") or {}
    contract_name = parent.get("name") or element.get("name") or "Unknown"
    function_name = element.get("name") if element.get("type") == "function" else None

    return Finding(
        id=f"SC-{ordinal:03d}",
        title=format_detector_name(check),
        severity=map_impact(detector.get("impact")),
        description=detector.get("description") or "",
        file_path=file_path,
        line_number=line_number,
        code_snippet=detector.get("first_markdown_element") or "",
        exploitability=f"Confidence: {_confidence_label(detector.get('confidence'))}",
        remediation=remediation_for(check),
        fix_prompt=f"Fix the {check} vulnerability in {file_path}",
        contract_name=contract_name,
        function_name=function_name,
        detector=check,
        tool="slither",
    )


def map_impact(impact: Optional[str]) -> str:
    """Translate a Slither impact label; unknown labels fall back to the lowest severity."""

    return IMPACT_TO_SEVERITY.get(impact or "", DEFAULT_SEVERITY)


def _confidence_label(confidence: Optional[str]) -> str:
    return confidence if confidence in CONFIDENCE_LEVELS else "Unknown"


def remediation_for(check: str) -> str:
    return REMEDIATIONS.get(check, FALLBACK_REMEDIATION)


def format_detector_name(check: str) -> str:
    """``reentrancy-eth`` -> ``Reentrancy Eth`` (display only)."""

    return " ".join(word[:1].upper() + word[1:] for word in check.split("-"))


def known_detectors() -> List[str]:
    return list(_TABLES["common_detectors"])


__all__ = [
    "analyze_with_slither",
    "format_detector_name",
    "known_detectors",
    "map_impact",
    "parse_detectors",
    "remediation_for",
    "run_slither",
]
