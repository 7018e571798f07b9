"""Adapter that runs Mythril per Solidity file and normalises its issues."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from arcshield.schema.models import Finding
from arcshield.tools.runner import ToolError, ToolOk, ToolResult, probe, run_json_tool

_LOG = logging.getLogger(__name__)

_SWC_PATH = Path(__file__).with_name("swc.yaml")
_TABLES: Dict[str, Any] = yaml.safe_load(_SWC_PATH.read_text(encoding="utf-8"))

SEVERITY_MAP: Dict[str, str] = dict(_TABLES["severity"])
DEFAULT_SEVERITY: str = _TABLES["default_severity"]
SWC_INFO: Dict[str, Dict[str, str]] = dict(_TABLES["swc"])

EXCLUDE_DIRS = {"node_modules", "lib", "test", "tests", "mock", "mocks"}
DEFAULT_TIMEOUT = 300
DEFAULT_MAX_DEPTH = 22
# Extra wall-clock allowance on top of Mythril's own execution timeout.
_PROCESS_GRACE_SECONDS = 60

_MYTHRIL_BIN = os.environ.get("ARCSHIELD_MYTHRIL_BIN", "myth")


def run_mythril(
    target_dir: str,
    *,
    timeout: int = DEFAULT_TIMEOUT,
    max_depth: int = DEFAULT_MAX_DEPTH,
    solc_version: Optional[str] = None,
) -> List[Finding]:
    """Analyze every Solidity file under ``target_dir`` with Mythril."""

    if not is_mythril_installed():
        _LOG.info("[Mythril] Not installed - skipping symbolic execution")
        _LOG.info("[Mythril] Install with: pip install mythril")
        return []

    root = Path(target_dir).resolve()
    sol_files = list(find_solidity_files(root))
    if not sol_files:
        _LOG.info("[Mythril] No Solidity files found")
        return []

    base = root if root.is_dir() else root.parent
    _LOG.info("[Mythril] Analyzing %d contract(s)...", len(sol_files))
    findings: List[Finding] = []
    for sol_file in sol_files:
        result = analyze_file(sol_file, base, timeout=timeout, max_depth=max_depth, solc_version=solc_version)
        if isinstance(result, ToolError):
            if "No issues" not in result.message:
                _LOG.warning("[Mythril] Warning: %s - %s", sol_file.name, result.message)
            continue
        if not isinstance(result, ToolOk) or not isinstance(result.payload, Mapping):
            continue
        for issue in result.payload.get("issues") or []:
            findings.append(parse_issue(issue, len(findings) + 1, base))

    _LOG.info("[Mythril] Found %d issue(s)", len(findings))
    return findings


def is_mythril_installed() -> bool:
    return probe([_MYTHRIL_BIN, "version"])


def analyze_file(
    sol_file: Path,
    root: Path,
    *,
    timeout: int = DEFAULT_TIMEOUT,
    max_depth: int = DEFAULT_MAX_DEPTH,
    solc_version: Optional[str] = None,
) -> ToolResult:
    args = [
        _MYTHRIL_BIN,
        "analyze",
        str(sol_file),
        "-o",
        "json",
        "--execution-timeout",
        str(timeout),
        "--max-depth",
        str(max_depth),
    ]
    if solc_version:
        args.extend(["--solv", solc_version])
    # Mythril exits 0 with empty stdout when it has nothing to report.
    return run_json_tool(
        "mythril",
        args,
        cwd=root,
        timeout=timeout + _PROCESS_GRACE_SECONDS,
        empty_ok=True,
    )


def find_solidity_files(root: Path) -> Iterable[Path]:
    if root.is_file():
        if root.suffix == ".sol":
            yield root
        return
    if not root.is_dir():
        return
    for path in sorted(root.rglob("*.sol")):
        relative_dirs = path.relative_to(root).parts[:-1]
        if any(part.lower() in EXCLUDE_DIRS for part in relative_dirs):
            continue
        if path.is_file():
            yield path


def parse_issue(issue: Mapping[str, Any], ordinal: int, root: Path) -> Finding:
    swc_id = normalize_swc_id(issue.get("swc-id", issue.get("swcID")))
    swc_title = issue.get("title") or issue.get("swcTitle") or ""
    info = SWC_INFO.get(swc_id) or {
        "name": swc_title or _TABLES["fallback_name"],
        "remediation": _TABLES["fallback_remediation"],
    }

    filename = issue.get("filename")
    file_path = _relative_path(root, filename) if filename else "Unknown"
    line_number = issue.get("lineno") or 1
    tx_sequence = issue.get("tx_sequence")
    exploitability = (
        f"Attack sequence: {tx_sequence}" if tx_sequence else f"Detected at address {issue.get('address')}"
    )

    return Finding(
        id=f"MYTH-{ordinal:03d}",
        title=info["name"],
        severity=SEVERITY_MAP.get(issue.get("severity") or "", DEFAULT_SEVERITY),
        description=issue.get("description") or f"{swc_title} detected",
        file_path=file_path,
        line_number=line_number,
        code_snippet=issue.get("code") or "",
        exploitability=exploitability,
        remediation=info["remediation"],
        fix_prompt=(
            f"Fix the {info['name']} vulnerability ({swc_id}) in {file_path}:{line_number}. "
            f"{info['remediation']}"
        ),
        contract_name=issue.get("contract") or "Unknown",
        function_name=issue.get("function") or None,
        detector=swc_id,
        tool="mythril",
    )


def normalize_swc_id(raw: Any) -> str:
    """``"107"``, ``107`` and ``"SWC-107"`` all become ``"SWC-107"``; missing ids become ``""``."""

    if raw is None:
        return ""
    value = str(raw).strip()
    if not value:
        return ""
    if value.upper().startswith("SWC-"):
        return "SWC-" + value[4:]
    return f"SWC-{value}"


def _relative_path(root: Path, filename: str) -> str:
    candidate = Path(filename)
    if not candidate.is_absolute():
        return candidate.as_posix()
    try:
        return candidate.relative_to(root).as_posix()
    except ValueError:
        return os.path.relpath(candidate, root)


def known_swc_ids() -> List[str]:
    return list(SWC_INFO)


__all__ = ["analyze_file", "find_solidity_files", "known_swc_ids", "normalize_swc_id", "parse_issue", "run_mythril"]
