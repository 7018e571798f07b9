"""Single-call invocation of external analyzers that emit JSON.

Every invocation resolves to exactly one tagged result:

* ``ToolUnavailable`` when the tool is not installed,
* ``ToolError`` when it failed to run (``kind="execution"``) or produced
  output that is not JSON (``kind="parse"``),
* ``ToolOk`` with the decoded payload otherwise.

Failures are returned, not raised, so one missing analyzer never stops a scan.
"""
from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, Sequence, Union

_LOG = logging.getLogger(__name__)

OUTPUT_EXCERPT_CHARS = 200


@dataclass(frozen=True)
class ToolUnavailable:
    tool: str


@dataclass(frozen=True)
class ToolError:
    tool: str
    message: str
    kind: Literal["execution", "parse"] = "execution"


@dataclass(frozen=True)
class ToolOk:
    tool: str
    payload: Any


ToolResult = Union[ToolUnavailable, ToolError, ToolOk]


def probe(command: Sequence[str]) -> bool:
    """Return True if ``command`` launches and exits with status 0."""

    try:
        completed = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        _LOG.debug("Probe %s failed to launch: %s", command[0], exc)
        return False
    return completed.returncode == 0


def run_json_tool(
    tool: str,
    args: Sequence[str],
    *,
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    empty_ok: bool = False,
) -> ToolResult:
    """Run ``args`` to completion and decode its stdout as JSON.

    A non-zero exit status is only an error when stdout is empty; some
    analyzers report findings through a non-zero status.
    """

    _LOG.debug("Running %s: %s", tool, " ".join(str(a) for a in args))
    try:
        completed = subprocess.run(
            [str(a) for a in args],
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return ToolError(tool, f"{tool} timed out after {timeout}s")
    except OSError as exc:
        return ToolError(tool, str(exc))

    stdout = completed.stdout or ""
    if completed.returncode != 0 and not stdout:
        message = (completed.stderr or "").strip() or f"{tool} exited with code {completed.returncode}"
        return ToolError(tool, message)

    if empty_ok and not stdout.strip():
        return ToolOk(tool, None)

    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError:
        return ToolError(
            tool,
            f"Failed to parse {tool} output: {stdout[:OUTPUT_EXCERPT_CHARS]}",
            kind="parse",
        )
    return ToolOk(tool, payload)


__all__ = [
    "ToolError",
    "ToolOk",
    "ToolResult",
    "ToolUnavailable",
    "probe",
    "run_json_tool",
]
