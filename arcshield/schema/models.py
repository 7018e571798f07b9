"""Core schema models shared across the rule engine, tool adapters, and exporters."""
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "high", "medium", "low", "info"]
Tool = Literal["arcshield", "slither", "mythril"]

SEVERITY_ORDER: Tuple[str, ...] = ("critical", "high", "medium", "low", "info")


def severity_rank(severity: str) -> int:
    """Return the position of ``severity`` in ``SEVERITY_ORDER`` (0 is most severe)."""

    try:
        return SEVERITY_ORDER.index(severity)
    except ValueError:
        return len(SEVERITY_ORDER)


class SourceFile(BaseModel):
    """A file handed to the native rule engine by file discovery."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    content: str


class Finding(BaseModel):
    """Normalized vulnerability finding emitted by every scanner."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    title: str
    severity: Severity
    threat_id: str = ""
    description: str
    file_path: str
    line_number: int = Field(ge=1)
    code_snippet: str
    cwe_id: Optional[str] = None
    exploitability: str
    remediation: str
    fix_prompt: str
    contract_name: Optional[str] = None
    function_name: Optional[str] = None
    detector: str
    tool: Tool
    arc_specific: bool = False
    arc_rule: Optional[str] = None
