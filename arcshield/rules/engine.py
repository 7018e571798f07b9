"""Native rule engine: apply a rule set to source files and emit findings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from arcshield.rules.context import MatchContext, SourceText
from arcshield.rules.model import Rule, RuleSet
from arcshield.schema.models import Finding, SourceFile

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScannerFamily:
    """Binding of a rule set to the files and id namespace it scans."""

    name: str
    extension: str
    id_prefix: str
    tool: str = "arcshield"
    chain_specific: bool = True

    def finding_id(self, ordinal: int) -> str:
        return f"{self.id_prefix}-{ordinal:03d}"


def scan(files: Iterable[SourceFile], rule_set: RuleSet, family: ScannerFamily) -> List[Finding]:
    """Run every rule of ``rule_set`` over the files belonging to ``family``.

    Findings are ordered by file (input order), then rule (declaration order),
    then match position; ids are numbered from 1 in that order.
    """

    sources = [f for f in files if f.path.endswith(family.extension)]
    if not sources:
        return []

    _LOG.info("[%s] Analyzing %d %s file(s)...", family.name, len(sources), family.extension)
    findings: List[Finding] = []
    for source in sources:
        findings.extend(_scan_file(source, rule_set.rules, family, first_ordinal=len(findings) + 1))

    _LOG.info("[%s] Found %d issue(s)", family.name, len(findings))
    return findings


def _scan_file(
    source: SourceFile,
    rules: Sequence[Rule],
    family: ScannerFamily,
    *,
    first_ordinal: int,
) -> List[Finding]:
    content = source.content
    text = SourceText(content)
    findings: List[Finding] = []
    for rule in rules:
        if not rule.applies_to(content):
            continue
        for match in rule.regex.finditer(content):
            context = text.context_at(match.start())
            findings.append(
                _build_finding(
                    rule,
                    source.path,
                    context,
                    matched=match.group(0),
                    finding_id=family.finding_id(first_ordinal + len(findings)),
                    family=family,
                )
            )
    return findings


def _build_finding(
    rule: Rule,
    path: str,
    context: MatchContext,
    *,
    matched: str,
    finding_id: str,
    family: ScannerFamily,
) -> Finding:
    return Finding(
        id=finding_id,
        title=rule.name,
        severity=rule.severity,
        description=rule.description,
        file_path=path,
        line_number=context.line_number,
        code_snippet=context.snippet,
        cwe_id=rule.cwe_id,
        exploitability=f"Pattern match: {matched}",
        remediation=rule.recommendation,
        fix_prompt=(
            f'Fix the {family.name}-specific vulnerability "{rule.name}" '
            f"at line {context.line_number} in {path}"
        ),
        contract_name=context.contract_name,
        function_name=context.function_name,
        detector=rule.id,
        tool=family.tool,
        arc_specific=family.chain_specific,
        arc_rule=rule.id if family.chain_specific else None,
    )


__all__ = ["ScannerFamily", "scan"]
