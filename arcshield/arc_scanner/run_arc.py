"""Arc-specific scanner: the built-in Arc rule table bound to Solidity files."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional

from arcshield.rules.engine import ScannerFamily, scan
from arcshield.rules.loader import load_rule_set
from arcshield.rules.model import Rule, RuleSet
from arcshield.schema.models import Finding, SourceFile

ARC_RULES_PATH = Path(__file__).with_name("arc_rules.yaml")

ARC_FAMILY = ScannerFamily(name="Arc", extension=".sol", id_prefix="ARC", tool="arcshield")


@lru_cache(maxsize=1)
def default_rule_set() -> RuleSet:
    """Load and validate the packaged Arc rule table once per process."""

    return load_rule_set(ARC_RULES_PATH)


def run_arc_scanner(files: Iterable[SourceFile], rule_set: Optional[RuleSet] = None) -> List[Finding]:
    """Scan Solidity ``files`` for Arc-specific vulnerabilities."""

    return scan(files, rule_set if rule_set is not None else default_rule_set(), ARC_FAMILY)


def get_arc_rules() -> List[Rule]:
    return list(default_rule_set().rules)


__all__ = ["ARC_FAMILY", "ARC_RULES_PATH", "default_rule_set", "get_arc_rules", "run_arc_scanner"]
