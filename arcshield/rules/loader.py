"""Load and validate YAML rule sets."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from arcshield.rules.model import RuleConfigError, RuleSet

_LOG = logging.getLogger(__name__)


def load_rule_set(path: Union[str, Path]) -> RuleSet:
    """Read ``path`` and return the enabled rules as a validated ``RuleSet``.

    Any problem with the file (unreadable, bad YAML, schema violation, invalid
    regular expression, unknown predicate, duplicate id) raises
    ``RuleConfigError`` so a broken rule table is rejected before scanning.
    """

    rule_path = Path(path)
    try:
        raw = yaml.safe_load(rule_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuleConfigError(f"Cannot read rule file {rule_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RuleConfigError(f"Malformed YAML in rule file {rule_path}: {exc}") from exc

    rule_set = parse_rule_set(raw, source=str(rule_path))
    _LOG.debug("Loaded %d rules from %s", len(rule_set.rules), rule_path)
    return rule_set


def parse_rule_set(raw: Any, *, source: str = "<memory>") -> RuleSet:
    """Validate an already-decoded rule document."""

    if not isinstance(raw, dict):
        raise RuleConfigError(f"Rule file {source} must contain a mapping with a 'rules' list")

    data: Dict[str, Any] = dict(raw)
    data.setdefault("name", Path(source).stem)
    try:
        rule_set = RuleSet.model_validate(data)
    except ValidationError as exc:
        raise RuleConfigError(f"Invalid rule set in {source}: {exc}") from exc

    enabled = tuple(rule for rule in rule_set.rules if rule.enabled)
    skipped = len(rule_set.rules) - len(enabled)
    if skipped:
        _LOG.debug("Skipping %d disabled rule(s) in %s", skipped, source)
    return rule_set.model_copy(update={"rules": enabled})


__all__ = ["load_rule_set", "parse_rule_set"]
