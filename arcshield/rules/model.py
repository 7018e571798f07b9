"""Declarative rule records and rule sets."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Pattern, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from arcshield.rules.predicates import PREDICATES, get_predicate
from arcshield.schema.models import Severity


class RuleConfigError(ValueError):
    """A rule definition is invalid; raised at load time, before any scan."""


class Rule(BaseModel):
    """A textual detection rule.

    ``pattern`` is a Python regular expression. Scanning is always global: the
    rule fires once per non-overlapping match in the whole file text.
    ``predicate`` names an entry in ``arcshield.rules.predicates.PREDICATES``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    name: str
    severity: Severity
    pattern: str = Field(min_length=1)
    ignore_case: bool = False
    multiline: bool = False
    dotall: bool = False
    description: str
    recommendation: str
    cwe_id: Optional[str] = None
    predicate: Optional[str] = None
    enabled: bool = True

    @field_validator("predicate")
    @classmethod
    def _known_predicate(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PREDICATES:
            raise ValueError(f"unknown predicate '{value}', expected one of {sorted(PREDICATES)}")
        return value

    @model_validator(mode="after")
    def _compilable_pattern(self) -> "Rule":
        try:
            compiled = re.compile(self.pattern, self.flags)
        except re.error as exc:
            raise ValueError(f"invalid pattern {self.pattern!r}: {exc}") from exc
        if compiled.fullmatch(""):
            raise ValueError(f"pattern {self.pattern!r} matches the empty string")
        return self

    @property
    def flags(self) -> int:
        flags = 0
        if self.ignore_case:
            flags |= re.IGNORECASE
        if self.multiline:
            flags |= re.MULTILINE
        if self.dotall:
            flags |= re.DOTALL
        return flags

    @property
    def regex(self) -> Pattern[str]:
        return re.compile(self.pattern, self.flags)

    def applies_to(self, content: str) -> bool:
        """Evaluate the file-level gate; rules without a predicate always apply."""

        if self.predicate is None:
            return True
        return bool(get_predicate(self.predicate)(content))


class RuleSet(BaseModel):
    """An ordered collection of rules for one scanner family."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    version: str = "0"
    description: Optional[str] = None
    rules: Tuple[Rule, ...] = ()

    @field_validator("rules")
    @classmethod
    def _unique_ids(cls, rules: Tuple[Rule, ...]) -> Tuple[Rule, ...]:
        seen = set()
        for rule in rules:
            if rule.id in seen:
                raise ValueError(f"duplicate rule id '{rule.id}'")
            seen.add(rule.id)
        return rules

    @property
    def ids(self) -> List[str]:
        return [rule.id for rule in self.rules]

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def select(self, rule_ids: Iterable[str]) -> "RuleSet":
        """Restrict to ``rule_ids`` while keeping declaration order."""

        wanted = set(rule_ids)
        unknown = wanted - set(self.ids)
        if unknown:
            raise RuleConfigError(f"Unknown rule id(s) {sorted(unknown)} for rule set '{self.name}'")
        return self.model_copy(update={"rules": tuple(r for r in self.rules if r.id in wanted)})


__all__ = ["Rule", "RuleConfigError", "RuleSet"]
