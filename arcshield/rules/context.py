"""Lexical context extraction for rule matches.

These helpers work directly on the source text with offset arithmetic; they
are heuristics, not a Solidity parser:

* the contract name is the first ``contract <Name>`` declaration anywhere in
  the file, so matches in multi-contract files are attributed to the first
  contract;
* the function name is the nearest preceding ``function <name> ... {`` header
  whose brace is still open at the match. Comments and the contents of
  string literals are blanked out first, so prose and quoted braces neither
  start a header nor shift the brace depth. Unterminated literals or
  unbalanced braces can still produce a wrong or missing name, never an
  error.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

UNKNOWN_CONTRACT = "Unknown"

_CONTRACT_RE = re.compile(r"\bcontract\s+(\w+)")
_FUNCTION_RE = re.compile(r"\bfunction\s+(\w+)[^{;]*\{")
# String literals are matched first so comment markers inside them are left alone.
_MASKABLE_RE = re.compile(
    r"'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"|//[^\n]*|/\*.*?(?:\*/|\Z)",
    re.DOTALL,
)


@dataclass(frozen=True)
class MatchContext:
    line_number: int
    snippet: str
    contract_name: str
    function_name: Optional[str]


def line_number_at(text: str, offset: int) -> int:
    """1-based line of ``offset``: newlines before it plus one."""

    return text.count("\n", 0, offset) + 1


def snippet_around(lines: List[str], line_number: int) -> str:
    """Return lines ``[line_number-2, line_number+2]`` (list indices), clamped to the file."""

    if not lines:
        return ""
    start = max(0, line_number - 2)
    end = min(len(lines) - 1, line_number + 2)
    return "\n".join(lines[start : end + 1])


def find_contract_name(text: str) -> str:
    match = _CONTRACT_RE.search(text)
    return match.group(1) if match else UNKNOWN_CONTRACT


def _blank(match: re.Match) -> str:
    token = match.group(0)
    if token[0] in "\"'":
        return token[0] + re.sub(r"[^\n]", " ", token[1:-1]) + token[-1]
    return re.sub(r"[^\n]", " ", token)


def mask_comments_and_strings(text: str) -> str:
    """Blank out comments and string contents, keeping every offset and newline in place."""

    return _MASKABLE_RE.sub(_blank, text)


def _brace_still_open(text: str, brace_index: int, offset: int) -> bool:
    depth = 0
    for char in text[brace_index:offset]:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth <= 0:
                return False
    return depth > 0


def find_enclosing_function(text: str, offset: int) -> Optional[str]:
    masked = mask_comments_and_strings(text)
    headers = list(_FUNCTION_RE.finditer(masked, 0, offset))
    return _nearest_open_function(masked, headers, offset)


def _nearest_open_function(text: str, headers: List[re.Match], offset: int) -> Optional[str]:
    for header in reversed(headers):
        if header.end() > offset:
            continue
        if _brace_still_open(text, header.end() - 1, offset):
            return header.group(1)
    return None


class SourceText:
    """Per-file index reused for every match in that file."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.lines = text.split("\n")
        self.contract_name = find_contract_name(text)
        self._masked = mask_comments_and_strings(text)
        self._headers = list(_FUNCTION_RE.finditer(self._masked))

    def context_at(self, offset: int) -> MatchContext:
        line_number = line_number_at(self.text, offset)
        return MatchContext(
            line_number=line_number,
            snippet=snippet_around(self.lines, line_number),
            contract_name=self.contract_name,
            function_name=_nearest_open_function(self._masked, self._headers, offset),
        )


def extract_context(text: str, offset: int) -> MatchContext:
    """One-shot helper: build a ``SourceText`` and read the context at ``offset``."""

    return SourceText(text).context_at(offset)


__all__ = [
    "MatchContext",
    "SourceText",
    "UNKNOWN_CONTRACT",
    "extract_context",
    "find_contract_name",
    "find_enclosing_function",
    "line_number_at",
    "mask_comments_and_strings",
    "snippet_around",
]
