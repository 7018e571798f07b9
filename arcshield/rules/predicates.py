"""Named file-level predicates that gate rules.

Rule data refers to predicates by name. Each predicate receives the full text
of one file and returns whether the rule should be evaluated on it at all.
"""
from __future__ import annotations

import re
from typing import Callable, Dict

Predicate = Callable[[str], bool]

PREDICATES: Dict[str, Predicate] = {}

_USDC = re.compile(r"usdc", re.IGNORECASE)
_BLOCKLIST = re.compile(r"blocklist|blocked|blacklist", re.IGNORECASE)
_SIX_DECIMALS = re.compile(r"1e6|10\*\*6|1000000")


def predicate(name: str) -> Callable[[Predicate], Predicate]:
    """Register ``func`` under ``name`` so rule files can reference it."""

    def register(func: Predicate) -> Predicate:
        if name in PREDICATES:
            raise ValueError(f"Predicate '{name}' is already registered")
        PREDICATES[name] = func
        return func

    return register


def get_predicate(name: str) -> Predicate:
    try:
        return PREDICATES[name]
    except KeyError:
        raise KeyError(f"Unknown predicate '{name}'. Expected one of {sorted(PREDICATES)}") from None


@predicate("usdc_without_blocklist")
def usdc_without_blocklist(content: str) -> bool:
    """The file deals with USDC but never mentions blocklist handling."""

    return bool(_USDC.search(content)) and not _BLOCKLIST.search(content)


@predicate("hardcoded_six_decimals")
def hardcoded_six_decimals(content: str) -> bool:
    """The file contains a literal 6-decimal scaling factor."""

    return bool(_SIX_DECIMALS.search(content))


__all__ = ["PREDICATES", "Predicate", "get_predicate", "predicate"]
