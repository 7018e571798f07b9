"""Write findings as JSON Lines records."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from arcshield.schema.models import Finding


def write_jsonl(path: Path, findings: Iterable[Finding], *, scan_root: str) -> int:
    """Write one record per finding to ``path`` and return the record count."""

    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8") as handle:
        for finding in findings:
            record = {
                "finding": finding.model_dump(),
                "scan_root": scan_root,
            }
            handle.write(json.dumps(record, ensure_ascii=False) + "\n")
            count += 1
    return count


__all__ = ["write_jsonl"]
