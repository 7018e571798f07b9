import json

from arcshield.exporters.jsonl import write_jsonl
from arcshield.schema.models import Finding


def sample_finding(**overrides):
    data = {
        "id": "SC-001",
        "title": "Reentrancy Eth",
        "severity": "high",
        "description": "Reentrancy in Vault.withdraw",
        "file_path": "contracts/Vault.sol",
        "line_number": 42,
        "code_snippet": "contracts/Vault.sol#L42-L50",
        "exploitability": "Confidence: Medium",
        "remediation": "Use the checks-effects-interactions pattern.",
        "fix_prompt": "Fix the reentrancy-eth vulnerability in contracts/Vault.sol",
        "contract_name": "Vault",
        "function_name": "withdraw",
        "detector": "reentrancy-eth",
        "tool": "slither",
    }
    data.update(overrides)
    return Finding(**data)


def test_write_jsonl(tmp_path):
    out = tmp_path / "nested" / "out.jsonl"
    count = write_jsonl(out, [sample_finding(), sample_finding(id="SC-002", line_number=7)], scan_root="/repo")

    assert count == 2
    lines = out.read_text().splitlines()
    assert len(lines) == 2
    payload = json.loads(lines[0])
    assert payload["scan_root"] == "/repo"
    assert payload["finding"]["id"] == "SC-001"
    assert payload["finding"]["tool"] == "slither"
    assert payload["finding"]["arc_specific"] is False
    assert json.loads(lines[1])["finding"]["line_number"] == 7


def test_write_jsonl_round_trips_findings(tmp_path):
    finding = sample_finding(code_snippet="string s = \"ünïcode\";")
    out = tmp_path / "out.jsonl"
    write_jsonl(out, [finding], scan_root=".")
    record = json.loads(out.read_text(encoding="utf-8"))
    assert Finding.model_validate(record["finding"]) == finding


def test_write_jsonl_empty(tmp_path):
    out = tmp_path / "empty.jsonl"
    assert write_jsonl(out, [], scan_root=".") == 0
    assert out.read_text() == ""
