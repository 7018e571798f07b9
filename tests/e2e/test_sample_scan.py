import json
from pathlib import Path

from typer.testing import CliRunner

from apps.cli.main import app

SAMPLE_PROJECT = Path(__file__).parent / "sample_project"


def read_lines(path: Path):
    return [json.loads(line) for line in path.read_text().splitlines() if line]


def test_sample_project_scan(tmp_path):
    runner = CliRunner()
    out_dir = tmp_path / "reports"
    result = runner.invoke(
        app,
        [
            "scan",
            "--path",
            str(SAMPLE_PROJECT),
            "--no-slither",
            "--format",
            "json",
            "--out",
            str(out_dir),
        ],
    )

    # Blocking findings expected -> exit code 1
    assert result.exit_code == 1, result.stdout

    records = read_lines(out_dir / "arcshield.jsonl")
    summary = [
        (
            r["finding"]["id"],
            r["finding"]["detector"],
            r["finding"]["file_path"],
            r["finding"]["line_number"],
            r["finding"]["contract_name"],
            r["finding"]["function_name"],
        )
        for r in records
    ]
    assert summary == [
        ("ARC-001", "ARC001", "contracts/Lottery.sol", 10, "Lottery", "roll"),
        ("ARC-002", "ARC002", "contracts/UsdcVault.sol", 11, "UsdcVault", None),
        ("ARC-003", "ARC003", "contracts/UsdcVault.sol", 20, "UsdcVault", "release"),
        ("ARC-004", "ARC006", "contracts/UsdcVault.sol", 5, "UsdcVault", None),
        ("ARC-005", "ARC006", "contracts/UsdcVault.sol", 21, "UsdcVault", "release"),
    ]
    assert all(r["scan_root"] == str(SAMPLE_PROJECT) for r in records)
    assert all(r["finding"]["arc_specific"] for r in records)
    assert {r["finding"]["severity"] for r in records} == {"high", "medium"}


def test_sample_project_scan_including_lib(tmp_path):
    runner = CliRunner()
    out_dir = tmp_path / "reports"
    result = runner.invoke(
        app,
        [
            "scan",
            "--path",
            str(SAMPLE_PROJECT),
            "--no-slither",
            "--exclude",
            "node_modules",
            "--rules",
            "ARC001",
            "--format",
            "json",
            "--out",
            str(out_dir),
        ],
    )

    assert result.exit_code == 1, result.stdout
    records = read_lines(out_dir / "arcshield.jsonl")
    assert [(r["finding"]["file_path"], r["finding"]["function_name"]) for r in records] == [
        ("contracts/Lottery.sol", "roll"),
        ("lib/External.sol", "entropy"),
    ]
