"""Typer CLI entrypoint for arcshield scans."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from arcshield.arc_scanner.run_arc import default_rule_set, run_arc_scanner
from arcshield.exporters.jsonl import write_jsonl
from arcshield.mythril_adapter.run_mythril import known_swc_ids, run_mythril
from arcshield.rules.loader import load_rule_set
from arcshield.rules.model import RuleConfigError, RuleSet
from arcshield.schema.models import Finding, SourceFile, severity_rank
from arcshield.slither_adapter.run_slither import DEFAULT_EXCLUDES, known_detectors, run_slither

app = typer.Typer(add_completion=False, help="Arc smart-contract security scanner.")
console = Console()

_LOG = logging.getLogger(__name__)


class DebugLogger:
    """JSONL debug trace writer used during CLI runs."""

    def __init__(self, path: Optional[Path]):
        self._handle = None
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = path.open("w", encoding="utf-8")

    @property
    def enabled(self) -> bool:
        return self._handle is not None

    def log(self, event: str, payload: Optional[dict] = None, **extra: object) -> None:
        if not self._handle:
            return
        entry: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
        }
        if payload:
            entry.update(payload)
        if extra:
            entry.update(extra)
        self._handle.write(json.dumps(entry, ensure_ascii=False) + "\n")
        self._handle.flush()

    def close(self) -> None:
        if self._handle:
            self._handle.close()
            self._handle = None


_VALID_FORMATS = {"json", "table"}
_SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
}


def _configure_logging(verbose: bool) -> None:
    root = logging.getLogger()
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.setLevel(logging.DEBUG if verbose else logging.INFO)
        return
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def _normalize_formats(values: Sequence[str]) -> List[str]:
    if not values:
        return ["table"]
    normalized = []
    for value in values:
        fmt = value.lower()
        if fmt not in _VALID_FORMATS:
            raise typer.BadParameter(
                f"Unsupported format '{value}'. Choose from {sorted(_VALID_FORMATS)}"
            )
        if fmt not in normalized:
            normalized.append(fmt)
    return normalized


def _normalize_rules(rules_option: Optional[str]) -> List[str]:
    if not rules_option:
        return []
    return [part.strip() for part in rules_option.split(",") if part.strip()]


def _resolve_rule_set(rules_file: Optional[Path], selected: Sequence[str]) -> RuleSet:
    rule_set = load_rule_set(rules_file) if rules_file is not None else default_rule_set()
    if selected:
        rule_set = rule_set.select(selected)
    return rule_set


@app.command()
def scan(
    path: Path = typer.Option(Path("."), "--path", help="Contract file or project directory to scan"),
    exclude: List[str] = typer.Option(
        list(DEFAULT_EXCLUDES), "--exclude", help="Repeatable path fragment to skip"
    ),
    rules: Optional[str] = typer.Option(
        None,
        "--rules",
        help="Comma-separated Arc rule ids to run (default: all)",
        show_default=False,
    ),
    rules_file: Optional[Path] = typer.Option(
        None, "--rules-file", help="Alternative YAML rule set for the Arc scanner"
    ),
    slither: bool = typer.Option(True, "--slither/--no-slither", help="Run Slither if installed"),
    mythril: bool = typer.Option(False, "--mythril/--no-mythril", help="Run Mythril if installed"),
    format: List[str] = typer.Option(["table"], "--format", help="Repeatable option: json, table"),
    out: Path = typer.Option(
        Path("artifacts/arcshield"),
        "--out",
        help="Base output path for file formats (directory or filename prefix)",
    ),
    fail_on_high: bool = typer.Option(
        False,
        "--fail-on-high",
        help="Treat only critical/high findings as blocking",
    ),
    debug_log: Optional[Path] = typer.Option(
        None,
        "--debug-log",
        help="Write debug trace JSONL to this path",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scan Solidity contracts with Arc-specific rules and external analyzers."""

    _configure_logging(verbose)
    debug = DebugLogger(debug_log)

    try:
        if not path.exists():
            raise typer.BadParameter(f"Scan target not found: {path}")

        formats = _normalize_formats(format)
        selected_rules = _normalize_rules(rules)

        try:
            rule_set = _resolve_rule_set(rules_file, selected_rules)
        except RuleConfigError as exc:
            console.print(f"[red]Invalid rule configuration: {escape(str(exc))}[/]")
            debug.log("error", {"stage": "rules", "message": str(exc)})
            raise typer.Exit(code=2) from exc

        console.log(
            f"Starting scan: path={path} rules={rule_set.ids} slither={slither} "
            f"mythril={mythril} formats={formats}"
        )
        debug.log("start", {
            "path": str(path),
            "rules": rule_set.ids,
            "exclude": list(exclude),
            "slither": slither,
            "mythril": mythril,
            "formats": formats,
        })

        sources = _collect_sources(path, exclude)
        arc_findings = run_arc_scanner(sources, rule_set)
        debug.log("arc_findings", {
            "files": len(sources),
            "count": len(arc_findings),
            "findings": [f.model_dump() for f in arc_findings],
        })

        slither_findings: List[Finding] = []
        if slither:
            slither_findings = run_slither(str(path), exclude)
            debug.log("slither_findings", {
                "count": len(slither_findings),
                "findings": [f.model_dump() for f in slither_findings],
            })

        mythril_findings: List[Finding] = []
        if mythril:
            mythril_findings = run_mythril(str(path))
            debug.log("mythril_findings", {
                "count": len(mythril_findings),
                "findings": [f.model_dump() for f in mythril_findings],
            })

        findings = arc_findings + slither_findings + mythril_findings
        console.log(
            "Scan complete: %s issues (arc=%s, slither=%s, mythril=%s)"
            % (len(findings), len(arc_findings), len(slither_findings), len(mythril_findings))
        )

        outputs = _export_results(findings, formats=formats, out=out, scan_root=path)
        debug.log("exports", {"paths": {k: str(v) for k, v in outputs.items()}})

        blocking = _blocking_findings(findings, fail_on_high)
        debug.log("blocking_summary", {
            "blocking": len(blocking),
            "fail_on_high": fail_on_high,
        })

        if blocking:
            console.print(f"[red]{len(blocking)} blocking finding(s) detected[/]")
            debug.log("exit", {"code": 1, "blocking": len(blocking)})
            raise typer.Exit(code=1)

        console.print("[green]No blocking findings identified[/]")
        debug.log("exit", {"code": 0, "blocking": 0})
        raise typer.Exit(code=0)

    finally:
        debug.close()


@app.command("rules")
def list_rules(
    rules_file: Optional[Path] = typer.Option(
        None, "--rules-file", help="Alternative YAML rule set to validate and list"
    ),
    tools: bool = typer.Option(False, "--tools", help="Also list external detector catalogs"),
) -> None:
    """Validate and list the Arc rule set."""

    try:
        rule_set = _resolve_rule_set(rules_file, [])
    except RuleConfigError as exc:
        console.print(f"[red]Invalid rule configuration: {escape(str(exc))}[/]")
        raise typer.Exit(code=2) from exc

    table = Table(title=f"{rule_set.name} rules (v{rule_set.version})")
    table.add_column("ID")
    table.add_column("Severity")
    table.add_column("Name")
    table.add_column("CWE")
    table.add_column("Gate")
    for rule in rule_set.rules:
        table.add_row(
            rule.id,
            f"[{_SEVERITY_STYLES[rule.severity]}]{rule.severity}[/]",
            rule.name,
            rule.cwe_id or "-",
            rule.predicate or "-",
        )
    console.print(table)

    if tools:
        console.print("Slither detectors: " + ", ".join(known_detectors()))
        console.print("Mythril SWC ids: " + ", ".join(known_swc_ids()))


def _collect_sources(root: Path, exclude: Iterable[str]) -> List[SourceFile]:
    """Read every ``.sol`` file under ``root``, skipping excluded path fragments."""

    fragments = [frag for frag in exclude if frag]
    resolved_root = root.resolve()
    if resolved_root.is_file():
        candidates = [resolved_root]
        base = resolved_root.parent
    else:
        candidates = sorted(p for p in resolved_root.rglob("*.sol") if p.is_file())
        base = resolved_root

    sources: List[SourceFile] = []
    for candidate in candidates:
        relative_path = candidate.relative_to(base)
        relative = relative_path.as_posix()
        if any(frag in relative_path.parts[:-1] for frag in fragments):
            continue
        try:
            content = candidate.read_text(encoding="utf-8", errors="ignore")
        except OSError as exc:
            _LOG.warning("Skipping unreadable file %s: %s", relative, exc)
            continue
        sources.append(SourceFile(path=relative, content=content))
    return sources


def _blocking_findings(findings: Iterable[Finding], fail_on_high: bool) -> List[Finding]:
    if fail_on_high:
        return [f for f in findings if severity_rank(f.severity) <= severity_rank("high")]
    return list(findings)


def _export_results(
    findings: List[Finding],
    *,
    formats: Sequence[str],
    out: Path,
    scan_root: Path,
) -> dict[str, Path]:
    fmt_set = set(formats)
    outputs: dict[str, Path] = {}

    if "json" in fmt_set:
        # Determine if --out is a directory or file base
        if out.is_dir() or (not out.exists() and out.suffix == ""):
            json_path = out / "arcshield.jsonl"
        else:
            json_path = out.with_suffix(".jsonl")
        write_jsonl(json_path, findings, scan_root=str(scan_root))
        outputs["json"] = json_path

    if "table" in fmt_set:
        table = Table(title="arcshield findings")
        table.add_column("ID")
        table.add_column("Severity")
        table.add_column("Title")
        table.add_column("Location")
        table.add_column("Contract")
        table.add_column("Tool")
        ordered = sorted(findings, key=lambda f: (severity_rank(f.severity), f.file_path, f.line_number))
        for finding in ordered:
            location = f"{finding.file_path}:{finding.line_number}"
            contract = finding.contract_name or "-"
            if finding.function_name:
                contract = f"{contract}.{finding.function_name}"
            table.add_row(
                finding.id,
                f"[{_SEVERITY_STYLES[finding.severity]}]{finding.severity}[/]",
                finding.title,
                location,
                contract,
                finding.tool,
            )
        console.print(table)

    return outputs


if __name__ == "__main__":  # pragma: no cover - manual execution
    app()
