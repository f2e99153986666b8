from __future__ import annotations
import json
from collections import Counter
from pathlib import Path
from typing import Dict, List

from .models import Finding, ScanResult, Stats


class Reporter:
    def __init__(self, out_dir: Path, include_unmasked: bool = False) -> None:
        self.out_dir = out_dir
        self.include_unmasked = include_unmasked

    def write_all(self, results: List[ScanResult], findings: List[Finding], stats: Stats) -> Dict[str, int]:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        (self.out_dir / "findings.json").write_text(
            json.dumps([f.to_dict(self.include_unmasked) for f in findings], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        (self.out_dir / "results.json").write_text(
            json.dumps([r.to_dict(self.include_unmasked) for r in results], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        (self.out_dir / "summary.md").write_text(self.render_summary(results, findings, stats), encoding="utf-8")
        return {"findings": len(findings), "results": len(results), "artifacts": 3}

    def render_summary(self, results: List[ScanResult], findings: List[Finding], stats: Stats) -> str:
        errors = [r for r in results if r.error]
        by_confidence = Counter(f.rule.confidence for f in findings)
        lines = ["# Scan Summary", ""]
        lines.append(f"- records: {len(results)}")
        lines.append(f"- findings: {len(findings)}")
        for level in ("high", "medium", "low"):
            lines.append(f"  - {level}: {by_confidence.get(level, 0)}")
        lines.append(f"- errors: {len(errors)}")
        lines.append(f"- scanner version: {stats.scanner_version or 'unknown'}")
        lines.append("")

        if findings:
            lines.append("## Findings")
            lines.append("")
            for f in findings:
                lines.append(f"- **rule**: {f.rule.name} (`{f.rule.id}`)  ")
                lines.append(f"  **request**: {f.method} {f.url} (record {f.record_id})  ")
                lines.append(f"  **confidence**: {f.rule.confidence}  ")
                lines.append(f"  **secret**: `{f.finding.snippet}`  ")
                if f.validation is not None:
                    lines.append(f"  **validation**: {f.validation.status}  ")
                lines.append("")

        if errors:
            lines.append("## Errors")
            lines.append("")
            for r in errors:
                lines.append(f"- {r.record_id}: {r.error}")
            lines.append("")
        return "\n".join(lines)
