"""
Report Generator
----------------

Builds a consolidated Markdown and HTML report from the artifacts written by
the WEB-INF disclosure plugin.  Robust to missing files and partial runs.

Inputs (all optional):
- webinf/disclosures.json   -> decompiled classes
- webinf/crawl.json         -> seeds, investigations, remaining frontier

Outputs:
- report.json     -> machine-readable summary
- report.md       -> human-readable markdown
- report.html     -> simple HTML wrapper for the markdown content
"""

from __future__ import annotations

import html as html_lib
import json
import re
from pathlib import Path
from typing import Any, Dict, List

from webinf_recon.core import BasePlugin


class ReportGeneratorPlugin(BasePlugin):
    name = "ReportGenerator"
    description = "Collate results and generate Markdown/HTML reports"
    priority = 90

    # caps to keep the report readable
    MAX_INVESTIGATION_ROWS = 500
    MAX_REMAINING_ROWS = 200
    MAX_IMPORT_ROWS = 25

    async def scan_target(self, target: str, out_dir: Path) -> None:
        web_dir = out_dir / "webinf"
        summary: Dict[str, Any] = {
            "target": target,
            "disclosures": self._load_json(web_dir / "disclosures.json", [], out_dir),
            "crawl": self._load_json(web_dir / "crawl.json", {}, out_dir),
        }
        summary["overview"] = self._build_overview(summary)

        with open(out_dir / "report.json", "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)

        md = self._generate_markdown_report(summary, target)
        with open(out_dir / "report.md", "w", encoding="utf-8") as f:
            f.write(md)
        with open(out_dir / "report.html", "w", encoding="utf-8") as f:
            f.write(self._wrap_html(md))

        self.log("Report generated", out_dir, level="INFO")

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    def _load_json(self, path: Path, default: Any, out_dir: Path) -> Any:
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as exc:
            self.log(f"Ignoring unreadable {path.name}: {exc}", out_dir, level="WARN")
            return default

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    def _build_overview(self, s: Dict[str, Any]) -> Dict[str, Any]:
        crawl = s.get("crawl") if isinstance(s.get("crawl"), dict) else {}
        counts = crawl.get("counts") or {}
        seeds = crawl.get("seeds") or []
        return {
            "disclosures_count": len(s.get("disclosures") or []),
            "investigated_count": int(crawl.get("investigated", 0)),
            "seed_markers_count": len(seeds),
            "seed_classes_count": sum(int(x.get("added", 0)) for x in seeds if isinstance(x, dict)),
            "not_found_count": int(counts.get("not_found", 0)),
            "fetch_error_count": int(counts.get("fetch_error", 0)),
            "decompile_error_count": int(counts.get("decompile_error", 0)),
            "malformed_uri_count": int(counts.get("malformed_uri", 0)),
            "remaining_count": len(crawl.get("remaining") or []),
            "truncated": bool(crawl.get("truncated", False)),
            "stop_reason": crawl.get("stop_reason", "n/a"),
        }

    # ------------------------------------------------------------------
    # Markdown report
    # ------------------------------------------------------------------

    def _generate_markdown_report(self, summary: Dict[str, Any], target: str) -> str:
        safe = self._safe

        md: List[str] = []
        md.append(f"# WEB-INF Source Disclosure Report for {safe(target)}\n")

        ov = summary.get("overview", {})
        md.append("## Overview")
        md.append("")
        md.append("| Metric | Count |")
        md.append("|---|---:|")
        for k, label in [
            ("disclosures_count", "Classes Disclosed"),
            ("investigated_count", "Classes Investigated"),
            ("seed_markers_count", "Marker Files Requested"),
            ("seed_classes_count", "Seed Class Names"),
            ("not_found_count", "Not Found"),
            ("fetch_error_count", "Fetch Errors"),
            ("decompile_error_count", "Decompile Errors"),
            ("malformed_uri_count", "Unusable Names"),
            ("remaining_count", "Left Unexplored"),
        ]:
            md.append(f"| {label} | {ov.get(k, 0)} |")
        md.append(f"\nCrawl stopped: **{safe(ov.get('stop_reason', 'n/a'))}**")

        # -------------------- Seeds --------------------
        crawl = summary.get("crawl") or {}
        seeds = crawl.get("seeds") or []
        if seeds:
            md.append("\n## Marker Files")
            md.append("| URL | Status | Candidates | New | Error |")
            md.append("|---|---:|---:|---:|---|")
            for s in seeds:
                if not isinstance(s, dict):
                    continue
                md.append(
                    f"| {safe(s.get('url') or s.get('marker', ''))} | {safe(s.get('status') or '')} | "
                    f"{safe(s.get('found', 0))} | {safe(s.get('added', 0))} | {safe(s.get('error') or '')} |"
                )

        # -------------------- Disclosures --------------------
        disclosures = summary.get("disclosures") or []
        if disclosures:
            first = disclosures[0] if isinstance(disclosures[0], dict) else {}
            md.append("\n## Source Code Disclosures")
            md.append(
                f"Risk: **{safe(first.get('risk', ''))}**, confidence: {safe(first.get('confidence', ''))}, "
                f"CWE-{safe(first.get('cwe_id', ''))}, WASC-{safe(first.get('wasc_id', ''))}\n"
            )
            md.append("| Class | URL | Size | Source File |")
            md.append("|---|---|---:|---|")
            for d in disclosures:
                if not isinstance(d, dict):
                    continue
                md.append(
                    f"| {safe(d.get('identifier', ''))} | {safe(d.get('url', ''))} | "
                    f"{safe(d.get('size', ''))} | {safe(d.get('source_file', ''))} |"
                )
            if first.get("solution"):
                md.append(f"\n**Solution:** {safe(first['solution'])}")

        # -------------------- Investigations --------------------
        investigations = crawl.get("investigations") or []
        if investigations:
            md.append("\n## Investigations")
            md.append("| Class | Outcome | Status | Imports | Detail |")
            md.append("|---|---|---:|---:|---|")
            for inv in investigations[: self.MAX_INVESTIGATION_ROWS]:
                if not isinstance(inv, dict):
                    continue
                md.append(
                    f"| {safe(inv.get('identifier', ''))} | {safe(inv.get('outcome', ''))} | "
                    f"{safe(inv.get('status') or '')} | {len(inv.get('imports') or [])} | {safe(inv.get('detail', ''))} |"
                )
            if len(investigations) > self.MAX_INVESTIGATION_ROWS:
                md.append(f"\n_Only showing first {self.MAX_INVESTIGATION_ROWS} of {len(investigations)} rows._")

            # Import graph for disclosed classes
            disclosed = [i for i in investigations if isinstance(i, dict) and i.get("imports")]
            if disclosed:
                md.append("\n### Imports of Disclosed Classes")
                for inv in disclosed:
                    imports = inv.get("imports") or []
                    shown = ", ".join(safe(x) for x in imports[: self.MAX_IMPORT_ROWS])
                    more = f" (+{len(imports) - self.MAX_IMPORT_ROWS} more)" if len(imports) > self.MAX_IMPORT_ROWS else ""
                    md.append(f"- **{safe(inv.get('identifier', ''))}**: {shown}{more}")

        # -------------------- Remaining --------------------
        remaining = crawl.get("remaining") or []
        if remaining:
            md.append("\n## Left Unexplored")
            for r in remaining[: self.MAX_REMAINING_ROWS]:
                md.append(f"- {safe(r)}")
            if len(remaining) > self.MAX_REMAINING_ROWS:
                md.append(f"\n_Only showing first {self.MAX_REMAINING_ROWS} of {len(remaining)} classes._")

        md.append("")  # newline at EOF
        return "\n".join(md)

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def _safe(self, v: Any) -> str:
        """Escape table-breaking characters while keeping it readable."""
        s = str(v)
        s = s.replace("\n", " ").replace("\r", " ")
        s = s.replace("|", r"\|")
        return s.strip()

    def _wrap_html(self, md: str) -> str:
        # minimal Markdown -> HTML: headers and line breaks; tables stay as text
        css = """
        <style>
        body { font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif; margin: 20px; }
        pre { white-space: pre-wrap; word-wrap: break-word; }
        h1, h2, h3 { margin-top: 1.2em; }
        </style>
        """
        body = html_lib.escape(md, quote=False)
        body = re.sub(r"^### (.+)$", r"<h3>\1</h3>", body, flags=re.MULTILINE)
        body = re.sub(r"^## (.+)$", r"<h2>\1</h2>", body, flags=re.MULTILINE)
        body = re.sub(r"^# (.+)$", r"<h1>\1</h1>", body, flags=re.MULTILINE)
        body = body.replace("\n\n", "<br><br>")
        return f"<!doctype html><meta charset='utf-8'>{css}<div><pre>{body}</pre></div>"
