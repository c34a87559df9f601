# webinf_recon/plugins/webinf_disclosure.py
"""
webinf_disclosure.py
--------------------

Source code disclosure via the ``WEB-INF`` folder.

Java web applications keep their compiled classes in ``/WEB-INF/classes/``,
which the container must never serve.  Misconfigured servers and proxies
sometimes do.  This plugin:

- Fetches the marker files (``/WEB-INF/web.xml`` by default) and collects
  every class-name-shaped token as a seed.
- Requests ``/WEB-INF/classes/<package path>/<Class>.class`` for each class,
  without following redirects.
- Decompiles every class it can download and reports it as a disclosure.
- Adds each ``import`` of the decompiled source to the work list, so one
  exposed servlet pulls in as much of the code base as is reachable.

Outputs in the session directory:
- webinf/disclosures.json   (one entry per decompiled class)
- webinf/crawl.json         (seeds, every investigation and its outcome)
- webinf/src/**.java        (recovered source)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from webinf_recon.core import BasePlugin, ScanContext
from webinf_recon.crawler import CrawlSession, Disclosure, DisclosureSink, WorklistCrawler
from webinf_recon.decompiler import DecompileAdapter, Decompiler, ProcyonDecompiler
from webinf_recon.errors import FatalEngineError, MalformedURIError
from webinf_recon.fetch import Fetcher
from webinf_recon.seeds import SeedCollector
from webinf_recon.uri import split_base

WEBINF_DIR = "webinf"
SOURCE_DIR = "src"


class DisclosureRecorder(DisclosureSink):
    """Writes recovered source to disk and keeps a record per disclosure."""

    def __init__(self, plugin: "WebInfDisclosurePlugin", out_dir: Path) -> None:
        self.plugin = plugin
        self.out_dir = out_dir
        self.source_root = out_dir / WEBINF_DIR / SOURCE_DIR
        self.records: List[Dict[str, Any]] = []

    def report(self, disclosure: Disclosure) -> None:
        rel = Path(*disclosure.identifier.split(".")).with_suffix(".java")
        path = self.source_root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(disclosure.source, encoding="utf-8")

        response = disclosure.response
        self.records.append({
            "identifier": disclosure.identifier,
            "url": response.url,
            "status": response.status,
            "content_type": response.content_type,
            "size": len(response.body),
            "source_file": str(path.relative_to(self.out_dir)),
            "source_lines": disclosure.source.count("\n") + 1,
            "name": self.plugin.alert_name,
            "risk": self.plugin.risk,
            "confidence": self.plugin.confidence,
            "cwe_id": self.plugin.cwe_id,
            "wasc_id": self.plugin.wasc_id,
            "solution": self.plugin.solution,
        })
        self.plugin.log(f"Source Code Disclosure: {disclosure.identifier} ({response.url})", self.out_dir, level="WARN")


class WebInfDisclosurePlugin(BasePlugin):
    name = "WebInfDisclosure"
    description = "Recover Java source from classes exposed under /WEB-INF/classes"
    priority = 30

    alert_name = "Source Code Disclosure - /WEB-INF folder"
    risk = "High"
    confidence = "Medium"
    cwe_id = 541   # Information Exposure Through Include Source Code
    wasc_id = 34   # Predictable Resource Location
    solution = (
        "The web server should be configured to never serve the /WEB-INF folder or its contents, "
        "regardless of path normalisation or proxying in front of the application container."
    )

    def __init__(self, context: ScanContext) -> None:
        super().__init__(context)
        self.decompiler: Optional[Decompiler] = None

    async def setup(self) -> None:
        decompiler = ProcyonDecompiler(self.context.decompiler, timeout=self.context.decompile_timeout)
        if decompiler.is_available():
            self.decompiler = decompiler
        else:
            self.log(
                f"Decompiler {decompiler.command[0]!r} not found; WEB-INF source disclosure checks are disabled",
                Path(self.context.results_dir),
                level="WARN",
            )

    async def scan_target(self, target: str, out_dir: Path) -> None:
        if self.decompiler is None:
            self.log(f"No decompiler available, skipping {target}", out_dir, level="DEBUG")
            return
        try:
            scheme, authority = split_base(target)
        except MalformedURIError as exc:
            self.log(f"Cannot scan {target}: {exc}", out_dir, level="ERROR")
            return

        def log(message: str, level: str = "INFO") -> None:
            self.log(message, out_dir, level=level)

        session = CrawlSession(scheme, authority)
        recorder = DisclosureRecorder(self, out_dir)
        timeout = aiohttp.ClientTimeout(total=self.context.http_timeout + 5)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as http:
                fetcher = Fetcher(http, timeout=self.context.http_timeout, user_agent=self.context.user_agent)
                seeds = await SeedCollector(fetcher, self.context.marker_files, log=log).collect(session)
                log(f"Seeded {len(seeds)} candidate class name(s) from {len(self.context.marker_files)} marker file(s)")

                crawler = WorklistCrawler(
                    fetcher,
                    DecompileAdapter(self.decompiler),
                    recorder,
                    log=log,
                    max_investigations=self.context.max_investigations,
                    cancel_event=self.context.cancel_event,
                )
                await crawler.crawl(session)
        except FatalEngineError as exc:
            session.truncated = True
            session.stop_reason = "fatal"
            log(f"Error scanning {target} for Source Code Disclosure via the WEB-INF folder: {exc}", "ERROR")
        finally:
            self._write_results(target, out_dir, session, recorder)

        summary = session.summary()
        self.log(
            f"Completed WEB-INF crawl on {target}: {len(summary.investigations)} class(es) investigated, "
            f"{len(recorder.records)} disclosed",
            out_dir,
        )

    def _write_results(self, target: str, out_dir: Path, session: CrawlSession, recorder: DisclosureRecorder) -> None:
        web_dir = out_dir / WEBINF_DIR
        web_dir.mkdir(parents=True, exist_ok=True)

        with open(web_dir / "disclosures.json", "w", encoding="utf-8") as f:
            json.dump(recorder.records, f, indent=2)

        crawl = {"target": target, "seeds": session.seeds}
        crawl.update(session.summary().to_dict())
        with open(web_dir / "crawl.json", "w", encoding="utf-8") as f:
            json.dump(crawl, f, indent=2)
