"""
seeds.py
--------

Fetches the well-known ``WEB-INF`` marker files and seeds the crawl frontier
with every class-name-shaped token found in them.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from webinf_recon.crawler import CrawlSession, LogFn, null_log
from webinf_recon.errors import FatalEngineError, MalformedURIError, TransportError
from webinf_recon.extractor import IdentifierExtractor, RegexIdentifierExtractor
from webinf_recon.fetch import Fetcher
from webinf_recon.uri import marker_uri

DEFAULT_MARKERS = ["web.xml"]


class SeedCollector:
    def __init__(
        self,
        fetcher: Fetcher,
        markers: Sequence[str] = DEFAULT_MARKERS,
        extractor: Optional[IdentifierExtractor] = None,
        log: Optional[LogFn] = None,
    ) -> None:
        self.fetcher = fetcher
        self.markers = list(markers)
        self.extractor = extractor or RegexIdentifierExtractor()
        self.log = log or null_log

    async def collect(self, session: CrawlSession) -> List[str]:
        """Seed ``session`` and return the class names that were added.

        A marker that cannot be fetched is logged and skipped.  The body of
        any response that did arrive is scanned whatever its status.
        """
        added: List[str] = []
        for marker in self.markers:
            entry = {"marker": marker, "url": None, "status": None, "found": 0, "added": 0, "error": None}
            session.seeds.append(entry)
            try:
                url = marker_uri(session.scheme, session.authority, marker)
            except MalformedURIError as exc:
                entry["error"] = str(exc)
                self.log(f"Skipping marker {marker!r}: {exc}", "WARN")
                continue
            entry["url"] = url

            try:
                response = await self.fetcher.fetch(url, follow_redirects=False)
            except TransportError as exc:
                entry["error"] = exc.reason
                self.log(f"Could not fetch marker {url}: {exc.reason}", "WARN")
                continue
            except Exception as exc:
                raise FatalEngineError(f"fetcher failed on {url}: {exc}") from exc

            entry["status"] = response.status
            found = self.extractor.scan_free_text(response.text())
            new = session.enqueue_all(found)
            entry["found"] = len(found)
            entry["added"] = len(new)
            added.extend(new)
            self.log(
                f"Marker {url} returned {response.status}: {len(found)} candidate(s), {len(new)} new",
                "DEBUG",
            )
        return added
