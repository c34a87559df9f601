"""
crawler.py
----------

The worklist crawl behind the WEB-INF source disclosure check.

A :class:`CrawlSession` owns the frontier (class names still to look at) and
the visited set for one host.  :class:`WorklistCrawler` pops one class name at
a time and runs it through fetch -> decompile -> report -> extract imports,
appending every import it has not seen before to the frontier.  The loop ends
when the frontier is empty, when the optional investigation budget is used
up, or when the cancel event is set.

Each class name ends in exactly one :class:`Outcome`.  Failures that only
concern one class (network errors, decompiler errors, unusable names) become
outcomes; anything else is raised as :class:`FatalEngineError`.
"""

from __future__ import annotations

import asyncio
import enum
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set

from webinf_recon.decompiler import DecompileAdapter
from webinf_recon.errors import DecompileError, FatalEngineError, MalformedURIError, TransportError
from webinf_recon.extractor import IdentifierExtractor, RegexIdentifierExtractor
from webinf_recon.fetch import FetchResponse, Fetcher, is_present
from webinf_recon.uri import derive_class_uri

LogFn = Callable[[str, str], None]


def null_log(message: str, level: str = "INFO") -> None:
    return None


# ---------------------------
# Data models
# ---------------------------

class Outcome(str, enum.Enum):
    DISCLOSED = "disclosed"
    NOT_FOUND = "not_found"
    FETCH_ERROR = "fetch_error"
    DECOMPILE_ERROR = "decompile_error"
    MALFORMED_URI = "malformed_uri"


@dataclass
class Disclosure:
    identifier: str
    source: str
    response: FetchResponse


@dataclass
class Investigation:
    identifier: str
    outcome: Outcome
    uri: Optional[str] = None
    status: Optional[int] = None
    detail: str = ""
    imports: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "outcome": self.outcome.value,
            "uri": self.uri,
            "status": self.status,
            "detail": self.detail,
            "imports": list(self.imports),
        }


@dataclass
class CrawlSummary:
    investigations: List[Investigation]
    remaining: List[str]
    truncated: bool = False
    stop_reason: str = "exhausted"

    def counts(self) -> Dict[str, int]:
        counter = Counter(i.outcome.value for i in self.investigations)
        return {o.value: counter.get(o.value, 0) for o in Outcome}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "investigated": len(self.investigations),
            "counts": self.counts(),
            "truncated": self.truncated,
            "stop_reason": self.stop_reason,
            "remaining": list(self.remaining),
            "investigations": [i.to_dict() for i in self.investigations],
        }


class DisclosureSink:
    """Receives every disclosed class.  Return values are ignored."""

    def report(self, disclosure: Disclosure) -> None:
        raise NotImplementedError


# ---------------------------
# Session state
# ---------------------------

class CrawlSession:
    """Frontier and visited set for a single host scan."""

    def __init__(self, scheme: str, authority: str) -> None:
        self.scheme = scheme
        self.authority = authority
        self._frontier: Deque[str] = deque()
        self._queued: Set[str] = set()
        self.visited: Set[str] = set()
        self.investigations: List[Investigation] = []
        self.seeds: List[Dict[str, Any]] = []
        self.truncated = False
        self.stop_reason = "exhausted"

    @property
    def frontier(self) -> List[str]:
        return list(self._frontier)

    def __len__(self) -> int:
        return len(self._frontier)

    def is_known(self, identifier: str) -> bool:
        return identifier in self._queued or identifier in self.visited

    def enqueue(self, identifier: str) -> bool:
        """Append ``identifier`` unless it is queued or visited already."""
        if not identifier or self.is_known(identifier):
            return False
        self._frontier.append(identifier)
        self._queued.add(identifier)
        return True

    def enqueue_all(self, identifiers: Iterable[str]) -> List[str]:
        return [i for i in identifiers if self.enqueue(i)]

    def pop(self) -> str:
        identifier = self._frontier.popleft()
        self._queued.discard(identifier)
        return identifier

    def requeue(self, identifier: str) -> None:
        """Put a popped, unfinished ``identifier`` back at the head of the frontier."""
        if identifier in self.visited or identifier in self._queued:
            return
        self._frontier.appendleft(identifier)
        self._queued.add(identifier)

    def mark_visited(self, identifier: str) -> None:
        self.visited.add(identifier)

    def summary(self) -> CrawlSummary:
        return CrawlSummary(
            investigations=list(self.investigations),
            remaining=self.frontier,
            truncated=self.truncated,
            stop_reason=self.stop_reason,
        )


# ---------------------------
# Crawler
# ---------------------------

class WorklistCrawler:
    def __init__(
        self,
        fetcher: Fetcher,
        decompiler: DecompileAdapter,
        sink: DisclosureSink,
        extractor: Optional[IdentifierExtractor] = None,
        log: Optional[LogFn] = None,
        max_investigations: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        if max_investigations is not None and max_investigations < 1:
            raise ValueError("max_investigations must be at least 1")
        self.fetcher = fetcher
        self.decompiler = decompiler
        self.sink = sink
        self.extractor = extractor or RegexIdentifierExtractor()
        self.log = log or null_log
        self.max_investigations = max_investigations
        self.cancel_event = cancel_event

    async def crawl(self, session: CrawlSession) -> CrawlSummary:
        """Investigate class names until the frontier is empty."""
        while len(session):
            if self.cancel_event is not None and self.cancel_event.is_set():
                session.truncated = True
                session.stop_reason = "cancelled"
                self.log(f"Crawl cancelled with {len(session)} class(es) left in the frontier", "WARN")
                break
            if self.max_investigations is not None and len(session.investigations) >= self.max_investigations:
                session.truncated = True
                session.stop_reason = "max_investigations"
                self.log(
                    f"Investigation limit of {self.max_investigations} reached; "
                    f"{len(session)} class(es) left unexplored",
                    "WARN",
                )
                break

            identifier = session.pop()
            try:
                result = await self.investigate(session, identifier)
            except (FatalEngineError, asyncio.CancelledError):
                # no outcome was reached, so the class goes back to the head of the frontier
                session.requeue(identifier)
                raise
            session.mark_visited(identifier)
            session.investigations.append(result)

            for imported in session.enqueue_all(result.imports):
                self.log(f"Adding imported class {imported} to the frontier", "DEBUG")

        return session.summary()

    async def investigate(self, session: CrawlSession, identifier: str) -> Investigation:
        try:
            uri = derive_class_uri(session.scheme, session.authority, identifier)
        except MalformedURIError as exc:
            self.log(f"Skipping {identifier}: {exc}", "DEBUG")
            return Investigation(identifier, Outcome.MALFORMED_URI, detail=str(exc))

        self.log(f"Looking for a potential Java class: {identifier} at {uri}", "DEBUG")
        try:
            response = await self.fetcher.fetch(uri, follow_redirects=False)
        except TransportError as exc:
            self.log(f"Request for {uri} failed: {exc.reason}", "WARN")
            return Investigation(identifier, Outcome.FETCH_ERROR, uri=uri, detail=exc.reason)
        except Exception as exc:
            raise FatalEngineError(f"fetcher failed on {uri}: {exc}") from exc

        if not is_present(response):
            return Investigation(identifier, Outcome.NOT_FOUND, uri=uri, status=response.status)

        self.log(f"{identifier} is accessible ({len(response.body)} bytes)", "DEBUG")
        try:
            source = await self.decompiler.decompile(response.body)
        except DecompileError as exc:
            self.log(f"Could not decompile {identifier}: {exc}", "WARN")
            return Investigation(
                identifier, Outcome.DECOMPILE_ERROR, uri=uri, status=response.status, detail=str(exc)
            )
        except Exception as exc:
            raise FatalEngineError(f"decompiler failed on {identifier}: {exc}") from exc

        try:
            self.sink.report(Disclosure(identifier=identifier, source=source, response=response))
        except Exception as exc:
            raise FatalEngineError(f"could not record disclosure of {identifier}: {exc}") from exc

        imports = self.extractor.scan_imports(source)
        for imported in imports:
            self.log(f"Imported class: {imported}", "DEBUG")
        return Investigation(
            identifier, Outcome.DISCLOSED, uri=uri, status=response.status, imports=imports
        )
