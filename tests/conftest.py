"""Shared fakes for the fetch and decompile collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pytest

from webinf_recon.crawler import CrawlSession, Disclosure, DisclosureSink, WorklistCrawler
from webinf_recon.decompiler import DecompileAdapter, Decompiler
from webinf_recon.errors import DecompileError
from webinf_recon.fetch import FetchResponse
from webinf_recon.uri import derive_class_uri, marker_uri

SCHEME = "http"
AUTHORITY = "target.test"

Reply = Union[Tuple[int, bytes], BaseException]


def class_url(identifier: str) -> str:
    return derive_class_uri(SCHEME, AUTHORITY, identifier)


def webinf_url(name: str) -> str:
    return marker_uri(SCHEME, AUTHORITY, name)


def java_source(identifier: str, imports: Iterable[str] = ()) -> str:
    package, _, simple = identifier.rpartition(".")
    lines = [f"package {package};", ""]
    lines += [f"import {i};" for i in imports]
    lines += ["", f"public class {simple}", "{", "}", ""]
    return "\n".join(lines)


class FakeFetcher:
    """Serves canned replies; unknown URLs get a 404."""

    def __init__(self, replies: Optional[Dict[str, Reply]] = None) -> None:
        self.replies: Dict[str, Reply] = dict(replies or {})
        self.calls: List[Tuple[str, bool]] = []

    async def fetch(self, url: str, follow_redirects: bool = False) -> FetchResponse:
        self.calls.append((url, follow_redirects))
        reply = self.replies.get(url)
        if reply is None:
            return FetchResponse(url, 404, b"<html>Not Found</html>", {"Content-Type": "text/html"})
        if isinstance(reply, BaseException):
            raise reply
        status, body = reply
        return FetchResponse(url, status, body, {"Content-Type": "application/octet-stream"})

    @property
    def urls(self) -> List[str]:
        return [u for u, _ in self.calls]


class FakeDecompiler(Decompiler):
    """Maps artifact bytes to source text; unknown bytes fail to decompile."""

    name = "fake"

    def __init__(self, sources: Optional[Dict[bytes, Union[str, BaseException]]] = None) -> None:
        self.sources: Dict[bytes, Union[str, BaseException]] = dict(sources or {})
        self.paths: List[Path] = []
        self.existed: List[bool] = []

    async def decompile_file(self, path: Path) -> str:
        self.paths.append(path)
        self.existed.append(path.exists())
        data = path.read_bytes()
        source = self.sources.get(data)
        if source is None:
            raise DecompileError("not a class file")
        if isinstance(source, BaseException):
            raise source
        return source


class ListSink(DisclosureSink):
    def __init__(self) -> None:
        self.disclosures: List[Disclosure] = []

    def report(self, disclosure: Disclosure) -> None:
        self.disclosures.append(disclosure)

    @property
    def identifiers(self) -> List[str]:
        return [d.identifier for d in self.disclosures]


class FakeSite:
    """A target whose classes and imports are described by a dict."""

    def __init__(self, classes: Dict[str, Iterable[str]]) -> None:
        self.fetcher = FakeFetcher()
        self.decompiler = FakeDecompiler()
        for identifier, imports in classes.items():
            self.add_class(identifier, imports)

    def add_class(self, identifier: str, imports: Iterable[str] = ()) -> None:
        artifact = b"\xca\xfe\xba\xbe" + identifier.encode()
        self.fetcher.replies[class_url(identifier)] = (200, artifact)
        self.decompiler.sources[artifact] = java_source(identifier, imports)

    def crawler(self, sink: DisclosureSink, **kwargs) -> WorklistCrawler:
        return WorklistCrawler(self.fetcher, DecompileAdapter(self.decompiler), sink, **kwargs)


@pytest.fixture
def session() -> CrawlSession:
    return CrawlSession(SCHEME, AUTHORITY)


@pytest.fixture
def sink() -> ListSink:
    return ListSink()
