import asyncio

import pytest

from conftest import FakeSite, ListSink, class_url
from webinf_recon.crawler import CrawlSession, Outcome
from webinf_recon.errors import DecompileError, FatalEngineError, TransportError


async def test_not_found_moves_straight_to_visited(session, sink):
    site = FakeSite({})
    session.enqueue("com.acme.Foo")

    summary = await site.crawler(sink).crawl(session)

    assert sink.disclosures == []
    assert site.decompiler.paths == []
    assert [i.outcome for i in summary.investigations] == [Outcome.NOT_FOUND]
    assert summary.investigations[0].status == 404
    assert session.visited == {"com.acme.Foo"}
    assert len(session) == 0


async def test_disclosed_class_enqueues_its_imports(session, sink):
    site = FakeSite({"com.acme.Foo": ["com.acme.Util"]})
    session.enqueue("com.acme.Foo")

    summary = await site.crawler(sink, max_investigations=1).crawl(session)

    result = summary.investigations[0]
    assert result.outcome is Outcome.DISCLOSED
    assert result.imports == ["com.acme.Util"]
    assert sink.identifiers == ["com.acme.Foo"]
    assert "public class Foo" in sink.disclosures[0].source
    assert sink.disclosures[0].response.url == class_url("com.acme.Foo")
    assert session.frontier == ["com.acme.Util"]
    assert session.visited == {"com.acme.Foo"}


async def test_cycle_back_to_visited_class_terminates(session, sink):
    site = FakeSite({
        "com.acme.Foo": ["com.acme.Util"],
        "com.acme.Util": ["com.acme.Foo"],
    })
    session.enqueue("com.acme.Foo")

    summary = await site.crawler(sink).crawl(session)

    assert [i.identifier for i in summary.investigations] == ["com.acme.Foo", "com.acme.Util"]
    assert sink.identifiers == ["com.acme.Foo", "com.acme.Util"]
    assert len(site.fetcher.calls) == 2
    assert summary.stop_reason == "exhausted"
    assert not summary.truncated


async def test_shared_import_is_investigated_once(session, sink):
    site = FakeSite({
        "com.acme.A": ["com.acme.Shared"],
        "com.acme.B": ["com.acme.Shared", "com.acme.A"],
        "com.acme.Shared": [],
    })
    session.enqueue_all(["com.acme.A", "com.acme.B"])

    summary = await site.crawler(sink).crawl(session)

    investigated = [i.identifier for i in summary.investigations]
    assert investigated == ["com.acme.A", "com.acme.B", "com.acme.Shared"]
    assert site.fetcher.urls.count(class_url("com.acme.Shared")) == 1


async def test_self_import(session, sink):
    site = FakeSite({"com.acme.Self": ["com.acme.Self"]})
    session.enqueue("com.acme.Self")

    summary = await site.crawler(sink).crawl(session)

    assert len(summary.investigations) == 1
    assert sink.identifiers == ["com.acme.Self"]


@pytest.mark.parametrize("n", [1, 2, 5, 20])
@pytest.mark.parametrize("shape", ["chain", "ring", "complete"])
async def test_every_class_is_investigated_exactly_once(session, sink, n, shape):
    names = [f"com.acme.C{i}" for i in range(n)]
    if shape == "chain":
        graph = {name: names[i + 1:i + 2] for i, name in enumerate(names)}
    elif shape == "ring":
        graph = {name: [names[(i + 1) % n]] for i, name in enumerate(names)}
    else:
        graph = {name: list(names) for name in names}
    site = FakeSite(graph)
    session.enqueue(names[0])

    summary = await site.crawler(sink).crawl(session)

    investigated = [i.identifier for i in summary.investigations]
    assert sorted(investigated) == sorted(names)
    assert len(investigated) == len(set(investigated))
    assert session.visited == set(names)


async def test_frontier_is_fifo(session, sink):
    site = FakeSite({
        "r.Root": ["r.A", "r.B"],
        "r.A": ["r.A1"],
        "r.B": ["r.B1"],
        "r.A1": [],
        "r.B1": [],
    })
    session.enqueue("r.Root")

    summary = await site.crawler(sink).crawl(session)

    assert [i.identifier for i in summary.investigations] == ["r.Root", "r.A", "r.B", "r.A1", "r.B1"]


async def test_redirect_counts_as_not_found_and_is_not_followed(session, sink):
    site = FakeSite({})
    site.fetcher.replies[class_url("com.acme.Foo")] = (302, b"")
    session.enqueue("com.acme.Foo")

    summary = await site.crawler(sink).crawl(session)

    assert summary.investigations[0].outcome is Outcome.NOT_FOUND
    assert summary.investigations[0].status == 302
    assert site.fetcher.calls == [(class_url("com.acme.Foo"), False)]


@pytest.mark.parametrize("status", [201, 204, 403, 500, 503])
async def test_only_exact_200_is_present(session, sink, status):
    site = FakeSite({})
    site.fetcher.replies[class_url("com.acme.Foo")] = (status, b"\xca\xfe\xba\xbe")
    session.enqueue("com.acme.Foo")

    summary = await site.crawler(sink).crawl(session)

    assert summary.investigations[0].outcome is Outcome.NOT_FOUND
    assert site.decompiler.paths == []


async def test_transport_error_does_not_stop_the_crawl(session, sink):
    site = FakeSite({"com.acme.Bar": []})
    site.fetcher.replies[class_url("com.acme.Foo")] = TransportError(class_url("com.acme.Foo"), "connection reset")
    session.enqueue_all(["com.acme.Foo", "com.acme.Bar"])

    summary = await site.crawler(sink).crawl(session)

    assert [i.outcome for i in summary.investigations] == [Outcome.FETCH_ERROR, Outcome.DISCLOSED]
    assert summary.investigations[0].detail == "connection reset"
    assert session.visited == {"com.acme.Foo", "com.acme.Bar"}


async def test_decompile_error_does_not_stop_the_crawl(session, sink):
    site = FakeSite({"com.acme.Bar": ["com.acme.Never"]})
    site.fetcher.replies[class_url("com.acme.Foo")] = (200, b"garbage")
    session.enqueue_all(["com.acme.Foo", "com.acme.Bar"])

    summary = await site.crawler(sink).crawl(session)

    outcomes = [(i.identifier, i.outcome) for i in summary.investigations]
    assert outcomes == [
        ("com.acme.Foo", Outcome.DECOMPILE_ERROR),
        ("com.acme.Bar", Outcome.DISCLOSED),
        ("com.acme.Never", Outcome.NOT_FOUND),
    ]
    assert sink.identifiers == ["com.acme.Bar"]
    assert all(not p.exists() for p in site.decompiler.paths)


async def test_malformed_identifier_is_a_per_class_failure(session, sink):
    site = FakeSite({"com.acme.Ok": []})
    session.enqueue_all(["bad name.Foo", "com.acme.Ok"])

    summary = await site.crawler(sink).crawl(session)

    assert [i.outcome for i in summary.investigations] == [Outcome.MALFORMED_URI, Outcome.DISCLOSED]
    assert len(site.fetcher.calls) == 1


async def test_max_investigations_stops_the_crawl(session, sink):
    site = FakeSite({f"c.C{i}": [f"c.C{i + 1}"] for i in range(10)})
    session.enqueue("c.C0")
    logged = []

    summary = await site.crawler(sink, max_investigations=3, log=lambda m, level="INFO": logged.append((level, m))).crawl(session)

    assert len(summary.investigations) == 3
    assert summary.truncated
    assert summary.stop_reason == "max_investigations"
    assert summary.remaining == ["c.C3"]
    assert any(level == "WARN" and "limit" in m for level, m in logged)


def test_max_investigations_must_be_positive(sink):
    site = FakeSite({})
    with pytest.raises(ValueError):
        site.crawler(sink, max_investigations=0)


async def test_cancel_event_is_treated_as_empty_frontier(session, sink):
    site = FakeSite({"c.A": ["c.B"], "c.B": []})
    cancel = asyncio.Event()

    class CancellingSink(ListSink):
        def report(self, disclosure):
            super().report(disclosure)
            cancel.set()

    cancelling = CancellingSink()
    session.enqueue("c.A")

    summary = await site.crawler(cancelling, cancel_event=cancel).crawl(session)

    assert [i.identifier for i in summary.investigations] == ["c.A"]
    assert summary.stop_reason == "cancelled"
    assert summary.remaining == ["c.B"]


async def test_unexpected_fetcher_failure_is_fatal_and_keeps_partial_results(session, sink):
    site = FakeSite({"c.A": ["c.B"]})
    site.fetcher.replies[class_url("c.B")] = RuntimeError("Session is closed")
    session.enqueue("c.A")

    with pytest.raises(FatalEngineError):
        await site.crawler(sink).crawl(session)

    assert sink.identifiers == ["c.A"]
    assert session.visited == {"c.A"}
    summary = session.summary()
    assert [i.identifier for i in summary.investigations] == ["c.A"]
    assert summary.remaining == ["c.B"]


async def test_unexpected_decompiler_failure_is_fatal(session, sink):
    site = FakeSite({})
    site.fetcher.replies[class_url("c.A")] = (200, b"boom")
    site.decompiler.sources[b"boom"] = MemoryError("out of memory")
    session.enqueue("c.A")

    with pytest.raises(FatalEngineError):
        await site.crawler(sink).crawl(session)
    assert all(not p.exists() for p in site.decompiler.paths)


async def test_decompile_error_from_fake_is_per_class(session, sink):
    site = FakeSite({})
    site.fetcher.replies[class_url("c.A")] = (200, b"x")
    site.decompiler.sources[b"x"] = DecompileError("unsupported class version")
    session.enqueue("c.A")

    summary = await site.crawler(sink).crawl(session)

    assert summary.investigations[0].outcome is Outcome.DECOMPILE_ERROR
    assert "unsupported class version" in summary.investigations[0].detail


def test_session_never_holds_duplicates():
    s = CrawlSession("http", "h")
    assert s.enqueue("a.B")
    assert not s.enqueue("a.B")
    assert s.enqueue_all(["a.B", "c.D", "c.D"]) == ["c.D"]
    popped = s.pop()
    s.mark_visited(popped)
    assert not s.enqueue(popped)
    assert not s.enqueue("")
    assert s.frontier == ["c.D"]


def test_summary_counts_every_outcome(session):
    summary = session.summary()
    assert summary.counts() == {o.value: 0 for o in Outcome}
    assert summary.to_dict()["investigated"] == 0


async def test_fatal_failure_puts_class_back_ahead_of_the_frontier(session, sink):
    site = FakeSite({})
    site.fetcher.replies[class_url("c.A")] = RuntimeError("Session is closed")
    session.enqueue_all(["c.A", "c.B"])

    with pytest.raises(FatalEngineError):
        await site.crawler(sink).crawl(session)

    assert session.visited == set()
    assert session.frontier == ["c.A", "c.B"]
    assert session.summary().investigations == []


def test_requeue_ignores_known_classes():
    s = CrawlSession("http", "h")
    s.enqueue_all(["a.B", "c.D"])
    s.mark_visited(s.pop())
    s.requeue("a.B")
    s.requeue("c.D")
    assert s.frontier == ["c.D"]
