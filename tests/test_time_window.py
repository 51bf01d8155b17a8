import asyncio
from datetime import datetime, timedelta, timezone

from golem_agent.agent.planner import TimeRange
from golem_agent.agent.window import (
    HistoryWindowResolver,
    TimestampRecovery,
    parse_time_bound,
    resolve_range,
    select_window,
)
from golem_agent.utils.helpers import to_iso

from fakes import FakeChannel, make_message

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ts(minutes_ago: float) -> float:
    return (NOW - timedelta(minutes=minutes_ago)).timestamp()


def test_parse_time_bound_formats():
    assert parse_time_bound("2024-05-01T10:00:00Z") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_time_bound("2024-05-01T10:00:00") == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert parse_time_bound(NOW.timestamp()) == NOW
    assert parse_time_bound(str(int(NOW.timestamp()))) == NOW
    assert parse_time_bound("yesterday-ish") is None
    assert parse_time_bound(None) is None


def test_resolve_range_rules():
    exact = resolve_range(TimeRange(start="2 hours ago", end="now"), NOW)
    assert exact.start == NOW - timedelta(hours=2)
    assert exact.end == NOW

    fallback = resolve_range(TimeRange(start="a while ago", end=None), NOW)
    assert fallback.start == NOW - timedelta(hours=24)

    bad_end = resolve_range(TimeRange(start="2024-05-01T00:00:00Z", end="later"), NOW)
    assert bad_end.end == NOW

    assert resolve_range(TimeRange(start=None, end="now"), NOW) is None
    assert resolve_range(TimeRange(start="last tuesday", end="now"), NOW) is None


def test_overlapping_ranges_keep_each_message_once():
    messages = [
        make_message("m1", "old", ts=_ts(180)),
        make_message("m2", "middle", ts=_ts(90)),
        make_message("m3", "recent", ts=_ts(10)),
    ]
    ranges = [
        TimeRange(start=to_iso(NOW - timedelta(hours=2)), end="now"),
        TimeRange(start=to_iso(NOW - timedelta(hours=4)), end=to_iso(NOW - timedelta(hours=1))),
    ]

    selected = select_window(ranges, messages, NOW)

    # First range contributes m2 and m3; the second only adds the unseen m1.
    assert [m.id for m, _ in selected] == ["m2", "m3", "m1"]


def test_bounds_are_inclusive_and_untimed_messages_skipped():
    start = NOW - timedelta(hours=1)
    messages = [
        make_message("edge", ts=start.timestamp()),
        make_message("untimed", ts=None),
        make_message("end", ts=NOW.timestamp()),
    ]
    selected = select_window([TimeRange(start=to_iso(start), end=to_iso(NOW))], messages, NOW)

    assert [m.id for m, _ in selected] == ["edge", "end"]


def test_excluded_ids_are_not_selected():
    messages = [make_message("current", ts=_ts(1)), make_message("other", ts=_ts(2))]
    selected = select_window([TimeRange(start="1 hour ago")], messages, NOW, exclude_ids={"current"})

    assert [m.id for m, _ in selected] == ["other"]


def test_focused_mode_does_not_fetch():
    channel = FakeChannel(history=[make_message("m1", ts=_ts(1))])
    resolver = HistoryWindowResolver(channel)

    assert asyncio.run(resolver.resolve([], "group@g.us", now=NOW)) == []
    assert channel.fetch_calls == []


def test_resolver_fetches_once_with_limit():
    channel = FakeChannel(history=[make_message(f"m{i}", ts=_ts(i)) for i in range(5)])
    resolver = HistoryWindowResolver(channel, fetch_limit=300)

    ranges = [TimeRange(start="1 hour ago"), TimeRange(start="2 hours ago")]
    selected = asyncio.run(resolver.resolve(ranges, "group@g.us", now=NOW))

    assert channel.fetch_calls == [300]
    assert len(selected) == 5


def test_timestamp_recovery_prefers_own_then_raw_stanza():
    channel = FakeChannel()
    recovery = TimestampRecovery(channel)

    own = make_message("q", ts=_ts(5))
    assert asyncio.run(recovery.recover(own, make_message("r"), "c")) == NOW - timedelta(minutes=5)

    quoted = make_message("q", ts=None)
    replying = make_message("r", raw={"quotedStanza": {"t": NOW.timestamp()}})
    assert asyncio.run(recovery.recover(quoted, replying, "c")) == NOW
    assert channel.fetch_calls == []


def test_timestamp_recovery_falls_back_to_history_search():
    channel = FakeChannel(history=[make_message("x", ts=_ts(30)), make_message("q", ts=_ts(20))])
    recovery = TimestampRecovery(channel, deep_search_limit=100)

    when = asyncio.run(recovery.recover(make_message("q", ts=None), make_message("r"), "c"))

    assert when == NOW - timedelta(minutes=20)
    assert channel.fetch_calls == [100]


def test_timestamp_recovery_survives_transport_errors():
    channel = FakeChannel()
    channel.fail_fetch = True
    recovery = TimestampRecovery(channel)

    assert asyncio.run(recovery.recover(make_message("q", ts=None), make_message("r"), "c")) is None
