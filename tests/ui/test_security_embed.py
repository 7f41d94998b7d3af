from datetime import datetime, timezone

from clubguard.datatypes.security_datatypes import (
    EventType,
    SecurityEvent,
    SecurityStats,
    Severity,
    StoredSecurityEvent,
)
from clubguard.ui.security_embed import (
    MAX_EVENTS_SHOWN,
    build_cleanup_embed,
    build_events_embed,
    build_stats_embed,
    format_event_line,
)


def stored(event_id, command_name="fee", severity=Severity.LOW):
    return StoredSecurityEvent(
        id=event_id,
        event=SecurityEvent(
            type=EventType.COMMAND_EXECUTION,
            user_id="42",
            user_name="alice",
            severity=severity,
            command_name=command_name,
            timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        ),
    )


def test_stats_embed_lists_counters_and_breakdowns():
    stats = SecurityStats(active_rate_limits=1, total_rate_limits=4, suspicious_activity_count=2, recent_security_event_count=9)
    embed = build_stats_embed(stats, {Severity.HIGH: 3}, {EventType.SUSPICIOUS_ACTIVITY: 3}, recent_hours=12)

    overview, by_severity, by_type = embed.fields
    assert "**Events (last 12h)**: 9" in overview.value
    assert "**Tracked rate limits**: 4" in overview.value
    assert "**high**: 3" in by_severity.value
    assert "Suspicious activity" in by_type.value


def test_stats_embed_without_breakdown():
    stats = SecurityStats(0, 0, 0, 0)
    embed = build_stats_embed(stats, {}, {})
    assert embed.fields[1].value == "No data"
    assert embed.fields[2].value == "No data"


def test_event_line_mentions_user_and_command():
    line = format_event_line(stored(1, command_name=None))
    assert "<@42>" in line
    assert "N/A" in line
    assert ":R>" in line


def test_events_embed_groups_five_per_field():
    embed = build_events_embed([stored(index) for index in range(12)])
    assert len(embed.fields) == 3
    assert embed.fields[0].name == "Recent events"


def test_events_embed_caps_shown_events():
    embed = build_events_embed([stored(index) for index in range(MAX_EVENTS_SHOWN + 3)])
    assert embed.fields[-1].value == "3 more event(s) not shown"


def test_events_embed_footer_shows_filters():
    embed = build_events_embed([stored(1)], severity=Severity.HIGH)
    assert embed.footer.text == "Filter: severity=high"


def test_cleanup_embed():
    embed = build_cleanup_embed(30, 5)
    assert "30 days" in embed.description
    assert embed.fields[0].value == "5"
