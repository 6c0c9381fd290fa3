"""Tests for the enforcement coordinator and warning escalation."""

import asyncio
from datetime import timedelta

import pytest

from serversense.database.database import Database
from serversense.database.db_connection import ConnectionManager
from serversense.datatypes.moderation_datatypes import (
    ActionType,
    EffectivePlan,
    JudgmentSource,
    MessageContext,
    ViolationKind,
)
from serversense.moderation.enforcement import (
    ESCALATION_REASON,
    ESCALATION_TIMEOUT,
    PUBLIC_NOTICE_TTL,
    EnforcementCoordinator,
    timeout_duration_for,
)


class FakeTransport:
    def __init__(self, can_timeout=True, fail=()):
        self.allow_timeout = can_timeout
        self.fail = set(fail)
        self.calls = []

    async def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if name in self.fail:
            raise RuntimeError(f"{name} failed")

    async def delete_message(self, context):
        await self._record("delete_message", context.message_id)

    async def timeout_member(self, guild_id, user_id, duration, reason):
        await self._record("timeout_member", guild_id, user_id, duration, reason)

    async def can_timeout(self, guild_id, user_id):
        return self.allow_timeout

    async def send_direct_notice(self, user_id, notice):
        await self._record("send_direct_notice", user_id, notice)

    async def send_channel_notice(self, channel_id, notice, delete_after=None):
        await self._record("send_channel_notice", channel_id, notice, delete_after=delete_after)

    def names(self):
        return [name for name, _, _ in self.calls]


class FakeStore:
    def __init__(self, start=0, fail_increment=False):
        self.count = start
        self.fail_increment = fail_increment
        self.entries = []

    async def increment_warning(self, guild_id, user_id):
        if self.fail_increment:
            raise RuntimeError("database is locked")
        self.count += 1
        return self.count

    async def append_audit_entry(self, entry):
        self.entries.append(entry)
        return len(self.entries)


CONTEXT = MessageContext(
    text="you are awful",
    message_id=10,
    guild_id=20,
    channel_id=30,
    sender_id=40,
    sender_name="bob",
    guild_name="Test Guild",
)


def _plan(action, severity=5, notify_dm=True, notify_public=True, log_channel_id=None):
    return EffectivePlan(
        action=action,
        proposed_action=action,
        severity=severity,
        violations=frozenset({ViolationKind.TOXICITY}),
        reason="Insult",
        source=JudgmentSource.AI,
        notify_dm=notify_dm,
        notify_public=notify_public,
        log_channel_id=log_channel_id,
    )


@pytest.mark.parametrize(
    "severity, expected",
    [(1, timedelta(minutes=1)), (4, timedelta(minutes=1)), (6, timedelta(minutes=15)), (7, timedelta(hours=1)), (10, timedelta(weeks=1)), (12, timedelta(weeks=1))],
)
def test_timeout_duration_for(severity, expected):
    assert timeout_duration_for(severity) == expected


@pytest.mark.asyncio
async def test_warn_plan_posts_public_notice_and_records_warning():
    transport, store = FakeTransport(), FakeStore()
    coordinator = EnforcementCoordinator(transport, store)

    report = await coordinator.apply(_plan(ActionType.WARN), CONTEXT)

    assert report.deleted is False
    assert report.dm_sent is True
    assert report.public_notice_sent is True
    assert report.warning_total == 1
    assert report.failures == []
    public = [c for c in transport.calls if c[0] == "send_channel_notice"][0]
    assert public[1][0] == CONTEXT.channel_id
    assert public[2]["delete_after"] == PUBLIC_NOTICE_TTL
    assert store.entries[0].action == "warn"
    assert store.entries[0].actor_id is None
    assert store.entries[0].reason == "TOXICITY: Insult"


@pytest.mark.asyncio
async def test_delete_plan_skips_public_notice():
    transport, store = FakeTransport(), FakeStore()

    report = await EnforcementCoordinator(transport, store).apply(_plan(ActionType.DELETE), CONTEXT)

    assert report.deleted is True
    assert report.public_notice_sent is False
    assert "send_channel_notice" not in transport.names()
    assert report.warning_total == 1


@pytest.mark.asyncio
async def test_timeout_plan_times_out_for_severity_duration():
    transport, store = FakeTransport(), FakeStore()

    report = await EnforcementCoordinator(transport, store).apply(_plan(ActionType.TIMEOUT, severity=8), CONTEXT)

    assert report.deleted is True
    assert report.timeout_duration == timedelta(hours=6)
    assert report.describe() == "Message deleted + User timed out for 6 hours"
    assert store.entries[0].duration == "6 hours"
    assert report.warning_total is None


@pytest.mark.asyncio
async def test_timeout_not_allowed_is_reported():
    transport, store = FakeTransport(can_timeout=False), FakeStore()

    report = await EnforcementCoordinator(transport, store).apply(_plan(ActionType.TIMEOUT, severity=8), CONTEXT)

    assert report.timed_out is False
    assert "timeout: member cannot be timed out" in report.failures
    assert "timeout_member" not in transport.names()


@pytest.mark.asyncio
async def test_ban_plan_only_deletes():
    transport, store = FakeTransport(), FakeStore()

    report = await EnforcementCoordinator(transport, store).apply(_plan(ActionType.BAN, severity=10), CONTEXT)

    assert report.deleted is True
    assert "timeout_member" not in transport.names()
    assert store.entries[0].action == "ban"


@pytest.mark.asyncio
async def test_failed_delete_does_not_abort_other_steps():
    transport, store = FakeTransport(fail={"delete_message"}), FakeStore()

    report = await EnforcementCoordinator(transport, store).apply(
        _plan(ActionType.DELETE, log_channel_id=99), CONTEXT
    )

    assert report.deleted is False
    assert report.audit_recorded is True
    assert report.log_notice_sent is True
    assert report.warning_total == 1
    assert any(f.startswith("delete message") for f in report.failures)


@pytest.mark.asyncio
async def test_dm_failure_is_swallowed():
    transport, store = FakeTransport(fail={"send_direct_notice"}), FakeStore()

    report = await EnforcementCoordinator(transport, store).apply(_plan(ActionType.DELETE), CONTEXT)

    assert report.dm_sent is False
    assert report.failures == []


@pytest.mark.asyncio
async def test_warning_store_failure_is_reported():
    transport, store = FakeTransport(), FakeStore(fail_increment=True)

    report = await EnforcementCoordinator(transport, store).apply(_plan(ActionType.WARN), CONTEXT)

    assert report.warning_total is None
    assert any(f.startswith("record warning") for f in report.failures)


@pytest.mark.asyncio
async def test_escalation_fires_exactly_once_at_five():
    transport, store = FakeTransport(), FakeStore(start=3)
    coordinator = EnforcementCoordinator(transport, store)

    fourth = await coordinator.issue_warning(20, 40, notice_channel_id=30)
    fifth = await coordinator.issue_warning(20, 40, notice_channel_id=30)
    sixth = await coordinator.issue_warning(20, 40, notice_channel_id=30)

    assert (fourth.total, fourth.escalated) == (4, False)
    assert (fifth.total, fifth.escalated) == (5, True)
    assert fifth.escalation_duration == ESCALATION_TIMEOUT
    assert (sixth.total, sixth.escalated) == (6, False)

    timeouts = [c for c in transport.calls if c[0] == "timeout_member"]
    assert timeouts == [("timeout_member", (20, 40, ESCALATION_TIMEOUT, ESCALATION_REASON), {})]
    assert [e.reason for e in store.entries] == [ESCALATION_REASON]
    assert store.entries[0].actor_id is None
    assert transport.names().count("send_channel_notice") == 1


@pytest.mark.asyncio
async def test_escalation_skipped_when_member_cannot_be_timed_out():
    transport, store = FakeTransport(can_timeout=False), FakeStore(start=4)

    outcome = await EnforcementCoordinator(transport, store).issue_warning(20, 40)

    assert outcome.total == 5
    assert outcome.escalated is False
    assert transport.calls == []


@pytest.mark.asyncio
async def test_issue_warning_propagates_store_errors():
    coordinator = EnforcementCoordinator(FakeTransport(), FakeStore(fail_increment=True))

    with pytest.raises(RuntimeError):
        await coordinator.issue_warning(20, 40)


@pytest.mark.asyncio
async def test_racing_warnings_escalate_once(tmp_path):
    db = Database(tmp_path / "warnings.db", connection=ConnectionManager())
    assert await db.initialize() is True
    try:
        for _ in range(4):
            await db.increment_warning(20, 40)
        transport = FakeTransport()
        coordinator = EnforcementCoordinator(transport, db)

        outcomes = await asyncio.gather(
            coordinator.issue_warning(20, 40, notice_channel_id=30),
            coordinator.issue_warning(20, 40, notice_channel_id=30),
        )

        assert sorted(o.total for o in outcomes) == [5, 6]
        assert [o.escalated for o in outcomes].count(True) == 1
        assert transport.names().count("timeout_member") == 1
        assert await db.get_warning_count(20, 40) == 6
        entries = await db.query_audit_entries(20, user_id=40)
        assert [e.reason for e in entries] == [ESCALATION_REASON]
    finally:
        await db.shutdown()
