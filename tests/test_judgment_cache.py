"""Tests for the TTL judgment cache."""

from serversense.datatypes.moderation_datatypes import Judgment, JudgmentSource, ViolationKind
from serversense.moderation.judgment_cache import JudgmentCache, cache_key


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def _unsafe():
    return Judgment(safe=False, violations=frozenset({ViolationKind.TOXICITY}), severity=5, reason="rude")


def test_cache_key_normalizes_whitespace_and_case():
    assert cache_key("  Hello World \n") == "hello world"


def test_get_returns_stored_judgment_for_equivalent_text():
    cache = JudgmentCache(clock=FakeClock())
    judgment = _unsafe()

    cache.put("You are BAD", judgment)

    assert cache.get("  you are bad ") is judgment


def test_entry_expires_at_ttl():
    clock = FakeClock()
    cache = JudgmentCache(ttl_seconds=60, clock=clock)
    cache.put("text", Judgment.clean("fine", JudgmentSource.AI))

    clock.now = 59.9
    assert cache.get("text") is not None

    clock.now = 60.0
    assert cache.get("text") is None
    assert len(cache) == 0


def test_put_over_capacity_sweeps_only_expired_entries():
    clock = FakeClock()
    cache = JudgmentCache(ttl_seconds=10, soft_capacity=2, clock=clock)
    cache.put("a", _unsafe())
    cache.put("b", _unsafe())

    clock.now = 11
    cache.put("c", _unsafe())

    assert len(cache) == 1
    assert cache.get("c") is not None


def test_capacity_is_soft_when_entries_are_fresh():
    cache = JudgmentCache(ttl_seconds=10, soft_capacity=2, clock=FakeClock())
    for text in ("a", "b", "c", "d"):
        cache.put(text, _unsafe())

    assert len(cache) == 4


def test_clear_empties_cache():
    cache = JudgmentCache(clock=FakeClock())
    cache.put("a", _unsafe())

    cache.clear()

    assert cache.get("a") is None
