"""Tests for guild policy validation."""

import pytest

from serversense.configuration.guild_policy import (
    GuildPolicy,
    PolicyValidationError,
    parse_action_ceiling,
    parse_severity_threshold,
    toggle_id,
    validate_policy_updates,
)
from serversense.datatypes.moderation_datatypes import ActionType


@pytest.mark.parametrize("value, expected", [(1, 1), (10, 10), ("5", 5), (7.0, 7)])
def test_parse_severity_threshold_accepts_range(value, expected):
    assert parse_severity_threshold(value) == expected


@pytest.mark.parametrize("value", [0, 11, -1, "abc", None, True, 2.5])
def test_parse_severity_threshold_rejects(value):
    with pytest.raises(PolicyValidationError):
        parse_severity_threshold(value)


def test_parse_action_ceiling():
    assert parse_action_ceiling("BAN") is ActionType.BAN
    assert parse_action_ceiling(ActionType.WARN) is ActionType.WARN
    with pytest.raises(PolicyValidationError, match="Valid options"):
        parse_action_ceiling("mute")


def test_validation_error_is_value_error():
    assert issubclass(PolicyValidationError, ValueError)


def test_validate_rejects_unknown_fields():
    with pytest.raises(PolicyValidationError, match="Unknown policy setting"):
        validate_policy_updates({"guild_id": 5})
    with pytest.raises(PolicyValidationError):
        validate_policy_updates({"nonsense": True})


def test_validate_coerces_id_collections():
    clean = validate_policy_updates({"ignored_channel_ids": ["1", 2], "ignored_role_ids": set()})

    assert clean == {"ignored_channel_ids": frozenset({1, 2}), "ignored_role_ids": frozenset()}


@pytest.mark.parametrize("value", ["123", 5, ["x"]])
def test_validate_rejects_bad_id_collections(value):
    with pytest.raises(PolicyValidationError):
        validate_policy_updates({"ignored_channel_ids": value})


@pytest.mark.parametrize("value", ["general", "", True, [1]])
def test_validate_rejects_non_numeric_log_channel(value):
    with pytest.raises(PolicyValidationError, match="Log channel"):
        validate_policy_updates({"log_channel_id": value})


def test_validate_accepts_log_channel_id_or_none():
    assert validate_policy_updates({"log_channel_id": "42"}) == {"log_channel_id": 42}
    assert validate_policy_updates({"log_channel_id": None}) == {"log_channel_id": None}


def test_validate_rejects_non_boolean_flags():
    with pytest.raises(PolicyValidationError):
        validate_policy_updates({"dm_on_action": "yes"})


def test_with_updates_returns_new_policy():
    policy = GuildPolicy(guild_id=1)

    updated = policy.with_updates(enabled=True, action_ceiling="kick")

    assert policy.enabled is False
    assert updated.enabled is True
    assert updated.action_ceiling is ActionType.KICK
    assert updated.guild_id == 1


def test_ignore_checks():
    policy = GuildPolicy(guild_id=1, ignored_channel_ids=frozenset({10}), ignored_role_ids=frozenset({20}))

    assert policy.is_channel_ignored(10) is True
    assert policy.is_channel_ignored(11) is False
    assert policy.has_ignored_role(frozenset({5, 20})) is True
    assert policy.has_ignored_role(frozenset()) is False


def test_toggle_id():
    added, was_added = toggle_id(frozenset({1}), 2)
    removed, was_removed_added = toggle_id(added, 1)

    assert (added, was_added) == (frozenset({1, 2}), True)
    assert (removed, was_removed_added) == (frozenset({2}), False)
