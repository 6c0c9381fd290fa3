"""
Persistent storage for ServerSense.

The Database class is the only component that issues SQL. It stores:
- guild automod policies (created lazily with defaults),
- per-member warning counters,
- the append-only moderation audit log,
- assistant conversation history.

All writes go through ``ConnectionManager.transaction()``, which serializes
writers; reads use the shared connection directly.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import aiosqlite

from serversense.configuration.app_configuration import app_config
from serversense.configuration.guild_policy import (
    GuildPolicy,
    PolicyValidationError,
    toggle_id,
    validate_policy_updates,
)
from serversense.database.db_connection import ConnectionManager, db_connection
from serversense.database.db_schema import SchemaManager
from serversense.datatypes.moderation_datatypes import ActionType, AuditEntry
from serversense.util.logger import get_logger

logger = get_logger("database")

DB_PATH = app_config.database_path

_POLICY_COLUMNS = (
    "enabled",
    "severity_threshold",
    "action_ceiling",
    "ignored_channel_ids",
    "ignored_role_ids",
    "moderator_immunity",
    "dm_on_action",
    "public_warnings",
    "log_channel_id",
)

_ID_SET_FIELDS = ("ignored_channel_ids", "ignored_role_ids")
_FLAG_FIELDS = ("enabled", "moderator_immunity", "dm_on_action", "public_warnings")


def _policy_to_params(policy: GuildPolicy) -> tuple:
    return (
        int(policy.enabled),
        policy.severity_threshold,
        policy.action_ceiling.value,
        json.dumps(sorted(policy.ignored_channel_ids)),
        json.dumps(sorted(policy.ignored_role_ids)),
        int(policy.moderator_immunity),
        int(policy.dm_on_action),
        int(policy.public_warnings),
        policy.log_channel_id,
    )


def _row_to_policy(row: aiosqlite.Row) -> GuildPolicy:
    ceiling = ActionType.parse(row["action_ceiling"]) or ActionType.TIMEOUT
    return GuildPolicy(
        guild_id=int(row["guild_id"]),
        enabled=bool(row["enabled"]),
        severity_threshold=int(row["severity_threshold"]),
        action_ceiling=ceiling,
        ignored_channel_ids=frozenset(int(i) for i in json.loads(row["ignored_channel_ids"] or "[]")),
        ignored_role_ids=frozenset(int(i) for i in json.loads(row["ignored_role_ids"] or "[]")),
        moderator_immunity=bool(row["moderator_immunity"]),
        dm_on_action=bool(row["dm_on_action"]),
        public_warnings=bool(row["public_warnings"]),
        log_channel_id=int(row["log_channel_id"]) if row["log_channel_id"] is not None else None,
    )


def _row_to_audit_entry(row: aiosqlite.Row) -> AuditEntry:
    created_at = datetime.fromisoformat(row["created_at"])
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return AuditEntry(
        guild_id=int(row["guild_id"]),
        user_id=int(row["user_id"]),
        action=row["action"],
        reason=row["reason"],
        actor_id=int(row["actor_id"]) if row["actor_id"] is not None else None,
        duration=row["duration"],
        created_at=created_at,
        entry_id=int(row["id"]),
    )


class Database:
    """
    Storage coordinator used by the pipeline, the enforcement coordinator and
    the command cogs.

    Lifecycle:
        1. ``await initialize()`` at startup
        2. use the accessors below
        3. ``await shutdown()`` at exit
    """

    def __init__(self, db_path: Path = DB_PATH, connection: Optional[ConnectionManager] = None):
        """
        Args:
            db_path: Path to the SQLite database file.
            connection: Connection manager to use; the module-level
                ``db_connection`` when omitted.
        """
        self.db_path = db_path
        self._connection = connection or db_connection
        self._initialized = False

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self._connection.open(self.db_path)
            await SchemaManager.initialize_schema(self._connection.connection)
        except (aiosqlite.Error, OSError) as exc:
            logger.error("[DATABASE] Database initialization failed: %s", exc)
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self._connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    # ------------------------------------------------------------------
    # Guild policies
    # ------------------------------------------------------------------

    async def get_policy(self, guild_id: int) -> GuildPolicy:
        """Return the guild's policy, creating the default row on first access."""
        conn = self._connection.connection
        async with conn.execute("SELECT * FROM guild_policies WHERE guild_id = ?", (guild_id,)) as cursor:
            row = await cursor.fetchone()
        if row is not None:
            return _row_to_policy(row)

        async with self._connection.transaction() as tx:
            policy = await self._read_policy_locked(tx, guild_id)
        return policy

    async def _read_policy_locked(self, tx: aiosqlite.Connection, guild_id: int) -> GuildPolicy:
        """Fetch the policy row, inserting the defaults first. Caller holds the writer lock."""
        async with tx.execute(
            f"INSERT OR IGNORE INTO guild_policies (guild_id, {', '.join(_POLICY_COLUMNS)}) "
            f"VALUES (?, {', '.join('?' for _ in _POLICY_COLUMNS)})",
            (guild_id, *_policy_to_params(GuildPolicy(guild_id=guild_id))),
        ) as cursor:
            created = cursor.rowcount > 0
        if created:
            logger.debug("[DATABASE] Created default policy for guild %s", guild_id)
        async with tx.execute("SELECT * FROM guild_policies WHERE guild_id = ?", (guild_id,)) as cursor:
            row = await cursor.fetchone()
        return _row_to_policy(row)

    async def modify_policy(
        self, guild_id: int, change: Callable[[GuildPolicy], Mapping[str, Any]]
    ) -> GuildPolicy:
        """
        Read-modify-write a policy while holding the writer lock.

        ``change`` receives the stored policy and returns the fields to update.
        Concurrent calls for the same guild are applied one after another, so
        no update is lost.

        Raises:
            PolicyValidationError: When a returned field is unknown or out of
                range. The transaction is rolled back.
        """
        assignments = ", ".join(f"{column} = ?" for column in _POLICY_COLUMNS)
        async with self._connection.transaction() as tx:
            current = await self._read_policy_locked(tx, guild_id)
            clean = validate_policy_updates(change(current))
            updated = current.with_updates(**clean)
            if updated != current:
                await tx.execute(
                    f"UPDATE guild_policies SET {assignments} WHERE guild_id = ?",
                    (*_policy_to_params(updated), guild_id),
                )
        logger.info("[DATABASE] Updated policy for guild %s: %s", guild_id, ", ".join(sorted(clean)) or "no changes")
        return updated

    async def update_policy(self, guild_id: int, **fields: Any) -> GuildPolicy:
        """
        Validate and apply a partial policy update; unspecified fields are untouched.

        Raises:
            PolicyValidationError: When any field is unknown or out of range.
                Nothing is written in that case.
        """
        clean = validate_policy_updates(fields)
        return await self.modify_policy(guild_id, lambda current: clean)

    async def toggle_policy_id(self, guild_id: int, field_name: str, item_id: int) -> Tuple[GuildPolicy, bool]:
        """
        Add ``item_id`` to an ignore list, or remove it when already present.

        Returns:
            The stored policy and True when the id was added.
        """
        if field_name not in _ID_SET_FIELDS:
            raise PolicyValidationError(f"{field_name} is not an ID list setting.")
        added = False

        def change(current: GuildPolicy) -> Dict[str, Any]:
            nonlocal added
            ids, added = toggle_id(getattr(current, field_name), item_id)
            return {field_name: ids}

        policy = await self.modify_policy(guild_id, change)
        return policy, added

    async def toggle_policy_flag(self, guild_id: int, field_name: str) -> GuildPolicy:
        """Flip a boolean policy setting and return the stored policy."""
        if field_name not in _FLAG_FIELDS:
            raise PolicyValidationError(f"{field_name} is not an on/off setting.")
        return await self.modify_policy(guild_id, lambda current: {field_name: not getattr(current, field_name)})

    # ------------------------------------------------------------------
    # Warning counters
    # ------------------------------------------------------------------

    async def get_warning_count(self, guild_id: int, user_id: int) -> int:
        conn = self._connection.connection
        async with conn.execute(
            "SELECT warnings FROM user_warnings WHERE guild_id = ? AND user_id = ?",
            (guild_id, user_id),
        ) as cursor:
            row = await cursor.fetchone()
        return int(row["warnings"]) if row else 0

    async def increment_warning(self, guild_id: int, user_id: int) -> int:
        """Add one warning and return the new total, atomically per (guild, user)."""
        async with self._connection.transaction() as tx:
            await tx.execute(
                """
                INSERT INTO user_warnings (guild_id, user_id, warnings) VALUES (?, ?, 1)
                ON CONFLICT(guild_id, user_id)
                DO UPDATE SET warnings = warnings + 1, updated_at = CURRENT_TIMESTAMP
                """,
                (guild_id, user_id),
            )
            async with tx.execute(
                "SELECT warnings FROM user_warnings WHERE guild_id = ? AND user_id = ?",
                (guild_id, user_id),
            ) as cursor:
                row = await cursor.fetchone()
        return int(row["warnings"])

    async def reset_warnings(self, guild_id: int, user_id: int) -> None:
        async with self._connection.transaction() as tx:
            await tx.execute(
                "DELETE FROM user_warnings WHERE guild_id = ? AND user_id = ?",
                (guild_id, user_id),
            )

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def append_audit_entry(self, entry: AuditEntry) -> int:
        """Store ``entry`` and return its row id."""
        created_at = entry.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        async with self._connection.transaction() as tx:
            cursor = await tx.execute(
                """
                INSERT INTO mod_logs (guild_id, user_id, actor_id, action, reason, duration, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.guild_id,
                    entry.user_id,
                    entry.actor_id,
                    entry.action,
                    entry.reason,
                    entry.duration,
                    created_at.isoformat(),
                ),
            )
            entry_id = cursor.lastrowid
        logger.debug(
            "[DATABASE] Logged %s on user %s in guild %s", entry.action, entry.user_id, entry.guild_id
        )
        return int(entry_id)

    async def query_audit_entries(
        self,
        guild_id: int,
        user_id: Optional[int] = None,
        limit: int = 10,
        action: Optional[str] = None,
    ) -> List[AuditEntry]:
        """Return up to ``limit`` entries for the guild, newest first."""
        clauses = ["guild_id = ?"]
        params: List[Any] = [guild_id]
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if action is not None:
            clauses.append("action = ?")
            params.append(action)
        params.append(max(0, int(limit)))

        conn = self._connection.connection
        async with conn.execute(
            f"SELECT * FROM mod_logs WHERE {' AND '.join(clauses)} ORDER BY id DESC LIMIT ?",
            params,
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_audit_entry(row) for row in rows]

    # ------------------------------------------------------------------
    # Assistant conversations
    # ------------------------------------------------------------------

    async def get_conversation(
        self, guild_id: int, channel_id: int, user_id: int, limit: int = 10
    ) -> List[Dict[str, str]]:
        """Return the most recent ``limit`` turns, oldest first, as chat messages."""
        conn = self._connection.connection
        async with conn.execute(
            """
            SELECT role, content FROM ai_conversations
            WHERE guild_id = ? AND channel_id = ? AND user_id = ?
            ORDER BY id DESC LIMIT ?
            """,
            (guild_id, channel_id, user_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [{"role": row["role"], "content": row["content"]} for row in reversed(rows)]

    async def append_conversation(
        self,
        guild_id: int,
        channel_id: int,
        user_id: int,
        turns: List[Dict[str, str]],
        max_stored: int = 20,
    ) -> None:
        """Append ``turns`` and prune the thread to its newest ``max_stored`` rows."""
        async with self._connection.transaction() as tx:
            await tx.executemany(
                "INSERT INTO ai_conversations (guild_id, channel_id, user_id, role, content) VALUES (?, ?, ?, ?, ?)",
                [(guild_id, channel_id, user_id, turn["role"], turn["content"]) for turn in turns],
            )
            await tx.execute(
                """
                DELETE FROM ai_conversations
                WHERE guild_id = ? AND channel_id = ? AND user_id = ?
                AND id NOT IN (
                    SELECT id FROM ai_conversations
                    WHERE guild_id = ? AND channel_id = ? AND user_id = ?
                    ORDER BY id DESC LIMIT ?
                )
                """,
                (guild_id, channel_id, user_id, guild_id, channel_id, user_id, max_stored),
            )

    async def clear_conversation(self, guild_id: int, channel_id: int, user_id: int) -> None:
        async with self._connection.transaction() as tx:
            await tx.execute(
                "DELETE FROM ai_conversations WHERE guild_id = ? AND channel_id = ? AND user_id = ?",
                (guild_id, channel_id, user_id),
            )

    # ------------------------------------------------------------------
    # Guild lifecycle
    # ------------------------------------------------------------------

    async def delete_guild(self, guild_id: int) -> None:
        """Purge every row belonging to ``guild_id``."""
        async with self._connection.transaction() as tx:
            for table in ("guild_policies", "user_warnings", "mod_logs", "ai_conversations"):
                await tx.execute(f"DELETE FROM {table} WHERE guild_id = ?", (guild_id,))
        logger.info("[DATABASE] Purged all data for guild %s", guild_id)


# Global Database instance
database = Database()
