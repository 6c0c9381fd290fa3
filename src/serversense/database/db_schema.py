"""
Database schema creation.

Every statement is idempotent, so ``initialize_schema`` runs on each startup.
"""

import aiosqlite

from serversense.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables and indexes ServerSense needs."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes, then record the schema version.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Ignored channel/role sets are stored as JSON arrays of IDs
        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_policies (
                guild_id INTEGER PRIMARY KEY,
                enabled INTEGER NOT NULL DEFAULT 0,
                severity_threshold INTEGER NOT NULL DEFAULT 3,
                action_ceiling TEXT NOT NULL DEFAULT 'timeout',
                ignored_channel_ids TEXT NOT NULL DEFAULT '[]',
                ignored_role_ids TEXT NOT NULL DEFAULT '[]',
                moderator_immunity INTEGER NOT NULL DEFAULT 1,
                dm_on_action INTEGER NOT NULL DEFAULT 1,
                public_warnings INTEGER NOT NULL DEFAULT 1,
                log_channel_id INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_warnings (
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                warnings INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (guild_id, user_id)
            )
        """)

        # actor_id NULL means the automod system acted
        await db.execute("""
            CREATE TABLE IF NOT EXISTS mod_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                actor_id INTEGER,
                action TEXT NOT NULL,
                reason TEXT NOT NULL,
                duration TEXT,
                created_at TIMESTAMP NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS ai_conversations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_logs_lookup ON mod_logs(guild_id, user_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_mod_logs_guild ON mod_logs(guild_id, created_at DESC)")
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_ai_conversations_thread "
            "ON ai_conversations(guild_id, channel_id, user_id, id)"
        )

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        """Keep ``updated_at`` current on policy edits."""
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_guild_policies_timestamp
            AFTER UPDATE ON guild_policies
            FOR EACH ROW
            BEGIN
                UPDATE guild_policies SET updated_at = CURRENT_TIMESTAMP
                WHERE guild_id = NEW.guild_id;
            END
        """)
