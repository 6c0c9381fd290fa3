"""
Discord integration for ServerSense.

- **discord_transport.py**: py-cord implementation of the moderation transport
  (delete, timeout, direct and channel notices).
- **bot_services.py**: Builds the moderation pipeline, enforcement coordinator
  and assistant once and shares them with every cog.
- **cogs/**: Slash commands and event listeners.
"""
