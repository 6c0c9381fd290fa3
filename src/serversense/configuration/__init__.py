"""
Configuration management for ServerSense.

- **app_configuration.py**: File-locked YAML loader for global settings
  (database location, AI endpoint and sampling options, judgment cache
  sizing). Falls back to defaults on missing or malformed files.

- **ai_settings.py**: Typed accessors over the ``ai_settings`` section.

- **guild_policy.py**: The per-guild automod policy value type and the
  validation applied to administrative updates before they are stored.
"""
