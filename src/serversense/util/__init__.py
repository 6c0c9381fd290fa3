"""
Utility helpers for ServerSense.

- **logger.py**: Colored console output through prompt_toolkit, rotating
  per-session log files, and quieting of chatty libraries.

- **format_utils.py**: Small text helpers for timestamps, durations and
  truncation used by embeds and reports.
"""
