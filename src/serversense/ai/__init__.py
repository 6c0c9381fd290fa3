"""
AI integration for ServerSense.

- **judgment_parsing.py**: Extracts and normalizes the JSON verdict returned
  by the moderation model.
- **ai_judge.py**: Cached, fail-open moderation judge over ``AsyncOpenAI``.
- **assistant.py**: Plain request/response client behind ``/chat``.
"""
