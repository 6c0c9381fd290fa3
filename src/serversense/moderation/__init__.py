"""
Moderation pipeline for ServerSense.

- **pattern_analyzer.py**: Regex and heuristic quick checks.
- **judgment_cache.py**: Time-bounded cache of AI judgments.
- **decision_engine.py**: Merges pattern findings with the AI verdict.
- **policy_resolver.py**: Applies the guild policy to a judgment.
- **enforcement.py**: Executes a plan and handles warning escalation.
- **moderation_embed.py**: Builds the notices sent to users and log channels.
- **moderation_pipeline.py**: Wires the stages together for each message.
"""
