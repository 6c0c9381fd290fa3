"""
ServerSense - AI-Assisted Discord Moderation and Assistant Bot

ServerSense watches guild messages, decides whether they break policy, and
enforces a per-guild response. It also offers manual moderation tools and a
small conversational assistant.

Core Components:

- **Pattern Analyzer**: Cheap regex and heuristic rules (caps, mass mentions,
  invites, repeated characters, repeated words) that run before any AI call
- **AI Judge**: OpenAI-compatible chat completion that classifies a message
  into seven violation categories, fronted by a short-lived judgment cache
- **Decision Engine / Policy Resolver**: Merge pattern and AI verdicts, then
  clamp the proposed action by the guild's threshold and action ceiling
- **Enforcement**: Best-effort delete, timeout, notices, audit log and the
  five-warning escalation
- **Guild Policy**: Per-server automod configuration managed by `/automod`

Usage:
    from serversense.main import main
    main()  # Starts the bot
"""
