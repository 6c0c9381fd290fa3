"""
Two-tier moderation decision: quick pattern rules first, then the AI judge.

Merge rules:
1. a pattern finding with severity hint >= 4 is conclusive; the AI is not
   consulted and the verdict is ``delete`` with source ``pattern``;
2. otherwise the AI judge is asked;
3. findings plus an unsafe AI verdict merge into a ``combined`` judgment
   (union of violations, max severity, AI reason and action);
4. findings plus a safe AI verdict yield a ``quick`` judgment whose action is
   ``delete`` when any hint is >= 3 and ``warn`` otherwise;
5. no findings returns the AI verdict tagged ``ai``.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from serversense.datatypes.moderation_datatypes import (
    ActionType,
    Judgment,
    JudgmentSource,
    MessageContext,
    QuickFinding,
)
from serversense.moderation import pattern_analyzer
from serversense.util.logger import get_logger

logger = get_logger("decision_engine")

CONCLUSIVE_HINT = 4
QUICK_DELETE_HINT = 3


class Judge(Protocol):
    async def judge(self, text: str, context: Optional[MessageContext] = None) -> Judgment:
        ...


def judgment_from_findings(findings: List[QuickFinding], action: ActionType, source: JudgmentSource) -> Judgment:
    """Summarize pattern findings into a single unsafe judgment."""
    return Judgment(
        safe=False,
        violations=frozenset(f.kind for f in findings),
        severity=max(f.severity_hint for f in findings),
        reason=", ".join(f.reason for f in findings),
        action=action,
        source=source,
    )


class DecisionEngine:
    """Combines :mod:`pattern_analyzer` with an AI judge."""

    def __init__(self, judge: Judge) -> None:
        self.judge = judge

    async def decide(self, text: str, context: Optional[MessageContext] = None) -> Judgment:
        findings = pattern_analyzer.scan(text)

        if any(f.severity_hint >= CONCLUSIVE_HINT for f in findings):
            judgment = judgment_from_findings(findings, ActionType.DELETE, JudgmentSource.PATTERN)
            logger.debug("[DECISION ENGINE] Conclusive pattern hit: %s", judgment.reason)
            return judgment

        ai_judgment = await self.judge.judge(text, context)

        if not findings:
            return ai_judgment.with_source(JudgmentSource.AI)

        if not ai_judgment.safe:
            return Judgment(
                safe=False,
                violations=ai_judgment.violations | {f.kind for f in findings},
                severity=max(ai_judgment.severity, *(f.severity_hint for f in findings)),
                reason=ai_judgment.reason,
                action=ai_judgment.action,
                source=JudgmentSource.COMBINED,
            )

        action = ActionType.DELETE if any(f.severity_hint >= QUICK_DELETE_HINT for f in findings) else ActionType.WARN
        return judgment_from_findings(findings, action, JudgmentSource.QUICK)
