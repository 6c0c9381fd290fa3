"""
Fast, deterministic quick checks that run before the AI judge.

Each rule fires at most once per message and yields a :class:`QuickFinding`
with a severity hint. A hint of 4 or more is considered conclusive by the
decision engine, which then skips the AI call entirely.
"""

from __future__ import annotations

import re
from typing import List

from serversense.datatypes.moderation_datatypes import QuickFinding, ViolationKind

CAPS_MIN_LENGTH = 10
CAPS_RATIO = 0.7
MAX_USER_MENTIONS = 5
MIN_REPEAT_RUN = 10
MIN_WORDS_FOR_REPETITION = 3
WORD_REPETITION_RATIO = 3

USER_MENTION_RE = re.compile(r"<@!?\d+>")
MASS_MENTION_RE = re.compile(r"@everyone|@here")
INVITE_RE = re.compile(r"discord\.gg/|discord\.com/invite/", re.IGNORECASE)
REPEATED_CHAR_RE = re.compile(r"(.)\1{%d,}" % (MIN_REPEAT_RUN - 1), re.IGNORECASE)


def _caps_finding(text: str) -> QuickFinding | None:
    if len(text) <= CAPS_MIN_LENGTH:
        return None
    letters = [ch for ch in text if ch.isalpha()]
    if not letters:
        return None
    upper = sum(1 for ch in letters if ch.isupper())
    if upper / len(letters) > CAPS_RATIO:
        return QuickFinding(ViolationKind.SPAM, 2, "Excessive caps")
    return None


def _word_repetition_finding(text: str) -> QuickFinding | None:
    words = text.lower().split()
    if len(words) <= MIN_WORDS_FOR_REPETITION:
        return None
    if len(words) / len(set(words)) > WORD_REPETITION_RATIO:
        return QuickFinding(ViolationKind.SPAM, 2, "Repeated words")
    return None


def scan(text: str) -> List[QuickFinding]:
    """Run every quick rule against ``text``.

    Pure and total: any string, including the empty one, yields a (possibly
    empty) list and never raises.
    """
    if not text:
        return []

    findings: List[QuickFinding] = []

    caps = _caps_finding(text)
    if caps:
        findings.append(caps)

    mentions = len(USER_MENTION_RE.findall(text))
    if mentions > MAX_USER_MENTIONS:
        findings.append(QuickFinding(ViolationKind.SPAM, 4, f"Mass mentions ({mentions} users)"))

    if MASS_MENTION_RE.search(text):
        findings.append(QuickFinding(ViolationKind.SPAM, 3, "Mass ping (@everyone/@here)"))

    if INVITE_RE.search(text):
        findings.append(QuickFinding(ViolationKind.ADVERTISING, 3, "Discord invite link"))

    if REPEATED_CHAR_RE.search(text):
        findings.append(QuickFinding(ViolationKind.SPAM, 2, "Repeated characters"))

    repetition = _word_repetition_finding(text)
    if repetition:
        findings.append(repetition)

    return findings
