"""
Response Contract — EXPLANATION / CODE / VERIFICATION
======================================================
Every model reply must carry exactly three sections, in this order:

    EXPLANATION: <narrative>
    CODE: <the code for one step>
    VERIFICATION: <a test or assertion plus a reference>

Components:
    StepResponse          — The three trimmed sections of one reply
    parse_response        — Anchored scan that splits a reply, or None
    is_verification_weak  — Reference-tag whitelist check

Scan rules:
    Markers are matched case-insensitively. EXPLANATION: is the first
    occurrence anywhere in the text. CODE: and VERIFICATION: only count
    when they open a line (a line break directly precedes them), and each
    is searched for only after the previous marker. Each section ends at
    the first qualifying occurrence of the next marker; VERIFICATION runs
    to the end of the text. So "// has CODE: inside" in the middle of a
    code line is plain code, while a line that itself begins with
    "VERIFICATION:" always closes the code section.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from metatron.errors import ContractParseError

# ─────────────────────────────────────────────────────────────
#  Prompts
# ─────────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You are an extremely rigorous, security-focused coding teacher.
You MUST answer in this exact format and nothing else:

EXPLANATION: <clear English, include definitions and why this step exists, mention pitfalls>
CODE: <only the code for this single step, no extra text>
VERIFICATION: <inline test or assertion + reference (OWASP, MDN, CVE, etc.)>

Never put code in the explanation. Never continue without being asked."""

NEXT_STEP_INSTRUCTION = "What is the next SINGLE critical logical step for this task?"


def build_step_prompt(context: str) -> str:
    """User prompt for the next step. The context already opens with the task."""
    return f"Current context so far:\n{context}\n\n{NEXT_STEP_INSTRUCTION}"


# ─────────────────────────────────────────────────────────────
#  Parser
# ─────────────────────────────────────────────────────────────

EXPLANATION_MARKER = "EXPLANATION:"
CODE_MARKER = "CODE:"
VERIFICATION_MARKER = "VERIFICATION:"

# Literal searches only; there is nothing for the regex engine to backtrack over.
_EXPLANATION_RE = re.compile(re.escape(EXPLANATION_MARKER), re.IGNORECASE)
_CODE_RE = re.compile(r"\n" + re.escape(CODE_MARKER), re.IGNORECASE)
_VERIFICATION_RE = re.compile(r"\n" + re.escape(VERIFICATION_MARKER), re.IGNORECASE)


@dataclass(frozen=True)
class StepResponse:
    """One contract-compliant model reply."""

    explanation: str
    code: str
    verification: str

    def to_dict(self) -> dict:
        return {
            "explanation": self.explanation,
            "code": self.code,
            "verification": self.verification,
        }


def parse_response(raw: str) -> Optional[StepResponse]:
    """Split a raw reply into its three sections.

    Returns:
        A StepResponse with each section trimmed, or None when any marker
        is missing or out of order. There are no partial results.
    """
    start = _EXPLANATION_RE.search(raw)
    if start is None:
        return None

    code_marker = _CODE_RE.search(raw, start.end())
    if code_marker is None:
        return None

    verification_marker = _VERIFICATION_RE.search(raw, code_marker.end())
    if verification_marker is None:
        return None

    return StepResponse(
        explanation=raw[start.end():code_marker.start()].strip(),
        code=raw[code_marker.end():verification_marker.start()].strip(),
        verification=raw[verification_marker.end():].strip(),
    )


def parse_response_strict(raw: str) -> StepResponse:
    """Like parse_response, but raises ContractParseError instead of returning None."""
    parsed = parse_response(raw)
    if parsed is None:
        raise ContractParseError(raw)
    return parsed


# ─────────────────────────────────────────────────────────────
#  Verification strength
# ─────────────────────────────────────────────────────────────

STRONG_REFERENCES = ("OWASP", "CWE", "RFC", "MDN", "CVE")


def is_verification_weak(verification: str) -> bool:
    """True unless the text names at least one recognised authority.

    A plain substring test: "see CVE" passes without a real identifier.
    """
    upper = verification.upper()
    return not any(ref in upper for ref in STRONG_REFERENCES)
