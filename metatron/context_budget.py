"""
Context Budget Monitor
=======================
Estimates how much of the provider's context window the running
transcript occupies, and grades it.

The estimate is the ~4 chars/token heuristic, applied as a plain division.
It avoids depending on a tokenizer and is only used to decide whether to
warn, never to truncate.
"""

from __future__ import annotations

from dataclasses import dataclass

CHARS_PER_TOKEN = 4
WARNING_RATIO = 0.80
CRITICAL_RATIO = 0.95

SEVERITY_NONE = "none"
SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


@dataclass(frozen=True)
class ContextUsage:
    """Derived view of the context size. Never stored."""

    estimated_tokens: float
    max_tokens: int
    percent: float
    severity: str

    @property
    def needs_warning(self) -> bool:
        return self.severity != SEVERITY_NONE

    @property
    def is_critical(self) -> bool:
        return self.severity == SEVERITY_CRITICAL


def estimate_tokens(text: str) -> float:
    return len(text) / CHARS_PER_TOKEN


def context_usage(context: str, max_tokens: int) -> ContextUsage:
    """Grade the context against a fixed token ceiling.

    warning  — estimate above 80% of max_tokens
    critical — estimate at or above 95% of max_tokens
    """
    if max_tokens <= 0:
        raise ValueError(f"max_tokens must be positive, got {max_tokens}")

    estimated = estimate_tokens(context)

    if estimated >= max_tokens * CRITICAL_RATIO:
        severity = SEVERITY_CRITICAL
    elif estimated > max_tokens * WARNING_RATIO:
        severity = SEVERITY_WARNING
    else:
        severity = SEVERITY_NONE

    return ContextUsage(
        estimated_tokens=estimated,
        max_tokens=max_tokens,
        percent=estimated / max_tokens * 100,
        severity=severity,
    )
