"""
Metatron — Stepwise Secure Code Generator
==========================================
Drives a step-by-step code generation dialogue with an AI provider and
keeps only vetted code.

Architecture:
    Contract        — EXPLANATION / CODE / VERIFICATION parser and tag check
    Context Budget  — len/4 token estimate with warning thresholds
    Session         — State, step accumulation, snapshot persistence
    Conductor       — The request → parse → gate → decide loop
    Providers       — Grok, Ollama, Groq, Claude, Gemini
"""

__version__ = "0.2.0"

from metatron.contract import StepResponse, parse_response, is_verification_weak
from metatron.context_budget import ContextUsage, context_usage
from metatron.session_protocol import SessionState, SessionStore
from metatron.conductor import Conductor, Outcome, SessionResult

__all__ = [
    "StepResponse", "parse_response", "is_verification_weak",
    "ContextUsage", "context_usage",
    "SessionState", "SessionStore",
    "Conductor", "Outcome", "SessionResult",
]
