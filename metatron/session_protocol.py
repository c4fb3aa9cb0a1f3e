"""
Session Protocol — State and Persistence of One Generation Run
================================================================
Components:
    SessionState  — Task, running context, accumulated code, step counter
    SessionStore  — Full-snapshot save/load as timestamped JSON files

Two append-only strings move at different speeds:
    context           grows on every completed step, accepted or rejected,
                      so the model always sees what it already proposed.
    accumulated_code  grows only on accepted steps. It is the artifact.

The step counter moves once per completed step and never on a retry,
a save, or a details view.

Between accept and advance the reply sits in ``pending_raw``: its code is
already in the artifact, its text not yet in the context. A snapshot taken
there resumes at the decision prompt, not with a fresh request.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from metatron.errors import SessionPersistenceError
from metatron.providers.base import ProviderConfig

STEP_SEPARATOR = "\n\n"
SESSION_FILE_PREFIX = "metatron_session_"


def seed_context(task: str) -> str:
    return f"Overall task: {task}{STEP_SEPARATOR}"


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _config_from_dict(data) -> ProviderConfig:
    """Rebuild the provider config, checking the fields the loop relies on."""
    if not isinstance(data, dict):
        raise TypeError("'config' must be an object")
    config = ProviderConfig.from_dict(data)
    if not isinstance(config.provider_name, str) or not config.provider_name:
        raise ValueError(f"invalid config.provider_name {config.provider_name!r}")
    for key in ("context_window", "max_tokens"):
        value = getattr(config, key)
        if not _positive_int(value):
            raise ValueError(f"config.{key} must be a positive integer, got {value!r}")
    if not isinstance(config.extra, dict):
        raise TypeError("config.extra must be an object")
    return config


# ─────────────────────────────────────────────────────────────
#  Session State
# ─────────────────────────────────────────────────────────────

@dataclass
class SessionState:
    """The single mutable aggregate of a generation run."""

    provider: str                 # Preset chosen at startup ("grok", "claude", ...)
    config: ProviderConfig
    task: str
    context: str = ""
    accumulated_code: str = ""
    step: int = 1
    timestamp: Optional[str] = None   # Set by SessionStore.save only
    pending_raw: Optional[str] = None # Accepted reply awaiting its decision

    @classmethod
    def new(cls, provider: str, config: ProviderConfig, task: str) -> SessionState:
        """Fresh session: step 1, context seeded with the task."""
        return cls(provider=provider, config=config, task=task,
                   context=seed_context(task))

    # ─── Step accumulation ────────────────────────────────

    def accept(self, code: str, raw: Optional[str] = None):
        """Add an accepted step's code to the artifact.

        ``raw`` is held as pending until the step is advanced.
        """
        self.accumulated_code += code + STEP_SEPARATOR
        self.pending_raw = raw

    def advance(self, raw: str):
        """Complete the current step: keep the raw reply for continuity."""
        self.context += raw + STEP_SEPARATOR
        self.step += 1
        self.pending_raw = None

    def reject(self, raw: str):
        """Complete a rejected step. Its code is dropped, its text is not."""
        self.advance(raw)

    @property
    def max_tokens(self) -> int:
        return self.config.context_window

    # ─── Serialization ────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "config": {
                "provider_name": self.config.provider_name,
                "model": self.config.model,
                "api_key": self.config.api_key,
                "base_url": self.config.base_url,
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
                "context_window": self.config.context_window,
                "extra": dict(self.config.extra),
            },
            "task": self.task,
            "context": self.context,
            "accumulated_code": self.accumulated_code,
            "step": self.step,
            "timestamp": self.timestamp,
            "pending_raw": self.pending_raw,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SessionState:
        """Rebuild a state from a snapshot.

        Raises:
            KeyError, TypeError, ValueError: on a malformed snapshot.
        """
        step = data["step"]
        if not isinstance(step, int) or isinstance(step, bool) or step < 1:
            raise ValueError(f"invalid step {step!r}")
        for key in ("provider", "task", "context", "accumulated_code"):
            if not isinstance(data[key], str):
                raise TypeError(f"'{key}' must be a string")
        pending_raw = data.get("pending_raw")
        if pending_raw is not None and not isinstance(pending_raw, str):
            raise TypeError("'pending_raw' must be a string or null")
        config = _config_from_dict(data["config"])

        return cls(
            provider=data["provider"],
            config=config,
            task=data["task"],
            context=data["context"],
            accumulated_code=data["accumulated_code"],
            step=step,
            timestamp=data.get("timestamp"),
            pending_raw=pending_raw,
        )


# ─────────────────────────────────────────────────────────────
#  Session Store
# ─────────────────────────────────────────────────────────────

class SessionStore:
    """Writes and reads whole-session snapshots.

    Each save creates a new file named after the current epoch
    milliseconds; an existing file is never overwritten.
    """

    def __init__(self, session_dir: str = None):
        self.session_dir = session_dir or "."

    def _new_path(self) -> str:
        stamp = int(time.time() * 1000)
        while True:
            path = os.path.join(self.session_dir, f"{SESSION_FILE_PREFIX}{stamp}.json")
            if not os.path.exists(path):
                return path
            stamp += 1

    def save(self, state: SessionState) -> str:
        """Snapshot the state to disk. Returns the file path.

        Sets ``state.timestamp`` to the save time (UTC, ISO-8601).

        Raises:
            SessionPersistenceError: if the file cannot be written.
        """
        path = self._new_path()
        previous = state.timestamp
        state.timestamp = datetime.now(timezone.utc).isoformat()
        try:
            os.makedirs(self.session_dir, exist_ok=True)
            with open(path, "x", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
        except OSError as e:
            state.timestamp = previous
            raise SessionPersistenceError(path, str(e)) from e
        return path

    def load(self, path: str) -> SessionState:
        """Read a snapshot back into an equivalent SessionState.

        Raises:
            SessionPersistenceError: if the file is missing, unreadable,
                not JSON, or missing required fields.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise SessionPersistenceError(path, str(e)) from e
        except json.JSONDecodeError as e:
            raise SessionPersistenceError(path, f"not a valid session file: {e}") from e

        if not isinstance(data, dict):
            raise SessionPersistenceError(path, "not a valid session file: expected a JSON object")

        try:
            return SessionState.from_dict(data)
        except KeyError as e:
            raise SessionPersistenceError(path, f"missing field {e}") from e
        except (TypeError, ValueError) as e:
            raise SessionPersistenceError(path, f"invalid session data: {e}") from e
