"""
Step Conductor — the stepwise generation loop
===============================================
Drives one step at a time and never starts step N+1 before step N's
decision is resolved:

    ☾ request   — send task + context to the provider
    Ө parse     — split the reply; on failure ask retry / abandon
    𓂀 gate      — weak verification needs an explicit accept
    ☤ accumulate — accepted code joins the artifact
    ◬ decide    — continue, details, save, stop, or quit

The Conductor owns the SessionState for the whole run. Nothing is saved
unless the user asks for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from metatron.context_budget import context_usage
from metatron.contract import (
    SYSTEM_PROMPT, StepResponse, build_step_prompt, is_verification_weak,
    parse_response, parse_response_strict,
)
from metatron.display import Display
from metatron.errors import ContractParseError, SessionPersistenceError, TransportError
from metatron.providers.base import BaseProvider
from metatron.session_protocol import SessionState, SessionStore

DECISION_PROMPT = ('→ Press Enter for next step, "details" to view the full step, '
                   '"save" to save session, "stop" to output full code, "quit" to exit:')
RETRY_PROMPT = "Retry this step? (y/n):"
ACCEPT_PROMPT = "Accept this step anyway? (y/n):"

QUIT = "quit"
STOP = "stop"
SAVE = "save"
DETAILS = "details"
YES = ("y", "yes")


class Outcome(Enum):
    """How a run ended."""
    STOPPED = "stopped"       # Accumulated code delivered
    QUIT = "quit"             # Ended without output
    ABANDONED = "abandoned"   # User declined to retry an unparseable reply


@dataclass
class SessionResult:
    outcome: Outcome
    state: SessionState

    @property
    def code(self) -> str:
        """The final artifact; empty unless the run was stopped."""
        if self.outcome is Outcome.STOPPED:
            return self.state.accumulated_code
        return ""


class Conductor:
    """Runs the step loop for one session.

    Usage:
        state = SessionState.new("grok", config, "PDF invoice generator")
        conductor = Conductor(state, get_provider(config))
        result = conductor.run()
    """

    def __init__(self, state: SessionState, provider: BaseProvider,
                 store: SessionStore = None, display: Display = None,
                 input_fn=None):
        """
        Args:
            state: The session to drive. Mutated in place.
            provider: AI provider to request steps from.
            store: Where "save" writes snapshots (default: current directory).
            display: Output collaborator (default: Display over print).
            input_fn: Reads one line of user input (default: input).
        """
        self.state = state
        self.provider = provider
        self.store = store or SessionStore()
        self.display = display or Display()
        self.input = input_fn or input

    def ask(self, question: str) -> str:
        """Ask the user; EOF and Ctrl-C count as "quit"."""
        try:
            answer = self.input(question + " ")
        except (EOFError, KeyboardInterrupt):
            return QUIT
        return answer.strip().lower()

    # ─── Main loop ────────────────────────────────────────

    def run(self) -> SessionResult:
        """Loop until the user stops, quits, or abandons.

        Raises:
            TransportError: if the provider call fails. State is left as it
                was before the failed request.
        """
        if self.state.pending_raw is not None:
            outcome = self._resume_pending()
            if outcome is not None:
                return SessionResult(outcome, self.state)

        while True:
            step = self._obtain_step()
            if isinstance(step, Outcome):
                return SessionResult(step, self.state)
            raw, parsed = step

            accepted = self._verification_gate(parsed)
            if accepted is None:
                return SessionResult(Outcome.QUIT, self.state)

            if not accepted:
                self.state.reject(raw)
                self.display.message(f"✘ Step rejected. Code not added; moving to step {self.state.step}.")
                self._check_budget()
                continue

            self.state.accept(parsed.code, raw)
            self._check_budget()

            outcome = self._decide(raw, parsed)
            if outcome is not None:
                return SessionResult(outcome, self.state)

    # ─── Stages ───────────────────────────────────────────

    def request_step(self) -> str:
        """Send the next-step prompt and return the raw reply text."""
        response = self.provider.generate(
            build_step_prompt(self.state.context),
            system_instruction=SYSTEM_PROMPT,
        )
        if response.error is not None:
            raise TransportError(self.state.provider or self.provider.name, response.error)
        return response.content

    def _obtain_step(self):
        """Request until the reply parses, or the user gives up.

        Returns:
            (raw, StepResponse), or an Outcome when the run ends here.
        """
        while True:
            self.display.step_header(self.state.step)
            raw = self.request_step()
            self.display.raw_response(raw)

            try:
                parsed = parse_response_strict(raw)
            except ContractParseError as e:
                self.display.parse_failure(e.raw)
            else:
                self.display.step_table(parsed)
                return raw, parsed

            answer = self.ask(RETRY_PROMPT)
            if answer == QUIT:
                return Outcome.QUIT
            if answer not in YES:
                self.display.message("✘ Session abandoned: the AI response could not be parsed.")
                return Outcome.ABANDONED

    def _resume_pending(self) -> Optional[Outcome]:
        """Reopen the decision prompt of a step saved before it advanced.

        Its code is already in the artifact, so it is never requested or
        accepted again.
        """
        raw = self.state.pending_raw
        parsed = parse_response(raw)
        if parsed is None:
            self.state.advance(raw)
            return None

        self.display.step_header(self.state.step)
        self.display.message("☾ Resuming at the end of this step.")
        self.display.step_table(parsed)
        self._check_budget()
        return self._decide(raw, parsed)

    def _verification_gate(self, parsed: StepResponse) -> Optional[bool]:
        """True to accept, False to reject, None if the user quit."""
        if not is_verification_weak(parsed.verification):
            return True

        self.display.weak_verification(parsed.verification)
        answer = self.ask(ACCEPT_PROMPT)
        if answer == QUIT:
            return None
        return answer in YES

    def _check_budget(self):
        usage = context_usage(self.state.context, self.state.max_tokens)
        if usage.needs_warning:
            self.display.context_warning(usage)

    def _decide(self, raw: str, parsed: StepResponse) -> Optional[Outcome]:
        """Resolve the end-of-step prompt. None means continue."""
        while True:
            answer = self.ask(DECISION_PROMPT)

            if answer == QUIT:
                return Outcome.QUIT
            if answer == STOP:
                self.display.final_code(self.state.accumulated_code)
                return Outcome.STOPPED
            if answer == SAVE:
                self.save()
                continue
            if answer == DETAILS:
                self.display.step_details(parsed)
                continue

            self.state.advance(raw)
            return None

    def save(self) -> Optional[str]:
        """Snapshot the session; a failure is reported and the loop goes on."""
        try:
            path = self.store.save(self.state)
        except SessionPersistenceError as e:
            self.display.save_failed(e)
            return None
        self.display.saved(path)
        return path
