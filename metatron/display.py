"""
Console rendering for the step loop. Presentation only: nothing here
changes session state.
"""

from __future__ import annotations

from metatron.context_budget import ContextUsage
from metatron.contract import StepResponse

RED = "\x1b[31m"
YELLOW = "\x1b[33m"
RESET = "\x1b[0m"


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def _fit(text: str, width: int) -> str:
    """Pad or cut a single line to exactly ``width`` characters."""
    line = _first_line(text)
    if len(line) > width:
        return line[:width - 1] + "…"
    return line.ljust(width)


class Display:
    """Writes everything the user sees through one output function."""

    def __init__(self, output_fn=None, color: bool = True):
        self.output = output_fn or print
        self.color = color

    def _paint(self, text: str, code: str) -> str:
        return f"{code}{text}{RESET}" if self.color else text

    # ─── Banners ──────────────────────────────────────────

    def banner(self):
        self.output("◬ ─── Metatron: Stepwise Secure Code Generator ───\n")

    def step_header(self, step: int):
        self.output(f"\n☾ ─── Step {step}: asking AI… ───\n")

    def raw_response(self, raw: str):
        self.output(raw + "\n")

    # ─── Step output ──────────────────────────────────────

    def step_table(self, response: StepResponse):
        """One-row summary: explanation, first code line, verification."""
        expl_w = max(12, min(50, len(response.explanation)))
        code_w = max(4, min(40, len(_first_line(response.code))))
        verif_w = max(12, min(50, len(response.verification)))

        row = (f"│ Explanation: {_fit(response.explanation, expl_w)} "
               f"│ Code: {_fit(response.code, code_w)} "
               f"│ Verification: {_fit(response.verification, verif_w)} │")
        inner = len(row) - 2

        self.output("┌" + "─" * inner + "┐")
        self.output("│ Step Output".ljust(inner + 1) + "│")
        self.output("├" + "─" * inner + "┤")
        self.output(row)
        self.output("└" + "─" * inner + "┘\n")

    def step_details(self, response: StepResponse):
        self.output("\n--- FULL DETAILS ---")
        self.output("EXPLANATION:")
        self.output(response.explanation)
        self.output("\nCODE:")
        self.output(response.code)
        self.output("\nVERIFICATION:")
        self.output(response.verification)
        self.output("--- END DETAILS ---\n")

    # ─── Gates and warnings ───────────────────────────────

    def parse_failure(self, raw: str):
        self.output(self._paint("✘ PARSING FAILED", RED))
        self.output("Raw AI Response:")
        self.output("---")
        self.output(raw)
        self.output("---")

    def weak_verification(self, verification: str):
        self.output("⚠ Weak verification detected - no credible security references")
        self.output(f"Verification: {verification}")

    def context_warning(self, usage: ContextUsage):
        self.output(self._paint(
            f"⚠ Context usage: ~{round(usage.estimated_tokens)} tokens "
            f"({round(usage.percent)}%)",
            YELLOW,
        ))
        if usage.is_critical:
            self.output(self._paint(
                "✘ CRITICAL: Near context limit. Save and stop recommended.", RED,
            ))

    # ─── Outcomes ─────────────────────────────────────────

    def saved(self, path: str):
        self.output(f"✔ Session saved to {path}")

    def save_failed(self, error: Exception):
        self.output(self._paint(f"✘ Save failed: {error}", RED))

    def final_code(self, code: str):
        self.output("\n◬ ─── Full generated code ───\n")
        self.output(code)

    def message(self, text: str):
        self.output(text)
