"""
Metatron CLI — Stepwise Secure Code Generator
===============================================
Generates code step by step with mandatory verification gates. Every AI
reply must follow the EXPLANATION / CODE / VERIFICATION format.

Usage:
    # Pick a provider from the menu and start a new session
    python -m metatron.cli

    # Skip the menu
    GROK_API_KEY=... python -m metatron.cli --provider grok
    OLLAMA_MODEL=llama3 python -m metatron.cli --provider ollama

    # Resume a saved session
    python -m metatron.cli --session=metatron_session_1718000000000.json

    # Run the built-in parser checks
    python -m metatron.cli --test
"""

from __future__ import annotations

import argparse
import os
import sys

from metatron.conductor import Conductor, Outcome
from metatron.contract import is_verification_weak, parse_response
from metatron.display import Display
from metatron.errors import MetatronError
from metatron.providers.base import ProviderConfig
from metatron.providers.registry import (
    PROVIDER_PRESETS, ProviderPreset, config_from_preset, get_preset, get_provider,
)
from metatron.session_protocol import SessionState, SessionStore

TASK_PROMPT = 'Describe what you want to build (e.g. "PDF invoice generator from JSON cart"):'


# ─────────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────────

def ask(question: str) -> str:
    return input(question + " ").strip()


def select_provider(ask_fn=ask, output_fn=print) -> ProviderPreset:
    """Show the provider menu and loop until a valid number is entered."""
    output_fn("Available AI Providers:")
    for i, preset in enumerate(PROVIDER_PRESETS, start=1):
        output_fn(f"{i}. {preset.label}")
    output_fn("")

    count = len(PROVIDER_PRESETS)
    while True:
        choice = ask_fn(f"Select provider (1-{count}):")
        if choice.isdecimal() and 1 <= int(choice) <= count:
            return PROVIDER_PRESETS[int(choice) - 1]
        output_fn(f"✘ Invalid input. Please enter a number between 1 and {count}.")


def build_config(preset: ProviderPreset, args, ask_fn=ask,
                 environ=None) -> ProviderConfig:
    """Resolve key and model from flags, then environment, then a prompt."""
    environ = os.environ if environ is None else environ

    api_key = getattr(args, "key", "") or ""
    if preset.needs_key and not api_key:
        api_key = environ.get(preset.key_env, "") or ask_fn(
            f"Enter your {preset.label.split(' - ')[0]} API key:")

    model = getattr(args, "model", "") or ""
    if not model and preset.model_env:
        model = environ.get(preset.model_env, "") or ask_fn(
            f"Enter {preset.label.split(' - ')[0]} model name (default: {preset.model}):")

    return config_from_preset(
        preset,
        api_key=api_key,
        model=model,
        base_url=getattr(args, "base_url", "") or "",
        context_window=getattr(args, "max_tokens", None),
    )


def ask_task(ask_fn=ask) -> str:
    while True:
        task = ask_fn(TASK_PROMPT)
        if task:
            return task


# ─────────────────────────────────────────────────────────────
#  Self-test
# ─────────────────────────────────────────────────────────────

SAMPLE_CASES = [
    {
        "name": "Normal case",
        "input": ("EXPLANATION: This is the explanation.\n"
                  "CODE: const x = 1;\n"
                  "VERIFICATION: Test with assert(x === 1); OWASP A01:2021"),
        "expected": ("This is the explanation.", "const x = 1;",
                     "Test with assert(x === 1); OWASP A01:2021"),
        "weak": False,
    },
    {
        "name": "Code with CODE: in comment",
        "input": ("EXPLANATION: Parsing tricky code.\n"
                  'CODE: // This comment contains "CODE:" to break parsing\n'
                  "const y = 2;\n"
                  "VERIFICATION: CWE-89 reference"),
        "expected": ("Parsing tricky code.",
                     '// This comment contains "CODE:" to break parsing\nconst y = 2;',
                     "CWE-89 reference"),
        "weak": False,
    },
    {
        "name": "Multiline code",
        "input": ("EXPLANATION: Multiline example.\n"
                  "CODE: function foo() {\n"
                  "  return 'bar';\n"
                  "}\n"
                  "VERIFICATION: MDN reference"),
        "expected": ("Multiline example.", "function foo() {\n  return 'bar';\n}",
                     "MDN reference"),
        "weak": False,
    },
    {
        "name": "Weak verification",
        "input": ("EXPLANATION: Weak verif.\n"
                  "CODE: const z = 3;\n"
                  "VERIFICATION: Just a test"),
        "expected": ("Weak verif.", "const z = 3;", "Just a test"),
        "weak": True,
    },
]


def run_selftest(output_fn=print) -> int:
    """Run the sample replies through the parser. 0 if all pass."""
    output_fn("Running parser tests...\n")
    passed = 0

    for i, case in enumerate(SAMPLE_CASES, start=1):
        output_fn(f"Test {i}: {case['name']}")
        parsed = parse_response(case["input"])
        if parsed is None:
            output_fn("  ✘ PARSE FAILED")
        else:
            got = (parsed.explanation, parsed.code, parsed.verification)
            weak = is_verification_weak(parsed.verification)
            if got == case["expected"] and weak == case["weak"]:
                output_fn("  ✔ PASSED")
                passed += 1
            else:
                output_fn("  ✘ FAILED")
                output_fn(f"  Expected: {case['expected']} (weak={case['weak']})")
                output_fn(f"  Got:      {got} (weak={weak})")
        output_fn("")

    output_fn(f"Results: {passed}/{len(SAMPLE_CASES)} tests passed")
    return 0 if passed == len(SAMPLE_CASES) else 1


# ─────────────────────────────────────────────────────────────
#  Commands
# ─────────────────────────────────────────────────────────────

def start_session(args, ask_fn=ask, output_fn=print) -> SessionState:
    """Load the --session snapshot, or collect provider and task for a new one."""
    store = SessionStore(args.session_dir)

    if args.session:
        state = store.load(args.session)
        if args.max_tokens:
            state.config.context_window = args.max_tokens
        output_fn(f"✔ Resumed session from {args.session} "
                  f"(provider: {state.provider}, step {state.step})")
        output_fn(f"  Task: {state.task}\n")
        return state

    preset = get_preset(args.provider) if args.provider else select_provider(ask_fn, output_fn)
    config = build_config(preset, args, ask_fn=ask_fn)
    task = ask_task(ask_fn)
    output_fn('\nStarting step-by-step generation. Press Enter to continue, '
              'type "stop" to finish.\n')
    return SessionState.new(preset.name, config, task)


def cmd_run(args) -> int:
    """Run one interactive session end to end."""
    display = Display(color=not args.no_color)
    display.banner()

    try:
        state = start_session(args)
        conductor = Conductor(
            state,
            get_provider(state.config),
            store=SessionStore(args.session_dir),
            display=display,
        )
        result = conductor.run()
    except (EOFError, KeyboardInterrupt):
        print("\n☾ Interrupted. Goodbye.")
        return 1
    except MetatronError as e:
        print(f"✘ Error: {e}")
        return 1
    except Exception as e:
        print(f"⚠ Error: {type(e).__name__}: {e}")
        return 1

    if result.outcome is Outcome.ABANDONED:
        return 1
    return 0


# ─────────────────────────────────────────────────────────────
#  Main
# ─────────────────────────────────────────────────────────────

def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    providers_help = "\n".join(
        f"  {i}. {p.name:7s} {p.label}"
        + (f" (env: {p.key_env})" if p.key_env else "")
        + (f" (env: {p.model_env})" if p.model_env else "")
        for i, p in enumerate(PROVIDER_PRESETS, start=1)
    )
    parser = argparse.ArgumentParser(
        prog="metatron",
        description="Metatron — Stepwise Secure Code Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Supported providers:\n"
            f"{providers_help}\n\n"
            "Examples:\n"
            "  metatron\n"
            "  GROK_API_KEY=your_key metatron --provider grok\n"
            "  OLLAMA_MODEL=llama2 metatron --provider ollama\n"
            "  metatron --session=metatron_session_1718000000000.json\n"
        ),
    )
    parser.add_argument("--test", action="store_true", help="Run parser tests")
    parser.add_argument("--session", default=None, help="Load a saved session file")
    parser.add_argument("--session-dir", default=".",
                        help="Directory for saved sessions (default: current directory)")
    parser.add_argument("--provider", default=None,
                        choices=[p.name for p in PROVIDER_PRESETS],
                        help="Provider preset (skips the selection menu)")
    parser.add_argument("--model", default="", help="Override the preset's model")
    parser.add_argument("--key", default="", help="API key (default: from environment)")
    parser.add_argument("--base-url", default="", help="Custom API base URL")
    parser.add_argument("--max-tokens", type=_positive_int, default=None,
                        help="Context window used for usage warnings")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.test:
        return run_selftest()

    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
