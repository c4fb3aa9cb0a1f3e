"""
Metatron Test Suite — Session Protocol
========================================
Tests for session state, step accumulation, and snapshot persistence.

Usage:
    python -m pytest tests/test_session_protocol.py -v
    python tests/test_session_protocol.py
"""
import sys
import os
import json
import tempfile
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from metatron.errors import SessionPersistenceError
from metatron.providers.base import ProviderConfig
from metatron.session_protocol import (
    SessionState, SessionStore, SESSION_FILE_PREFIX, seed_context,
)


def _make_state(**overrides) -> SessionState:
    config = ProviderConfig(
        provider_name="openai",
        model="grok-4",
        api_key="xai-test",
        base_url="https://api.x.ai/v1",
        extra={"note": "kept"},
    )
    state = SessionState.new("grok", config, "PDF invoice generator from JSON cart")
    for key, value in overrides.items():
        setattr(state, key, value)
    return state


# ─────────────────────────────────────────────
#  SessionState Tests
# ─────────────────────────────────────────────

class TestSessionState(unittest.TestCase):

    def test_new_session_is_seeded(self):
        state = _make_state()
        self.assertEqual(state.step, 1)
        self.assertEqual(state.context, "Overall task: PDF invoice generator from JSON cart\n\n")
        self.assertEqual(state.accumulated_code, "")
        self.assertIsNone(state.timestamp)

    def test_seed_context(self):
        self.assertEqual(seed_context("x"), "Overall task: x\n\n")

    def test_accept_appends_code_with_blank_line(self):
        state = _make_state()
        state.accept("a = 1")
        state.accept("b = 2")
        self.assertEqual(state.accumulated_code, "a = 1\n\nb = 2\n\n")

    def test_accept_does_not_touch_context_or_step(self):
        state = _make_state()
        context = state.context
        state.accept("a = 1")
        self.assertEqual(state.context, context)
        self.assertEqual(state.step, 1)

    def test_advance_appends_raw_and_increments_step(self):
        state = _make_state()
        state.advance("RAW ONE")
        self.assertEqual(state.step, 2)
        self.assertTrue(state.context.endswith("RAW ONE\n\n"))

    def test_reject_keeps_text_but_not_code(self):
        state = _make_state()
        state.reject("EXPLANATION: e\nCODE: evil()\nVERIFICATION: trust me")
        self.assertEqual(state.step, 2)
        self.assertEqual(state.accumulated_code, "")
        self.assertIn("evil()", state.context)

    def test_max_tokens_comes_from_config(self):
        state = _make_state()
        state.config.context_window = 32768
        self.assertEqual(state.max_tokens, 32768)

    def test_dict_roundtrip(self):
        state = _make_state(step=4, accumulated_code="x = 1\n\n")
        self.assertEqual(SessionState.from_dict(state.to_dict()), state)

    def test_from_dict_rejects_bad_step(self):
        data = _make_state().to_dict()
        data["step"] = 0
        with self.assertRaises(ValueError):
            SessionState.from_dict(data)

    def test_accept_holds_reply_until_advance(self):
        state = _make_state()
        state.accept("a = 1", "RAW ONE")
        self.assertEqual(state.pending_raw, "RAW ONE")
        state.advance("RAW ONE")
        self.assertIsNone(state.pending_raw)

    def test_pending_reply_roundtrip(self):
        state = _make_state()
        state.accept("a = 1", "RAW ONE")
        self.assertEqual(SessionState.from_dict(state.to_dict()).pending_raw, "RAW ONE")

    def test_snapshot_without_pending_reply_loads(self):
        data = _make_state().to_dict()
        del data["pending_raw"]
        self.assertIsNone(SessionState.from_dict(data).pending_raw)

    def test_from_dict_rejects_bad_context_window(self):
        for bad in ("128000", 0, -5, True, None):
            data = _make_state().to_dict()
            data["config"]["context_window"] = bad
            with self.assertRaises(ValueError, msg=repr(bad)):
                SessionState.from_dict(data)

    def test_from_dict_rejects_bad_config(self):
        data = _make_state().to_dict()
        data["config"]["provider_name"] = ""
        with self.assertRaises(ValueError):
            SessionState.from_dict(data)
        data = _make_state().to_dict()
        data["config"] = "openai"
        with self.assertRaises(TypeError):
            SessionState.from_dict(data)

    def test_from_dict_requires_fields(self):
        data = _make_state().to_dict()
        del data["context"]
        with self.assertRaises(KeyError):
            SessionState.from_dict(data)


# ─────────────────────────────────────────────
#  SessionStore Tests
# ─────────────────────────────────────────────

class TestSessionStore(unittest.TestCase):

    def test_save_load_roundtrip(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionStore(tmpdir)
            state = _make_state(step=3)
            state.accept("def a():\n    return 1")
            state.advance("EXPLANATION: e\nCODE: c\nVERIFICATION: OWASP")

            path = store.save(state)
            loaded = store.load(path)

            self.assertEqual(loaded.provider, "grok")
            self.assertEqual(loaded.config, state.config)
            self.assertEqual(loaded.task, state.task)
            self.assertEqual(loaded.context, state.context)
            self.assertEqual(loaded.accumulated_code, state.accumulated_code)
            self.assertEqual(loaded.step, 4)
            self.assertEqual(loaded.timestamp, state.timestamp)

    def test_save_sets_timestamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            state = _make_state()
            SessionStore(tmpdir).save(state)
            self.assertIsNotNone(state.timestamp)

    def test_save_does_not_change_step_or_context(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            state = _make_state()
            before = (state.step, state.context, state.accumulated_code)
            SessionStore(tmpdir).save(state)
            self.assertEqual((state.step, state.context, state.accumulated_code), before)

    def test_filename_is_timestamped_and_unique(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionStore(tmpdir)
            state = _make_state()
            first = store.save(state)
            second = store.save(state)
            self.assertNotEqual(first, second)
            for path in (first, second):
                name = os.path.basename(path)
                self.assertTrue(name.startswith(SESSION_FILE_PREFIX))
                self.assertTrue(name.endswith(".json"))
                self.assertTrue(name[len(SESSION_FILE_PREFIX):-5].isdigit())

    def test_file_is_indented_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = SessionStore(tmpdir).save(_make_state())
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
            self.assertIn('\n  "task": ', text)
            self.assertEqual(json.loads(text)["step"], 1)

    def test_save_creates_session_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            session_dir = os.path.join(tmpdir, "nested", "sessions")
            path = SessionStore(session_dir).save(_make_state())
            self.assertTrue(os.path.exists(path))

    def test_save_failure_raises_and_restores_timestamp(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = os.path.join(tmpdir, "not_a_dir")
            with open(blocker, "w", encoding="utf-8") as f:
                f.write("x")
            state = _make_state()
            with self.assertRaises(SessionPersistenceError):
                SessionStore(blocker).save(state)
            self.assertIsNone(state.timestamp)

    def test_load_missing_file(self):
        with self.assertRaises(SessionPersistenceError):
            SessionStore().load("/nonexistent/metatron_session_0.json")

    def test_load_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "broken.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("{not json")
            with self.assertRaises(SessionPersistenceError) as ctx:
                SessionStore(tmpdir).load(path)
            self.assertEqual(ctx.exception.path, path)

    def test_load_missing_field(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "partial.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"task": "x"}, f)
            with self.assertRaises(SessionPersistenceError):
                SessionStore(tmpdir).load(path)

    def test_load_invalid_context_window(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for bad in ("128000", 0):
                data = _make_state().to_dict()
                data["config"]["context_window"] = bad
                path = os.path.join(tmpdir, f"window_{bad}.json")
                with open(path, "w", encoding="utf-8") as f:
                    json.dump(data, f)
                with self.assertRaises(SessionPersistenceError) as ctx:
                    SessionStore(tmpdir).load(path)
                self.assertIn("context_window", str(ctx.exception))

    def test_load_non_object(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "list.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump([1, 2, 3], f)
            with self.assertRaises(SessionPersistenceError):
                SessionStore(tmpdir).load(path)


if __name__ == "__main__":
    unittest.main(verbosity=2)
