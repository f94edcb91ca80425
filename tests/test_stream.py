"""Tests for question dispatch and streamed answer assembly."""

from __future__ import annotations

import itertools
import unittest

from fakes import FakeBridge

from pagechat.context import ShellContext
from pagechat.events import EventBus, ModelFallbackEvent, StreamEvent
from pagechat.exceptions import BridgeUnavailableError, PreconditionError
from pagechat.managers.sessions import SessionRegistry
from pagechat.managers.stream import EMPTY_RESPONSE_PLACEHOLDER, StreamCoordinator
from pagechat.state import AnswerMode, BridgeStatus, ConversationState, StateManager
from pagechat.task_manager import TaskManager


class StreamCoordinatorTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.bridge = FakeBridge()
        self.context = ShellContext(bridge_status=BridgeStatus.READY)
        self.tasks = TaskManager()
        self.state = StateManager()
        counter = itertools.count(1)
        self.sessions = SessionRegistry(
            self.context,
            self.bridge,
            self.tasks,
            metadata_retry_delay_seconds=0.0,
            id_factory=lambda: f"tab-{next(counter)}",
        )
        self.stream = StreamCoordinator(
            self.context,
            self.bridge,
            self.state,
            self.sessions,
            default_remote_model="google/gemini",
        )
        self.bus = EventBus()
        self.stream.subscribe(self.bus)
        await self.sessions.navigate("https://example.com")
        await self.tasks.await_all()
        self.context.current_model = "openrouter:meta/llama"

    async def asyncTearDown(self) -> None:
        await self.tasks.cancel_all()

    def _texts(self, role: str) -> list[str]:
        return [turn.text for turn in self.context.transcript.turns if turn.role == role]

    async def test_tokens_are_concatenated_in_order(self) -> None:
        self.assertTrue(await self.stream.submit("What is this?"))
        self.assertEqual(self.state.state, ConversationState.DISPATCHED)
        self.assertFalse(self.context.input_enabled)
        await self.bridge.emit(self.bus.remote_stream, response="Hel")
        self.assertEqual(self.state.state, ConversationState.STREAMING)
        await self.bridge.emit(self.bus.remote_stream, response="lo")
        await self.bridge.emit(self.bus.remote_stream, done=True)
        self.assertEqual(self._texts("assistant"), ["Hello"])
        self.assertEqual(self.state.state, ConversationState.TERMINAL)
        self.assertTrue(self.context.input_enabled)
        self.assertEqual(self.context.chat_status, "Ready")

    async def test_remote_dispatch_strips_prefix(self) -> None:
        await self.stream.submit("hi")
        self.assertEqual(
            self.bridge.calls[-1],
            ("ask_remote", "https://example.com", "hi", "meta/llama"),
        )

    async def test_unprefixed_remote_model_uses_default(self) -> None:
        self.context.current_model = "something"
        await self.stream.submit("hi")
        self.assertEqual(self.bridge.calls[-1][-1], "google/gemini")

    async def test_local_dispatch(self) -> None:
        self.context.mode = AnswerMode.LOCAL
        self.context.current_model = "ollama:llama3"
        await self.stream.submit("/ozetle")
        command, url, question, model = self.bridge.calls[-1]
        self.assertEqual((command, url, model), ("ask_local", "https://example.com", "llama3"))
        self.assertTrue(question.startswith("Format: give a short and concise summary."))
        self.assertEqual(self._texts("user"), ["/ozetle"])

    async def test_zero_tokens_yield_placeholder(self) -> None:
        await self.stream.submit("hi")
        await self.bridge.emit(self.bus.remote_stream, done=True)
        self.assertEqual(self._texts("assistant"), [EMPTY_RESPONSE_PLACEHOLDER])

    async def test_terminal_error_adds_system_turn(self) -> None:
        await self.stream.submit("hi")
        await self.bridge.emit(self.bus.remote_stream, response="partial")
        await self.bridge.emit(self.bus.remote_stream, done=True, error="HTTP 500")
        self.assertEqual(self._texts("assistant"), ["partial"])
        self.assertEqual(self._texts("system")[-1], "Error: HTTP 500")

    async def test_events_without_pending_request_are_ignored(self) -> None:
        await self.bridge.emit(self.bus.remote_stream, response="ghost")
        await self.bridge.emit(self.bus.remote_stream, done=True)
        self.assertEqual(self._texts("assistant"), [])

    async def test_events_on_other_channel_are_ignored(self) -> None:
        await self.stream.submit("hi")
        await self.bridge.emit(self.bus.local_stream, response="wrong")
        self.assertEqual(self._texts("assistant"), [])
        self.assertIsNotNone(self.stream.pending)

    async def test_stale_generation_is_ignored(self) -> None:
        await self.stream.submit("hi")
        self.context.generation.advance()
        await self.bridge.emit(self.bus.remote_stream, response="late")
        self.assertEqual(self._texts("assistant"), [])

    async def test_event_for_another_request_is_ignored(self) -> None:
        await self.stream.submit("hi")
        request_id = self.stream.pending.request_id
        await self.bus.remote_stream.publish(StreamEvent(response="other", request_id=request_id + 1))
        await self.bus.remote_stream.publish(StreamEvent(done=True, request_id=request_id + 1))
        self.assertEqual(self._texts("assistant"), [])
        self.assertIsNotNone(self.stream.pending)
        await self.bus.remote_stream.publish(StreamEvent(response="mine", request_id=request_id))
        self.assertEqual(self._texts("assistant"), ["mine"])

    async def test_request_ids_are_unique_per_dispatch(self) -> None:
        await self.stream.submit("one")
        await self.bridge.emit(self.bus.remote_stream, done=True)
        await self.stream.submit("two")
        self.assertEqual(len(set(self.bridge.request_ids)), 2)

    async def test_supersede_abandons_pending_request(self) -> None:
        await self.stream.submit("hi")
        await self.bridge.emit(self.bus.remote_stream, response="part")
        await self.stream.supersede()
        self.assertEqual(self.state.state, ConversationState.IDLE)
        self.assertTrue(self.context.input_enabled)
        await self.bridge.emit(self.bus.remote_stream, response="more")
        self.assertEqual(self._texts("assistant"), ["part"])
        self.assertTrue(self.context.transcript.turns[-1].complete)

    async def test_second_submit_is_rejected_while_in_flight(self) -> None:
        self.assertTrue(await self.stream.submit("one"))
        self.assertFalse(await self.stream.submit("two"))
        self.assertEqual(self._texts("user"), ["one"])

    async def test_precondition_without_bridge(self) -> None:
        self.context.bridge_status = BridgeStatus.DEGRADED
        self.assertFalse(await self.stream.submit("hi"))
        self.assertEqual(
            self._texts("system")[-1],
            "The bridge is not available. Restart the application.",
        )
        self.assertNotIn("ask_remote", self.bridge.commands())

    async def test_precondition_without_page(self) -> None:
        await self.sessions.create()
        self.assertFalse(await self.stream.submit("hi"))
        self.assertEqual(self._texts("system")[-1], "Please open a web page first.")

    async def test_precondition_without_model(self) -> None:
        self.context.current_model = "ollama:none"
        self.assertFalse(await self.stream.submit("hi"))
        self.assertEqual(self._texts("system")[-1], "Please select a model first.")

    def test_check_preconditions_raises_domain_errors(self) -> None:
        self.assertEqual(
            self.stream.check_preconditions(),
            ("https://example.com", "openrouter:meta/llama"),
        )
        self.context.current_model = ""
        with self.assertRaises(PreconditionError):
            self.stream.check_preconditions()
        self.context.bridge_status = BridgeStatus.DEGRADED
        with self.assertRaises(BridgeUnavailableError):
            self.stream.check_preconditions()

    async def test_empty_message_is_ignored(self) -> None:
        self.assertFalse(await self.stream.submit("   "))
        self.assertEqual(len(self.context.transcript), 0)

    async def test_dispatch_failure_reports_error(self) -> None:
        self.bridge.fail.add("ask_remote")
        with self.assertLogs("pagechat.managers.stream", level="ERROR"):
            self.assertFalse(await self.stream.submit("hi"))
        self.assertEqual(self._texts("system")[-1], "Error: ask_remote failed")
        self.assertEqual(self.context.chat_status, "Error")
        self.assertEqual(self.state.state, ConversationState.IDLE)
        self.assertTrue(self.context.input_enabled)

    async def test_model_fallback_updates_status(self) -> None:
        await self.stream.submit("hi")
        await self.bus.model_fallback.publish(ModelFallbackEvent(to="backup/model"))
        self.assertEqual(self.context.chat_status, "Trying backup/model...")

    async def test_clear_leaves_notice(self) -> None:
        await self.stream.submit("hi")
        self.stream.clear()
        self.assertEqual(self._texts("system"), ["Chat cleared."])
        self.assertEqual(len(self.context.transcript), 1)


if __name__ == "__main__":
    unittest.main()
