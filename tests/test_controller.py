"""Tests for the exchange controller.

Covers the end-to-end exchange lifecycle against a scripted transport:
placeholder insertion, in-place resolution, retry exhaustion, the
single-flight guard and resets while a request is in flight.
"""
import asyncio

import pytest

from nexuschat.engine import (
    DEFAULT_CLEARED_GREETING,
    DEFAULT_FALLBACK_TEXT,
    DEFAULT_GREETING,
    ExchangeController,
    MessageStatus,
    RetryPolicy,
    Sender,
)
from nexuschat.errors import InvalidInput, MalformedResponse, TransportFailure


def texts(session):
    return [m.text for m in session.transcript.snapshot()]


class TestHappyPath:
    """Successful exchanges."""

    @pytest.mark.asyncio
    async def test_reply_replaces_placeholder(self, session, make_controller):
        """Test that a reply resolves the placeholder in place."""
        controller, transport = make_controller("Hello there")

        task = controller.send("Hi")

        # The synchronous part has already happened.
        messages = session.transcript.snapshot()
        assert [m.sender for m in messages] == [Sender.ASSISTANT, Sender.USER, Sender.ASSISTANT]
        assert messages[1].text == "Hi"
        assert messages[2].is_pending
        assert controller.busy is True
        placeholder_id = messages[2].id

        resolved = await task

        messages = session.transcript.snapshot()
        assert len(messages) == 3
        assert messages[2].id == placeholder_id
        assert messages[2].text == "Hello there"
        assert messages[2].status is MessageStatus.COMMITTED
        assert resolved == messages[2]
        assert controller.busy is False

        history, new_turn = transport.calls[0]
        assert [turn.content for turn in history] == [DEFAULT_GREETING]
        assert new_turn == "Hi"

    @pytest.mark.asyncio
    async def test_input_is_trimmed(self, session, make_controller):
        controller, transport = make_controller("ok")

        await controller.exchange("  Hi  ")

        assert texts(session)[1] == "Hi"
        assert transport.calls[0][1] == "Hi"

    @pytest.mark.asyncio
    async def test_context_grows_with_committed_turns(self, session, make_controller):
        controller, transport = make_controller("one", "two")

        await controller.exchange("a")
        await controller.exchange("b")

        history, new_turn = transport.calls[1]
        assert [(t.role, t.content) for t in history] == [
            ("assistant", DEFAULT_GREETING),
            ("user", "a"),
            ("assistant", "one"),
        ]
        assert new_turn == "b"

    @pytest.mark.asyncio
    async def test_max_history_limits_context(self, session, retry_policy, scripted_transport):
        transport = scripted_transport("one", "two")
        controller = ExchangeController(session, transport, retry_policy=retry_policy, max_history=1)

        await controller.exchange("a")
        await controller.exchange("b")

        history, _ = transport.calls[1]
        assert [t.content for t in history] == ["one"]

    @pytest.mark.asyncio
    async def test_busy_transitions(self, session, make_controller):
        controller, _ = make_controller("ok")
        changes = []
        session.subscribe_busy(changes.append)

        await controller.exchange("Hi")

        assert changes == [True, False]


class TestFailures:
    """Exhausted retries and non-retryable errors."""

    @pytest.mark.asyncio
    async def test_exhausted_retries_mark_failed(self, session, make_controller, sleep):
        """Test that three failures resolve the placeholder to the fallback text."""
        controller, transport = make_controller(ConnectionError("timeout"))

        resolved = await controller.exchange("Hi")

        assert len(transport.calls) == 3
        assert sleep.delays == [1.0, 1.0]
        messages = session.transcript.snapshot()
        assert len(messages) == 3
        assert messages[2].status is MessageStatus.FAILED
        assert messages[2].text == DEFAULT_FALLBACK_TEXT
        assert resolved.is_failed
        assert controller.busy is False

    @pytest.mark.asyncio
    async def test_error_detail_stays_out_of_transcript(self, session, make_controller):
        controller, _ = make_controller(TransportFailure("secret upstream detail"))

        await controller.exchange("Hi")

        assert not any("secret" in text for text in texts(session))

    @pytest.mark.asyncio
    async def test_custom_fallback_text(self, session, retry_policy, scripted_transport):
        controller = ExchangeController(
            session,
            scripted_transport(ConnectionError()),
            retry_policy=retry_policy,
            fallback_text="Nope.",
        )
        resolved = await controller.exchange("Hi")
        assert resolved.text == "Nope."

    def test_empty_fallback_text_rejected(self, session, scripted_transport):
        with pytest.raises(ValueError, match="fallback_text"):
            ExchangeController(session, scripted_transport("ok"), fallback_text="")

    @pytest.mark.asyncio
    async def test_unwritable_settlement_still_clears_busy(self, session, make_controller, monkeypatch):
        """Test that a transcript write failing at settle time cannot wedge the session."""
        controller, transport = make_controller(ConnectionError())

        def refuse(message_id, **patch):
            raise ValueError("rejected")

        monkeypatch.setattr(session.transcript, "update_by_id", refuse)
        resolved = await controller.exchange("Hi")

        assert resolved is None
        assert controller.busy is False

        monkeypatch.undo()
        transport.script = ["Back online"]
        assert controller.send("Again") is not None
        await controller.close()
        assert texts(session)[-1] == "Back online"

    @pytest.mark.asyncio
    async def test_malformed_response_fails_without_retry(self, session, make_controller):
        controller, transport = make_controller(MalformedResponse("no choices"))

        resolved = await controller.exchange("Hi")

        assert len(transport.calls) == 1
        assert resolved.is_failed

    @pytest.mark.asyncio
    async def test_empty_reply_is_failure(self, session, make_controller):
        controller, _ = make_controller("")

        resolved = await controller.exchange("Hi")

        assert resolved.is_failed
        assert resolved.text == DEFAULT_FALLBACK_TEXT

    @pytest.mark.asyncio
    async def test_recovery_after_transient_failure(self, session, make_controller):
        controller, transport = make_controller(ConnectionError(), "Recovered")

        resolved = await controller.exchange("Hi")

        assert len(transport.calls) == 2
        assert resolved.text == "Recovered"
        assert resolved.status is MessageStatus.COMMITTED

    @pytest.mark.asyncio
    async def test_failed_turn_excluded_from_next_request(self, session, make_controller):
        """Test that a failed exchange's fallback never becomes context."""
        controller, transport = make_controller(
            ConnectionError(), ConnectionError(), ConnectionError(), "Fine"
        )

        await controller.exchange("first")
        await controller.exchange("second")

        history, new_turn = transport.calls[-1]
        assert [t.content for t in history] == [DEFAULT_GREETING, "first"]
        assert DEFAULT_FALLBACK_TEXT not in [t.content for t in history]
        assert new_turn == "second"


class TestSingleFlight:
    """Rejected submissions."""

    @pytest.mark.asyncio
    async def test_second_send_while_busy_is_rejected(self, session, make_controller):
        """Test that a submission during an in-flight exchange changes nothing."""
        controller, transport = make_controller("first reply")
        gate = transport.hold()

        task = controller.send("one")
        before = session.transcript.snapshot()

        assert controller.send("two") is None
        assert session.transcript.snapshot() == before

        gate.set()
        await task
        assert len(transport.calls) == 1
        assert texts(session) == [DEFAULT_GREETING, "one", "first reply"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_input_is_noop(self, session, make_controller, text):
        controller, transport = make_controller("ok")

        assert controller.send(text) is None
        assert await controller.exchange(text) is None

        assert texts(session) == [DEFAULT_GREETING]
        assert controller.busy is False
        assert transport.calls == []

    def test_validate(self, make_controller):
        controller, _ = make_controller("ok")

        assert controller.validate("  hi ") == "hi"
        with pytest.raises(InvalidInput):
            controller.validate("   ")

    @pytest.mark.asyncio
    async def test_validate_rejects_while_busy(self, make_controller):
        controller, transport = make_controller("ok")
        gate = transport.hold()
        task = controller.send("one")

        with pytest.raises(InvalidInput, match="in flight"):
            controller.validate("two")

        gate.set()
        await task


class TestReset:
    """Resets, including while a request is in flight."""

    @pytest.mark.asyncio
    async def test_reset_during_flight_discards_late_reply(self, session, make_controller):
        """Test that a reply arriving after a reset does not touch the new transcript."""
        controller, transport = make_controller("late reply")
        gate = transport.hold()

        task = controller.send("Hi")
        await asyncio.sleep(0)
        seed_id = controller.reset()

        assert controller.busy is False
        gate.set()
        assert await task is None

        messages = session.transcript.snapshot()
        assert [m.id for m in messages] == [seed_id]
        assert messages[0].text == DEFAULT_CLEARED_GREETING

    @pytest.mark.asyncio
    async def test_stale_settlement_does_not_clear_new_exchange(self, session, make_controller):
        """Test that an old result cannot unlock or resolve a newer exchange."""
        controller, transport = make_controller("old reply", "new reply")
        old_gate = transport.hold()
        new_gate = transport.hold()

        old_task = controller.send("old")
        await asyncio.sleep(0)
        controller.reset()
        new_task = controller.send("new")
        assert new_task is not None
        await asyncio.sleep(0)

        old_gate.set()
        assert await old_task is None
        assert controller.busy is True
        assert session.transcript.pending is not None

        new_gate.set()
        resolved = await new_task
        assert resolved.text == "new reply"
        assert controller.busy is False
        assert texts(session) == [DEFAULT_CLEARED_GREETING, "new", "new reply"]

    @pytest.mark.asyncio
    async def test_reset_when_idle(self, session, make_controller):
        controller, _ = make_controller("ok")
        await controller.exchange("Hi")

        controller.reset()

        assert texts(session) == [DEFAULT_CLEARED_GREETING]
        assert session.generation == 1


class TestLifecycle:
    """Cancellation and shutdown."""

    @pytest.mark.asyncio
    async def test_cancelled_exchange_settles_as_failed(self, session, make_controller):
        controller, transport = make_controller("never")
        transport.hold()

        task = controller.send("Hi")
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.transcript.snapshot()[-1].is_failed
        assert controller.busy is False

    @pytest.mark.asyncio
    async def test_close_waits_for_outstanding_exchanges(self, session, make_controller):
        controller, transport = make_controller("done")
        gate = transport.hold()
        controller.send("Hi")

        asyncio.get_running_loop().call_soon(gate.set)
        await controller.close()

        assert texts(session)[-1] == "done"

    @pytest.mark.asyncio
    async def test_default_retry_policy(self, session, scripted_transport):
        controller = ExchangeController(session, scripted_transport("ok"))
        assert (await controller.exchange("Hi")).text == "ok"

    @pytest.mark.asyncio
    async def test_exponential_policy_applies(self, session, sleep, scripted_transport):
        policy = RetryPolicy(max_attempts=3, base_delay=0.5, backoff="exponential", sleep=sleep)
        controller = ExchangeController(session, scripted_transport(ConnectionError()), retry_policy=policy)

        await controller.exchange("Hi")

        assert sleep.delays == [0.5, 1.0]
