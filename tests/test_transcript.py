"""Unit tests for the transcript store and session."""
import pytest
from hypothesis import given
from hypothesis import strategies as st

from nexuschat.engine import (
    DEFAULT_CLEARED_GREETING,
    DEFAULT_GREETING,
    Message,
    MessageStatus,
    Sender,
    Session,
    TranscriptChange,
    TranscriptStore,
)


class TestTranscriptStore:
    """Tests for ordering, ids and in-place updates."""

    @pytest.fixture
    def store(self):
        return TranscriptStore()

    def test_append_assigns_unique_ids(self, store):
        """Test that every appended message gets a distinct id."""
        ids = [store.append(Message.user(f"m{i}")) for i in range(20)]

        assert len(set(ids)) == 20
        assert [m.id for m in store.snapshot()] == ids

    def test_ids_are_creation_ordered(self, store):
        ids = [store.append(Message.user(f"m{i}")) for i in range(10)]
        assert ids == sorted(ids)

    def test_append_keeps_explicit_id(self, store):
        assert store.append(Message(id="fixed", sender=Sender.USER, text="hi")) == "fixed"
        assert "fixed" in store

    def test_duplicate_id_rejected(self, store):
        store.append(Message(id="a", sender=Sender.USER, text="hi"))
        with pytest.raises(ValueError, match="Duplicate"):
            store.append(Message(id="a", sender=Sender.USER, text="again"))
        assert len(store) == 1

    def test_update_preserves_position_and_identity(self, store):
        """Test that resolving a placeholder keeps its index, id and timestamp."""
        store.append(Message.user("question"))
        placeholder_id = store.append(Message.placeholder())
        store.append(Message.user("later"))
        before = store.get(placeholder_id)

        assert store.update_by_id(placeholder_id, text="answer", status=MessageStatus.COMMITTED)

        after = store.snapshot()[1]
        assert after.id == placeholder_id
        assert after.timestamp == before.timestamp
        assert after.sender is Sender.ASSISTANT
        assert after.text == "answer"
        assert after.status is MessageStatus.COMMITTED
        assert [m.text for m in store.snapshot()] == ["question", "answer", "later"]

    def test_update_unknown_id_is_noop(self, store):
        store.append(Message.user("hi"))
        before = store.snapshot()

        assert store.update_by_id("missing", text="x") is False
        assert store.snapshot() == before

    def test_update_rejects_other_fields(self, store):
        message_id = store.append(Message.user("hi"))
        with pytest.raises(ValueError, match="sender"):
            store.update_by_id(message_id, sender=Sender.ASSISTANT)

    @pytest.mark.parametrize("status", [MessageStatus.PENDING, "pending"])
    def test_resolved_message_cannot_return_to_pending(self, store, status):
        """Test that a committed message cannot become a second placeholder."""
        message_id = store.append(Message.assistant("done"))
        with pytest.raises(ValueError, match="pending"):
            store.update_by_id(message_id, status=status)
        assert store.get(message_id).status is MessageStatus.COMMITTED
        assert store.pending is None

    def test_update_revalidates(self, store):
        """Test that a patch cannot commit a message with empty text."""
        placeholder_id = store.append(Message.placeholder())
        with pytest.raises(ValueError):
            store.update_by_id(placeholder_id, status=MessageStatus.COMMITTED)
        assert store.get(placeholder_id).is_pending

    def test_reset_leaves_only_seed(self, store):
        old_ids = [store.append(Message.user(f"m{i}")) for i in range(3)]

        seed_id = store.reset(Message.assistant("fresh"))

        assert len(store) == 1
        assert store.snapshot()[0].id == seed_id
        assert store.snapshot()[0].text == "fresh"
        assert not any(old in store for old in old_ids)
        assert seed_id not in old_ids

    def test_update_after_reset_is_discarded(self, store):
        placeholder_id = store.append(Message.placeholder())
        store.reset(Message.assistant("fresh"))

        assert store.update_by_id(placeholder_id, text="late", status=MessageStatus.COMMITTED) is False
        assert [m.text for m in store.snapshot()] == ["fresh"]

    def test_pending(self, store):
        assert store.pending is None
        placeholder_id = store.append(Message.placeholder())
        assert store.pending.id == placeholder_id
        store.update_by_id(placeholder_id, text="done", status=MessageStatus.COMMITTED)
        assert store.pending is None

    def test_seed_is_first_message(self):
        store = TranscriptStore(seed=Message.assistant("hello"))
        assert [m.text for m in store] == ["hello"]

    def test_snapshot_is_immutable_view(self, store):
        store.append(Message.user("hi"))
        snapshot = store.snapshot()
        store.append(Message.user("more"))
        assert len(snapshot) == 1
        assert isinstance(snapshot, tuple)

    @given(st.lists(st.text(min_size=1, max_size=20), min_size=1, max_size=30))
    def test_insertion_order_is_display_order(self, texts: list[str]):
        """Property test: snapshot order equals append order."""
        store = TranscriptStore()
        for text in texts:
            store.append(Message.user(text))

        assert [m.text for m in store.snapshot()] == texts
        assert len({m.id for m in store.snapshot()}) == len(texts)


class TestTranscriptObservers:
    """Tests for change notification."""

    def test_events_for_each_mutation(self):
        store = TranscriptStore()
        events = []
        store.subscribe(events.append)

        placeholder_id = store.append(Message.placeholder())
        store.update_by_id(placeholder_id, text="done", status=MessageStatus.COMMITTED)
        store.reset(Message.assistant("fresh"))

        assert [e.kind for e in events] == [
            TranscriptChange.APPENDED,
            TranscriptChange.UPDATED,
            TranscriptChange.RESET,
        ]
        assert events[0].message.id == placeholder_id
        assert events[1].message.text == "done"
        assert events[2].message.text == "fresh"

    def test_missed_update_does_not_notify(self):
        store = TranscriptStore()
        events = []
        store.subscribe(events.append)

        store.update_by_id("missing", text="x")

        assert events == []

    def test_unsubscribe(self):
        store = TranscriptStore()
        events = []
        unsubscribe = store.subscribe(events.append)

        unsubscribe()
        store.append(Message.user("hi"))

        assert events == []
        unsubscribe()

    def test_failing_observer_does_not_break_mutation(self):
        store = TranscriptStore()
        seen = []

        def broken(event):
            raise RuntimeError("observer bug")

        store.subscribe(broken)
        store.subscribe(seen.append)
        message_id = store.append(Message.user("hi"))

        assert message_id in store
        assert len(seen) == 1


class TestSession:
    """Tests for the session wrapper."""

    def test_starts_with_greeting(self):
        session = Session()
        messages = session.transcript.snapshot()

        assert len(messages) == 1
        assert messages[0].sender is Sender.ASSISTANT
        assert messages[0].text == DEFAULT_GREETING
        assert messages[0].status is MessageStatus.COMMITTED
        assert session.busy is False
        assert session.generation == 0

    def test_reset_uses_cleared_greeting(self):
        session = Session()
        session.transcript.append(Message.user("hi"))

        seed_id = session.reset()

        messages = session.transcript.snapshot()
        assert [m.id for m in messages] == [seed_id]
        assert messages[0].text == DEFAULT_CLEARED_GREETING
        assert session.generation == 1

    def test_custom_greetings(self):
        session = Session(greeting="Hi", cleared_greeting="Fresh start")
        assert session.transcript.snapshot()[0].text == "Hi"
        session.reset()
        assert session.transcript.snapshot()[0].text == "Fresh start"

    def test_reset_clears_busy(self):
        session = Session()
        session.set_busy(True)
        session.reset()
        assert session.busy is False

    def test_busy_observers_only_see_changes(self):
        session = Session()
        changes = []
        unsubscribe = session.subscribe_busy(changes.append)

        session.set_busy(True)
        session.set_busy(True)
        session.set_busy(False)
        unsubscribe()
        session.set_busy(True)

        assert changes == [True, False]
