"""
Unit Tests: ResultStream

Replay-last-value semantics and completion.
"""

import threading

import pytest

from formsave.saving import ResultStream, SaveResult, SaveResultState, StreamClosedError

SAVING = SaveResult(SaveResultState.SAVING)
SAVED = SaveResult(SaveResultState.SAVED)


class TestResultStream:
    """Tests for push, subscribe and close."""

    def test_holds_initial_value(self):
        assert ResultStream(SAVING).value == SAVING

    def test_empty_stream_has_no_value(self):
        assert ResultStream().value is None

    def test_push_overwrites_value(self):
        stream = ResultStream(SAVING)
        stream.push(SAVED)
        assert stream.value == SAVED

    def test_subscribe_replays_current_value(self):
        """Late subscribers see the latest value without waiting for a push."""
        stream = ResultStream(SAVING)
        stream.push(SAVED)

        seen = []
        stream.subscribe(seen.append)
        assert seen == [SAVED]

    def test_subscribe_to_empty_stream_replays_nothing(self):
        seen = []
        ResultStream().subscribe(seen.append)
        assert seen == []

    def test_listeners_receive_pushes(self):
        stream = ResultStream(SAVING)
        seen = []
        stream.subscribe(seen.append)

        stream.push(SAVED)
        assert seen == [SAVING, SAVED]

    def test_unsubscribe_stops_delivery(self):
        stream = ResultStream(SAVING)
        seen = []
        unsubscribe = stream.subscribe(seen.append)
        unsubscribe()

        stream.push(SAVED)
        assert seen == [SAVING]

    def test_failing_listener_does_not_block_others(self):
        stream = ResultStream()
        seen = []

        def broken(result):
            raise RuntimeError("listener bug")

        stream.subscribe(broken)
        stream.subscribe(seen.append)
        stream.push(SAVED)

        assert seen == [SAVED]
        assert stream.value == SAVED

    def test_push_after_close_raises(self):
        stream = ResultStream(SAVING)
        stream.push(SAVED, close=True)

        with pytest.raises(StreamClosedError):
            stream.push(SAVING)
        assert stream.value == SAVED

    def test_completed_stream_is_closed(self):
        stream = ResultStream.completed(SaveResult(SaveResultState.ALREADY_SAVING))
        assert stream.closed
        assert stream.value.state == SaveResultState.ALREADY_SAVING

    def test_wait_returns_final_value(self):
        stream = ResultStream(SAVING)
        timer = threading.Timer(0.05, lambda: stream.push(SAVED, close=True))
        timer.start()

        assert stream.wait(timeout=5) == SAVED
        timer.join()

    def test_wait_times_out_with_current_value(self):
        stream = ResultStream(SAVING)
        assert stream.wait(timeout=0.01) == SAVING
        assert not stream.closed


class PushOnRelease:
    """Condition wrapper that pushes from another thread the first time the lock is released."""

    def __init__(self, stream, value):
        self._cond = stream._cond
        self._stream = stream
        self._value = value
        self._armed = True

    def __enter__(self):
        return self._cond.__enter__()

    def __exit__(self, *exc):
        self._cond.__exit__(*exc)
        if self._armed:
            self._armed = False
            pusher = threading.Thread(target=self._stream.push, args=(self._value,), kwargs={"close": True})
            pusher.start()
            pusher.join(timeout=5)
        return False

    def __getattr__(self, name):
        return getattr(self._cond, name)


class TestResultStreamOrdering:
    """Delivery order when pushes race with subscribers."""

    def test_push_racing_subscribe_is_delivered_after_replay(self):
        stream = ResultStream(SAVING)
        stream._cond = PushOnRelease(stream, SAVED)

        seen = []
        stream.subscribe(seen.append)

        assert seen == [SAVING, SAVED]
        assert seen[-1] == stream.value

    def test_listener_pushes_arrive_in_order_across_threads(self):
        stream = ResultStream(SAVING)
        seen = []
        stream.subscribe(seen.append)

        threads = [
            threading.Thread(target=stream.push, args=(SaveResult(SaveResultState.SAVING),))
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        stream.push(SAVED, close=True)

        assert seen[-1] == SAVED == stream.value

    def test_listener_may_read_stream_during_delivery(self):
        stream = ResultStream(SAVING)
        observed = []
        stream.subscribe(lambda result: observed.append(stream.value))

        stream.push(SAVED, close=True)
        assert observed == [SAVING, SAVED]


class TestSaveResult:
    """Tests for the SaveResult value type."""

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            SAVED.state = SaveResultState.SAVE_ERROR

    def test_terminal_states(self):
        assert SAVED.is_terminal()
        assert SaveResult(SaveResultState.ALREADY_SAVING).is_terminal()
        assert not SAVING.is_terminal()
        assert not SaveResult(SaveResultState.CHANGE_REASON_REQUIRED).is_terminal()

    def test_to_dict(self):
        result = SaveResult(SaveResultState.SAVE_ERROR, "OH NO")
        assert result.to_dict() == {"state": "save_error", "message": "OH NO"}
