"""Tests for the liveness engine."""

import logging
import random
import threading

import pytest

from facelive.config import LivenessConfig
from facelive.engine import (
    LivenessEngine,
    gate_error,
    initial_state,
    instruction,
    is_complete,
    mark_captured,
    process_observation,
    progress,
    reset,
)
from facelive.observability import (
    CaptureRecord,
    ChallengeAdvanceRecord,
    GateFailRecord,
    ObservationRecord,
    SessionEndRecord,
    SessionStartRecord,
)
from facelive.types import CHALLENGE_ORDER, Challenge, LivenessError, LivenessState

from helpers import face, no_face, passing_run


def feed(state, observations, config=None):
    for obs in observations:
        state = process_observation(state, obs, config)
    return state


def state_at(challenge):
    """Fresh state positioned at ``challenge`` through passing observations."""
    state = initial_state()
    for obs in passing_run():
        if state.challenge is challenge:
            break
        state = process_observation(state, obs)
    assert state.challenge is challenge
    return state


class TestGate:
    """Tests for the face gate."""

    def test_no_face(self):
        assert gate_error(no_face(), LivenessConfig()) is LivenessError.NO_FACE_DETECTED

    def test_face_too_small(self):
        assert gate_error(face(size=0.15), LivenessConfig()) is LivenessError.FACE_TOO_SMALL
        assert gate_error(face(size=0.1), LivenessConfig()) is LivenessError.FACE_TOO_SMALL

    def test_face_ok(self):
        assert gate_error(face(size=0.16), LivenessConfig()) is None

    def test_gate_failure_updates_flags_and_error(self):
        state = process_observation(initial_state(), face(size=0.05))
        assert state.face_detected
        assert not state.face_size_sufficient
        assert state.error is LivenessError.FACE_TOO_SMALL
        assert state.error_message == "Move closer - Fill the oval"

        state = process_observation(state, no_face())
        assert not state.face_detected
        assert not state.face_size_sufficient
        assert state.error_message == "No face detected - Position your face"

    @pytest.mark.parametrize("challenge", [
        Challenge.INITIALIZING, Challenge.TURN_LEFT, Challenge.TURN_RIGHT, Challenge.SMILE,
    ])
    def test_gate_dominance(self, challenge):
        """A gated-out frame resets the streak even when its pose would pass."""
        state = state_at(challenge)
        state = process_observation(state, face(yaw=30.0 if challenge is Challenge.TURN_LEFT else -30.0, smile=0.9))
        assert state.consecutive_success_count == 1

        for bad in (no_face(), face(yaw=90.0, smile=1.0, size=0.15), face(yaw=-90.0, smile=1.0, detected=False)):
            blocked = process_observation(state, bad)
            assert blocked.consecutive_success_count == 0
            assert blocked.challenge is challenge
            assert blocked.error is not None

    def test_repeated_gate_failure_returns_same_state(self):
        state = process_observation(initial_state(), no_face())
        assert process_observation(state, no_face()) is state

    def test_valid_frame_clears_error(self):
        state = process_observation(initial_state(), no_face())
        state = process_observation(state, face())
        assert state.error is None
        assert state.face_detected
        assert state.face_size_sufficient
        assert state.consecutive_success_count == 1


class TestDebounce:
    """Tests for consecutive-success streaks."""

    def test_initial_lock_needs_five_frames(self):
        state = feed(initial_state(), [face()] * 4)
        assert state.challenge is Challenge.INITIALIZING
        assert state.consecutive_success_count == 4

        state = process_observation(state, face())
        assert state.challenge is Challenge.TURN_LEFT
        assert state.progress == 0.25
        assert state.consecutive_success_count == 0

    def test_threshold_minus_one_then_fail_never_advances(self):
        state = feed(initial_state(), [face()] * 4 + [no_face()])
        assert state.challenge is Challenge.INITIALIZING
        assert state.consecutive_success_count == 0

        for challenge, passing in (
            (Challenge.TURN_LEFT, face(yaw=30.0)),
            (Challenge.TURN_RIGHT, face(yaw=-30.0)),
            (Challenge.SMILE, face(smile=0.9)),
        ):
            state = feed(state_at(challenge), [passing, passing, face()])
            assert state.challenge is challenge
            assert state.consecutive_success_count == 0

    @pytest.mark.parametrize("challenge,passing,expected", [
        (Challenge.TURN_LEFT, face(yaw=30.0), Challenge.TURN_RIGHT),
        (Challenge.TURN_RIGHT, face(yaw=-30.0), Challenge.SMILE),
        (Challenge.SMILE, face(smile=0.9), Challenge.FACE_CAPTURE),
    ])
    def test_threshold_passes_advance(self, challenge, passing, expected):
        state = feed(state_at(challenge), [passing] * 3)
        assert state.challenge is expected
        assert challenge in state.completed_steps

    def test_turn_left_streak_reset(self):
        """Two passes, one miss, then three passes are needed again."""
        state = state_at(Challenge.TURN_LEFT)

        state = feed(state, [face(yaw=25.0)] * 2)
        assert state.consecutive_success_count == 2

        state = process_observation(state, face(yaw=0.0))
        assert state.challenge is Challenge.TURN_LEFT
        assert state.consecutive_success_count == 0
        assert state.error is None

        state = feed(state, [face(yaw=25.0)] * 2)
        assert state.challenge is Challenge.TURN_LEFT

        state = process_observation(state, face(yaw=25.0))
        assert state.challenge is Challenge.TURN_RIGHT
        assert state.progress == 0.5

    def test_configured_thresholds(self):
        config = LivenessConfig(lock_required_frames=2, required_frames=1)
        state = feed(initial_state(), [face()] * 2, config)
        assert state.challenge is Challenge.TURN_LEFT
        state = process_observation(state, face(yaw=30.0), config)
        assert state.challenge is Challenge.TURN_RIGHT


class TestTransitions:
    """Tests for frozen states, capture and reset."""

    def test_smile_to_capture_to_completed(self):
        state = feed(state_at(Challenge.SMILE), [face(smile=0.9)] * 3)
        assert state.challenge is Challenge.FACE_CAPTURE
        assert state.progress == 0.9

        for obs in (face(smile=0.9), no_face(), face(yaw=50.0), face(size=0.01)):
            assert process_observation(state, obs) is state

        done = mark_captured(state)
        assert done.challenge is Challenge.COMPLETED
        assert done.progress == 1.0
        assert is_complete(done)

    def test_completed_is_idempotent(self):
        done = mark_captured(feed(initial_state(), passing_run()))
        snapshot = LivenessState(**{
            "challenge": done.challenge,
            "consecutive_success_count": done.consecutive_success_count,
            "completed_steps": done.completed_steps,
            "face_detected": done.face_detected,
            "face_size_sufficient": done.face_size_sufficient,
            "error": done.error,
            "progress": done.progress,
        })
        for obs in passing_run() + [no_face()]:
            assert process_observation(done, obs) == snapshot
        assert mark_captured(done) is done

    def test_completed_steps_after_full_run(self):
        done = mark_captured(feed(initial_state(), passing_run()))
        assert done.completed_steps == frozenset({
            Challenge.INITIALIZING,
            Challenge.TURN_LEFT,
            Challenge.TURN_RIGHT,
            Challenge.SMILE,
            Challenge.FACE_CAPTURE,
        })
        assert Challenge.COMPLETED not in done.completed_steps

    @pytest.mark.parametrize("challenge", [
        Challenge.INITIALIZING, Challenge.TURN_LEFT, Challenge.TURN_RIGHT, Challenge.SMILE,
    ])
    def test_mark_captured_cannot_skip(self, challenge):
        state = state_at(challenge)
        assert mark_captured(state) is state

    @pytest.mark.parametrize("challenge", list(CHALLENGE_ORDER))
    def test_reset_from_any_state(self, challenge):
        if challenge is Challenge.COMPLETED:
            state = mark_captured(feed(initial_state(), passing_run()))
        else:
            state = state_at(challenge)
        assert state.challenge is challenge

        fresh = reset()
        assert fresh == initial_state()
        assert fresh.challenge is Challenge.INITIALIZING
        assert fresh.consecutive_success_count == 0
        assert fresh.completed_steps == frozenset()
        assert fresh.progress == 0.0

    def test_monotonic_progression(self):
        """Random observations never move the challenge backwards."""
        rng = random.Random(981)
        state = initial_state()
        for _ in range(2000):
            obs = face(
                yaw=rng.uniform(-60.0, 60.0),
                smile=rng.random(),
                size=rng.uniform(0.0, 0.6),
                detected=rng.random() > 0.1,
            )
            nxt = process_observation(state, obs)
            assert nxt.challenge >= state.challenge
            assert nxt.progress >= state.progress
            assert nxt.completed_steps >= state.completed_steps
            state = nxt

    def test_deterministic(self):
        a = feed(initial_state(), passing_run()[:9])
        b = feed(initial_state(), passing_run()[:9])
        assert a == b

    def test_projections(self):
        state = state_at(Challenge.TURN_RIGHT)
        assert instruction(state) == "Turn your head RIGHT"
        assert instruction(state, "ne") == "आफ्नो टाउको दायाँ घुमाउनुहोस्"
        assert progress(state) == 0.5
        assert not is_complete(state)


class TestLivenessEngine:
    """Tests for the observable engine wrapper."""

    def test_full_session(self):
        engine = LivenessEngine()
        for obs in passing_run():
            engine.process(obs)

        assert engine.challenge is Challenge.FACE_CAPTURE
        assert engine.instruction() == "Hold Steady"
        assert engine.frames_seen == 14

        engine.mark_captured()
        assert engine.is_complete
        assert engine.progress == 1.0

    def test_frozen_frames_not_counted(self):
        engine = LivenessEngine()
        for obs in passing_run():
            engine.process(obs)
        state = engine.state

        assert engine.process(face()) is state
        assert engine.frames_seen == 14

    def test_listeners_notified_on_change_only(self):
        engine = LivenessEngine()
        seen = []
        engine.subscribe(seen.append)

        engine.process(no_face())
        engine.process(no_face())
        assert len(seen) == 1
        assert seen[0].error is LivenessError.NO_FACE_DETECTED

        engine.process(face())
        assert len(seen) == 2
        assert seen[-1].consecutive_success_count == 1

    def test_unsubscribe(self):
        engine = LivenessEngine()
        seen = []
        unsubscribe = engine.subscribe(seen.append)
        engine.process(face())
        unsubscribe()
        unsubscribe()
        engine.process(face())
        assert len(seen) == 1

    def test_listener_sees_capture_and_reset(self):
        engine = LivenessEngine()
        for obs in passing_run():
            engine.process(obs)
        challenges = []
        engine.subscribe(lambda state: challenges.append(state.challenge))

        engine.mark_captured()
        engine.mark_captured()
        engine.reset()

        assert challenges == [Challenge.COMPLETED, Challenge.INITIALIZING]

    def test_listener_exception_propagates(self):
        engine = LivenessEngine()

        def boom(state):
            raise RuntimeError("listener failed")

        engine.subscribe(boom)
        with pytest.raises(RuntimeError):
            engine.process(face())
        assert engine.state.consecutive_success_count == 1

    def test_mark_captured_ignored_outside_capture(self, caplog):
        engine = LivenessEngine()
        with caplog.at_level(logging.WARNING, logger="facelive.engine"):
            state = engine.mark_captured()
        assert state.challenge is Challenge.INITIALIZING
        assert "ignored" in caplog.text

    def test_reset_clears_counters(self):
        engine = LivenessEngine()
        engine.process(no_face())
        engine.process(face())
        engine.reset()

        summary = engine.summary()
        assert engine.state == initial_state()
        assert summary["frames_seen"] == 0
        assert summary["gate_failures"] == {}

    def test_summary(self):
        engine = LivenessEngine(session_id="abc")
        engine.process(no_face())
        engine.process(no_face())
        engine.process(face(size=0.05))
        for obs in [face()] * 5:
            engine.process(obs)

        summary = engine.summary()
        assert summary["session_id"] == "abc"
        assert summary["challenge"] == "turn_left"
        assert summary["frames_seen"] == 8
        assert summary["gate_failures"] == {"no_face_detected": 2, "face_too_small": 1}
        assert summary["completed_steps"] == ["initializing"]

    def test_close_logs_summary(self, caplog):
        engine = LivenessEngine(session_id="s1")
        engine.process(no_face())
        with caplog.at_level(logging.INFO, logger="facelive.engine"):
            summary = engine.close(reason="stopped")
        assert "liveness summary" in caplog.text
        assert "no_face_detected" in caplog.text
        assert summary["frames_seen"] == 1

    def test_listeners_receive_states_in_commit_order(self):
        """A slow listener on one producer cannot reorder snapshots."""
        engine = LivenessEngine()
        entered = threading.Event()
        release = threading.Event()
        seen = []

        def slow_listener(state):
            if not entered.is_set():
                entered.set()
                release.wait(timeout=5)
            seen.append(state)

        engine.subscribe(slow_listener)

        first = threading.Thread(target=engine.process, args=(face(),))
        first.start()
        assert entered.wait(timeout=5)

        second = threading.Thread(target=engine.process, args=(face(),))
        second.start()
        second.join(timeout=0.2)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert [s.consecutive_success_count for s in seen] == [1, 2]
        assert seen[-1] == engine.state

    def test_listener_may_feed_engine(self):
        engine = LivenessEngine()
        seen = []

        def chain(state):
            seen.append(state.consecutive_success_count)
            if state.consecutive_success_count < 3:
                engine.process(face())

        engine.subscribe(chain)
        engine.process(face())

        assert engine.state.consecutive_success_count == 3
        assert seen == [1, 2, 3]

    def test_concurrent_producers(self):
        """Streaks stay consistent when observations arrive from several threads."""
        engine = LivenessEngine()

        def produce():
            for _ in range(50):
                engine.process(face())

        threads = [threading.Thread(target=produce) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert engine.frames_seen == 200
        assert engine.challenge is Challenge.TURN_LEFT
        assert engine.state.consecutive_success_count == 0


class TestEngineTracing:
    """Tests for trace records emitted by the engine."""

    def test_session_start_record(self, memory_sink):
        LivenessEngine(session_id="trace-1")
        starts = memory_sink.get_by_type(SessionStartRecord)
        assert len(starts) == 1
        assert starts[0].session_id == "trace-1"
        assert starts[0].config["required_frames"] == 3

    def test_advance_records(self, memory_sink):
        engine = LivenessEngine()
        for obs in passing_run():
            engine.process(obs)
        engine.mark_captured()

        advances = memory_sink.get_advances()
        assert [(a.old_challenge, a.new_challenge) for a in advances] == [
            ("initializing", "turn_left"),
            ("turn_left", "turn_right"),
            ("turn_right", "smile"),
            ("smile", "face_capture"),
            ("face_capture", "completed"),
        ]
        assert advances[0].frame_index == 5
        assert advances[0].streak == 5
        assert advances[1].streak == 3
        assert advances[-1].progress == 1.0
        assert "face_capture" in advances[-1].completed_steps

    def test_gate_fail_records(self, memory_sink):
        engine = LivenessEngine()
        engine.process(face())
        engine.process(face())
        engine.process(no_face())

        fails = memory_sink.get_by_type(GateFailRecord)
        assert len(fails) == 1
        assert fails[0].frame_index == 3
        assert fails[0].reason == "no_face_detected"
        assert fails[0].streak_lost == 2

    def test_observation_records(self, memory_sink):
        engine = LivenessEngine()
        engine.process(face())
        engine.process(face(size=0.01))

        records = memory_sink.get_by_type(ObservationRecord)
        assert [r.passed for r in records] == [True, False]
        assert [r.streak for r in records] == [1, 0]

    def test_capture_records(self, memory_sink):
        engine = LivenessEngine()
        engine.mark_captured()
        for obs in passing_run():
            engine.process(obs)
        engine.mark_captured()

        captures = memory_sink.get_by_type(CaptureRecord)
        assert [c.accepted for c in captures] == [False, True]

    def test_session_end_record(self, memory_sink):
        engine = LivenessEngine(session_id="s")
        engine.process(no_face())
        engine.close()

        ends = memory_sink.get_by_type(SessionEndRecord)
        assert len(ends) == 1
        assert ends[0].reason == "abandoned"
        assert ends[0].gate_failures == {"no_face_detected": 1}

    def test_no_records_when_disabled(self):
        from facelive.observability import MemorySink, ObservabilityHub

        sink = MemorySink()
        ObservabilityHub.get_instance().add_sink(sink)
        engine = LivenessEngine()
        engine.process(no_face())
        engine.close()
        assert len(sink) == 0
