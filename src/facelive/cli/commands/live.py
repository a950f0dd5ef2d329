"""Run command: live liveness session on a camera or video file.

A reader thread pushes frames into a ``LatestFrameSlot`` at source rate;
the session consumes the newest frame whenever it is ready, so slow
detection drops frames instead of queueing them.
"""

import logging
import threading

from facelive.cli.utils import load_cli_config, setup_tracing, teardown_tracing
from facelive.detect.backends import get_backend
from facelive.engine import LivenessEngine
from facelive.persistence import save_result, save_trace
from facelive.session import LatestFrameSlot, LivenessSession

logger = logging.getLogger(__name__)


def _read_frames(cap, slot: LatestFrameSlot, stop: threading.Event) -> None:
    try:
        while not stop.is_set():
            ok, frame = cap.read()
            if not ok:
                break
            slot.put(frame)
    finally:
        slot.close()


def run_live(args) -> int:
    """Run one session; exit code 0 when the session completes."""
    import cv2

    config, session_config = load_cli_config(args)

    source = args.source if args.source else args.camera
    cap = cv2.VideoCapture(source)
    if not cap.isOpened():
        logger.error("Cannot open video source: %s", source)
        return 2

    backend = get_backend(
        "mediapipe",
        min_detection_confidence=session_config.min_detection_confidence,
        yaw_sign=-1.0 if args.mirror else 1.0,
    )
    backend.initialize()

    setup_tracing(args)
    slot = LatestFrameSlot()
    stop = threading.Event()
    reader = threading.Thread(target=_read_frames, args=(cap, slot, stop), daemon=True)

    engine = LivenessEngine(config, session_id=str(source))
    recorded = []
    session = LivenessSession(
        backend, engine,
        config=session_config,
        on_observation=recorded.append if args.record else None,
    )
    last = {"challenge": None}

    def _print_state(state):
        if state.challenge is not last["challenge"]:
            last["challenge"] = state.challenge
            print(f"[{state.progress:>4.0%}] {engine.instruction()}")
        elif state.error_message:
            logger.debug(state.error_message)

    engine.subscribe(_print_state)

    reader.start()
    try:
        result = session.run(slot)
    finally:
        stop.set()
        slot.close()
        reader.join(timeout=2.0)
        cap.release()
        backend.cleanup()
        teardown_tracing()

    logger.info(
        "Session ended: %s (%d frames, %d dropped by frame slot)",
        result.reason, result.frames_seen, slot.dropped,
    )

    if args.record:
        count = save_trace(recorded, args.record)
        print(f"Recorded {count} observations to {args.record}")

    if result.capture is not None:
        cv2.imwrite(args.capture_output, result.capture)
        print(f"Face capture saved to {args.capture_output}")

    if args.report:
        save_result(result, args.report)
        print(f"Report saved to {args.report}")

    print(f"{'COMPLETED' if result.completed else 'INCOMPLETE'}: {result.reason}")
    return 0 if result.completed else 1
