"""Replay command: run a recorded observation trace through the engine."""

import logging

from facelive.cli.utils import load_cli_config, setup_tracing, teardown_tracing
from facelive.engine import LivenessEngine
from facelive.persistence import load_trace, save_result
from facelive.session import replay_observations

logger = logging.getLogger(__name__)


def run_replay(args) -> int:
    """Replay ``args.path``; exit code 0 when the session completes."""
    config, _ = load_cli_config(args)
    observations = load_trace(args.path)
    logger.info("Loaded %d observations from %s", len(observations), args.path)

    setup_tracing(args)
    try:
        engine = LivenessEngine(config, session_id=str(args.path))

        last = {"challenge": engine.challenge}

        def _print_transition(state):
            if state.challenge is last["challenge"]:
                return
            last["challenge"] = state.challenge
            print(
                f"  frame {engine.frames_seen:>4}: {state.challenge.value:<14} "
                f"progress={state.progress:.2f}  {engine.instruction()}"
            )

        engine.subscribe(_print_transition)

        result = replay_observations(
            observations, engine, simulate_capture=not args.no_capture,
        )
    finally:
        teardown_tracing()

    status = "COMPLETED" if result.completed else "INCOMPLETE"
    print(
        f"{status}: {result.state.challenge.value} after {result.frames_seen} frames "
        f"(progress {result.state.progress:.2f})"
    )

    if args.report:
        save_result(result, args.report)
        print(f"Report saved to {args.report}")

    return 0 if result.completed else 1
