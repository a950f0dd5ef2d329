"""Info command for facelive CLI.

Shows the challenge sequence with its pass conditions and thresholds.
"""

from facelive.challenges import instruction_for, required_frames, step_for
from facelive.cli.utils import load_cli_config
from facelive.types import CHALLENGE_ORDER, Challenge


def _condition(challenge: Challenge, config) -> str:
    if challenge is Challenge.INITIALIZING:
        return "face locked"
    if challenge is Challenge.TURN_LEFT:
        return f"yaw > {config.turn_yaw_threshold:g}"
    if challenge is Challenge.TURN_RIGHT:
        return f"yaw < -{config.turn_yaw_threshold:g}"
    if challenge is Challenge.SMILE:
        return f"smile > {config.smile_threshold:g}"
    if challenge is Challenge.FACE_CAPTURE:
        return "still capture"
    return "-"


def run_info(args) -> int:
    """Print the challenge table."""
    config, session_config = load_cli_config(args)
    lang = getattr(args, "lang", "en")

    print("facelive - Challenge Sequence")
    print("=" * 72)
    print(f"  Gate: face detected and face size > {config.min_face_size:g}")
    print(f"  Idle timeout: {session_config.idle_timeout_sec:g}s")
    print()
    print(f"  {'Challenge':<14} {'Condition':<16} {'Streak':>6} {'Progress':>9}  Instruction")
    print("  " + "-" * 70)

    for challenge in CHALLENGE_ORDER:
        step = step_for(challenge)
        streak = str(required_frames(challenge, config)) if step.predicate else "-"
        print(
            f"  {challenge.value:<14} {_condition(challenge, config):<16} "
            f"{streak:>6} {step.progress:>9.2f}  {instruction_for(challenge, lang)}"
        )

    return 0
