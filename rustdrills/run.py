"""Running a single exercise and resetting it."""

from __future__ import annotations

import subprocess

from rich.console import Console

from rustdrills.exercise import CompileError, Exercise, ExerciseFailed, Mode
from rustdrills.ui import success, warn
from rustdrills.verify import VerificationFailed, test


def _status(message: str):
    return Console(highlight=False, soft_wrap=True).status(message)


def run(exercise: Exercise, verbose: bool) -> None:
    """Build and run one exercise; raise VerificationFailed when it fails."""
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            test(exercise, verbose)
        case Mode.COMPILE | Mode.CLIPPY:
            _compile_and_run(exercise)


def reset(exercise: Exercise) -> subprocess.Popen:
    """Stash local changes to the exercise file with git; raise OSError if git cannot start."""
    return subprocess.Popen(["git", "stash", "--", str(exercise.path)])


def _compile_and_run(exercise: Exercise) -> None:
    try:
        with _status(f"Compiling {exercise}..."):
            compiled = exercise.compile()
    except CompileError as exc:
        warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
        print(exc.output.stderr)
        raise VerificationFailed(exercise) from exc

    try:
        with compiled, _status(f"Running {exercise}..."):
            output = compiled.run()
    except ExerciseFailed as exc:
        print(exc.output.stdout)
        print(exc.output.stderr)
        warn(f"Ran {exercise} with errors")
        raise VerificationFailed(exercise) from exc

    print(output.stdout)
    success(f"Successfully ran {exercise}")