"""Verification of exercises: build, run and check the pending marker."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import Enum, auto

from rich.console import Console
from rich.text import Text

from rustdrills.exercise import (
    CompileError,
    CompiledExercise,
    Exercise,
    ExerciseFailed,
    ExerciseOutput,
    Mode,
)
from rustdrills.ui import no_emoji, success, warn

BAR_WIDTH = 60


class VerificationFailed(Exception):
    """An exercise failed to build, failed to run, or is still pending."""

    def __init__(self, exercise: Exercise) -> None:
        super().__init__(f"{exercise} did not pass")
        self.exercise = exercise


class _RunMode(Enum):
    INTERACTIVE = auto()
    NON_INTERACTIVE = auto()


def _console() -> Console:
    return Console(highlight=False, soft_wrap=True)


@contextmanager
def _spinner(message: str) -> Iterator[None]:
    with _console().status(message):
        yield


def _progress_line(position: int, total: int, percentage: float) -> Text:
    filled = BAR_WIDTH * position // total if total else 0
    if filled >= BAR_WIDTH:
        done, rest = "#" * BAR_WIDTH, ""
    else:
        done, rest = "#" * filled + ">", "-" * (BAR_WIDTH - filled - 1)
    return Text.assemble(
        "Progress: [",
        (done, "green"),
        (rest, "red"),
        f"] {position}/{total} ({percentage:.1f} %)",
    )


def _compile(exercise: Exercise, message: str) -> CompiledExercise:
    try:
        with _spinner(message):
            return exercise.compile()
    except CompileError as exc:
        warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(exc.output.stderr)
        raise VerificationFailed(exercise) from exc


def _execute(compiled: CompiledExercise, message: str) -> ExerciseOutput:
    with compiled, _spinner(message):
        return compiled.run()


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    _compile(exercise, f"Compiling {exercise}...").close()
    return prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    compiled = _compile(exercise, f"Compiling {exercise}...")
    try:
        output = _execute(compiled, f"Running {exercise}...")
    except ExerciseFailed as exc:
        warn(f"Ran {exercise} with errors")
        print(exc.output.stdout)
        print(exc.output.stderr)
        raise VerificationFailed(exercise) from exc
    return prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, run_mode: _RunMode, verbose: bool, success_hints: bool
) -> bool:
    message = f"Testing {exercise}..."
    compiled = _compile(exercise, message)
    try:
        output = _execute(compiled, message)
    except ExerciseFailed as exc:
        warn(f"Testing of {exercise} failed! Please try again. Here's the output:")
        print(exc.output.stdout)
        raise VerificationFailed(exercise) from exc
    if verbose:
        print(output.stdout)
    if run_mode is _RunMode.INTERACTIVE:
        return prompt_for_completion(exercise, None, success_hints)
    return True


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool,
    success_hints: bool,
) -> None:
    """Check exercises in order; raise VerificationFailed at the first one not passing."""
    num_done, total = progress
    percentage = num_done / total * 100.0 if total else 0.0
    step = 100.0 / total if total else 0.0
    position = num_done
    console = _console()
    console.print(_progress_line(position, total, percentage))

    for exercise in exercises:
        match exercise.mode:
            case Mode.TEST | Mode.BUILD_SCRIPT:
                done = _compile_and_test(
                    exercise, _RunMode.INTERACTIVE, verbose, success_hints
                )
            case Mode.COMPILE:
                done = _compile_and_run_interactively(exercise, success_hints)
            case Mode.CLIPPY:
                done = _compile_only(exercise, success_hints)
        if not done:
            raise VerificationFailed(exercise)
        percentage += step
        position += 1
        console.print(_progress_line(position, total, percentage))


def test(exercise: Exercise, verbose: bool) -> None:
    """Build and run the exercise's test harness without prompting."""
    _compile_and_test(exercise, _RunMode.NON_INTERACTIVE, verbose, False)


def _separator() -> Text:
    return Text("====================", style="bold")


def prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    """Return True when the exercise is done; otherwise show where its marker is."""
    state = exercise.state()
    if state.is_done():
        return True

    match exercise.mode:
        case Mode.COMPILE:
            success(f"Successfully ran {exercise}!")
        case Mode.TEST:
            success(f"Successfully tested {exercise}!")
        case Mode.CLIPPY | Mode.BUILD_SCRIPT:
            success(f"Successfully compiled {exercise}!")

    plain = no_emoji()
    clippy_message = (
        "The code is compiling, and Clippy is happy!"
        if plain
        else "The code is compiling, and 📎 Clippy 📎 is happy!"
    )
    success_message = {
        Mode.COMPILE: "The code is compiling!",
        Mode.TEST: "The code is compiling, and the tests pass!",
        Mode.CLIPPY: clippy_message,
        Mode.BUILD_SCRIPT: "Build script works!",
    }[exercise.mode]

    console = _console()
    print()
    if plain:
        print(f"~*~ {success_message} ~*~")
    else:
        print(f"🎉 🎉  {success_message} 🎉 🎉")
    print()

    if prompt_output is not None:
        print("Output:")
        console.print(_separator())
        print(prompt_output)
        console.print(_separator())
        print()
    if success_hints:
        print("Hints:")
        console.print(_separator())
        print(exercise.hint)
        console.print(_separator())
        print()

    print("You can keep working on this exercise,")
    console.print(
        Text.assemble(
            "or jump into the next one by removing the ",
            ("`I AM NOT DONE`", "bold"),
            " comment:",
        )
    )
    print()
    for context_line in state.context:
        line = (
            Text(context_line.line, style="bold")
            if context_line.important
            else Text(context_line.line)
        )
        console.print(
            Text.assemble(
                (f"{context_line.number:>2}", "bold blue"),
                " ",
                ("|", "blue"),
                "  ",
                line,
            )
        )
    return False