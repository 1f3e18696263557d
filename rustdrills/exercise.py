"""Exercises: loading, compiling, running and checking their progress marker."""

from __future__ import annotations

import os
import re
import subprocess
import threading
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from rustdrills.ui import no_emoji

RUSTC_COLOR_ARGS = ("--color", "always")
RUSTC_EDITION_ARGS = ("--edition", "2021")
I_AM_DONE_REGEX = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def temp_file() -> str:
    """Return a temporary binary name unique to this process and thread."""
    return f"./temp_{os.getpid()}_{threading.get_ident()}"


def clean() -> None:
    """Remove the temporary binary, ignoring any error."""
    try:
        Path(temp_file()).unlink(missing_ok=True)
    except OSError:
        pass


class Mode(Enum):
    """How an exercise is checked."""

    COMPILE = "compile"
    TEST = "test"
    CLIPPY = "clippy"
    BUILD_SCRIPT = "buildscript"


@dataclass(frozen=True)
class ContextLine:
    """A source line shown around the pending marker."""

    line: str
    number: int
    important: bool


@dataclass(frozen=True)
class State:
    """Progress of an exercise: done when it has no pending context."""

    context: tuple[ContextLine, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", tuple(self.context))

    def is_done(self) -> bool:
        return not self.context


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a command."""

    stdout: str
    stderr: str


class ExerciseFailed(Exception):
    """A command run for an exercise exited unsuccessfully."""

    def __init__(self, output: ExerciseOutput) -> None:
        super().__init__(output.stderr or output.stdout)
        self.output = output


class CompileError(ExerciseFailed):
    """An exercise failed to compile."""


def _execute(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True)


def _output_of(result: subprocess.CompletedProcess) -> ExerciseOutput:
    return ExerciseOutput(
        stdout=(result.stdout or b"").decode("utf-8", errors="replace"),
        stderr=(result.stderr or b"").decode("utf-8", errors="replace"),
    )


@dataclass
class Exercise:
    """One exercise as described in info.toml."""

    name: str
    path: Path
    mode: Mode
    hint: str

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.mode = Mode(self.mode)

    def __str__(self) -> str:
        return str(self.path)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Exercise:
        try:
            return cls(
                name=str(data["name"]),
                path=Path(data["path"]),
                mode=Mode(data["mode"]),
                hint=str(data["hint"]),
            )
        except KeyError as exc:
            raise ValueError(f"exercise is missing field {exc.args[0]!r}") from exc

    def _rustc(self, *extra: str) -> list[str]:
        return [
            "rustc",
            *extra,
            str(self.path),
            "-o",
            temp_file(),
            *RUSTC_COLOR_ARGS,
            *RUSTC_EDITION_ARGS,
        ]

    def _write_manifest(self, manifest: str) -> None:
        content = (
            "[package]\n"
            f'name = "{self.name}"\n'
            'version = "0.0.1"\n'
            'edition = "2021"\n'
            "[[bin]]\n"
            f'name = "{self.name}"\n'
            f'path = "{self.name}.rs"'
        )
        message = (
            "Failed to write Clippy Cargo.toml file."
            if no_emoji()
            else "Failed to write 📎 Clippy 📎 Cargo.toml file."
        )
        try:
            Path(manifest).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise OSError(message) from exc

    def compile(self) -> CompiledExercise:
        """Build the exercise; raise CompileError when the build fails."""
        match self.mode:
            case Mode.COMPILE:
                result = _execute(self._rustc())
            case Mode.TEST:
                result = _execute(self._rustc("--test"))
            case Mode.CLIPPY:
                self._write_manifest(CLIPPY_CARGO_TOML_PATH)
                # A binary is built too so the exercise can be run afterwards.
                _execute(self._rustc())
                _execute(
                    ["cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS]
                )
                result = _execute(
                    ["cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS,
                     "--", "-D", "warnings", "-D", "clippy::float_cmp"]
                )
            case Mode.BUILD_SCRIPT:
                self._write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH)
                result = _execute(
                    ["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH]
                )
        if result.returncode == 0:
            return CompiledExercise(self)
        clean()
        raise CompileError(_output_of(result))

    def _run(self) -> ExerciseOutput:
        match self.mode:
            case Mode.BUILD_SCRIPT:
                return ExerciseOutput(stdout="", stderr="")
            case Mode.TEST:
                extra = ["--show-output"]
            case _:
                extra = []
        result = _execute([temp_file(), *extra])
        output = _output_of(result)
        if result.returncode != 0:
            raise ExerciseFailed(output)
        return output

    def state(self) -> State:
        """Return Done, or Pending with the lines around the marker."""
        source = self.path.read_text(encoding="utf-8")
        if not I_AM_DONE_REGEX.search(source):
            return State()
        lines = source.splitlines()
        matched = next(
            (i for i, line in enumerate(lines) if I_AM_DONE_REGEX.search(line)),
            None,
        )
        if matched is None:
            raise RuntimeError("the pending marker spans several lines")
        first = max(matched - CONTEXT, 0)
        last = matched + CONTEXT
        return State(
            tuple(
                ContextLine(line=line, number=i + 1, important=i == matched)
                for i, line in enumerate(lines)
                if first <= i <= last
            )
        )

    def looks_done(self) -> bool:
        """Whether the pending marker is gone from the source."""
        return self.state().is_done()


class CompiledExercise:
    """A successfully built exercise; closing it removes the binary."""

    def __init__(self, exercise: Exercise) -> None:
        self.exercise = exercise

    def run(self) -> ExerciseOutput:
        """Run the built binary; raise ExerciseFailed when it fails."""
        return self.exercise._run()

    def close(self) -> None:
        clean()

    def __enter__(self) -> CompiledExercise:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def load_exercises(path: str | os.PathLike = "info.toml") -> list[Exercise]:
    """Read the exercise list from a TOML file."""
    with open(path, "rb") as handle:
        data = tomllib.load(handle)
    entries = data.get("exercises")
    if not isinstance(entries, list):
        raise ValueError(f"{path}: missing list of exercises")
    return [Exercise.from_dict(entry) for entry in entries]