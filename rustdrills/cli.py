"""Command line interface: list, run, verify and watch exercises."""

from __future__ import annotations

import argparse
import json
import math
import queue
import subprocess
import sys
import threading
import time
from dataclasses import asdict, dataclass, field
from enum import Enum, auto
from itertools import chain
from pathlib import Path
from typing import Any, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from rustdrills.exercise import Exercise, load_exercises
from rustdrills.project import RustAnalyzerProject
from rustdrills.run import reset, run
from rustdrills.ui import no_emoji
from rustdrills.verify import VerificationFailed, verify

VERSION = "5.5.1"
INFO_FILE = "info.toml"
RESULT_PATH = ".github/result/check_result.json"
DEBOUNCE_SECONDS = 1.0

WELCOME = """       welcome to...
   rustdrills
   small exercises for reading and writing Rust"""

DEFAULT_OUT = """Thanks for installing rustdrills!

Here is how it works:

1. Every exercise is a small Rust file that does not compile or whose tests
   fail. Your job is to find the problem and fix it. Once the exercise builds
   and its tests pass, remove its `I AM NOT DONE` comment to move on.
2. Run `rustdrills watch` to start with the first exercise. It re-checks your
   work every time you save a file. The first error you see is part of the
   exercise, so open the file in your editor and start fixing it!
3. Stuck? Type 'hint' in watch mode, or run `rustdrills hint <exercise_name>`.
4. To get editor support through rust-analyzer, run `rustdrills lsp`.

To get started, run `rustdrills watch` and keep your editor open!"""

FINISH_LINE = """+----------------------------------------------------+
|            You made it to the finish line!          |
+----------------------------------------------------+

We hope you enjoyed learning about the various aspects of Rust!
You can also write your own exercises to help others learn."""

WATCH_HELP = """Commands available to you in watch mode:
  hint   - prints the current exercise's hint
  clear  - clears the screen
  quit   - quits watch mode
  !<cmd> - executes a command, like `!rustc --explain E0381`
  help   - displays this help message

Watch mode automatically re-evaluates the current exercise
when you edit a file's contents."""


class WatchStatus(Enum):
    """How watch mode ended."""

    FINISHED = auto()
    UNFINISHED = auto()


@dataclass
class ExerciseResult:
    """Whether one exercise passed."""

    name: str
    result: bool


@dataclass
class ExerciseStatistics:
    """Totals for a batch check."""

    total_exercations: int
    total_succeeds: int = 0
    total_failures: int = 0
    total_time: int = 0


@dataclass
class ExerciseCheckList:
    """Outcome of checking every exercise."""

    statistics: ExerciseStatistics
    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "exercises": [asdict(result) for result in self.exercises],
            "user_name": self.user_name,
            "statistics": asdict(self.statistics),
        }


def rustc_exists() -> bool:
    """Whether `rustc --version` can be run successfully."""
    try:
        result = subprocess.run(
            ["rustc", "--version"], stdout=subprocess.DEVNULL, check=False
        )
    except OSError:
        return False
    return result.returncode == 0


def find_exercise(name: str, exercises: Sequence[Exercise]) -> Exercise:
    """Find an exercise by name, or the first pending one for "next"."""
    if name == "next":
        found = next((e for e in exercises if not e.looks_done()), None)
        if found is None:
            raise LookupError(
                "🎉 Congratulations! You have done all the exercises!\n"
                "🔚 There are no more exercises to do next!"
            )
        return found
    found = next((e for e in exercises if e.name == name), None)
    if found is None:
        raise LookupError(f"No exercise found for '{name}'!")
    return found


def list_exercises(
    exercises: Sequence[Exercise],
    paths: bool = False,
    names: bool = False,
    filter_text: str | None = None,
    unsolved: bool = False,
    solved: bool = False,
) -> int:
    """Print the exercises that match and a progress line; return how many are done."""
    out = sys.stdout
    if not paths and not names:
        out.write(f"{'Name':<17}\t{'Path':<46}\t{'Status':<7}\n")
    filters = [f for f in (filter_text or "").lower().split(",") if f.strip()]
    exercises_done = 0
    for exercise in exercises:
        fname = str(exercise.path)
        matches_filter = any(f in exercise.name or f in fname for f in filters)
        done = exercise.looks_done()
        if done:
            exercises_done += 1
        status = "Done" if done else "Pending"
        wanted = (done and solved) or (not done and unsolved) or (not solved and not unsolved)
        if wanted and (matches_filter or filter_text is None):
            if paths:
                line = f"{fname}\n"
            elif names:
                line = f"{exercise.name}\n"
            else:
                line = f"{exercise.name:<17}\t{fname:<46}\t{status:<7}\n"
            out.write(line)
    percentage = exercises_done / len(exercises) * 100.0 if exercises else math.nan
    print(
        f"Progress: You completed {exercises_done} / {len(exercises)} "
        f"exercises ({percentage:.1f} %)."
    )
    return exercises_done


def cicv_verify(
    exercises: Sequence[Exercise], verbose: bool, result_path: str = RESULT_PATH
) -> ExerciseCheckList:
    """Run every exercise, record the results as JSON and return them.

    Test output is always shown, whatever `verbose` says.
    """
    started = int(time.time())
    total = len(exercises)
    check_list = ExerciseCheckList(statistics=ExerciseStatistics(total_exercations=total))
    rights = 0
    for exercise in exercises:
        exercise_started = int(time.time())
        try:
            run(exercise, True)
        except VerificationFailed:
            passed = False
            print(f"{exercise.name}执行失败")
        else:
            passed = True
            rights += 1
            print(f"{exercise.name}执行成功")
        print(f"总的题目数: {total}")
        print(f"当前做正确的题目数: {rights}")
        print(f"当前修改试卷耗时: {int(time.time()) - exercise_started} s")
        check_list.exercises.append(ExerciseResult(name=exercise.name, result=passed))
        if passed:
            check_list.statistics.total_succeeds += 1
        else:
            check_list.statistics.total_failures += 1
    total_time = int(time.time()) - started
    print(
        "===============================试卷批改完成,总耗时: "
        f"{total_time} s; =================================="
    )
    check_list.statistics.total_time = total_time
    Path(result_path).write_text(
        json.dumps(check_list.to_dict(), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return check_list


class _SharedHint:
    def __init__(self, text: str) -> None:
        self._lock = threading.Lock()
        self._text = text

    def set(self, text: str) -> None:
        with self._lock:
            self._text = text

    def get(self) -> str:
        with self._lock:
            return self._text


class _ChangeCollector(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[Path]) -> None:
        super().__init__()
        self._events = events

    def _record(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._events.put(Path(str(event.src_path)))

    def on_created(self, event: FileSystemEvent) -> None:
        self._record(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._record(event)


def _clear_screen() -> None:
    print("\x1bc")


def _handle_shell_command(line: str, hint: _SharedHint, should_quit: threading.Event) -> None:
    command = line.strip()
    if command == "hint":
        print(hint.get())
    elif command == "clear":
        print("\x1b[2J\x1b[1;1H")
    elif command == "quit":
        should_quit.set()
        print("Bye!")
    elif command == "help":
        print(WATCH_HELP)
    elif command.startswith("!"):
        cmd = command[1:]
        parts = cmd.split()
        if not parts:
            print("no command provided")
        else:
            try:
                subprocess.run(parts, check=False)
            except OSError as exc:
                print(f"failed to execute command `{cmd}`: {exc}")
    else:
        print(f"unknown command: {command}")


def _spawn_watch_shell(hint: _SharedHint, should_quit: threading.Event) -> None:
    print(
        "Welcome to watch mode! You can type 'help' to get an overview "
        "of the commands you can use here."
    )

    def shell() -> None:
        while not should_quit.is_set():
            try:
                line = sys.stdin.readline()
            except (OSError, ValueError) as exc:
                print(f"error reading command: {exc}")
                return
            if not line:
                return
            _handle_shell_command(line, hint, should_quit)

    threading.Thread(target=shell, daemon=True).start()


def _path_ends_with(path: Path, suffix: Path) -> bool:
    tail = suffix.parts
    return not tail or path.parts[-len(tail):] == tail


def _collect_changes(events: queue.Queue[Path], first: Path) -> list[Path]:
    changed = [first]
    while True:
        try:
            path = events.get(timeout=DEBOUNCE_SECONDS)
        except queue.Empty:
            return list(dict.fromkeys(changed))
        changed.append(path)


def watch(exercises: Sequence[Exercise], verbose: bool, success_hints: bool) -> WatchStatus:
    """Verify exercises, then re-verify whenever a .rs file under ./exercises changes."""
    events: queue.Queue[Path] = queue.Queue()
    observer = Observer()
    observer.schedule(_ChangeCollector(events), "./exercises", recursive=True)
    observer.start()
    try:
        _clear_screen()
        try:
            verify(exercises, (0, len(exercises)), verbose, success_hints)
            return WatchStatus.FINISHED
        except VerificationFailed as exc:
            hint = _SharedHint(exc.exercise.hint)
        should_quit = threading.Event()
        _spawn_watch_shell(hint, should_quit)
        while not should_quit.is_set():
            try:
                first = events.get(timeout=1.0)
            except queue.Empty:
                continue
            for changed in _collect_changes(events, first):
                if changed.suffix != ".rs" or not changed.exists():
                    continue
                filepath = changed.resolve()
                current = next(
                    (e for e in exercises if _path_ends_with(filepath, e.path)), None
                )
                others = (
                    e
                    for e in exercises
                    if not e.looks_done() and not _path_ends_with(filepath, e.path)
                )
                pending = chain([current] if current is not None else [], others)
                num_done = sum(1 for e in exercises if e.looks_done())
                _clear_screen()
                try:
                    verify(pending, (num_done, len(exercises)), verbose, success_hints)
                    return WatchStatus.FINISHED
                except VerificationFailed as exc:
                    hint.set(exc.exercise.hint)
        return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="rustdrills",
        description="Small exercises to get you used to reading and writing Rust code",
    )
    parser.add_argument("--nocapture", action="store_true", help="show outputs from the test exercises")
    parser.add_argument("-v", "--version", action="store_true", help="show the executable version")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("verify", help="verify all exercises in the recommended order")
    watch_parser = commands.add_parser("watch", help="rerun verify when files are edited")
    watch_parser.add_argument("--success-hints", action="store_true", help="show hints on success")
    for name, text in (
        ("run", "run or test a single exercise"),
        ("reset", "reset a single exercise with git stash"),
        ("hint", "show the hint for an exercise"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument("name", nargs="?", help="the name of the exercise")
    list_parser = commands.add_parser("list", help="list the exercises")
    list_parser.add_argument("-p", "--paths", action="store_true", help="show only the paths")
    list_parser.add_argument("-n", "--names", action="store_true", help="show only the names")
    list_parser.add_argument("-f", "--filter", help="comma separated patterns to match")
    list_parser.add_argument("-u", "--unsolved", action="store_true", help="only unsolved exercises")
    list_parser.add_argument("-s", "--solved", action="store_true", help="only solved exercises")
    commands.add_parser("lsp", help="enable rust-analyzer for exercises")
    commands.add_parser("cicvverify", help="check every exercise and record the results")
    return parser


def _lsp() -> int:
    project = RustAnalyzerProject()
    try:
        project.get_sysroot_src()
    except OSError:
        print("Couldn't find toolchain path, do you have `rustc` installed?")
        return 1
    project.exercises_to_json()
    if not project.crates:
        print("Failed find any exercises, make sure you're in the exercises folder")
        return 0
    try:
        project.write_to_disk()
    except OSError:
        print("Failed to write rust-project.json to disk for rust-analyzer")
        return 0
    print("Successfully generated rust-project.json")
    print("rust-analyzer will now parse exercises, restart your language server or editor")
    return 0


def _watch_command(exercises: Sequence[Exercise], verbose: bool, success_hints: bool) -> int:
    try:
        status = watch(exercises, verbose, success_hints)
    except OSError as exc:
        print(f"Error: Could not watch your progress. Error message was {exc!r}.")
        print(
            "Most likely you've run out of disk space or your "
            "'inotify limit' has been reached."
        )
        return 1
    if status is WatchStatus.FINISHED:
        emoji = "★" if no_emoji() else "🎉"
        print(f"{emoji} All exercises completed! {emoji}")
        print(f"\n{FINISH_LINE}\n")
    else:
        print("We hope you're enjoying learning about Rust!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `rustdrills watch` again"
        )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    args = _build_parser().parse_args(argv)

    if args.version:
        print(f"v{VERSION}")
        return 0

    if args.command in ("run", "reset", "hint") and args.name is None:
        print(
            f"Required positional arguments not provided:\n    name",
            file=sys.stderr,
        )
        return 1

    if args.command is None:
        print(f"\n{WELCOME}\n")

    if not Path(INFO_FILE).exists():
        print(f"{sys.argv[0]} must be run from the directory holding {INFO_FILE}")
        print("Try `cd` into the exercises directory!")
        return 1

    if not rustc_exists():
        print("We cannot find `rustc`.")
        print("Try running `rustc --version` to diagnose your problem.")
        print("For instructions on how to install Rust, check the README.")
        return 1

    exercises = load_exercises(INFO_FILE)
    verbose = args.nocapture

    if args.command is None:
        print(f"{DEFAULT_OUT}\n")
        return 0

    try:
        match args.command:
            case "list":
                list_exercises(
                    exercises, args.paths, args.names, args.filter, args.unsolved, args.solved
                )
            case "run":
                run(find_exercise(args.name, exercises), verbose)
            case "reset":
                try:
                    reset(find_exercise(args.name, exercises))
                except OSError:
                    return 1
            case "hint":
                print(find_exercise(args.name, exercises).hint)
            case "verify":
                verify(exercises, (0, len(exercises)), verbose, False)
            case "cicvverify":
                cicv_verify(exercises, verbose)
            case "lsp":
                return _lsp()
            case "watch":
                return _watch_command(exercises, verbose, args.success_hints)
    except LookupError as exc:
        print(exc)
        return 1
    except VerificationFailed:
        return 1
    except BrokenPipeError:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())