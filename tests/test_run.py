import subprocess

import pytest

from rustdrills.exercise import Exercise, Mode
from rustdrills.run import reset, run
from rustdrills.verify import VerificationFailed

PENDING = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"
DONE = "fn main() {\n}\n"


class FakeCommands:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        code, out, err = self.results.pop(0) if self.results else (0, "", "")
        return subprocess.CompletedProcess(
            args, code, stdout=out.encode(), stderr=err.encode()
        )


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NO_EMOJI", raising=False)
    return tmp_path


@pytest.fixture
def make_exercise(workdir):
    def factory(name, mode, body):
        path = workdir / f"{name}.rs"
        path.write_text(body, encoding="utf-8")
        return Exercise(name=name, path=path, mode=mode, hint="Hello!")

    return factory


def install(monkeypatch, *results):
    fake = FakeCommands(*results)
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


def test_run_compile_success(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("compSuccess", Mode.COMPILE, DONE)
    fake = install(monkeypatch, (0, "", ""), (0, "hello from binary", ""))
    assert run(exercise, False) is None
    out = capsys.readouterr().out
    assert "hello from binary" in out
    assert "Successfully ran" in out
    assert len(fake.calls) == 2


def test_run_compile_exercise_does_not_prompt(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("pending_exercise", Mode.COMPILE, PENDING)
    install(monkeypatch)
    assert run(exercise, False) is None
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_compile_failure(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("compFailure", Mode.COMPILE, "fn main() {\n    let\n}\n")
    fake = install(monkeypatch, (1, "", "error: expected pattern"))
    with pytest.raises(VerificationFailed) as info:
        run(exercise, False)
    assert info.value.exercise is exercise
    out = capsys.readouterr().out
    assert "Compilation of" in out
    assert "error: expected pattern" in out
    assert len(fake.calls) == 1


def test_run_binary_failure(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("crashes", Mode.COMPILE, DONE)
    install(monkeypatch, (0, "", ""), (101, "partial", "panicked"))
    with pytest.raises(VerificationFailed):
        run(exercise, False)
    out = capsys.readouterr().out
    assert "with errors" in out
    assert "panicked" in out
    assert "partial" in out


@pytest.mark.parametrize("verbose", [True, False])
def test_run_test_mode_output(make_exercise, monkeypatch, capsys, verbose):
    exercise = make_exercise("testSuccess", Mode.TEST, DONE)
    install(monkeypatch, (0, "", ""), (0, "THIS TEST TOO SHALL PASS", ""))
    run(exercise, verbose)
    assert ("THIS TEST TOO SHALL PASS" in capsys.readouterr().out) is verbose


def test_run_test_mode_does_not_prompt(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("pending_test_exercise", Mode.TEST, PENDING)
    install(monkeypatch)
    assert run(exercise, False) is None
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_test_mode_failure(make_exercise, monkeypatch):
    exercise = make_exercise("testNotPassed", Mode.TEST, DONE)
    install(monkeypatch, (0, "", ""), (101, "", ""))
    with pytest.raises(VerificationFailed):
        run(exercise, False)


def test_run_clippy_mode(make_exercise, monkeypatch, workdir):
    (workdir / "exercises" / "clippy").mkdir(parents=True)
    exercise = make_exercise("lint", Mode.CLIPPY, DONE)
    fake = install(monkeypatch)
    assert run(exercise, False) is None
    assert fake.calls[1][:2] == ["cargo", "clean"]
    assert fake.calls[2][:2] == ["cargo", "clippy"]
    assert len(fake.calls) == 4


def test_reset_stashes_with_git(make_exercise, monkeypatch):
    exercise = make_exercise("intro1", Mode.COMPILE, DONE)
    seen = []

    def fake_popen(args, **kwargs):
        seen.append(list(args))
        return "started"

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    assert reset(exercise) == "started"
    assert seen == [["git", "stash", "--", str(exercise.path)]]


def test_reset_raises_when_git_missing(make_exercise, monkeypatch):
    exercise = make_exercise("intro1", Mode.COMPILE, DONE)

    def missing(args, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr(subprocess, "Popen", missing)
    with pytest.raises(OSError):
        reset(exercise)