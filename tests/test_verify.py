import subprocess

import pytest

from rustdrills.exercise import Exercise, Mode
from rustdrills.verify import (
    VerificationFailed,
    prompt_for_completion,
    test as run_test_harness,
    verify,
)

PENDING = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"
DONE = "// fake_exercise\n\nfn main() {\n\n}\n"


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
    def factory(name, mode, body, hint="Hello!"):
        path = workdir / f"{name}.rs"
        path.write_text(body, encoding="utf-8")
        return Exercise(name=name, path=path, mode=mode, hint=hint)

    return factory


def install(monkeypatch, *results):
    fake = FakeCommands(*results)
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


def test_verify_finished_exercise_passes(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("done", Mode.COMPILE, DONE)
    fake = install(monkeypatch, (0, "", ""), (0, "out", ""))
    assert verify([exercise], (0, 1), False, False) is None
    assert fake.calls[0][0] == "rustc"
    out = capsys.readouterr().out
    assert "1/1" in out
    assert "100.0 %" in out


def test_verify_pending_exercise_fails(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("pending", Mode.COMPILE, PENDING)
    install(monkeypatch, (0, "", ""), (0, "binary said hi", ""))
    with pytest.raises(VerificationFailed) as info:
        verify([exercise], (0, 1), False, False)
    assert info.value.exercise is exercise
    out = capsys.readouterr().out
    assert "Successfully ran" in out
    assert "The code is compiling!" in out
    assert "Output:" in out
    assert "binary said hi" in out


def test_verify_compile_failure(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("broken", Mode.COMPILE, DONE)
    fake = install(monkeypatch, (1, "", "error: expected pattern"))
    with pytest.raises(VerificationFailed):
        verify([exercise], (0, 1), False, False)
    out = capsys.readouterr().out
    assert "Compiling of" in out
    assert "error: expected pattern" in out
    assert len(fake.calls) == 1


def test_verify_stops_at_first_failure(make_exercise, monkeypatch):
    first = make_exercise("first", Mode.COMPILE, PENDING)
    second = make_exercise("second", Mode.COMPILE, DONE)
    fake = install(monkeypatch)
    with pytest.raises(VerificationFailed) as info:
        verify([first, second], (0, 2), False, False)
    assert info.value.exercise is first
    assert len(fake.calls) == 2


def test_verify_test_mode_verbose_shows_output(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("tested", Mode.TEST, DONE)
    fake = install(monkeypatch, (0, "", ""), (0, "THIS TEST TOO SHALL PASS", ""))
    assert verify([exercise], (0, 1), True, False) is None
    assert fake.calls[0][1] == "--test"
    assert fake.calls[1][-1] == "--show-output"
    assert "THIS TEST TOO SHALL PASS" in capsys.readouterr().out


def test_verify_test_mode_quiet_hides_output(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("tested", Mode.TEST, DONE)
    install(monkeypatch, (0, "", ""), (0, "THIS TEST TOO SHALL PASS", ""))
    assert verify([exercise], (0, 1), False, False) is None
    assert "THIS TEST TOO SHALL PASS" not in capsys.readouterr().out


def test_verify_test_failure(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("failing", Mode.TEST, DONE)
    install(monkeypatch, (0, "", ""), (101, "assertion failed", ""))
    with pytest.raises(VerificationFailed):
        verify([exercise], (0, 1), False, False)
    out = capsys.readouterr().out
    assert "Testing of" in out
    assert "assertion failed" in out


def test_verify_build_script(make_exercise, monkeypatch, workdir):
    (workdir / "exercises" / "tests").mkdir(parents=True)
    exercise = make_exercise("build", Mode.BUILD_SCRIPT, DONE)
    fake = install(monkeypatch, (0, "", ""))
    assert verify([exercise], (0, 1), False, False) is None
    assert fake.calls[0][:2] == ["cargo", "test"]
    assert len(fake.calls) == 1
    assert (workdir / "exercises" / "tests" / "Cargo.toml").exists()


def test_verify_nothing_to_do(monkeypatch, workdir, capsys):
    fake = install(monkeypatch)
    assert verify([], (3, 3), False, False) is None
    assert fake.calls == []
    assert "3/3" in capsys.readouterr().out


def test_harness_does_not_prompt(make_exercise, monkeypatch, capsys):
    exercise = make_exercise("pending_test", Mode.TEST, PENDING)
    fake = install(monkeypatch)
    run_test_harness(exercise, False)
    assert len(fake.calls) == 2
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_harness_failure_raises(make_exercise, monkeypatch):
    exercise = make_exercise("not_passed", Mode.TEST, DONE)
    install(monkeypatch, (0, "", ""), (101, "", ""))
    with pytest.raises(VerificationFailed) as info:
        run_test_harness(exercise, False)
    assert info.value.exercise is exercise


def test_prompt_done_returns_true(make_exercise, capsys):
    exercise = make_exercise("done", Mode.COMPILE, DONE)
    assert prompt_for_completion(exercise, "ignored", True) is True
    assert capsys.readouterr().out == ""


def test_prompt_pending_shows_context(make_exercise, capsys):
    exercise = make_exercise("pending", Mode.COMPILE, PENDING)
    assert prompt_for_completion(exercise, None, False) is False
    out = capsys.readouterr().out
    assert " 3 |  // I AM NOT DONE" in out
    assert " 1 |  // fake_exercise" in out
    assert " 5 |  fn main() {" in out
    assert "6 |" not in out
    assert "Output:" not in out
    assert "Hints:" not in out


def test_prompt_shows_hints(make_exercise, capsys):
    exercise = make_exercise("pending", Mode.TEST, PENDING, hint="Hello!")
    assert prompt_for_completion(exercise, None, True) is False
    out = capsys.readouterr().out
    assert "Hints:" in out
    assert "Hello!" in out
    assert "The code is compiling, and the tests pass!" in out


def test_prompt_without_emoji(make_exercise, monkeypatch, capsys):
    monkeypatch.setenv("NO_EMOJI", "1")
    exercise = make_exercise("pending", Mode.COMPILE, PENDING)
    assert prompt_for_completion(exercise, None, False) is False
    assert "~*~ The code is compiling! ~*~" in capsys.readouterr().out