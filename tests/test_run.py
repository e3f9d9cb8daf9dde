import subprocess
from pathlib import Path

import pytest

from rustdrill.exercise import Exercise, Mode
from rustdrill.run import RunFailed, reset, run

PENDING = "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n"
FINISHED = "// fake_exercise\n\nfn main() {\n\n}\n"


class FakeToolchain:
    def __init__(self, compile_ok=True, run_ok=True, run_stdout=b"", run_stderr=b"",
                 compile_stderr=b""):
        self.compile_ok = compile_ok
        self.run_ok = run_ok
        self.run_stdout = run_stdout
        self.run_stderr = run_stderr
        self.compile_stderr = compile_stderr
        self.calls = []

    def __call__(self, args, **kwargs):
        args = list(args)
        self.calls.append(args)
        if args[0].startswith("./temp_"):
            code = 0 if self.run_ok else 101
            return subprocess.CompletedProcess(args, code, self.run_stdout, self.run_stderr)
        if "-o" in args:
            Path(args[args.index("-o") + 1]).write_bytes(b"binary")
        code = 0 if self.compile_ok else 1
        return subprocess.CompletedProcess(args, code, b"", self.compile_stderr)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NO_EMOJI", raising=False)
    return tmp_path


def install(monkeypatch, **kwargs):
    tool = FakeToolchain(**kwargs)
    monkeypatch.setattr(subprocess, "run", tool)
    return tool


def make_exercise(name, mode=Mode.COMPILE, pending=False):
    path = Path(f"{name}.rs")
    path.write_text(PENDING if pending else FINISHED, encoding="utf-8")
    return Exercise(name=name, path=path, mode=mode, hint="")


def test_run_compile_success_prints_output(workdir, monkeypatch, capsys):
    install(monkeypatch, run_stdout=b"program says hi")
    run(make_exercise("compSuccess"), False)
    out = capsys.readouterr().out
    assert "program says hi" in out
    assert "Successfully ran compSuccess.rs" in out
    assert list(workdir.glob("temp_*")) == []


def test_run_compile_exercise_does_not_prompt(workdir, monkeypatch, capsys):
    install(monkeypatch)
    run(make_exercise("pending_exercise", pending=True), False)
    out = capsys.readouterr().out
    assert "I AM NOT DONE" not in out
    assert "Successfully ran pending_exercise.rs" in out


def test_run_compile_failure(workdir, monkeypatch, capsys):
    install(monkeypatch, compile_ok=False, compile_stderr=b"expected pattern")
    exercise = make_exercise("compFailure")
    with pytest.raises(RunFailed) as excinfo:
        run(exercise, False)
    assert excinfo.value.exercise == exercise
    out = capsys.readouterr().out
    assert "Compilation of compFailure.rs failed!" in out
    assert "expected pattern" in out


def test_run_runtime_failure(workdir, monkeypatch, capsys):
    install(monkeypatch, run_ok=False, run_stdout=b"partial", run_stderr=b"panicked")
    with pytest.raises(RunFailed):
        run(make_exercise("crash"), False)
    out = capsys.readouterr().out
    assert "partial" in out
    assert "panicked" in out
    assert "Ran crash.rs with errors" in out


def test_run_test_success_with_output(workdir, monkeypatch, capsys):
    install(monkeypatch, run_stdout=b"THIS TEST TOO SHALL PASS")
    run(make_exercise("testSuccess", mode=Mode.TEST), True)
    assert "THIS TEST TOO SHALL PASS" in capsys.readouterr().out


def test_run_test_success_without_output(workdir, monkeypatch, capsys):
    install(monkeypatch, run_stdout=b"THIS TEST TOO SHALL PASS")
    run(make_exercise("testSuccess", mode=Mode.TEST), False)
    assert "THIS TEST TOO SHALL PASS" not in capsys.readouterr().out


def test_run_test_exercise_does_not_prompt(workdir, monkeypatch, capsys):
    install(monkeypatch)
    run(make_exercise("pending_test_exercise", mode=Mode.TEST, pending=True), False)
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_test_not_passed(workdir, monkeypatch):
    install(monkeypatch, run_ok=False)
    exercise = make_exercise("testNotPassed", mode=Mode.TEST)
    with pytest.raises(RunFailed) as excinfo:
        run(exercise, False)
    assert excinfo.value.exercise == exercise


def test_run_clippy_uses_cargo_clippy(workdir, monkeypatch, capsys):
    (workdir / "exercises" / "clippy").mkdir(parents=True)
    tool = install(monkeypatch)
    result = run(make_exercise("clippy1", mode=Mode.CLIPPY), False)
    assert result is None
    assert "Successfully ran clippy1.rs" in capsys.readouterr().out
    assert any(call[:2] == ["cargo", "clippy"] for call in tool.calls)
    manifest = (workdir / "exercises" / "clippy" / "Cargo.toml").read_text()
    assert 'name = "clippy1"' in manifest


def test_run_build_script_runs_no_binary(workdir, monkeypatch, capsys):
    (workdir / "exercises" / "tests").mkdir(parents=True)
    tool = install(monkeypatch)
    result = run(make_exercise("build1", mode=Mode.BUILD_SCRIPT), False)
    assert result is None
    assert "failed" not in capsys.readouterr().out
    assert [call[:2] for call in tool.calls] == [["cargo", "test"]]


def test_reset_stashes_exercise_file(workdir, monkeypatch):
    launched = []

    def fake_popen(args, *rest, **kwargs):
        launched.append(list(args))
        return None

    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    result = reset(make_exercise("intro1"))
    assert result is None
    assert launched == [["git", "stash", "--", "intro1.rs"]]


def test_reset_fails_when_git_cannot_start(workdir, monkeypatch):
    def failing_popen(args, *rest, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr(subprocess, "Popen", failing_popen)
    exercise = make_exercise("intro1")
    with pytest.raises(RunFailed) as excinfo:
        reset(exercise)
    assert excinfo.value.exercise == exercise