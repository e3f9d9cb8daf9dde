"""Exercise descriptions, their completion state and compiling them."""

from __future__ import annotations

import contextlib
import os
import re
import subprocess
import threading
import tomllib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ClassVar

RUSTC_COLOR_ARGS = ("--color", "always")
RUSTC_EDITION_ARGS = ("--edition", "2021")
I_AM_DONE_REGEX = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def _temp_file() -> str:
    return f"./temp_{os.getpid()}_{threading.get_ident()}"


def _clean() -> None:
    with contextlib.suppress(OSError):
        os.remove(_temp_file())


def _execute(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(list(args), capture_output=True)


def _output_of(proc: subprocess.CompletedProcess) -> ExerciseOutput:
    return ExerciseOutput(
        stdout=(proc.stdout or b"").decode("utf-8", "replace"),
        stderr=(proc.stderr or b"").decode("utf-8", "replace"),
    )


def _lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


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
    """Completion state; an empty context means the exercise is done."""

    context: tuple[ContextLine, ...] = ()
    DONE: ClassVar[State]

    @property
    def done(self) -> bool:
        return not self.context


State.DONE = State()


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a compiler or of a compiled exercise."""

    stdout: str
    stderr: str


class ExerciseFailed(Exception):
    """Compiling or running an exercise did not succeed."""

    def __init__(self, output: ExerciseOutput):
        super().__init__(output.stderr or output.stdout)
        self.output = output


class CompiledExercise:
    """A successfully compiled exercise; closing it removes the binary."""

    def __init__(self, exercise: Exercise):
        self.exercise = exercise
        self._closed = False

    def run(self) -> ExerciseOutput:
        return self.exercise._run()

    def close(self) -> None:
        if not self._closed:
            _clean()
            self._closed = True

    def __enter__(self) -> CompiledExercise:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


@dataclass(frozen=True)
class Exercise:
    """One exercise as listed in info.toml."""

    name: str
    path: Path
    mode: Mode
    hint: str = ""

    def __str__(self) -> str:
        return str(self.path)

    def _cargo_toml(self) -> str:
        return (
            "[package]\n"
            f'name = "{self.name}"\n'
            'version = "0.0.1"\n'
            'edition = "2021"\n'
            "[[bin]]\n"
            f'name = "{self.name}"\n'
            f'path = "{self.name}.rs"'
        )

    def _write_manifest(self, manifest: str) -> None:
        try:
            Path(manifest).write_text(self._cargo_toml(), encoding="utf-8")
        except OSError as err:
            message = (
                "Failed to write Clippy Cargo.toml file."
                if "NO_EMOJI" in os.environ
                else "Failed to write 📎 Clippy 📎 Cargo.toml file."
            )
            raise OSError(message) from err

    def compile(self) -> CompiledExercise:
        """Build the exercise; raise ExerciseFailed with the compiler output."""
        source = str(self.path)
        target = _temp_file()
        match self.mode:
            case Mode.COMPILE:
                proc = _execute(
                    "rustc", source, "-o", target, *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS
                )
            case Mode.TEST:
                proc = _execute(
                    "rustc", "--test", source, "-o", target,
                    *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS,
                )
            case Mode.CLIPPY:
                self._write_manifest(CLIPPY_CARGO_TOML_PATH)
                # Build a binary too, so clippy exercises can be run afterwards.
                _execute(
                    "rustc", source, "-o", target, *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS
                )
                # A clean build is needed for clippy to report every lint.
                _execute(
                    "cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                    *RUSTC_COLOR_ARGS,
                )
                proc = _execute(
                    "cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                    *RUSTC_COLOR_ARGS,
                    "--", "-D", "warnings", "-D", "clippy::float_cmp",
                )
            case Mode.BUILD_SCRIPT:
                self._write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH)
                proc = _execute(
                    "cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH
                )
        if proc.returncode == 0:
            return CompiledExercise(self)
        _clean()
        raise ExerciseFailed(_output_of(proc))

    def _run(self) -> ExerciseOutput:
        if self.mode is Mode.BUILD_SCRIPT:
            return ExerciseOutput(stdout="", stderr="")
        args = [_temp_file()]
        if self.mode is Mode.TEST:
            args.append("--show-output")
        proc = _execute(*args)
        output = _output_of(proc)
        if proc.returncode != 0:
            raise ExerciseFailed(output)
        return output

    def state(self) -> State:
        """Look for the pending marker and return the lines around it."""
        source = Path(self.path).read_text(encoding="utf-8")
        if not I_AM_DONE_REGEX.search(source):
            return State.DONE
        lines = _lines(source)
        matched = next(
            (index for index, line in enumerate(lines) if I_AM_DONE_REGEX.search(line)),
            None,
        )
        if matched is None:
            raise ValueError(f"pending marker in {self.path} spans several lines")
        first = max(matched - CONTEXT, 0)
        last = matched + CONTEXT
        return State(
            tuple(
                ContextLine(line=line, number=index + 1, important=index == matched)
                for index, line in enumerate(lines)
                if first <= index <= last
            )
        )

    def looks_done(self) -> bool:
        """True when the pending marker has been removed from the source."""
        return self.state().done


_FIELDS = ("name", "path", "mode", "hint")


def _exercise_from_entry(entry: dict) -> Exercise:
    missing = [key for key in _FIELDS if key not in entry]
    if missing:
        raise ValueError(f"exercise entry is missing field {missing[0]!r}")
    try:
        mode = Mode(entry["mode"])
    except ValueError as err:
        raise ValueError(f"unknown exercise mode {entry['mode']!r}") from err
    return Exercise(
        name=str(entry["name"]),
        path=Path(entry["path"]),
        mode=mode,
        hint=str(entry["hint"]),
    )


def load_exercises(path="info.toml") -> list[Exercise]:
    """Read the exercise list from a TOML file."""
    with open(path, "rb") as handle:
        data = tomllib.load(handle)
    if "exercises" not in data:
        raise ValueError("missing field 'exercises'")
    return [_exercise_from_entry(entry) for entry in data["exercises"]]