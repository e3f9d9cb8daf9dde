"""Checking exercises in order and stopping at the first that is not finished."""

from __future__ import annotations

import math
import os
import sys
from collections.abc import Iterable

from rustdrill.exercise import CompiledExercise, Exercise, ExerciseFailed, Mode
from rustdrill.ui import success, warn

_BAR_WIDTH = 60
_CLEAR_LINE = "\r\x1b[2K"
_BOLD = "1"
_BLUE = "34"


class VerificationFailed(Exception):
    """An exercise did not compile, did not pass, or is still pending."""

    def __init__(self, exercise: Exercise):
        super().__init__(f"verification of {exercise} failed")
        self.exercise = exercise


def _is_tty(stream) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _style(text: str, *codes: str) -> str:
    if _is_tty(sys.stdout):
        return f"\x1b[{';'.join(codes)}m{text}\x1b[0m"
    return text


class _Spinner:
    """A one-line status message on a terminal's standard error."""

    def __init__(self, message: str):
        self._stream = sys.stderr
        self._active = _is_tty(self._stream)
        self.set_message(message)

    def set_message(self, message: str) -> None:
        if self._active:
            self._stream.write(f"{_CLEAR_LINE}{message}")
            self._stream.flush()

    def clear(self) -> None:
        if self._active:
            self._stream.write(_CLEAR_LINE)
            self._stream.flush()
            self._active = False

    def __enter__(self) -> _Spinner:
        return self

    def __exit__(self, *exc_info) -> None:
        self.clear()


class _ProgressBar:
    """A progress bar drawn on a terminal's standard error."""

    def __init__(self, total: int, position: int, message: str):
        self._stream = sys.stderr
        self._active = _is_tty(self._stream)
        self.total = total
        self.position = position
        self.message = message
        self._draw()

    def _draw(self) -> None:
        if not self._active:
            return
        filled = (
            min(_BAR_WIDTH, self.position * _BAR_WIDTH // self.total)
            if self.total > 0
            else 0
        )
        head = ">" if filled < _BAR_WIDTH else ""
        bar = "#" * filled + head + "-" * (_BAR_WIDTH - filled - 1)
        self._stream.write(
            f"{_CLEAR_LINE}Progress: [{bar}] {self.position}/{self.total} {self.message}"
        )
        self._stream.flush()

    def advance(self, message: str) -> None:
        self.position += 1
        self.message = message
        self._draw()

    def __enter__(self) -> _ProgressBar:
        return self

    def __exit__(self, *exc_info) -> None:
        if self._active:
            self._stream.write("\n")
            self._stream.flush()


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool = False,
    success_hints: bool = False,
) -> None:
    """Check each exercise in turn; raise VerificationFailed at the first failure."""
    num_done, total = progress
    percentage = num_done / total * 100.0 if total else math.nan
    step = 100.0 / total if total else math.nan
    with _ProgressBar(total, num_done, f"({percentage:.1f} %)") as bar:
        for exercise in exercises:
            if not _check(exercise, verbose, success_hints):
                raise VerificationFailed(exercise)
            percentage += step
            bar.advance(f"({percentage:.1f} %)")


def _check(exercise: Exercise, verbose: bool, success_hints: bool) -> bool:
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            return _compile_and_test(exercise, True, verbose, success_hints)
        case Mode.COMPILE:
            return _compile_and_run_interactively(exercise, success_hints)
        case Mode.CLIPPY:
            return _compile_only(exercise, success_hints)
    raise ValueError(f"unknown mode {exercise.mode!r}")


def test(exercise: Exercise, verbose: bool = False) -> None:
    """Compile and run an exercise's tests without asking about completion."""
    _compile_and_test(exercise, False, verbose, False)


def _compile(exercise: Exercise, spinner: _Spinner) -> CompiledExercise:
    try:
        return exercise.compile()
    except ExerciseFailed as err:
        spinner.clear()
        warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(err.output.stderr)
        raise VerificationFailed(exercise) from err


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    with _Spinner(f"Compiling {exercise}...") as spinner:
        _compile(exercise, spinner).close()
    return _prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    with _Spinner(f"Compiling {exercise}...") as spinner:
        with _compile(exercise, spinner) as compiled:
            spinner.set_message(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExerciseFailed as err:
                spinner.clear()
                warn(f"Ran {exercise} with errors")
                print(err.output.stdout)
                print(err.output.stderr)
                raise VerificationFailed(exercise) from err
            finally:
                spinner.clear()
    return _prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, interactive: bool, verbose: bool, success_hints: bool
) -> bool:
    with _Spinner(f"Testing {exercise}...") as spinner:
        with _compile(exercise, spinner) as compiled:
            try:
                output = compiled.run()
            except ExerciseFailed as err:
                spinner.clear()
                warn(f"Testing of {exercise} failed! Please try again. Here's the output:")
                print(err.output.stdout)
                raise VerificationFailed(exercise) from err
            finally:
                spinner.clear()
    if verbose:
        print(output.stdout)
    if interactive:
        return _prompt_for_completion(exercise, None, success_hints)
    return True


def _separator() -> str:
    return _style("====================", _BOLD)


def _prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    state = exercise.state()
    if state.done:
        return True

    verb = {
        Mode.COMPILE: "ran",
        Mode.TEST: "tested",
        Mode.CLIPPY: "compiled",
        Mode.BUILD_SCRIPT: "compiled",
    }[exercise.mode]
    success(f"Successfully {verb} {exercise}!")

    no_emoji = "NO_EMOJI" in os.environ
    clippy_message = (
        "The code is compiling, and Clippy is happy!"
        if no_emoji
        else "The code is compiling, and 📎 Clippy 📎 is happy!"
    )
    success_message = {
        Mode.COMPILE: "The code is compiling!",
        Mode.TEST: "The code is compiling, and the tests pass!",
        Mode.CLIPPY: clippy_message,
        Mode.BUILD_SCRIPT: "Build script works!",
    }[exercise.mode]

    print()
    if no_emoji:
        print(f"~*~ {success_message} ~*~")
    else:
        print(f"🎉 🎉  {success_message} 🎉 🎉")
    print()

    if prompt_output is not None:
        print("Output:")
        print(_separator())
        print(prompt_output)
        print(_separator())
        print()
    if success_hints:
        print("Hints:")
        print(_separator())
        print(exercise.hint)
        print(_separator())
        print()

    print("You can keep working on this exercise,")
    print(
        "or jump into the next one by removing the "
        f"{_style('`I AM NOT DONE`', _BOLD)} comment:"
    )
    print()
    for context_line in state.context:
        line = (
            _style(context_line.line, _BOLD)
            if context_line.important
            else context_line.line
        )
        number = _style(f"{context_line.number:>2}", _BLUE, _BOLD)
        print(f"{number} {_style('|', _BLUE)}  {line}")

    return False