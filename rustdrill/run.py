"""Running a single exercise and resetting it."""

from __future__ import annotations

import subprocess

from rustdrill.exercise import Exercise, ExerciseFailed, Mode
from rustdrill.ui import success, warn
from rustdrill.verify import VerificationFailed, _Spinner, test


class RunFailed(Exception):
    """An exercise could not be run, or could not be reset."""

    def __init__(self, exercise: Exercise):
        super().__init__(f"running {exercise} failed")
        self.exercise = exercise


def run(exercise: Exercise, verbose: bool = False) -> None:
    """Compile and run one exercise, or run its tests; raise RunFailed on failure."""
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            try:
                test(exercise, verbose)
            except VerificationFailed as err:
                raise RunFailed(exercise) from err
        case Mode.COMPILE | Mode.CLIPPY:
            _compile_and_run(exercise)


def reset(exercise: Exercise) -> None:
    """Stash the changes made to the exercise file with git."""
    try:
        subprocess.Popen(["git", "stash", "--", str(exercise.path)])
    except OSError as err:
        raise RunFailed(exercise) from err


def _compile_and_run(exercise: Exercise) -> None:
    with _Spinner(f"Compiling {exercise}...") as spinner:
        try:
            compiled = exercise.compile()
        except ExerciseFailed as err:
            spinner.clear()
            warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
            print(err.output.stderr)
            raise RunFailed(exercise) from err

        spinner.set_message(f"Running {exercise}...")
        with compiled:
            try:
                output = compiled.run()
            except ExerciseFailed as err:
                spinner.clear()
                print(err.output.stdout)
                print(err.output.stderr)
                warn(f"Ran {exercise} with errors")
                raise RunFailed(exercise) from err
            finally:
                spinner.clear()

    print(output.stdout)
    success(f"Successfully ran {exercise}")