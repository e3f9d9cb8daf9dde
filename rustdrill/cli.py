"""Command line entry point: listing, running, verifying and watching exercises."""

from __future__ import annotations

import argparse
import itertools
import json
import math
import os
import queue
import subprocess
import sys
import threading
import time
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from rustdrill.exercise import Exercise, load_exercises
from rustdrill.project import RustAnalyzerProject
from rustdrill.run import RunFailed, reset, run
from rustdrill.verify import VerificationFailed, verify

VERSION = "5.5.1"
CHECK_RESULT_PATH = ".github/result/check_result.json"


class ExerciseNotFound(LookupError):
    """No exercise matches the requested name."""


class WatchStatus(Enum):
    """How a watch session ended."""

    FINISHED = "finished"
    UNFINISHED = "unfinished"


@dataclass
class ExerciseResult:
    """Outcome of one exercise in a batch check."""

    name: str
    result: bool


@dataclass
class ExerciseStatistics:
    """Totals of a batch check."""

    total_exercations: int
    total_succeeds: int = 0
    total_failures: int = 0
    total_time: int = 0


@dataclass
class ExerciseCheckList:
    """The report written by a batch check."""

    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None
    statistics: ExerciseStatistics = field(
        default_factory=lambda: ExerciseStatistics(total_exercations=0)
    )

    def to_json(self) -> str:
        """Serialise as indented JSON."""
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


def rustc_exists() -> bool:
    """True when `rustc --version` can be run successfully."""
    try:
        proc = subprocess.run(["rustc", "--version"], stdout=subprocess.DEVNULL)
    except OSError:
        return False
    return proc.returncode == 0


def find_exercise(name: str, exercises: Sequence[Exercise]) -> Exercise:
    """Find an exercise by name; "next" means the first one still pending."""
    if name == "next":
        found = next((e for e in exercises if not e.looks_done()), None)
        if found is None:
            raise ExerciseNotFound(
                "🎉 Congratulations! You have done all the exercises!\n"
                "🔚 There are no more exercises to do next!"
            )
        return found
    found = next((e for e in exercises if e.name == name), None)
    if found is None:
        raise ExerciseNotFound(f"No exercise found for '{name}'!")
    return found


def list_exercises(
    exercises: Sequence[Exercise],
    paths: bool = False,
    names: bool = False,
    filter: str | None = None,
    unsolved: bool = False,
    solved: bool = False,
) -> list[str]:
    """Return the lines of an exercise listing, ending with a progress line."""
    lines = []
    if not paths and not names:
        lines.append(f"{'Name':<17}\t{'Path':<46}\t{'Status':<7}")
    filters = [f for f in (filter or "").lower().split(",") if f.strip()]
    done_count = 0
    for exercise in exercises:
        fname = str(exercise.path)
        matches_filter = filter is None or any(
            f in exercise.name or f in fname for f in filters
        )
        done = exercise.looks_done()
        if done:
            done_count += 1
        status = "Done" if done else "Pending"
        wanted = (done and solved) or (not done and unsolved) or (not solved and not unsolved)
        if wanted and matches_filter:
            if paths:
                lines.append(fname)
            elif names:
                lines.append(exercise.name)
            else:
                lines.append(f"{exercise.name:<17}\t{fname:<46}\t{status:<7}")
    percentage = done_count / len(exercises) * 100.0 if exercises else math.nan
    lines.append(
        f"Progress: You completed {done_count} / {len(exercises)} exercises "
        f"({percentage:.1f} %)."
    )
    return lines


def _now() -> int:
    return int(time.time())


def cicv_verify(
    exercises: Sequence[Exercise], output_path=CHECK_RESULT_PATH
) -> ExerciseCheckList:
    """Run every exercise concurrently and write a JSON report of the results."""
    started = _now()
    total = len(exercises)
    report = ExerciseCheckList(statistics=ExerciseStatistics(total_exercations=total))
    lock = threading.Lock()
    rights = 0

    def check(exercise: Exercise) -> None:
        nonlocal rights
        task_start = _now()
        try:
            run(exercise, True)
        except RunFailed:
            passed = False
        else:
            passed = True
        with lock:
            if passed:
                rights += 1
                print(f"{exercise.name}执行成功")
            else:
                print(f"{exercise.name}执行失败")
            print(f"总的题目数: {total}")
            print(f"当前做正确的题目数: {rights}")
            print(f"当前修改试卷耗时: {_now() - task_start} s")
            report.exercises.append(ExerciseResult(name=exercise.name, result=passed))
            if passed:
                report.statistics.total_succeeds += 1
            else:
                report.statistics.total_failures += 1

    with ThreadPoolExecutor() as pool:
        futures = [pool.submit(check, exercise) for exercise in exercises]
        for future in futures:
            future.result()

    total_time = _now() - started
    print(
        "===============================试卷批改完成,总耗时: "
        f"{total_time} s; =================================="
    )
    report.statistics.total_time = total_time
    Path(output_path).write_text(report.to_json(), encoding="utf-8")
    return report


class _Shell:
    """State shared between the watch loop and the command reader."""

    def __init__(self, hint: str):
        self._hint = hint
        self._lock = threading.Lock()
        self.quit = threading.Event()

    @property
    def hint(self) -> str:
        with self._lock:
            return self._hint

    @hint.setter
    def hint(self, value: str) -> None:
        with self._lock:
            self._hint = value


def _shell_command(shell: _Shell, command: str) -> None:
    if command == "hint":
        print(shell.hint)
    elif command == "clear":
        print("\x1b[2J\x1b[1;1H")
    elif command == "quit":
        shell.quit.set()
        print("Bye!")
    elif command == "help":
        print("Commands available to you in watch mode:")
        print("  hint   - prints the current exercise's hint")
        print("  clear  - clears the screen")
        print("  quit   - quits watch mode")
        print("  !<cmd> - executes a command, like `!rustc --explain E0381`")
        print("  help   - displays this help message")
        print()
        print("Watch mode automatically re-evaluates the current exercise")
        print("when you edit a file's contents.")
    elif command.startswith("!"):
        cmd = command[1:]
        parts = cmd.split()
        if not parts:
            print("no command provided")
        else:
            try:
                subprocess.run(parts)
            except OSError as err:
                print(f"failed to execute command `{cmd}`: {err}")
    else:
        print(f"unknown command: {command}")


def _shell_loop(shell: _Shell) -> None:
    while True:
        try:
            line = sys.stdin.readline()
        except (OSError, ValueError) as err:
            print(f"error reading command: {err}")
            return
        if not line:
            return
        _shell_command(shell, line.strip())


def _spawn_watch_shell(shell: _Shell) -> None:
    print(
        "Welcome to watch mode! You can type 'help' to get an overview of "
        "the commands you can use here."
    )
    threading.Thread(target=_shell_loop, args=(shell,), daemon=True).start()


class _ChangedFiles(FileSystemEventHandler):
    """Queue the paths of files that were created or written."""

    def __init__(self, events: queue.Queue):
        super().__init__()
        self._events = events

    def on_created(self, event) -> None:
        self._push(event)

    def on_modified(self, event) -> None:
        self._push(event)

    def _push(self, event) -> None:
        if not event.is_directory:
            self._events.put(os.fsdecode(event.src_path))


def _path_ends_with(full: Path, tail: Path) -> bool:
    tail_parts = tail.parts
    return 0 < len(tail_parts) <= len(full.parts) and (
        full.parts[-len(tail_parts):] == tail_parts
    )


def _clear_screen() -> None:
    print("\x1bc")


def _recheck(
    exercises: Sequence[Exercise],
    changed: Path,
    verbose: bool,
    success_hints: bool,
    shell: _Shell,
) -> bool:
    """Verify the changed exercise first, then every pending one; True when all pass."""
    current = next((e for e in exercises if _path_ends_with(changed, e.path)), None)
    pending = itertools.chain(
        [current] if current is not None else [],
        (
            e
            for e in exercises
            if not e.looks_done() and not _path_ends_with(changed, e.path)
        ),
    )
    num_done = sum(1 for e in exercises if e.looks_done())
    _clear_screen()
    try:
        verify(pending, (num_done, len(exercises)), verbose, success_hints)
    except VerificationFailed as err:
        shell.hint = err.exercise.hint
        return False
    return True


def _drain(events: queue.Queue) -> Iterable[str]:
    try:
        first = events.get(timeout=1)
    except queue.Empty:
        return []
    paths = [first]
    while True:
        try:
            path = events.get_nowait()
        except queue.Empty:
            break
        if path not in paths:
            paths.append(path)
    return paths


def watch(
    exercises: Sequence[Exercise], verbose: bool = False, success_hints: bool = False
) -> WatchStatus:
    """Verify the exercises and re-verify whenever a file below ./exercises changes."""
    events: queue.Queue = queue.Queue()
    observer = Observer()
    observer.schedule(_ChangedFiles(events), "./exercises", recursive=True)
    observer.start()
    try:
        _clear_screen()
        try:
            verify(exercises, (0, len(exercises)), verbose, success_hints)
        except VerificationFailed as err:
            shell = _Shell(err.exercise.hint)
        else:
            return WatchStatus.FINISHED
        _spawn_watch_shell(shell)
        while True:
            for raw in _drain(events):
                candidate = Path(raw)
                if candidate.suffix == ".rs" and candidate.exists():
                    if _recheck(
                        exercises, candidate.resolve(), verbose, success_hints, shell
                    ):
                        return WatchStatus.FINISHED
            if shell.quit.is_set():
                return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()


class _Parser(argparse.ArgumentParser):
    """An argument parser that exits with status 1 on bad usage."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _build_parser() -> _Parser:
    parser = _Parser(
        prog="rustdrill",
        description="A collection of small exercises to get you used to "
        "writing and reading Rust code",
    )
    parser.add_argument(
        "--nocapture", action="store_true", help="show outputs from the test exercises"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="show the executable version"
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("verify", help="verifies all exercises in the recommended order")
    watch_parser = commands.add_parser("watch", help="reruns `verify` when files are edited")
    watch_parser.add_argument(
        "--success-hints", action="store_true", help="show hints on success"
    )
    for name, text in (
        ("run", "runs/tests a single exercise"),
        ("reset", 'resets a single exercise using "git stash -- <filename>"'),
        ("hint", "returns a hint for the given exercise"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument("name", help="the name of the exercise")
    list_parser = commands.add_parser("list", help="lists the available exercises")
    list_parser.add_argument(
        "-p", "--paths", action="store_true", help="show only the paths of the exercises"
    )
    list_parser.add_argument(
        "-n", "--names", action="store_true", help="show only the names of the exercises"
    )
    list_parser.add_argument(
        "-f",
        "--filter",
        help="a string to match exercise names; comma separated patterns are accepted",
    )
    list_parser.add_argument(
        "-u", "--unsolved", action="store_true", help="display only unsolved exercises"
    )
    list_parser.add_argument(
        "-s", "--solved", action="store_true", help="display only solved exercises"
    )
    commands.add_parser("lsp", help="enable rust-analyzer for exercises")
    commands.add_parser("cicvverify", help="check every exercise and write a report")
    return parser


def _print_listing(args, exercises: Sequence[Exercise]) -> int:
    lines = list_exercises(
        exercises, args.paths, args.names, args.filter, args.unsolved, args.solved
    )
    try:
        for line in lines:
            sys.stdout.write(f"{line}\n")
        sys.stdout.flush()
    except BrokenPipeError:
        return 0
    except OSError:
        return 1
    return 0


def _lsp() -> int:
    project = RustAnalyzerProject()
    try:
        project.get_sysroot_src()
    except OSError:
        print(
            "Couldn't find toolchain path, do you have `rustc` installed?",
            file=sys.stderr,
        )
        return 1
    project.exercises_to_json()
    if not project.crates:
        print("Failed find any exercises, make sure you're in the `rustdrill` folder")
        return 0
    try:
        project.write_to_disk()
    except OSError:
        print("Failed to write rust-project.json to disk for rust-analyzer")
        return 0
    print("Successfully generated rust-project.json")
    print("rust-analyzer will now parse exercises, restart your language server or editor")
    return 0


def _watch(exercises: Sequence[Exercise], verbose: bool, success_hints: bool) -> int:
    try:
        status = watch(exercises, verbose, success_hints)
    except OSError as err:
        print(f"Error: Could not watch your progress. Error message was {err!r}.")
        print(
            "Most likely you've run out of disk space or your 'inotify limit' "
            "has been reached."
        )
        return 1
    if status is WatchStatus.FINISHED:
        emoji = "★" if "NO_EMOJI" in os.environ else "🎉"
        print(f"{emoji} All exercises completed! {emoji}")
        print(f"\n{FENISH_LINE}\n")
    else:
        print("We hope you're enjoying learning about Rust!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `rustdrill watch` again"
        )
    return 0


def _dispatch(args, exercises: list[Exercise], verbose: bool) -> int:
    try:
        match args.command:
            case "list":
                return _print_listing(args, exercises)
            case "run":
                run(find_exercise(args.name, exercises), verbose)
            case "reset":
                reset(find_exercise(args.name, exercises))
            case "hint":
                print(find_exercise(args.name, exercises).hint)
            case "verify":
                verify(exercises, (0, len(exercises)), verbose, False)
            case "cicvverify":
                cicv_verify(exercises)
            case "lsp":
                return _lsp()
            case "watch":
                return _watch(exercises, verbose, args.success_hints)
    except ExerciseNotFound as err:
        print(err)
        return 1
    except (RunFailed, VerificationFailed):
        return 1
    return 0


def main(argv=None) -> int:
    """Run the command line and return the exit status."""
    try:
        args = _build_parser().parse_args(argv)
    except SystemExit as exc:
        return 0 if exc.code is None else int(exc.code)

    if args.version:
        print(f"v{VERSION}")
        return 0

    if args.command is None:
        print(f"\n{WELCOME}\n")

    if not Path("info.toml").exists():
        print(f"{sys.argv[0]} must be run from the rustdrill directory")
        print("Try `cd rustdrill/`!")
        return 1

    if not rustc_exists():
        print("We cannot find `rustc`.")
        print("Try running `rustc --version` to diagnose your problem.")
        print("For instructions on how to install Rust, check the README.")
        return 1

    exercises = load_exercises("info.toml")
    if args.command is None:
        print(f"{DEFAULT_OUT}\n")
        return 0
    return _dispatch(args, exercises, args.nocapture)


DEFAULT_OUT = """Thanks for installing rustdrill!

Is this your first time? Don't worry, rustdrill was made for beginners! We are
going to teach you a lot of things about Rust, but before we can get
started, here's a couple of notes about how rustdrill operates:

1. The central concept behind rustdrill is that you solve exercises. These
   exercises usually have some sort of syntax error in them, which will cause
   them to fail compilation or testing. Sometimes there's a logic error instead
   of a syntax error. No matter what error, it's your job to find it and fix it!
   You'll know when you fixed it because then, the exercise will compile and
   rustdrill will be able to move on to the next exercise.
2. If you run rustdrill in watch mode (which we recommend), it'll automatically
   start with the first exercise. Don't get confused by an error message popping
   up as soon as you run rustdrill! This is part of the exercise that you're
   supposed to solve, so open the exercise file in an editor and start your
   detective work!
3. If you're stuck on an exercise, there is a helpful hint you can view by typing
   'hint' (in watch mode), or running `rustdrill hint exercise_name`.
4. If an exercise doesn't make sense to you, feel free to open an issue.
   We look at every issue, and sometimes, other learners do too so you can
   help each other out!
5. If you want to use `rust-analyzer` with exercises, which provides features like
   autocompletion, run the command `rustdrill lsp`.

Got all that? Great! To get started, run `rustdrill watch` in order to get the first
exercise. Make sure to have your editor open!"""

FENISH_LINE = r"""+----------------------------------------------------+
|          You made it to the Fe-nish line!          |
+--------------------------  ------------------------+
                          \\/
     ▒▒          ▒▒▒▒▒▒▒▒      ▒▒▒▒▒▒▒▒          ▒▒
   ▒▒▒▒  ▒▒    ▒▒        ▒▒  ▒▒        ▒▒    ▒▒  ▒▒▒▒
   ▒▒▒▒  ▒▒  ▒▒            ▒▒            ▒▒  ▒▒  ▒▒▒▒
 ░░▒▒▒▒░░▒▒  ▒▒            ▒▒            ▒▒  ▒▒░░▒▒▒▒
   ▓▓▓▓▓▓▓▓  ▓▓      ▓▓██  ▓▓  ▓▓██      ▓▓  ▓▓▓▓▓▓▓▓
     ▒▒▒▒    ▒▒      ████  ▒▒  ████      ▒▒░░  ▒▒▒▒
       ▒▒  ▒▒▒▒▒▒        ▒▒▒▒▒▒        ▒▒▒▒▒▒  ▒▒
         ▒▒▒▒▒▒▒▒▒▒▓▓▓▓▓▓▒▒▒▒▒▒▒▒▓▓▒▒▓▓▒▒▒▒▒▒▒▒
           ▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒
             ▒▒▒▒▒▒▒▒▒▒██▒▒▒▒▒▒██▒▒▒▒▒▒▒▒▒▒
           ▒▒  ▒▒▒▒▒▒▒▒▒▒██████▒▒▒▒▒▒▒▒▒▒  ▒▒
         ▒▒    ▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒    ▒▒
       ▒▒    ▒▒    ▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒▒    ▒▒    ▒▒
       ▒▒  ▒▒    ▒▒                  ▒▒    ▒▒  ▒▒
           ▒▒  ▒▒                      ▒▒  ▒▒

We hope you enjoyed learning about the various aspects of Rust!
If you noticed any issues, please don't hesitate to report them.
You can also contribute your own exercises to help the greater community!"""

WELCOME = """       welcome to...
  +-----------------------+
  |       rustdrill       |
  +-----------------------+"""


if __name__ == "__main__":
    sys.exit(main())