# rustdrill

A command-line companion for working through a collection of small Rust
exercises. Each exercise is a `.rs` file that fails to compile, fails its
tests, or trips Clippy until you fix it. rustdrill compiles and runs the
exercises for you, tracks which ones are finished, and shows hints.

It calls `rustc` (and `cargo` for Clippy and build-script exercises), so
they must be on your `PATH`. Every command except `--version` must be
started from a directory that holds an `info.toml` describing the
exercises; otherwise it exits with status 1.

## Installing

```
pip install .
```

This installs the `rustdrill` command. The only third-party dependency is
`watchdog`, used by watch mode.

## The exercise list

`info.toml` lists the exercises in the recommended order:

```toml
[[exercises]]
name = "intro1"
path = "exercises/intro/intro1.rs"
mode = "compile"
hint = "Remove the I AM NOT DONE comment."
```

All four fields are required. `mode` is one of `compile`, `test`, `clippy`
or `buildscript`:

- `compile`: the file is built with `rustc` and the binary is run.
- `test`: the file is built with `rustc --test` and its tests are run.
- `clippy`: a `Cargo.toml` is written to `exercises/clippy/` and
  `cargo clippy` is run with warnings denied.
- `buildscript`: a `Cargo.toml` is written to `exercises/tests/` and
  `cargo test` is run.

An exercise counts as unfinished while its file still contains a line
comment (`//` or `///`) reading `I AM NOT DONE`. Once your code works,
remove that line to move on.

## Commands

```
rustdrill                       # welcome text and a short introduction
rustdrill --version             # print the version
rustdrill verify                # check every exercise in order, stop at the first failure
rustdrill watch                 # verify, then re-verify whenever an exercise file changes
rustdrill watch --success-hints # also show hints for exercises that pass
rustdrill run <name>            # compile and run (or test) one exercise
rustdrill run next              # run the first exercise that is not done
rustdrill hint <name>           # print an exercise's hint
rustdrill reset <name>          # stash your changes to an exercise with git
rustdrill list                  # table of exercises and their status
rustdrill lsp                   # write rust-project.json for rust-analyzer
rustdrill cicvverify            # grade every exercise and write a JSON report
```

Give `--nocapture` before the command to show the output of test
exercises.

`list` takes these options:

- `--paths`/`-p`: print only the paths.
- `--names`/`-n`: print only the names.
- `--solved`/`-s`: show only finished exercises.
- `--unsolved`/`-u`: show only unfinished exercises.
- `--filter`/`-f`: show only exercises whose name or path contains one of
  the comma-separated patterns. Patterns are lower-cased before matching.

The listing ends with a line giving your progress.

Watch mode reads commands from standard input:

- `hint`: print the hint for the exercise that last failed.
- `clear`: clear the screen.
- `quit`: leave watch mode.
- `help`: list these commands.
- `!<command>`: run a program, such as `!rustc --explain E0381`.

`lsp` takes the standard library source path from `RUST_SRC_PATH`, or asks
`rustc --print sysroot` for it. It then writes `rust-project.json` with one
crate for each `.rs` file below `exercises/`.

`cicvverify` runs every exercise concurrently and prints progress as it
goes. It then writes a report of each result, with success and failure
counts and the total time in seconds, to
`.github/result/check_result.json`. That directory must already exist.

Set `NO_EMOJI` in the environment to replace emoji in the output with plain
characters. Colours are used only when standard output is a terminal.

Exit status is 0 on success. It is 1 when an exercise fails, when the named
exercise does not exist, or when the arguments are wrong.

## Using it from Python

```python
from rustdrill.exercise import load_exercises
from rustdrill.verify import verify, VerificationFailed

exercises = load_exercises("info.toml")
try:
    verify(exercises, (0, len(exercises)), False, False)
except VerificationFailed as failure:
    print("stuck on", failure.exercise.name)
```

Other entry points:

- `Exercise.state()` returns a `State`. `State.done` tells whether the
  exercise is finished, and `State.context` holds the lines around the
  `I AM NOT DONE` marker.
- `Exercise.looks_done()` is a shortcut for `State.done`.
- `Exercise.compile()` returns a `CompiledExercise`, or raises
  `ExerciseFailed` carrying the compiler output.
- `rustdrill.run.run()` and `rustdrill.run.reset()` raise `RunFailed` on
  failure.
- `rustdrill.cli.find_exercise()` raises `ExerciseNotFound` when no
  exercise matches.
- `rustdrill.cli.list_exercises()` returns the lines of a listing.
- `rustdrill.cli.cicv_verify()` returns the `ExerciseCheckList` report.
- `rustdrill.project.RustAnalyzerProject` builds `rust-project.json`.

## What it does not include

rustdrill does not ship any exercises or an `info.toml`. You supply the
exercise files and the list that describes them; the package only checks,
runs and tracks them.