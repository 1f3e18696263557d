# rustdrills

A command-line companion for working through small Rust exercises. It reads
the list of exercises from an `info.toml` file in the current directory, then
compiles, runs, tests or lints each exercise with `rustc`, `cargo test` or
`cargo clippy`, depending on its mode.

An exercise counts as unfinished while its source still holds an
`// I AM NOT DONE` marker line. Remove the marker once the exercise compiles
and behaves as it should, and the next one becomes current.

## Requirements

- Python 3.11 or later
- A Rust toolchain with `rustc` on the `PATH`; `cargo` for clippy and
  build-script exercises
- `git` for the `reset` command

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## The exercise list

`info.toml` holds an array of `exercises` tables, each with four fields:

```toml
[[exercises]]
name = "intro1"
path = "exercises/intro/intro1.rs"
mode = "compile"
hint = "Remove the marker comment to move on."
```

`mode` is one of:

- `compile` – built with `rustc` and the binary is run
- `test` – built with `rustc --test` and the test harness is run
- `clippy` – linted with `cargo clippy` (warnings are errors); a
  `Cargo.toml` is written to `exercises/clippy/`
- `buildscript` – checked with `cargo test`; a `Cargo.toml` is written to
  `exercises/tests/`

All compilation uses the 2021 edition.

## What the package does not do

It does not ship any exercises. You supply the `info.toml` file and the
Rust sources it points to.

## Usage

Run every command from the directory that holds `info.toml`; anywhere else
the command exits with status 1. It also exits with status 1 if
`rustc --version` cannot be run.

```
rustdrills                    # welcome text and an introduction
rustdrills watch              # verify in order and re-check on every file save
rustdrills verify             # verify all exercises in the recommended order
rustdrills run <name>         # compile and run (or test) a single exercise
rustdrills run next           # run the first exercise not yet done
rustdrills hint <name>        # print the hint for an exercise
rustdrills reset <name>       # stash your changes to an exercise with git
rustdrills list               # table of exercises and their status
rustdrills lsp                # write rust-project.json for rust-analyzer
rustdrills cicvverify         # grade every exercise and write a JSON report
rustdrills --version
```

`--nocapture` (given before the subcommand) shows the output of test
exercises.

`run`, `reset` and `hint` need an exercise name and exit with status 1 when
it is missing or no exercise has that name.

`verify` stops at the first exercise that fails to build or run, or that still
holds its marker, and then exits with status 1. `run` does not look at the
marker. It only reports whether the exercise builds and runs.

### Listing

`list` accepts:

- `-p`, `--paths` – print only the exercise paths
- `-n`, `--names` – print only the exercise names
- `-f`, `--filter` – comma-separated substrings matched against names and paths
- `-u`, `--unsolved` – only exercises that are still pending
- `-s`, `--solved` – only exercises that are done

It ends with a progress line such as
`Progress: You completed 3 / 10 exercises (30.0 %).`

### Watch mode

`watch` first verifies all exercises. If one fails, it watches
`exercises/` and re-verifies whenever a `.rs` file there is created or
changed. The changed exercise is checked first, then the rest of the pending
ones. `--success-hints` also shows the hint when an exercise compiles. While
it runs, type:

- `hint` – the hint for the exercise that last failed
- `clear` – clear the screen
- `quit` – leave watch mode
- `!<cmd>` – run a command, for example `!rustc --explain E0381`
- `help` – list these commands

### Editor support

`lsp` adds an entry to `rust-project.json` for every `.rs` file under
`exercises/`, so that rust-analyzer treats each file as its own crate. It finds
the standard-library sources through `RUST_SRC_PATH` or, when that is not set,
through `rustc --print sysroot`.

### Grading

`cicvverify` runs every exercise in turn and prints progress messages as it
goes. It then writes a JSON summary to `.github/result/check_result.json`. The
summary holds each exercise's result, the success and failure counts and the
total time in seconds. The `.github/result/` directory must already exist.

### Environment

Set `NO_EMOJI` to replace emoji in most messages with plain symbols. Set
`RUST_SRC_PATH` to choose the standard-library source path that `lsp` writes
instead of asking `rustc`.