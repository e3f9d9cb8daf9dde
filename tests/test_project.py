import json
import os
import subprocess
from pathlib import Path
from unittest.mock import patch

from rustdrill.project import Crate, RustAnalyzerProject


def test_crate_defaults():
    crate = Crate(root_module="exercises/a.rs")
    assert crate.edition == "2021"
    assert crate.cfg == ["test"]
    assert crate.deps == []


def test_to_dict_layout():
    project = RustAnalyzerProject(sysroot_src="/src", crates=[Crate("x.rs")])
    data = project.to_dict()
    assert list(data) == ["sysroot_src", "crates"]
    assert data["sysroot_src"] == "/src"
    assert list(data["crates"][0]) == ["root_module", "edition", "deps", "cfg"]
    assert data["crates"][0]["root_module"] == "x.rs"


def test_write_to_disk_round_trip(tmp_path):
    project = RustAnalyzerProject(sysroot_src="/src", crates=[Crate("a.rs"), Crate("b.rs")])
    target = tmp_path / "rust-project.json"
    project.write_to_disk(target)
    text = target.read_text()
    assert json.loads(text) == project.to_dict()
    assert " " not in text


def test_exercises_to_json_only_rust_files(tmp_path):
    root = tmp_path / "exercises"
    (root / "sub").mkdir(parents=True)
    (root / "a.rs").write_text("")
    (root / "sub" / "b.rs").write_text("")
    (root / "notes.txt").write_text("")
    project = RustAnalyzerProject()
    project.exercises_to_json(root)
    modules = {crate.root_module for crate in project.crates}
    assert modules == {str(root / "a.rs"), str(root / "sub" / "b.rs")}
    assert all(crate.cfg == ["test"] for crate in project.crates)


def test_exercises_to_json_missing_folder(tmp_path):
    project = RustAnalyzerProject()
    project.exercises_to_json(tmp_path / "nowhere")
    assert project.crates == []


def test_sysroot_from_environment(monkeypatch):
    monkeypatch.setenv("RUST_SRC_PATH", "/custom/library")
    project = RustAnalyzerProject()
    with patch("rustdrill.project.subprocess.run") as run:
        project.get_sysroot_src()
    assert project.sysroot_src == "/custom/library"
    assert run.call_count == 0


def test_sysroot_from_rustc(monkeypatch, capsys):
    monkeypatch.delenv("RUST_SRC_PATH", raising=False)
    toolchain = os.path.join(os.sep, "opt", "toolchain")
    completed = subprocess.CompletedProcess(
        ["rustc"], 0, f"{toolchain}\n".encode(), b""
    )
    project = RustAnalyzerProject()
    with patch("rustdrill.project.subprocess.run", return_value=completed) as run:
        project.get_sysroot_src()
    assert run.call_args.args[0] == ["rustc", "--print", "sysroot"]
    parts = Path(project.sysroot_src).parts
    assert parts[-5:] == ("lib", "rustlib", "src", "rust", "library")
    assert Path(*parts[:-5]) == Path(toolchain)
    assert f"Determined toolchain: {toolchain}" in capsys.readouterr().out