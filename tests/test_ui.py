import io
import sys

from rustdrill.ui import success, warn


class _TtyBuffer(io.StringIO):
    def isatty(self):
        return True


def test_warn_without_emoji(capsys, monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    warn("boom")
    assert capsys.readouterr().out == "! boom\n"


def test_success_without_emoji(capsys, monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    success("done")
    assert capsys.readouterr().out == "✓ done\n"


def test_warn_with_emoji(capsys, monkeypatch):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    warn("boom")
    out = capsys.readouterr().out
    assert out.startswith("⚠️ ")
    assert out.rstrip("\n").endswith("boom")
    assert "!" not in out


def test_success_with_emoji(capsys, monkeypatch):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    success("done")
    out = capsys.readouterr().out
    assert out.startswith("✅")
    assert out.rstrip("\n").endswith("done")


def test_colours_on_terminal(monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    buffer = _TtyBuffer()
    monkeypatch.setattr(sys, "stdout", buffer)
    warn("boom")
    value = buffer.getvalue()
    assert value.startswith("\x1b[31m")
    assert "boom" in value
    assert value.count("\x1b[0m") == 2


def test_no_colours_when_not_terminal(capsys, monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    success("plain")
    assert "\x1b[" not in capsys.readouterr().out