from __future__ import annotations

import logging
import os
import stat
import textwrap
from pathlib import Path

import pytest

import markdown_lens.cli as cli_module
from markdown_lens import __version__
from markdown_lens.cli import cli


def _write(tmp_path: Path, filename: str, content: str) -> Path:
    path = tmp_path / filename
    path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")
    return path


def _write_pyproject(base: Path, body: str) -> Path:
    path = base / "pyproject.toml"
    path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
    return path


def test_cli_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
    assert "markdown-lens" in result.output


def test_format_prints_canonical_markdown(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(
        tmp_path,
        "doc.md",
        """
        Title
        =====

        * one
        * two
        """,
    )

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 0
    assert result.output == "# Title\n\n- one\n- two\n"
    assert target.read_text(encoding="utf-8").startswith("Title\n")


def test_format_empty_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "empty.md"
    target.write_text("", encoding="utf-8")

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 0
    assert result.output == ""


def test_format_check_passes_for_canonical_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "ok.md", "# Title\n\n- a\n- b\n")

    result = cli_runner.invoke(cli, ["format", "--check", str(target)])

    assert result.exit_code == 0
    assert result.output == ""


def test_format_check_fails_for_non_canonical_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "messy.md", "#  Title\n")

    result = cli_runner.invoke(cli, ["format", "--check", str(target)])

    assert result.exit_code == 1
    assert "is not canonically formatted" in result.output
    assert target.read_text(encoding="utf-8") == "#  Title\n"


def test_format_write_rewrites_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "messy.md", "#  Title\n\n```py\nx = 1\n```\n")

    result = cli_runner.invoke(cli, ["format", "--write", str(target)])

    assert result.exit_code == 0
    assert result.output == ""
    assert target.read_text(encoding="utf-8") == "# Title\n\n```py\nx = 1\n```\n"


def test_format_check_and_write_are_exclusive(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "doc.md", "# Title\n")

    result = cli_runner.invoke(cli, ["format", "--check", "--write", str(target)])

    assert result.exit_code == 2
    assert "mutually exclusive" in result.output


def test_cli_rejects_non_markdown_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.txt", "# Title\n")

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 2
    assert "is not a Markdown document" in result.output


def test_cli_rejects_missing_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = cli_runner.invoke(cli, ["format", "missing.md"])

    assert result.exit_code == 2


def test_decorations_hide_markers_outside_cursor(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("# Title\n\nParagraph", encoding="utf-8")

    result = cli_runner.invoke(cli, ["decorations", str(target)])

    assert result.exit_code == 0
    assert result.output == "0-2 replace\n"


def test_decorations_reveal_markers_at_cursor(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("# Title\n\nParagraph", encoding="utf-8")

    result = cli_runner.invoke(cli, ["decorations", "--cursor", "3", str(target)])

    assert result.exit_code == 0
    assert result.output == ""


def test_decorations_fence_marks_flag(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("```py\nx\n```\n\nafter", encoding="utf-8")

    shown = cli_runner.invoke(cli, ["decorations", str(target)])
    hidden = cli_runner.invoke(cli, ["decorations", "--hide-fence-marks", str(target)])

    assert shown.output == "3-5 mark ml-code-info\n"
    assert hidden.output == "0-3 replace\n3-5 mark ml-code-info\n8-11 replace\n"


def test_decorations_fence_marks_from_config(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_pyproject(
        tmp_path,
        """
        [tool.markdown-lens]
        hide_fence_code_marks = true
        """,
    )
    target = tmp_path / "doc.md"
    target.write_text("```py\nx\n```\n\nafter", encoding="utf-8")

    from_config = cli_runner.invoke(cli, ["decorations", str(target)])
    overridden = cli_runner.invoke(cli, ["decorations", "--show-fence-marks", str(target)])

    assert "0-3 replace" in from_config.output
    assert overridden.output == "3-5 mark ml-code-info\n"


def test_decorations_presentation(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("# Title\n\n```py\nx\n```", encoding="utf-8")

    result = cli_runner.invoke(cli, ["decorations", "--presentation", str(target)])

    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "0-0 line ml-heading ml-heading-1 --ml-heading-scale:1.6",
        "9-9 line ml-fenced-line ml-fenced-open",
        "12-14 mark ml-code-info",
        "15-15 line ml-fenced-line ml-fenced-body",
        "17-17 line ml-fenced-line ml-fenced-close",
    ]


def test_decorations_invalid_config(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    _write_pyproject(
        tmp_path,
        """
        [tool.markdown-lens]
        heading_scale = [1]
        """,
    )
    target = _write(tmp_path, "doc.md", "# Title\n")

    result = cli_runner.invoke(cli, ["decorations", "--presentation", str(target)])

    assert result.exit_code == 2
    assert "heading_scale" in result.output


def test_shortcut_wraps_selection(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("hello world", encoding="utf-8")

    result = cli_runner.invoke(
        cli, ["shortcut", "toggle-bold", str(target), "--from", "6", "--to", "11"]
    )

    assert result.exit_code == 0
    assert result.output == "hello **world**"
    assert target.read_text(encoding="utf-8") == "hello world"


def test_shortcut_defaults_cursor_to_end(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("Title", encoding="utf-8")

    result = cli_runner.invoke(cli, ["shortcut", "toggle-heading-2", str(target)])

    assert result.exit_code == 0
    assert result.output == "## Title"


def test_shortcut_enter_closes_fence(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("```py", encoding="utf-8")

    result = cli_runner.invoke(cli, ["shortcut", "enter", str(target)])

    assert result.exit_code == 0
    assert result.output == "```python\n\n```"


def test_shortcut_enter_prints_nothing_when_not_applicable(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "doc.md"
    target.write_text("```py\n```", encoding="utf-8")

    result = cli_runner.invoke(cli, ["shortcut", "enter", str(target), "--from", "5"])

    assert result.exit_code == 0
    assert result.output == ""


def test_shortcut_rejects_unknown_command(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "doc.md", "x\n")

    result = cli_runner.invoke(cli, ["shortcut", "toggle-underline", str(target)])

    assert result.exit_code == 2


def test_verbose_enables_debug_logging(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "doc.md", "# Title\n")
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    result = cli_runner.invoke(cli, ["--verbose", "format", str(target)])

    assert result.exit_code == 0
    assert calls and calls[0]["level"] == logging.DEBUG


def test_file_size_limit_from_environment(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MARKDOWN_LENS_MAX_FILE_SIZE", "10")
    target = _write(tmp_path, "large.md", "X" * 20)

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 1
    assert "over the 10 byte limit" in result.output


def test_invalid_file_size_limit_reported(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MARKDOWN_LENS_MAX_FILE_SIZE", "lots")
    target = _write(tmp_path, "notes.md", "# Notes\n")

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 1
    assert "MARKDOWN_LENS_MAX_FILE_SIZE" in result.output


def test_document_size_limit_from_config(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".markdown-lens.toml").write_text(
        "[markdown-lens]\nmax_document_size = 5\n", encoding="utf-8"
    )
    target = _write(tmp_path, "notes.md", "# A long heading\n")

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 1
    assert "exceeds maximum allowed size of 5 characters" in result.output


def test_format_rejects_invalid_utf8(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "broken.md"
    target.write_bytes(b"\xff\xfe## Heading\n")

    result = cli_runner.invoke(cli, ["format", str(target)])

    assert result.exit_code == 1
    assert "not valid UTF-8" in result.output


def test_format_check_flags_crlf_line_endings(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "windows.md"
    target.write_bytes(b"# Title\r\n")

    result = cli_runner.invoke(cli, ["format", "--check", str(target)])

    assert result.exit_code == 1


def test_format_write_keeps_permissions(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "#  Heading\n\n* one\n* two\n")
    os.chmod(target, 0o640)

    result = cli_runner.invoke(cli, ["format", "--write", str(target)])

    assert result.exit_code == 0
    assert stat.S_IMODE(target.stat().st_mode) == 0o640
    assert target.read_text(encoding="utf-8") == "# Heading\n\n- one\n- two\n"


def test_format_write_skips_canonical_file(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "canonical.md", "# Heading\n\n- one\n- two\n")

    def _fail_write(*args, **kwargs):
        raise AssertionError("write_markdown should not be called")

    monkeypatch.setattr(cli_module, "write_markdown", _fail_write)
    result = cli_runner.invoke(cli, ["format", "--write", str(target)])

    assert result.exit_code == 0


def test_format_write_reports_save_failure(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = _write(tmp_path, "notes.md", "#  Heading\n")

    def _fail_write(path, content):
        raise IOError(f"Cannot save {path}: disk full")

    monkeypatch.setattr(cli_module, "write_markdown", _fail_write)
    result = cli_runner.invoke(cli, ["format", "--write", str(target)])

    assert result.exit_code == 1
    assert "disk full" in result.output
    assert target.read_text(encoding="utf-8") == "#  Heading\n"


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="mkfifo not available")
def test_fifo_rejected(cli_runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    fifo = tmp_path / "pipe.md"
    try:
        os.mkfifo(fifo)
    except OSError as error:  # pragma: no cover - platform dependent
        pytest.skip(f"Unable to create FIFO: {error}")

    result = cli_runner.invoke(cli, ["format", str(fifo)])

    assert result.exit_code == 2
    assert "is not a regular file" in result.output
