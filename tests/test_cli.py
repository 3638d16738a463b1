import os
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path

import pytest
from click.testing import CliRunner

from fastfiles import __version__
from fastfiles.cli import interface
from fastfiles.cli.interface import (
    EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK, EXIT_OUTPUT_ERROR, main_cli,
)
from fastfiles.exceptions import OutputError


@pytest.fixture(autouse=True)
def run_from_tree_parent(tmp_path: Path, monkeypatch):
    """The trees live at tmp_path/root and tmp_path/deep; commands name them relative to here."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def run_cli(*args: str, **kwargs):
    runner = CliRunner()
    return runner.invoke(main_cli, [*args, "--no-config"], catch_exceptions=False, **kwargs)


def lines_of(result) -> list:
    return result.stdout.splitlines()


def under(prefix: str, *paths: str) -> list:
    return [f"{prefix}/{p}" for p in paths]


class TestScenarios:
    """root/{.git/x, src/main.go, src/README, docs/a.md}"""

    def test_default_listing(self, sample_tree: Path):
        result = run_cli("root")
        assert result.exit_code == EXIT_OK
        assert set(lines_of(result)) == {"root/src/main.go", "root/src/README", "root/docs/a.md"}

    def test_match(self, sample_tree: Path):
        result = run_cli("root", "-m", r"\.go$")
        assert result.exit_code == EXIT_OK
        assert lines_of(result) == ["root/src/main.go"]

    def test_directories_only(self, sample_tree: Path):
        result = run_cli("root", "-d")
        assert result.exit_code == EXIT_OK
        assert set(lines_of(result)) == {"root/src", "root/docs"}

    def test_async_emits_same_set(self, deep_tree: Path):
        sequential = run_cli("deep")
        concurrent = run_cli("deep", "-A", "-j", "3")
        assert concurrent.exit_code == EXIT_OK
        assert sorted(lines_of(sequential)) == sorted(lines_of(concurrent))

    def test_default_root_is_cwd(self, sample_tree: Path, monkeypatch):
        monkeypatch.chdir(sample_tree)
        result = run_cli("-s")
        assert lines_of(result) == ["docs/a.md", "src/README", "src/main.go"]


class TestRelativeBase:
    def test_relative_paths_resolve_from_working_directory(self, sample_tree: Path):
        relative = lines_of(run_cli("root", "-s"))
        absolute = lines_of(run_cli("root", "-s", "-a"))
        assert relative == under("root", "docs/a.md", "src/README", "src/main.go")
        for rel, abs_ in zip(relative, absolute):
            assert os.path.exists(rel)
            assert os.path.samefile(rel, abs_)

    def test_nested_relative_root(self, sample_tree: Path):
        result = run_cli("root/src", "-s")
        assert lines_of(result) == ["root/src/README", "root/src/main.go"]

    def test_root_spelling_is_normalized(self, sample_tree: Path):
        result = run_cli("./root/", "-s", "-m", r"\.go$")
        assert lines_of(result) == ["root/src/main.go"]

    def test_root_that_is_the_working_directory_has_no_prefix(self, sample_tree: Path):
        result = run_cli("root/..", "-s", "-m", r"\.md$")
        assert lines_of(result) == ["root/docs/a.md"]

    def test_absolute_root_prints_absolute_paths(self, sample_tree: Path):
        result = run_cli(str(sample_tree), "-s")
        assert lines_of(result) == under(sample_tree.as_posix(), "docs/a.md", "src/README", "src/main.go")


class TestOutputShape:
    def test_sorted_output(self, deep_tree: Path):
        result = run_cli("deep", "-s", "-A")
        paths = lines_of(result)
        assert paths == sorted(paths)
        assert len(paths) > 20

    @pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem that accepts non-UTF-8 names")
    def test_sorted_output_is_bytewise_for_undecodable_names(self, tmp_path: Path):
        root = tmp_path / "raw"
        root.mkdir()
        for name in (b"a\x80", "aé".encode("utf-8"), b"b"):
            with open(os.path.join(os.fsencode(root), name), "wb"):
                pass
        result = run_cli("raw", "-s")
        assert result.exit_code == EXIT_OK
        assert result.stdout_bytes.splitlines() == [b"raw/a\x80", b"raw/a\xc3\xa9", b"raw/b"]

    def test_absolute_paths(self, sample_tree: Path):
        result = run_cli("root", "-a", "-s")
        root = Path(os.path.abspath("root")).as_posix()
        assert lines_of(result) == under(root, "docs/a.md", "src/README", "src/main.go")

    def test_paths_use_forward_slashes(self, deep_tree: Path):
        result = run_cli("deep", "-a")
        assert all("\\" not in line for line in lines_of(result))

    def test_max_results_stops_early_and_succeeds(self, deep_tree: Path):
        result = run_cli("deep", "-M", "3")
        assert result.exit_code == EXIT_OK
        assert len(lines_of(result)) == 3

    def test_show_hidden(self, deep_tree: Path):
        result = run_cli("deep", "-u")
        paths = lines_of(result)
        assert "deep/.hidden_file" in paths
        assert not any("/.svn/" in p for p in paths)

    def test_progress_stays_off_stdout(self, sample_tree: Path):
        result = run_cli("root", "-p", "-s")
        assert result.exit_code == EXIT_OK
        assert lines_of(result) == under("root", "docs/a.md", "src/README", "src/main.go")


class TestIgnoreSources:
    def test_ignore_option(self, sample_tree: Path):
        result = run_cli("root", "-i", "^src$")
        assert lines_of(result) == ["root/docs/a.md"]

    def test_ignore_option_sees_root_relative_paths(self, sample_tree: Path):
        # the printed prefix never takes part in matching
        result = run_cli("root", "-i", "^root", "-s")
        assert lines_of(result) == under("root", "docs/a.md", "src/README", "src/main.go")

    def test_ignore_glob(self, sample_tree: Path):
        result = run_cli("root", "-g", "*.md", "-s")
        assert lines_of(result) == under("root", "src/README", "src/main.go")

    def test_environment_default(self, sample_tree: Path, monkeypatch):
        monkeypatch.setenv("FILES_IGNORE_PATTERN", "^docs$")
        result = run_cli("root", "-s")
        assert lines_of(result) == under("root", "src/README", "src/main.go")

    def test_command_line_beats_environment(self, sample_tree: Path, monkeypatch):
        monkeypatch.setenv("FILES_IGNORE_PATTERN", "^docs$")
        result = run_cli("root", "-i", "^src$")
        assert lines_of(result) == ["root/docs/a.md"]

    def test_named_environment_variable(self, sample_tree: Path, monkeypatch):
        monkeypatch.setenv("MY_IGNORE", "README$")
        result = run_cli("root", "-I", "MY_IGNORE", "-i", "^docs$", "-s")
        assert lines_of(result) == under("root", "docs/a.md", "src/main.go")

    def test_unset_named_variable_falls_back(self, sample_tree: Path):
        result = run_cli("root", "-I", "FASTFILES_TEST_NOT_SET", "-s")
        assert result.exit_code == EXIT_OK
        assert lines_of(result) == under("root", "docs/a.md", "src/README", "src/main.go")


class TestConfigFiles:
    """Project config files are read from the working directory, the parent of root/."""

    def test_project_config_applies(self, sample_tree: Path):
        Path(".fastfiles.toml").write_text("directories = true\n")
        result = CliRunner().invoke(main_cli, ["root"], catch_exceptions=False)
        assert set(result.stdout.splitlines()) == {"root/src", "root/docs"}

    def test_command_line_overrides_config(self, sample_tree: Path):
        Path(".fastfiles.toml").write_text('match = "README"\nsort = true\n')
        result = CliRunner().invoke(main_cli, ["root", "-m", r"\.md$"], catch_exceptions=False)
        assert result.stdout.splitlines() == ["root/docs/a.md"]

    def test_no_config_skips_files(self, sample_tree: Path):
        Path(".fastfiles.toml").write_text("directories = true\n")
        result = CliRunner().invoke(main_cli, ["root", "--no-config"], catch_exceptions=False)
        assert set(result.stdout.splitlines()) == {"root/src/main.go", "root/src/README", "root/docs/a.md"}

    def test_bad_config_value_is_fatal(self, sample_tree: Path):
        Path(".fastfiles.toml").write_text('max = "lots"\n')
        result = CliRunner().invoke(main_cli, ["root"], catch_exceptions=False)
        assert result.exit_code == EXIT_FAILURE
        assert result.stdout == ""


class TestFailures:
    def test_invalid_ignore_regex(self, sample_tree: Path):
        result = run_cli("root", "-i", "(unclosed")
        assert result.exit_code == EXIT_FAILURE
        assert result.stdout == ""
        assert "Error:" in result.stderr

    def test_invalid_match_regex(self, sample_tree: Path):
        result = run_cli("root", "-m", "[a-")
        assert result.exit_code == EXIT_FAILURE
        assert result.stdout == ""

    @pytest.mark.parametrize("bad_option", [["-M", "abc"], ["-j", "0"], ["--no-such-flag"]])
    def test_bad_option_value_is_a_configuration_failure(self, sample_tree: Path, bad_option):
        result = run_cli("root", *bad_option)
        assert result.exit_code == EXIT_FAILURE
        assert result.stdout == ""
        assert "Error" in result.stderr

    def test_missing_root(self, tmp_path: Path):
        result = run_cli(str(tmp_path / "missing"))
        assert result.exit_code == EXIT_FAILURE
        assert "no such file" in result.stderr

    def test_root_is_a_file(self, sample_tree: Path):
        result = run_cli("root/docs/a.md")
        assert result.exit_code == EXIT_FAILURE
        assert "not a directory" in result.stderr

    def test_output_error_exit_code(self, sample_tree: Path, monkeypatch):
        def closed_pipe(lines, out=None, line_buffered=False):
            raise OutputError("failed to write to stdout: Broken pipe")

        monkeypatch.setattr(interface, "write_lines", closed_pipe)
        result = run_cli("root")
        assert result.exit_code == EXIT_OUTPUT_ERROR

    def test_interrupted_exit_code(self, deep_tree: Path, monkeypatch):
        @contextmanager
        def interrupted_immediately(cancel_event):
            cancel_event.set()
            yield

        monkeypatch.setattr(interface, "_interrupt_cancels", interrupted_immediately)
        result = run_cli("deep", "-A")
        assert result.exit_code == EXIT_INTERRUPTED
        assert result.stdout == ""


def test_version():
    result = CliRunner().invoke(main_cli, ["-v"])
    assert result.exit_code == EXIT_OK
    assert result.stdout.strip() == __version__


def test_help_exits_cleanly():
    result = CliRunner().invoke(main_cli, ["-h"])
    assert result.exit_code == EXIT_OK
    assert "--ignore" in result.stdout


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_sigint_sets_cancel_event():
    cancel = threading.Event()
    before = signal.getsignal(signal.SIGINT)
    with interface._interrupt_cancels(cancel):
        os.kill(os.getpid(), signal.SIGINT)
        assert cancel.wait(timeout=2)
    assert signal.getsignal(signal.SIGINT) is before
