# fastfiles/cli/interface.py
import os
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

import click
from click_option_group import optgroup
from rich.console import Console as RichConsole
from rich.progress import Progress, SpinnerColumn, TextColumn
import structlog

from fastfiles import __version__ as app_version
from fastfiles.config.settings import (
    DEFAULT_IGNORE_PATTERN, DEFAULT_WORKERS, IGNORE_PATTERN_ENV_VAR,
    WalkOptions, WalkStrategy,
)
from fastfiles.config.loader import (
    config_to_option_values, ignore_pattern_from_env, load_and_merge_configs,
)
from fastfiles.core.discovery import (
    DirectoryWalker, PathFilter, PathPresenter, relative_display_base, resolve_walk_root,
)
from fastfiles.core.output import drain, write_lines
from fastfiles.exceptions import ConfigError, FilesError, OutputError, WalkInterrupted
from fastfiles.logging_setup import configure_logging, level_from_verbosity

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_OUTPUT_ERROR = 2
EXIT_INTERRUPTED = 130

# command-line parameter name -> WalkOptions attribute
CLI_PARAM_TO_OPTION_ATTR: Dict[str, str] = {
    "ignore_pattern": "ignore_pattern",
    "ignore_globs": "ignore_globs",
    "skip_hidden": "skip_hidden",
    "match_pattern": "match_pattern",
    "directories_only": "directories_only",
    "max_results": "max_results",
    "sort": "sort",
    "absolute": "absolute",
    "use_async": "strategy",
    "workers": "workers",
    "progress": "progress",
}


def build_walk_options(ctx: click.Context, cli_params: Dict[str, Any], use_config: bool = True) -> WalkOptions:
    # layers defaults < config files < environment < command line into one immutable options object.
    values: Dict[str, Any] = {}
    if use_config:
        values.update(config_to_option_values(load_and_merge_configs()))

    env_ignore = ignore_pattern_from_env(IGNORE_PATTERN_ENV_VAR)
    if env_ignore is not None:
        values["ignore_pattern"] = env_ignore

    for param_name, attr in CLI_PARAM_TO_OPTION_ATTR.items():
        if ctx.get_parameter_source(param_name) != click.core.ParameterSource.COMMANDLINE:
            continue
        value = cli_params[param_name]
        if param_name == "use_async":
            value = WalkStrategy.CONCURRENT if value else WalkStrategy.SEQUENTIAL
        elif param_name == "ignore_globs":
            value = tuple(values.get("ignore_globs", ())) + tuple(value)
        values[attr] = value

    ignore_env = cli_params.get("ignore_env")
    if ignore_env:
        named_pattern = ignore_pattern_from_env(ignore_env)
        if named_pattern is not None:
            values["ignore_pattern"] = named_pattern
        else:
            log.warning("ignore_env_variable_unset", variable=ignore_env)

    options = WalkOptions(**values)
    log.debug("walk_options_resolved", options=options)
    return options


@contextmanager
def _progress_reporter(enabled: bool) -> Iterator[Optional[Callable[[str], None]]]:
    # yields a per-result callback that drives a transient counter on stderr.
    if not enabled:
        yield None
        return
    console = RichConsole(stderr=True)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("{task.completed}"),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("walking", total=None)
        yield lambda _raw: progress.advance(task_id)


@contextmanager
def _interrupt_cancels(cancel_event: threading.Event) -> Iterator[None]:
    # turns SIGINT into a cancellation request instead of a KeyboardInterrupt mid-write.
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def _silence_stdout() -> None:
    # a closed pipe would otherwise fail again when the interpreter flushes stdout at exit.
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    except (OSError, ValueError):
        pass


def run_walk(root: Path, options: WalkOptions, path_filter: PathFilter, display_base: str = "") -> int:
    cancel_event = threading.Event()
    out = click.get_binary_stream("stdout")
    line_buffered = not options.sort and out.isatty()

    with _interrupt_cancels(cancel_event):
        walker = DirectoryWalker(root, options, path_filter, cancel_event=cancel_event)
        stream = walker.start()
        presenter = PathPresenter(root, absolute=options.absolute, base=display_base)
        with _progress_reporter(options.progress) as on_item:
            lines = drain(stream, options.sort, presenter, on_item=on_item)
            try:
                written = write_lines(lines, out, line_buffered=line_buffered)
            except BaseException:
                # nobody drains the stream any more; release blocked producers.
                cancel_event.set()
                raise

    if cancel_event.is_set():
        raise WalkInterrupted(f"interrupted after {written} results")
    log.info("walk_output_complete", results=written)
    return EXIT_OK


class FilesCommand(click.Command):
    # a bad option value is a configuration error; exit code 2 stays reserved for output failures.
    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = EXIT_FAILURE
            raise


@click.command(cls=FilesCommand, context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument("root", required=False, default=None, type=click.Path(path_type=str))
@optgroup.group("Filtering Options", help="Control which files and directories are listed.")
@optgroup.option("-i", "--ignore", "ignore_pattern", default=DEFAULT_IGNORE_PATTERN, show_default=True, help=f"Regex searched against each path relative to ROOT; matches are pruned. Default may also come from ${IGNORE_PATTERN_ENV_VAR}.")
@optgroup.option("-I", "--ignore-env", "ignore_env", default=None, metavar="NAME", help="Read the ignore regex from environment variable NAME.")
@optgroup.option("-g", "--ignore-glob", "ignore_globs", multiple=True, metavar="GLOB", help="Gitignore-style glob to prune (repeatable).")
@optgroup.option("-H/-u", "--skip-hidden/--show-hidden", "skip_hidden", default=True, show_default=True, help="Skip dot-prefixed files and directories.")
@optgroup.option("-m", "--match", "match_pattern", default=None, metavar="REGEX", help="Only list entries whose name matches REGEX.")
@optgroup.option("-d", "--directories", "directories_only", is_flag=True, default=False, help="List directories only.")
@optgroup.option("-M", "--max", "max_results", type=int, default=None, metavar="N", help="Stop after N results.")
@optgroup.group("Traversal Options", help="How the tree is walked.")
@optgroup.option("-A", "--async", "use_async", is_flag=True, default=False, help="Walk directories concurrently.")
@optgroup.option("-j", "--workers", "workers", type=click.IntRange(min=1), default=DEFAULT_WORKERS, show_default=True, help="Worker threads for --async.")
@optgroup.group("Output Options", help="Shape of the printed paths.")
@optgroup.option("-a", "--absolute", "absolute", is_flag=True, default=False, help="Print absolute paths.")
@optgroup.option("-s", "--sort", "sort", is_flag=True, default=False, help="Sort results before printing.")
@optgroup.option("-p", "--progress", "progress", is_flag=True, default=False, help="Show a result counter on stderr.")
@optgroup.group("Application Behavior", help="Configuration files and logging.")
@optgroup.option("--no-config", "no_config", is_flag=True, default=False, help="Ignore configuration files.")
@optgroup.option("--verbose", "verbosity_level", count=True, help="Verbosity: --verbose info, twice for debug.")
@optgroup.option("--log-json", "force_json_logs", is_flag=True, default=False, help="Emit JSON log lines on stderr.")
@click.version_option(app_version, "-v", "--version", prog_name="files", message="%(version)s", help="Show version and exit.")
@click.pass_context
def main_cli(ctx: click.Context, root: Optional[str], **cli_params: Any):
    """files: list every file below ROOT (default: the current directory),
    one forward-slash path per line, for fuzzy finders."""

    configure_logging(
        log_level_str=level_from_verbosity(cli_params.get("verbosity_level", 0)),
        force_json_logs=cli_params.get("force_json_logs", False),
    )

    log.debug("cli_command_invoked", root=root, params=cli_params)

    try:
        options = build_walk_options(ctx, cli_params, use_config=not cli_params.get("no_config"))
        path_filter = PathFilter(options)
        root_path = resolve_walk_root(root)
        display_base = relative_display_base(root, root_path)
        exit_code = run_walk(root_path, options, path_filter, display_base)
    except ConfigError as e:
        log.error("configuration_error", error_type=type(e).__name__, message=str(e))
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_FAILURE)
    except OutputError as e:
        log.info("output_closed", message=str(e))
        _silence_stdout()
        sys.exit(EXIT_OUTPUT_ERROR)
    except WalkInterrupted as e:
        log.info("walk_interrupted", message=str(e))
        click.echo("Interrupted", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except FilesError as e:
        log.error("handled_application_error_in_cli", error_type=type(e).__name__, message=str(e))
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_FAILURE)
    sys.exit(exit_code)
