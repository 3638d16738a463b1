# fastfiles/core/output.py
import os
from typing import BinaryIO, Callable, Iterable, Iterator, Optional
import click
import structlog

from fastfiles.core.discovery.path_resolution import PathPresenter
from fastfiles.exceptions import OutputError

log = structlog.get_logger(__name__)

def drain(
    stream: Iterable[str],
    sort: bool,
    presenter: PathPresenter,
    on_item: Optional[Callable[[str], None]] = None,
) -> Iterator[str]:
    # yields presented paths, either as they arrive or all at once in sorted order.
    if not sort:
        for raw in stream:
            if on_item is not None:
                on_item(raw)
            yield presenter.present(raw)
        return

    collected = []
    for raw in stream:
        if on_item is not None:
            on_item(raw)
        collected.append(raw)
    log.debug("sorting_results", count=len(collected))
    # byte order of the encoded names; undecodable bytes decode to surrogates that would sort after real characters.
    collected.sort(key=os.fsencode)
    for raw in collected:
        yield presenter.present(raw)

def write_lines(lines: Iterable[str], out: Optional[BinaryIO] = None, line_buffered: bool = False) -> int:
    # writes newline terminated paths to binary stdout and returns how many were written.
    if out is None:
        out = click.get_binary_stream("stdout")
    written = 0
    try:
        for line in lines:
            # fsencode round-trips names that are not valid in the filesystem encoding.
            out.write(os.fsencode(line) + b"\n")
            if line_buffered:
                out.flush()
            written += 1
        out.flush()
    except OSError as e:
        raise OutputError(f"failed to write to stdout: {e}")
    log.debug("results_written", count=written)
    return written
