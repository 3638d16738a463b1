# fastfiles/core/discovery/walker.py
import itertools
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Optional, Tuple
import structlog

from fastfiles.config.settings import RESULT_STREAM_CAPACITY, WalkOptions, WalkStrategy
from fastfiles.core.discovery.pattern_matching import PathFilter
from fastfiles.exceptions import (
    DiscoveryError,
    FilesError,
    ResultLimitReached,
    WalkInterrupted,
    WalkRootError,
)

log = structlog.get_logger(__name__)

# how often blocked producers and the consumer re-check cancellation and closure, in seconds.
STREAM_POLL_INTERVAL = 0.05
_CLOSED = object()


class ResultStream:
    """
    Bounded hand-off between traversal producers and the single consumer.

    Producers call put(); it returns False instead of blocking once the walk is
    cancelled. The engine calls close() exactly once, after every producer has
    finished. Iterating the stream yields results until it is closed, then
    re-raises any unexpected producer error.
    """

    def __init__(self, capacity: int = RESULT_STREAM_CAPACITY, cancel_event: Optional[threading.Event] = None):
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=capacity)
        self._cancel = cancel_event if cancel_event is not None else threading.Event()
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        self.error: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def put(self, item: str) -> bool:
        while not self._cancel.is_set():
            try:
                self._queue.put(item, timeout=STREAM_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def close(self, error: Optional[BaseException] = None) -> None:
        with self._close_lock:
            if self._closed.is_set():
                return
            self.error = error
            self._closed.set()
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            # the consumer notices closure on its next empty poll.
            pass

    def __iter__(self) -> Iterator[str]:
        while True:
            try:
                item = self._queue.get(timeout=STREAM_POLL_INTERVAL)
            except queue.Empty:
                if self._closed.is_set() and self._queue.empty():
                    break
                continue
            if item is _CLOSED:
                break
            if self._cancel.is_set():
                # keep draining so producers unblock, but stop handing out results.
                continue
            yield item  # type: ignore[misc]

        if self.error is not None:
            if isinstance(self.error, FilesError):
                raise self.error
            raise DiscoveryError(f"directory walk failed: {self.error}") from self.error


class _Emitter:
    # applies the result ceiling and pushes accepted paths onto the stream.

    def __init__(self, stream: ResultStream, max_results: Optional[int]):
        self._stream = stream
        self._max_results = max_results
        # relaxed counter: next() on a shared count is not serialized with the put that
        # follows, so concurrent workers may overshoot the ceiling slightly.
        self._counter = itertools.count(1)
        self.limit_reached = threading.Event()

    def emit(self, rel_path: str) -> None:
        n = next(self._counter)
        if self._max_results is not None and n > self._max_results:
            self.limit_reached.set()
            raise ResultLimitReached(f"result ceiling of {self._max_results} reached")
        if not self._stream.put(rel_path):
            raise WalkInterrupted("walk cancelled")


class _PendingTasks:
    """Counts outstanding directory tasks and fires on_idle when the last one finishes."""

    def __init__(self, on_idle):
        self._count = 0
        self._lock = threading.Lock()
        self._on_idle = on_idle

    def add(self) -> None:
        with self._lock:
            self._count += 1

    def done(self) -> None:
        with self._lock:
            self._count -= 1
            idle = self._count == 0
        if idle:
            self._on_idle()


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name


def _list_directory(abs_dir: str) -> List[Tuple[str, bool]]:
    # lists one directory without following symlinks; a symlink counts as a plain entry.
    entries: List[Tuple[str, bool]] = []
    with os.scandir(abs_dir) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            entries.append((entry.name, is_dir))
    return entries


class DirectoryWalker:
    """
    Walks a directory tree and feeds accepted root-relative paths into a ResultStream.

    The sequential strategy runs one depth-first producer thread. The concurrent
    strategy submits one task per directory to a bounded thread pool; each task
    lists only its own directory, submits its subdirectories without waiting for
    them, and emits its accepted entries. Either way the stream is closed once
    the walk is over, whether it completed, hit the ceiling, or was cancelled.
    """

    def __init__(
        self,
        root: Path,
        options: WalkOptions,
        path_filter: Optional[PathFilter] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.root = str(root)
        self.options = options
        self.path_filter = path_filter if path_filter is not None else PathFilter(options)
        self.stream = ResultStream(cancel_event=cancel_event)
        self._emitter = _Emitter(self.stream, options.max_results)
        self._error: Optional[BaseException] = None
        self._error_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[_PendingTasks] = None
        self._started = False

    def start(self) -> ResultStream:
        if self._started:
            raise DiscoveryError("walker already started")
        self._started = True
        log.info(
            "path_discovery_walker_started",
            root=self.root,
            strategy=self.options.strategy.value,
            max_results=self.options.max_results,
        )
        if self.options.strategy is WalkStrategy.CONCURRENT:
            self._start_concurrent()
        else:
            self._start_sequential()
        return self.stream

    def _abs(self, rel_dir: str) -> str:
        return os.path.join(self.root, rel_dir) if rel_dir else self.root

    def _should_stop(self) -> bool:
        return self.stream.cancelled or self._emitter.limit_reached.is_set()

    def _record_error(self, error: BaseException) -> None:
        with self._error_lock:
            if self._error is None:
                self._error = error

    def _root_error(self, e: OSError) -> WalkRootError:
        return WalkRootError(f"cannot read {self.root!r}: {e.strerror or e}")

    # -- sequential ---------------------------------------------------------

    def _start_sequential(self) -> None:
        thread = threading.Thread(target=self._run_sequential, name="fastfiles-walker", daemon=True)
        thread.start()

    def _run_sequential(self) -> None:
        try:
            self._walk_sequential()
        except ResultLimitReached:
            log.info("walk_stopped_at_result_ceiling", max_results=self.options.max_results)
        except WalkInterrupted:
            log.info("walk_cancelled")
        except Exception as e:
            log.error("sequential_walk_failed", error=str(e), exc_info=True)
            self._record_error(e)
        finally:
            self.stream.close(self._error)

    def _walk_sequential(self) -> None:
        path_filter = self.path_filter
        stack: List[str] = [""]
        while stack:
            if self.stream.cancelled:
                raise WalkInterrupted("walk cancelled")
            rel_dir = stack.pop()
            try:
                entries = _list_directory(self._abs(rel_dir))
            except OSError as e:
                if not rel_dir:
                    raise self._root_error(e)
                log.debug("subtree_read_error_skipped", path=rel_dir, error=str(e))
                continue

            subdirs: List[str] = []
            for name, is_dir in entries:
                rel_path = _join(rel_dir, name)
                if path_filter.rejects(rel_path, is_dir):
                    continue
                if path_filter.should_emit(rel_path, is_dir):
                    self._emitter.emit(rel_path)
                if is_dir:
                    subdirs.append(rel_path)
            # reversed so the first listed subdirectory is descended into first.
            stack.extend(reversed(subdirs))
        log.info("walk_completed", strategy=WalkStrategy.SEQUENTIAL.value)

    # -- concurrent ---------------------------------------------------------

    def _start_concurrent(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self.options.workers, thread_name_prefix="fastfiles-walker"
        )
        self._pending = _PendingTasks(on_idle=self._finish_concurrent)
        self._spawn("")

    def _spawn(self, rel_dir: str) -> None:
        assert self._executor is not None and self._pending is not None
        self._pending.add()
        try:
            self._executor.submit(self._expand, rel_dir)
        except RuntimeError as e:
            # interpreter shutdown; nothing will run this task.
            log.debug("directory_task_rejected", path=rel_dir, error=str(e))
            self._pending.done()

    def _expand(self, rel_dir: str) -> None:
        assert self._pending is not None
        path_filter = self.path_filter
        try:
            if self._should_stop():
                return
            try:
                entries = _list_directory(self._abs(rel_dir))
            except OSError as e:
                if not rel_dir:
                    self._record_error(self._root_error(e))
                else:
                    log.debug("subtree_read_error_skipped", path=rel_dir, error=str(e))
                return

            for name, is_dir in entries:
                if self._should_stop():
                    return
                rel_path = _join(rel_dir, name)
                if path_filter.rejects(rel_path, is_dir):
                    continue
                if is_dir:
                    self._spawn(rel_path)
                if path_filter.should_emit(rel_path, is_dir):
                    self._emitter.emit(rel_path)
        except ResultLimitReached:
            log.debug("worker_stopped_at_result_ceiling", path=rel_dir)
        except WalkInterrupted:
            log.debug("worker_cancelled", path=rel_dir)
        except Exception as e:
            log.error("directory_task_failed", path=rel_dir, error=str(e), exc_info=True)
            self._record_error(e)
        finally:
            self._pending.done()

    def _finish_concurrent(self) -> None:
        if self._emitter.limit_reached.is_set():
            log.info("walk_stopped_at_result_ceiling", max_results=self.options.max_results)
        elif self.stream.cancelled:
            log.info("walk_cancelled")
        else:
            log.info("walk_completed", strategy=WalkStrategy.CONCURRENT.value)
        self.stream.close(self._error)
        if self._executor is not None:
            self._executor.shutdown(wait=False)


def walk_paths(
    root: Path,
    options: WalkOptions,
    cancel_event: Optional[threading.Event] = None,
) -> ResultStream:
    """Starts walking root in the background and returns the stream of accepted relative paths."""
    return DirectoryWalker(root, options, cancel_event=cancel_event).start()
