# fastfiles/config/settings.py
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple
import structlog

log = structlog.get_logger(__name__)

IGNORE_PATTERN_ENV_VAR = "FILES_IGNORE_PATTERN"
# searched against the forward-slash path relative to the walk root, so nested VCS dirs are pruned too.
DEFAULT_IGNORE_PATTERN = r"(^|/)(\.git|\.hg|\.svn|_darcs|\.bzr)$"
RESULT_STREAM_CAPACITY = 20
DEFAULT_WORKERS = 2 * (os.cpu_count() or 4)

class WalkStrategy(Enum):
    # defines how the directory tree is traversed.
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"

    @classmethod
    def from_string(cls, s: Optional[str]) -> "WalkStrategy":
        if not s:
            return cls.SEQUENTIAL
        try:
            return cls(s.lower())
        except ValueError:
            log.warning("invalid_walk_strategy_string", input_string=s)
            return cls.SEQUENTIAL

@dataclass(frozen=True)
class WalkOptions:
    # resolved once at startup and shared read-only by every traversal worker.
    ignore_pattern: str = DEFAULT_IGNORE_PATTERN
    ignore_globs: Tuple[str, ...] = field(default_factory=tuple)
    match_pattern: Optional[str] = None
    skip_hidden: bool = True
    directories_only: bool = False
    max_results: Optional[int] = None
    sort: bool = False
    absolute: bool = False
    strategy: WalkStrategy = WalkStrategy.SEQUENTIAL
    workers: int = DEFAULT_WORKERS
    progress: bool = False

    def __post_init__(self):
        # a non-positive ceiling means "no ceiling".
        if self.max_results is not None and self.max_results <= 0:
            object.__setattr__(self, "max_results", None)
        if self.workers < 1:
            object.__setattr__(self, "workers", 1)
