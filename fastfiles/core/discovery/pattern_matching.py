# fastfiles/core/discovery/pattern_matching.py
import re
from typing import Iterable, Optional, Pattern
import pathspec
import structlog

from fastfiles.config.settings import WalkOptions
from fastfiles.exceptions import ConfigError

log = structlog.get_logger(__name__)

def compile_regex(pattern: str, option_name: str) -> Pattern[str]:
    # compiles a user regex; a bad pattern is fatal before anything is walked.
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"invalid {option_name} pattern {pattern!r}: {e}")

def compile_glob_patterns_to_spec(glob_patterns: Iterable[str]) -> Optional[pathspec.PathSpec]:
    # compiles gitignore-style globs into a pathspec object for matching.
    glob_patterns = list(glob_patterns)
    if not glob_patterns:
        return None
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", glob_patterns)
    except Exception as e:
        raise ConfigError(f"error compiling ignore globs {glob_patterns}: {e}")

class PathFilter:
    """
    Pure predicates over paths relative to the walk root.

    Paths are forward-slash strings without a leading "./", e.g. "src/main.go".
    The root itself is the empty string and is never hidden or ignored.
    """

    def __init__(self, options: WalkOptions):
        self.skip_hidden = options.skip_hidden
        self.directories_only = options.directories_only
        self.ignore_re = compile_regex(options.ignore_pattern, "ignore")
        self.match_re = compile_regex(options.match_pattern, "match") if options.match_pattern else None
        self.ignore_spec = compile_glob_patterns_to_spec(options.ignore_globs)
        log.debug(
            "path_filter_compiled",
            ignore=options.ignore_pattern,
            match=options.match_pattern,
            globs=list(options.ignore_globs),
            skip_hidden=self.skip_hidden,
        )

    def is_hidden(self, rel_path: str) -> bool:
        if not self.skip_hidden or not rel_path:
            return False
        return _base_name(rel_path).startswith(".")

    def is_ignored(self, rel_path: str, is_dir: bool = False) -> bool:
        if not rel_path:
            return False
        if self.ignore_re.search(rel_path):
            return True
        if self.ignore_spec is not None:
            # gitignore semantics: a trailing slash marks a directory-only rule.
            candidate = rel_path + "/" if is_dir else rel_path
            return self.ignore_spec.match_file(candidate)
        return False

    def is_matched(self, name: str) -> bool:
        if self.match_re is None:
            return True
        return self.match_re.search(name) is not None

    def rejects(self, rel_path: str, is_dir: bool = False) -> bool:
        # hidden first, then ignore. for a directory either one prunes the whole subtree.
        return self.is_hidden(rel_path) or self.is_ignored(rel_path, is_dir)

    def should_emit(self, rel_path: str, is_dir: bool) -> bool:
        # the match check only decides emission, never traversal.
        if is_dir != self.directories_only:
            return False
        return self.is_matched(_base_name(rel_path))

def _base_name(rel_path: str) -> str:
    return rel_path.rsplit("/", 1)[-1]

