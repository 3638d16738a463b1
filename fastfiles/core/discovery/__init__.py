# fastfiles/core/discovery/__init__.py
"""
Directory traversal and path filtering for fastfiles.

This package walks a directory tree (sequentially or with a pool of workers),
filters entries by hidden/ignore/match rules, and presents accepted paths.
"""
from .pattern_matching import PathFilter
from .path_resolution import PathPresenter, relative_display_base, resolve_walk_root
from .walker import DirectoryWalker, ResultStream, walk_paths

__all__ = [
    "DirectoryWalker",
    "PathFilter",
    "PathPresenter",
    "ResultStream",
    "relative_display_base",
    "resolve_walk_root",
    "walk_paths",
]
