# fastfiles/core/discovery/path_resolution.py
import os
from pathlib import Path
from typing import Optional, Union
import structlog

from fastfiles.exceptions import WalkRootError

log = structlog.get_logger(__name__)

def resolve_walk_root(raw_root: Optional[Union[str, Path]] = None) -> Path:
    # turns the user-supplied root into an absolute directory path, failing fast if it cannot be walked.
    raw = os.path.expanduser(str(raw_root)) if raw_root else "."
    root = Path(os.path.abspath(raw))

    if not root.exists():
        raise WalkRootError(f"{raw!r}: no such file or directory")
    if not root.is_dir():
        raise WalkRootError(f"{raw!r} is not a directory")
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise WalkRootError(f"cannot read {raw!r}: {e.strerror or e}")

    log.info("walk_root_resolved", raw=raw, root=str(root))
    return root

def relative_display_base(raw_root: Optional[Union[str, Path]], root: Path) -> str:
    # the prefix relative-mode output carries: the root as typed, made relative to the working directory.
    raw = os.path.expanduser(str(raw_root)) if raw_root else "."
    if os.path.isabs(raw):
        base = str(root)
    else:
        try:
            base = os.path.relpath(root, os.getcwd())
        except ValueError:
            # no relative form exists across windows drives.
            base = str(root)
    base = base.replace(os.sep, "/")
    return "" if base == "." else base.rstrip("/") + "/"

class PathPresenter:
    """
    Turns a walked root-relative path into its printed form.

    Absolute mode joins the resolved root with the path. Relative mode joins
    the display base instead, so printed paths resolve from the working
    directory to the same entries. Both prefixes are fixed at construction.
    """

    def __init__(self, root: Path, absolute: bool = False, base: str = ""):
        self.absolute = absolute
        if absolute:
            self._prefix = root.as_posix().rstrip("/") + "/"
        else:
            self._prefix = base

    def present(self, rel_path: str) -> str:
        rel_path = rel_path.replace(os.sep, "/") if os.sep != "/" else rel_path
        return self._prefix + rel_path
