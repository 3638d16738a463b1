# fastfiles/config/__init__.py
from .settings import (
    WalkOptions,
    WalkStrategy,
    DEFAULT_IGNORE_PATTERN,
    IGNORE_PATTERN_ENV_VAR,
)

__all__ = ["WalkOptions", "WalkStrategy", "DEFAULT_IGNORE_PATTERN", "IGNORE_PATTERN_ENV_VAR"]
