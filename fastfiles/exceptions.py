# fastfiles/exceptions.py
class FilesError(Exception):
    # base exception for all application-specific errors.
    pass

class ConfigError(FilesError):
    # errors related to configuration: bad patterns, bad option values, bad config files.
    pass

class WalkRootError(ConfigError):
    # the walk root is missing, not a directory, or unreadable.
    pass

class DiscoveryError(FilesError):
    # unexpected failures inside a traversal worker.
    pass

class ResultLimitReached(FilesError):
    # raised inside the walk when the result ceiling is hit. not a failure.
    pass

class WalkInterrupted(FilesError):
    # the walk was cancelled before it completed.
    pass

class OutputError(FilesError):
    # errors during output operations.
    pass
