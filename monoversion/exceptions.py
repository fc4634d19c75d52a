"""Custom exceptions for monoversion."""


class MonoversionError(Exception):
    """Base exception for all monoversion errors."""


class ConfigError(MonoversionError):
    """Raised when the config file is not valid JSON or fails validation."""


class ConfigNotFoundError(ConfigError):
    """Raised when no config file exists in the requested directory."""


class LockfileError(MonoversionError):
    """Raised when a lockfile exists but cannot be decoded."""


class MissingArgumentError(MonoversionError):
    """Raised when a required argument is missing; nothing has been written yet."""


class ManifestWriteError(MonoversionError):
    """Raised when a manifest cannot be rewritten."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")
