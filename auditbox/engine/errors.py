"""
Exceptions raised by the overlay audit engine.

Per-path failures during a scan or a batch operation are never raised; they
are reported as ScanIssue or Outcome records. These exceptions cover caller
mistakes and the one fatal case, invalid roots.
"""


class AuditError(Exception):
    """Base class for overlay audit errors."""


class InvalidRootError(AuditError):
    """The overlay or base root does not exist or is not a directory."""

    def __init__(self, label: str, path: str):
        self.label = label
        self.path = path
        super().__init__(f"{label} root is not a directory: {path}")


class UnknownPathError(AuditError, KeyError):
    """A relative path that is not part of the audited tree."""

    def __init__(self, relative_path: str):
        self.relative_path = relative_path
        super().__init__(relative_path)

    def __str__(self):
        return f"Path is not in the audited tree: {self.relative_path or '.'}"


class NotRenderableError(AuditError):
    """Diffs can only be rendered for file nodes."""


class CompareIoError(AuditError):
    """An overlay or base entry could not be read during comparison."""

    def __init__(self, relative_path: str, cause: OSError):
        self.relative_path = relative_path
        self.cause = cause
        super().__init__(f"Cannot compare {relative_path}: {cause}")
