# src/suitetrack/exceptions.py

"""
Custom exceptions for suitetrack.
"""


class SuitetrackError(Exception):
    """Base class for all suitetrack errors."""

    def __init__(self, message: str, details: Exception | None = None):
        self.details = details
        super().__init__(message)
        if details and hasattr(self, "add_note"):
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ConfigurationError(SuitetrackError):
    """Raised when the configuration file is missing, unreadable or invalid."""

    pass


# --- Tree errors ---


class TreeError(SuitetrackError):
    """Base class for test tree errors."""

    pass


class MalformedTreeError(TreeError):
    """A tree-shape payload is structurally invalid."""

    pass


class UnknownNodeError(TreeError):
    """A node id is not present in the tree index."""

    def __init__(self, node_id: str | None):
        self.node_id = node_id
        super().__init__(f"Unknown node id: {node_id!r}")


class NotAContainerError(TreeError):
    """An operation that needs a suite was given a test."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} is not a suite")


# --- Session errors ---


class SessionError(SuitetrackError):
    """Base class for runner session errors."""

    pass


class AlreadyRunningError(SessionError):
    """A run was requested while another one is still active."""

    pass


class ProcessLaunchError(SessionError):
    """The runner process could not be started."""

    pass


class AbnormalTerminationError(SessionError):
    """The runner exited with a non-zero status or closed before the run ended."""

    def __init__(self, message: str, exit_code: int | None = None):
        self.exit_code = exit_code
        full_message = message
        if exit_code is not None:
            full_message += f" (exit code {exit_code})"
        super().__init__(full_message)


# --- Persistence errors ---


class SnapshotError(SuitetrackError):
    """A persisted snapshot could not be read or written."""

    def __init__(self, message: str, path: str | None = None, details: Exception | None = None):
        self.path = path
        full_message = message
        if path:
            full_message += f" (File: '{path}')"
        super().__init__(full_message, details=details)


# 🔼⚙️
