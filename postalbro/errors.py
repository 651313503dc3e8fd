"""Exceptions raised by command handlers and mapped to exit codes in main()."""


class PostalbroError(Exception):
    """Base class for every user-facing failure."""
    exit_code = 1


class ValidationError(PostalbroError):
    """Bad user input: missing method/url, malformed JSON, bad file, conflicting flags."""


class StorageError(PostalbroError):
    """The saved collection could not be read or written."""


class TransportError(PostalbroError):
    """The request was sent but no response came back."""


class RequestBuildError(PostalbroError):
    """The request could not be constructed."""


class NothingToDo(PostalbroError):
    """No matching data, or the user aborted. Reported as a warning."""
    exit_code = 0
