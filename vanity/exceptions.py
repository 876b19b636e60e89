class VanityException(Exception):
    """Base exception for vanity application."""
    status_code = 500  # Default status code
    message: str

    def __init__(self, message: str | None = None, *args):
        super().__init__(message, *args)
        if message is not None:
            self.message = message
        elif args and args[0]:
            self.message = str(args[0])
        else:
            self.message = self.__class__.__name__


class HTTPNotFoundException(VanityException):
    """Raised when neither an import path nor a route matches (404)."""
    status_code = 404


class HTTPMethodNotAllowedException(VanityException):
    """Raised when a route is found but the method is not allowed (405)."""
    status_code = 405

    def __init__(self, message: str, allowed_methods: list[str]):
        super().__init__(message)
        self.allowed_methods = allowed_methods


class NoMatchError(VanityException):
    """No configured import path matched the request path.

    Signals that the request belongs to the next handler in the chain. It is
    caught by the dispatcher and is never rendered to a client directly.
    """
    status_code = 404

    def __init__(self, path: str):
        super().__init__(f"No import path configured for {path!r}")
        self.path = path


class RenderError(VanityException):
    """Writing the go-get metadata document failed after a match."""
    status_code = 500


class VanityConfigError(VanityException):
    """Custom exception for configuration errors."""


class ConfigParseError(VanityConfigError):
    """A gopkg directive has the wrong shape or argument count."""

    def __init__(self, message: str, *, index: int | None = None, args: list | None = None):
        if index is not None:
            message = f"gopkg directive #{index + 1}: {message}"
        super().__init__(message)
        self.index = index
        self.directive_args = args


class PatternCompileError(VanityConfigError):
    """A path template could not be turned into a matching expression."""

    def __init__(self, message: str, *, path: str):
        super().__init__(f"{message} (path template {path!r})")
        self.path = path
