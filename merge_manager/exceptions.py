"""Custom exception hierarchy for merge-manager.

Exceptions are split by how the run reacts to them: configuration and
credential errors stop the process before any host call, enumeration errors
abort an in-progress run, and code-host or unsupported-operation errors raised
while applying an action are contained to the pull request being processed.

Exception Hierarchy:
    MergeManagerError (base)
    ├── ConfigurationError
    ├── CredentialError
    ├── ExternalServiceError
    │   ├── CodeHostError
    │   └── EnumerationError
    └── UnsupportedOperationError

Example Usage:
    >>> from merge_manager.exceptions import ConfigurationError
    >>> try:
    ...     options = RunOptions.from_yaml(path)
    ... except ConfigurationError as e:
    ...     print(e.message)
"""


class MergeManagerError(Exception):
    """Base exception for all merge-manager errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(MergeManagerError):
    """Run options are invalid.

    Examples:
        - Unknown action in the action list
        - Unknown merge strategy
        - Unreadable or malformed YAML options file
    """

    pass


class CredentialError(MergeManagerError):
    """The GitHub token is missing or unusable."""

    def __init__(self, message: str, variable: str | None = None) -> None:
        self.variable = variable
        full_message = message if variable is None else f"{message} (variable: {variable})"
        super().__init__(full_message)
        self.message = message


class ExternalServiceError(MergeManagerError):
    """Communication with the code host failed.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code, when the host returned one
        response_text: Raw response body, when available
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            response_text: Response body text (if applicable)
        """
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        # str() carries the status; .message stays bare so wrappers can re-add it
        self.message = message


class CodeHostError(ExternalServiceError):
    """A single code-host call failed.

    Raised by every client adapter regardless of transport, so callers never
    need to know about PyGithub or httpx exception types.
    """

    pass


class EnumerationError(ExternalServiceError):
    """Listing repositories or pull requests failed.

    Always fatal to the run: continuing with a partial listing would silently
    skip part of the organization.
    """

    pass


class UnsupportedOperationError(MergeManagerError):
    """The selected transport cannot perform the requested action."""

    def __init__(self, operation: str, transport: str) -> None:
        self.operation = operation
        self.transport = transport
        super().__init__(f"{operation} is not supported by the {transport} transport")
