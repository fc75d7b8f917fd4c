"""Exception hierarchy for JIRA Release Compliance."""


class ReleaseCheckError(Exception):
    """Base exception for release compliance errors."""

    pass


class ConfigNotFoundError(ReleaseCheckError):
    """Configuration file not found and no credentials in the environment."""

    pass


class InvalidConfigError(ReleaseCheckError):
    """Configuration or command line selectors are invalid."""

    pass


class GitCommandError(ReleaseCheckError):
    """Reading commit history from a repository failed."""

    pass


class JiraAuthError(ReleaseCheckError):
    """JIRA authentication failed."""

    pass


class JiraConnectionError(ReleaseCheckError):
    """Cannot connect to JIRA server."""

    pass


class JiraRequestError(ReleaseCheckError):
    """JIRA answered a search with an unsuccessful status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
