"""JIRA API client for release-scoped issue searches."""

import logging
from concurrent.futures import ThreadPoolExecutor

from jira import JIRA, JIRAError
from requests.exceptions import RequestException

from jira_release_compliance.config import Config
from jira_release_compliance.models import ParentRef, RawTicket

logger = logging.getLogger(__name__)

KEY_BATCH_SIZE = 20
PAGE_SIZE = 100

KEY_SEARCH_FIELDS = [
    "summary",
    "fixVersions",
    "issuetype",
    "parent",
    "parent.fields.summary",
    "parent.fields.issuetype",
    "parent.fields.fixVersions",
]
FIX_VERSION_SEARCH_FIELDS = ["key", "summary", "issuetype", "fixVersions", "parent"]


class AuthenticationError(Exception):
    """Raised when JIRA authentication fails."""

    pass


class ConnectionError(Exception):
    """Raised when JIRA server cannot be reached."""

    pass


class RequestError(Exception):
    """Raised when JIRA answers with an unsuccessful status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def chunks(items: list, size: int) -> list[list]:
    """Split a list into consecutive chunks of at most ``size`` items."""
    return [items[i:i + size] for i in range(0, len(items), size)]


def _version_names(versions: list[dict] | None) -> tuple[str, ...]:
    return tuple(v.get("name", "") for v in versions or [])


def quote_jql(value: str) -> str:
    """Quote a value for use as a JQL string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def issue_to_ticket(issue: dict) -> RawTicket:
    """Convert a raw search result issue into a RawTicket."""
    fields = issue.get("fields") or {}
    issue_type = fields.get("issuetype") or {}

    parent = None
    parent_raw = fields.get("parent")
    if parent_raw and parent_raw.get("key"):
        parent_fields = parent_raw.get("fields") or {}
        parent_versions = parent_fields.get("fixVersions")
        parent = ParentRef(
            key=parent_raw["key"],
            summary=parent_fields.get("summary"),
            issue_type=(parent_fields.get("issuetype") or {}).get("name"),
            fix_versions=None if parent_versions is None else _version_names(parent_versions),
        )

    return RawTicket(
        key=issue.get("key", ""),
        summary=fields.get("summary") or "",
        issue_type=issue_type.get("name", ""),
        is_subtask=bool(issue_type.get("subtask")),
        fix_versions=_version_names(fields.get("fixVersions")),
        parent=parent,
    )


class JiraClient:
    """Client for interacting with JIRA Cloud API."""

    def __init__(self, config: Config, max_workers: int = 1) -> None:
        """Initialize JIRA client with configuration."""
        self.config = config
        self.max_workers = max(1, max_workers)
        self._client: JIRA | None = None

    def _get_client(self) -> JIRA:
        """Get or create JIRA client instance."""
        if self._client is None:
            try:
                self._client = JIRA(
                    server=self.config.jira_url,
                    basic_auth=(self.config.jira_email, self.config.jira_api_token),
                    options={"rest_api_version": "3"},
                    timeout=15,
                    max_retries=0,
                    get_server_info=False,
                )
            except JIRAError as e:
                if e.status_code == 401:
                    raise AuthenticationError(
                        "Authentication failed. Check your email and API token."
                    ) from e
                raise RequestError(str(e), e.status_code) from e
        return self._client

    def search(self, jql: str, fields: list[str]) -> list[dict]:
        """Run a JQL search, following ``nextPageToken`` until the last page.

        Returns:
            List of raw issue dicts, in the order JIRA returned them

        Raises:
            AuthenticationError: If authentication fails
            ConnectionError: If the server cannot be reached
            RequestError: For any other unsuccessful response
        """
        client = self._get_client()
        url = f"{self.config.jira_url.rstrip('/')}/rest/api/3/search/jql"
        params = {"jql": jql, "maxResults": PAGE_SIZE, "fields": ",".join(fields)}

        issues: list[dict] = []
        token = None
        while True:
            page_params = dict(params)
            if token:
                page_params["nextPageToken"] = token
            try:
                resp = client._session.get(url, params=page_params)
            except JIRAError as e:
                if e.status_code == 401:
                    raise AuthenticationError(
                        "Request failed with 401 - check if credentials are valid."
                    ) from e
                raise RequestError(f"JIRA search failed: {e.text or e}", e.status_code) from e
            except RequestException as e:
                raise ConnectionError(
                    f"Cannot connect to JIRA server at {self.config.jira_url}. "
                    "Check the URL and your network connection."
                ) from e

            if resp.status_code == 401:
                raise AuthenticationError(
                    "Request failed with 401 - check if credentials are valid."
                )
            if resp.status_code >= 400:
                raise RequestError(
                    f"JIRA search failed {resp.status_code}: {resp.text[:200]}",
                    resp.status_code,
                )

            try:
                data = resp.json()
            except ValueError as e:
                raise RequestError(
                    f"JIRA returned a non-JSON response: {resp.text[:200]}",
                    resp.status_code,
                ) from e

            warnings = data.get("warningMessages")
            if warnings:
                logger.warning("JIRA response has warnings: %s", warnings)

            issues.extend(data.get("issues", []))
            token = data.get("nextPageToken")
            if data.get("isLast", True) or not token:
                break

        return issues

    def fetch_issues_by_keys(self, keys: list[str]) -> list[RawTicket]:
        """Fetch issues by key, in batches of KEY_BATCH_SIZE.

        Batches are independent; with ``max_workers > 1`` they run on a
        thread pool. Results are always concatenated in batch order.
        """
        batches = chunks(list(keys), KEY_BATCH_SIZE)
        if not batches:
            return []

        def _fetch(batch: list[str]) -> list[dict]:
            jql = f"key IN ({','.join(batch)})"
            return self.search(jql, KEY_SEARCH_FIELDS)

        if self.max_workers == 1 or len(batches) == 1:
            results = [_fetch(batch) for batch in batches]
        else:
            # Create the session up front so workers do not race on it.
            self._get_client()
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(_fetch, batches))

        logger.debug("Fetched %d batch(es) for %d key(s)", len(batches), len(keys))
        return [issue_to_ticket(issue) for batch in results for issue in batch]

    def fetch_issues_by_fix_version(self, fix_version: str) -> list[RawTicket]:
        """Fetch every issue whose fix versions include ``fix_version``."""
        jql = f"fixVersion = {quote_jql(fix_version)} ORDER BY key ASC"
        return [issue_to_ticket(issue) for issue in self.search(jql, FIX_VERSION_SEARCH_FIELDS)]
