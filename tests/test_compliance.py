"""Tests for the release compliance check."""

from unittest.mock import MagicMock, patch

import pytest

from jira_release_compliance.compliance import (
    find_fix_version_mismatches,
    report_to_dict,
    resolve_config,
    run_compliance_check,
)
from jira_release_compliance.config import AuditSettings, Config
from jira_release_compliance.exceptions import (
    ConfigNotFoundError,
    GitCommandError,
    InvalidConfigError,
    JiraAuthError,
    JiraConnectionError,
    JiraRequestError,
)
from jira_release_compliance.jira_client import AuthenticationError, ConnectionError, RequestError
from jira_release_compliance.models import (
    Commit,
    IssueSummary,
    ParentRef,
    RawTicket,
    Severity,
)


def _make_config():
    return Config("https://example.atlassian.net", "dev@example.com", "token")


def _make_settings(**overrides):
    values = {
        "repositories": ["/src/api"],
        "from_refs": ["v6.14.0"],
        "to_refs": ["v6.15.0"],
        "fix_version": "6.15",
    }
    values.update(overrides)
    return AuditSettings(**values)


def _commit(message, repository="api", hash_="0123456789"):
    return Commit(
        hash=hash_,
        author="Jane Doe",
        message=message,
        first_line=message.split("\n")[0],
        repository=repository,
    )


def _ticket(key, fix_versions=("6.15",), issue_type="Story", parent=None, is_subtask=False):
    return RawTicket(
        key=key,
        summary=f"Summary {key}",
        issue_type=issue_type,
        is_subtask=is_subtask,
        fix_versions=tuple(fix_versions),
        parent=parent,
    )


def _make_clients(commits, key_tickets, release_tickets, parents=None):
    git_client = MagicMock()
    git_client.get_commits.return_value = commits

    jira_client = MagicMock()

    def fetch_by_keys(keys):
        if parents and set(keys) <= set(parents):
            return [parents[k] for k in keys]
        return key_tickets

    jira_client.fetch_issues_by_keys.side_effect = fetch_by_keys
    jira_client.fetch_issues_by_fix_version.return_value = release_tickets
    return git_client, jira_client


class TestRunComplianceCheck:
    """Tests for run_compliance_check."""

    def test_extracts_tickets_and_drops_excluded_commits(self):
        commits = [_commit("ABC-1 fix"), _commit("ABC-2 add"), _commit("chore (NO-TASK)")]
        git_client, jira_client = _make_clients(
            commits, [_ticket("ABC-1"), _ticket("ABC-2")], [_ticket("ABC-1"), _ticket("ABC-2")]
        )

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        assert report.ticket_keys == ["ABC-1", "ABC-2"]
        assert report.commits_without_tickets == []
        assert len(report.excluded_commits) == 1
        jira_client.fetch_issues_by_keys.assert_called_once_with(["ABC-1", "ABC-2"])
        assert [t.key for t in report.reconciliation.found] == ["ABC-1", "ABC-2"]
        assert report.mismatches == []
        assert report.severity is None

    def test_lower_fix_version_is_a_warning(self):
        git_client, jira_client = _make_clients(
            [_commit("ABC-1 fix")], [_ticket("ABC-1", ("6.14",))], []
        )

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        assert [m.key for m in report.mismatches] == ["ABC-1"]
        assert report.severity is Severity.WARNING
        assert report.higher_version_count == 0

    def test_higher_fix_version_is_an_error(self):
        git_client, jira_client = _make_clients(
            [_commit("ABC-1 fix")], [_ticket("ABC-1", ("6.16",))], []
        )

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        assert [m.key for m in report.mismatches] == ["ABC-1"]
        assert report.mismatches[0].higher_versions == ["6.16"]
        assert report.severity is Severity.ERROR

    def test_reports_missing_release_tickets(self):
        git_client, jira_client = _make_clients(
            [_commit("ABC-1 fix"), _commit("no ticket here")],
            [_ticket("ABC-1")],
            [_ticket("ABC-1"), _ticket("ABC-5"), _ticket("ABC-9", issue_type="Epic")],
        )

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        assert [t.key for t in report.reconciliation.missing] == ["ABC-5"]
        assert list(report.missing_issues) == ["ABC-5"]
        assert report.reconciliation.total == 2
        assert [c.message for c in report.commits_without_tickets] == ["no ticket here"]

    def test_refetches_parents_of_subtasks(self):
        subtask = _ticket(
            "ABC-2",
            issue_type="Sub-task",
            is_subtask=True,
            parent=ParentRef(key="ABC-1", summary="Parent", issue_type="Story"),
        )
        git_client, jira_client = _make_clients(
            [_commit("ABC-2 subtask work")],
            [subtask],
            [_ticket("ABC-1")],
            parents={"ABC-1": _ticket("ABC-1", ("6.15",))},
        )

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        assert report.issues["ABC-1"].fix_versions == ["6.15"]
        assert report.issues["ABC-1"].needs_fetch is False
        assert [t.key for t in report.reconciliation.found] == ["ABC-1"]
        assert report.mismatches == []

    def test_parent_of_found_subtask_can_still_mismatch(self):
        # Parent in commits carries 6.14, but its subtask is tagged for 6.15
        parent = _ticket("ABC-1", ("6.14",))
        subtask = _ticket(
            "ABC-2", ("6.15",), "Sub-task", ParentRef(key="ABC-1", fix_versions=("6.14",)), True
        )
        git_client, jira_client = _make_clients([_commit("ABC-1 work")], [parent], [subtask])

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        assert [t.key for t in report.reconciliation.found] == ["ABC-2"]
        assert [m.key for m in report.mismatches] == ["ABC-1"]

    def test_collects_all_repositories_before_jira(self):
        calls = []
        git_client = MagicMock()
        git_client.get_commits.side_effect = lambda repo, f, t: calls.append(("git", repo, f, t)) or [
            _commit(f"ABC-{len(calls)} work", repository=repo)
        ]
        jira_client = MagicMock()
        jira_client.fetch_issues_by_keys.side_effect = lambda keys: calls.append(("jira", keys)) or []
        jira_client.fetch_issues_by_fix_version.return_value = []
        settings = _make_settings(
            repositories=["/src/api", "/src/web"], from_refs=["v1", "v2"], to_refs=["main"]
        )

        report = run_compliance_check(settings, _make_config(), git_client, jira_client)

        assert calls == [
            ("git", "/src/api", "v1", "main"),
            ("git", "/src/web", "v2", "main"),
            ("jira", ["ABC-1", "ABC-2"]),
        ]
        assert [c.repository for c in report.commits] == ["/src/api", "/src/web"]

    def test_no_tickets_skips_key_fetch(self):
        git_client, jira_client = _make_clients([_commit("Merge branch 'x'")], [], [])

        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        jira_client.fetch_issues_by_keys.assert_not_called()
        assert report.commits == []
        assert report.issues == {}

    def test_invalid_settings_fail_before_io(self):
        git_client, jira_client = _make_clients([], [], [])
        settings = _make_settings(from_refs=["a", "b"])

        with pytest.raises(InvalidConfigError, match="--from"):
            run_compliance_check(settings, _make_config(), git_client, jira_client)
        git_client.get_commits.assert_not_called()

    def test_git_failure_aborts_run(self):
        git_client, jira_client = _make_clients([], [], [])
        git_client.get_commits.side_effect = GitCommandError("bad revision")

        with pytest.raises(GitCommandError):
            run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)
        jira_client.fetch_issues_by_keys.assert_not_called()

    @pytest.mark.parametrize(
        "client_error, expected",
        [
            (AuthenticationError("401"), JiraAuthError),
            (ConnectionError("unreachable"), JiraConnectionError),
            (RequestError("HTTP 500", 500), JiraRequestError),
        ],
    )
    def test_translates_jira_errors(self, client_error, expected):
        git_client, jira_client = _make_clients([_commit("ABC-1 fix")], [], [])
        jira_client.fetch_issues_by_keys.side_effect = client_error

        with pytest.raises(expected):
            run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)
        jira_client.fetch_issues_by_fix_version.assert_not_called()

    def test_request_error_keeps_status_code(self):
        git_client, jira_client = _make_clients([_commit("ABC-1 fix")], [], [])
        jira_client.fetch_issues_by_keys.side_effect = RequestError("HTTP 503", 503)

        with pytest.raises(JiraRequestError) as exc_info:
            run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)
        assert exc_info.value.status_code == 503

    def test_stages_logged_in_order(self, caplog):
        git_client, jira_client = _make_clients(
            [_commit("ABC-1 fix")], [_ticket("ABC-1", ("6.14",))], []
        )
        logged_before_mismatches: list[str] = []

        def _find_mismatches(*args):
            logged_before_mismatches.extend(r.getMessage() for r in caplog.records)
            return find_fix_version_mismatches(*args)

        with (
            caplog.at_level("DEBUG", logger="jira_release_compliance.compliance"),
            patch(
                "jira_release_compliance.compliance.find_fix_version_mismatches",
                side_effect=_find_mismatches,
            ),
        ):
            run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        stages = [
            r.getMessage().split()[1]
            for r in caplog.records
            if r.getMessage().startswith("Stage:")
        ]
        assert stages == [
            "init",
            "version_range_resolved",
            "commits_collected",
            "tickets_fetched",
            "fix_version_checked",
            "report_ready",
            "done",
        ]
        assert not any("fix_version_checked" in m for m in logged_before_mismatches)


class TestFindFixVersionMismatches:
    """Tests for find_fix_version_mismatches."""

    def _issue(self, key, versions):
        return IssueSummary(key=key, summary="", issue_type="Story", fix_versions=list(versions))

    def test_matching_issue_is_not_reported(self):
        issues = {"ABC-1": self._issue("ABC-1", ["6.14", "6.15"])}
        assert find_fix_version_mismatches(issues, "6.15", set()) == []

    def test_issue_without_versions_is_reported(self):
        issues = {"ABC-1": self._issue("ABC-1", [])}
        mismatches = find_fix_version_mismatches(issues, "6.15", set())
        assert [m.key for m in mismatches] == ["ABC-1"]
        assert mismatches[0].has_higher_version is False

    def test_records_only_higher_versions(self):
        issues = {"ABC-1": self._issue("ABC-1", ["6.14", "6.16", "main"])}
        mismatch = find_fix_version_mismatches(issues, "6.15", set())[0]
        assert mismatch.higher_versions == ["6.16", "main"]

    def test_found_keys_are_skipped(self):
        issues = {"ABC-1": self._issue("ABC-1", ["6.14"])}
        assert find_fix_version_mismatches(issues, "6.15", {"ABC-1"}) == []


class TestResolveConfig:
    """Tests for resolve_config."""

    @patch("jira_release_compliance.compliance.load_config")
    def test_raises_when_no_config(self, mock_load):
        mock_load.side_effect = FileNotFoundError("not found")
        with pytest.raises(ConfigNotFoundError):
            resolve_config({})

    @patch("jira_release_compliance.compliance.load_config")
    def test_raises_when_invalid_config(self, mock_load):
        mock_load.side_effect = ValueError("bad config")
        with pytest.raises(InvalidConfigError):
            resolve_config({})


class TestReportToDict:
    """Tests for report_to_dict serializer."""

    def test_serializes_report(self):
        git_client, jira_client = _make_clients(
            [_commit("ABC-1 fix"), _commit("typo")],
            [_ticket("ABC-1", ("6.16",))],
            [_ticket("ABC-5")],
        )
        report = run_compliance_check(_make_settings(), _make_config(), git_client, jira_client)

        d = report_to_dict(report)

        assert d["fix_version"] == "6.15"
        assert d["version_ranges"] == [{"repository": "api", "from": "v6.14.0", "to": "v6.15.0"}]
        assert d["ticket_keys"] == ["ABC-1"]
        assert d["commit_count"] == 2
        assert d["commits_without_tickets"][0]["first_line"] == "typo"
        assert d["fix_version_check"]["total"] == 1
        assert d["fix_version_check"]["missing"][0]["key"] == "ABC-5"
        assert d["mismatches"][0]["higher_versions"] == ["6.16"]
        assert d["mismatches"][0]["url"] == "https://example.atlassian.net/browse/ABC-1"
        assert d["severity"] == "error"
