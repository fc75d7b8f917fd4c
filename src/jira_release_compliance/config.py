"""Configuration management for JIRA Release Compliance."""

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import tomli_w

from jira_release_compliance.commits import DEFAULT_EXCLUDE_PATTERN
from jira_release_compliance.models import VersionRange

ENV_JIRA_URL = "JIRA_URL"
ENV_JIRA_DOMAIN = "JIRA_API_DOMAIN"
ENV_JIRA_EMAIL = "JIRA_API_EMAIL"
ENV_JIRA_TOKEN = "JIRA_API_TOKEN"
ENV_REPOSITORIES = "PATHS_TO_PROJECTS"


@dataclass
class Config:
    """Configuration for JIRA connection."""

    jira_url: str
    jira_email: str
    jira_api_token: str

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors: list[str] = []

        if not self.jira_url:
            errors.append("JIRA URL is required")
        else:
            parsed = urlparse(self.jira_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        if not self.jira_email:
            errors.append("JIRA email is required")
        elif "@" not in self.jira_email:
            errors.append("JIRA email must be a valid email address")

        if not self.jira_api_token:
            errors.append("JIRA API token is required")

        return errors


@dataclass
class DisplayOptions:
    """Which commit and ticket fields the report shows."""

    log_commits: bool = False
    log_authors: bool = False
    log_ticket_keys: bool = False
    log_summaries: bool = False
    log_urls: bool = True


@dataclass
class AuditSettings:
    """Per-run settings taken from the command line and environment."""

    repositories: list[str]
    from_refs: list[str]
    to_refs: list[str]
    fix_version: str
    include_subtasks: bool = False
    exclude_pattern: str = DEFAULT_EXCLUDE_PATTERN
    display: DisplayOptions = field(default_factory=DisplayOptions)
    max_workers: int = 1

    def validate(self) -> list[str]:
        """Validate selectors before any I/O. Returns list of error messages."""
        errors: list[str] = []

        if not self.repositories:
            errors.append(
                "Please specify at least one repository path via --repo or "
                f"the {ENV_REPOSITORIES} env var."
            )
        if not self.from_refs:
            errors.append(
                'Please specify the starting version/tag/branch by passing "--from" argument.'
            )
        if not self.to_refs:
            errors.append(
                'Please specify the ending version/tag/branch by passing "--to" argument.'
            )
        if not self.fix_version:
            errors.append(
                'Please specify the fixVersion to check by passing "--fix-version" argument.'
            )

        for option, values in (("--from", self.from_refs), ("--to", self.to_refs)):
            if len(values) > 1 and len(values) != len(self.repositories):
                errors.append(
                    f"Number of {option} values ({len(values)}) must match number of "
                    f"repositories ({len(self.repositories)}) or be a single value."
                )

        try:
            re.compile(self.exclude_pattern)
        except re.error as e:
            errors.append(f"Invalid exclude pattern {self.exclude_pattern!r}: {e}")

        if self.max_workers < 1:
            errors.append("Number of workers must be at least 1")

        return errors

    def version_ranges(self) -> list[VersionRange]:
        """Pair every repository with its from/to selectors, positionally."""
        ranges: list[VersionRange] = []
        for index, repository in enumerate(self.repositories):
            from_ref = self.from_refs[index] if len(self.from_refs) > 1 else self.from_refs[0]
            to_ref = self.to_refs[index] if len(self.to_refs) > 1 else self.to_refs[0]
            ranges.append(VersionRange(repository=repository, from_ref=from_ref, to_ref=to_ref))
        return ranges


def split_list_arg(value: str | None) -> list[str]:
    """Split a comma separated argument, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".jira-release-compliance"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def _env_jira_url(environ: Mapping[str, str]) -> str | None:
    if environ.get(ENV_JIRA_URL):
        return environ[ENV_JIRA_URL]
    domain = environ.get(ENV_JIRA_DOMAIN)
    if domain:
        return f"https://{domain}.atlassian.net"
    return None


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Load configuration from the TOML file, overridden by the environment.

    Raises:
        FileNotFoundError: If there is no config file and the environment
            does not provide the credentials either
        ValueError: If config is invalid
    """
    if environ is None:
        environ = os.environ

    config_path = get_config_path()
    data: dict = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    elif not (_env_jira_url(environ) and environ.get(ENV_JIRA_TOKEN)):
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Run `jira-release-compliance configure` or set "
            f"{ENV_JIRA_DOMAIN}, {ENV_JIRA_EMAIL} and {ENV_JIRA_TOKEN}."
        )

    jira_section = data.get("jira", {})

    config = Config(
        jira_url=_env_jira_url(environ) or jira_section.get("url", ""),
        jira_email=environ.get(ENV_JIRA_EMAIL) or jira_section.get("email", ""),
        jira_api_token=environ.get(ENV_JIRA_TOKEN) or jira_section.get("api_token", ""),
    )

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    data: dict = {
        "jira": {
            "url": config.jira_url,
            "email": config.jira_email,
            "api_token": config.jira_api_token,
        },
    }

    with open(get_config_path(), "wb") as f:
        tomli_w.dump(data, f)
