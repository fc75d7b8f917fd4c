"""Read commit history from local git repositories."""

import logging
import subprocess

from jira_release_compliance.exceptions import GitCommandError
from jira_release_compliance.models import Commit, repository_label

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|||"
LOG_FORMAT = f"%H{FIELD_SEPARATOR}%an{FIELD_SEPARATOR}%B"


class GitClient:
    """Thin wrapper around the ``git`` binary."""

    def __init__(self, git_binary: str = "git") -> None:
        self.git_binary = git_binary

    def fetch_commits(self, repo_path: str, from_ref: str, to_ref: str) -> str:
        """Return raw ``git log`` output for the symmetric range from...to.

        Raises:
            GitCommandError: If git is missing or exits with a non-zero status
        """
        args = [
            self.git_binary,
            "log",
            f"--pretty=format:{LOG_FORMAT}",
            "--no-merges",
            f"{from_ref}...{to_ref}",
        ]
        logger.debug("Running %s in %s", " ".join(args), repo_path)
        try:
            result = subprocess.run(
                args,
                cwd=repo_path,
                check=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except FileNotFoundError as e:
            raise GitCommandError(
                f"Cannot run git in {repo_path}: {e.strerror or e}"
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise GitCommandError(
                f"git log {from_ref}...{to_ref} failed in {repo_path}: {stderr or e}"
            ) from e
        return result.stdout

    def parse_commits(self, raw_commits: str, repository: str) -> list[Commit]:
        """Parse ``git log`` output produced with LOG_FORMAT.

        A line containing the field separator starts a new commit; the lines
        after it, up to the next such line, continue its message. Records
        without a hash or message are skipped. Empty input yields [].
        """
        if not raw_commits or not raw_commits.strip():
            return []

        commits: list[Commit] = []
        current: tuple[str, str, list[str]] | None = None

        def _flush() -> None:
            if current is None:
                return
            hash_, author, message_lines = current
            message = "\n".join(message_lines).strip()
            first_line = message_lines[0].strip() if message_lines else ""
            if hash_ and message:
                commits.append(
                    Commit(
                        hash=hash_,
                        author=author,
                        message=message,
                        first_line=first_line,
                        repository=repository,
                    )
                )

        for line in raw_commits.split("\n"):
            if FIELD_SEPARATOR in line:
                _flush()
                parts = line.split(FIELD_SEPARATOR)
                hash_ = parts[0].strip()
                author = parts[1].strip() if len(parts) > 1 else ""
                # The message itself may contain the separator.
                first = FIELD_SEPARATOR.join(parts[2:])
                current = (hash_, author, [first])
            elif current is not None:
                current[2].append(line)

        _flush()
        return commits

    def get_commits(self, repo_path: str, from_ref: str, to_ref: str) -> list[Commit]:
        """Fetch and parse the commits of one repository."""
        raw = self.fetch_commits(repo_path, from_ref, to_ref)
        commits = self.parse_commits(raw, repository_label(repo_path))
        logger.debug("Parsed %d commit(s) from %s", len(commits), repo_path)
        return commits
