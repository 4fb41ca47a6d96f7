"""
Repository Publisher — Commits a backup directory and pushes it on its own branch.

Operates on an existing local clone (REPO_PATH) with a remote named "origin",
using the git command line. For a run with timestamp T:

  1. Resolve the default branch: "main", else "master", else NoDefaultBranch
  2. Check out the default branch (when HEAD is already "backup/T", HEAD is
     re-pointed and the index reset instead, keeping the fresh export files)
  3. Delete a local "backup/T" branch left over from a same-minute re-run
  4. Create and check out "backup/T"
  5. Stage every file under {REPO_PATH}/{BACKUP_SUB_PATH}/T, one `git add`
     per file; a failed add is reported and skipped
  6. Nothing staged -> NothingToCommit
  7. Commit "Backup collections for T" as
     {GITHUB_USERNAME} <{GITHUB_USERNAME}@users.noreply.github.com>
  8. Push refs/heads/backup/T to origin, replacing a remote branch of the
     same name

Push credentials are passed as an HTTP basic-auth header on the push command
line only. They are never written to the clone's config, and they are
redacted from any error message.
"""

import base64
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .errors import NoDefaultBranch, NothingToCommit, PublishError, PushRejected

STAGE = "publish"
DEFAULT_BRANCH_CANDIDATES = ("main", "master")
REMOTE_NAME = "origin"


def branch_name_for(timestamp: str) -> str:
    return f"backup/{timestamp}"


def commit_message_for(timestamp: str) -> str:
    return f"Backup collections for {timestamp}"


class GitCommandError(Exception):
    """A git invocation exited non-zero or could not be started."""

    def __init__(self, args: Sequence[str], returncode: Optional[int], output: str):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output.strip()
        detail = self.output or f"exit code {returncode}"
        super().__init__(f"git {' '.join(self.args_list)}: {detail}")


class GitRunner:
    """Runs git commands inside one working tree.

    Attributes:
        repo_path: Working tree the commands run in.
        secrets: Strings replaced with "***" in error output.
        timeout: Seconds before a single git command is abandoned.
    """

    def __init__(self, repo_path: str, secrets: Sequence[str] = (), timeout: float = 300):
        self.repo_path = str(repo_path)
        self.secrets = [s for s in secrets if s]
        self.timeout = timeout

    def run(self, *args: str, env: Optional[Dict[str, str]] = None, check: bool = True) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        run_env = os.environ.copy()
        run_env["GIT_TERMINAL_PROMPT"] = "0"
        if env:
            run_env.update(env)

        try:
            proc = subprocess.run(
                cmd,
                cwd=self.repo_path,
                env=run_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise GitCommandError(self._redact_args(args), None, self._redact(str(e))) from e

        if check and proc.returncode != 0:
            raise GitCommandError(
                self._redact_args(args),
                proc.returncode,
                self._redact(proc.stderr or proc.stdout or ""),
            )
        return proc

    def succeeds(self, *args: str) -> bool:
        return self.run(*args, check=False).returncode == 0

    def _redact(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, "***")
        return text

    def _redact_args(self, args: Sequence[str]) -> List[str]:
        return [self._redact(a) for a in args]


@dataclass
class PublishResult:
    branch: str
    commit: str
    staged_files: List[str]


class RepositoryPublisher:
    """Publishes one backup directory to a timestamped branch on origin."""

    def __init__(self, context, git: Optional[GitRunner] = None):
        self.settings = context.settings
        self.events = context.events
        self.repo_path = Path(self.settings.repository_path)
        self.git = git or GitRunner(
            self.settings.repository_path,
            secrets=[self.settings.source_control_token, self._basic_auth_value()],
        )

    def publish(self, timestamp: str) -> PublishResult:
        """Branch, stage, commit and push the backup for `timestamp`.

        Raises:
            NoDefaultBranch: Neither main nor master exists locally.
            NothingToCommit: No file of the backup directory was staged.
            PushRejected: The push to origin failed.
            PublishError: Any other git step failed.
        """
        branch = branch_name_for(timestamp)
        backup_dir = self.settings.backup_directory(timestamp)

        self.events.info(f"Attempting to create branch: {branch}", stage=STAGE,
                         repository=str(self.repo_path))

        default_branch = self.resolve_default_branch()
        if self.current_branch() == branch:
            # Same-minute re-run: the fresh export is tracked on the branch
            # being replaced, so switch without touching the working tree.
            self._step("checkout", "symbolic-ref", "HEAD", f"refs/heads/{default_branch}")
            self._step("checkout", "reset", "--quiet")
        else:
            self._step("checkout", "checkout", default_branch)

        if self.branch_exists(branch):
            self.events.info(f"Branch {branch} already exists, deleting it...", stage=STAGE)
            self._step("delete-branch", "branch", "-D", branch)

        self._step("create-branch", "checkout", "-b", branch)

        staged = self.stage_directory(backup_dir)
        if not staged or not self._has_staged_changes():
            raise NothingToCommit(backup_dir)

        self.commit(timestamp)
        commit = self._step("rev-parse", "rev-parse", "HEAD").stdout.strip()
        self.events.info(f"Changes committed successfully ({commit[:12]})", stage=STAGE)

        self.push(branch)
        self.events.info(f"Successfully pushed branch: {branch}", stage=STAGE)
        return PublishResult(branch=branch, commit=commit, staged_files=staged)

    def resolve_default_branch(self) -> str:
        for candidate in DEFAULT_BRANCH_CANDIDATES:
            if self.branch_exists(candidate):
                return candidate
        raise NoDefaultBranch()

    def branch_exists(self, branch: str) -> bool:
        return self.git.succeeds("rev-parse", "--verify", "--quiet", f"refs/heads/{branch}")

    def current_branch(self) -> Optional[str]:
        proc = self.git.run("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    def stage_directory(self, backup_dir: Path) -> List[str]:
        """`git add` every file under backup_dir; return the paths that were staged."""
        files = sorted(p for p in backup_dir.rglob("*") if p.is_file()) if backup_dir.is_dir() else []
        self.events.info(f"Found {len(files)} files to stage in {backup_dir}", stage=STAGE)

        staged = []
        for path in files:
            relative = path.relative_to(self.repo_path).as_posix()
            try:
                self.git.run("add", "--", relative)
            except GitCommandError as e:
                self.events.warning(f"Error staging file {relative}: {e}", stage=STAGE)
                continue
            staged.append(relative)

        self.events.info(f"Staged {len(staged)} of {len(files)} files", stage=STAGE)
        return staged

    def commit(self, timestamp: str) -> None:
        name = self.settings.source_control_username
        email = self.settings.commit_email
        identity = {
            "GIT_AUTHOR_NAME": name,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_COMMITTER_NAME": name,
            "GIT_COMMITTER_EMAIL": email,
        }
        try:
            self.git.run("commit", "--no-verify", "-m", commit_message_for(timestamp), env=identity)
        except GitCommandError as e:
            raise PublishError("commit", str(e)) from e

    def push(self, branch: str) -> None:
        # Forced for this ref only: a same-minute re-run replaces the remote branch too
        refspec = f"+refs/heads/{branch}:refs/heads/{branch}"
        try:
            self.git.run(
                "-c", f"http.extraHeader=Authorization: Basic {self._basic_auth_value()}",
                "push", REMOTE_NAME, refspec,
            )
        except GitCommandError as e:
            raise PushRejected(branch, str(e)) from e

    def _has_staged_changes(self) -> bool:
        # exit code 1 means the index differs from HEAD
        return not self.git.succeeds("diff", "--cached", "--quiet")

    def _basic_auth_value(self) -> str:
        credentials = f"{self.settings.source_control_username}:{self.settings.source_control_token}"
        return base64.b64encode(credentials.encode("utf-8")).decode("ascii")

    def _step(self, step: str, *args: str) -> subprocess.CompletedProcess:
        try:
            return self.git.run(*args)
        except GitCommandError as e:
            raise PublishError(step, str(e)) from e
