"""Tests for hoppscotch_backup.repository_publisher.

Most tests mock GitRunner and assert on the git commands issued. The last
section runs the real git binary against temporary repositories and is
skipped when git is not installed.
"""

import shutil
import subprocess
from unittest.mock import MagicMock

import pytest

from hoppscotch_backup.context import BackupContext
from hoppscotch_backup.errors import NoDefaultBranch, NothingToCommit, PublishError, PushRejected
from hoppscotch_backup.repository_publisher import (
    GitCommandError,
    GitRunner,
    RepositoryPublisher,
    branch_name_for,
    commit_message_for,
)

TIMESTAMP = "2026-03-01_04-05"
BRANCH = f"backup/{TIMESTAMP}"


def _make_git(branches=("main",), failing=(), staged_changes=True, current="main"):
    """MagicMock GitRunner.

    Args:
        branches: Local branches that exist.
        failing: Command names (first arg after options) that raise GitCommandError.
        staged_changes: Result of `git diff --cached --quiet`.
        current: Branch HEAD points at.
    """
    git = MagicMock(spec=GitRunner)

    def succeeds(*args):
        if args[:3] == ("rev-parse", "--verify", "--quiet"):
            return args[3].replace("refs/heads/", "") in branches
        if args[:2] == ("diff", "--cached"):
            return not staged_changes
        return True

    def run(*args, env=None, check=True):
        command = args[2] if args[0] == "-c" else args[0]
        if command in failing:
            raise GitCommandError(args, 1, f"{command} exploded")
        proc = MagicMock()
        proc.returncode = 0
        proc.stdout = ""
        if command == "rev-parse":
            proc.stdout = "abc123def456\n"
        elif args[:2] == ("symbolic-ref", "--quiet"):
            proc.stdout = f"{current}\n"
        return proc

    git.succeeds.side_effect = succeeds
    git.run.side_effect = run
    return git


def _commands(git):
    """Every mutating git command issued, in order."""
    return [c.args for c in git.run.call_args_list if c.args[:2] != ("symbolic-ref", "--quiet")]


def _write_backup(settings, names=("Hoppscotch_collections_export.json", "Users.json")):
    backup_dir = settings.backup_directory(TIMESTAMP)
    backup_dir.mkdir(parents=True)
    for name in names:
        (backup_dir / name).write_text("[]")
    return backup_dir


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def test_branch_and_commit_message():
    assert branch_name_for(TIMESTAMP) == "backup/2026-03-01_04-05"
    assert commit_message_for(TIMESTAMP) == "Backup collections for 2026-03-01_04-05"


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

def test_publish_issues_expected_git_commands(context, settings):
    _write_backup(settings)
    git = _make_git()

    result = RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    commands = _commands(git)
    assert commands[0] == ("checkout", "main")
    assert commands[1] == ("checkout", "-b", BRANCH)
    assert ("add", "--", f"backups/{TIMESTAMP}/Hoppscotch_collections_export.json") in commands
    assert ("add", "--", f"backups/{TIMESTAMP}/Users.json") in commands
    assert ("commit", "--no-verify", "-m", f"Backup collections for {TIMESTAMP}") in commands
    push = commands[-1]
    assert push[-3:] == ("push", "origin", f"+refs/heads/{BRANCH}:refs/heads/{BRANCH}")
    assert push[1].startswith("http.extraHeader=Authorization: Basic ")

    assert result.branch == BRANCH
    assert result.commit == "abc123def456"
    assert len(result.staged_files) == 2


def test_commit_identity_from_settings(context, settings):
    _write_backup(settings)
    git = _make_git()
    RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    commit_call = next(c for c in git.run.call_args_list if c.args[0] == "commit")
    env = commit_call.kwargs["env"]
    assert env["GIT_AUTHOR_NAME"] == "backup-bot"
    assert env["GIT_AUTHOR_EMAIL"] == "backup-bot@users.noreply.github.com"
    assert env["GIT_COMMITTER_NAME"] == "backup-bot"
    assert env["GIT_COMMITTER_EMAIL"] == "backup-bot@users.noreply.github.com"


def test_master_used_when_main_missing(context, settings):
    _write_backup(settings)
    git = _make_git(branches=("master",))
    RepositoryPublisher(context, git=git).publish(TIMESTAMP)
    assert _commands(git)[0] == ("checkout", "master")


def test_nested_files_staged(context, settings):
    backup_dir = _write_backup(settings)
    (backup_dir / "nested").mkdir()
    (backup_dir / "nested" / "deep.json").write_text("{}")
    git = _make_git()

    result = RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    assert f"backups/{TIMESTAMP}/nested/deep.json" in result.staged_files


# ---------------------------------------------------------------------------
# Branch handling
# ---------------------------------------------------------------------------

def test_no_default_branch(context, settings):
    _write_backup(settings)
    git = _make_git(branches=("develop",))

    with pytest.raises(NoDefaultBranch):
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    assert git.run.call_count == 0


def test_existing_backup_branch_deleted_and_recreated(context, settings, recorder):
    _write_backup(settings)
    git = _make_git(branches=("main", BRANCH))

    RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    commands = _commands(git)
    assert commands[:3] == [
        ("checkout", "main"),
        ("branch", "-D", BRANCH),
        ("checkout", "-b", BRANCH),
    ]
    assert any("already exists" in e.message for e in recorder.events)


def test_rerun_on_same_branch_keeps_working_tree(context, settings):
    _write_backup(settings)
    git = _make_git(branches=("main", BRANCH), current=BRANCH)

    RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    commands = _commands(git)
    assert commands[:4] == [
        ("symbolic-ref", "HEAD", "refs/heads/main"),
        ("reset", "--quiet"),
        ("branch", "-D", BRANCH),
        ("checkout", "-b", BRANCH),
    ]
    assert ("checkout", "main") not in commands


def test_checkout_failure_is_publish_error(context, settings):
    _write_backup(settings)
    git = _make_git(failing=("checkout",))
    with pytest.raises(PublishError) as exc_info:
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)
    assert exc_info.value.step == "checkout"
    assert exc_info.value.stage == "publish"


# ---------------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------------

def test_empty_directory_is_nothing_to_commit(context, settings):
    settings.backup_directory(TIMESTAMP).mkdir(parents=True)
    git = _make_git()

    with pytest.raises(NothingToCommit):
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    assert not any(c[0] == "commit" for c in _commands(git))


def test_missing_directory_is_nothing_to_commit(context):
    git = _make_git()
    with pytest.raises(NothingToCommit):
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)


def test_all_adds_failing_is_nothing_to_commit(context, settings, recorder):
    _write_backup(settings)
    git = _make_git(failing=("add",))

    with pytest.raises(NothingToCommit):
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)

    staging_warnings = [e for e in recorder.of_kind("warning") if "Error staging" in e.message]
    assert len(staging_warnings) == 2
    assert not any(c[0] == "commit" for c in _commands(git))


def test_unchanged_files_are_nothing_to_commit(context, settings):
    _write_backup(settings)
    git = _make_git(staged_changes=False)
    with pytest.raises(NothingToCommit):
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)


def test_single_add_failure_is_skipped(context, settings):
    _write_backup(settings)
    git = _make_git()
    original = git.run.side_effect

    def run(*args, env=None, check=True):
        if args[0] == "add" and args[-1].endswith("Users.json"):
            raise GitCommandError(args, 128, "index.lock exists")
        return original(*args, env=env, check=check)

    git.run.side_effect = run
    result = RepositoryPublisher(context, git=git).publish(TIMESTAMP)
    assert result.staged_files == [f"backups/{TIMESTAMP}/Hoppscotch_collections_export.json"]


# ---------------------------------------------------------------------------
# Commit / push failures
# ---------------------------------------------------------------------------

def test_commit_failure(context, settings):
    _write_backup(settings)
    git = _make_git(failing=("commit",))
    with pytest.raises(PublishError) as exc_info:
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)
    assert exc_info.value.step == "commit"


def test_push_failure_is_push_rejected(context, settings):
    _write_backup(settings)
    git = _make_git(failing=("push",))
    with pytest.raises(PushRejected) as exc_info:
        RepositoryPublisher(context, git=git).publish(TIMESTAMP)
    assert exc_info.value.branch == BRANCH


# ---------------------------------------------------------------------------
# GitRunner
# ---------------------------------------------------------------------------

def test_git_runner_redacts_secrets(tmp_path, monkeypatch):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 128, stdout="", stderr="auth failed for s3cr3t-token")

    monkeypatch.setattr(subprocess, "run", fake_run)
    runner = GitRunner(str(tmp_path), secrets=["s3cr3t-token"])

    with pytest.raises(GitCommandError) as exc_info:
        runner.run("-c", "http.extraHeader=Authorization: Basic s3cr3t-token", "push", "origin")
    assert "s3cr3t-token" not in str(exc_info.value)
    assert "***" in str(exc_info.value)


def test_git_runner_disables_terminal_prompt(tmp_path, monkeypatch):
    captured = {}

    def fake_run(cmd, **kwargs):
        captured.update(kwargs)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    GitRunner(str(tmp_path)).run("status")
    assert captured["env"]["GIT_TERMINAL_PROMPT"] == "0"
    assert captured["cwd"] == str(tmp_path)


def test_push_secret_redacted_in_publish_error(context, settings, monkeypatch):
    _write_backup(settings)

    def fake_run(cmd, **kwargs):
        if "push" in cmd:
            return subprocess.CompletedProcess(cmd, 128, stdout="", stderr="rejected")
        if cmd[1:3] == ["rev-parse", "--verify"]:
            return subprocess.CompletedProcess(cmd, 0 if cmd[-1] == "refs/heads/main" else 1, "", "")
        if cmd[1:3] == ["diff", "--cached"]:
            return subprocess.CompletedProcess(cmd, 1, "", "")
        return subprocess.CompletedProcess(cmd, 0, stdout="abc\n", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    publisher = RepositoryPublisher(context)

    with pytest.raises(PushRejected) as exc_info:
        publisher.publish(TIMESTAMP)
    assert publisher._basic_auth_value() not in str(exc_info.value)
    assert settings.source_control_token not in str(exc_info.value)


# ---------------------------------------------------------------------------
# Real git
# ---------------------------------------------------------------------------

def _git(cwd, *args):
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=cwd, check=True, capture_output=True, text=True,
    )


@pytest.fixture
def git_repos(tmp_path):
    remote = tmp_path / "remote.git"
    clone = tmp_path / "clone"
    subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
    subprocess.run(["git", "init", str(clone)], check=True, capture_output=True)
    _git(clone, "symbolic-ref", "HEAD", "refs/heads/main")
    (clone / "README.md").write_text("backups\n")
    _git(clone, "add", "README.md")
    _git(clone, "commit", "-m", "init")
    _git(clone, "remote", "add", "origin", str(remote))
    _git(clone, "push", "origin", "main")
    return clone, remote


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_publish_against_real_repository(git_repos, make_settings, recorder):
    clone, remote = git_repos
    settings = make_settings(repository_path=str(clone))
    context = BackupContext(settings=settings, client=MagicMock())
    _write_backup(settings)

    publisher = RepositoryPublisher(context)
    result = publisher.publish(TIMESTAMP)
    # Same-minute re-run replaces the branch instead of failing
    (settings.backup_directory(TIMESTAMP) / "Users.json").write_text('[{"name": "changed"}]')
    second = publisher.publish(TIMESTAMP)

    assert result.branch == second.branch == BRANCH
    log = subprocess.run(
        ["git", "log", "-1", "--format=%an <%ae>|%s", f"refs/heads/{BRANCH}"],
        cwd=remote, check=True, capture_output=True, text=True,
    ).stdout.strip()
    assert log == f"backup-bot <backup-bot@users.noreply.github.com>|Backup collections for {TIMESTAMP}"


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_real_repository_without_default_branch(tmp_path, make_settings):
    clone = tmp_path / "clone"
    subprocess.run(["git", "init", str(clone)], check=True, capture_output=True)
    _git(clone, "symbolic-ref", "HEAD", "refs/heads/trunk")
    (clone / "README.md").write_text("x\n")
    _git(clone, "add", "README.md")
    _git(clone, "commit", "-m", "init")

    settings = make_settings(repository_path=str(clone))
    context = BackupContext(settings=settings, client=MagicMock())
    _write_backup(settings)

    with pytest.raises(NoDefaultBranch):
        RepositoryPublisher(context).publish(TIMESTAMP)

    branches = subprocess.run(["git", "branch", "--format=%(refname:short)"], cwd=clone,
                              check=True, capture_output=True, text=True).stdout.split()
    assert branches == ["trunk"]
