"""
Errors — Failure taxonomy for the backup pipeline.

Every fatal condition derives from BackupError, which carries the name of the
pipeline stage that raised it. The orchestrator fills in the stage when a
component did not, so the CLI can report "where" as well as "what".

  ConfigError           Missing/invalid settings (pre-flight, blocks every mode)
  AuthError             Bearer token rejected or unexpected auth response
  ExportError           Team resolution or bulk export failed
    TeamResolutionError   Team list could not be fetched
      NoTeamFound           Team list was empty and no TEAM_ID was configured
  PublishError          A git step failed
    NoDefaultBranch       Neither "main" nor "master" exists
    NothingToCommit       No file from the export directory was staged
    PushRejected          The push to origin failed
  SchemaError           Introspection diagnostic failed

PerFileWriteWarning is not an exception: a per-collection write failure is
recorded on the ExportRun and the run continues.
"""

from dataclasses import dataclass
from typing import Optional


class BackupError(Exception):
    """Base class for fatal pipeline errors.

    Attributes:
        stage: Pipeline stage that failed (e.g., "export"), or None.
    """

    default_stage: Optional[str] = None

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage or self.default_stage


class ConfigError(BackupError):
    default_stage = "config"

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class AuthError(BackupError):
    default_stage = "authenticate"


class ExportError(BackupError):
    default_stage = "export"


class TeamResolutionError(ExportError):
    pass


class NoTeamFound(TeamResolutionError):
    def __init__(self):
        super().__init__(
            "No team ID found. Set HOPPSCOTCH_TEAM_ID or make sure the token "
            "has access to at least one team."
        )


class PublishError(BackupError):
    """A git step failed.

    Attributes:
        step: The publisher step that failed (e.g., "checkout", "commit").
        cause: The underlying error message, if any.
    """

    default_stage = "publish"

    def __init__(self, step: str, cause: Optional[str] = None, message: Optional[str] = None):
        self.step = step
        self.cause = cause
        if message is None:
            message = f"git {step} failed"
            if cause:
                message += f": {cause}"
        super().__init__(message)


class NoDefaultBranch(PublishError):
    def __init__(self):
        super().__init__("default-branch", message="Neither 'main' nor 'master' branch found")


class NothingToCommit(PublishError):
    def __init__(self, directory):
        super().__init__("stage", message=f"No changes were staged from {directory}")


class PushRejected(PublishError):
    def __init__(self, branch: str, cause: Optional[str] = None):
        self.branch = branch
        message = f"Push of {branch} to origin failed"
        if cause:
            message += f": {cause}"
        super().__init__("push", cause, message=message)


class SchemaError(BackupError):
    default_stage = "explore-schema"


@dataclass
class PerFileWriteWarning:
    """A collection file that could not be written."""

    collection_name: str
    path: str
    reason: str

    def __str__(self):
        return f"Could not write collection '{self.collection_name}' to {self.path}: {self.reason}"
