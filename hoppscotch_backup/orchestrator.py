"""
Backup Pipeline — Coordination of the Hoppscotch collection backup.

Ties AuthProbe, CollectionExporter and RepositoryPublisher together into a
sequential 3-step workflow:

  Step 1: AUTHENTICATION
      AuthProbe.validate() checks the bearer token with the GetMyTeams query.

  Step 2: EXPORT COLLECTIONS
      CollectionExporter resolves the team, downloads exportCollectionsToJSON
      and writes the aggregate file plus one file per named collection into
      {REPO_PATH}/{BACKUP_SUB_PATH}/{timestamp}/.

  Step 3: PUBLISH TO GIT
      RepositoryPublisher creates backup/{timestamp} from main/master, commits
      the export directory and pushes it to origin.

The timestamp is generated once at the start of run() and used for the
directory name, the branch name and the commit message.

State machine:
    IDLE -> AUTHENTICATING -> EXPORTING -> PUBLISHING -> DONE
    Any failure moves to ABORTED and the error is re-raised with its stage
    set. Nothing is retried and nothing is rolled back: export files written
    before a failed publish stay on disk.

Diagnostic entry points (never export or publish):
    test_auth()       Step 1 only
    explore_schema()  Introspection query, saved to {REPO_PATH}/hoppscotch-schema.json

Typical usage:
    settings = load_settings().ensure_valid()
    with BackupPipeline.from_settings(settings) as pipeline:
        result = pipeline.run()
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .auth_probe import AuthProbe
from .collection_exporter import CollectionExporter, ExportRun
from .context import BackupContext
from .errors import BackupError, PerFileWriteWarning
from .events import STAGE_FAILED, STAGE_STARTED, STAGE_SUCCEEDED, EventBus
from .repository_publisher import RepositoryPublisher, branch_name_for
from .schema_explorer import QueryOperation, SchemaExplorer

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M"


class PipelineState(enum.Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    EXPORTING = "exporting"
    PUBLISHING = "publishing"
    DONE = "done"
    ABORTED = "aborted"


_STAGES = {
    PipelineState.AUTHENTICATING: ("authenticate", "Step 1: Authentication"),
    PipelineState.EXPORTING: ("export", "Step 2: Export collections"),
    PipelineState.PUBLISHING: ("publish", "Step 3: Publish to git"),
}


@dataclass
class BackupResult:
    timestamp: str
    branch: str
    backup_directory: Path
    exported_files: List[Path] = field(default_factory=list)
    warnings: List[PerFileWriteWarning] = field(default_factory=list)
    commit: Optional[str] = None


class BackupPipeline:
    """Orchestrates authentication, export and publish for one backup run.

    Attributes:
        context: Settings, GraphQL client and event bus shared by the stages.
        state: Current PipelineState.
        history: Every state entered, in order.
    """

    def __init__(
        self,
        context: BackupContext,
        auth_probe: Optional[AuthProbe] = None,
        exporter: Optional[CollectionExporter] = None,
        publisher: Optional[RepositoryPublisher] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.context = context
        self.auth_probe = auth_probe or AuthProbe(context)
        self.exporter = exporter or CollectionExporter(context)
        self.publisher = publisher or RepositoryPublisher(context)
        self.clock = clock
        self.state = PipelineState.IDLE
        self.history: List[PipelineState] = [PipelineState.IDLE]

    @classmethod
    def from_settings(cls, settings, events: Optional[EventBus] = None, **kwargs) -> "BackupPipeline":
        return cls(BackupContext.create(settings, events), **kwargs)

    @property
    def events(self) -> EventBus:
        return self.context.events

    def new_timestamp(self) -> str:
        return self.clock().strftime(TIMESTAMP_FORMAT)

    def run(self) -> BackupResult:
        """Run the full backup.

        Returns:
            BackupResult for the published branch.

        Raises:
            BackupError: The first failure, with .stage set.
        """
        self.history = [PipelineState.IDLE]
        self.state = PipelineState.IDLE

        timestamp = self.new_timestamp()
        export_run = ExportRun.for_settings(self.context.settings, timestamp)

        self._run_stage(PipelineState.AUTHENTICATING, self.auth_probe.validate)
        self._run_stage(PipelineState.EXPORTING, lambda: self.exporter.export(export_run))
        publish_result = self._run_stage(PipelineState.PUBLISHING, lambda: self.publisher.publish(timestamp))

        self._enter(PipelineState.DONE)
        return BackupResult(
            timestamp=timestamp,
            branch=getattr(publish_result, "branch", branch_name_for(timestamp)),
            backup_directory=export_run.backup_directory,
            exported_files=list(export_run.exported_files),
            warnings=list(export_run.warnings),
            commit=getattr(publish_result, "commit", None),
        )

    def test_auth(self) -> None:
        """Check the bearer token only."""
        self.events.emit(STAGE_STARTED, "Authentication test", stage="authenticate")
        try:
            self.auth_probe.validate()
        except BackupError as e:
            self.events.emit(STAGE_FAILED, str(e), stage="authenticate", error=str(e))
            raise
        self.events.emit(STAGE_SUCCEEDED, "Authentication test passed", stage="authenticate")

    def explore_schema(self) -> List[QueryOperation]:
        """Run the introspection diagnostic."""
        explorer = SchemaExplorer(self.context)
        self.events.emit(STAGE_STARTED, "Exploring GraphQL schema", stage="explore-schema")
        try:
            operations = explorer.explore()
        except BackupError as e:
            self.events.emit(STAGE_FAILED, str(e), stage="explore-schema", error=str(e))
            raise
        self.events.emit(
            STAGE_SUCCEEDED, f"Found {len(operations)} query operation(s)", stage="explore-schema"
        )
        return operations

    def _enter(self, state: PipelineState):
        self.state = state
        self.history.append(state)

    def _run_stage(self, state: PipelineState, action):
        stage, title = _STAGES[state]
        self._enter(state)
        self.events.emit(STAGE_STARTED, title, stage=stage)
        try:
            result = action()
        except BackupError as e:
            if e.stage is None:
                e.stage = stage
            self._abort(stage, e)
            raise
        except Exception as e:
            self._abort(stage, e)
            raise
        self.events.emit(STAGE_SUCCEEDED, f"{title} complete", stage=stage)
        return result

    def _abort(self, stage: str, error: Exception):
        self._enter(PipelineState.ABORTED)
        self.events.emit(STAGE_FAILED, str(error), stage=stage, error=str(error))

    def close(self):
        self.context.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
