"""
hoppscotch-backup — Scheduled backup of Hoppscotch team collections to git.

Each module handles one concern of the pipeline:

  settings.py             Settings record, config file/.env/environment loading
  graphql_client.py       HTTP communication with the Hoppscotch GraphQL API
  graphql_queries.py      GraphQL documents (teams, export, introspection)
  auth_probe.py           Bearer token check (Step 1)
  collection_exporter.py  Team resolution and collection files (Step 2)
  repository_publisher.py Branch, commit and push via git (Step 3)
  schema_explorer.py      Introspection diagnostic
  orchestrator.py         Pipeline coordination and state machine
  events.py               Structured progress events and console reporter
  errors.py               Error taxonomy
  run.py                  Command-line entry point
"""

__version__ = "0.1.0"

from .errors import (
    AuthError,
    BackupError,
    ConfigError,
    ExportError,
    NoDefaultBranch,
    NoTeamFound,
    NothingToCommit,
    PerFileWriteWarning,
    PublishError,
    PushRejected,
    SchemaError,
    TeamResolutionError,
)
from .settings import Settings, load_settings, mask_secret
from .graphql_client import GraphQLError, HoppscotchGraphQLClient
from .context import BackupContext
from .auth_probe import AuthProbe
from .collection_exporter import CollectionExporter, ExportRun, sanitize_filename
from .repository_publisher import GitRunner, PublishResult, RepositoryPublisher
from .schema_explorer import SchemaExplorer
from .orchestrator import BackupPipeline, BackupResult, PipelineState
