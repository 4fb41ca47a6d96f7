"""
Collection Exporter — Fetches a team's collections and writes them to disk.

Steps (each one can fail the run):

  1. TEAM RESOLUTION
      Uses HOPPSCOTCH_TEAM_ID when configured. Otherwise lists the token's
      teams (MyTeams) and takes the first one in API order. An empty list
      raises NoTeamFound.

  2. BULK EXPORT
      exportCollectionsToJSON(teamID) returns the collections as a
      JSON-encoded string inside the GraphQL "data" object. The string is
      decoded a second time here. A missing/empty/undecodable string raises
      ExportError before any file is written.

  3. AGGREGATE FILE
      The raw string is written verbatim to
      {backup_dir}/{workspace_name}_collections_export.json.
      This is the authoritative artifact; failure raises ExportError.

  4. PER-COLLECTION FILES
      When the decoded payload is a list, each object with a "name" key is
      written pretty-printed to {backup_dir}/{sanitized name}.json.
      Elements without "name" are skipped; a null or blank name is written
      as Untitled.json. A name that would land on the aggregate file, or a
      failed write, becomes a PerFileWriteWarning and the loop continues.
      A partially written file is removed.

Output layout:
    {repo}/{backup_sub_path}/{timestamp}/
        Hoppscotch_collections_export.json
        My API.json
        Payments_v2.json
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from .errors import ExportError, NoTeamFound, PerFileWriteWarning, TeamResolutionError
from .events import FILE_SKIPPED, FILE_WRITTEN
from .graphql_client import GraphQLError
from .graphql_queries import (
    EXPORT_COLLECTIONS_OPERATION,
    EXPORT_COLLECTIONS_QUERY,
    MY_TEAMS_OPERATION,
    MY_TEAMS_QUERY,
)

STAGE = "export"
UNTITLED = "Untitled"

# Characters that are invalid in a filename on at least one major OS
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(name: str) -> str:
    """Replace every filename-invalid character with "_".

    >>> sanitize_filename("a/b:c*d")
    'a_b_c_d'
    """
    return _INVALID_FILENAME_CHARS.sub("_", name)


@dataclass
class ExportRun:
    """Per-invocation export state.

    Attributes:
        timestamp: "%Y-%m-%d_%H-%M", fixed for the whole run.
        backup_directory: {repository_path}/{backup_sub_path}/{timestamp}.
        team_id: Resolved team, set by CollectionExporter.
        exported_files: Written paths, aggregate file first.
        warnings: Collection files that could not be written.
    """

    timestamp: str
    backup_directory: Path
    team_id: Optional[str] = None
    exported_files: List[Path] = field(default_factory=list)
    warnings: List[PerFileWriteWarning] = field(default_factory=list)

    @classmethod
    def for_settings(cls, settings, timestamp: str) -> "ExportRun":
        return cls(timestamp=timestamp, backup_directory=settings.backup_directory(timestamp))

    @property
    def aggregate_file(self) -> Optional[Path]:
        return self.exported_files[0] if self.exported_files else None

    @property
    def collection_files(self) -> List[Path]:
        return self.exported_files[1:]


class CollectionExporter:
    """Exports all collections of a team into the run's backup directory."""

    def __init__(self, context):
        self.settings = context.settings
        self.client = context.client
        self.events = context.events

    def export(self, run: ExportRun) -> ExportRun:
        """Run team resolution, export and file writes for one ExportRun.

        Returns:
            The same ExportRun with team_id, exported_files and warnings set.

        Raises:
            NoTeamFound: No team configured and the token has no teams.
            TeamResolutionError: The team list could not be fetched.
            ExportError: The export call failed, returned an unusable payload,
                or the aggregate file could not be written.
        """
        run.team_id = self.resolve_team_id()

        raw_export = self.fetch_export(run.team_id)
        try:
            collections = json.loads(raw_export)
        except ValueError as e:
            raise ExportError(f"exportCollectionsToJSON returned invalid JSON: {e}") from e

        self.write_aggregate(run, raw_export)
        self.write_collections(run, collections)

        named = len(run.collection_files)
        self.events.info(
            f"Exported {named} collection file(s) + 1 aggregate file "
            f"({len(run.warnings)} skipped)",
            stage=STAGE,
            directory=str(run.backup_directory),
        )
        return run

    def resolve_team_id(self) -> str:
        if self.settings.team_id:
            self.events.info(f"Using configured team ID: {self.settings.team_id}", stage=STAGE)
            return self.settings.team_id

        try:
            data = self.client.execute(MY_TEAMS_QUERY, MY_TEAMS_OPERATION)
        except GraphQLError as e:
            raise TeamResolutionError(f"Failed to get teams: {e}") from e

        teams = data.get("myTeams") or []
        if not teams:
            raise NoTeamFound()

        first = teams[0]
        team_id = first.get("id") if isinstance(first, dict) else None
        if not team_id:
            raise NoTeamFound()

        if len(teams) > 1:
            self.events.warning(
                f"Token has access to {len(teams)} teams; exporting the first one returned",
                stage=STAGE,
            )
        self.events.info(f"Using first team: {first.get('name')} (ID: {team_id})", stage=STAGE)
        return team_id

    def fetch_export(self, team_id: str) -> str:
        """Call exportCollectionsToJSON and return the raw JSON string."""
        try:
            data = self.client.execute(
                EXPORT_COLLECTIONS_QUERY,
                EXPORT_COLLECTIONS_OPERATION,
                variables={"teamID": team_id},
            )
        except GraphQLError as e:
            raise ExportError(f"Failed to export collections: {e}") from e

        raw_export = data.get("exportCollectionsToJSON")
        if raw_export is None:
            raise ExportError("Could not find exportCollectionsToJSON in the response")
        if not isinstance(raw_export, str):
            raise ExportError(
                f"exportCollectionsToJSON returned {type(raw_export).__name__}, expected a JSON string"
            )
        if not raw_export.strip():
            raise ExportError("exportCollectionsToJSON returned an empty string")

        self.events.info(f"Export response received, length: {len(raw_export)} characters", stage=STAGE)
        return raw_export

    def write_aggregate(self, run: ExportRun, raw_export: str) -> Path:
        path = run.backup_directory / f"{self.settings.workspace_name}_collections_export.json"
        try:
            run.backup_directory.mkdir(parents=True, exist_ok=True)
            # newline="" keeps the API's bytes untouched on every platform
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(raw_export)
        except OSError as e:
            raise ExportError(f"Could not write collections export to {path}: {e}") from e

        run.exported_files.append(path)
        self.events.emit(FILE_WRITTEN, f"Saved collections export to: {path}", stage=STAGE, path=str(path))
        return path

    def write_collections(self, run: ExportRun, collections: Any) -> None:
        if not isinstance(collections, list) or not collections:
            self.events.info("Export payload is not a list of collections; skipping per-collection files",
                             stage=STAGE)
            return

        aggregate_name = run.aggregate_file.name.casefold() if run.aggregate_file else None

        for collection in collections:
            if not isinstance(collection, dict) or "name" not in collection:
                continue

            name = collection["name"]
            name = UNTITLED if name is None or not str(name).strip() else str(name)
            path = run.backup_directory / f"{sanitize_filename(name)}.json"

            if path.name.casefold() == aggregate_name:
                self._skip(run, name, path, "file name is reserved for the collections export")
                continue

            try:
                with open(path, "w", encoding="utf-8") as f:
                    json.dump(collection, f, indent=2, ensure_ascii=False)
            except (OSError, TypeError, ValueError) as e:
                self._discard_partial(run, path)
                self._skip(run, name, path, str(e))
                continue

            if path not in run.exported_files:
                run.exported_files.append(path)
            self.events.emit(FILE_WRITTEN, f"Saved collection: {name}", stage=STAGE, path=str(path))

    def _skip(self, run: ExportRun, name: str, path: Path, reason: str) -> None:
        warning = PerFileWriteWarning(collection_name=name, path=str(path), reason=reason)
        run.warnings.append(warning)
        self.events.emit(FILE_SKIPPED, str(warning), stage=STAGE, warning=warning)

    def _discard_partial(self, run: ExportRun, path: Path) -> None:
        """Remove whatever a failed write left at path.

        A truncated file would otherwise be staged and committed. An earlier
        collection with the same sanitized name loses its file too, so it is
        dropped from exported_files.
        """
        if not path.is_file():
            return
        try:
            path.unlink()
        except OSError as e:
            self.events.warning(f"Could not remove partial file {path}: {e}", stage=STAGE)
            return
        if path in run.exported_files:
            run.exported_files.remove(path)
