"""
Schema Explorer — Introspection diagnostic for the Hoppscotch GraphQL API.

Fetches the query type's fields and arguments, saves the raw response to
{REPO_PATH}/hoppscotch-schema.json, and reports each top-level query with
its argument types. Useful when the API renames or re-types an operation the
backup depends on (myTeams, exportCollectionsToJSON).

Argument types are reported by name. Wrapper types (NON_NULL, LIST) have no
name of their own, so the name of their ofType is used instead.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .errors import SchemaError
from .graphql_client import GraphQLError
from .graphql_queries import INTROSPECTION_OPERATION, INTROSPECTION_QUERY

STAGE = "explore-schema"
SCHEMA_FILENAME = "hoppscotch-schema.json"


@dataclass
class QueryOperation:
    name: str
    arguments: List[Tuple[str, str]] = field(default_factory=list)


def _argument_type_name(type_info: Any) -> str:
    if not isinstance(type_info, dict):
        return "unknown"
    if type_info.get("name"):
        return type_info["name"]
    of_type = type_info.get("ofType")
    if isinstance(of_type, dict) and of_type.get("name"):
        return of_type["name"]
    return "unknown"


def summarize_operations(schema_document: Dict[str, Any]) -> List[QueryOperation]:
    """Extract top-level query operations from an introspection response.

    Raises:
        KeyError, TypeError: If the document does not have the
            data.__schema.queryType.fields shape.
    """
    fields = schema_document["data"]["__schema"]["queryType"]["fields"]
    operations = []
    for field_info in fields:
        arguments = [
            (arg["name"], _argument_type_name(arg.get("type")))
            for arg in field_info.get("args") or []
        ]
        operations.append(QueryOperation(name=field_info["name"], arguments=arguments))
    return operations


class SchemaExplorer:
    """Runs the introspection query and reports the available operations."""

    def __init__(self, context):
        self.settings = context.settings
        self.client = context.client
        self.events = context.events

    @property
    def schema_path(self) -> Path:
        return Path(self.settings.repository_path) / SCHEMA_FILENAME

    def explore(self) -> List[QueryOperation]:
        """Fetch, save and summarize the schema.

        Returns:
            The operations found, or an empty list if the response could not
            be summarized (reported as a warning).

        Raises:
            SchemaError: The request failed or the file could not be written.
        """
        try:
            response = self.client.post(INTROSPECTION_QUERY, INTROSPECTION_OPERATION)
        except GraphQLError as e:
            raise SchemaError(f"Failed to get schema: {e}") from e

        path = self.schema_path
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(response.text)
        except OSError as e:
            raise SchemaError(f"Could not save schema to {path}: {e}") from e
        self.events.info(f"Schema saved to: {path}", stage=STAGE, path=str(path))

        try:
            operations = summarize_operations(json.loads(response.text))
        except (ValueError, KeyError, TypeError) as e:
            self.events.warning(f"Error extracting operations: {e!r}", stage=STAGE)
            return []

        self.events.info("Available Query Operations:", stage=STAGE)
        for operation in operations:
            lines = [f"- {operation.name}"]
            if operation.arguments:
                lines.append("  Arguments:")
                lines.extend(f"    - {name}: {type_name}" for name, type_name in operation.arguments)
            self.events.info("\n  ".join(lines), stage=STAGE, operation=operation.name)
        return operations
