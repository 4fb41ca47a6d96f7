"""
Auth Probe — Verifies the Hoppscotch bearer token.

Sends the GetMyTeams query once. The token is accepted only if the API
answers 2xx with a top-level "data" object and no "errors" array. There is no
retry: the first failure raises AuthError.
"""

from .errors import AuthError
from .graphql_client import GraphQLError
from .graphql_queries import GET_MY_TEAMS_OPERATION, GET_MY_TEAMS_QUERY


class AuthProbe:
    """Credential check against the GraphQL endpoint."""

    def __init__(self, context):
        self.client = context.client
        self.events = context.events

    def validate(self) -> None:
        """Raise AuthError unless the bearer token is accepted."""
        try:
            self.client.execute(GET_MY_TEAMS_QUERY, GET_MY_TEAMS_OPERATION)
        except GraphQLError as e:
            raise AuthError(f"GraphQL API authentication failed: {e}") from e

        self.events.info("GraphQL API authentication successful", stage="authenticate")
