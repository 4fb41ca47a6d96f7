"""
Hoppscotch GraphQL Client — HTTP communication with the Hoppscotch API.

All requests are POSTs to {api_base_url}/graphql with a JSON body of the form:

    {"query": "...", "operationName": "...", "variables": {...}}

("variables" is only sent when the operation takes arguments.)

The bearer token is attached once to a requests.Session, which is reused for
every call in the run. Each request carries an explicit timeout taken from
Settings.request_timeout.

Response handling:
  - Transport failure or non-2xx status  -> GraphQLError(status_code=...)
  - Body is not JSON                     -> GraphQLError("not valid JSON")
  - Top-level "errors" array             -> GraphQLError(errors=[...])
  - No top-level "data" key              -> GraphQLError("Unexpected ...")
  - Otherwise the "data" object is returned.

Components translate GraphQLError into their own error type (AuthError,
ExportError, ...), keeping it as __cause__.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class GraphQLError(Exception):
    """A GraphQL call failed at the HTTP or envelope level.

    Attributes:
        status_code: HTTP status, or None for transport errors.
        errors: The GraphQL "errors" array, if the server returned one.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, errors: Optional[List] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class HoppscotchGraphQLClient:
    """Client for the Hoppscotch GraphQL API.

    Attributes:
        graphql_url: Full endpoint URL ("{api_base_url}/graphql").
        timeout: Per-request timeout in seconds.
        debug: If True, print request/response sizes.
    """

    def __init__(self, api_base_url: str, bearer_token: str, timeout: float = 30, debug: bool = False,
                 session: Optional[requests.Session] = None):
        self.graphql_url = f"{api_base_url.rstrip('/')}/graphql"
        self.timeout = timeout
        self.debug = debug
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {bearer_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @classmethod
    def from_settings(cls, settings) -> "HoppscotchGraphQLClient":
        return cls(
            settings.api_base_url,
            settings.bearer_token,
            timeout=settings.request_timeout,
            debug=settings.debug,
        )

    def post(self, query: str, operation_name: str, variables: Optional[Dict] = None) -> requests.Response:
        """Send one GraphQL request and return the raw 2xx response.

        Raises:
            GraphQLError: On transport failure or a non-2xx status.
        """
        payload: Dict[str, Any] = {"query": query, "operationName": operation_name}
        if variables:
            payload["variables"] = variables

        logger.debug("POST %s operation=%s", self.graphql_url, operation_name)
        try:
            response = self._session.post(self.graphql_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise GraphQLError(f"{operation_name} request failed: {e}") from e

        if self.debug:
            print(f"  GraphQL {operation_name}: HTTP {response.status_code}, {len(response.text)} chars")

        if not response.ok:
            raise GraphQLError(
                f"{operation_name} failed: HTTP {response.status_code} {response.reason or ''}".rstrip(),
                status_code=response.status_code,
            )
        return response

    def execute(self, query: str, operation_name: str, variables: Optional[Dict] = None) -> Dict[str, Any]:
        """Execute a GraphQL operation and return its "data" object.

        Raises:
            GraphQLError: On transport failure, non-2xx status, a GraphQL
                "errors" array, or a body that is neither data- nor
                errors-shaped.
        """
        response = self.post(query, operation_name, variables)
        return self.parse_envelope(response, operation_name)

    @staticmethod
    def parse_envelope(response: requests.Response, operation_name: str) -> Dict[str, Any]:
        try:
            result = response.json()
        except ValueError as e:
            raise GraphQLError(
                f"{operation_name} response is not valid JSON", status_code=response.status_code
            ) from e

        if not isinstance(result, dict):
            raise GraphQLError(
                f"Unexpected GraphQL response format for {operation_name}", status_code=response.status_code
            )

        if result.get("errors"):
            errors = result["errors"]
            messages = [e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors]
            raise GraphQLError(
                f"GraphQL errors in {operation_name}: {'; '.join(messages)}",
                status_code=response.status_code,
                errors=errors,
            )

        if "data" not in result:
            raise GraphQLError(
                f"Unexpected GraphQL response format for {operation_name}", status_code=response.status_code
            )

        return result["data"] or {}

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
