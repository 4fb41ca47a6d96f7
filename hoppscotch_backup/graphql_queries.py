"""
GraphQL Query Definitions — The documents sent to the Hoppscotch API.

  GET_MY_TEAMS_QUERY        Credential check (AuthProbe). Any token that can
                            list its teams is considered valid.
  MY_TEAMS_QUERY            Team resolution when no TEAM_ID is configured.
                            The first team returned is used.
  EXPORT_COLLECTIONS_QUERY  Bulk export of every collection of a team.
                            exportCollectionsToJSON returns a JSON-encoded
                            *string*, which must be decoded a second time.
  INTROSPECTION_QUERY       Top-level query operations and their arguments,
                            used by the explore-schema diagnostic.

Each query is sent together with its operationName.
"""

GET_MY_TEAMS_OPERATION = "GetMyTeams"
GET_MY_TEAMS_QUERY = """
query GetMyTeams {
  myTeams {
    id
    name
  }
}
"""

MY_TEAMS_OPERATION = "MyTeams"
MY_TEAMS_QUERY = """
query MyTeams {
  myTeams {
    id
    name
  }
}
"""

EXPORT_COLLECTIONS_OPERATION = "ExportCollections"
EXPORT_COLLECTIONS_QUERY = """
query ExportCollections($teamID: ID!) {
  exportCollectionsToJSON(teamID: $teamID)
}
"""

INTROSPECTION_OPERATION = "IntrospectionQuery"
INTROSPECTION_QUERY = """
query IntrospectionQuery {
  __schema {
    queryType {
      name
      fields {
        name
        description
        args {
          name
          description
          type {
            name
            kind
            ofType {
              name
              kind
            }
          }
        }
      }
    }
  }
}
"""
