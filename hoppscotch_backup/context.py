"""Run context shared by the pipeline components."""

from dataclasses import dataclass, field
from typing import Optional

from .events import EventBus
from .graphql_client import HoppscotchGraphQLClient
from .settings import Settings


@dataclass
class BackupContext:
    """Everything a component needs, built once per process.

    Attributes:
        settings: Validated configuration.
        client: GraphQL client holding the HTTP session.
        events: Bus that components report progress on.
    """

    settings: Settings
    client: HoppscotchGraphQLClient
    events: EventBus = field(default_factory=EventBus)

    @classmethod
    def create(cls, settings: Settings, events: Optional[EventBus] = None) -> "BackupContext":
        return cls(
            settings=settings,
            client=HoppscotchGraphQLClient.from_settings(settings),
            events=events or EventBus(),
        )

    def close(self):
        self.client.close()
