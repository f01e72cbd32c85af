"""
Collaborator protocols for the analytics engine.

Record storage and custom-field definitions live outside this package. The
engine only depends on these structural interfaces, so any repository object
(SQL-backed, in-memory, or a test double) with matching methods can be passed in.
"""

from typing import List, Protocol, runtime_checkable

from crm_analytics.models.schemas import ClientRecord, CustomFieldDefinition


@runtime_checkable
class ClientRecordSource(Protocol):
    """Returns the full, materialized client record set."""

    def get_all_clients(self) -> List[ClientRecord]:
        ...


@runtime_checkable
class CustomFieldSource(Protocol):
    """Returns every custom field definition, active or not."""

    def get_all(self) -> List[CustomFieldDefinition]:
        ...
