"""Cross-reference discovered cloud resources against tracked-state contents."""

import logging

from statewarden.aws.database import Database
from statewarden.aws.listers import ResourceRegistry
from statewarden.errors import PersistenceError
from statewarden.models import (
    AdoptedResource,
    DiscoveredResource,
    DriftReport,
    ForeignResource,
    TrackedState,
)

logger = logging.getLogger(__name__)


def find_state_containing(resource_id: str, states: list[TrackedState]) -> TrackedState | None:
    """Return the first state whose content mentions ``resource_id`` verbatim."""
    for state in states:
        if resource_id in state.last_known_content_json:
            return state
    return None


class DriftReconciler:
    """Keeps the foreign-resource registry in line with what the account holds.

    A discovered resource gets a ForeignResource entry when no tracked state
    mentions it, and loses that entry once some state does.
    """

    def __init__(self, database: Database, registry: ResourceRegistry):
        self._db = database
        self._registry = registry

    def reconcile(self) -> DriftReport:
        """Run one reconciliation pass.

        Raises:
            PersistenceError: states or foreign resources could not be loaded.
        """
        states = self._db.load_all_states()
        foreign_by_id = {fr.resource_id: fr for fr in self._db.load_all_foreign_resources()}

        discovered = self._registry.list_all()

        created: list[ForeignResource] = []
        adopted: list[AdoptedResource] = []
        failed: list[str] = []

        for resource in discovered:
            existing = foreign_by_id.get(resource.resource_id)
            state = find_state_containing(resource.resource_id, states)
            try:
                if existing is None and state is None:
                    entry = self._register(resource)
                    foreign_by_id[resource.resource_id] = entry
                    created.append(entry)
                elif existing is not None and state is not None:
                    self._db.remove_foreign_resource(existing.id)
                    del foreign_by_id[resource.resource_id]
                    adopted.append(AdoptedResource(foreign_resource=existing, state=state))
                    logger.info(
                        "Foreign resource #%s (%s) not foreign anymore! Found in bucket %s. Deleted!",
                        existing.id,
                        existing.resource_id,
                        state.location,
                    )
            except PersistenceError as e:
                logger.error("Can't update foreign resource %s: %s", resource.resource_id, e)
                failed.append(resource.resource_id)

        return DriftReport(created=created, adopted=adopted, failed=failed)

    def _register(self, resource: DiscoveredResource) -> ForeignResource:
        entry = ForeignResource.new(resource.resource_type, resource.resource_id, resource.details)
        self._db.save_foreign_resource(entry)
        logger.info(
            "New foreign resource registered (type: %s, ID: '%s' entryID: %s)",
            resource.resource_type,
            resource.resource_id,
            entry.id,
        )
        return entry
