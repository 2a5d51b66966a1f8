"""
Base class for domain services.

Router (thin) -> Service (business logic) -> SoftDeleteStore (authorization,
tombstones) -> Model

Collaborators are passed in, never looked up:

    store = SoftDeleteStore(db, PolicyEngine())
    sessions = SessionManager(db, store, OtpIssuer(), events=sink)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.events import Event, EventSink
from tableside.services.crud.soft_delete import SoftDeleteStore
from tableside.services.permissions import Actor, Resource

logger = get_logger(__name__)


class BaseDomainService:
    """Holds the db session, the store and the event sink."""

    def __init__(self, db: Session, store: SoftDeleteStore, events: EventSink | None = None):
        self._db = db
        self._store = store
        self._events = events

    @property
    def db(self) -> Session:
        return self._db

    @property
    def store(self) -> SoftDeleteStore:
        return self._store

    def publish(self, event: Event) -> None:
        """
        Hand an event to the sink after the transaction committed.
        The sink logs its own delivery failures; state changes are never undone.
        """
        if self._events is None:
            return
        try:
            self._events.publish(event)
        except Exception as e:
            logger.error(
                "Failed to publish event",
                event_type=event.type,
                session_id=event.session_id,
                error=str(e),
                exc_info=True,
            )

    def gate(self, actor: Actor, action: str) -> None:
        """
        Role-level check before any row is read: an actor whose role can
        never perform the action is denied whatever the target ID is.
        """
        self.store.authorize(actor, action, Resource.tenant(actor.tenant_id))
