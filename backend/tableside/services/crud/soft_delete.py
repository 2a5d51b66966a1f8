"""
Soft-Delete Store Adapter.

Uniform tombstone semantics for every entity the session core touches,
and the single place other services go through to authorize.

- soft_delete: tombstone a live row (policy delete_<entity>)
- restore: bring a tombstoned row back (policy restore_<entity>)
- purge: hard-delete a tombstoned row (policy purge_<entity>, owner only)
- get / list: default reads exclude tombstoned rows
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Type, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.constants import Actions, EventType, SessionStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit, translate_timeouts
from shared.infrastructure.events import Event, EventSink
from shared.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    NotAccessibleError,
    ValidationError,
)
from tableside.models import (
    AuditMixin,
    Order,
    OrderItem,
    RestaurantTable,
    SessionCustomer,
    TableSession,
)
from tableside.services.permissions import Actor, Decision, PolicyEngine, Resource

logger = get_logger(__name__)

T = TypeVar("T", bound=AuditMixin)

# Entity name (as used in delete_<entity> actions and admin URLs) -> model
ENTITY_REGISTRY: dict[str, Type[AuditMixin]] = {
    "sessions": TableSession,
    "session_customers": SessionCustomer,
    "orders": Order,
    "order_items": OrderItem,
    "tables": RestaurantTable,
}

# Called inside the same transaction after a tombstone change, before commit
TombstoneListener = Callable[[str, AuditMixin], None]


def get_model_class(entity: str) -> Type[AuditMixin]:
    """Resolve an entity name; unknown names are a ValidationError."""
    model = ENTITY_REGISTRY.get(entity.lower())
    if model is None:
        raise ValidationError(f"Unknown entity type '{entity}'", entity=entity)
    return model


class SoftDeleteStore:
    """
    Usage:
        store = SoftDeleteStore(db, PolicyEngine())
        store.soft_delete("orders", 12, actor)
        store.get("orders", 12)                        # None
        store.get("orders", 12, include_deleted=True)  # the tombstoned row
        store.restore("orders", 12, actor)
    """

    def __init__(
        self,
        db: Session,
        policy: PolicyEngine,
        events: EventSink | None = None,
    ):
        self.db = db
        self.policy = policy
        self.events = events
        self._listeners: list[TombstoneListener] = []

    def subscribe(self, listener: TombstoneListener) -> None:
        """Register a callback run after delete/restore/purge, before commit."""
        self._listeners.append(listener)

    # =========================================================================
    # Authorization chokepoint
    # =========================================================================

    def authorize(self, actor: Actor, action: str, resource: Resource) -> Decision:
        return self.policy.authorize(actor, action, resource)

    def authorize_entity(self, actor: Actor, action: str, entity: str, row: Any) -> Decision:
        return self.policy.authorize(actor, action, Resource.of(entity, row))

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, entity: str, entity_id: int, include_deleted: bool = False) -> Any | None:
        model = get_model_class(entity)
        stmt = select(model).where(model.id == entity_id)
        if not include_deleted:
            stmt = stmt.where(model.deleted_at.is_(None))
        return self.db.scalar(stmt)

    def list(
        self,
        entity: str,
        tenant_id: int,
        include_deleted: bool = False,
        **filters: Any,
    ) -> list[Any]:
        """
        List rows of one tenant. Filters are equality matches on columns.
        include_deleted is for restore/audit tooling only.
        """
        model = get_model_class(entity)
        stmt = select(model).where(model.tenant_id == tenant_id)
        if not include_deleted:
            stmt = stmt.where(model.deleted_at.is_(None))
        for column, value in filters.items():
            if not hasattr(model, column):
                raise ValidationError(f"Unknown filter '{column}' for {entity}", entity=entity)
            stmt = stmt.where(getattr(model, column) == value)
        return list(self.db.scalars(stmt.order_by(model.id)).all())

    def list_deleted(self, entity: str, actor: Actor) -> list[Any]:
        """Tombstoned rows of the actor's tenant, newest first."""
        self.authorize(actor, f"{Actions.RESTORE_PREFIX}{entity}", Resource.tenant(actor.tenant_id))
        model = get_model_class(entity)
        stmt = (
            select(model)
            .where(model.tenant_id == actor.tenant_id, model.deleted_at.is_not(None))
            .order_by(model.deleted_at.desc())
        )
        return list(self.db.scalars(stmt).all())

    def _load_for_write(self, entity: str, entity_id: int) -> Any:
        row = self.get(entity, entity_id, include_deleted=True)
        if row is None:
            raise NotAccessibleError(entity, entity_id)
        return row

    # =========================================================================
    # Tombstone lifecycle
    # =========================================================================

    def soft_delete(self, entity: str, entity_id: int, actor: Actor) -> Any:
        row = self._load_for_write(entity, entity_id)
        # Already tombstoned rows are denied by the policy
        self.authorize_entity(actor, f"{Actions.DELETE_PREFIX}{entity}", entity, row)

        with translate_timeouts(self.db, f"delete {entity}"):
            row.soft_delete(actor.identity_id)
            self.db.flush()
            self._notify(entity, row)
            safe_commit(self.db)
        self.db.refresh(row)

        logger.info("Entity soft-deleted", entity=entity, entity_id=entity_id, actor_id=actor.identity_id)
        self._publish(EventType.ENTITY_DELETED, entity, row, actor)
        return row

    def restore(self, entity: str, entity_id: int, actor: Actor) -> Any:
        row = self._load_for_write(entity, entity_id)
        self.authorize_entity(actor, f"{Actions.RESTORE_PREFIX}{entity}", entity, row)

        if row.deleted_at is None:
            raise InvalidStateError(entity, detail=f"{entity} {entity_id} is not deleted")

        if isinstance(row, TableSession) and row.status == SessionStatus.ACTIVE:
            self._ensure_no_other_active_session(row)

        with translate_timeouts(self.db, f"restore {entity}"):
            row.restore()
            try:
                self.db.flush()
            except IntegrityError as e:
                self.db.rollback()
                raise ConflictError(
                    f"Cannot restore {entity} {entity_id}: a live row now occupies its slot",
                    entity=entity,
                    entity_id=entity_id,
                ) from e
            self._notify(entity, row)
            safe_commit(self.db)
        self.db.refresh(row)

        logger.info("Entity restored", entity=entity, entity_id=entity_id, actor_id=actor.identity_id)
        self._publish(EventType.ENTITY_RESTORED, entity, row, actor)
        return row

    def purge(self, entity: str, entity_id: int, actor: Actor) -> None:
        row = self._load_for_write(entity, entity_id)
        self.authorize_entity(actor, f"{Actions.PURGE_PREFIX}{entity}", entity, row)

        if row.deleted_at is None:
            raise InvalidStateError(entity, detail=f"{entity} {entity_id} must be deleted before purge")

        tenant_id = row.tenant_id
        table_id = getattr(row, "table_id", None)
        # A purged session has no channel left to notify
        session_id = None if isinstance(row, TableSession) else getattr(row, "session_id", None)

        # Tombstoned rows were already excluded from totals when deleted,
        # so purge has nothing to recompute and does not notify listeners
        model = type(row)
        with translate_timeouts(self.db, f"purge {entity}"):
            self._purge_dependents(row)
            try:
                self.db.execute(delete(model).where(model.id == entity_id))
                self.db.flush()
            except IntegrityError as e:
                self.db.rollback()
                raise ConflictError(
                    f"Cannot purge {entity} {entity_id}: other rows still reference it",
                    entity=entity,
                    entity_id=entity_id,
                ) from e
            safe_commit(self.db)

        logger.info("Entity purged", entity=entity, entity_id=entity_id, actor_id=actor.identity_id)
        self._emit(Event(
            type=EventType.ENTITY_PURGED,
            tenant_id=tenant_id,
            table_id=table_id,
            session_id=session_id,
            entity={"entity": entity, "id": entity_id},
            actor=actor.to_dict(),
        ))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _ensure_no_other_active_session(self, session: TableSession) -> None:
        other = self.db.scalar(
            select(TableSession.id).where(
                TableSession.table_id == session.table_id,
                TableSession.status == SessionStatus.ACTIVE,
                TableSession.deleted_at.is_(None),
                TableSession.id != session.id,
            )
        )
        if other is not None:
            raise ConflictError(
                "Table already has an active session",
                table_id=session.table_id,
                active_session_id=other,
            )

    def _purge_dependents(self, row: AuditMixin) -> None:
        """
        Remove or unlink rows that reference the one being purged.

        Orders are not owned by sessions or customers, so they are unlinked
        rather than removed. Tables with any session history are refused.
        """
        if isinstance(row, TableSession):
            self.db.execute(
                update(Order)
                .where(Order.session_id == row.id)
                .values(session_id=None, customer_id=None)
            )
            self.db.execute(delete(SessionCustomer).where(SessionCustomer.session_id == row.id))
        elif isinstance(row, SessionCustomer):
            self.db.execute(
                update(Order).where(Order.customer_id == row.id).values(customer_id=None)
            )
        elif isinstance(row, Order):
            self.db.execute(delete(OrderItem).where(OrderItem.order_id == row.id))
        elif isinstance(row, RestaurantTable):
            has_history = self.db.scalar(
                select(TableSession.id).where(TableSession.table_id == row.id).limit(1)
            )
            if has_history is not None:
                raise ConflictError(
                    "Cannot purge a table with session history",
                    table_id=row.id,
                )

    def _notify(self, entity: str, row: AuditMixin) -> None:
        for listener in self._listeners:
            listener(entity, row)

    def _publish(self, event_type: str, entity: str, row: Any, actor: Actor) -> None:
        self._emit(Event(
            type=event_type,
            tenant_id=row.tenant_id,
            table_id=getattr(row, "table_id", None),
            session_id=row.id if isinstance(row, TableSession) else getattr(row, "session_id", None),
            entity={"entity": entity, "id": row.id},
            actor=actor.to_dict(),
        ))

    def _emit(self, event: Event) -> None:
        if self.events is None:
            return
        try:
            self.events.publish(event)
        except Exception as e:
            logger.error("Failed to publish event", event_type=event.type, error=str(e), exc_info=True)
