"""
Admin router: tombstone lifecycle for session-core entities and the
tenant-wide session listing.

Supported entity types: sessions, session_customers, orders, order_items, tables.
All routes are prefixed with /api/admin.
"""

from fastapi import APIRouter, Depends

from tableside.core.dependencies import Services, get_actor, get_services
from tableside.schemas import (
    DeletedEntityOutput,
    EntityOutput,
    PurgeOutput,
    SessionOutput,
)
from tableside.services.permissions import Actor


router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/sessions", response_model=list[SessionOutput])
def list_active_sessions(
    restaurant_id: int | None = None,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> list[SessionOutput]:
    """Active sessions of a restaurant (defaults to the caller's)."""
    tenant_id = restaurant_id if restaurant_id is not None else actor.tenant_id
    return [
        SessionOutput.model_validate(s)
        for s in services.sessions.list_active_sessions(tenant_id, actor)
    ]


@router.get("/{entity_type}/deleted", response_model=list[DeletedEntityOutput])
def list_deleted_entities(
    entity_type: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> list[DeletedEntityOutput]:
    """Tombstoned rows of the caller's restaurant, newest first."""
    return [
        DeletedEntityOutput(
            entity_id=row.id,
            deleted_at=row.deleted_at,
            deleted_by_id=row.deleted_by_id,
        )
        for row in services.store.list_deleted(entity_type, actor)
    ]


@router.delete("/{entity_type}/{entity_id}", response_model=EntityOutput)
def delete_entity(
    entity_type: str,
    entity_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> EntityOutput:
    row = services.store.soft_delete(entity_type, entity_id, actor)
    return EntityOutput(
        entity_type=entity_type,
        entity_id=entity_id,
        deleted_at=row.deleted_at,
        is_active=row.is_active,
    )


@router.post("/{entity_type}/{entity_id}/restore", response_model=EntityOutput)
def restore_entity(
    entity_type: str,
    entity_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> EntityOutput:
    row = services.store.restore(entity_type, entity_id, actor)
    return EntityOutput(
        entity_type=entity_type,
        entity_id=entity_id,
        deleted_at=row.deleted_at,
        is_active=row.is_active,
    )


@router.delete("/{entity_type}/{entity_id}/purge", response_model=PurgeOutput)
def purge_entity(
    entity_type: str,
    entity_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> PurgeOutput:
    """Hard-delete a tombstoned row. Owner only; live rows are refused."""
    services.store.purge(entity_type, entity_id, actor)
    return PurgeOutput(
        success=True,
        message=f"{entity_type} {entity_id} purged",
        entity_type=entity_type,
        entity_id=entity_id,
    )
