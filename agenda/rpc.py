"""RPC requests accepted by the single API endpoint.

The JSON body ``{action, entity, payload}`` is turned into one of the request
types below at the boundary; anything else is rejected before reaching the
gateway.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Union

from .booking import cancel_session, reschedule_session, schedule_session
from .context import RequestContext
from .entities import SESSIONS, get_entity
from .errors import AuthorizationFailure, ValidationFailure
from .gateway import Gateway


@dataclass(frozen=True)
class GetRole:
    pass


@dataclass(frozen=True)
class ListEntity:
    entity: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InsertEntity:
    entity: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class UpdateEntity:
    entity: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class DeleteEntity:
    entity: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class ScheduleSession:
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class RescheduleSession:
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class CancelSession:
    payload: Mapping[str, Any]


RpcRequest = Union[
    GetRole,
    ListEntity,
    InsertEntity,
    UpdateEntity,
    DeleteEntity,
    ScheduleSession,
    RescheduleSession,
    CancelSession,
]

_ENTITY_ACTIONS = {
    "insert": InsertEntity,
    "update": UpdateEntity,
    "delete": DeleteEntity,
}

_BOOKING_ACTIONS = {
    "schedule": ScheduleSession,
    "reschedule": RescheduleSession,
    "cancel": CancelSession,
}


def _payload(body: Mapping[str, Any], *, required: bool) -> Mapping[str, Any]:
    payload = body.get("payload")
    if payload is None and not required:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationFailure("Le champ 'payload' est requis")
    return payload


def parse_request(body: Any) -> RpcRequest:
    if not isinstance(body, Mapping):
        raise ValidationFailure("Corps de requête JSON attendu")
    action = body.get("action")
    if action == "getRole":
        return GetRole()
    if action == "list":
        return ListEntity(get_entity(body.get("entity")).name, _payload(body, required=False))
    if action in _ENTITY_ACTIONS:
        entity = get_entity(body.get("entity")).name
        return _ENTITY_ACTIONS[action](entity, _payload(body, required=True))
    if action in _BOOKING_ACTIONS:
        entity = body.get("entity")
        if entity is not None and entity != SESSIONS:
            raise ValidationFailure(f"L'action {action} ne s'applique qu'aux séances")
        return _BOOKING_ACTIONS[action](_payload(body, required=True))
    raise ValidationFailure("Action invalide")


def _get_role(request: GetRole, ctx: RequestContext) -> dict[str, Any]:
    if ctx.actor.is_forbidden:
        raise AuthorizationFailure("Adresse e-mail non autorisée")
    return {"role": ctx.actor.role.value, "id": ctx.actor.actor_id}


def _list(request: ListEntity, ctx: RequestContext) -> dict[str, Any]:
    return {"data": Gateway(ctx).list(request.entity, request.options)}


def _insert(request: InsertEntity, ctx: RequestContext) -> dict[str, Any]:
    return {"insertedId": Gateway(ctx).insert(request.entity, request.payload)}


def _update(request: UpdateEntity, ctx: RequestContext) -> dict[str, Any]:
    Gateway(ctx).update(request.entity, request.payload)
    return {}


def _delete(request: DeleteEntity, ctx: RequestContext) -> dict[str, Any]:
    return {"deleted": Gateway(ctx).delete(request.entity, request.payload)}


def _schedule(request: ScheduleSession, ctx: RequestContext) -> dict[str, Any]:
    return {"insertedId": schedule_session(ctx, request.payload)}


def _reschedule(request: RescheduleSession, ctx: RequestContext) -> dict[str, Any]:
    reschedule_session(ctx, request.payload)
    return {}


def _cancel(request: CancelSession, ctx: RequestContext) -> dict[str, Any]:
    cancel_session(ctx, request.payload)
    return {}


HANDLERS: dict[type, Callable[[Any, RequestContext], dict[str, Any]]] = {
    GetRole: _get_role,
    ListEntity: _list,
    InsertEntity: _insert,
    UpdateEntity: _update,
    DeleteEntity: _delete,
    ScheduleSession: _schedule,
    RescheduleSession: _reschedule,
    CancelSession: _cancel,
}


def dispatch(request: RpcRequest, ctx: RequestContext) -> dict[str, Any]:
    if not isinstance(request, GetRole) and ctx.actor.is_forbidden:
        raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")
    return HANDLERS[type(request)](request, ctx)
