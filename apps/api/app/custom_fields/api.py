from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.errors import error_response
from app.core.auth import get_actor_id
from app.core.database import get_db
from app.custom_fields.errors import NotFoundError
from app.custom_fields.schemas import (
    FieldDefinitionRead,
    FieldDefinitionWrite,
    FieldGroupRead,
    FieldGroupWrite,
    FieldOptionRead,
    FieldOptionWrite,
    FieldValueRead,
    FieldValueWrite,
    FieldWithValueRead,
)
from app.custom_fields.service import (
    field_definition_service,
    field_group_service,
    field_option_service,
    field_value_service,
)


groups_router = APIRouter(prefix="/api/custom-fields/groups", tags=["custom-fields"])
definitions_router = APIRouter(prefix="/api/custom-fields/definitions", tags=["custom-fields"])
options_router = APIRouter(prefix="/api/custom-fields/options", tags=["custom-fields"])
values_router = APIRouter(prefix="/api/custom-fields/values", tags=["custom-fields"])


def _save_status(record_id: int) -> int:
    return status.HTTP_201_CREATED if record_id == 0 else status.HTTP_200_OK


def _reorder_rejected(request: Request, resource: str) -> JSONResponse:
    return error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        code="reorder_failed",
        message=f"none of the given {resource} ids exist",
    )


@groups_router.get("", response_model=list[FieldGroupRead])
def list_groups(
    entity_type: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[FieldGroupRead]:
    return field_group_service.list(db, entity_type)


@groups_router.get("/name-exists", response_model=bool)
def group_name_exists(
    entity_type: str = Query(min_length=1),
    name: str = Query(min_length=1),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> bool:
    return field_group_service.name_exists(db, entity_type, name, exclude_id)


@groups_router.get("/{group_id}", response_model=FieldGroupRead)
def get_group(group_id: int, db: Session = Depends(get_db)) -> FieldGroupRead:
    group = field_group_service.get_by_id(db, group_id)
    if group is None:
        raise NotFoundError("custom field group", group_id)
    return group


@groups_router.post("", response_model=FieldGroupRead)
def save_group(
    payload: FieldGroupWrite,
    response: Response,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> FieldGroupRead:
    response.status_code = _save_status(payload.id)
    return field_group_service.save(db, payload, actor_id)


@groups_router.put("/reorder", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def reorder_groups(
    request: Request,
    ordered_ids: list[int] = Body(...),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> Response:
    if not field_group_service.reorder(db, ordered_ids, actor_id):
        return _reorder_rejected(request, "group")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@groups_router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> Response:
    if not field_group_service.delete(db, group_id, actor_id):
        raise NotFoundError("custom field group", group_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@definitions_router.get("", response_model=list[FieldDefinitionRead])
def list_definitions(db: Session = Depends(get_db)) -> list[FieldDefinitionRead]:
    return field_definition_service.list(db)


@definitions_router.get("/name-exists", response_model=bool)
def definition_name_exists(
    entity_type: str = Query(min_length=1),
    name: str = Query(min_length=1),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> bool:
    return field_definition_service.name_exists(db, entity_type, name, exclude_id)


@definitions_router.get("/entity/{entity_type}", response_model=list[FieldDefinitionRead])
def list_definitions_by_entity_type(entity_type: str, db: Session = Depends(get_db)) -> list[FieldDefinitionRead]:
    return field_definition_service.list_by_entity_type(db, entity_type)


@definitions_router.get("/entity/{entity_type}/grouped", response_model=list[FieldGroupRead])
def list_definitions_grouped(entity_type: str, db: Session = Depends(get_db)) -> list[FieldGroupRead]:
    return field_definition_service.list_grouped_by_entity_type(db, entity_type)


@definitions_router.get("/group/{group_id}", response_model=list[FieldDefinitionRead])
def list_definitions_by_group(group_id: int, db: Session = Depends(get_db)) -> list[FieldDefinitionRead]:
    return field_definition_service.list_by_group(db, group_id)


@definitions_router.get("/{definition_id}", response_model=FieldDefinitionRead)
def get_definition(definition_id: int, db: Session = Depends(get_db)) -> FieldDefinitionRead:
    definition = field_definition_service.get_by_id(db, definition_id)
    if definition is None:
        raise NotFoundError("custom field definition", definition_id)
    return definition


@definitions_router.post("", response_model=FieldDefinitionRead)
def save_definition(
    payload: FieldDefinitionWrite,
    response: Response,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> FieldDefinitionRead:
    response.status_code = _save_status(payload.id)
    return field_definition_service.save(db, payload, actor_id)


@definitions_router.put("/reorder", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def reorder_definitions(
    request: Request,
    ordered_ids: list[int] = Body(...),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> Response:
    if not field_definition_service.reorder(db, ordered_ids, actor_id):
        return _reorder_rejected(request, "definition")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@definitions_router.delete("/{definition_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_definition(
    definition_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> Response:
    if not field_definition_service.delete(db, definition_id, actor_id):
        raise NotFoundError("custom field definition", definition_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@options_router.get("/field/{field_definition_id}", response_model=list[FieldOptionRead])
def list_options(field_definition_id: int, db: Session = Depends(get_db)) -> list[FieldOptionRead]:
    return field_option_service.list_by_field(db, field_definition_id)


@options_router.put("/field/{field_definition_id}", response_model=list[FieldOptionRead])
def reconcile_options(
    field_definition_id: int,
    options: list[FieldOptionWrite] = Body(...),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> list[FieldOptionRead]:
    return field_option_service.reconcile(db, field_definition_id, options, actor_id)


@options_router.put("/reorder", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def reorder_options(
    request: Request,
    ordered_ids: list[int] = Body(...),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> Response:
    if not field_option_service.reorder(db, ordered_ids, actor_id):
        return _reorder_rejected(request, "option")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@values_router.get("/{entity_type}/{entity_id}", response_model=list[FieldValueRead])
def list_values(entity_type: str, entity_id: int, db: Session = Depends(get_db)) -> list[FieldValueRead]:
    return field_value_service.list_by_entity(db, entity_type, entity_id)


@values_router.get("/{entity_type}/{entity_id}/with-definitions", response_model=list[FieldWithValueRead])
def list_values_with_definitions(
    entity_type: str,
    entity_id: int,
    db: Session = Depends(get_db),
) -> list[FieldWithValueRead]:
    return field_value_service.with_definitions_by_entity(db, entity_type, entity_id)


@values_router.get("/{entity_type}/{entity_id}/grouped", response_model=list[FieldGroupRead])
def list_values_grouped(entity_type: str, entity_id: int, db: Session = Depends(get_db)) -> list[FieldGroupRead]:
    return field_value_service.with_definitions_grouped_by_entity(db, entity_type, entity_id)


@values_router.post("", response_model=list[FieldValueRead])
def save_values(
    values: list[FieldValueWrite] = Body(...),
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_actor_id),
) -> list[FieldValueRead]:
    return field_value_service.save_many(db, values, actor_id)
