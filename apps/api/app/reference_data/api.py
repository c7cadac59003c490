from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.custom_fields.errors import NotFoundError
from app.reference_data.schemas import CountryRead, CountryWrite, GeneralCodeRead, GeneralCodeWrite
from app.reference_data.service import country_service, general_code_service


countries_router = APIRouter(prefix="/api/countries", tags=["reference-data"])
general_codes_router = APIRouter(prefix="/api/general-codes", tags=["reference-data"])


def _save_status(record_id: int) -> int:
    return status.HTTP_201_CREATED if record_id == 0 else status.HTTP_200_OK


@countries_router.get("", response_model=list[CountryRead])
def list_countries(db: Session = Depends(get_db)) -> list[CountryRead]:
    return country_service.list(db)


@countries_router.get("/code-exists", response_model=bool)
def country_code_exists(
    country_code: str = Query(min_length=1),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> bool:
    return country_service.code_exists(db, country_code, exclude_id)


@countries_router.get("/name-exists", response_model=bool)
def country_name_exists(
    country_name: str = Query(min_length=1),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> bool:
    return country_service.name_exists(db, country_name, exclude_id)


@countries_router.get("/{country_id}", response_model=CountryRead)
def get_country(country_id: int, db: Session = Depends(get_db)) -> CountryRead:
    country = country_service.get_by_id(db, country_id)
    if country is None:
        raise NotFoundError("country", country_id)
    return country


@countries_router.post("", response_model=CountryRead)
def save_country(payload: CountryWrite, response: Response, db: Session = Depends(get_db)) -> CountryRead:
    response.status_code = _save_status(payload.id)
    return country_service.save(db, payload)


@countries_router.delete("/{country_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_country(country_id: int, db: Session = Depends(get_db)) -> Response:
    if not country_service.delete(db, country_id):
        raise NotFoundError("country", country_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@general_codes_router.get("", response_model=list[GeneralCodeRead])
def list_general_codes(
    code_type: int | None = Query(default=None),
    language_code: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[GeneralCodeRead]:
    return general_code_service.list(db, code_type=code_type, language_code=language_code)


@general_codes_router.get("/exists", response_model=bool)
def general_code_exists(
    code_type: int = Query(),
    code_number: int = Query(),
    language_code: int = Query(),
    exclude_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> bool:
    return general_code_service.exists(db, code_type, code_number, language_code, exclude_id)


@general_codes_router.get("/key/{code_type}/{code_number}/{language_code}", response_model=GeneralCodeRead)
def get_general_code_by_key(
    code_type: int,
    code_number: int,
    language_code: int,
    db: Session = Depends(get_db),
) -> GeneralCodeRead:
    code = general_code_service.get_by_key(db, code_type, code_number, language_code)
    if code is None:
        raise NotFoundError("general code", f"{code_type}/{code_number}/{language_code}")
    return code


@general_codes_router.get("/{code_id}", response_model=GeneralCodeRead)
def get_general_code(code_id: int, db: Session = Depends(get_db)) -> GeneralCodeRead:
    code = general_code_service.get_by_id(db, code_id)
    if code is None:
        raise NotFoundError("general code", code_id)
    return code


@general_codes_router.post("", response_model=GeneralCodeRead)
def save_general_code(payload: GeneralCodeWrite, response: Response, db: Session = Depends(get_db)) -> GeneralCodeRead:
    response.status_code = _save_status(payload.id)
    return general_code_service.save(db, payload)


@general_codes_router.delete("/{code_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_general_code(code_id: int, db: Session = Depends(get_db)) -> Response:
    if not general_code_service.delete(db, code_id):
        raise NotFoundError("general code", code_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
