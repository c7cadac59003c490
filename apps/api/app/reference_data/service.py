from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from app.custom_fields.errors import ConflictError, NotFoundError
from app.custom_fields.models import utcnow
from app.custom_fields.repository import unit_of_work
from app.metrics import observe_delete, observe_mutation
from app.reference_data.models import Country, GeneralCode
from app.reference_data.schemas import CountryRead, CountryWrite, GeneralCodeRead, GeneralCodeWrite


logger = logging.getLogger("app.reference_data")


@dataclass(slots=True)
class CountryService:
    resource: str = "reference.country"

    def list(self, session: Session) -> list[CountryRead]:
        rows = session.scalars(select(Country).order_by(Country.country_name.asc())).all()
        return [CountryRead.model_validate(row) for row in rows]

    def get_by_id(self, session: Session, country_id: int) -> CountryRead | None:
        country = session.get(Country, country_id)
        return CountryRead.model_validate(country) if country is not None else None

    def save(self, session: Session, dto: CountryWrite) -> CountryRead:
        exclude_id = dto.id or None
        if self.code_exists(session, dto.country_code, exclude_id):
            raise ConflictError(f"country code '{dto.country_code.upper()}' already exists")
        if self.name_exists(session, dto.country_name, exclude_id):
            raise ConflictError(f"country name '{dto.country_name}' already exists")

        with unit_of_work(session, "country already exists"):
            if dto.id == 0:
                country = Country()
                session.add(country)
                action = "create"
            else:
                country = session.get(Country, dto.id)
                if country is None:
                    raise NotFoundError("country", dto.id)
                country.modified_at = utcnow()
                action = "update"

            country.country_code = dto.country_code.upper()
            country.country_name = dto.country_name
            country.is_active = dto.is_active
            session.flush()
            country_id = country.id

        observe_mutation(self.resource, action)
        logger.info("country.saved", extra={"record_id": country_id, "outcome": action})
        return CountryRead.model_validate(session.get(Country, country_id))

    def delete(self, session: Session, country_id: int) -> bool:
        country = session.get(Country, country_id)
        if country is None:
            return False
        with unit_of_work(session, "country is still referenced"):
            session.delete(country)
        observe_delete(self.resource, "removed")
        logger.info("country.deleted", extra={"record_id": country_id, "outcome": "removed"})
        return True

    def code_exists(self, session: Session, country_code: str, exclude_id: int | None = None) -> bool:
        if not country_code or not country_code.strip():
            return False
        stmt = select(Country.id).where(Country.country_code == country_code.strip().upper())
        if exclude_id is not None:
            stmt = stmt.where(Country.id != exclude_id)
        return session.scalar(stmt.limit(1)) is not None

    def name_exists(self, session: Session, country_name: str, exclude_id: int | None = None) -> bool:
        if not country_name or not country_name.strip():
            return False
        stmt = select(Country.id).where(func.lower(Country.country_name) == country_name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Country.id != exclude_id)
        return session.scalar(stmt.limit(1)) is not None


@dataclass(slots=True)
class GeneralCodeService:
    resource: str = "reference.general_code"

    def list(
        self,
        session: Session,
        *,
        code_type: int | None = None,
        language_code: int | None = None,
    ) -> list[GeneralCodeRead]:
        stmt = select(GeneralCode)
        if code_type is not None:
            stmt = stmt.where(GeneralCode.code_type == code_type)
        if language_code is not None:
            stmt = stmt.where(GeneralCode.language_code == language_code)
        rows = session.scalars(
            stmt.order_by(GeneralCode.code_type.asc(), GeneralCode.code_number.asc(), GeneralCode.language_code.asc())
        ).all()
        return [GeneralCodeRead.model_validate(row) for row in rows]

    def get_by_id(self, session: Session, code_id: int) -> GeneralCodeRead | None:
        code = session.get(GeneralCode, code_id)
        return GeneralCodeRead.model_validate(code) if code is not None else None

    def get_by_key(self, session: Session, code_type: int, code_number: int, language_code: int) -> GeneralCodeRead | None:
        code = session.scalar(
            select(GeneralCode).where(
                and_(
                    GeneralCode.code_type == code_type,
                    GeneralCode.code_number == code_number,
                    GeneralCode.language_code == language_code,
                )
            )
        )
        return GeneralCodeRead.model_validate(code) if code is not None else None

    def save(self, session: Session, dto: GeneralCodeWrite) -> GeneralCodeRead:
        if self.exists(session, dto.code_type, dto.code_number, dto.language_code, dto.id or None):
            raise ConflictError(
                f"general code with type {dto.code_type}, number {dto.code_number} "
                f"and language {dto.language_code} already exists"
            )

        with unit_of_work(session, "general code already exists"):
            if dto.id == 0:
                code = GeneralCode()
                session.add(code)
                action = "create"
            else:
                code = session.get(GeneralCode, dto.id)
                if code is None:
                    raise NotFoundError("general code", dto.id)
                code.closed_at = utcnow()
                action = "update"

            code.code_type = dto.code_type
            code.code_number = dto.code_number
            code.code_short_description = dto.code_short_description
            code.code_long_description = dto.code_long_description
            code.language_code = dto.language_code
            code.is_active = dto.is_active
            session.flush()
            code_id = code.id

        observe_mutation(self.resource, action)
        logger.info("general_code.saved", extra={"record_id": code_id, "outcome": action})
        return GeneralCodeRead.model_validate(session.get(GeneralCode, code_id))

    def delete(self, session: Session, code_id: int) -> bool:
        code = session.get(GeneralCode, code_id)
        if code is None:
            return False
        with unit_of_work(session, "general code is still referenced"):
            session.delete(code)
        observe_delete(self.resource, "removed")
        logger.info("general_code.deleted", extra={"record_id": code_id, "outcome": "removed"})
        return True

    def exists(
        self,
        session: Session,
        code_type: int,
        code_number: int,
        language_code: int,
        exclude_id: int | None = None,
    ) -> bool:
        stmt = select(GeneralCode.id).where(
            and_(
                GeneralCode.code_type == code_type,
                GeneralCode.code_number == code_number,
                GeneralCode.language_code == language_code,
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(GeneralCode.id != exclude_id)
        return session.scalar(stmt.limit(1)) is not None


country_service = CountryService()
general_code_service = GeneralCodeService()
