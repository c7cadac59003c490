from app.reference_data.models import Country, GeneralCode
from app.reference_data.schemas import CountryRead, CountryWrite, GeneralCodeRead, GeneralCodeWrite
from app.reference_data.service import CountryService, GeneralCodeService, country_service, general_code_service

__all__ = [
    "Country",
    "GeneralCode",
    "CountryRead",
    "CountryWrite",
    "GeneralCodeRead",
    "GeneralCodeWrite",
    "CountryService",
    "GeneralCodeService",
    "country_service",
    "general_code_service",
]
