"""
api/routes/v1/models.py -- Model catalog lookup.

GET /models/{code} resolves a raw model identifier (e.g. "MacBookPro18,1",
"20XW", "Latitude 5420") to its friendly name, manufacturer, release year,
MSRP and today's depreciated value. Unknown codes still return 200 with the
fallback name, year 0 and a category default MSRP -- the lookup never fails.
"""

from fastapi import APIRouter, Depends, Path, Request

from api.limiter import limiter
from api.models import ModelLookupResponse
from auth.dependencies import get_current_user
from core.catalog import get_manufacturer_from_model, get_model_msrp, get_model_release_year, lookup_model_name
from core.valuation import get_device_value

router = APIRouter(dependencies=[Depends(get_current_user)])


@limiter.limit("60/minute")
@router.get("/models/{code}", response_model=ModelLookupResponse)
def lookup_model(request: Request, code: str = Path(max_length=100)) -> ModelLookupResponse:
    name = lookup_model_name(code)
    value = get_device_value(code, name)
    return ModelLookupResponse(
        code=code,
        name=name,
        manufacturer=get_manufacturer_from_model(code),
        year=get_model_release_year(code),
        msrp=get_model_msrp(code),
        estimated_msrp=value.msrp,
        age_in_years=value.age_in_years,
        current_value=value.current_value,
        depreciation_percent=value.depreciation_percent,
    )
