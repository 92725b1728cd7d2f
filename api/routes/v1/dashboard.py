"""
api/routes/v1/dashboard.py -- Fleet summary and chart data endpoints.

Returns payloads suitable for driving dashboard widgets:
  GET /dashboard         -- summary counts, fleet value and the replacement budget
  GET /dashboard/charts  -- every chart series as plain rows

Retired devices are excluded unless include_retired=true. These are
read-only aggregate routes -- no mutations here.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from api.fleet import load_fleet
from api.limiter import limiter
from api.models import BudgetLine, ChartsResponse, DashboardResponse, SummaryModel
from auth.dependencies import get_current_user
from core.charts import build_chart_data, replacement_cost_projection
from core.config import get_settings
from core.models import Device
from core.summary import calculate_device_summary

# Auth policy: aggregated fleet metrics are internal data.
# Router-level dependency enforces auth; the handlers do not repeat it.
router = APIRouter(dependencies=[Depends(get_current_user)])


def _visible(request: Request, include_retired: bool) -> list[Device]:
    return [d for d in load_fleet(request) if include_retired or not d.is_retired]


@limiter.limit("60/minute")
@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(request: Request, include_retired: bool = False) -> DashboardResponse:
    """Return the fleet summary plus the replacement budget projection.

    Response:
      summary    -- status counts, activity, replacement, age and value totals
      unit_cost  -- per-device replacement cost used for the budget
      budget     -- cost and device count per fiscal-year bucket plus a total
    """
    devices = _visible(request, include_retired)
    unit_cost = get_settings().replacement_unit_cost
    budget = replacement_cost_projection(devices, unit_cost)
    return DashboardResponse(
        summary=SummaryModel.from_summary(calculate_device_summary(devices)),
        unit_cost=unit_cost,
        budget=[BudgetLine(name=b.name, cost=b.cost, devices=b.devices) for b in budget],
    )


@limiter.limit("30/minute")
@router.get("/dashboard/charts", response_model=ChartsResponse)
def get_charts(request: Request, include_retired: bool = False) -> ChartsResponse:
    """Return every chart series keyed by chart name."""
    devices = _visible(request, include_retired)
    series = build_chart_data(devices, get_settings().replacement_unit_cost)
    return ChartsResponse(series={name: [asdict(row) for row in rows] for name, rows in series.items()})
