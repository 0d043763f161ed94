from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from jobdesk import schemas
from jobdesk.deps import get_current_user, get_store
from jobdesk.reporting import dashboard_stats, monthly_summary
from jobdesk.store import DocumentStore

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/dashboard", response_model=schemas.DashboardStats)
async def reports_dashboard(user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return await dashboard_stats(store, user["tenant_id"])


@router.get("/monthly", response_model=schemas.MonthlySummary)
async def reports_monthly(
    year: Optional[int] = Query(default=None, ge=1970),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    # defaults to the current UTC month
    today = datetime.now(timezone.utc)
    return await monthly_summary(store, user["tenant_id"], year or today.year, month or today.month)
