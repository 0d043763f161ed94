from jobdesk import ledger, paths
from jobdesk.ledger import in_month
from jobdesk.schemas import DashboardStats, MonthlySummary, Quote
from jobdesk.store import DocumentStore, validate_tenant_id
from jobdesk.totals import round2

APPROVED_STATES = ("approved", "in_progress", "completed")


async def dashboard_stats(store: DocumentStore, tenant_id: str) -> DashboardStats:
    validate_tenant_id(tenant_id)
    stats = DashboardStats()
    for raw in await store.list_docs(tenant_id, paths.QUOTES):
        if raw.get("deleted_at"):
            continue
        quote = Quote.model_validate(raw)
        stats.total_quotes += 1
        if quote.status == "pending":
            stats.pending_count += 1
            stats.pending_amount += quote.total
        elif quote.status in APPROVED_STATES:
            stats.approved_count += 1
            stats.approved_amount += quote.total
            stats.collected_amount += sum(p.amount for p in quote.payments)
    stats.pending_amount = round2(stats.pending_amount)
    stats.approved_amount = round2(stats.approved_amount)
    stats.collected_amount = round2(stats.collected_amount)
    return stats


async def monthly_summary(store: DocumentStore, tenant_id: str, year: int, month: int) -> MonthlySummary:
    """Income from approved quotes and manual entries against expenses for one month.

    A quote counts in the month it was approved, or the month it was created
    when it carries no approval date.
    """
    validate_tenant_id(tenant_id)
    quote_income = 0.0
    for raw in await store.list_docs(tenant_id, paths.QUOTES):
        if raw.get("deleted_at") or raw.get("status") not in APPROVED_STATES:
            continue
        when = raw.get("approved_at") or raw.get("created_at") or 0
        if in_month(when, year, month):
            quote_income += raw.get("total") or 0

    manual_income = 0.0
    expenses = 0.0
    for entry in await ledger.list_month(store, tenant_id, paths.TRANSACTIONS, year, month):
        if entry["kind"] == "income":
            manual_income += entry["amount"]
        else:
            expenses += entry["amount"]
    for entry in await ledger.list_month(store, tenant_id, paths.EXPENSES, year, month):
        expenses += entry["amount"]

    income = quote_income + manual_income
    return MonthlySummary(
        year=year,
        month=month,
        quote_income=round2(quote_income),
        manual_income=round2(manual_income),
        income=round2(income),
        expenses=round2(expenses),
        profit=round2(income - expenses),
    )
