from datetime import date

MONTHS_SHOWN = 6


def _month_start(day, months_back):
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def _as_date(value):
    if value is None:
        return None
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    if hasattr(value, 'date'):
        return value.date()
    return value


def dashboard_stats(invoices, today=None):
    """Aggregate figures for the dashboard.

    Counts come from the stored status. An invoice only shows as overdue
    once the overdue sweep has marked it, so these numbers always agree
    with the invoice list filtered by status.
    """
    today = today or date.today()
    paid = [inv for inv in invoices if inv['status'] == 'paid']

    monthly_revenue = []
    for months_back in range(MONTHS_SHOWN - 1, -1, -1):
        start = _month_start(today, months_back)
        revenue = sum(
            inv['total'] for inv in paid
            if _as_date(inv['created_at']) and _month_start(_as_date(inv['created_at']), 0) == start
        )
        monthly_revenue.append({'month': start.strftime('%b'), 'revenue': revenue})

    return {
        'total_revenue': sum(inv['total'] for inv in paid),
        'paid_invoices': len(paid),
        'pending_invoices': sum(1 for inv in invoices if inv['status'] == 'sent'),
        'overdue_invoices': sum(1 for inv in invoices if inv['status'] == 'overdue'),
        'monthly_revenue': monthly_revenue,
    }
