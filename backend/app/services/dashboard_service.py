# Overview: Service-layer operations for the dashboard; aggregate figures and charts.

from __future__ import annotations

from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal

from app.extensions import db
from app.models import (
    User,
    Distributor,
    Product,
    Invoice,
    Payment,
    SalesStaffDistributor,
    OPEN_STATUSES,
)
from app.formatting import to_float, to_int
from app.time_utils import period_start, today, to_utc_z
from app.validation import ValidationError, money


REVENUE_PERIODS = ("day", "week", "month", "year")
PERFORMANCE_PERIODS = ("week", "month", "quarter", "year")
CHART_WINDOW_DAYS = 30

# strftime labels per revenue chart period; "year" buckets by month
_REVENUE_LABELS = {
    "day": "%Y-%m-%d",
    "week": "%b %d",
    "month": "%m-%d",
    "year": "%b %Y",
}


def _own_invoices(query, actor: User):
    if not actor.is_admin:
        query = query.filter(Invoice.sales_staff_id == actor.user_id)
    return query


def _own_payments(query, actor: User):
    if not actor.is_admin:
        query = query.filter(Payment.collected_by == actor.user_id)
    return query


def _count_when(condition):
    return db.func.coalesce(db.func.sum(db.case((condition, 1), else_=0)), 0)


def _sum_when(condition, value):
    return db.func.coalesce(db.func.sum(db.case((condition, value), else_=0)), 0)


def _growth(current, previous) -> float:
    """Percent change, 0 when there is nothing to compare against."""
    current = Decimal(str(current or 0))
    previous = Decimal(str(previous or 0))
    if previous <= 0:
        return 0.0
    return to_float(money((current - previous) / previous * 100))


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

def _invoice_stats(actor: User, current: date) -> dict:
    week_start = period_start("week", current)
    month_start = period_start("month", current)
    not_cancelled = Invoice.status != "cancelled"

    row = _own_invoices(
        db.session.query(
            db.func.count(Invoice.invoice_id),
            _count_when(Invoice.status == "paid"),
            _count_when(Invoice.status.in_(OPEN_STATUSES)),
            _count_when(Invoice.status == "overdue"),
            _count_when(Invoice.invoice_date == current),
            _count_when(Invoice.invoice_date >= week_start),
            _count_when(Invoice.invoice_date >= month_start),
            _sum_when(not_cancelled, Invoice.total_amount),
            db.func.coalesce(db.func.sum(Invoice.paid_amount), 0),
            _sum_when(Invoice.status.notin_(("cancelled", "paid")), Invoice.total_amount - Invoice.paid_amount),
            _sum_when(db.and_(not_cancelled, Invoice.invoice_date == current), Invoice.total_amount),
            _sum_when(db.and_(not_cancelled, Invoice.invoice_date >= week_start), Invoice.total_amount),
            _sum_when(db.and_(not_cancelled, Invoice.invoice_date >= month_start), Invoice.total_amount),
            _sum_when(Invoice.invoice_date >= month_start, Invoice.paid_amount),
        ),
        actor,
    ).one()

    (
        total, paid, pending, overdue, today_count, week_count, month_count,
        revenue, total_paid, total_pending, today_revenue, week_revenue, month_revenue, month_collected,
    ) = row
    return {
        "total_invoices": to_int(total),
        "paid_invoices": to_int(paid),
        "pending_invoices": to_int(pending),
        "overdue_invoices": to_int(overdue),
        "today_invoices": to_int(today_count),
        "week_invoices": to_int(week_count),
        "month_invoices": to_int(month_count),
        "total_revenue": to_float(revenue),
        "total_paid": to_float(total_paid),
        "total_pending": to_float(total_pending),
        "today_revenue": to_float(today_revenue),
        "week_revenue": to_float(week_revenue),
        "month_revenue": to_float(month_revenue),
        "month_collected": to_float(month_collected),
    }


def _payment_stats(actor: User, current: date) -> dict:
    week_start = period_start("week", current)
    month_start = period_start("month", current)

    row = _own_payments(
        db.session.query(
            _count_when(Payment.payment_date == current),
            _sum_when(Payment.payment_date == current, Payment.amount),
            _count_when(Payment.payment_date >= week_start),
            _sum_when(Payment.payment_date >= week_start, Payment.amount),
            _count_when(Payment.payment_date >= month_start),
            _sum_when(Payment.payment_date >= month_start, Payment.amount),
        ),
        actor,
    ).one()
    return {
        "today_payments": to_int(row[0]),
        "today_collections": to_float(row[1]),
        "week_payments": to_int(row[2]),
        "week_collections": to_float(row[3]),
        "month_payments": to_int(row[4]),
        "month_collections": to_float(row[5]),
    }


def _admin_counts(current: date) -> dict:
    def count(query):
        return to_int(query.scalar())

    return {
        "total_users": count(db.session.query(db.func.count(User.user_id)).filter(User.is_active.is_(True))),
        "total_sales_staff": count(
            db.session.query(db.func.count(User.user_id))
            .filter(User.role == "sales_staff", User.is_active.is_(True))
        ),
        "total_distributors": count(
            db.session.query(db.func.count(Distributor.distributor_id)).filter(Distributor.is_active.is_(True))
        ),
        "new_distributors_this_month": count(
            db.session.query(db.func.count(Distributor.distributor_id))
            .filter(Distributor.created_at >= period_start("month", current))
        ),
        "total_products": count(
            db.session.query(db.func.count(Product.product_id)).filter(Product.is_active.is_(True))
        ),
        "total_categories": count(
            db.session.query(db.func.count(db.distinct(Product.category)))
            .filter(Product.category.isnot(None), Product.is_active.is_(True))
        ),
    }


def dashboard_stats(*, actor: User) -> dict:
    current = today()
    if actor.is_admin:
        stats = _admin_counts(current)
    else:
        stats = {
            "assigned_distributors": to_int(
                db.session.query(db.func.count(SalesStaffDistributor.assignment_id))
                .join(Distributor, Distributor.distributor_id == SalesStaffDistributor.distributor_id)
                .filter(
                    SalesStaffDistributor.sales_staff_id == actor.user_id,
                    SalesStaffDistributor.is_active.is_(True),
                    Distributor.is_active.is_(True),
                )
                .scalar()
            ),
        }
    stats.update(_invoice_stats(actor, current))
    stats.update(_payment_stats(actor, current))
    return {"stats": stats, "user_role": actor.role}


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------

def recent_activities(*, actor: User, limit: int = 10) -> list[dict]:
    """Newest invoices, payments and (admins only) distributors, merged by time."""
    performer = None if actor.is_admin else "You"
    activities = []

    invoices = (
        _own_invoices(
            db.session.query(Invoice, Distributor.distributor_name, User.full_name)
            .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
            .outerjoin(User, User.user_id == Invoice.sales_staff_id),
            actor,
        )
        .order_by(Invoice.created_at.desc(), Invoice.invoice_id.desc())
        .limit(limit)
        .all()
    )
    for invoice, distributor_name, staff_name in invoices:
        activities.append({
            "activity_type": "invoice_created",
            "record_id": invoice.invoice_id,
            "title": invoice.invoice_number,
            "description": distributor_name,
            "performed_by": performer or staff_name,
            "activity_date": invoice.created_at,
            "amount": to_float(invoice.total_amount),
        })

    payments = (
        _own_payments(
            db.session.query(Payment, Invoice.invoice_number, Distributor.distributor_name, User.full_name)
            .join(Invoice, Invoice.invoice_id == Payment.invoice_id)
            .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
            .outerjoin(User, User.user_id == Payment.collected_by),
            actor,
        )
        .order_by(Payment.created_at.desc(), Payment.payment_id.desc())
        .limit(limit)
        .all()
    )
    for payment, invoice_number, distributor_name, collector_name in payments:
        activities.append({
            "activity_type": "payment_received",
            "record_id": payment.payment_id,
            "title": f"Payment #{payment.payment_id}",
            "description": f"Invoice: {invoice_number} - {distributor_name}",
            "performed_by": performer or collector_name,
            "activity_date": payment.created_at,
            "amount": to_float(payment.amount),
        })

    if actor.is_admin:
        distributors = (
            db.session.query(Distributor, User.full_name)
            .outerjoin(User, User.user_id == Distributor.created_by)
            .order_by(Distributor.created_at.desc(), Distributor.distributor_id.desc())
            .limit(limit)
            .all()
        )
        for distributor, creator_name in distributors:
            activities.append({
                "activity_type": "distributor_added",
                "record_id": distributor.distributor_id,
                "title": distributor.distributor_name,
                "description": "New distributor added",
                "performed_by": creator_name,
                "activity_date": distributor.created_at,
                "amount": None,
            })

    activities.sort(key=lambda a: (a["activity_date"] is not None, a["activity_date"]), reverse=True)
    for activity in activities:
        activity["activity_date"] = to_utc_z(activity["activity_date"])
    return activities[:limit]


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------

def revenue_chart(*, actor: User, period: str = "month") -> list[dict]:
    """
    Revenue of the last 30 days, bucketed per day ("year" buckets per month).
    Cancelled invoices are excluded.
    """
    if period not in REVENUE_PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(REVENUE_PERIODS)}")

    since = today() - timedelta(days=CHART_WINDOW_DAYS)
    rows = (
        _own_invoices(
            db.session.query(Invoice.invoice_date, Invoice.total_amount, Invoice.paid_amount)
            .filter(Invoice.invoice_date >= since, Invoice.status != "cancelled"),
            actor,
        )
        .order_by(Invoice.invoice_date.asc())
        .all()
    )

    buckets: OrderedDict[date, dict] = OrderedDict()
    for invoice_date, total_amount, paid_amount in rows:
        key = invoice_date.replace(day=1) if period == "year" else invoice_date
        bucket = buckets.setdefault(key, {
            "period_label": key.strftime(_REVENUE_LABELS[period]),
            "period_date": key.isoformat(),
            "invoice_count": 0,
            "total_revenue": Decimal("0"),
            "total_collected": Decimal("0"),
        })
        bucket["invoice_count"] += 1
        bucket["total_revenue"] += total_amount or 0
        bucket["total_collected"] += paid_amount or 0

    for bucket in buckets.values():
        bucket["total_revenue"] = to_float(bucket["total_revenue"])
        bucket["total_collected"] = to_float(bucket["total_collected"])
    return list(buckets.values())


def top_distributors(*, actor: User, limit: int = 10) -> list[dict]:
    total_revenue = db.func.coalesce(db.func.sum(Invoice.total_amount), 0)
    rows = (
        _own_invoices(
            db.session.query(
                Distributor.distributor_id,
                Distributor.distributor_name,
                Distributor.city,
                db.func.count(Invoice.invoice_id),
                total_revenue,
                db.func.coalesce(db.func.sum(Invoice.paid_amount), 0),
            )
            .join(Invoice, Invoice.distributor_id == Distributor.distributor_id)
            .filter(Invoice.status != "cancelled"),
            actor,
        )
        .group_by(Distributor.distributor_id, Distributor.distributor_name, Distributor.city)
        .order_by(total_revenue.desc(), Distributor.distributor_name.asc())
        .limit(limit)
        .all()
    )
    result = []
    for distributor_id, name, city, invoice_count, revenue, collected in rows:
        revenue = Decimal(str(revenue or 0))
        collected = Decimal(str(collected or 0))
        result.append({
            "distributor_id": distributor_id,
            "distributor_name": name,
            "city": city,
            "invoice_count": to_int(invoice_count),
            "total_revenue": to_float(revenue),
            "total_collected": to_float(collected),
            "outstanding_amount": to_float(revenue - collected),
            "collection_rate": to_float(money(collected * 100 / revenue)) if revenue > 0 else None,
        })
    return result


# ---------------------------------------------------------------------------
# Performance
# ---------------------------------------------------------------------------

def _window_metrics(actor: User, start: date, end: date | None) -> dict:
    query = _own_invoices(
        db.session.query(
            db.func.count(Invoice.invoice_id),
            db.func.coalesce(db.func.sum(Invoice.total_amount), 0),
            db.func.coalesce(db.func.sum(Invoice.paid_amount), 0),
            db.func.count(db.distinct(Invoice.sales_staff_id)),
            db.func.count(db.distinct(Invoice.distributor_id)),
            db.func.count(db.distinct(Invoice.invoice_date)),
        ).filter(Invoice.status != "cancelled", Invoice.invoice_date >= start),
        actor,
    )
    if end is not None:
        query = query.filter(Invoice.invoice_date < end)
    count, revenue, collected, staff, distributors, active_days = query.one()
    return {
        "total_invoices": to_int(count),
        "total_revenue": Decimal(str(revenue or 0)),
        "total_collected": Decimal(str(collected or 0)),
        "active_staff": to_int(staff),
        "active_distributors": to_int(distributors),
        "active_days": to_int(active_days),
    }


def performance(*, actor: User, period: str = "month") -> dict:
    """Current trailing window against the window of equal length before it."""
    if period not in PERFORMANCE_PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(PERFORMANCE_PERIODS)}")

    current_day = today()
    current_start = period_start(period, current_day)
    previous_start = current_start - (current_day - current_start)

    now = _window_metrics(actor, current_start, None)
    before = _window_metrics(actor, previous_start, current_start)

    revenue = now["total_revenue"]
    collected = now["total_collected"]
    staff = now["active_staff"] if actor.is_admin else 1
    current = {
        "scope": "team" if actor.is_admin else "individual",
        "active_staff": staff,
        "total_invoices": now["total_invoices"],
        "total_revenue": to_float(revenue),
        "total_collected": to_float(collected),
        "collection_rate": to_float(money(collected * 100 / revenue)) if revenue > 0 else None,
        "avg_invoices_per_staff": round(now["total_invoices"] / staff, 2) if staff else 0.0,
        "avg_revenue_per_staff": to_float(money(revenue / staff)) if staff else 0.0,
        "active_distributors": now["active_distributors"],
        "avg_invoices_per_day": (
            round(now["total_invoices"] / now["active_days"], 2) if now["active_days"] else 0.0
        ),
    }
    if not actor.is_admin:
        payments_collected, amount_collected = _own_payments(
            db.session.query(
                db.func.count(Payment.payment_id),
                db.func.coalesce(db.func.sum(Payment.amount), 0),
            ).filter(Payment.payment_date >= current_start),
            actor,
        ).one()
        current["payments_collected"] = to_int(payments_collected)
        current["amount_collected"] = to_float(amount_collected)

    return {
        "current_period": current,
        "previous_period": {
            "prev_total_invoices": before["total_invoices"],
            "prev_total_revenue": to_float(before["total_revenue"]),
        },
        "growth": {
            "invoice_growth": _growth(now["total_invoices"], before["total_invoices"]),
            "revenue_growth": _growth(revenue, before["total_revenue"]),
        },
        "period": period,
    }
