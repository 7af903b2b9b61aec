"""
Database triggers that keep invoices.paid_amount and invoices.status in step
with the payments table.

Whenever a payment row is inserted, updated or deleted the owning invoice is
recomputed:

- paid_amount = SUM(payments.amount) for the invoice
- status:
    cancelled stays cancelled
    paid          when total_amount > 0 and paid_amount >= total_amount
    overdue       stays overdue while partially paid
    partial_paid  when 0 < paid_amount < total_amount
    sent          when the last payment is removed from a paid/partial_paid invoice
    otherwise unchanged

The DDL is attached to the payments table so ``db.create_all()`` installs it
for both PostgreSQL and SQLite. The Alembic revision carries the PostgreSQL
variant for migrated databases.
"""
from __future__ import annotations

from sqlalchemy import DDL, event

from .sales import Payment


STATUS_CASE = """
    CASE
        WHEN status = 'cancelled' THEN status
        WHEN total_amount > 0 AND paid_amount >= total_amount THEN 'paid'
        WHEN paid_amount > 0 AND status = 'overdue' THEN status
        WHEN paid_amount > 0 THEN 'partial_paid'
        WHEN status IN ('paid', 'partial_paid') THEN 'sent'
        ELSE status
    END
"""


PG_RECALC_FUNCTION = f"""
CREATE OR REPLACE FUNCTION recalc_invoice_paid_amount(target_invoice INTEGER)
RETURNS VOID AS $$
BEGIN
    UPDATE invoices
    SET paid_amount = COALESCE(
            (SELECT SUM(amount) FROM payments WHERE invoice_id = target_invoice), 0),
        updated_at = NOW()
    WHERE invoice_id = target_invoice;

    UPDATE invoices
    SET status = {STATUS_CASE}
    WHERE invoice_id = target_invoice;
END;
$$ LANGUAGE plpgsql
"""

PG_TRIGGER_FUNCTION = """
CREATE OR REPLACE FUNCTION update_invoice_paid_amount()
RETURNS TRIGGER AS $$
BEGIN
    IF TG_OP IN ('UPDATE', 'DELETE') THEN
        PERFORM recalc_invoice_paid_amount(OLD.invoice_id);
    END IF;
    IF TG_OP IN ('INSERT', 'UPDATE') THEN
        PERFORM recalc_invoice_paid_amount(NEW.invoice_id);
    END IF;
    RETURN NULL;
END;
$$ LANGUAGE plpgsql
"""

PG_TRIGGER = """
CREATE TRIGGER trg_payments_paid_amount
AFTER INSERT OR UPDATE OR DELETE ON payments
FOR EACH ROW EXECUTE FUNCTION update_invoice_paid_amount()
"""


def _sqlite_recalc(ref: str) -> str:
    # ref is NEW or OLD
    return f"""
    UPDATE invoices
    SET paid_amount = (
            SELECT ROUND(COALESCE(SUM(amount), 0), 2) FROM payments
            WHERE invoice_id = {ref}.invoice_id),
        updated_at = CURRENT_TIMESTAMP
    WHERE invoice_id = {ref}.invoice_id;
    UPDATE invoices
    SET status = {STATUS_CASE}
    WHERE invoice_id = {ref}.invoice_id;
    """


SQLITE_TRIGGERS = (
    f"""
    CREATE TRIGGER trg_payments_after_insert AFTER INSERT ON payments
    BEGIN
    {_sqlite_recalc("NEW")}
    END
    """,
    f"""
    CREATE TRIGGER trg_payments_after_update AFTER UPDATE OF amount, invoice_id ON payments
    BEGIN
    {_sqlite_recalc("OLD")}
    {_sqlite_recalc("NEW")}
    END
    """,
    f"""
    CREATE TRIGGER trg_payments_after_delete AFTER DELETE ON payments
    BEGIN
    {_sqlite_recalc("OLD")}
    END
    """,
)


def _install() -> None:
    table = Payment.__table__
    for statement in (PG_RECALC_FUNCTION, PG_TRIGGER_FUNCTION, PG_TRIGGER):
        event.listen(table, "after_create", DDL(statement).execute_if(dialect="postgresql"))
    for statement in SQLITE_TRIGGERS:
        event.listen(table, "after_create", DDL(statement).execute_if(dialect="sqlite"))


_install()
