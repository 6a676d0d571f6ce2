"""Transaction ledger - the record of money movement shared by webhooks and cancellations"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ...models import Transaction, generate_public_id

logger = logging.getLogger(__name__)

PAYMENT = "payment"
REFUND = "refund"

CENTS = Decimal("0.01")


def minor_to_major(amount_minor) -> Decimal:
    """Stripe amounts are integer minor units (cents)"""
    return (Decimal(int(amount_minor or 0)) / 100).quantize(CENTS)


def major_to_minor(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class TransactionLedger:
    """Repository for ledger rows"""

    @staticmethod
    def find_by_intent(
        db: Session, payment_intent_id: str, transaction_type: Optional[str] = None
    ) -> Optional[Transaction]:
        query = db.query(Transaction).filter(
            Transaction.stripe_payment_intent_id == payment_intent_id
        )
        if transaction_type:
            query = query.filter(Transaction.transaction_type == transaction_type)
        return query.first()

    @staticmethod
    def find_completed_payment_by_intent(
        db: Session, payment_intent_id: str
    ) -> Optional[Transaction]:
        return (
            db.query(Transaction)
            .filter(
                Transaction.stripe_payment_intent_id == payment_intent_id,
                Transaction.transaction_type == PAYMENT,
                Transaction.status == "completed",
            )
            .first()
        )

    @staticmethod
    def find_completed_payment_for_booking(db: Session, booking_id: str) -> Optional[Transaction]:
        return (
            db.query(Transaction)
            .filter(
                Transaction.booking_id == booking_id,
                Transaction.transaction_type == PAYMENT,
                Transaction.status == "completed",
            )
            .order_by(Transaction.created_at.desc())
            .first()
        )

    @staticmethod
    def list_for_booking(db: Session, booking_id: str) -> list[Transaction]:
        return (
            db.query(Transaction)
            .filter(Transaction.booking_id == booking_id)
            .order_by(Transaction.created_at)
            .all()
        )

    @staticmethod
    def record_once(db: Session, **values) -> Optional[Transaction]:
        """
        Insert a ledger row unless one already exists for the same
        (payment intent, transaction type). Returns the new row, or None when
        the insert was ignored. Does not commit.
        """
        values.setdefault("id", generate_public_id())
        dialect = db.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = dialect_insert(Transaction).values(**values).on_conflict_do_nothing()
            result = db.execute(stmt)
            if result.rowcount == 0:
                logger.info(
                    f"ℹ️ Ledger row for {values.get('stripe_payment_intent_id')} "
                    f"({values.get('transaction_type')}) already exists, insert ignored"
                )
                return None
        else:
            existing = TransactionLedger.find_by_intent(
                db, values.get("stripe_payment_intent_id"), values.get("transaction_type")
            )
            if existing:
                return None
            db.execute(insert(Transaction).values(**values))

        return db.query(Transaction).filter(Transaction.id == values["id"]).one()

    @staticmethod
    def set_status(db: Session, transaction: Transaction, status: str) -> Transaction:
        old_status = transaction.status
        transaction.status = status
        db.flush()
        logger.info(f"📒 Transaction {transaction.id}: {old_status} → {status}")
        return transaction

    @staticmethod
    def mark_intent_payments(db: Session, payment_intent_id: str, status: str) -> int:
        """Flip every payment row for an intent; returns rows updated"""
        return (
            db.query(Transaction)
            .filter(
                Transaction.stripe_payment_intent_id == payment_intent_id,
                Transaction.transaction_type == PAYMENT,
            )
            .update({Transaction.status: status}, synchronize_session="fetch")
        )
