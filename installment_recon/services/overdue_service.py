from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
from typing import Dict, Optional
import math

from installment_recon.core.logging import get_logger
from installment_recon.models.transaction import Transaction, TransactionStatus

logger = get_logger(__name__)


def months_elapsed(start: date, today: date) -> int:
    months = (today.year - start.year) * 12 + (today.month - start.month)
    if today.day < start.day:
        months -= 1
    return max(months, 0)


class OverdueService:
    @staticmethod
    def evaluate(transaction: Transaction, today: date) -> Dict[str, object]:
        """Work out status and arrears of one transaction as of today"""
        remaining = Decimal(transaction.remaining_balance or 0)
        if remaining <= 0:
            return {"status": TransactionStatus.COMPLETED, "overdue_amount": Decimal(0), "overdue_installments": 0}

        if transaction.start_date > today:
            return {"status": TransactionStatus.ACTIVE, "overdue_amount": Decimal(0), "overdue_installments": 0}

        installment = Decimal(transaction.installment_amount or 0)
        due_count = min(months_elapsed(transaction.start_date, today) + 1, transaction.number_of_installments)
        expected_paid = min(installment * due_count, Decimal(transaction.amount))
        paid = Decimal(transaction.amount) - remaining
        shortfall = expected_paid - paid

        if shortfall <= 0 or installment <= 0:
            return {"status": TransactionStatus.ACTIVE, "overdue_amount": Decimal(0), "overdue_installments": 0}

        return {
            "status": TransactionStatus.OVERDUE,
            "overdue_amount": shortfall,
            "overdue_installments": int(math.ceil(shortfall / installment))
        }

    @staticmethod
    def check_overdue_transactions(db: Session, today: Optional[date] = None) -> Dict[str, int]:
        """Recompute overdue status for every open transaction"""
        today = today or date.today()

        transactions = db.query(Transaction).filter(
            Transaction.status != TransactionStatus.LEGAL,
            Transaction.status != TransactionStatus.COMPLETED
        ).all()

        counts = {"checked": 0, "overdue": 0, "completed": 0}
        for transaction in transactions:
            outcome = OverdueService.evaluate(transaction, today)
            transaction.status = outcome["status"]
            transaction.overdue_amount = outcome["overdue_amount"]
            transaction.overdue_installments = outcome["overdue_installments"]

            counts["checked"] += 1
            if outcome["status"] == TransactionStatus.OVERDUE:
                counts["overdue"] += 1
            elif outcome["status"] == TransactionStatus.COMPLETED:
                counts["completed"] += 1

        db.commit()
        logger.info(
            f"Overdue check done: {counts['checked']} checked, "
            f"{counts['overdue']} overdue, {counts['completed']} completed"
        )
        return counts
