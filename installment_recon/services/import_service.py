from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Any, Callable, List, Mapping, Optional, Set
from datetime import date

from installment_recon.core.exceptions import AppException, PersistenceError
from installment_recon.core.logging import get_logger
from installment_recon.models.document_attachment import DocumentAttachment
from installment_recon.models.transaction import Transaction
from installment_recon.schemas.transaction_import import (
    ImportErrorItem,
    ImportMapping,
    ImportResult,
    LegacyAttachments,
    RetryResponse,
    RowDefaults,
    TransactionResponse,
)
from installment_recon.services.audit_service import AuditService
from installment_recon.services.customer_index import load_customer_index
from installment_recon.services.parsing import cell_text
from installment_recon.services.row_validator import RowValidation, validate_transaction_row

logger = get_logger(__name__)

# Spreadsheet row 1 is the header, so data row i sits on line i + 2
HEADER_OFFSET = 2

OverdueTrigger = Callable[[], None]


def load_existing_sequence_numbers(db: Session, sequence_number: Optional[str] = None) -> Set[str]:
    """Sequence numbers already committed; narrowed to one value for retries"""
    query = db.query(Transaction.sequence_number).filter(
        Transaction.sequence_number.isnot(None),
        Transaction.sequence_number != ""
    )
    if sequence_number is not None:
        query = query.filter(Transaction.sequence_number == sequence_number)
    return {value for (value,) in query.all()}


class TransactionImportService:
    @staticmethod
    def _persist(db: Session, validation: RowValidation) -> Transaction:
        transaction = Transaction(**validation.record.model_dump())
        db.add(transaction)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            reason = getattr(exc, "orig", None) or exc
            raise PersistenceError(
                "تعذر حفظ المعاملة: %s" % reason,
                details={"sequence_number": validation.record.sequence_number}
            )
        db.refresh(transaction)
        return transaction

    @staticmethod
    def _attach_legacy(db: Session, transaction: Transaction, legacy: LegacyAttachments) -> None:
        """Link legacy file URLs to a saved transaction; failures leave the transaction intact"""
        if legacy.is_empty:
            return

        attachments = []
        if legacy.image:
            attachments.append(DocumentAttachment(
                transaction_id=transaction.id,
                customer_id=transaction.customer_id,
                file_path=legacy.image,
                file_url=legacy.image,
                file_name="Legacy Image",
                file_type="image",
                file_size=0
            ))
        if legacy.pdf:
            attachments.append(DocumentAttachment(
                transaction_id=transaction.id,
                customer_id=transaction.customer_id,
                file_path=legacy.pdf,
                file_url=legacy.pdf,
                file_name="Legacy PDF",
                file_type="application/pdf",
                file_size=0
            ))

        db.add_all(attachments)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Could not link legacy attachments to transaction {transaction.id}")

    @staticmethod
    def _fire_overdue_trigger(overdue_trigger: Optional[OverdueTrigger]) -> None:
        if overdue_trigger is None:
            return
        try:
            overdue_trigger()
        except Exception:
            logger.exception("Could not dispatch overdue recomputation")

    @staticmethod
    def import_transactions(
        db: Session,
        rows: List[Mapping[str, Any]],
        mapping: ImportMapping,
        overdue_trigger: Optional[OverdueTrigger] = None,
        today: Optional[date] = None
    ) -> ImportResult:
        """
        Import rows one at a time; a failing row is reported and skipped.

        Rows run sequentially because duplicate detection reads one snapshot
        of committed sequence numbers taken before the first row.
        """
        index = load_customer_index(db)
        existing = load_existing_sequence_numbers(db) if mapping.sequence_number else set()

        errors: List[ImportErrorItem] = []
        records: List[TransactionResponse] = []
        defaults_applied: List[RowDefaults] = []

        for position, row in enumerate(rows):
            row_number = position + HEADER_OFFSET
            try:
                validation = validate_transaction_row(row, mapping, index, existing, today=today)
                if not validation.ok:
                    errors.append(ImportErrorItem(
                        row=row_number,
                        message=validation.message,
                        error_codes=validation.error_codes,
                        original_data=dict(row)
                    ))
                    continue

                transaction = TransactionImportService._persist(db, validation)
            except AppException as exc:
                logger.warning(f"Row {row_number} rejected by storage: {exc.message}")
                errors.append(ImportErrorItem(
                    row=row_number,
                    message=exc.message,
                    error_codes=[exc.error_code],
                    original_data=dict(row)
                ))
                continue
            except Exception as exc:
                db.rollback()
                logger.exception(f"Unexpected failure importing row {row_number}")
                errors.append(ImportErrorItem(
                    row=row_number,
                    message="خطأ غير متوقع: %s" % exc,
                    error_codes=["UNEXPECTED_ERROR"],
                    original_data=dict(row)
                ))
                continue

            records.append(TransactionResponse.model_validate(transaction))
            if validation.defaults_applied:
                defaults_applied.append(RowDefaults(row=row_number, fields=validation.defaults_applied))
            TransactionImportService._attach_legacy(db, transaction, validation.legacy)

        if records:
            TransactionImportService._fire_overdue_trigger(overdue_trigger)

        logger.info(f"Transaction import finished: {len(records)} imported, {len(errors)} failed of {len(rows)} rows")
        AuditService.log_action(
            db=db,
            action="transactions_imported",
            entity_type="transaction",
            changes={"rows": len(rows), "imported": len(records), "failed": len(errors)}
        )

        return ImportResult(
            imported=len(records),
            errors=errors,
            records=records,
            defaults_applied=defaults_applied
        )

    @staticmethod
    def import_single_row(
        db: Session,
        row: Mapping[str, Any],
        mapping: ImportMapping,
        row_number: Optional[int] = None,
        overdue_trigger: Optional[OverdueTrigger] = None,
        today: Optional[date] = None
    ) -> RetryResponse:
        """
        Retry one previously failed row against fresh lookups.

        Raises the first problem's exception type carrying every message, or
        PersistenceError when storage rejects the record.
        """
        index = load_customer_index(db)

        existing: Set[str] = set()
        if mapping.sequence_number:
            sequence_number = cell_text(row.get(mapping.sequence_number))
            if sequence_number:
                existing = load_existing_sequence_numbers(db, sequence_number)

        validation = validate_transaction_row(row, mapping, index, existing, today=today)
        if not validation.ok:
            first = validation.problems[0]
            raise type(first)(
                validation.message,
                details={
                    "row": row_number,
                    "errors": [problem.message for problem in validation.problems],
                    "error_codes": validation.error_codes
                }
            )

        transaction = TransactionImportService._persist(db, validation)
        TransactionImportService._attach_legacy(db, transaction, validation.legacy)
        TransactionImportService._fire_overdue_trigger(overdue_trigger)

        logger.info(f"Retried row {row_number} imported as transaction {transaction.id}")
        AuditService.log_action(
            db=db,
            action="transaction_row_retried",
            entity_type="transaction",
            entity_id=transaction.id,
            changes={"row": row_number}
        )

        return RetryResponse(
            success=True,
            transaction=TransactionResponse.model_validate(transaction),
            defaults_applied=validation.defaults_applied
        )

