from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional, Set

from installment_recon.core.exceptions import AppException, DuplicateError, ResolutionError, ValidationError
from installment_recon.models.transaction import TransactionStatus
from installment_recon.schemas.transaction_import import ImportMapping, LegacyAttachments, TransactionDraft
from installment_recon.services.customer_index import CustomerIndex, CustomerRef
from installment_recon.services.parsing import (
    ParsedField,
    cell_text,
    is_blank,
    parse_cell_date,
    parse_decimal,
    parse_installment_count,
)

CURRENCY_PRECISION = Decimal("0.001")

# Tried in order when the mapping names no customer-name column
DEFAULT_NAME_COLUMNS = ("اسم العميل", "الاسم")


@dataclass
class RowValidation:
    """Outcome of validating one import row: a draft or problems, never both"""
    record: Optional[TransactionDraft] = None
    legacy: LegacyAttachments = field(default_factory=LegacyAttachments)
    problems: List[AppException] = field(default_factory=list)
    defaults_applied: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.record is not None and not self.problems

    @property
    def message(self) -> str:
        return "; ".join(problem.message for problem in self.problems)

    @property
    def error_codes(self) -> List[str]:
        return [problem.error_code for problem in self.problems]


def _cell(row: Mapping[str, Any], column: Optional[str]) -> Any:
    if not column:
        return None
    return row.get(column)


def _customer_name(row: Mapping[str, Any], mapping: ImportMapping) -> str:
    columns = (mapping.customer_name,) if mapping.customer_name else DEFAULT_NAME_COLUMNS
    for column in columns:
        name = cell_text(row.get(column))
        if name:
            return name
    return ""


def resolve_customer(row: Mapping[str, Any], mapping: ImportMapping, index: CustomerIndex) -> CustomerRef:
    """Find the row's customer by sequence number, then by name"""
    identifier = cell_text(_cell(row, mapping.customer_sequence))
    customer = index.find_by_sequence(identifier) if identifier else None

    name = ""
    if customer is None:
        name = _customer_name(row, mapping)
        if name:
            customer = index.find_by_name(name)

    if customer is not None:
        return customer

    if not identifier and not name:
        available = ", ".join(str(column) for column in row.keys())
        raise ValidationError(
            "رقم العميل غير موجود. الحقل المطلوب: '%s'. الأعمدة المتاحة: %s" % (mapping.customer_sequence, available),
            details={"field": "customer_sequence"}
        )
    raise ResolutionError(
        "لم يتم العثور على عميل برقم أو اسم '%s'" % (identifier or name),
        details={"identifier": identifier, "name": name}
    )


def calculate_installment_amount(amount: Decimal, number_of_installments: int) -> Decimal:
    return (amount / Decimal(number_of_installments)).quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


def _record_default(defaults: Dict[str, str], name: str, column: Optional[str], parsed: ParsedField) -> None:
    if not column:
        defaults[name] = "column not mapped, defaulted to %s" % parsed.value
    elif parsed.defaulted:
        defaults[name] = parsed.reason


def validate_transaction_row(
    row: Mapping[str, Any],
    mapping: ImportMapping,
    index: CustomerIndex,
    existing_sequence_numbers: Set[str],
    today: Optional[date] = None
) -> RowValidation:
    """
    Project one loose spreadsheet row onto a TransactionDraft.

    Every problem on the row is collected before giving up, so the caller
    gets the full list in one pass.
    """
    result = RowValidation()
    defaults = result.defaults_applied

    customer = None
    try:
        customer = resolve_customer(row, mapping, index)
    except AppException as exc:
        result.problems.append(exc)

    cost_price = parse_decimal(_cell(row, mapping.cost_price))
    _record_default(defaults, "cost_price", mapping.cost_price, cost_price)

    extra_price = parse_decimal(_cell(row, mapping.extra_price))
    _record_default(defaults, "extra_price", mapping.extra_price, extra_price)

    installments = None
    try:
        installments = parse_installment_count(_cell(row, mapping.number_of_installments))
        _record_default(defaults, "number_of_installments", mapping.number_of_installments, installments)
    except ValidationError as exc:
        result.problems.append(exc)

    start_date = parse_cell_date(_cell(row, mapping.start_date), today=today)
    _record_default(defaults, "start_date", mapping.start_date, start_date)

    sequence_number = cell_text(_cell(row, mapping.sequence_number))
    if sequence_number and sequence_number in existing_sequence_numbers:
        result.problems.append(DuplicateError(
            "رقم البيع %s موجود بالفعل." % sequence_number,
            details={"sequence_number": sequence_number}
        ))

    if result.problems:
        return result

    amount = cost_price.value + extra_price.value
    if mapping.amount:
        mapped_amount = parse_decimal(_cell(row, mapping.amount))
        if mapped_amount.value > 0:
            amount = mapped_amount.value
        else:
            defaults["amount"] = "no positive total in '%s', computed from cost_price + extra_price" % mapping.amount

    created_at = datetime.combine(start_date.value, time.min)
    created_cell = _cell(row, mapping.created_at)
    if not is_blank(created_cell):
        created_at = datetime.combine(parse_cell_date(created_cell, today=today).value, time.min)

    notes = cell_text(_cell(row, mapping.notes)) if mapping.notes else None

    result.record = TransactionDraft(
        sequence_number=sequence_number or None,
        customer_id=customer.id,
        cost_price=cost_price.value,
        extra_price=extra_price.value,
        amount=amount,
        installment_amount=calculate_installment_amount(amount, installments.value),
        number_of_installments=installments.value,
        start_date=start_date.value,
        remaining_balance=amount,
        status=TransactionStatus.ACTIVE,
        notes=notes,
        created_at=created_at
    )
    result.legacy = LegacyAttachments(
        image=cell_text(_cell(row, mapping.legacy_image)) or None,
        pdf=cell_text(_cell(row, mapping.legacy_pdf)) or None
    )
    return result
