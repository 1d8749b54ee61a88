import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from installment_recon.models.customer import Customer

_INTEGER_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class CustomerRef:
    id: str
    sequence_number: str


@dataclass
class CustomerIndex:
    """Lookup tables over one snapshot of the customer set"""
    by_sequence: Dict[str, CustomerRef] = field(default_factory=dict)
    by_name: Dict[str, CustomerRef] = field(default_factory=dict)

    def find_by_sequence(self, sequence: str) -> Optional[CustomerRef]:
        sequence = sequence.strip()
        found = self.by_sequence.get(sequence)
        if found is None:
            numeric = _numeric_form(sequence)
            if numeric is not None:
                found = self.by_sequence.get(numeric)
        return found

    def find_by_name(self, name: str) -> Optional[CustomerRef]:
        return self.by_name.get(name.strip())


def _numeric_form(sequence: str) -> Optional[str]:
    if not _INTEGER_RE.match(sequence):
        return None
    return str(int(sequence))


def build_customer_index(customers: Iterable[Customer]) -> CustomerIndex:
    """
    Build the sequence and name lookups.

    A sequence is keyed by its trimmed text and, when it differs, by its
    integer form, so "007" and "7" resolve to the same customer.
    """
    index = CustomerIndex()
    for customer in customers:
        sequence = str(customer.sequence_number).strip() if customer.sequence_number is not None else ""
        ref = CustomerRef(id=customer.id, sequence_number=sequence)

        if sequence:
            index.by_sequence[sequence] = ref
            numeric = _numeric_form(sequence)
            if numeric is not None and numeric != sequence:
                index.by_sequence[numeric] = ref

        if customer.full_name and customer.full_name.strip():
            index.by_name[customer.full_name.strip()] = ref

    return index


def load_customer_index(db: Session) -> CustomerIndex:
    customers = db.query(Customer).order_by(Customer.created_at).all()
    return build_customer_index(customers)
