import enum


class Role(str, enum.Enum):
    admin = "admin"
    secretary = "secretary"


class POStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    received = "received"
    cancelled = "cancelled"


class TransactionType(str, enum.Enum):
    issuance = "issuance"
    return_ = "return"
    adjustment = "adjustment"


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    cancelled = "cancelled"


class MovementType(str, enum.Enum):
    receipt = "receipt"
    issue = "issue"
    return_ = "return"
    adjustment = "adjustment"
    manual = "manual"


# No transition leaves these
PO_TERMINAL_STATUSES = frozenset({POStatus.received, POStatus.cancelled})
TRANSACTION_TERMINAL_STATUSES = frozenset({TransactionStatus.approved, TransactionStatus.cancelled})

PO_TRANSITIONS = {
    POStatus.pending: frozenset({POStatus.approved, POStatus.cancelled}),
    POStatus.approved: frozenset({POStatus.received, POStatus.cancelled}),
    POStatus.received: frozenset(),
    POStatus.cancelled: frozenset(),
}

TRANSACTION_TRANSITIONS = {
    TransactionStatus.pending: frozenset({TransactionStatus.approved, TransactionStatus.cancelled}),
    TransactionStatus.approved: frozenset(),
    TransactionStatus.cancelled: frozenset(),
}
