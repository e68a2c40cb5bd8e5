from enum import Enum


class TransactionType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class TransactionPurpose(str, Enum):
    COURSE_PURCHASE = "course_purchase"
    WITHDRAWAL = "withdrawal"
    COMMISSION = "commission"
    REFUND = "refund"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentMethodType(str, Enum):
    BANK = "bank"
    GPAY = "gpay"


class WithdrawalAction(str, Enum):
    PROCESSING = "processing"
    APPROVE = "approve"
    REJECT = "reject"
