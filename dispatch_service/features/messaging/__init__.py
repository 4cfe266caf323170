"""Delivery ledger: one append-only row per physical send."""

from .ledger import BulkJobProgress, DeliveryAttempt, DeliveryLedger
from .models import DeliveryStatus, DistributorSmsLog, EmailMessageLog, SmsMessageLog

__all__ = [
    "BulkJobProgress",
    "DeliveryAttempt",
    "DeliveryLedger",
    "DeliveryStatus",
    "DistributorSmsLog",
    "EmailMessageLog",
    "SmsMessageLog",
]
