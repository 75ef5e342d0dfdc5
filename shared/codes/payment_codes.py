"""
Payment specific codes and gateway status normalization.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Gateway errors (6xxxx)
    PROVIDER_ERROR = 60000
    TRANSPORT_ERROR = 60001
    SIGNATURE_ERROR = 60002
    PROTOCOL_ERROR = 60003
    BUSINESS_FAILURE = 60004
    WEBHOOK_REJECTED = 60005

    # Checkout validation (61xxx)
    MALFORMED_PHONE_NUMBER = 61000
    NO_MATCHING_INSTALLMENT_PLAN = 61001

    # Order/transaction state (62xxx)
    ORDER_NOT_FOUND = 62000
    TRANSACTION_NOT_FOUND = 62001
    CONCURRENT_MODIFICATION = 62002
    ORDER_NOT_PAYABLE = 62003

    # Logistics (63xxx)
    LOGISTICS_ERROR = 63000


# Gateway status aliases folded before they reach the order status processor
GATEWAY_STATUS_ALIASES = {
    "genpay": {
        "partial_refunded": "refunded",
    },
}
