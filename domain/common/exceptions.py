"""Domain business exceptions, shared by the domain and infrastructure layers.

The core layer only maps these to HTTP responses; the domain never depends
back on core.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """Base class for business errors."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
        format_params: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key,
            format_params=format_params,
        )


class MalformedPhoneNumberException(BusinessException):
    def __init__(self, phone: str, *, field: str = "billing_phone"):
        super().__init__(
            code=PaymentCode.MALFORMED_PHONE_NUMBER,
            message=f"Phone number '{phone}' does not match the (DD) NNNNN-NNNN format",
            error_type="MalformedPhoneNumber",
            details={"phone": phone},
            field=field,
        )


class NoMatchingInstallmentPlanException(BusinessException):
    def __init__(self, quantity: Optional[int] = None, *, amount: Optional[str] = None):
        details = {}
        if quantity is not None:
            details["quantity"] = quantity
        if amount is not None:
            details["amount"] = amount
        super().__init__(
            code=PaymentCode.NO_MATCHING_INSTALLMENT_PLAN,
            message="No matching installment plan offered by the gateway",
            error_type="NoMatchingInstallmentPlan",
            details=details or None,
            field="installments",
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=PaymentCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details=details,
        )


class TransactionNotFoundException(BusinessException):
    def __init__(self, *, order_id: Optional[int] = None, transaction_id: Optional[str] = None):
        details = {}
        if order_id is not None:
            details["order_id"] = order_id
        if transaction_id is not None:
            details["transaction_id"] = transaction_id
        super().__init__(
            code=PaymentCode.TRANSACTION_NOT_FOUND,
            message="Payment transaction not found",
            error_type="TransactionNotFound",
            details=details or None,
        )


class ConcurrentModificationException(BusinessException):
    """Raised when a persisted aggregate changed since it was loaded."""

    def __init__(self, entity: str, identifier: object, expected_version: int, actual_version: int):
        super().__init__(
            code=PaymentCode.CONCURRENT_MODIFICATION,
            message=f"{entity} {identifier} was modified concurrently",
            error_type="ConcurrentModification",
            details={
                "entity": entity,
                "id": identifier,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class OrderLockedException(BusinessException):
    """Another request holds the order's payment-state lock."""

    def __init__(self, order_id: object):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=f"Order {order_id} is being updated by another request",
            error_type="OrderLocked",
            details={"order_id": order_id},
        )


class OrderNotPayableException(BusinessException):
    """The order is paid, closed, or already has a charge the gateway may settle."""

    def __init__(self, order_id: object, status: str, transaction_id: Optional[str] = None):
        details = {"order_id": order_id, "status": status}
        if transaction_id:
            details["transaction_id"] = transaction_id
        super().__init__(
            code=PaymentCode.ORDER_NOT_PAYABLE,
            message=f"Order {order_id} cannot be charged in status '{status}'",
            error_type="OrderNotPayable",
            details=details,
        )
