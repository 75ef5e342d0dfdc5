"""
Business code to HTTP mapping and the global exception handlers
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import traceback
import uuid
from starlette import status as http_status

from .response import error_response
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from core.i18n import t, get_locale


def register_exception_handlers(app: FastAPI):
    """
    Register the global exception handlers.
    
    Args:
        app: FastAPI application
    """
    
    # logger
    logger = get_logger(__name__)

    status_mapping = {
        BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
        BusinessCode.PARAM_MISSING: http_status.HTTP_400_BAD_REQUEST,
        BusinessCode.PARAM_TYPE_ERROR: http_status.HTTP_400_BAD_REQUEST,
        BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,

        BusinessCode.BUSINESS_ERROR: http_status.HTTP_400_BAD_REQUEST,
        BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
        BusinessCode.CONFLICT: http_status.HTTP_409_CONFLICT,

        BusinessCode.PERMISSION_ERROR: http_status.HTTP_403_FORBIDDEN,
        BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
        BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,

        BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        BusinessCode.DATABASE_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        BusinessCode.NETWORK_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,

        # Gateway and logistics errors are upstream failures
        PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
        PaymentCode.TRANSPORT_ERROR: http_status.HTTP_502_BAD_GATEWAY,
        PaymentCode.PROTOCOL_ERROR: http_status.HTTP_502_BAD_GATEWAY,
        PaymentCode.BUSINESS_FAILURE: http_status.HTTP_402_PAYMENT_REQUIRED,
        PaymentCode.LOGISTICS_ERROR: http_status.HTTP_502_BAD_GATEWAY,
        # Signature / webhook rejections
        PaymentCode.SIGNATURE_ERROR: http_status.HTTP_401_UNAUTHORIZED,
        PaymentCode.WEBHOOK_REJECTED: http_status.HTTP_401_UNAUTHORIZED,

        PaymentCode.MALFORMED_PHONE_NUMBER: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
        PaymentCode.NO_MATCHING_INSTALLMENT_PLAN: http_status.HTTP_422_UNPROCESSABLE_ENTITY,

        PaymentCode.ORDER_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
        PaymentCode.TRANSACTION_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
        PaymentCode.CONCURRENT_MODIFICATION: http_status.HTTP_409_CONFLICT,
        PaymentCode.ORDER_NOT_PAYABLE: http_status.HTTP_409_CONFLICT,
    }

    def _business_code_to_http_status(code: int) -> int:
        """HTTP status for a business code (400 by default)."""
        return status_mapping.get(code, http_status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        """Business exceptions."""
        request_id = getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())
        locale = get_locale()
        # Render i18n message if message_key is provided, otherwise fallback to original message
        fmt_params = getattr(exc, "format_params", None)
        params = fmt_params if isinstance(fmt_params, dict) else (exc.details or {})
        translated = t(getattr(exc, "message_key", "") or exc.message, **params)
        response = error_response(
            code=exc.code,
            message=translated,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
            request_id=request_id,
            locale=locale,
            message_key=getattr(exc, "message_key", None),
        )
        status_code = _business_code_to_http_status(exc.code)
        return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
    
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Request validation errors."""
        request_id = getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())
        errors = exc.errors()
        
        # Report the first error
        first_error = errors[0] if errors else {}
        field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])
        
        locale = get_locale()
        response = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=t("validation.failed", reason=first_error.get('msg', 'unknown')),
            error_type="ValidationError",
            details={"errors": errors},
            field=field,
            request_id=request_id,
            locale=locale,
            message_key="validation.failed",
        )
        return JSONResponse(
            status_code=http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=response.model_dump(mode='json')
        )
    
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """HTTP exceptions."""
        request_id = getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())
        
        # HTTP status to business code
        code_mapping = {
            401: BusinessCode.UNAUTHORIZED,
            403: BusinessCode.FORBIDDEN,
            404: BusinessCode.NOT_FOUND,
            500: BusinessCode.SYSTEM_ERROR,
            503: BusinessCode.SERVICE_UNAVAILABLE
        }
        code = code_mapping.get(exc.status_code, BusinessCode.SYSTEM_ERROR)
        
        locale = get_locale()
        response = error_response(
            code=code,
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
            request_id=request_id,
            locale=locale,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=response.model_dump(mode='json'),
            headers=getattr(exc, "headers", None)
        )
    
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Anything uncaught."""
        request_id = getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())
        
        # Expose details in debug mode only
        details = None
        if app.debug:
            details = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }
        
        locale = get_locale()
        response = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message=t("error.internal"),
            error_type="SystemError",
            details=details,
            request_id=request_id,
            locale=locale,
            message_key="error.internal",
        )
        
        # Structured log
        logger.error(
            "unhandled_exception",
            request_id=request_id,
            error=str(exc),
            exc_info=True,
        )
        
        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response.model_dump(mode='json')
        )
