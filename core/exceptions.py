"""
Core — Exception Handling

Domain exception taxonomy and the DRF exception handler that renders every
error in the standard envelope.

Validation, permission and not-found errors are raised by services and
surfaced unmodified at the API boundary. ConcurrencyConflict is expected
and retryable by the caller. LedgerIntegrityError is fatal: it is logged
and escalated, never retried.

@file core/exceptions.py
"""

import logging

from django.core.exceptions import PermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('freshstock')


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class ValidationError(APIException):
    """Malformed input rejected at the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'VALIDATION_ERROR'


class InvalidStateTransition(ValidationError):
    """Raised when a state machine transition is not allowed."""
    default_detail = 'Invalid state transition.'
    default_code = 'INVALID_STATE_TRANSITION'


class InsufficientStockError(APIException):
    """Raised when an outbound movement, transfer or adjustment exceeds available stock."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock for this operation.'
    default_code = 'INSUFFICIENT_STOCK'


class ResourceNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'RESOURCE_NOT_FOUND'


class PermissionDeniedError(APIException):
    """Role-gated operation attempted without the required role."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'PERMISSION_DENIED'


class DuplicateResourceError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'DUPLICATE_RESOURCE'


class ConcurrencyConflict(APIException):
    """Optimistic check-and-set lost against a concurrent writer. Re-fetch and retry."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record was modified concurrently. Reload it and retry.'
    default_code = 'CONCURRENCY_CONFLICT'


class AnalysisAlreadyRunning(ConcurrencyConflict):
    default_detail = 'A variance analysis is already running for this store. Try again later.'
    default_code = 'ANALYSIS_RUNNING'


class LedgerIntegrityError(APIException):
    """A status transition and its ledger writes did not commit together."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Ledger integrity error.'
    default_code = 'LEDGER_INTEGRITY_ERROR'


# ---------------------------------------------------------------------------
# Standard exception handler
# ---------------------------------------------------------------------------

def standard_exception_handler(exc, context):
    """
    Wraps every error response in the standard envelope:
      { "success": false, "errors": {...}, "code": "ERROR_CODE" }
    """
    if isinstance(exc, Http404):
        exc = ResourceNotFoundError()
    elif isinstance(exc, PermissionDenied):
        exc = PermissionDeniedError()
    elif isinstance(exc, DjangoValidationError):
        data = {
            'success': False,
            'errors': exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages},
            'code': 'VALIDATION_ERROR',
        }
        return Response(data, status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, LedgerIntegrityError):
        logger.critical('Ledger integrity error surfaced at API boundary: %s', exc.detail)

    response = exception_handler(exc, context)

    if response is not None:
        errors = {}
        code = getattr(exc, 'default_code', 'ERROR')

        if isinstance(response.data, dict):
            errors = response.data
            code = response.data.pop('code', code) if 'code' in response.data else code
        elif isinstance(response.data, list):
            errors = {'detail': response.data}
        else:
            errors = {'detail': [str(response.data)]}

        response.data = {
            'success': False,
            'errors': errors,
            'code': code,
        }

    if response is None:
        logger.exception('Unhandled exception in view: %s', exc)
        return Response(
            {'success': False, 'errors': {'detail': ['Internal server error.']}, 'code': 'INTERNAL_ERROR'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return response
