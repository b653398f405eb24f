import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidStateError(APIException):
    """A blood unit transition was requested from a state that does not allow it."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Illegal state transition.'
    default_code = 'invalid_state'


class ConflictError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Record conflicts with an existing one.'
    default_code = 'conflict'


class ReferentialGuardError(ConflictError):
    """Deletion refused because other records still reference the entity."""
    default_detail = 'Record is still referenced and cannot be deleted.'
    default_code = 'referenced'


def _first_message(data):
    if isinstance(data, dict):
        if 'detail' in data:
            return _first_message(data['detail'])
        for field, value in data.items():
            message = _first_message(value)
            if field == 'non_field_errors':
                return message
            return f"{field}: {message}"
        return 'Invalid request.'
    if isinstance(data, (list, tuple)):
        return _first_message(data[0]) if data else 'Invalid request.'
    return str(data)


def api_exception_handler(exc, context):
    """Render every API error as ``{"error": "..."}`` with the matching status code."""
    if isinstance(exc, ProtectedError):
        exc = ReferentialGuardError()
    elif isinstance(exc, IntegrityError):
        logger.warning("Integrity error: %s", exc)
        exc = ConflictError()
    elif isinstance(exc, DjangoValidationError):
        exc = ValidationError(detail=exc.message_dict if hasattr(exc, 'error_dict') else exc.messages)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.error("Unhandled error in %s", view.__class__.__name__ if view else 'API',
                     exc_info=exc)
        return Response({'error': 'Internal server error'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = {'error': _first_message(response.data)}
    if isinstance(exc, ValidationError) and isinstance(response.data, dict):
        body['details'] = response.data
    response.data = body
    return response
