"""API exception handling shared by every app"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    request = context.get('request')
    path = request.path if request is not None else 'unknown'

    if isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error in {path}: {exc}")
        return Response({'error': 'Duplicate field value entered'}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ProtectedError):
        logger.warning(f"Protected reference in {path}: {exc}")
        return Response({'error': 'Invalid reference'}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, DjangoValidationError):
        messages = exc.message_dict if hasattr(exc, 'error_dict') else {'error': exc.messages}
        return Response(messages, status=status.HTTP_400_BAD_REQUEST)

    logger.error(f"Unhandled error in {path}: {exc}", exc_info=True)
    return None
