"""
Core — Audit Service

Single entry point for writing AuditLog rows from the services.

@file core/services.py
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.models import AuditLog

logger = logging.getLogger('freshstock')


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return value


class AuditService:

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        entry = AuditLog.objects.create(
            actor=actor if getattr(actor, 'is_authenticated', False) else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            old_values=AuditService.clean(old_values),
            new_values=AuditService.clean(new_values),
        )
        logger.debug('Audit %s %s:%s', action, model_name, object_id)
        return entry

    @staticmethod
    def clean(values: dict[str, Any] | None) -> dict[str, Any] | None:
        """Decimals and UUIDs as strings, dates ISO-formatted, nested containers included."""
        if values is None:
            return None
        return _json_safe(values)

    @staticmethod
    def history(model_name: str, object_id):
        """Entries for one object, oldest first."""
        return AuditLog.objects.for_object(model_name, object_id).select_related('actor').order_by('timestamp')
