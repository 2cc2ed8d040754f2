"""
Core — Document Numbering

Sequential, year-scoped document numbers such as ``TR-2026-0001``.
The numero field is unique, so a concurrent writer picking the same number
fails on insert; ``create_numbered`` then takes the next number.

@file core/numbering.py
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models.functions import Length
from django.utils import timezone

logger = logging.getLogger('freshstock')

NUMBERING_ATTEMPTS = 3


def next_document_number(model, prefix: str, *, field: str = 'numero', year: int | None = None) -> str:
    """Return the next ``{prefix}-{year}-{NNNN}`` for ``model``."""
    year = year or timezone.localdate().year
    stem = f'{prefix}-{year}-'
    # Longest first, so 10000 sorts after 9999.
    last = (
        model.objects.filter(**{f'{field}__startswith': stem})
        .order_by(Length(field).desc(), f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    seq = int(last[len(stem):]) if last else 0
    return f'{stem}{seq + 1:04d}'


def create_numbered(model, prefix: str, *, field: str = 'numero', **values):
    """
    ``model.objects.create(**values)`` under the next free document number.
    A collision on the number is retried; any other IntegrityError is raised.
    """
    for attempt in range(1, NUMBERING_ATTEMPTS + 1):
        number = next_document_number(model, prefix, field=field)
        try:
            with transaction.atomic():
                return model.objects.create(**{field: number}, **values)
        except IntegrityError:
            if attempt == NUMBERING_ATTEMPTS or not model.objects.filter(**{field: number}).exists():
                raise
            logger.warning('Document number %s taken concurrently; retrying.', number)
