"""
Alerts — Signal Receivers

Raise INVENTORY_DISCREPANCY alerts as soon as a count is submitted or a
transfer is received. Both signals fire inside the workflow transaction;
alert creation runs in a savepoint so a failure here never undoes the
count or the reception.

@file alerts/receivers.py
"""

import logging

from django.db import transaction
from django.dispatch import receiver

from inventory.signals import count_submitted
from transfers.signals import transfer_received

from .services import AlertService

logger = logging.getLogger('freshstock')


@receiver(count_submitted)
def on_count_submitted(sender, inventaire, **kwargs):
    try:
        with transaction.atomic():
            alerts = AlertService.raise_count_discrepancies(inventaire)
    except Exception:
        logger.exception('Could not raise count discrepancy alerts for %s', inventaire.numero)
        return
    if alerts:
        logger.info('Count %s raised %d discrepancy alerts', inventaire.numero, len(alerts))


@receiver(transfer_received)
def on_transfer_received(sender, transfert, discrepancies=None, **kwargs):
    if not discrepancies:
        return
    try:
        with transaction.atomic():
            alerts = AlertService.raise_transfer_discrepancies(transfert)
    except Exception:
        logger.exception('Could not raise transfer discrepancy alerts for %s', transfert.numero)
        return
    logger.info('Transfer %s raised %d discrepancy alerts', transfert.numero, len(alerts))
