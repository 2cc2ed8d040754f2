"""
Inventory — Signals

count_submitted is sent when a count moves to PENDING_VALIDATION, with
the variances already computed. Receivers get ``inventaire`` and ``actor``.

@file inventory/signals.py
"""

from django.dispatch import Signal

count_submitted = Signal()
