"""
Transfers — Signals

transfer_received is sent inside the reception transaction, once the
TRANSFER_IN movements are written. Receivers get:

  transfert      — the received Transfert
  discrepancies  — list of dicts for lines where received != sent
  actor          — the receiving user

@file transfers/signals.py
"""

from django.dispatch import Signal

transfer_received = Signal()
