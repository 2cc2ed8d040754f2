"""
Core — Constants

Audit action codes and pagination limits shared by every app.

@file core/constants.py
"""

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_STATUS_CHANGE = 'STATUS_CHANGE'

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 200
