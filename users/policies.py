"""
Users — Authorization Policy

Single decision point for every state-changing stock operation. Services
call ``StockPolicy.authorize()`` at their boundary; the pure computations
(loss rates, variances, severities) never consult roles.

Rules:
  - superusers and DIRECTOR holders may perform every action on every store;
  - director-only actions (count validation/rejection, alert resolution,
    threshold and schedule management) are refused to everyone else;
  - store actions require a STORE-scoped role on that store, the manager
    role covering everything the clerk role covers;
  - a missing actor (scheduled jobs) is only allowed for system actions.

@file users/policies.py
"""

import logging

from core.exceptions import PermissionDeniedError

logger = logging.getLogger('freshstock')

ROLE_DIRECTOR = 'DIRECTOR'
ROLE_AUDITOR = 'AUDITOR'
ROLE_STORE_MANAGER = 'STORE_MANAGER'
ROLE_STOCK_CLERK = 'STOCK_CLERK'


class Action:
    RECORD_MOVEMENT = 'record_movement'
    CREATE_TRANSFERT = 'create_transfert'
    DISPATCH_TRANSFERT = 'dispatch_transfert'
    RECEIVE_TRANSFERT = 'receive_transfert'
    CANCEL_TRANSFERT = 'cancel_transfert'
    CREATE_INVENTAIRE = 'create_inventaire'
    RECORD_COUNTS = 'record_counts'
    SUBMIT_COUNT = 'submit_count'
    RESUBMIT_INVENTAIRE = 'resubmit_inventaire'
    VALIDATE_INVENTAIRE = 'validate_inventaire'
    REJECT_INVENTAIRE = 'reject_inventaire'
    RUN_VARIANCE_ANALYSIS = 'run_variance_analysis'
    RESOLVE_ALERT = 'resolve_alert'
    MANAGE_THRESHOLDS = 'manage_thresholds'
    MANAGE_SCHEDULE = 'manage_schedule'


DIRECTOR_ONLY = frozenset({
    Action.VALIDATE_INVENTAIRE,
    Action.REJECT_INVENTAIRE,
    Action.RESOLVE_ALERT,
    Action.MANAGE_THRESHOLDS,
    Action.MANAGE_SCHEDULE,
})

CLERK_ACTIONS = frozenset({
    Action.RECORD_MOVEMENT,
    Action.RECEIVE_TRANSFERT,
    Action.RECORD_COUNTS,
})

MANAGER_ACTIONS = CLERK_ACTIONS | {
    Action.CREATE_TRANSFERT,
    Action.DISPATCH_TRANSFERT,
    Action.CANCEL_TRANSFERT,
    Action.CREATE_INVENTAIRE,
    Action.SUBMIT_COUNT,
    Action.RESUBMIT_INVENTAIRE,
    Action.RUN_VARIANCE_ANALYSIS,
}

SYSTEM_ACTIONS = frozenset({Action.RUN_VARIANCE_ANALYSIS})


class StockPolicy:
    """Role-based authorization for the stock reconciliation operations."""

    @staticmethod
    def is_director(actor) -> bool:
        if actor is None or not getattr(actor, 'is_authenticated', False):
            return False
        return actor.is_superuser or actor.has_role(ROLE_DIRECTOR)

    @staticmethod
    def is_allowed(actor, action: str, *, store_id=None) -> bool:
        if actor is None:
            return action in SYSTEM_ACTIONS
        if not getattr(actor, 'is_active', False):
            return False
        if StockPolicy.is_director(actor):
            return True
        if action in DIRECTOR_ONLY or store_id is None:
            return False
        if action in MANAGER_ACTIONS and actor.has_store_role(ROLE_STORE_MANAGER, store_id):
            return True
        if action in CLERK_ACTIONS and actor.has_store_role(ROLE_STOCK_CLERK, store_id):
            return True
        return False

    @staticmethod
    def authorize(actor, action: str, *, store_id=None) -> None:
        """Raise PermissionDeniedError unless ``actor`` may perform ``action``."""
        if StockPolicy.is_allowed(actor, action, store_id=store_id):
            return
        logger.warning(
            'Permission denied: actor=%s action=%s store=%s',
            getattr(actor, 'pk', None), action, store_id,
        )
        raise PermissionDeniedError(
            detail=f'Not allowed to {action.replace("_", " ")} for this store.',
        )
