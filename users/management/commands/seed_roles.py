"""
Users — Management Command: seed_roles

Creates (or refreshes the description and scope of) the four roles the
stock policy checks. Safe to re-run.

    python manage.py seed_roles

@file users/management/commands/seed_roles.py
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from users.models import Role
from users.policies import ROLE_AUDITOR, ROLE_DIRECTOR, ROLE_STOCK_CLERK, ROLE_STORE_MANAGER

SYSTEM_ROLES = {
    ROLE_DIRECTOR: (Role.ScopeChoices.NETWORK, 'Validates counts, resolves alerts, configures thresholds'),
    ROLE_AUDITOR: (Role.ScopeChoices.NETWORK, 'Read-only access to ledger, reports and alerts'),
    ROLE_STORE_MANAGER: (Role.ScopeChoices.STORE, 'Runs counts, transfers and analyses for one store'),
    ROLE_STOCK_CLERK: (Role.ScopeChoices.STORE, 'Records arrivals, losses, receptions and counts'),
}


class Command(BaseCommand):
    help = 'Create or refresh the system roles used by the stock policy.'

    @transaction.atomic
    def handle(self, *args, **options):
        created = 0
        for name, (scope, description) in SYSTEM_ROLES.items():
            _, was_created = Role.objects.update_or_create(
                name=name,
                defaults={'scope': scope, 'description': description, 'is_system': True},
            )
            created += was_created
            self.stdout.write(f'  {"created" if was_created else "refreshed"}: {name}')
        self.stdout.write(self.style.SUCCESS(f'{created} created, {len(SYSTEM_ROLES) - created} refreshed.'))
