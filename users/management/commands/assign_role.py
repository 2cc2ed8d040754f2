"""
Users — Management Command: assign_role

Grants (or with --revoke, deactivates) a role for a member of staff.
Store roles need --store.

    python manage.py assign_role EMP042 STORE_MANAGER --store SAT1
    python manage.py assign_role EMP001 DIRECTOR
    python manage.py assign_role EMP042 STORE_MANAGER --store SAT1 --revoke

@file users/management/commands/assign_role.py
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from stores.models import Store
from users.models import Role, User, UserRole


class Command(BaseCommand):
    help = 'Grant or revoke a role for a user, optionally on one store.'

    def add_arguments(self, parser):
        parser.add_argument('employee_code')
        parser.add_argument('role')
        parser.add_argument('--store', help='Store code, for store roles.')
        parser.add_argument('--revoke', action='store_true')

    @transaction.atomic
    def handle(self, *args, **options):
        try:
            user = User.objects.get(employee_code=options['employee_code'].upper())
        except User.DoesNotExist:
            raise CommandError(f'Unknown user {options["employee_code"]}.')
        try:
            role = Role.objects.get(name=options['role'].upper())
        except Role.DoesNotExist:
            raise CommandError(f'Unknown role {options["role"]}; run seed_roles first.')
        store = None
        if options['store']:
            store = Store.objects.filter(code=options['store']).first()
            if store is None:
                raise CommandError(f'Unknown store {options["store"]}.')

        if options['revoke']:
            updated = UserRole.objects.filter(user=user, role=role, store=store).update(is_active=False)
            if not updated:
                raise CommandError('No such assignment.')
            self.stdout.write(self.style.SUCCESS(f'Revoked {role.name} from {user.employee_code}.'))
            return

        assignment = UserRole.objects.filter(user=user, role=role, store=store).first()
        if assignment is None:
            assignment = UserRole(user=user, role=role, store=store)
        assignment.is_active = True
        try:
            assignment.full_clean()
        except ValidationError as exc:
            raise CommandError('; '.join(exc.messages))
        assignment.save()
        self.stdout.write(self.style.SUCCESS(f'Granted {assignment}.'))
