"""
FreshStock — Test Factories

Factory Boy factories for generating test data. Used across all test
modules.

@file tests/factories.py
"""

import uuid
from decimal import Decimal

import factory
from django.utils import timezone

from alerts.models import StockThreshold, VarianceAlert
from core.models import AuditLog, SeverityChoices
from inventory.models import Inventaire, InventaireLine
from products.models import Product
from stock.models import StockMovement
from stores.models import Store
from transfers.models import Transfert, TransfertLine
from users.models import Role, User, UserRole
from users.policies import ROLE_DIRECTOR, ROLE_STOCK_CLERK, ROLE_STORE_MANAGER


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        skip_postgeneration_save = True

    employee_code = factory.Sequence(lambda n: f'EMP{n:04d}')
    email = factory.LazyAttribute(lambda o: f'{o.employee_code.lower()}@freshstock.test')
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        password = extracted or 'TestPass2026!'
        self.set_password(password)
        if create:
            self.save(update_fields=['password'])


class SuperuserFactory(UserFactory):
    is_staff = True
    is_superuser = True


class RoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Role
        django_get_or_create = ('name',)

    name = factory.Sequence(lambda n: f'ROLE_{n}')
    scope = Role.ScopeChoices.NETWORK
    description = factory.Faker('sentence')
    is_system = False


class UserRoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = UserRole

    user = factory.SubFactory(UserFactory)
    role = factory.SubFactory(RoleFactory)
    is_active = True


def make_director(**kwargs) -> User:
    user = UserFactory(**kwargs)
    UserRoleFactory(
        user=user,
        role=RoleFactory(name=ROLE_DIRECTOR, scope=Role.ScopeChoices.NETWORK, is_system=True),
    )
    return user


def make_store_user(store, role_name=ROLE_STORE_MANAGER, **kwargs) -> User:
    kwargs.setdefault('home_store', store)
    user = UserFactory(**kwargs)
    UserRoleFactory(
        user=user,
        role=RoleFactory(name=role_name, scope=Role.ScopeChoices.STORE, is_system=True),
        store=store,
    )
    return user


def make_clerk(store, **kwargs) -> User:
    return make_store_user(store, ROLE_STOCK_CLERK, **kwargs)


# ---------------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------------

class StoreFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Store

    code = factory.Sequence(lambda n: f'ST{n:03d}')
    name = factory.Sequence(lambda n: f'Store {n}')
    role = Store.RoleChoices.SATELLITE
    address = factory.Faker('street_address')
    is_active = True


class HubFactory(StoreFactory):
    role = Store.RoleChoices.HUB


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    code = factory.Sequence(lambda n: f'P{n:04d}')
    name = factory.Sequence(lambda n: f'Product {n}')
    category = 'Fruits'
    unit = Product.UnitChoices.KG
    unit_cost = factory.LazyFunction(lambda: Decimal('2.50'))
    is_active = True


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class StockMovementFactory(factory.django.DjangoModelFactory):
    """Writes straight to the ledger, bypassing balance checks (test setup only)."""

    class Meta:
        model = StockMovement

    store = factory.SubFactory(StoreFactory)
    product = factory.SubFactory(ProductFactory)
    movement_type = StockMovement.MovementType.ARRIVAL
    quantity = factory.LazyFunction(lambda: Decimal('10.000'))
    loss_category = ''
    reason = ''
    recorded_at = factory.LazyFunction(timezone.now)


class LossFactory(StockMovementFactory):
    movement_type = StockMovement.MovementType.LOSS
    quantity = factory.LazyFunction(lambda: Decimal('-1.000'))
    loss_category = StockMovement.LossCategory.SPOILAGE


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------

class TransfertFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Transfert

    numero = factory.Sequence(lambda n: f'TR-1999-{n + 1:04d}')
    source_store = factory.SubFactory(HubFactory)
    destination_store = factory.SubFactory(StoreFactory)
    status = Transfert.StatusChoices.DRAFT


class TransfertLineFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = TransfertLine

    transfert = factory.SubFactory(TransfertFactory)
    product = factory.SubFactory(ProductFactory)
    quantity_sent = factory.LazyFunction(lambda: Decimal('10.000'))


class InventaireFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Inventaire

    numero = factory.Sequence(lambda n: f'INV-1999-{n + 1:04d}')
    store = factory.SubFactory(StoreFactory)
    status = Inventaire.StatusChoices.IN_PROGRESS


class InventaireLineFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = InventaireLine

    inventaire = factory.SubFactory(InventaireFactory)
    product = factory.SubFactory(ProductFactory)
    theoretical_qty = factory.LazyFunction(lambda: Decimal('10.000'))
    unit_cost = factory.LazyFunction(lambda: Decimal('2.50'))


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

class VarianceAlertFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = VarianceAlert

    alert_type = VarianceAlert.AlertType.ABNORMAL_LOSS
    severity = SeverityChoices.MEDIUM
    store = factory.SubFactory(StoreFactory)
    product = None
    rule = 'abnormal_loss'
    title = factory.Sequence(lambda n: f'Alert {n}')
    message = 'Loss rate above the usual level.'
    current_value = factory.LazyFunction(lambda: Decimal('20'))
    expected_value = factory.LazyFunction(lambda: Decimal('8'))
    variance = factory.LazyFunction(lambda: Decimal('12'))
    variance_percentage = factory.LazyFunction(lambda: Decimal('150'))
    threshold = factory.LazyFunction(lambda: Decimal('13'))
    window_start = factory.LazyFunction(timezone.now)
    window_end = factory.LazyFunction(timezone.now)


class StockThresholdFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = StockThreshold

    store = factory.SubFactory(StoreFactory)
    product = factory.SubFactory(ProductFactory)
    metric = StockThreshold.Metric.STOCK_LEVEL
    operator = StockThreshold.Operator.BELOW
    value = factory.LazyFunction(lambda: Decimal('5'))
    severity = SeverityChoices.HIGH


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditLogFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AuditLog

    actor = factory.SubFactory(UserFactory)
    action = AuditLog.ActionChoices.CREATE
    model_name = 'StockMovement'
    object_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
