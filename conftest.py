"""
FreshStock — Root conftest for pytest

Shared fixtures available to all test modules.

@file conftest.py
"""

from decimal import Decimal

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from tests.factories import (
    HubFactory,
    ProductFactory,
    StockMovementFactory,
    StoreFactory,
    SuperuserFactory,
    UserFactory,
    make_clerk,
    make_director,
    make_store_user,
)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def user(db):
    """Active user without any role."""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return SuperuserFactory()


@pytest.fixture
def hub(db):
    return HubFactory(code='HUB', name='Central hub')


@pytest.fixture
def store(db):
    return StoreFactory(code='SAT1', name='Satellite 1')


@pytest.fixture
def product(db):
    return ProductFactory(code='TOM', name='Tomatoes', unit_cost=Decimal('2.00'))


@pytest.fixture
def director(db):
    return make_director()


@pytest.fixture
def manager(store):
    """STORE_MANAGER of ``store``."""
    return make_store_user(store)


@pytest.fixture
def hub_manager(hub):
    return make_store_user(hub)


@pytest.fixture
def clerk(store):
    """STOCK_CLERK of ``store``."""
    return make_clerk(store)


@pytest.fixture
def stocked(store, product):
    """``store`` holds 100 of ``product``."""
    return StockMovementFactory(store=store, product=product, quantity=Decimal('100.000'))


@pytest.fixture
def hub_stocked(hub, product):
    """``hub`` holds 100 of ``product``."""
    return StockMovementFactory(store=hub, product=product, quantity=Decimal('100.000'))


@pytest.fixture
def authenticated_client(api_client, user):
    """API client authenticated as a user without roles."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def director_client(director):
    client = APIClient()
    client.force_authenticate(user=director)
    return client


@pytest.fixture
def manager_client(manager):
    client = APIClient()
    client.force_authenticate(user=manager)
    return client


@pytest.fixture
def clerk_client(clerk):
    client = APIClient()
    client.force_authenticate(user=clerk)
    return client
