"""
Tests — Analytics API endpoints.

@file analytics/tests/test_views.py
"""

from decimal import Decimal

import pytest
from django.urls import reverse

from tests.factories import LossFactory, StockMovementFactory


pytestmark = pytest.mark.django_db


class TestLossRateAPI:
    def test_loss_rates(self, authenticated_client, store):
        StockMovementFactory(store=store, quantity=Decimal('40'))
        LossFactory(store=store, quantity=Decimal('-2'))
        resp = authenticated_client.get(reverse('api-v1:analytics:loss-rates'), {'store': str(store.pk)})
        assert resp.status_code == 200
        assert resp.data['period'] == 'week'
        assert resp.data['loss_rate'] == Decimal('5.00')
        assert resp.data['status'] == 'ACCEPTABLE'

    def test_invalid_period(self, authenticated_client, store):
        resp = authenticated_client.get(
            reverse('api-v1:analytics:loss-rates'), {'store': str(store.pk), 'period': 'year'},
        )
        assert resp.status_code == 400

    def test_products(self, authenticated_client, store):
        StockMovementFactory.create_batch(2, store=store)
        resp = authenticated_client.get(
            reverse('api-v1:analytics:loss-rates-products'), {'store': str(store.pk), 'period': 'month'},
        )
        assert resp.status_code == 200
        assert len(resp.data) == 2

    def test_trend(self, authenticated_client, store):
        resp = authenticated_client.get(reverse('api-v1:analytics:loss-rates-trend'), {'store': str(store.pk)})
        assert resp.status_code == 200
        assert resp.data['direction'] == 'STABLE'
