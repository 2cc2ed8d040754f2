"""
Tests — Alerts API endpoints.

@file alerts/tests/test_views.py
"""

from decimal import Decimal

import pytest
from django.core.cache import cache
from django.urls import reverse
from django_celery_beat.models import PeriodicTask

from alerts.models import StockThreshold, VarianceAlert
from alerts.services import analysis_lock_key
from core.models import SeverityChoices
from tests.factories import LossFactory, StockMovementFactory, VarianceAlertFactory


pytestmark = pytest.mark.django_db


class TestVarianceAlertAPI:
    def test_requires_authentication(self, api_client, store):
        resp = api_client.get(reverse('api-v1:alerts:alert-list'), {'store': str(store.pk)})
        assert resp.status_code in (401, 403)

    def test_list_requires_store(self, manager_client):
        resp = manager_client.get(reverse('api-v1:alerts:alert-list'))
        assert resp.status_code == 400

    def test_list_filters(self, manager_client, store):
        VarianceAlertFactory(store=store, severity=SeverityChoices.CRITICAL)
        VarianceAlertFactory(store=store, severity=SeverityChoices.LOW)
        resp = manager_client.get(
            reverse('api-v1:alerts:alert-list'), {'store': str(store.pk), 'severity': 'CRITICAL'},
        )
        assert resp.status_code == 200
        assert resp.data['count'] == 1
        assert resp.data['results'][0]['store_code'] == store.code

    def test_run_creates_then_dedups(self, manager_client, store, product):
        StockMovementFactory(store=store, product=product, quantity=Decimal('100'))
        LossFactory(store=store, product=product, quantity=Decimal('-30'))
        url = reverse('api-v1:alerts:alert-run')
        resp = manager_client.post(url, {'store': str(store.pk)}, format='json')
        assert resp.status_code == 201
        assert resp.data['created'] == 3
        resp = manager_client.post(url, {'store': str(store.pk)}, format='json')
        assert resp.status_code == 200
        assert resp.data['created'] == 0

    def test_run_while_scheduled_run_holds_lock_is_409(self, manager_client, store, product):
        StockMovementFactory(store=store, product=product, quantity=Decimal('100'))
        LossFactory(store=store, product=product, quantity=Decimal('-30'))
        key = analysis_lock_key(store.pk)
        cache.add(key, 'running')
        try:
            resp = manager_client.post(reverse('api-v1:alerts:alert-run'), {'store': str(store.pk)}, format='json')
        finally:
            cache.delete(key)
        assert resp.status_code == 409
        assert resp.data['code'] == 'ANALYSIS_RUNNING'
        assert not VarianceAlert.objects.exists()

    def test_resolve(self, director_client, manager_client, store):
        alert = VarianceAlertFactory(store=store)
        url = reverse('api-v1:alerts:alert-resolve', kwargs={'pk': alert.pk})
        assert manager_client.post(url, {}, format='json').status_code == 403
        resp = director_client.post(url, {'note': 'Checked'}, format='json')
        assert resp.status_code == 200
        assert resp.data['is_resolved'] is True
        resp = director_client.post(url, {}, format='json')
        assert resp.status_code == 400
        assert resp.data['code'] == 'INVALID_STATE_TRANSITION'

    def test_statistics(self, manager_client, store):
        VarianceAlertFactory(store=store)
        resp = manager_client.get(
            reverse('api-v1:alerts:alert-statistics'), {'store': str(store.pk), 'window_days': 7},
        )
        assert resp.status_code == 200
        assert resp.data['total'] == 1
        assert resp.data['window_days'] == 7

    def test_unknown_alert_is_404(self, director_client):
        url = reverse('api-v1:alerts:alert-resolve', kwargs={'pk': '00000000-0000-0000-0000-000000000000'})
        assert director_client.post(url, {}, format='json').status_code == 404


class TestStockThresholdAPI:
    def _payload(self, store, product):
        return {
            'store': str(store.pk),
            'product': str(product.pk),
            'metric': 'STOCK_LEVEL',
            'operator': 'BELOW',
            'value': '6.000',
            'severity': 'HIGH',
        }

    def test_director_creates(self, director_client, store, product):
        resp = director_client.post(
            reverse('api-v1:alerts:threshold-list'), self._payload(store, product), format='json',
        )
        assert resp.status_code == 201
        assert StockThreshold.objects.get().created_by is not None

    def test_manager_read_only(self, manager_client, store, product):
        url = reverse('api-v1:alerts:threshold-list')
        assert manager_client.post(url, self._payload(store, product), format='json').status_code == 403
        assert manager_client.get(url).status_code == 200


class TestAnalysisScheduleAPI:
    def test_lifecycle(self, director_client, store):
        url = reverse('api-v1:alerts:schedule')
        assert director_client.get(url, {'store': str(store.pk)}).status_code == 404

        resp = director_client.post(url, {'store': str(store.pk), 'interval_minutes': 20}, format='json')
        assert resp.status_code == 201
        assert resp.data['interval_minutes'] == 20
        assert resp.data['enabled'] is True

        resp = director_client.patch(url, {'store': str(store.pk)}, format='json')
        assert resp.data['enabled'] is False

        resp = director_client.delete(url, {'store': str(store.pk)}, format='json')
        assert resp.status_code == 204
        assert not PeriodicTask.objects.exists()
