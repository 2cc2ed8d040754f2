"""
Tests — Transfers API endpoints.

@file transfers/tests/test_views.py
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from transfers.models import Transfert


pytestmark = pytest.mark.django_db


@pytest.fixture
def hub_client(hub_manager):
    client = APIClient()
    client.force_authenticate(user=hub_manager)
    return client


def _payload(hub, store, product, **extra):
    return {
        'source_store_id': str(hub.pk),
        'destination_store_id': str(store.pk),
        'lines': [{'product_id': str(product.pk), 'quantity': '12.000'}],
        **extra,
    }


class TestTransfertAPI:
    def test_create_and_dispatch(self, hub_client, hub, store, product, hub_stocked):
        resp = hub_client.post(reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json')
        assert resp.status_code == 201
        assert resp.data['status'] == 'IN_TRANSIT'
        assert resp.data['lines'][0]['quantity_sent'] == Decimal('12.000')

    def test_create_draft_then_dispatch(self, hub_client, hub, store, product, hub_stocked):
        resp = hub_client.post(
            reverse('api-v1:transfers:transfert-list'),
            _payload(hub, store, product, dispatch=False),
            format='json',
        )
        assert resp.data['status'] == 'DRAFT'
        url = reverse('api-v1:transfers:transfert-dispatch', kwargs={'pk': resp.data['id']})
        resp = hub_client.post(url, {}, format='json')
        assert resp.status_code == 200
        assert resp.data['status'] == 'IN_TRANSIT'

    def test_create_insufficient_stock_is_409(self, hub_client, hub, store, product):
        resp = hub_client.post(reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json')
        assert resp.status_code == 409
        assert not Transfert.objects.exists()

    def test_receive(self, hub_client, clerk_client, hub, store, product, hub_stocked):
        created = hub_client.post(
            reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json',
        ).data
        url = reverse('api-v1:transfers:transfert-receive', kwargs={'pk': created['id']})
        resp = clerk_client.post(
            url,
            {'lines': [{'line_id': created['lines'][0]['id'], 'quantity_received': '11', 'condition': 'DAMAGED'}]},
            format='json',
        )
        assert resp.status_code == 200
        assert resp.data['status'] == 'RECEIVED'
        assert resp.data['lines'][0]['discrepancy'] == Decimal('-1.000')

    def test_receive_line_needs_key(self, hub_client, clerk_client, hub, store, product, hub_stocked):
        created = hub_client.post(
            reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json',
        ).data
        url = reverse('api-v1:transfers:transfert-receive', kwargs={'pk': created['id']})
        resp = clerk_client.post(url, {'lines': [{'quantity_received': '12'}]}, format='json')
        assert resp.status_code == 400

    def test_cancel(self, hub_client, hub, store, product, hub_stocked):
        created = hub_client.post(
            reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json',
        ).data
        url = reverse('api-v1:transfers:transfert-cancel', kwargs={'pk': created['id']})
        resp = hub_client.post(url, {'reason': 'Wrong destination'}, format='json')
        assert resp.status_code == 200
        assert resp.data['status'] == 'CANCELLED'

    def test_list_filter_by_status(self, hub_client, hub, store, product, hub_stocked):
        hub_client.post(reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json')
        resp = hub_client.get(reverse('api-v1:transfers:transfert-list'), {'status': 'DRAFT'})
        assert resp.status_code == 200
        assert resp.data['count'] == 0

    def test_stats(self, hub_client, hub, store, product, hub_stocked):
        hub_client.post(reverse('api-v1:transfers:transfert-list'), _payload(hub, store, product), format='json')
        resp = hub_client.get(reverse('api-v1:transfers:transfert-stats'), {'store': str(hub.pk)})
        assert resp.status_code == 200
        assert resp.data['in_transit'] == 1
