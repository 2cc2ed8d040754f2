"""
FreshStock — Root URL Configuration

All API endpoints are namespaced under /api/v1/.
The DRF browsable API is available for route inspection in development.

@file config/urls.py
"""

from django.contrib import admin
from django.urls import include, path
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.reverse import reverse

admin.site.site_header = 'FreshStock Administration'
admin.site.site_title = 'FreshStock'
admin.site.index_title = 'Stock Reconciliation & Anomaly Detection'


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request, format=None):
    """FreshStock API v1 — endpoint directory."""
    return Response({
        'stores': reverse('api-v1:stores:store-list', request=request, format=format),
        'products': reverse('api-v1:products:product-list', request=request, format=format),
        'stock': {
            'movements': reverse('api-v1:stock:movement-list', request=request, format=format),
            'levels': reverse('api-v1:stock:movement-levels', request=request, format=format),
        },
        'analytics': {
            'loss_rates': reverse('api-v1:analytics:loss-rates', request=request, format=format),
            'trend': reverse('api-v1:analytics:loss-rates-trend', request=request, format=format),
        },
        'alerts': {
            'active': reverse('api-v1:alerts:alert-list', request=request, format=format),
            'thresholds': reverse('api-v1:alerts:threshold-list', request=request, format=format),
            'schedule': reverse('api-v1:alerts:schedule', request=request, format=format),
        },
        'transfers': reverse('api-v1:transfers:transfert-list', request=request, format=format),
        'inventory': reverse('api-v1:inventory:inventaire-list', request=request, format=format),
    })


api_v1_patterns = [
    path('', api_root, name='api-root'),
    path('stores/', include('stores.urls', namespace='stores')),
    path('products/', include('products.urls', namespace='products')),
    path('stock/', include('stock.urls', namespace='stock')),
    path('analytics/', include('analytics.urls', namespace='analytics')),
    path('alerts/', include('alerts.urls', namespace='alerts')),
    path('transfers/', include('transfers.urls', namespace='transfers')),
    path('inventory/', include('inventory.urls', namespace='inventory')),
]

urlpatterns = [
    path('admin/', admin.site.urls),

    # DRF session auth (powers the "Log in" button on the browsable API)
    path('api/auth/', include('rest_framework.urls', namespace='rest_framework')),

    # Versioned API
    path('api/v1/', include((api_v1_patterns, 'api-v1'))),
]
