"""
Stores — URL Configuration

@file stores/urls.py
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import StoreViewSet

app_name = 'stores'

router = SimpleRouter()
router.register('', StoreViewSet, basename='store')

urlpatterns = [
    path('', include(router.urls)),
]
