"""
Transfers — URL Configuration

@file transfers/urls.py
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import TransfertViewSet

app_name = 'transfers'

router = SimpleRouter()
router.register('', TransfertViewSet, basename='transfert')

urlpatterns = [
    path('', include(router.urls)),
]
