"""
Products — URL Configuration

@file products/urls.py
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import ProductViewSet

app_name = 'products'

router = SimpleRouter()
router.register('', ProductViewSet, basename='product')

urlpatterns = [
    path('', include(router.urls)),
]
