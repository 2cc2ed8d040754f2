"""
Alerts — URL Configuration

@file alerts/urls.py
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import AnalysisScheduleView, StockThresholdViewSet, VarianceAlertViewSet

app_name = 'alerts'

router = SimpleRouter()
router.register('thresholds', StockThresholdViewSet, basename='threshold')
router.register('', VarianceAlertViewSet, basename='alert')

urlpatterns = [
    path('schedule/', AnalysisScheduleView.as_view(), name='schedule'),
    path('', include(router.urls)),
]
