"""
Analytics — URL Configuration

@file analytics/urls.py
"""

from django.urls import path

from .views import LossRateTrendView, LossRateView, ProductLossRateView

app_name = 'analytics'

urlpatterns = [
    path('loss-rates/', LossRateView.as_view(), name='loss-rates'),
    path('loss-rates/products/', ProductLossRateView.as_view(), name='loss-rates-products'),
    path('loss-rates/trend/', LossRateTrendView.as_view(), name='loss-rates-trend'),
]
