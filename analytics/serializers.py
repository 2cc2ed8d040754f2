"""
Analytics — Serializers

@file analytics/serializers.py
"""

from rest_framework import serializers

from .services import PERIOD_DAYS


class LossRateQuerySerializer(serializers.Serializer):
    store = serializers.UUIDField()
    period = serializers.ChoiceField(choices=sorted(PERIOD_DAYS), default='week')
    product = serializers.UUIDField(required=False)
    end = serializers.DateTimeField(required=False)


class LossRateReportSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    product_id = serializers.UUIDField(allow_null=True)
    period = serializers.CharField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    total_arrivals = serializers.DecimalField(max_digits=15, decimal_places=3)
    total_losses = serializers.DecimalField(max_digits=15, decimal_places=3)
    loss_rate = serializers.DecimalField(max_digits=9, decimal_places=2)
    breakdown = serializers.DictField(child=serializers.DecimalField(max_digits=15, decimal_places=3))
    status = serializers.CharField()
    generated_at = serializers.DateTimeField()


class LossRateTrendSerializer(serializers.Serializer):
    current = LossRateReportSerializer()
    previous = LossRateReportSerializer()
    change_percentage = serializers.DecimalField(max_digits=12, decimal_places=2)
    direction = serializers.CharField()
