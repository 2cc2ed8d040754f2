"""
Alerts — Serializers

@file alerts/serializers.py
"""

from rest_framework import serializers

from core.models import SeverityChoices

from .models import StockThreshold, VarianceAlert


class VarianceAlertSerializer(serializers.ModelSerializer):
    store_code = serializers.CharField(source='store.code', read_only=True)
    product_code = serializers.CharField(source='product.code', read_only=True, default=None)
    product_name = serializers.CharField(source='product.name', read_only=True, default=None)

    class Meta:
        model = VarianceAlert
        fields = [
            'id', 'alert_type', 'severity', 'rule',
            'store', 'store_code', 'product', 'product_code', 'product_name',
            'title', 'message',
            'current_value', 'expected_value', 'variance', 'variance_percentage', 'threshold',
            'window_start', 'window_end', 'detected_at',
            'is_resolved', 'resolved_by', 'resolved_at', 'resolution_note',
            'recommended_actions', 'reference_type', 'reference_id',
        ]
        read_only_fields = fields


class AlertFilterSerializer(serializers.Serializer):
    store = serializers.UUIDField()
    severity = serializers.ChoiceField(choices=SeverityChoices.choices, required=False)
    alert_type = serializers.ChoiceField(choices=VarianceAlert.AlertType.choices, required=False)


class RunAnalysisSerializer(serializers.Serializer):
    store = serializers.UUIDField()


class ResolveAlertSerializer(serializers.Serializer):
    note = serializers.CharField(required=False, allow_blank=True, default='')


class AlertStatisticsQuerySerializer(serializers.Serializer):
    store = serializers.UUIDField()
    window_days = serializers.IntegerField(min_value=1, max_value=365, default=30)


class StockThresholdSerializer(serializers.ModelSerializer):
    class Meta:
        model = StockThreshold
        fields = [
            'id', 'store', 'product', 'metric', 'operator', 'value',
            'severity', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class ScheduleSerializer(serializers.Serializer):
    store = serializers.UUIDField()
    interval_minutes = serializers.IntegerField(min_value=1, required=False)
