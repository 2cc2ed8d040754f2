"""
Inventory — Serializers

Explicit field lists; no __all__.

@file inventory/serializers.py
"""

from rest_framework import serializers

from .models import Inventaire, InventaireLine


class InventaireLineReadSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='product.code', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = InventaireLine
        fields = [
            'id', 'product', 'product_code', 'product_name',
            'theoretical_qty', 'physical_qty', 'unit_cost',
            'variance', 'variance_value', 'severity', 'comment',
        ]
        read_only_fields = fields


class InventaireReadSerializer(serializers.ModelSerializer):
    store_code = serializers.CharField(source='store.code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    lines = InventaireLineReadSerializer(many=True, read_only=True)

    class Meta:
        model = Inventaire
        fields = [
            'id', 'numero', 'store', 'store_code', 'count_date',
            'status', 'status_display', 'comment', 'version',
            'submitted_at', 'submitted_by', 'validated_at', 'validated_by',
            'rejected_at', 'rejected_by', 'rejection_reason', 'resubmission_of',
            'total_variance', 'variance_value', 'lines',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class InventaireCreateSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    count_date = serializers.DateField(required=False)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class CountLineSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    physical_qty = serializers.DecimalField(max_digits=15, decimal_places=3, min_value=0)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class CountLinesSerializer(serializers.Serializer):
    lines = CountLineSerializer(many=True, required=False, default=list)


class InventaireDecisionSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, min_value=1)


class InventaireRejectSerializer(InventaireDecisionSerializer):
    reason = serializers.CharField()
