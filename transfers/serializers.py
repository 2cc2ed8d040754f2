"""
Transfers — Serializers

Explicit field lists; no __all__.

@file transfers/serializers.py
"""

from rest_framework import serializers

from .models import Transfert, TransfertLine


class TransfertLineReadSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='product.code', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    discrepancy = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True, allow_null=True)

    class Meta:
        model = TransfertLine
        fields = [
            'id', 'product', 'product_code', 'product_name',
            'quantity_sent', 'quantity_received', 'discrepancy',
            'condition', 'comment',
        ]
        read_only_fields = fields


class TransfertReadSerializer(serializers.ModelSerializer):
    source_store_code = serializers.CharField(source='source_store.code', read_only=True)
    destination_store_code = serializers.CharField(source='destination_store.code', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    lines = TransfertLineReadSerializer(many=True, read_only=True)

    class Meta:
        model = Transfert
        fields = [
            'id', 'numero', 'source_store', 'source_store_code',
            'destination_store', 'destination_store_code',
            'status', 'status_display', 'comment', 'version',
            'dispatched_at', 'dispatched_by', 'received_at', 'received_by',
            'reception_comment', 'cancelled_at', 'cancelled_by', 'cancel_reason',
            'lines', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class TransfertLineWriteSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=15, decimal_places=3)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class TransfertWriteSerializer(serializers.Serializer):
    source_store_id = serializers.UUIDField()
    destination_store_id = serializers.UUIDField()
    lines = TransfertLineWriteSerializer(many=True)
    comment = serializers.CharField(required=False, allow_blank=True, default='')
    dispatch = serializers.BooleanField(required=False, default=True)


class ReceivedLineSerializer(serializers.Serializer):
    line_id = serializers.UUIDField(required=False)
    product_id = serializers.UUIDField(required=False)
    quantity_received = serializers.DecimalField(max_digits=15, decimal_places=3)
    condition = serializers.ChoiceField(
        choices=TransfertLine.ConditionChoices.choices, required=False, allow_blank=True,
    )
    comment = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if not attrs.get('line_id') and not attrs.get('product_id'):
            raise serializers.ValidationError('line_id or product_id is required.')
        return attrs


class TransfertReceiveSerializer(serializers.Serializer):
    lines = ReceivedLineSerializer(many=True)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class TransfertCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
