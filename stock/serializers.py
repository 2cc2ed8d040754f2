"""
Stock — Serializers

Explicit field lists; no __all__. StockLevel is a dataclass, serialized
with a plain Serializer.

@file stock/serializers.py
"""

from rest_framework import serializers

from .models import StockMovement


class StockMovementReadSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='product.code', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    movement_type_display = serializers.CharField(source='get_movement_type_display', read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            'id', 'store', 'product', 'product_code', 'product_name',
            'movement_type', 'movement_type_display', 'quantity', 'loss_category',
            'reason', 'comment', 'reference_type', 'reference_id',
            'recorded_by', 'recorded_at',
        ]
        read_only_fields = fields


class StockMovementWriteSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    product_id = serializers.UUIDField()
    movement_type = serializers.ChoiceField(
        choices=[
            (StockMovement.MovementType.ARRIVAL, StockMovement.MovementType.ARRIVAL.label),
            (StockMovement.MovementType.LOSS, StockMovement.MovementType.LOSS.label),
        ],
    )
    quantity = serializers.DecimalField(max_digits=15, decimal_places=3)
    loss_category = serializers.ChoiceField(
        choices=StockMovement.LossCategory.choices, required=False, allow_blank=True,
    )
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class MovementFilterSerializer(serializers.Serializer):
    store = serializers.UUIDField()
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    movement_type = serializers.ChoiceField(choices=StockMovement.MovementType.choices, required=False)
    loss_category = serializers.ChoiceField(choices=StockMovement.LossCategory.choices, required=False)
    product = serializers.UUIDField(required=False)
    search = serializers.CharField(required=False, allow_blank=True, default='')


class StockLevelSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    product_id = serializers.UUIDField()
    quantity = serializers.DecimalField(max_digits=15, decimal_places=3)
    reserved_quantity = serializers.DecimalField(max_digits=15, decimal_places=3)
    in_transit_quantity = serializers.DecimalField(max_digits=15, decimal_places=3)
    available_quantity = serializers.DecimalField(max_digits=15, decimal_places=3)
    unit_cost = serializers.DecimalField(max_digits=15, decimal_places=2)
    value = serializers.DecimalField(max_digits=20, decimal_places=2)
