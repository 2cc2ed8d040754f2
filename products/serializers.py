"""
Products — Serializers

@file products/serializers.py
"""

from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    unit_display = serializers.CharField(source='get_unit_display', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'code', 'name', 'category', 'unit', 'unit_display',
            'unit_cost', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'unit_display', 'created_at', 'updated_at']
