"""
Stores — Serializers

@file stores/serializers.py
"""

from rest_framework import serializers

from .models import Store


class StoreSerializer(serializers.ModelSerializer):
    role_display = serializers.CharField(source='get_role_display', read_only=True)

    class Meta:
        model = Store
        fields = [
            'id', 'code', 'name', 'role', 'role_display', 'address',
            'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'role_display', 'created_at', 'updated_at']

