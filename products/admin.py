"""
Products — Django Admin Configuration

@file products/admin.py
"""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'category', 'unit', 'unit_cost', 'is_active')
    list_filter = ('unit', 'is_active', 'category')
    search_fields = ('code', 'name', 'category')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    list_per_page = 50
    ordering = ('name',)
