"""
Products — Views

@file products/views.py
"""

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from users.permissions import IsDirectorOrReadOnly

from .models import Product
from .serializers import ProductSerializer


class ProductViewSet(viewsets.ModelViewSet):
    """Product catalogue. Read for everyone authenticated, write for directors."""

    permission_classes = [IsAuthenticated, IsDirectorOrReadOnly]
    serializer_class = ProductSerializer
    queryset = Product.objects.all()
    filterset_fields = ['unit', 'category', 'is_active']
    search_fields = ['code', 'name', 'category']
    ordering_fields = ['name', 'code', 'unit_cost']
    ordering = ['name']
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)
