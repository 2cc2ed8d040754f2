"""
Stores — Views

Store master data. Any authenticated user may read; only directors write.

@file stores/views.py
"""

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from users.permissions import IsDirectorOrReadOnly

from .models import Store
from .serializers import StoreSerializer


class StoreViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAuthenticated, IsDirectorOrReadOnly]
    serializer_class = StoreSerializer
    queryset = Store.objects.all()
    filterset_fields = ['role', 'is_active']
    search_fields = ['code', 'name']
    ordering_fields = ['code', 'name', 'created_at']
    ordering = ['code']
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def perform_update(self, serializer):
        serializer.save(updated_by=self.request.user)
