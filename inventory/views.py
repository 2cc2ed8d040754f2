"""
Inventory — Views

DRF ViewSet for inventory counts: list, retrieve, create, and workflow
actions (counts, submit, validate, reject, resubmit).

@file inventory/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import Inventaire
from .serializers import (
    CountLinesSerializer,
    InventaireCreateSerializer,
    InventaireDecisionSerializer,
    InventaireReadSerializer,
    InventaireRejectSerializer,
)
from .services import InventaireService


class InventaireViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Counts: store staff open, fill in and submit; directors validate or
    reject. Role checks are made by InventaireService.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = InventaireReadSerializer
    filterset_fields = ['status', 'store']
    search_fields = ['numero']
    ordering_fields = ['created_at', 'count_date', 'status']
    ordering = ['-created_at']

    def get_queryset(self):
        return Inventaire.objects.select_related('store').prefetch_related('lines__product')

    def _read(self, inventaire, code=status.HTTP_200_OK):
        inventaire = self.get_queryset().get(pk=inventaire.pk)
        return Response(InventaireReadSerializer(inventaire).data, status=code)

    def create(self, request, *args, **kwargs):
        ser = InventaireCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        inventaire = InventaireService.create_inventaire(
            ser.validated_data['store_id'],
            actor=request.user,
            count_date=ser.validated_data.get('count_date'),
            comment=ser.validated_data.get('comment', ''),
        )
        return self._read(inventaire, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='counts')
    def counts(self, request, pk=None):
        ser = CountLinesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        inventaire = InventaireService.record_counts(
            pk, [dict(line) for line in ser.validated_data['lines']], actor=request.user,
        )
        return self._read(inventaire)

    @action(detail=True, methods=['post'], url_path='submit')
    def submit(self, request, pk=None):
        ser = CountLinesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        inventaire = InventaireService.submit_count(
            pk, [dict(line) for line in ser.validated_data['lines']] or None, actor=request.user,
        )
        return self._read(inventaire)

    @action(detail=True, methods=['post'], url_path='validate')
    def validate(self, request, pk=None):
        ser = InventaireDecisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        inventaire = InventaireService.validate_inventaire(
            pk, actor=request.user, expected_version=ser.validated_data.get('expected_version'),
        )
        return self._read(inventaire)

    @action(detail=True, methods=['post'], url_path='reject')
    def reject(self, request, pk=None):
        ser = InventaireRejectSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        inventaire = InventaireService.reject_inventaire(
            pk,
            actor=request.user,
            reason=ser.validated_data['reason'],
            expected_version=ser.validated_data.get('expected_version'),
        )
        return self._read(inventaire)

    @action(detail=True, methods=['post'], url_path='resubmit')
    def resubmit(self, request, pk=None):
        inventaire = InventaireService.resubmit_inventaire(pk, actor=request.user)
        return self._read(inventaire, status.HTTP_201_CREATED)
