"""
Transfers — Views

DRF ViewSet for transfers: list, retrieve, create, and workflow actions
(dispatch, receive, cancel) plus network statistics.

@file transfers/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import Transfert
from .serializers import (
    TransfertCancelSerializer,
    TransfertReadSerializer,
    TransfertReceiveSerializer,
    TransfertWriteSerializer,
)
from .services import TransfertService


class TransfertViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Transfers between stores. Role checks happen in TransfertService
    against the source (create, dispatch, cancel) or destination (receive).
    """

    permission_classes = [IsAuthenticated]
    serializer_class = TransfertReadSerializer
    filterset_fields = ['status', 'source_store', 'destination_store']
    search_fields = ['numero']
    ordering_fields = ['created_at', 'status', 'numero']
    ordering = ['-created_at']

    def get_queryset(self):
        return Transfert.objects.select_related(
            'source_store', 'destination_store',
        ).prefetch_related('lines__product')

    def _read(self, transfert, code=status.HTTP_200_OK):
        transfert = self.get_queryset().get(pk=transfert.pk)
        return Response(TransfertReadSerializer(transfert).data, status=code)

    def create(self, request, *args, **kwargs):
        ser = TransfertWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        transfert = TransfertService.create_transfert(
            data['source_store_id'],
            data['destination_store_id'],
            [dict(line) for line in data['lines']],
            actor=request.user,
            comment=data.get('comment', ''),
            dispatch=data.get('dispatch', True),
        )
        return self._read(transfert, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='dispatch', url_name='dispatch')
    def dispatch_transfert(self, request, pk=None):
        transfert = TransfertService.dispatch_transfert(pk, actor=request.user)
        return self._read(transfert)

    @action(detail=True, methods=['post'], url_path='receive')
    def receive(self, request, pk=None):
        ser = TransfertReceiveSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        transfert = TransfertService.receive_transfert(
            pk,
            [dict(line) for line in ser.validated_data['lines']],
            actor=request.user,
            comment=ser.validated_data.get('comment', ''),
        )
        return self._read(transfert)

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        ser = TransfertCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        transfert = TransfertService.cancel_transfert(
            pk, actor=request.user, reason=ser.validated_data.get('reason', ''),
        )
        return self._read(transfert)

    @action(detail=False, methods=['get'], url_path='stats')
    def stats(self, request):
        return Response(TransfertService.get_transfert_stats(request.query_params.get('store')))
