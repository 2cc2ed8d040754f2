"""
Stock — Views

Ledger endpoints: movement list (filtered, paginated) and append, and
stock level reads for a store.

@file stock/views.py
"""

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import (
    MovementFilterSerializer,
    StockLevelSerializer,
    StockMovementReadSerializer,
    StockMovementWriteSerializer,
)
from .services import StockService


class StockMovementViewSet(viewsets.GenericViewSet):
    """
    list:   GET  /stock/movements/?store=<id>&start=&end=&movement_type=&loss_category=&product=&search=
    create: POST /stock/movements/
    levels: GET  /stock/movements/levels/?store=<id>[&product=<id>]
    """

    permission_classes = [IsAuthenticated]
    serializer_class = StockMovementReadSerializer

    def list(self, request):
        params = MovementFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data
        qs = StockService.movement_queryset(
            data['store'],
            data.get('start'),
            data.get('end'),
            movement_type=data.get('movement_type'),
            loss_category=data.get('loss_category'),
            product_id=data.get('product'),
            search=data.get('search', ''),
        )
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(StockMovementReadSerializer(page, many=True).data)
        return Response(StockMovementReadSerializer(qs, many=True).data)

    def create(self, request):
        ser = StockMovementWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        movement = StockService.record_movement(
            data['store_id'],
            data['product_id'],
            data['movement_type'],
            data['quantity'],
            loss_category=data.get('loss_category') or None,
            reason=data.get('reason', ''),
            comment=data.get('comment', ''),
            actor=request.user,
        )
        return Response(StockMovementReadSerializer(movement).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'], url_path='levels')
    def levels(self, request):
        store_id = request.query_params.get('store')
        if not store_id:
            return Response({'store': ['This query parameter is required.']}, status=status.HTTP_400_BAD_REQUEST)
        product_id = request.query_params.get('product')
        if product_id:
            levels = [StockService.get_stock_level(store_id, product_id)]
        else:
            levels = StockService.get_store_stock(store_id)
        return Response(StockLevelSerializer(levels, many=True).data)
