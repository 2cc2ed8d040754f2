"""
Alerts — Views

  GET   /alerts/?store=<id>[&severity=&alert_type=]   active alerts
  POST  /alerts/run/                                  run the detector now (409 while a run holds the lock)
  POST  /alerts/{id}/resolve/                         resolve (director)
  GET   /alerts/statistics/?store=<id>
  CRUD  /alerts/thresholds/
  GET/POST/DELETE /alerts/schedule/                   periodic analysis

@file alerts/views.py
"""

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import ResourceNotFoundError
from users.permissions import IsDirectorOrReadOnly

from .models import StockThreshold, VarianceAlert
from .scheduling import VarianceAnalysisSchedule
from .serializers import (
    AlertFilterSerializer,
    AlertStatisticsQuerySerializer,
    ResolveAlertSerializer,
    RunAnalysisSerializer,
    ScheduleSerializer,
    StockThresholdSerializer,
    VarianceAlertSerializer,
)
from .services import AlertService, ThresholdService


class VarianceAlertViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    permission_classes = [IsAuthenticated]
    serializer_class = VarianceAlertSerializer
    queryset = VarianceAlert.objects.select_related('store', 'product')

    def list(self, request):
        params = AlertFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data
        qs = AlertService.get_active_alerts(data['store'])
        if data.get('severity'):
            qs = qs.filter(severity=data['severity'])
        if data.get('alert_type'):
            qs = qs.filter(alert_type=data['alert_type'])
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(VarianceAlertSerializer(page, many=True).data)
        return Response(VarianceAlertSerializer(qs, many=True).data)

    @action(detail=False, methods=['post'], url_path='run')
    def run(self, request):
        ser = RunAnalysisSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        alerts = AlertService.run_variance_analysis(ser.validated_data['store'], actor=request.user)
        return Response(
            {'created': len(alerts), 'alerts': VarianceAlertSerializer(alerts, many=True).data},
            status=status.HTTP_201_CREATED if alerts else status.HTTP_200_OK,
        )

    @action(detail=True, methods=['post'], url_path='resolve')
    def resolve(self, request, pk=None):
        ser = ResolveAlertSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        alert = AlertService.resolve_alert(pk, actor=request.user, note=ser.validated_data['note'])
        return Response(VarianceAlertSerializer(alert).data)

    @action(detail=False, methods=['get'], url_path='statistics')
    def statistics(self, request):
        params = AlertStatisticsQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        data = params.validated_data
        return Response(AlertService.get_alert_statistics(data['store'], data['window_days']))


class StockThresholdViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [IsDirectorOrReadOnly]
    serializer_class = StockThresholdSerializer
    filterset_fields = ['store', 'product', 'metric', 'is_active']
    http_method_names = ['get', 'post', 'patch']

    def get_queryset(self):
        return StockThreshold.objects.select_related('store', 'product')

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        store = data.pop('store')
        serializer.instance = ThresholdService.create_threshold(
            store_id=store.pk, actor=self.request.user, **data,
        )

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        data.pop('store', None)
        serializer.instance = ThresholdService.update_threshold(
            serializer.instance.pk, actor=self.request.user, **data,
        )


class AnalysisScheduleView(APIView):
    """Periodic variance analysis of one store (django-celery-beat)."""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = RunAnalysisSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        schedule = VarianceAnalysisSchedule.status(params.validated_data['store'])
        if schedule is None:
            raise ResourceNotFoundError(detail='No analysis schedule for this store.')
        return Response(schedule)

    def post(self, request):
        ser = ScheduleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        store_id = ser.validated_data['store']
        VarianceAnalysisSchedule.start(
            store_id, actor=request.user,
            interval_minutes=ser.validated_data.get('interval_minutes'),
        )
        return Response(VarianceAnalysisSchedule.status(store_id), status=status.HTTP_201_CREATED)

    def patch(self, request):
        """Stop (disable) without deleting the schedule."""
        ser = RunAnalysisSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        store_id = ser.validated_data['store']
        VarianceAnalysisSchedule.stop(store_id, actor=request.user)
        return Response(VarianceAnalysisSchedule.status(store_id))

    def delete(self, request):
        ser = RunAnalysisSerializer(data=request.data or request.query_params)
        ser.is_valid(raise_exception=True)
        VarianceAnalysisSchedule.cancel(ser.validated_data['store'], actor=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
