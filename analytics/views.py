"""
Analytics — Views

Read-only loss-rate endpoints:
  GET /analytics/loss-rates/?store=&period=week|month[&product=&end=]
  GET /analytics/loss-rates/products/?store=&period=
  GET /analytics/loss-rates/trend/?store=&period=[&product=&end=]

@file analytics/views.py
"""

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import LossRateQuerySerializer, LossRateReportSerializer, LossRateTrendSerializer
from .services import LossRateService


class _LossRateView(APIView):
    permission_classes = [IsAuthenticated]

    def _params(self, request):
        ser = LossRateQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        return ser.validated_data


class LossRateView(_LossRateView):
    def get(self, request):
        params = self._params(request)
        report = LossRateService.calculate_loss_rates(
            params['store'], params['period'],
            product_id=params.get('product'),
            end=params.get('end'),
        )
        return Response(LossRateReportSerializer(report).data)


class ProductLossRateView(_LossRateView):
    def get(self, request):
        params = self._params(request)
        reports = LossRateService.calculate_product_loss_rates(
            params['store'], params['period'], end=params.get('end'),
        )
        return Response(LossRateReportSerializer(reports, many=True).data)


class LossRateTrendView(_LossRateView):
    def get(self, request):
        params = self._params(request)
        trend = LossRateService.calculate_trend(
            params['store'], params['period'],
            product_id=params.get('product'),
            end=params.get('end'),
        )
        return Response(LossRateTrendSerializer(trend).data)
