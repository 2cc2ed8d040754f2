"""
Alerts — Models

VarianceAlert records an anomaly raised by the detector; it is created
once and afterwards only changes when somebody resolves it.
StockThreshold is operator-configured: a bound on a stock metric for a
store (optionally one product) that raises THRESHOLD_EXCEEDED alerts.

@file alerts/models.py
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, SeverityChoices


class VarianceAlertQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_resolved=False)

    def by_severity(self):
        """Critical first, then most recently detected."""
        rank = models.Case(
            models.When(severity=SeverityChoices.CRITICAL, then=models.Value(4)),
            models.When(severity=SeverityChoices.HIGH, then=models.Value(3)),
            models.When(severity=SeverityChoices.MEDIUM, then=models.Value(2)),
            default=models.Value(1),
            output_field=models.IntegerField(),
        )
        return self.annotate(severity_rank=rank).order_by('-severity_rank', '-detected_at')


class VarianceAlert(BaseModel):

    class AlertType(models.TextChoices):
        ABNORMAL_LOSS = 'ABNORMAL_LOSS', _('Abnormal loss')
        UNUSUAL_FLOW = 'UNUSUAL_FLOW', _('Unusual flow')
        INVENTORY_DISCREPANCY = 'INVENTORY_DISCREPANCY', _('Inventory discrepancy')
        THRESHOLD_EXCEEDED = 'THRESHOLD_EXCEEDED', _('Threshold exceeded')

    alert_type = models.CharField(
        _('alert type'), max_length=24,
        choices=AlertType.choices, db_index=True,
    )
    severity = models.CharField(
        _('severity'), max_length=10,
        choices=SeverityChoices.choices, db_index=True,
    )
    store = models.ForeignKey(
        'stores.Store',
        on_delete=models.PROTECT,
        related_name='variance_alerts',
        verbose_name=_('store'),
    )
    product = models.ForeignKey(
        'products.Product',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='variance_alerts',
        verbose_name=_('product'),
        help_text=_('Empty for store-wide alerts'),
    )
    rule = models.CharField(_('rule'), max_length=50, db_index=True)
    title = models.CharField(_('title'), max_length=255)
    message = models.TextField(_('message'))

    current_value = models.DecimalField(_('current value'), max_digits=18, decimal_places=3)
    expected_value = models.DecimalField(_('expected value'), max_digits=18, decimal_places=3)
    variance = models.DecimalField(_('variance'), max_digits=18, decimal_places=3)
    variance_percentage = models.DecimalField(
        _('variance percentage'), max_digits=12, decimal_places=2, default=Decimal('0'),
    )
    threshold = models.DecimalField(_('threshold'), max_digits=18, decimal_places=3)

    window_start = models.DateTimeField(_('window start'))
    window_end = models.DateTimeField(_('window end'))
    detected_at = models.DateTimeField(_('detected at'), auto_now_add=True, db_index=True)

    is_resolved = models.BooleanField(_('resolved'), default=False, db_index=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('resolved by'),
    )
    resolved_at = models.DateTimeField(_('resolved at'), null=True, blank=True)
    resolution_note = models.TextField(_('resolution note'), blank=True)

    recommended_actions = models.JSONField(_('recommended actions'), default=list, blank=True)
    reference_type = models.CharField(_('reference type'), max_length=100, blank=True)
    reference_id = models.UUIDField(_('reference ID'), null=True, blank=True)

    objects = VarianceAlertQuerySet.as_manager()

    class Meta:
        verbose_name = _('variance alert')
        verbose_name_plural = _('variance alerts')
        ordering = ['-detected_at']
        indexes = [
            models.Index(fields=['store', 'is_resolved', 'detected_at']),
            models.Index(fields=['store', 'alert_type', 'rule', 'window_start']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['store', 'product', 'alert_type', 'rule', 'window_start'],
                condition=models.Q(is_resolved=False),
                name='unique_active_product_alert',
            ),
            # product is NULL on store-wide alerts and NULLs never collide above
            models.UniqueConstraint(
                fields=['store', 'alert_type', 'rule', 'window_start'],
                condition=models.Q(is_resolved=False, product__isnull=True),
                name='unique_active_store_alert',
            ),
        ]

    def __str__(self):
        return f'[{self.severity}] {self.title}'


class StockThreshold(BaseModel):

    class Metric(models.TextChoices):
        STOCK_LEVEL = 'STOCK_LEVEL', _('Stock level')
        AVAILABLE_QUANTITY = 'AVAILABLE_QUANTITY', _('Available quantity')
        LOSS_RATE = 'LOSS_RATE', _('Weekly loss rate (%)')
        DAILY_LOSSES = 'DAILY_LOSSES', _('Losses today')

    class Operator(models.TextChoices):
        BELOW = 'BELOW', _('Below')
        ABOVE = 'ABOVE', _('Above')

    PRODUCT_METRICS = (Metric.STOCK_LEVEL, Metric.AVAILABLE_QUANTITY)

    store = models.ForeignKey(
        'stores.Store',
        on_delete=models.CASCADE,
        related_name='stock_thresholds',
        verbose_name=_('store'),
    )
    product = models.ForeignKey(
        'products.Product',
        null=True, blank=True,
        on_delete=models.CASCADE,
        related_name='stock_thresholds',
        verbose_name=_('product'),
    )
    metric = models.CharField(_('metric'), max_length=20, choices=Metric.choices)
    operator = models.CharField(_('operator'), max_length=5, choices=Operator.choices)
    value = models.DecimalField(_('value'), max_digits=18, decimal_places=3)
    severity = models.CharField(
        _('severity'), max_length=10,
        choices=SeverityChoices.choices, default=SeverityChoices.MEDIUM,
    )
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    class Meta:
        verbose_name = _('stock threshold')
        verbose_name_plural = _('stock thresholds')
        ordering = ['store', 'metric']

    def __str__(self):
        target = self.product_id or 'all products'
        return f'{self.metric} {self.operator} {self.value} ({target})'

    def is_crossed(self, observed: Decimal) -> bool:
        if self.operator == self.Operator.BELOW:
            return observed < self.value
        return observed > self.value
