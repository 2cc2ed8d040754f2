"""
Products — Models

Perishable products carried by the network. Quantities are tracked either
by mass (KG) or by count (UNIT); unit_cost values losses and count
variances.

@file products/models.py
"""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class ProductQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def search(self, term: str):
        if not term:
            return self
        return self.filter(
            models.Q(name__icontains=term)
            | models.Q(code__icontains=term)
            | models.Q(category__icontains=term)
        )


class Product(BaseModel):

    class UnitChoices(models.TextChoices):
        KG = 'KG', _('Kilogram')
        UNIT = 'UNIT', _('Unit')

    code = models.CharField(_('code'), max_length=30, unique=True)
    name = models.CharField(_('name'), max_length=255, db_index=True)
    category = models.CharField(_('category'), max_length=100, blank=True, db_index=True)
    unit = models.CharField(
        _('unit'), max_length=4,
        choices=UnitChoices.choices, default=UnitChoices.KG,
    )
    unit_cost = models.DecimalField(
        _('unit cost'), max_digits=15, decimal_places=2,
        default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    objects = ProductQuerySet.as_manager()

    class Meta:
        verbose_name = _('product')
        verbose_name_plural = _('products')
        ordering = ['name']
        indexes = [
            models.Index(fields=['category', 'name']),
        ]

    def __str__(self):
        return f'{self.name} ({self.get_unit_display()})'

    @property
    def is_weighed(self) -> bool:
        return self.unit == self.UnitChoices.KG
