"""
Stores — Models

The store network: one hub and its satellite stores. Stock, counts and
transfers are always held by a Store.

@file stores/models.py
"""

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class StoreQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def hubs(self):
        return self.filter(role=Store.RoleChoices.HUB)


class Store(BaseModel):
    """
    A physical store of the network.

    The hub receives supplier arrivals and feeds satellites through
    transfers; satellites may also transfer between themselves.
    """

    class RoleChoices(models.TextChoices):
        HUB = 'HUB', _('Hub')
        SATELLITE = 'SATELLITE', _('Satellite')

    code = models.CharField(_('code'), max_length=20, unique=True)
    name = models.CharField(_('name'), max_length=255)
    role = models.CharField(
        _('role'), max_length=10,
        choices=RoleChoices.choices, default=RoleChoices.SATELLITE,
        db_index=True,
    )
    address = models.CharField(_('address'), max_length=255, blank=True)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)

    objects = StoreQuerySet.as_manager()

    class Meta:
        verbose_name = _('store')
        verbose_name_plural = _('stores')
        ordering = ['code']

    def __str__(self):
        return f'{self.code} — {self.name}'

    @property
    def is_hub(self) -> bool:
        return self.role == self.RoleChoices.HUB
