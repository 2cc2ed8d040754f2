"""
Users — Managers

@file users/managers.py
"""

from django.contrib.auth.models import BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """create_user / create_superuser keyed on the employee code."""

    def _create_user(self, employee_code, password=None, **extra_fields):
        if not employee_code:
            raise ValueError(_('Employee code is required.'))
        email = extra_fields.pop('email', None)
        if email:
            extra_fields['email'] = self.normalize_email(email)
        user = self.model(employee_code=employee_code.strip().upper(), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, employee_code, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(employee_code, password, **extra_fields)

    def create_superuser(self, employee_code, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        if extra_fields.get('is_staff') is not True or extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_staff=True and is_superuser=True.'))
        return self._create_user(employee_code, password, **extra_fields)

    def active(self):
        return self.filter(is_active=True)

    def on_store(self, store_id):
        """Users holding an active store role on ``store_id``."""
        return self.filter(
            user_roles__store_id=store_id,
            user_roles__is_active=True,
        ).distinct()


class UserRoleQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def for_store(self, store_id):
        return self.filter(store_id=store_id)
