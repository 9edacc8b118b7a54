from django.db import models
from django.db import transaction as db_transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from settlement.models.base import BaseModel
from settlement.constants import (
    PARTNER_ROLES,
    PARTNER_ROLE_RETAILER,
    PARTNER_ROLE_DISTRIBUTOR,
    SETTLEMENT_ALLOWED_MODES,
    SETTLEMENT_ALLOWED_T1,
    SETTLEMENT_ALLOWED_T0_T1,
)
from settlement.settings import get_settlement_setting


class PartnerQuerySet(models.QuerySet):
    """Custom QuerySet for Partner model"""

    def active(self):
        """Return only active partners"""
        return self.filter(is_active=True)

    def retailers(self):
        """Return only retailers"""
        return self.filter(role=PARTNER_ROLE_RETAILER)

    def distributors(self):
        """Return only distributors"""
        return self.filter(role=PARTNER_ROLE_DISTRIBUTOR)

    def t1_paused(self):
        """Return partners whose T+1 settlement is paused"""
        return self.filter(t1_settlement_paused=True)


class PartnerManager(models.Manager):
    """Custom Manager for Partner model"""

    def get_queryset(self):
        return PartnerQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def retailers(self):
        return self.get_queryset().retailers()

    def paused_ids(self):
        """
        Ids of every retailer or distributor with T+1 settlement paused.

        Always hits the database, callers must not cache the result
        across runs.
        """
        return set(self.get_queryset().t1_paused().values_list('id', flat=True))


class Partner(BaseModel):
    """
    A node of the reseller hierarchy (admin, master distributor,
    distributor or retailer).

    Retailers own POS transactions and receive settlement credits. The
    ``parent`` link points one level up the hierarchy.
    """

    partner_id = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        verbose_name=_('Partner ID'),
        help_text=_('Public partner code')
    )

    name = models.CharField(
        max_length=200,
        verbose_name=_('Name')
    )

    role = models.CharField(
        max_length=30,
        choices=PARTNER_ROLES,
        default=PARTNER_ROLE_RETAILER,
        db_index=True,
        verbose_name=_('Role')
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        related_name='children',
        null=True,
        blank=True,
        verbose_name=_('Parent'),
        help_text=_('Distributor of a retailer, master distributor of a distributor')
    )

    user = models.OneToOneField(
        get_settlement_setting('USER_MODEL'),
        on_delete=models.SET_NULL,
        related_name='partner',
        null=True,
        blank=True,
        verbose_name=_('User')
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        verbose_name=_('Is active')
    )

    # ==========================================
    # SETTLEMENT CONTROLS
    # ==========================================

    t1_settlement_paused = models.BooleanField(
        default=False,
        db_index=True,
        verbose_name=_('T+1 settlement paused'),
        help_text=_('Paused partners are skipped by the T+1 sweep')
    )

    t1_settlement_paused_at = models.DateTimeField(
        blank=True,
        null=True,
        verbose_name=_('T+1 settlement paused at')
    )

    t1_settlement_paused_by = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        verbose_name=_('T+1 settlement paused by')
    )

    settlement_mode_allowed = models.CharField(
        max_length=10,
        choices=SETTLEMENT_ALLOWED_MODES,
        default=SETTLEMENT_ALLOWED_T1,
        db_index=True,
        verbose_name=_('Settlement mode allowed'),
        help_text=_('T0_T1 partners may request instant settlement')
    )

    objects = PartnerManager()

    class Meta:
        verbose_name = _('Partner')
        verbose_name_plural = _('Partners')
        ordering = ['partner_id']
        indexes = [
            models.Index(fields=['role', 'is_active'], name='partner_role_active_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.partner_id})"

    def __repr__(self):
        return f"<Partner id={self.id} partner_id={self.partner_id} role={self.role}>"

    @property
    def is_retailer(self):
        return self.role == PARTNER_ROLE_RETAILER

    @property
    def can_settle_instantly(self):
        """Whether this partner may request T+0 settlement"""
        return self.is_active and self.settlement_mode_allowed == SETTLEMENT_ALLOWED_T0_T1

    @property
    def distributor(self):
        """The distributor above a retailer, if any"""
        if self.parent_id and self.parent.role == PARTNER_ROLE_DISTRIBUTOR:
            return self.parent
        return None

    @db_transaction.atomic
    def pause_t1_settlement(self, paused_by=None):
        """
        Pause T+1 settlement for this partner

        Args:
            paused_by: Identifier of the operator (optional)

        Returns:
            Partner: Updated partner instance
        """
        self.t1_settlement_paused = True
        self.t1_settlement_paused_at = timezone.now()
        self.t1_settlement_paused_by = paused_by
        self.save_changes('t1_settlement_paused', 't1_settlement_paused_at', 't1_settlement_paused_by')
        return self

    @db_transaction.atomic
    def resume_t1_settlement(self):
        """
        Resume T+1 settlement for this partner

        Returns:
            Partner: Updated partner instance
        """
        self.t1_settlement_paused = False
        self.t1_settlement_paused_at = None
        self.t1_settlement_paused_by = None
        self.save_changes('t1_settlement_paused', 't1_settlement_paused_at', 't1_settlement_paused_by')
        return self
