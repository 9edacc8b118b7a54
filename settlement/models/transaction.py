"""
Settlement - POS Transaction Model
"""
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField

from settlement.models.base import BaseModel
from settlement.settings import get_settlement_setting
from settlement.constants import (
    SETTLEMENT_MODES,
    SCHEME_SCOPES,
    TRANSACTION_SUCCESS_STATUSES,
)


def _success_status_filter():
    condition = Q()
    for status in TRANSACTION_SUCCESS_STATUSES:
        condition |= Q(display_status__iexact=status)
    return condition


class PosTransactionQuerySet(models.QuerySet):
    """Custom QuerySet for PosTransaction model"""

    def successful(self):
        """Return only captured transactions (SUCCESS or CAPTURED, any case)"""
        return self.filter(_success_status_filter())

    def unsettled(self):
        """Return transactions that have not been credited by any settlement"""
        return self.filter(wallet_credited=False, settlement_mode__isnull=True)

    def settled(self):
        return self.filter(wallet_credited=True)

    def for_retailer(self, retailer):
        """
        Filter transactions by retailer

        Args:
            retailer: Partner instance or id

        Returns:
            QuerySet: Filtered transactions
        """
        return self.filter(retailer=retailer)

    def with_retailer_details(self):
        """Prefetch retailer and its distributor to avoid N+1 queries"""
        return self.select_related('retailer', 'retailer__parent')

    def eligible_for_t1(self, cutoff):
        """
        Captured, unsettled transactions that happened before ``cutoff``

        Args:
            cutoff: Aware datetime, usually the start of the current day

        Returns:
            QuerySet: Eligible transactions, oldest first
        """
        return (
            self.successful()
            .unsettled()
            .filter(transaction_time__lt=cutoff, amount__gt=0)
            .order_by('transaction_time')
        )


class PosTransactionManager(models.Manager):
    """Custom Manager for PosTransaction model"""

    def get_queryset(self):
        return PosTransactionQuerySet(self.model, using=self._db)

    def successful(self):
        return self.get_queryset().successful()

    def unsettled(self):
        return self.get_queryset().unsettled()

    def for_retailer(self, retailer):
        return self.get_queryset().for_retailer(retailer)

    def eligible_for_t1(self, cutoff):
        return self.get_queryset().eligible_for_t1(cutoff)

    def mark_settled(self, transaction_id, **fields):
        """
        Write settlement fields onto an unsettled transaction

        ``wallet_credited`` and ``settlement_mode`` are always written
        together by this single conditional UPDATE, so a transaction is
        credited by at most one settlement.

        Args:
            transaction_id: Transaction primary key
            **fields: Settlement fields (settlement_mode is required)

        Returns:
            int: Number of updated rows (0 when already settled)
        """
        if not fields.get('settlement_mode'):
            raise ValueError(_("settlement_mode is required to mark a transaction settled"))
        fields.setdefault('settled_at', timezone.now())
        return self.get_queryset().filter(
            id=transaction_id,
            wallet_credited=False,
            settlement_mode__isnull=True,
        ).update(wallet_credited=True, updated_at=timezone.now(), **fields)


class PosTransaction(BaseModel):
    """
    A card or UPI payment captured on a retailer's POS terminal

    Settlement fields stay empty until the transaction is credited to the
    retailer's wallet by an InstaCash or an auto T+1 batch.
    """

    # ==========================================
    # CORE FIELDS
    # ==========================================

    txn_id = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        verbose_name=_('Transaction ID'),
        help_text=_('Acquirer transaction identifier')
    )

    retailer = models.ForeignKey(
        'settlement.Partner',
        on_delete=models.PROTECT,
        related_name='pos_transactions',
        db_index=True,
        verbose_name=_('Retailer')
    )

    amount = MoneyField(
        max_digits=19,
        decimal_places=2,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Amount')
    )

    payment_mode = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        verbose_name=_('Payment mode'),
        help_text=_('Payment method as reported by the acquirer')
    )

    card_type = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        verbose_name=_('Card type')
    )

    card_brand = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        verbose_name=_('Card brand')
    )

    card_classification = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        verbose_name=_('Card classification')
    )

    display_status = models.CharField(
        max_length=30,
        db_index=True,
        verbose_name=_('Status')
    )

    transaction_time = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        verbose_name=_('Transaction time')
    )

    # ==========================================
    # SETTLEMENT FIELDS
    # ==========================================

    wallet_credited = models.BooleanField(
        default=False,
        db_index=True,
        verbose_name=_('Wallet credited')
    )

    wallet_credit_id = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        verbose_name=_('Wallet credit ID'),
        help_text=_('Ledger entry of the batch credit')
    )

    settlement_mode = models.CharField(
        max_length=20,
        choices=SETTLEMENT_MODES,
        blank=True,
        null=True,
        db_index=True,
        verbose_name=_('Settlement mode')
    )

    mdr_rate = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        blank=True,
        null=True,
        verbose_name=_('MDR rate (%)')
    )

    mdr_amount = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        blank=True,
        null=True,
        verbose_name=_('MDR amount')
    )

    net_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        blank=True,
        null=True,
        verbose_name=_('Net amount')
    )

    mdr_scheme = models.ForeignKey(
        'settlement.Scheme',
        on_delete=models.PROTECT,
        related_name='transactions',
        blank=True,
        null=True,
        verbose_name=_('MDR scheme')
    )

    mdr_scheme_type = models.CharField(
        max_length=10,
        choices=SCHEME_SCOPES,
        blank=True,
        null=True,
        verbose_name=_('MDR scheme type')
    )

    settlement_batch = models.ForeignKey(
        'settlement.SettlementBatch',
        on_delete=models.SET_NULL,
        related_name='settled_transactions',
        blank=True,
        null=True,
        verbose_name=_('Settlement batch')
    )

    settled_at = models.DateTimeField(
        blank=True,
        null=True,
        verbose_name=_('Settled at')
    )

    objects = PosTransactionManager()

    class Meta:
        verbose_name = _('POS transaction')
        verbose_name_plural = _('POS transactions')
        ordering = ['-transaction_time']
        indexes = [
            models.Index(fields=['retailer', 'transaction_time'], name='pos_retailer_time_idx'),
            models.Index(fields=['wallet_credited', 'transaction_time'], name='pos_credited_time_idx'),
        ]

    def __str__(self):
        return f"{self.txn_id} - {self.amount} ({self.display_status})"

    def __repr__(self):
        return (
            f"<PosTransaction id={self.id} txn_id={self.txn_id} "
            f"retailer_id={self.retailer_id} amount={self.amount} "
            f"wallet_credited={self.wallet_credited} settlement_mode={self.settlement_mode}>"
        )

    @property
    def is_successful(self):
        return (self.display_status or '').upper() in TRANSACTION_SUCCESS_STATUSES

    @property
    def is_settled(self):
        return self.wallet_credited or bool(self.settlement_mode)
