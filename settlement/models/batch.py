from decimal import Decimal
from django.db import models
from django.db import transaction as db_transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField

from settlement.models.base import BaseModel
from settlement.settings import get_settlement_setting
from settlement.constants import (
    SETTLEMENT_TYPES,
    SETTLEMENT_TYPE_T0,
    BATCH_TRIGGERS,
    BATCH_TRIGGER_INSTANT,
    BATCH_STATUSES,
    BATCH_STATUS_PROCESSING,
    BATCH_STATUS_COMPLETED,
    BATCH_STATUS_PARTIAL,
    BATCH_STATUS_FAILED,
    ITEM_STATUSES,
    ITEM_STATUS_PENDING,
    ITEM_STATUS_SETTLED,
    ITEM_STATUS_FAILED,
    ITEM_STATUS_SKIPPED,
    SCHEME_SCOPES,
)


class SettlementBatchQuerySet(models.QuerySet):
    """Custom QuerySet for SettlementBatch model"""

    def processing(self):
        """Return batches that have not reached a terminal status"""
        return self.filter(status=BATCH_STATUS_PROCESSING)

    def completed(self):
        return self.filter(status=BATCH_STATUS_COMPLETED)

    def failed(self):
        return self.filter(status=BATCH_STATUS_FAILED)

    def for_retailer(self, retailer):
        return self.filter(retailer=retailer)

    def by_type(self, settlement_type):
        return self.filter(settlement_type=settlement_type)

    def with_retailer_details(self):
        """Prefetch retailer details to avoid N+1 queries"""
        return self.select_related('retailer')

    def in_date_range(self, start_date=None, end_date=None):
        """
        Filter batches by creation date range

        Args:
            start_date: Start date (optional)
            end_date: End date (optional)

        Returns:
            QuerySet: Filtered batches
        """
        queryset = self
        if start_date:
            queryset = queryset.filter(created_at__gte=start_date)
        if end_date:
            queryset = queryset.filter(created_at__lte=end_date)
        return queryset


class SettlementBatchManager(models.Manager):
    """Custom Manager for SettlementBatch model"""

    def get_queryset(self):
        return SettlementBatchQuerySet(self.model, using=self._db)

    def processing(self):
        return self.get_queryset().processing()

    def for_retailer(self, retailer):
        return self.get_queryset().for_retailer(retailer)

    def with_retailer_details(self):
        return self.get_queryset().with_retailer_details()

    def stale(self, older_than):
        """Batches still processing that were created before ``older_than``"""
        return self.get_queryset().processing().filter(created_at__lt=older_than)


class SettlementBatch(BaseModel):
    """
    One settlement run for one retailer

    A batch groups the transactions credited together by a single ledger
    entry. It is created in ``processing`` and moves exactly once to
    ``completed``, ``partial`` or ``failed``.
    """

    retailer = models.ForeignKey(
        'settlement.Partner',
        on_delete=models.PROTECT,
        related_name='settlement_batches',
        db_index=True,
        verbose_name=_('Retailer')
    )

    settlement_type = models.CharField(
        max_length=5,
        choices=SETTLEMENT_TYPES,
        db_index=True,
        verbose_name=_('Settlement type')
    )

    trigger = models.CharField(
        max_length=20,
        choices=BATCH_TRIGGERS,
        default=BATCH_TRIGGER_INSTANT,
        verbose_name=_('Trigger')
    )

    status = models.CharField(
        max_length=20,
        choices=BATCH_STATUSES,
        default=BATCH_STATUS_PROCESSING,
        db_index=True,
        verbose_name=_('Status')
    )

    total_transactions = models.PositiveIntegerField(
        default=0,
        verbose_name=_('Total transactions')
    )

    # ==========================================
    # TOTALS
    # ==========================================

    total_gross_amount = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Total gross amount')
    )

    total_mdr_amount = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Total MDR amount')
    )

    total_net_amount = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Total net amount')
    )

    success_count = models.PositiveIntegerField(
        default=0,
        verbose_name=_('Success count')
    )

    failed_count = models.PositiveIntegerField(
        default=0,
        verbose_name=_('Failed count')
    )

    # ==========================================
    # OUTCOME
    # ==========================================

    wallet_credit_id = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        verbose_name=_('Wallet credit ID')
    )

    failure_reason = models.TextField(
        blank=True,
        null=True,
        verbose_name=_('Failure reason')
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_('Metadata'),
        help_text=_('Requester and other context of the batch')
    )

    completed_at = models.DateTimeField(
        blank=True,
        null=True,
        verbose_name=_('Completed at')
    )

    objects = SettlementBatchManager()

    class Meta:
        verbose_name = _('Settlement batch')
        verbose_name_plural = _('Settlement batches')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['retailer', 'created_at'], name='batch_retailer_created_idx'),
            models.Index(fields=['status', 'created_at'], name='batch_status_created_idx'),
        ]

    def __str__(self):
        return f"{self.get_settlement_type_display()} batch {self.id} ({self.get_status_display()})"

    def __repr__(self):
        return (
            f"<SettlementBatch id={self.id} retailer_id={self.retailer_id} "
            f"type={self.settlement_type} status={self.status} "
            f"success={self.success_count} failed={self.failed_count}>"
        )

    @property
    def is_terminal(self):
        return self.status != BATCH_STATUS_PROCESSING

    @property
    def ledger_reference(self):
        """Idempotency key of the aggregate wallet credit"""
        prefix = 'INSTACASH' if self.settlement_type == SETTLEMENT_TYPE_T0 else 'AUTO-T1'
        return f"{prefix}-{self.id}"

    @db_transaction.atomic
    def mark_as_failed(self, reason=None):
        """
        Mark the batch as failed

        Args:
            reason: Failure reason (optional)

        Returns:
            SettlementBatch: Updated batch instance
        """
        self.status = BATCH_STATUS_FAILED
        self.failure_reason = reason
        self.failed_count = self.total_transactions
        self.success_count = 0
        self.completed_at = timezone.now()
        self.save_changes('status', 'failure_reason', 'failed_count', 'success_count', 'completed_at')
        return self

    @db_transaction.atomic
    def finalize(self, success_count, failed_count, wallet_credit_id=None):
        """
        Move the batch to its terminal status

        completed when nothing failed, failed when nothing succeeded,
        partial otherwise.

        Returns:
            SettlementBatch: Updated batch instance
        """
        if failed_count == 0:
            self.status = BATCH_STATUS_COMPLETED
        elif success_count == 0:
            self.status = BATCH_STATUS_FAILED
        else:
            self.status = BATCH_STATUS_PARTIAL

        self.success_count = success_count
        self.failed_count = failed_count
        self.wallet_credit_id = wallet_credit_id
        self.completed_at = timezone.now()
        self.save_changes('status', 'success_count', 'failed_count', 'wallet_credit_id', 'completed_at')
        return self


# ==========================================
# BATCH ITEM QUERYSET AND MANAGER
# ==========================================


class BatchItemQuerySet(models.QuerySet):
    """Custom QuerySet for BatchItem model"""

    def pending(self):
        return self.filter(status=ITEM_STATUS_PENDING)

    def settled(self):
        return self.filter(status=ITEM_STATUS_SETTLED)

    def blocking(self):
        """
        Items that keep their transaction out of any new batch

        Settled items, and pending items of a batch that is still
        processing. Pending items of a failed batch do not block a retry.
        """
        return self.filter(
            Q(status=ITEM_STATUS_SETTLED)
            | Q(status=ITEM_STATUS_PENDING, batch__status=BATCH_STATUS_PROCESSING)
        )

    def awaiting_write_back(self):
        """Settled items whose transaction was never marked as credited"""
        return self.settled().filter(transaction__wallet_credited=False)


class BatchItemManager(models.Manager):
    """Custom Manager for BatchItem model"""

    def get_queryset(self):
        return BatchItemQuerySet(self.model, using=self._db)

    def blocking_transaction_ids(self, transaction_ids):
        """
        Subset of ``transaction_ids`` referenced by a blocking item

        Returns:
            set: Transaction ids
        """
        return set(
            self.get_queryset()
            .blocking()
            .filter(transaction_id__in=list(transaction_ids))
            .values_list('transaction_id', flat=True)
        )

    def awaiting_write_back(self):
        return self.get_queryset().awaiting_write_back()


class BatchItem(BaseModel):
    """Per-transaction line of a settlement batch"""

    batch = models.ForeignKey(
        'settlement.SettlementBatch',
        on_delete=models.CASCADE,
        related_name='items',
        db_index=True,
        verbose_name=_('Batch')
    )

    transaction = models.ForeignKey(
        'settlement.PosTransaction',
        on_delete=models.PROTECT,
        related_name='batch_items',
        db_index=True,
        verbose_name=_('Transaction')
    )

    gross_amount = MoneyField(
        max_digits=19,
        decimal_places=2,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Gross amount')
    )

    mdr_rate = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Retailer MDR rate (%)')
    )

    distributor_mdr_rate = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Distributor MDR rate (%)')
    )

    mdr_amount = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('MDR amount')
    )

    distributor_fee = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Distributor fee')
    )

    distributor_margin = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Distributor margin')
    )

    net_amount = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Net amount')
    )

    status = models.CharField(
        max_length=20,
        choices=ITEM_STATUSES,
        default=ITEM_STATUS_PENDING,
        db_index=True,
        verbose_name=_('Status')
    )

    error_message = models.TextField(
        blank=True,
        null=True,
        verbose_name=_('Error message')
    )

    scheme = models.ForeignKey(
        'settlement.Scheme',
        on_delete=models.PROTECT,
        related_name='batch_items',
        blank=True,
        null=True,
        verbose_name=_('Scheme')
    )

    scheme_type = models.CharField(
        max_length=10,
        choices=SCHEME_SCOPES,
        blank=True,
        null=True,
        verbose_name=_('Scheme type')
    )

    objects = BatchItemManager()

    class Meta:
        verbose_name = _('Batch item')
        verbose_name_plural = _('Batch items')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['transaction', 'status'], name='item_txn_status_idx'),
        ]

    def __str__(self):
        return f"{self.transaction_id} in {self.batch_id} ({self.get_status_display()})"

    @property
    def counts_as_failure(self):
        return self.status in (ITEM_STATUS_FAILED, ITEM_STATUS_SKIPPED)
