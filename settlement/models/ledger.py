from decimal import Decimal
from django.db import models
from django.db import transaction as db_transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from djmoney.models.fields import MoneyField
from djmoney.money import Money

from settlement.exceptions import InvalidAmount, LedgerCreditFailure
from settlement.models.base import BaseModel
from settlement.settings import get_settlement_setting
from settlement.constants import (
    PARTNER_ROLES,
    WALLET_TYPES,
    WALLET_TYPE_PRIMARY,
    LEDGER_TX_TYPES,
    ACCRUAL_BENEFICIARIES,
    ACCRUAL_STATUSES,
    ACCRUAL_STATUS_PENDING,
    ACCRUAL_STATUS_CREDITED,
)


class WalletManager(models.Manager):
    """Custom Manager for Wallet model"""

    def get_or_create_for_partner(self, partner, wallet_type=WALLET_TYPE_PRIMARY):
        """
        Get or create a partner's wallet of the given type

        Returns:
            tuple: (Wallet instance, created boolean)
        """
        return self.get_or_create(partner=partner, wallet_type=wallet_type)


class Wallet(BaseModel):
    """Balance a partner is credited into"""

    partner = models.ForeignKey(
        'settlement.Partner',
        on_delete=models.PROTECT,
        related_name='wallets',
        verbose_name=_('Partner')
    )

    wallet_type = models.CharField(
        max_length=20,
        choices=WALLET_TYPES,
        default=WALLET_TYPE_PRIMARY,
        verbose_name=_('Wallet type')
    )

    balance = MoneyField(
        max_digits=19,
        decimal_places=2,
        default=0,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Balance')
    )

    is_locked = models.BooleanField(
        default=False,
        verbose_name=_('Is locked')
    )

    objects = WalletManager()

    class Meta:
        verbose_name = _('Wallet')
        verbose_name_plural = _('Wallets')
        constraints = [
            models.UniqueConstraint(fields=['partner', 'wallet_type'], name='unique_partner_wallet_type'),
        ]

    def __str__(self):
        return f"{self.partner_id} {self.wallet_type} wallet - {self.balance}"

    def validate_amount(self, amount):
        """
        Validate and normalize amount to Money object

        Args:
            amount: Amount to validate (Decimal, int, or Money)

        Returns:
            Money: Validated Money object

        Raises:
            InvalidAmount: If amount is not positive or in another currency
        """
        if isinstance(amount, (Decimal, int)):
            amount = Money(amount, self.balance.currency)
        elif not isinstance(amount, Money):
            raise InvalidAmount(amount)

        if amount.amount <= 0 or amount.currency != self.balance.currency:
            raise InvalidAmount(amount)
        return amount

    def deposit(self, amount):
        """
        Add funds to the wallet. Ledger entries are created by the ledger
        backend, the wallet row must already be locked by the caller.

        Returns:
            Money: Updated balance
        """
        if self.is_locked:
            raise LedgerCreditFailure(_("Wallet is locked"))

        amount = self.validate_amount(amount)
        self.balance += amount
        self.save_changes('balance')
        return self.balance


class LedgerEntry(BaseModel):
    """
    Immutable record of one wallet credit

    ``reference_id`` is unique: crediting twice with the same reference
    returns the first entry and leaves the balance untouched.
    """

    wallet = models.ForeignKey(
        'settlement.Wallet',
        on_delete=models.PROTECT,
        related_name='entries',
        verbose_name=_('Wallet')
    )

    role = models.CharField(
        max_length=30,
        choices=PARTNER_ROLES,
        verbose_name=_('Role')
    )

    tx_type = models.CharField(
        max_length=30,
        choices=LEDGER_TX_TYPES,
        verbose_name=_('Transaction type')
    )

    service_type = models.CharField(
        max_length=30,
        default='POS',
        verbose_name=_('Service type')
    )

    credit = MoneyField(
        max_digits=19,
        decimal_places=2,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Credit')
    )

    reference_id = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        verbose_name=_('Reference ID')
    )

    transaction_ref = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        verbose_name=_('Transaction reference')
    )

    balance_after = MoneyField(
        max_digits=19,
        decimal_places=2,
        default_currency=get_settlement_setting('CURRENCY'),
        verbose_name=_('Balance after')
    )

    remarks = models.TextField(
        blank=True,
        default='',
        verbose_name=_('Remarks')
    )

    class Meta:
        verbose_name = _('Ledger entry')
        verbose_name_plural = _('Ledger entries')
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.reference_id} +{self.credit}"


# ==========================================
# EARNING ACCRUALS
# ==========================================


class EarningAccrualQuerySet(models.QuerySet):

    def pending(self):
        return self.filter(status=ACCRUAL_STATUS_PENDING)

    def credited(self):
        return self.filter(status=ACCRUAL_STATUS_CREDITED)


class EarningAccrual(BaseModel):
    """
    Distributor margin or company earning produced by a settled batch

    Stays pending while its beneficiary has no account to credit.
    """

    batch = models.ForeignKey(
        'settlement.SettlementBatch',
        on_delete=models.CASCADE,
        related_name='accruals',
        verbose_name=_('Batch')
    )

    beneficiary_role = models.CharField(
        max_length=20,
        choices=ACCRUAL_BENEFICIARIES,
        verbose_name=_('Beneficiary role')
    )

    beneficiary = models.ForeignKey(
        'settlement.Partner',
        on_delete=models.PROTECT,
        related_name='earning_accruals',
        blank=True,
        null=True,
        verbose_name=_('Beneficiary')
    )

    amount = models.DecimalField(
        max_digits=19,
        decimal_places=4,
        verbose_name=_('Amount')
    )

    status = models.CharField(
        max_length=20,
        choices=ACCRUAL_STATUSES,
        default=ACCRUAL_STATUS_PENDING,
        db_index=True,
        verbose_name=_('Status')
    )

    ledger_entry_id = models.CharField(
        max_length=100,
        blank=True,
        null=True,
        verbose_name=_('Ledger entry ID')
    )

    credited_at = models.DateTimeField(
        blank=True,
        null=True,
        verbose_name=_('Credited at')
    )

    objects = EarningAccrualQuerySet.as_manager()

    class Meta:
        verbose_name = _('Earning accrual')
        verbose_name_plural = _('Earning accruals')
        constraints = [
            models.UniqueConstraint(fields=['batch', 'beneficiary_role'], name='unique_batch_beneficiary_role'),
        ]

    def __str__(self):
        return f"{self.get_beneficiary_role_display()} earning {self.amount} ({self.get_status_display()})"

    @property
    def ledger_reference(self):
        prefix = 'MARGIN' if self.beneficiary_role == 'distributor' else 'EARN'
        return f"{prefix}-{self.batch_id}"

    @db_transaction.atomic
    def mark_as_credited(self, ledger_entry_id):
        """
        Mark the accrual as credited

        Returns:
            EarningAccrual: Updated instance
        """
        self.status = ACCRUAL_STATUS_CREDITED
        self.ledger_entry_id = ledger_entry_id
        self.credited_at = timezone.now()
        self.save_changes('status', 'ledger_entry_id', 'credited_at')
        return self
