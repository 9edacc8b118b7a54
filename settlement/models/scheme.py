from decimal import Decimal
from django.core.exceptions import ValidationError
from django.db import models
from django.db import transaction as db_transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from settlement.models.base import BaseModel
from settlement.constants import (
    SCHEME_SCOPES,
    SCHEME_SCOPE_GLOBAL,
    SCHEME_SCOPE_CUSTOM,
    SCHEME_STATUSES,
    SCHEME_STATUS_ACTIVE,
    SCHEME_STATUS_INACTIVE,
    PAYMENT_MODES,
    PAYMENT_MODE_CARD,
    CARD_TYPES,
    SETTLEMENT_TYPE_T0,
)
from settlement.exceptions import SchemeError
from settlement.utils.normalizers import (
    normalize_payment_mode,
    normalize_card_type,
    normalize_brand_type,
    normalize_card_classification,
)


MDR_MIN = Decimal('0')
MDR_MAX = Decimal('100')

# Attributes a scheme may pin, from least to most specific
MATCH_ATTRIBUTES = ('card_type', 'brand_type', 'card_classification')


class SchemeQuerySet(models.QuerySet):
    """Custom QuerySet for Scheme model"""

    def active(self):
        """Return only active schemes"""
        return self.filter(status=SCHEME_STATUS_ACTIVE)

    def global_schemes(self):
        return self.filter(scope=SCHEME_SCOPE_GLOBAL)

    def custom_for(self, retailer):
        """Custom schemes owned by a retailer"""
        return self.filter(scope=SCHEME_SCOPE_CUSTOM, owner_retailer=retailer)

    def for_mode(self, mode):
        return self.filter(mode=mode)

    def effective(self, at=None):
        """Schemes whose effective date has been reached"""
        return self.filter(effective_date__lte=at or timezone.now())


class SchemeManager(models.Manager):
    """Custom Manager for Scheme model"""

    def get_queryset(self):
        return SchemeQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def candidates(self, scope, mode, retailer=None, at=None):
        """
        Active, effective schemes of one scope and payment mode, newest first

        Args:
            scope: SCHEME_SCOPE_GLOBAL or SCHEME_SCOPE_CUSTOM
            mode: Normalised payment mode
            retailer: Owner of custom schemes (required for custom scope)
            at: Point in time the scheme must be effective at (default: now)

        Returns:
            QuerySet: Matching schemes
        """
        queryset = self.get_queryset().active().for_mode(mode).effective(at)
        if scope == SCHEME_SCOPE_CUSTOM:
            if retailer is None:
                return queryset.none()
            queryset = queryset.custom_for(retailer)
        else:
            queryset = queryset.global_schemes()
        return queryset.order_by('-effective_date', '-created_at')


class Scheme(BaseModel):
    """
    MDR rate rule

    A scheme maps a payment mode plus optional card attributes onto
    retailer and distributor MDR percentages for the T+0 and T+1 tiers.
    An empty attribute is a wildcard. Schemes are never deleted, only
    deactivated, so settled transactions keep pointing at their rates.
    """

    name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        verbose_name=_('Name')
    )

    scope = models.CharField(
        max_length=10,
        choices=SCHEME_SCOPES,
        default=SCHEME_SCOPE_GLOBAL,
        db_index=True,
        verbose_name=_('Scope')
    )

    owner_retailer = models.ForeignKey(
        'settlement.Partner',
        on_delete=models.PROTECT,
        related_name='custom_schemes',
        null=True,
        blank=True,
        db_index=True,
        verbose_name=_('Owner retailer'),
        help_text=_('Required for custom schemes, empty for global ones')
    )

    # ==========================================
    # MATCHING ATTRIBUTES
    # ==========================================

    mode = models.CharField(
        max_length=10,
        choices=PAYMENT_MODES,
        default=PAYMENT_MODE_CARD,
        db_index=True,
        verbose_name=_('Payment mode')
    )

    card_type = models.CharField(
        max_length=20,
        choices=CARD_TYPES,
        blank=True,
        null=True,
        verbose_name=_('Card type'),
        help_text=_('Empty matches any card type')
    )

    brand_type = models.CharField(
        max_length=30,
        blank=True,
        null=True,
        verbose_name=_('Brand'),
        help_text=_('Empty matches any brand')
    )

    card_classification = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        verbose_name=_('Card classification'),
        help_text=_('Empty matches any classification')
    )

    # ==========================================
    # RATES
    # ==========================================

    retailer_mdr_t1 = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        verbose_name=_('Retailer MDR T+1 (%)')
    )

    distributor_mdr_t1 = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        verbose_name=_('Distributor MDR T+1 (%)')
    )

    retailer_mdr_t0 = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        verbose_name=_('Retailer MDR T+0 (%)')
    )

    distributor_mdr_t0 = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        verbose_name=_('Distributor MDR T+0 (%)')
    )

    status = models.CharField(
        max_length=10,
        choices=SCHEME_STATUSES,
        default=SCHEME_STATUS_ACTIVE,
        db_index=True,
        verbose_name=_('Status')
    )

    effective_date = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        verbose_name=_('Effective date')
    )

    objects = SchemeManager()

    class Meta:
        verbose_name = _('Scheme')
        verbose_name_plural = _('Schemes')
        ordering = ['-effective_date']
        indexes = [
            models.Index(fields=['scope', 'mode', 'status'], name='scheme_scope_mode_idx'),
            models.Index(fields=['owner_retailer', 'mode', 'status'], name='scheme_owner_mode_idx'),
        ]

    def __str__(self):
        attributes = '/'.join(
            getattr(self, name) or '*' for name in ('mode',) + MATCH_ATTRIBUTES
        )
        return f"{self.get_scope_display()} scheme {attributes}"

    def __repr__(self):
        return (
            f"<Scheme id={self.id} scope={self.scope} mode={self.mode} "
            f"card_type={self.card_type} brand_type={self.brand_type} "
            f"card_classification={self.card_classification} status={self.status}>"
        )

    # ==========================================
    # VALIDATION
    # ==========================================

    def normalize(self):
        """Bring matching attributes into their canonical form"""
        self.mode = normalize_payment_mode(self.mode)
        self.card_type = normalize_card_type(self.card_type)
        self.brand_type = normalize_brand_type(self.brand_type)
        self.card_classification = normalize_card_classification(self.card_classification)

    def clean(self):
        errors = {}

        if self.scope == SCHEME_SCOPE_CUSTOM and not self.owner_retailer_id:
            errors['owner_retailer'] = _("Custom schemes need an owner retailer")
        if self.scope == SCHEME_SCOPE_GLOBAL and self.owner_retailer_id:
            errors['owner_retailer'] = _("Global schemes cannot have an owner retailer")

        for field in ('retailer_mdr_t1', 'distributor_mdr_t1', 'retailer_mdr_t0', 'distributor_mdr_t0'):
            value = getattr(self, field)
            if value is None:
                continue
            if not MDR_MIN <= Decimal(value) <= MDR_MAX:
                errors[field] = _("MDR must be between 0 and 100")

        if (
            self.retailer_mdr_t1 is not None and self.distributor_mdr_t1 is not None
            and Decimal(self.retailer_mdr_t1) < Decimal(self.distributor_mdr_t1)
        ):
            errors['retailer_mdr_t1'] = _("Retailer MDR T+1 must be >= Distributor MDR T+1")
        if (
            self.retailer_mdr_t0 is not None and self.distributor_mdr_t0 is not None
            and Decimal(self.retailer_mdr_t0) < Decimal(self.distributor_mdr_t0)
        ):
            errors['retailer_mdr_t0'] = _("Retailer MDR T+0 must be >= Distributor MDR T+0")

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.normalize()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise SchemeError(_("Schemes cannot be deleted, deactivate them instead"), self.id)

    # ==========================================
    # PROPERTIES
    # ==========================================

    @property
    def is_active(self):
        return self.status == SCHEME_STATUS_ACTIVE

    @property
    def is_custom(self):
        return self.scope == SCHEME_SCOPE_CUSTOM

    @property
    def specificity(self):
        """Number of explicitly pinned attributes"""
        return sum(1 for name in MATCH_ATTRIBUTES if getattr(self, name) is not None)

    # ==========================================
    # METHODS
    # ==========================================

    def matches(self, criteria):
        """
        Check the scheme against a (card_type, brand_type, card_classification) tuple

        A ``None`` scheme attribute matches anything. An explicit scheme
        attribute only matches an equal explicit value, never ``None``.
        """
        for name, wanted in zip(MATCH_ATTRIBUTES, criteria):
            pinned = getattr(self, name)
            if pinned is not None and pinned != wanted:
                return False
        return True

    def rates(self, settlement_type):
        """
        Return (retailer_mdr, distributor_mdr) for a settlement tier

        Args:
            settlement_type: SETTLEMENT_TYPE_T0 or SETTLEMENT_TYPE_T1

        Returns:
            tuple: (Decimal, Decimal)
        """
        if settlement_type == SETTLEMENT_TYPE_T0:
            return Decimal(self.retailer_mdr_t0), Decimal(self.distributor_mdr_t0)
        return Decimal(self.retailer_mdr_t1), Decimal(self.distributor_mdr_t1)

    @db_transaction.atomic
    def deactivate(self):
        """
        Deactivate the scheme

        Returns:
            Scheme: Updated scheme instance
        """
        self.status = SCHEME_STATUS_INACTIVE
        self.save_changes('status')
        return self

    @db_transaction.atomic
    def activate(self):
        """
        Activate the scheme

        Returns:
            Scheme: Updated scheme instance
        """
        self.full_clean()
        self.status = SCHEME_STATUS_ACTIVE
        self.save_changes('status')
        return self
