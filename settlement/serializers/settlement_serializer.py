"""
Settlement - Settlement Serializers
"""
import pytz
from rest_framework import serializers
from django.utils.translation import gettext_lazy as _

from settlement.models import (
    Partner,
    PosTransaction,
    SettlementBatch,
    BatchItem,
    CronSettings,
)
from settlement.constants import PARTNER_ROLE_RETAILER, PARTNER_ROLE_DISTRIBUTOR
from settlement.settings import get_settlement_setting


# ==========================================
# TRANSACTION SERIALIZERS
# ==========================================


class PosTransactionSerializer(serializers.ModelSerializer):
    """Read-only representation of a POS transaction"""

    amount_value = serializers.DecimalField(
        source='amount.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    amount_currency = serializers.CharField(
        source='amount.currency.code',
        read_only=True
    )
    is_settled = serializers.BooleanField(read_only=True)

    class Meta:
        model = PosTransaction
        fields = [
            'id',
            'txn_id',
            'amount_value',
            'amount_currency',
            'payment_mode',
            'card_type',
            'card_brand',
            'card_classification',
            'display_status',
            'transaction_time',
            'is_settled',
            'wallet_credited',
            'settlement_mode',
            'mdr_rate',
            'mdr_amount',
            'net_amount',
            'settled_at',
        ]
        read_only_fields = fields


# ==========================================
# BATCH SERIALIZERS
# ==========================================


class BatchItemSerializer(serializers.ModelSerializer):

    txn_id = serializers.CharField(source='transaction.txn_id', read_only=True)
    gross_amount_value = serializers.DecimalField(
        source='gross_amount.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    net_amount_value = serializers.DecimalField(
        source='net_amount.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = BatchItem
        fields = [
            'id',
            'transaction',
            'txn_id',
            'gross_amount_value',
            'mdr_rate',
            'distributor_mdr_rate',
            'mdr_amount',
            'distributor_fee',
            'distributor_margin',
            'net_amount_value',
            'status',
            'status_display',
            'error_message',
            'scheme',
            'scheme_type',
        ]
        read_only_fields = fields


class SettlementBatchListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for listing batches"""

    retailer_id = serializers.CharField(source='retailer.partner_id', read_only=True)
    total_net_amount_value = serializers.DecimalField(
        source='total_net_amount.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = SettlementBatch
        fields = [
            'id',
            'retailer_id',
            'settlement_type',
            'trigger',
            'status',
            'status_display',
            'total_transactions',
            'success_count',
            'failed_count',
            'total_net_amount_value',
            'created_at',
            'completed_at',
        ]
        read_only_fields = fields


class SettlementBatchDetailSerializer(SettlementBatchListSerializer):
    """Batch with totals and items"""

    total_gross_amount_value = serializers.DecimalField(
        source='total_gross_amount.amount',
        decimal_places=2,
        max_digits=19,
        read_only=True
    )
    currency = serializers.CharField(source='total_net_amount.currency.code', read_only=True)
    ledger_reference = serializers.CharField(read_only=True)
    items = BatchItemSerializer(many=True, read_only=True)

    class Meta(SettlementBatchListSerializer.Meta):
        fields = SettlementBatchListSerializer.Meta.fields + [
            'total_gross_amount_value',
            'total_mdr_amount',
            'currency',
            'wallet_credit_id',
            'ledger_reference',
            'failure_reason',
            'metadata',
            'items',
        ]
        read_only_fields = fields


class InstantSettlementSerializer(serializers.Serializer):
    """
    Request body of an InstaCash settlement

    The batch size limit is enforced here and again by the service.
    """

    transaction_ids = serializers.ListField(
        child=serializers.UUIDField(),
        allow_empty=False,
        help_text=_('Ids of the transactions to settle')
    )

    def validate_transaction_ids(self, value):
        max_size = get_settlement_setting('INSTANT_MAX_BATCH_SIZE')
        unique_ids = list(dict.fromkeys(value))
        if len(unique_ids) > max_size:
            raise serializers.ValidationError(
                _("Maximum {max_size} transactions per batch").format(max_size=max_size)
            )
        return unique_ids


# ==========================================
# SCHEDULE SERIALIZERS
# ==========================================


class CronSettingsSerializer(serializers.ModelSerializer):
    """Schedule of the T+1 sweep and its last outcome"""

    schedule_hour = serializers.IntegerField(min_value=0, max_value=23)
    schedule_minute = serializers.IntegerField(min_value=0, max_value=59)

    class Meta:
        model = CronSettings
        fields = [
            'schedule_hour',
            'schedule_minute',
            'timezone',
            'is_enabled',
            'updated_by',
            'updated_at',
            'last_run_at',
            'last_run_status',
            'last_run_message',
            'last_run_processed',
            'last_run_failed',
        ]
        read_only_fields = [
            'updated_by',
            'updated_at',
            'last_run_at',
            'last_run_status',
            'last_run_message',
            'last_run_processed',
            'last_run_failed',
        ]

    def validate_timezone(self, value):
        if value not in pytz.all_timezones_set:
            raise serializers.ValidationError(_("Unknown timezone"))
        return value


class SettlementPauseSerializer(serializers.Serializer):
    """Pause or resume T+1 settlement for a retailer or distributor"""

    ENTITY_TYPES = (
        (PARTNER_ROLE_RETAILER, _('Retailer')),
        (PARTNER_ROLE_DISTRIBUTOR, _('Distributor')),
    )

    partner_id = serializers.CharField()
    entity_type = serializers.ChoiceField(choices=ENTITY_TYPES)
    paused = serializers.BooleanField()

    def validate(self, attrs):
        try:
            partner = Partner.objects.get(partner_id=attrs['partner_id'])
        except Partner.DoesNotExist:
            raise serializers.ValidationError({'partner_id': _("Partner not found")})

        if partner.role != attrs['entity_type']:
            raise serializers.ValidationError({
                'entity_type': _("Partner {partner_id} is not a {entity_type}").format(
                    partner_id=partner.partner_id,
                    entity_type=attrs['entity_type']
                )
            })

        attrs['partner'] = partner
        return attrs
