"""
Settlement - Scheme Serializers
"""
import copy
from decimal import Decimal
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from settlement.models import Partner, Scheme
from settlement.constants import (
    PARTNER_ROLE_RETAILER,
    SETTLEMENT_TYPES,
    SETTLEMENT_TYPE_T1,
)


class SchemeSerializer(serializers.ModelSerializer):
    """
    Create, update and read MDR schemes

    Attributes are normalised and rate rules are checked through
    the model's clean() before anything is saved.
    """

    owner_retailer = serializers.SlugRelatedField(
        slug_field='partner_id',
        queryset=Partner.objects.retailers(),
        required=False,
        allow_null=True
    )
    scope_display = serializers.CharField(source='get_scope_display', read_only=True)
    specificity = serializers.IntegerField(read_only=True)

    class Meta:
        model = Scheme
        fields = [
            'id',
            'name',
            'scope',
            'scope_display',
            'owner_retailer',
            'mode',
            'card_type',
            'brand_type',
            'card_classification',
            'specificity',
            'retailer_mdr_t1',
            'distributor_mdr_t1',
            'retailer_mdr_t0',
            'distributor_mdr_t0',
            'status',
            'effective_date',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'status', 'created_at', 'updated_at']

    def validate(self, attrs):
        candidate = copy.copy(self.instance) if self.instance else Scheme()

        for key, value in attrs.items():
            setattr(candidate, key, value)

        candidate.normalize()
        try:
            candidate.clean()
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.message_dict)
        return attrs


class SchemeResolveSerializer(serializers.Serializer):
    """Lookup parameters for a scheme resolution preview"""

    retailer_id = serializers.CharField(required=False, allow_blank=True)
    mode = serializers.CharField()
    card_type = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    brand_type = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    card_classification = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    settlement_type = serializers.ChoiceField(choices=SETTLEMENT_TYPES, default=SETTLEMENT_TYPE_T1)
    amount = serializers.DecimalField(
        required=False,
        decimal_places=2,
        max_digits=19,
        min_value=Decimal('0.01'),
        help_text=_('When given, fees are computed for this amount')
    )

    def validate_retailer_id(self, value):
        if not value:
            return None
        try:
            return Partner.objects.get(partner_id=value, role=PARTNER_ROLE_RETAILER)
        except Partner.DoesNotExist:
            raise serializers.ValidationError(_("Retailer not found"))
