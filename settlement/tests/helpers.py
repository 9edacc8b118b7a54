"""
Shared fixtures for the settlement tests
"""
from datetime import timedelta
from decimal import Decimal
from itertools import count
from django.utils import timezone
from djmoney.money import Money

from settlement.models import Partner, Scheme, PosTransaction
from settlement.constants import (
    PARTNER_ROLE_RETAILER,
    PARTNER_ROLE_DISTRIBUTOR,
    SETTLEMENT_ALLOWED_T0_T1,
    SCHEME_SCOPE_GLOBAL,
    SCHEME_SCOPE_CUSTOM,
)


_sequence = count(1)


def make_distributor(partner_id='DT001', **kwargs):
    return Partner.objects.create(
        partner_id=partner_id,
        name=kwargs.pop('name', f"Distributor {partner_id}"),
        role=PARTNER_ROLE_DISTRIBUTOR,
        **kwargs
    )


def make_retailer(partner_id='RT001', distributor=None, **kwargs):
    kwargs.setdefault('settlement_mode_allowed', SETTLEMENT_ALLOWED_T0_T1)
    return Partner.objects.create(
        partner_id=partner_id,
        name=kwargs.pop('name', f"Retailer {partner_id}"),
        role=PARTNER_ROLE_RETAILER,
        parent=distributor,
        **kwargs
    )


def make_scheme(retailer=None, mode='CARD', card_type=None, brand_type=None, card_classification=None,
                t1=('1.2', '1.0'), t0=('2.2', '2.0'), **kwargs):
    return Scheme.objects.create(
        scope=SCHEME_SCOPE_CUSTOM if retailer is not None else SCHEME_SCOPE_GLOBAL,
        owner_retailer=retailer,
        mode=mode,
        card_type=card_type,
        brand_type=brand_type,
        card_classification=card_classification,
        retailer_mdr_t1=Decimal(t1[0]),
        distributor_mdr_t1=Decimal(t1[1]),
        retailer_mdr_t0=Decimal(t0[0]),
        distributor_mdr_t0=Decimal(t0[1]),
        effective_date=kwargs.pop('effective_date', timezone.now() - timedelta(days=1)),
        **kwargs
    )


def make_transaction(retailer, amount='1000.00', payment_mode='CARD', card_type='CREDIT', card_brand='VISA',
                     card_classification=None, display_status='SUCCESS', transaction_time=None, **kwargs):
    return PosTransaction.objects.create(
        txn_id=kwargs.pop('txn_id', f"TXN{next(_sequence):06d}"),
        retailer=retailer,
        amount=Money(Decimal(amount), 'INR'),
        payment_mode=payment_mode,
        card_type=card_type,
        card_brand=card_brand,
        card_classification=card_classification,
        display_status=display_status,
        transaction_time=transaction_time or timezone.now() - timedelta(days=1),
        **kwargs
    )
