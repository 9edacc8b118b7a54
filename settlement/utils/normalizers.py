"""
Normalisation of payment attributes as reported by the acquirer.

Schemes and transactions are compared on these canonical forms only.
"""
import re

from settlement.constants import (
    PAYMENT_MODE_CARD,
    PAYMENT_MODE_UPI,
    CARD_TYPE_CREDIT,
    CARD_TYPE_DEBIT,
    CARD_TYPE_PREPAID,
    BRAND_ALIASES,
)


_BRAND_SEPARATORS = re.compile(r'[\s_-]+')


def normalize_payment_mode(mode):
    """
    Map an acquirer payment method onto CARD or UPI

    Anything mentioning CARD is a card payment, anything else
    (including unknown methods) settles as UPI.
    """
    upper_mode = (mode or '').strip().upper()
    if 'CARD' in upper_mode:
        return PAYMENT_MODE_CARD
    return PAYMENT_MODE_UPI


def normalize_card_type(card_type):
    """Return CREDIT, DEBIT, PREPAID or None"""
    if not card_type:
        return None
    upper_type = card_type.strip().upper()
    if upper_type in (CARD_TYPE_CREDIT, CARD_TYPE_DEBIT, CARD_TYPE_PREPAID):
        return upper_type
    return None


def normalize_brand_type(brand):
    """
    Canonical brand name

    MASTER_CARD, Master Card and MC all become MASTERCARD. Unknown
    brands are kept upper-cased without separators.
    """
    if not brand:
        return None
    normalized = _BRAND_SEPARATORS.sub('', brand.upper())
    if not normalized:
        return None
    return BRAND_ALIASES.get(normalized, normalized)


def normalize_card_classification(classification):
    if not classification:
        return None
    normalized = classification.strip().upper()
    return normalized or None
