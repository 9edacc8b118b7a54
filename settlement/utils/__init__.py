from settlement.utils.normalizers import (
    normalize_payment_mode, normalize_card_type,
    normalize_brand_type, normalize_card_classification
)


__all__ = [
    'normalize_payment_mode',
    'normalize_card_type',
    'normalize_brand_type',
    'normalize_card_classification',
]
