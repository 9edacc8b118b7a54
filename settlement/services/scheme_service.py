"""
Scheme Resolution Service

Finds the MDR scheme that applies to a transaction. Custom schemes owned
by the retailer win over global ones, and attribute matching relaxes
from the most to the least specific level before giving up.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from settlement.constants import SCHEME_SCOPE_CUSTOM, SCHEME_SCOPE_GLOBAL
from settlement.exceptions import SchemeNotFound
from settlement.models import Scheme
from settlement.utils.normalizers import (
    normalize_payment_mode,
    normalize_card_type,
    normalize_brand_type,
    normalize_card_classification,
)

logger = logging.getLogger(__name__)


class ResolvedScheme:
    """
    A scheme picked for a transaction and how it was found

    Attributes:
        scheme: The Scheme instance
        scope: SCHEME_SCOPE_CUSTOM or SCHEME_SCOPE_GLOBAL
        level: Relaxation level the match was found at (0 = full attributes)
    """

    def __init__(self, scheme: Scheme, level: int):
        self.scheme = scheme
        self.scope = scheme.scope
        self.level = level

    def __repr__(self):
        return f"<ResolvedScheme scheme_id={self.scheme.id} scope={self.scope} level={self.level}>"

    @property
    def id(self):
        return self.scheme.id

    def rates(self, settlement_type) -> Tuple[Decimal, Decimal]:
        """(retailer_mdr, distributor_mdr) for the tier"""
        return self.scheme.rates(settlement_type)


def relaxation_levels(card_type, brand_type, card_classification) -> List[tuple]:
    """
    Criteria tuples from the most to the least specific

    Drops card_classification, then brand_type, then card_type. Levels
    identical to the previous one are left out.

    Since a NULL scheme attribute already matches any value, every scheme
    matching a relaxed level also matches level 0, so the relaxed levels
    never change which scheme is picked. Only the custom-before-global
    order decides the result, and ResolvedScheme.level is 0 for any match.
    The ladder is kept so a resolver with exact-match semantics can be
    swapped in without changing the order of attempts.
    """
    levels = [
        (card_type, brand_type, card_classification),
        (card_type, brand_type, None),
        (card_type, None, None),
        (None, None, None),
    ]
    unique_levels = []
    for level in levels:
        if not unique_levels or unique_levels[-1] != level:
            unique_levels.append(level)
    return unique_levels


def pick_best(schemes, criteria) -> Optional[Scheme]:
    """
    Most specific matching scheme, most recent effective_date on ties

    ``schemes`` must already be ordered by effective_date descending.
    """
    best = None
    for scheme in schemes:
        if not scheme.matches(criteria):
            continue
        if best is None or scheme.specificity > best.specificity:
            best = scheme
    return best


class SchemeResolver:
    """
    Resolves the scheme for (retailer, mode, card attributes)

    Order of attempts:
    1. custom scheme at full attributes
    2. global scheme at full attributes
    3. custom scheme at each relaxed level
    4. global scheme at each relaxed level

    With wildcard matching, steps 3 and 4 only re-check subsets of step
    1 and 2 (see relaxation_levels).
    """

    def resolve(self, retailer, mode, card_type=None, brand_type=None, card_classification=None) -> ResolvedScheme:
        """
        Resolve the scheme for a transaction

        Args:
            retailer: Partner instance owning custom schemes (may be None)
            mode: Payment mode as reported by the acquirer
            card_type: Card type (optional)
            brand_type: Card brand (optional)
            card_classification: Card classification (optional)

        Returns:
            ResolvedScheme

        Raises:
            SchemeNotFound: If no active scheme matches at any level
        """
        mode = normalize_payment_mode(mode)
        card_type = normalize_card_type(card_type)
        brand_type = normalize_brand_type(brand_type)
        card_classification = normalize_card_classification(card_classification)

        custom = list(Scheme.objects.candidates(SCHEME_SCOPE_CUSTOM, mode, retailer=retailer))
        global_ = list(Scheme.objects.candidates(SCHEME_SCOPE_GLOBAL, mode))

        levels = relaxation_levels(card_type, brand_type, card_classification)
        attempts = [(custom, levels[0], 0), (global_, levels[0], 0)]
        attempts += [(custom, level, index) for index, level in enumerate(levels) if index > 0]
        attempts += [(global_, level, index) for index, level in enumerate(levels) if index > 0]

        for schemes, criteria, index in attempts:
            scheme = pick_best(schemes, criteria)
            if scheme is not None:
                logger.debug(
                    f"Resolved {scheme.scope} scheme {scheme.id} for {mode}/{criteria} "
                    f"at level {index}"
                )
                return ResolvedScheme(scheme, index)

        logger.info(
            f"No scheme for retailer {getattr(retailer, 'partner_id', None)}: "
            f"{mode}/{card_type}/{brand_type}/{card_classification}"
        )
        raise SchemeNotFound(mode, card_type, brand_type, card_classification)

    def resolve_for_transaction(self, transaction) -> ResolvedScheme:
        """Resolve using the attributes recorded on a PosTransaction"""
        return self.resolve(
            transaction.retailer,
            transaction.payment_mode,
            card_type=transaction.card_type,
            brand_type=transaction.card_brand,
            card_classification=transaction.card_classification
        )
