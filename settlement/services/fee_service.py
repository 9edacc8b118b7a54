"""
MDR Fee Calculation Service

Splits the merchant discount on a POS transaction between the retailer,
its distributor and the company:
- Retailer fee (what the retailer is charged)
- Distributor fee (what the distributor is charged upstream)
- Distributor margin (retailer fee - distributor fee)
- Retailer net (amount credited to the retailer)
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Dict, Any, Union

from djmoney.money import Money

from settlement.exceptions import InvalidAmount, NegativeMarginConfig

logger = logging.getLogger(__name__)


FOUR_PLACES = Decimal('0.0001')
TWO_PLACES = Decimal('0.01')
HUNDRED = Decimal('100')


def round4(value: Decimal) -> Decimal:
    return value.quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def round2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Union[Money, Decimal, int, str]) -> Decimal:
    """Coerce Money, int or str into a Decimal, floats are not accepted"""
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, float):
        raise InvalidAmount(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(value)


class FeeCalculationResult:
    """
    Result object for MDR calculations

    Attributes:
        amount: Gross transaction amount
        retailer_mdr: Retailer MDR percentage applied
        distributor_mdr: Distributor MDR percentage applied
        retailer_fee: round4(amount * retailer_mdr / 100)
        distributor_fee: round4(amount * distributor_mdr / 100)
        distributor_margin: round4(retailer_fee - distributor_fee)
        company_earning: Equal to distributor_fee
        retailer_net: round2(amount - retailer_fee)
    """

    def __init__(
        self,
        amount: Decimal,
        retailer_mdr: Decimal,
        distributor_mdr: Decimal,
        retailer_fee: Decimal,
        distributor_fee: Decimal,
        distributor_margin: Decimal,
        retailer_net: Decimal
    ):
        self.amount = amount
        self.retailer_mdr = retailer_mdr
        self.distributor_mdr = distributor_mdr
        self.retailer_fee = retailer_fee
        self.distributor_fee = distributor_fee
        self.distributor_margin = distributor_margin
        self.company_earning = distributor_fee
        self.retailer_net = retailer_net

    def __repr__(self):
        return (
            f"<FeeCalculationResult amount={self.amount} retailer_fee={self.retailer_fee} "
            f"distributor_fee={self.distributor_fee} margin={self.distributor_margin} "
            f"net={self.retailer_net}>"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            'amount': str(self.amount),
            'retailer_mdr': str(self.retailer_mdr),
            'distributor_mdr': str(self.distributor_mdr),
            'retailer_fee': str(self.retailer_fee),
            'distributor_fee': str(self.distributor_fee),
            'distributor_margin': str(self.distributor_margin),
            'company_earning': str(self.company_earning),
            'retailer_net': str(self.retailer_net),
        }


class FeeCalculator:
    """
    Pure MDR calculator

    No I/O and no state: the same inputs always give the same result.
    """

    def compute(self, amount, retailer_mdr_pct, distributor_mdr_pct, scheme_id=None) -> FeeCalculationResult:
        """
        Calculate fees, margin and net for one transaction

        Args:
            amount: Gross amount (Money, Decimal, int or str)
            retailer_mdr_pct: Retailer MDR in percent
            distributor_mdr_pct: Distributor MDR in percent
            scheme_id: Scheme the rates come from, used in error messages

        Returns:
            FeeCalculationResult

        Raises:
            InvalidAmount: If amount is zero or negative
            NegativeMarginConfig: If the distributor margin would be negative
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmount(amount)

        retailer_mdr = to_decimal(retailer_mdr_pct)
        distributor_mdr = to_decimal(distributor_mdr_pct)

        retailer_fee = round4(amount * retailer_mdr / HUNDRED)
        distributor_fee = round4(amount * distributor_mdr / HUNDRED)
        distributor_margin = round4(retailer_fee - distributor_fee)

        if distributor_margin < 0:
            logger.warning(
                f"Negative distributor margin for scheme {scheme_id}: "
                f"retailer MDR {retailer_mdr}% < distributor MDR {distributor_mdr}%"
            )
            raise NegativeMarginConfig(retailer_mdr, distributor_mdr, scheme_id)

        retailer_net = round2(amount - retailer_fee)

        return FeeCalculationResult(
            amount=amount,
            retailer_mdr=retailer_mdr,
            distributor_mdr=distributor_mdr,
            retailer_fee=retailer_fee,
            distributor_fee=distributor_fee,
            distributor_margin=distributor_margin,
            retailer_net=retailer_net
        )
