"""
Settlement - Fee Calculator Tests

Test Coverage:
1. FeeCalculatorTestCase - fee split, rounding, invalid amounts, negative margin
2. NormalizerTestCase - canonical payment attributes
"""
from decimal import Decimal
from django.test import SimpleTestCase
from djmoney.money import Money

from settlement.services.fee_service import FeeCalculator, round2, round4
from settlement.exceptions import InvalidAmount, NegativeMarginConfig, SchemeError
from settlement.utils.normalizers import (
    normalize_payment_mode,
    normalize_card_type,
    normalize_brand_type,
    normalize_card_classification,
)


class FeeCalculatorTestCase(SimpleTestCase):
    """Test case for FeeCalculator.compute"""

    def setUp(self):
        self.calculator = FeeCalculator()

    def test_custom_scheme_t1_split(self):
        """1000 at 1.2% / 1.0% gives 12 / 10 / 2 and a net of 988"""
        result = self.calculator.compute(Decimal('1000'), Decimal('1.2'), Decimal('1.0'))

        self.assertEqual(result.retailer_fee, Decimal('12.00'))
        self.assertEqual(result.distributor_fee, Decimal('10.00'))
        self.assertEqual(result.distributor_margin, Decimal('2.00'))
        self.assertEqual(result.company_earning, Decimal('10.00'))
        self.assertEqual(result.retailer_net, Decimal('988.00'))

    def test_accepts_money_amount(self):
        result = self.calculator.compute(Money(500, 'INR'), '2', '1.5')

        self.assertEqual(result.amount, Decimal('500'))
        self.assertEqual(result.retailer_fee, Decimal('10.0000'))
        self.assertEqual(result.retailer_net, Decimal('490.00'))

    def test_fees_rounded_to_four_places_net_to_two(self):
        """Fees keep 4 decimals, the net is rounded half-up to 2"""
        result = self.calculator.compute(Decimal('333.33'), Decimal('1.75'), Decimal('1.25'))

        # 333.33 * 1.75 / 100 = 5.8332750
        self.assertEqual(result.retailer_fee, Decimal('5.8333'))
        # 333.33 * 1.25 / 100 = 4.1666250
        self.assertEqual(result.distributor_fee, Decimal('4.1666'))
        self.assertEqual(result.distributor_margin, Decimal('1.6667'))
        # 333.33 - 5.8333 = 327.4967
        self.assertEqual(result.retailer_net, Decimal('327.50'))

    def test_equal_rates_give_zero_margin(self):
        result = self.calculator.compute(Decimal('100'), Decimal('1'), Decimal('1'))

        self.assertEqual(result.distributor_margin, Decimal('0'))

    def test_zero_rates(self):
        result = self.calculator.compute(Decimal('250.50'), Decimal('0'), Decimal('0'))

        self.assertEqual(result.retailer_fee, Decimal('0'))
        self.assertEqual(result.retailer_net, Decimal('250.50'))

    def test_zero_amount_raises(self):
        with self.assertRaises(InvalidAmount):
            self.calculator.compute(Decimal('0'), Decimal('1'), Decimal('1'))

    def test_negative_amount_raises(self):
        with self.assertRaises(InvalidAmount):
            self.calculator.compute(Decimal('-10'), Decimal('1'), Decimal('1'))

    def test_float_amount_rejected(self):
        with self.assertRaises(InvalidAmount):
            self.calculator.compute(10.5, Decimal('1'), Decimal('1'))

    def test_garbage_amount_rejected(self):
        with self.assertRaises(InvalidAmount):
            self.calculator.compute('ten', Decimal('1'), Decimal('1'))

    def test_negative_margin_raises(self):
        """A retailer MDR below the distributor MDR is a scheme error"""
        with self.assertRaises(NegativeMarginConfig) as context:
            self.calculator.compute(Decimal('1000'), Decimal('1.0'), Decimal('1.2'), scheme_id='abc')

        self.assertIsInstance(context.exception, SchemeError)
        self.assertEqual(context.exception.scheme_id, 'abc')

    def test_same_inputs_same_result(self):
        first = self.calculator.compute(Decimal('777.77'), Decimal('1.9'), Decimal('1.1'))
        second = self.calculator.compute(Decimal('777.77'), Decimal('1.9'), Decimal('1.1'))

        self.assertEqual(first.to_dict(), second.to_dict())

    def test_to_dict(self):
        result = self.calculator.compute(Decimal('1000'), Decimal('1.2'), Decimal('1.0'))
        data = result.to_dict()

        self.assertEqual(data['retailer_net'], '988.00')
        self.assertEqual(data['company_earning'], data['distributor_fee'])

    def test_rounding_helpers_round_half_up(self):
        self.assertEqual(round2(Decimal('0.005')), Decimal('0.01'))
        self.assertEqual(round4(Decimal('0.00005')), Decimal('0.0001'))


class NormalizerTestCase(SimpleTestCase):
    """Test case for attribute normalisation"""

    def test_payment_mode(self):
        self.assertEqual(normalize_payment_mode('card'), 'CARD')
        self.assertEqual(normalize_payment_mode('CREDIT_CARD'), 'CARD')
        self.assertEqual(normalize_payment_mode('UPI'), 'UPI')
        self.assertEqual(normalize_payment_mode('BHARATQR'), 'UPI')
        self.assertEqual(normalize_payment_mode(None), 'UPI')

    def test_card_type(self):
        self.assertEqual(normalize_card_type(' credit '), 'CREDIT')
        self.assertEqual(normalize_card_type('Debit'), 'DEBIT')
        self.assertIsNone(normalize_card_type('CHARGE'))
        self.assertIsNone(normalize_card_type(''))

    def test_brand_aliases(self):
        self.assertEqual(normalize_brand_type('MASTER_CARD'), 'MASTERCARD')
        self.assertEqual(normalize_brand_type('Master Card'), 'MASTERCARD')
        self.assertEqual(normalize_brand_type('mc'), 'MASTERCARD')
        self.assertEqual(normalize_brand_type('American Express'), 'AMEX')
        self.assertEqual(normalize_brand_type('visa'), 'VISA')

    def test_unknown_brand_kept(self):
        self.assertEqual(normalize_brand_type('union-pay'), 'UNIONPAY')

    def test_empty_brand(self):
        self.assertIsNone(normalize_brand_type(None))
        self.assertIsNone(normalize_brand_type(' _ '))

    def test_card_classification(self):
        self.assertEqual(normalize_card_classification(' platinum '), 'PLATINUM')
        self.assertIsNone(normalize_card_classification('   '))
