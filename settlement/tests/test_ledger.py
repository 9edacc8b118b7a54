"""
Settlement - Ledger Service Tests

Test Coverage:
1. DatabaseLedgerTestCase - wallet credit, idempotency, locked wallets
2. RemoteLedgerTestCase - HTTP backend with mocked requests
3. LedgerServiceTestCase - amount validation and backend selection
"""
from decimal import Decimal
from unittest.mock import Mock, patch
import requests
from django.test import TestCase
from djmoney.money import Money

from settlement.models import Wallet, LedgerEntry
from settlement.services.ledger_service import LedgerService, DatabaseLedger, RemoteLedger
from settlement.settings import SETTLEMENT_SETTINGS
from settlement.constants import PARTNER_ROLE_RETAILER, LEDGER_TX_TYPE_POS_CREDIT
from settlement.exceptions import LedgerCreditFailure
from settlement.tests.helpers import make_retailer


class DatabaseLedgerTestCase(TestCase):
    """Test case for DatabaseLedger.credit"""

    def setUp(self):
        self.retailer = make_retailer()
        self.ledger = DatabaseLedger()

    def test_credit_creates_wallet_and_entry(self):
        entry_id = self.ledger.credit(
            self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(100, 'INR'), 'REF-1',
            transaction_ref='batch-1', remarks='test credit'
        )

        wallet = Wallet.objects.get(partner=self.retailer)
        self.assertEqual(wallet.balance, Money(100, 'INR'))

        entry = LedgerEntry.objects.get(id=entry_id)
        self.assertEqual(entry.reference_id, 'REF-1')
        self.assertEqual(entry.tx_type, LEDGER_TX_TYPE_POS_CREDIT)
        self.assertEqual(entry.service_type, 'POS')
        self.assertEqual(entry.balance_after, Money(100, 'INR'))
        self.assertEqual(entry.transaction_ref, 'batch-1')

    def test_balance_accumulates(self):
        self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(100, 'INR'), 'REF-1')
        self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money('50.25', 'INR'), 'REF-2')

        wallet = Wallet.objects.get(partner=self.retailer)
        self.assertEqual(wallet.balance, Money(Decimal('150.25'), 'INR'))
        self.assertEqual(
            LedgerEntry.objects.get(reference_id='REF-2').balance_after,
            Money(Decimal('150.25'), 'INR')
        )

    def test_same_reference_credited_once(self):
        first = self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(100, 'INR'), 'REF-1')
        second = self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(100, 'INR'), 'REF-1')

        self.assertEqual(first, second)
        self.assertEqual(LedgerEntry.objects.count(), 1)
        self.assertEqual(Wallet.objects.get(partner=self.retailer).balance, Money(100, 'INR'))

    def test_locked_wallet_refuses_credit(self):
        Wallet.objects.create(partner=self.retailer, is_locked=True)

        with self.assertRaises(LedgerCreditFailure):
            self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(100, 'INR'), 'REF-1')

        self.assertEqual(LedgerEntry.objects.count(), 0)
        self.assertEqual(Wallet.objects.get(partner=self.retailer).balance, Money(0, 'INR'))

    def test_other_currency_refused(self):
        with self.assertRaises(LedgerCreditFailure):
            self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(100, 'USD'), 'REF-1')


class RemoteLedgerTestCase(TestCase):
    """Test case for RemoteLedger.credit"""

    def setUp(self):
        self.retailer = make_retailer()
        self.settings_patch = patch.dict(SETTLEMENT_SETTINGS, {
            'LEDGER_API_URL': 'https://ledger.example.com/api',
            'LEDGER_API_KEY': 'secret',
            'LEDGER_TIMEOUT': 5,
        })
        self.settings_patch.start()
        self.addCleanup(self.settings_patch.stop)
        self.ledger = RemoteLedger()

    @patch('settlement.services.ledger_service.requests.request')
    def test_credit_posts_payload(self, mock_request):
        response = Mock()
        response.json.return_value = {'ledger_entry_id': 'LE-1'}
        response.raise_for_status.return_value = None
        mock_request.return_value = response

        entry_id = self.ledger.credit(
            self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money('978.00', 'INR'), 'INSTACASH-1',
            transaction_ref='1'
        )

        self.assertEqual(entry_id, 'LE-1')
        kwargs = mock_request.call_args.kwargs
        self.assertEqual(kwargs['method'], 'POST')
        self.assertEqual(kwargs['url'], 'https://ledger.example.com/api/credits/')
        self.assertEqual(kwargs['timeout'], 5)
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer secret')
        self.assertEqual(kwargs['json']['user_id'], 'RT001')
        self.assertEqual(kwargs['json']['amount'], '978.00')
        self.assertEqual(kwargs['json']['reference_id'], 'INSTACASH-1')

    @patch('settlement.services.ledger_service.requests.request')
    def test_timeout_is_a_credit_failure(self, mock_request):
        mock_request.side_effect = requests.Timeout()

        with self.assertRaises(LedgerCreditFailure) as context:
            self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(10, 'INR'), 'REF-1')

        self.assertEqual(context.exception.reference_id, 'REF-1')
        self.assertIn('timed out', str(context.exception))

    @patch('settlement.services.ledger_service.requests.request')
    def test_http_error_is_a_credit_failure(self, mock_request):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError('503 Server Error')
        mock_request.return_value = response

        with self.assertRaises(LedgerCreditFailure):
            self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(10, 'INR'), 'REF-1')

    @patch('settlement.services.ledger_service.requests.request')
    def test_missing_entry_id_is_a_credit_failure(self, mock_request):
        response = Mock()
        response.json.return_value = {'message': 'wallet frozen'}
        response.raise_for_status.return_value = None
        mock_request.return_value = response

        with self.assertRaises(LedgerCreditFailure) as context:
            self.ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(10, 'INR'), 'REF-1')

        self.assertIn('wallet frozen', str(context.exception))

    def test_unconfigured_url(self):
        with patch.dict(SETTLEMENT_SETTINGS, {'LEDGER_API_URL': ''}):
            ledger = RemoteLedger()

        with self.assertRaises(LedgerCreditFailure):
            ledger.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', Money(10, 'INR'), 'REF-1')


class LedgerServiceTestCase(TestCase):
    """Test case for LedgerService"""

    def setUp(self):
        self.retailer = make_retailer()

    def test_default_backend_is_database(self):
        self.assertIsInstance(LedgerService().backend, DatabaseLedger)

    def test_backend_from_settings(self):
        with patch.dict(SETTLEMENT_SETTINGS, {'LEDGER_BACKEND': 'settlement.services.ledger_service.RemoteLedger'}):
            self.assertIsInstance(LedgerService().backend, RemoteLedger)

    def test_non_positive_amount_rejected(self):
        backend = Mock()
        service = LedgerService(backend=backend)

        for amount in (Money(0, 'INR'), Money(-5, 'INR'), Decimal('0')):
            with self.assertRaises(LedgerCreditFailure):
                service.credit(self.retailer, PARTNER_ROLE_RETAILER, 'primary', amount, 'REF-1')

        backend.credit.assert_not_called()

    def test_decimal_amount_converted(self):
        backend = Mock()
        backend.credit.return_value = 'LE-1'

        entry_id = LedgerService(backend=backend).credit(
            self.retailer, PARTNER_ROLE_RETAILER, 'primary', Decimal('12.50'), 'REF-1'
        )

        self.assertEqual(entry_id, 'LE-1')
        amount = backend.credit.call_args.args[3]
        self.assertEqual(amount, Money(Decimal('12.50'), 'INR'))
