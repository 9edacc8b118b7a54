"""
Ledger Service

Single entry point for crediting partner wallets. The backend is chosen
by the SETTLEMENT_LEDGER_BACKEND setting:
- DatabaseLedger: wallets and entries stored by this app (default)
- RemoteLedger: credits posted to an external ledger API
Every backend is idempotent per reference_id.
"""

import logging
from urllib.parse import urljoin

import requests
from django.db import IntegrityError, transaction
from django.utils.module_loading import import_string
from djmoney.money import Money

from settlement.constants import LEDGER_TX_TYPE_POS_CREDIT, WALLET_TYPE_PRIMARY
from settlement.exceptions import InvalidAmount, LedgerCreditFailure
from settlement.models import Wallet, LedgerEntry
from settlement.settings import get_settlement_setting

logger = logging.getLogger(__name__)


def to_money(amount):
    if isinstance(amount, Money):
        return amount
    return Money(amount, get_settlement_setting('CURRENCY'))


class BaseLedger:
    """Interface every ledger backend implements"""

    def credit(self, partner, role, wallet_type, amount, reference_id,
               transaction_ref=None, remarks='', tx_type=LEDGER_TX_TYPE_POS_CREDIT):
        """
        Credit a partner wallet

        Returns:
            str: Ledger entry id

        Raises:
            LedgerCreditFailure: If the credit was not recorded
        """
        raise NotImplementedError


class DatabaseLedger(BaseLedger):
    """Ledger kept in the local database"""

    def credit(self, partner, role, wallet_type, amount, reference_id,
               transaction_ref=None, remarks='', tx_type=LEDGER_TX_TYPE_POS_CREDIT):
        amount = to_money(amount)

        existing = LedgerEntry.objects.filter(reference_id=reference_id).first()
        if existing is not None:
            logger.info(f"Ledger reference {reference_id} already credited, returning entry {existing.id}")
            return str(existing.id)

        try:
            with transaction.atomic():
                wallet, _created = Wallet.objects.get_or_create_for_partner(
                    partner, wallet_type or WALLET_TYPE_PRIMARY
                )
                wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)
                balance = wallet.deposit(amount)
                entry = LedgerEntry.objects.create(
                    wallet=wallet,
                    role=role,
                    tx_type=tx_type,
                    credit=amount,
                    reference_id=reference_id,
                    transaction_ref=transaction_ref,
                    balance_after=balance,
                    remarks=remarks or ''
                )
        except IntegrityError:
            # Concurrent credit with the same reference won the race
            existing = LedgerEntry.objects.filter(reference_id=reference_id).first()
            if existing is None:
                logger.error(f"Ledger credit {reference_id} failed on integrity error", exc_info=True)
                raise LedgerCreditFailure("integrity error while recording the entry", reference_id)
            return str(existing.id)
        except InvalidAmount as e:
            raise LedgerCreditFailure(str(e), reference_id)

        logger.info(
            f"Credited {amount} to partner {partner.partner_id} "
            f"({wallet.wallet_type}) with reference {reference_id}"
        )
        return str(entry.id)


class RemoteLedger(BaseLedger):
    """
    Ledger exposed by another service over HTTP

    Timeouts and HTTP errors are reported as LedgerCreditFailure, the
    same as a refused credit.
    """

    def __init__(self):
        self.api_url = get_settlement_setting('LEDGER_API_URL')
        self.api_key = get_settlement_setting('LEDGER_API_KEY')
        self.timeout = get_settlement_setting('LEDGER_TIMEOUT')

        if self.api_url and not self.api_url.endswith('/'):
            self.api_url += '/'

    def _get_headers(self):
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _make_request(self, method, endpoint, reference_id=None, **kwargs):
        """
        Make a request to the ledger API

        Returns:
            dict: Response data

        Raises:
            LedgerCreditFailure: On timeout, transport or API error
        """
        if not self.api_url:
            raise LedgerCreditFailure('SETTLEMENT_LEDGER_API_URL is not configured', reference_id)

        url = urljoin(self.api_url, endpoint)
        try:
            response = requests.request(
                method=method,
                url=url,
                headers=self._get_headers(),
                timeout=self.timeout,
                **kwargs
            )
            response.raise_for_status()
            try:
                return response.json()
            except ValueError:
                raise LedgerCreditFailure(f"Invalid ledger response: {response.text[:200]}", reference_id)
        except requests.Timeout:
            logger.error(f"Ledger API timed out after {self.timeout}s for {reference_id}")
            raise LedgerCreditFailure(f"timed out after {self.timeout}s", reference_id)
        except requests.RequestException as e:
            logger.error(f"Ledger API request failed for {reference_id}: {str(e)}")
            raise LedgerCreditFailure(str(e), reference_id)

    def credit(self, partner, role, wallet_type, amount, reference_id,
               transaction_ref=None, remarks='', tx_type=LEDGER_TX_TYPE_POS_CREDIT):
        amount = to_money(amount)
        payload = {
            'user_id': partner.partner_id,
            'role': role,
            'wallet_type': wallet_type or WALLET_TYPE_PRIMARY,
            'fund_category': 'pos',
            'service_type': 'POS',
            'tx_type': tx_type,
            'amount': str(amount.amount),
            'currency': str(amount.currency),
            'reference_id': reference_id,
            'transaction_id': transaction_ref,
            'remarks': remarks,
        }
        data = self._make_request('POST', 'credits/', reference_id=reference_id, json=payload)

        entry_id = data.get('ledger_entry_id') or data.get('id')
        if not entry_id:
            raise LedgerCreditFailure(data.get('message') or 'no ledger entry id returned', reference_id)
        return str(entry_id)


class LedgerService:
    """
    Facade used by the settlement code to credit wallets

    Args:
        backend: Ledger backend instance (default: SETTLEMENT_LEDGER_BACKEND)
    """

    def __init__(self, backend=None):
        if backend is None:
            backend = import_string(get_settlement_setting('LEDGER_BACKEND'))()
        self.backend = backend

    def credit(self, partner, role, wallet_type, amount, reference_id,
               transaction_ref=None, remarks='', tx_type=LEDGER_TX_TYPE_POS_CREDIT):
        """
        Credit a partner wallet once per reference_id

        Args:
            partner: Partner to credit
            role: Role the partner is credited as
            wallet_type: Wallet type (default: primary)
            amount: Money or Decimal, must be positive
            reference_id: Idempotency key
            transaction_ref: Related transaction reference (optional)
            remarks: Free text (optional)
            tx_type: Ledger transaction type

        Returns:
            str: Ledger entry id

        Raises:
            LedgerCreditFailure: If the credit was not recorded
        """
        try:
            amount = to_money(amount)
        except (TypeError, ValueError, ArithmeticError) as e:
            raise LedgerCreditFailure(str(e), reference_id)
        if amount.amount <= 0:
            raise LedgerCreditFailure(f"amount must be positive, got {amount}", reference_id)

        return self.backend.credit(
            partner,
            role,
            wallet_type,
            amount,
            reference_id,
            transaction_ref=transaction_ref,
            remarks=remarks,
            tx_type=tx_type
        )
