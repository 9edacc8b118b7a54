"""
Settlement - Batch Settlement Service

Credits captured POS transactions into the retailer wallet, either on
demand (InstaCash, T+0) or from the scheduled sweep (auto T+1).

Every batch follows the same order:
1. Lock candidates and reject transactions already settled or in flight
2. Create the batch and one item per transaction (fees resolved per item)
3. Issue exactly one ledger credit for the summed net of pending items
4. Only after the credit succeeds, mark items settled and write the
   settlement fields back onto each transaction
"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Dict, Any, List, Iterable
from django.db import DatabaseError
from django.db import transaction as db_transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from djmoney.money import Money

from settlement.models import (
    Partner,
    PosTransaction,
    SettlementBatch,
    BatchItem,
    EarningAccrual,
)
from settlement.constants import (
    PARTNER_ROLE_RETAILER,
    PARTNER_ROLE_DISTRIBUTOR,
    PARTNER_ROLE_ADMIN,
    SETTLEMENT_TYPE_T0,
    SETTLEMENT_TYPE_T1,
    SETTLEMENT_MODE_INSTACASH,
    SETTLEMENT_MODE_AUTO_T1,
    BATCH_TRIGGER_INSTANT,
    BATCH_TRIGGER_SCHEDULED,
    ITEM_STATUS_PENDING,
    ITEM_STATUS_SETTLED,
    ITEM_STATUS_FAILED,
    ITEM_STATUS_SKIPPED,
    LEDGER_TX_TYPE_MARGIN_CREDIT,
    LEDGER_TX_TYPE_EARNING_CREDIT,
    ACCRUAL_BENEFICIARY_DISTRIBUTOR,
    ACCRUAL_BENEFICIARY_COMPANY,
)
from settlement.exceptions import (
    SettlementError,
    InvalidAmount,
    SchemeError,
    SchemeNotFound,
    InvalidSettlementRequest,
    SettlementNotAllowed,
    DuplicateSettlementAttempt,
    LedgerCreditFailure,
    WriteBackFailure,
)
from settlement.services.fee_service import FeeCalculator, round2
from settlement.services.ledger_service import LedgerService
from settlement.services.scheme_service import SchemeResolver
from settlement.settings import get_settlement_setting


logger = logging.getLogger(__name__)


SETTLEMENT_MODE_BY_TYPE = {
    SETTLEMENT_TYPE_T0: SETTLEMENT_MODE_INSTACASH,
    SETTLEMENT_TYPE_T1: SETTLEMENT_MODE_AUTO_T1,
}


class SettlementSummary:
    """
    Outcome of one batch

    Attributes:
        batch_id: Id of the SettlementBatch
        status: Final batch status
        total_transactions: Number of items in the batch
        settled: Items credited
        failed: Items failed or skipped
        failure_reasons: One entry per failed or skipped item, plus the
            batch failure reason if the ledger credit failed
        totals: Gross, MDR and net amounts of the credited items
        wallet_credit_id: Ledger entry of the aggregate credit
    """

    def __init__(self, batch: SettlementBatch, failure_reasons: List[Dict[str, Any]]):
        self.batch = batch
        self.batch_id = batch.id
        self.status = batch.status
        self.total_transactions = batch.total_transactions
        self.settled = batch.success_count
        self.failed = batch.failed_count
        self.failure_reasons = failure_reasons
        self.wallet_credit_id = batch.wallet_credit_id
        self.totals = {
            'gross': batch.total_gross_amount.amount,
            'mdr': batch.total_mdr_amount,
            'net': batch.total_net_amount.amount,
        }

    def __repr__(self):
        return (
            f"<SettlementSummary batch_id={self.batch_id} status={self.status} "
            f"settled={self.settled} failed={self.failed}>"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        return {
            'batch_id': str(self.batch_id),
            'status': self.status,
            'total_transactions': self.total_transactions,
            'settled': self.settled,
            'failed': self.failed,
            'failure_reasons': self.failure_reasons,
            'totals': {key: str(value) for key, value in self.totals.items()},
            'wallet_credit_id': self.wallet_credit_id,
        }


class SettlementService:
    """
    Batch settlement processor shared by InstaCash and the T+1 sweep

    Safe to run concurrently for different retailers. Two batches for the
    same retailer can never pick up the same transaction: the candidate
    check sees every settled item and every pending item of a batch that
    is still processing.
    """

    def __init__(self, ledger=None, resolver=None, calculator=None):
        self.ledger = ledger or LedgerService()
        self.resolver = resolver or SchemeResolver()
        self.calculator = calculator or FeeCalculator()
        self.currency = get_settlement_setting('CURRENCY')

    # ==========================================
    # ENTRY POINTS
    # ==========================================

    def settle_instant(self, retailer: Partner, transaction_ids: Iterable,
                       requested_by: Optional[str] = None,
                       metadata: Optional[Dict[str, Any]] = None) -> SettlementSummary:
        """
        Settle retailer-selected transactions immediately (T+0)

        Args:
            retailer: Retailer requesting the settlement
            transaction_ids: Ids of PosTransactions to settle
            requested_by: Identifier of the requesting user (optional)
            metadata: Extra data stored on the batch (optional)

        Returns:
            SettlementSummary

        Raises:
            InvalidSettlementRequest: If the selection is empty, too large,
                or contains no settleable transaction of the retailer
            SettlementNotAllowed: If the retailer may not use T+0
            DuplicateSettlementAttempt: If any selected transaction is
                already settled or in a pending batch
        """
        transaction_ids = list(dict.fromkeys(transaction_ids or []))
        max_size = get_settlement_setting('INSTANT_MAX_BATCH_SIZE')

        if not transaction_ids:
            raise InvalidSettlementRequest(_("Select at least one transaction"))
        if len(transaction_ids) > max_size:
            raise InvalidSettlementRequest(
                _("Maximum {max_size} transactions per batch").format(max_size=max_size)
            )
        if not retailer.can_settle_instantly:
            raise SettlementNotAllowed(retailer, SETTLEMENT_TYPE_T0)

        batch_metadata = dict(metadata or {})
        if requested_by:
            batch_metadata['requested_by'] = str(requested_by)

        return self.process_batch(
            retailer,
            transaction_ids,
            SETTLEMENT_TYPE_T0,
            BATCH_TRIGGER_INSTANT,
            metadata=batch_metadata
        )

    def settle_retailer_group(self, retailer: Partner, transactions: Iterable,
                              metadata: Optional[Dict[str, Any]] = None) -> SettlementSummary:
        """
        Settle one retailer's share of a scheduled sweep (T+1)

        Args:
            retailer: Retailer owning the transactions
            transactions: PosTransaction instances or ids

        Returns:
            SettlementSummary
        """
        transaction_ids = [getattr(txn, 'id', txn) for txn in transactions]
        if not transaction_ids:
            raise InvalidSettlementRequest(_("No transactions to settle"))
        return self.process_batch(
            retailer,
            transaction_ids,
            SETTLEMENT_TYPE_T1,
            BATCH_TRIGGER_SCHEDULED,
            metadata=metadata
        )

    # ==========================================
    # BATCH PROCESSING
    # ==========================================

    def process_batch(self, retailer: Partner, transaction_ids: List, settlement_type: str,
                      trigger: str, metadata: Optional[Dict[str, Any]] = None) -> SettlementSummary:
        """
        Run one settlement batch for a retailer

        Args:
            retailer: Retailer to credit
            transaction_ids: Candidate PosTransaction ids
            settlement_type: SETTLEMENT_TYPE_T0 or SETTLEMENT_TYPE_T1
            trigger: BATCH_TRIGGER_INSTANT or BATCH_TRIGGER_SCHEDULED
            metadata: Extra data stored on the batch

        Returns:
            SettlementSummary

        Raises:
            InvalidSettlementRequest: If no candidate belongs to the retailer
            DuplicateSettlementAttempt: If a candidate is settled or in flight
        """
        batch, items, failure_reasons = self._create_batch(
            retailer, transaction_ids, settlement_type, trigger, metadata
        )

        pending_items = [item for item in items if item.status == ITEM_STATUS_PENDING]
        total_net = sum((item.net_amount.amount for item in pending_items), Decimal('0'))

        wallet_credit_id = None
        if total_net > 0:
            try:
                wallet_credit_id = self.ledger.credit(
                    retailer,
                    PARTNER_ROLE_RETAILER,
                    get_settlement_setting('DEFAULT_WALLET_TYPE'),
                    Money(total_net, self.currency),
                    batch.ledger_reference,
                    transaction_ref=str(batch.id),
                    remarks=self._credit_remarks(settlement_type, len(pending_items))
                )
            except LedgerCreditFailure as e:
                logger.error(f"Ledger credit failed for batch {batch.id}: {str(e)}")
                batch.mark_as_failed(str(e))
                failure_reasons.append({'transaction_id': None, 'reason': str(e)})
                return SettlementSummary(batch, failure_reasons)
            except Exception as e:
                logger.error(f"Unexpected ledger error for batch {batch.id}: {str(e)}", exc_info=True)
                batch.mark_as_failed(str(e))
                raise

        self._settle_items(batch, pending_items, settlement_type, wallet_credit_id)

        success_count = len(pending_items)
        batch.finalize(success_count, len(items) - success_count, wallet_credit_id)
        logger.info(
            f"Batch {batch.id} for retailer {retailer.partner_id} finished as {batch.status}: "
            f"{success_count} settled, {batch.failed_count} failed, net {total_net}"
        )

        if pending_items:
            self._record_accruals(batch, retailer, pending_items)

        return SettlementSummary(batch, failure_reasons)

    def _create_batch(self, retailer, transaction_ids, settlement_type, trigger, metadata):
        """
        Lock candidates, check for duplicates, create the batch and its items

        Runs in one database transaction so a concurrent batch sees these
        pending items as soon as it can read the candidates.
        """
        with db_transaction.atomic():
            candidates = list(
                PosTransaction.objects.select_for_update(of=('self',))
                .filter(id__in=list(transaction_ids), retailer=retailer)
                .successful()
                .select_related('retailer')
                .order_by('transaction_time')
            )
            if not candidates:
                raise InvalidSettlementRequest(_("No eligible transactions found"))

            conflicting = {txn.id for txn in candidates if txn.is_settled}
            conflicting |= BatchItem.objects.blocking_transaction_ids(txn.id for txn in candidates)
            if conflicting:
                conflicting_txn_ids = sorted(txn.txn_id for txn in candidates if txn.id in conflicting)
                logger.warning(
                    f"Duplicate settlement attempt for retailer {retailer.partner_id}: "
                    f"{', '.join(conflicting_txn_ids)}"
                )
                raise DuplicateSettlementAttempt(conflicting_txn_ids)

            batch = SettlementBatch.objects.create(
                retailer=retailer,
                settlement_type=settlement_type,
                trigger=trigger,
                total_transactions=len(candidates),
                metadata=metadata or {}
            )

            items = []
            failure_reasons = []
            for txn in candidates:
                item = self._build_item(batch, txn, settlement_type)
                item.save()
                items.append(item)
                if item.status != ITEM_STATUS_PENDING:
                    failure_reasons.append({
                        'transaction_id': txn.txn_id,
                        'status': item.status,
                        'reason': item.error_message,
                    })

            pending_items = [item for item in items if item.status == ITEM_STATUS_PENDING]
            batch.total_gross_amount = Money(
                sum((item.gross_amount.amount for item in pending_items), Decimal('0')),
                self.currency
            )
            batch.total_mdr_amount = sum((item.mdr_amount for item in pending_items), Decimal('0'))
            batch.total_net_amount = Money(
                sum((item.net_amount.amount for item in pending_items), Decimal('0')),
                self.currency
            )
            batch.save(update_fields=[
                'total_gross_amount', 'total_gross_amount_currency',
                'total_mdr_amount',
                'total_net_amount', 'total_net_amount_currency',
                'updated_at'
            ])

        logger.info(
            f"Created {settlement_type} batch {batch.id} for retailer {retailer.partner_id} "
            f"with {len(candidates)} transactions"
        )
        return batch, items, failure_reasons

    def _build_item(self, batch, txn, settlement_type) -> BatchItem:
        """
        Resolve the scheme and fees for one transaction

        Never raises for per-item problems: a non-positive amount gives a
        skipped item, a missing or broken scheme gives a failed item.
        """
        item = BatchItem(
            batch=batch,
            transaction=txn,
            gross_amount=txn.amount,
            net_amount=Money(0, self.currency),
            status=ITEM_STATUS_PENDING
        )

        if txn.amount.amount <= 0:
            item.status = ITEM_STATUS_SKIPPED
            item.error_message = str(InvalidAmount(txn.amount.amount))
            return item

        try:
            resolved = self.resolver.resolve_for_transaction(txn)
            retailer_mdr, distributor_mdr = resolved.rates(settlement_type)
            fees = self.calculator.compute(
                txn.amount, retailer_mdr, distributor_mdr, scheme_id=resolved.id
            )
        except InvalidAmount as e:
            item.status = ITEM_STATUS_SKIPPED
            item.error_message = str(e)
            return item
        except (SchemeNotFound, SchemeError) as e:
            logger.warning(f"Transaction {txn.txn_id} not settled: {str(e)}")
            item.status = ITEM_STATUS_FAILED
            item.error_message = str(e)
            return item

        item.scheme = resolved.scheme
        item.scheme_type = resolved.scope
        item.mdr_rate = fees.retailer_mdr
        item.distributor_mdr_rate = fees.distributor_mdr
        item.mdr_amount = fees.retailer_fee
        item.distributor_fee = fees.distributor_fee
        item.distributor_margin = fees.distributor_margin
        item.net_amount = Money(fees.retailer_net, self.currency)
        return item

    def _settle_items(self, batch, pending_items, settlement_type, wallet_credit_id):
        """
        Mark items settled, then write the settlement onto each transaction

        A failed write-back is logged and left for repair_write_backs(),
        the ledger credit is never repeated.
        """
        if not pending_items:
            return

        BatchItem.objects.filter(
            id__in=[item.id for item in pending_items],
            status=ITEM_STATUS_PENDING
        ).update(status=ITEM_STATUS_SETTLED, updated_at=timezone.now())
        for item in pending_items:
            item.status = ITEM_STATUS_SETTLED

        settlement_mode = SETTLEMENT_MODE_BY_TYPE[settlement_type]
        for item in pending_items:
            try:
                self.write_back(item, settlement_mode, wallet_credit_id)
            except (WriteBackFailure, DatabaseError) as e:
                logger.error(
                    f"Write-back failed for transaction {item.transaction_id} "
                    f"in batch {batch.id}: {str(e)}"
                )

    def write_back(self, item: BatchItem, settlement_mode: str, wallet_credit_id: Optional[str]):
        """
        Copy a settled item onto its transaction

        Raises:
            WriteBackFailure: If the transaction is already marked settled
        """
        with db_transaction.atomic():
            updated = PosTransaction.objects.mark_settled(
                item.transaction_id,
                settlement_mode=settlement_mode,
                wallet_credit_id=wallet_credit_id,
                mdr_rate=item.mdr_rate,
                mdr_amount=item.mdr_amount,
                net_amount=item.net_amount.amount,
                mdr_scheme_id=item.scheme_id,
                mdr_scheme_type=item.scheme_type,
                settlement_batch_id=item.batch_id,
            )
        if not updated:
            raise WriteBackFailure(_("transaction is already settled"), item.transaction_id)

    @staticmethod
    def _credit_remarks(settlement_type, count):
        if settlement_type == SETTLEMENT_TYPE_T0:
            return f"InstaCash T+0 settlement for {count} transaction(s)"
        return f"Auto T+1 settlement for {count} transaction(s)"

    # ==========================================
    # RECOVERY
    # ==========================================

    def repair_write_backs(self) -> int:
        """
        Re-apply write-backs that failed after a successful credit

        Returns:
            int: Number of transactions repaired
        """
        repaired = 0
        items = BatchItem.objects.awaiting_write_back().select_related('batch')
        for item in items:
            settlement_mode = SETTLEMENT_MODE_BY_TYPE[item.batch.settlement_type]
            try:
                self.write_back(item, settlement_mode, item.batch.wallet_credit_id)
                repaired += 1
            except (WriteBackFailure, DatabaseError) as e:
                logger.error(f"Write-back repair failed for transaction {item.transaction_id}: {str(e)}")

        if repaired:
            logger.info(f"Repaired {repaired} settlement write-back(s)")
        return repaired

    def recover_stale_batches(self, older_than=None) -> int:
        """
        Finish or fail batches left in processing by an interrupted run

        The aggregate credit is re-issued with the batch's own ledger
        reference, so a credit that already went through is returned by
        the ledger instead of being applied twice.

        Args:
            older_than: Only batches created before this time (default:
                now minus SETTLEMENT_STALE_BATCH_MINUTES)

        Returns:
            int: Number of batches moved to a terminal status
        """
        if older_than is None:
            older_than = timezone.now() - timedelta(minutes=get_settlement_setting('STALE_BATCH_MINUTES'))

        recovered = 0
        for batch in SettlementBatch.objects.stale(older_than).select_related('retailer', 'retailer__parent'):
            try:
                if self.resume_batch(batch):
                    recovered += 1
            except (DatabaseError, SettlementError) as e:
                logger.error(f"Recovery of batch {batch.id} failed: {str(e)}", exc_info=True)

        if recovered:
            logger.info(f"Recovered {recovered} interrupted settlement batch(es)")
        return recovered

    def resume_batch(self, batch: SettlementBatch) -> bool:
        """
        Complete one interrupted batch from its stored items

        Returns:
            bool: True if the batch reached a terminal status
        """
        retailer = batch.retailer
        pending_items = list(batch.items.all().pending())
        settled_items = list(batch.items.all().settled())
        credited_items = pending_items + settled_items
        total_net = sum((item.net_amount.amount for item in credited_items), Decimal('0'))

        logger.warning(
            f"Resuming interrupted batch {batch.id} for retailer {retailer.partner_id}: "
            f"{len(pending_items)} pending, {len(settled_items)} settled item(s)"
        )

        wallet_credit_id = None
        if total_net > 0:
            try:
                wallet_credit_id = self.ledger.credit(
                    retailer,
                    PARTNER_ROLE_RETAILER,
                    get_settlement_setting('DEFAULT_WALLET_TYPE'),
                    Money(total_net, self.currency),
                    batch.ledger_reference,
                    transaction_ref=str(batch.id),
                    remarks=self._credit_remarks(batch.settlement_type, len(credited_items))
                )
            except LedgerCreditFailure as e:
                if settled_items:
                    # Items were only marked settled after a successful credit
                    logger.error(f"Ledger unavailable while resuming batch {batch.id}, retrying later: {str(e)}")
                    return False
                logger.error(f"Ledger credit failed while resuming batch {batch.id}: {str(e)}")
                batch.mark_as_failed(str(e))
                return True

        self._settle_items(batch, pending_items, batch.settlement_type, wallet_credit_id)
        batch.finalize(len(credited_items), batch.total_transactions - len(credited_items), wallet_credit_id)

        if credited_items:
            self._record_accruals(batch, retailer, credited_items)

        logger.info(f"Batch {batch.id} recovered as {batch.status}")
        return True

    # ==========================================
    # EARNINGS
    # ==========================================

    def _record_accruals(self, batch, retailer, settled_items):
        """Record and, where possible, credit the margin and company earning"""
        margin = sum((item.distributor_margin for item in settled_items), Decimal('0'))
        earning = sum((item.distributor_fee for item in settled_items), Decimal('0'))

        company = self._company_partner()
        for role, beneficiary, amount in (
            (ACCRUAL_BENEFICIARY_DISTRIBUTOR, retailer.distributor, margin),
            (ACCRUAL_BENEFICIARY_COMPANY, company, earning),
        ):
            if amount <= 0:
                continue
            accrual, created = EarningAccrual.objects.get_or_create(
                batch=batch,
                beneficiary_role=role,
                defaults={'beneficiary': beneficiary, 'amount': amount}
            )
            if created:
                self.credit_accrual(accrual)

    def _company_partner(self):
        partner_id = get_settlement_setting('COMPANY_PARTNER_ID')
        if not partner_id:
            return None
        return Partner.objects.filter(partner_id=partner_id).first()

    def credit_accrual(self, accrual: EarningAccrual) -> bool:
        """
        Credit one pending accrual to its beneficiary

        Returns:
            bool: True if the accrual is credited
        """
        if accrual.beneficiary_id is None:
            logger.info(f"No beneficiary for {accrual.beneficiary_role} earning of batch {accrual.batch_id}, left pending")
            return False

        if accrual.beneficiary_role == ACCRUAL_BENEFICIARY_DISTRIBUTOR:
            role, tx_type = PARTNER_ROLE_DISTRIBUTOR, LEDGER_TX_TYPE_MARGIN_CREDIT
        else:
            role, tx_type = PARTNER_ROLE_ADMIN, LEDGER_TX_TYPE_EARNING_CREDIT

        amount = round2(accrual.amount)
        if amount <= 0:
            return False

        try:
            entry_id = self.ledger.credit(
                accrual.beneficiary,
                role,
                get_settlement_setting('DEFAULT_WALLET_TYPE'),
                Money(amount, self.currency),
                accrual.ledger_reference,
                transaction_ref=str(accrual.batch_id),
                remarks=f"{accrual.get_beneficiary_role_display()} earning for batch {accrual.batch_id}",
                tx_type=tx_type
            )
        except LedgerCreditFailure as e:
            logger.warning(f"Earning credit for batch {accrual.batch_id} failed, left pending: {str(e)}")
            return False

        accrual.mark_as_credited(entry_id)
        return True

    def credit_pending_accruals(self) -> int:
        """
        Retry every pending accrual, filling in beneficiaries that now exist

        Returns:
            int: Number of accruals credited
        """
        company = self._company_partner()
        credited = 0
        for accrual in EarningAccrual.objects.pending().select_related('batch__retailer__parent', 'beneficiary'):
            if accrual.beneficiary_id is None:
                if accrual.beneficiary_role == ACCRUAL_BENEFICIARY_DISTRIBUTOR:
                    accrual.beneficiary = accrual.batch.retailer.distributor
                else:
                    accrual.beneficiary = company
                if accrual.beneficiary is None:
                    continue
                accrual.save(update_fields=['beneficiary', 'updated_at'])
            if self.credit_accrual(accrual):
                credited += 1
        return credited
