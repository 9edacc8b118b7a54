"""
Settlement - T+1 Sweep Service

One pass of the auto T+1 settlement: every captured, unsettled
transaction from before today (in the configured timezone) is settled in
one batch per retailer. Paused retailers and retailers of a paused
distributor are left untouched.
"""
import logging
from collections import OrderedDict
from datetime import datetime, time
from typing import Optional, Dict, Any

from django.db.models import Exists, OuterRef, Q
from django.utils import timezone

from settlement.models import Partner, PosTransaction, BatchItem, CronSettings
from settlement.constants import (
    BATCH_STATUS_FAILED,
    ITEM_STATUS_FAILED,
    ITEM_STATUS_SKIPPED,
    RUN_STATUS_SUCCESS,
    RUN_STATUS_PARTIAL,
    RUN_STATUS_FAILED,
)
from settlement.exceptions import SettlementError
from settlement.services.settlement_service import SettlementService
from settlement.settings import get_settlement_setting


logger = logging.getLogger(__name__)


class RunResult:
    """
    Outcome of a settlement run request

    Attributes:
        started: False when another run was already in progress
        message: Human readable summary
        processed: Transactions settled
        failed: Transactions not settled
        status: RUN_STATUS_* value, None when the run did not start
    """

    def __init__(self, started: bool, message: str, processed: int = 0, failed: int = 0,
                 status: Optional[str] = None, skipped_retailers: int = 0, batches: int = 0):
        self.started = started
        self.message = message
        self.processed = processed
        self.failed = failed
        self.status = status
        self.skipped_retailers = skipped_retailers
        self.batches = batches

    def __repr__(self):
        return (
            f"<RunResult started={self.started} status={self.status} "
            f"processed={self.processed} failed={self.failed}>"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'started': self.started,
            'message': self.message,
            'processed': self.processed,
            'failed': self.failed,
            'status': self.status,
            'skipped_retailers': self.skipped_retailers,
            'batches': self.batches,
        }


def run_status(processed, failed, failed_batches=0):
    """failed when nothing settled but something failed, partial on any failure"""
    if processed == 0 and failed > 0:
        return RUN_STATUS_FAILED
    if failed > 0 or failed_batches > 0:
        return RUN_STATUS_PARTIAL
    return RUN_STATUS_SUCCESS


def start_of_day(now, tz):
    """Midnight of ``now``'s calendar day in ``tz``, as an aware datetime"""
    local_date = now.astimezone(tz).date()
    return tz.localize(datetime.combine(local_date, time.min))


class T1SweepService:
    """Runs one T+1 sweep and records its outcome on CronSettings"""

    def __init__(self, settlement_service=None):
        self.settlement_service = settlement_service or SettlementService()
        self.page_size = get_settlement_setting('T1_PAGE_SIZE')

    def candidate_queryset(self, cutoff):
        """
        Eligible transactions not held by a blocking batch item

        Transactions referenced by a blocking batch item are left out so
        an in-flight InstaCash batch does not fail the retailer's group.
        """
        blocked = BatchItem.objects.get_queryset().blocking().values('transaction_id')
        return PosTransaction.objects.eligible_for_t1(cutoff).exclude(id__in=blocked)

    def eligible_transactions(self, cutoff, paused_ids=()):
        """
        One page of transactions to settle

        Paused retailers and retailers of a paused distributor are left out
        before the page is cut. Transactions that already failed in an
        earlier batch come after the ones never attempted, so a retailer
        with unresolvable transactions cannot fill every page.
        """
        paused_ids = list(paused_ids)
        failed_before = BatchItem.objects.filter(
            transaction_id=OuterRef('pk'),
            status__in=[ITEM_STATUS_FAILED, ITEM_STATUS_SKIPPED]
        )
        return list(
            self.candidate_queryset(cutoff)
            .exclude(retailer_id__in=paused_ids)
            .exclude(retailer__parent_id__in=paused_ids)
            .annotate(failed_before=Exists(failed_before))
            .order_by('failed_before', 'transaction_time')
            .select_related('retailer', 'retailer__parent')[:self.page_size]
        )

    def paused_retailer_count(self, cutoff, paused_ids):
        """Retailers with eligible transactions held back by a pause flag"""
        paused_ids = list(paused_ids)
        if not paused_ids:
            return 0
        return (
            self.candidate_queryset(cutoff)
            .filter(Q(retailer_id__in=paused_ids) | Q(retailer__parent_id__in=paused_ids))
            .values('retailer_id')
            .distinct()
            .count()
        )

    def run(self, now=None) -> RunResult:
        """
        Sweep eligible transactions and persist last_run_* whatever happens

        Returns:
            RunResult
        """
        now = now or timezone.now()
        cron_settings = CronSettings.objects.load()

        try:
            result = self._sweep(cron_settings, now)
        except Exception as e:
            logger.error(f"[T1-Sweep] Run failed: {str(e)}", exc_info=True)
            result = RunResult(
                started=True,
                message=f"T+1 settlement failed: {str(e)}",
                status=RUN_STATUS_FAILED
            )

        cron_settings.record_run(result.status, result.message, result.processed, result.failed)
        logger.info(f"[T1-Sweep] {result.status}: {result.message}")
        return result

    def _sweep(self, cron_settings, now) -> RunResult:
        cutoff = start_of_day(now, cron_settings.tzinfo)

        recovered = self.settlement_service.recover_stale_batches()
        if recovered:
            logger.info(f"[T1-Sweep] Recovered {recovered} interrupted batch(es) before sweeping")

        repaired = self.settlement_service.repair_write_backs()
        if repaired:
            logger.info(f"[T1-Sweep] Repaired {repaired} write-back(s) before sweeping")

        paused_ids = Partner.objects.paused_ids()
        transactions = self.eligible_transactions(cutoff, paused_ids)
        skipped = self.paused_retailer_count(cutoff, paused_ids)
        logger.info(
            f"[T1-Sweep] {len(transactions)} eligible transaction(s) before {cutoff.isoformat()}, "
            f"{len(paused_ids)} paused partner(s), {skipped} paused retailer(s) skipped"
        )

        if not transactions and not skipped:
            return RunResult(
                started=True,
                message="No eligible transactions to settle",
                status=RUN_STATUS_SUCCESS
            )

        groups = OrderedDict()
        for txn in transactions:
            groups.setdefault(txn.retailer_id, []).append(txn)

        processed = failed = failed_batches = batches = 0
        for group in groups.values():
            retailer = group[0].retailer

            try:
                summary = self.settlement_service.settle_retailer_group(
                    retailer, group, metadata={'cutoff': cutoff.isoformat()}
                )
            except SettlementError as e:
                logger.warning(f"[T1-Sweep] Retailer {retailer.partner_id} not settled: {str(e)}")
                failed += len(group)
                failed_batches += 1
                continue
            except Exception as e:
                logger.error(
                    f"[T1-Sweep] Unexpected error settling retailer {retailer.partner_id}: {str(e)}",
                    exc_info=True
                )
                failed += len(group)
                failed_batches += 1
                continue

            batches += 1
            processed += summary.settled
            failed += summary.failed
            if summary.status == BATCH_STATUS_FAILED:
                failed_batches += 1

        message = (
            f"Settled {processed} transaction(s) in {batches} batch(es), {failed} failed, "
            f"{skipped} paused retailer(s) skipped"
        )
        return RunResult(
            started=True,
            message=message,
            processed=processed,
            failed=failed,
            status=run_status(processed, failed, failed_batches),
            skipped_retailers=skipped,
            batches=batches
        )
