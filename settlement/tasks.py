import logging
from celery import shared_task

from settlement.services.scheduler import get_scheduler
from settlement.services.settlement_service import SettlementService


logger = logging.getLogger(__name__)


@shared_task
def run_t1_settlement_task(source='celery'):
    """
    Run the T+1 sweep now (async task)

    Goes through the same run guard as the scheduler thread of this
    worker process, so a second request while a run is in progress is a
    no-op.

    Args:
        source: Who asked for the run, for logging

    Returns:
        dict: Run result
    """
    logger.info(f"[Task] T+1 settlement requested by {source}")
    result = get_scheduler().trigger(source=source)

    if not result.started:
        logger.info(f"[Task] {result.message}")
    else:
        logger.info(
            f"[Task] T+1 settlement finished as {result.status}: "
            f"{result.processed} processed, {result.failed} failed"
        )
    return result.to_dict()


@shared_task(bind=True, max_retries=3)
def repair_write_backs_task(self):
    """
    Finish interrupted batches, then re-apply write-backs that failed
    after a successful credit

    Returns:
        int: Number of transactions repaired
    """
    try:
        service = SettlementService()
        recovered = service.recover_stale_batches()
        if recovered:
            logger.info(f"[Task] Recovered {recovered} interrupted settlement batch(es)")
        repaired = service.repair_write_backs()
        logger.info(f"[Task] Repaired {repaired} settlement write-back(s)")
        return repaired
    except Exception as e:
        logger.error(f"[Task] Error repairing write-backs: {str(e)}", exc_info=True)

        countdown = 60 * (2 ** self.request.retries)
        logger.warning(
            f"[Task] Retrying write-back repair in {countdown} seconds "
            f"(attempt {self.request.retries + 1}/3)"
        )
        raise self.retry(exc=e, countdown=countdown)


@shared_task(bind=True, max_retries=2)
def credit_pending_accruals_task(self):
    """
    Credit distributor margins and company earnings still pending

    Returns:
        dict: Processing statistics
    """
    try:
        credited = SettlementService().credit_pending_accruals()
        logger.info(f"[Task] Credited {credited} pending earning accrual(s)")
        return {
            'status': 'success',
            'accruals_credited': credited
        }
    except Exception as e:
        logger.error(f"[Task] Error crediting pending accruals: {str(e)}", exc_info=True)
        raise self.retry(exc=e, countdown=300)
