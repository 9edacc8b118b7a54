from settlement.services.fee_service import FeeCalculator, FeeCalculationResult
from settlement.services.scheme_service import SchemeResolver, ResolvedScheme
from settlement.services.ledger_service import LedgerService, DatabaseLedger, RemoteLedger
from settlement.services.settlement_service import SettlementService, SettlementSummary
from settlement.services.sweep_service import T1SweepService, RunResult
from settlement.services.scheduler import T1Scheduler, RunGuard, get_scheduler


__all__ = [
    'FeeCalculator',
    'FeeCalculationResult',
    'SchemeResolver',
    'ResolvedScheme',
    'LedgerService',
    'DatabaseLedger',
    'RemoteLedger',
    'SettlementService',
    'SettlementSummary',
    'T1SweepService',
    'RunResult',
    'T1Scheduler',
    'RunGuard',
    'get_scheduler',
]
