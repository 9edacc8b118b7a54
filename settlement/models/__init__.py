from settlement.models.partner import Partner, PartnerQuerySet, PartnerManager
from settlement.models.scheme import Scheme, SchemeQuerySet, SchemeManager
from settlement.models.transaction import (
    PosTransaction,
    PosTransactionQuerySet,
    PosTransactionManager
)
from settlement.models.batch import (
    SettlementBatch,
    SettlementBatchQuerySet,
    SettlementBatchManager,
    BatchItem,
    BatchItemQuerySet,
    BatchItemManager
)
from settlement.models.cron import CronSettings, CronSettingsManager
from settlement.models.ledger import Wallet, WalletManager, LedgerEntry, EarningAccrual


__all__ = [
    'Partner',
    'PartnerQuerySet',
    'PartnerManager',
    'Scheme',
    'SchemeQuerySet',
    'SchemeManager',
    'PosTransaction',
    'PosTransactionQuerySet',
    'PosTransactionManager',
    'SettlementBatch',
    'SettlementBatchQuerySet',
    'SettlementBatchManager',
    'BatchItem',
    'BatchItemQuerySet',
    'BatchItemManager',
    'CronSettings',
    'CronSettingsManager',
    # Ledger models
    'Wallet',
    'WalletManager',
    'LedgerEntry',
    'EarningAccrual',
]
