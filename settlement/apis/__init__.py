from settlement.apis.settlement_api import (
    SettlementBatchViewSet,
    InstantSettlementViewSet,
    CronSettingsViewSet,
    SettlementPauseViewSet,
)
from settlement.apis.scheme_api import SchemeViewSet


__all__ = [
    'SettlementBatchViewSet',
    'InstantSettlementViewSet',
    'CronSettingsViewSet',
    'SettlementPauseViewSet',
    'SchemeViewSet',
]
