from settlement.serializers.settlement_serializer import (
    PosTransactionSerializer,
    BatchItemSerializer,
    SettlementBatchListSerializer,
    SettlementBatchDetailSerializer,
    InstantSettlementSerializer,
    CronSettingsSerializer,
    SettlementPauseSerializer,
)
from settlement.serializers.scheme_serializer import SchemeSerializer, SchemeResolveSerializer


__all__ = [
    'PosTransactionSerializer',
    'BatchItemSerializer',
    'SettlementBatchListSerializer',
    'SettlementBatchDetailSerializer',
    'InstantSettlementSerializer',
    'CronSettingsSerializer',
    'SettlementPauseSerializer',
    'SchemeSerializer',
    'SchemeResolveSerializer',
]
