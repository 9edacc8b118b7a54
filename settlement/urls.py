from django.urls import path, include
from rest_framework.routers import DefaultRouter

from settlement.apis.settlement_api import (
    SettlementBatchViewSet,
    InstantSettlementViewSet,
    CronSettingsViewSet,
    SettlementPauseViewSet,
)
from settlement.apis.scheme_api import SchemeViewSet

# Create a router and register viewsets
router = DefaultRouter()
router.register(r'settlement/batches', SettlementBatchViewSet, basename='settlement-batch')
router.register(r'schemes', SchemeViewSet, basename='scheme')

instant_settlement = InstantSettlementViewSet.as_view({'post': 'create'})
unsettled_transactions = InstantSettlementViewSet.as_view({'get': 'list'})
schedule = CronSettingsViewSet.as_view({'get': 'retrieve', 'put': 'update', 'patch': 'partial_update'})
schedule_run_now = CronSettingsViewSet.as_view({'post': 'run_now'})
settlement_pause = SettlementPauseViewSet.as_view({'post': 'create'})

# URLs for the API
urlpatterns = [
    path('api/settlement/instant/', instant_settlement, name='settlement-instant'),
    path('api/settlement/unsettled/', unsettled_transactions, name='settlement-unsettled'),
    path('api/settlement/schedule/', schedule, name='settlement-schedule'),
    path('api/settlement/schedule/run-now/', schedule_run_now, name='settlement-schedule-run-now'),
    path('api/settlement/pause/', settlement_pause, name='settlement-pause'),

    # API routes
    path('api/', include(router.urls)),
]
