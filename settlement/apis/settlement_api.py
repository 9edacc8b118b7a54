import logging
from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from django.utils.translation import gettext_lazy as _
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters

from settlement.models import PosTransaction, SettlementBatch, CronSettings
from settlement.constants import BATCH_STATUS_FAILED
from settlement.serializers.settlement_serializer import (
    PosTransactionSerializer,
    SettlementBatchListSerializer,
    SettlementBatchDetailSerializer,
    InstantSettlementSerializer,
    CronSettingsSerializer,
    SettlementPauseSerializer,
)
from settlement.services.settlement_service import SettlementService
from settlement.services.scheduler import get_scheduler
from settlement.permissions import HasPartnerProfile, IsBatchOwner
from settlement.exceptions import (
    InvalidSettlementRequest,
    SettlementNotAllowed,
    DuplicateSettlementAttempt,
)


logger = logging.getLogger(__name__)


# ==========================================
# SETTLEMENT BATCH VIEWSET
# ==========================================


class SettlementBatchViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for settlement batches

    Endpoints:
    List: GET /api/settlement/batches/
    Retrieve: GET /api/settlement/batches/{id}/
    """
    filter_backends = [
        DjangoFilterBackend,
        filters.OrderingFilter
    ]
    serializer_class = SettlementBatchListSerializer
    permission_classes = [permissions.IsAuthenticated, IsBatchOwner]
    filterset_fields = ['status', 'settlement_type', 'trigger']
    ordering_fields = ['created_at', 'completed_at']

    def get_queryset(self):
        queryset = SettlementBatch.objects.with_retailer_details().order_by('-created_at')

        if self.request.user.is_staff:
            return queryset

        partner = getattr(self.request.user, 'partner', None)
        if partner is None:
            return queryset.none()
        return queryset.for_retailer(partner)

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return SettlementBatchDetailSerializer
        return self.serializer_class


# ==========================================
# INSTANT (T+0) SETTLEMENT VIEWSET
# ==========================================


class InstantSettlementViewSet(viewsets.ViewSet):
    """
    InstaCash settlement for the requesting retailer

    Endpoints:
    Settle: POST /api/settlement/instant/
    Unsettled: GET /api/settlement/unsettled/
    """
    permission_classes = [permissions.IsAuthenticated, HasPartnerProfile]

    def list(self, request):
        """Captured transactions of the retailer still waiting for settlement"""
        transactions = (
            PosTransaction.objects.for_retailer(request.user.partner)
            .successful()
            .unsettled()
            .order_by('-transaction_time')
        )
        return Response({
            'unsettled_count': transactions.count(),
            'transactions': PosTransactionSerializer(transactions[:200], many=True).data,
        })

    def create(self, request):
        """
        Settle the selected transactions now

        POST /api/settlement/instant/

        Body:
        {
            "transaction_ids": ["uuid", ...]
        }

        Responses:
        201: Batch summary (completed or partial)
        400: Invalid selection or T+0 not enabled for the retailer
        409: Transactions already settled or in a pending batch
        502: Ledger credit failed, nothing was settled
        """
        serializer = InstantSettlementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        retailer = request.user.partner
        logger.info(
            f"InstaCash requested by {request.user.pk} for retailer {retailer.partner_id} "
            f"({len(serializer.validated_data['transaction_ids'])} transactions)"
        )

        try:
            summary = SettlementService().settle_instant(
                retailer,
                serializer.validated_data['transaction_ids'],
                requested_by=str(request.user.pk)
            )
        except DuplicateSettlementAttempt as e:
            return Response(
                {"detail": str(e), "transaction_ids": e.transaction_ids},
                status=status.HTTP_409_CONFLICT
            )
        except (InvalidSettlementRequest, SettlementNotAllowed) as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        if summary.status == BATCH_STATUS_FAILED and summary.batch.failure_reason:
            return Response(
                {"detail": _("Wallet credit failed. Please try again later."), **summary.to_dict()},
                status=status.HTTP_502_BAD_GATEWAY
            )

        return Response(summary.to_dict(), status=status.HTTP_201_CREATED)


# ==========================================
# T+1 SCHEDULE VIEWSET
# ==========================================


class CronSettingsViewSet(viewsets.ViewSet):
    """
    Schedule of the T+1 sweep

    Endpoints:
    Read: GET /api/settlement/schedule/
    Update: PUT/PATCH /api/settlement/schedule/
    Run now: POST /api/settlement/schedule/run-now/
    """
    permission_classes = [permissions.IsAdminUser]

    def retrieve(self, request):
        cron_settings = CronSettings.objects.load()
        data = CronSettingsSerializer(cron_settings).data
        data['scheduler_state'] = get_scheduler().state
        return Response(data)

    def update(self, request, partial=False):
        cron_settings = CronSettings.objects.load()
        serializer = CronSettingsSerializer(cron_settings, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save(updated_by=str(request.user.pk))

        logger.info(
            f"T+1 schedule updated by {request.user.pk}: "
            f"{cron_settings.schedule_hour:02d}:{cron_settings.schedule_minute:02d} "
            f"{cron_settings.timezone}, enabled={cron_settings.is_enabled}"
        )
        return Response(serializer.data)

    def partial_update(self, request):
        return self.update(request, partial=True)

    @action(detail=False, methods=['post'], url_path='run-now')
    def run_now(self, request):
        """
        Run the T+1 sweep immediately

        Returns 409 when a run is already in progress.
        """
        result = get_scheduler().trigger(source=f"user {request.user.pk}")
        if not result.started:
            return Response(result.to_dict(), status=status.HTTP_409_CONFLICT)
        return Response(result.to_dict())


class SettlementPauseViewSet(viewsets.ViewSet):
    """
    Pause or resume T+1 settlement for one partner

    POST /api/settlement/pause/
    """
    permission_classes = [permissions.IsAdminUser]

    def create(self, request):
        serializer = SettlementPauseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        partner = serializer.validated_data['partner']
        if serializer.validated_data['paused']:
            partner.pause_t1_settlement(paused_by=str(request.user.pk))
        else:
            partner.resume_t1_settlement()

        logger.info(
            f"T+1 settlement {'paused' if partner.t1_settlement_paused else 'resumed'} "
            f"for {partner.role} {partner.partner_id} by {request.user.pk}"
        )
        return Response({
            'partner_id': partner.partner_id,
            'entity_type': partner.role,
            't1_settlement_paused': partner.t1_settlement_paused,
            't1_settlement_paused_at': partner.t1_settlement_paused_at,
            't1_settlement_paused_by': partner.t1_settlement_paused_by,
        })
