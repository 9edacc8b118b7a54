import logging
from rest_framework import viewsets, mixins, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters

from settlement.models import Scheme
from settlement.serializers.scheme_serializer import SchemeSerializer, SchemeResolveSerializer
from settlement.services.fee_service import FeeCalculator
from settlement.services.scheme_service import SchemeResolver
from settlement.exceptions import SchemeNotFound, SchemeError, InvalidAmount


logger = logging.getLogger(__name__)


class SchemeViewSet(mixins.ListModelMixin,
                    mixins.RetrieveModelMixin,
                    mixins.CreateModelMixin,
                    mixins.UpdateModelMixin,
                    viewsets.GenericViewSet):
    """
    API endpoint for MDR schemes

    Schemes are never deleted, only deactivated.

    Endpoints:
    List/Create: GET/POST /api/schemes/
    Retrieve/Update: GET/PUT/PATCH /api/schemes/{id}/
    Deactivate: POST /api/schemes/{id}/deactivate/
    Activate: POST /api/schemes/{id}/activate/
    Resolve: POST /api/schemes/resolve/
    """
    queryset = Scheme.objects.select_related('owner_retailer').order_by('-effective_date')
    serializer_class = SchemeSerializer
    permission_classes = [permissions.IsAdminUser]
    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter
    ]
    filterset_fields = ['scope', 'mode', 'card_type', 'brand_type', 'status']
    search_fields = ['name', 'owner_retailer__partner_id', 'card_classification']
    ordering_fields = ['effective_date', 'created_at']

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        scheme = self.get_object()
        scheme.deactivate()
        logger.info(f"Scheme {scheme.id} deactivated by {request.user.pk}")
        return Response(self.get_serializer(scheme).data)

    @action(detail=True, methods=['post'])
    def activate(self, request, pk=None):
        scheme = self.get_object()
        scheme.activate()
        logger.info(f"Scheme {scheme.id} activated by {request.user.pk}")
        return Response(self.get_serializer(scheme).data)

    @action(detail=False, methods=['post'])
    def resolve(self, request):
        """
        Preview which scheme, rates and fees apply to a transaction

        POST /api/schemes/resolve/

        Body:
        {
            "retailer_id": "RT001" (optional),
            "mode": "CARD",
            "card_type": "CREDIT" (optional),
            "brand_type": "VISA" (optional),
            "card_classification": "PLATINUM" (optional),
            "settlement_type": "T1",
            "amount": "1000.00" (optional)
        }
        """
        serializer = SchemeResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            resolved = SchemeResolver().resolve(
                data.get('retailer_id'),
                data['mode'],
                card_type=data.get('card_type'),
                brand_type=data.get('brand_type'),
                card_classification=data.get('card_classification')
            )
        except SchemeNotFound as e:
            return Response({"detail": str(e)}, status=status.HTTP_404_NOT_FOUND)

        retailer_mdr, distributor_mdr = resolved.rates(data['settlement_type'])
        response_data = {
            'scheme': SchemeSerializer(resolved.scheme).data,
            'scope': resolved.scope,
            'level': resolved.level,
            'settlement_type': data['settlement_type'],
            'retailer_mdr': str(retailer_mdr),
            'distributor_mdr': str(distributor_mdr),
        }

        if data.get('amount') is not None:
            try:
                fees = FeeCalculator().compute(
                    data['amount'], retailer_mdr, distributor_mdr, scheme_id=resolved.id
                )
            except (SchemeError, InvalidAmount) as e:
                return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
            response_data['fees'] = fees.to_dict()

        return Response(response_data)
