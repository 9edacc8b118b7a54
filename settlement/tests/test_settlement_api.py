"""
Settlement - API Tests

Test Coverage:
1. InstantSettlementAPITestCase - InstaCash endpoint and unsettled list
2. SettlementBatchAPITestCase - batch visibility per user
3. ScheduleAPITestCase - T+1 schedule read/update and run-now
4. SettlementPauseAPITestCase - pause and resume per partner
5. SchemeAPITestCase - scheme management and resolution preview
"""
from decimal import Decimal
from unittest.mock import Mock, patch
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework.test import APIClient, APITestCase
from rest_framework import status

from settlement.models import Partner, Scheme, CronSettings, SettlementBatch
from settlement.services.settlement_service import SettlementService
from settlement.services.ledger_service import DatabaseLedger
from settlement.services.scheduler import ALREADY_RUNNING_MESSAGE
from settlement.services.sweep_service import RunResult
from settlement.constants import (
    SETTLEMENT_ALLOWED_T1,
    SCHEME_STATUS_INACTIVE,
    BATCH_STATUS_COMPLETED,
    BATCH_STATUS_FAILED,
    RUN_STATUS_SUCCESS,
)
from settlement.exceptions import LedgerCreditFailure
from settlement.tests.helpers import make_distributor, make_retailer, make_scheme, make_transaction


User = get_user_model()


def make_user(username, is_staff=False):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='password123',
        is_staff=is_staff
    )


class InstantSettlementAPITestCase(APITestCase):
    """Test case for POST /api/settlement/instant/ and GET /api/settlement/unsettled/"""

    def setUp(self):
        self.client = APIClient()
        self.user = make_user('retailer1')
        self.distributor = make_distributor()
        self.retailer = make_retailer(distributor=self.distributor, user=self.user)
        make_scheme(retailer=self.retailer, card_type='CREDIT', t0=('2.2', '2.0'))
        self.txn = make_transaction(self.retailer, amount='1000.00')
        self.url = reverse('settlement-instant')

    def test_unauthenticated_request_rejected(self):
        response = self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        self.assertIn(response.status_code, [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN])

    def test_user_without_partner_rejected(self):
        self.client.force_authenticate(user=make_user('nobody'))

        response = self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_settle_selected_transactions(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], BATCH_STATUS_COMPLETED)
        self.assertEqual(response.data['settled'], 1)
        self.assertEqual(Decimal(response.data['totals']['net']), Decimal('978.00'))

        self.txn.refresh_from_db()
        self.assertTrue(self.txn.wallet_credited)

    def test_second_request_conflicts(self):
        self.client.force_authenticate(user=self.user)
        self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        response = self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['transaction_ids'], [self.txn.txn_id])

    def test_t1_only_retailer_rejected(self):
        self.retailer.settlement_mode_allowed = SETTLEMENT_ALLOWED_T1
        self.retailer.save()
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(SettlementBatch.objects.exists())

    def test_empty_selection_rejected(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, {'transaction_ids': []}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_id_rejected(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post(self.url, {'transaction_ids': ['not-a-uuid']}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_ledger_failure_returns_bad_gateway(self):
        self.client.force_authenticate(user=self.user)

        with patch.object(DatabaseLedger, 'credit', side_effect=LedgerCreditFailure('ledger down')):
            response = self.client.post(self.url, {'transaction_ids': [str(self.txn.id)]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['status'], BATCH_STATUS_FAILED)

        self.txn.refresh_from_db()
        self.assertFalse(self.txn.wallet_credited)

    def test_unsettled_list(self):
        other_retailer = make_retailer(partner_id='RT002')
        make_transaction(other_retailer)
        make_transaction(self.retailer, display_status='FAILED')
        self.client.force_authenticate(user=self.user)

        response = self.client.get(reverse('settlement-unsettled'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['unsettled_count'], 1)
        self.assertEqual(response.data['transactions'][0]['txn_id'], self.txn.txn_id)


class SettlementBatchAPITestCase(APITestCase):
    """Test case for GET /api/settlement/batches/"""

    def setUp(self):
        self.client = APIClient()
        self.user1 = make_user('retailer1')
        self.user2 = make_user('retailer2')
        self.retailer1 = make_retailer(partner_id='RT001', user=self.user1)
        self.retailer2 = make_retailer(partner_id='RT002', user=self.user2)
        make_scheme(card_type='CREDIT')

        service = SettlementService()
        self.batch1 = service.settle_instant(self.retailer1, [make_transaction(self.retailer1).id]).batch
        self.batch2 = service.settle_instant(self.retailer2, [make_transaction(self.retailer2).id]).batch

    def test_retailer_sees_only_own_batches(self):
        self.client.force_authenticate(user=self.user1)

        response = self.client.get(reverse('settlement-batch-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([batch['id'] for batch in response.data], [str(self.batch1.id)])

    def test_staff_sees_all_batches(self):
        self.client.force_authenticate(user=make_user('ops', is_staff=True))

        response = self.client.get(reverse('settlement-batch-list'))

        self.assertEqual(len(response.data), 2)

    def test_batch_detail_includes_items(self):
        self.client.force_authenticate(user=self.user1)

        response = self.client.get(reverse('settlement-batch-detail', args=[self.batch1.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(response.data['ledger_reference'], f"INSTACASH-{self.batch1.id}")

    def test_other_retailers_batch_not_found(self):
        self.client.force_authenticate(user=self.user1)

        response = self.client.get(reverse('settlement-batch-detail', args=[self.batch2.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ScheduleAPITestCase(APITestCase):
    """Test case for the T+1 schedule endpoints"""

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user('ops', is_staff=True)
        self.url = reverse('settlement-schedule')

    def test_non_staff_rejected(self):
        self.client.force_authenticate(user=make_user('retailer1'))

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_read_schedule(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('schedule_hour', response.data)
        self.assertIn('scheduler_state', response.data)

    def test_update_schedule(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.patch(
            self.url,
            {'schedule_hour': 9, 'schedule_minute': 30, 'timezone': 'Asia/Kolkata', 'is_enabled': False},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        cron_settings = CronSettings.objects.load()
        self.assertEqual((cron_settings.schedule_hour, cron_settings.schedule_minute), (9, 30))
        self.assertFalse(cron_settings.is_enabled)
        self.assertEqual(cron_settings.updated_by, str(self.admin.pk))

    def test_invalid_schedule_rejected(self):
        self.client.force_authenticate(user=self.admin)

        for data in ({'schedule_hour': 24}, {'schedule_minute': 60}, {'timezone': 'Mars/Olympus'}):
            response = self.client.patch(self.url, data, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_run_now(self):
        scheduler = Mock()
        scheduler.trigger.return_value = RunResult(
            started=True,
            message="No eligible transactions to settle",
            status=RUN_STATUS_SUCCESS
        )
        self.client.force_authenticate(user=self.admin)

        with patch('settlement.apis.settlement_api.get_scheduler', return_value=scheduler):
            response = self.client.post(reverse('settlement-schedule-run-now'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['started'])
        scheduler.trigger.assert_called_once_with(source=f"user {self.admin.pk}")

    def test_run_now_while_running_conflicts(self):
        scheduler = Mock()
        scheduler.trigger.return_value = RunResult(started=False, message=ALREADY_RUNNING_MESSAGE)
        self.client.force_authenticate(user=self.admin)

        with patch('settlement.apis.settlement_api.get_scheduler', return_value=scheduler):
            response = self.client.post(reverse('settlement-schedule-run-now'))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['message'], ALREADY_RUNNING_MESSAGE)


class SettlementPauseAPITestCase(APITestCase):
    """Test case for POST /api/settlement/pause/"""

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user('ops', is_staff=True)
        self.distributor = make_distributor()
        self.retailer = make_retailer(distributor=self.distributor)
        self.url = reverse('settlement-pause')
        self.client.force_authenticate(user=self.admin)

    def test_pause_and_resume_retailer(self):
        response = self.client.post(
            self.url, {'partner_id': 'RT001', 'entity_type': 'retailer', 'paused': True}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['t1_settlement_paused'])
        self.retailer.refresh_from_db()
        self.assertTrue(self.retailer.t1_settlement_paused)
        self.assertEqual(self.retailer.t1_settlement_paused_by, str(self.admin.pk))

        self.client.post(self.url, {'partner_id': 'RT001', 'entity_type': 'retailer', 'paused': False}, format='json')

        self.retailer.refresh_from_db()
        self.assertFalse(self.retailer.t1_settlement_paused)

    def test_pause_distributor(self):
        response = self.client.post(
            self.url, {'partner_id': 'DT001', 'entity_type': 'distributor', 'paused': True}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(Partner.objects.get(partner_id='DT001').t1_settlement_paused)

    def test_wrong_entity_type_rejected(self):
        response = self.client.post(
            self.url, {'partner_id': 'RT001', 'entity_type': 'distributor', 'paused': True}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('entity_type', response.data)

    def test_unknown_partner_rejected(self):
        response = self.client.post(
            self.url, {'partner_id': 'RT999', 'entity_type': 'retailer', 'paused': True}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SchemeAPITestCase(APITestCase):
    """Test case for /api/schemes/"""

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user('ops', is_staff=True)
        self.retailer = make_retailer()
        self.client.force_authenticate(user=self.admin)

    def scheme_payload(self, **overrides):
        payload = {
            'scope': 'global',
            'mode': 'CARD',
            'card_type': 'CREDIT',
            'brand_type': 'master card',
            'retailer_mdr_t1': '1.2',
            'distributor_mdr_t1': '1.0',
            'retailer_mdr_t0': '2.2',
            'distributor_mdr_t0': '2.0',
        }
        payload.update(overrides)
        return payload

    def test_create_scheme(self):
        response = self.client.post(reverse('scheme-list'), self.scheme_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['brand_type'], 'MASTERCARD')
        self.assertEqual(response.data['specificity'], 2)

    def test_create_custom_scheme(self):
        response = self.client.post(
            reverse('scheme-list'),
            self.scheme_payload(scope='custom', owner_retailer='RT001'),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Scheme.objects.get(id=response.data['id']).owner_retailer, self.retailer)

    def test_retailer_rate_below_distributor_rate_rejected(self):
        response = self.client.post(
            reverse('scheme-list'),
            self.scheme_payload(retailer_mdr_t0='1.5'),
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('retailer_mdr_t0', response.data)
        self.assertFalse(Scheme.objects.exists())

    def test_custom_scheme_without_owner_rejected(self):
        response = self.client.post(reverse('scheme-list'), self.scheme_payload(scope='custom'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('owner_retailer', response.data)

    def test_delete_not_allowed(self):
        scheme = make_scheme()

        response = self.client.delete(reverse('scheme-detail', args=[scheme.id]))

        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertTrue(Scheme.objects.filter(id=scheme.id).exists())

    def test_deactivate(self):
        scheme = make_scheme()

        response = self.client.post(reverse('scheme-deactivate', args=[scheme.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], SCHEME_STATUS_INACTIVE)

    def test_resolve_with_fees(self):
        scheme = make_scheme(retailer=self.retailer, card_type='CREDIT')

        response = self.client.post(reverse('scheme-resolve'), {
            'retailer_id': 'RT001',
            'mode': 'CARD',
            'card_type': 'CREDIT',
            'brand_type': 'VISA',
            'settlement_type': 'T1',
            'amount': '1000.00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['scheme']['id'], str(scheme.id))
        self.assertEqual(response.data['scope'], 'custom')
        self.assertEqual(Decimal(response.data['fees']['retailer_fee']), Decimal('12'))
        self.assertEqual(Decimal(response.data['fees']['distributor_margin']), Decimal('2'))
        self.assertEqual(Decimal(response.data['fees']['retailer_net']), Decimal('988'))

    def test_resolve_without_match(self):
        response = self.client.post(reverse('scheme-resolve'), {'mode': 'UPI'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_resolve_unknown_retailer(self):
        response = self.client.post(reverse('scheme-resolve'), {'retailer_id': 'RT999', 'mode': 'CARD'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
