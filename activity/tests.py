"""
Unit tests for the activity feed.

Tests:
- Description rendering
- Placement capture at record time
- Hierarchy-scoped feeds and location prefixes
- Feed endpoint
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from activity.events import CommissionRecorded, WithdrawalPaid, WithdrawalApproved
from activity.models import ActivityLog, ActivityType
from activity.services import ActivityFormatter, ActivityService
from commissions.services import CommissionProcessingService
from commissions.tests import RatesMixin
from hierarchy.models import Role
from hierarchy.services import HierarchyResolver
from hierarchy.tests import HierarchyFixtureMixin

User = get_user_model()


class ActivityFormatterTest(TestCase):
    """Test description rendering"""

    def test_describe(self):
        event = CommissionRecorded(
            amount=Decimal('70'), actor_role=Role.AGENT, actor_code='AG001', actor_name='Asha Rao'
        )
        self.assertEqual(ActivityFormatter.describe(event), 'Recorded ₹70.00 for Asha Rao')

    def test_paid_uses_to(self):
        event = WithdrawalPaid(
            amount=Decimal('1250.5'), actor_role=Role.AGENT, actor_code='AG001',
            actor_name='Asha Rao', withdrawal_id=7, transaction_id='UTR1'
        )
        self.assertEqual(ActivityFormatter.describe(event), 'Paid ₹1250.50 to Asha Rao')
        self.assertEqual(event.target_id, '7')

    def test_metadata_is_json_safe(self):
        event = WithdrawalApproved(
            amount=Decimal('50.00'), actor_role=Role.AGENT, actor_code='AG001',
            actor_name='Asha Rao', withdrawal_id=3, balance_before=Decimal('70.00')
        )
        metadata = event.metadata()
        self.assertEqual(metadata['amount'], '50.00')
        self.assertEqual(metadata['balance_before'], '70.00')
        self.assertNotIn('notes', metadata)


class ActivityFeedFixtureMixin(HierarchyFixtureMixin, RatesMixin):

    def build_feed(self):
        self.build_hierarchy()
        self.configure_rates()
        CommissionProcessingService.process_order(self.event('AG001', order_id='ORD-1'))
        CommissionProcessingService.process_order(self.event('AG004', order_id='ORD-2'))


class ActivityServiceTest(ActivityFeedFixtureMixin, TestCase):
    """Test feed scoping and placement"""

    def setUp(self):
        self.build_feed()

    def test_placement_captured(self):
        log = ActivityLog.objects.get(actor_code='AG001')
        self.assertEqual(log.branch, self.kothrud)
        self.assertEqual(log.city, self.pune)
        self.assertEqual(log.state, self.state)
        self.assertEqual(log.target_type, 'ledger_entry')
        self.assertEqual(log.metadata['order_id'], 'ORD-1')

        state_log = ActivityLog.objects.get(actor_code='SA001', metadata__order_id='ORD-1')
        self.assertIsNone(state_log.branch)
        self.assertEqual(state_log.state, self.state)

    def test_staff_sees_everything(self):
        self.assertEqual(ActivityService.feed_for(None).count(), 7)

    def test_state_admin_feed(self):
        feed = ActivityService.feed_for(HierarchyResolver.resolve('SA001'))
        self.assertEqual(feed.count(), 7)

    def test_area_manager_feed(self):
        feed = ActivityService.feed_for(HierarchyResolver.resolve('ASM001'))
        self.assertEqual(set(feed.values_list('actor_code', flat=True)), {'AG001', 'BA001', 'ASM001'})

    def test_branch_admin_feed(self):
        feed = ActivityService.feed_for(HierarchyResolver.resolve('BA002'))
        self.assertEqual(set(feed.values_list('actor_code', flat=True)), {'AG004', 'BA002'})

    def test_agent_sees_only_itself(self):
        feed = ActivityService.feed_for(HierarchyResolver.resolve('AG001'))
        self.assertEqual(list(feed.values_list('actor_code', flat=True)), ['AG001'])

    def test_filter_by_type(self):
        feed = ActivityService.feed_for(None, activity_type=ActivityType.WITHDRAWAL_PAID)
        self.assertFalse(feed.exists())

    def test_location_prefix_per_viewer(self):
        log = ActivityLog.objects.get(actor_code='AG001')
        self.assertEqual(
            ActivityFormatter.location_prefix(log),
            'In Maharashtra state, Pune area, Kothrud branch: '
        )
        self.assertEqual(
            ActivityFormatter.location_prefix(log, Role.STATE_ADMIN),
            'In Pune area, Kothrud branch: '
        )
        self.assertEqual(ActivityFormatter.location_prefix(log, Role.AREA_SALES_MANAGER), 'In Kothrud branch: ')
        self.assertEqual(ActivityFormatter.location_prefix(log, Role.BRANCH_ADMIN), '')

    def test_unknown_actor_recorded_without_placement(self):
        log = ActivityService.record(CommissionRecorded(
            amount=Decimal('5'), actor_role=Role.AGENT, actor_code='GONE', actor_name='Former Agent'
        ))
        self.assertIsNone(log.branch)
        self.assertIsNone(log.state)
        self.assertIsNone(log.performed_by)


class ActivityFeedAPITest(ActivityFeedFixtureMixin, APITestCase):
    """Test the feed endpoint"""

    def setUp(self):
        self.build_feed()
        self.asm_user = User.objects.create_user('arjun', 'arjun@example.com', 'pass12345')
        self.asm.user = self.asm_user
        self.asm.save()
        self.admin = User.objects.create_user('admin', 'admin@example.com', 'pass12345', is_staff=True)

    def test_requires_authentication(self):
        response = self.client.get('/api/activity/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_asm_feed(self):
        self.client.force_authenticate(user=self.asm_user)
        response = self.client.get('/api/activity/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)

        agent_row = next(r for r in response.data['results'] if r['actor_code'] == 'AG001')
        self.assertEqual(agent_row['location'], 'In Kothrud branch: ')
        self.assertEqual(agent_row['description'], 'Recorded ₹70.00 for Asha Rao')

    def test_staff_feed_pagination(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/activity/', {'limit': 2, 'offset': 1})
        self.assertEqual(response.data['count'], 7)
        self.assertEqual(len(response.data['results']), 2)

    def test_invalid_type(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/activity/', {'activity_type': 'nonsense'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_user_without_actor(self):
        stranger = User.objects.create_user('stranger', 'stranger@example.com', 'pass12345')
        self.client.force_authenticate(user=stranger)
        response = self.client.get('/api/activity/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
