"""
Unit tests for the Commission Attribution Engine.

Tests:
- Rate registry and fallbacks
- Commission pool precedence
- Attribution per seller role (direct cumulative rate + overrides)
- Idempotent ledger writes and rollback
- Delivery confirmation
- Webhook, rate and ledger endpoints
- Legacy entry_kind backfill
"""

from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from activity.models import ActivityLog, ActivityType
from commissions.exceptions import CommissionError, RateNotConfigured
from commissions.models import (
    RoleType, CommissionSource, EntryKind, LedgerStatus,
    CommissionRate, ProductCommission, CommissionLedgerEntry,
)
from commissions.services import (
    RateRegistry,
    CommissionPoolService,
    AttributionEngine,
    LedgerWriter,
    DeliveryConfirmationService,
    CommissionProcessingService,
    OrderEvent,
    infer_entry_kind,
    percent_of,
)
from hierarchy.models import Role
from hierarchy.tests import HierarchyFixtureMixin
from wallets.aggregation import BalanceAggregator

User = get_user_model()

WEBHOOK_HEADERS = {'HTTP_X_WEBHOOK_SECRET': 'test-webhook-secret'}


class RatesMixin:
    """Registry matching the documented defaults: 70 / 15 / 15 / 10 / 5."""

    def configure_rates(self, **overrides):
        rates = {
            RoleType.AFFILIATE: Decimal('70.00'),
            RoleType.BRANCH_DIRECT: Decimal('15.00'),
            RoleType.BRANCH: Decimal('15.00'),
            RoleType.AREA: Decimal('10.00'),
            RoleType.STATE: Decimal('5.00'),
        }
        rates.update(overrides)
        for role_type, percentage in rates.items():
            CommissionRate.objects.update_or_create(
                role_type=role_type, defaults={'percentage': percentage}
            )

    @staticmethod
    def event(referral_code, order_id='ORD-1', commission_amount=Decimal('100.00'), **kwargs):
        kwargs.setdefault('order_amount', Decimal('1000.00'))
        kwargs.setdefault('product_id', 'P-1')
        return OrderEvent(
            order_id=order_id,
            referral_code=referral_code,
            commission_amount=commission_amount,
            **kwargs
        )


class HelpersTest(TestCase):
    """Test rounding and legacy classification helpers"""

    def test_percent_of_rounds_half_up(self):
        self.assertEqual(percent_of(Decimal('100.00'), Decimal('70')), Decimal('70.00'))
        self.assertEqual(percent_of(Decimal('33.33'), Decimal('15')), Decimal('5.00'))
        self.assertEqual(percent_of(Decimal('0.10'), Decimal('5')), Decimal('0.01'))

    def test_infer_entry_kind_direct_sources(self):
        self.assertEqual(infer_entry_kind(CommissionSource.AFFILIATE, Decimal('70')), EntryKind.DIRECT)
        self.assertEqual(infer_entry_kind(CommissionSource.ASM_DIRECT, Decimal('5')), EntryKind.DIRECT)

    def test_infer_entry_kind_by_rate_magnitude(self):
        """Legacy 'branch_admin' rows: 85% was a direct sale, 15% an override"""
        self.assertEqual(infer_entry_kind(CommissionSource.BRANCH_ADMIN, Decimal('85')), EntryKind.DIRECT)
        self.assertEqual(infer_entry_kind(CommissionSource.BRANCH_ADMIN, Decimal('15')), EntryKind.OVERRIDE)
        self.assertEqual(infer_entry_kind(CommissionSource.STATE_ADMIN, Decimal('20')), EntryKind.OVERRIDE)


class RateRegistryTest(RatesMixin, TestCase):
    """Test rate reads, fallbacks and updates"""

    def test_get_rate_reads_stored_row(self):
        self.configure_rates(**{RoleType.AREA: Decimal('12.50')})
        self.assertEqual(RateRegistry.get_rate(RoleType.AREA), Decimal('12.50'))

    def test_missing_rate_falls_back_to_default_with_warning(self):
        with self.assertLogs('commissions.services', level='WARNING'):
            rate = RateRegistry.get_rate(RoleType.AREA)
        self.assertEqual(rate, Decimal('10'))

    def test_strict_read_raises_when_missing(self):
        with self.assertRaises(RateNotConfigured) as ctx:
            RateRegistry.get_rate_strict(RoleType.STATE)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_get_rates_fills_defaults(self):
        CommissionRate.objects.create(role_type=RoleType.AFFILIATE, percentage=Decimal('60.00'))
        with self.assertLogs('commissions.services', level='WARNING'):
            rates = RateRegistry.get_rates()
        self.assertEqual(rates[RoleType.AFFILIATE], Decimal('60.00'))
        self.assertEqual(rates[RoleType.STATE], Decimal('5'))
        self.assertEqual(set(rates), set(RoleType.values))

    def test_set_rate_creates_then_updates(self):
        admin = User.objects.create_user('admin', 'admin@example.com', 'pass12345', is_staff=True)
        RateRegistry.set_rate(RoleType.BRANCH, Decimal('12'), updated_by=admin)
        RateRegistry.set_rate(RoleType.BRANCH, Decimal('14'), updated_by=admin)

        rate = CommissionRate.objects.get(role_type=RoleType.BRANCH)
        self.assertEqual(rate.percentage, Decimal('14.00'))
        self.assertEqual(rate.updated_by, admin)
        self.assertEqual(CommissionRate.objects.count(), 1)

    def test_set_rate_validation(self):
        with self.assertRaises(CommissionError):
            RateRegistry.set_rate(RoleType.BRANCH, Decimal('101'))
        with self.assertRaises(CommissionError):
            RateRegistry.set_rate(RoleType.BRANCH, Decimal('-1'))
        with self.assertRaises(CommissionError):
            RateRegistry.set_rate('regional', Decimal('5'))

    def test_cumulative_direct_rate(self):
        self.configure_rates()
        self.assertEqual(RateRegistry.cumulative_direct_rate(Role.AGENT), Decimal('70.00'))
        self.assertEqual(RateRegistry.cumulative_direct_rate(Role.BRANCH_ADMIN), Decimal('85.00'))
        self.assertEqual(RateRegistry.cumulative_direct_rate(Role.AREA_SALES_MANAGER), Decimal('95.00'))
        self.assertEqual(RateRegistry.cumulative_direct_rate(Role.STATE_ADMIN), Decimal('100.00'))


class CommissionPoolServiceTest(TestCase):
    """Test pool percentage precedence"""

    def setUp(self):
        ProductCommission.objects.create(product_id='P-1', commission_rate=Decimal('10.00'))
        ProductCommission.objects.create(category_id='C-1', commission_rate=Decimal('20.00'))
        ProductCommission.objects.create(collection_id='COL-1', commission_rate=Decimal('25.00'))
        ProductCommission.objects.create(product_type_id='T-1', commission_rate=Decimal('30.00'))

    def test_product_rule_wins(self):
        rate, source = CommissionPoolService.resolve_rate('P-1', 'C-1', 'COL-1', 'T-1')
        self.assertEqual((rate, source), (Decimal('10.00'), 'product'))

    def test_falls_through_to_less_specific_rules(self):
        self.assertEqual(
            CommissionPoolService.resolve_rate('P-2', 'C-1', 'COL-1', 'T-1'),
            (Decimal('20.00'), 'category')
        )
        self.assertEqual(
            CommissionPoolService.resolve_rate('P-2', 'C-2', 'COL-1', 'T-1'),
            (Decimal('25.00'), 'collection')
        )
        self.assertEqual(
            CommissionPoolService.resolve_rate('P-2', '', '', 'T-1'),
            (Decimal('30.00'), 'product_type')
        )

    def test_inactive_rule_is_ignored(self):
        ProductCommission.objects.filter(product_id='P-1').update(is_active=False)
        rate, source = CommissionPoolService.resolve_rate('P-1', 'C-1')
        self.assertEqual(source, 'category')

    def test_no_rule_gives_empty_pool(self):
        rate, source = CommissionPoolService.resolve_rate('P-9')
        self.assertEqual((rate, source), (Decimal('0.00'), 'uncategorized'))

    def test_pool_from_order_amount(self):
        pool = CommissionPoolService.pool_for(OrderEvent(
            order_id='O-1', referral_code='X', order_amount=Decimal('1999.00'), product_id='P-1'
        ))
        self.assertEqual(pool.amount, Decimal('199.90'))
        self.assertEqual(pool.rate, Decimal('10.00'))

    def test_explicit_commission_amount_bypasses_rules(self):
        pool = CommissionPoolService.pool_for(OrderEvent(
            order_id='O-1', referral_code='X', order_amount=Decimal('1999.00'),
            product_id='P-1', commission_amount=Decimal('100')
        ))
        self.assertEqual(pool.amount, Decimal('100.00'))
        self.assertEqual(pool.rate, Decimal('0.00'))
        self.assertEqual(pool.source, 'explicit')

    def test_rule_needs_exactly_one_target(self):
        from django.core.exceptions import ValidationError
        with self.assertRaises(ValidationError):
            ProductCommission.objects.create(
                product_id='P-3', category_id='C-3', commission_rate=Decimal('5.00')
            )
        with self.assertRaises(ValidationError):
            ProductCommission.objects.create(commission_rate=Decimal('5.00'))


class AttributionEngineTest(HierarchyFixtureMixin, RatesMixin, TestCase):
    """Test ledger drafts per seller role"""

    def setUp(self):
        self.build_hierarchy()
        self.configure_rates()

    def by_source(self, drafts):
        return {d.commission_source: d for d in drafts}

    def test_unplaced_agent_gets_single_row(self):
        drafts = AttributionEngine.attribute(self.event('AG003'))
        self.assertEqual(len(drafts), 1)
        draft = drafts[0]
        self.assertEqual(draft.commission_source, CommissionSource.AFFILIATE)
        self.assertEqual(draft.entry_kind, EntryKind.DIRECT)
        self.assertEqual(draft.affiliate_rate, Decimal('70.00'))
        self.assertEqual(draft.affiliate_commission, Decimal('70.00'))

    def test_agent_sale_overrides_use_same_pool(self):
        drafts = self.by_source(AttributionEngine.attribute(self.event('AG001')))
        self.assertEqual(set(drafts), {
            CommissionSource.AFFILIATE,
            CommissionSource.BRANCH_ADMIN,
            CommissionSource.AREA_MANAGER,
            CommissionSource.STATE_ADMIN,
        })

        self.assertEqual(drafts[CommissionSource.AFFILIATE].affiliate_commission, Decimal('70.00'))

        branch = drafts[CommissionSource.BRANCH_ADMIN]
        self.assertEqual(branch.affiliate_code, 'BA001')
        self.assertEqual(branch.seller_code, 'AG001')
        self.assertEqual(branch.entry_kind, EntryKind.OVERRIDE)
        self.assertEqual(branch.commission_amount, Decimal('100.00'))
        self.assertEqual(branch.affiliate_commission, Decimal('15.00'))

        self.assertEqual(drafts[CommissionSource.AREA_MANAGER].affiliate_code, 'ASM001')
        self.assertEqual(drafts[CommissionSource.AREA_MANAGER].affiliate_commission, Decimal('10.00'))
        self.assertEqual(drafts[CommissionSource.STATE_ADMIN].affiliate_code, 'SA001')
        self.assertEqual(drafts[CommissionSource.STATE_ADMIN].affiliate_commission, Decimal('5.00'))

    def test_overrides_add_up_on_small_pools(self):
        """Per-row rounding never changes the sum of override rows"""
        for pool in ('0.10', '0.30', '1.01', '33.33', '99.99'):
            drafts = AttributionEngine.attribute(self.event('AG001', commission_amount=Decimal(pool)))
            overrides = [d for d in drafts if d.entry_kind == EntryKind.OVERRIDE]
            self.assertEqual(len(overrides), 3)
            self.assertEqual(
                sum(d.affiliate_commission for d in overrides),
                percent_of(Decimal(pool), Decimal('30')),
                pool
            )
            self.assertTrue(all(d.affiliate_commission >= 0 for d in overrides))

        drafts = self.by_source(AttributionEngine.attribute(self.event('AG001', commission_amount=Decimal('0.10'))))
        self.assertEqual(drafts[CommissionSource.AFFILIATE].affiliate_commission, Decimal('0.07'))
        self.assertEqual(drafts[CommissionSource.BRANCH_ADMIN].affiliate_commission, Decimal('0.01'))
        self.assertEqual(drafts[CommissionSource.AREA_MANAGER].affiliate_commission, Decimal('0.01'))
        self.assertEqual(drafts[CommissionSource.STATE_ADMIN].affiliate_commission, Decimal('0.01'))

    def test_branch_admin_direct_sale(self):
        drafts = self.by_source(AttributionEngine.attribute(self.event('BA001')))
        direct = drafts[CommissionSource.BRANCH_ADMIN_DIRECT]
        self.assertEqual(direct.affiliate_rate, Decimal('85.00'))
        self.assertEqual(direct.affiliate_commission, Decimal('85.00'))
        self.assertNotIn(CommissionSource.BRANCH_ADMIN, drafts)
        self.assertEqual(drafts[CommissionSource.AREA_MANAGER].affiliate_commission, Decimal('10.00'))
        self.assertEqual(drafts[CommissionSource.STATE_ADMIN].affiliate_commission, Decimal('5.00'))

    def test_asm_direct_sale(self):
        drafts = self.by_source(AttributionEngine.attribute(self.event('ASM001')))
        self.assertEqual(set(drafts), {CommissionSource.ASM_DIRECT, CommissionSource.STATE_ADMIN})
        self.assertEqual(drafts[CommissionSource.ASM_DIRECT].affiliate_commission, Decimal('95.00'))

    def test_state_admin_direct_sale_takes_whole_pool(self):
        drafts = AttributionEngine.attribute(self.event('SA001'))
        self.assertEqual(len(drafts), 1)
        self.assertEqual(drafts[0].commission_source, CommissionSource.STATE_ADMIN_DIRECT)
        self.assertEqual(drafts[0].affiliate_commission, Decimal('100.00'))

    def test_missing_levels_are_skipped(self):
        """Baner has no branch admin; Mumbai has no ASM"""
        baner = self.by_source(AttributionEngine.attribute(self.event('AG002')))
        self.assertEqual(set(baner), {
            CommissionSource.AFFILIATE, CommissionSource.AREA_MANAGER, CommissionSource.STATE_ADMIN
        })

        mumbai = self.by_source(AttributionEngine.attribute(self.event('AG004', order_id='ORD-2')))
        self.assertEqual(set(mumbai), {
            CommissionSource.AFFILIATE, CommissionSource.BRANCH_ADMIN, CommissionSource.STATE_ADMIN
        })
        self.assertEqual(mumbai[CommissionSource.BRANCH_ADMIN].affiliate_code, 'BA002')

    def test_inactive_supervisor_earns_nothing(self):
        self.branch_admin.is_active = False
        self.branch_admin.save()
        drafts = self.by_source(AttributionEngine.attribute(self.event('AG001')))
        self.assertNotIn(CommissionSource.BRANCH_ADMIN, drafts)

    def test_code_lookup_is_case_insensitive(self):
        drafts = AttributionEngine.attribute(self.event(' ag001 '))
        self.assertEqual(drafts[0].affiliate_code, 'AG001')


class LedgerWriterTest(HierarchyFixtureMixin, RatesMixin, TestCase):
    """Test idempotent writes and delivery confirmation"""

    def setUp(self):
        self.build_hierarchy()
        self.configure_rates()

    def test_process_order_writes_every_level(self):
        result = CommissionProcessingService.process_order(self.event('AG001'))
        self.assertTrue(result.attributed)
        self.assertEqual(result.role, Role.AGENT)
        self.assertEqual(result.write.created_count, 4)
        self.assertEqual(CommissionLedgerEntry.objects.filter(order_id='ORD-1').count(), 4)
        self.assertFalse(
            CommissionLedgerEntry.objects.exclude(status=LedgerStatus.PENDING).exists()
        )

    def test_replay_is_idempotent(self):
        CommissionProcessingService.process_order(self.event('AG001'))
        replay = CommissionProcessingService.process_order(self.event('AG001'))

        self.assertEqual(replay.write.created_count, 0)
        self.assertEqual(replay.write.skipped_count, 4)
        self.assertEqual(CommissionLedgerEntry.objects.count(), 4)

    def test_line_items_of_one_order_are_kept_apart(self):
        first = CommissionProcessingService.process_order(
            self.event('AG001', order_id='ORD-9', product_id='P-1')
        )
        second = CommissionProcessingService.process_order(
            self.event('AG001', order_id='ORD-9', product_id='P-2', commission_amount=Decimal('200.00'))
        )
        self.assertEqual(first.write.created_count, 4)
        self.assertEqual(second.write.created_count, 4)
        self.assertEqual(second.write.skipped_count, 0)
        self.assertEqual(CommissionLedgerEntry.objects.filter(order_id='ORD-9').count(), 8)

        # Replaying the second line still writes nothing
        replay = CommissionProcessingService.process_order(
            self.event('AG001', order_id='ORD-9', product_id='P-2', commission_amount=Decimal('200.00'))
        )
        self.assertEqual(replay.write.skipped_count, 4)

        agent = BalanceAggregator.balance('agent', 'AG001')
        self.assertEqual(agent.lifetime_earnings, Decimal('210.00'))
        self.assertEqual(DeliveryConfirmationService.confirm_delivery('ORD-9'), 8)

    def test_replay_fills_missing_levels_only(self):
        """A level added between deliveries gets its row; existing rows stay"""
        CommissionProcessingService.process_order(self.event('AG002'))
        from hierarchy.models import BranchAdmin
        BranchAdmin.objects.create(referral_code='BA003', first_name='Neha', branch=self.baner)

        replay = CommissionProcessingService.process_order(self.event('AG002'))
        self.assertEqual(replay.write.created_count, 1)
        self.assertEqual(replay.write.created[0].commission_source, CommissionSource.BRANCH_ADMIN)

    def test_unknown_code_is_not_attributed(self):
        with self.assertLogs('commissions.services', level='WARNING'):
            result = CommissionProcessingService.process_order(self.event('NOPE'))
        self.assertFalse(result.attributed)
        self.assertFalse(CommissionLedgerEntry.objects.exists())

    def test_failure_rolls_back_whole_order(self):
        with mock.patch(
            'activity.services.ActivityService.record',
            side_effect=RuntimeError('activity store down')
        ):
            with self.assertRaises(RuntimeError):
                CommissionProcessingService.process_order(self.event('AG001'))
        self.assertFalse(CommissionLedgerEntry.objects.exists())

        # Redelivery writes everything
        result = CommissionProcessingService.process_order(self.event('AG001'))
        self.assertEqual(result.write.created_count, 4)

    def test_writer_reports_duplicates(self):
        drafts = AttributionEngine.attribute(self.event('AG003'))
        first = LedgerWriter.write(drafts)
        second = LedgerWriter.write(drafts)
        self.assertEqual(first.created_count, 1)
        self.assertEqual(second.skipped_count, 1)

    def test_rate_change_is_not_retroactive(self):
        CommissionProcessingService.process_order(self.event('AG003', order_id='ORD-1'))
        RateRegistry.set_rate(RoleType.AFFILIATE, Decimal('60'))
        CommissionProcessingService.process_order(self.event('AG003', order_id='ORD-2'))

        old = CommissionLedgerEntry.objects.get(order_id='ORD-1')
        new = CommissionLedgerEntry.objects.get(order_id='ORD-2')
        self.assertEqual(old.affiliate_commission, Decimal('70.00'))
        self.assertEqual(new.affiliate_commission, Decimal('60.00'))

    def test_activity_recorded_per_created_row(self):
        CommissionProcessingService.process_order(self.event('AG001'))
        CommissionProcessingService.process_order(self.event('AG001'))

        logs = ActivityLog.objects.filter(activity_type=ActivityType.COMMISSION_RECORDED)
        self.assertEqual(logs.count(), 4)
        agent_log = logs.get(actor_code='AG001')
        self.assertEqual(agent_log.description, 'Recorded ₹70.00 for Asha Rao')
        self.assertEqual(agent_log.branch, self.kothrud)

    def test_confirm_delivery_credits_once(self):
        CommissionProcessingService.process_order(self.event('AG001'))

        self.assertEqual(DeliveryConfirmationService.confirm_delivery('ORD-1'), 4)
        self.assertEqual(DeliveryConfirmationService.confirm_delivery('ORD-1'), 0)

        entries = CommissionLedgerEntry.objects.filter(order_id='ORD-1')
        self.assertTrue(all(e.status == LedgerStatus.CREDITED for e in entries))
        self.assertTrue(all(e.credited_at is not None for e in entries))

    def test_delivered_event_is_credited_immediately(self):
        result = CommissionProcessingService.process_order(self.event('AG001', delivered=True))
        self.assertEqual(result.credited, 4)

    def test_confirm_unknown_order(self):
        self.assertEqual(DeliveryConfirmationService.confirm_delivery('MISSING'), 0)


class CommissionAPITest(HierarchyFixtureMixin, RatesMixin, APITestCase):
    """Test webhook, rate and ledger endpoints"""

    def setUp(self):
        self.build_hierarchy()
        self.configure_rates()
        self.admin = User.objects.create_user('admin', 'admin@example.com', 'pass12345', is_staff=True)
        self.agent_user = User.objects.create_user('asha', 'asha@example.com', 'pass12345')
        self.agent.user = self.agent_user
        self.agent.save()

    def order_payload(self, **overrides):
        payload = {
            'order_id': 'ORD-100',
            'affiliate_code': 'AG001',
            'product_id': 'P-1',
            'product_name': 'Silk Saree',
            'quantity': 1,
            'order_amount': '1000.00',
            'commission_amount': '100.00',
            'customer_name': 'Priya',
        }
        payload.update(overrides)
        return payload

    def test_order_webhook_requires_secret(self):
        response = self.client.post('/api/commissions/webhook/order/', self.order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.post(
            '/api/commissions/webhook/order/', self.order_payload(), format='json',
            HTTP_X_WEBHOOK_SECRET='wrong'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_order_webhook_attributes(self):
        response = self.client.post(
            '/api/commissions/webhook/order/', self.order_payload(), format='json', **WEBHOOK_HEADERS
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['attributed'])
        self.assertEqual(response.data['role'], Role.AGENT)
        self.assertEqual(response.data['commission_pool'], '100.00')
        self.assertEqual(len(response.data['created']), 4)

        replay = self.client.post(
            '/api/commissions/webhook/order/', self.order_payload(), format='json', **WEBHOOK_HEADERS
        )
        self.assertEqual(replay.status_code, status.HTTP_200_OK)
        self.assertEqual(replay.data['created'], [])
        self.assertEqual(len(replay.data['skipped']), 4)

    def test_order_webhook_unknown_code(self):
        response = self.client.post(
            '/api/commissions/webhook/order/', self.order_payload(affiliate_code='NOPE'),
            format='json', **WEBHOOK_HEADERS
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['attributed'])

    def test_order_webhook_delivered_status(self):
        response = self.client.post(
            '/api/commissions/webhook/order/', self.order_payload(status='completed'),
            format='json', **WEBHOOK_HEADERS
        )
        self.assertEqual(response.data['credited'], 4)

    def test_order_webhook_validation(self):
        payload = self.order_payload()
        del payload['order_amount']
        response = self.client.post(
            '/api/commissions/webhook/order/', payload, format='json', **WEBHOOK_HEADERS
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'validation_error')
        self.assertIn('order_amount', response.data['details'])

    @override_settings(COMMISSION_WEBHOOK_SECRET='')
    def test_empty_secret_disables_check(self):
        response = self.client.post('/api/commissions/webhook/order/', self.order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_delivery_webhook(self):
        self.client.post(
            '/api/commissions/webhook/order/', self.order_payload(), format='json', **WEBHOOK_HEADERS
        )
        response = self.client.post(
            '/api/commissions/webhook/delivery/', {'order_id': 'ORD-100'}, format='json', **WEBHOOK_HEADERS
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['credited'], 4)

    def test_list_rates(self):
        CommissionRate.objects.filter(role_type=RoleType.STATE).delete()
        self.client.force_authenticate(user=self.agent_user)
        response = self.client.get('/api/commissions/rates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        rates = {r['role_type']: r for r in response.data}
        self.assertEqual(len(rates), 5)
        self.assertFalse(rates[RoleType.AFFILIATE]['is_default'])
        self.assertTrue(rates[RoleType.STATE]['is_default'])

    def test_update_rate_requires_admin(self):
        self.client.force_authenticate(user=self.agent_user)
        response = self.client.put('/api/commissions/rates/area/', {'percentage': '12.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_rate(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.put('/api/commissions/rates/area/', {'percentage': '12.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated_by'], 'admin')
        self.assertEqual(RateRegistry.get_rate(RoleType.AREA), Decimal('12.00'))

    def test_update_rate_rejects_bad_values(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.put('/api/commissions/rates/area/', {'percentage': '150'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put('/api/commissions/rates/regional/', {'percentage': '5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'commission_error')

    def test_ledger_scoped_to_actor(self):
        CommissionProcessingService.process_order(self.event('AG001'))

        self.client.force_authenticate(user=self.agent_user)
        response = self.client.get('/api/commissions/ledger/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['affiliate_code'], 'AG001')

        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/commissions/ledger/', {'entry_kind': 'override'})
        self.assertEqual(response.data['count'], 3)

    def test_ledger_without_actor_profile(self):
        stranger = User.objects.create_user('stranger', 'stranger@example.com', 'pass12345')
        self.client.force_authenticate(user=stranger)
        response = self.client.get('/api/commissions/ledger/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'actor_not_found')


class BackfillEntryKindCommandTest(TestCase):
    """Test the legacy entry_kind backfill"""

    def setUp(self):
        def legacy(order_id, source, rate, amount):
            return CommissionLedgerEntry.objects.create(
                order_id=order_id,
                affiliate_code='BA001',
                seller_code='BA001',
                commission_source=source,
                entry_kind=None,
                order_amount=Decimal('1000.00'),
                commission_amount=Decimal('100.00'),
                affiliate_rate=rate,
                affiliate_commission=amount,
            )

        self.direct = legacy('L-1', CommissionSource.BRANCH_ADMIN, Decimal('85.00'), Decimal('85.00'))
        self.override = legacy('L-2', CommissionSource.BRANCH_ADMIN, Decimal('15.00'), Decimal('15.00'))
        self.agent = legacy('L-3', CommissionSource.AFFILIATE, Decimal('70.00'), Decimal('70.00'))

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('backfill_entry_kind', '--dry-run', stdout=out)
        self.assertIn('Would classify 3', out.getvalue())
        self.assertEqual(CommissionLedgerEntry.objects.filter(entry_kind__isnull=True).count(), 3)

    def test_backfill_classifies_rows(self):
        out = StringIO()
        call_command('backfill_entry_kind', '--batch-size', '2', stdout=out)

        self.direct.refresh_from_db()
        self.override.refresh_from_db()
        self.agent.refresh_from_db()
        self.assertEqual(self.direct.entry_kind, EntryKind.DIRECT)
        self.assertEqual(self.override.entry_kind, EntryKind.OVERRIDE)
        self.assertEqual(self.agent.entry_kind, EntryKind.DIRECT)

        out = StringIO()
        call_command('backfill_entry_kind', stdout=out)
        self.assertIn('No legacy ledger rows', out.getvalue())
