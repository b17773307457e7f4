"""
Unit tests for wallets.

Tests:
- Balance aggregation (live vs snapshot overrides, legacy rows)
- Withdrawal requests and validation
- State transitions and approval-time balance check
- Payout destination encryption
- API endpoints
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from activity.models import ActivityLog, ActivityType
from activity.services import ActivityService
from commissions.models import RoleType, CommissionSource, CommissionLedgerEntry, LedgerStatus
from commissions.services import CommissionProcessingService, RateRegistry
from commissions.tests import RatesMixin
from hierarchy.models import Role
from hierarchy.services import HierarchyResolver
from hierarchy.tests import HierarchyFixtureMixin
from wallets.aggregation import BalanceAggregator
from wallets.encryption import EncryptionService
from wallets.exceptions import InsufficientBalance, InvalidStateTransition, WithdrawalValidationError
from wallets.models import Wallet, WithdrawalRequest
from wallets.services import WithdrawalService

User = get_user_model()

BANK_DETAILS = {
    'bank_name': 'State Bank of India',
    'bank_branch': 'Kothrud',
    'ifsc_code': 'sbin0001234',
    'account_name': 'Asha Rao',
    'account_number': '123456789012',
}


class WalletFixtureMixin(HierarchyFixtureMixin, RatesMixin):

    def build_wallet_fixture(self):
        self.build_hierarchy()
        self.configure_rates()

    def sell(self, code, order_id, pool, delivered=True):
        return CommissionProcessingService.process_order(
            self.event(code, order_id=order_id, commission_amount=Decimal(pool), delivered=delivered)
        )

    def actor(self, role, code):
        return HierarchyResolver.get_actor(role, code)


class BalanceAggregatorTest(WalletFixtureMixin, TestCase):
    """Test earnings and available balance"""

    def setUp(self):
        self.build_wallet_fixture()
        self.sell('AG001', 'ORD-1', '100.00')
        self.sell('AG001', 'ORD-2', '100.00', delivered=False)

    def test_agent_direct_earnings(self):
        balance = BalanceAggregator.balance('agent', 'AG001')
        self.assertEqual(balance.credited_amount, Decimal('70.00'))
        self.assertEqual(balance.pending_amount, Decimal('70.00'))
        self.assertEqual(balance.lifetime_earnings, Decimal('140.00'))
        self.assertEqual(balance.available, Decimal('70.00'))
        self.assertEqual(balance.override.total, Decimal('0.00'))

    def test_supervisor_overrides_live(self):
        branch = BalanceAggregator.balance_for(self.actor(Role.BRANCH_ADMIN, 'BA001'))
        self.assertEqual(branch.override.credited, Decimal('15.00'))
        self.assertEqual(branch.override.pending, Decimal('15.00'))
        self.assertEqual(branch.override_rate, Decimal('15.00'))

        area = BalanceAggregator.balance_for(self.actor(Role.AREA_SALES_MANAGER, 'ASM001'))
        self.assertEqual(area.available, Decimal('10.00'))

        state = BalanceAggregator.balance_for(self.actor(Role.STATE_ADMIN, 'SA001'))
        self.assertEqual(state.available, Decimal('5.00'))

    def test_live_mode_follows_current_rate(self):
        RateRegistry.set_rate(RoleType.BRANCH, Decimal('20'))
        resolved = self.actor(Role.BRANCH_ADMIN, 'BA001')

        live = BalanceAggregator.balance_for(resolved, mode='live')
        snapshot = BalanceAggregator.balance_for(resolved, mode='snapshot')
        self.assertEqual(live.override.credited, Decimal('20.00'))
        self.assertEqual(snapshot.override.credited, Decimal('15.00'))

    @override_settings(COMMISSION_OVERRIDE_MODE='snapshot')
    def test_mode_from_settings(self):
        RateRegistry.set_rate(RoleType.BRANCH, Decimal('20'))
        balance = BalanceAggregator.balance('branch_admin', 'BA001')
        self.assertEqual(balance.override_mode, 'snapshot')
        self.assertEqual(balance.available, Decimal('15.00'))

    @override_settings(COMMISSION_OVERRIDE_MODE='bogus')
    def test_unknown_mode_falls_back_to_live(self):
        with self.assertLogs('wallets.aggregation', level='WARNING'):
            self.assertEqual(BalanceAggregator.override_mode(), 'live')

    def test_branch_admin_direct_and_override_are_separate(self):
        self.sell('BA001', 'ORD-3', '100.00')
        balance = BalanceAggregator.balance('branch_admin', 'BA001')
        self.assertEqual(balance.direct.credited, Decimal('85.00'))
        self.assertEqual(balance.override.credited, Decimal('15.00'))
        self.assertEqual(balance.available, Decimal('100.00'))

    def test_legacy_rows_classified_by_rate(self):
        """Pre-entry_kind rows under 'branch_admin': 85% direct, 15% override"""
        for order_id, rate, amount in (('L-1', '85.00', '85.00'), ('L-2', '15.00', '15.00')):
            CommissionLedgerEntry.objects.create(
                order_id=order_id,
                affiliate_code='ba001',
                seller_code='BA001' if rate == '85.00' else 'AG001',
                commission_source=CommissionSource.BRANCH_ADMIN,
                entry_kind=None,
                order_amount=Decimal('1000.00'),
                commission_amount=Decimal('100.00'),
                affiliate_rate=Decimal(rate),
                affiliate_commission=Decimal(amount),
                status=LedgerStatus.CREDITED,
            )

        resolved = self.actor(Role.BRANCH_ADMIN, 'BA001')
        snapshot = BalanceAggregator.balance_for(resolved, mode='snapshot')
        self.assertEqual(snapshot.direct.credited, Decimal('85.00'))
        self.assertEqual(snapshot.override.credited, Decimal('30.00'))

    def test_withdrawals_reduce_available(self):
        resolved = self.actor(Role.AGENT, 'AG001')
        WithdrawalRequest.objects.create(
            actor_role=Role.AGENT, affiliate_code='AG001', affiliate_name='Asha Rao',
            withdrawal_amount=Decimal('30.00'), gst_percentage=Decimal('18.00'),
            gst_amount=Decimal('5.40'), net_payable=Decimal('24.60'),
            payment_method=WithdrawalRequest.PaymentMethod.UPI,
            status=WithdrawalRequest.Status.PAID,
        )
        WithdrawalRequest.objects.create(
            actor_role=Role.AGENT, affiliate_code='AG001', affiliate_name='Asha Rao',
            withdrawal_amount=Decimal('20.00'), gst_percentage=Decimal('18.00'),
            gst_amount=Decimal('3.60'), net_payable=Decimal('16.40'),
            payment_method=WithdrawalRequest.PaymentMethod.UPI,
        )

        balance = BalanceAggregator.balance_for(resolved)
        self.assertEqual(balance.paid_out, Decimal('30.00'))
        self.assertEqual(balance.pending_withdrawal, Decimal('20.00'))
        self.assertEqual(balance.available, Decimal('40.00'))

        data = balance.as_dict()
        self.assertEqual(data['breakdown']['direct']['credited'], Decimal('70.00'))
        self.assertEqual(data['breakdown']['override']['mode'], 'live')


class WithdrawalRequestTest(WalletFixtureMixin, TestCase):
    """Test withdrawal creation rules"""

    def setUp(self):
        self.build_wallet_fixture()
        self.sell('AG001', 'ORD-1', '100.00')
        self.resolved = self.actor(Role.AGENT, 'AG001')

    def request(self, amount='50.00', **kwargs):
        kwargs.setdefault('payment_method', WithdrawalRequest.PaymentMethod.BANK_TRANSFER)
        kwargs.setdefault('bank_details', BANK_DETAILS)
        return WithdrawalService.request_withdrawal(self.resolved, Decimal(amount), **kwargs)

    def test_calculate_gst(self):
        self.assertEqual(
            WithdrawalService.calculate_gst(Decimal('100.00')),
            (Decimal('18.00'), Decimal('18.00'), Decimal('82.00'))
        )
        pct, gst, net = WithdrawalService.calculate_gst(Decimal('33.33'))
        self.assertEqual(gst, Decimal('6.00'))
        self.assertEqual(net, Decimal('27.33'))

    def test_request_bank_transfer(self):
        withdrawal = self.request()

        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PENDING)
        self.assertEqual(withdrawal.gst_amount, Decimal('9.00'))
        self.assertEqual(withdrawal.net_payable, Decimal('41.00'))
        self.assertEqual(withdrawal.ifsc_code, 'SBIN0001234')
        self.assertEqual(withdrawal.wallet_balance_before, Decimal('70.00'))
        self.assertNotIn('123456789012', withdrawal.account_number_encrypted)
        self.assertEqual(EncryptionService.decrypt(withdrawal.account_number_encrypted), '123456789012')
        self.assertTrue(Wallet.objects.filter(actor_role=Role.AGENT, referral_code='AG001').exists())
        self.assertTrue(ActivityLog.objects.filter(
            activity_type=ActivityType.WITHDRAWAL_REQUESTED, target_id=str(withdrawal.id)
        ).exists())

    def test_request_upi(self):
        withdrawal = self.request(payment_method=WithdrawalRequest.PaymentMethod.UPI,
                                  bank_details=None, upi_id='asha@okbank')
        self.assertEqual(withdrawal.account_number_encrypted, '')
        self.assertEqual(EncryptionService.mask_upi_id(withdrawal.upi_id_encrypted), 'as****@okbank')

    def test_below_minimum(self):
        with self.assertRaises(WithdrawalValidationError):
            self.request('19.99')

    def test_missing_payment_details(self):
        with self.assertRaises(WithdrawalValidationError) as ctx:
            self.request(bank_details={'account_name': 'Asha Rao'})
        self.assertIn('account_number', ctx.exception.details['missing'])

        with self.assertRaises(WithdrawalValidationError):
            self.request(payment_method=WithdrawalRequest.PaymentMethod.UPI, upi_id='not-a-vpa')

    def test_exceeds_available(self):
        with self.assertRaises(InsufficientBalance) as ctx:
            self.request('70.01')
        self.assertEqual(ctx.exception.available, Decimal('70.00'))

    def test_one_pending_request_per_actor(self):
        self.request('20.00')
        with self.assertRaises(WithdrawalValidationError):
            self.request('20.00')

    def test_new_request_after_rejection(self):
        first = self.request('20.00')
        WithdrawalService.reject(first, reviewed_by=None, notes='Wrong IFSC')
        second = self.request('20.00')
        self.assertEqual(second.status, WithdrawalRequest.Status.PENDING)


class WithdrawalTransitionTest(WalletFixtureMixin, TestCase):
    """Test the review and payment lifecycle"""

    def setUp(self):
        self.build_wallet_fixture()
        self.finance = User.objects.create_user('finance', 'finance@example.com', 'pass12345', is_staff=True)
        self.sell('AG001', 'ORD-1', '100.00')
        self.withdrawal = WithdrawalService.request_withdrawal(
            self.actor(Role.AGENT, 'AG001'), Decimal('50.00'),
            payment_method=WithdrawalRequest.PaymentMethod.UPI, upi_id='asha@okbank'
        )

    def test_allowed_transitions(self):
        S = WithdrawalRequest.Status
        self.assertTrue(WithdrawalService.can_transition(S.PENDING, S.APPROVED))
        self.assertTrue(WithdrawalService.can_transition(S.PENDING, S.REJECTED))
        self.assertTrue(WithdrawalService.can_transition(S.APPROVED, S.PAID))
        self.assertFalse(WithdrawalService.can_transition(S.APPROVED, S.REJECTED))
        self.assertFalse(WithdrawalService.can_transition(S.PAID, S.APPROVED))
        self.assertFalse(WithdrawalService.can_transition(S.REJECTED, S.APPROVED))

    def test_approve(self):
        approved = WithdrawalService.approve(self.withdrawal, reviewed_by=self.finance, notes='ok')

        self.assertEqual(approved.status, WithdrawalRequest.Status.APPROVED)
        self.assertEqual(approved.reviewed_by, self.finance)
        self.assertEqual(approved.wallet_balance_before, Decimal('70.00'))

        wallet = Wallet.objects.get(actor_role=Role.AGENT, referral_code='AG001')
        self.assertEqual(wallet.balance, Decimal('20.00'))
        self.assertEqual(wallet.total_withdrawn, Decimal('50.00'))
        self.assertEqual(BalanceAggregator.balance('agent', 'AG001').available, Decimal('20.00'))

        log = ActivityLog.objects.get(activity_type=ActivityType.WITHDRAWAL_APPROVED)
        self.assertEqual(log.description, 'Approved ₹50.00 for Asha Rao')
        self.assertEqual(log.performed_by, self.finance)

    def test_approve_twice_fails(self):
        WithdrawalService.approve(self.withdrawal, reviewed_by=self.finance)
        with self.assertRaises(InvalidStateTransition):
            WithdrawalService.approve(self.withdrawal, reviewed_by=self.finance)

    def test_reject(self):
        rejected = WithdrawalService.reject(self.withdrawal, reviewed_by=self.finance, notes='KYC pending')
        self.assertEqual(rejected.status, WithdrawalRequest.Status.REJECTED)
        self.assertEqual(rejected.admin_notes, 'KYC pending')
        self.assertEqual(BalanceAggregator.balance('agent', 'AG001').available, Decimal('70.00'))

    def test_cancel(self):
        cancelled = WithdrawalService.cancel(self.withdrawal)
        self.assertEqual(cancelled.status, WithdrawalRequest.Status.REJECTED)
        self.assertEqual(cancelled.admin_notes, 'Cancelled by requester')
        self.assertTrue(ActivityLog.objects.filter(activity_type=ActivityType.WITHDRAWAL_CANCELLED).exists())

    def test_cannot_reject_or_cancel_approved(self):
        WithdrawalService.approve(self.withdrawal, reviewed_by=self.finance)
        with self.assertRaises(InvalidStateTransition):
            WithdrawalService.reject(self.withdrawal, reviewed_by=self.finance)
        with self.assertRaises(InvalidStateTransition):
            WithdrawalService.cancel(self.withdrawal)

    def test_mark_paid(self):
        with self.assertRaises(InvalidStateTransition):
            WithdrawalService.mark_paid(self.withdrawal, transaction_id='UTR123')

        approved = WithdrawalService.approve(self.withdrawal, reviewed_by=self.finance)
        with self.assertRaises(WithdrawalValidationError):
            WithdrawalService.mark_paid(approved, transaction_id='  ')

        paid = WithdrawalService.mark_paid(approved, transaction_id='UTR123', paid_by=self.finance)
        self.assertEqual(paid.status, WithdrawalRequest.Status.PAID)
        self.assertEqual(paid.transaction_id, 'UTR123')
        self.assertIsNotNone(paid.payment_date)
        self.assertIsNotNone(paid.paid_at)
        self.assertEqual(BalanceAggregator.balance('agent', 'AG001').available, Decimal('20.00'))

        log = ActivityLog.objects.get(activity_type=ActivityType.WITHDRAWAL_PAID)
        self.assertEqual(log.description, 'Paid ₹50.00 to Asha Rao')

    def test_approval_rechecks_balance_after_rate_drop(self):
        """Requested ₹500 with ₹500 available; live rate drop leaves ₹300 at approval"""
        RateRegistry.set_rate(RoleType.BRANCH, Decimal('20'))
        self.sell('AG001', 'ORD-BIG', '2400.00')
        branch_admin = self.actor(Role.BRANCH_ADMIN, 'BA001')
        self.assertEqual(BalanceAggregator.balance_for(branch_admin).available, Decimal('500.00'))

        withdrawal = WithdrawalService.request_withdrawal(
            branch_admin, Decimal('500.00'),
            payment_method=WithdrawalRequest.PaymentMethod.BANK_TRANSFER,
            bank_details=BANK_DETAILS,
        )
        RateRegistry.set_rate(RoleType.BRANCH, Decimal('12'))

        with self.assertRaises(InsufficientBalance) as ctx:
            WithdrawalService.approve(withdrawal, reviewed_by=self.finance)
        self.assertEqual(ctx.exception.requested, Decimal('500.00'))
        self.assertEqual(ctx.exception.available, Decimal('300.00'))

        withdrawal.refresh_from_db()
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PENDING)

        # The requester's feed shows the refused approval
        log = ActivityLog.objects.get(activity_type=ActivityType.WITHDRAWAL_APPROVAL_FAILED)
        self.assertEqual(log.actor_code, 'BA001')
        self.assertEqual(log.description, f'Could not approve ₹500.00 for {branch_admin.name}')
        self.assertEqual(log.performed_by, self.finance)
        self.assertEqual(log.metadata['available'], '300.00')
        self.assertIn(log, ActivityService.feed_for(branch_admin))
        self.assertFalse(ActivityLog.objects.filter(activity_type=ActivityType.WITHDRAWAL_APPROVED).exists())

    def test_deactivated_actor_can_still_be_paid(self):
        self.agent.is_active = False
        self.agent.save()
        approved = WithdrawalService.approve(self.withdrawal, reviewed_by=self.finance)
        self.assertEqual(approved.status, WithdrawalRequest.Status.APPROVED)


class EncryptionServiceTest(TestCase):
    """Test payout destination masking"""

    def test_round_trip_and_masks(self):
        token = EncryptionService.encrypt('987654321')
        self.assertNotEqual(token, '987654321')
        self.assertEqual(EncryptionService.mask_account_number(token), '****4321')
        self.assertEqual(EncryptionService.mask_account_number(''), '****')

    def test_garbage_ciphertext_is_masked(self):
        self.assertEqual(EncryptionService.mask_account_number('not-a-token'), '****')
        self.assertEqual(EncryptionService.mask_upi_id('not-a-token'), '****')


class WalletAPITest(WalletFixtureMixin, APITestCase):
    """Test balance and withdrawal endpoints"""

    def setUp(self):
        self.build_wallet_fixture()
        self.sell('AG001', 'ORD-1', '100.00')
        self.sell('AG002', 'ORD-2', '100.00')

        self.agent_user = User.objects.create_user('asha', 'asha@example.com', 'pass12345')
        self.agent.user = self.agent_user
        self.agent.save()
        self.other_user = User.objects.create_user('ravi', 'ravi@example.com', 'pass12345')
        self.agent_baner.user = self.other_user
        self.agent_baner.save()

        self.finance_user = User.objects.create_user('finance', 'finance@example.com', 'pass12345')
        self.finance_user.groups.add(Group.objects.create(name='Finance'))

    def create_withdrawal(self, user=None, amount='50.00'):
        self.client.force_authenticate(user=user or self.agent_user)
        return self.client.post('/api/wallets/withdrawals/', {
            'withdrawal_amount': amount,
            'payment_method': 'BANK_TRANSFER',
            'bank_details': BANK_DETAILS,
        }, format='json')

    def test_my_balance(self):
        self.client.force_authenticate(user=self.agent_user)
        response = self.client.get('/api/wallets/balance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available'], Decimal('70.00'))
        self.assertEqual(response.data['role'], Role.AGENT)

    def test_balance_without_actor(self):
        self.client.force_authenticate(user=self.finance_user)
        response = self.client.get('/api/wallets/balance/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_actor_balance_finance_only(self):
        self.client.force_authenticate(user=self.agent_user)
        response = self.client.get('/api/wallets/balance/asm/ASM001/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.finance_user)
        response = self.client.get('/api/wallets/balance/asm/ASM001/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available'], Decimal('20.00'))

    def test_create_withdrawal(self):
        response = self.create_withdrawal()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['account_number'], '****9012')
        self.assertEqual(response.data['net_payable'], '41.00')

    def test_create_withdrawal_errors(self):
        response = self.create_withdrawal(amount='500.00')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.data['error'], 'insufficient_balance')

        self.client.force_authenticate(user=self.agent_user)
        response = self.client.post('/api/wallets/withdrawals/', {
            'withdrawal_amount': '50.00', 'payment_method': 'UPI',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_is_scoped(self):
        self.create_withdrawal()
        self.create_withdrawal(user=self.other_user)

        self.client.force_authenticate(user=self.agent_user)
        response = self.client.get('/api/wallets/withdrawals/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['affiliate_code'], 'AG001')

        self.client.force_authenticate(user=self.finance_user)
        response = self.client.get('/api/wallets/withdrawals/', {'status': 'PENDING'})
        self.assertEqual(response.data['count'], 2)

    def test_review_requires_finance(self):
        withdrawal_id = self.create_withdrawal().data['id']
        self.client.force_authenticate(user=self.agent_user)
        response = self.client.post(f'/api/wallets/withdrawals/{withdrawal_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'forbidden')

    def test_approve_and_mark_paid(self):
        withdrawal_id = self.create_withdrawal().data['id']
        self.client.force_authenticate(user=self.finance_user)

        response = self.client.post(
            f'/api/wallets/withdrawals/{withdrawal_id}/approve/', {'notes': 'ok'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'APPROVED')
        self.assertEqual(response.data['reviewed_by'], 'finance')

        response = self.client.post(f'/api/wallets/withdrawals/{withdrawal_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.post(
            f'/api/wallets/withdrawals/{withdrawal_id}/mark-paid/',
            {'transaction_id': 'UTR998877', 'payment_date': '2026-03-01'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'PAID')
        self.assertEqual(response.data['payment_date'], '2026-03-01')

    def test_reject(self):
        withdrawal_id = self.create_withdrawal().data['id']
        self.client.force_authenticate(user=self.finance_user)
        response = self.client.post(
            f'/api/wallets/withdrawals/{withdrawal_id}/reject/', {'notes': 'Mismatched name'}, format='json'
        )
        self.assertEqual(response.data['status'], 'REJECTED')
        self.assertEqual(response.data['admin_notes'], 'Mismatched name')

    def test_cancel_own_only(self):
        withdrawal_id = self.create_withdrawal().data['id']

        self.client.force_authenticate(user=self.other_user)
        response = self.client.post(f'/api/wallets/withdrawals/{withdrawal_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(user=self.agent_user)
        response = self.client.post(f'/api/wallets/withdrawals/{withdrawal_id}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'REJECTED')
