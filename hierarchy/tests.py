"""
Unit tests for the referral hierarchy.

Tests:
- Referral code resolution and table priority
- Supervisor chain (ancestors)
- Subordinate code sets
- Geography lookups
- API endpoints
"""

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase
from rest_framework import status

from hierarchy.exceptions import ActorNotFound
from hierarchy.models import (
    Role, State, City, Branch,
    StateAdmin, AreaSalesManager, BranchAdmin, Agent,
)
from hierarchy.services import HierarchyResolver, GeographyService

User = get_user_model()


class HierarchyFixtureMixin:
    """
    Maharashtra
      Pune (ASM001)
        Kothrud (BA001) - AG001
        Baner (no branch admin) - AG002
      Mumbai (no ASM)
        Andheri (BA002) - AG004
    SA001 on Maharashtra; AG003 has no branch.
    """

    def build_hierarchy(self):
        self.state = State.objects.create(name='Maharashtra')
        self.pune = City.objects.create(name='Pune', state=self.state)
        self.mumbai = City.objects.create(name='Mumbai', state=self.state)
        self.kothrud = Branch.objects.create(name='Kothrud', city=self.pune)
        self.baner = Branch.objects.create(name='Baner', city=self.pune)
        self.andheri = Branch.objects.create(name='Andheri', city=self.mumbai)

        self.state_admin = StateAdmin.objects.create(
            referral_code='SA001', first_name='Sunita', last_name='Patil', state=self.state
        )
        self.asm = AreaSalesManager.objects.create(
            referral_code='ASM001', first_name='Arjun', last_name='Kale', city=self.pune
        )
        self.branch_admin = BranchAdmin.objects.create(
            referral_code='BA001', first_name='Bhavna', last_name='Joshi', branch=self.kothrud
        )
        self.branch_admin_mumbai = BranchAdmin.objects.create(
            referral_code='BA002', first_name='Vikram', last_name='Shah', branch=self.andheri
        )
        self.agent = Agent.objects.create(
            referral_code='AG001', first_name='Asha', last_name='Rao', branch=self.kothrud
        )
        self.agent_baner = Agent.objects.create(
            referral_code='AG002', first_name='Ravi', last_name='Deshmukh', branch=self.baner
        )
        self.agent_unplaced = Agent.objects.create(
            referral_code='AG003', first_name='Meera', last_name='Nair'
        )
        self.agent_mumbai = Agent.objects.create(
            referral_code='AG004', first_name='Kiran', last_name='Mehta', branch=self.andheri
        )


class ResolveTest(HierarchyFixtureMixin, TestCase):
    """Test referral code resolution"""

    def setUp(self):
        self.build_hierarchy()

    def test_resolve_agent_with_context(self):
        resolved = HierarchyResolver.resolve('AG001')
        self.assertEqual(resolved.role, Role.AGENT)
        self.assertEqual(resolved.actor, self.agent)
        self.assertEqual(resolved.context(), {
            'branch': 'Kothrud', 'city': 'Pune', 'state': 'Maharashtra'
        })

    def test_resolve_is_case_insensitive_and_trimmed(self):
        resolved = HierarchyResolver.resolve('  asm001 ')
        self.assertEqual(resolved.role, Role.AREA_SALES_MANAGER)
        self.assertEqual(resolved.context(), {
            'branch': None, 'city': 'Pune', 'state': 'Maharashtra'
        })

    def test_resolve_state_admin_context(self):
        resolved = HierarchyResolver.resolve('SA001')
        self.assertEqual(resolved.role, Role.STATE_ADMIN)
        self.assertEqual(resolved.context()['state'], 'Maharashtra')
        self.assertIsNone(resolved.context()['city'])

    def test_duplicate_code_resolves_to_higher_table(self):
        """Same code in agents and branch admins resolves to the branch admin"""
        Agent.objects.create(referral_code='BA001', first_name='Dup', branch=self.baner)
        resolved = HierarchyResolver.resolve('BA001')
        self.assertEqual(resolved.role, Role.BRANCH_ADMIN)
        self.assertEqual(resolved.actor, self.branch_admin)

    def test_code_differing_only_in_case_is_rejected(self):
        with self.assertRaises(ValidationError):
            Agent.objects.create(referral_code='ag001', first_name='Copy', branch=self.baner)

        # Rows written without save() hit the database constraint
        with self.assertRaises(IntegrityError), transaction.atomic():
            Agent.objects.bulk_create([Agent(referral_code='Ag001', first_name='Copy')])
        self.assertEqual(Agent.objects.filter(referral_code__iexact='AG001').count(), 1)

    def test_unknown_code_raises(self):
        with self.assertRaises(ActorNotFound) as ctx:
            HierarchyResolver.resolve('NOPE')
        self.assertEqual(ctx.exception.referral_code, 'NOPE')
        self.assertEqual(ctx.exception.status_code, 404)

    def test_blank_code_raises(self):
        with self.assertRaises(ActorNotFound):
            HierarchyResolver.resolve('   ')

    def test_inactive_actor_is_not_resolved(self):
        self.agent.is_active = False
        self.agent.save()
        with self.assertRaises(ActorNotFound):
            HierarchyResolver.resolve('AG001')

    def test_agent_without_branch_has_empty_context(self):
        resolved = HierarchyResolver.resolve('AG003')
        self.assertEqual(resolved.context(), {'branch': None, 'city': None, 'state': None})

    def test_get_actor_within_table(self):
        resolved = HierarchyResolver.get_actor(Role.BRANCH_ADMIN, 'ba001')
        self.assertEqual(resolved.actor, self.branch_admin)
        with self.assertRaises(ActorNotFound):
            HierarchyResolver.get_actor(Role.AGENT, 'BA001')

    def test_resolve_for_user(self):
        user = User.objects.create_user('asha', 'asha@example.com', 'pass12345')
        self.agent.user = user
        self.agent.save()

        resolved = HierarchyResolver.resolve_for_user(user)
        self.assertEqual(resolved.actor, self.agent)

        other = User.objects.create_user('nobody', 'nobody@example.com', 'pass12345')
        with self.assertRaises(ActorNotFound):
            HierarchyResolver.resolve_for_user(other)


class AncestorsTest(HierarchyFixtureMixin, TestCase):
    """Test the supervisor chain above a seller"""

    def setUp(self):
        self.build_hierarchy()

    def chain(self, code):
        resolved = HierarchyResolver.resolve(code)
        return [(a.level, a.referral_code) for a in HierarchyResolver.ancestors(resolved)]

    def test_agent_full_chain(self):
        self.assertEqual(self.chain('AG001'), [
            ('branch', 'BA001'), ('area', 'ASM001'), ('state', 'SA001'),
        ])

    def test_branch_admin_chain(self):
        self.assertEqual(self.chain('BA001'), [('area', 'ASM001'), ('state', 'SA001')])

    def test_asm_chain(self):
        self.assertEqual(self.chain('ASM001'), [('state', 'SA001')])

    def test_state_admin_has_no_chain(self):
        self.assertEqual(self.chain('SA001'), [])

    def test_missing_branch_admin_is_skipped(self):
        self.assertEqual(self.chain('AG002'), [('area', 'ASM001'), ('state', 'SA001')])

    def test_missing_asm_is_skipped(self):
        self.assertEqual(self.chain('AG004'), [('branch', 'BA002'), ('state', 'SA001')])

    def test_unplaced_agent_has_no_chain(self):
        self.assertEqual(self.chain('AG003'), [])

    def test_inactive_supervisor_is_skipped(self):
        self.asm.is_active = False
        self.asm.save()
        self.assertEqual(self.chain('AG001'), [('branch', 'BA001'), ('state', 'SA001')])

    def test_first_active_supervisor_wins(self):
        BranchAdmin.objects.create(referral_code='BA009', first_name='Later', branch=self.kothrud)
        self.assertEqual(self.chain('AG001')[0], ('branch', 'BA001'))


class SubordinateCodesTest(HierarchyFixtureMixin, TestCase):
    """Test subordinate code sets used for override aggregation"""

    def setUp(self):
        self.build_hierarchy()

    def groups(self, code):
        resolved = HierarchyResolver.resolve(code)
        return {role: sorted(codes) for role, codes in HierarchyResolver.subordinate_codes(resolved)}

    def test_branch_admin_sees_branch_agents(self):
        self.assertEqual(self.groups('BA001'), {Role.AGENT: ['AG001']})

    def test_asm_sees_city_agents_and_branch_admins(self):
        self.assertEqual(self.groups('ASM001'), {
            Role.AGENT: ['AG001', 'AG002'],
            Role.BRANCH_ADMIN: ['BA001'],
        })

    def test_state_admin_sees_whole_state(self):
        self.assertEqual(self.groups('SA001'), {
            Role.AGENT: ['AG001', 'AG002', 'AG004'],
            Role.BRANCH_ADMIN: ['BA001', 'BA002'],
            Role.AREA_SALES_MANAGER: ['ASM001'],
        })

    def test_agent_has_no_subordinates(self):
        self.assertEqual(self.groups('AG001'), {})

    def test_inactive_subordinates_are_kept(self):
        """Past sales of deactivated sellers still count towards overrides"""
        self.agent.is_active = False
        self.agent.save()
        self.assertEqual(self.groups('BA001'), {Role.AGENT: ['AG001']})


class GeographyServiceTest(HierarchyFixtureMixin, TestCase):
    """Test case-insensitive geography lookups"""

    def setUp(self):
        self.build_hierarchy()

    def test_find_state_ignores_case(self):
        self.assertEqual(GeographyService.find_state(' maharashtra '), self.state)
        self.assertIsNone(GeographyService.find_state('Gujarat'))

    def test_find_city_requires_state(self):
        self.assertEqual(GeographyService.find_city('PUNE', 'maharashtra'), self.pune)
        self.assertIsNone(GeographyService.find_city('Pune', 'Gujarat'))

    def test_find_branch(self):
        self.assertEqual(GeographyService.find_branch('kothrud', 'pune'), self.kothrud)
        self.assertIsNone(GeographyService.find_branch('kothrud', 'mumbai'))

    def test_get_or_create_branch_reuses_rows(self):
        branch = GeographyService.get_or_create_branch('KOTHRUD', 'pune', 'MAHARASHTRA')
        self.assertEqual(branch, self.kothrud)

        new_branch = GeographyService.get_or_create_branch('Navrangpura', 'Ahmedabad', 'Gujarat')
        self.assertEqual(new_branch.city.state.name, 'Gujarat')
        self.assertEqual(State.objects.count(), 2)

    def test_names_are_stripped(self):
        state = State.objects.create(name='  Goa  ')
        self.assertEqual(state.name, 'Goa')


class HierarchyAPITest(HierarchyFixtureMixin, APITestCase):
    """Test hierarchy API endpoints"""

    def setUp(self):
        self.build_hierarchy()
        self.admin = User.objects.create_user('admin', 'admin@example.com', 'pass12345', is_staff=True)
        self.user = User.objects.create_user('bhavna', 'bhavna@example.com', 'pass12345')
        self.branch_admin.user = self.user
        self.branch_admin.save()

    def test_resolve_requires_admin(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.get('/api/hierarchy/resolve/AG001/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_resolve_returns_ancestors(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/hierarchy/resolve/ag001/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], 'agent')
        self.assertEqual(
            [a['level'] for a in response.data['ancestors']],
            ['branch', 'area', 'state']
        )

    def test_resolve_unknown_code(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/hierarchy/resolve/XX999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'actor_not_found')

    def test_my_profile(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.get('/api/hierarchy/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['actor']['referral_code'], 'BA001')
        self.assertEqual(response.data['context']['branch'], 'Kothrud')

    def test_my_team(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.get('/api/hierarchy/my-team/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['team'][0]['referral_codes'], ['AG001'])

    def test_my_profile_without_actor(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/hierarchy/me/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
