"""
Tests for login, token lifecycle and the current-user profile.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from hierarchy.tests import HierarchyFixtureMixin
from users.backends import EmailOrUsernameModelBackend

User = get_user_model()


class EmailOrUsernameBackendTest(TestCase):
    """Test authentication by username or email"""

    def setUp(self):
        self.backend = EmailOrUsernameModelBackend()
        self.user = User.objects.create_user('asha', 'Asha@Example.com', 'pass12345')

    def test_username(self):
        self.assertEqual(self.backend.authenticate(None, username='ASHA', password='pass12345'), self.user)

    def test_email(self):
        self.assertEqual(
            self.backend.authenticate(None, username=' asha@example.com ', password='pass12345'),
            self.user
        )

    def test_wrong_password(self):
        self.assertIsNone(self.backend.authenticate(None, username='asha', password='nope'))

    def test_shared_email_is_ambiguous(self):
        User.objects.create_user('asha2', 'asha@example.com', 'pass12345')
        self.assertIsNone(self.backend.authenticate(None, username='asha@example.com', password='pass12345'))

    def test_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        self.assertIsNone(self.backend.authenticate(None, username='asha', password='pass12345'))


class AuthAPITest(HierarchyFixtureMixin, APITestCase):
    """Test JWT endpoints"""

    def setUp(self):
        self.build_hierarchy()
        self.user = User.objects.create_user('asha', 'asha@example.com', 'pass12345')
        self.agent.user = self.user
        self.agent.save()

    def login(self, username='asha', password='pass12345'):
        return self.client.post('/api/users/auth/login/', {
            'username': username, 'password': password
        }, format='json')

    def test_login_with_email(self):
        response = self.login(username='asha@example.com')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        response = self.login(password='wrong')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_includes_actor(self):
        access = self.login().data['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
        response = self.client.get('/api/users/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'asha')
        self.assertFalse(response.data['is_finance'])
        self.assertEqual(response.data['actor']['referral_code'], 'AG001')
        self.assertEqual(response.data['actor']['branch'], 'Kothrud')

    def test_me_for_finance_without_actor(self):
        finance = User.objects.create_user('finance', 'finance@example.com', 'pass12345')
        finance.groups.add(Group.objects.create(name='Finance'))
        self.client.force_authenticate(user=finance)

        response = self.client.get('/api/users/auth/me/')
        self.assertTrue(response.data['is_finance'])
        self.assertIsNone(response.data['actor'])

    def test_logout_blacklists_refresh(self):
        tokens = self.login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post('/api/users/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/users/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        # Second logout with the same token still succeeds
        response = self.client.post('/api/users/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_logout_requires_refresh(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.post('/api/users/auth/logout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
