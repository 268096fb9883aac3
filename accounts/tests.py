import datetime
import json
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from jose import jwt

from .auth import is_authorized, issue_token
from .models import Role, User


def make_user(name="alice", phonenumber="9000000001", role=Role.USER, password="secret123", department="R&D"):
    user = User(name=name, phonenumber=phonenumber, role=role, department=department)
    user.set_password(password)
    user.save()
    return user


def auth_header(user):
    return {'HTTP_AUTHORIZATION': f"Bearer {issue_token(user)}"}


class ApiTestCase(TestCase):
    def post_json(self, url, data=None, **extra):
        return self.client.post(url, json.dumps(data or {}), content_type='application/json', **extra)

    def put_json(self, url, data=None, **extra):
        return self.client.put(url, json.dumps(data or {}), content_type='application/json', **extra)


class SignupLoginTests(ApiTestCase):
    def signup_payload(self, **overrides):
        payload = {
            'name': "bob",
            'department': "Sales",
            'phonenumber': "9000000002",
            'password': "hunter22",
        }
        payload.update(overrides)
        return payload

    def test_signup_creates_player_with_hashed_password(self):
        response = self.post_json(reverse('accounts:signup'), self.signup_payload())

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['user']['role'], 'user')
        self.assertNotIn('password', body['user'])

        user = User.objects.get(phonenumber="9000000002")
        self.assertNotEqual(user.password, "hunter22")
        self.assertTrue(user.check_password("hunter22"))

    def test_signup_rejects_duplicate_phonenumber(self):
        make_user(phonenumber="9000000002")

        response = self.post_json(reverse('accounts:signup'), self.signup_payload())

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "User already exists.")
        self.assertEqual(User.objects.filter(phonenumber="9000000002").count(), 1)

    def test_signup_requires_all_fields(self):
        response = self.post_json(reverse('accounts:signup'), {'name': "bob"})

        self.assertEqual(response.status_code, 400)
        self.assertIn('password', response.json()['missing'])
        self.assertFalse(User.objects.exists())

    def test_signup_validates_phone_and_password(self):
        response = self.post_json(reverse('accounts:signup'), self.signup_payload(phonenumber="12ab"))
        self.assertEqual(response.status_code, 400)

        response = self.post_json(reverse('accounts:signup'), self.signup_payload(password="123"))
        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.exists())

    def test_public_signup_cannot_create_admin(self):
        response = self.post_json(reverse('accounts:signup'), self.signup_payload(role='admin'))

        self.assertEqual(response.status_code, 403)
        self.assertFalse(User.objects.exists())

    def test_login_by_phonenumber_returns_token(self):
        user = make_user()

        response = self.post_json(reverse('accounts:login'), {'phonenumber': "9000000001", 'password': "secret123"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        claims = jwt.get_unverified_claims(body['token'])
        self.assertEqual(claims['userId'], user.id)
        self.assertEqual(claims['role'], 'user')
        self.assertEqual(body['user']['id'], user.id)

    def test_login_by_name(self):
        make_user(name="carol")

        response = self.post_json(reverse('accounts:login'), {'name': "carol", 'password': "secret123"})

        self.assertEqual(response.status_code, 200)

    def test_login_with_wrong_password(self):
        make_user()

        response = self.post_json(reverse('accounts:login'), {'phonenumber': "9000000001", 'password': "nope!!"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Invalid password.")

    def test_invalid_json_body(self):
        response = self.client.post(reverse('accounts:login'), "{not json", content_type='application/json')

        self.assertEqual(response.status_code, 400)

    def test_wrong_method(self):
        response = self.client.get(reverse('accounts:signup'))

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response['Allow'], 'POST')


class AccessGateTests(ApiTestCase):
    def setUp(self):
        self.admin = make_user(name="root", phonenumber="9000000000", role=Role.ADMIN)
        self.player = make_user()

    def test_missing_token(self):
        response = self.client.get(reverse('accounts:retrieve'))

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], "Access denied. No token provided.")

    def test_garbage_token(self):
        response = self.client.get(reverse('accounts:retrieve'), HTTP_AUTHORIZATION="Bearer abc.def.ghi")

        self.assertEqual(response.status_code, 401)

    def test_expired_token(self):
        three_hours_ago = timezone.now() - datetime.timedelta(hours=3)
        with patch("accounts.auth.timezone.now", return_value=three_hours_ago):
            token = issue_token(self.admin)

        response = self.client.get(reverse('accounts:retrieve'), HTTP_AUTHORIZATION=f"Bearer {token}")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], "Invalid or expired token.")

    def test_token_for_deleted_user(self):
        headers = auth_header(self.player)
        self.player.delete()

        response = self.client.get(reverse('accounts:retrieve'), **headers)

        self.assertEqual(response.status_code, 404)

    def test_player_cannot_reach_admin_routes(self):
        response = self.client.get(reverse('accounts:retrieve'), **auth_header(self.player))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['message'], "Access denied. Only admins can view users.")

    def test_role_is_read_from_the_store(self):
        # The role comes from the stored user, not from the token claims
        headers = auth_header(self.admin)
        self.admin.role = Role.USER
        self.admin.save()

        response = self.client.get(reverse('accounts:retrieve'), **headers)

        self.assertEqual(response.status_code, 403)

    def test_is_authorized(self):
        self.assertTrue(is_authorized(Role.ADMIN, {Role.ADMIN}))
        self.assertFalse(is_authorized(Role.USER, {Role.ADMIN}))
        self.assertTrue(is_authorized(Role.USER, {Role.USER, Role.ADMIN}))
        with self.assertRaises(ValueError):
            is_authorized('guest', {Role.USER})


class AdminUserCrudTests(ApiTestCase):
    def setUp(self):
        self.admin = make_user(name="root", phonenumber="9000000000", role=Role.ADMIN)
        self.player = make_user()
        self.headers = auth_header(self.admin)

    def test_admin_creates_user(self):
        payload = {
            'name': "dave", 'department': "Ops", 'phonenumber': "9000000003",
            'password': "secret123", 'role': 'admin',
        }
        response = self.post_json(reverse('accounts:create'), payload, **self.headers)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(User.objects.get(phonenumber="9000000003").role, Role.ADMIN)

    def test_admin_create_with_duplicate_phonenumber(self):
        payload = {
            'name': "imposter", 'department': "Ops", 'phonenumber': self.player.phonenumber,
            'password': "secret123",
        }
        response = self.post_json(reverse('accounts:create'), payload, **self.headers)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "User already exists.")
        self.assertEqual(User.objects.count(), 2)
        self.assertFalse(User.objects.filter(name="imposter").exists())

    def test_retrieve_all_users(self):
        response = self.client.get(reverse('accounts:retrieve'), **self.headers)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['count'], 2)
        self.assertTrue(all('password' not in user for user in body['users']))

    def test_retrieve_one_user(self):
        response = self.client.get(reverse('accounts:retrieve_one', args=[self.player.id]), **self.headers)
        self.assertEqual(response.json()['user']['name'], "alice")

        response = self.client.get(reverse('accounts:retrieve_one', args=["not-an-id"]), **self.headers)
        self.assertEqual(response.status_code, 400)

        response = self.client.get(reverse('accounts:retrieve_one', args=[9999]), **self.headers)
        self.assertEqual(response.status_code, 404)

    def test_update_user_rehashes_password(self):
        url = reverse('accounts:update', args=[self.player.id])
        response = self.put_json(url, {'department': "Finance", 'password': "n3wpassword"}, **self.headers)

        self.assertEqual(response.status_code, 200)
        self.player.refresh_from_db()
        self.assertEqual(self.player.department, "Finance")
        self.assertTrue(self.player.check_password("n3wpassword"))

    def test_update_rejects_taken_phonenumber(self):
        url = reverse('accounts:update', args=[self.player.id])
        response = self.put_json(url, {'phonenumber': self.admin.phonenumber}, **self.headers)

        self.assertEqual(response.status_code, 400)
        self.player.refresh_from_db()
        self.assertEqual(self.player.phonenumber, "9000000001")

    def test_update_rejects_unknown_role(self):
        url = reverse('accounts:update', args=[self.player.id])
        response = self.put_json(url, {'role': 'superuser'}, **self.headers)

        self.assertEqual(response.status_code, 400)

    def test_delete_user(self):
        response = self.client.delete(reverse('accounts:delete', args=[self.player.id]), **self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['deletedUser']['name'], "alice")
        self.assertFalse(User.objects.filter(pk=self.player.pk).exists())

        response = self.client.delete(reverse('accounts:delete', args=[self.player.id]), **self.headers)
        self.assertEqual(response.status_code, 404)


class CreateAdminCommandTests(TestCase):
    def test_creates_then_promotes(self):
        out = StringIO()
        call_command("create_admin", "9111111111", "adminpass", stdout=out)
        admin = User.objects.get(phonenumber="9111111111")
        self.assertEqual(admin.role, Role.ADMIN)
        self.assertIn("created", out.getvalue())

        player = make_user(phonenumber="9222222222")
        call_command("create_admin", "9222222222", "otherpass", stdout=StringIO())
        player.refresh_from_db()
        self.assertEqual(player.role, Role.ADMIN)
        self.assertTrue(player.check_password("otherpass"))
