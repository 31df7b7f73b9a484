import json
from io import StringIO
from django.core.management import call_command
import jwt
from django.test import TestCase, Client, RequestFactory
from .jwt_auth import create_access_token, decode_token, get_bearer_token
from .models import User, UserRole
from .permissions import get_user_permissions, Permissions
from .security import get_current_user


class UserModelTest(TestCase):
    def test_email_is_the_login_identifier(self):
        self.assertEqual(User.USERNAME_FIELD, 'email')
        user = User.objects.create_user(email="Mixed.Case@Example.com", password="pw")
        self.assertEqual(user.email, "mixed.case@example.com")
        self.assertEqual(user.get_username(), "mixed.case@example.com")


class RBACTest(TestCase):
    def test_user_permissions(self):
        user = User.objects.create_user(email="user@example.com", password="pw", role=UserRole.USER)
        perms = get_user_permissions(user)
        self.assertEqual(perms, [])

    def test_manager_permissions(self):
        user = User.objects.create_user(email="manager@example.com", password="pw", role=UserRole.MANAGER)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.TASKS_EDIT_ANY, perms)
        self.assertIn(Permissions.TASKS_ASSIGN, perms)
        self.assertNotIn(Permissions.TASKS_DELETE_ANY, perms)
        self.assertNotIn(Permissions.IDENTITY_MANAGE_USERS, perms)

    def test_admin_permissions(self):
        user = User.objects.create_user(email="admin@example.com", password="pw", role=UserRole.ADMIN)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.TASKS_VIEW_ALL, perms)
        self.assertIn(Permissions.IDENTITY_MANAGE_USERS, perms)

    def test_inactive_user_has_no_permissions(self):
        user = User.objects.create_user(
            email="gone@example.com", password="pw", role=UserRole.ADMIN, is_active=False
        )
        self.assertEqual(get_user_permissions(user), [])


class JWTTest(TestCase):
    def test_token_round_trip(self):
        user = User.objects.create_user(email="jwt@example.com", password="pw")
        payload = decode_token(create_access_token(user.id))
        self.assertEqual(payload['sub'], str(user.id))
        self.assertEqual(payload['type'], 'access')

    def test_foreign_signature_is_rejected(self):
        user = User.objects.create_user(email="jwt2@example.com", password="pw")
        token = jwt.encode({"sub": str(user.id), "type": "access"}, "some-other-secret", algorithm="HS256")
        self.assertIsNone(decode_token(token))

    def test_bearer_header_parsing(self):
        self.assertEqual(get_bearer_token("Bearer abc.def"), "abc.def")
        self.assertEqual(get_bearer_token("bearer abc"), "abc")
        self.assertIsNone(get_bearer_token("Token abc"))
        self.assertIsNone(get_bearer_token("Bearer "))
        self.assertIsNone(get_bearer_token(None))


class AuthAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(
            email="jane@example.com",
            password="secret123",
            first_name="Jane",
            last_name="Doe",
        )

    def post(self, path, payload, token=None):
        headers = {'HTTP_AUTHORIZATION': f'Bearer {token}'} if token else {}
        return self.client.post(
            path, data=json.dumps(payload), content_type='application/json', **headers
        )

    def put(self, path, payload, token):
        return self.client.put(
            path, data=json.dumps(payload), content_type='application/json',
            HTTP_AUTHORIZATION=f'Bearer {token}',
        )

    def test_register_rejects_malformed_input(self):
        response = self.post('/api/auth/register', {
            'email': 'invalid-email',
            'password': '123',
            'first_name': '',
            'last_name': '',
        })
        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertFalse(data['success'])
        self.assertEqual(data['error'], 'Validation failed')
        fields = {detail['field'] for detail in data['details']}
        self.assertIn('email', fields)
        self.assertIn('password', fields)

    def test_register_requires_letter_and_digit(self):
        response = self.post('/api/auth/register', {
            'email': 'new@example.com',
            'password': 'onlyletters',
            'first_name': 'New',
            'last_name': 'User',
        })
        self.assertEqual(response.status_code, 400)

    def test_register_creates_user_with_token(self):
        response = self.post('/api/auth/register', {
            'email': 'New@Example.com',
            'password': 'password123',
            'first_name': ' New ',
            'last_name': 'User',
        })
        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertTrue(data['token'])
        self.assertEqual(data['user']['email'], 'new@example.com')
        self.assertEqual(data['user']['first_name'], 'New')
        self.assertEqual(data['user']['role'], 'user')
        self.assertNotIn('password', data['user'])

    def test_register_rejects_duplicate_email(self):
        response = self.post('/api/auth/register', {
            'email': 'jane@example.com',
            'password': 'password123',
            'first_name': 'Jane',
            'last_name': 'Again',
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('already exists', response.json()['error'])

    def test_login_rejects_malformed_input(self):
        response = self.post('/api/auth/login', {'email': 'invalid-email', 'password': ''})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Validation failed')

    def test_login_requires_existing_credentials(self):
        response = self.post('/api/auth/login', {'email': 'nobody@example.com', 'password': 'secret123'})
        self.assertEqual(response.status_code, 401)

        response = self.post('/api/auth/login', {'email': 'jane@example.com', 'password': 'wrong123'})
        self.assertEqual(response.status_code, 401)

    def test_login_success_updates_last_login(self):
        response = self.post('/api/auth/login', {'email': 'jane@example.com', 'password': 'secret123'})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['token'])
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)

    def test_login_rejects_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self.post('/api/auth/login', {'email': 'jane@example.com', 'password': 'secret123'})
        self.assertEqual(response.status_code, 401)

    def test_profile_requires_token(self):
        response = self.client.get('/api/auth/profile')
        self.assertEqual(response.status_code, 401)
        self.assertIn('Access denied', response.json()['error'])

        response = self.client.get('/api/auth/profile', HTTP_AUTHORIZATION='Bearer not-a-token')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Access denied. Invalid token.')

    def test_profile_get_and_update(self):
        token = create_access_token(self.user.id)
        response = self.client.get('/api/auth/profile', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['email'], 'jane@example.com')

        response = self.put('/api/auth/profile', {'bio': 'Ships things'}, token)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['bio'], 'Ships things')
        self.assertEqual(response.json()['first_name'], 'Jane')

    def test_token_of_deactivated_user_is_rejected(self):
        token = create_access_token(self.user.id)
        self.user.is_active = False
        self.user.save()
        response = self.client.get('/api/auth/profile', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'Access denied. User not found or inactive.')

    def test_change_password(self):
        token = create_access_token(self.user.id)
        response = self.put('/api/auth/change-password', {
            'current_password': 'wrong123',
            'new_password': 'newpass456',
        }, token)
        self.assertEqual(response.status_code, 400)

        response = self.put('/api/auth/change-password', {
            'current_password': 'secret123',
            'new_password': 'newpass456',
        }, token)
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass456'))

    def test_logout(self):
        token = create_access_token(self.user.id)
        response = self.post('/api/auth/logout', {}, token)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])


class UserManagementAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.admin = User.objects.create_user(email="admin@example.com", password="pw", role=UserRole.ADMIN)
        self.manager = User.objects.create_user(email="manager@example.com", password="pw", role=UserRole.MANAGER)
        self.user = User.objects.create_user(email="user@example.com", password="pw", first_name="Sam")
        self.admin_token = create_access_token(self.admin.id)

    def test_list_users_requires_admin(self):
        token = create_access_token(self.manager.id)
        response = self.client.get('/api/auth/users', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 403)

    def test_list_users_with_filters(self):
        response = self.client.get('/api/auth/users', HTTP_AUTHORIZATION=f'Bearer {self.admin_token}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 3)

        response = self.client.get(
            '/api/auth/users?search=sam', HTTP_AUTHORIZATION=f'Bearer {self.admin_token}'
        )
        self.assertEqual([u['email'] for u in response.json()], ['user@example.com'])

        response = self.client.get(
            '/api/auth/users?role=manager', HTTP_AUTHORIZATION=f'Bearer {self.admin_token}'
        )
        self.assertEqual([u['email'] for u in response.json()], ['manager@example.com'])

    def test_update_role(self):
        response = self.client.put(
            f'/api/auth/users/{self.user.id}/role',
            data=json.dumps({'role': 'manager'}),
            content_type='application/json',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, UserRole.MANAGER)

    def test_update_role_rejects_unknown_role(self):
        response = self.client.put(
            f'/api/auth/users/{self.user.id}/role',
            data=json.dumps({'role': 'overlord'}),
            content_type='application/json',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 400)

    def test_admin_cannot_change_own_role(self):
        response = self.client.put(
            f'/api/auth/users/{self.admin.id}/role',
            data=json.dumps({'role': 'user'}),
            content_type='application/json',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 400)

    def test_deactivate_user(self):
        response = self.client.put(
            f'/api/auth/users/{self.user.id}/deactivate',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)

    def test_deactivate_self_is_rejected(self):
        response = self.client.put(
            f'/api/auth/users/{self.admin.id}/deactivate',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 400)


class CreateAdminCommandTest(TestCase):
    def test_creates_admin_once(self):
        out = StringIO()
        call_command('create_admin', stdout=out)
        call_command('create_admin', stdout=out)

        admin = User.objects.get(email='admin@taskmanager.com')
        self.assertEqual(admin.role, UserRole.ADMIN)
        self.assertTrue(admin.is_superuser)
        self.assertTrue(admin.check_password('AdminPass123'))
        self.assertIn('already exists', out.getvalue())


class CurrentUserTest(TestCase):
    def test_get_current_user(self):
        user = User.objects.create_user(email="current@example.com", password="pw")
        factory = RequestFactory()

        request = factory.get('/', HTTP_AUTHORIZATION=f'Bearer {create_access_token(user.id)}')
        self.assertEqual(get_current_user(request), user)

        self.assertIsNone(get_current_user(factory.get('/')))
        self.assertIsNone(get_current_user(factory.get('/', HTTP_AUTHORIZATION='Bearer junk')))

        user.is_active = False
        user.save()
        self.assertIsNone(get_current_user(request))
