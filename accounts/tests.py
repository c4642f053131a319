from django.test import TestCase, Client
from django.contrib.auth import get_user_model
from django.urls import reverse

User = get_user_model()


class UserManagerTests(TestCase):
    """Tests for the custom UserManager."""

    def test_create_user(self):
        """Test creating a regular user with email."""
        user = User.objects.create_user(
            email='test@example.com',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')
        self.assertTrue(user.check_password('testpass123'))
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_superuser)
        self.assertTrue(user.is_active)

    def test_create_user_without_email_raises_error(self):
        """Test that creating a user without email raises ValueError."""
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='testpass123')

    def test_create_user_normalizes_email(self):
        """Test that email is normalized (lowercase domain)."""
        user = User.objects.create_user(
            email='test@EXAMPLE.COM',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')

    def test_create_superuser(self):
        user = User.objects.create_superuser(
            email='admin@example.com',
            password='adminpass123'
        )
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_superuser)

    def test_create_superuser_without_is_superuser_raises_error(self):
        with self.assertRaises(ValueError):
            User.objects.create_superuser(
                email='admin@example.com',
                password='adminpass123',
                is_superuser=False
            )

    def test_create_school_admin(self):
        user = User.objects.create_school_admin(
            email='principal@example.com',
            password='schoolpass123'
        )
        self.assertTrue(user.is_school_admin)
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_teacher)

    def test_create_teacher(self):
        user = User.objects.create_teacher(
            email='teacher@example.com',
            password='teacherpass123'
        )
        self.assertTrue(user.is_teacher)
        self.assertFalse(user.is_school_admin)


class UserModelTests(TestCase):
    """Tests for the User model."""

    def test_user_str_returns_email(self):
        user = User.objects.create_user(email='test@example.com')
        self.assertEqual(str(user), 'test@example.com')

    def test_full_name_falls_back_to_email(self):
        user = User.objects.create_user(email='nameless@example.com')
        self.assertEqual(user.get_full_name(), 'nameless@example.com')

    def test_display_name_with_alternate_name(self):
        user = User.objects.create_user(
            email='kojo@example.com',
            first_name='Kojo',
            last_name='Mensah',
            alternate_name='KJ'
        )
        self.assertEqual(user.display_name(), 'Kojo (KJ) Mensah')
        self.assertEqual(user.display_name(nameswap=True), 'KJ (Kojo) Mensah')

    def test_display_name_without_alternate_name(self):
        user = User.objects.create_user(email='a@example.com', first_name='Abena', last_name='Ofori')
        self.assertEqual(user.display_name(nameswap=True), 'Abena Ofori')

    def test_initials(self):
        user = User.objects.create_user(email='a@example.com', first_name='abena', last_name='ofori')
        self.assertEqual(user.initials, 'AO')

    def test_role_labels(self):
        self.assertEqual(User.objects.create_superuser(email='s@example.com').role_label, 'Super Admin')
        self.assertEqual(User.objects.create_school_admin(email='a@example.com').role_label, 'School Admin')
        self.assertEqual(User.objects.create_teacher(email='t@example.com').role_label, 'Teacher')
        self.assertEqual(User.objects.create_user(email='u@example.com').role_label, 'User')

    def test_username_is_none(self):
        user = User.objects.create_user(email='test@example.com')
        self.assertFalse(hasattr(user, 'username') and user.username)


class LoginViewTests(TestCase):
    """Tests for logging in with an email address."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(email='teacher@example.com', password='teacherpass123')
        self.url = reverse('accounts:login')

    def test_login_page_renders(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'accounts/login.html')

    def test_login_redirects_to_gradebook(self):
        response = self.client.post(self.url, {
            'username': 'teacher@example.com',
            'password': 'teacherpass123',
        })
        self.assertRedirects(response, reverse('gradebook:index'))

    def test_invalid_login(self):
        response = self.client.post(self.url, {
            'username': 'teacher@example.com',
            'password': 'wrong',
        })
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid email or password.')
