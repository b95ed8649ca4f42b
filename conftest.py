"""
Pytest configuration and fixtures.
"""
import pytest
from django.conf import settings
import django
from django.core.management import call_command


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.SECURE_SSL_REDIRECT = False
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    django.setup()


@pytest.fixture(scope='session')
def django_db_setup(django_db_setup, django_db_blocker):
    """Set up test database tables for apps without migrations."""
    with django_db_blocker.unblock():
        call_command('migrate', '--run-syncdb', verbosity=0)


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def catalog():
    """The built-in permission catalog."""
    from apps.rbac.catalog import build_catalog
    return build_catalog()


@pytest.fixture
def user(db):
    """Create a regular user."""
    from apps.rbac.models import User
    return User.objects.create_user(
        email='engineer@example.com',
        password='testpass123',
        first_name='Site',
        last_name='Engineer'
    )


@pytest.fixture
def admin_user(db):
    """Create a platform administrator."""
    from apps.rbac.models import User
    return User.objects.create_superuser(
        email='admin@example.com',
        password='testpass123',
        first_name='Platform',
        last_name='Admin'
    )


@pytest.fixture
def project(db):
    """Create an active project."""
    from apps.projects.models import Project
    return Project.objects.create(
        code='PRJ-0001',
        title='Riverside Tower',
        status=Project.STATUS_ACTIVE
    )


@pytest.fixture
def other_project(db):
    """Create another project for isolation tests."""
    from apps.projects.models import Project
    return Project.objects.create(
        code='PRJ-0002',
        title='Harbour Bridge Retrofit',
        status=Project.STATUS_ACTIVE
    )


@pytest.fixture
def membership(db, project, user):
    """Make ``user`` a Contractor in ``project`` from today, open-ended."""
    from apps.projects.models import ProjectMembership
    return ProjectMembership.objects.create(project=project, user=user, role='Contractor')


@pytest.fixture
def admin_client(api_client, admin_user):
    """API client authenticated as the platform administrator."""
    api_client.force_authenticate(user=admin_user)
    return api_client
