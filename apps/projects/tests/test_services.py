"""
Tests for project memberships and acting-role selection.
"""
from datetime import date, timedelta
import pytest
from django.utils import timezone

from apps.projects.models import ProjectMembership
from apps.projects.services import MembershipService
from apps.rbac.catalog import build_catalog
from apps.rbac.models import User


@pytest.fixture
def second_user(db):
    return User.objects.create_user(email='client@example.com', first_name='Anna', last_name='Client')


@pytest.mark.django_db
class TestMembershipWindow:
    """Test active_on and is_active_on date bounds."""

    def test_open_ended(self, membership):
        today = timezone.localdate()

        assert membership.is_active_on(today)
        assert membership.is_active_on(today + timedelta(days=3650))
        assert not membership.is_active_on(today - timedelta(days=1))

    def test_bounds_are_inclusive(self, project, user):
        membership = ProjectMembership.objects.create(
            project=project, user=user, role='PMC',
            valid_from=date(2025, 1, 1), valid_to=date(2025, 3, 31)
        )

        assert membership.is_active_on(date(2025, 1, 1))
        assert membership.is_active_on(date(2025, 3, 31))
        assert not membership.is_active_on(date(2025, 4, 1))
        assert ProjectMembership.objects.active_on(date(2025, 3, 31)).count() == 1
        assert ProjectMembership.objects.active_on(date(2024, 12, 31)).count() == 0

    def test_soft_deleted_membership_is_inactive(self, project, user, membership):
        membership.delete()

        assert MembershipService.active_roles(project.id, user.id) == []


@pytest.mark.django_db
class TestActingRole:
    """Test acting_role and pick_acting_role."""

    def test_no_membership(self, project, user):
        assert MembershipService.acting_role(project.id, user.id) is None

    def test_single_role(self, project, user, membership):
        assert MembershipService.acting_role(project.id, user.id) == 'Contractor'

    def test_priority(self, catalog):
        assert MembershipService.pick_acting_role(['Supplier', 'PMC', 'Client'], catalog) == 'Client'
        assert MembershipService.pick_acting_role(['Admin', 'IH-PMT'], catalog) == 'IH_PMT'

    def test_unknown_roles_ignored(self, catalog):
        assert MembershipService.pick_acting_role(['Inspector', 'Supplier'], catalog) == 'Supplier'
        assert MembershipService.pick_acting_role(['Inspector'], catalog) is None
        assert MembershipService.pick_acting_role([], catalog) is None

    def test_configured_priority(self):
        catalog = build_catalog({'ROLE_PRIORITY': ['Supplier', 'Admin']})

        assert MembershipService.pick_acting_role(['Admin', 'Supplier'], catalog) == 'Supplier'

    def test_other_project_not_counted(self, other_project, user, membership):
        assert MembershipService.acting_role(other_project.id, user.id) is None

    def test_malformed_ids(self, user):
        assert MembershipService.acting_role('not-a-uuid', user.id) is None


@pytest.mark.django_db
class TestActingRoles:
    """Test acting_roles for a whole project."""

    def test_lists_members_by_name(self, project, user, second_user, membership):
        ProjectMembership.objects.create(project=project, user=second_user, role='Client')
        ProjectMembership.objects.create(project=project, user=second_user, role='Supplier')

        entries = MembershipService.acting_roles(project.id)

        assert [(entry['user'].email, entry['role']) for entry in entries] == [
            ('client@example.com', 'Client'),
            ('engineer@example.com', 'Contractor'),
        ]

    def test_on_date(self, project, user, second_user):
        ProjectMembership.objects.create(
            project=project, user=user, role='PMC',
            valid_from=date(2025, 1, 1), valid_to=date(2025, 1, 31)
        )
        ProjectMembership.objects.create(
            project=project, user=second_user, role='Client', valid_from=date(2025, 2, 1)
        )

        january = MembershipService.acting_roles(project.id, on=date(2025, 1, 15))
        february = MembershipService.acting_roles(project.id, on=date(2025, 2, 15))

        assert [entry['role'] for entry in january] == ['PMC']
        assert [entry['role'] for entry in february] == ['Client']


class TestParseDate:

    def test_valid(self):
        assert MembershipService.parse_date('2025-02-28') == date(2025, 2, 28)

    def test_missing_or_malformed_is_today(self):
        today = timezone.localdate()

        assert MembershipService.parse_date(None) == today
        assert MembershipService.parse_date('') == today
        assert MembershipService.parse_date('28/02/2025') == today
        assert MembershipService.parse_date('2025-02-30') == today

    def test_date_passthrough(self):
        assert MembershipService.parse_date(date(2024, 5, 1)) == date(2024, 5, 1)
