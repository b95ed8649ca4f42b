"""
Tests for project module permission classes and decorators.
"""
import pytest
from unittest.mock import Mock, patch
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.test import APIRequestFactory, force_authenticate
from rest_framework.views import APIView

from apps.core.permissions import (
    HasModulePermission, IsPlatformAdmin, get_required_permission, requires_module_action,
)
from apps.rbac.stores import RoleTemplateStore, UserOverrideStore


@requires_module_action('WIR', 'raise')
class RaiseWIRView(APIView):
    permission_classes = [IsAuthenticated, HasModulePermission]

    def get(self, request, project_id):
        return Response({'role': request.effective_permissions.role})


class MIRView(APIView):
    permission_classes = [IsAuthenticated, HasModulePermission]

    @requires_module_action('MIR', 'view')
    def get(self, request, project_id):
        return Response({'ok': True})

    @requires_module_action('MIR', 'close')
    def post(self, request, project_id):
        return Response({'ok': True})


class OpenView(APIView):
    permission_classes = [IsAuthenticated, HasModulePermission]

    def get(self, request, project_id):
        return Response({'ok': True})


@pytest.fixture
def factory():
    return APIRequestFactory()


def call(view_class, factory, user, project_id, method='get'):
    request = getattr(factory, method)(f'/v1/projects/{project_id}/test')
    force_authenticate(request, user=user)
    return view_class.as_view()(request, project_id=str(project_id))


class TestRequiresModuleAction:
    """Test the decorator and required-permission lookup."""

    def test_decorates_view_class(self):
        assert RaiseWIRView.required_permission == ('WIR', 'raise')

    def test_handler_overrides_view(self):
        view = MIRView()

        assert get_required_permission(view, 'GET') == ('MIR', 'view')
        assert get_required_permission(view, 'POST') == ('MIR', 'close')

    def test_no_requirement(self):
        assert get_required_permission(OpenView(), 'GET') is None


class TestIsPlatformAdmin:
    """Test IsPlatformAdmin permission class."""

    def test_superuser_allowed(self):
        request = Mock()
        request.user = Mock(is_authenticated=True, is_superuser=True)

        assert IsPlatformAdmin().has_permission(request, Mock()) is True

    def test_regular_user_denied(self):
        request = Mock()
        request.user = Mock(is_authenticated=True, is_superuser=False)

        assert IsPlatformAdmin().has_permission(request, Mock()) is False

    def test_anonymous_denied(self):
        request = Mock()
        request.user = Mock(is_authenticated=False, is_superuser=True)

        assert IsPlatformAdmin().has_permission(request, Mock()) is False


@pytest.mark.django_db
class TestHasModulePermission:
    """Test HasModulePermission against resolved project permissions."""

    def test_allowed_by_template(self, factory, catalog, project, user, membership):
        RoleTemplateStore(catalog).upsert('Contractor', {'WIR': {'raise': True}})

        response = call(RaiseWIRView, factory, user, project.id)

        assert response.status_code == 200
        assert response.data == {'role': 'Contractor'}

    def test_denied_by_template(self, factory, catalog, project, user, membership):
        RoleTemplateStore(catalog).upsert('Contractor', {'WIR': {'view': True}})

        response = call(RaiseWIRView, factory, user, project.id)

        assert response.status_code == 403

    def test_denied_by_user_override(self, factory, catalog, project, user, membership):
        RoleTemplateStore(catalog).upsert('Contractor', {'WIR': {'raise': True}})
        UserOverrideStore(catalog).upsert(project.id, user.id, {'WIR': {'raise': 'deny'}})

        response = call(RaiseWIRView, factory, user, project.id)

        assert response.status_code == 403

    def test_non_member_denied(self, factory, catalog, project, user):
        RoleTemplateStore(catalog).seed_defaults()

        response = call(RaiseWIRView, factory, user, project.id)

        assert response.status_code == 403

    def test_superuser_without_membership_denied(self, factory, catalog, project, admin_user):
        RoleTemplateStore(catalog).seed_defaults()

        response = call(RaiseWIRView, factory, admin_user, project.id)

        assert response.status_code == 403

    def test_per_handler_requirement(self, factory, catalog, project, user, membership):
        RoleTemplateStore(catalog).upsert('Contractor', {'MIR': {'view': True}})

        assert call(MIRView, factory, user, project.id).status_code == 200
        assert call(MIRView, factory, user, project.id, method='post').status_code == 403

    def test_view_without_requirement(self, factory, project, user):
        assert call(OpenView, factory, user, project.id).status_code == 200

    def test_denial_is_security_logged(self, factory, catalog, project, user, membership):
        with patch('apps.core.permissions.SecurityLogger.log_permission_denied') as log_denied:
            call(RaiseWIRView, factory, user, project.id)

        log_denied.assert_called_once()
        args = log_denied.call_args[0]
        assert args[0] == user
        assert args[2:] == ('WIR', 'raise')
