"""
DRF permission classes and decorators for project module permissions.

This module provides:
- IsPlatformAdmin: restricts permission administration endpoints
- HasModulePermission: enforces a (module, action) cell of the caller's
  effective permissions in the project named by the URL
- @requires_module_action: declares the required cell on a view or handler
"""
import logging
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


class IsPlatformAdmin(BasePermission):
    """
    Allow only authenticated platform administrators (``is_superuser``).
    """

    message = 'Admin only'

    def has_permission(self, request, view):
        user = getattr(request, 'user', None)
        allowed = bool(user and user.is_authenticated and getattr(user, 'is_superuser', False))
        if not allowed:
            logger.warning(
                "Admin endpoint denied",
                extra={
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                }
            )
        return allowed


class HasModulePermission(BasePermission):
    """
    DRF permission class that enforces a module permission on API endpoints.

    The required cell comes from ``required_permission`` on the handler
    method or the view (see ``requires_module_action``). The project is
    read from the ``project_id`` URL kwarg, and the caller's effective
    permissions are resolved from their acting role on the current day.
    The resolved grid is cached on the request as
    ``request.effective_permissions``.

    Usage:
        @requires_module_action('WIR', 'raise')
        class WIRCreateView(APIView):
            permission_classes = [IsAuthenticated, HasModulePermission]
    """

    message = 'You do not have permission to perform this action in this project'

    def has_permission(self, request, view):
        required = get_required_permission(view, request.method)
        if required is None:
            return True

        module, action = required
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            return False

        project_id = getattr(view, 'kwargs', {}).get('project_id')
        if not project_id:
            logger.error(
                f"{view.__class__.__name__} requires {module}.{action} but has no project_id URL kwarg"
            )
            return False

        from apps.rbac.resolver import PermissionResolver, is_allowed

        effective = getattr(request, 'effective_permissions', None)
        if effective is None:
            effective = PermissionResolver().resolve_for_member(project_id, user.id)
            request.effective_permissions = effective

        if is_allowed(effective, module, action):
            logger.debug(
                f"Permission granted: {module}.{action}",
                extra={'view': view.__class__.__name__, 'role': effective.role}
            )
            return True

        logger.warning(
            f"Permission denied: user {user.id} lacks {module}.{action} in project {project_id}",
            extra={
                'permission_module': module,
                'action': action,
                'role': effective.role,
                'view': view.__class__.__name__,
                'method': request.method,
                'path': request.path,
            }
        )
        SecurityLogger.log_permission_denied(
            user, project_id, module, action,
            ip_address=request.META.get('REMOTE_ADDR')
        )
        return False


def get_required_permission(view, method):
    """(module, action) declared for the handler of ``method``, falling back to the view."""
    handler = getattr(view, (method or '').lower(), None)
    required = getattr(handler, 'required_permission', None)
    if required is None:
        required = getattr(view, 'required_permission', None)
    return required


def requires_module_action(module, action):
    """
    Decorator to declare the (module, action) cell a view or handler requires.

    Checked by HasModulePermission before the handler runs.

    Usage:
        @requires_module_action('MIR', 'view')
        class MIRListView(APIView):
            permission_classes = [IsAuthenticated, HasModulePermission]

    Or on individual methods:
        class MIRView(APIView):
            permission_classes = [IsAuthenticated, HasModulePermission]

            @requires_module_action('MIR', 'view')
            def get(self, request, project_id):
                pass

            @requires_module_action('MIR', 'raise')
            def post(self, request, project_id):
                pass
    """
    def decorator(view_or_method):
        view_or_method.required_permission = (module, action)
        return view_or_method

    return decorator
