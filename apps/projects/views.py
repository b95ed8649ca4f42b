"""
Project REST API views.

Implements endpoints for:
- The caller's acting role and effective permissions in a project
- Acting roles of all project members on a date
"""
import logging
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import PermissionDeniedError
from apps.core.middleware import set_request_context
from apps.projects.serializers import ActingRoleSerializer, MembershipMeSerializer
from apps.projects.services import MembershipService
from apps.rbac.catalog import get_catalog
from apps.rbac.resolver import PermissionResolver

logger = logging.getLogger(__name__)


@extend_schema_view(
    get=extend_schema(
        tags=['Projects'],
        summary='My role and permissions in a project',
        description='''
Returns the caller's acting role in the project today and the effective
permission grid resolved from the role template, the project override and
the caller's deny overrides.

403 when the caller has no active membership in the project.
        ''',
        responses={
            200: MembershipMeSerializer,
            403: OpenApiTypes.OBJECT,
        }
    )
)
class MembershipMeView(APIView):
    """
    GET /v1/projects/{project_id}/memberships/me
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        catalog = get_catalog()
        set_request_context(project_id=project_id, user_id=str(request.user.id))

        role = MembershipService.acting_role(project_id, request.user.id, catalog=catalog)
        if role is None:
            raise PermissionDeniedError(
                'You are not a member of this project',
                details={'project_id': str(project_id)}
            )

        effective = PermissionResolver(catalog).resolve(project_id, request.user.id, role)
        serializer = MembershipMeSerializer({
            'roleInProject': catalog.role_to_api(role),
            'effectivePermissions': effective.as_dict(),
        })
        return Response(serializer.data)


@extend_schema_view(
    get=extend_schema(
        tags=['Projects'],
        summary='Acting roles on a date',
        description='''
Every member with an active membership on `date` (YYYY-MM-DD, default today)
and the highest-priority role they hold that day.

Available to current project members and platform administrators.
        ''',
        parameters=[
            OpenApiParameter('date', OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
        ],
        responses={
            200: ActingRoleSerializer(many=True),
            403: OpenApiTypes.OBJECT,
        }
    )
)
class ActingRolesView(APIView):
    """
    GET /v1/projects/{project_id}/roles/acting?date=YYYY-MM-DD
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        catalog = get_catalog()
        on = MembershipService.parse_date(request.query_params.get('date'))

        # Membership is checked for today, independent of the requested date
        if not request.user.is_superuser and MembershipService.acting_role(
            project_id, request.user.id, catalog=catalog
        ) is None:
            raise PermissionDeniedError(
                'You are not a member of this project',
                details={'project_id': str(project_id)}
            )

        entries = MembershipService.acting_roles(project_id, on=on, catalog=catalog)
        serializer = ActingRoleSerializer(
            [{'user': entry['user'], 'actingRole': catalog.role_to_api(entry['role'])} for entry in entries],
            many=True
        )
        return Response(serializer.data)
