"""
Permission administration REST API views.

Implements endpoints for:
- Permission catalog
- Role templates (list, read, replace)
- Project overrides per role (read effective, upsert, reset)
- User deny overrides per project (read, upsert, reset, effective preview)

All endpoints require a platform administrator.
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.permissions import IsPlatformAdmin
from apps.projects.services import MembershipService
from apps.rbac.catalog import get_catalog
from apps.rbac.resolver import PermissionResolver
from apps.rbac.serializers import (
    MatrixPayloadSerializer, PermissionCatalogSerializer, PermissionTemplateSerializer,
)
from apps.rbac.stores import ProjectOverrideStore, RoleTemplateStore, UserOverrideStore

logger = logging.getLogger(__name__)


MATRIX_EXAMPLE = OpenApiExample(
    'Matrix payload',
    value={'matrix': {'WIR': {'view': True, 'raise': True, 'approve': False}}},
    request_only=True
)


def parse_matrix_payload(request):
    """Validate the ``{"matrix": ...}`` body and return the raw matrix."""
    serializer = MatrixPayloadSerializer(data=request.data)
    if not serializer.is_valid():
        raise ValidationError('Validation error', details=serializer.errors)
    return serializer.validated_data['matrix']


class PermissionAdminView(APIView):
    """Base view for permission administration endpoints."""

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.catalog = get_catalog()


@extend_schema_view(
    get=extend_schema(
        tags=['Permissions - Templates'],
        summary='Permission catalog',
        description='Modules, actions and roles known to the permission model, plus the locked cells.',
        responses={200: PermissionCatalogSerializer}
    )
)
class PermissionCatalogView(PermissionAdminView):
    """
    GET /v1/admin/permissions/catalog
    """

    def get(self, request):
        return Response(PermissionCatalogSerializer.from_catalog(self.catalog).data)


@extend_schema_view(
    get=extend_schema(
        tags=['Permissions - Templates'],
        summary='List role templates',
        description='All stored role templates, ordered by role. Matrices are full normalized grids.',
        responses={200: PermissionTemplateSerializer(many=True)}
    )
)
class TemplateListView(PermissionAdminView):
    """
    GET /v1/admin/permissions/templates
    """

    def get(self, request):
        templates = RoleTemplateStore(self.catalog).list_templates()
        serializer = PermissionTemplateSerializer(templates, many=True, context={'catalog': self.catalog})
        return Response(serializer.data)


@extend_schema_view(
    get=extend_schema(
        tags=['Permissions - Templates'],
        summary='Get role template',
        description='Template for one role. `IH-PMT` and `IH_PMT` are both accepted.',
        responses={
            200: PermissionTemplateSerializer,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    ),
    put=extend_schema(
        tags=['Permissions - Templates'],
        summary='Replace role template',
        description='''
Replace the template for a role.

Cells are coerced to booleans, missing cells become `false` and
`LTR.review` / `LTR.approve` are always stored as `false`. Unrecognized
modules, actions and values are dropped and listed in `dropped`.
        ''',
        request=MatrixPayloadSerializer,
        responses={
            200: OpenApiTypes.OBJECT,
            400: OpenApiTypes.OBJECT,
        },
        examples=[MATRIX_EXAMPLE]
    )
)
class TemplateDetailView(PermissionAdminView):
    """
    GET /v1/admin/permissions/templates/{role}
    PUT /v1/admin/permissions/templates/{role}
    """

    def get(self, request, role):
        store = RoleTemplateStore(self.catalog)
        store.require_role(role)
        template = store.get_row(role)
        if template is None:
            raise NotFoundError(f"Template for role {role} not found", details={'role': role})
        return Response(PermissionTemplateSerializer(template, context={'catalog': self.catalog}).data)

    def put(self, request, role):
        matrix = parse_matrix_payload(request)
        store = RoleTemplateStore(self.catalog)
        result = store.upsert(role, matrix, actor=request.user, request=request)
        template = store.get_row(role)

        data = PermissionTemplateSerializer(template, context={'catalog': self.catalog}).data
        data['dropped'] = result.dropped
        return Response(data, status=status.HTTP_200_OK)


@extend_schema_view(
    get=extend_schema(
        tags=['Permissions - Project Overrides'],
        summary='Get effective project permissions for a role',
        description='''
Returns the project override merged over the role template
(`source: "override"`), or the template alone when the project has no
override for the role (`source: "template"`). 404 when neither exists.
        ''',
        responses={
            200: OpenApiTypes.OBJECT,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    ),
    put=extend_schema(
        tags=['Permissions - Project Overrides'],
        summary='Upsert project override',
        description='''
Store the override for (project, role). Only recognized module/action cells
are kept and values are coerced to booleans. The response echoes the
normalized override, never the raw input.
        ''',
        request=MatrixPayloadSerializer,
        responses={
            200: OpenApiTypes.OBJECT,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
        examples=[MATRIX_EXAMPLE]
    )
)
class ProjectOverrideView(PermissionAdminView):
    """
    GET /v1/admin/permissions/projects/{project_id}/overrides/{role}
    PUT /v1/admin/permissions/projects/{project_id}/overrides/{role}
    """

    def get(self, request, project_id, role):
        effective = ProjectOverrideStore(self.catalog).get_effective(project_id, role)
        return Response(effective_payload(effective))

    def put(self, request, project_id, role):
        matrix = parse_matrix_payload(request)
        store = ProjectOverrideStore(self.catalog)
        result = store.upsert(project_id, role, matrix, actor=request.user, request=request)

        return Response({
            'source': 'override',
            'projectId': str(project_id),
            'role': self.catalog.role_to_api(store.require_role(role)),
            'matrix': result.matrix,
            'dropped': result.dropped,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['Permissions - Project Overrides'],
        summary='Reset project override',
        description='Delete the override for (project, role) and return the role template it falls back to.',
        request=None,
        responses={
            200: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        }
    )
)
class ProjectOverrideResetView(PermissionAdminView):
    """
    POST /v1/admin/permissions/projects/{project_id}/overrides/{role}/reset
    """

    def post(self, request, project_id, role):
        store = ProjectOverrideStore(self.catalog)
        store.reset(project_id, role, actor=request.user, request=request)
        return Response(effective_payload(store.get_effective(project_id, role)))


@extend_schema_view(
    get=extend_schema(
        tags=['Permissions - User Overrides'],
        summary='Get user override',
        description='Deny overrides for (project, user). Empty matrix when none are stored.',
        responses={200: OpenApiTypes.OBJECT}
    ),
    put=extend_schema(
        tags=['Permissions - User Overrides'],
        summary='Upsert user override',
        description='''
Store deny overrides for (project, user).

Only `"inherit"` and `"deny"` values are kept, `LTR.review` and
`LTR.approve` are always removed and modules left empty are omitted.
        ''',
        request=MatrixPayloadSerializer,
        responses={
            200: OpenApiTypes.OBJECT,
            400: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
        examples=[
            OpenApiExample(
                'Deny raising WIRs',
                value={'matrix': {'WIR': {'raise': 'deny', 'view': 'inherit'}}},
                request_only=True
            )
        ]
    )
)
class UserOverrideView(PermissionAdminView):
    """
    GET /v1/admin/permissions/projects/{project_id}/users/{user_id}/overrides
    PUT /v1/admin/permissions/projects/{project_id}/users/{user_id}/overrides
    """

    def get(self, request, project_id, user_id):
        matrix = UserOverrideStore(self.catalog).get(project_id, user_id)
        return Response({
            'projectId': str(project_id),
            'userId': str(user_id),
            'matrix': matrix,
        })

    def put(self, request, project_id, user_id):
        matrix = parse_matrix_payload(request)
        result = UserOverrideStore(self.catalog).upsert(
            project_id, user_id, matrix, actor=request.user, request=request
        )
        return Response({
            'projectId': str(project_id),
            'userId': str(user_id),
            'matrix': result.matrix,
            'dropped': result.dropped,
        })


@extend_schema_view(
    post=extend_schema(
        tags=['Permissions - User Overrides'],
        summary='Reset user override',
        description='Delete all deny overrides for (project, user).',
        request=None,
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
)
class UserOverrideResetView(PermissionAdminView):
    """
    POST /v1/admin/permissions/projects/{project_id}/users/{user_id}/overrides/reset
    """

    def post(self, request, project_id, user_id):
        UserOverrideStore(self.catalog).reset(project_id, user_id, actor=request.user, request=request)
        return Response({'ok': True, 'projectId': str(project_id), 'userId': str(user_id)})


@extend_schema_view(
    get=extend_schema(
        tags=['Permissions - User Overrides'],
        summary='Preview effective permissions for a user',
        description='''
Resolve template, project override and user denies for a user.

By default the user's acting role on `date` (today when omitted) is used;
pass `role` to preview the user acting as another role.
        ''',
        parameters=[
            OpenApiParameter('date', OpenApiTypes.DATE, OpenApiParameter.QUERY, required=False),
            OpenApiParameter('role', OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT}
    )
)
class UserEffectivePermissionsView(PermissionAdminView):
    """
    GET /v1/admin/permissions/projects/{project_id}/users/{user_id}/effective
    """

    def get(self, request, project_id, user_id):
        resolver = PermissionResolver(self.catalog)
        role = request.query_params.get('role')

        if role:
            stored_role = RoleTemplateStore(self.catalog).require_role(role)
            effective = resolver.resolve(project_id, user_id, stored_role)
        else:
            on = MembershipService.parse_date(request.query_params.get('date'))
            effective = resolver.resolve_for_member(project_id, user_id, on=on)

        return Response({
            'projectId': str(project_id),
            'userId': str(user_id),
            'role': self.catalog.role_to_api(effective.role) if effective.role else None,
            'matrix': effective.as_dict(),
        })


def effective_payload(effective):
    return {
        'source': effective['source'],
        'projectId': effective['project_id'],
        'role': effective['role'],
        'matrix': effective['matrix'],
    }
