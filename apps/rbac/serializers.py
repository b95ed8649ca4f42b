"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (login, current user)
- Permission catalog
- Role templates
- Matrix payloads for template, project override and user override writes

Permission payloads use the camelCase keys the project frontend reads
(``projectId``, ``roleInProject``, ...). Auth payloads are snake_case.
"""
from rest_framework import serializers
from apps.rbac.catalog import get_catalog
from apps.rbac.matrix import normalize_template
from apps.rbac.models import User, PermissionTemplate


# ===== AUTHENTICATION SERIALIZERS =====

class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_email(self, value):
        return User.objects.normalize_email(value)


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model."""

    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'user_code', 'first_name', 'middle_name', 'last_name',
            'full_name', 'phone', 'is_active', 'is_superuser', 'last_login_at',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation used in project listings."""

    fullName = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'fullName', 'email']
        read_only_fields = fields


# ===== PERMISSION SERIALIZERS =====

class MatrixPayloadSerializer(serializers.Serializer):
    """
    Request body for template and override writes: ``{"matrix": {...}}``.

    The matrix itself is parsed permissively by the stores; entries that
    cannot be interpreted are dropped and reported back as ``dropped``.
    """

    matrix = serializers.JSONField(required=False, default=dict)


class PermissionCatalogSerializer(serializers.Serializer):
    """Modules, actions and roles (API names) of the permission catalog."""

    modules = serializers.ListField(child=serializers.CharField())
    actions = serializers.ListField(child=serializers.CharField())
    roles = serializers.ListField(child=serializers.CharField())
    lockedCells = serializers.ListField(child=serializers.CharField())

    @classmethod
    def from_catalog(cls, catalog):
        return cls({
            'modules': list(catalog.modules),
            'actions': list(catalog.actions),
            'roles': [catalog.role_to_api(role) for role in catalog.roles],
            'lockedCells': sorted(f"{module}.{action}" for module, action in catalog.locked_cells),
        })


class PermissionTemplateSerializer(serializers.ModelSerializer):
    """
    Serializer for PermissionTemplate.

    ``role`` is the API role name and ``matrix`` the full normalized grid.
    """

    role = serializers.SerializerMethodField()
    matrix = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = PermissionTemplate
        fields = ['id', 'role', 'matrix', 'createdAt', 'updatedAt']
        read_only_fields = fields

    def _catalog(self):
        return self.context.get('catalog') or get_catalog()

    def get_role(self, obj) -> str:
        return self._catalog().role_to_api(obj.role)

    def get_matrix(self, obj) -> dict:
        return normalize_template(obj.matrix, self._catalog()).matrix
