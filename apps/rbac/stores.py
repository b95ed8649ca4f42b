"""
Persistence for role templates, project overrides and user overrides.

Each store reads and writes one table and runs every matrix through the
normalizers in apps.rbac.matrix, both on write and when stored JSON is
read back. Database failures surface as StoreUnavailableError and are
never mistaken for "no override".
"""
import logging
import uuid
from functools import wraps
from typing import Dict, List, Optional

from django.db import transaction, DatabaseError

from apps.core.exceptions import NotFoundError, StoreUnavailableError, ValidationError
from apps.core.logging import SecurityLogger
from apps.rbac.catalog import Grid, PermissionCatalog, get_catalog
from apps.rbac.matrix import (
    ParsedMatrix, copy_grid, normalize_project_override,
    normalize_template, normalize_user_override,
)
from apps.rbac.models import (
    AuditLog, PermissionTemplate, ProjectPermissionOverride,
    User, UserPermissionOverride,
)

logger = logging.getLogger(__name__)


def store_operation(method):
    """Translate database failures into StoreUnavailableError."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except DatabaseError as exc:
            logger.error(
                f"{self.__class__.__name__}.{method.__name__} failed: {exc}",
                exc_info=True
            )
            raise StoreUnavailableError(
                'Permission store is unavailable',
                details={'operation': f"{self.__class__.__name__}.{method.__name__}"}
            ) from exc
    return wrapper


def require_id(value, field_name: str) -> uuid.UUID:
    """
    Return ``value`` as a UUID or raise ValidationError.

    Accepts model instances, UUIDs and strings.
    """
    value = getattr(value, 'pk', value)
    if value is None or value == '':
        raise ValidationError(f"{field_name} is required", details={'field': field_name})
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid identifier", details={'field': field_name})


def parse_id(value, field_name: str) -> Optional[uuid.UUID]:
    """
    Like require_id, but a malformed identifier yields None.

    Used on read paths, where an id that cannot exist means "no override".
    """
    value = getattr(value, 'pk', value)
    if value is None or value == '':
        raise ValidationError(f"{field_name} is required", details={'field': field_name})
    try:
        return require_id(value, field_name)
    except ValidationError:
        return None


class _CatalogStore:

    def __init__(self, catalog: Optional[PermissionCatalog] = None):
        self.catalog = catalog or get_catalog()

    def require_role(self, role) -> str:
        """Map an API or storage role name to the storage name, or raise ValidationError."""
        if role is None or role == '':
            raise ValidationError('role is required', details={'field': 'role'})
        stored = self.catalog.role_from_api(role)
        if stored is None:
            raise ValidationError(
                f"Unknown role '{role}'",
                details={'field': 'role', 'allowed': [self.catalog.role_to_api(r) for r in self.catalog.roles]}
            )
        return stored

    def _require_project(self, project_id):
        from apps.projects.models import Project

        project = Project.objects.filter(id=project_id).first()
        if project is None:
            raise NotFoundError('Project not found', details={'project_id': str(project_id)})
        return project


class RoleTemplateStore(_CatalogStore):
    """
    Default permission grid per role.

    Reads always return a full grid; an unknown role or a missing row
    reads as deny-all.
    """

    @store_operation
    def get_row(self, role) -> Optional[PermissionTemplate]:
        stored = self.catalog.role_from_api(role)
        if stored is None:
            return None
        return PermissionTemplate.objects.filter(role=stored).first()

    def get_template(self, role) -> Grid:
        row = self.get_row(role)
        if row is None:
            return self.catalog.empty_grid()
        return normalize_template(row.matrix, self.catalog).matrix

    @store_operation
    def list_templates(self) -> List[PermissionTemplate]:
        return list(PermissionTemplate.objects.filter(role__in=self.catalog.roles).order_by('role'))

    @store_operation
    def upsert(self, role, matrix, actor=None, request=None) -> ParsedMatrix:
        """
        Replace the template for ``role``.

        Missing cells become false and locked cells are forced to false.

        Raises:
            ValidationError: role missing or unknown
        """
        stored_role = self.require_role(role)
        parsed = normalize_template(matrix, self.catalog)

        with transaction.atomic():
            previous = PermissionTemplate.objects_with_deleted.filter(role=stored_role).first()
            row, created = PermissionTemplate.objects_with_deleted.update_or_create(
                role=stored_role,
                defaults={
                    'matrix': parsed.matrix,
                    'updated_by': actor,
                    'deleted_at': None,
                }
            )

            AuditLog.log_action(
                action='template_created' if created else 'template_updated',
                user=actor,
                target_type='PermissionTemplate',
                target_id=row.id,
                diff={
                    'before': previous.matrix if previous else None,
                    'after': parsed.matrix,
                },
                metadata={'role': self.catalog.role_to_api(stored_role), 'dropped': parsed.dropped},
                request=request,
            )

        SecurityLogger.log_permission_change(actor, 'PermissionTemplate', row.id)
        logger.info(
            f"Permission template {'created' if created else 'replaced'} for role {stored_role}",
            extra={'role': stored_role, 'dropped': parsed.dropped}
        )
        return parsed

    def seed_defaults(self, overwrite: bool = False) -> Dict[str, str]:
        """
        Write the catalog's default template for every role.

        Existing rows are left alone unless ``overwrite`` is set. Returns
        {role: 'created' | 'updated' | 'skipped'}.
        """
        results = {}
        for role in self.catalog.roles:
            exists = self.get_row(role) is not None
            if exists and not overwrite:
                results[role] = 'skipped'
                continue
            self.upsert(role, self.catalog.default_template(role))
            results[role] = 'updated' if exists else 'created'
        return results


class ProjectOverrideStore(_CatalogStore):
    """
    Per-project, per-role overrides.

    Stored as a partial grid of booleans; present cells replace the
    template cell, allow or deny.
    """

    def __init__(self, catalog: Optional[PermissionCatalog] = None, templates: Optional[RoleTemplateStore] = None):
        super().__init__(catalog)
        self.templates = templates or RoleTemplateStore(self.catalog)

    @store_operation
    def get_row(self, project_id, role) -> Optional[ProjectPermissionOverride]:
        stored_role = self.require_role(role)
        project_uuid = parse_id(project_id, 'project_id')
        if project_uuid is None:
            return None
        return ProjectPermissionOverride.objects.filter(project_id=project_uuid, role=stored_role).first()

    def get(self, project_id, role) -> Dict[str, Dict[str, bool]]:
        """Partial override for (project, role); empty when none is stored."""
        row = self.get_row(project_id, role)
        if row is None:
            return {}
        return normalize_project_override(row.matrix, self.catalog).matrix

    def get_effective(self, project_id, role) -> Dict:
        """
        Override merged over the template, falling back to the template alone.

        Returns {'source': 'override' | 'template', 'project_id', 'role', 'matrix'}.

        Raises:
            NotFoundError: neither an override nor a template row exists
        """
        stored_role = self.require_role(role)
        override_row = self.get_row(project_id, stored_role)
        template_row = self.templates.get_row(stored_role)

        if override_row is None and template_row is None:
            raise NotFoundError(
                f"No override or template for role {self.catalog.role_to_api(stored_role)}",
                details={'project_id': str(project_id), 'role': self.catalog.role_to_api(stored_role)}
            )

        matrix = self.templates.get_template(stored_role)
        source = 'template'
        if override_row is not None:
            source = 'override'
            matrix = apply_project_override(
                matrix, normalize_project_override(override_row.matrix, self.catalog).matrix
            )

        return {
            'source': source,
            'project_id': str(project_id),
            'role': self.catalog.role_to_api(stored_role),
            'matrix': matrix,
        }

    @store_operation
    def upsert(self, project_id, role, matrix, actor=None, request=None) -> ParsedMatrix:
        """
        Store the normalized override for (project, role).

        Raises:
            ValidationError: missing/invalid project id, missing/unknown role
            NotFoundError: project does not exist
        """
        project_uuid = require_id(project_id, 'project_id')
        stored_role = self.require_role(role)
        parsed = normalize_project_override(matrix, self.catalog)

        with transaction.atomic():
            project = self._require_project(project_uuid)
            previous = ProjectPermissionOverride.objects_with_deleted.filter(
                project=project, role=stored_role
            ).first()
            row, created = ProjectPermissionOverride.objects_with_deleted.update_or_create(
                project=project,
                role=stored_role,
                defaults={
                    'matrix': parsed.matrix,
                    'updated_by': actor,
                    'deleted_at': None,
                }
            )

            AuditLog.log_action(
                action='project_override_updated',
                user=actor,
                project=project,
                target_type='ProjectPermissionOverride',
                target_id=row.id,
                diff={
                    'before': previous.matrix if previous and not created else None,
                    'after': parsed.matrix,
                },
                metadata={'role': self.catalog.role_to_api(stored_role), 'dropped': parsed.dropped},
                request=request,
            )

        SecurityLogger.log_permission_change(actor, 'ProjectPermissionOverride', row.id, project_id=project.id)
        logger.info(
            f"Project override stored for role {stored_role}",
            extra={'project_id': str(project.id), 'role': stored_role, 'dropped': parsed.dropped}
        )
        return parsed

    @store_operation
    def reset(self, project_id, role, actor=None, request=None) -> bool:
        """
        Delete the override for (project, role). Returns True when a row existed.

        Reads fall through to the template afterwards.
        """
        project_uuid = require_id(project_id, 'project_id')
        stored_role = self.require_role(role)

        with transaction.atomic():
            project = self._require_project(project_uuid)
            rows = ProjectPermissionOverride.objects_with_deleted.filter(project=project, role=stored_role)
            previous = rows.first()
            if previous is None:
                return False
            rows.hard_delete()

            AuditLog.log_action(
                action='project_override_reset',
                user=actor,
                project=project,
                target_type='ProjectPermissionOverride',
                target_id=previous.id,
                diff={'before': previous.matrix, 'after': None},
                metadata={'role': self.catalog.role_to_api(stored_role)},
                request=request,
            )

        logger.info(
            f"Project override reset for role {stored_role}",
            extra={'project_id': str(project.id), 'role': stored_role}
        )
        return True


class UserOverrideStore(_CatalogStore):
    """
    Per-project, per-user deny overrides.

    Values are "inherit" or "deny"; locked cells can never be stored.
    """

    @store_operation
    def get(self, project_id, user_id) -> Dict[str, Dict[str, str]]:
        """User override for (project, user); empty when none is stored."""
        project_uuid = parse_id(project_id, 'project_id')
        user_uuid = parse_id(user_id, 'user_id')
        if project_uuid is None or user_uuid is None:
            return {}
        row = UserPermissionOverride.objects.filter(project_id=project_uuid, user_id=user_uuid).first()
        if row is None:
            return {}
        return normalize_user_override(row.matrix, self.catalog).matrix

    @store_operation
    def upsert(self, project_id, user_id, matrix, actor=None, request=None) -> ParsedMatrix:
        """
        Store the normalized override for (project, user).

        Raises:
            ValidationError: missing/invalid project or user id
            NotFoundError: project or user does not exist
        """
        project_uuid = require_id(project_id, 'project_id')
        user_uuid = require_id(user_id, 'user_id')
        parsed = normalize_user_override(matrix, self.catalog)

        with transaction.atomic():
            project = self._require_project(project_uuid)
            user = User.objects.filter(id=user_uuid).first()
            if user is None:
                raise NotFoundError('User not found', details={'user_id': str(user_uuid)})

            previous = UserPermissionOverride.objects_with_deleted.filter(project=project, user=user).first()
            row, created = UserPermissionOverride.objects_with_deleted.update_or_create(
                project=project,
                user=user,
                defaults={
                    'matrix': parsed.matrix,
                    'updated_by': actor,
                    'deleted_at': None,
                }
            )

            AuditLog.log_action(
                action='user_override_updated',
                user=actor,
                project=project,
                target_type='UserPermissionOverride',
                target_id=row.id,
                diff={
                    'before': previous.matrix if previous and not created else None,
                    'after': parsed.matrix,
                },
                metadata={'target_user_id': str(user.id), 'dropped': parsed.dropped},
                request=request,
            )

        SecurityLogger.log_permission_change(actor, 'UserPermissionOverride', row.id, project_id=project.id)
        logger.info(
            "User override stored",
            extra={'project_id': str(project.id), 'target_user_id': str(user.id), 'dropped': parsed.dropped}
        )
        return parsed

    @store_operation
    def reset(self, project_id, user_id, actor=None, request=None) -> bool:
        """
        Delete the override for (project, user). Returns True when a row existed.

        Raises:
            ValidationError: missing/invalid project or user id
            NotFoundError: project or user does not exist
        """
        project_uuid = require_id(project_id, 'project_id')
        user_uuid = require_id(user_id, 'user_id')

        with transaction.atomic():
            project = self._require_project(project_uuid)
            if not User.objects.filter(id=user_uuid).exists():
                raise NotFoundError('User not found', details={'user_id': str(user_uuid)})

            rows = UserPermissionOverride.objects_with_deleted.filter(project=project, user_id=user_uuid)
            previous = rows.first()
            if previous is None:
                return False
            rows.hard_delete()

            AuditLog.log_action(
                action='user_override_reset',
                user=actor,
                project=project,
                target_type='UserPermissionOverride',
                target_id=previous.id,
                diff={'before': previous.matrix, 'after': None},
                metadata={'target_user_id': str(user_uuid)},
                request=request,
            )

        logger.info(
            "User override reset",
            extra={'project_id': str(project.id), 'target_user_id': str(user_uuid)}
        )
        return True


def apply_project_override(grid: Grid, override: Dict[str, Dict[str, bool]]) -> Grid:
    """Return a copy of ``grid`` with every override cell written over it."""
    merged = copy_grid(grid)
    for module, cells in override.items():
        if module not in merged:
            continue
        for action, allowed in cells.items():
            if action in merged[module]:
                merged[module][action] = allowed
    return merged
