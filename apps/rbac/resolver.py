"""
Effective permission resolution.

    effective = RoleTemplate(role)
    effective <- ProjectOverride(project, role)     (allow or deny per cell)
    effective <- UserOverride(project, user)        ("deny" forces false)

The two merge steps run as an ordered pipeline, so the user deny step can
never be applied before the project override step.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Mapping, Optional, Tuple

from apps.rbac.catalog import Grid, PermissionCatalog, get_catalog
from apps.rbac.matrix import copy_grid, denied_cells
from apps.rbac.stores import (
    ProjectOverrideStore, RoleTemplateStore, UserOverrideStore,
    apply_project_override, require_id,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionContext:
    project_id: object
    user_id: object
    role: Optional[str]


@dataclass(frozen=True)
class EffectivePermissions:
    """Full Module x Action grid computed for one user in one project."""

    role: Optional[str]
    matrix: Grid

    def allows(self, module: str, action: str) -> bool:
        return bool(self.matrix.get(module, {}).get(action, False))

    def as_dict(self) -> Grid:
        return copy_grid(self.matrix)


ResolutionStep = Callable[[Grid, ResolutionContext], Grid]


class PermissionResolver:
    """
    Compute EffectivePermissions from the three permission layers.

    Usage:
        resolver = PermissionResolver()
        effective = resolver.resolve(project.id, user.id, 'Contractor')
        effective.allows('WIR', 'approve')
    """

    def __init__(
        self,
        catalog: Optional[PermissionCatalog] = None,
        templates: Optional[RoleTemplateStore] = None,
        project_overrides: Optional[ProjectOverrideStore] = None,
        user_overrides: Optional[UserOverrideStore] = None,
    ):
        self.catalog = catalog or get_catalog()
        self.templates = templates or RoleTemplateStore(self.catalog)
        self.project_overrides = project_overrides or ProjectOverrideStore(self.catalog, self.templates)
        self.user_overrides = user_overrides or UserOverrideStore(self.catalog)

        self.pipeline: Tuple[ResolutionStep, ...] = (
            self.apply_project_override,
            self.apply_user_denies,
        )

    def resolve(self, project_id, user_id, role) -> EffectivePermissions:
        """
        Resolve the effective grid for ``user_id`` acting as ``role`` in ``project_id``.

        A missing or unknown role resolves to the deny-all grid. Store
        failures propagate as StoreUnavailableError.

        Raises:
            ValidationError: project_id or user_id missing
        """
        require_id(project_id, 'project_id')
        require_id(user_id, 'user_id')

        stored_role = self.catalog.role_from_api(role) if role is not None else None
        if stored_role is None:
            if role is not None:
                logger.warning(
                    f"Resolving unknown role {role!r} as deny-all",
                    extra={'project_id': str(project_id), 'role': str(role)}
                )
            return EffectivePermissions(role=None, matrix=self.catalog.empty_grid())

        context = ResolutionContext(project_id=project_id, user_id=user_id, role=stored_role)
        effective = self.templates.get_template(stored_role)
        for step in self.pipeline:
            effective = step(effective, context)

        return EffectivePermissions(role=stored_role, matrix=effective)

    def resolve_for_member(self, project_id, user_id, on: Optional[date] = None) -> EffectivePermissions:
        """
        Resolve using the user's acting role in the project on ``on`` (default today).

        Users without an active membership get the deny-all grid.
        """
        from apps.projects.services import MembershipService

        role = MembershipService.acting_role(project_id, user_id, on=on, catalog=self.catalog)
        return self.resolve(project_id, user_id, role)

    def apply_project_override(self, effective: Grid, context: ResolutionContext) -> Grid:
        override = self.project_overrides.get(context.project_id, context.role)
        if not override:
            return effective
        return apply_project_override(effective, override)

    def apply_user_denies(self, effective: Grid, context: ResolutionContext) -> Grid:
        user_override = self.user_overrides.get(context.project_id, context.user_id)
        denies = denied_cells(user_override)
        if not denies:
            return effective

        merged = copy_grid(effective)
        for module, action in denies:
            if module in merged and action in merged[module]:
                merged[module][action] = False
        return merged


def is_allowed(effective, module: str, action: str) -> bool:
    """
    True when the resolved grid allows ``action`` on ``module``.

    Accepts EffectivePermissions or a plain grid; absent cells are denied.
    """
    if isinstance(effective, EffectivePermissions):
        return effective.allows(module, action)
    if not isinstance(effective, Mapping):
        return False
    cells = effective.get(module)
    if not isinstance(cells, Mapping):
        return False
    return cells.get(action) is True
