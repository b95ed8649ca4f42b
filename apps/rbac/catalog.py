"""
Permission catalog: the closed sets of modules, actions and roles.

The catalog is immutable configuration. It is built once per process by
``get_catalog()`` and handed explicitly to the stores and the resolver, so
tests can pass their own catalog without touching settings.

Deployments may replace parts of it through ``settings.PMS_PERMISSIONS``:

    PMS_PERMISSIONS = {
        'MODULES': [...],
        'ACTIONS': [...],
        'LOCKED_CELLS': [('LTR', 'review'), ('LTR', 'approve')],
        'ROLE_PRIORITY': [...],
        'DEFAULT_TEMPLATES': {'Client': {'WIR': ['view']}},
    }
"""
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


DEFAULT_MODULES = (
    'WIR', 'MIR', 'CS', 'DPR', 'MIP', 'DS', 'RFC',
    'OBS', 'DLP', 'LTR', 'FDB', 'MAITRI', 'DASHBOARD',
)

DEFAULT_ACTIONS = ('view', 'raise', 'review', 'approve', 'close')

# Storage values; IH_PMT is exposed as IH-PMT over the API
DEFAULT_ROLES = ('Admin', 'Client', 'IH_PMT', 'Contractor', 'Consultant', 'PMC', 'Supplier')

API_ROLE_NAMES = {'IH_PMT': 'IH-PMT'}

# Letters can never be reviewed or approved through a grant
DEFAULT_LOCKED_CELLS = (('LTR', 'review'), ('LTR', 'approve'))

# Highest first; decides the acting role of a user holding several memberships
DEFAULT_ROLE_PRIORITY = ('IH_PMT', 'Admin', 'Client', 'Consultant', 'PMC', 'Contractor', 'Supplier')

_ALL = DEFAULT_ACTIONS
_SITE_MODULES = ('WIR', 'MIR', 'CS', 'DPR', 'MIP', 'DS', 'RFC', 'OBS', 'DLP')

DEFAULT_TEMPLATES = {
    'Admin': {module: _ALL for module in DEFAULT_MODULES},
    'IH_PMT': {module: _ALL for module in DEFAULT_MODULES},
    'Client': dict(
        {module: ('view',) for module in DEFAULT_MODULES},
        WIR=('view', 'approve'),
        MIR=('view', 'approve'),
        RFC=('view', 'approve'),
    ),
    'PMC': dict(
        {module: ('view', 'review', 'approve') for module in _SITE_MODULES},
        LTR=('view', 'raise'),
        FDB=('view',),
        DASHBOARD=('view',),
    ),
    'Consultant': {
        'WIR': ('view', 'review'),
        'MIR': ('view', 'review'),
        'DS': ('view', 'review'),
        'RFC': ('view', 'review'),
        'OBS': ('view', 'raise', 'review'),
        'LTR': ('view', 'raise'),
        'DASHBOARD': ('view',),
    },
    'Contractor': dict(
        {module: ('view', 'raise') for module in _SITE_MODULES},
        LTR=('view', 'raise'),
        DASHBOARD=('view',),
    ),
    'Supplier': {
        'MIR': ('view', 'raise'),
        'LTR': ('view',),
        'DASHBOARD': ('view',),
    },
}


Grid = Dict[str, Dict[str, bool]]


@dataclass(frozen=True)
class PermissionCatalog:
    """Closed sets of modules, actions and roles plus the default role templates."""

    modules: Tuple[str, ...]
    actions: Tuple[str, ...]
    roles: Tuple[str, ...]
    locked_cells: FrozenSet[Tuple[str, str]] = frozenset()
    role_priority: Tuple[str, ...] = ()
    api_role_names: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    default_templates: Mapping[str, Mapping[str, Tuple[str, ...]]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def has_cell(self, module, action) -> bool:
        return module in self.modules and action in self.actions

    def is_locked(self, module, action) -> bool:
        return (module, action) in self.locked_cells

    def role_from_api(self, value) -> Optional[str]:
        """
        Map an API role name ("IH-PMT") or storage name ("IH_PMT") to the storage name.

        Returns None for anything outside the role set.
        """
        if not isinstance(value, str):
            return None
        if value in self.roles:
            return value
        for stored, api_name in self.api_role_names.items():
            if value == api_name:
                return stored
        return None

    def role_to_api(self, role: str) -> str:
        return self.api_role_names.get(role, role)

    def role_rank(self, role: str) -> int:
        """Position of the role in the acting-role priority, lower wins."""
        try:
            return self.role_priority.index(role)
        except ValueError:
            return len(self.role_priority)

    def empty_grid(self) -> Grid:
        """Full grid with every cell denied."""
        return {module: {action: False for action in self.actions} for module in self.modules}

    def default_template(self, role: str) -> Grid:
        """Full grid for the built-in template of ``role``; deny-all when none is defined."""
        grid = self.empty_grid()
        for module, actions in self.default_templates.get(role, {}).items():
            for action in actions:
                if self.has_cell(module, action) and not self.is_locked(module, action):
                    grid[module][action] = True
        return grid


def build_catalog(overrides: Optional[Mapping] = None) -> PermissionCatalog:
    """
    Build a catalog from the built-in defaults and an optional overrides dict.

    Raises:
        ImproperlyConfigured: locked cells or templates reference unknown
            modules, actions or roles.
    """
    overrides = overrides or {}

    modules = tuple(overrides.get('MODULES', DEFAULT_MODULES))
    actions = tuple(overrides.get('ACTIONS', DEFAULT_ACTIONS))
    roles = tuple(overrides.get('ROLES', DEFAULT_ROLES))
    locked = frozenset(tuple(cell) for cell in overrides.get('LOCKED_CELLS', DEFAULT_LOCKED_CELLS))
    templates = overrides.get('DEFAULT_TEMPLATES', DEFAULT_TEMPLATES)

    for module, action in locked:
        if module not in modules or action not in actions:
            raise ImproperlyConfigured(
                f"PMS_PERMISSIONS LOCKED_CELLS references unknown cell {module}.{action}"
            )

    unknown_roles = set(templates) - set(roles)
    if unknown_roles:
        raise ImproperlyConfigured(
            f"PMS_PERMISSIONS DEFAULT_TEMPLATES references unknown roles: {sorted(unknown_roles)}"
        )

    # Roles missing from the configured priority rank last, in role order
    priority = [role for role in overrides.get('ROLE_PRIORITY', DEFAULT_ROLE_PRIORITY) if role in roles]
    priority.extend(role for role in roles if role not in priority)

    return PermissionCatalog(
        modules=modules,
        actions=actions,
        roles=roles,
        locked_cells=locked,
        role_priority=tuple(priority),
        api_role_names=MappingProxyType(dict(overrides.get('API_ROLE_NAMES', API_ROLE_NAMES))),
        default_templates=MappingProxyType({
            role: MappingProxyType({module: tuple(acts) for module, acts in grid.items()})
            for role, grid in templates.items()
        }),
    )


@lru_cache(maxsize=None)
def get_catalog() -> PermissionCatalog:
    """Process-wide catalog built from settings.PMS_PERMISSIONS."""
    catalog = build_catalog(getattr(settings, 'PMS_PERMISSIONS', None))
    logger.debug(
        "Permission catalog built",
        extra={'modules': len(catalog.modules), 'roles': len(catalog.roles)}
    )
    return catalog
