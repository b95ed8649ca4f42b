"""
Parse-and-normalize boundary for permission matrices.

Every matrix that enters the system (admin payloads, stored JSON read back
from the database) goes through one of these functions before it is
stored or merged. Unknown modules, unknown actions and values that cannot
be interpreted are dropped, never rejected; the dropped keys are returned
alongside the result so callers can report them.
"""
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional

from apps.rbac.catalog import Grid, PermissionCatalog

INHERIT = 'inherit'
DENY = 'deny'

# Reported in dropped when the payload itself is not a mapping
WHOLE_MATRIX = '<matrix>'

_TRUE_STRINGS = frozenset({'true', '1', 'yes', 'on', 'allow'})
_FALSE_STRINGS = frozenset({'false', '0', 'no', 'off', 'deny', ''})


class ParsedMatrix(NamedTuple):
    """A normalized matrix plus the "MODULE" / "MODULE.action" keys that were discarded."""
    matrix: Dict[str, Dict]
    dropped: List[str]


def coerce_bool(value) -> Optional[bool]:
    """
    Interpret ``value`` as a permission flag.

    Booleans pass through, numbers are true when non-zero and a small set
    of strings ("true", "allow", "0", ...) is recognized. Anything else
    returns None.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return None


def coerce_deny(value) -> Optional[str]:
    """Keep only the exact strings "inherit" and "deny"."""
    if value == INHERIT or value == DENY:
        return value
    return None


def _parse(raw, catalog: PermissionCatalog, coerce: Callable, drop_locked: bool = False) -> ParsedMatrix:
    if raw is None:
        return ParsedMatrix({}, [])
    if not isinstance(raw, Mapping):
        return ParsedMatrix({}, [WHOLE_MATRIX])

    dropped = [str(key) for key in raw if key not in catalog.modules]
    matrix = {}

    for module in catalog.modules:
        if module not in raw:
            continue
        row = raw[module]
        if not isinstance(row, Mapping):
            dropped.append(module)
            continue

        dropped.extend(f"{module}.{key}" for key in row if key not in catalog.actions)

        cells = {}
        for action in catalog.actions:
            if action not in row:
                continue
            value = coerce(row[action])
            if value is None:
                dropped.append(f"{module}.{action}")
                continue
            cells[action] = value

        if drop_locked:
            for action in list(cells):
                if catalog.is_locked(module, action):
                    del cells[action]
                    dropped.append(f"{module}.{action}")

        if cells:
            matrix[module] = cells

    return ParsedMatrix(matrix, sorted(dropped))


def normalize_template(raw, catalog: PermissionCatalog) -> ParsedMatrix:
    """
    Normalize a role template into a full grid.

    Recognized cells are coerced to bool, missing cells are false and
    locked cells (LTR review/approve) are always false.
    """
    parsed = _parse(raw, catalog, coerce_bool)
    grid = catalog.empty_grid()
    for module, cells in parsed.matrix.items():
        grid[module].update(cells)
    for module, action in catalog.locked_cells:
        grid[module][action] = False
    return ParsedMatrix(grid, parsed.dropped)


def normalize_project_override(raw, catalog: PermissionCatalog) -> ParsedMatrix:
    """
    Normalize a project override into a partial grid of booleans.

    A project override may set any recognized cell, including locked ones,
    to true or false.
    """
    return _parse(raw, catalog, coerce_bool)


def normalize_user_override(raw, catalog: PermissionCatalog) -> ParsedMatrix:
    """
    Normalize a user override.

    In order: unknown modules and actions are dropped, values other than
    "inherit"/"deny" are dropped, locked cells are removed unconditionally
    and modules left empty are omitted. Applying it twice gives the same
    result as applying it once.
    """
    return _parse(raw, catalog, coerce_deny, drop_locked=True)


def denied_cells(user_matrix: Mapping) -> List[tuple]:
    """(module, action) pairs a normalized user override forces to false."""
    return [
        (module, action)
        for module, cells in user_matrix.items()
        for action, value in cells.items()
        if value == DENY
    ]


def copy_grid(grid: Grid) -> Grid:
    return {module: dict(cells) for module, cells in grid.items()}
