"""
Project membership services.

Implements:
- MembershipService: active memberships on a date and acting-role selection
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from django.utils import timezone

from apps.projects.models import ProjectMembership
from apps.rbac.catalog import PermissionCatalog, get_catalog
from apps.rbac.stores import parse_id

logger = logging.getLogger(__name__)


class MembershipService:
    """
    Service for project role memberships.
    """

    @staticmethod
    def parse_date(value) -> date:
        """
        Parse a YYYY-MM-DD query value; missing or malformed values mean today.
        """
        if isinstance(value, date):
            return value
        if value:
            try:
                return date.fromisoformat(str(value)[:10])
            except ValueError:
                logger.debug(f"Ignoring malformed date {value!r}, using today")
        return timezone.localdate()

    @classmethod
    def active_roles(cls, project_id, user_id, on: Optional[date] = None) -> List[str]:
        """Storage role names the user holds in the project on ``on``."""
        project_uuid = parse_id(project_id, 'project_id')
        user_uuid = parse_id(user_id, 'user_id')
        if project_uuid is None or user_uuid is None:
            return []
        on = on or timezone.localdate()
        return list(
            ProjectMembership.objects
            .for_project(project_uuid)
            .for_user(user_uuid)
            .active_on(on)
            .values_list('role', flat=True)
        )

    @classmethod
    def pick_acting_role(cls, roles, catalog: Optional[PermissionCatalog] = None) -> Optional[str]:
        """
        Highest-priority known role among ``roles``, or None.

        Roles outside the catalog are ignored.
        """
        catalog = catalog or get_catalog()
        known = [catalog.role_from_api(role) for role in roles]
        known = [role for role in known if role is not None]
        if not known:
            return None
        return min(known, key=catalog.role_rank)

    @classmethod
    def acting_role(cls, project_id, user_id, on: Optional[date] = None,
                    catalog: Optional[PermissionCatalog] = None) -> Optional[str]:
        """
        Role the user acts as in the project on ``on``; None when not a member.
        """
        return cls.pick_acting_role(cls.active_roles(project_id, user_id, on=on), catalog=catalog)

    @classmethod
    def acting_roles(cls, project_id, on: Optional[date] = None,
                     catalog: Optional[PermissionCatalog] = None) -> List[Dict]:
        """
        Acting role for every member active on ``on``.

        Returns [{'user': User, 'role': storage role name}], ordered by the
        user's full name.
        """
        catalog = catalog or get_catalog()
        project_uuid = parse_id(project_id, 'project_id')
        if project_uuid is None:
            return []
        on = on or timezone.localdate()

        memberships = (
            ProjectMembership.objects
            .for_project(project_uuid)
            .active_on(on)
            .select_related('user')
        )

        roles_by_user = {}
        users = {}
        for membership in memberships:
            users[membership.user_id] = membership.user
            roles_by_user.setdefault(membership.user_id, []).append(membership.role)

        result = []
        for user_id, roles in roles_by_user.items():
            role = cls.pick_acting_role(roles, catalog=catalog)
            if role is None:
                continue
            result.append({'user': users[user_id], 'role': role})

        result.sort(key=lambda entry: entry['user'].get_full_name().lower())
        return result
