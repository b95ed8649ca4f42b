"""
Permission administration API URLs.

Provides endpoints for:
- Permission catalog
- Role templates
- Project overrides per role
- User deny overrides per project
"""
from django.urls import path
from apps.rbac.views import (
    PermissionCatalogView,
    TemplateListView,
    TemplateDetailView,
    ProjectOverrideView,
    ProjectOverrideResetView,
    UserOverrideView,
    UserOverrideResetView,
    UserEffectivePermissionsView,
)

app_name = 'rbac'

urlpatterns = [
    path('admin/permissions/catalog', PermissionCatalogView.as_view(), name='permission-catalog'),

    # Role templates
    path('admin/permissions/templates', TemplateListView.as_view(), name='template-list'),
    path('admin/permissions/templates/<str:role>', TemplateDetailView.as_view(), name='template-detail'),

    # Project overrides
    path(
        'admin/permissions/projects/<str:project_id>/overrides/<str:role>',
        ProjectOverrideView.as_view(),
        name='project-override'
    ),
    path(
        'admin/permissions/projects/<str:project_id>/overrides/<str:role>/reset',
        ProjectOverrideResetView.as_view(),
        name='project-override-reset'
    ),

    # User overrides
    path(
        'admin/permissions/projects/<str:project_id>/users/<str:user_id>/overrides',
        UserOverrideView.as_view(),
        name='user-override'
    ),
    path(
        'admin/permissions/projects/<str:project_id>/users/<str:user_id>/overrides/reset',
        UserOverrideResetView.as_view(),
        name='user-override-reset'
    ),
    path(
        'admin/permissions/projects/<str:project_id>/users/<str:user_id>/effective',
        UserEffectivePermissionsView.as_view(),
        name='user-effective-permissions'
    ),
]
