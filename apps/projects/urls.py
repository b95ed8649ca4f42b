"""
Project API URLs.
"""
from django.urls import path
from apps.projects.views import MembershipMeView, ActingRolesView

app_name = 'projects'

urlpatterns = [
    path('projects/<str:project_id>/memberships/me', MembershipMeView.as_view(), name='membership-me'),
    path('projects/<str:project_id>/roles/acting', ActingRolesView.as_view(), name='acting-roles'),
]
