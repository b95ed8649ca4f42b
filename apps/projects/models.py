"""
Project models.

Implements:
- Project
- ProjectMembership (a user's role in a project over a validity window)
"""
from datetime import date
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet


class Project(BaseModel):
    """
    A construction project. Permission overrides and memberships hang off it.
    """

    STATUS_DRAFT = 'Draft'
    STATUS_ACTIVE = 'Active'
    STATUS_ON_HOLD = 'OnHold'
    STATUS_COMPLETED = 'Completed'
    STATUS_ARCHIVED = 'Archived'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ON_HOLD, 'On Hold'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    code = models.CharField(
        max_length=32,
        unique=True,
        help_text="Project code (e.g. 'PRJ-0001')"
    )
    title = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
        db_index=True
    )
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    description = models.TextField(blank=True)

    class Meta:
        db_table = 'projects'
        ordering = ['code']

    def __str__(self):
        return f"{self.code} - {self.title}"


class ProjectMembershipQuerySet(BaseModelQuerySet):

    def active_on(self, on: date):
        """Memberships with valid_from <= on and (no valid_to or valid_to >= on)."""
        return self.filter(valid_from__lte=on).filter(Q(valid_to__isnull=True) | Q(valid_to__gte=on))

    def for_project(self, project_id):
        return self.filter(project_id=project_id)

    def for_user(self, user_id):
        return self.filter(user_id=user_id)


class ProjectMembershipManager(BaseModelManager.from_queryset(ProjectMembershipQuerySet)):
    pass


class ProjectMembership(BaseModel):
    """
    A user's role in a project for a validity window.

    A user may hold several memberships in the same project; the acting
    role on a given day is picked by role priority.
    """

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name='memberships',
        db_index=True
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='project_memberships',
        db_index=True
    )
    role = models.CharField(
        max_length=32,
        help_text="Role storage name (e.g. 'Contractor', 'IH_PMT')"
    )
    valid_from = models.DateField(
        default=timezone.localdate,
        help_text="First day the membership is active"
    )
    valid_to = models.DateField(
        null=True,
        blank=True,
        help_text="Last day the membership is active (open-ended when empty)"
    )

    objects = ProjectMembershipManager()

    class Meta:
        db_table = 'project_memberships'
        ordering = ['project', 'valid_from']
        indexes = [
            models.Index(fields=['project', 'user']),
            models.Index(fields=['project', 'valid_from', 'valid_to']),
        ]

    def __str__(self):
        return f"{self.user_id} as {self.role} @ {self.project_id}"

    def is_active_on(self, on: date) -> bool:
        return self.valid_from <= on and (self.valid_to is None or self.valid_to >= on)
