"""
RBAC models for project-scoped access control.

Implements:
- User (email-based identity, AUTH_USER_MODEL)
- PermissionTemplate (default grid per role)
- ProjectPermissionOverride (per project and role, allow or deny)
- UserPermissionOverride (per project and user, deny only)
- AuditLog (trail of every template and override write)

Matrices are stored as JSON and always pass through apps.rbac.matrix
before they are written or merged.
"""
import logging
from django.db import models, transaction, DatabaseError
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone
from apps.core.models import BaseModel, BaseModelManager

logger = logging.getLogger(__name__)


class UserManager(BaseModelManager):
    """
    Manager for User queries.

    Compatible with Django's authentication system.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def create_user(self, email, password=None, **extra_fields):
        """Create a new user with hashed password."""
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create a platform administrator.

        Platform administrators manage templates and overrides; they do not
        bypass project permission resolution.
        """
        extra_fields.setdefault('is_superuser', True)
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')
        return self.create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_email(email):
        """Lowercase the domain part of the email address."""
        email = (email or '').strip()
        try:
            email_name, domain_part = email.rsplit('@', 1)
        except ValueError:
            return email
        return email_name + '@' + domain_part.lower()

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    Global user identity.

    A person may be a member of many projects, with a different role in
    each. Authentication happens at the User level, authorization at the
    project membership level.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (login id)"
    )
    user_code = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        help_text="Human-readable user code shown in project screens"
    )
    first_name = models.CharField(max_length=100, blank=True)
    middle_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    phone = models.CharField(
        max_length=32,
        blank=True,
        help_text="Contact phone number"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Platform administrator: may edit permission templates and overrides"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'created_at']),
        ]

    def __str__(self):
        return self.email

    @property
    def password(self):
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def get_full_name(self):
        """Return the space-joined name parts, or the email when no name is set."""
        full_name = ' '.join(part for part in (self.first_name, self.middle_name, self.last_name) if part)
        return full_name or self.email

    def update_last_login(self):
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    @property
    def is_authenticated(self):
        """Always True for User instances (Django auth compatibility)."""
        return True

    @property
    def is_anonymous(self):
        """Always False for User instances (Django auth compatibility)."""
        return False

    @property
    def is_staff(self):
        return self.is_superuser

    def natural_key(self):
        return (self.email,)


class PermissionTemplate(BaseModel):
    """
    Default permission grid for a role, independent of any project.

    ``matrix`` always holds the full Module x Action grid of booleans.
    Templates are replaced, never deleted.
    """

    role = models.CharField(
        max_length=32,
        unique=True,
        help_text="Role storage name (e.g. 'Contractor', 'IH_PMT')"
    )
    matrix = models.JSONField(
        default=dict,
        help_text="Full grid: {module: {action: bool}}"
    )
    updated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        help_text="Administrator who last replaced the template"
    )

    class Meta:
        db_table = 'permission_templates'
        ordering = ['role']

    def __str__(self):
        return f"Template {self.role}"


class ProjectPermissionOverride(BaseModel):
    """
    Per-project, per-role adjustment of the role template.

    ``matrix`` is partial: only the cells present replace the template,
    and they may allow or deny.
    """

    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        related_name='permission_overrides',
        db_index=True
    )
    role = models.CharField(
        max_length=32,
        help_text="Role storage name the override applies to"
    )
    matrix = models.JSONField(
        default=dict,
        help_text="Partial grid: {module: {action: bool}}"
    )
    updated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        db_table = 'permission_project_overrides'
        ordering = ['project', 'role']
        constraints = [
            models.UniqueConstraint(fields=['project', 'role'], name='uniq_project_role_override'),
        ]

    def __str__(self):
        return f"Override {self.role} @ {self.project_id}"


class UserPermissionOverride(BaseModel):
    """
    Per-project, per-user deny overrides.

    ``matrix`` is partial and holds only "inherit" or "deny" values. A
    "deny" always wins over the template and the project override.
    """

    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        related_name='user_permission_overrides',
        db_index=True
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='permission_overrides',
        db_index=True
    )
    matrix = models.JSONField(
        default=dict,
        help_text='Partial grid: {module: {action: "inherit" | "deny"}}'
    )
    updated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        db_table = 'permission_user_overrides'
        ordering = ['project', 'user']
        constraints = [
            models.UniqueConstraint(fields=['project', 'user'], name='uniq_project_user_override'),
        ]

    def __str__(self):
        return f"User override {self.user_id} @ {self.project_id}"


class AuditLog(BaseModel):
    """
    Audit trail for permission template and override writes, and logins.
    """

    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Project the action belongs to (null for platform-level)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )

    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g. 'template_updated', 'user_override_reset')"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g. 'PermissionTemplate')"
    )
    target_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True
    )

    diff = models.JSONField(
        default=dict,
        blank=True,
        help_text="Before/after matrices"
    )

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Request ID for tracing"
    )

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['project', 'created_at']),
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['target_type', 'target_id']),
        ]

    def __str__(self):
        user_str = self.user.email if self.user else 'System'
        return f"{user_str} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, project=None, target_type=None,
                   target_id=None, diff=None, metadata=None, request=None):
        """
        Convenience method to create an audit log entry.

        Args:
            action: Action being performed
            user: User performing the action
            project: Project context
            target_type: Type of target entity
            target_id: ID of target entity
            diff: Before/after changes
            metadata: Additional context
            request: Django or DRF request (for IP, user agent, request ID)

        Returns:
            AuditLog instance, or None when the entry could not be written
        """
        if user is not None and not getattr(user, 'is_authenticated', False):
            user = None

        log_data = {
            'action': action,
            'user': user,
            'project': project,
            'target_type': target_type or '',
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
        }

        if request is not None:
            log_data['ip_address'] = cls._get_client_ip(request)
            log_data['user_agent'] = request.META.get('HTTP_USER_AGENT', '')
            log_data['request_id'] = getattr(request, 'request_id', None) or ''

        try:
            # Savepoint so a failed audit insert leaves the caller's transaction usable
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except DatabaseError:
            logger.error(
                f"Failed to create audit log for {action}",
                extra={'target_type': target_type},
                exc_info=True
            )
            return None

    @staticmethod
    def _get_client_ip(request):
        """Extract client IP from request."""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')
