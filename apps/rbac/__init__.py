"""
Project permission model for the PMS.

Provides:
- Email-based user identity
- Role permission templates
- Per-project, per-role overrides (allow or deny)
- Per-project, per-user deny overrides
- Effective permission resolution and audit logging
"""
