"""
Projects and project role memberships.
"""
