"""
Project serializers for REST API endpoints.
"""
from rest_framework import serializers
from apps.rbac.serializers import UserSummarySerializer


class MembershipMeSerializer(serializers.Serializer):
    """Caller's acting role and effective permission grid in a project."""

    roleInProject = serializers.CharField()
    effectivePermissions = serializers.DictField(child=serializers.DictField(child=serializers.BooleanField()))


class ActingRoleSerializer(serializers.Serializer):
    """One member and the role they act as on the requested date."""

    user = UserSummarySerializer()
    actingRole = serializers.CharField()
