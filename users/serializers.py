from django.contrib.auth import get_user_model
from rest_framework import serializers

from hierarchy.exceptions import ActorNotFound
from hierarchy.services import HierarchyResolver

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Login account plus the referral actor it acts as, if any."""
    is_finance = serializers.SerializerMethodField()
    actor = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'is_staff', 'is_finance', 'actor']

    def get_is_finance(self, obj):
        return obj.is_staff or obj.groups.filter(name__in=['Admins', 'Finance']).exists()

    def get_actor(self, obj):
        try:
            resolved = HierarchyResolver.resolve_for_user(obj)
        except ActorNotFound:
            return None
        return {
            'role': resolved.role,
            'referral_code': resolved.referral_code,
            'name': resolved.name,
            **resolved.context(),
        }
