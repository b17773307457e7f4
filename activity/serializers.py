"""
Activity Serializers
Query parameter validation and response shaping.
"""
from rest_framework import serializers

from .models import ActivityLog, ActivityType
from .services import ActivityFormatter


class FeedQuerySerializer(serializers.Serializer):
    """Query params for the activity feed."""
    activity_type = serializers.ChoiceField(choices=ActivityType.choices, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=200, default=50, required=False)
    offset = serializers.IntegerField(min_value=0, default=0, required=False)


class ActivityLogSerializer(serializers.ModelSerializer):
    branch = serializers.CharField(source='branch.name', read_only=True, default=None)
    city = serializers.CharField(source='city.name', read_only=True, default=None)
    state = serializers.CharField(source='state.name', read_only=True, default=None)
    location = serializers.SerializerMethodField()

    class Meta:
        model = ActivityLog
        fields = [
            'id', 'activity_type', 'description', 'location', 'amount',
            'actor_role', 'actor_code', 'actor_name',
            'branch', 'city', 'state',
            'target_type', 'target_id', 'metadata', 'created_at',
        ]

    def get_location(self, obj):
        return ActivityFormatter.location_prefix(obj, self.context.get('viewer_role'))
