"""
Activity Views
GET /api/activity/ - hierarchy-scoped activity feed
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from hierarchy.exceptions import ActorNotFound
from hierarchy.services import HierarchyResolver

from .serializers import FeedQuerySerializer, ActivityLogSerializer
from .services import ActivityService


class ActivityFeedView(APIView):
    """GET /api/activity/"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = FeedQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        if request.user.is_staff:
            resolved = None
        else:
            try:
                resolved = HierarchyResolver.resolve_for_user(request.user)
            except ActorNotFound as e:
                return Response(e.to_dict(), status=e.status_code)

        qs = ActivityService.feed_for(resolved, activity_type=params.get('activity_type'))
        total = qs.count()
        offset = params.get('offset', 0)
        limit = params.get('limit', 50)
        items = qs[offset:offset + limit]

        return Response({
            'count': total,
            'results': ActivityLogSerializer(
                items, many=True,
                context={'viewer_role': resolved.role if resolved else None}
            ).data,
        })
