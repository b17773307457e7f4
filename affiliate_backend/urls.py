from django.conf import settings
from django.contrib import admin
from django.db import connections
from django.db.utils import OperationalError
from django.urls import path, include
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health_check(request):
    """Liveness probe for the load balancer: database reachable or 503."""
    try:
        connections['default'].cursor()
    except OperationalError:
        return Response({'status': 'unavailable', 'database': 'error'},
                        status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response({
        'status': 'ok',
        'database': 'ok',
        'override_mode': settings.COMMISSION_OVERRIDE_MODE,
    })


urlpatterns = [
    path('health/', health_check, name='health'),
    path('admin/', admin.site.urls),
    path('api/users/', include('users.urls')),
    path('api/hierarchy/', include('hierarchy.urls')),
    path('api/commissions/', include('commissions.urls')),
    path('api/wallets/', include('wallets.urls')),
    path('api/activity/', include('activity.urls')),
]
