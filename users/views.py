import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.tokens import RefreshToken

from .serializers import UserSerializer

logger = logging.getLogger(__name__)


# JWT Login View
class LoginView(TokenObtainPairView):
    permission_classes = [AllowAny]


# JWT Refresh View
class RefreshView(TokenRefreshView):
    permission_classes = [AllowAny]


# JWT Logout View (Blacklist refresh token)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    refresh_token = request.data.get("refresh")
    if not refresh_token:
        return Response(
            {"detail": "Refresh token is required."},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        RefreshToken(refresh_token).blacklist()
    except TokenError as e:
        # Already blacklisted or expired; the client discards its tokens either way
        logger.info(f"Logout for {request.user} with unusable refresh token: {e}")

    return Response({"detail": "Logged out successfully."}, status=status.HTTP_200_OK)


# Current user with actor profile
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response(UserSerializer(request.user).data)
