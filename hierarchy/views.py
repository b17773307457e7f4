from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser

from .exceptions import ActorNotFound
from .models import Role
from .serializers import ResolvedActorSerializer, AncestorSerializer
from .services import HierarchyResolver


@api_view(['GET'])
@permission_classes([IsAdminUser])
def resolve_code(request, referral_code):
    """
    GET /api/hierarchy/resolve/<code>/

    Admin lookup of where a referral code sits in the hierarchy.
    """
    try:
        resolved = HierarchyResolver.resolve(referral_code)
    except ActorNotFound as e:
        return Response(e.to_dict(), status=e.status_code)

    ancestors = HierarchyResolver.ancestors(resolved)
    return Response({
        **ResolvedActorSerializer(resolved).data,
        "ancestors": AncestorSerializer(ancestors, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_profile(request):
    """
    GET /api/hierarchy/me/

    The caller's actor profile and the supervisors above it.
    """
    try:
        resolved = HierarchyResolver.resolve_for_user(request.user)
    except ActorNotFound as e:
        return Response(e.to_dict(), status=e.status_code)

    ancestors = HierarchyResolver.ancestors(resolved)
    return Response({
        **ResolvedActorSerializer(resolved).data,
        "ancestors": AncestorSerializer(ancestors, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_team(request):
    """
    GET /api/hierarchy/my-team/

    Referral codes of the sellers whose sales the caller overrides.
    """
    try:
        resolved = HierarchyResolver.resolve_for_user(request.user)
    except ActorNotFound as e:
        return Response(e.to_dict(), status=e.status_code)

    if resolved.role == Role.AGENT:
        return Response(
            {"detail": "Agents do not have a team."},
            status=status.HTTP_403_FORBIDDEN
        )

    groups = HierarchyResolver.subordinate_codes(resolved)
    return Response({
        "role": resolved.role,
        "context": resolved.context(),
        "team": [
            {"role": role, "count": len(codes), "referral_codes": codes}
            for role, codes in groups
        ]
    })
