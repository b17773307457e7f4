from django.urls import path
from . import views

urlpatterns = [
    # User endpoints
    path('me/', views.my_profile, name='hierarchy-me'),
    path('my-team/', views.my_team, name='hierarchy-my-team'),

    # Admin endpoints
    path('resolve/<str:referral_code>/', views.resolve_code, name='hierarchy-resolve'),
]
