from django.urls import path
from .views import LoginView, RefreshView, logout_view, me_view

urlpatterns = [
    # JWT Authentication Endpoints
    path('auth/login/', LoginView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', RefreshView.as_view(), name='token_refresh'),
    path('auth/logout/', logout_view, name='logout'),
    path('auth/me/', me_view, name='me'),
]
