from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r'withdrawals', views.WithdrawalViewSet, basename='withdrawal')

urlpatterns = [
    path('balance/', views.my_balance, name='wallet-balance'),
    path('balance/<str:role>/<str:referral_code>/', views.actor_balance, name='wallet-actor-balance'),
    path('', include(router.urls)),
]
