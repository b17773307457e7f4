from django.urls import path
from . import views

urlpatterns = [
    # Webhooks (shared secret, no user session)
    path('webhook/order/', views.order_webhook, name='webhook-order'),
    path('webhook/delivery/', views.delivery_webhook, name='webhook-delivery'),

    # Rate registry
    path('rates/', views.list_rates, name='commission-rates'),
    path('rates/<str:role_type>/', views.update_rate, name='commission-rate-update'),

    # Ledger
    path('ledger/', views.ledger, name='commission-ledger'),
]
