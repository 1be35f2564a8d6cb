from django.urls import path
from . import views

urlpatterns = [
    path('reports/admin/dashboard/', views.admin_dashboard, name='report-admin-dashboard'),
    path('reports/moderator/dashboard/', views.moderator_dashboard, name='report-moderator-dashboard'),
    path('reports/trader/dashboard/', views.trader_dashboard, name='report-trader-dashboard'),
    path('reports/client/dashboard/', views.client_dashboard, name='report-client-dashboard'),
    path('reports/deals/analytics/', views.deal_analytics, name='report-deal-analytics'),
]
