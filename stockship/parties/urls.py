from django.urls import path
from . import views

urlpatterns = [
    path('employees/', views.employee_list_create, name='employee-list-create'),
    path('employees/<int:pk>/', views.employee_detail, name='employee-detail'),
    path('employees/<int:pk>/traders/', views.employee_traders, name='employee-traders'),
    path('employees/<int:pk>/deals/', views.employee_deals, name='employee-deals'),
    path('employees/<int:pk>/dashboard/', views.employee_dashboard, name='employee-dashboard'),
    path('traders/', views.trader_list, name='trader-list'),
    path('traders/register/', views.trader_register, name='trader-register'),
    path('traders/check-linked/', views.trader_check_linked, name='trader-check-linked'),
    path('traders/<int:pk>/', views.trader_detail, name='trader-detail'),
    path('traders/<int:pk>/assign/', views.trader_assign, name='trader-assign'),
    path('traders/<int:pk>/offers/', views.trader_offers, name='trader-offers'),
    path('traders/<int:pk>/public/', views.trader_public_detail, name='trader-public-detail'),
    path('traders/<int:pk>/public/offers/', views.trader_public_offers, name='trader-public-offers'),
]
