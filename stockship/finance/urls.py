from django.urls import path
from . import views

urlpatterns = [
    path('deals/<int:pk>/payments/', views.deal_pay, name='deal-pay'),
    path('deals/<int:pk>/invoices/', views.deal_invoice_list, name='deal-invoice-list'),
    path('payments/', views.payment_list, name='payment-list'),
    path('payments/<int:pk>/', views.payment_detail, name='payment-detail'),
    path('payments/<int:pk>/verify/', views.payment_verify, name='payment-verify'),
    path('invoices/<int:pk>/', views.invoice_detail, name='invoice-detail'),
    path('financial/transactions/', views.transaction_list, name='financial-transactions'),
    path('financial/ledger/', views.ledger_list, name='financial-ledger'),
    path('financial/balances/', views.balance_list, name='financial-balances'),
]
