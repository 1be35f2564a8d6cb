from django.urls import path
from . import views

urlpatterns = [
    path('offers/<int:offer_id>/negotiate/', views.request_negotiation, name='deal-request-negotiation'),
    path('deals/', views.deal_list, name='deal-list'),
    path('deals/<int:pk>/', views.deal_detail, name='deal-detail'),
    path('deals/<int:pk>/items/', views.deal_items, name='deal-items'),
    path('deals/<int:pk>/approve/', views.deal_approve, name='deal-approve'),
    path('deals/<int:pk>/cancel/', views.deal_cancel, name='deal-cancel'),
    path('deals/<int:pk>/settle/', views.deal_settle, name='deal-settle'),
    path('deals/<int:pk>/negotiations/', views.deal_negotiations, name='deal-negotiations'),
    path('deals/<int:pk>/negotiations/read/', views.deal_negotiations_mark_read, name='deal-negotiations-read'),
]
