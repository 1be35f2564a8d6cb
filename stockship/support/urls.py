from django.urls import path
from . import views

urlpatterns = [
    path('offers/<int:offer_id>/tickets/', views.ticket_create, name='ticket-create'),
    path('tickets/', views.ticket_list, name='ticket-list'),
    path('tickets/<int:pk>/', views.ticket_detail, name='ticket-detail'),
    path('tickets/<int:pk>/messages/', views.ticket_add_message, name='ticket-add-message'),
    path('tickets/<int:pk>/status/', views.ticket_update_status, name='ticket-update-status'),
    path('tickets/<int:pk>/assign/', views.ticket_assign, name='ticket-assign'),
]
