from django.urls import path
from . import views

urlpatterns = [
    path('offers/', views.offer_list_create, name='offer-list-create'),
    path('offers/recommended/', views.offer_recommended, name='offer-recommended'),
    path('offers/category/<int:category_id>/', views.offer_by_category, name='offer-by-category'),
    path('offers/mine/', views.trader_own_offer_list, name='offer-mine'),
    path('offers/assigned/', views.employee_offer_list, name='offer-assigned'),
    path('offers/all/', views.admin_offer_list, name='offer-all'),
    path('offers/<int:pk>/', views.offer_detail, name='offer-detail'),
    path('offers/<int:pk>/upload/', views.offer_upload_items, name='offer-upload-items'),
    path('offers/<int:pk>/validate/', views.offer_validate, name='offer-validate'),
]
