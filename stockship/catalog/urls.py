from django.urls import path
from . import views

urlpatterns = [
    path('categories/', views.category_list_create, name='category-list-create'),
    path('categories/tree/', views.category_tree, name='category-tree'),
    path('categories/<int:pk>/', views.category_detail, name='category-detail'),
]
