from django.urls import path
from . import views

urlpatterns = [
    path('auth/register/', views.register, name='register'),
    path('auth/login/', views.StockshipTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', views.StockshipTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', views.user_me, name='user-me'),
    path('users/', views.user_list_create, name='user-list-create'),
    path('users/<int:pk>/', views.user_detail, name='user-detail'),
    path('activity-logs/', views.activity_log_list, name='activity-log-list'),
    path('activity-logs/export/', views.activity_log_export, name='activity-log-export'),
    path('activity-logs/entity/<str:entity_type>/<str:entity_id>/', views.activity_log_entity, name='activity-log-entity'),
    path('activity-logs/<int:pk>/', views.activity_log_detail, name='activity-log-detail'),
    path('notifications/', views.notification_list, name='notification-list'),
    path('notifications/unread-count/', views.notification_unread_count, name='notification-unread-count'),
    path('notifications/read-all/', views.notification_mark_all_read, name='notification-read-all'),
    path('notifications/<int:pk>/read/', views.notification_mark_read, name='notification-read'),
    path('notifications/<int:pk>/', views.notification_delete, name='notification-delete'),
    path('platform-settings/', views.platform_settings, name='platform-settings'),
]
