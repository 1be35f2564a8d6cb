"""
URL configuration for the Stockship backend.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Stockship Admin Panel"
admin.site.site_title = "Stockship Admin Portal"
admin.site.index_title = "Stockship mediation platform"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('stockship.core.urls')),
    path('api/v1/', include('stockship.catalog.urls')),
    path('api/v1/', include('stockship.parties.urls')),
    path('api/v1/', include('stockship.offers.urls')),
    path('api/v1/', include('stockship.deals.urls')),
    path('api/v1/', include('stockship.finance.urls')),
    path('api/v1/', include('stockship.support.urls')),
    path('api/v1/', include('stockship.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
