"""
URL configuration for the backend project.

Every app mounts its routes under ``api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Storefront Back Office Admin"
admin.site.site_title = "Storefront Back Office"
admin.site.index_title = "Store administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.stores.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.orders.urls')),
    path('api/v1/', include('backend.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
