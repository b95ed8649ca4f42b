"""
URL configuration for the PMS API.
"""
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.core.urls')),

    # Authentication endpoints
    path('v1/auth/', include('apps.rbac.urls_auth')),  # login, me

    # Permission administration (templates, project overrides, user overrides)
    path('v1/', include('apps.rbac.urls')),

    # Project membership endpoints (who-am-I, acting roles)
    path('v1/', include('apps.projects.urls')),
]
