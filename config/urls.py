"""URL configuration for the DriveFleet booking API.

Routes the Django admin, the versioned REST API of each app and the
OpenAPI schema.
"""
from django.contrib import admin  # type: ignore
from django.urls import path, include  # type: ignore
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView  # type: ignore

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/auth/', include(('apps.users.auth_urls', 'auth'), namespace='auth')),
    path('api/v1/users/', include('apps.users.urls')),
    path('api/v1/fleet/', include('apps.fleet.urls')),
    path('api/v1/pricing/', include('apps.pricing.urls')),
    path('api/v1/bookings/', include('apps.bookings.urls')),
    path('api/v1/guest-access/', include('apps.guest_access.urls')),
    # OpenAPI
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
]
