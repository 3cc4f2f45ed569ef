from django.contrib import admin
from django.urls import include, path


urlpatterns = [
    path('backoffice/', admin.site.urls),
    path('api/admin/', include('admins.urls')),
    path('api/agent/', include('agents.urls')),
    path('api/', include('users.urls')),
]
