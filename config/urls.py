from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('django-admin/', admin.site.urls),
    path('', include('accounts.urls')),
    path('users/', include('trail.urls')),
    path('player/', include('game.urls')),
    path('admin/', include('game.admin_urls')),
]

handler404 = 'core.http.not_found'
handler500 = 'core.http.server_error'
