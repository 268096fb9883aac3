from django.urls import path
from . import views

app_name = 'game_admin'

urlpatterns = [
    path('player', views.players_progress, name='players'),
    path('player/<str:player_id>', views.player_progress, name='player'),
]
