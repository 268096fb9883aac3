from django.urls import path
from . import views

app_name = 'game'

urlpatterns = [
    path('generate-qr', views.generate_qr, name='generate_qr'),
    path('qr-sheet', views.qr_sheet, name='qr_sheet'),
    path('start-game/<str:player_id>', views.start_game, name='start_game'),
    path('verify-qr/<str:player_id>', views.verify_qr, name='verify_qr'),
]
