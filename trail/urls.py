from django.urls import path
from . import views

app_name = 'trail'

urlpatterns = [
    path('trailCreate', views.trail_create, name='trail_create'),
    path('trail', views.trail_list, name='trail_list'),
    path('trail/<str:level_number>', views.trail_detail, name='trail_detail'),
]
