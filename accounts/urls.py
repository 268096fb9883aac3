from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('signup', views.signup, name='signup'),
    path('login', views.login, name='login'),
    path('create', views.create_user, name='create'),
    path('retrieve', views.retrieve_users, name='retrieve'),
    path('retrieve/<str:user_id>', views.retrieve_user, name='retrieve_one'),
    path('update/<str:user_id>', views.update_user, name='update'),
    path('delete/<str:user_id>', views.delete_user, name='delete'),
]
