from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    # GET /api/auth/user/ - Current account
    path('user/', views.get_current_user, name='current-user'),
]
