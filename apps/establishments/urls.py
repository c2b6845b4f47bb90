from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'establishments'

router = DefaultRouter()
router.register(r'', views.EstablishmentViewSet, basename='establishment')

urlpatterns = [
    # GET /api/establishments/       - Search directory
    # GET /api/establishments/{id}/  - Get entry
    path('', include(router.urls)),
]
