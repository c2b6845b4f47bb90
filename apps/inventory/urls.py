from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'inventory'

router = DefaultRouter()
router.register(r'products', views.ProductViewSet, basename='product')
router.register(r'lots', views.StockLotViewSet, basename='lot')

urlpatterns = [
    # GET /api/inventory/products/     - Search catalog
    # GET /api/inventory/lots/         - Search stock lots
    path('', include(router.urls)),
]
