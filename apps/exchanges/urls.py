from django.urls import path

from .views import ExchangeLineViewSet, ExchangeViewSet

app_name = 'exchanges'

exchange_collection = ExchangeViewSet.as_view({
    'get': 'list',
    'post': 'create',
    'put': 'transition',
    'delete': 'destroy_draft',
})
exchange_detail = ExchangeViewSet.as_view({'get': 'retrieve'})
exchange_history = ExchangeViewSet.as_view({'get': 'history'})
line_collection = ExchangeLineViewSet.as_view({'post': 'create'})
line_detail = ExchangeLineViewSet.as_view({
    'patch': 'partial_update',
    'delete': 'destroy',
})

urlpatterns = [
    # GET/POST/PUT/DELETE /api/exchanges/
    path('', exchange_collection, name='exchange-collection'),
    # GET /api/exchanges/{id}/
    path('<uuid:pk>/', exchange_detail, name='exchange-detail'),
    # GET /api/exchanges/{id}/history/
    path('<uuid:pk>/history/', exchange_history, name='exchange-history'),
    # POST /api/exchanges/{id}/lines/
    path('<uuid:exchange_pk>/lines/', line_collection, name='exchange-lines'),
    # PATCH/DELETE /api/exchanges/{id}/lines/{line_id}/
    path('<uuid:exchange_pk>/lines/<uuid:pk>/', line_detail, name='exchange-line-detail'),
]
