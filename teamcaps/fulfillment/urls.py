from django.urls import path
from .views import FulfillOrderView

urlpatterns = [
    path('fulfill/', FulfillOrderView.as_view(), name='fulfillment-fulfill'),
]
