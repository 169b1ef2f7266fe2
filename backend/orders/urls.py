from django.urls import path
from .views import order_list_create, order_detail, order_export, my_orders

urlpatterns = [
    path('stores/<int:store_id>/orders/', order_list_create, name='order-list-create'),
    path('stores/<int:store_id>/orders/export/', order_export, name='order-export'),
    path('stores/<int:store_id>/orders/<int:pk>/', order_detail, name='order-detail'),
    path('my-orders/', my_orders, name='my-orders'),
]
