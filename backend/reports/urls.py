from django.urls import path
from . import views

urlpatterns = [
    path('stores/<int:store_id>/dashboard/', views.dashboard, name='dashboard'),
    path('stores/<int:store_id>/accounting-report/', views.accounting_report, name='accounting-report'),
    path('stores/<int:store_id>/popular-products/', views.popular_products, name='popular-products'),
]
