from django.urls import path
from .views import (
    billboard_list_create, billboard_detail,
    category_list_create, category_detail,
    size_list_create, size_detail,
    color_list_create, color_detail,
    uom_list_create, uom_detail,
    product_list_create, product_detail, product_search,
    product_bulk_create, product_bulk_lookup, product_bulk_price_update,
    product_bulk_fields_update, product_deactivate, product_import, product_export
)

urlpatterns = [
    # Catalog entities
    path('stores/<int:store_id>/billboards/', billboard_list_create, name='billboard-list-create'),
    path('stores/<int:store_id>/billboards/<int:pk>/', billboard_detail, name='billboard-detail'),
    path('stores/<int:store_id>/categories/', category_list_create, name='category-list-create'),
    path('stores/<int:store_id>/categories/<int:pk>/', category_detail, name='category-detail'),
    path('stores/<int:store_id>/sizes/', size_list_create, name='size-list-create'),
    path('stores/<int:store_id>/sizes/<int:pk>/', size_detail, name='size-detail'),
    path('stores/<int:store_id>/colors/', color_list_create, name='color-list-create'),
    path('stores/<int:store_id>/colors/<int:pk>/', color_detail, name='color-detail'),
    path('stores/<int:store_id>/uom/', uom_list_create, name='uom-list-create'),
    path('stores/<int:store_id>/uom/<int:pk>/', uom_detail, name='uom-detail'),

    # Products (static paths before <pk>)
    path('stores/<int:store_id>/products/', product_list_create, name='product-list-create'),
    path('stores/<int:store_id>/products/search/', product_search, name='product-search'),
    path('stores/<int:store_id>/products/bulk/', product_bulk_create, name='product-bulk-create'),
    path('stores/<int:store_id>/products/bulk-lookup/', product_bulk_lookup, name='product-bulk-lookup'),
    path('stores/<int:store_id>/products/bulk-update/', product_bulk_price_update, name='product-bulk-update'),
    path('stores/<int:store_id>/products/bulk-product-update/', product_bulk_fields_update,
         name='product-bulk-product-update'),
    path('stores/<int:store_id>/products/deactivate/', product_deactivate, name='product-deactivate'),
    path('stores/<int:store_id>/products/import/', product_import, name='product-import'),
    path('stores/<int:store_id>/products/export/', product_export, name='product-export'),
    path('stores/<int:store_id>/products/<int:pk>/', product_detail, name='product-detail'),
]
