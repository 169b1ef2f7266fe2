import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Storefront and back office product filters"""

    category_id = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    color_id = django_filters.NumberFilter(field_name='color_id', lookup_expr='exact')
    size_id = django_filters.NumberFilter(field_name='size_id', lookup_expr='exact')
    uom_id = django_filters.NumberFilter(field_name='uom_id', lookup_expr='exact')
    is_featured = django_filters.BooleanFilter(field_name='is_featured')
    is_archived = django_filters.BooleanFilter(field_name='is_archived')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Product
        fields = ['category_id', 'color_id', 'size_id', 'uom_id', 'is_featured', 'is_archived', 'search']

    def filter_search(self, queryset, name, value):
        """Name contains the term, or barcode equals it"""
        search = value.strip() if value else ''
        if not search:
            return queryset
        return queryset.filter(Q(name__icontains=search) | Q(bar_code=search))
