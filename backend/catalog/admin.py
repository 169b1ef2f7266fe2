from django.contrib import admin
from django.utils.html import format_html
from .models import Billboard, Category, Size, Color, UnitOfMeasure, Product, Image


@admin.register(Billboard)
class BillboardAdmin(admin.ModelAdmin):
    list_display = ['label', 'store', 'created_at']
    list_filter = ['store', 'created_at']
    search_fields = ['label']
    ordering = ['label']


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'store', 'billboard', 'created_at']
    list_filter = ['store', 'created_at']
    search_fields = ['name', 'billboard__label']
    ordering = ['name']


@admin.register(Size)
class SizeAdmin(admin.ModelAdmin):
    list_display = ['name', 'value', 'store', 'created_at']
    list_filter = ['store']
    search_fields = ['name', 'value']
    ordering = ['name']


@admin.register(Color)
class ColorAdmin(admin.ModelAdmin):
    list_display = ['name', 'swatch', 'store', 'created_at']
    list_filter = ['store']
    search_fields = ['name', 'value']
    ordering = ['name']

    def swatch(self, obj):
        return format_html(
            '<span style="display:inline-block;width:14px;height:14px;border:1px solid #999;background:{}"></span> {}',
            obj.value, obj.value
        )
    swatch.short_description = 'Value'


@admin.register(UnitOfMeasure)
class UnitOfMeasureAdmin(admin.ModelAdmin):
    list_display = ['uom', 'store', 'created_at']
    list_filter = ['store']
    search_fields = ['uom']
    ordering = ['uom']


class ImageInline(admin.TabularInline):
    model = Image
    extra = 0
    fields = ['url', 'created_at']
    readonly_fields = ['created_at']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'bar_code', 'store', 'category', 'price', 'is_featured', 'is_archived', 'created_at']
    list_filter = ['is_archived', 'is_featured', 'store', 'category', 'created_at']
    search_fields = ['name', 'bar_code', 'item_desc']
    list_select_related = ['store', 'category']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [ImageInline]
