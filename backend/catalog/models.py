from django.db import models
from decimal import Decimal


class Billboard(models.Model):
    """Storefront banner shown above a category"""
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='billboards')
    label = models.CharField(max_length=200)
    image_url = models.URLField(max_length=500)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.label

    class Meta:
        db_table = 'billboards'
        ordering = ['-created_at']


class Category(models.Model):
    """Product categories"""
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='categories')
    billboard = models.ForeignKey(Billboard, on_delete=models.PROTECT, related_name='categories')
    name = models.CharField(max_length=200, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['-created_at']


class Size(models.Model):
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='sizes')
    name = models.CharField(max_length=100)
    value = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'sizes'
        ordering = ['-created_at']


class Color(models.Model):
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='colors')
    name = models.CharField(max_length=100)
    value = models.CharField(max_length=7)  # e.g., #FF0000
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.value})"

    class Meta:
        db_table = 'colors'
        ordering = ['-created_at']


class UnitOfMeasure(models.Model):
    """Units products are sold in (pcs, box, kg...)"""
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='uoms')
    uom = models.CharField(max_length=50)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.uom

    class Meta:
        db_table = 'units_of_measure'
        verbose_name = 'unit of measure'
        verbose_name_plural = 'units of measure'
        ordering = ['-created_at']


class Product(models.Model):
    """Product master"""
    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='products')
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name='products')
    size = models.ForeignKey(Size, on_delete=models.PROTECT, related_name='products')
    color = models.ForeignKey(Color, on_delete=models.PROTECT, related_name='products')
    uom = models.ForeignKey(UnitOfMeasure, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    name = models.CharField(max_length=255, db_index=True)
    bar_code = models.CharField(max_length=100)
    item_desc = models.TextField()
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_featured = models.BooleanField(default=False)
    is_archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'bar_code'], name='product_store_barcode_idx'),
            models.Index(fields=['store', 'is_archived'], name='product_store_archived_idx'),
        ]


class Image(models.Model):
    """Product images, stored as URLs returned by the upload endpoint"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    url = models.URLField(max_length=500)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.url

    class Meta:
        db_table = 'images'
        ordering = ['created_at']
