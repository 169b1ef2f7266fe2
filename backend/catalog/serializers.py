import re
from decimal import Decimal
from rest_framework import serializers
from .models import Billboard, Category, Size, Color, UnitOfMeasure, Product, Image

HEX_COLOR_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$')


class StoreScopedSerializer(serializers.ModelSerializer):
    """Saves new records into the store passed in the serializer context"""

    def create(self, validated_data):
        validated_data['store'] = self.context['store']
        return super().create(validated_data)

    def validate_same_store(self, obj, label):
        store = self.context.get('store')
        if obj is not None and store is not None and obj.store_id != store.id:
            raise serializers.ValidationError(f'{label} does not belong to this store')
        return obj


class BillboardSerializer(StoreScopedSerializer):
    class Meta:
        model = Billboard
        fields = ['id', 'store_id', 'label', 'image_url', 'created_at', 'updated_at']
        read_only_fields = ['store_id']


class CategorySerializer(StoreScopedSerializer):
    billboard_id = serializers.PrimaryKeyRelatedField(queryset=Billboard.objects.all(), source='billboard')
    billboard_label = serializers.CharField(source='billboard.label', read_only=True)

    class Meta:
        model = Category
        fields = ['id', 'store_id', 'name', 'billboard_id', 'billboard_label', 'created_at', 'updated_at']
        read_only_fields = ['store_id']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name is required')
        return value.strip()

    def validate_billboard_id(self, value):
        return self.validate_same_store(value, 'Billboard')


class SizeSerializer(StoreScopedSerializer):
    class Meta:
        model = Size
        fields = ['id', 'store_id', 'name', 'value', 'created_at', 'updated_at']
        read_only_fields = ['store_id']


class ColorSerializer(StoreScopedSerializer):
    class Meta:
        model = Color
        fields = ['id', 'store_id', 'name', 'value', 'created_at', 'updated_at']
        read_only_fields = ['store_id']

    def validate_value(self, value):
        if not HEX_COLOR_RE.match(value):
            raise serializers.ValidationError('String must be a valid hex code')
        return value


class UnitOfMeasureSerializer(StoreScopedSerializer):
    uom = serializers.CharField(min_length=2, max_length=50)

    class Meta:
        model = UnitOfMeasure
        fields = ['id', 'store_id', 'uom', 'created_at', 'updated_at']
        read_only_fields = ['store_id']


class ImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Image
        fields = ['id', 'url']


class ImageInputSerializer(serializers.Serializer):
    url = serializers.URLField(max_length=500)


class ProductSerializer(serializers.ModelSerializer):
    """Read representation with related entities expanded"""
    category = CategorySerializer(read_only=True)
    size = SizeSerializer(read_only=True)
    color = ColorSerializer(read_only=True)
    uom = UnitOfMeasureSerializer(read_only=True)
    images = ImageSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'store_id', 'name', 'bar_code', 'item_desc', 'price', 'is_featured', 'is_archived',
                  'category_id', 'size_id', 'color_id', 'uom_id', 'category', 'size', 'color', 'uom',
                  'images', 'created_at', 'updated_at']


class ProductWriteSerializer(StoreScopedSerializer):
    """
    Create and partial update of a product.
    A field that is sent must not be empty; images, when sent, replace the
    existing ones.
    """
    bar_code = serializers.CharField(min_length=13, max_length=100)
    name = serializers.CharField(max_length=255)
    item_desc = serializers.CharField()
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('1'))
    category_id = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all(), source='category')
    size_id = serializers.PrimaryKeyRelatedField(queryset=Size.objects.all(), source='size')
    color_id = serializers.PrimaryKeyRelatedField(queryset=Color.objects.all(), source='color')
    uom_id = serializers.PrimaryKeyRelatedField(queryset=UnitOfMeasure.objects.all(), source='uom',
                                                required=False, allow_null=True)
    images = ImageInputSerializer(many=True, required=False)

    class Meta:
        model = Product
        fields = ['bar_code', 'name', 'item_desc', 'price', 'category_id', 'size_id', 'color_id', 'uom_id',
                  'is_featured', 'is_archived', 'images']

    def validate_category_id(self, value):
        return self.validate_same_store(value, 'Category')

    def validate_size_id(self, value):
        return self.validate_same_store(value, 'Size')

    def validate_color_id(self, value):
        return self.validate_same_store(value, 'Color')

    def validate_uom_id(self, value):
        return self.validate_same_store(value, 'Unit of measure')

    def validate_images(self, value):
        if self.partial and not value:
            raise serializers.ValidationError('Images cannot be empty')
        return value

    def create(self, validated_data):
        images = validated_data.pop('images', [])
        product = super().create(validated_data)
        Image.objects.bulk_create([Image(product=product, url=image['url']) for image in images])
        return product

    def update(self, instance, validated_data):
        images = validated_data.pop('images', None)
        product = super().update(instance, validated_data)
        if images is not None:
            product.images.all().delete()
            Image.objects.bulk_create([Image(product=product, url=image['url']) for image in images])
        return product

    def to_representation(self, instance):
        return ProductSerializer(instance).data


class BulkProductRowSerializer(StoreScopedSerializer):
    """One row of a bulk create or spreadsheet import; unit of measure is required, images optional"""
    bar_code = serializers.CharField(max_length=100)
    name = serializers.CharField(max_length=255)
    item_desc = serializers.CharField(required=False, allow_blank=True, default='')
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('1'))
    category_id = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all(), source='category')
    size_id = serializers.PrimaryKeyRelatedField(queryset=Size.objects.all(), source='size')
    color_id = serializers.PrimaryKeyRelatedField(queryset=Color.objects.all(), source='color')
    uom_id = serializers.PrimaryKeyRelatedField(queryset=UnitOfMeasure.objects.all(), source='uom')
    images = ImageInputSerializer(many=True, required=False)

    class Meta:
        model = Product
        fields = ['bar_code', 'name', 'item_desc', 'price', 'category_id', 'size_id', 'color_id', 'uom_id',
                  'is_featured', 'is_archived', 'images']

    def validate_category_id(self, value):
        return self.validate_same_store(value, 'Category')

    def validate_size_id(self, value):
        return self.validate_same_store(value, 'Size')

    def validate_color_id(self, value):
        return self.validate_same_store(value, 'Color')

    def validate_uom_id(self, value):
        return self.validate_same_store(value, 'Unit of measure')

    def create(self, validated_data):
        images = validated_data.pop('images', [])
        product = super().create(validated_data)
        Image.objects.bulk_create([Image(product=product, url=image['url']) for image in images])
        return product


class PriceUpdateSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))


class ProductFieldsUpdateSerializer(serializers.Serializer):
    """Row of the bulk product editor: only the fields that are sent get written"""
    id = serializers.IntegerField()
    name = serializers.CharField(max_length=255, required=False)
    bar_code = serializers.CharField(max_length=100, required=False)
    item_desc = serializers.CharField(required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False)
    category_id = serializers.IntegerField(required=False)
    size_id = serializers.IntegerField(required=False)
    color_id = serializers.IntegerField(required=False)
    uom_id = serializers.IntegerField(required=False, allow_null=True)
    is_featured = serializers.BooleanField(required=False)
    is_archived = serializers.BooleanField(required=False)
