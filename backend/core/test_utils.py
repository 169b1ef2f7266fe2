"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.core.models import Role
from backend.stores.models import Store
from backend.catalog.models import Billboard, Category, Size, Color, UnitOfMeasure, Product, Image
from backend.orders.models import Order, OrderItem
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def random_barcode():
        return ''.join(random.choices(string.digits, k=13))

    @staticmethod
    def get_role(name=Role.ADMINISTRATOR):
        role, _ = Role.objects.get_or_create(name=name)
        return role

    @staticmethod
    def create_store(name=None):
        """Create a test store"""
        if not name:
            name = f'Store_{TestDataFactory.random_string(6)}'
        return Store.objects.create(name=name)

    @staticmethod
    def create_user(email=None, password='testpass123', store=None, role=Role.ADMINISTRATOR,
                    verified=True, is_superuser=False, name=None):
        """Create a verified test user, member of ``store`` with ``role``"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            name=name or 'Test User',
            is_superuser=is_superuser,
            is_staff=is_superuser,
        )
        user.store = store
        user.role = TestDataFactory.get_role(role) if role else None
        user.email_verified = timezone.now() if verified else None
        user.save()
        return user

    @staticmethod
    def create_billboard(store, label=None):
        return Billboard.objects.create(
            store=store,
            label=label or f'Billboard {TestDataFactory.random_string(4)}',
            image_url='https://cdn.example.com/billboard.png'
        )

    @staticmethod
    def create_category(store, name=None, billboard=None):
        """Create a test category"""
        return Category.objects.create(
            store=store,
            billboard=billboard or TestDataFactory.create_billboard(store),
            name=name or f'Category_{TestDataFactory.random_string(6)}'
        )

    @staticmethod
    def create_size(store, name='Medium', value='M'):
        return Size.objects.create(store=store, name=name, value=value)

    @staticmethod
    def create_color(store, name='Red', value='#FF0000'):
        return Color.objects.create(store=store, name=name, value=value)

    @staticmethod
    def create_uom(store, uom='pcs'):
        return UnitOfMeasure.objects.create(store=store, uom=uom)

    @staticmethod
    def create_product(store, name=None, bar_code=None, price=None, category=None, size=None, color=None,
                       uom=None, is_featured=False, is_archived=False, images=None):
        """Create a test product, creating the related catalog entities when not given"""
        product = Product.objects.create(
            store=store,
            name=name or f'Product_{TestDataFactory.random_string(6)}',
            bar_code=bar_code or TestDataFactory.random_barcode(),
            item_desc='Test product description',
            price=price if price is not None else Decimal('100.00'),
            category=category or TestDataFactory.create_category(store),
            size=size or TestDataFactory.create_size(store),
            color=color or TestDataFactory.create_color(store),
            uom=uom,
            is_featured=is_featured,
            is_archived=is_archived,
        )
        for url in images or []:
            Image.objects.create(product=product, url=url)
        return product

    @staticmethod
    def create_order(store, items=None, shipping_fee=Decimal('0.00'), is_paid=False, order_status=False,
                     client_email=None, po_number=None, company_name='Acme Corp'):
        """
        Create an order; ``items`` is a list of (product, quantity) tuples.
        Line totals and the order total are computed like the checkout does.
        """
        order = Order.objects.create(
            store=store,
            company_name=company_name,
            po_number=po_number or f'PO-{TestDataFactory.random_string(6).upper()}',
            address='123 Test Street',
            contact_number='09171234567',
            client_name='Test Client',
            client_email=client_email or 'client@test.com',
            shipping_fee=shipping_fee,
            is_paid=is_paid,
            order_status=order_status,
            paid_at=timezone.now() if is_paid else None,
            delivered_at=timezone.now() if order_status else None,
        )
        items_total = Decimal('0.00')
        for product, quantity in items or []:
            line_total = product.price * quantity
            OrderItem.objects.create(order=order, product=product, quantity=quantity, total_item_amount=line_total)
            items_total += line_total
        order.total_amount_item_and_shipping = items_total + shipping_fee
        order.save(update_fields=['total_amount_item_and_shipping'])
        return order


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
