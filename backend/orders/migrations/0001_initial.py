import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('stores', '0001_initial'),
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('company_name', models.CharField(max_length=255)),
                ('po_number', models.CharField(db_index=True, max_length=100)),
                ('address', models.TextField()),
                ('contact_number', models.CharField(max_length=50)),
                ('client_name', models.CharField(max_length=200)),
                ('client_email', models.EmailField(db_index=True, max_length=254)),
                ('is_paid', models.BooleanField(default=False)),
                ('order_status', models.BooleanField(default=False, help_text='True once the order is delivered')),
                ('shipping_fee', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total_amount_item_and_shipping', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('attached_po_url', models.URLField(blank=True, max_length=500)),
                ('acctg_remarks', models.TextField(blank=True)),
                ('acctg_attached_url', models.URLField(blank=True, max_length=500)),
                ('store_remarks', models.TextField(blank=True)),
                ('store_attached_url', models.URLField(blank=True, max_length=500)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='orders', to='stores.store')),
            ],
            options={
                'db_table': 'orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['store', 'is_paid'], name='order_store_paid_idx'),
                    models.Index(fields=['store', 'order_status'], name='order_store_status_idx'),
                    models.Index(fields=['-created_at'], name='order_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('total_item_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='order_items', to='orders.order')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_items', to='catalog.product')),
            ],
            options={
                'db_table': 'order_items',
                'ordering': ['id'],
            },
        ),
    ]
