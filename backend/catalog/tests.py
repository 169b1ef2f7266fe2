"""
Test suite for the catalog module
Tests: catalog entities, products, storefront access, bulk editing and spreadsheets
"""
import io
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from openpyxl import Workbook, load_workbook
from rest_framework import status

from backend.catalog.models import Billboard, Category, Color, Product, Image
from backend.catalog.spreadsheet import read_product_rows, parse_bool, XLSX_CONTENT_TYPE
from backend.core.models import Role, AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CatalogTestCase(TestCase):
    """Store with an administrator and a full set of catalog entities"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.admin = TestDataFactory.create_user(store=self.store, role=Role.ADMINISTRATOR)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

        self.billboard = TestDataFactory.create_billboard(self.store)
        self.category = TestDataFactory.create_category(self.store, billboard=self.billboard)
        self.size = TestDataFactory.create_size(self.store)
        self.color = TestDataFactory.create_color(self.store)
        self.uom = TestDataFactory.create_uom(self.store)
        self.base_url = f'/api/v1/stores/{self.store.id}'

    def product_payload(self, **overrides):
        payload = {
            'bar_code': '4800000000011',
            'name': 'Bond Paper A4',
            'item_desc': '80gsm, 500 sheets',
            'price': '250.00',
            'category_id': self.category.id,
            'size_id': self.size.id,
            'color_id': self.color.id,
            'uom_id': self.uom.id,
            'images': [{'url': 'https://cdn.example.com/paper.png'}],
        }
        payload.update(overrides)
        return payload


class CatalogEntityTests(CatalogTestCase):
    """Test billboards, categories, sizes, colors and units of measure"""

    def test_public_can_list_categories(self):
        self.client.logout()
        response = self.client.get(f'{self.base_url}/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['billboard_label'], self.billboard.label)

    def test_public_cannot_create(self):
        self.client.logout()
        response = self.client.post(f'{self.base_url}/sizes/', {'name': 'Large', 'value': 'L'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_billboard(self):
        response = self.client.post(f'{self.base_url}/billboards/', {
            'label': 'Back to School',
            'image_url': 'https://cdn.example.com/school.png',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        billboard = Billboard.objects.get(pk=response.data['id'])
        self.assertEqual(billboard.store_id, self.store.id)
        self.assertTrue(AuditLog.objects.filter(model_name='Billboard', action='create').exists())

    def test_category_requires_billboard_of_same_store(self):
        other_billboard = TestDataFactory.create_billboard(TestDataFactory.create_store())
        response = self.client.post(f'{self.base_url}/categories/', {
            'name': 'Paper', 'billboard_id': other_billboard.id
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('billboard_id', response.data)

    def test_color_must_be_hex(self):
        response = self.client.post(f'{self.base_url}/colors/', {'name': 'Blue', 'value': 'blue'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(str(response.data['value'][0]), 'String must be a valid hex code')

        response = self.client.post(f'{self.base_url}/colors/', {'name': 'Blue', 'value': '#0000FF'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_uom_minimum_length(self):
        response = self.client.post(f'{self.base_url}/uom/', {'uom': 'p'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_size(self):
        response = self.client.patch(f'{self.base_url}/sizes/{self.size.id}/', {'value': 'MD'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['value'], 'MD')

    def test_entity_of_other_store_is_not_found(self):
        other_color = TestDataFactory.create_color(TestDataFactory.create_store())
        response = self.client.get(f'{self.base_url}/colors/{other_color.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_category_in_use(self):
        TestDataFactory.create_product(self.store, category=self.category)
        response = self.client.delete(f'{self.base_url}/categories/{self.category.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Category.objects.filter(pk=self.category.id).exists())

    def test_delete_unused_color(self):
        color = TestDataFactory.create_color(self.store, 'Green', '#00FF00')
        response = self.client.delete(f'{self.base_url}/colors/{color.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Color.objects.filter(pk=color.id).exists())

    def test_reader_cannot_create(self):
        reader = TestDataFactory.create_user(store=self.store, role=Role.USER)
        self.client.authenticate_user(reader)
        response = self.client.post(f'{self.base_url}/uom/', {'uom': 'box'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductTests(CatalogTestCase):
    """Test single product create, update, delete, listing and search"""

    def test_create_product(self):
        response = self.client.post(f'{self.base_url}/products/', self.product_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category']['name'], self.category.name)
        self.assertEqual(len(response.data['images']), 1)

        product = Product.objects.get(pk=response.data['id'])
        self.assertEqual(product.price, Decimal('250.00'))
        self.assertEqual(product.store_id, self.store.id)

    def test_create_product_short_barcode(self):
        response = self.client.post(f'{self.base_url}/products/', self.product_payload(bar_code='123'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bar_code', response.data)

    def test_create_product_price_below_one(self):
        response = self.client.post(f'{self.base_url}/products/', self.product_payload(price='0.50'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('price', response.data)

    def test_create_product_with_foreign_category(self):
        foreign = TestDataFactory.create_category(TestDataFactory.create_store())
        response = self.client.post(f'{self.base_url}/products/',
                                    self.product_payload(category_id=foreign.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('category_id', response.data)

    def test_patch_price_only_logs_price_change(self):
        product = TestDataFactory.create_product(self.store, price=Decimal('100.00'))
        response = self.client.patch(f'{self.base_url}/products/{product.id}/', {'price': '120.00'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['price'], '120.00')

        log = AuditLog.objects.get(action='price_change', object_id=str(product.id))
        self.assertEqual(log.changes['price'], {'old': '100.00', 'new': '120.00'})

    def test_patch_images_replaces_existing(self):
        product = TestDataFactory.create_product(self.store, images=['https://cdn.example.com/old.png'])
        response = self.client.patch(f'{self.base_url}/products/{product.id}/', {
            'images': [{'url': 'https://cdn.example.com/new1.png'}, {'url': 'https://cdn.example.com/new2.png'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            sorted(Image.objects.filter(product=product).values_list('url', flat=True)),
            ['https://cdn.example.com/new1.png', 'https://cdn.example.com/new2.png']
        )

    def test_patch_empty_images_rejected(self):
        product = TestDataFactory.create_product(self.store, images=['https://cdn.example.com/old.png'])
        response = self.client.patch(f'{self.base_url}/products/{product.id}/', {'images': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(product.images.count(), 1)

    def test_delete_product_with_orders(self):
        product = TestDataFactory.create_product(self.store)
        TestDataFactory.create_order(self.store, items=[(product, 1)])
        response = self.client.delete(f'{self.base_url}/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Product has orders. Archive it instead.')

    def test_delete_product(self):
        product = TestDataFactory.create_product(self.store)
        response = self.client.delete(f'{self.base_url}/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())

    def test_storefront_hides_archived_products(self):
        TestDataFactory.create_product(self.store, name='Visible')
        TestDataFactory.create_product(self.store, name='Hidden', is_archived=True)

        self.client.logout()
        response = self.client.get(f'{self.base_url}/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Visible'])

        response = self.client.get(f'{self.base_url}/products/?is_archived=true')
        self.assertEqual(response.data, [])

    def test_members_see_archived_products(self):
        TestDataFactory.create_product(self.store, name='Hidden', is_archived=True)
        response = self.client.get(f'{self.base_url}/products/?is_archived=true')
        self.assertEqual([p['name'] for p in response.data], ['Hidden'])

    def test_filter_by_category_and_featured(self):
        other_category = TestDataFactory.create_category(self.store, billboard=self.billboard)
        TestDataFactory.create_product(self.store, name='Featured', category=self.category, is_featured=True)
        TestDataFactory.create_product(self.store, name='Plain', category=self.category)
        TestDataFactory.create_product(self.store, name='Elsewhere', category=other_category, is_featured=True)

        response = self.client.get(f'{self.base_url}/products/',
                                   {'category_id': self.category.id, 'is_featured': 'true'})
        self.assertEqual([p['name'] for p in response.data], ['Featured'])

    def test_search_by_name_or_barcode(self):
        TestDataFactory.create_product(self.store, name='Ballpen Blue', bar_code='4800000000028')
        TestDataFactory.create_product(self.store, name='Stapler', bar_code='4800000000035')
        TestDataFactory.create_product(self.store, name='Ballpen Old', is_archived=True)

        self.client.logout()
        response = self.client.get(f'{self.base_url}/products/search/', {'q': 'ballpen'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Ballpen Blue'])

        response = self.client.get(f'{self.base_url}/products/search/', {'q': '4800000000035'})
        self.assertEqual([p['name'] for p in response.data], ['Stapler'])

    def test_search_requires_query(self):
        response = self.client.get(f'{self.base_url}/products/search/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductBulkTests(CatalogTestCase):
    """Test bulk create, lookup, price and field updates and deactivation"""

    def bulk_row(self, **overrides):
        row = {
            'bar_code': TestDataFactory.random_barcode(),
            'name': f'Item {TestDataFactory.random_string(4)}',
            'price': '10.00',
            'category_id': self.category.id,
            'size_id': self.size.id,
            'color_id': self.color.id,
            'uom_id': self.uom.id,
        }
        row.update(overrides)
        return row

    def test_bulk_create(self):
        response = self.client.post(f'{self.base_url}/products/bulk/', {
            'products': [
                self.bulk_row(),
                self.bulk_row(bar_code='4800000000110', price='1.00',
                              images=[{'url': 'https://cdn.example.com/row.png'}]),
            ]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(Product.objects.filter(store=self.store).count(), 2)
        self.assertTrue(AuditLog.objects.filter(action='bulk_create').exists())

        with_image = Product.objects.get(store=self.store, bar_code='4800000000110')
        self.assertEqual(list(with_image.images.values_list('url', flat=True)), ['https://cdn.example.com/row.png'])

    def test_bulk_create_rejects_zero_price(self):
        response = self.client.post(f'{self.base_url}/products/bulk/', {
            'products': [self.bulk_row(price='0')]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['row'], 0)
        self.assertIn('price', response.data['errors'][0])
        self.assertFalse(Product.objects.filter(store=self.store).exists())

    def test_bulk_create_is_all_or_nothing(self):
        bad_row = self.bulk_row()
        del bad_row['uom_id']
        response = self.client.post(f'{self.base_url}/products/bulk/', {
            'products': [self.bulk_row(), bad_row]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['row'], 1)
        self.assertFalse(Product.objects.filter(store=self.store).exists())

    def test_bulk_create_requires_rows(self):
        response = self.client.post(f'{self.base_url}/products/bulk/', {'products': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_lookup_for_any_member(self):
        product = TestDataFactory.create_product(self.store, bar_code='4800000000042')
        TestDataFactory.create_product(TestDataFactory.create_store(), bar_code='4800000000059')
        reader = TestDataFactory.create_user(store=self.store, role=Role.USER)
        self.client.authenticate_user(reader)

        response = self.client.post(f'{self.base_url}/products/bulk-lookup/', {
            'barcodes': ['4800000000042', '4800000000059']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in response.data], [product.id])

    def test_bulk_price_update(self):
        first = TestDataFactory.create_product(self.store, price=Decimal('10.00'))
        second = TestDataFactory.create_product(self.store, price=Decimal('20.00'))
        response = self.client.patch(f'{self.base_url}/products/bulk-update/', {
            'products': [{'id': first.id, 'price': '11.50'}, {'id': second.id, 'price': '0'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.price, Decimal('11.50'))
        self.assertEqual(second.price, Decimal('0.00'))
        self.assertEqual(AuditLog.objects.filter(action='price_change').count(), 2)

    def test_bulk_price_update_rejects_foreign_products(self):
        mine = TestDataFactory.create_product(self.store, price=Decimal('10.00'))
        foreign = TestDataFactory.create_product(TestDataFactory.create_store(), price=Decimal('10.00'))
        response = self.client.patch(f'{self.base_url}/products/bulk-update/', {
            'products': [{'id': mine.id, 'price': '99.00'}, {'id': foreign.id, 'price': '99.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        mine.refresh_from_db()
        foreign.refresh_from_db()
        self.assertEqual(mine.price, Decimal('10.00'))
        self.assertEqual(foreign.price, Decimal('10.00'))

    def test_bulk_price_update_negative_price(self):
        product = TestDataFactory.create_product(self.store)
        response = self.client.patch(f'{self.base_url}/products/bulk-update/', {
            'products': [{'id': product.id, 'price': '-1'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bulk_fields_update_writes_only_sent_fields(self):
        product = TestDataFactory.create_product(self.store, name='Old Name', price=Decimal('10.00'))
        new_size = TestDataFactory.create_size(self.store, 'Large', 'L')
        response = self.client.patch(f'{self.base_url}/products/bulk-product-update/', {
            'products': [{'id': product.id, 'name': 'New Name', 'size_id': new_size.id}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'message': 'Products updated successfully', 'count': 1})

        product.refresh_from_db()
        self.assertEqual(product.name, 'New Name')
        self.assertEqual(product.size_id, new_size.id)
        self.assertEqual(product.price, Decimal('10.00'))

    def test_bulk_fields_update_rejects_foreign_reference(self):
        product = TestDataFactory.create_product(self.store)
        foreign_color = TestDataFactory.create_color(TestDataFactory.create_store())
        response = self.client.patch(f'{self.base_url}/products/bulk-product-update/', {
            'products': [{'id': product.id, 'color_id': foreign_color.id}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        product.refresh_from_db()
        self.assertNotEqual(product.color_id, foreign_color.id)

    def test_deactivate(self):
        first = TestDataFactory.create_product(self.store)
        second = TestDataFactory.create_product(self.store)
        foreign = TestDataFactory.create_product(TestDataFactory.create_store())
        response = self.client.patch(f'{self.base_url}/products/deactivate/', {
            'product_ids': [first.id, str(second.id), foreign.id]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(Product.objects.filter(is_archived=True).count(), 2)
        foreign.refresh_from_db()
        self.assertFalse(foreign.is_archived)

    def test_deactivate_requires_ids(self):
        response = self.client.patch(f'{self.base_url}/products/deactivate/', {'product_ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_acctg_can_bulk_update_but_not_delete(self):
        acctg = TestDataFactory.create_user(store=self.store, role=Role.ACCTG)
        product = TestDataFactory.create_product(self.store)
        self.client.authenticate_user(acctg)

        response = self.client.patch(f'{self.base_url}/products/bulk-update/', {
            'products': [{'id': product.id, 'price': '5.00'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(f'{self.base_url}/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SpreadsheetTests(CatalogTestCase):
    """Test .xlsx import and export of products"""

    def make_workbook(self, headers, rows):
        wb = Workbook()
        ws = wb.active
        ws.append(headers)
        for row in rows:
            ws.append(row)
        output = io.BytesIO()
        wb.save(output)
        return SimpleUploadedFile('products.xlsx', output.getvalue(), content_type=XLSX_CONTENT_TYPE)

    def valid_row(self, bar_code='4800000000066', name='Folder', price=15.0):
        return [bar_code, name, 'Long folder', price, self.category.id, self.color.id, self.size.id,
                self.uom.id, 'yes', None]

    headers = ['barCode', 'name', 'itemDesc', 'price', 'categoryId', 'colorId', 'sizeId', 'uomId',
               'isFeatured', 'isArchived']

    def test_parse_bool(self):
        self.assertTrue(parse_bool('Yes'))
        self.assertTrue(parse_bool(1))
        self.assertFalse(parse_bool(None))
        self.assertFalse(parse_bool('no'))

    def test_read_rows_accepts_snake_case_headers(self):
        upload = self.make_workbook(['bar_code', 'name', 'ignored'], [[4800000000073, ' Clip ', 'x'], [None, None, None]])
        rows = read_product_rows(upload)
        self.assertEqual(rows, [{'bar_code': '4800000000073', 'name': 'Clip'}])

    def test_import_preview(self):
        bad_row = self.valid_row(bar_code='4800000000080', name='Broken')
        bad_row[7] = None
        upload = self.make_workbook(self.headers, [self.valid_row(), bad_row])

        response = self.client.post(f'{self.base_url}/products/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['valid_count'], 1)
        self.assertEqual(response.data['invalid_count'], 1)
        self.assertIn(1, response.data['errors'])
        self.assertTrue(response.data['rows'][0]['is_featured'])
        self.assertFalse(Product.objects.exists())

    def test_import_commit(self):
        upload = self.make_workbook(self.headers, [self.valid_row(), self.valid_row('4800000000097', 'Binder', 20)])
        response = self.client.post(f'{self.base_url}/products/import/', {'file': upload, 'commit': 'true'},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['count'], 2)

        folder = Product.objects.get(store=self.store, bar_code='4800000000066')
        self.assertEqual(folder.price, Decimal('15.00'))
        self.assertTrue(folder.is_featured)
        self.assertFalse(folder.is_archived)

    def test_import_commit_with_invalid_rows_creates_nothing(self):
        bad_row = self.valid_row(bar_code='4800000000080')
        bad_row[4] = 999999
        upload = self.make_workbook(self.headers, [self.valid_row(), bad_row])
        response = self.client.post(f'{self.base_url}/products/import/', {'file': upload, 'commit': 'true'},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Product.objects.exists())

    def test_import_rejects_other_file_types(self):
        upload = SimpleUploadedFile('products.csv', b'barCode,name\n1,x\n', content_type='text/csv')
        response = self.client.post(f'{self.base_url}/products/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_import_rejects_corrupt_workbook(self):
        upload = SimpleUploadedFile('products.xlsx', b'not a zip file', content_type=XLSX_CONTENT_TYPE)
        response = self.client.post(f'{self.base_url}/products/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid spreadsheet file')

    def test_export(self):
        TestDataFactory.create_product(self.store, name='Exported', bar_code='4800000000103',
                                       price=Decimal('42.50'))
        response = self.client.get(f'{self.base_url}/products/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], XLSX_CONTENT_TYPE)
        self.assertIn('attachment;', response['Content-Disposition'])

        sheet = load_workbook(io.BytesIO(response.content)).active
        self.assertEqual([cell.value for cell in sheet[1]], self.headers)
        self.assertEqual(sheet['A2'].value, '4800000000103')
        self.assertEqual(sheet['B2'].value, 'Exported')
        self.assertEqual(sheet['D2'].value, 42.5)
