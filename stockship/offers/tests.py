"""
Test suite for the offers module
Tests: public browsing, offer creation, item sheet upload, validation and management
"""
from decimal import Decimal

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status

from stockship.core.models import ActivityLog, Notification
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.offers.importers import OfferUploadError, carton_cbm, parse_item_row, read_item_sheet, to_decimal
from stockship.offers.models import Offer, OfferItem

SHEET_ROWS = [
    [1, '', 'A-1', 'Steel pot', 'Red', '', 100, 'PCS', '2.50', 'usd', '', 'carton', 10, '', '', 50, 40, 30, ''],
    [2, '', 'B-2', 'Frying pan', '', '', 50, '', '4', '', '', '', 5, '', '', '', '', '', '1.25'],
    [''] * 19,
]


class ItemSheetTests(TestCase):
    """Test the CSV and Excel item sheet parser"""

    def test_carton_cbm(self):
        self.assertEqual(carton_cbm(Decimal('50'), Decimal('40'), Decimal('30'), 10), Decimal('0.6000'))
        self.assertEqual(carton_cbm(None, Decimal('40'), Decimal('30'), 10), Decimal('0'))

    def test_to_decimal(self):
        self.assertEqual(to_decimal('1,200.50'), Decimal('1200.50'))
        self.assertIsNone(to_decimal('n/a'))
        self.assertIsNone(to_decimal(''))

    def test_row_without_quantity_is_skipped(self):
        row = [1, '', 'X-1', 'Sample', '', '', 0, '', '1', '', '', '', 1, '', '', '', '', '', '']
        self.assertIsNone(parse_item_row([str(c) for c in row], 1))

    def test_read_sheet(self):
        items = read_item_sheet(TestDataFactory.item_sheet(SHEET_ROWS), max_bytes=1024 * 1024)
        self.assertEqual(len(items), 2)
        first, second = items
        self.assertEqual(first['product_name'], 'Steel pot')
        self.assertEqual(first['currency'], 'USD')
        self.assertEqual(first['amount'], Decimal('250.00'))
        self.assertEqual(first['total_cbm'], Decimal('0.6000'))
        self.assertEqual(second['unit'], 'SET')
        self.assertEqual(second['total_cbm'], Decimal('1.2500'))

    def test_missing_file(self):
        with self.assertRaises(OfferUploadError):
            read_item_sheet(None, max_bytes=1024)

    def test_file_too_large(self):
        with self.assertRaises(OfferUploadError):
            read_item_sheet(TestDataFactory.item_sheet(SHEET_ROWS), max_bytes=10)

    def test_wrong_file_type(self):
        upload = SimpleUploadedFile('items.pdf', b'%PDF-1.4', content_type='application/pdf')
        with self.assertRaises(OfferUploadError):
            read_item_sheet(upload, max_bytes=1024)

    def test_sheet_without_items(self):
        with self.assertRaises(OfferUploadError):
            read_item_sheet(TestDataFactory.item_sheet([[''] * 19]), max_bytes=1024 * 1024)

    def test_read_workbook(self):
        rows = [
            [1, None, 'A-1', 'Steel pot', 'Red', None, 100, 'PCS', 2.5, 'usd', None, 'carton', 10,
             None, None, 50, 40, 30, None],
            [2, None, 20045, 'Frying pan', None, None, 50, None, 4, None, None, None, 5, None, None, None, None, None,
             1.25],
            [None] * 19,
        ]
        items = read_item_sheet(TestDataFactory.item_workbook(rows), max_bytes=1024 * 1024)
        self.assertEqual(len(items), 2)
        first, second = items
        self.assertEqual(first['product_name'], 'Steel pot')
        self.assertEqual(first['unit_price'], Decimal('2.5'))
        self.assertEqual(first['amount'], Decimal('250.00'))
        self.assertEqual(first['total_cbm'], Decimal('0.6000'))
        self.assertEqual(second['item_no'], '20045')
        self.assertEqual(second['quantity'], 50)
        self.assertEqual(second['total_cbm'], Decimal('1.2500'))

    def test_broken_workbook(self):
        upload = SimpleUploadedFile('items.xlsx', b'not a zip archive')
        with self.assertRaises(OfferUploadError):
            read_item_sheet(upload, max_bytes=1024)

    def test_values_too_large_for_columns(self):
        base = [1, '', 'A-1', 'Steel pot', '', '', 100, '', '2.50', '', '', '', 10, '', '', '', '', '', '']
        for index, value in ((6, '99999999999'), (8, '1e13'), (12, '3000000000'), (15, '1e40')):
            row = list(base)
            row[index] = value
            with self.assertRaises(OfferUploadError) as ctx:
                read_item_sheet(TestDataFactory.item_sheet([row]), max_bytes=1024 * 1024)
            self.assertIn('Row 2', str(ctx.exception))

    def test_largest_values_accepted(self):
        row = [1, '', 'A-1', 'Steel pot', '', '', 2147483647, '', '0.01', '', '', '', 0, '', '',
               '', '', '', '']
        items = read_item_sheet(TestDataFactory.item_sheet([row]), max_bytes=1024 * 1024)
        self.assertEqual(items[0]['quantity'], 2147483647)


class PublicOfferTests(TestCase):
    """Test anonymous browsing of active offers"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.category = TestDataFactory.create_category(name='Kitchen')
        self.subcategory = TestDataFactory.create_category(name='Cookware', parent=self.category)
        self.trader = TestDataFactory.create_trader(company_name='Riyadh Wholesale')
        self.active = TestDataFactory.create_offer(self.trader, title='Kitchen bundle', category=self.subcategory, items=2)
        self.draft = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT, title='Draft bundle')

    def test_list_only_active(self):
        response = self.client.get('/api/v1/offers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        offer = response.data['results'][0]
        self.assertEqual(offer['title'], 'Kitchen bundle')
        self.assertEqual(offer['item_count'], 2)
        self.assertEqual(offer['trader']['company_name'], 'Riyadh Wholesale')

    def test_inactive_trader_offers_hidden(self):
        self.trader.user.is_active = False
        self.trader.user.save()
        response = self.client.get('/api/v1/offers/')
        self.assertEqual(response.data['count'], 0)

    def test_search_by_company(self):
        response = self.client.get('/api/v1/offers/?search=riyadh')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/offers/?search=nothing-matches')
        self.assertEqual(response.data['count'], 0)

    def test_list_cache_dropped_when_offer_changes(self):
        self.assertEqual(self.client.get('/api/v1/offers/').data['count'], 1)
        TestDataFactory.create_offer(self.trader, title='Second bundle')
        self.assertEqual(self.client.get('/api/v1/offers/').data['count'], 2)

    def test_by_category_includes_children(self):
        response = self.client.get(f'/api/v1/offers/category/{self.category.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['category']['name'], 'Kitchen')

    def test_recommended_ranked_by_deals(self):
        popular = TestDataFactory.create_offer(self.trader, title='Popular')
        TestDataFactory.create_deal(popular, TestDataFactory.create_client())
        response = self.client.get('/api/v1/offers/recommended/?limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['title'], 'Popular')

    def test_detail_of_active_offer(self):
        response = self.client.get(f'/api/v1/offers/{self.active.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(Decimal(response.data['total_cbm']), Decimal('4.0000'))
        self.assertEqual(response.data['total_cartons'], 20)

    def test_draft_hidden_from_public(self):
        response = self.client.get(f'/api/v1/offers/{self.draft.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_draft_visible_to_owner(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.get(f'/api/v1/offers/{self.draft.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class OfferLifecycleTests(TestCase):
    """Test offer creation, upload, validation, updates and deletion"""

    def setUp(self):
        cache.clear()
        self.employee = TestDataFactory.create_employee()
        self.trader = TestDataFactory.create_trader(employee=self.employee)
        self.moderator = TestDataFactory.create_moderator()
        self.client = AuthenticatedAPIClient()

    def test_trader_creates_draft_offer(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post('/api/v1/offers/', {
            'description': 'Assorted kitchenware from Yiwu',
            'items': [
                {'product_name': 'Pot', 'quantity': 10, 'unit_price': '3.00', 'package_quantity': 2,
                 'carton_length': '50', 'carton_width': '40', 'carton_height': '30'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Offer.DRAFT)
        self.assertEqual(response.data['title'], 'Assorted kitchenware from Yiwu')
        self.assertEqual(response.data['country'], 'Saudi Arabia')
        item = response.data['items'][0]
        self.assertEqual(Decimal(item['amount']), Decimal('30.00'))
        self.assertEqual(Decimal(item['total_cbm']), Decimal('0.1200'))
        self.assertTrue(Notification.objects.filter(user=self.employee.user, type='OFFER').exists())
        self.assertTrue(Notification.objects.filter(user=self.moderator, type='OFFER').exists())

    def test_default_title(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post('/api/v1/offers/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'New Advertisement')

    def test_inactive_category_rejected(self):
        category = TestDataFactory.create_category(is_active=False)
        self.client.authenticate_user(self.trader.user)
        response = self.client.post('/api/v1/offers/', {'title': 'X', 'category': category.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_traders_create(self):
        response = self.client.post('/api/v1/offers/', {'title': 'Anonymous'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.post('/api/v1/offers/', {'title': 'Client'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_upload_items(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT, items=1)
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/offers/{offer.id}/upload/',
                                    {'file': TestDataFactory.item_sheet(SHEET_ROWS)}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Offer.PENDING_VALIDATION)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(response.data['total_cartons'], 15)
        self.assertEqual(Decimal(response.data['total_cbm']), Decimal('1.8500'))
        self.assertEqual(response.data['upload_file_name'], 'items.csv')
        self.assertTrue(ActivityLog.objects.filter(action='OFFER_ITEMS_UPLOADED', entity_id=str(offer.id)).exists())

    def test_upload_workbook(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT)
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/offers/{offer.id}/upload/',
                                    {'file': TestDataFactory.item_workbook(SHEET_ROWS)}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(response.data['total_cartons'], 15)
        self.assertEqual(Decimal(response.data['total_cbm']), Decimal('1.8500'))
        self.assertEqual(response.data['upload_file_name'], 'items.xlsx')

    def test_upload_out_of_range_row(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT, items=1)
        row = list(SHEET_ROWS[0])
        row[8] = '99999999999999'
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/offers/{offer.id}/upload/',
                                    {'file': TestDataFactory.item_sheet([row])}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Row 2', response.data['error'])
        self.assertEqual(offer.items.count(), 1)

    def test_upload_keeps_items_used_by_deals(self):
        offer = TestDataFactory.create_offer(self.trader, items=1)
        used = offer.items.first()
        deal = TestDataFactory.create_deal(offer, TestDataFactory.create_client())
        TestDataFactory.create_deal_item(deal, used)
        self.client.authenticate_user(self.employee.user)
        response = self.client.post(f'/api/v1/offers/{offer.id}/upload/',
                                    {'file': TestDataFactory.item_sheet(SHEET_ROWS)}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(OfferItem.objects.filter(pk=used.pk).exists())
        self.assertEqual(offer.items.count(), 3)

    def test_upload_bad_sheet(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT)
        self.client.authenticate_user(self.trader.user)
        upload = SimpleUploadedFile('items.pdf', b'%PDF-1.4', content_type='application/pdf')
        response = self.client.post(f'/api/v1/offers/{offer.id}/upload/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upload_by_stranger_not_found(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT)
        self.client.authenticate_user(TestDataFactory.create_trader().user)
        response = self.client.post(f'/api/v1/offers/{offer.id}/upload/',
                                    {'file': TestDataFactory.item_sheet(SHEET_ROWS)}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_approves_offer(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.PENDING_VALIDATION)
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/offers/{offer.id}/validate/', {'approved': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Offer.ACTIVE)
        offer.refresh_from_db()
        self.assertEqual(offer.validated_by, self.employee.user)
        self.assertIsNotNone(offer.validated_at)
        self.assertTrue(Notification.objects.filter(user=self.trader.user, title='Offer approved').exists())

    def test_employee_rejects_offer(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.PENDING_VALIDATION)
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/offers/{offer.id}/validate/', {
            'approved': False, 'validation_notes': 'Prices missing'
        }, format='json')
        self.assertEqual(response.data['status'], Offer.REJECTED)
        self.assertEqual(response.data['validation_notes'], 'Prices missing')

    def test_validate_active_offer_rejected(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.ACTIVE)
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/offers/{offer.id}/validate/', {'approved': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_employee_cannot_validate(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.PENDING_VALIDATION)
        self.client.authenticate_user(TestDataFactory.create_employee().user)
        response = self.client.put(f'/api/v1/offers/{offer.id}/validate/', {'approved': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_editing_rejected_offer_resubmits(self):
        offer = TestDataFactory.create_offer(self.trader, status=Offer.REJECTED)
        self.client.authenticate_user(self.employee.user)
        response = self.client.patch(f'/api/v1/offers/{offer.id}/', {'title': 'Fixed title'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Offer.PENDING_VALIDATION)
        self.assertEqual(response.data['title'], 'Fixed title')

    def test_trader_cannot_edit_offer(self):
        offer = TestDataFactory.create_offer(self.trader)
        self.client.authenticate_user(self.trader.user)
        response = self.client.patch(f'/api/v1/offers/{offer.id}/', {'title': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_blocked_by_deals(self):
        offer = TestDataFactory.create_offer(self.trader)
        TestDataFactory.create_deal(offer, TestDataFactory.create_client())
        self.client.authenticate_user(self.employee.user)
        response = self.client.delete(f'/api/v1/offers/{offer.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_offer(self):
        offer = TestDataFactory.create_offer(self.trader)
        self.client.authenticate_user(self.employee.user)
        response = self.client.delete(f'/api/v1/offers/{offer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Offer.objects.filter(pk=offer.id).exists())

    def test_role_scoped_lists(self):
        TestDataFactory.create_offer(self.trader, status=Offer.DRAFT)
        TestDataFactory.create_offer(TestDataFactory.create_trader())

        self.client.authenticate_user(self.trader.user)
        self.assertEqual(self.client.get('/api/v1/offers/mine/').data['count'], 1)
        self.client.authenticate_user(self.employee.user)
        self.assertEqual(self.client.get('/api/v1/offers/assigned/?status=draft').data['count'], 1)
        self.client.authenticate_user(self.moderator)
        self.assertEqual(self.client.get('/api/v1/offers/all/').data['count'], 2)
        self.client.authenticate_user(self.trader.user)
        self.assertEqual(self.client.get('/api/v1/offers/all/').status_code, status.HTTP_403_FORBIDDEN)
