"""
Test utilities and factories for creating test data
"""
import io
import random
import string
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from openpyxl import Workbook
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from stockship.catalog.models import Category
from stockship.core.models import User
from stockship.deals.models import Deal, DealItem
from stockship.finance.models import Payment
from stockship.offers.importers import XLSX_CONTENT_TYPE
from stockship.offers.models import Offer, OfferItem
from stockship.parties.models import Employee, Trader

SHEET_HEADER = [
    'NO', 'IMAGE', 'ITEM NO.', 'DESCRIPTION', 'COLOUR', 'SPEC.', 'QUANTITY', 'UNIT', 'UNIT PRICE', 'CURRENCY',
    'AMOUNT', 'PACKING', 'PACKAGE QUANTITY', 'UNIT G.W.', 'TOTAL G.W.', 'LENGTH', 'WIDTH', 'HEIGHT', 'TOTAL CBM',
]


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.CLIENT, is_active=True, **extra):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_active=is_active,
            **extra
        )

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role=User.ADMIN, **kwargs)

    @staticmethod
    def create_moderator(**kwargs):
        return TestDataFactory.create_user(role=User.MODERATOR, **kwargs)

    @staticmethod
    def create_client(**kwargs):
        return TestDataFactory.create_user(role=User.CLIENT, **kwargs)

    @staticmethod
    def create_employee(user=None, commission_rate=Decimal('1.0'), code=None):
        """Create an employee profile (and its user)"""
        if user is None:
            user = TestDataFactory.create_user(role=User.EMPLOYEE, first_name='Emp', last_name='Loyee')
        return Employee.objects.create(
            user=user,
            employee_code=code or f'EMP-{TestDataFactory.random_string(4).upper()}',
            commission_rate=commission_rate,
        )

    @staticmethod
    def create_trader(user=None, employee=None, company_name=None, is_verified=True):
        """Create a trader profile (and its user)"""
        if user is None:
            user = TestDataFactory.create_user(role=User.TRADER)
        return Trader.objects.create(
            user=user,
            employee=employee,
            company_name=company_name or f'Company {TestDataFactory.random_string(5)}',
            trader_code=f'TRD-{TestDataFactory.random_string(4).upper()}',
            country='Saudi Arabia',
            city='Riyadh',
            is_verified=is_verified,
            verified_at=timezone.now() if is_verified else None,
        )

    @staticmethod
    def create_category(name=None, parent=None, is_active=True):
        """Create a test category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(6)}'
        return Category.objects.create(name=name, parent=parent, is_active=is_active)

    @staticmethod
    def create_offer(trader, status=Offer.ACTIVE, title=None, category=None, items=0):
        """Create an offer with ``items`` generated items"""
        offer = Offer.objects.create(
            trader=trader,
            category=category,
            title=title or f'Offer {TestDataFactory.random_string(6)}',
            status=status,
        )
        for index in range(items):
            TestDataFactory.create_offer_item(offer, display_order=index + 1)
        if items:
            offer.recalculate_totals()
        return offer

    @staticmethod
    def create_offer_item(offer, quantity=100, package_quantity=10, total_cbm=Decimal('2.0000'),
                          unit_price=Decimal('5.00'), display_order=1):
        return OfferItem.objects.create(
            offer=offer,
            item_no=f'ITEM-{TestDataFactory.random_string(4).upper()}',
            product_name=f'Product {TestDataFactory.random_string(5)}',
            quantity=quantity,
            unit_price=unit_price,
            amount=unit_price * quantity,
            package_quantity=package_quantity,
            total_cbm=total_cbm,
            display_order=display_order,
        )

    @staticmethod
    def create_deal(offer, client, status=Deal.NEGOTIATION, negotiated_amount=None, number=None, **extra):
        """Create a deal without going through the lifecycle services"""
        trader = offer.trader
        return Deal.objects.create(
            deal_number=number or f'DEAL-{timezone.now().year}-{random.randint(100000, 999999)}',
            offer=offer,
            trader=trader,
            client=client,
            employee=trader.employee,
            status=status,
            negotiated_amount=negotiated_amount,
            **extra
        )

    @staticmethod
    def create_deal_item(deal, offer_item, quantity=10, cartons=1, cbm=Decimal('0.2000')):
        return DealItem.objects.create(deal=deal, offer_item=offer_item, quantity=quantity, cartons=cartons, cbm=cbm)

    @staticmethod
    def create_payment(deal, amount=None, status=Payment.PENDING):
        return Payment.objects.create(
            deal=deal,
            client=deal.client,
            amount=amount if amount is not None else deal.negotiated_amount,
            status=status,
        )

    @staticmethod
    def create_marketplace(employee_commission_rate=Decimal('1.0')):
        """Employee, verified trader assigned to it, an active offer with two items and a client"""
        employee = TestDataFactory.create_employee(commission_rate=employee_commission_rate)
        trader = TestDataFactory.create_trader(employee=employee)
        offer = TestDataFactory.create_offer(trader, items=2)
        client = TestDataFactory.create_client()
        return employee, trader, offer, client

    @staticmethod
    def item_sheet(rows, name='items.csv'):
        """CSV upload with the standard item sheet header"""
        buffer = io.StringIO()
        buffer.write(','.join(SHEET_HEADER) + '\n')
        for row in rows:
            buffer.write(','.join(str(cell) for cell in row) + '\n')
        return SimpleUploadedFile(name, buffer.getvalue().encode('utf-8'), content_type='text/csv')

    @staticmethod
    def item_workbook(rows, name='items.xlsx'):
        """Excel upload with the standard item sheet header"""
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(SHEET_HEADER)
        for row in rows:
            sheet.append(row)
        buffer = io.BytesIO()
        workbook.save(buffer)
        return SimpleUploadedFile(name, buffer.getvalue(), content_type=XLSX_CONTENT_TYPE)


class AuthenticatedAPIClient(APIClient):
    """API client with JWT authentication"""

    def authenticate_user(self, user):
        """Authenticate user and set JWT token"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return refresh

    def logout(self):
        """Clear authentication"""
        self.credentials()
