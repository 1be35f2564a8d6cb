"""
Test suite for the catalog module
Tests: category CRUD, visibility and the category tree
"""
from django.test import TestCase
from rest_framework import status

from stockship.catalog.models import Category
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CategoryTests(TestCase):
    """Test category management and public browsing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.electronics = TestDataFactory.create_category(name='Electronics')
        self.phones = TestDataFactory.create_category(name='Phones', parent=self.electronics)
        self.hidden = TestDataFactory.create_category(name='Hidden', is_active=False)

    def test_slug_generated_and_unique(self):
        self.assertEqual(self.electronics.slug, 'electronics')
        duplicate = TestDataFactory.create_category(name='Electronics')
        self.assertEqual(duplicate.slug, 'electronics-2')

    def test_public_list_hides_inactive(self):
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = {c['name'] for c in response.data}
        self.assertIn('Electronics', names)
        self.assertNotIn('Hidden', names)

    def test_admin_list_includes_inactive(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/categories/?active=false')
        self.assertEqual([c['name'] for c in response.data], ['Hidden'])

    def test_filter_root_categories(self):
        response = self.client.get('/api/v1/categories/?parent=root')
        names = [c['name'] for c in response.data]
        self.assertIn('Electronics', names)
        self.assertNotIn('Phones', names)

    def test_filter_by_parent(self):
        response = self.client.get(f'/api/v1/categories/?parent={self.electronics.id}')
        self.assertEqual([c['name'] for c in response.data], ['Phones'])
        response = self.client.get('/api/v1/categories/?parent=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tree(self):
        response = self.client.get('/api/v1/categories/tree/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        root = next(c for c in response.data if c['name'] == 'Electronics')
        self.assertEqual([c['name'] for c in root['children']], ['Phones'])

    def test_inactive_detail_hidden_from_public(self):
        response = self.client.get(f'/api/v1/categories/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_create_requires_admin(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.post('/api/v1/categories/', {'name': 'Toys'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_category(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/categories/', {'name': 'Home Appliances', 'parent': self.electronics.id},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'home-appliances')
        self.assertEqual(response.data['parent_name'], 'Electronics')

    def test_duplicate_slug_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/categories/', {'name': 'Other', 'slug': 'electronics'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_cycle_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/categories/{self.electronics.id}/', {'parent': self.phones.id},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_with_children(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/categories/{self.electronics.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_used_category(self):
        self.client.authenticate_user(self.admin)
        trader = TestDataFactory.create_trader()
        TestDataFactory.create_offer(trader, category=self.phones)
        response = self.client.delete(f'/api/v1/categories/{self.phones.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_category(self):
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/categories/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Category.objects.filter(pk=self.hidden.id).exists())
