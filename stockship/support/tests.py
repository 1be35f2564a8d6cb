"""
Test suite for the support module
Tests: ticket creation, role scoping, replies, status changes and assignment
"""
from django.test import TestCase
from rest_framework import status

from stockship.core.models import ActivityLog, Notification
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.support.models import SupportTicket, TicketMessage


class TicketCreationTests(TestCase):
    """Test opening tickets on offers"""

    def setUp(self):
        self.employee, self.trader, self.offer, _ = TestDataFactory.create_marketplace()
        self.client = AuthenticatedAPIClient()

    def test_trader_opens_ticket(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/offers/{self.offer.id}/tickets/', {
            'subject': 'Wrong carton size', 'message': ' Please fix the packing of item 2 ', 'priority': 'HIGH'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], SupportTicket.OPEN)
        self.assertEqual(response.data['priority'], SupportTicket.HIGH)
        self.assertEqual(response.data['employee']['id'], self.employee.id)
        self.assertEqual(response.data['offer']['id'], self.offer.id)
        self.assertEqual(len(response.data['messages']), 1)
        self.assertEqual(response.data['messages'][0]['message'], 'Please fix the packing of item 2')
        self.assertEqual(response.data['messages'][0]['sender_type'], 'TRADER')
        self.assertTrue(Notification.objects.filter(user=self.employee.user, type='TICKET').exists())
        self.assertTrue(ActivityLog.objects.filter(action='TICKET_CREATED', user=self.trader.user).exists())

    def test_employee_opens_ticket(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.post(f'/api/v1/offers/{self.offer.id}/tickets/', {
            'subject': 'Missing images', 'message': 'Please upload item images'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['priority'], SupportTicket.MEDIUM)
        self.assertTrue(Notification.objects.filter(user=self.trader.user, title='New support ticket').exists())

    def test_outsider_cannot_open_ticket(self):
        for user in (TestDataFactory.create_employee().user, TestDataFactory.create_trader().user,
                     TestDataFactory.create_client()):
            self.client.authenticate_user(user)
            response = self.client.post(f'/api/v1/offers/{self.offer.id}/tickets/', {
                'subject': 'Hello', 'message': 'Hi'
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_subject_and_message_required(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/offers/{self.offer.id}/tickets/', {'subject': 'No body'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)

    def test_unknown_offer(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post('/api/v1/offers/99999/tickets/', {'subject': 'x', 'message': 'y'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class TicketWorkflowTests(TestCase):
    """Test listing, replying, status updates and assignment"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.admin = TestDataFactory.create_admin()
        self.ticket = SupportTicket.objects.create(offer=self.offer, trader=self.trader, employee=self.employee,
                                                   subject='Price update')
        TicketMessage.objects.create(ticket=self.ticket, sender=self.trader.user, sender_type='TRADER',
                                     message='Can we update prices?')
        self.client = AuthenticatedAPIClient()

    def test_list_scoping(self):
        other_trader = TestDataFactory.create_trader(employee=TestDataFactory.create_employee())
        other_offer = TestDataFactory.create_offer(other_trader)
        SupportTicket.objects.create(offer=other_offer, trader=other_trader, subject='Other')

        expected = [
            (self.trader.user, 1),
            (self.employee.user, 1),
            (other_trader.user, 1),
            (self.admin, 2),
            (TestDataFactory.create_moderator(), 2),
            (self.client_user, 0),
        ]
        for user, count in expected:
            self.client.authenticate_user(user)
            response = self.client.get('/api/v1/tickets/')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data['count'], count, user.role)

    def test_list_filters(self):
        self.client.authenticate_user(self.admin)
        self.assertEqual(self.client.get('/api/v1/tickets/?status=open').data['count'], 1)
        self.assertEqual(self.client.get('/api/v1/tickets/?status=closed').data['count'], 0)
        self.assertEqual(self.client.get(f'/api/v1/tickets/?offer={self.offer.id}').data['count'], 1)
        response = self.client.get('/api/v1/tickets/?priority=medium')
        self.assertEqual(response.data['results'][0]['message_count'], 1)

    def test_malformed_filters(self):
        self.client.authenticate_user(self.admin)
        for query, field in (('offer=abc', 'offer'), ('priority=bogus', 'priority'), ('status=done', 'status')):
            response = self.client.get(f'/api/v1/tickets/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
            self.assertIn(field, response.data)

    def test_detail_hidden_from_strangers(self):
        self.client.authenticate_user(TestDataFactory.create_trader().user)
        response = self.client.get(f'/api/v1/tickets/{self.ticket.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_replies(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/messages/', {
            'message': 'Sure, send the new sheet', 'attachments': ['https://files.example.com/a.csv']
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sender_type'], 'EMPLOYEE')
        self.assertEqual(response.data['attachments'], ['https://files.example.com/a.csv'])
        self.assertTrue(Notification.objects.filter(user=self.trader.user,
                                                    title=f'New reply on ticket #{self.ticket.id}').exists())

    def test_reply_reopens_resolved_ticket(self):
        self.ticket.status = SupportTicket.RESOLVED
        self.ticket.save()
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/messages/', {'message': 'Still broken'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.ticket.refresh_from_db()
        self.assertEqual(self.ticket.status, SupportTicket.OPEN)

    def test_closed_ticket_rejects_messages(self):
        self.ticket.status = SupportTicket.CLOSED
        self.ticket.save()
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/messages/', {'message': 'Hello?'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_moderator_reads_but_cannot_reply(self):
        self.client.authenticate_user(TestDataFactory.create_moderator())
        self.assertEqual(self.client.get(f'/api/v1/tickets/{self.ticket.id}/').status_code, status.HTTP_200_OK)
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/messages/', {'message': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_blank_message_rejected(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/tickets/{self.ticket.id}/messages/', {'message': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_status_update(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/tickets/{self.ticket.id}/status/', {'status': 'RESOLVED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], SupportTicket.RESOLVED)
        self.assertIsNotNone(response.data['resolved_at'])
        self.assertTrue(Notification.objects.filter(user=self.trader.user,
                                                    title=f'Ticket #{self.ticket.id} updated').exists())

    def test_trader_cannot_update_status(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.put(f'/api/v1/tickets/{self.ticket.id}/status/', {'status': 'CLOSED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_status(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/v1/tickets/{self.ticket.id}/status/', {'status': 'DONE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_takes_unassigned_ticket(self):
        self.ticket.employee = None
        self.ticket.save()
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/tickets/{self.ticket.id}/assign/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['employee']['id'], self.employee.id)
        self.assertEqual(response.data['status'], SupportTicket.IN_PROGRESS)

    def test_employee_cannot_assign_others(self):
        other = TestDataFactory.create_employee()
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/tickets/{self.ticket.id}/assign/', {'employee_id': other.id},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_assigns(self):
        other = TestDataFactory.create_employee()
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/v1/tickets/{self.ticket.id}/assign/', {'employee_id': other.id},
                                   format='json')
        self.assertEqual(response.data['employee']['id'], other.id)
        self.assertEqual(self.client.put(f'/api/v1/tickets/{self.ticket.id}/assign/', {}, format='json').status_code,
                         status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.client.put(f'/api/v1/tickets/{self.ticket.id}/assign/', {'employee_id': 99999},
                                         format='json').status_code, status.HTTP_404_NOT_FOUND)
