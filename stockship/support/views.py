from django.db import transaction
from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockship.core.filters import filter_queryset
from stockship.core.models import User
from stockship.core.permissions import IsEmployeeOrAdmin, is_admin_user
from stockship.core.utils import create_activity_log, notify, paginated_response
from stockship.offers.models import Offer
from stockship.parties.access import employee_for, is_employee_of_trader
from stockship.parties.models import Employee
from .filters import SupportTicketFilter
from .models import SupportTicket, TicketMessage
from .serializers import (
    SupportTicketSerializer, SupportTicketDetailSerializer, TicketMessageSerializer, TicketCreateSerializer,
    TicketMessageCreateSerializer, TicketStatusSerializer, TicketAssignSerializer
)


def _ticket_queryset():
    return SupportTicket.objects.select_related('offer', 'trader__user', 'trader__employee__user', 'employee__user')


def _ticket_role(user, ticket):
    if ticket.trader.user_id == user.id:
        return User.TRADER
    if is_employee_of_trader(user, ticket.trader):
        return User.EMPLOYEE
    if is_admin_user(user):
        return User.ADMIN
    if user.role == User.MODERATOR:
        return User.MODERATOR
    return None


def _notify_other_side(ticket, sender, title, message):
    """Trader messages go to the assigned employee, staff messages go to the trader"""
    if ticket.trader.user_id == sender.id:
        recipients = [ticket.employee.user] if ticket.employee_id else []
    else:
        recipients = [ticket.trader.user]
    notify(recipients, 'TICKET', title, message, related_entity_type='SUPPORT_TICKET', related_entity_id=ticket.id)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ticket_create(request, offer_id):
    """Trader (own offer) or the trader's employee opens a ticket about an offer"""
    offer = get_object_or_404(Offer.objects.select_related('trader__user', 'trader__employee__user'), pk=offer_id)
    trader = offer.trader
    if trader.user_id == request.user.id:
        sender_type = User.TRADER
        employee = trader.employee
    elif is_employee_of_trader(request.user, trader):
        sender_type = User.EMPLOYEE
        employee = employee_for(request.user)
    else:
        return Response({'error': 'Not authorized to create ticket for this offer'}, status=status.HTTP_403_FORBIDDEN)

    serializer = TicketCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    with transaction.atomic():
        ticket = SupportTicket.objects.create(
            offer=offer,
            trader=trader,
            employee=employee,
            subject=data['subject'],
            priority=data['priority'],
        )
        TicketMessage.objects.create(ticket=ticket, sender=request.user, sender_type=sender_type,
                                     message=data['message'].strip())

    create_activity_log(request=request, action='TICKET_CREATED', entity_type='SUPPORT_TICKET', entity_id=ticket.id,
                        description=f"{sender_type} opened ticket on offer {offer.title}: {ticket.subject}",
                        metadata={'offer_id': offer.id, 'priority': ticket.priority})
    _notify_other_side(ticket, request.user, 'New support ticket', ticket.subject)
    return Response(SupportTicketDetailSerializer(_ticket_queryset().get(pk=ticket.pk)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ticket_list(request):
    """Tickets scoped by role: traders see their own, employees those of their traders"""
    user = request.user
    queryset = _ticket_queryset().annotate(message_count=Count('messages'))
    if user.role == User.TRADER:
        queryset = queryset.filter(trader__user=user)
    elif user.role == User.EMPLOYEE:
        queryset = queryset.filter(trader__employee__user=user)
    elif not (is_admin_user(user) or user.role == User.MODERATOR):
        queryset = queryset.none()

    queryset, errors = filter_queryset(SupportTicketFilter, request, queryset)
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)
    return paginated_response(request, queryset.order_by('-updated_at'), SupportTicketSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ticket_detail(request, pk):
    ticket = get_object_or_404(_ticket_queryset().prefetch_related('messages__sender'), pk=pk)
    if _ticket_role(request.user, ticket) is None:
        return Response({'error': 'Ticket not found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(SupportTicketDetailSerializer(ticket).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ticket_add_message(request, pk):
    ticket = get_object_or_404(_ticket_queryset(), pk=pk)
    role = _ticket_role(request.user, ticket)
    if role not in (User.TRADER, User.EMPLOYEE, User.ADMIN):
        return Response({'error': 'Not authorized to add message to this ticket'}, status=status.HTTP_403_FORBIDDEN)
    if ticket.status == SupportTicket.CLOSED:
        return Response({'error': 'Cannot add message to closed ticket'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = TicketMessageCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    text = serializer.validated_data['message'].strip()
    if not text:
        return Response({'error': 'Message is required'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        message = TicketMessage.objects.create(
            ticket=ticket,
            sender=request.user,
            sender_type=role,
            message=text,
            attachments=serializer.validated_data.get('attachments', []),
        )
        if role == User.EMPLOYEE and not ticket.employee_id:
            ticket.employee = employee_for(request.user)
        # A new message reopens a resolved ticket
        if ticket.status == SupportTicket.RESOLVED:
            ticket.status = SupportTicket.OPEN
        ticket.save()

    _notify_other_side(ticket, request.user, f'New reply on ticket #{ticket.id}', text[:200])
    return Response(TicketMessageSerializer(message).data, status=status.HTTP_201_CREATED)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsEmployeeOrAdmin])
def ticket_update_status(request, pk):
    ticket = get_object_or_404(_ticket_queryset(), pk=pk)
    role = _ticket_role(request.user, ticket)
    if role not in (User.EMPLOYEE, User.ADMIN):
        return Response({'error': 'Not authorized to update this ticket'}, status=status.HTTP_403_FORBIDDEN)
    serializer = TicketStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = ticket.status
    ticket.status = serializer.validated_data['status']
    now = timezone.now()
    if ticket.status == SupportTicket.RESOLVED and not ticket.resolved_at:
        ticket.resolved_at = now
    if ticket.status == SupportTicket.CLOSED and not ticket.closed_at:
        ticket.closed_at = now
    if role == User.EMPLOYEE and not ticket.employee_id:
        ticket.employee = employee_for(request.user)
    ticket.save()

    create_activity_log(request=request, action='TICKET_STATUS_UPDATED', entity_type='SUPPORT_TICKET',
                        entity_id=ticket.id, description=f"Ticket #{ticket.id} {old_status} -> {ticket.status}",
                        metadata={'old_status': old_status, 'new_status': ticket.status})
    _notify_other_side(ticket, request.user, f'Ticket #{ticket.id} updated',
                       f'Status changed to {ticket.get_status_display()}')
    return Response(SupportTicketSerializer(ticket).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsEmployeeOrAdmin])
def ticket_assign(request, pk):
    """Employees may only take tickets themselves, admins may assign any employee"""
    ticket = get_object_or_404(_ticket_queryset(), pk=pk)
    role = _ticket_role(request.user, ticket)
    if role not in (User.EMPLOYEE, User.ADMIN):
        return Response({'error': 'Not authorized to assign this ticket'}, status=status.HTTP_403_FORBIDDEN)
    serializer = TicketAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    employee_id = serializer.validated_data.get('employee_id')

    if role == User.EMPLOYEE:
        own = employee_for(request.user)
        if employee_id and employee_id != own.id:
            return Response({'error': 'You can only assign tickets to yourself'}, status=status.HTTP_403_FORBIDDEN)
        employee = own
    elif employee_id:
        employee = Employee.objects.filter(pk=employee_id).select_related('user').first()
        if employee is None:
            return Response({'error': 'Employee not found'}, status=status.HTTP_404_NOT_FOUND)
    else:
        return Response({'error': 'employee_id is required'}, status=status.HTTP_400_BAD_REQUEST)

    ticket.employee = employee
    if ticket.status == SupportTicket.OPEN:
        ticket.status = SupportTicket.IN_PROGRESS
    ticket.save()
    create_activity_log(request=request, action='TICKET_ASSIGNED', entity_type='SUPPORT_TICKET', entity_id=ticket.id,
                        description=f"Ticket #{ticket.id} assigned to {employee.employee_code}")
    return Response(SupportTicketSerializer(ticket).data)
