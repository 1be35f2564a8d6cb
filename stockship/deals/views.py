from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockship.core.models import User, PlatformSettings
from stockship.core.permissions import IsClient, IsTrader
from stockship.core.serializers import PlatformSettingsSerializer
from stockship.core.utils import create_activity_log, notify, paginated_response
from stockship.offers.models import Offer
from .access import deal_role, deals_visible_to
from .models import Deal, DealNegotiation
from .serializers import (
    DealListSerializer, DealDetailSerializer, DealNegotiationSerializer, RequestNegotiationSerializer,
    DealItemsSerializer, DealApproveSerializer, DealCancelSerializer, NegotiationMessageSerializer
)
from .services import (
    DealError, open_negotiation, replace_deal_items, approve_deal, cancel_deal, settle_deal
)

NEGOTIATING_STATUSES = (Deal.NEGOTIATION, Deal.APPROVED)


def _get_deal(pk):
    return get_object_or_404(Deal.objects.select_related('offer', 'trader__user', 'client', 'employee__user'), pk=pk)


def _detail_data(deal):
    deal = Deal.objects.select_related('offer', 'trader__user', 'client', 'employee__user').prefetch_related(
        'items__offer_item', 'status_history__changed_by', 'payments__client', 'payments__verified_by', 'invoices'
    ).get(pk=deal.pk)
    data = dict(DealDetailSerializer(deal).data)
    data['platform_settings'] = PlatformSettingsSerializer(PlatformSettings.load()).data
    return data


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClient])
def request_negotiation(request, offer_id):
    """Client opens a negotiation on an active offer"""
    offer = get_object_or_404(Offer.objects.select_related('trader__user', 'trader__employee__user'), pk=offer_id)
    serializer = RequestNegotiationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        deal = open_negotiation(offer, request.user, notes=serializer.validated_data.get('notes'), request=request)
    except DealError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(_detail_data(deal), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def deal_list(request):
    """Deals of the signed-in user. Admins see every deal."""
    queryset = deals_visible_to(request.user)
    deal_status = request.query_params.get('status')
    if deal_status:
        deal_status = deal_status.upper()
        if deal_status not in dict(Deal.STATUS_CHOICES):
            return Response({'error': f"Invalid status. Valid values: {', '.join(dict(Deal.STATUS_CHOICES))}"},
                            status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(status=deal_status)
    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(deal_number__icontains=search)
    return paginated_response(request, queryset.order_by('-created_at'), DealListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def deal_detail(request, pk):
    deal = _get_deal(pk)
    if deal_role(request.user, deal) is None:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    return Response(_detail_data(deal))


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def deal_items(request, pk):
    """Client or trader replaces the items of a deal under negotiation"""
    deal = _get_deal(pk)
    if deal_role(request.user, deal) not in (User.CLIENT, User.TRADER):
        return Response({'error': 'Deal not found'}, status=status.HTTP_404_NOT_FOUND)
    serializer = DealItemsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        deal = replace_deal_items(deal, serializer.validated_data['items'])
    except DealError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_activity_log(request=request, action='DEAL_ITEMS_UPDATED', entity_type='DEAL', entity_id=deal.id,
                        description=f"{request.user.role} updated deal items",
                        metadata={'item_count': len(serializer.validated_data['items']),
                                  'total_cartons': deal.total_cartons, 'total_cbm': str(deal.total_cbm)})
    return Response(_detail_data(deal))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsTrader])
def deal_approve(request, pk):
    deal = _get_deal(pk)
    if deal_role(request.user, deal) != User.TRADER:
        return Response({'error': 'Deal not found'}, status=status.HTTP_404_NOT_FOUND)
    serializer = DealApproveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        deal = approve_deal(deal, request.user, serializer.validated_data['negotiated_amount'],
                            notes=serializer.validated_data.get('notes'), request=request)
    except DealError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(_detail_data(deal))


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def deal_cancel(request, pk):
    """Any party of the deal, or an admin, cancels it before payment"""
    deal = _get_deal(pk)
    if deal_role(request.user, deal) is None:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    serializer = DealCancelSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        deal = cancel_deal(deal, request.user, serializer.validated_data['reason'], request=request)
    except DealError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(_detail_data(deal))


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def deal_settle(request, pk):
    deal = _get_deal(pk)
    if deal_role(request.user, deal) not in (User.EMPLOYEE, User.ADMIN):
        return Response({'error': 'Only the guarantor employee or an admin can settle a deal'},
                        status=status.HTTP_403_FORBIDDEN)
    try:
        deal = settle_deal(deal, request.user, request=request)
    except DealError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(_detail_data(deal))


def _mark_counterpart_read(deal, user):
    return deal.negotiations.filter(is_read=False).exclude(sender=user).update(is_read=True, read_at=timezone.now())


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def deal_negotiations(request, pk):
    """
    GET: negotiation messages, oldest first. Reading as client or trader marks the
    other party's messages as read.
    POST: client or trader sends a message or a price/quantity proposal.
    """
    deal = _get_deal(pk)
    role = deal_role(request.user, deal)
    if role is None:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        if role in (User.CLIENT, User.TRADER):
            _mark_counterpart_read(deal, request.user)
        queryset = deal.negotiations.select_related('sender').order_by('created_at', 'id')
        return paginated_response(request, queryset, DealNegotiationSerializer, default_limit=50)

    if role not in (User.CLIENT, User.TRADER):
        return Response({'error': 'Only the client or the trader can negotiate'}, status=status.HTTP_403_FORBIDDEN)
    if deal.status not in NEGOTIATING_STATUSES:
        return Response({'error': f'Cannot negotiate on a {deal.status.lower()} deal'},
                        status=status.HTTP_400_BAD_REQUEST)

    serializer = NegotiationMessageSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    message = DealNegotiation.objects.create(deal=deal, sender=request.user, sender_type=role,
                                             **serializer.validated_data)

    recipient = deal.trader.user if role == User.CLIENT else deal.client
    notify([recipient], 'NEGOTIATION', f'New message on {deal.deal_number}',
           message.message or f'New {message.message_type.lower()} proposal',
           related_entity_type='DEAL', related_entity_id=deal.id)
    create_activity_log(request=request, action='NEGOTIATION_MESSAGE_SENT', entity_type='DEAL', entity_id=deal.id,
                        description=f"{role} sent a {message.message_type.lower()} message",
                        metadata={'message_id': message.id})
    return Response(DealNegotiationSerializer(message).data, status=status.HTTP_201_CREATED)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def deal_negotiations_mark_read(request, pk):
    deal = _get_deal(pk)
    if deal_role(request.user, deal) not in (User.CLIENT, User.TRADER):
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    updated = _mark_counterpart_read(deal, request.user)
    return Response({'message': 'Messages marked as read', 'updated': updated})
