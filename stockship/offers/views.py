from django.conf import settings
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response

from stockship.catalog.models import Category
from stockship.core.cache import (
    make_cache_key, get_or_set, PUBLIC_OFFERS_CACHE_TTL, RECOMMENDED_OFFERS_CACHE_TTL
)
from stockship.core.models import User
from stockship.core.permissions import IsAdminOrModerator, IsEmployee, IsTrader, is_admin_user
from stockship.core.utils import create_activity_log, paginated_response
from stockship.parties.access import employee_for, trader_for, is_employee_of_trader
from .filters import OfferFilter
from .importers import OfferUploadError, read_item_sheet
from .models import Offer
from .serializers import (
    OfferListSerializer, OfferDetailSerializer, OfferCreateSerializer, OfferUpdateSerializer,
    OfferValidationSerializer
)
from .services import replace_offer_items, notify_offer_action


def _detail(offer_id):
    return Offer.objects.with_counts().select_related('validated_by').prefetch_related('items').get(pk=offer_id)


def _can_manage(user, offer):
    """Owner trader, the trader's employee, or an admin"""
    if is_admin_user(user):
        return True
    if offer.trader.user_id == user.id:
        return True
    return is_employee_of_trader(user, offer.trader)


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def offer_list_create(request):
    """Public list of active offers, or a trader creating an offer"""
    if request.method == 'POST':
        trader = trader_for(request.user)
        if trader is None:
            if not request.user.is_authenticated:
                return Response({'error': 'Authentication credentials were not provided.'},
                                status=status.HTTP_401_UNAUTHORIZED)
            return Response({'error': 'Only traders can create offers'}, status=status.HTTP_403_FORBIDDEN)
        serializer = OfferCreateSerializer(data=request.data, context={'trader': trader})
        if serializer.is_valid():
            offer = serializer.save()
            create_activity_log(request=request, action='OFFER_CREATED', entity_type='OFFER', entity_id=offer.id,
                                description=f"Trader created offer: {offer.title}",
                                metadata={'item_count': offer.items.count()})
            notify_offer_action(offer, 'CREATED')
            return Response(OfferDetailSerializer(_detail(offer.id)).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    params = request.query_params.dict()

    def produce():
        queryset = Offer.objects.with_counts().filter(status=Offer.ACTIVE, trader__user__is_active=True)
        queryset = OfferFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')
        return paginated_response(request, queryset, OfferListSerializer).data

    data = get_or_set(make_cache_key('offers_public', **params), produce, PUBLIC_OFFERS_CACHE_TTL)
    return Response(data)


@api_view(['GET'])
@permission_classes([AllowAny])
def offer_recommended(request):
    """Active offers ranked by deal count, then item count, then recency"""
    try:
        limit = max(1, min(int(request.query_params.get('limit', 10)), 50))
    except ValueError:
        limit = 10

    def produce():
        queryset = Offer.objects.with_counts().filter(status=Offer.ACTIVE, trader__user__is_active=True)
        queryset = queryset.order_by('-deal_count', '-item_count', '-created_at')[:limit]
        return OfferListSerializer(queryset, many=True).data

    data = get_or_set(make_cache_key('offers_recommended', limit=limit), produce, RECOMMENDED_OFFERS_CACHE_TTL)
    return Response(data)


@api_view(['GET'])
@permission_classes([AllowAny])
def offer_by_category(request, category_id):
    """Active offers of a category and its direct subcategories"""
    category = get_object_or_404(Category, pk=category_id, is_active=True)
    category_ids = [category.id] + list(category.children.filter(is_active=True).values_list('id', flat=True))
    queryset = Offer.objects.with_counts().filter(
        status=Offer.ACTIVE, category_id__in=category_ids, trader__user__is_active=True
    )
    queryset = OfferFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')
    return paginated_response(request, queryset, OfferListSerializer,
                              extra={'category': {'id': category.id, 'name': category.name, 'slug': category.slug}})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AllowAny])
def offer_detail(request, pk):
    """Offer with items. Non-active offers are only visible to the people managing them."""
    offer = get_object_or_404(Offer.objects.select_related('trader__user', 'trader__employee__user'), pk=pk)
    user = request.user

    if request.method == 'GET':
        if offer.status != Offer.ACTIVE:
            if not user.is_authenticated or not (_can_manage(user, offer) or user.role == User.MODERATOR):
                return Response({'error': 'Offer not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(OfferDetailSerializer(_detail(offer.id)).data)

    if not user.is_authenticated:
        return Response({'error': 'Authentication credentials were not provided.'}, status=status.HTTP_401_UNAUTHORIZED)

    if request.method == 'DELETE':
        if not (is_admin_user(user) or is_employee_of_trader(user, offer.trader)):
            return Response({'error': 'Not authorized to delete this offer'}, status=status.HTTP_403_FORBIDDEN)
        if offer.deals.exists():
            return Response({'error': 'Cannot delete offer with existing deals'}, status=status.HTTP_400_BAD_REQUEST)
        offer_id, title = offer.id, offer.title
        offer.delete()
        create_activity_log(request=request, action='OFFER_DELETED', entity_type='OFFER', entity_id=offer_id,
                            description=f"{user.role} deleted offer: {title}")
        return Response({'message': 'Offer deleted successfully'})

    # PUT / PATCH: employee of the trader
    if not is_employee_of_trader(user, offer.trader):
        return Response({'error': 'Not authorized to update this offer'}, status=status.HTTP_403_FORBIDDEN)
    serializer = OfferUpdateSerializer(offer, data=request.data, partial=True)
    if serializer.is_valid():
        offer = serializer.save()
        create_activity_log(request=request, action='OFFER_UPDATED', entity_type='OFFER', entity_id=offer.id,
                            description=f"Employee updated offer: {offer.title}",
                            metadata={'fields': sorted(request.data.keys()), 'status': offer.status})
        notify_offer_action(offer, 'UPDATED')
        return Response(OfferDetailSerializer(_detail(offer.id)).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def offer_upload_items(request, pk):
    """Replace an offer's items from an uploaded CSV or Excel sheet"""
    offer = get_object_or_404(Offer.objects.select_related('trader__user', 'trader__employee__user'), pk=pk)
    user = request.user
    if offer.trader.user_id != user.id and not is_employee_of_trader(user, offer.trader):
        return Response({'error': 'Offer not found'}, status=status.HTTP_404_NOT_FOUND)

    uploaded = request.FILES.get('file')
    try:
        items = read_item_sheet(uploaded, settings.OFFER_UPLOAD_MAX_BYTES)
    except OfferUploadError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    offer = replace_offer_items(offer, items, file_name=uploaded.name, file_size=uploaded.size)
    create_activity_log(request=request, action='OFFER_ITEMS_UPLOADED', entity_type='OFFER', entity_id=offer.id,
                        description=f"{user.role} uploaded item sheet with {len(items)} items",
                        metadata={'item_count': len(items), 'total_cartons': offer.total_cartons,
                                  'total_cbm': str(offer.total_cbm)})
    notify_offer_action(offer, 'ITEMS_UPLOADED')
    return Response(OfferDetailSerializer(_detail(offer.id)).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsEmployee])
def offer_validate(request, pk):
    """Employee approves or rejects an offer of one of their traders"""
    offer = get_object_or_404(Offer.objects.select_related('trader__user', 'trader__employee__user'), pk=pk)
    if not is_employee_of_trader(request.user, offer.trader):
        return Response({'error': 'Not authorized to validate this offer'}, status=status.HTTP_403_FORBIDDEN)
    if offer.status not in (Offer.PENDING_VALIDATION, Offer.DRAFT):
        return Response({'error': 'Offer is not pending validation'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = OfferValidationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    approved = serializer.validated_data['approved']
    notes = serializer.validated_data.get('validation_notes') or None

    offer.status = Offer.ACTIVE if approved else Offer.REJECTED
    offer.validated_by = request.user
    offer.validated_at = timezone.now()
    offer.validation_notes = notes
    offer.save()

    create_activity_log(request=request, action='OFFER_APPROVED' if approved else 'OFFER_REJECTED',
                        entity_type='OFFER', entity_id=offer.id,
                        description=f"Employee {'approved' if approved else 'rejected'} offer: {offer.title}",
                        metadata={'validation_notes': notes})
    notify_offer_action(offer, 'APPROVED' if approved else 'REJECTED', notes=notes)
    return Response(OfferDetailSerializer(_detail(offer.id)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrModerator])
def admin_offer_list(request):
    queryset = Offer.objects.with_counts().all()
    queryset = OfferFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')
    return paginated_response(request, queryset, OfferListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsEmployee])
def employee_offer_list(request):
    """Offers of the signed-in employee's traders"""
    employee = employee_for(request.user)
    if employee is None:
        return Response({'error': 'Employee profile not found'}, status=status.HTTP_404_NOT_FOUND)
    queryset = Offer.objects.with_counts().filter(trader__employee=employee)
    queryset = OfferFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')
    return paginated_response(request, queryset, OfferListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTrader])
def trader_own_offer_list(request):
    trader = trader_for(request.user)
    if trader is None:
        return Response({'error': 'Trader profile not found'}, status=status.HTTP_404_NOT_FOUND)
    queryset = Offer.objects.with_counts().filter(trader=trader)
    queryset = OfferFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')
    return paginated_response(request, queryset, OfferListSerializer)
