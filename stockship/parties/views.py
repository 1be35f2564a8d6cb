import logging
from decimal import Decimal

from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response

from stockship.core.filters import filter_queryset
from stockship.core.models import User
from stockship.core.permissions import (
    IsAdminRole, IsAdminOrModerator, IsClient, allow_roles, is_admin_user
)
from stockship.core.utils import create_activity_log, notify, paginated_response
from stockship.deals.models import Deal
from stockship.deals.serializers import DealListSerializer
from stockship.finance.models import FinancialTransaction
from stockship.offers.models import Offer
from stockship.offers.serializers import OfferListSerializer
from .access import can_view_employee, can_view_trader, is_employee_of_trader
from .filters import TraderFilter
from .models import Employee, Trader
from .serializers import (
    EmployeeSerializer, EmployeeCreateSerializer, EmployeeUpdateSerializer,
    TraderSerializer, TraderPublicSerializer, TraderCreateSerializer, TraderRegisterSerializer
)

logger = logging.getLogger(__name__)

ACTIVE_DEAL_STATUSES = [Deal.NEGOTIATION, Deal.APPROVED, Deal.PAID]


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes')


def _employees_with_counts():
    return Employee.objects.select_related('user').annotate(
        trader_count=Count('traders', distinct=True),
        deal_count=Count('deals', distinct=True),
    )


def _traders_with_counts():
    return Trader.objects.select_related('user', 'employee__user').annotate(
        offer_count=Count('offers', distinct=True),
        deal_count=Count('deals', distinct=True),
    )


# Employees
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def employee_list_create(request):
    """List employees or create one (admin)"""
    if request.method == 'GET':
        queryset = _employees_with_counts().order_by('-created_at')
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(employee_code__icontains=search) | Q(user__email__icontains=search) |
                Q(user__first_name__icontains=search) | Q(user__last_name__icontains=search)
            )
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(user__is_active=_parse_bool(is_active))
        return paginated_response(request, queryset, EmployeeSerializer)

    serializer = EmployeeCreateSerializer(data=request.data, context={'created_by': request.user})
    if serializer.is_valid():
        employee = serializer.save()
        create_activity_log(request=request, action='EMPLOYEE_CREATED', entity_type='EMPLOYEE', entity_id=employee.id,
                            description=f"Admin created employee: {employee.name} ({employee.employee_code})")
        return Response(EmployeeSerializer(employee).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated, allow_roles(User.ADMIN, User.EMPLOYEE)])
def employee_detail(request, pk):
    """Employee profile. Employees may only read their own, only admins may update."""
    employee = get_object_or_404(_employees_with_counts(), pk=pk)
    if not can_view_employee(request.user, employee):
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(EmployeeSerializer(employee).data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only admins can update employees'}, status=status.HTTP_403_FORBIDDEN)
    serializer = EmployeeUpdateSerializer(employee, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_activity_log(request=request, action='EMPLOYEE_UPDATED', entity_type='EMPLOYEE', entity_id=employee.id,
                            metadata={'fields': sorted(request.data.keys())})
        employee = _employees_with_counts().get(pk=employee.pk)
        return Response(EmployeeSerializer(employee).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, allow_roles(User.ADMIN, User.EMPLOYEE)])
def employee_traders(request, pk):
    """Traders of an employee. Employees create traders under themselves."""
    employee = get_object_or_404(Employee.objects.select_related('user'), pk=pk)

    if request.method == 'GET':
        if not can_view_employee(request.user, employee):
            return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
        queryset = _traders_with_counts().filter(employee=employee).order_by('-created_at')
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(company_name__icontains=search) | Q(trader_code__icontains=search) |
                                       Q(user__email__icontains=search))
        return paginated_response(request, queryset, TraderSerializer)

    if request.user.role != User.EMPLOYEE or employee.user_id != request.user.id:
        return Response({'error': 'Not authorized to create traders for this employee'},
                        status=status.HTTP_403_FORBIDDEN)
    serializer = TraderCreateSerializer(data=request.data, context={'employee': employee})
    if serializer.is_valid():
        trader = serializer.save()
        create_activity_log(request=request, action='TRADER_CREATED', entity_type='TRADER', entity_id=trader.id,
                            description=f"Employee created trader: {trader.name} ({trader.trader_code})")
        return Response(TraderSerializer(trader).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow_roles(User.ADMIN, User.EMPLOYEE)])
def employee_deals(request, pk):
    """Deals guaranteed by an employee"""
    employee = get_object_or_404(Employee, pk=pk)
    if not can_view_employee(request.user, employee):
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)

    queryset = Deal.objects.select_related('offer', 'trader__user', 'client', 'employee__user').filter(employee=employee)
    deal_status = request.query_params.get('status')
    if deal_status:
        deal_status = deal_status.upper()
        if deal_status not in dict(Deal.STATUS_CHOICES):
            return Response({'error': f"Invalid status. Valid values: {', '.join(dict(Deal.STATUS_CHOICES))}"},
                            status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(status=deal_status)
    return paginated_response(request, queryset.order_by('-created_at'), DealListSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, allow_roles(User.ADMIN, User.EMPLOYEE)])
def employee_dashboard(request, pk):
    employee = get_object_or_404(Employee.objects.select_related('user'), pk=pk)
    if not can_view_employee(request.user, employee):
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)

    deals = Deal.objects.filter(employee=employee)
    total_commission = FinancialTransaction.objects.filter(
        employee=employee,
        type=FinancialTransaction.DEPOSIT,
        status=FinancialTransaction.COMPLETED,
    ).aggregate(total=Sum('employee_commission'))['total'] or Decimal('0')
    recent = deals.select_related('offer', 'trader__user', 'client', 'employee__user').order_by('-created_at')[:5]

    return Response({
        'employee': {
            'id': employee.id,
            'name': employee.name,
            'employee_code': employee.employee_code,
            'commission_rate': str(employee.commission_rate),
        },
        'stats': {
            'trader_count': employee.traders.filter(user__is_active=True).count(),
            'active_deals_count': deals.filter(status__in=ACTIVE_DEAL_STATUSES).count(),
            'total_deals_count': deals.count(),
            'total_commission': str(total_commission),
        },
        'recent_deals': DealListSerializer(recent, many=True).data,
    })


# Traders
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClient])
def trader_register(request):
    """Client applies for a trader profile"""
    client = request.user
    if Trader.objects.filter(Q(linked_client=client) | Q(user__email__iexact=client.email)).exists():
        return Response({'error': 'You already have a trader profile linked to this account'},
                        status=status.HTTP_400_BAD_REQUEST)

    serializer = TraderRegisterSerializer(data=request.data, context={'client': client})
    if serializer.is_valid():
        trader = serializer.save()
        create_activity_log(request=request, action='TRADER_REGISTERED', entity_type='TRADER', entity_id=trader.id,
                            description=f"Client registered as trader: {trader.company_name}")
        staff = User.objects.filter(role__in=[User.ADMIN, User.MODERATOR], is_active=True)
        notify(staff, 'TRADER', 'New trader registration',
               f"{trader.company_name} registered as a trader and is waiting for verification.",
               related_entity_type='TRADER', related_entity_id=trader.id)
        return Response(TraderSerializer(trader).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClient])
def trader_check_linked(request):
    client = request.user
    trader = Trader.objects.select_related('user').filter(linked_client=client).first()
    if trader:
        return Response({
            'has_linked_trader': True,
            'trader': {
                'id': trader.id,
                'email': trader.user.email,
                'name': trader.name,
                'company_name': trader.company_name,
                'trader_code': trader.trader_code,
                'is_active': trader.is_active,
                'is_verified': trader.is_verified,
            },
        })
    if client.email and Trader.objects.filter(user__email__iexact=client.email).exists():
        return Response({
            'has_linked_trader': False,
            'can_link': True,
            'message': 'Trader profile exists with same email but not linked',
        })
    return Response({
        'has_linked_trader': False,
        'can_request': True,
        'message': 'No trader profile found. Register as a trader or contact an employee to create one.',
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrModerator])
def trader_list(request):
    """All traders (admin/moderator)"""
    queryset = _traders_with_counts().order_by('-created_at')
    queryset, errors = filter_queryset(TraderFilter, request, queryset)
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)
    return paginated_response(request, queryset, TraderSerializer)


def _apply_trader_changes(request, trader):
    """Collect the changes the caller's role may make. Returns (user_fields, trader_fields)."""
    data = request.data
    role = request.user.role
    user_fields = {}
    trader_fields = {}

    if 'is_verified' in data:
        verified = _parse_bool(data['is_verified'])
        trader_fields['is_verified'] = verified
        if verified and not trader.is_verified:
            trader_fields['verified_at'] = timezone.now()

    if role == User.MODERATOR:
        return user_fields, trader_fields

    if data.get('name'):
        user_fields['first_name'] = data['name']
        user_fields['last_name'] = ''
    for field in ('phone', 'country_code'):
        if field in data:
            user_fields[field] = data[field]
    if 'is_active' in data:
        user_fields['is_active'] = _parse_bool(data['is_active'])
    if data.get('company_name'):
        trader_fields['company_name'] = data['company_name']
    for field in ('company_address', 'country', 'city'):
        if field in data:
            trader_fields[field] = data[field] or ''
    if role == User.ADMIN:
        for field in ('bank_name', 'bank_account_name', 'bank_account_number', 'bank_address', 'bank_code', 'swift_code'):
            if field in data:
                trader_fields[field] = data[field] or ''
    return user_fields, trader_fields


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def trader_detail(request, pk):
    """Retrieve, update or delete a trader"""
    trader = get_object_or_404(_traders_with_counts(), pk=pk)
    user = request.user

    if request.method == 'GET':
        if not can_view_trader(user, trader):
            return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
        return Response(TraderSerializer(trader).data)

    if request.method == 'DELETE':
        if not is_admin_user(user):
            return Response({'error': 'Only admins can delete traders'}, status=status.HTTP_403_FORBIDDEN)
        if trader.offers.exists() or trader.deals.exists():
            return Response({'error': 'Cannot delete trader with existing offers or deals. Please deactivate instead.'},
                            status=status.HTTP_400_BAD_REQUEST)
        trader_id, company_name = trader.id, trader.company_name
        # The account goes with the profile
        trader.user.delete()
        create_activity_log(request=request, action='TRADER_DELETED', entity_type='TRADER', entity_id=trader_id,
                            description=f"Admin deleted trader: {company_name}",
                            metadata={'deleted_trader_id': trader_id})
        return Response({'message': 'Trader deleted successfully'})

    # PUT / PATCH
    allowed = user.role in (User.ADMIN, User.MODERATOR) or is_employee_of_trader(user, trader)
    if not allowed:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)

    user_fields, trader_fields = _apply_trader_changes(request, trader)
    if not user_fields and not trader_fields:
        return Response({'message': 'No changes made', 'trader': TraderSerializer(trader).data})

    if user_fields:
        for field, value in user_fields.items():
            setattr(trader.user, field, value)
        trader.user.save()
    if trader_fields:
        for field, value in trader_fields.items():
            setattr(trader, field, value)
        trader.save()

    changes = {**user_fields, **{k: v for k, v in trader_fields.items() if k != 'verified_at'}}
    create_activity_log(request=request, action='TRADER_UPDATED', entity_type='TRADER', entity_id=trader.id,
                        description=f"{user.role} updated trader: {trader.company_name}",
                        metadata={'changes': {k: str(v) for k, v in changes.items()}})
    if trader_fields.get('is_verified') and 'verified_at' in trader_fields:
        notify([trader.user], 'TRADER', 'Trader account verified',
               'Your trader account has been verified. You can now publish offers.',
               related_entity_type='TRADER', related_entity_id=trader.id)
    trader = _traders_with_counts().get(pk=trader.pk)
    return Response(TraderSerializer(trader).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsAdminOrModerator])
def trader_assign(request, pk):
    """Assign a trader to an employee"""
    trader = get_object_or_404(Trader.objects.select_related('user'), pk=pk)
    employee_id = request.data.get('employee_id')
    if not employee_id:
        return Response({'error': 'Employee ID is required'}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(employee_id, bool) or not str(employee_id).isdigit():
        return Response({'error': 'Employee ID must be a number'}, status=status.HTTP_400_BAD_REQUEST)
    employee = Employee.objects.select_related('user').filter(pk=employee_id).first()
    if employee is None:
        return Response({'error': 'Employee not found'}, status=status.HTTP_404_NOT_FOUND)

    trader.employee = employee
    trader.save(update_fields=['employee', 'updated_at'])
    create_activity_log(request=request, action='TRADER_ASSIGNED', entity_type='TRADER', entity_id=trader.id,
                        description=f"{request.user.role} assigned trader {trader.company_name} to employee {employee.name}",
                        metadata={'employee_id': employee.id})
    notify([employee.user], 'TRADER', 'New trader assigned',
           f"Trader {trader.company_name} ({trader.trader_code}) was assigned to you.",
           related_entity_type='TRADER', related_entity_id=trader.id)
    trader = _traders_with_counts().get(pk=trader.pk)
    return Response(TraderSerializer(trader).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def trader_offers(request, pk):
    """All offers of a trader, any status"""
    trader = get_object_or_404(Trader, pk=pk)
    if not can_view_trader(request.user, trader):
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    queryset = Offer.objects.with_counts().filter(trader=trader)
    offer_status = request.query_params.get('status', '').upper()
    if offer_status:
        if offer_status not in dict(Offer.STATUS_CHOICES):
            return Response({'error': f'Invalid status "{offer_status}"'}, status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(status=offer_status)
    return paginated_response(request, queryset.order_by('-created_at'), OfferListSerializer)


def _public_traders():
    return Trader.objects.select_related('user').filter(user__is_active=True).annotate(
        active_offer_count=Count('offers', filter=Q(offers__status=Offer.ACTIVE), distinct=True),
        completed_deal_count=Count('deals', filter=Q(deals__status__in=[Deal.APPROVED, Deal.PAID, Deal.SETTLED]), distinct=True),
    )


@api_view(['GET'])
@permission_classes([AllowAny])
def trader_public_detail(request, pk):
    trader = get_object_or_404(_public_traders(), pk=pk)
    return Response(TraderPublicSerializer(trader).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def trader_public_offers(request, pk):
    trader = get_object_or_404(Trader, pk=pk, user__is_active=True)
    queryset = Offer.objects.with_counts().filter(trader=trader, status=Offer.ACTIVE).order_by('-created_at')
    return paginated_response(request, queryset, OfferListSerializer)
