from datetime import datetime, timedelta
from decimal import Decimal

from django.db.models import Sum, Count, DecimalField
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockship.core.models import User
from stockship.core.permissions import IsAdminRole, IsAdminOrModerator, IsClient, IsTrader
from stockship.deals.models import Deal
from stockship.deals.serializers import DealListSerializer
from stockship.finance.models import Payment, FinancialTransaction
from stockship.offers.models import Offer
from stockship.parties.access import trader_for
from stockship.parties.models import Trader
from stockship.parties.serializers import TraderSerializer

ZERO = Decimal('0.00')


def _counts_by(queryset, field, choices):
    counts = {key: 0 for key, _ in choices}
    for row in queryset.values(field).annotate(total=Count('id')):
        counts[row[field]] = row['total']
    return counts


def _sum(queryset, field):
    return queryset.aggregate(total=Sum(field, output_field=DecimalField()))['total'] or ZERO


def _date_range(request, default_days=30):
    """Parse ``date_from``/``date_to`` (YYYY-MM-DD). Raises ValueError on bad input."""
    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if not date_from:
        date_from = (timezone.now() - timedelta(days=default_days)).date()
    else:
        date_from = datetime.strptime(date_from, '%Y-%m-%d').date()
    if not date_to:
        date_to = timezone.now().date()
    else:
        date_to = datetime.strptime(date_to, '%Y-%m-%d').date()
    if date_from > date_to:
        raise ValueError('date_from must be before date_to')
    return date_from, date_to


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    """Platform wide counts and money totals"""
    completed_deposits = FinancialTransaction.objects.filter(
        type=FinancialTransaction.DEPOSIT, status=FinancialTransaction.COMPLETED
    )
    recent = Deal.objects.select_related('offer', 'trader__user', 'client', 'employee__user').order_by('-created_at')[:10]
    return Response({
        'users': _counts_by(User.objects.all(), 'role', User.ROLE_CHOICES),
        'traders': {
            'total': Trader.objects.count(),
            'verified': Trader.objects.filter(is_verified=True).count(),
            'unverified': Trader.objects.filter(is_verified=False).count(),
        },
        'offers': _counts_by(Offer.objects.all(), 'status', Offer.STATUS_CHOICES),
        'deals': _counts_by(Deal.objects.all(), 'status', Deal.STATUS_CHOICES),
        'finance': {
            'total_payments': _sum(Payment.objects.filter(status=Payment.COMPLETED), 'amount'),
            'platform_commission': _sum(completed_deposits, 'platform_commission'),
            'employee_commission': _sum(completed_deposits, 'employee_commission'),
            'trader_amount': _sum(completed_deposits, 'trader_amount'),
            'pending_payments': Payment.objects.filter(status=Payment.PENDING).count(),
        },
        'recent_deals': DealListSerializer(recent, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrModerator])
def moderator_dashboard(request):
    """Traders waiting for verification"""
    pending = Trader.objects.select_related('user', 'employee__user').filter(is_verified=False).order_by('created_at')
    return Response({
        'stats': {
            'unverified_traders': pending.count(),
            'verified_traders': Trader.objects.filter(is_verified=True).count(),
            'offers_pending_validation': Offer.objects.filter(status=Offer.PENDING_VALIDATION).count(),
        },
        'verification_queue': TraderSerializer(pending[:20], many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTrader])
def trader_dashboard(request):
    trader = trader_for(request.user)
    if trader is None:
        return Response({'error': 'Trader profile not found'}, status=status.HTTP_404_NOT_FOUND)
    deals = Deal.objects.filter(trader=trader)
    deposits = FinancialTransaction.objects.filter(
        trader=trader, type=FinancialTransaction.DEPOSIT, status=FinancialTransaction.COMPLETED
    )
    recent = deals.select_related('offer', 'trader__user', 'client', 'employee__user').order_by('-created_at')[:5]
    return Response({
        'offers': _counts_by(Offer.objects.filter(trader=trader), 'status', Offer.STATUS_CHOICES),
        'deals': _counts_by(deals, 'status', Deal.STATUS_CHOICES),
        'earnings': {
            'total': _sum(deposits, 'trader_amount'),
            'deal_count': deposits.values('deal').distinct().count(),
        },
        'recent_deals': DealListSerializer(recent, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClient])
def client_dashboard(request):
    deals = Deal.objects.filter(client=request.user)
    recent = deals.select_related('offer', 'trader__user', 'client', 'employee__user').order_by('-created_at')[:5]
    return Response({
        'deals': _counts_by(deals, 'status', Deal.STATUS_CHOICES),
        'payments': {
            'total_paid': _sum(Payment.objects.filter(client=request.user, status=Payment.COMPLETED), 'amount'),
            'pending': Payment.objects.filter(client=request.user, status=Payment.PENDING).count(),
        },
        'recent_deals': DealListSerializer(recent, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def deal_analytics(request):
    """Daily deal creation and verified payment volume over a date range"""
    try:
        date_from, date_to = _date_range(request)
    except ValueError as e:
        return Response({'error': f'Invalid date range: {str(e)}'}, status=status.HTTP_400_BAD_REQUEST)

    deals = Deal.objects.filter(created_at__date__gte=date_from, created_at__date__lte=date_to)
    payments = Payment.objects.filter(
        status=Payment.COMPLETED, verified_at__date__gte=date_from, verified_at__date__lte=date_to
    )

    daily_deals = {
        row['date']: row['count']
        for row in deals.annotate(date=TruncDate('created_at')).values('date').annotate(count=Count('id'))
    }
    daily_payments = {
        row['date']: row['total']
        for row in payments.annotate(date=TruncDate('verified_at')).values('date').annotate(
            total=Sum('amount', output_field=DecimalField())
        )
    }

    breakdown = []
    day = date_from
    while day <= date_to:
        breakdown.append({
            'date': day.isoformat(),
            'deals': daily_deals.get(day, 0),
            'payment_volume': daily_payments.get(day) or ZERO,
        })
        day += timedelta(days=1)

    return Response({
        'period': {
            'from': date_from.isoformat(),
            'to': date_to.isoformat()
        },
        'summary': {
            'total_deals': deals.count(),
            'deals_by_status': _counts_by(deals, 'status', Deal.STATUS_CHOICES),
            'payment_volume': _sum(payments, 'amount'),
            'payment_count': payments.count(),
        },
        'daily_breakdown': breakdown,
    })
