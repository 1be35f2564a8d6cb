from django.db.models import Max, Sum, Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from stockship.core.filters import filter_queryset
from stockship.core.models import User
from stockship.core.permissions import IsAdminRole, IsClient, IsEmployee, IsEmployeeOrAdmin, is_admin_user
from stockship.core.utils import paginated_response
from stockship.deals.access import deal_role
from stockship.deals.models import Deal
from stockship.deals.services import DealError
from .filters import PaymentFilter, FinancialTransactionFilter, LedgerEntryFilter
from .models import Payment, FinancialTransaction, LedgerEntry, Invoice
from .serializers import (
    PaymentSerializer, PaymentCreateSerializer, PaymentVerifySerializer, FinancialTransactionSerializer,
    LedgerEntrySerializer, InvoiceSerializer
)
from .services import PaymentError, create_payment, verify_payment


def _payment_queryset():
    return Payment.objects.select_related('deal__trader__user', 'deal__employee__user', 'client', 'verified_by')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClient])
def deal_pay(request, pk):
    """Client submits payment for an approved deal"""
    deal = get_object_or_404(Deal.objects.select_related('employee__user'), pk=pk, client=request.user)
    serializer = PaymentCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        payment = create_payment(deal, request.user, request=request, **serializer.validated_data)
    except PaymentError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsEmployee])
def payment_verify(request, pk):
    """Guarantor employee verifies or rejects a pending payment"""
    payment = get_object_or_404(_payment_queryset(), pk=pk)
    if payment.deal.employee is None or payment.deal.employee.user_id != request.user.id:
        return Response({'error': 'Payment not found'}, status=status.HTTP_404_NOT_FOUND)
    serializer = PaymentVerifySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        payment, invoice = verify_payment(payment, request.user, serializer.validated_data['verified'],
                                          notes=serializer.validated_data.get('notes'), request=request)
    except (PaymentError, DealError) as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response({
        'payment': PaymentSerializer(payment).data,
        'invoice': InvoiceSerializer(invoice).data if invoice else None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_list(request):
    """Payments visible to the signed-in user"""
    user = request.user
    queryset = _payment_queryset()
    if not is_admin_user(user):
        scopes = {
            User.CLIENT: Q(client=user),
            User.EMPLOYEE: Q(deal__employee__user=user),
            User.TRADER: Q(deal__trader__user=user),
        }
        scope = scopes.get(user.role)
        queryset = queryset.filter(scope) if scope is not None else queryset.none()

    queryset, errors = filter_queryset(PaymentFilter, request, queryset)
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)
    return paginated_response(request, queryset.order_by('-created_at'), PaymentSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_detail(request, pk):
    payment = get_object_or_404(_payment_queryset(), pk=pk)
    if deal_role(request.user, payment.deal) is None:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    return Response(PaymentSerializer(payment).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsEmployeeOrAdmin])
def transaction_list(request):
    """Financial transactions. Employees only see transactions of deals they guarantee."""
    queryset = FinancialTransaction.objects.select_related('deal', 'employee__user', 'trader__user')
    if not is_admin_user(request.user):
        queryset = queryset.filter(deal__employee__user=request.user)

    queryset, errors = filter_queryset(FinancialTransactionFilter, request, queryset)
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)
    return paginated_response(request, queryset.order_by('-created_at'), FinancialTransactionSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def ledger_list(request):
    queryset = LedgerEntry.objects.select_related('transaction__deal')
    queryset, errors = filter_queryset(LedgerEntryFilter, request, queryset)
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)
    return paginated_response(request, queryset.order_by('-created_at', '-id'), LedgerEntrySerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def balance_list(request):
    """Current balance of every account that has ledger entries"""
    account_type = (request.query_params.get('account_type') or '').upper()
    if account_type and account_type not in dict(LedgerEntry.ACCOUNT_TYPE_CHOICES):
        return Response({'error': f'Invalid account_type "{account_type}"'}, status=status.HTTP_400_BAD_REQUEST)
    accounts = (
        LedgerEntry.objects.values('account_type', 'account_id')
        .annotate(
            last_entry_id=Max('id'),
            total_credit=Sum('amount', filter=Q(entry_type=LedgerEntry.CREDIT)),
            total_debit=Sum('amount', filter=Q(entry_type=LedgerEntry.DEBIT)),
        )
        .order_by('account_type', 'account_id')
    )
    accounts = list(accounts)
    balances = dict(
        LedgerEntry.objects.filter(id__in=[a['last_entry_id'] for a in accounts]).values_list('id', 'balance_after')
    )
    results = [
        {
            'account_type': a['account_type'],
            'account_id': a['account_id'],
            'balance': balances.get(a['last_entry_id']),
            'total_credit': a['total_credit'] or 0,
            'total_debit': a['total_debit'] or 0,
        }
        for a in accounts
        if not account_type or a['account_type'] == account_type
    ]
    return Response({'results': results, 'count': len(results)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def deal_invoice_list(request, pk):
    deal = get_object_or_404(Deal.objects.select_related('trader__user', 'employee__user'), pk=pk)
    if deal_role(request.user, deal) is None:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    return Response(InvoiceSerializer(deal.invoices.order_by('-issued_at'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    invoice = get_object_or_404(Invoice.objects.select_related('deal__trader__user', 'deal__employee__user'), pk=pk)
    if deal_role(request.user, invoice.deal) is None:
        return Response({'error': 'Not authorized'}, status=status.HTTP_403_FORBIDDEN)
    return Response(InvoiceSerializer(invoice).data)
