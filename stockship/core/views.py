import csv
import json
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.core.serializers.json import DjangoJSONEncoder
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .filters import ActivityLogFilter
from .models import ActivityLog, Notification, PlatformSettings
from .permissions import IsAdminRole
from .serializers import (
    UserSerializer, UserCreateSerializer, ClientRegisterSerializer,
    ActivityLogSerializer, NotificationSerializer, PlatformSettingsSerializer
)
from .utils import create_activity_log, paginated_response

User = get_user_model()
logger = logging.getLogger(__name__)


class StockshipTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Login with username or email. The token carries the user's role."""

    def validate(self, attrs):
        login = (attrs.get(self.username_field) or '').strip()
        if '@' in login and not User.objects.filter(username=login).exists():
            # A client and the trader account registered from it share one email
            matches = User.objects.filter(email__iexact=login).order_by('pk')
            role = (self.initial_data.get('role') or '').upper()
            if role:
                matches = matches.filter(role=role)
            for match in matches:
                if match.check_password(attrs.get('password', '')):
                    attrs[self.username_field] = match.username
                    login = match.username
                    break

        candidate = User.objects.filter(username=login).first()
        if candidate and not candidate.is_active and candidate.check_password(attrs.get('password', '')):
            raise AuthenticationFailed('User account is disabled.')

        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['email'] = user.email
        token['role'] = user.role
        return token


class StockshipTokenObtainPairView(TokenObtainPairView):
    serializer_class = StockshipTokenObtainPairSerializer


class StockshipTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class StockshipTokenRefreshView(TokenRefreshView):
    serializer_class = StockshipTokenRefreshSerializer


def _token_payload(user):
    token = StockshipTokenObtainPairSerializer.get_token(user)
    return {'access': str(token.access_token), 'refresh': str(token)}


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Client self-registration"""
    if not PlatformSettings.load().allow_client_registration:
        return Response({'error': 'Registration is currently disabled'}, status=status.HTTP_403_FORBIDDEN)

    serializer = ClientRegisterSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_activity_log(request=request, user=user, action='CLIENT_REGISTERED', entity_type='USER',
                            entity_id=user.id, description=f"Client {user.username} registered")
        return Response({
            'user': UserSerializer(user).data,
            **_token_payload(user),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role flags"""
    user = request.user
    user_data = UserSerializer(user).data

    user_data['is_admin'] = user.role == User.ADMIN or user.is_superuser
    user_data['is_moderator'] = user.role == User.MODERATOR
    user_data['is_employee'] = user.role == User.EMPLOYEE
    user_data['is_trader'] = user.role == User.TRADER
    user_data['is_client'] = user.role == User.CLIENT
    user_data['can_access_dashboard'] = user_data['is_admin'] or user.role in User.DASHBOARD_ROLES

    try:
        employee = user.employee_profile
        user_data['employee'] = {'id': employee.id, 'employee_code': employee.employee_code}
    except ObjectDoesNotExist:
        user_data['employee'] = None
    try:
        trader = user.trader_profile
        user_data['trader'] = {'id': trader.id, 'trader_code': trader.trader_code, 'is_verified': trader.is_verified}
    except ObjectDoesNotExist:
        user_data['trader'] = None

    return Response(user_data)


# User management (admin)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list_create(request):
    """List users or create a user with any role"""
    if request.method == 'GET':
        queryset = User.objects.all().order_by('-created_at')
        role = request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role.upper())
        is_active = request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(username__icontains=search) | Q(email__icontains=search) |
                Q(first_name__icontains=search) | Q(last_name__icontains=search) | Q(phone__icontains=search)
            )
        return paginated_response(request, queryset, UserSerializer)

    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_activity_log(request=request, action='USER_CREATED', entity_type='USER', entity_id=user.id,
                            description=f"User {user.username} created with role {user.role}")
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(request=request, action='USER_UPDATED', entity_type='USER', entity_id=user.id,
                                metadata={'fields': sorted(request.data.keys())})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        user_id = user.id
        user.delete()
        create_activity_log(request=request, action='USER_DELETED', entity_type='USER', entity_id=user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Activity logs (admin, read-only)
def _filtered_activity_logs(request):
    queryset = ActivityLog.objects.select_related('user').all()
    return ActivityLogFilter(request.query_params, queryset=queryset).qs.order_by('-created_at')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def activity_log_list(request):
    """List activity logs with filtering"""
    return paginated_response(request, _filtered_activity_logs(request), ActivityLogSerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def activity_log_detail(request, pk):
    log = get_object_or_404(ActivityLog.objects.select_related('user'), pk=pk)
    return Response(ActivityLogSerializer(log).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def activity_log_entity(request, entity_type, entity_id):
    """Full history of one entity"""
    queryset = ActivityLog.objects.select_related('user').filter(
        entity_type=entity_type.upper(), entity_id=str(entity_id)
    ).order_by('-created_at')
    return paginated_response(request, queryset, ActivityLogSerializer, default_limit=50)


EXPORT_COLUMNS = ['id', 'created_at', 'user', 'user_type', 'action', 'entity_type', 'entity_id',
                  'description', 'ip_address']


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def activity_log_export(request):
    """Export filtered activity logs as CSV or JSON"""
    export_format = request.query_params.get('format', 'csv').lower()
    if export_format not in ('csv', 'json'):
        return Response({'error': 'format must be csv or json'}, status=status.HTTP_400_BAD_REQUEST)

    logs = _filtered_activity_logs(request)[:10000]
    rows = [{
        'id': log.id,
        'created_at': log.created_at.isoformat(),
        'user': log.user.username if log.user else '',
        'user_type': log.user_type,
        'action': log.action,
        'entity_type': log.entity_type,
        'entity_id': log.entity_id,
        'description': log.description,
        'ip_address': log.ip_address or '',
    } for log in logs]
    stamp = timezone.now().strftime('%Y%m%d%H%M%S')

    if export_format == 'json':
        response = HttpResponse(json.dumps(rows, cls=DjangoJSONEncoder, indent=2), content_type='application/json')
        response['Content-Disposition'] = f'attachment; filename="activity-logs-{stamp}.json"'
        return response

    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="activity-logs-{stamp}.csv"'
    writer = csv.DictWriter(response, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    return response


# Notifications (own only)
@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    queryset = Notification.objects.filter(user=request.user)

    if request.method == 'DELETE':
        deleted, _ = queryset.delete()
        return Response({'message': 'All notifications deleted', 'deleted': deleted})

    is_read = request.query_params.get('is_read')
    if is_read is not None:
        queryset = queryset.filter(is_read=is_read.lower() == 'true')
    notification_type = request.query_params.get('type')
    if notification_type:
        queryset = queryset.filter(type=notification_type.upper())
    unread_count = Notification.objects.filter(user=request.user, is_read=False).count()
    return paginated_response(request, queryset.order_by('-created_at'), NotificationSerializer,
                              extra={'unread_count': unread_count})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_unread_count(request):
    count = Notification.objects.filter(user=request.user, is_read=False).count()
    return Response({'unread_count': count})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def notification_mark_read(request, pk):
    notification = get_object_or_404(Notification, pk=pk, user=request.user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['is_read', 'read_at'])
    return Response(NotificationSerializer(notification).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def notification_mark_all_read(request):
    updated = Notification.objects.filter(user=request.user, is_read=False).update(is_read=True, read_at=timezone.now())
    return Response({'message': 'All notifications marked as read', 'updated': updated})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def notification_delete(request, pk):
    notification = get_object_or_404(Notification, pk=pk, user=request.user)
    notification.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# Platform settings (admin)
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def platform_settings(request):
    instance = PlatformSettings.load()

    if request.method == 'GET':
        return Response(PlatformSettingsSerializer(instance).data)

    serializer = PlatformSettingsSerializer(instance, data=request.data, partial=True)
    if serializer.is_valid():
        saved = serializer.save(updated_by=request.user)
        create_activity_log(request=request, action='PLATFORM_SETTINGS_UPDATED', entity_type='PLATFORM_SETTINGS',
                            entity_id=saved.pk, metadata={'fields': sorted(request.data.keys())})
        logger.info(f"Platform settings updated by {request.user.username}")
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
