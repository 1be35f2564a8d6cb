"""Utility functions for activity logging, notifications, pagination and numbering"""
import logging

from django.core.paginator import Paginator
from django.utils import timezone
from rest_framework.response import Response

from .models import ActivityLog, Notification, User

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_activity_log(request=None, action=None, entity_type=None, entity_id=None,
                        description='', metadata=None, user=None):
    """
    Record an activity log entry.

    Args:
        request: Django/DRF request (for user, IP and user agent) - optional if user is provided
        action: Action name, e.g. DEAL_APPROVED, OFFER_UPLOADED
        entity_type: Kind of entity acted upon (DEAL, OFFER, TRADER, ...)
        entity_id: Primary key of the entity
        description: Human readable summary
        metadata: Extra JSON-serialisable details
        user: Optional user override (defaults to request.user)

    Failures are logged and never propagate to the caller.
    """
    try:
        log_user = user
        if log_user is None and request is not None and hasattr(request, 'user'):
            log_user = request.user
        if log_user is not None and not log_user.is_authenticated:
            log_user = None

        if not action:
            logger.warning(f"Activity log skipped: missing action (entity_type={entity_type}, entity_id={entity_id})")
            return None

        user_agent = ''
        if request is not None and hasattr(request, 'META'):
            user_agent = request.META.get('HTTP_USER_AGENT', '')[:500]

        return ActivityLog.objects.create(
            user=log_user,
            user_type=log_user.role if log_user else 'SYSTEM',
            action=action,
            entity_type=entity_type or '',
            entity_id=str(entity_id) if entity_id is not None else '',
            description=description or '',
            metadata=metadata or {},
            ip_address=get_client_ip(request) if request is not None else None,
            user_agent=user_agent,
        )
    except Exception as e:
        logger.error(f"Failed to create activity log for {action}: {str(e)}")
        return None


def notify(users, notification_type, title, message='', related_entity_type=None, related_entity_id=None):
    """
    Create one notification per recipient. ``users`` may hold ``None`` entries,
    which are skipped. Returns the number of notifications created.
    """
    recipients = {u.pk: u for u in users if u is not None}
    if not recipients:
        return 0
    try:
        Notification.objects.bulk_create([
            Notification(
                user=recipient,
                type=notification_type,
                title=title,
                message=message,
                related_entity_type=related_entity_type,
                related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
            )
            for recipient in recipients.values()
        ])
        return len(recipients)
    except Exception as e:
        logger.error(f"Failed to send {notification_type} notification '{title}': {str(e)}")
        return 0


def _positive_int(value, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def paginated_response(request, queryset, serializer_class, context=None, default_limit=DEFAULT_PAGE_SIZE, extra=None):
    """Paginate ``queryset`` with ``page``/``limit`` query params and serialize the page."""
    page = _positive_int(request.query_params.get('page'), 1)
    limit = min(_positive_int(request.query_params.get('limit'), default_limit), MAX_PAGE_SIZE)

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    serializer_context = {'request': request}
    if context:
        serializer_context.update(context)
    serializer = serializer_class(page_obj, many=True, context=serializer_context)
    payload = {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
    if extra:
        payload.update(extra)
    return Response(payload)


def generate_yearly_number(model, field_name, prefix, width=6):
    """
    Next number of the form PREFIX-YYYY-000001 for ``model.field_name``.
    The counter restarts every year.
    """
    year_prefix = f"{prefix}-{timezone.now().year}-"
    last_value = (
        model.objects.filter(**{f'{field_name}__startswith': year_prefix})
        .order_by(f'-{field_name}')
        .values_list(field_name, flat=True)
        .first()
    )
    next_number = 1
    if last_value:
        try:
            next_number = int(last_value[len(year_prefix):]) + 1
        except ValueError:
            next_number = model.objects.filter(**{f'{field_name}__startswith': year_prefix}).count() + 1
    return f"{year_prefix}{next_number:0{width}d}"


def generate_sequential_code(model, field_name, prefix, width=4):
    """Next code of the form PREFIX-0001 for ``model.field_name``."""
    code_prefix = f"{prefix}-"
    values = model.objects.filter(**{f'{field_name}__startswith': code_prefix}).values_list(field_name, flat=True)
    highest = 0
    for value in values:
        suffix = value[len(code_prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{code_prefix}{highest + 1:0{width}d}"


def build_unique_username(seed):
    """Username derived from ``seed`` (usually an email) that is not taken yet."""
    base = (seed or 'user').strip().lower()[:140] or 'user'
    username = base
    counter = 2
    while User.objects.filter(username=username).exists():
        username = f"{base}-{counter}"
        counter += 1
    return username
