"""Shared helpers: audit logging, slugs, query parameter parsing"""
import json
import logging
import re
import unicodedata
from datetime import datetime, timedelta

from django.utils import timezone
from rest_framework.exceptions import ValidationError

from .models import AuditLog

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
}


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


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, order_status, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., product name, order number)
    """
    if not action or not model_name or object_id is None:
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None:
        audit_user = getattr(request, 'user', None)

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Audit failures never break the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def make_slug(value):
    """
    Build a URL slug from a display name.

    "Robe d'été Fleurie" -> "robe-d-ete-fleurie"
    """
    if not value:
        return ''
    ascii_value = unicodedata.normalize('NFKD', str(value)).encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^a-z0-9]+', '-', ascii_value.lower())
    return slug.strip('-')


def parse_request_data(request, json_fields=()):
    """
    Plain dict of the request body without uploaded files.

    Multipart forms carry lists and objects as JSON strings; the listed fields
    are decoded so serializers receive the same shapes as from a JSON body.
    """
    if hasattr(request.data, 'getlist'):
        data = {key: request.data.get(key) for key in request.data.keys() if key not in request.FILES}
    else:
        data = dict(request.data)

    for field in json_fields:
        value = data.get(field)
        if not isinstance(value, str):
            continue
        if not value.strip():
            data.pop(field)
            continue
        try:
            data[field] = json.loads(value)
        except ValueError:
            raise ValidationError({field: ['Invalid JSON format.']})
    return data


def parse_bool(value):
    """Interpret a query string flag ('true', '1', 'yes')"""
    if value is None:
        return False
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_date(value, field='date'):
    """Parse a YYYY-MM-DD query parameter, returns None when missing"""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError({field: ['Date must use the YYYY-MM-DD format.']})


def period_start(period, default='30d'):
    """Start datetime of a reporting period such as '7d' or '1y'"""
    days = PERIOD_DAYS.get(period) or PERIOD_DAYS[default]
    return timezone.now() - timedelta(days=days)
