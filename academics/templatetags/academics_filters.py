from django import template
from django.utils import timezone

register = template.Library()


@register.filter(name='minutes_hm')
def minutes_hm(value):
    """Format a minute count as ``1h 29m``. Empty string if missing."""
    if value in (None, ''):
        return ''
    try:
        total = int(value)
    except (TypeError, ValueError):
        return ''
    hours, minutes = divmod(total, 60)
    if not hours:
        return f"{minutes}m"
    return f"{hours}h {minutes:02d}m"


@register.filter(name='local_input')
def local_input(value):
    """Render a datetime for a ``datetime-local`` input in the current time zone."""
    if not value:
        return ''
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.strftime('%Y-%m-%dT%H:%M')


@register.filter(name='dict_get')
def dict_get(d, key):
    try:
        return d.get(key)
    except AttributeError:
        return None
