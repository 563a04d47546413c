from django.utils import timezone

from .models import Semester
from .permissions import caps_for, scoped


def active_semester(request):
    """Expose the current semester and the user's feature caps to all templates."""
    user = getattr(request, 'user', None)
    if not (user and user.is_authenticated):
        return {"active_semester": None, "caps": {}}
    today = timezone.localdate()
    semester = (
        scoped(Semester.objects.all(), user, 'semester')
        .filter(start_date__lte=today, end_date__gte=today)
        .first()
    )
    return {"active_semester": semester, "caps": caps_for(user)}
