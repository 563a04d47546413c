import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .exceptions import AcademicsError
from .models import Class
from .sessions import create_sessions_for_class

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Class, dispatch_uid="academics_generate_class_sessions")
def generate_sessions_on_create(sender, instance, created, raw=False, **kwargs):
    """Lay out the session calendar once, when the class is first saved."""
    if not created or raw:
        return
    try:
        create_sessions_for_class(instance)
    except (AcademicsError, ValueError):
        # The class itself is kept; sessions can be generated later with
        # the generate_sessions command.
        logger.exception("Could not generate sessions for class %s", instance.pk)
