"""
Signals for the gradebook history.

Every saved or deleted GradeGrade appends a GradeGradeHistory row, which is
what the unenrolled report reads. Edits made from a report also send
`user_graded` so other apps can react to changed final grades.
"""
import logging
import threading

from django.db.models.signals import post_save, post_delete
from django.dispatch import Signal, receiver
from django.utils import timezone

from .models import GradeGrade, GradeGradeHistory

logger = logging.getLogger(__name__)

# Sent with grade=<GradeGrade>, logged_user=<User or None>
user_graded = Signal()

# Thread-local storage for signal disabling (thread-safe)
_thread_locals = threading.local()


def _is_signals_disabled():
    """Check if signals are disabled for the current thread."""
    return getattr(_thread_locals, 'signals_disabled', False)


def disable_signals():
    """Disable history signals for the current thread (for bulk operations)."""
    _thread_locals.signals_disabled = True


def enable_signals():
    """Re-enable history signals for the current thread."""
    _thread_locals.signals_disabled = False


class signals_disabled:
    """Context manager to temporarily disable signals (thread-safe)."""

    def __enter__(self):
        self._previous_state = _is_signals_disabled()
        disable_signals()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._previous_state:
            enable_signals()
        return False


def record_history(grade, action):
    """Append a history row mirroring the grade's current values."""
    return GradeGradeHistory.objects.create(
        action=action,
        old_id=grade.pk,
        source=getattr(grade, 'history_source', '') or '',
        time_modified=timezone.now(),
        logged_user=getattr(grade, 'history_user', None),
        item_id=grade.item_id,
        user_id=grade.user_id,
        final_grade=grade.final_grade,
        feedback=grade.feedback,
        overridden=grade.overridden,
        excluded=grade.excluded,
        hidden=grade.hidden,
        time_submitted=grade.time_submitted,
    )


@receiver(post_save, sender=GradeGrade)
def grade_saved(sender, instance, created, **kwargs):
    """Keep history of every grade write."""
    if _is_signals_disabled():
        return

    action = GradeGradeHistory.ACTION_INSERT if created else GradeGradeHistory.ACTION_UPDATE
    record_history(instance, action)


@receiver(post_delete, sender=GradeGrade)
def grade_deleted(sender, instance, **kwargs):
    """Keep history of deleted grades."""
    if _is_signals_disabled():
        return

    record_history(instance, GradeGradeHistory.ACTION_DELETE)


@receiver(user_graded)
def log_user_graded(sender, grade, logged_user=None, **kwargs):
    logger.info(
        f"User {grade.user_id} graded on item {grade.item_id}: "
        f"{grade.final_grade} (overridden={grade.overridden}) by {logged_user}"
    )
