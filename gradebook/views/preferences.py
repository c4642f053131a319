import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.shortcuts import get_object_or_404, redirect
from django.views.decorators.http import require_http_methods

from .base import htmx_render, can_view_preferences, require_grade_perms
from .report import report_tabs
from ..forms import ReportPreferencesForm
from ..models import Course

logger = logging.getLogger(__name__)


@login_required
@require_http_methods(['GET', 'POST'])
@require_grade_perms('view_unenrolled_report')
def report_preferences(request, course_id):
    """The viewer's own display preferences for the unenrolled report."""
    course = get_object_or_404(Course, pk=course_id)
    if not can_view_preferences(request.user):
        raise PermissionDenied

    if request.method == 'POST':
        form = ReportPreferencesForm(request.POST, course=course, user=request.user)
        if form.is_valid():
            saved = form.save()
            logger.info(f"User {request.user.pk} saved report preferences: {sorted(saved)}")
            messages.success(request, 'Preferences saved.')
            return redirect('gradebook:report_index', course_id=course.pk)
    else:
        form = ReportPreferencesForm(course=course, user=request.user)

    context = {
        'course': course,
        'form': form,
        'tabs': report_tabs(request.user, course, 'preferences'),
        'breadcrumbs': [
            {'label': 'Home', 'url': '/'},
            {'label': course.name},
            {'label': 'Report preferences'},
        ],
    }

    return htmx_render(
        request,
        'gradebook/unenrolled/preferences.html',
        'gradebook/unenrolled/partials/preferences_content.html',
        context
    )
