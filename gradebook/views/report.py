import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.http import Http404
from django.shortcuts import get_object_or_404
from django.urls import reverse
from django.views.decorators.http import require_http_methods

from .base import htmx_render, has_grade_perm, require_grade_perms, can_view_preferences, ratelimit
from ..forms import parse_grade_post
from ..models import Course, GradeItem
from ..preferences import process_collapse_action, set_user_preferences
from ..report import UnenrolledReport
from .. import config

logger = logging.getLogger(__name__)


def report_tabs(user, course, current):
    """Navigation tabs shown above the report pages."""
    tabs = [{
        'key': 'report',
        'label': 'Unenrolled users',
        'url': reverse('gradebook:report_index', args=[course.pk]),
    }]
    if can_view_preferences(user):
        tabs.append({
            'key': 'preferences',
            'label': 'My report preferences',
            'url': reverse('gradebook:report_preferences', args=[course.pk]),
        })
    for tab in tabs:
        tab['active'] = tab['key'] == current
    return tabs


def _handle_toggle(request):
    toggle = request.GET.get('toggle')
    toggle_type = request.GET.get('toggle_type', '')
    if toggle is None or not toggle_type:
        return
    if not toggle_type.isalnum():
        logger.warning(f"Ignoring toggle of invalid type {toggle_type!r}")
        return
    try:
        toggle = int(toggle)
    except ValueError:
        logger.warning(f"Ignoring invalid toggle value {toggle!r}")
        return
    set_user_preferences(request.user, {f"grade_report_show{toggle_type}": toggle})


def _has_grade_data(post):
    return any(key.startswith(('grade_', 'feedback_')) for key in post.keys())


@login_required
@require_http_methods(['GET', 'POST'])
@require_grade_perms('view_unenrolled_report', 'view_all_grades')
@ratelimit(key='user', rate=lambda: config.EDIT_RATE_LIMIT)
def report_index(request, course_id):
    """Grades of users who have left the course, with optional inline edits."""
    course = get_object_or_404(Course, pk=course_id)
    request.session.setdefault('grade_last_report', {})[str(course.pk)] = 'unenrolled'
    request.session.modified = True

    _handle_toggle(request)

    if request.method == 'POST':
        target = request.POST.get('target')
        action = request.POST.get('action')
        if target and action:
            process_collapse_action(request.user, target, action)

    report = UnenrolledReport(
        course,
        request.user,
        request.session,
        page=request.GET.get('page', 0),
        sortitemid=request.GET.get('sortitemid') or None,
        can_view_hidden=has_grade_perm(request.user, 'view_hidden_grades'),
    )

    if request.method == 'POST' and _has_grade_data(request.POST):
        if not has_grade_perm(request.user, 'edit_grades'):
            logger.warning(f"User {request.user.pk} tried to edit grades in course {course.pk} without permission")
            raise PermissionDenied
        try:
            warnings = report.process_data(parse_grade_post(request.POST))
        except GradeItem.DoesNotExist:
            raise Http404('Invalid grade item')
        for warning in warnings:
            messages.warning(request, warning)

    report.load_users()
    report.load_final_grades()

    context = {
        'course': course,
        'report': report,
        'grade_table': report.get_grade_table(),
        'numusers': report.numusers,
        'page_obj': report.page_obj,
        'students_per_page': report.get_students_per_page(),
        'base_url': report.base_url,
        'tabs': report_tabs(request.user, course, 'report'),
        'breadcrumbs': [
            {'label': 'Home', 'url': '/'},
            {'label': course.name},
            {'label': 'Unenrolled users'},
        ],
    }

    return htmx_render(
        request,
        'gradebook/unenrolled/index.html',
        'gradebook/unenrolled/partials/report_content.html',
        context
    )
