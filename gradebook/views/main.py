from django.contrib.auth.decorators import login_required
from django.db.models import Count

from .base import htmx_render, has_grade_perm
from ..models import Course


@login_required
def index(request):
    """Courses whose unenrolled users report the viewer may open."""
    can_view = (
        has_grade_perm(request.user, 'view_unenrolled_report')
        and has_grade_perm(request.user, 'view_all_grades')
    )
    courses = Course.objects.annotate(
        item_count=Count('grade_items', distinct=True)
    ).order_by('name') if can_view else Course.objects.none()

    context = {
        'courses': courses,
        'can_view': can_view,
        # Navigation
        'breadcrumbs': [
            {'label': 'Home', 'url': '/'},
            {'label': 'Gradebook'},
        ],
    }

    return htmx_render(
        request,
        'gradebook/index.html',
        'gradebook/partials/index_content.html',
        context
    )
