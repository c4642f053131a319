import logging

import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET

from .base import has_grade_perm, require_grade_perms
from ..formatting import format_gradevalue
from ..models import Course, GradeItem
from ..report import UnenrolledReport, IDENTITY_FIELDS
from .. import config

logger = logging.getLogger(__name__)


def _export_value(grade, item, unknown, can_view_hidden):
    if not can_view_hidden and grade.is_hidden():
        return '-'
    if item.pk in unknown or grade.final_grade is None:
        return '-'
    if (not item.scale_id and item.grade_type == GradeItem.GRADE_TYPE_VALUE
            and item.get_displaytype() == GradeItem.DISPLAY_REAL):
        return float(grade.final_grade)
    return format_gradevalue(grade.final_grade, item)


@login_required
@require_GET
@require_grade_perms('view_unenrolled_report', 'view_all_grades')
def report_export(request, course_id):
    """Download the current page of the unenrolled report as an Excel workbook."""
    course = get_object_or_404(Course, pk=course_id)
    can_view_hidden = has_grade_perm(request.user, 'view_hidden_grades')

    report = UnenrolledReport(
        course,
        request.user,
        request.session,
        page=request.GET.get('page', 0),
        can_view_hidden=can_view_hidden,
    )
    users = report.load_users()
    grades = report.load_final_grades()
    items = report.gtree.get_items()
    extrafields = report.get_extra_fields()

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Unenrolled users"

    # Styles
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color=config.EXCEL_HEADER_COLOR, end_color=config.EXCEL_HEADER_COLOR, fill_type="solid")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    # Header row
    User = get_user_model()
    headers = ["Name"] + [
        User._meta.get_field(IDENTITY_FIELDS[field]).verbose_name.capitalize() for field in extrafields
    ]
    headers += [item.get_name() for item in items.values()]

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', wrap_text=True)
        cell.border = thin_border

    # Data rows
    first_item_col = 2 + len(extrafields)
    for row, user in enumerate(users, 2):
        ws.cell(row=row, column=1, value=user.display_name(bool(config.REPORT_NAMESWAP))).border = thin_border
        for col, field in enumerate(extrafields, 2):
            ws.cell(row=row, column=col, value=getattr(user, IDENTITY_FIELDS[field], '')).border = thin_border

        user_grades = grades[user.pk]
        unknown = report.get_user_hiding(user.pk)['unknown']
        for col, (item_id, item) in enumerate(items.items(), first_item_col):
            cell = ws.cell(row=row, column=col, value=_export_value(user_grades[item_id], item, unknown, can_view_hidden))
            cell.border = thin_border
            cell.alignment = Alignment(horizontal='center')

    # Adjust column widths
    ws.column_dimensions['A'].width = 30
    for col in range(2, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 18

    logger.info(f"User {request.user.pk} exported {len(users)} unenrolled users of course {course.pk}")

    response = HttpResponse(
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    filename = f"unenrolled_{course.short_name}_page{report.page + 1}.xlsx"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    wb.save(response)

    return response
