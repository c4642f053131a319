"""
Grade report for users who were graded in a course but are no longer enrolled.

Users are found through the grade history, since their current grades may
have been removed along with the enrolment, and their grades are read back
from the latest history row of each item.
"""
import copy
import json
import re
import logging
from decimal import Decimal
from urllib.parse import urlencode

from django.contrib.auth import get_user_model
from django.core.paginator import Paginator
from django.template.loader import render_to_string
from django.urls import reverse
from django.utils import timezone
from django.utils.formats import date_format
from django.utils.html import escape, format_html
from django.utils.safestring import mark_safe

from . import config
from .formatting import format_float, format_gradevalue, shorten_text, unformat_float, wordwrap
from .hiding import get_hiding_affected
from .models import Course, GradeCategory, GradeGrade, GradeGradeHistory, GradeItem
from .preferences import PREFERENCE_DEFAULT, get_user_preference, load_collapsed
from .signals import user_graded
from .tables import Table, TableCell, TableRow
from .tree import GradeTree

logger = logging.getLogger(__name__)

SORT_SESSION_KEY = 'gradeuserreport'

# Sortable user columns and the fields they order by
USER_SORT_FIELDS = {
    'lastname': ['last_name', 'first_name'],
    'firstname': ['first_name', 'last_name'],
    'email': ['email'],
    'idnumber': ['idnumber'],
}

IDENTITY_FIELDS = {
    'email': 'email',
    'idnumber': 'idnumber',
}

NBSP = mark_safe('&nbsp;')


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


class UnenrolledReport:
    """
    Builds the unenrolled users grade table for one course and one viewer.

    Args:
        course: The Course being reported on
        user: The viewer, whose preferences and collapsed categories apply
        session: The request session, holding the sort state between requests
        page: Zero-based page number
        sortitemid: Column clicked for sorting (a user field name or a grade item id)
        can_view_hidden: Whether hidden grades are shown to the viewer
    """

    def __init__(self, course, user, session, page=0, sortitemid=None, can_view_hidden=False):
        self.course = course
        self.user = user
        self.session = session
        page = _as_int(page)
        self.page = page if isinstance(page, int) and page > 0 else 0
        self.can_view_hidden = can_view_hidden
        self.can_manage = user.is_superuser or user.has_perm('gradebook.manage_grades')

        self._prefs = {}
        self.collapsed = load_collapsed(user)
        self.gtree = GradeTree(course, self.get_pref('aggregationposition'), self.collapsed)

        self.base_url = reverse('gradebook:report_index', args=[course.pk])

        self.sortitemid = str(sortitemid) if sortitemid else None
        self.sortorder = 'ASC'
        self._setup_sortitemid()

        self.all_users = None
        self.users = None
        self.numusers = 0
        self.page_obj = None
        self.grades = None
        # Latest grades on every course item, collapsed ones included
        self.course_grades = {}
        self.weighted_totals = {}
        self.js_arguments = {}

    # ---- preferences ----

    def get_pref(self, name):
        """
        A report preference: the user's own value, the course setting
        (aggregation position only), or the site default.
        """
        if name in self._prefs:
            return self._prefs[name]

        value = get_user_preference(self.user, f"grade_report_{name}")
        if name == 'aggregationposition' and value not in (None, '', PREFERENCE_DEFAULT) \
                and _as_int(value) not in (Course.AGGREGATION_POSITION_FIRST, Course.AGGREGATION_POSITION_LAST):
            logger.warning(f"Ignoring invalid aggregation position {value!r} of user {self.user.pk}")
            value = None

        if value in (None, '', PREFERENCE_DEFAULT):
            if name == 'aggregationposition':
                value = self.course.aggregation_position
                if value is None:
                    value = config.AGGREGATIONPOSITION
            else:
                value = config.get(f"REPORT_{name.upper()}")

        self._prefs[name] = _as_int(value)
        return self._prefs[name]

    def get_students_per_page(self):
        value = self.get_pref('studentsperpage')
        return value if isinstance(value, int) and value > 0 else 0

    def get_extra_fields(self):
        """User identity fields shown next to the name."""
        return [field for field in config.SHOW_USER_IDENTITY if field in IDENTITY_FIELDS]

    # ---- sorting ----

    def _default_order(self, sortitemid):
        return 'ASC' if sortitemid in ('firstname', 'lastname') else 'DESC'

    def _setup_sortitemid(self):
        state = dict(self.session.get(SORT_SESSION_KEY) or {})

        if self.sortitemid:
            stored_item = state.get('sortitemid')
            if 'sort' not in state or stored_item is None:
                self.sortorder = self._default_order(self.sortitemid)
            elif str(stored_item) == self.sortitemid:
                # Clicking the same column again flips the order
                self.sortorder = 'DESC' if state['sort'] == 'ASC' else 'ASC'
            else:
                self.sortorder = self._default_order(self.sortitemid)

            state['sort'] = self.sortorder
            state['sortitemid'] = self.sortitemid
            self.session[SORT_SESSION_KEY] = state
        else:
            # Paging reuses the last sort
            self.sortitemid = str(state.get('sortitemid') or 'lastname')
            self.sortorder = state.get('sort') or 'ASC'

    def _sorting_by_grade(self):
        return self.sortitemid.isdigit()

    # ---- users and grades ----

    def load_users(self):
        """
        Users with grade history in this course who are not currently
        enrolled, sorted and cut down to the current page.
        """
        if self.users is not None:
            return self.users

        User = get_user_model()
        enrolled = self.course.get_enrolled_user_ids()
        users = User.objects.filter(
            grade_history__item__course=self.course
        ).exclude(pk__in=enrolled).distinct()

        descending = self.sortorder == 'DESC'
        if self._sorting_by_grade():
            users = list(users.order_by('last_name', 'first_name', 'pk'))
            users = self._sort_by_grade(users, int(self.sortitemid), descending)
        else:
            fields = USER_SORT_FIELDS.get(self.sortitemid, USER_SORT_FIELDS['idnumber'])
            ordering = [f"-{field}" if descending else field for field in fields]
            users = list(users.order_by(*ordering, 'pk'))

        self.all_users = users
        self.numusers = len(users)

        per_page = self.get_students_per_page()
        if per_page:
            self.page_obj = Paginator(users, per_page).get_page(self.page + 1)
            self.page = self.page_obj.number - 1
            self.users = list(self.page_obj.object_list)
        else:
            self.users = users

        logger.debug(f"Unenrolled report for course {self.course.pk}: {self.numusers} users")
        return self.users

    def _sort_by_grade(self, users, item_id, descending):
        """
        Order by the latest grade on one item; ungraded users always go last.
        Grades the viewer may not see count as ungraded.
        """
        item = self.gtree.get_item(item_id)
        if item is None or (item.is_hidden() and not self.can_view_hidden):
            return users

        latest = {}
        history = GradeGradeHistory.objects.filter(
            item_id=item_id,
            item__course=self.course,
            user__in=users
        ).order_by('time_modified', 'id').values_list('user_id', 'final_grade', 'hidden')
        for user_id, final_grade, hidden in history:
            latest[user_id] = None if hidden and not self.can_view_hidden else final_grade

        graded = [user for user in users if latest.get(user.pk) is not None]
        ungraded = [user for user in users if latest.get(user.pk) is None]
        # Stable sorts keep equal grades in name order either way
        graded.sort(key=lambda user: (user.last_name.lower(), user.first_name.lower()))
        graded.sort(key=lambda user: latest[user.pk], reverse=descending)
        return graded + ungraded

    def load_final_grades(self):
        """
        Latest history values for the loaded users on every shown item,
        filled up with empty grades where there is no history.
        """
        if self.grades is not None:
            return self.grades

        self.grades = {}
        self.course_grades = {}
        if not self.users:
            return self.grades

        user_ids = [user.pk for user in self.users]
        items = self.gtree.get_items()
        all_items = self.gtree.all_items

        history = GradeGradeHistory.objects.filter(
            item__course=self.course,
            user_id__in=user_ids
        ).order_by('time_modified', 'id')

        for row in history:
            item = all_items.get(row.item_id)
            if item is None:
                continue
            grade = row.as_grade()
            grade.item = item
            self.course_grades.setdefault(row.user_id, {})[row.item_id] = grade

        for user_id in user_ids:
            course_grades = self.course_grades.setdefault(user_id, {})
            user_grades = self.grades.setdefault(user_id, {})
            for item_id, item in items.items():
                user_grades[item_id] = course_grades.get(item_id) or GradeGrade(item=item, user_id=user_id)

        return self.grades

    def get_user_hiding(self, user_id):
        """
        Totals of one user that would leak grades hidden from the viewer.
        Grades in collapsed categories still count.
        """
        if self.can_view_hidden:
            return {'altered': {}, 'unknown': []}
        self.load_final_grades()
        return get_hiding_affected(self.course_grades.get(user_id, {}), self.gtree.all_items)

    # ---- editing ----

    def process_data(self, data):
        """
        Save posted grades and feedback.

        Args:
            data: {'grade': {userid: {itemid: value}}, 'feedback': {userid: {itemid: text}}}

        Returns:
            list: warning messages for the viewer

        Raises:
            GradeItem.DoesNotExist: for items outside this course
        """
        warnings = []
        self.load_users()
        self.load_final_grades()
        users = {user.pk: user for user in self.all_users}

        changed_grades = False

        for datatype in ('grade', 'feedback'):
            for user_id, posted_items in data.get(datatype, {}).items():
                user_id = int(user_id)
                user = users.get(user_id)
                if user is None:
                    logger.warning(
                        f"Ignoring {datatype} for user {user_id}, not an unenrolled user "
                        f"of course {self.course.pk}"
                    )
                    continue

                for item_id, posted in posted_items.items():
                    item_id = int(item_id)
                    item = GradeItem.objects.select_related('scale', 'totals_category').get(
                        pk=item_id, course=self.course
                    )
                    old = self.grades.get(user_id, {}).get(item_id) or GradeGrade(item=item, user_id=user_id)

                    if datatype == 'grade':
                        if old.final_grade is None and posted == '-1':
                            continue

                        if item.scale_id:
                            try:
                                posted_int = int(posted)
                            except (TypeError, ValueError):
                                warnings.append(f"{user.get_full_name()}: invalid grade for {item.get_name()}")
                                continue
                            if int(old.final_grade or 0) == posted_int:
                                continue
                            final_grade = None if posted_int == -1 else Decimal(posted_int)
                        else:
                            if posted == format_float(old.final_grade, item.get_decimals()):
                                continue
                            try:
                                final_grade = unformat_float(posted)
                            except ValueError:
                                warnings.append(f"{user.get_full_name()}: invalid grade for {item.get_name()}")
                                continue

                        changed_grades = True
                        feedback = False

                        if final_grade is not None:
                            bounded = item.bounded_grade(final_grade)
                            warning = None
                            if bounded > final_grade:
                                warning = f"{user.get_full_name()}: grade for {item.get_name()} is less than the minimum"
                            elif bounded < final_grade:
                                warning = f"{user.get_full_name()}: grade for {item.get_name()} is greater than the maximum"
                            if warning:
                                logger.warning(warning)
                                warnings.append(warning)

                    else:
                        old_feedback = old.feedback
                        if self.get_pref('quickgrading') and old_feedback:
                            old_feedback = re.sub(r'\r\n|\r|\n', '', old_feedback)
                        if old_feedback == posted or (old_feedback is None and not posted):
                            continue

                        final_grade = False
                        feedback = posted if posted and posted.strip() else None

                    previous = GradeGrade.objects.filter(item=item, user=user).first()
                    grade = item.update_final_grade(
                        user,
                        finalgrade=final_grade,
                        source='gradebook',
                        feedback=feedback,
                        logged_user=self.user
                    )

                    old_value = previous.final_grade if previous else None
                    old_overridden = previous.overridden if previous else False
                    if old_value != grade.final_grade or bool(old_overridden) != bool(grade.overridden):
                        user_graded.send(sender=self.__class__, grade=grade, logged_user=self.user)

                    if datatype == 'feedback' and item_id in self.grades.get(user_id, {}):
                        self.grades[user_id][item_id].feedback = feedback

        if changed_grades:
            # Totals may depend on the changed grades
            self.grades = None

        return warnings

    # ---- table building ----

    def _repeat_every(self):
        repeat = self.get_pref('repeatheaders')
        if isinstance(repeat, int) and repeat > 0:
            return repeat
        return None

    def _user_cell(self, user, show_picture):
        picture = ''
        if show_picture:
            if user.picture:
                picture = format_html(
                    '<img src="{}" alt="" class="userpicture" width="35" height="35" /> ', user.picture
                )
            else:
                picture = format_html('<span class="userinitials">{}</span> ', user.initials)

        link = format_html(
            '<a href="{}">{}</a>',
            reverse('admin:accounts_user_change', args=[user.pk]),
            user.display_name(bool(config.REPORT_NAMESWAP))
        )
        return TableCell(format_html('{}{}', picture, link), header=True, scope='row', classes=['user'])

    def get_left_rows(self):
        """Name and identity columns, with fillers matching the right side's header rows."""
        self.load_users()
        rows = []
        show_picture = self.get_pref('showuserimage')
        extrafields = self.get_extra_fields()
        arrows = self.get_sort_arrows(extrafields)
        colspan = 1 + len(extrafields)

        for _ in range(len(self.gtree.get_levels()) - 1):
            rows.append(TableRow([
                TableCell(NBSP, colspan=colspan, classes=['fixedcolumn', 'cell', 'topleft'])
            ]))

        header_row = TableRow(classes=['heading'])
        header_row.cells.append(TableCell(
            arrows['studentname'], header=True, scope='col', id='studentheader', classes=['header']
        ))
        for field in extrafields:
            header_row.cells.append(TableCell(
                arrows[field], header=True, scope='col', classes=['header', 'userfield', f"user{field}"]
            ))
        rows.append(header_row)

        repeat = self._repeat_every()
        repeat_entries = copy.deepcopy(rows[1:])

        rowcount = 0
        for user in self.users:
            if repeat and rowcount > 0 and rowcount % repeat == 0:
                rows.extend(copy.deepcopy(repeat_entries))
            rowcount += 1

            user_row = TableRow(id=f"fixed_user_{user.pk}", classes=[('even', 'odd')[rowcount % 2]])
            user_row.cells.append(self._user_cell(user, show_picture))
            for field in extrafields:
                user_row.cells.append(TableCell(
                    getattr(user, IDENTITY_FIELDS[field], '') or '',
                    header=True,
                    scope='row',
                    classes=['header', 'userfield', f"user{field}"]
                ))
            rows.append(user_row)

        return rows

    def _heading_rows(self):
        rows = []
        render_percents = self.get_pref('showweightedpercents')
        show_icons = self.get_pref('showactivityicons')

        for level in self.gtree.get_levels():
            heading_row = TableRow(classes=['heading_name_row'])

            for element in level:
                element_type = element['type']
                colspan = element.get('colspan') or 1
                catlevel = f"catlevel{element['depth']}" if element.get('depth') else ''

                if element_type in ('filler', 'fillerfirst', 'fillerlast'):
                    heading_row.cells.append(TableCell(
                        NBSP, colspan=colspan, header=True, scope='col', classes=[element_type, catlevel]
                    ))

                elif element_type == 'category':
                    text = format_html(
                        '{}{}', shorten_text(element['object'].get_name()), self.get_collapsing_icon(element)
                    )
                    heading_row.cells.append(TableCell(
                        text, colspan=colspan, header=True, scope='col', classes=['category', catlevel]
                    ))

                else:
                    item = element['object']
                    header = self.gtree.get_element_header(element, with_link=self.can_manage, icon=show_icons)
                    percents = ''
                    if render_percents:
                        percents = format_html('{}<br />', self.get_weighted_percents(item))

                    classes = [element_type, catlevel, 'highlightable', f"i{item.pk}"]
                    if item.is_hidden():
                        classes.append('dimmed_text')

                    heading_row.cells.append(TableCell(
                        format_html('{}{}{}', percents, header, self._sort_arrow(str(item.pk), 'Sort by grade')),
                        colspan=colspan,
                        header=True,
                        scope='col',
                        classes=classes
                    ))

            rows.append(heading_row)
        return rows

    def _init_js_arguments(self):
        self.js_arguments = {
            'id': '#user-grades',
            'cfg': {
                'courseid': self.course.pk,
                'showquickfeedback': bool(self.get_pref('showquickfeedback')),
            },
            'items': {},
            'users': {},
            'grades': [],
            'feedback': [],
            'scales': {},
        }
        for item_id, item in self.gtree.get_items().items():
            if item.scale_id:
                self.js_arguments['items'][item_id] = {
                    'id': item_id, 'name': item.get_name(), 'type': 'scale',
                    'scale': item.scale_id, 'decimals': item.get_decimals(),
                }
                self.js_arguments['scales'][item.scale_id] = item.scale.get_items()
            else:
                self.js_arguments['items'][item_id] = {
                    'id': item_id, 'name': item.get_name(), 'type': 'value',
                    'scale': False, 'decimals': item.get_decimals(),
                }

    def _grade_cell(self, user_id, item_id, item, grade, unknown, altered):
        cell = TableCell(id=f"u{user_id}i{item_id}")

        if item_id in unknown:
            gradeval = None
        elif item_id in altered:
            gradeval = altered[item_id]
        else:
            gradeval = grade.final_grade

        if grade.final_grade is not None and gradeval is not None:
            if item.scale_id:
                js_value = int(gradeval)
            else:
                js_value = format_float(gradeval, item.get_decimals())
            self.js_arguments['grades'].append({'user': user_id, 'item': item_id, 'grade': js_value})

        if not self.can_view_hidden and grade.is_hidden():
            submitted = grade.get_datesubmitted()
            if (config.HIDDEN_AS_DATE and submitted
                    and not item.is_category_item() and not item.is_course_item()):
                cell.text = format_html(
                    '<span class="datesubmitted">{}</span>',
                    date_format(timezone.localtime(submitted), 'SHORT_DATETIME_FORMAT')
                )
            else:
                cell.text = '-'
            return cell

        cell.classes += ['grade', f"i{item_id}"]
        if item.is_category_item():
            cell.classes.append('cat')
        if item.is_course_item():
            cell.classes.append('course')
        if grade.is_overridden():
            cell.classes.append('overridden')
        if grade.is_excluded():
            cell.classes.append('excluded')

        if grade.feedback:
            self.js_arguments['feedback'].append({
                'user': user_id,
                'item': item_id,
                'content': '<br />'.join(escape(line) for line in wordwrap(grade.feedback.strip(), 34)),
            })

        parts = []
        if grade.is_excluded():
            parts.append(format_html('<span class="excludedfloater">{}</span>', 'Excluded'))
        if grade.is_overridden() and not grade.is_excluded():
            parts.append(format_html('<span class="excludedfloater">{}</span><br />', 'Overridden'))

        hidden = ' hidden' if grade.is_hidden() else ''
        passed = grade.is_passed(item)
        if passed is None:
            gradepass = ''
        else:
            gradepass = ' gradepass' if passed else ' gradefail'

        if item.scale_id:
            cell.classes.append('grade_type_scale')
        elif item.grade_type == GradeItem.GRADE_TYPE_TEXT:
            cell.classes.append('grade_type_text')
        else:
            cell.classes.append('grade_type_value')

        if item.needs_update:
            parts.append(format_html('<span class="gradingerror{}{}">{}</span>', hidden, gradepass, 'Error'))
        else:
            parts.append(format_html(
                '<span class="gradevalue{}{}">{}</span>', hidden, gradepass, format_gradevalue(gradeval, item)
            ))
            if self.get_pref('showanalysisicon') and grade.pk:
                history_url = reverse('admin:gradebook_gradegradehistory_changelist')
                query = urlencode({'item__id__exact': item_id, 'user__id__exact': user_id})
                parts.append(format_html(
                    ' <a class="gradeanalysis" href="{}?{}" title="{}">&#9432;</a>',
                    history_url, query, 'Grade history'
                ))

        cell.text = mark_safe(''.join(str(part) for part in parts))
        return cell

    def get_right_rows(self):
        """Header rows of the grade tree followed by one row of grades per user."""
        self.load_users()
        self.load_final_grades()
        self._init_js_arguments()

        rows = self._heading_rows()
        repeat = self._repeat_every()
        repeat_entries = copy.deepcopy(rows[1:])
        rowcount = 0
        for user in self.users:
            if repeat and rowcount > 0 and rowcount % repeat == 0:
                rows.extend(copy.deepcopy(repeat_entries))

            user_grades = self.grades[user.pk]
            affected = self.get_user_hiding(user.pk)
            unknown, altered = affected['unknown'], affected['altered']

            rowcount += 1
            item_row = TableRow(id=f"user_{user.pk}", classes=[('even', 'odd')[rowcount % 2]])
            self.js_arguments['users'][user.pk] = user.get_full_name()

            for item_id, item in self.gtree.get_items().items():
                item_row.cells.append(
                    self._grade_cell(user.pk, item_id, item, user_grades[item_id], unknown, altered)
                )
            rows.append(item_row)

        return rows

    def get_table(self):
        """Left and right rows merged into the full report table."""
        left_rows = self.get_left_rows()
        right_rows = self.get_right_rows()

        table = Table(id='user-grades', classes=['gradestable', 'flexible', 'boxaligncenter', 'generaltable'])
        for index, row in enumerate(left_rows):
            if index < len(right_rows):
                row.cells = row.cells + right_rows[index].cells
            table.rows.append(row)
        return table

    def get_grade_table(self):
        """The report table rendered to HTML."""
        return render_to_string('gradebook/unenrolled/partials/grade_table.html', {
            'table': self.get_table(),
            'js_arguments': self.js_arguments,
        })

    # ---- header controls ----

    def _sort_arrow(self, sortitemid, title):
        url = f"{self.base_url}?{urlencode({'sortitemid': sortitemid})}"
        if self.sortitemid == sortitemid:
            symbol = '&#9650;' if self.sortorder == 'ASC' else '&#9660;'
            label = 'Ascending' if self.sortorder == 'ASC' else 'Descending'
            return format_html(
                ' <a class="sorticon active" href="{}" title="{}">{}</a>', url, label, mark_safe(symbol)
            )
        return format_html(' <a class="sorticon" href="{}" title="{}">&#8645;</a>', url, title)

    def _sort_link(self, sortitemid, label):
        url = f"{self.base_url}?{urlencode({'sortitemid': sortitemid})}"
        marker = ''
        if self.sortitemid == sortitemid:
            if self.sortorder == 'ASC':
                marker = format_html(' <span class="sorticon sort-asc" title="{}">&#9650;</span>', 'Ascending')
            else:
                marker = format_html(' <span class="sorticon sort-desc" title="{}">&#9660;</span>', 'Descending')
        return format_html('<a href="{}">{}</a>{}', url, label, marker)

    def get_sort_arrows(self, extrafields=()):
        """
        Sort links for the name and identity column headers.

        Returns:
            dict: 'studentname' plus one entry per identity field, as HTML
        """
        User = get_user_model()
        arrows = {
            'studentname': format_html(
                '{} {}',
                self._sort_link('firstname', 'First name'),
                self._sort_link('lastname', 'Last name')
            )
        }
        for field in extrafields:
            label = User._meta.get_field(IDENTITY_FIELDS[field]).verbose_name
            arrows[field] = self._sort_link(field, label.capitalize())
        return arrows

    def get_collapsing_icon(self, element):
        """Button cycling a category between full view, totals only and grades only."""
        if element['type'] != 'category':
            return ''

        category_id = element['object'].pk
        if category_id in self.collapsed['aggregatesonly']:
            action, title, symbol = 'switch_plus', 'Grades only', '+'
        elif category_id in self.collapsed['gradesonly']:
            action, title, symbol = 'switch_whole', 'Full view', '&#177;'
        else:
            action, title, symbol = 'switch_minus', 'Aggregates only', '&#8722;'

        return format_html(
            ' <button type="button" class="collapse-switch {}" title="{}"'
            ' hx-post="{}" hx-vals="{}" hx-target="#report-content" hx-swap="outerHTML">{}</button>',
            action, title, self.base_url,
            json.dumps({'target': element['eid'], 'action': action}), mark_safe(symbol)
        )

    def get_weighted_percents(self, item):
        """
        Share of the item's weight in its parent category, e.g. " (25.00%) ".

        Returns:
            str: '' when the parent aggregation gives the item no weight
        """
        parent = item.get_parent_category()
        if not parent or item.is_course_item():
            return ''

        if item.is_category_item():
            parent = parent.get_parent_category()
        if not parent:
            return ''

        def determine_weight(child):
            if parent.is_extracredit_used():
                discard = (
                    (parent.aggregation != GradeCategory.AGGREGATE_WEIGHTED_MEAN and child.aggregation_coef > 0)
                    or child.aggregation_coef < 0
                    or child.grade_type in (GradeItem.GRADE_TYPE_NONE, GradeItem.GRADE_TYPE_TEXT)
                )
                if discard:
                    return 0

            if parent.aggregation == GradeCategory.AGGREGATE_WEIGHTED_MEAN:
                return child.aggregation_coef
            if parent.aggregation == GradeCategory.AGGREGATE_WEIGHTED_MEAN2:
                return child.grade_max - child.grade_min
            if parent.aggregation == GradeCategory.AGGREGATE_SUM:
                return child.grade_max
            return None

        evaluated = determine_weight(item)
        if not evaluated:
            return ''

        if parent.pk not in self.weighted_totals:
            total = Decimal('0')
            for child in parent.get_children():
                if child['type'] == 'category':
                    child_item = child['object'].get_grade_item()
                else:
                    child_item = child['object']
                if child_item is not None:
                    total += determine_weight(child_item) or 0
            self.weighted_totals[parent.pk] = total

        parent_item = parent.get_grade_item()
        decimals = parent_item.get_decimals() if parent_item else config.DECIMAL_POINTS

        total = self.weighted_totals[parent.pk]
        computed = 0 if total == 0 else Decimal(str(evaluated)) / total
        return f" ({format_float(computed * 100, decimals)}%) "
