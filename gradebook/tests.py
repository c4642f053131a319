from datetime import timedelta
from decimal import Decimal
from io import BytesIO

import openpyxl
from django.test import TestCase, Client, override_settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission
from django.core.cache import cache
from django.http import QueryDict
from django.urls import reverse
from django.utils import timezone

from .models import (
    Course, CourseEnrolment, Scale, GradeCategory, GradeItem,
    GradeGrade, GradeGradeHistory, UserPreference
)
from .forms import ReportPreferencesForm, parse_grade_post
from .formatting import format_float, unformat_float, format_gradevalue, shorten_text
from .hiding import get_hiding_affected
from .preferences import (
    COLLAPSED_PREFERENCE, load_collapsed, process_collapse_action,
    set_user_preferences, get_user_preference
)
from .report import UnenrolledReport, SORT_SESSION_KEY
from .signals import user_graded, signals_disabled
from .tree import GradeTree, parse_eid


User = get_user_model()


def build_course():
    """
    Course tree used by most tests:

        course category (mean)
            Labs (simple weighted mean): Lab 1 (/20), Lab 2 (/30), Labs total
            Exam (/100, pass 50)
            Course total
    """
    course = Course.objects.create(name='Physics', short_name='PHY1')
    root = GradeCategory.objects.create(course=course, name='')
    course_item = GradeItem.objects.create(
        course=course, totals_category=root, item_type=GradeItem.TYPE_COURSE, sort_order=100
    )
    labs = GradeCategory.objects.create(
        course=course, parent=root, name='Labs',
        aggregation=GradeCategory.AGGREGATE_WEIGHTED_MEAN2, sort_order=1
    )
    labs_item = GradeItem.objects.create(
        course=course, totals_category=labs, item_type=GradeItem.TYPE_CATEGORY, sort_order=50
    )
    lab1 = GradeItem.objects.create(
        course=course, category=labs, name='Lab 1', item_type=GradeItem.TYPE_MOD,
        item_module='assign', grade_max=Decimal('20'), sort_order=1
    )
    lab2 = GradeItem.objects.create(
        course=course, category=labs, name='Lab 2', item_type=GradeItem.TYPE_MOD,
        item_module='assign', grade_max=Decimal('30'), sort_order=2
    )
    exam = GradeItem.objects.create(
        course=course, category=root, name='Exam', grade_pass=Decimal('50'), sort_order=2
    )
    return {
        'course': course, 'root': root, 'labs': labs,
        'course_item': course_item, 'labs_item': labs_item,
        'lab1': lab1, 'lab2': lab2, 'exam': exam,
    }


def find_cell(rows, cell_id):
    for row in rows:
        for cell in row.cells:
            if cell.id == cell_id:
                return cell
    return None


class ReportFixtureMixin:
    """Three unenrolled students and one enrolled student with graded history."""

    def setUp(self):
        self.data = build_course()
        self.course = self.data['course']
        now = timezone.now()

        self.viewer = User.objects.create_user(email='teacher@example.com', password='pass12345', first_name='Tess', last_name='Teacher')

        # Left the course last week
        self.adams = User.objects.create_user(email='adams@example.com', first_name='Ann', last_name='Adams', idnumber='S3')
        CourseEnrolment.objects.create(
            course=self.course, user=self.adams,
            time_start=now - timedelta(days=60), time_end=now - timedelta(days=7)
        )
        # Graded without a current enrolment
        self.brown = User.objects.create_user(email='brown@example.com', first_name='Ben', last_name='Brown', idnumber='S1')
        # Enrolment only starts next week
        self.clark = User.objects.create_user(email='clark@example.com', first_name='Cara', last_name='Clark', idnumber='S2')
        CourseEnrolment.objects.create(course=self.course, user=self.clark, time_start=now + timedelta(days=7))
        # Still enrolled, never shown
        self.enrolled = User.objects.create_user(email='dean@example.com', first_name='Dan', last_name='Dean')
        CourseEnrolment.objects.create(course=self.course, user=self.enrolled, time_start=now - timedelta(days=60))

        lab1, exam = self.data['lab1'], self.data['exam']
        lab1.update_final_grade(self.adams, Decimal('12'))
        lab1.update_final_grade(self.brown, Decimal('18'))
        lab1.update_final_grade(self.enrolled, Decimal('20'))
        exam.update_final_grade(self.adams, Decimal('40'))
        exam.update_final_grade(self.clark, Decimal('75'))

        self.session = {}

    def make_report(self, **kwargs):
        kwargs.setdefault('can_view_hidden', True)
        return UnenrolledReport(self.course, self.viewer, self.session, **kwargs)

    def hide_grade(self, item, user, **fields):
        grade = GradeGrade.objects.get(item=item, user=user)
        grade.hidden = True
        for name, value in fields.items():
            setattr(grade, name, value)
        grade.save()
        return grade


class CourseModelTest(TestCase):
    """Tests for courses, enrolments and the grade tree records."""

    def setUp(self):
        self.data = build_course()

    def test_category_depth_from_parent(self):
        self.assertEqual(self.data['root'].depth, 1)
        self.assertEqual(self.data['labs'].depth, 2)

    def test_total_item_names(self):
        self.assertEqual(self.data['course_item'].get_name(), 'Course total')
        self.assertEqual(self.data['labs_item'].get_name(), 'Labs total')
        self.assertEqual(self.data['lab1'].get_name(), 'Lab 1')

    def test_parent_category(self):
        self.assertEqual(self.data['lab1'].get_parent_category(), self.data['labs'])
        self.assertEqual(self.data['labs_item'].get_parent_category(), self.data['labs'])
        self.assertEqual(self.data['labs'].get_grade_item(), self.data['labs_item'])

    def test_children_exclude_totals(self):
        children = self.data['root'].get_children()
        self.assertEqual([child['type'] for child in children], ['category', 'item'])
        self.assertEqual(children[1]['object'], self.data['exam'])

    def test_bounded_grade(self):
        lab1 = self.data['lab1']
        self.assertEqual(lab1.bounded_grade(Decimal('25')), Decimal('20'))
        self.assertEqual(lab1.bounded_grade(Decimal('-1')), Decimal('0'))
        self.assertEqual(lab1.bounded_grade(Decimal('7.5')), Decimal('7.5'))
        self.assertIsNone(lab1.bounded_grade(None))

    def test_active_enrolments(self):
        course = self.data['course']
        now = timezone.now()
        current = User.objects.create_user(email='a@example.com')
        ended = User.objects.create_user(email='b@example.com')
        CourseEnrolment.objects.create(course=course, user=current, time_start=now - timedelta(days=1))
        CourseEnrolment.objects.create(
            course=course, user=ended,
            time_start=now - timedelta(days=10), time_end=now - timedelta(days=1)
        )
        self.assertEqual(course.get_enrolled_user_ids(), {current.pk})

    def test_update_final_grade_on_total_is_overridden(self):
        student = User.objects.create_user(email='s@example.com')
        grade = self.data['labs_item'].update_final_grade(student, Decimal('80'))
        self.assertTrue(grade.overridden)
        grade = self.data['labs_item'].update_final_grade(student, None)
        self.assertFalse(grade.overridden)

    def test_is_passed(self):
        exam = self.data['exam']
        self.assertTrue(GradeGrade(item=exam, final_grade=Decimal('50')).is_passed())
        self.assertFalse(GradeGrade(item=exam, final_grade=Decimal('49.9')).is_passed())
        self.assertIsNone(GradeGrade(item=exam, final_grade=None).is_passed())
        self.assertIsNone(GradeGrade(item=self.data['lab1'], final_grade=Decimal('5')).is_passed())


class GradeHistorySignalTest(TestCase):
    """Tests for history rows written by the grade signals."""

    def setUp(self):
        self.data = build_course()
        self.student = User.objects.create_user(email='s@example.com')
        self.teacher = User.objects.create_user(email='t@example.com')

    def test_insert_update_delete_history(self):
        lab1 = self.data['lab1']
        lab1.update_final_grade(self.student, Decimal('10'), source='test', logged_user=self.teacher)
        lab1.update_final_grade(self.student, Decimal('15'), source='test', logged_user=self.teacher)
        GradeGrade.objects.get(item=lab1, user=self.student).delete()

        history = list(GradeGradeHistory.objects.filter(item=lab1, user=self.student))
        self.assertEqual([row.action for row in history], ['INSERT', 'UPDATE', 'DELETE'])
        self.assertEqual(history[1].final_grade, Decimal('15'))
        self.assertEqual(history[0].source, 'test')
        self.assertEqual(history[0].logged_user, self.teacher)

    def test_signals_disabled(self):
        with signals_disabled():
            self.data['lab1'].update_final_grade(self.student, Decimal('10'))
        self.assertFalse(GradeGradeHistory.objects.exists())

    def test_history_as_grade(self):
        self.data['exam'].update_final_grade(self.student, Decimal('64'), feedback='Solid')
        row = GradeGradeHistory.objects.get()
        grade = row.as_grade()
        self.assertEqual(grade.pk, row.old_id)
        self.assertEqual(grade.final_grade, Decimal('64'))
        self.assertEqual(grade.feedback, 'Solid')
        self.assertEqual(grade.user_id, self.student.pk)


class FormattingTest(TestCase):
    """Tests for grade formatting helpers."""

    def setUp(self):
        self.data = build_course()

    def test_format_float(self):
        self.assertEqual(format_float(Decimal('12.345'), 2), '12.35')
        self.assertEqual(format_float(7, 0), '7')
        self.assertEqual(format_float(None), '')

    def test_unformat_float(self):
        self.assertEqual(unformat_float('12,5'), Decimal('12.5'))
        self.assertEqual(unformat_float(' 8 '), Decimal('8'))
        self.assertIsNone(unformat_float(''))
        with self.assertRaises(ValueError):
            unformat_float('abc')

    def test_format_gradevalue_display_types(self):
        lab1 = self.data['lab1']
        self.assertEqual(format_gradevalue(Decimal('10'), lab1), '10.00')
        self.assertEqual(format_gradevalue(Decimal('10'), lab1, GradeItem.DISPLAY_PERCENTAGE), '50.00 %')
        self.assertEqual(format_gradevalue(Decimal('19'), lab1, GradeItem.DISPLAY_LETTER), 'A')
        self.assertEqual(format_gradevalue(None, lab1), '-')

    def test_format_gradevalue_scale(self):
        scale = Scale.objects.create(name='Levels', items='Poor, Fair, Good')
        item = GradeItem.objects.create(
            course=self.data['course'], category=self.data['root'], name='Effort',
            grade_type=GradeItem.GRADE_TYPE_SCALE, scale=scale
        )
        self.assertEqual(format_gradevalue(Decimal('2'), item), 'Fair')
        self.assertEqual(format_gradevalue(Decimal('9'), item), '-')

    def test_shorten_text(self):
        self.assertEqual(shorten_text('Short name', 30), 'Short name')
        shortened = shorten_text('A rather long grade item name for testing', 20)
        self.assertTrue(shortened.endswith('...'))
        self.assertLessEqual(len(shortened), 20)
        self.assertEqual(shorten_text('Supercalifragilistic', 10), 'Superca...')


class GradeTreeTest(TestCase):
    """Tests for the grade tree columns and header levels."""

    def setUp(self):
        self.data = build_course()
        self.course = self.data['course']

    def item_ids(self, tree):
        return list(tree.get_items().keys())

    def test_items_with_totals_last(self):
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_LAST)
        d = self.data
        self.assertEqual(self.item_ids(tree), [
            d['lab1'].pk, d['lab2'].pk, d['labs_item'].pk, d['exam'].pk, d['course_item'].pk
        ])

    def test_items_with_totals_first(self):
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_FIRST)
        d = self.data
        self.assertEqual(self.item_ids(tree), [
            d['course_item'].pk, d['labs_item'].pk, d['lab1'].pk, d['lab2'].pk, d['exam'].pk
        ])

    def test_levels(self):
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_LAST)
        levels = tree.get_levels()
        self.assertEqual(len(levels), 3)

        self.assertEqual([(e['type'], e['colspan']) for e in levels[0]], [('category', 5)])
        self.assertEqual(
            [(e['type'], e['colspan']) for e in levels[1]],
            [('category', 3), ('filler', 1), ('fillerlast', 1)]
        )
        self.assertEqual(
            [e['type'] for e in levels[2]],
            ['item', 'item', 'categoryitem', 'item', 'courseitem']
        )
        self.assertEqual(levels[1][0]['eid'], f"c{self.data['labs'].pk}")

    def test_levels_totals_first(self):
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_FIRST)
        self.assertEqual(
            [(e['type'], e['colspan']) for e in tree.get_levels()[1]],
            [('fillerfirst', 1), ('category', 3), ('filler', 1)]
        )

    def test_adjacent_fillers_merge(self):
        GradeItem.objects.create(course=self.course, category=self.data['root'], name='Quiz', sort_order=3)
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_LAST)
        self.assertEqual(
            [(e['type'], e['colspan']) for e in tree.get_levels()[1]],
            [('category', 3), ('filler', 2), ('fillerlast', 1)]
        )

    def test_aggregates_only(self):
        labs = self.data['labs']
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_LAST, {'aggregatesonly': [labs.pk], 'gradesonly': []})
        d = self.data
        self.assertEqual(self.item_ids(tree), [d['labs_item'].pk, d['exam'].pk, d['course_item'].pk])
        self.assertEqual(tree.get_levels()[1][0]['colspan'], 1)

    def test_grades_only(self):
        labs = self.data['labs']
        tree = GradeTree(self.course, Course.AGGREGATION_POSITION_LAST, {'aggregatesonly': [], 'gradesonly': [labs.pk]})
        self.assertNotIn(self.data['labs_item'].pk, tree.get_items())
        self.assertIn(self.data['lab1'].pk, tree.get_items())
        # Hidden columns are still known to the tree
        self.assertEqual(tree.get_item(self.data['labs_item'].pk), self.data['labs_item'])

    def test_empty_course(self):
        course = Course.objects.create(name='Empty', short_name='EMPTY')
        tree = GradeTree(course)
        self.assertEqual(tree.get_items(), {})
        self.assertEqual(tree.get_levels(), [])

    def test_grade_eid_and_parse(self):
        tree = GradeTree(self.course)
        grade = GradeGrade(item_id=7, user_id=3)
        self.assertEqual(tree.get_grade_eid(grade), 'n7u3')
        self.assertEqual(parse_eid('c4'), ('category', 4))
        self.assertEqual(parse_eid('i12'), ('item', 12))
        self.assertEqual(parse_eid('n7u3'), ('grade', (7, 3)))
        for bad in ['', 'x1', 'c', 'c1x', None]:
            with self.assertRaises(ValueError):
                parse_eid(bad)

    def test_element_header_icon(self):
        tree = GradeTree(self.course)
        element = tree.get_levels()[-1][0]
        header = tree.get_element_header(element, icon=True)
        self.assertIn('mod-assign', header)
        self.assertIn('Lab 1', header)
        self.assertNotIn('mod-assign', tree.get_element_header(element, icon=False))


class HidingTest(TestCase):
    """Tests for totals affected by hidden grades."""

    def setUp(self):
        self.data = build_course()
        self.items = GradeTree(self.data['course']).all_items

    def test_nothing_hidden(self):
        result = get_hiding_affected({}, self.items)
        self.assertEqual(result, {'altered': {}, 'unknown': []})

    def test_hidden_grade_hides_parent_totals(self):
        lab1 = self.items[self.data['lab1'].pk]
        grades = {lab1.pk: GradeGrade(item=lab1, final_grade=Decimal('5'), hidden=True)}
        result = get_hiding_affected(grades, self.items)
        self.assertCountEqual(result['unknown'], [self.data['labs_item'].pk, self.data['course_item'].pk])

    def test_hidden_item_in_course_category(self):
        self.items[self.data['exam'].pk].hidden = True
        result = get_hiding_affected({}, self.items)
        self.assertEqual(result['unknown'], [self.data['course_item'].pk])

    def test_hidden_category_total(self):
        self.items[self.data['labs_item'].pk].hidden = True
        result = get_hiding_affected({}, self.items)
        self.assertEqual(result['unknown'], [self.data['course_item'].pk])


class PreferencesTest(TestCase):
    """Tests for stored report preferences and collapsed categories."""

    def setUp(self):
        self.user = User.objects.create_user(email='t@example.com')

    def test_set_and_get(self):
        set_user_preferences(self.user, {'grade_report_studentsperpage': 20})
        self.assertEqual(get_user_preference(self.user, 'grade_report_studentsperpage'), '20')
        self.assertEqual(get_user_preference(self.user, 'missing', 'x'), 'x')

    def test_collapse_cycle(self):
        process_collapse_action(self.user, 'c5', 'switch_minus')
        self.assertEqual(load_collapsed(self.user), {'aggregatesonly': [5], 'gradesonly': []})

        process_collapse_action(self.user, 'c5', 'switch_plus')
        self.assertEqual(load_collapsed(self.user), {'aggregatesonly': [], 'gradesonly': [5]})

        process_collapse_action(self.user, 'c5', 'switch_whole')
        self.assertEqual(load_collapsed(self.user), {'aggregatesonly': [], 'gradesonly': []})

    def test_switch_minus_twice_keeps_one_entry(self):
        process_collapse_action(self.user, 'c5', 'switch_minus')
        process_collapse_action(self.user, 'c5', 'switch_minus')
        self.assertEqual(load_collapsed(self.user)['aggregatesonly'], [5])

    def test_invalid_target_and_action_ignored(self):
        self.assertTrue(process_collapse_action(self.user, 'bogus', 'switch_minus'))
        self.assertTrue(process_collapse_action(self.user, 'c5', 'explode'))
        self.assertFalse(UserPreference.objects.filter(user=self.user).exists())

    def test_corrupt_collapsed_preference(self):
        set_user_preferences(self.user, {COLLAPSED_PREFERENCE: 'a:1:{not json'})
        self.assertEqual(load_collapsed(self.user), {'aggregatesonly': [], 'gradesonly': []})


class UnenrolledReportTest(ReportFixtureMixin, TestCase):
    """Tests for loading users and grades into the report."""

    def test_load_users_excludes_enrolled(self):
        report = self.make_report()
        users = report.load_users()
        self.assertEqual(users, [self.adams, self.brown, self.clark])
        self.assertEqual(report.numusers, 3)

    def test_load_users_idempotent(self):
        report = self.make_report()
        first = report.load_users()
        with self.assertNumQueries(0):
            self.assertIs(report.load_users(), first)

    def test_default_sort_state(self):
        report = self.make_report()
        self.assertEqual((report.sortitemid, report.sortorder), ('lastname', 'ASC'))

    def test_sort_toggles_on_same_column(self):
        report = self.make_report(sortitemid='firstname')
        self.assertEqual(report.sortorder, 'ASC')
        report = self.make_report(sortitemid='firstname')
        self.assertEqual(report.sortorder, 'DESC')
        self.assertEqual(self.session[SORT_SESSION_KEY], {'sort': 'DESC', 'sortitemid': 'firstname'})

        report = self.make_report(sortitemid='email')
        self.assertEqual(report.sortorder, 'DESC')
        # Paging keeps the stored sort
        report = self.make_report()
        self.assertEqual((report.sortitemid, report.sortorder), ('email', 'DESC'))

    def test_sort_by_idnumber(self):
        self.session[SORT_SESSION_KEY] = {'sortitemid': 'idnumber', 'sort': 'ASC'}
        users = self.make_report().load_users()
        self.assertEqual(users, [self.brown, self.clark, self.adams])

    def test_sort_by_grade_puts_ungraded_last(self):
        report = self.make_report(sortitemid=str(self.data['lab1'].pk))
        self.assertEqual(report.sortorder, 'DESC')
        self.assertEqual(report.load_users(), [self.brown, self.adams, self.clark])

        report = self.make_report(sortitemid=str(self.data['lab1'].pk))
        self.assertEqual(report.sortorder, 'ASC')
        self.assertEqual(report.load_users(), [self.adams, self.brown, self.clark])

    def test_sort_by_grade_ties_by_name(self):
        self.data['lab1'].update_final_grade(self.brown, Decimal('12'))
        report = self.make_report(sortitemid=str(self.data['lab1'].pk))
        self.assertEqual(report.sortorder, 'DESC')
        self.assertEqual(report.load_users(), [self.adams, self.brown, self.clark])

    def test_sort_by_grade_ignores_hidden_grades(self):
        lab1 = self.data['lab1']
        self.hide_grade(lab1, self.brown)

        report = self.make_report(sortitemid=str(lab1.pk), can_view_hidden=False)
        self.assertEqual(report.load_users(), [self.adams, self.brown, self.clark])

        self.session.clear()
        report = self.make_report(sortitemid=str(lab1.pk), can_view_hidden=True)
        self.assertEqual(report.load_users(), [self.brown, self.adams, self.clark])

    def test_sort_by_hidden_item(self):
        lab1 = self.data['lab1']
        lab1.hidden = True
        lab1.save()
        self.data['lab1'].update_final_grade(self.clark, Decimal('19'))
        report = self.make_report(sortitemid=str(lab1.pk), can_view_hidden=False)
        self.assertEqual(report.load_users(), [self.adams, self.brown, self.clark])

    def test_invalid_aggregation_position_preference(self):
        set_user_preferences(self.viewer, {'grade_report_aggregationposition': 'sideways'})
        report = self.make_report()
        self.assertEqual(report.get_pref('aggregationposition'), Course.AGGREGATION_POSITION_LAST)
        self.assertEqual(list(report.gtree.get_items())[-1], self.data['course_item'].pk)

        self.course.aggregation_position = Course.AGGREGATION_POSITION_FIRST
        self.course.save()
        set_user_preferences(self.viewer, {'grade_report_aggregationposition': '7'})
        report = self.make_report()
        self.assertEqual(report.get_pref('aggregationposition'), Course.AGGREGATION_POSITION_FIRST)

    def test_paging(self):
        set_user_preferences(self.viewer, {'grade_report_studentsperpage': 2})
        report = self.make_report(page=1)
        self.assertEqual(report.load_users(), [self.clark])
        self.assertEqual(report.numusers, 3)

        report = self.make_report(page=9)
        report.load_users()
        self.assertEqual(report.page, 1)

    def test_load_final_grades_uses_latest_history(self):
        lab1 = self.data['lab1']
        lab1.update_final_grade(self.adams, Decimal('14'))
        # Removing the current grade keeps the history
        GradeGrade.objects.filter(item=lab1, user=self.adams).delete()

        report = self.make_report()
        report.load_users()
        grades = report.load_final_grades()
        self.assertEqual(grades[self.adams.pk][lab1.pk].final_grade, Decimal('14'))
        self.assertEqual(grades[self.brown.pk][lab1.pk].final_grade, Decimal('18'))

    def test_load_final_grades_backfills(self):
        report = self.make_report()
        report.load_users()
        grades = report.load_final_grades()
        empty = grades[self.brown.pk][self.data['exam'].pk]
        self.assertIsNone(empty.final_grade)
        self.assertIsNone(empty.pk)
        self.assertEqual(set(grades[self.brown.pk]), set(report.gtree.get_items()))

    def test_get_pref_falls_back_to_site_and_course(self):
        report = self.make_report()
        self.assertEqual(report.get_pref('repeatheaders'), 10)
        self.assertEqual(report.get_pref('aggregationposition'), Course.AGGREGATION_POSITION_LAST)

        self.course.aggregation_position = Course.AGGREGATION_POSITION_FIRST
        self.course.save()
        report = self.make_report()
        self.assertEqual(report.get_pref('aggregationposition'), Course.AGGREGATION_POSITION_FIRST)

        set_user_preferences(self.viewer, {'grade_report_aggregationposition': Course.AGGREGATION_POSITION_LAST})
        report = self.make_report()
        self.assertEqual(report.get_pref('aggregationposition'), Course.AGGREGATION_POSITION_LAST)


class ProcessDataTest(ReportFixtureMixin, TestCase):
    """Tests for saving posted grades and feedback."""

    def test_changed_grade_saved(self):
        lab1 = self.data['lab1']
        warnings = self.make_report().process_data({'grade': {self.adams.pk: {lab1.pk: '15'}}})
        self.assertEqual(warnings, [])
        self.assertEqual(GradeGrade.objects.get(item=lab1, user=self.adams).final_grade, Decimal('15'))
        latest = GradeGradeHistory.objects.filter(item=lab1, user=self.adams).last()
        self.assertEqual(latest.source, 'gradebook')
        self.assertEqual(latest.logged_user, self.viewer)

    def test_unchanged_grade_skipped(self):
        lab1 = self.data['lab1']
        before = GradeGradeHistory.objects.count()
        self.make_report().process_data({'grade': {self.adams.pk: {lab1.pk: '12.00'}}})
        self.make_report().process_data({'grade': {self.brown.pk: {self.data['exam'].pk: '-1'}}})
        self.assertEqual(GradeGradeHistory.objects.count(), before)

    def test_out_of_range_warnings(self):
        lab1 = self.data['lab1']
        warnings = self.make_report().process_data({'grade': {self.adams.pk: {lab1.pk: '25'}}})
        self.assertEqual(warnings, ['Ann Adams: grade for Lab 1 is greater than the maximum'])
        self.assertEqual(GradeGrade.objects.get(item=lab1, user=self.adams).final_grade, Decimal('20'))

        warnings = self.make_report().process_data({'grade': {self.adams.pk: {lab1.pk: '-3'}}})
        self.assertEqual(warnings, ['Ann Adams: grade for Lab 1 is less than the minimum'])

    def test_invalid_number_warns(self):
        warnings = self.make_report().process_data({'grade': {self.adams.pk: {self.data['lab1'].pk: 'ten'}}})
        self.assertEqual(len(warnings), 1)
        self.assertIn('invalid grade', warnings[0])

    def test_unknown_item(self):
        other = Course.objects.create(name='Other', short_name='OTH')
        foreign = GradeItem.objects.create(course=other, name='Foreign')
        with self.assertRaises(GradeItem.DoesNotExist):
            self.make_report().process_data({'grade': {self.adams.pk: {foreign.pk: '5'}}})

    def test_enrolled_user_ignored(self):
        lab1 = self.data['lab1']
        self.make_report().process_data({'grade': {self.enrolled.pk: {lab1.pk: '1'}}})
        self.assertEqual(GradeGrade.objects.get(item=lab1, user=self.enrolled).final_grade, Decimal('20'))

    def test_feedback(self):
        exam = self.data['exam']
        self.make_report().process_data({'feedback': {self.adams.pk: {exam.pk: 'Revise chapter 3'}}})
        self.assertEqual(GradeGrade.objects.get(item=exam, user=self.adams).feedback, 'Revise chapter 3')

        before = GradeGradeHistory.objects.count()
        self.make_report().process_data({'feedback': {self.brown.pk: {exam.pk: ''}}})
        self.assertEqual(GradeGradeHistory.objects.count(), before)

        self.make_report().process_data({'feedback': {self.adams.pk: {exam.pk: '   '}}})
        self.assertIsNone(GradeGrade.objects.get(item=exam, user=self.adams).feedback)

    def test_user_graded_signal(self):
        received = []

        def receiver(sender, grade, **kwargs):
            received.append((grade.user_id, grade.final_grade))

        user_graded.connect(receiver)
        self.addCleanup(user_graded.disconnect, receiver)

        lab1 = self.data['lab1']
        self.make_report().process_data({'grade': {self.brown.pk: {lab1.pk: '9'}}})
        self.assertEqual(received, [(self.brown.pk, Decimal('9'))])

    def test_category_total_override(self):
        labs_item = self.data['labs_item']
        self.make_report().process_data({'grade': {self.adams.pk: {labs_item.pk: '80'}}})
        self.assertTrue(GradeGrade.objects.get(item=labs_item, user=self.adams).overridden)

    def test_grades_reloaded_after_change(self):
        report = self.make_report()
        report.process_data({'grade': {self.adams.pk: {self.data['lab1'].pk: '16'}}})
        self.assertIsNone(report.grades)
        grades = report.load_final_grades()
        self.assertEqual(grades[self.adams.pk][self.data['lab1'].pk].final_grade, Decimal('16'))


    def make_scale_item(self):
        scale = Scale.objects.create(name='Effort', items='Poor,Fair,Good', course=self.course)
        item = GradeItem.objects.create(
            course=self.course, category=self.data['root'], name='Effort',
            grade_type=GradeItem.GRADE_TYPE_SCALE, scale=scale,
            grade_min=Decimal('1'), grade_max=Decimal('3'), sort_order=3
        )
        item.update_final_grade(self.adams, Decimal('2'))
        return item

    def test_scale_grade_compared_as_integer(self):
        effort = self.make_scale_item()
        before = GradeGradeHistory.objects.count()
        warnings = self.make_report().process_data({'grade': {self.adams.pk: {effort.pk: '2'}}})
        self.assertEqual(warnings, [])
        self.assertEqual(GradeGradeHistory.objects.count(), before)

        self.make_report().process_data({'grade': {self.adams.pk: {effort.pk: '3'}}})
        self.assertEqual(GradeGrade.objects.get(item=effort, user=self.adams).final_grade, Decimal('3'))

    def test_scale_minus_one_clears_grade(self):
        effort = self.make_scale_item()
        self.make_report().process_data({'grade': {self.adams.pk: {effort.pk: '-1'}}})
        self.assertIsNone(GradeGrade.objects.get(item=effort, user=self.adams).final_grade)

    def test_scale_invalid_value(self):
        effort = self.make_scale_item()
        warnings = self.make_report().process_data({'grade': {self.adams.pk: {effort.pk: 'Good'}}})
        self.assertEqual(warnings, ['Ann Adams: invalid grade for Effort'])
        self.assertEqual(GradeGrade.objects.get(item=effort, user=self.adams).final_grade, Decimal('2'))

    def test_quick_grading_feedback_ignores_line_breaks(self):
        exam = self.data['exam']
        exam.update_final_grade(self.adams, feedback='Good start.\nRevise optics.')
        before = GradeGradeHistory.objects.count()
        self.make_report().process_data({'feedback': {self.adams.pk: {exam.pk: 'Good start.Revise optics.'}}})
        self.assertEqual(GradeGradeHistory.objects.count(), before)

        with override_settings(GRADEBOOK_REPORT_QUICKGRADING=0):
            self.make_report().process_data({'feedback': {self.adams.pk: {exam.pk: 'Good start.Revise optics.'}}})
        self.assertEqual(
            GradeGrade.objects.get(item=exam, user=self.adams).feedback,
            'Good start.Revise optics.'
        )


class ReportTableTest(ReportFixtureMixin, TestCase):
    """Tests for the rows and cells of the report table."""

    def test_row_counts_match(self):
        report = self.make_report()
        left, right = report.get_left_rows(), report.get_right_rows()
        # two filler rows, one header row, three users
        self.assertEqual(len(left), 6)
        self.assertEqual(len(right), 6)
        self.assertEqual(left[2].cells[0].id, 'studentheader')
        self.assertEqual(left[3].id, f"fixed_user_{self.adams.pk}")
        self.assertEqual(left[3].classes, ['odd'])
        self.assertEqual(left[4].classes, ['even'])

    def test_repeat_headers(self):
        set_user_preferences(self.viewer, {'grade_report_repeatheaders': 2})
        report = self.make_report()
        left, right = report.get_left_rows(), report.get_right_rows()
        self.assertEqual(len(left), 8)
        self.assertEqual(len(right), 8)
        self.assertEqual(left[6].classes, ['heading'])

    def test_repeat_headers_disabled(self):
        set_user_preferences(self.viewer, {'grade_report_repeatheaders': 0, 'grade_report_studentsperpage': 0})
        report = self.make_report()
        self.assertEqual(len(report.get_left_rows()), 6)

    def test_grade_cells(self):
        report = self.make_report()
        rows = report.get_right_rows()
        exam = self.data['exam']

        cell = find_cell(rows, f"u{self.adams.pk}i{exam.pk}")
        self.assertIn('grade', cell.classes)
        self.assertIn('grade_type_value', cell.classes)
        self.assertIn('40.00', cell.text)
        self.assertIn('gradefail', cell.text)

        cell = find_cell(rows, f"u{self.clark.pk}i{exam.pk}")
        self.assertIn('gradepass', cell.text)

        cell = find_cell(rows, f"u{self.brown.pk}i{exam.pk}")
        self.assertIn('>-<', cell.text)

    def test_total_cell_classes(self):
        labs_item = self.data['labs_item']
        labs_item.update_final_grade(self.adams, Decimal('70'))
        rows = self.make_report().get_right_rows()
        cell = find_cell(rows, f"u{self.adams.pk}i{labs_item.pk}")
        self.assertIn('cat', cell.classes)
        self.assertIn('overridden', cell.classes)
        self.assertIn('Overridden', cell.text)
        cell = find_cell(rows, f"u{self.adams.pk}i{self.data['course_item'].pk}")
        self.assertIn('course', cell.classes)

    def test_hidden_grades_for_viewer_without_permission(self):
        lab1 = self.data['lab1']
        lab1.hidden = True
        lab1.save()

        rows = self.make_report(can_view_hidden=False).get_right_rows()
        self.assertEqual(find_cell(rows, f"u{self.adams.pk}i{lab1.pk}").text, '-')
        labs_total = find_cell(rows, f"u{self.adams.pk}i{self.data['labs_item'].pk}")
        self.assertIn('>-<', labs_total.text)

        rows = self.make_report(can_view_hidden=True).get_right_rows()
        cell = find_cell(rows, f"u{self.adams.pk}i{lab1.pk}")
        self.assertIn('12.00', cell.text)
        self.assertIn('hidden', cell.text)

    def test_hidden_item_header_dimmed(self):
        lab1 = self.data['lab1']
        lab1.hidden = True
        lab1.save()
        rows = self.make_report().get_right_rows()
        item_cells = rows[2].cells
        self.assertIn('dimmed_text', item_cells[0].classes)
        self.assertNotIn('dimmed_text', item_cells[1].classes)

    def test_needs_update_shows_error(self):
        exam = self.data['exam']
        exam.needs_update = True
        exam.save()
        rows = self.make_report().get_right_rows()
        self.assertIn('Error', find_cell(rows, f"u{self.adams.pk}i{exam.pk}").text)

    def test_js_arguments(self):
        report = self.make_report()
        report.get_right_rows()
        args = report.js_arguments
        self.assertEqual(args['cfg']['courseid'], self.course.pk)
        self.assertEqual(args['items'][self.data['lab1'].pk]['type'], 'value')
        self.assertIn({'user': self.adams.pk, 'item': self.data['lab1'].pk, 'grade': '12.00'}, args['grades'])
        self.assertEqual(args['users'][self.brown.pk], 'Ben Brown')

    def test_grade_table(self):
        report = self.make_report()
        table = report.get_table()
        self.assertEqual(table.id, 'user-grades')
        self.assertEqual(len(table.rows), 6)
        # filler cell + course category cell
        self.assertEqual(len(table.rows[0].cells), 2)
        html = self.make_report().get_grade_table()
        self.assertIn('id="user-grades"', html)
        self.assertIn('grade-report-data', html)

    def test_sort_arrows(self):
        report = self.make_report(sortitemid='lastname')
        arrows = report.get_sort_arrows(['email'])
        self.assertIn('sortitemid=firstname', arrows['studentname'])
        self.assertIn('sort-asc', arrows['studentname'])
        self.assertIn('sortitemid=email', arrows['email'])
        self.assertNotIn('sort-', arrows['email'])

    def test_collapsing_icon(self):
        labs = self.data['labs']
        element = {'type': 'category', 'object': labs, 'eid': f"c{labs.pk}"}
        self.assertIn('switch_minus', self.make_report().get_collapsing_icon(element))

        process_collapse_action(self.viewer, f"c{labs.pk}", 'switch_minus')
        self.assertIn('switch_plus', self.make_report().get_collapsing_icon(element))

        process_collapse_action(self.viewer, f"c{labs.pk}", 'switch_plus')
        self.assertIn('switch_whole', self.make_report().get_collapsing_icon(element))

        self.assertEqual(self.make_report().get_collapsing_icon({'type': 'item'}), '')

    def test_collapsed_category_total_stays_unknown(self):
        labs, labs_item = self.data['labs'], self.data['labs_item']
        labs_item.update_final_grade(self.adams, Decimal('70'))
        self.hide_grade(self.data['lab1'], self.adams)
        cell_id = f"u{self.adams.pk}i{labs_item.pk}"

        rows = self.make_report(can_view_hidden=False).get_right_rows()
        self.assertIn('>-<', find_cell(rows, cell_id).text)

        process_collapse_action(self.viewer, f"c{labs.pk}", 'switch_minus')
        report = self.make_report(can_view_hidden=False)
        self.assertNotIn(self.data['lab1'].pk, report.gtree.get_items())
        cell = find_cell(report.get_right_rows(), cell_id)
        self.assertIn('>-<', cell.text)
        self.assertNotIn('70.00', cell.text)
        course_cell = find_cell(report.get_right_rows(), f"u{self.adams.pk}i{self.data['course_item'].pk}")
        self.assertIn('>-<', course_cell.text)

        cell = find_cell(self.make_report(can_view_hidden=True).get_right_rows(), cell_id)
        self.assertIn('70.00', cell.text)

    @override_settings(GRADEBOOK_HIDDEN_AS_DATE=True)
    def test_hidden_grade_shown_as_submission_date(self):
        lab1 = self.data['lab1']
        submitted = timezone.now() - timedelta(days=3)
        self.hide_grade(lab1, self.adams, time_submitted=submitted)
        self.hide_grade(lab1, self.brown)

        rows = self.make_report(can_view_hidden=False).get_right_rows()
        self.assertIn('datesubmitted', find_cell(rows, f"u{self.adams.pk}i{lab1.pk}").text)
        # Nothing submitted
        self.assertEqual(find_cell(rows, f"u{self.brown.pk}i{lab1.pk}").text, '-')

    def test_hidden_grade_without_date_setting(self):
        lab1 = self.data['lab1']
        self.hide_grade(lab1, self.adams, time_submitted=timezone.now())
        rows = self.make_report(can_view_hidden=False).get_right_rows()
        self.assertEqual(find_cell(rows, f"u{self.adams.pk}i{lab1.pk}").text, '-')

    def test_analysis_icon(self):
        lab1, exam = self.data['lab1'], self.data['exam']
        rows = self.make_report().get_right_rows()
        self.assertNotIn('gradeanalysis', find_cell(rows, f"u{self.adams.pk}i{lab1.pk}").text)

        set_user_preferences(self.viewer, {'grade_report_showanalysisicon': 1})
        rows = self.make_report().get_right_rows()
        text = find_cell(rows, f"u{self.adams.pk}i{lab1.pk}").text
        self.assertIn('gradeanalysis', text)
        self.assertIn(reverse('admin:gradebook_gradegradehistory_changelist'), text)
        self.assertIn(f"item__id__exact={lab1.pk}", text)
        self.assertIn(f"user__id__exact={self.adams.pk}", text)
        # Never graded
        self.assertNotIn('gradeanalysis', find_cell(rows, f"u{self.brown.pk}i{exam.pk}").text)

    def test_weighted_percents_in_headers(self):
        lab1 = self.data['lab1']
        rows = self.make_report().get_right_rows()
        self.assertNotIn('%)', rows[2].cells[0].text)

        set_user_preferences(self.viewer, {'grade_report_showweightedpercents': 1})
        rows = self.make_report().get_right_rows()
        item_cells = rows[2].cells
        self.assertIn(f"i{lab1.pk}", item_cells[0].classes)
        self.assertIn('(40.00%)', item_cells[0].text)
        self.assertIn('(60.00%)', item_cells[1].text)


class WeightedPercentsTest(TestCase):
    """Tests for item weight shares shown in the headers."""

    def setUp(self):
        self.data = build_course()
        self.viewer = User.objects.create_user(email='t@example.com')
        self.report = UnenrolledReport(self.data['course'], self.viewer, {})

    def fresh(self, key):
        return GradeItem.objects.get(pk=self.data[key].pk)

    def test_simple_weighted_mean(self):
        self.assertEqual(self.report.get_weighted_percents(self.fresh('lab1')), ' (40.00%) ')
        self.assertEqual(self.report.get_weighted_percents(self.fresh('lab2')), ' (60.00%) ')

    def test_no_weight(self):
        # The course category uses a plain mean
        self.assertEqual(self.report.get_weighted_percents(self.fresh('exam')), '')
        self.assertEqual(self.report.get_weighted_percents(self.fresh('course_item')), '')
        self.assertEqual(self.report.get_weighted_percents(self.fresh('labs_item')), '')

    def test_weighted_mean_category_item(self):
        root = self.data['root']
        root.aggregation = GradeCategory.AGGREGATE_WEIGHTED_MEAN
        root.save()
        GradeItem.objects.filter(pk=self.data['labs_item'].pk).update(aggregation_coef=Decimal('40'))
        GradeItem.objects.filter(pk=self.data['exam'].pk).update(aggregation_coef=Decimal('60'))

        self.assertEqual(self.report.get_weighted_percents(self.fresh('labs_item')), ' (40.00%) ')
        self.assertEqual(self.report.get_weighted_percents(self.fresh('exam')), ' (60.00%) ')

    def test_extra_credit_discarded(self):
        labs = self.data['labs']
        labs.aggregation = GradeCategory.AGGREGATE_SUM
        labs.save()
        GradeItem.objects.filter(pk=self.data['lab2'].pk).update(aggregation_coef=Decimal('1'))

        self.assertEqual(self.report.get_weighted_percents(self.fresh('lab2')), '')
        self.assertEqual(self.report.get_weighted_percents(self.fresh('lab1')), ' (100.00%) ')

    def test_natural_uses_grade_max(self):
        labs = self.data['labs']
        labs.aggregation = GradeCategory.AGGREGATE_SUM
        labs.save()
        GradeItem.objects.filter(pk=self.data['lab2'].pk).update(grade_min=Decimal('10'))

        self.assertEqual(self.report.get_weighted_percents(self.fresh('lab1')), ' (40.00%) ')
        self.assertEqual(self.report.get_weighted_percents(self.fresh('lab2')), ' (60.00%) ')

    def test_zero_total_weight(self):
        root = self.data['root']
        root.aggregation = GradeCategory.AGGREGATE_WEIGHTED_MEAN
        root.save()
        GradeItem.objects.filter(pk=self.data['labs_item'].pk).update(aggregation_coef=Decimal('40'))
        GradeItem.objects.filter(pk=self.data['exam'].pk).update(aggregation_coef=Decimal('-40'))

        self.assertEqual(self.report.get_weighted_percents(self.fresh('labs_item')), ' (0.00%) ')


class ReportFormsTest(TestCase):
    """Tests for the preferences form and posted grade parsing."""

    def setUp(self):
        self.course = Course.objects.create(name='Physics', short_name='PHY1')
        self.user = User.objects.create_user(email='t@example.com')

    def form_data(self, **overrides):
        data = {
            'studentsperpage': '',
            'repeatheaders': '',
            'aggregationposition': 'default',
            'showuserimage': 'default',
            'showactivityicons': 'default',
            'showweightedpercents': 'default',
        }
        data.update(overrides)
        return data

    def test_default_labels(self):
        form = ReportPreferencesForm(course=self.course, user=self.user)
        self.assertEqual(form.fields['aggregationposition'].choices[0], ('default', 'Default (Last)'))
        self.assertEqual(form.fields['showuserimage'].choices[0], ('default', 'Default (Yes)'))
        self.assertEqual(form.fields['showweightedpercents'].choices[0], ('default', 'Default (No)'))

    def test_save_sets_and_unsets(self):
        form = ReportPreferencesForm(
            self.form_data(studentsperpage='25', showuserimage='0'), course=self.course, user=self.user
        )
        self.assertTrue(form.is_valid(), form.errors)
        form.save()
        self.assertEqual(get_user_preference(self.user, 'grade_report_studentsperpage'), '25')
        self.assertEqual(get_user_preference(self.user, 'grade_report_showuserimage'), '0')

        form = ReportPreferencesForm(self.form_data(), course=self.course, user=self.user)
        self.assertTrue(form.is_valid(), form.errors)
        form.save()
        self.assertFalse(UserPreference.objects.filter(user=self.user).exists())

    def test_initial_from_preferences(self):
        set_user_preferences(self.user, {'grade_report_repeatheaders': '5'})
        form = ReportPreferencesForm(course=self.course, user=self.user)
        self.assertEqual(form.initial['repeatheaders'], '5')
        self.assertEqual(form.initial['showuserimage'], 'default')

    def test_invalid_numbers(self):
        form = ReportPreferencesForm(self.form_data(studentsperpage='many'), course=self.course, user=self.user)
        self.assertFalse(form.is_valid())
        self.assertIn('studentsperpage', form.errors)

        form = ReportPreferencesForm(self.form_data(studentsperpage='-4'), course=self.course, user=self.user)
        self.assertFalse(form.is_valid())

    def test_parse_grade_post(self):
        data = QueryDict('grade_3_7=12&feedback_3_7=ok&grade_4_7=-1&csrfmiddlewaretoken=x&grade_x_1=2')
        self.assertEqual(parse_grade_post(data), {
            'grade': {3: {7: '12'}, 4: {7: '-1'}},
            'feedback': {3: {7: 'ok'}},
        })


class ReportViewTest(ReportFixtureMixin, TestCase):
    """Tests for the report pages."""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.client = Client()
        self.url = reverse('gradebook:report_index', args=[self.course.pk])

    def grant(self, user, *codenames):
        user.user_permissions.add(*Permission.objects.filter(
            content_type__app_label='gradebook', codename__in=codenames
        ))

    def test_login_required(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse('accounts:login'), response.url)

    def test_permission_required(self):
        self.client.force_login(self.viewer)
        self.assertEqual(self.client.get(self.url).status_code, 403)

        self.grant(self.viewer, 'view_unenrolled_report')
        self.assertEqual(self.client.get(self.url).status_code, 403)

    def test_report_renders(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'gradebook/unenrolled/index.html')
        self.assertContains(response, 'Ann Adams')
        self.assertNotContains(response, 'Dan Dean')
        self.assertContains(response, 'user-grades')

    def test_school_admin_passes(self):
        admin = User.objects.create_school_admin(email='admin@example.com', password='pass12345')
        self.client.force_login(admin)
        self.assertEqual(self.client.get(self.url).status_code, 200)

    def test_htmx_partial(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        response = self.client.get(self.url, HTTP_HX_REQUEST='true')
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'gradebook/unenrolled/partials/report_content.html')
        self.assertTemplateNotUsed(response, 'gradebook/unenrolled/index.html')

    def test_missing_course(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        response = self.client.get(reverse('gradebook:report_index', args=[9999]))
        self.assertEqual(response.status_code, 404)

    def test_wrong_method(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        self.assertEqual(self.client.put(self.url).status_code, 405)

    def test_edit_requires_permission(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        key = f"grade_{self.adams.pk}_{self.data['lab1'].pk}"
        response = self.client.post(self.url, {key: '5'})
        self.assertEqual(response.status_code, 403)

    def test_edit_with_warning(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades', 'edit_grades')
        self.client.force_login(self.viewer)
        lab1 = self.data['lab1']
        response = self.client.post(self.url, {f"grade_{self.adams.pk}_{lab1.pk}": '30'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'greater than the maximum')
        self.assertEqual(GradeGrade.objects.get(item=lab1, user=self.adams).final_grade, Decimal('20'))

    def test_edit_unknown_item(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades', 'edit_grades')
        self.client.force_login(self.viewer)
        response = self.client.post(self.url, {f"grade_{self.adams.pk}_9999": '5'})
        self.assertEqual(response.status_code, 404)

    def test_collapse_action(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        labs = self.data['labs']
        response = self.client.post(self.url, {'target': f"c{labs.pk}", 'action': 'switch_minus'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(load_collapsed(self.viewer)['aggregatesonly'], [labs.pk])
        self.assertNotContains(response, 'Lab 1')

    def test_toggle(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        self.client.get(self.url, {'toggle': '0', 'toggle_type': 'userimage'})
        self.assertEqual(get_user_preference(self.viewer, 'grade_report_showuserimage'), '0')

    @override_settings(GRADEBOOK_EDIT_RATE_LIMIT='1/h')
    def test_rate_limited_posts(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades', 'edit_grades')
        self.client.force_login(self.viewer)
        key = f"grade_{self.adams.pk}_{self.data['lab1'].pk}"
        self.assertEqual(self.client.post(self.url, {key: '5'}).status_code, 200)
        self.assertEqual(self.client.post(self.url, {key: '6'}).status_code, 429)
        # Reading is not limited
        self.assertEqual(self.client.get(self.url).status_code, 200)

    def test_preferences_page(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        url = reverse('gradebook:report_preferences', args=[self.course.pk])
        self.assertEqual(self.client.get(url).status_code, 200)

        response = self.client.post(url, {
            'studentsperpage': '2',
            'repeatheaders': '',
            'aggregationposition': 'default',
            'showuserimage': '1',
            'showactivityicons': 'default',
            'showweightedpercents': 'default',
        })
        self.assertRedirects(response, self.url)
        self.assertEqual(get_user_preference(self.viewer, 'grade_report_studentsperpage'), '2')

    def test_preferences_tab_hidden_without_grade_permissions(self):
        self.grant(self.viewer, 'view_unenrolled_report')
        self.client.force_login(self.viewer)
        url = reverse('gradebook:report_preferences', args=[self.course.pk])
        self.assertEqual(self.client.get(url).status_code, 403)

    def test_export(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        response = self.client.get(reverse('gradebook:report_export', args=[self.course.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response['Content-Type'],
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        )
        wb = openpyxl.load_workbook(BytesIO(response.content))
        ws = wb.active
        headers = [cell.value for cell in ws[1]]
        self.assertEqual(headers[:2], ['Name', 'Email address'])
        self.assertIn('Lab 1', headers)
        self.assertEqual(ws.max_row, 4)
        self.assertEqual(ws.cell(row=2, column=1).value, 'Ann Adams')
        self.assertEqual(ws.cell(row=2, column=headers.index('Lab 1') + 1).value, 12.0)

    def test_export_collapsed_total_with_hidden_grade(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        self.data['labs_item'].update_final_grade(self.adams, Decimal('70'))
        self.hide_grade(self.data['lab1'], self.adams)
        process_collapse_action(self.viewer, f"c{self.data['labs'].pk}", 'switch_minus')

        response = self.client.get(reverse('gradebook:report_export', args=[self.course.pk]))
        ws = openpyxl.load_workbook(BytesIO(response.content)).active
        headers = [cell.value for cell in ws[1]]
        self.assertNotIn('Lab 1', headers)
        self.assertEqual(ws.cell(row=2, column=1).value, 'Ann Adams')
        self.assertEqual(ws.cell(row=2, column=headers.index('Labs total') + 1).value, '-')

    def test_index_lists_courses(self):
        self.grant(self.viewer, 'view_unenrolled_report', 'view_all_grades')
        self.client.force_login(self.viewer)
        response = self.client.get(reverse('gradebook:index'))
        self.assertContains(response, 'Physics')
        self.assertContains(response, self.url)
