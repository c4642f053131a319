"""
Management command to seed a demo course for the unenrolled users report.

It builds a small grade tree, grades a few students, then ends some of the
enrolments and removes those students' current grades. The grade history
keeps them, which is what the report reads.

Usage:
    python manage.py seed_unenrolled_demo
    python manage.py seed_unenrolled_demo --force
"""
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group, Permission
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from gradebook.models import (
    Course, CourseEnrolment, Scale, GradeCategory, GradeItem, GradeGrade
)

User = get_user_model()

DEMO_SHORT_NAME = 'DEMO101'

STUDENTS = [
    # email, first name, last name, id number, stays enrolled
    ('ama.mensah@example.com', 'Ama', 'Mensah', 'S001', True),
    ('kofi.owusu@example.com', 'Kofi', 'Owusu', 'S002', True),
    ('esi.asante@example.com', 'Esi', 'Asante', 'S003', False),
    ('yaw.boateng@example.com', 'Yaw', 'Boateng', 'S004', False),
    ('akua.darko@example.com', 'Akua', 'Darko', 'S005', False),
    ('kwame.addo@example.com', 'Kwame', 'Addo', 'S006', False),
]

REPORT_PERMISSIONS = [
    'view_unenrolled_report', 'view_all_grades', 'view_hidden_grades', 'edit_grades',
]


class Command(BaseCommand):
    help = 'Seed a demo course with unenrolled students for the unenrolled users grade report'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Delete and recreate the demo course',
        )

    def handle(self, *args, **options):
        force = options['force']

        existing = Course.objects.filter(short_name=DEMO_SHORT_NAME).first()
        if existing and not force:
            self.stdout.write('Demo course already exists. Use --force to recreate it.')
            return

        with transaction.atomic():
            if existing:
                existing.delete()
            course = self.create_course()
            items = self.create_grade_tree(course)
            students = self.create_students(course)
            self.grade_students(items, students)
            self.unenrol_students(course, students)
            self.create_report_group()

        self.stdout.write(self.style.SUCCESS(f'Successfully seeded demo course {course.short_name}'))

    def create_course(self):
        return Course.objects.create(name='Demo Mathematics', short_name=DEMO_SHORT_NAME)

    def create_grade_tree(self, course):
        """Course category with an assignments category, an exams category and a scale item."""
        root = GradeCategory.objects.create(course=course, name='', aggregation=GradeCategory.AGGREGATE_WEIGHTED_MEAN)
        GradeItem.objects.create(
            course=course, totals_category=root, item_type=GradeItem.TYPE_COURSE, sort_order=100
        )

        assignments = GradeCategory.objects.create(
            course=course, parent=root, name='Assignments',
            aggregation=GradeCategory.AGGREGATE_WEIGHTED_MEAN2, sort_order=1
        )
        GradeItem.objects.create(
            course=course, totals_category=assignments, item_type=GradeItem.TYPE_CATEGORY,
            aggregation_coef=Decimal('40'), sort_order=10
        )
        exams = GradeCategory.objects.create(
            course=course, parent=root, name='Exams',
            aggregation=GradeCategory.AGGREGATE_MEAN, sort_order=2
        )
        GradeItem.objects.create(
            course=course, totals_category=exams, item_type=GradeItem.TYPE_CATEGORY,
            aggregation_coef=Decimal('60'), sort_order=20
        )

        participation = Scale.objects.create(name='Participation', items='Poor,Fair,Good,Excellent', course=course)

        items = [
            GradeItem.objects.create(
                course=course, category=assignments, name='Homework 1', item_type=GradeItem.TYPE_MOD,
                item_module='assign', grade_max=Decimal('20'), grade_pass=Decimal('10'), sort_order=1
            ),
            GradeItem.objects.create(
                course=course, category=assignments, name='Homework 2', item_type=GradeItem.TYPE_MOD,
                item_module='assign', grade_max=Decimal('30'), grade_pass=Decimal('15'), sort_order=2
            ),
            GradeItem.objects.create(
                course=course, category=exams, name='Midterm exam', item_type=GradeItem.TYPE_MOD,
                item_module='quiz', grade_pass=Decimal('50'), sort_order=1
            ),
            GradeItem.objects.create(
                course=course, category=exams, name='Final exam', item_type=GradeItem.TYPE_MOD,
                item_module='quiz', grade_pass=Decimal('50'), sort_order=2
            ),
            GradeItem.objects.create(
                course=course, category=root, name='Class participation', item_type=GradeItem.TYPE_MANUAL,
                grade_type=GradeItem.GRADE_TYPE_SCALE, scale=participation,
                grade_min=Decimal('1'), grade_max=Decimal('4'), sort_order=3
            ),
        ]
        self.stdout.write(f'Created grade tree with {len(items)} items')
        return items

    def create_students(self, course):
        students = []
        start = timezone.now() - timedelta(days=120)
        for email, first_name, last_name, idnumber, stays in STUDENTS:
            user, _ = User.objects.get_or_create(
                email=email,
                defaults={'first_name': first_name, 'last_name': last_name, 'idnumber': idnumber}
            )
            CourseEnrolment.objects.create(course=course, user=user, time_start=start)
            students.append((user, stays))
        return students

    def grade_students(self, items, students):
        homework1, homework2, midterm, final, participation = items
        for index, (user, _) in enumerate(students):
            homework1.update_final_grade(user, Decimal(12 + index), source='seed')
            homework2.update_final_grade(user, Decimal(18 + index * 2), source='seed')
            midterm.update_final_grade(user, Decimal(55 + index * 5), source='seed',
                                       feedback='Good progress' if index % 2 else False)
            if index % 3:
                final.update_final_grade(user, Decimal(48 + index * 6), source='seed')
            participation.update_final_grade(user, Decimal(1 + index % 4), source='seed')

    def unenrol_students(self, course, students):
        """End enrolments and drop the current grades of students who left."""
        ended = timezone.now() - timedelta(days=7)
        leavers = [user for user, stays in students if not stays]
        CourseEnrolment.objects.filter(course=course, user__in=leavers).update(time_end=ended)
        for grade in GradeGrade.objects.filter(item__course=course, user__in=leavers):
            grade.history_source = 'unenrol'
            grade.delete()
        self.stdout.write(f'Unenrolled {len(leavers)} students')

    def create_report_group(self):
        group, _ = Group.objects.get_or_create(name='Grade report viewers')
        permissions = Permission.objects.filter(
            content_type__app_label='gradebook',
            codename__in=REPORT_PERMISSIONS
        )
        group.permissions.add(*permissions)
        self.stdout.write(f'Group "{group.name}" has {permissions.count()} report permissions')
