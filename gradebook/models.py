from django.conf import settings
from django.db import models, transaction
from django.core.validators import MinValueValidator
from django.core.exceptions import ValidationError
from django.utils import timezone
from decimal import Decimal

from . import config


class Course(models.Model):
    """A course owning a gradebook (grade categories, items and enrolments)."""
    AGGREGATION_POSITION_FIRST = 0
    AGGREGATION_POSITION_LAST = 1
    AGGREGATION_POSITION_CHOICES = [
        (AGGREGATION_POSITION_FIRST, 'First'),
        (AGGREGATION_POSITION_LAST, 'Last'),
    ]

    name = models.CharField(max_length=255)
    short_name = models.CharField(max_length=100, unique=True)
    aggregation_position = models.PositiveSmallIntegerField(
        choices=AGGREGATION_POSITION_CHOICES,
        null=True,
        blank=True,
        help_text='Position of category total columns (empty = site default)'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.short_name

    def get_root_category(self):
        return self.grade_categories.filter(parent__isnull=True).first()

    def get_enrolled_user_ids(self, now=None):
        """Ids of users currently enrolled in this course."""
        return set(
            CourseEnrolment.objects.active(now).filter(
                course=self
            ).values_list('user_id', flat=True).distinct()
        )

    class Meta:
        db_table = 'course'
        ordering = ['name']


class CourseEnrolmentQuerySet(models.QuerySet):

    def active(self, now=None):
        """Enrolments that have started and not yet ended."""
        now = now or timezone.now()
        return self.filter(time_start__lt=now).filter(
            models.Q(time_end__isnull=True) | models.Q(time_end__gt=now)
        )


class CourseEnrolment(models.Model):
    """A user's enrolment in a course. An open-ended enrolment has no time_end."""
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='enrolments',
        db_index=True
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='course_enrolments',
        db_index=True
    )
    time_start = models.DateTimeField(default=timezone.now)
    time_end = models.DateTimeField(null=True, blank=True)

    objects = CourseEnrolmentQuerySet.as_manager()

    def __str__(self):
        return f"{self.user} in {self.course}"

    def clean(self):
        if self.time_end and self.time_end <= self.time_start:
            raise ValidationError('Enrolment end must be after its start.')

    class Meta:
        db_table = 'course_enrolment'
        ordering = ['course', 'time_start']
        indexes = [
            models.Index(fields=['course', 'user'], name='enrolment_course_user_idx'),
        ]


class Scale(models.Model):
    """A named list of grade labels, lowest first (e.g. "Fail,Pass,Merit")."""
    name = models.CharField(max_length=255)
    items = models.TextField(help_text='Comma separated scale labels, lowest first')
    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='scales',
        null=True,
        blank=True,
        help_text='Empty for site-wide scales'
    )

    def __str__(self):
        return self.name

    def get_items(self):
        return [item.strip() for item in self.items.split(',') if item.strip()]

    class Meta:
        db_table = 'scale'
        ordering = ['name']


class GradeCategory(models.Model):
    """
    A node of the course's grade tree. The root category (no parent) is totalled
    by the course item; every other category by its own category item.
    """
    AGGREGATE_MEAN = 0
    AGGREGATE_MEDIAN = 2
    AGGREGATE_MIN = 4
    AGGREGATE_MAX = 6
    AGGREGATE_MODE = 8
    AGGREGATE_WEIGHTED_MEAN = 10
    AGGREGATE_WEIGHTED_MEAN2 = 11
    AGGREGATE_EXTRACREDIT_MEAN = 12
    AGGREGATE_SUM = 13
    AGGREGATION_CHOICES = [
        (AGGREGATE_MEAN, 'Mean of grades'),
        (AGGREGATE_MEDIAN, 'Median of grades'),
        (AGGREGATE_MIN, 'Lowest grade'),
        (AGGREGATE_MAX, 'Highest grade'),
        (AGGREGATE_MODE, 'Mode of grades'),
        (AGGREGATE_WEIGHTED_MEAN, 'Weighted mean of grades'),
        (AGGREGATE_WEIGHTED_MEAN2, 'Simple weighted mean of grades'),
        (AGGREGATE_EXTRACREDIT_MEAN, 'Mean of grades (with extra credits)'),
        (AGGREGATE_SUM, 'Natural'),
    ]

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='grade_categories',
        db_index=True
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True
    )
    name = models.CharField(max_length=255)
    aggregation = models.PositiveSmallIntegerField(
        choices=AGGREGATION_CHOICES,
        default=AGGREGATE_MEAN
    )
    depth = models.PositiveSmallIntegerField(
        default=1,
        help_text='1 for the course category, computed from the parent on save'
    )
    extra_credit_used = models.BooleanField(
        default=False,
        help_text='Whether extra credit items count in simple weighted mean aggregation'
    )
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.get_name()

    def save(self, *args, **kwargs):
        self.depth = self.parent.depth + 1 if self.parent_id else 1
        super().save(*args, **kwargs)

    def get_name(self):
        if not self.parent_id:
            return self.name or self.course.name
        return self.name

    def get_parent_category(self):
        return self.parent

    def get_grade_item(self):
        """The item holding this category's totals."""
        return GradeItem.objects.filter(totals_category=self).first()

    def get_children(self):
        """
        Direct children ordered by sort_order, as element dicts.

        Returns:
            list: [{'type': 'item' | 'category', 'object': ...}, ...]
        """
        children = [
            {'type': 'item', 'object': item, 'sort_order': item.sort_order}
            for item in self.items.filter(totals_category__isnull=True)
        ]
        children += [
            {'type': 'category', 'object': category, 'sort_order': category.sort_order}
            for category in self.children.all()
        ]
        children.sort(key=lambda child: child['sort_order'])
        return children

    def is_extracredit_used(self):
        """Whether this aggregation lets some children count as extra credit."""
        return (
            self.aggregation in (self.AGGREGATE_EXTRACREDIT_MEAN, self.AGGREGATE_SUM)
            or (self.aggregation == self.AGGREGATE_WEIGHTED_MEAN2 and self.extra_credit_used)
        )

    class Meta:
        db_table = 'grade_category'
        ordering = ['course', 'depth', 'sort_order']
        verbose_name = 'Grade Category'
        verbose_name_plural = 'Grade Categories'


class GradeItem(models.Model):
    """A gradable column: an activity, a manual item, or a category/course total."""
    TYPE_COURSE = 'course'
    TYPE_CATEGORY = 'category'
    TYPE_MOD = 'mod'
    TYPE_MANUAL = 'manual'
    ITEM_TYPE_CHOICES = [
        (TYPE_COURSE, 'Course total'),
        (TYPE_CATEGORY, 'Category total'),
        (TYPE_MOD, 'Activity'),
        (TYPE_MANUAL, 'Manual item'),
    ]

    GRADE_TYPE_NONE = 0
    GRADE_TYPE_VALUE = 1
    GRADE_TYPE_SCALE = 2
    GRADE_TYPE_TEXT = 3
    GRADE_TYPE_CHOICES = [
        (GRADE_TYPE_NONE, 'None'),
        (GRADE_TYPE_VALUE, 'Value'),
        (GRADE_TYPE_SCALE, 'Scale'),
        (GRADE_TYPE_TEXT, 'Text'),
    ]

    DISPLAY_REAL = 1
    DISPLAY_PERCENTAGE = 2
    DISPLAY_LETTER = 3
    DISPLAY_TYPE_CHOICES = [
        (DISPLAY_REAL, 'Real'),
        (DISPLAY_PERCENTAGE, 'Percentage'),
        (DISPLAY_LETTER, 'Letter'),
    ]

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name='grade_items',
        db_index=True
    )
    category = models.ForeignKey(
        GradeCategory,
        on_delete=models.CASCADE,
        related_name='items',
        null=True,
        blank=True,
        help_text='Owning category (empty for category and course totals)'
    )
    totals_category = models.OneToOneField(
        GradeCategory,
        on_delete=models.CASCADE,
        related_name='total_item',
        null=True,
        blank=True,
        help_text='Category totalled by this item (category and course totals only)'
    )
    item_type = models.CharField(max_length=10, choices=ITEM_TYPE_CHOICES, default=TYPE_MANUAL)
    item_module = models.CharField(
        max_length=50,
        blank=True,
        help_text='Activity module name, e.g. assign or quiz'
    )
    name = models.CharField(max_length=255, blank=True)
    grade_type = models.PositiveSmallIntegerField(choices=GRADE_TYPE_CHOICES, default=GRADE_TYPE_VALUE)
    grade_min = models.DecimalField(max_digits=10, decimal_places=5, default=Decimal('0'))
    grade_max = models.DecimalField(max_digits=10, decimal_places=5, default=Decimal('100'))
    grade_pass = models.DecimalField(max_digits=10, decimal_places=5, default=Decimal('0'))
    scale = models.ForeignKey(
        Scale,
        on_delete=models.SET_NULL,
        related_name='grade_items',
        null=True,
        blank=True
    )
    aggregation_coef = models.DecimalField(
        max_digits=10,
        decimal_places=5,
        default=Decimal('0'),
        help_text='Weight in a weighted mean parent, or the extra credit flag'
    )
    decimals = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text='Decimal points shown (empty = site default)'
    )
    display_type = models.PositiveSmallIntegerField(
        choices=DISPLAY_TYPE_CHOICES,
        null=True,
        blank=True,
        help_text='Grade display type (empty = site default)'
    )
    hidden = models.BooleanField(default=False)
    needs_update = models.BooleanField(
        default=False,
        help_text='Set while the item waits for its final grades to be recomputed'
    )
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.get_name()

    def clean(self):
        if self.grade_min > self.grade_max:
            raise ValidationError('Minimum grade cannot be greater than maximum grade')
        if self.grade_type == self.GRADE_TYPE_SCALE and not self.scale_id:
            raise ValidationError('Scale items need a scale')

    def is_course_item(self):
        return self.item_type == self.TYPE_COURSE

    def is_category_item(self):
        return self.item_type == self.TYPE_CATEGORY

    def is_hidden(self):
        return self.hidden

    def get_name(self):
        if self.is_course_item():
            return 'Course total'
        if self.is_category_item() and self.totals_category_id:
            return f"{self.totals_category.get_name()} total"
        return self.name

    def get_item_category(self):
        """Category totalled by a category or course item, None otherwise."""
        return self.totals_category

    def get_parent_category(self):
        """
        The category this item belongs to. Totals belong to the category
        they total, like in the course grade tree.
        """
        if self.is_course_item() or self.is_category_item():
            return self.totals_category
        return self.category

    def get_decimals(self):
        if self.decimals is None:
            return config.DECIMAL_POINTS
        return self.decimals

    def get_displaytype(self):
        if self.display_type is None:
            return config.DISPLAY_TYPE
        return self.display_type

    def bounded_grade(self, value):
        """Clamp a grade into the item's [grade_min, grade_max] range."""
        if value is None:
            return None
        value = Decimal(str(value))
        if self.grade_type == self.GRADE_TYPE_SCALE and self.scale_id:
            return max(Decimal('1'), min(value, Decimal(len(self.scale.get_items()))))
        return max(self.grade_min, min(value, self.grade_max))

    def update_final_grade(self, user, finalgrade=False, source='gradebook', feedback=False, logged_user=None):
        """
        Set a user's final grade and/or feedback for this item.

        `False` leaves the value untouched, `None` clears it. Grades on category
        and course items are flagged as overridden. A history row is appended by
        the GradeGrade post_save signal.

        Returns:
            GradeGrade: the saved grade
        """
        with transaction.atomic():
            grade, _ = GradeGrade.objects.select_for_update().get_or_create(item=self, user=user)

            if finalgrade is not False:
                grade.final_grade = self.bounded_grade(finalgrade)
                if self.is_category_item() or self.is_course_item():
                    grade.overridden = finalgrade is not None and config.OVERRIDE_CAT

            if feedback is not False:
                grade.feedback = feedback

            grade.history_source = source
            grade.history_user = logged_user
            grade.save()

        return grade

    class Meta:
        db_table = 'grade_item'
        ordering = ['course', 'sort_order']
        verbose_name = 'Grade Item'
        verbose_name_plural = 'Grade Items'
        indexes = [
            models.Index(fields=['course', 'item_type'], name='grade_item_course_type_idx'),
        ]


class GradeGrade(models.Model):
    """The current grade of one user for one grade item."""
    item = models.ForeignKey(
        GradeItem,
        on_delete=models.CASCADE,
        related_name='grades',
        db_index=True
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='grades',
        db_index=True
    )
    final_grade = models.DecimalField(max_digits=10, decimal_places=5, null=True, blank=True)
    feedback = models.TextField(null=True, blank=True)
    overridden = models.BooleanField(default=False)
    excluded = models.BooleanField(default=False)
    hidden = models.BooleanField(default=False)
    time_submitted = models.DateTimeField(null=True, blank=True)
    time_modified = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user} - {self.item}: {self.final_grade}"

    def is_hidden(self):
        return self.hidden or self.item.is_hidden()

    def is_overridden(self):
        return self.overridden

    def is_excluded(self):
        return self.excluded

    def is_passed(self, item=None):
        """
        Whether the grade reaches the item's pass mark.

        Returns:
            bool or None: None when there is no grade or no pass mark
        """
        item = item or self.item
        if self.final_grade is None or not item.grade_pass:
            return None
        return Decimal(str(self.final_grade)) >= item.grade_pass

    def get_datesubmitted(self):
        return self.time_submitted

    class Meta:
        db_table = 'grade_grade'
        ordering = ['item', 'user']
        unique_together = ['item', 'user']
        permissions = [
            ('view_unenrolled_report', 'Can view the unenrolled users grade report'),
            ('view_all_grades', 'Can view grades of all users'),
            ('view_hidden_grades', 'Can view hidden grades'),
            ('edit_grades', 'Can edit grades and feedback'),
            ('manage_grades', 'Can manage the gradebook'),
        ]


class GradeGradeHistory(models.Model):
    """
    Append-only history of grade changes. Rows outlive course enrolments, so
    they are what identifies users who were graded in a course.
    """
    ACTION_INSERT = 'INSERT'
    ACTION_UPDATE = 'UPDATE'
    ACTION_DELETE = 'DELETE'
    ACTION_CHOICES = [
        (ACTION_INSERT, 'Created'),
        (ACTION_UPDATE, 'Updated'),
        (ACTION_DELETE, 'Deleted'),
    ]

    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    # Store the grade id rather than a foreign key so deletions are kept
    old_id = models.BigIntegerField(null=True, blank=True)
    source = models.CharField(max_length=255, blank=True)
    time_modified = models.DateTimeField(default=timezone.now)
    logged_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='logged_grade_history'
    )
    item = models.ForeignKey(
        GradeItem,
        on_delete=models.CASCADE,
        related_name='grade_history',
        db_index=True
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='grade_history',
        db_index=True
    )
    final_grade = models.DecimalField(max_digits=10, decimal_places=5, null=True, blank=True)
    feedback = models.TextField(null=True, blank=True)
    overridden = models.BooleanField(default=False)
    excluded = models.BooleanField(default=False)
    hidden = models.BooleanField(default=False)
    time_submitted = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.get_action_display()} {self.user} - {self.item}: {self.final_grade}"

    def as_grade(self):
        """Unsaved GradeGrade carrying this history row's values."""
        return GradeGrade(
            id=self.old_id,
            item_id=self.item_id,
            user_id=self.user_id,
            final_grade=self.final_grade,
            feedback=self.feedback,
            overridden=self.overridden,
            excluded=self.excluded,
            hidden=self.hidden,
            time_submitted=self.time_submitted,
            time_modified=self.time_modified,
        )

    class Meta:
        db_table = 'grade_grade_history'
        ordering = ['time_modified', 'id']
        verbose_name = 'Grade History'
        verbose_name_plural = 'Grade History'
        indexes = [
            models.Index(fields=['item', 'user'], name='grade_history_item_user_idx'),
            models.Index(fields=['logged_user', 'time_modified'], name='grade_history_logged_idx'),
        ]


class UserPreference(models.Model):
    """Per-user key/value preference store used by the grade reports."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='gradebook_preferences'
    )
    name = models.CharField(max_length=255)
    value = models.TextField(blank=True)

    def __str__(self):
        return f"{self.user}: {self.name}={self.value}"

    class Meta:
        db_table = 'user_preference'
        ordering = ['user', 'name']
        unique_together = ['user', 'name']
