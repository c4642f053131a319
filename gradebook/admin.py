from django.contrib import admin

from unfold.admin import ModelAdmin, TabularInline

from .models import (
    Course, CourseEnrolment, Scale, GradeCategory, GradeItem,
    GradeGrade, GradeGradeHistory, UserPreference
)


class CourseEnrolmentInline(TabularInline):
    model = CourseEnrolment
    extra = 0
    autocomplete_fields = ('user',)


@admin.register(Course)
class CourseAdmin(ModelAdmin):
    list_display = ('short_name', 'name', 'aggregation_position')
    search_fields = ('name', 'short_name')
    inlines = [CourseEnrolmentInline]


@admin.register(CourseEnrolment)
class CourseEnrolmentAdmin(ModelAdmin):
    list_display = ('user', 'course', 'time_start', 'time_end')
    list_filter = ('course',)
    search_fields = ('user__email', 'user__last_name', 'course__short_name')
    autocomplete_fields = ('user', 'course')


@admin.register(Scale)
class ScaleAdmin(ModelAdmin):
    list_display = ('name', 'course', 'items')
    search_fields = ('name',)


@admin.register(GradeCategory)
class GradeCategoryAdmin(ModelAdmin):
    list_display = ('__str__', 'course', 'parent', 'aggregation', 'depth', 'sort_order')
    list_filter = ('course', 'aggregation')
    readonly_fields = ('depth',)


@admin.register(GradeItem)
class GradeItemAdmin(ModelAdmin):
    list_display = ('__str__', 'course', 'item_type', 'grade_type', 'grade_min', 'grade_max', 'hidden', 'sort_order')
    list_filter = ('course', 'item_type', 'grade_type', 'hidden')
    search_fields = ('name', 'item_module')


@admin.register(GradeGrade)
class GradeGradeAdmin(ModelAdmin):
    list_display = ('user', 'item', 'final_grade', 'overridden', 'excluded', 'hidden', 'time_modified')
    list_filter = ('item__course', 'overridden', 'hidden')
    search_fields = ('user__email', 'user__last_name', 'item__name')


@admin.register(GradeGradeHistory)
class GradeGradeHistoryAdmin(ModelAdmin):
    """History rows are written by signals only."""
    list_display = ('time_modified', 'action', 'user', 'item', 'final_grade', 'source', 'logged_user')
    list_filter = ('action', 'item__course', 'source')
    search_fields = ('user__email', 'user__last_name', 'item__name')
    date_hierarchy = 'time_modified'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(UserPreference)
class UserPreferenceAdmin(ModelAdmin):
    list_display = ('user', 'name', 'value')
    search_fields = ('user__email', 'name')
