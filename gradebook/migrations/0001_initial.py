import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('short_name', models.CharField(max_length=100, unique=True)),
                ('aggregation_position', models.PositiveSmallIntegerField(blank=True, choices=[(0, 'First'), (1, 'Last')], help_text='Position of category total columns (empty = site default)', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'course',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Scale',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('items', models.TextField(help_text='Comma separated scale labels, lowest first')),
                ('course', models.ForeignKey(blank=True, help_text='Empty for site-wide scales', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='scales', to='gradebook.course')),
            ],
            options={
                'db_table': 'scale',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='GradeCategory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('aggregation', models.PositiveSmallIntegerField(choices=[(0, 'Mean of grades'), (2, 'Median of grades'), (4, 'Lowest grade'), (6, 'Highest grade'), (8, 'Mode of grades'), (10, 'Weighted mean of grades'), (11, 'Simple weighted mean of grades'), (12, 'Mean of grades (with extra credits)'), (13, 'Natural')], default=0)),
                ('depth', models.PositiveSmallIntegerField(default=1, help_text='1 for the course category, computed from the parent on save')),
                ('extra_credit_used', models.BooleanField(default=False, help_text='Whether extra credit items count in simple weighted mean aggregation')),
                ('sort_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grade_categories', to='gradebook.course')),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='children', to='gradebook.gradecategory')),
            ],
            options={
                'verbose_name': 'Grade Category',
                'verbose_name_plural': 'Grade Categories',
                'db_table': 'grade_category',
                'ordering': ['course', 'depth', 'sort_order'],
            },
        ),
        migrations.CreateModel(
            name='GradeItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_type', models.CharField(choices=[('course', 'Course total'), ('category', 'Category total'), ('mod', 'Activity'), ('manual', 'Manual item')], default='manual', max_length=10)),
                ('item_module', models.CharField(blank=True, help_text='Activity module name, e.g. assign or quiz', max_length=50)),
                ('name', models.CharField(blank=True, max_length=255)),
                ('grade_type', models.PositiveSmallIntegerField(choices=[(0, 'None'), (1, 'Value'), (2, 'Scale'), (3, 'Text')], default=1)),
                ('grade_min', models.DecimalField(decimal_places=5, default=Decimal('0'), max_digits=10)),
                ('grade_max', models.DecimalField(decimal_places=5, default=Decimal('100'), max_digits=10)),
                ('grade_pass', models.DecimalField(decimal_places=5, default=Decimal('0'), max_digits=10)),
                ('aggregation_coef', models.DecimalField(decimal_places=5, default=Decimal('0'), help_text='Weight in a weighted mean parent, or the extra credit flag', max_digits=10)),
                ('decimals', models.PositiveSmallIntegerField(blank=True, help_text='Decimal points shown (empty = site default)', null=True, validators=[django.core.validators.MinValueValidator(0)])),
                ('display_type', models.PositiveSmallIntegerField(blank=True, choices=[(1, 'Real'), (2, 'Percentage'), (3, 'Letter')], help_text='Grade display type (empty = site default)', null=True)),
                ('hidden', models.BooleanField(default=False)),
                ('needs_update', models.BooleanField(default=False, help_text='Set while the item waits for its final grades to be recomputed')),
                ('sort_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, help_text='Owning category (empty for category and course totals)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='items', to='gradebook.gradecategory')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grade_items', to='gradebook.course')),
                ('scale', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='grade_items', to='gradebook.scale')),
                ('totals_category', models.OneToOneField(blank=True, help_text='Category totalled by this item (category and course totals only)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='total_item', to='gradebook.gradecategory')),
            ],
            options={
                'verbose_name': 'Grade Item',
                'verbose_name_plural': 'Grade Items',
                'db_table': 'grade_item',
                'ordering': ['course', 'sort_order'],
                'indexes': [models.Index(fields=['course', 'item_type'], name='grade_item_course_type_idx')],
            },
        ),
        migrations.CreateModel(
            name='GradeGrade',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('final_grade', models.DecimalField(blank=True, decimal_places=5, max_digits=10, null=True)),
                ('feedback', models.TextField(blank=True, null=True)),
                ('overridden', models.BooleanField(default=False)),
                ('excluded', models.BooleanField(default=False)),
                ('hidden', models.BooleanField(default=False)),
                ('time_submitted', models.DateTimeField(blank=True, null=True)),
                ('time_modified', models.DateTimeField(auto_now=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grades', to='gradebook.gradeitem')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grades', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'grade_grade',
                'ordering': ['item', 'user'],
                'permissions': [
                    ('view_unenrolled_report', 'Can view the unenrolled users grade report'),
                    ('view_all_grades', 'Can view grades of all users'),
                    ('view_hidden_grades', 'Can view hidden grades'),
                    ('edit_grades', 'Can edit grades and feedback'),
                    ('manage_grades', 'Can manage the gradebook'),
                ],
                'unique_together': {('item', 'user')},
            },
        ),
        migrations.CreateModel(
            name='GradeGradeHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('INSERT', 'Created'), ('UPDATE', 'Updated'), ('DELETE', 'Deleted')], max_length=10)),
                ('old_id', models.BigIntegerField(blank=True, null=True)),
                ('source', models.CharField(blank=True, max_length=255)),
                ('time_modified', models.DateTimeField(default=django.utils.timezone.now)),
                ('final_grade', models.DecimalField(blank=True, decimal_places=5, max_digits=10, null=True)),
                ('feedback', models.TextField(blank=True, null=True)),
                ('overridden', models.BooleanField(default=False)),
                ('excluded', models.BooleanField(default=False)),
                ('hidden', models.BooleanField(default=False)),
                ('time_submitted', models.DateTimeField(blank=True, null=True)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grade_history', to='gradebook.gradeitem')),
                ('logged_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='logged_grade_history', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='grade_history', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Grade History',
                'verbose_name_plural': 'Grade History',
                'db_table': 'grade_grade_history',
                'ordering': ['time_modified', 'id'],
                'indexes': [
                    models.Index(fields=['item', 'user'], name='grade_history_item_user_idx'),
                    models.Index(fields=['logged_user', 'time_modified'], name='grade_history_logged_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CourseEnrolment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('time_start', models.DateTimeField(default=django.utils.timezone.now)),
                ('time_end', models.DateTimeField(blank=True, null=True)),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='enrolments', to='gradebook.course')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='course_enrolments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'course_enrolment',
                'ordering': ['course', 'time_start'],
                'indexes': [models.Index(fields=['course', 'user'], name='enrolment_course_user_idx')],
            },
        ),
        migrations.CreateModel(
            name='UserPreference',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('value', models.TextField(blank=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='gradebook_preferences', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_preference',
                'ordering': ['user', 'name'],
                'unique_together': {('user', 'name')},
            },
        ),
    ]
