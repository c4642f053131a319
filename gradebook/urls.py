from django.urls import path
from . import views

app_name = 'gradebook'

urlpatterns = [
    path('', views.index, name='index'),

    # Unenrolled users report
    path('course/<int:course_id>/unenrolled/', views.report_index, name='report_index'),
    path('course/<int:course_id>/unenrolled/preferences/', views.report_preferences, name='report_preferences'),
    path('course/<int:course_id>/unenrolled/export/', views.report_export, name='report_export'),
]
