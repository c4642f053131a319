import re

from django import forms

from .models import Course
from .preferences import PREFERENCE_DEFAULT, get_user_preference, set_user_preferences, unset_user_preference
from . import config

POSTED_GRADE_KEY = re.compile(r'(grade|feedback)_(\d+)_(\d+)')

YES_NO = {'0': 'No', '1': 'Yes'}
POSITIONS = {
    str(Course.AGGREGATION_POSITION_FIRST): 'First',
    str(Course.AGGREGATION_POSITION_LAST): 'Last',
}


def parse_grade_post(data):
    """
    Collect posted grade and feedback fields.

    Keys look like grade_<userid>_<itemid> and feedback_<userid>_<itemid>.

    Returns:
        dict: {'grade': {userid: {itemid: value}}, 'feedback': {userid: {itemid: value}}}
    """
    parsed = {'grade': {}, 'feedback': {}}
    for key in data.keys():
        match = POSTED_GRADE_KEY.fullmatch(key)
        if not match:
            continue
        datatype, user_id, item_id = match.group(1), int(match.group(2)), int(match.group(3))
        parsed[datatype].setdefault(user_id, {})[item_id] = data.get(key)
    return parsed


class ReportPreferencesForm(forms.Form):
    """
    The viewer's preferences for the unenrolled report.

    Blank text fields and "Default" choices remove the preference so the
    site (or course) setting applies again.
    """
    TEXT_PREFERENCES = ['studentsperpage', 'repeatheaders']
    CHOICE_PREFERENCES = ['aggregationposition', 'showuserimage', 'showactivityicons', 'showweightedpercents']

    studentsperpage = forms.CharField(
        label='Students per page',
        required=False,
        widget=forms.TextInput(attrs={'class': 'input input-bordered w-full', 'inputmode': 'numeric'})
    )
    repeatheaders = forms.CharField(
        label='Repeat headers every',
        required=False,
        widget=forms.TextInput(attrs={'class': 'input input-bordered w-full', 'inputmode': 'numeric'})
    )
    aggregationposition = forms.ChoiceField(
        label='Aggregation position',
        widget=forms.Select(attrs={'class': 'select select-bordered w-full'})
    )
    showuserimage = forms.ChoiceField(
        label='Show user profile images',
        widget=forms.Select(attrs={'class': 'select select-bordered w-full'})
    )
    showactivityicons = forms.ChoiceField(
        label='Show activity icons',
        widget=forms.Select(attrs={'class': 'select select-bordered w-full'})
    )
    showweightedpercents = forms.ChoiceField(
        label='Show weightings',
        widget=forms.Select(attrs={'class': 'select select-bordered w-full'})
    )

    def __init__(self, *args, course=None, user=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.course = course
        self.user = user

        for name in self.TEXT_PREFERENCES:
            self.fields[name].help_text = f"Default: {config.get(f'REPORT_{name.upper()}')}"

        position_default = course.aggregation_position if course and course.aggregation_position is not None \
            else config.AGGREGATIONPOSITION
        self.fields['aggregationposition'].choices = self._choices(POSITIONS, position_default)
        for name in ['showuserimage', 'showactivityicons', 'showweightedpercents']:
            self.fields[name].choices = self._choices(YES_NO, config.get(f'REPORT_{name.upper()}'))

        if not self.is_bound and user is not None:
            for name in self.TEXT_PREFERENCES:
                self.initial[name] = get_user_preference(user, f"grade_report_{name}", '')
            for name in self.CHOICE_PREFERENCES:
                self.initial[name] = get_user_preference(user, f"grade_report_{name}", PREFERENCE_DEFAULT)

    def _choices(self, options, site_value):
        default_label = options.get(str(int(site_value)), '') if site_value is not None else ''
        return [(PREFERENCE_DEFAULT, f"Default ({default_label})")] + list(options.items())

    def _clean_number(self, name, minimum=None):
        value = (self.cleaned_data.get(name) or '').strip()
        if value == '':
            return ''
        try:
            number = int(value)
        except ValueError:
            raise forms.ValidationError('Enter a whole number.')
        if minimum is not None and number < minimum:
            raise forms.ValidationError(f"Enter a number of at least {minimum}.")
        return str(number)

    def clean_studentsperpage(self):
        return self._clean_number('studentsperpage', minimum=0)

    def clean_repeatheaders(self):
        return self._clean_number('repeatheaders')

    def save(self):
        """Store or remove each grade_report_<name> preference."""
        to_set = {}
        for name in self.TEXT_PREFERENCES + self.CHOICE_PREFERENCES:
            value = self.cleaned_data.get(name)
            full_name = f"grade_report_{name}"
            if value in (None, '', PREFERENCE_DEFAULT):
                unset_user_preference(self.user, full_name)
            else:
                to_set[full_name] = value
        if to_set:
            set_user_preferences(self.user, to_set)
        return to_set
