"""
Configuration settings for the gradebook app.

These values can be overridden in Django settings by prefixing with GRADEBOOK_.
For example, to repeat the report headers every 20 students:
    GRADEBOOK_REPORT_REPEATHEADERS = 20

All configuration values are lazily loaded to avoid Django setup issues.
"""


def _get_setting(name, default):
    """Get a gradebook setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'GRADEBOOK_{name}', default)


# Define defaults as constants for direct use when Django settings are not needed
_DEFAULTS = {
    # Report display defaults (overridable per user through report preferences)
    'REPORT_REPEATHEADERS': 10,
    'REPORT_SHOWWEIGHTEDPERCENTS': 0,
    'REPORT_SHOWUSERIMAGE': 1,
    'REPORT_SHOWACTIVITYICONS': 1,
    'REPORT_NAMESWAP': 0,
    'REPORT_STUDENTSPERPAGE': 100,
    'REPORT_SHOWANALYSISICON': 0,
    'REPORT_QUICKGRADING': 1,
    'REPORT_SHOWQUICKFEEDBACK': 0,

    # 0 = aggregation column first, 1 = last
    'AGGREGATIONPOSITION': 1,

    # Grade display
    'DECIMAL_POINTS': 2,
    'DISPLAY_TYPE': 1,  # real
    'HIDDEN_AS_DATE': False,
    'FEEDBACK_TRUNC_LENGTH': 50,
    'HEADER_TRUNC_LENGTH': 30,

    # Letter boundaries used by the letter display type, highest first
    'LETTER_BOUNDARIES': [
        (93, 'A'), (90, 'A-'), (87, 'B+'), (83, 'B'), (80, 'B-'),
        (77, 'C+'), (73, 'C'), (70, 'C-'), (67, 'D+'), (60, 'D'), (0, 'F'),
    ],

    # User fields shown next to the student name
    'SHOW_USER_IDENTITY': ['email'],

    # Category total overrides
    'OVERRIDE_CAT': True,

    # Export settings
    'EXCEL_HEADER_COLOR': '4F46E5',

    # Rate limit for grade edits
    'EDIT_RATE_LIMIT': '200/h',
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


def get(name, default=None):
    """Look up a setting by its string name, e.g. for report preference defaults."""
    try:
        return getattr(_config, name)
    except AttributeError:
        return default


# For backwards compatibility and direct attribute access
def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
