from .main import index
from .report import report_index
from .preferences import report_preferences
from .export import report_export

__all__ = ['index', 'report_index', 'report_preferences', 'report_export']
