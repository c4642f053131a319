"""
Formatting helpers for grade values shown in the reports.
"""
import textwrap
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from . import config


def format_float(value, decimals=2):
    """
    Format a number with a fixed number of decimals.

    Returns:
        str: '' when value is None
    """
    if value is None:
        return ''
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def unformat_float(text):
    """
    Parse a posted number. Commas are accepted as decimal separators.

    Returns:
        Decimal or None: None for blank input

    Raises:
        ValueError: if the text is not a number
    """
    if text is None:
        return None
    text = str(text).strip().replace(' ', '')
    if text == '':
        return None
    text = text.replace(',', '.')
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid number: {text!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid number: {text!r}")
    return value


def grade_to_percentage(value, item):
    grade_range = item.grade_max - item.grade_min
    if not grade_range:
        return None
    return (Decimal(str(value)) - item.grade_min) / grade_range * 100


def grade_to_letter(percentage):
    for boundary, letter in config.LETTER_BOUNDARIES:
        if percentage >= boundary:
            return letter
    return '-'


def format_gradevalue(value, item, display_type=None):
    """
    Format a final grade the way the item is configured to display it.

    Args:
        value: The grade (None when ungraded)
        item: The GradeItem the grade belongs to
        display_type: One of the GradeItem.DISPLAY_* values, defaults to the item's

    Returns:
        str: '-' for missing grades
    """
    if value is None:
        return '-'

    if item.grade_type == item.GRADE_TYPE_SCALE and item.scale_id:
        labels = item.scale.get_items()
        index = int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP)) - 1
        if 0 <= index < len(labels):
            return labels[index]
        return '-'

    if item.grade_type in (item.GRADE_TYPE_NONE, item.GRADE_TYPE_TEXT):
        return '-'

    display_type = display_type or item.get_displaytype()
    decimals = item.get_decimals()

    if display_type == item.DISPLAY_PERCENTAGE:
        percentage = grade_to_percentage(value, item)
        if percentage is None:
            return '-'
        return f"{format_float(percentage, decimals)} %"

    if display_type == item.DISPLAY_LETTER:
        percentage = grade_to_percentage(value, item)
        if percentage is None:
            return '-'
        return grade_to_letter(percentage)

    return format_float(value, decimals)


def shorten_text(text, length=None):
    """Truncate text on a word boundary, appending '...'."""
    length = length or config.HEADER_TRUNC_LENGTH
    text = text or ''
    if len(text) <= length:
        return text
    shortened = textwrap.shorten(text, width=length, placeholder='...')
    if shortened == '...':
        # A single word longer than the limit
        return text[:length - 3] + '...'
    return shortened


def wordwrap(text, width=34):
    """Split text into lines of at most `width` characters."""
    return textwrap.wrap(text or '', width=width)
