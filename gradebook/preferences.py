"""
User preference storage for the grade reports.

Preferences are plain strings keyed by name. Collapsed grade categories are
kept as a JSON document under a single preference.
"""
import json
import logging

from .models import UserPreference

logger = logging.getLogger(__name__)

# Form value meaning "use the site or course default"
PREFERENCE_DEFAULT = 'default'

COLLAPSED_PREFERENCE = 'grade_report_unenrolled_collapsed_categories'


def get_user_preference(user, name, default=None):
    pref = UserPreference.objects.filter(user=user, name=name).first()
    if pref is None:
        return default
    return pref.value


def set_user_preferences(user, preferences):
    """
    Save several preferences at once.

    Args:
        user: The preference owner
        preferences: dict mapping preference name to value; values are stored as strings
    """
    for name, value in preferences.items():
        UserPreference.objects.update_or_create(
            user=user,
            name=name,
            defaults={'value': str(value)}
        )


def unset_user_preference(user, name):
    UserPreference.objects.filter(user=user, name=name).delete()


def empty_collapsed():
    return {'aggregatesonly': [], 'gradesonly': []}


def load_collapsed(user):
    """
    Read the collapsed categories preference.

    Returns:
        dict: {'aggregatesonly': [category ids], 'gradesonly': [category ids]}
    """
    raw = get_user_preference(user, COLLAPSED_PREFERENCE)
    if not raw:
        return empty_collapsed()

    try:
        data = json.loads(raw)
        collapsed = {
            'aggregatesonly': [int(cid) for cid in data.get('aggregatesonly', [])],
            'gradesonly': [int(cid) for cid in data.get('gradesonly', [])],
        }
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Ignoring unreadable collapsed categories for user {user.pk}: {e}")
        return empty_collapsed()

    return collapsed


def save_collapsed(user, collapsed):
    set_user_preferences(user, {COLLAPSED_PREFERENCE: json.dumps(collapsed)})


def process_collapse_action(user, target, action):
    """
    Apply a collapse switch to a category.

    Args:
        user: The preference owner
        target: Element id of the category, e.g. "c4"
        action: switch_minus (show totals only), switch_plus (show grades only)
            or switch_whole (show everything)

    Returns:
        bool: always True, unknown actions are ignored
    """
    from .tree import parse_eid

    try:
        _, target_id = parse_eid(target)
    except ValueError:
        logger.warning(f"Ignoring collapse action {action} on invalid target {target!r}")
        return True

    collapsed = load_collapsed(user)

    if action == 'switch_minus':
        if target_id not in collapsed['aggregatesonly']:
            collapsed['aggregatesonly'].append(target_id)
            save_collapsed(user, collapsed)

    elif action == 'switch_plus':
        if target_id in collapsed['aggregatesonly']:
            collapsed['aggregatesonly'].remove(target_id)
        if target_id not in collapsed['gradesonly']:
            collapsed['gradesonly'].append(target_id)
        save_collapsed(user, collapsed)

    elif action == 'switch_whole':
        if target_id in collapsed['gradesonly']:
            collapsed['gradesonly'].remove(target_id)
            save_collapsed(user, collapsed)

    return True
