"""
Which category and course totals would leak hidden grades.
"""


def get_hiding_affected(grades, items):
    """
    Find totals whose value depends on something the viewer may not see.

    Args:
        grades: dict {item_id: GradeGrade} for one user
        items: dict {item_id: GradeItem} of the course, totals included

    Returns:
        dict: {'altered': {}, 'unknown': [item ids]}. Totals are never
        recomputed here, so 'altered' is always empty.
    """
    totals_by_category = {}
    parent_of_category = {}
    for item in items.values():
        if item.totals_category_id:
            totals_by_category[item.totals_category_id] = item
            parent_of_category[item.totals_category_id] = item.totals_category.parent_id

    unknown = []

    def mark_from(category_id):
        while category_id:
            total = totals_by_category.get(category_id)
            if total and total.id not in unknown:
                unknown.append(total.id)
            category_id = parent_of_category.get(category_id)

    for item_id, item in items.items():
        grade = grades.get(item_id)
        hidden = item.is_hidden() or (grade is not None and grade.hidden)
        if not hidden:
            continue

        if item.totals_category_id:
            # A hidden total affects the totals above its own category
            mark_from(parent_of_category.get(item.totals_category_id))
        else:
            mark_from(item.category_id)

    return {'altered': {}, 'unknown': unknown}
