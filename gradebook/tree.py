"""
The course grade tree as seen by a report.

Categories and items are loaded once and arranged into nested element dicts.
Collapsed categories are applied while building, so `items` only holds the
columns the report shows and `levels` holds the header rows above them.
"""
import re
from collections import defaultdict

from django.urls import reverse
from django.utils.html import format_html

from .formatting import shorten_text
from .models import Course, GradeCategory, GradeItem

_CATEGORY_OR_ITEM_EID = re.compile(r'([ci])(\d+)')
_GRADE_EID = re.compile(r'n(\d+)u(\d+)')


def parse_eid(eid):
    """
    Split an element id into its type and id.

    Examples:
        'c4' -> ('category', 4), 'i7' -> ('item', 7), 'n7u3' -> ('grade', (7, 3))

    Raises:
        ValueError: for anything else
    """
    if not isinstance(eid, str):
        raise ValueError(f"Invalid element id: {eid!r}")

    match = _CATEGORY_OR_ITEM_EID.fullmatch(eid)
    if match:
        element_type = 'category' if match.group(1) == 'c' else 'item'
        return element_type, int(match.group(2))

    match = _GRADE_EID.fullmatch(eid)
    if match:
        return 'grade', (int(match.group(1)), int(match.group(2)))

    raise ValueError(f"Invalid element id: {eid!r}")


class GradeTree:
    """
    Element dicts have the keys 'type', 'object', 'eid', 'depth' and, for
    header rows, 'colspan'. Types are 'category', 'item', 'categoryitem',
    'courseitem', 'filler', 'fillerfirst' and 'fillerlast'.
    """

    def __init__(self, course, aggregation_position=Course.AGGREGATION_POSITION_LAST, collapsed=None):
        self.course = course
        self.aggregation_position = int(aggregation_position)
        self.collapsed = collapsed or {'aggregatesonly': [], 'gradesonly': []}

        categories = list(GradeCategory.objects.filter(course=course).order_by('sort_order', 'id'))
        all_items = list(
            GradeItem.objects.filter(course=course).select_related(
                'scale', 'category', 'totals_category'
            ).order_by('sort_order', 'id')
        )
        self.categories = {category.id: category for category in categories}
        self.all_items = {item.id: item for item in all_items}

        self._children = defaultdict(list)
        self._totals = {}
        for item in all_items:
            if item.totals_category_id:
                self._totals[item.totals_category_id] = item
            elif item.category_id:
                self._children[item.category_id].append(item)
        for category in categories:
            if category.parent_id:
                self._children[category.parent_id].append(category)
        for children in self._children.values():
            children.sort(key=lambda child: child.sort_order)

        root = next((category for category in categories if category.parent_id is None), None)
        self.top_element = self._build_category_element(root, 1) if root else None

        self.items = {}
        self._leaf_elements = []
        self._leaf_counts = {}
        if self.top_element:
            self._collect_leaves(self.top_element)

        self.levels = self._build_levels()

    # ---- building ----

    def _build_category_element(self, category, depth):
        aggregates_only = category.id in self.collapsed['aggregatesonly']
        grades_only = category.id in self.collapsed['gradesonly']

        children = []
        if not aggregates_only:
            for child in self._children[category.id]:
                if isinstance(child, GradeCategory):
                    child_element = self._build_category_element(child, depth + 1)
                    if child_element:
                        children.append(child_element)
                else:
                    children.append({
                        'type': 'item',
                        'object': child,
                        'eid': f"i{child.id}",
                        'depth': depth + 1,
                    })

        total = self._totals.get(category.id)
        if total and (aggregates_only or not grades_only):
            total_element = {
                'type': 'courseitem' if total.is_course_item() else 'categoryitem',
                'object': total,
                'eid': f"i{total.id}",
                'depth': depth + 1,
            }
            if self.aggregation_position == Course.AGGREGATION_POSITION_FIRST:
                children.insert(0, total_element)
            else:
                children.append(total_element)

        if not children:
            return None

        return {
            'type': 'category',
            'object': category,
            'eid': f"c{category.id}",
            'depth': depth,
            'children': children,
        }

    def _collect_leaves(self, element):
        if element['type'] != 'category':
            self.items[element['object'].id] = element['object']
            self._leaf_elements.append(element)
            return 1

        count = sum(self._collect_leaves(child) for child in element['children'])
        self._leaf_counts[element['eid']] = count
        return count

    def _max_category_depth(self, element):
        if element['type'] != 'category':
            return 0
        return max([element['depth']] + [self._max_category_depth(child) for child in element['children']])

    def _filler_type(self, leaf):
        if leaf['type'] in ('categoryitem', 'courseitem'):
            if self.aggregation_position == Course.AGGREGATION_POSITION_FIRST:
                return 'fillerfirst'
            return 'fillerlast'
        return 'filler'

    def _collect_level(self, element, row_depth, row):
        if element['type'] == 'category':
            if element['depth'] == row_depth:
                row.append({
                    'type': 'category',
                    'object': element['object'],
                    'eid': element['eid'],
                    'depth': element['depth'],
                    'colspan': self._leaf_counts[element['eid']],
                })
                return
            for child in element['children']:
                self._collect_level(child, row_depth, row)
            return

        # Leaf sitting above this row's categories
        filler_type = self._filler_type(element)
        if row and row[-1]['type'] == filler_type:
            row[-1]['colspan'] += 1
            return
        row.append({
            'type': filler_type,
            'object': element['object'],
            'eid': f"filler{element['eid']}",
            'depth': element['depth'],
            'colspan': 1,
        })

    def _build_levels(self):
        if not self.top_element:
            return []

        levels = []
        for row_depth in range(1, self._max_category_depth(self.top_element) + 1):
            row = []
            self._collect_level(self.top_element, row_depth, row)
            levels.append(row)

        levels.append([dict(leaf, colspan=1) for leaf in self._leaf_elements])
        return levels

    # ---- accessors ----

    def get_items(self):
        return self.items

    def get_item(self, item_id):
        return self.items.get(item_id) or self.all_items.get(item_id)

    def get_levels(self):
        return self.levels

    def get_grade_eid(self, grade):
        return f"n{grade.item_id}u{grade.user_id}"

    def get_element_header(self, element, with_link=False, icon=True):
        """
        Column title for an item element.

        Args:
            element: An item element from `levels`
            with_link: Link the title to the item's admin page
            icon: Prefix activity items with their module icon
        """
        item = element['object']
        title = shorten_text(item.get_name())
        if with_link:
            title = format_html(
                '<a href="{}">{}</a>',
                reverse('admin:gradebook_gradeitem_change', args=[item.pk]), title
            )
        if icon and item.item_module:
            return format_html(
                '<span class="activityicon mod-{}" title="{}"></span>{}',
                item.item_module, item.item_module, title
            )
        return format_html('{}', title)
