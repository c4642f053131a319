"""
Plain table model handed to the grade table template.
"""


class TableCell:

    def __init__(self, text='', colspan=1, header=False, scope=None, id=None, classes=None):
        self.text = text
        self.colspan = colspan
        self.header = header
        self.scope = scope
        self.id = id
        self.classes = list(classes or [])

    @property
    def class_attr(self):
        return ' '.join(self.classes)

    def __repr__(self):
        return f"<TableCell {self.text!r}>"


class TableRow:

    def __init__(self, cells=None, id=None, classes=None):
        self.cells = list(cells or [])
        self.id = id
        self.classes = list(classes or [])

    @property
    def class_attr(self):
        return ' '.join(self.classes)

    def __repr__(self):
        return f"<TableRow {len(self.cells)} cells>"


class Table:

    def __init__(self, id=None, classes=None, rows=None):
        self.id = id
        self.classes = list(classes or [])
        self.rows = list(rows or [])

    @property
    def class_attr(self):
        return ' '.join(self.classes)
