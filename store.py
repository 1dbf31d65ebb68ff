from contextlib import contextmanager

from models import db
from policies import permits
from errors import PolicyDenied


class Store:
    """Data access bound to one caller. Policies run before rows leave or enter."""

    def __init__(self, ctx):
        self.ctx = ctx

    # ---- reads -----------------------------------------------------------
    def select(self, model, *criteria, order_by=None, limit=None, **filters):
        q = model.query
        if filters:
            q = q.filter_by(**filters)
        if criteria:
            q = q.filter(*criteria)
        if order_by is not None:
            q = q.order_by(*order_by) if isinstance(order_by, (list, tuple)) else q.order_by(order_by)
        rows = [r for r in q.all() if permits(self.ctx, 'select', r)]
        if limit is not None:
            rows = rows[:limit]
        return rows

    def get(self, model, row_id, **filters):
        row = db.session.get(model, row_id)
        if row is None:
            return None
        for key, value in filters.items():
            if getattr(row, key) != value:
                return None
        if not permits(self.ctx, 'select', row):
            return None
        return row

    def count(self, model, *criteria, **filters):
        return len(self.select(model, *criteria, **filters))

    # ---- writes ----------------------------------------------------------
    def _check(self, action, row):
        if not permits(self.ctx, action, row):
            raise PolicyDenied(f'{action} on {row.__tablename__} denied')

    def insert(self, row):
        self._check('insert', row)
        db.session.add(row)
        db.session.flush()
        return row

    def insert_many(self, rows):
        for row in rows:
            self._check('insert', row)
        db.session.add_all(rows)
        db.session.flush()
        return rows

    def update(self, row, **changes):
        self._check('update', row)
        for key, value in changes.items():
            setattr(row, key, value)
        db.session.flush()
        return row

    def delete(self, row):
        self._check('delete', row)
        db.session.delete(row)
        db.session.flush()

    @contextmanager
    def transaction(self):
        """Commit on success, roll back everything on any error."""
        try:
            yield self
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
