"""
Data stores

Both stores expose the same table-scoped operations (select / insert /
update / delete / count with equality filters and single-column ordering)
and hand back plain dict rows. The record managers never touch a session or
a model class directly, so the SQL database and the in-memory demo store are
interchangeable.
"""
import copy
import threading

from sqlalchemy.exc import SQLAlchemyError

from .errors import StoreError
from .models import Client, Invoice, InvoiceItem, User, new_id, utcnow

MODELS = {
    'users': User,
    'clients': Client,
    'invoices': Invoice,
    'invoice_items': InvoiceItem,
}


class DataStore:

    def select(self, table, filters=None, order_by=None, desc=False, limit=None):
        raise NotImplementedError

    def get(self, table, filters):
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table, rows):
        raise NotImplementedError

    def update(self, table, values, filters):
        raise NotImplementedError

    def delete(self, table, filters):
        raise NotImplementedError

    def count(self, table, filters=None):
        raise NotImplementedError


def _model(table):
    try:
        return MODELS[table]
    except KeyError:
        raise StoreError(f"Unknown table '{table}'")


class SQLStore(DataStore):
    """Flask-SQLAlchemy backed store. Errors from the database propagate unchanged."""

    def __init__(self, db):
        self.db = db

    def _query(self, table, filters):
        return _model(table).query.filter_by(**(filters or {}))

    def _commit(self):
        try:
            self.db.session.commit()
        except SQLAlchemyError:
            self.db.session.rollback()
            raise

    def select(self, table, filters=None, order_by=None, desc=False, limit=None):
        query = self._query(table, filters)
        if order_by:
            column = getattr(_model(table), order_by)
            query = query.order_by(column.desc() if desc else column.asc())
        if limit:
            query = query.limit(limit)
        return [row.to_dict() for row in query.all()]

    def insert(self, table, rows):
        model = _model(table)
        objects = [model(**row) for row in rows]
        self.db.session.add_all(objects)
        self._commit()
        return [obj.to_dict() for obj in objects]

    def update(self, table, values, filters):
        objects = self._query(table, filters).all()
        for obj in objects:
            for key, value in values.items():
                setattr(obj, key, value)
        self._commit()
        return [obj.to_dict() for obj in objects]

    def delete(self, table, filters):
        # Delete through the session so relationship cascades (items) fire
        objects = self._query(table, filters).all()
        for obj in objects:
            self.db.session.delete(obj)
        self._commit()
        return len(objects)

    def count(self, table, filters=None):
        return self._query(table, filters).count()


class MemoryStore(DataStore):
    """Process-local store used by the demo backend.

    Row shapes, defaults and required columns come from the SQL models, so a
    row looks the same whichever store produced it.
    """

    CASCADES = {
        'users': (('clients', 'user_id'), ('invoices', 'user_id')),
        'clients': (('invoices', 'client_id'),),
        'invoices': (('invoice_items', 'invoice_id'),),
    }
    UNIQUE = {
        'users': (('email',),),
        'invoices': (('user_id', 'invoice_number'),),
    }

    def __init__(self, seed=None):
        self._tables = {table: [] for table in MODELS}
        self._lock = threading.RLock()
        for table, rows in (seed or {}).items():
            self.insert(table, rows)

    def _rows(self, table):
        try:
            return self._tables[table]
        except KeyError:
            raise StoreError(f"Unknown table '{table}'")

    @staticmethod
    def _matches(row, filters):
        return all(row.get(key) == value for key, value in (filters or {}).items())

    def _new_row(self, table, values):
        columns = _model(table).__table__.columns
        unknown = set(values) - set(columns.keys())
        if unknown:
            raise StoreError(f"Unknown column(s) for {table}: {', '.join(sorted(unknown))}")

        row = {}
        for column in columns:
            if column.name in values:
                row[column.name] = values[column.name]
            elif column.name == 'id' and column.default is not None:
                row[column.name] = new_id()
            elif column.name in ('created_at', 'updated_at'):
                row[column.name] = utcnow()
            elif column.default is not None and column.default.is_scalar:
                row[column.name] = column.default.arg
            else:
                row[column.name] = None

            if row[column.name] is None and not column.nullable:
                raise StoreError(f"null value in column '{column.name}' of '{table}' violates not-null constraint")
        return row

    def _check_unique(self, table, candidate, existing):
        for columns in self.UNIQUE.get(table, ()):
            key = tuple(candidate.get(c) for c in columns)
            for row in existing:
                if row is not candidate and tuple(row.get(c) for c in columns) == key:
                    raise StoreError(f"duplicate key value violates unique constraint on {table}({', '.join(columns)})")

    def select(self, table, filters=None, order_by=None, desc=False, limit=None):
        with self._lock:
            rows = [(index, row) for index, row in enumerate(self._rows(table)) if self._matches(row, filters)]
            if order_by:
                # Ties fall back to insertion order, reversed along with the sort
                rows.sort(key=lambda pair: (pair[1].get(order_by) is None, pair[1].get(order_by), pair[0]), reverse=desc)
            result = [copy.deepcopy(row) for _, row in rows]
        return result[:limit] if limit else result

    def insert(self, table, rows):
        with self._lock:
            existing = self._rows(table)
            created = [self._new_row(table, values) for values in rows]
            for row in created:
                self._check_unique(table, row, existing + created)
            existing.extend(created)
            return copy.deepcopy(created)

    def update(self, table, values, filters):
        columns = _model(table).__table__.columns.keys()
        unknown = set(values) - set(columns)
        if unknown:
            raise StoreError(f"Unknown column(s) for {table}: {', '.join(sorted(unknown))}")

        with self._lock:
            existing = self._rows(table)
            matched = [row for row in existing if self._matches(row, filters)]
            for row in matched:
                candidate = dict(row, **values)
                if 'updated_at' in candidate:
                    candidate['updated_at'] = utcnow()
                self._check_unique(table, candidate, [r for r in existing if r is not row])
                row.update(candidate)
            return copy.deepcopy(matched)

    def delete(self, table, filters):
        with self._lock:
            return self._delete(table, filters)

    def _delete(self, table, filters):
        rows = self._rows(table)
        doomed = [row for row in rows if self._matches(row, filters)]
        for row in doomed:
            for child_table, foreign_key in self.CASCADES.get(table, ()):
                self._delete(child_table, {foreign_key: row['id']})
        self._tables[table] = [row for row in rows if not any(row is d for d in doomed)]
        return len(doomed)

    def count(self, table, filters=None):
        with self._lock:
            return sum(1 for row in self._rows(table) if self._matches(row, filters))
