"""Remote data service: the hosted tables and blob store behind one interface.

``SupabaseDataService`` talks to the hosted project. ``SqlDataService`` keeps
the same five tables in a Flask-SQLAlchemy database and stores blobs in a
local folder, which is what development and the test-suite run against.
"""
import logging
import os

from flask import current_app, url_for
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from supabase import ClientOptions, create_client

try:
    from .exceptions import ConfigurationError, DataServiceError, QueryCancelled
    from .models import MODEL_BY_TABLE, TABLE_SETTINGS, db, row_to_dict
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from exceptions import ConfigurationError, DataServiceError, QueryCancelled
    from models import MODEL_BY_TABLE, TABLE_SETTINGS, db, row_to_dict

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'barber_club.data_service'
EXTENSION_ERROR_KEY = 'barber_club.data_service_error'
MISSING_SUPABASE_CONFIG = (
    'Configuração do Supabase ausente. Verifique SUPABASE_URL e SUPABASE_ANON_KEY nas variáveis de ambiente.'
)
STORAGE_TIMEOUT_SECONDS = 600


def _raise_if_cancelled(table, cancel):
    if cancel is not None and cancel.is_set():
        raise QueryCancelled(table)


class DataService:
    name = 'base'

    def select(self, table, *, order_by=None, descending=False, limit=None, cancel=None):
        raise NotImplementedError

    def insert(self, table, rows):
        raise NotImplementedError

    def upsert(self, table, row, on_conflict):
        raise NotImplementedError

    def update(self, table, row_id, values):
        raise NotImplementedError

    def delete(self, table, row_id):
        raise NotImplementedError

    def delete_all(self, table):
        raise NotImplementedError

    def upload_blob(self, path, data, content_type):
        raise NotImplementedError

    def ping(self):
        raise NotImplementedError

    def replace_all(self, table, rows):
        """Delete every row of ``table`` then insert ``rows``.

        Not atomic: if the insert fails after the delete, the previous rows
        are re-inserted as a compensating step and the insert error is
        raised. Backends with transactions override this.
        """
        previous = self.select(table)
        self.delete_all(table)
        if not rows:
            return
        try:
            self.insert(table, rows)
        except DataServiceError:
            logger.error('Insert into %s failed after delete; restoring %d previous rows.', table, len(previous))
            if previous:
                try:
                    self.insert(table, previous)
                except DataServiceError:
                    logger.exception('Restoring %s failed; table left empty.', table)
            raise


class SupabaseDataService(DataService):
    name = 'supabase'

    def __init__(self, url, key, *, bucket='barber-assets', timeout=3.0, client=None):
        if client is None:
            if not url or not key:
                raise ConfigurationError(MISSING_SUPABASE_CONFIG)
            options = ClientOptions(
                postgrest_client_timeout=timeout,
                storage_client_timeout=STORAGE_TIMEOUT_SECONDS,
            )
            client = create_client(url, key, options=options)
        self._client = client
        self._bucket = bucket

    def _execute(self, table, query):
        try:
            response = query.execute()
        except Exception as exc:
            raise DataServiceError(str(getattr(exc, 'message', '') or exc), table=table) from exc
        return response.data or []

    def select(self, table, *, order_by=None, descending=False, limit=None, cancel=None):
        _raise_if_cancelled(table, cancel)
        query = self._client.table(table).select('*')
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        rows = self._execute(table, query)
        _raise_if_cancelled(table, cancel)
        return rows

    def insert(self, table, rows):
        return self._execute(table, self._client.table(table).insert(list(rows)))

    def upsert(self, table, row, on_conflict):
        return self._execute(table, self._client.table(table).upsert(row, on_conflict=on_conflict))

    def update(self, table, row_id, values):
        return self._execute(table, self._client.table(table).update(values).eq('id', row_id))

    def delete(self, table, row_id):
        return self._execute(table, self._client.table(table).delete().eq('id', row_id))

    def delete_all(self, table):
        # PostgREST refuses an unfiltered delete.
        return self._execute(table, self._client.table(table).delete().neq('id', 0))

    def upload_blob(self, path, data, content_type):
        bucket = self._client.storage.from_(self._bucket)
        try:
            bucket.upload(
                path,
                data,
                file_options={
                    'content-type': content_type or 'application/octet-stream',
                    'cache-control': '3600',
                    'upsert': 'false',
                },
            )
            return bucket.get_public_url(path)
        except Exception as exc:
            raise DataServiceError(str(getattr(exc, 'message', '') or exc), table=self._bucket) from exc

    def ping(self):
        self._execute(TABLE_SETTINGS, self._client.table(TABLE_SETTINGS).select('key').limit(1))


def _model_kwargs(model, row):
    columns = {column.key for column in model.__table__.columns}
    return {key: value for key, value in row.items() if key in columns}


def _default_public_url(filename):
    return url_for('admin.uploaded_file', filename=filename, _external=True)


class SqlDataService(DataService):
    name = 'sql'

    def __init__(self, app, upload_folder, public_url=None):
        self._app = app
        self._upload_folder = upload_folder
        self._public_url = public_url or _default_public_url

    def _model(self, table):
        try:
            return MODEL_BY_TABLE[table]
        except KeyError:
            raise DataServiceError(f'Unknown table {table}', table=table) from None

    def _write(self, table, operation):
        with self._app.app_context():
            try:
                result = operation(self._model(table))
                db.session.commit()
                return result
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise DataServiceError(str(exc.__cause__ or exc), table=table) from exc

    def select(self, table, *, order_by=None, descending=False, limit=None, cancel=None):
        _raise_if_cancelled(table, cancel)
        model = self._model(table)
        with self._app.app_context():
            try:
                query = model.query
                if order_by:
                    column = getattr(model, order_by)
                    query = query.order_by(column.desc() if descending else column.asc())
                if limit:
                    query = query.limit(limit)
                rows = [row_to_dict(item) for item in query.all()]
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise DataServiceError(str(exc.__cause__ or exc), table=table) from exc
        _raise_if_cancelled(table, cancel)
        return rows

    def insert(self, table, rows):
        def operation(model):
            items = [model(**_model_kwargs(model, row)) for row in rows]
            db.session.add_all(items)
            db.session.flush()
            return [row_to_dict(item) for item in items]
        return self._write(table, operation)

    def upsert(self, table, row, on_conflict):
        def operation(model):
            item = model.query.filter_by(**{on_conflict: row[on_conflict]}).first()
            if item is None:
                item = model(**_model_kwargs(model, row))
                db.session.add(item)
            else:
                for key, value in _model_kwargs(model, row).items():
                    setattr(item, key, value)
            db.session.flush()
            return [row_to_dict(item)]
        return self._write(table, operation)

    def update(self, table, row_id, values):
        def operation(model):
            model.query.filter_by(id=row_id).update(_model_kwargs(model, values))
            return []
        return self._write(table, operation)

    def delete(self, table, row_id):
        def operation(model):
            model.query.filter_by(id=row_id).delete()
            return []
        return self._write(table, operation)

    def delete_all(self, table):
        def operation(model):
            model.query.delete()
            return []
        return self._write(table, operation)

    def replace_all(self, table, rows):
        def operation(model):
            model.query.delete()
            db.session.add_all([model(**_model_kwargs(model, row)) for row in rows])
            return []
        return self._write(table, operation)

    def upload_blob(self, path, data, content_type):
        os.makedirs(self._upload_folder, exist_ok=True)
        full_path = os.path.join(self._upload_folder, path)
        try:
            with open(full_path, 'wb') as handle:
                handle.write(data)
        except OSError as exc:
            raise DataServiceError(str(exc), table='uploads') from exc
        return self._public_url(path)

    def ping(self):
        with self._app.app_context():
            try:
                db.session.execute(text('SELECT 1'))
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise DataServiceError(str(exc), table=TABLE_SETTINGS) from exc


def build_data_service(app):
    backend = app.config.get('DATA_BACKEND') or 'supabase'
    if backend == 'sql':
        return SqlDataService(app, app.config['UPLOAD_FOLDER'])
    return SupabaseDataService(
        app.config.get('SUPABASE_URL'),
        app.config.get('SUPABASE_ANON_KEY'),
        bucket=app.config.get('SUPABASE_STORAGE_BUCKET') or 'barber-assets',
        timeout=app.config.get('CONTENT_TABLE_TIMEOUT_SECONDS') or 3.0,
    )


def init_data_service(app, service=None):
    app.extensions[EXTENSION_ERROR_KEY] = None
    if service is None:
        try:
            service = build_data_service(app)
        except ConfigurationError as exc:
            app.logger.error('Data service unavailable: %s', exc.message)
            app.extensions[EXTENSION_ERROR_KEY] = exc.message
    app.extensions[EXTENSION_KEY] = service
    return service


def get_data_service(app=None):
    app = app or current_app
    service = app.extensions.get(EXTENSION_KEY)
    if service is None:
        raise ConfigurationError(app.extensions.get(EXTENSION_ERROR_KEY) or MISSING_SUPABASE_CONFIG)
    return service
