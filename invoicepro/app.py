import datetime
import io
import logging
import os
from functools import wraps

import click
from flask import Blueprint, Flask, current_app, g, jsonify, request, send_file, session
from flask_apscheduler import APScheduler
from flask_cors import CORS
from flask_migrate import Migrate, upgrade
from sqlalchemy.exc import SQLAlchemyError

from .clients import ClientRecordManager
from .config import Config
from .dashboard import dashboard_stats
from .errors import InvoiceProError
from .fixtures import DEMO_ACCOUNTS, demo_seed
from .identity import FixtureIdentityProvider, RemoteIdentityProvider
from .invoices import InvoiceRecordManager, filter_by_status, status_filter
from .models import db
from .pdf_builder import InvoicePDF
from .schemas import LoginInput, validate
from .session import AppState
from .stores import MemoryStore, SQLStore

logger = logging.getLogger(__name__)

migrate = Migrate()
api = Blueprint('api', __name__, url_prefix='/api')


class Backend:
    """The identity provider and data store an app runs against, plus the
    record managers built on that store."""

    def __init__(self, provider, store, config):
        self.provider = provider
        self.store = store
        self.clients = ClientRecordManager(store)
        self.invoices = InvoiceRecordManager(
            store,
            public_base_url=config['PUBLIC_BASE_URL'],
            default_currency=config['DEFAULT_CURRENCY'],
            payment_terms_days=config['DEFAULT_PAYMENT_TERMS_DAYS'],
        )


def _log_auth_event(event, auth_session):
    logger.info("Auth event %s (%s)", event, auth_session.user.email if auth_session else '-')


def build_backend(app):
    kind = app.config['INVOICEPRO_BACKEND']
    if kind == 'demo':
        provider = FixtureIdentityProvider(DEMO_ACCOUNTS)
        store = MemoryStore(demo_seed())
    elif kind == 'remote':
        if not app.config['AUTH_API_URL']:
            app.logger.warning("AUTH_API_URL is not set; sign-in will fail")
        provider = RemoteIdentityProvider(
            app.config['AUTH_API_URL'], app.config['AUTH_API_KEY'], timeout=app.config['AUTH_API_TIMEOUT'])
        store = SQLStore(db)
    else:
        raise ValueError(f"Unknown INVOICEPRO_BACKEND '{kind}' (expected 'remote' or 'demo')")

    provider.on_session_change(_log_auth_event)
    return Backend(provider, store, app.config)


def get_backend():
    return current_app.extensions['invoicepro']


def current_state():
    if 'state' not in g:
        backend = get_backend()
        state = AppState(backend.provider, backend.store, session)
        state.initialize()
        g.state = state
    return g.state


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user_id = current_state().require_user().id
        return view(*args, **kwargs)
    return wrapped


def to_json(value):
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


def _session_payload(state):
    return {
        'authenticated': state.is_authenticated,
        'user': state.user.to_dict() if state.user else None,
        'profile': to_json(state.profile),
        'is_admin': state.is_admin,
    }


# --------- Auth ---------
@api.route('/auth/login', methods=['POST'])
def login():
    credentials = validate(LoginInput, request.get_json(silent=True))
    state = current_state()
    state.login(credentials.email, credentials.password)
    return jsonify(_session_payload(state))


@api.route('/auth/register', methods=['POST'])
def register():
    profile = current_state().register(request.get_json(silent=True))
    return jsonify(to_json(profile)), 201


@api.route('/auth/logout', methods=['POST'])
def logout():
    current_state().logout()
    return jsonify({'message': 'Logged out successfully'})


@api.route('/auth/session')
def auth_session():
    return jsonify(_session_payload(current_state()))


@api.route('/profile', methods=['GET', 'PUT'])
@login_required
def profile():
    state = current_state()
    if request.method == 'PUT':
        state.update_profile(request.get_json(silent=True))
    return jsonify(to_json(state.profile))


# --------- Clients ---------
@api.route('/clients', methods=['GET', 'POST'])
@login_required
def clients():
    manager = get_backend().clients
    if request.method == 'POST':
        client = manager.add(g.user_id, request.get_json(silent=True))
        return jsonify(to_json(client)), 201
    results = manager.search(manager.list(g.user_id), request.args.get('q'))
    return jsonify(to_json(results))


@api.route('/clients/<client_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def manage_client(client_id):
    manager = get_backend().clients
    if request.method == 'DELETE':
        manager.delete(client_id, g.user_id)
        return jsonify({'message': 'Client deleted successfully'})

    if request.method == 'PUT':
        client = manager.update(client_id, g.user_id, request.get_json(silent=True))
        return jsonify(to_json(client))

    return jsonify(to_json(manager.get(client_id, g.user_id)))


# --------- Invoices ---------
@api.route('/invoices', methods=['GET', 'POST'])
@login_required
def invoices():
    manager = get_backend().invoices
    if request.method == 'POST':
        data = dict(request.get_json(silent=True) or {})
        client_id = data.pop('client_id', None)
        items = data.pop('items', None)
        invoice = manager.create(g.user_id, client_id, items, data)
        return jsonify(to_json(invoice)), 201

    status = status_filter(request.args.get('status'))
    results = manager.list(g.user_id)
    if status:
        results = filter_by_status(results, status)
    results = manager.search(results, request.args.get('q'))
    return jsonify(to_json(results))


@api.route('/invoices/preview', methods=['POST'])
@login_required
def preview_invoice():
    return jsonify(get_backend().invoices.preview(request.get_json(silent=True)))


@api.route('/invoices/<invoice_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def manage_invoice(invoice_id):
    manager = get_backend().invoices
    if request.method == 'DELETE':
        manager.delete(invoice_id, g.user_id)
        return jsonify({'message': 'Invoice deleted successfully'})

    if request.method == 'PUT':
        data = dict(request.get_json(silent=True) or {})
        items = data.pop('items', None)
        # Field changes first, so a new discount/tax rate feeds the recomputed totals
        invoice = manager.update(invoice_id, g.user_id, data)
        if items is not None:
            invoice = manager.replace_items(invoice_id, g.user_id, items)
        return jsonify(to_json(invoice))

    return jsonify(to_json(manager.get(invoice_id, g.user_id)))


@api.route('/invoices/<invoice_id>/pay', methods=['POST'])
@login_required
def mark_paid(invoice_id):
    return jsonify(to_json(get_backend().invoices.mark_paid(invoice_id, g.user_id)))


@api.route('/invoices/<invoice_id>/send', methods=['POST'])
@login_required
def send_invoice(invoice_id):
    return jsonify(to_json(get_backend().invoices.send(invoice_id, g.user_id)))


@api.route('/invoices/<invoice_id>/pdf')
@login_required
def download_pdf(invoice_id):
    invoice = get_backend().invoices.get(invoice_id, g.user_id)
    pdf = InvoicePDF(invoice, current_state().profile)
    mem = io.BytesIO()
    pdf.generate(mem)
    mem.seek(0)
    return send_file(mem, as_attachment=True, download_name=pdf.filename, mimetype='application/pdf')


@api.route('/next-invoice-number')
@login_required
def next_invoice_number():
    return jsonify({'invoice_number': get_backend().invoices.generate_number(g.user_id)})


@api.route('/dashboard')
@login_required
def dashboard():
    results = get_backend().invoices.list(g.user_id)
    stats = dashboard_stats(results)
    stats['recent_invoices'] = to_json(results[:5])
    return jsonify(stats)


# --------- App wiring ---------
def register_error_handlers(app):

    @app.errorhandler(InvoiceProError)
    def handle_app_error(e):
        if e.status_code >= 500:
            app.logger.error("Request failed: %s", e, exc_info=e)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        app.logger.error("Database operation failed: %s", e, exc_info=e)
        return jsonify({'error': 'Something went wrong, please try again'}), 500


def check_overdue_invoices(app):
    with app.app_context():
        changed = get_backend().invoices.mark_overdue()
        if changed:
            app.logger.info("Checked invoices: %d marked as overdue.", len(changed))
        return changed


def register_commands(app):

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command('check-overdue')
    def check_overdue_command():
        """Mark sent invoices past their due date as overdue."""
        changed = check_overdue_invoices(app)
        click.echo(f"{len(changed)} invoice(s) marked as overdue.")


def start_scheduler(app):
    scheduler = APScheduler()
    scheduler.init_app(app)
    # Run check daily at 9:00 AM by default
    scheduler.add_job(id='invoice_check', func=check_overdue_invoices, args=[app],
                      trigger='cron', hour=app.config['OVERDUE_CHECK_HOUR'])
    scheduler.start()
    app.extensions['invoicepro_scheduler'] = scheduler
    return scheduler


def init_database(app):
    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if uri.startswith('sqlite:///'):
        os.makedirs(os.path.dirname(os.path.abspath(uri[len('sqlite:///'):])), exist_ok=True)

    with app.app_context():
        # Apply migrations if they exist, otherwise create tables directly
        migration_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')
        if os.path.exists(migration_dir):
            try:
                upgrade(directory=migration_dir)
                app.logger.info("Database migrated successfully.")
            except Exception as e:
                app.logger.warning("Migration failed: %s. Attempting db.create_all() as fallback.", e)
                db.create_all()
        else:
            db.create_all()


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)

    logging.basicConfig(level=app.config['LOG_LEVEL'], format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    db.init_app(app)
    migrate.init_app(app, db)
    CORS(app, supports_credentials=True)

    app.extensions['invoicepro'] = build_backend(app)
    app.register_blueprint(api)
    register_error_handlers(app)
    register_commands(app)

    @app.route('/health')
    def health():
        return {'ok': True}

    init_database(app)
    if app.config['OVERDUE_CHECK_ENABLED']:
        start_scheduler(app)
    return app


if __name__ == '__main__':
    create_app().run(debug=False, port=5000)
