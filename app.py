"""
Lending - Material Lending & Reservation Platform
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import login_manager, csrf

# Import database functions
from database import close_db, init_db

from models.errors import LendingError
from utils.api_response import api_error, api_error_from
from utils.messages import get_message


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions."""
    # Initialize Flask-Login
    login_manager.init_app(app)
    # Initialize CSRF Protection
    csrf.init_app(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.auth.routes import auth_bp
    from blueprints.api.routes import api_bp
    from blueprints.lending import lending_bp

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(lending_bp, url_prefix='/lending')


def register_error_handlers(app):
    """Register JSON error handlers."""

    @app.errorhandler(LendingError)
    def lending_error(error):
        """Domain errors carry their own status and code."""
        app.logger.info('%s: %s', error.code, error.message)
        return api_error_from(error)

    @app.errorhandler(400)
    def bad_request_error(error):
        """Handle 400 errors (including CSRF failures)."""
        description = getattr(error, 'description', None) or get_message('bad_request')
        return api_error(description, status=400, code='BAD_REQUEST')

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 errors."""
        return api_error(get_message('permission_denied'), status=403, code='FORBIDDEN')

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error(get_message('not_found'), status=404, code='NOT_FOUND')

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error(get_message('method_not_allowed'), status=405, code='METHOD_NOT_ALLOWED')

    @app.errorhandler(Exception)
    def internal_error(error):
        """Handle uncaught exceptions as 500."""
        if isinstance(error, HTTPException):
            return api_error(error.description, status=error.code, code=error.name.upper().replace(' ', '_'))
        app.logger.exception('Unhandled error: %s', error)
        return api_error(get_message('server_error'), status=500, code='SERVER_ERROR')


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-user')
    @click.argument('username')
    @click.argument('email')
    @click.password_option()
    @click.option('--role', type=click.Choice(['admin', 'member']), default='member',
                  show_default=True)
    @click.option('--credits', 'credit_balance', type=int, default=0, show_default=True,
                  help='Initial credit balance')
    @click.option('--full-name', default=None)
    def create_user_command(username, email, password, role, credit_balance, full_name):
        """Create a new user."""
        from models.user import create_user

        with app.app_context():
            try:
                user_id = create_user(
                    username=username,
                    email=email,
                    password=password,
                    full_name=full_name,
                    role=role,
                    credit_balance=credit_balance
                )
            except ValueError as e:
                raise click.ClickException(str(e))
            click.echo(f'User created successfully! ID: {user_id}')

    @app.cli.command('sweep-maintenance')
    @click.option('--date', 'day', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Reference day (defaults to today in the facility timezone)')
    def sweep_maintenance_command(day):
        """End expired maintenances and activate started ones."""
        from models.maintenance import sweep_maintenances

        with app.app_context():
            result = sweep_maintenances(day.date() if day else None)
        click.echo(f"Maintenance sweep: {result['ended']} ended, {result['activated']} activated")


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/lending.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        # Model modules log through their own module loggers
        logging.getLogger('models').addHandler(file_handler)
        logging.getLogger('models').setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Lending startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', debug=True)
