"""
Test application factory and configuration.
"""

import pytest
from app import create_app


class TestAppFactory:
    """Test Flask application factory."""

    def test_create_app_development(self):
        """Test app creation with development config."""
        app = create_app('development')
        assert app is not None
        assert app.config['DEBUG'] is True
        assert app.config['TESTING'] is False

    def test_create_app_test(self):
        """Test app creation with test config."""
        app = create_app('test')
        assert app is not None
        assert app.config['TESTING'] is True
        assert app.config['WTF_CSRF_ENABLED'] is False

    def test_create_app_default(self):
        """Test app creation with default config."""
        app = create_app()
        assert app is not None

    def test_app_has_blueprints(self):
        """Test that all blueprints are registered."""
        app = create_app('test')
        blueprint_names = list(app.blueprints.keys())

        assert 'auth' in blueprint_names
        assert 'api' in blueprint_names
        assert 'lending' in blueprint_names

    def test_app_has_extensions(self):
        """Test that extensions are initialized."""
        app = create_app('test')

        # Check login manager
        assert hasattr(app, 'login_manager')

    def test_production_requires_secrets(self, monkeypatch):
        """Production refuses to start without its secrets."""
        monkeypatch.delenv('SECRET_KEY', raising=False)
        with pytest.raises(ValueError):
            create_app('production')


class TestAppConfiguration:
    """Test application configuration."""

    def test_secret_key_set(self):
        """Test that secret key is configured."""
        app = create_app('test')
        assert app.config['SECRET_KEY'] is not None
        assert len(app.config['SECRET_KEY']) > 0

    def test_database_path_set(self):
        """Test that database path is configured."""
        app = create_app('test')
        assert 'DATABASE_PATH' in app.config

    def test_app_name_set(self):
        """Test that app name is configured."""
        app = create_app('test')
        assert app.config.get('APP_NAME') == 'Lending'

    def test_refund_deadline_default(self):
        """Self-service refund deadline defaults to 48 hours."""
        app = create_app('test')
        assert app.config['REFUND_DEADLINE_HOURS'] == 48


class TestErrorHandlers:
    """Test JSON error responses."""

    def test_404_is_json(self, client):
        """Unknown URLs answer JSON."""
        response = client.get('/does-not-exist')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'NOT_FOUND'

    def test_405_is_json(self, client):
        """Wrong method answers JSON."""
        response = client.delete('/api/health')
        assert response.status_code == 405
        assert response.get_json()['success'] is False


class TestCLICommands:
    """Test CLI command registration."""

    def test_cli_commands_registered(self):
        """Test that CLI commands are registered."""
        app = create_app('test')

        # Get registered CLI commands
        commands = list(app.cli.commands.keys())

        assert 'init-db' in commands
        assert 'create-user' in commands
        assert 'sweep-maintenance' in commands

    def test_sweep_command(self, api_app):
        """sweep-maintenance runs against the database."""
        runner = api_app.test_cli_runner()
        result = runner.invoke(args=['sweep-maintenance', '--date', '2030-01-01'])
        assert result.exit_code == 0
        assert 'Maintenance sweep: 0 ended, 0 activated' in result.output

    def test_create_user_command(self, api_app):
        """create-user adds a member with credits."""
        runner = api_app.test_cli_runner()
        result = runner.invoke(args=['create-user', 'carol', 'carol@example.com',
                                     '--password', 'secret1', '--credits', '25'])
        assert result.exit_code == 0, result.output

        with api_app.app_context():
            from models.user import get_user_by_username
            user = get_user_by_username('carol')
        assert user['credit_balance'] == 25
        assert user['role'] == 'member'

    def test_create_user_rejects_bad_input(self, api_app):
        """Malformed email or short password fail without creating the user."""
        runner = api_app.test_cli_runner()
        result = runner.invoke(args=['create-user', 'dave', 'not-an-email',
                                     '--password', 'secret1'])
        assert result.exit_code != 0
        assert 'Invalid email address' in result.output

        result = runner.invoke(args=['create-user', 'dave', 'dave@example.com',
                                     '--password', 'abc'])
        assert result.exit_code != 0
        assert 'at least 6 characters' in result.output

        with api_app.app_context():
            from models.user import get_user_by_username
            assert get_user_by_username('dave') is None
