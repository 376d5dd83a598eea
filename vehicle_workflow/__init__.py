from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import os
from vehicle_workflow.utils.logger import get_logger

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


def create_app(config_overrides=None):
    from pathlib import Path

    app = Flask(__name__)

    # Get singleton logger
    logger = get_logger("vehicle_workflow")
    logger.info("Initializing Flask application")

    config_overrides = dict(config_overrides or {})
    app.config['TESTING'] = config_overrides.get('TESTING', _env_flag('TESTING', 'False'))

    # SECURITY: Require SECRET_KEY in environment outside of tests - no fallback
    app.config['SECRET_KEY'] = config_overrides.get('SECRET_KEY', os.environ.get('SECRET_KEY'))
    if not app.config['SECRET_KEY']:
        if not app.config['TESTING']:
            logger.critical("SECRET_KEY not set in environment! Application cannot start.")
            raise RuntimeError("SECRET_KEY environment variable is required")
        app.config['SECRET_KEY'] = 'testing'

    # Prefer an explicit DATABASE_URL env var; otherwise keep the SQLite
    # database inside the project's `instance/` directory.
    db_env = os.environ.get('DATABASE_URL')
    if 'SQLALCHEMY_DATABASE_URI' in config_overrides:
        app.config['SQLALCHEMY_DATABASE_URI'] = config_overrides['SQLALCHEMY_DATABASE_URI']
    elif db_env:
        app.config['SQLALCHEMY_DATABASE_URI'] = db_env
    else:
        base_dir = Path(__file__).parent.parent
        instance_dir = base_dir / 'instance'
        instance_dir.mkdir(parents=True, exist_ok=True)
        default_db_path = instance_dir / 'vehicle_workflow.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{str(default_db_path.resolve())}"

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Notification dispatch policy
    app.config['WORKFLOW_NOTIFY_MAX_ATTEMPTS'] = int(os.environ.get('WORKFLOW_NOTIFY_MAX_ATTEMPTS', '3'))  # Default: 3 attempts per message
    app.config['WORKFLOW_NOTIFY_RETRY_DELAY'] = float(os.environ.get('WORKFLOW_NOTIFY_RETRY_DELAY', '0.5'))  # Default: half a second between attempts
    app.config['WORKFLOW_NOTIFY_FAILURE_HISTORY'] = int(os.environ.get('WORKFLOW_NOTIFY_FAILURE_HISTORY', '100'))  # Default: keep last 100 failures

    app.config.update(config_overrides)

    if app.config['WORKFLOW_NOTIFY_MAX_ATTEMPTS'] < 1:
        raise RuntimeError("WORKFLOW_NOTIFY_MAX_ATTEMPTS must be at least 1")

    logger.debug(f"Database configured: {app.config['SQLALCHEMY_DATABASE_URI'].split(':', 1)[0]}")

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)

    logger.debug("Extensions initialized")

    # Import models to ensure they're registered with SQLAlchemy
    from vehicle_workflow.data.core.vehicle import Vehicle, LocationHistoryEntry
    from vehicle_workflow.data.core.workflow_event import WorkflowEvent

    logger.debug("Models imported and registered")

    from vehicle_workflow.buisness.workflow.orchestrator import WorkflowOrchestrator
    app.extensions['vehicle_workflow'] = WorkflowOrchestrator.from_config(app.config)

    logger.info("Vehicle workflow orchestrator initialized")

    return app


def get_orchestrator(app=None):
    """Return the WorkflowOrchestrator bound to the given (or current) Flask app"""
    app = app or current_app
    return app.extensions['vehicle_workflow']
