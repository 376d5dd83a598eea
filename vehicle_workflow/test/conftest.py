"""
Pytest configuration and fixtures for the vehicle workflow tests
"""
import pytest
from vehicle_workflow import create_app, get_orchestrator
from vehicle_workflow import db as _db
from vehicle_workflow.buisness.workflow.locations import Location
from vehicle_workflow.test.vehicle_data import TEST_VIN


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create Flask application backed by a throwaway SQLite file"""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'WORKFLOW_NOTIFY_RETRY_DELAY': 0,
    })

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()
        get_orchestrator(app).shutdown()


@pytest.fixture(scope='function')
def db(app):
    return _db


@pytest.fixture(scope='function')
def orchestrator(app):
    return get_orchestrator(app)


@pytest.fixture(scope='function')
def store(orchestrator):
    return orchestrator.store


@pytest.fixture(scope='function')
def make_vehicle(store):
    """Factory registering a vehicle at a location with the given attributes"""
    def _make_vehicle(vin=TEST_VIN, location=Location.NEW_ARRIVALS, step=None,
                      model='Voyah Free', **attributes):
        if step is None:
            step = store.registry.get(location).permitted_steps[0]
        return store.register(vin, location, step, model=model, attributes=attributes)

    return _make_vehicle


@pytest.fixture(scope='function')
def collected(orchestrator):
    """Subscriber that records every delivered notification"""
    messages = []
    orchestrator.subscribe(messages.append)
    return messages

