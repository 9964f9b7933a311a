import os, sys, pytest
# Ensure backend directory is on path so 'markpedia' can be imported without installing
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from markpedia import create_app, get_db
from markpedia.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import markpedia.models.audit  # noqa: F401
import markpedia.models.cash_request  # noqa: F401
import markpedia.models.cash_receipt  # noqa: F401
import markpedia.models.cashbook  # noqa: F401
import markpedia.models.doc_counter  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'JWT_SECRET_KEY': 'test-secret-key-with-at-least-32-bytes',
        'CEO_APPROVAL_THRESHOLD': '100000',
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()

@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance
