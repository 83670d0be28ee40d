import pytest
from decimal import Decimal

from atelier import create_app
from atelier.database import Base, get_session, get_engine
from atelier.models import (
    AppUser, UserRole, Product, Fabric, FabricGrade, PriceMatrixRow, SiteConfig, SITE_CONFIG_ID
)
from atelier.services.site_config_service import SiteConfigSnapshot


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(autouse=True)
def database(app):
    """Fresh schema for every test."""
    get_session().remove()
    Base.metadata.drop_all(bind=get_engine())
    Base.metadata.create_all(bind=get_engine())
    yield
    get_session().remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def app_ctx(app):
    """Application context for calling services directly."""
    with app.app_context():
        yield


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


def _make_user(session, email, role):
    user = AppUser(email=email, full_name=email.split('@')[0].title(), role=role, active=True)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(scope='function')
def customer(session):
    return _make_user(session, 'cliente@test.com', UserRole.CUSTOMER.value)


@pytest.fixture(scope='function')
def other_customer(session):
    return _make_user(session, 'otro@test.com', UserRole.CUSTOMER.value)


@pytest.fixture(scope='function')
def staff(session):
    return _make_user(session, 'taller@test.com', UserRole.STAFF.value)


@pytest.fixture(scope='function')
def admin(session):
    return _make_user(session, 'admin@test.com', UserRole.ADMIN.value)


@pytest.fixture(scope='function')
def product(session):
    """Sofa with one general price row: 200 cm, G3000 = 1000.00, 10% row discount."""
    product = Product(name='Sofá Lisboa', active=True)
    session.add(product)
    session.flush()

    session.add(PriceMatrixRow(
        product_id=product.id,
        size_cm=200,
        price_list_id=None,
        price_grade_1000=Decimal('800.00'),
        price_grade_2000=Decimal('900.00'),
        price_grade_3000=Decimal('1000.00'),
        price_grade_4000=Decimal('1100.00'),
        price_grade_5000=Decimal('1200.00'),
        price_grade_6000=Decimal('1300.00'),
        price_grade_7000=Decimal('1400.00'),
        price_leather=Decimal('2000.00'),
        discount_percent=Decimal('10')
    ))
    session.commit()
    session.refresh(product)
    return product


@pytest.fixture(scope='function')
def fabric(session):
    fabric = Fabric(name='Linho Cru', grade=FabricGrade.G3000, active=True)
    session.add(fabric)
    session.commit()
    session.refresh(fabric)
    return fabric


@pytest.fixture(scope='function')
def leather(session):
    fabric = Fabric(name='Couro Natural', grade=FabricGrade.LEATHER, active=True)
    session.add(fabric)
    session.commit()
    session.refresh(fabric)
    return fabric


@pytest.fixture(scope='function')
def price_row(session, product):
    return session.query(PriceMatrixRow).filter_by(product_id=product.id, size_cm=200).one()


@pytest.fixture(scope='function')
def snapshot():
    """No whitelist, no featured discounts, general price list."""
    return SiteConfigSnapshot()


@pytest.fixture(scope='function')
def site_config(session):
    """Persist the singleton site configuration row; returns a setter."""
    def _set(current_price_list_id=None, active_product_ids=None, featured_discounts=None):
        config = session.get(SiteConfig, SITE_CONFIG_ID)
        if not config:
            config = SiteConfig(id=SITE_CONFIG_ID)
            session.add(config)
        config.current_price_list_id = current_price_list_id
        config.active_product_ids = list(active_product_ids or [])
        config.featured_discounts = {str(k): str(v) for k, v in (featured_discounts or {}).items()}
        session.commit()
        return config
    return _set


@pytest.fixture(scope='function')
def login(client):
    """Authenticate the test client as the given user."""
    def _login(user_id):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
        return client
    return _login
