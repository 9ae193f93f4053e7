import pytest
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from pos_app import create_app
import pos_app.database as database
from pos_app.database import Base
from pos_app.models import (
    Business, Employee, InventoryItem, Sale, SaleItem, SalePayment, Drawer
)

SALE_TIME = datetime(2024, 3, 5, 14, 30)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """
    Database session for fixtures and assertions.

    Separate from the request-scoped session so objects stay usable after
    a request tears its session down. Every table is emptied afterwards.
    """
    session = sessionmaker(bind=database.engine, expire_on_commit=False)()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope='function')
def business(session):
    """Create test business."""
    business = Business(
        business_name='Maple Corner Cafe',
        address='42 King St',
        city='Guelph',
        province='ON',
        postal_code='N1H 3Z9',
        phone='(519) 555-0100',
        email='hello@maplecorner.test',
        tax_number='HST#987654321',
        timezone='America/Toronto',
        loyalty_mode='credit',
        earn_rate_percentage=3,
    )
    session.add(business)
    session.commit()
    return business


@pytest.fixture(scope='function')
def other_business(session):
    """Second business for isolation checks."""
    business = Business(business_name='Other Shop', timezone='America/Toronto')
    session.add(business)
    session.commit()
    return business


@pytest.fixture(scope='function')
def manager(session, business):
    """Manager who authorizes refunds with PIN 1234."""
    manager = Employee(business_id=business.id, full_name='Morgan Manager', role='manager', active=True)
    manager.set_pin('1234')
    session.add(manager)
    session.commit()
    return manager


@pytest.fixture(scope='function')
def cashier(session, business):
    """Cashier submitting refunds."""
    cashier = Employee(business_id=business.id, full_name='Casey Cashier', role='employee', active=True)
    session.add(cashier)
    session.commit()
    return cashier


@pytest.fixture(scope='function')
def inventory(session, business):
    """Stock for the two products on the test sale."""
    widget = InventoryItem(business_id=business.id, name='Widget', sku='SKU-A', quantity=5)
    gadget = InventoryItem(business_id=business.id, name='Gadget', sku='SKU-B', quantity=3)
    session.add_all([widget, gadget])
    session.commit()
    return {'widget': widget, 'gadget': gadget}


@pytest.fixture(scope='function')
def sale(session, business, cashier, inventory):
    """
    Two-line sale: 2 x Widget ($30.00) and 1 x Gadget ($10.00).

    Subtotal 40.00, tax 5.20, total 45.20; paid 20.00 card + 25.20 cash.
    """
    sale = Sale(
        business_id=business.id,
        sale_number='S-1001',
        user_id=cashier.id,
        subtotal=Decimal('40.00'),
        tax=Decimal('5.20'),
        total=Decimal('45.20'),
        aggregated_taxes={'HST': '5.20'},
        aggregated_rebates={},
        created_at=SALE_TIME,
    )
    sale.items = [
        SaleItem(
            name='Widget', sku='SKU-A', category_name='Hardware',
            inventory_id=inventory['widget'].id,
            quantity=2, unit_price=Decimal('15.00'), total_price=Decimal('30.00'),
            tax_rate=Decimal('0.13'), tax_amount=Decimal('3.90'),
        ),
        SaleItem(
            name='Gadget', sku='SKU-B', category_name='Hardware',
            inventory_id=inventory['gadget'].id,
            quantity=1, unit_price=Decimal('10.00'), total_price=Decimal('10.00'),
            tax_rate=Decimal('0.13'), tax_amount=Decimal('1.30'),
        ),
    ]
    sale.payments = [
        SalePayment(payment_method='card', amount=Decimal('20.00')),
        SalePayment(payment_method='cash', amount=Decimal('25.20')),
    ]
    session.add(sale)
    session.commit()
    return sale


@pytest.fixture(scope='function')
def drawer(session, business, cashier):
    """Drawer open for the whole trading day of the test sale."""
    drawer = Drawer(
        business_id=business.id,
        terminal_id='T1',
        opened_by=cashier.id,
        closed_by=cashier.id,
        starting_cash=Decimal('200.00'),
        expected_cash=None,
        actual_cash=Decimal('225.20'),
        status='closed',
        opened_at=datetime(2024, 3, 5, 9, 0),
        closed_at=datetime(2024, 3, 5, 18, 0),
    )
    session.add(drawer)
    session.commit()
    return drawer


@pytest.fixture(scope='function')
def headers(business, cashier):
    """Request headers identifying the business and acting cashier."""
    return {'X-Business-Id': str(business.id), 'X-Actor-Id': str(cashier.id)}
