import os
from decimal import Decimal
from typing import Callable, Generator
from datetime import datetime, timezone

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_mock"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_secret_mock"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "rzp_whsec_mock"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_mock"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_mock"
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.auth import create_access_token, create_admin_token, get_password_hash
from app.main import app
from app.models import (
    AdminUser,
    MarketplaceItem,
    Order,
    OrderItem,
    OrderStatusHistory,
    Payment,
    ShippingDetail,
    User,
)
from app.models.database import Base, get_db
from app.services.pricing import compute_order_amounts

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db: Session, email: str, name: str, user_type: str, profile: dict, verified: bool = True) -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=get_password_hash("testpassword123"),
        user_type=user_type,
        profile_data=profile,
        is_verified=verified,
        verified_at=datetime.now(timezone.utc) if verified else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def buyer(db: Session) -> User:
    return _make_user(db, "buyer@example.com", "Buyer", "individual", {"skills": ["cooking"]})


@pytest.fixture
def seller(db: Session) -> User:
    return _make_user(db, "seller@example.com", "Seller Co", "company", {"company_name": "Seller Co"})


@pytest.fixture
def ngo(db: Session) -> User:
    return _make_user(db, "ngo@example.org", "Helping Hands", "ngo", {"organization_name": "Helping Hands"})


@pytest.fixture
def unverified_user(db: Session) -> User:
    return _make_user(db, "new@example.com", "Newcomer", "individual", {}, verified=False)


@pytest.fixture
def admin_user(db: Session) -> AdminUser:
    admin = AdminUser(
        email="admin@example.com",
        name="Admin",
        hashed_password=get_password_hash("adminpassword123"),
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


@pytest.fixture
def item(db: Session, seller: User) -> MarketplaceItem:
    marketplace_item = MarketplaceItem(
        seller_id=seller.id,
        seller_type=seller.user_type,
        title="Handloom Saree",
        description="Hand-woven cotton saree",
        category="clothing",
        price=Decimal("1000.00"),
        quantity=5,
        condition_type="new",
        images=[],
        status="active",
    )
    db.add(marketplace_item)
    db.commit()
    db.refresh(marketplace_item)
    return marketplace_item


@pytest.fixture
def auth_token(client: TestClient, buyer: User) -> str:
    """Get auth token for the buyer through the login endpoint."""
    response = client.post(
        "/api/auth/login",
        json={"email": "buyer@example.com", "password": "testpassword123"},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def seller_headers(seller: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(seller.id)}"}


@pytest.fixture
def ngo_headers(ngo: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(ngo.id)}"}


@pytest.fixture
def admin_cookies(admin_user: AdminUser) -> dict[str, str]:
    return {"admin-token": create_admin_token(admin_user.id)}


@pytest.fixture
def make_order(db: Session, buyer: User, item: MarketplaceItem) -> Callable[..., Order]:
    """Build an order directly in the database at a given status."""
    counter = {"n": 0}

    def _make(
        status: str = "payment_pending",
        payment_status: str | None = None,
        quantity: int = 1,
        gateway_order_id: str = "order_rzp_1",
        payment_method: str = "razorpay",
        waybill: str | None = None,
    ) -> Order:
        counter["n"] += 1
        amounts = compute_order_amounts(item.price, quantity, Decimal("50"), Decimal("0.18"))
        order = Order(
            order_number=f"ORD-1700000000000-t{counter['n']:04d}",
            buyer_id=buyer.id,
            seller_id=item.seller_id,
            total_amount=amounts.total_amount,
            shipping_amount=amounts.shipping_amount,
            tax_amount=amounts.tax_amount,
            discount_amount=amounts.discount_amount,
            final_amount=amounts.final_amount,
            status=status,
            shipping_address=SHIPPING_ADDRESS,
            billing_address=SHIPPING_ADDRESS,
        )
        db.add(order)
        db.flush()
        db.add(
            OrderItem(
                order_id=order.id,
                marketplace_item_id=item.id,
                quantity=quantity,
                unit_price=amounts.unit_price,
                total_price=amounts.total_amount,
                item_snapshot={"id": item.id, "title": item.title, "price": format(item.price, "f")},
            )
        )
        if payment_status is None:
            payment_status = "captured" if status in {"confirmed", "processing", "shipped", "delivered"} else "created"
        db.add(
            Payment(
                order_id=order.id,
                payment_id=f"PAY-test-{counter['n']}",
                payment_method=payment_method,
                gateway_order_id=gateway_order_id,
                gateway_payment_id="pay_rzp_1" if payment_status == "captured" else None,
                amount=amounts.final_amount,
                currency="INR",
                status=payment_status,
                refund_amount=0,
                captured_at=datetime.now(timezone.utc) if payment_status == "captured" else None,
            )
        )
        db.add(
            ShippingDetail(
                order_id=order.id,
                waybill=waybill,
                courier_partner="delhivery",
                tracking_status="in_transit" if status == "shipped" else "pending",
                tracking_updates=[],
            )
        )
        db.add(OrderStatusHistory(order_id=order.id, previous_status=None, new_status=status, reason="fixture"))
        db.commit()
        db.refresh(order)
        return order

    return _make
