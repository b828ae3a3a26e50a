from canteen.main import app
from canteen.services import get_order_service

ORDER = {
    "userName": "A",
    "srn": "S1",
    "orderNumber": "O1",
    "otp": "123",
    "items": [{"name": "Masala Dosa", "quantity": 1, "price": 40}, {"name": "Tea", "quantity": 1, "price": 10}],
    "totalAmount": 50,
}


def place(client, **overrides):
    return client.post("/api/orders", json={**ORDER, **overrides})


# =============================================================================
# END TO END
# =============================================================================

def test_signup_login_order_pickup_flow(client):
    response = client.post("/api/signup", json={"name": "A", "srn": "S1", "password": "p"})
    assert response.status_code == 201
    assert response.json() == {
        "success": True,
        "message": "Signup successful! Please login.",
        "user": {"name": "A", "srn": "S1"},
    }

    response = client.post("/api/login", json={"srn": "S1", "password": "p"})
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Login successful!",
        "user": {"name": "A", "srn": "S1"},
    }

    response = place(client)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order placed successfully!"
    assert body["order"]["received"] is False
    assert body["order"]["orderNumber"] == "O1"

    response = client.patch("/api/orders/O1/received", json={"received": True})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Order status updated"
    assert body["order"]["received"] is True


# =============================================================================
# ACCOUNTS
# =============================================================================

def test_check_srn(client):
    response = client.post("/api/check-srn", json={"srn": "S1"})
    assert response.status_code == 200
    assert response.json() == {"exists": False, "message": "SRN available for signup."}

    client.post("/api/signup", json={"name": "A", "srn": "S1", "password": "p"})

    response = client.post("/api/check-srn", json={"srn": "S1"})
    assert response.json() == {"exists": True, "message": "SRN already registered. Please login."}


def test_signup_conflict(client, signed_up):
    response = client.post("/api/signup", json={"name": "B", "srn": "S1", "password": "q"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "SRN already exists",
        "message": "This SRN is already registered. Please login instead.",
    }


def test_signup_response_never_contains_password(client):
    response = client.post("/api/signup", json={"name": "A", "srn": "S1", "password": "hunter2"})

    assert "hunter2" not in response.text
    assert "password" not in response.json()["user"]


def test_login_unknown_srn(client):
    response = client.post("/api/login", json={"srn": "S404", "password": "p"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "User not found",
        "message": "No account found with this SRN. Please signup first.",
    }


def test_login_wrong_password(client, signed_up):
    response = client.post("/api/login", json={"srn": "S1", "password": "wrong"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "Invalid password",
        "message": "Incorrect password. Please try again.",
    }


def test_numeric_srn_is_accepted_as_text(client):
    response = client.post("/api/signup", json={"name": "A", "srn": 1234, "password": "p"})

    assert response.status_code == 201
    assert response.json()["user"]["srn"] == "1234"


def test_missing_field_is_rejected(client):
    response = client.post("/api/signup", json={"name": "A", "srn": "S1"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request"
    assert "password" in body["details"]


def test_empty_signup_name_or_srn_is_rejected(client):
    for body in ({"name": "", "srn": "S1", "password": "p"}, {"name": "A", "srn": "", "password": "p"}):
        response = client.post("/api/signup", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    assert client.post("/api/check-srn", json={"srn": "S1"}).json()["exists"] is False


# =============================================================================
# ORDERS
# =============================================================================

def test_place_order_unknown_account(client):
    response = place(client, srn="S404")

    assert response.status_code == 400
    assert response.json() == {"error": "User not found"}


def test_placed_order_shape(client, signed_up):
    order = place(client, otp=4821).json()["order"]

    assert set(order) == {
        "_id", "userName", "srn", "orderNumber", "otp", "items", "totalAmount", "received", "createdAt",
    }
    assert order["userName"] == "A"
    assert order["srn"] == "S1"
    assert order["otp"] == "4821"
    assert order["items"] == ORDER["items"]
    assert order["totalAmount"] == 50


def test_whole_amount_is_returned_without_fraction(client, signed_up):
    order = place(client, totalAmount=50).json()["order"]

    assert isinstance(order["totalAmount"], int)
    assert order["totalAmount"] == 50
    assert isinstance(client.get("/api/orders/O1").json()["order"]["totalAmount"], int)


def test_fractional_amount_is_kept(client, signed_up):
    order = place(client, totalAmount=42.5).json()["order"]

    assert order["totalAmount"] == 42.5


def test_empty_order_fields_are_rejected(client, signed_up):
    for field in ("userName", "srn", "orderNumber", "otp"):
        response = place(client, **{field: ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    assert client.get("/api/orders/user/S1").json()["orders"] == []


def test_duplicate_order_number_is_generic_failure(client, signed_up):
    assert place(client).status_code == 201

    response = place(client)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Order creation failed"
    assert "O1" in body["details"]


def test_get_order(client, signed_up):
    placed = place(client).json()["order"]

    response = client.get("/api/orders/O1")

    assert response.status_code == 200
    assert response.json() == {"success": True, "order": placed}


def test_get_unknown_order(client):
    response = client.get("/api/orders/O404")

    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


def test_orders_of_user_newest_first(client, signed_up):
    for number in ("O1", "O2", "O3"):
        assert place(client, orderNumber=number).status_code == 201

    response = client.get("/api/orders/user/S1")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [o["orderNumber"] for o in body["orders"]] == ["O3", "O2", "O1"]


def test_orders_of_user_without_orders(client):
    response = client.get("/api/orders/user/S9")

    assert response.status_code == 200
    assert response.json() == {"success": True, "orders": []}


def test_set_received_then_get(client, signed_up):
    place(client)

    client.patch("/api/orders/O1/received", json={"received": True})

    assert client.get("/api/orders/O1").json()["order"]["received"] is True


def test_set_received_unknown_order(client):
    response = client.patch("/api/orders/O404/received", json={"received": True})

    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


def test_unexpected_failure_is_labelled(client):
    class BrokenService:
        async def get_orders_by_identifier(self, identifier):
            raise RuntimeError("connection refused")

    app.dependency_overrides[get_order_service] = lambda: BrokenService()
    try:
        response = client.get("/api/orders/user/S1")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch orders", "details": "connection refused"}


# =============================================================================
# ROOT & HEALTH
# =============================================================================

def test_root(client):
    body = client.get("/").json()

    assert body["version"] == "1.0.0"
    assert body["health"] == "/health"


def test_health_with_memory_storage(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "operational"
    assert body["storage"] == "healthy"
    assert body["redis"] == "disabled"
