"""
API endpoint tests for health, identity and buyer endpoints
"""
import re
import pytest


class TestHealthEndpoints:
    """Tests for health check endpoints"""

    @pytest.mark.unit
    async def test_health_check(self, client):
        """Test health check endpoint"""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["db"] == "connected"
        assert "timestamp" in data

    @pytest.mark.unit
    async def test_root_endpoint(self, client):
        """Test root endpoint"""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert "KS1 Escrow Pay" in data["message"]


class TestRegistration:
    """Tests for registration and login"""

    @pytest.mark.integration
    async def test_register(self, client):
        response = await client.post(
            "/api/register",
            json={"phone_number": "+233501111111", "password": "secret"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.integration
    async def test_register_duplicate_phone(self, client):
        payload = {"phone_number": "+233501111111", "password": "secret"}
        await client.post("/api/register", json=payload)

        response = await client.post("/api/register", json=payload)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Phone number already exists."}

    @pytest.mark.integration
    async def test_register_missing_password(self, client):
        response = await client.post("/api/register", json={"phone_number": "+233501111111"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.integration
    async def test_login(self, client, test_user):
        response = await client.post(
            "/api/login",
            json={"phone_number": test_user.phone_number, "password": "BuyerPass1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"] == {
            "id": test_user.id,
            "phone_number": test_user.phone_number,
            "role": "user"
        }
        assert data["token_type"] == "bearer"
        assert data["access_token"]

    @pytest.mark.integration
    async def test_login_unregistered_phone(self, client):
        response = await client.post(
            "/api/login",
            json={"phone_number": "+233500000000", "password": "whatever"}
        )

        assert response.status_code == 401

    @pytest.mark.integration
    async def test_login_wrong_password(self, client, test_user):
        response = await client.post(
            "/api/login",
            json={"phone_number": test_user.phone_number, "password": "wrong"}
        )

        assert response.status_code == 401

    @pytest.mark.integration
    async def test_login_with_padded_phone(self, client):
        payload = {"phone_number": " 0244000000 ", "password": "secret"}
        await client.post("/api/register", json=payload)

        response = await client.post("/api/login", json=payload)

        assert response.status_code == 200
        assert response.json()["user"]["phone_number"] == "0244000000"

    @pytest.mark.integration
    async def test_hardcoded_admin_credential_rejected(self, client):
        response = await client.post(
            "/api/login",
            json={"phone_number": "admin", "password": "admin123"}
        )

        assert response.status_code == 401

    @pytest.mark.integration
    async def test_token_grants_profile_access(self, client, auth_headers, test_user):
        response = await client.get("/api/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["phone_number"] == test_user.phone_number

    @pytest.mark.integration
    async def test_logout_blacklists_token(self, client, auth_headers, redis_mock):
        response = await client.post("/api/logout", headers=auth_headers)

        assert response.status_code == 200
        redis_mock.setex.assert_awaited_once()
        key = redis_mock.setex.await_args.args[0]
        assert key == f"blacklist:{auth_headers['Authorization'].split()[1]}"

        redis_mock.get.return_value = "1"
        response = await client.get("/api/me", headers=auth_headers)
        assert response.status_code == 401


class TestBuyerEndpoints:
    """Tests for transaction endpoints used by buyers"""

    @pytest.mark.integration
    async def test_create_transaction(self, client, test_user):
        response = await client.post(
            "/api/transactions",
            json={
                "buyer_id": str(test_user.id),
                "seller_phone": "+233241112222",
                "amount": 1000,
                "description": "widget"
            }
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        txn = data["transaction"]
        assert re.fullmatch(r"KS1-\d{6}", txn["transaction_id"])
        assert txn["fee"] == 10.0
        assert txn["amount"] == 1000.0
        assert txn["status"] == "pending_payment"
        assert txn["buyer_phone"] == test_user.phone_number

    @pytest.mark.integration
    async def test_create_transaction_with_login_user_id(self, client, test_user):
        login = await client.post(
            "/api/login",
            json={"phone_number": test_user.phone_number, "password": "BuyerPass1"}
        )
        user_id = login.json()["user"]["id"]

        response = await client.post(
            "/api/transactions",
            json={"buyer_id": user_id, "seller_phone": "+233241112222", "amount": 50}
        )

        assert response.status_code == 200
        txn = response.json()["transaction"]
        assert txn["buyer_id"] == str(user_id)
        assert txn["buyer_phone"] == test_user.phone_number

        listed = await client.get(f"/api/transactions/{user_id}")
        assert [t["transaction_id"] for t in listed.json()] == [txn["transaction_id"]]

    @pytest.mark.integration
    async def test_create_transaction_missing_fields(self, client):
        response = await client.post("/api/transactions", json={"buyer_id": "1", "amount": 10})

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_create_transaction_zero_amount(self, client):
        response = await client.post(
            "/api/transactions",
            json={"buyer_id": "1", "seller_phone": "+233241112222", "amount": 0}
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.integration
    async def test_list_user_transactions(self, client, test_user, test_transaction):
        response = await client.get(f"/api/transactions/{test_user.id}")

        assert response.status_code == 200
        data = response.json()
        assert [t["transaction_id"] for t in data] == [test_transaction.transaction_id]

    @pytest.mark.integration
    async def test_list_transactions_for_unknown_user(self, client):
        response = await client.get("/api/transactions/999")

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.integration
    async def test_submit_payment(self, client, test_transaction):
        response = await client.post(
            "/api/payments/confirm",
            json={"transaction_id": test_transaction.transaction_id, "momo_reference": "MP2301.1234"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

        detail = await client.get(f"/api/transactions/{test_transaction.transaction_id}/detail")
        data = detail.json()
        assert data["transaction"]["status"] == "pending_payment"
        assert [p["momo_reference"] for p in data["payments"]] == ["MP2301.1234"]
        assert data["payments"][0]["verified"] is False
        assert data["commission"]["amount"] == 10.0

    @pytest.mark.integration
    async def test_submit_payment_missing_reference(self, client, test_transaction):
        response = await client.post(
            "/api/payments/confirm",
            json={"transaction_id": test_transaction.transaction_id}
        )

        assert response.status_code == 400

    @pytest.mark.integration
    async def test_submit_payment_unknown_transaction(self, client):
        response = await client.post(
            "/api/payments/confirm",
            json={"transaction_id": "KS1-000000", "momo_reference": "REF"}
        )

        assert response.status_code == 404

    @pytest.mark.integration
    async def test_confirm_delivery_before_funding(self, client, test_transaction):
        response = await client.put(
            f"/api/transactions/{test_transaction.transaction_id}/confirm-delivery"
        )

        assert response.status_code == 409
        assert response.json()["success"] is False

    @pytest.mark.integration
    async def test_open_dispute(self, client, test_transaction):
        response = await client.put(f"/api/transactions/{test_transaction.transaction_id}/dispute")

        assert response.status_code == 200
        detail = await client.get(f"/api/transactions/{test_transaction.transaction_id}/detail")
        assert detail.json()["transaction"]["status"] == "disputed"

    @pytest.mark.integration
    async def test_transaction_detail_not_found(self, client):
        response = await client.get("/api/transactions/KS1-000000/detail")

        assert response.status_code == 404
