"""Tests for the user show/update/delete endpoints."""

from models import PersonalAccessToken, Transaction, User


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestShowUser:

    def test_show_self(self, client, register_user):
        body = register_user()
        response = client.get(f"/users/show/{body['user']['id']}", headers=bearer(body["token"]))
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "sari@example.com"

    def test_cannot_show_someone_else(self, client, register_user):
        me = register_user()
        other = register_user(email="other@example.com")
        response = client.get(f"/users/show/{other['user']['id']}", headers=bearer(me["token"]))
        assert response.status_code == 403
        assert response.json()["error"] == "ForbiddenError"

    def test_admin_sees_everyone_and_gets_404_for_missing(
        self, client, register_user, db_session_factory
    ):
        admin = register_user(email="admin@example.com")
        other = register_user(email="other@example.com")

        db = db_session_factory()
        db.query(User).filter(User.id == admin["user"]["id"]).update({"role": "admin"})
        db.commit()
        db.close()

        ok = client.get(f"/users/show/{other['user']['id']}", headers=bearer(admin["token"]))
        assert ok.status_code == 200

        missing = client.get("/users/show/9999", headers=bearer(admin["token"]))
        assert missing.status_code == 404
        assert missing.json()["error"] == "NotFoundError"


class TestUpdateUser:

    def test_partial_update(self, client, register_user):
        body = register_user()
        user_id = body["user"]["id"]
        response = client.put(
            f"/users/update/{user_id}",
            json={"name": "Sari Dewi", "password": "barurahasia"},
            headers=bearer(body["token"]),
        )
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Sari Dewi"
        assert response.json()["data"]["email"] == "sari@example.com"

        login = client.post(
            "/login", json={"email": "sari@example.com", "password": "barurahasia"}
        )
        assert login.status_code == 200

    def test_email_must_stay_unique(self, client, register_user):
        body = register_user()
        register_user(email="taken@example.com")
        response = client.put(
            f"/users/update/{body['user']['id']}",
            json={"email": "taken@example.com"},
            headers=bearer(body["token"]),
        )
        assert response.status_code == 422

    def test_token_survives_email_change(self, client, register_user):
        body = register_user()
        client.put(
            f"/users/update/{body['user']['id']}",
            json={"email": "new@example.com"},
            headers=bearer(body["token"]),
        )
        me = client.get("/user", headers=bearer(body["token"]))
        assert me.json()["email"] == "new@example.com"

    def test_cannot_update_someone_else(self, client, register_user):
        me = register_user()
        other = register_user(email="other@example.com")
        response = client.put(
            f"/users/update/{other['user']['id']}",
            json={"name": "Hijacked", "password": "barurahasia"},
            headers=bearer(me["token"]),
        )
        assert response.status_code == 403

        unchanged = client.get("/user", headers=bearer(other["token"])).json()
        assert unchanged["name"] == "Sari"
        login = client.post(
            "/login", json={"email": "other@example.com", "password": "rahasia123"}
        )
        assert login.status_code == 200

    def test_blank_name_rejected(self, client, register_user):
        body = register_user()
        response = client.put(
            f"/users/update/{body['user']['id']}",
            json={"name": "  "},
            headers=bearer(body["token"]),
        )
        assert response.status_code == 422


class TestDeleteUser:

    def test_delete_cascades(self, client, register_user, db_session_factory):
        body = register_user()
        user_id = body["user"]["id"]
        headers = bearer(body["token"])
        client.post(
            "/transactions",
            json={"type": "income", "category": "salary", "amount": 10, "date": "2024-01-01"},
            headers=headers,
        )

        response = client.delete(f"/users/delete/{user_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["user"]["data"]["id"] == user_id

        db = db_session_factory()
        assert db.query(Transaction).filter(Transaction.user_id == user_id).count() == 0
        assert db.query(PersonalAccessToken).filter(
            PersonalAccessToken.user_id == user_id
        ).count() == 0
        db.close()

        assert client.get("/user", headers=headers).status_code == 401

    def test_cannot_delete_someone_else(self, client, register_user, db_session_factory):
        me = register_user()
        other = register_user(email="other@example.com")

        response = client.delete(
            f"/users/delete/{other['user']['id']}", headers=bearer(me["token"])
        )
        assert response.status_code == 403
        assert response.json()["error"] == "ForbiddenError"

        db = db_session_factory()
        assert db.query(User).filter(User.id == other["user"]["id"]).count() == 1
        db.close()
        assert client.get("/user", headers=bearer(other["token"])).status_code == 200
