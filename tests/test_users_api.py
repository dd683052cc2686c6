"""
Natours API — User Endpoint Tests
===================================

What we test:
    ✅ /me, updateMe (no password or role changes), deleteMe (soft delete)
    ✅ Admin-only listing, update and deletion
    ✅ POST /users points to /signup
    ✅ Deleting a user recomputes the ratings of the tours they reviewed
"""

import uuid

import pytest

API = "/api/v1/users"


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_update_me(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(
            f"{API}/updateMe",
            headers=auth_headers(user),
            json={"name": "Renamed Person", "email": "Renamed@Example.com"},
        )
        assert response.status_code == 200
        updated = response.json()["data"]["user"]
        assert updated["name"] == "Renamed Person"
        assert updated["email"] == "renamed@example.com"

    @pytest.mark.asyncio
    async def test_update_me_rejects_password(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(
            f"{API}/updateMe",
            headers=auth_headers(user),
            json={"password": "newpass123", "passwordConfirm": "newpass123"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == (
            "This route is not for password updates. Please use /updatePassword."
        )

    @pytest.mark.asyncio
    async def test_update_me_cannot_change_role(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.patch(f"{API}/updateMe", headers=auth_headers(user), json={"role": "admin"})
        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == "user"

    @pytest.mark.asyncio
    async def test_delete_me_deactivates(self, client, make_user, auth_headers):
        user = await make_user(email="leaving@example.com")
        headers = auth_headers(user)

        response = await client.delete(f"{API}/deleteMe", headers=headers)
        assert response.status_code == 204
        assert response.content == b""

        me = await client.get(f"{API}/me", headers=headers)
        assert me.status_code == 401
        assert me.json()["message"] == "The user belonging to this token no longer exists."

        login = await client.post(f"{API}/login", json={"email": "leaving@example.com", "password": "pass1234"})
        assert login.status_code == 401

    @pytest.mark.asyncio
    async def test_delete_me_keeps_reviews(self, client, make_user, make_tour, auth_headers):
        author = await make_user(name="Leaving Reviewer")
        reader = await make_user()
        tour = await make_tour()
        created = await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            headers=auth_headers(author),
            json={"review": "Would go again", "rating": 4},
        )
        assert created.status_code == 201

        assert (await client.delete(f"{API}/deleteMe", headers=auth_headers(author))).status_code == 204

        listing = await client.get(f"/api/v1/tours/{tour.id}/reviews", headers=auth_headers(reader))
        reviews = listing.json()["data"]["reviews"]
        assert len(reviews) == 1
        assert reviews[0]["user"]["id"] == str(author.id)
        assert reviews[0]["user"]["name"] == "Leaving Reviewer"

        stored = (await client.get(f"/api/v1/tours/{tour.id}")).json()["data"]["tour"]
        assert stored["ratingsQuantity"] == 1
        assert stored["ratingsAverage"] == 4


class TestAdministration:
    @pytest.mark.asyncio
    async def test_list_requires_admin(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.get(API, headers=auth_headers(user))
        assert response.status_code == 403
        assert response.json()["message"] == "You do not have permission to perform this action"

    @pytest.mark.asyncio
    async def test_list_excludes_inactive_users(self, client, make_user, auth_headers):
        admin = await make_user(role="admin")
        await make_user()
        leaving = await make_user()
        await client.delete(f"{API}/deleteMe", headers=auth_headers(leaving))

        response = await client.get(API, headers=auth_headers(admin))
        assert response.status_code == 200
        body = response.json()
        assert body["results"] == 2
        assert str(leaving.id) not in {u["id"] for u in body["data"]["users"]}

    @pytest.mark.asyncio
    async def test_list_filter_and_fields(self, client, make_user, auth_headers):
        admin = await make_user(role="admin")
        await make_user(role="guide")
        response = await client.get(API, headers=auth_headers(admin), params={"role": "guide", "fields": "name"})
        users = response.json()["data"]["users"]
        assert len(users) == 1
        assert set(users[0]) == {"id", "name"}

    @pytest.mark.asyncio
    async def test_create_user_is_not_defined(self, client, database):
        response = await client.post(API, json={"name": "x"})
        assert response.status_code == 500
        assert response.json() == {
            "status": "error",
            "message": "This route is not defined! Please use /signup instead",
        }

    @pytest.mark.asyncio
    async def test_get_user_requires_login(self, client, make_user, auth_headers):
        user = await make_user()
        assert (await client.get(f"{API}/{user.id}")).status_code == 401

        response = await client.get(f"{API}/{user.id}", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == user.email

    @pytest.mark.asyncio
    async def test_get_unknown_user(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.get(f"{API}/{uuid.uuid4()}", headers=auth_headers(user))
        assert response.status_code == 404
        assert response.json()["message"] == "No user found with that ID"

    @pytest.mark.asyncio
    async def test_admin_changes_role(self, client, make_user, auth_headers):
        admin = await make_user(role="admin")
        user = await make_user()
        response = await client.patch(
            f"{API}/{user.id}", headers=auth_headers(admin), json={"role": "lead-guide"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == "lead-guide"

    @pytest.mark.asyncio
    async def test_invalid_role_rejected(self, client, make_user, auth_headers):
        admin = await make_user(role="admin")
        user = await make_user()
        response = await client.patch(
            f"{API}/{user.id}", headers=auth_headers(admin), json={"role": "emperor"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_user_recomputes_tour_ratings(self, client, make_user, make_tour, auth_headers):
        admin = await make_user(role="admin")
        reviewer = await make_user()
        other = await make_user()
        tour = await make_tour()

        for author, rating in ((reviewer, 5), (other, 3)):
            created = await client.post(
                f"/api/v1/tours/{tour.id}/reviews",
                headers=auth_headers(author),
                json={"review": "Lovely trip", "rating": rating},
            )
            assert created.status_code == 201

        response = await client.delete(f"{API}/{reviewer.id}", headers=auth_headers(admin))
        assert response.status_code == 204

        stored = (await client.get(f"/api/v1/tours/{tour.id}")).json()["data"]["tour"]
        assert stored["ratingsQuantity"] == 1
        assert stored["ratingsAverage"] == 3
        assert len(stored["reviews"]) == 1
