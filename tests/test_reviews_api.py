"""
Natours API — Review Endpoint Tests
=====================================

What we test:
    ✅ Nested and flat creation; author always the logged-in user
    ✅ Role rules: only `user` writes, only owners or admins edit/delete
    ✅ One review per user per tour
    ✅ Tour ratingsAverage / ratingsQuantity follow every create, update,
       delete, and move to another tour
    ✅ Secret and unknown tours cannot be reviewed
"""

import uuid

import pytest

API = "/api/v1/reviews"


def tour_reviews(tour_id):
    return f"/api/v1/tours/{tour_id}/reviews"


async def tour_ratings(client, tour_id):
    tour = (await client.get(f"/api/v1/tours/{tour_id}")).json()["data"]["tour"]
    return tour["ratingsQuantity"], tour["ratingsAverage"]


class TestCreateReview:
    @pytest.mark.asyncio
    async def test_nested_create(self, client, make_user, make_tour, auth_headers):
        user = await make_user(name="Sophie Louise Hart")
        tour = await make_tour()

        response = await client.post(
            tour_reviews(tour.id),
            headers=auth_headers(user),
            json={"review": "Amazing!", "rating": 4},
        )

        assert response.status_code == 201
        review = response.json()["data"]["review"]
        assert review["tour"] == str(tour.id)
        assert review["user"] == {"id": str(user.id), "name": "Sophie Louise Hart", "photo": "default.jpg"}
        assert await tour_ratings(client, tour.id) == (1, 4)

    @pytest.mark.asyncio
    async def test_flat_create_with_tour_in_body(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        tour = await make_tour()
        response = await client.post(
            API, headers=auth_headers(user), json={"review": "Great", "rating": 5, "tour": str(tour.id)}
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_tour_is_required(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.post(API, headers=auth_headers(user), json={"review": "Great", "rating": 5})
        assert response.status_code == 400
        assert response.json()["message"] == "Review must belong to a tour"

    @pytest.mark.asyncio
    async def test_author_cannot_be_spoofed(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        other = await make_user()
        tour = await make_tour()
        response = await client.post(
            tour_reviews(tour.id),
            headers=auth_headers(user),
            json={"review": "Great", "rating": 5, "user": str(other.id)},
        )
        assert response.json()["data"]["review"]["user"]["id"] == str(user.id)

    @pytest.mark.asyncio
    async def test_one_review_per_tour(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        tour = await make_tour()
        body = {"review": "Great", "rating": 5}
        await client.post(tour_reviews(tour.id), headers=auth_headers(user), json=body)

        response = await client.post(tour_reviews(tour.id), headers=auth_headers(user), json=body)
        assert response.status_code == 400
        assert "Duplicate" in response.json()["message"]
        assert await tour_ratings(client, tour.id) == (1, 5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 5.5])
    async def test_rating_range(self, client, make_user, make_tour, auth_headers, rating):
        user = await make_user()
        tour = await make_tour()
        response = await client.post(
            tour_reviews(tour.id), headers=auth_headers(user), json={"review": "Hmm", "rating": rating}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_guides_cannot_review(self, client, make_user, make_tour, auth_headers):
        guide = await make_user(role="guide")
        tour = await make_tour()
        response = await client.post(
            tour_reviews(tour.id), headers=auth_headers(guide), json={"review": "Great", "rating": 5}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_tour(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.post(
            tour_reviews(uuid.uuid4()), headers=auth_headers(user), json={"review": "Great", "rating": 5}
        )
        assert response.status_code == 404
        assert response.json()["message"] == "No tour found with that ID"

    @pytest.mark.asyncio
    async def test_secret_tour_cannot_be_reviewed(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        secret = await make_tour(secretTour=True)
        response = await client.post(
            tour_reviews(secret.id), headers=auth_headers(user), json={"review": "Great", "rating": 5}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_login_required(self, client, make_tour):
        tour = await make_tour()
        assert (await client.get(API)).status_code == 401
        assert (await client.get(tour_reviews(tour.id))).status_code == 401


class TestReadReviews:
    @pytest.mark.asyncio
    async def test_nested_list_filters_by_tour(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        first, second = await make_tour(), await make_tour()
        for tour in (first, second):
            await client.post(tour_reviews(tour.id), headers=auth_headers(user), json={"review": "Ok", "rating": 3})

        everything = await client.get(API, headers=auth_headers(user))
        assert everything.json()["results"] == 2

        nested = await client.get(tour_reviews(first.id), headers=auth_headers(user))
        reviews = nested.json()["data"]["reviews"]
        assert [r["tour"] for r in reviews] == [str(first.id)]

    @pytest.mark.asyncio
    async def test_get_one(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        tour = await make_tour()
        created = await client.post(
            tour_reviews(tour.id), headers=auth_headers(user), json={"review": "Ok", "rating": 3}
        )
        review_id = created.json()["data"]["review"]["id"]

        response = await client.get(f"{API}/{review_id}", headers=auth_headers(user))
        assert response.status_code == 200
        assert response.json()["data"]["review"]["review"] == "Ok"


class TestRatingAggregation:
    @pytest.mark.asyncio
    async def test_ratings_follow_every_write(self, client, make_user, make_tour, auth_headers):
        alice, bob = await make_user(), await make_user()
        tour = await make_tour()

        first = await client.post(
            tour_reviews(tour.id), headers=auth_headers(alice), json={"review": "Good", "rating": 4}
        )
        await client.post(tour_reviews(tour.id), headers=auth_headers(bob), json={"review": "Superb", "rating": 5})
        assert await tour_ratings(client, tour.id) == (2, 4.5)

        review_id = first.json()["data"]["review"]["id"]
        updated = await client.patch(f"{API}/{review_id}", headers=auth_headers(alice), json={"rating": 2})
        assert updated.status_code == 200
        assert await tour_ratings(client, tour.id) == (2, 3.5)

        deleted = await client.delete(f"{API}/{review_id}", headers=auth_headers(alice))
        assert deleted.status_code == 204
        assert await tour_ratings(client, tour.id) == (1, 5)

    @pytest.mark.asyncio
    async def test_last_review_deleted_resets_defaults(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        tour = await make_tour()
        created = await client.post(
            tour_reviews(tour.id), headers=auth_headers(user), json={"review": "Meh", "rating": 1}
        )
        await client.delete(f"{API}/{created.json()['data']['review']['id']}", headers=auth_headers(user))
        assert await tour_ratings(client, tour.id) == (0, 4.5)

    @pytest.mark.asyncio
    async def test_moving_a_review_updates_both_tours(self, client, make_user, make_tour, auth_headers):
        user = await make_user()
        source, target = await make_tour(), await make_tour()
        created = await client.post(
            tour_reviews(source.id), headers=auth_headers(user), json={"review": "Nice", "rating": 2}
        )

        response = await client.patch(
            f"{API}/{created.json()['data']['review']['id']}",
            headers=auth_headers(user),
            json={"tour": str(target.id)},
        )
        assert response.status_code == 200
        assert await tour_ratings(client, source.id) == (0, 4.5)
        assert await tour_ratings(client, target.id) == (1, 2)


class TestOwnership:
    @pytest.mark.asyncio
    async def test_users_edit_only_their_own(self, client, make_user, make_tour, auth_headers):
        author, stranger = await make_user(), await make_user()
        tour = await make_tour()
        created = await client.post(
            tour_reviews(tour.id), headers=auth_headers(author), json={"review": "Mine", "rating": 4}
        )
        review_id = created.json()["data"]["review"]["id"]

        response = await client.patch(f"{API}/{review_id}", headers=auth_headers(stranger), json={"rating": 1})
        assert response.status_code == 403
        assert response.json()["message"] == "You can only modify your own reviews"

        response = await client.delete(f"{API}/{review_id}", headers=auth_headers(stranger))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_edits_any(self, client, make_user, make_tour, auth_headers):
        author, admin = await make_user(), await make_user(role="admin")
        tour = await make_tour()
        created = await client.post(
            tour_reviews(tour.id), headers=auth_headers(author), json={"review": "Rude words", "rating": 1}
        )
        review_id = created.json()["data"]["review"]["id"]

        response = await client.patch(
            f"{API}/{review_id}", headers=auth_headers(admin), json={"review": "[moderated]"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["review"]["review"] == "[moderated]"
        assert response.json()["data"]["review"]["user"]["id"] == str(author.id)

    @pytest.mark.asyncio
    async def test_lead_guides_cannot_edit(self, client, make_user, make_tour, auth_headers):
        author, lead = await make_user(), await make_user(role="lead-guide")
        tour = await make_tour()
        created = await client.post(
            tour_reviews(tour.id), headers=auth_headers(author), json={"review": "Mine", "rating": 4}
        )
        response = await client.delete(
            f"{API}/{created.json()['data']['review']['id']}", headers=auth_headers(lead)
        )
        assert response.status_code == 403
