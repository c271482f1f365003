from conftest import assert_availability_invariant, auth_headers, spot_state


# -----------------------------
# Reserve / cancel over HTTP
# -----------------------------


def test_booking_scenario(client, make_user, make_spot):
    owner, u1, u2 = make_user("owner"), make_user("u1"), make_user("u2")
    s1 = make_spot(owner)

    # U1 reserves
    resp = client.post(f"/api/parking/{s1.id}/reserve", headers=auth_headers(u1))
    assert resp.status_code == 201
    reservation = resp.json()["reservation"]
    assert reservation["parking_spot_id"] == s1.id
    assert reservation["user_id"] == u1.id
    assert reservation["status"] == "active"
    assert reservation["created_at"]
    assert spot_state(s1.id) == (False, [(u1.id, "active")])

    # U2 cannot book it
    resp = client.post(f"/api/parking/{s1.id}/reserve", headers=auth_headers(u2))
    assert resp.status_code == 409
    assert spot_state(s1.id) == (False, [(u1.id, "active")])

    # U2 cannot cancel U1's booking
    resp = client.delete(f"/api/parking/{s1.id}/reserve", headers=auth_headers(u2))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You can only cancel your own reservations"
    assert spot_state(s1.id) == (False, [(u1.id, "active")])

    # U1 cancels
    resp = client.delete(f"/api/parking/{s1.id}/reserve", headers=auth_headers(u1))
    assert resp.status_code == 200
    assert resp.json() == {"message": "Reservation cancelled successfully", "reservationId": reservation["id"]}
    assert spot_state(s1.id) == (True, [(u1.id, "cancelled")])
    assert_availability_invariant()


def test_reserve_missing_spot_is_404(client, make_user):
    user = make_user()
    resp = client.post("/api/parking/99999/reserve", headers=auth_headers(user))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Parking spot not found"


def test_reserve_with_token_of_deleted_user_is_404(client, db, make_user, make_spot):
    owner, gone = make_user(), make_user()
    spot = make_spot(owner)
    spot_id, headers = spot.id, auth_headers(gone)
    db.delete(gone)
    db.commit()

    resp = client.post(f"/api/parking/{spot_id}/reserve", headers=headers)

    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"
    assert spot_state(spot_id) == (True, [])


def test_cancel_without_reservation_is_404(client, make_user, make_spot):
    owner, user = make_user(), make_user()
    spot = make_spot(owner)
    resp = client.delete(f"/api/parking/{spot.id}/reserve", headers=auth_headers(user))
    assert resp.status_code == 404


def test_invalid_spot_id_is_400(client, make_user):
    user = make_user()
    assert client.post("/api/parking/abc/reserve", headers=auth_headers(user)).status_code == 400
    assert client.delete("/api/parking/0/reserve", headers=auth_headers(user)).status_code == 400


def test_reserve_requires_token(client, make_user, make_spot):
    spot = make_spot(make_user())
    assert client.post(f"/api/parking/{spot.id}/reserve").status_code == 401

    resp = client.post(
        f"/api/parking/{spot.id}/reserve",
        headers={"Authorization": "Bearer not.a.token"},
    )
    assert resp.status_code == 403
    assert spot_state(spot.id) == (True, [])


# -----------------------------
# Listing CRUD
# -----------------------------


def test_create_and_list_spots(client, make_user):
    user = make_user()
    resp = client.post(
        "/api/parking/",
        json={"location": "  5 Dock Road  ", "is_available": False},
        headers=auth_headers(user),
    )
    assert resp.status_code == 201
    spot = resp.json()["spot"]
    assert spot["location"] == "5 Dock Road"
    # Availability is not the lister's to set
    assert spot["is_available"] is True
    assert spot["user_id"] == user.id

    client.post("/api/parking/", json={"location": "9 Mill Lane"}, headers=auth_headers(user))

    resp = client.get("/api/parking/")
    assert resp.status_code == 200
    locations = [s["location"] for s in resp.json()["spots"]]
    assert locations == ["9 Mill Lane", "5 Dock Road"]

    resp = client.get("/api/parking/", params={"search": "dock"})
    assert [s["location"] for s in resp.json()["spots"]] == ["5 Dock Road"]

    resp = client.get(f"/api/parking/{spot['id']}")
    assert resp.status_code == 200
    assert resp.json()["location"] == "5 Dock Road"


def test_list_filters_by_availability(client, make_user, make_spot):
    owner, renter = make_user(), make_user()
    free = make_spot(owner, location="Free")
    booked = make_spot(owner, location="Booked")
    client.post(f"/api/parking/{booked.id}/reserve", headers=auth_headers(renter))

    resp = client.get("/api/parking/", params={"available": "true"})
    assert [s["id"] for s in resp.json()["spots"]] == [free.id]
    resp = client.get("/api/parking/", params={"available": "false"})
    assert [s["id"] for s in resp.json()["spots"]] == [booked.id]


def test_create_spot_requires_location(client, make_user):
    user = make_user()
    assert client.post("/api/parking/", json={}, headers=auth_headers(user)).status_code == 400
    assert client.post("/api/parking/", json={"location": "   "}, headers=auth_headers(user)).status_code == 400


def test_get_missing_spot(client):
    assert client.get("/api/parking/424242").status_code == 404


def test_owner_updates_location_only(client, make_user, make_spot):
    owner, renter = make_user(), make_user()
    spot = make_spot(owner, location="Old")
    client.post(f"/api/parking/{spot.id}/reserve", headers=auth_headers(renter))

    resp = client.put(
        f"/api/parking/{spot.id}",
        json={"location": "New", "is_available": True},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    assert resp.json()["spot"]["location"] == "New"
    # Flag still follows the active reservation
    assert resp.json()["spot"]["is_available"] is False
    assert_availability_invariant()


def test_update_rules(client, make_user, make_spot):
    owner, other = make_user(), make_user()
    spot = make_spot(owner)

    assert client.put(f"/api/parking/{spot.id}", json={"location": "X"}, headers=auth_headers(other)).status_code == 403
    assert client.put(f"/api/parking/{spot.id}", json={}, headers=auth_headers(owner)).status_code == 400
    assert client.put("/api/parking/99999", json={"location": "X"}, headers=auth_headers(owner)).status_code == 404


def test_delete_spot_cascades(client, make_user, make_spot):
    owner, other, renter = make_user(), make_user(), make_user()
    spot = make_spot(owner)
    client.post(f"/api/parking/{spot.id}/reserve", headers=auth_headers(renter))

    assert client.delete(f"/api/parking/{spot.id}", headers=auth_headers(other)).status_code == 403

    resp = client.delete(f"/api/parking/{spot.id}", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert resp.json() == {"message": "Parking spot deleted successfully", "deletedSpotId": spot.id}
    assert spot_state(spot.id) == (None, [])
