from conftest import PASSWORD, auth_headers


# ── Auth ─────────────────────────────────────────────────────────────
def test_signup_returns_profile_and_sets_cookie(client):
    response = client.post("/api/auth/signup", json={
        "fullName": "Erin", "email": "Erin@Example.com", "password": "hunter22",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "erin@example.com"
    assert body["profilePic"] == ""
    assert body["token"]
    assert "hashed_password" not in body
    assert response.cookies.get("jwt")


def test_signup_validation(client, alice):
    short = client.post("/api/auth/signup", json={"fullName": "E", "email": "e@example.com", "password": "123"})
    assert short.status_code == 400
    taken = client.post("/api/auth/signup", json={"fullName": "A", "email": "alice@example.com", "password": PASSWORD})
    assert taken.status_code == 400
    assert taken.json()["detail"] == "Email already exists"


def test_login_and_check_with_cookie(client, alice):
    bad = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid credentials"

    ok = client.post("/api/auth/login", json={"email": "ALICE@example.com", "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["id"] == alice.id

    # the client keeps the jwt cookie
    check = client.get("/api/auth/check")
    assert check.status_code == 200
    assert check.json()["email"] == "alice@example.com"


def test_logout_clears_cookie(client, alice):
    client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    client.post("/api/auth/logout")
    client.cookies.clear()
    assert client.get("/api/auth/check").status_code == 401


def test_protected_routes_require_token(client):
    response = client.get("/api/messages/users")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert client.get("/api/friends/requests", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_update_profile_uploads_avatar(client, alice, uploader):
    response = client.put(
        "/api/auth/update-profile",
        json={"profilePic": "data:image/png;base64,AAAA"},
        headers=auth_headers(alice),
    )

    assert response.status_code == 200
    assert response.json()["profilePic"] == f"https://cdn.test/profiles/{alice.id}/1.png"
    assert uploader.calls[0][1] == f"profiles/{alice.id}"


def test_upload_failure_maps_to_502(client, alice, bob, befriend, uploader):
    befriend(alice, bob)
    uploader.fail = True
    response = client.post(
        f"/api/messages/send/{bob.id}",
        json={"image": "data:image/png;base64,AAAA"},
        headers=auth_headers(alice),
    )
    assert response.status_code == 502


# ── Messages ─────────────────────────────────────────────────────────
def test_message_flow(client, alice, bob, befriend):
    befriend(alice, bob)

    sent = client.post(f"/api/messages/send/{bob.id}", json={"text": "hi bob"}, headers=auth_headers(alice))
    assert sent.status_code == 201
    message_id = sent.json()["id"]

    history = client.get(f"/api/messages/{alice.id}", headers=auth_headers(bob))
    assert [m["text"] for m in history.json()] == ["hi bob"]

    partners = client.get("/api/messages/users", headers=auth_headers(bob))
    assert [u["id"] for u in partners.json()] == [alice.id]

    deleted = client.request("DELETE", f"/api/messages/{message_id}", headers=auth_headers(bob))
    assert deleted.status_code == 200
    assert client.get(f"/api/messages/{alice.id}", headers=auth_headers(bob)).json() == []
    assert len(client.get(f"/api/messages/{bob.id}", headers=auth_headers(alice)).json()) == 1


def test_delete_for_everyone_over_http(client, alice, bob, befriend):
    befriend(alice, bob)
    message_id = client.post(
        f"/api/messages/send/{bob.id}", json={"text": "regret"}, headers=auth_headers(alice),
    ).json()["id"]

    denied = client.request(
        "DELETE", f"/api/messages/{message_id}", json={"deleteForEveryone": True}, headers=auth_headers(bob),
    )
    assert denied.status_code == 403

    allowed = client.request(
        "DELETE", f"/api/messages/{message_id}", json={"deleteForEveryone": True}, headers=auth_headers(alice),
    )
    assert allowed.status_code == 200
    assert client.get(f"/api/messages/{alice.id}", headers=auth_headers(bob)).json() == []


def test_message_errors(client, alice, bob):
    assert client.post(f"/api/messages/send/{bob.id}", json={"text": "hi"}, headers=auth_headers(alice)).status_code == 403
    assert client.post("/api/messages/send/9999", json={"text": "hi"}, headers=auth_headers(alice)).status_code == 404
    assert client.get(f"/api/messages/{bob.id}", headers=auth_headers(alice)).status_code == 403
    assert client.request("DELETE", "/api/messages/9999", headers=auth_headers(alice)).status_code == 404


def test_empty_message_is_400(client, alice, bob, befriend):
    befriend(alice, bob)
    response = client.post(f"/api/messages/send/{bob.id}", json={"text": ""}, headers=auth_headers(alice))
    assert response.status_code == 400


# ── Friends ──────────────────────────────────────────────────────────
def test_friend_request_flow(client, alice, bob):
    found = client.get("/api/friends/search", params={"email": "bob"}, headers=auth_headers(alice))
    assert found.status_code == 200
    assert found.json()["user"]["id"] == bob.id

    sent = client.post(f"/api/friends/request/{bob.id}", headers=auth_headers(alice))
    assert sent.status_code == 200
    request_id = sent.json()["requestId"]

    assert client.post(f"/api/friends/request/{bob.id}", headers=auth_headers(alice)).status_code == 409

    pending = client.get("/api/friends/requests", headers=auth_headers(bob)).json()
    assert [r["from"]["id"] for r in pending] == [alice.id]

    accepted = client.put(f"/api/friends/request/{request_id}", json={"action": "accept"}, headers=auth_headers(bob))
    assert accepted.json()["status"] == "accepted"
    assert client.put(
        f"/api/friends/request/{request_id}", json={"action": "accept"}, headers=auth_headers(bob),
    ).status_code == 409

    partners = client.get("/api/messages/users", headers=auth_headers(alice)).json()
    assert [u["id"] for u in partners] == [bob.id]


def test_remove_block_unblock(client, alice, bob, befriend):
    befriend(alice, bob)

    assert client.delete(f"/api/friends/remove/{bob.id}", headers=auth_headers(alice)).status_code == 200
    assert client.delete(f"/api/friends/remove/{bob.id}", headers=auth_headers(alice)).status_code == 400

    assert client.post(f"/api/friends/block/{bob.id}", headers=auth_headers(alice)).status_code == 200
    blocked = client.get("/api/friends/blocked", headers=auth_headers(alice)).json()
    assert [u["id"] for u in blocked] == [bob.id]
    assert client.post(f"/api/friends/request/{alice.id}", headers=auth_headers(bob)).status_code == 403

    assert client.delete(f"/api/friends/unblock/{bob.id}", headers=auth_headers(alice)).status_code == 200
    assert client.get("/api/friends/blocked", headers=auth_headers(alice)).json() == []


def test_respond_with_bad_action(client, alice, bob):
    request_id = client.post(f"/api/friends/request/{bob.id}", headers=auth_headers(alice)).json()["requestId"]
    response = client.put(f"/api/friends/request/{request_id}", json={"action": "ignore"}, headers=auth_headers(bob))
    assert response.status_code == 400


def test_health_check(client):
    body = client.get("/api/health-check").json()
    assert body["status"] == "ok"
    assert "online" in body
