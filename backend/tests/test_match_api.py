from swipematch.core import config


def _like(client, headers, target_id, like_type="like"):
    return client.post("/api/match/like", json={"targetId": target_id, "type": like_type}, headers=headers)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_like_requires_bearer_token(client):
    resp = client.post("/api/match/like", json={"targetId": "bob"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Unauthorized - No Bearer token"


def test_invalid_token_rejected(client):
    resp = client.post("/api/match/like", json={"targetId": "bob"},
                       headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_first_like(client, auth_headers):
    resp = _like(client, auth_headers("alice"), "bob")
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["isMutualMatch"] is False
    assert data["dailyLikeCount"] == 1
    assert data["remainingLikes"] == 4
    assert "connectionId" not in data
    assert "alreadyLiked" not in data


def test_reciprocal_like_is_a_match(client, auth_headers):
    _like(client, auth_headers("alice"), "bob")
    resp = _like(client, auth_headers("bob"), "alice", "super_like")

    data = resp.json()
    assert resp.status_code == 200
    assert data["isMutualMatch"] is True
    assert data["connectionId"]
    assert data["message"] == "It's a match!"
    assert data["shouldShowToast"] is True

    matches = client.get("/api/match/matches", headers=auth_headers("alice")).json()
    assert [m["userId"] for m in matches["matches"]] == ["bob"]
    assert matches["matches"][0]["matchedAt"] == data["matchedAt"]


def test_duplicate_like_reports_already_liked(client, auth_headers):
    headers = auth_headers("alice")
    _like(client, headers, "bob")
    resp = _like(client, headers, "bob")

    data = resp.json()
    assert resp.status_code == 200
    assert data["alreadyLiked"] is True
    assert "shouldShowToast" not in data
    assert data["dailyLikeCount"] == 1
    assert data["remainingLikes"] == 4


def test_self_like_rejected(client, auth_headers):
    resp = _like(client, auth_headers("alice"), "alice")
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "Cannot swipe on your own profile"


def test_missing_target_rejected(client, auth_headers):
    resp = client.post("/api/match/like", json={}, headers=auth_headers("alice"))
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "Target user ID is required"


def test_sixth_like_hits_daily_limit(client, auth_headers):
    headers = auth_headers("alice")
    for i in range(5):
        assert _like(client, headers, f"user{i}").status_code == 200

    resp = _like(client, headers, "user5")
    assert resp.status_code == 429
    detail = resp.json()["detail"]
    assert detail["remainingLikes"] == 0
    assert detail["dailyLikeCount"] == 5

    # Passing is still allowed once the like quota is spent
    passed = client.post("/api/match/pass", json={"targetId": "user6"}, headers=headers)
    assert passed.status_code == 200
    assert passed.json()["message"] == "Profile passed"

    stats = client.get("/api/match/stats", headers=headers).json()
    assert stats["dailyLikeCount"] == 5
    assert stats["canLikeToday"] is False


def test_pass_is_idempotent_and_never_matches(client, auth_headers):
    _like(client, auth_headers("alice"), "bob")
    first = client.post("/api/match/pass", json={"targetId": "alice"}, headers=auth_headers("bob"))
    second = client.post("/api/match/pass", json={"targetId": "alice"}, headers=auth_headers("bob"))

    assert first.status_code == 200
    assert "alreadyPassed" not in first.json()
    assert second.json()["alreadyPassed"] is True
    assert second.json()["swipeId"] == first.json()["swipeId"]

    liked = client.get("/api/match/liked", headers=auth_headers("alice")).json()
    assert liked["mutualMatches"] == 0
    assert liked["pagination"]["total"] == 1


def test_liked_by_lists_admirers(client, auth_headers):
    _like(client, auth_headers("bob"), "alice")
    _like(client, auth_headers("carol"), "alice")

    resp = client.get("/api/match/liked-by", params={"limit": 1}, headers=auth_headers("alice"))
    data = resp.json()
    assert resp.status_code == 200
    assert len(data["likedBy"]) == 1
    assert data["pagination"] == {
        "currentPage": 1,
        "totalPages": 2,
        "total": 2,
        "hasNext": True,
        "hasPrev": False,
    }


def test_mark_toast_seen(client, auth_headers):
    _like(client, auth_headers("alice"), "bob")
    _like(client, auth_headers("bob"), "alice")

    resp = client.post("/api/match/mark-toast-seen", json={"targetId": "bob"}, headers=auth_headers("alice"))
    assert resp.status_code == 200
    matches = client.get("/api/match/matches", headers=auth_headers("alice")).json()["matches"]
    assert matches[0]["shouldShowToast"] is False

    missing = client.post("/api/match/mark-toast-seen", json={"targetId": "carol"}, headers=auth_headers("alice"))
    assert missing.status_code == 404


def test_swipe_rate_limit(client, auth_headers, monkeypatch):
    monkeypatch.setattr(config, "RL_SWIPE_LIMIT", 2)
    monkeypatch.setattr(config, "RL_WINDOW_SECONDS", 3600)
    headers = auth_headers("alice")
    client.post("/api/match/pass", json={"targetId": "u1"}, headers=headers)
    client.post("/api/match/pass", json={"targetId": "u2"}, headers=headers)

    resp = client.post("/api/match/pass", json={"targetId": "u3"}, headers=headers)
    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 1
