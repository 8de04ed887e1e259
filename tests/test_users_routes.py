import json

from bson import ObjectId

from conftest import auth_headers, run


def test_stats_sums_storage(client, db, user):
    run(db["videos"].insert_many([
        {"owner": user["_id"], "fileSize": 100},
        {"owner": user["_id"], "fileSize": 250},
        {"owner": ObjectId(), "fileSize": 999},
    ]))
    response = client.get("/api/users/stats", headers=auth_headers(user))
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["storageUsed"] == 350
    assert stats["storageLimit"] == 1024 ** 3
    assert stats["remainingVideos"] == 5
    assert stats["credits"]["balance"] == 45


def test_stats_unlimited_for_god_mode_admin(client, make_user):
    god = make_user(role="admin", plan="god")
    stats = client.get("/api/users/stats", headers=auth_headers(god)).json()["stats"]
    assert stats["storageLimit"] is None


def test_upgrade_plan(client, db, user):
    response = client.post("/api/users/upgrade", json={"plan": "pro"}, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["user"]["maxVideos"] == 50

    response = client.post("/api/users/upgrade", json={"plan": "gold"}, headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid plan selected"}


def test_profile_update_with_picture_and_social_media(client, db, user, tmp_path):
    response = client.put(
        "/api/users/profile",
        headers=auth_headers(user),
        data={"socialMedia": json.dumps({"instagram": "@owner"}), "logo": "/uploads/logos/a.png"},
        files={"profilePicture": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert response.status_code == 200
    body = response.json()["user"]
    assert body["socialMedia"]["instagram"] == "@owner"
    assert body["socialMedia"]["tiktok"] == ""
    assert body["logo"] == "/uploads/logos/a.png"
    assert "/uploads/profiles/profile-" in body["profilePicture"]

    saved = list((tmp_path / "uploads" / "profiles").iterdir())
    assert len(saved) == 1


def test_profile_rejects_bad_social_media_json(client, user):
    response = client.put("/api/users/profile", headers=auth_headers(user), data={"socialMedia": "{nope"})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid socialMedia format. Expecting JSON."}


def test_profile_rejects_non_image(client, user):
    response = client.put(
        "/api/users/profile",
        headers=auth_headers(user),
        files={"profilePicture": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400
    assert response.json() == {"message": "Only image files are allowed!"}


def test_social_media_merge_keeps_existing_values(client, user):
    headers = auth_headers(user)
    client.put("/api/users/social-media", json={"socialMedia": {"youtube": "yt"}}, headers=headers)
    response = client.put(
        "/api/users/social-media",
        json={"socialMedia": {"twitter": "tw"}, "linkedSocialAccounts": ["twitter"]},
        headers=headers,
    )
    body = response.json()["user"]
    assert body["socialMedia"]["youtube"] == "yt"
    assert body["socialMedia"]["twitter"] == "tw"
    assert body["linkedSocialAccounts"] == ["twitter"]


def test_logo_upload(client, user):
    response = client.post(
        "/api/uploads/logo",
        headers=auth_headers(user),
        files={"logo": ("Brand Logo.png", b"png-bytes", "image/png")},
    )
    assert response.status_code == 200
    logo_url = response.json()["logoUrl"]
    assert logo_url.startswith("/uploads/logos/Brand_Logo-")
    assert logo_url.endswith(".png")


def test_logo_upload_rejects_wrong_type(client, user):
    response = client.post(
        "/api/uploads/logo",
        headers=auth_headers(user),
        files={"logo": ("logo.svg", b"<svg/>", "image/svg+xml")},
    )
    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid file type")


def test_logo_upload_requires_file(client, user):
    response = client.post("/api/uploads/logo", headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json() == {"message": "No logo file provided"}
