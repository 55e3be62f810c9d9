import pytest


def signup(client, name, email, password="password123"):
    res = client.post("/auth/signup", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.text
    return res.json()


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(client):
    return signup(client, "Alice", "alice@example.com")


@pytest.fixture
def bob(client):
    return signup(client, "Bob", "bob@example.com")


@pytest.fixture
def alice_file(client, alice):
    res = client.post(
        "/files",
        json={"name": "report.pdf", "mime_type": "application/pdf", "size": 2048},
        headers=auth(alice["access_token"]),
    )
    assert res.status_code == 201, res.text
    return res.json()


def create_share(client, owner, **payload):
    res = client.post("/shares", json=payload, headers=auth(owner["access_token"]))
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_login_me(client, alice):
    res = client.post("/auth/login", json={"email": "alice@example.com", "password": "password123"})
    assert res.status_code == 200
    token = res.json()["access_token"]

    me = client.get("/users/me", headers=auth(token)).json()
    assert me["email"] == "alice@example.com"
    assert "password_hash" not in me


def test_duplicate_signup(client, alice):
    res = client.post("/auth/signup", json={"name": "Alice", "email": "alice@example.com", "password": "password123"})
    assert res.status_code == 409
    assert res.json()["detail"]["reason"] == "conflict"


def test_bad_login(client, alice):
    res = client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-one"})
    assert res.status_code == 401


def test_protected_routes_need_token(client):
    assert client.get("/users/me").status_code == 401
    assert client.get("/users/me", headers=auth("garbage")).status_code == 401


def test_owner_sees_and_downloads_item(client, alice, alice_file):
    headers = auth(alice["access_token"])
    res = client.get(f"/items/file/{alice_file['id']}", headers=headers)
    assert res.status_code == 200
    assert res.json()["access"] == "owner"

    res = client.get(f"/items/file/{alice_file['id']}/download", headers=headers)
    assert res.status_code == 200
    assert res.json()["storage_key"] == alice_file["storage_key"]


def test_stranger_is_forbidden(client, alice_file, bob):
    res = client.get(f"/items/file/{alice_file['id']}", headers=auth(bob["access_token"]))
    assert res.status_code == 403
    assert res.json()["detail"]["reason"] == "forbidden"


def test_unknown_item_is_not_found(client, alice):
    res = client.get("/items/file/nope", headers=auth(alice["access_token"]))
    assert res.status_code == 404
    assert res.json()["detail"]["reason"] == "not_found"


def test_user_share_flow(client, alice, bob, alice_file):
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"],
                         shared_with_id=bob["user"]["id"], permission="view")
    bob_headers = auth(bob["access_token"])

    res = client.get(f"/items/file/{alice_file['id']}", headers=bob_headers)
    assert res.status_code == 200
    assert res.json()["access"] == "user_share"

    assert client.get(f"/items/file/{alice_file['id']}/download", headers=bob_headers).status_code == 403

    with_me = client.get("/shares/with-me", headers=bob_headers).json()["items"]
    assert [i["share_id"] for i in with_me] == [share["id"]]

    res = client.post(f"/shares/{share['id']}/revoke", headers=auth(alice["access_token"]))
    assert res.status_code == 200
    assert client.get(f"/items/file/{alice_file['id']}", headers=bob_headers).status_code == 403


def test_edit_share_allows_rename(client, alice, bob, alice_file):
    create_share(client, alice, item_type="file", item_id=alice_file["id"],
                 shared_with_id=bob["user"]["id"], permission="edit")
    res = client.patch(f"/items/file/{alice_file['id']}", json={"name": "renamed.pdf"},
                       headers=auth(bob["access_token"]))
    assert res.status_code == 200
    assert res.json()["name"] == "renamed.pdf"


def test_invite_before_signup(client, alice, alice_file):
    create_share(client, alice, item_type="file", item_id=alice_file["id"], shared_with_email="carol@example.com")
    carol = signup(client, "Carol", "carol@example.com")

    res = client.get(f"/items/file/{alice_file['id']}", headers=auth(carol["access_token"]))
    assert res.status_code == 200


def test_public_link_view_only(client, alice, alice_file):
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"],
                         is_public=True, permission="view", allow_download=False)
    token = share["public_link"]
    assert share["share_url"].endswith(f"/s/{token}")

    res = client.get(f"/s/{token}")
    assert res.status_code == 200
    assert res.json()["item"]["id"] == alice_file["id"]

    res = client.get(f"/s/{token}/download")
    assert res.status_code == 403
    assert res.json()["detail"]["reason"] == "insufficient_permission"


def test_public_link_password(client, alice, alice_file):
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"],
                         is_public=True, permission="edit", password="secret")
    token = share["public_link"]
    assert share["has_password"] is True
    assert "password" not in share

    res = client.get(f"/s/{token}")
    assert res.status_code == 401
    assert res.json()["detail"]["reason"] == "password_required"

    res = client.get(f"/s/{token}", headers={"X-Share-Password": "guess"})
    assert res.status_code == 403
    assert res.json()["detail"]["reason"] == "password_incorrect"

    assert client.get(f"/s/{token}", params={"password": "secret"}).status_code == 200


def test_unknown_and_inactive_links(client, alice, alice_file):
    res = client.get("/s/does-not-exist")
    assert res.status_code == 404
    assert res.json()["detail"]["reason"] == "link_not_found"

    share = create_share(client, alice, item_type="file", item_id=alice_file["id"], is_public=True)
    client.post(f"/shares/{share['id']}/revoke", headers=auth(alice["access_token"]))

    res = client.get(f"/s/{share['public_link']}")
    assert res.status_code == 403
    assert res.json()["detail"]["reason"] == "link_inactive"

    res = client.post(f"/shares/{share['id']}/extend", json={"expires_in_minutes": 60},
                      headers=auth(alice["access_token"]))
    assert res.status_code == 200
    assert client.get(f"/s/{share['public_link']}").status_code == 200


def test_public_folder_link_lists_and_downloads_contents(client, alice):
    headers = auth(alice["access_token"])
    folder = client.post("/folders", json={"name": "Photos"}, headers=headers).json()
    photo = client.post("/files", json={"name": "cat.jpg", "mime_type": "image/jpeg", "size": 10,
                                        "folder_id": folder["id"]}, headers=headers).json()
    share = create_share(client, alice, item_type="folder", item_id=folder["id"],
                         is_public=True, permission="download")

    listing = client.get(f"/s/{share['public_link']}").json()
    assert listing["type"] == "folder"
    assert [f["id"] for f in listing["files"]] == [photo["id"]]

    res = client.get(f"/s/{share['public_link']}/download", params={"item_id": photo["id"]})
    assert res.status_code == 200
    assert res.json()["name"] == "cat.jpg"

    # the folder itself has no bytes to hand out
    assert client.get(f"/s/{share['public_link']}/download").status_code == 400


def test_trashed_item_hidden_from_links(client, alice, alice_file):
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"], is_public=True)
    headers = auth(alice["access_token"])

    assert client.delete(f"/items/file/{alice_file['id']}", headers=headers).status_code == 200
    res = client.get(f"/s/{share['public_link']}")
    assert res.status_code == 404
    assert res.json()["detail"]["reason"] == "item_not_found"

    trash = client.get("/trash", headers=headers).json()
    assert [f["id"] for f in trash["files"]] == [alice_file["id"]]

    assert client.post(f"/items/file/{alice_file['id']}/restore", headers=headers).status_code == 200
    assert client.get(f"/s/{share['public_link']}").status_code == 200


def test_share_management(client, alice, alice_file):
    headers = auth(alice["access_token"])
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"], is_public=True)

    res = client.patch(f"/shares/{share['id']}", json={"permission": "download", "notify_on_access": True},
                       headers=headers)
    assert res.status_code == 200
    assert res.json()["permission"] == "download"

    renewed = client.post(f"/shares/{share['id']}/regenerate-link", headers=headers).json()
    assert renewed["public_link"] != share["public_link"]
    assert client.get(f"/s/{share['public_link']}").status_code == 404

    item_shares = client.get(f"/shares/item/file/{alice_file['id']}", headers=headers).json()["shares"]
    assert [s["id"] for s in item_shares] == [share["id"]]

    assert client.delete(f"/shares/{share['id']}", headers=headers).status_code == 200
    assert client.get("/shares", headers=headers).json()["shares"] == []


def test_cannot_share_someone_elses_item(client, bob, alice_file):
    res = client.post("/shares", json={"item_type": "file", "item_id": alice_file["id"], "is_public": True},
                      headers=auth(bob["access_token"]))
    assert res.status_code == 403


def test_access_is_counted(client, alice, alice_file):
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"], is_public=True)
    for _ in range(3):
        client.get(f"/s/{share['public_link']}")

    shares = client.get("/shares", headers=auth(alice["access_token"])).json()["shares"]
    assert shares[0]["access_count"] == 3
    assert shares[0]["last_accessed"] is not None


def test_folder_cycle_rejected(client, alice):
    headers = auth(alice["access_token"])
    a = client.post("/folders", json={"name": "A"}, headers=headers).json()
    b = client.post("/folders", json={"name": "B", "parent_id": a["id"]}, headers=headers).json()

    res = client.patch(f"/folders/{a['id']}/move", json={"parent_id": b["id"]}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"]["reason"] == "validation_error"


def test_regenerate_link_of_private_share_rejected(client, alice, bob, alice_file):
    share = create_share(client, alice, item_type="file", item_id=alice_file["id"],
                         shared_with_id=bob["user"]["id"], permission="download")
    res = client.post(f"/shares/{share['id']}/regenerate-link", headers=auth(alice["access_token"]))
    assert res.status_code == 400
    assert res.json()["detail"]["reason"] == "validation_error"
