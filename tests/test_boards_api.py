from __future__ import annotations

import json

from conftest import auth_headers, register

from hexboard.config import feature_flags


def _create(client, token: str, title=None, data=None) -> dict:
    body = {"title": title, "data": data if data is not None else {"hexagons": []}}
    response = client.post("/api/boards", json=body, headers=auth_headers(token))
    assert response.status_code == 201, response.json()
    return response.json()["board"]


def _invite(client, owner: str, board_id: str, email: str, role: str = "editor"):
    return client.post(
        f"/api/boards/{board_id}/collaborators",
        json={"email": email, "role": role},
        headers=auth_headers(owner),
    )


def _link(client, owner: str, board_id: str, role: str = "view") -> dict:
    response = client.post(
        f"/api/boards/{board_id}/links", json={"role": role}, headers=auth_headers(owner)
    )
    assert response.status_code == 201, response.json()
    return response.json()["link"]


def test_board_crud_for_owner(api_client) -> None:
    token = register(api_client, "alice@example.com")
    board = _create(api_client, token, "  Roadmap  ", {"hexagons": [{"id": "h1", "x": 1, "y": 2}]})
    assert board["title"] == "Roadmap"
    assert board["role"] == "owner"
    assert board["createdAt"].endswith("Z")

    untitled = _create(api_client, token, "   ")
    assert untitled["title"] == "Untitled Board"

    fetched = api_client.get(f"/api/boards/{board['id']}", headers=auth_headers(token)).json()
    assert fetched["ok"] is True
    assert fetched["board"]["data"]["hexagons"][0]["id"] == "h1"

    updated = api_client.put(
        f"/api/boards/{board['id']}",
        json={"title": "Roadmap 2", "data": {"hexagons": []}},
        headers=auth_headers(token),
    ).json()["board"]
    assert updated["title"] == "Roadmap 2"
    assert updated["data"] == {"hexagons": []}

    listed = api_client.get("/api/boards", headers=auth_headers(token)).json()["boards"]
    assert [entry["id"] for entry in listed] == [board["id"], untitled["id"]]
    assert all(entry["role"] == "owner" for entry in listed)

    deleted = api_client.delete(f"/api/boards/{board['id']}", headers=auth_headers(token))
    assert deleted.json() == {"ok": True}
    missing = api_client.get(f"/api/boards/{board['id']}", headers=auth_headers(token))
    assert missing.status_code == 404
    assert missing.json()["code"] == "board_not_found"


def test_boards_require_authentication(api_client) -> None:
    response = api_client.get("/api/boards")
    assert response.status_code == 401
    body = response.json()
    assert body == {"ok": False, "code": "unauthorized", "message": "Missing token", "request_id": body["request_id"]}
    assert response.headers["X-Request-ID"] == body["request_id"]


def test_non_members_see_not_found(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    stranger = register(api_client, "bob@example.com")
    board = _create(api_client, owner, "Private")
    for method in ("get", "delete"):
        response = getattr(api_client, method)(f"/api/boards/{board['id']}", headers=auth_headers(stranger))
        assert response.status_code == 404
    put = api_client.put(f"/api/boards/{board['id']}", json={"data": {}}, headers=auth_headers(stranger))
    assert put.status_code == 404


def test_editor_can_edit_but_not_rename_or_delete(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    editor = register(api_client, "bob@example.com")
    board = _create(api_client, owner, "Team")
    invited = _invite(api_client, owner, board["id"], "bob@example.com")
    assert invited.status_code == 201
    assert invited.json()["collaborator"]["role"] == "editor"

    listed = api_client.get("/api/boards", headers=auth_headers(editor)).json()["boards"]
    assert listed[0]["role"] == "editor"
    assert listed[0]["ownerEmail"] == "alice@example.com"

    edit = api_client.put(
        f"/api/boards/{board['id']}", json={"data": {"hexagons": []}}, headers=auth_headers(editor)
    )
    assert edit.status_code == 200
    assert edit.json()["board"]["role"] == "editor"

    rename = api_client.put(
        f"/api/boards/{board['id']}", json={"title": "Mine now"}, headers=auth_headers(editor)
    )
    assert rename.status_code == 403
    assert rename.json()["code"] == "forbidden"

    delete = api_client.delete(f"/api/boards/{board['id']}", headers=auth_headers(editor))
    assert delete.status_code == 403

    links = api_client.get(f"/api/boards/{board['id']}/links", headers=auth_headers(editor))
    assert links.status_code == 403


def test_viewer_cannot_update(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    viewer = register(api_client, "bob@example.com")
    board = _create(api_client, owner)
    _invite(api_client, owner, board["id"], "bob@example.com", role="viewer")

    assert api_client.get(f"/api/boards/{board['id']}", headers=auth_headers(viewer)).json()["board"]["role"] == "viewer"
    response = api_client.put(
        f"/api/boards/{board['id']}", json={"data": {}}, headers=auth_headers(viewer)
    )
    assert response.status_code == 403


def test_collaborator_management(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    register(api_client, "bob@example.com")
    board = _create(api_client, owner)

    assert _invite(api_client, owner, board["id"], "nobody@example.com").status_code == 404
    assert _invite(api_client, owner, board["id"], "bob@example.com", role="owner").status_code == 400
    assert _invite(api_client, owner, board["id"], "alice@example.com").status_code == 400

    _invite(api_client, owner, board["id"], "bob@example.com", role="viewer")
    _invite(api_client, owner, board["id"], "bob@example.com", role="editor")
    people = api_client.get(
        f"/api/boards/{board['id']}/collaborators", headers=auth_headers(owner)
    ).json()["collaborators"]
    assert len(people) == 1
    assert people[0]["email"] == "bob@example.com"
    assert people[0]["role"] == "editor"

    revoked = api_client.delete(
        f"/api/boards/{board['id']}/collaborators/{people[0]['userId']}", headers=auth_headers(owner)
    )
    assert revoked.json() == {"ok": True}
    assert api_client.get(
        f"/api/boards/{board['id']}/collaborators", headers=auth_headers(owner)
    ).json()["collaborators"] == []


def test_share_links_are_idempotent_and_resolve(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    board = _create(api_client, owner, "Public", {"hexagons": [], "comments": []})

    first = _link(api_client, owner, board["id"], "view")
    second = _link(api_client, owner, board["id"], "view")
    assert first["token"] == second["token"]
    assert first["boardId"] == board["id"]
    commenting = _link(api_client, owner, board["id"], "comment")
    assert commenting["token"] != first["token"]

    bad = api_client.post(
        f"/api/boards/{board['id']}/links", json={"role": "edit"}, headers=auth_headers(owner)
    )
    assert bad.status_code == 400

    shared = api_client.get(f"/api/shared/{first['token']}").json()
    assert shared["role"] == "viewer"
    assert shared["board"]["title"] == "Public"
    assert api_client.get(f"/api/shared/{commenting['token']}").json()["role"] == "comment"

    listed = api_client.get(f"/api/boards/{board['id']}/links", headers=auth_headers(owner)).json()["links"]
    assert sorted(link["role"] for link in listed) == ["comment", "view"]

    assert api_client.delete(f"/api/boards/{board['id']}/links/view", headers=auth_headers(owner)).json() == {"ok": True}
    assert api_client.get(f"/api/shared/{first['token']}").status_code == 404


def test_share_links_can_be_switched_off(api_client, hexboard_env) -> None:
    owner = register(api_client, "alice@example.com")
    board = _create(api_client, owner)
    link = _link(api_client, owner, board["id"])
    (hexboard_env / "hexboard.json").write_text(
        json.dumps({"features": {"enable_share_links": False}}), encoding="utf-8"
    )
    feature_flags.reset_cache()
    assert api_client.get(f"/api/shared/{link['token']}").status_code == 403
    refused = api_client.post(
        f"/api/boards/{board['id']}/links", json={"role": "view"}, headers=auth_headers(owner)
    )
    assert refused.status_code == 403


def test_comments_follow_roles(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    board = _create(api_client, owner, "Feedback")
    comment_link = _link(api_client, owner, board["id"], "comment")
    view_link = _link(api_client, owner, board["id"], "view")

    guest = api_client.post(
        f"/api/boards/{board['id']}/comments?share={comment_link['token']}",
        json={"text": "  nice layout ", "hexagonId": "h1"},
    )
    assert guest.status_code == 201
    comment = guest.json()["comment"]
    assert comment["author"] == "Guest"
    assert comment["text"] == "nice layout"
    assert comment["hexagonId"] == "h1"
    assert comment["id"].startswith("comment-")

    viewer = api_client.post(
        f"/api/boards/{board['id']}/comments?share={view_link['token']}", json={"text": "hi"}
    )
    assert viewer.status_code == 403

    anonymous = api_client.post(f"/api/boards/{board['id']}/comments", json={"text": "hi"})
    assert anonymous.status_code == 401

    empty = api_client.post(
        f"/api/boards/{board['id']}/comments", json={"text": " "}, headers=auth_headers(owner)
    )
    assert empty.status_code == 400

    own = api_client.post(
        f"/api/boards/{board['id']}/comments", json={"text": "thanks"}, headers=auth_headers(owner)
    )
    assert own.json()["comment"]["author"] == "alice@example.com"

    stored = api_client.get(f"/api/boards/{board['id']}", headers=auth_headers(owner)).json()["board"]
    assert [c["text"] for c in stored["data"]["comments"]] == ["nice layout", "thanks"]


def test_link_for_other_board_grants_nothing(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    first = _create(api_client, owner, "One")
    second = _create(api_client, owner, "Two")
    link = _link(api_client, owner, first["id"], "comment")
    response = api_client.post(
        f"/api/boards/{second['id']}/comments?share={link['token']}", json={"text": "hi"}
    )
    assert response.status_code == 404


def test_deleting_board_removes_its_shares(api_client) -> None:
    owner = register(api_client, "alice@example.com")
    register(api_client, "bob@example.com")
    board = _create(api_client, owner)
    _invite(api_client, owner, board["id"], "bob@example.com")
    link = _link(api_client, owner, board["id"])
    api_client.delete(f"/api/boards/{board['id']}", headers=auth_headers(owner))
    assert api_client.get(f"/api/shared/{link['token']}").status_code == 404


def test_health_and_validation_envelope(api_client) -> None:
    assert api_client.get("/health").json() == {"ok": True}

    token = register(api_client, "alice@example.com")
    response = api_client.post(
        "/api/boards",
        content=b"not json",
        headers={**auth_headers(token), "Content-Type": "application/json"},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert isinstance(body["details"], list)
    assert body["request_id"] == response.headers["X-Request-ID"]


def test_board_requests_log_their_board_and_request_id(api_client, hexboard_env) -> None:
    token = register(api_client, "alice@example.com")
    board = _create(api_client, token, "Logged")
    response = api_client.get(
        f"/api/boards/{board['id']}", headers={**auth_headers(token), "X-Request-ID": "trace-42"}
    )
    assert response.headers["X-Request-ID"] == "trace-42"
    assert response.headers["X-Process-Time"].endswith("s")

    lines = (hexboard_env / "logs" / "server.log").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    traced = [e for e in entries if e["message"] == "http_request" and e.get("request_id") == "trace-42"]
    assert len(traced) == 1
    assert traced[0]["board_id"] == board["id"]
    assert traced[0]["extra"]["http"]["status_code"] == 200
    assert traced[0]["extra"]["http"]["method"] == "GET"

    listed = [e for e in entries if e["message"] == "http_request" and e["extra"]["http"]["path"] == "/api/boards"]
    assert listed and "board_id" not in listed[0]
