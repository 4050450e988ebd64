from conftest import PDF_BYTES, create_user_and_get_headers


async def _shared_document(client):
    _, alice = await create_user_and_get_headers(client, "alice")
    bob_id, bob = await create_user_and_get_headers(client, "bob")
    response = await client.post(
        "/api/documents",
        data={"title": "Contract", "recipient_ids": [bob_id]},
        files={"file": ("contract.pdf", PDF_BYTES, "application/pdf")},
        headers=alice,
    )
    return response.json()["id"], alice, bob


async def test_create_and_list_comments(client):
    doc_id, alice, bob = await _shared_document(client)
    response = await client.post(
        f"/api/documents/{doc_id}/comments",
        json={"comment_text": "Check the totals", "page_number": 2, "x_position": 40, "y_position": 60, "version": 1},
        headers=bob,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["author_username"] == "bob"
    assert data["x_position"] == 40

    response = await client.get(f"/api/documents/{doc_id}/comments?version=1", headers=alice)
    assert response.status_code == 200
    assert [c["comment_text"] for c in response.json()] == ["Check the totals"]

    response = await client.get(f"/api/documents/{doc_id}/comments?version=2", headers=alice)
    assert response.json() == []


async def test_comment_needs_both_coordinates(client):
    doc_id, _, bob = await _shared_document(client)
    response = await client.post(
        f"/api/documents/{doc_id}/comments",
        json={"comment_text": "Here", "x_position": 40, "version": 1},
        headers=bob,
    )
    assert response.status_code == 422


async def test_comment_by_outsider(client):
    doc_id, _, _ = await _shared_document(client)
    _, mallory = await create_user_and_get_headers(client, "mallory")
    response = await client.post(
        f"/api/documents/{doc_id}/comments",
        json={"comment_text": "Hi", "version": 1},
        headers=mallory,
    )
    assert response.status_code == 403


async def test_export_comments(client):
    doc_id, alice, bob = await _shared_document(client)
    await client.post(
        f"/api/documents/{doc_id}/comments",
        json={"comment_text": "Typo on line 4", "page_number": 1, "version": 1},
        headers=bob,
    )

    response = await client.get(f"/api/documents/{doc_id}/comments/export?version=1", headers=alice)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0] == "User,Page,Comment,Date,Version"
    assert lines[1].startswith("bob,1,Typo on line 4,")
    assert lines[1].endswith(",1")


async def test_outsider_cannot_read_comments(client):
    doc_id, _, bob = await _shared_document(client)
    await client.post(
        f"/api/documents/{doc_id}/comments",
        json={"comment_text": "private note", "version": 1},
        headers=bob,
    )
    _, mallory = await create_user_and_get_headers(client, "mallory")

    response = await client.get(f"/api/documents/{doc_id}/comments?version=1", headers=mallory)
    assert response.status_code == 403
    assert "private note" not in response.text

    response = await client.get(f"/api/documents/{doc_id}/comments/export?version=1", headers=mallory)
    assert response.status_code == 403
    assert "private note" not in response.text
