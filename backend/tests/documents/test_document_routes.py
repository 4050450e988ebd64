from conftest import PDF_BYTES, create_user_and_get_headers


async def _upload(client, headers, recipient_ids, title="Contract"):
    return await client.post(
        "/api/documents",
        data={"title": title, "recipient_ids": recipient_ids},
        files={"file": ("contract.pdf", PDF_BYTES, "application/pdf")},
        headers=headers,
    )


async def _setup(client):
    alice_id, alice = await create_user_and_get_headers(client, "alice")
    bob_id, bob = await create_user_and_get_headers(client, "bob")
    carol_id, carol = await create_user_and_get_headers(client, "carol")
    response = await _upload(client, alice, [bob_id, carol_id])
    assert response.status_code == 201
    return response.json(), (alice_id, alice), (bob_id, bob), (carol_id, carol)


async def test_create_document(client, blob_dir):
    doc, (alice_id, _), _, _ = await _setup(client)
    assert doc["title"] == "Contract"
    assert doc["uploaded_by"] == alice_id
    assert doc["status"] == "pending"
    assert doc["current_version"] == 1
    assert doc["file_url"].startswith("http://test/files/")
    assert len(list(blob_dir.iterdir())) == 1


async def test_create_document_requires_auth(client):
    response = await client.post(
        "/api/documents",
        data={"title": "Contract", "recipient_ids": ["00000000-0000-0000-0000-000000000001"]},
        files={"file": ("contract.pdf", PDF_BYTES, "application/pdf")},
    )
    assert response.status_code in (401, 403)


async def test_create_document_unknown_recipient(client):
    _, headers = await create_user_and_get_headers(client, "alice")
    response = await _upload(client, headers, ["00000000-0000-0000-0000-000000000001"])
    assert response.status_code == 404


async def test_create_document_shared_with_self(client):
    alice_id, headers = await create_user_and_get_headers(client, "alice")
    response = await _upload(client, headers, [alice_id])
    assert response.status_code == 422


async def test_list_shared_documents(client):
    doc, (alice_id, alice), (bob_id, bob), _ = await _setup(client)

    response = await client.get(f"/api/documents/{bob_id}", headers=bob)
    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == [doc["id"]]

    response = await client.get(f"/api/documents/{alice_id}", headers=alice)
    assert response.json() == []


async def test_list_shared_documents_of_other_user(client):
    _, _, (bob_id, _), (_, carol) = await _setup(client)
    response = await client.get(f"/api/documents/{bob_id}", headers=carol)
    assert response.status_code == 403


async def test_approval_flow(client):
    doc, (_, alice), (_, bob), (_, carol) = await _setup(client)
    url = f"/api/documents/{doc['id']}/approval"

    response = await client.post(url, json={"action": "approve", "version": 1}, headers=bob)
    assert response.status_code == 200
    share = response.json()
    assert share["approval_status"] == "approved"
    assert share["is_approved"] is True
    assert len(share["approval_history"]) == 1

    response = await client.post(url, json={"action": "approve", "version": 1}, headers=carol)
    assert response.status_code == 200

    shares = (await client.get(f"/api/documents/{doc['id']}/shares", headers=alice)).json()
    assert all(s["is_approved"] for s in shares)
    assert {s["username"] for s in shares} == {"bob", "carol"}

    history = (await client.get(f"/api/documents/{doc['id']}/history", headers=alice)).json()
    assert [h["action_type"] for h in history] == ["initial_upload", "approve", "approve"]


async def test_approval_conflicts(client):
    doc, _, (_, bob), _ = await _setup(client)
    url = f"/api/documents/{doc['id']}/approval"

    response = await client.post(url, json={"action": "revert", "version": 1}, headers=bob)
    assert response.status_code == 409
    assert response.json()["detail"] == "Document is already pending"

    response = await client.post(url, json={"action": "approve", "version": 2}, headers=bob)
    assert response.status_code == 409


async def test_approval_by_non_recipient(client):
    doc, (_, alice), _, _ = await _setup(client)
    response = await client.post(
        f"/api/documents/{doc['id']}/approval",
        json={"action": "approve", "version": 1},
        headers=alice,
    )
    assert response.status_code == 404


async def test_approval_bad_action(client):
    doc, _, (_, bob), _ = await _setup(client)
    response = await client.post(
        f"/api/documents/{doc['id']}/approval",
        json={"action": "escalate", "version": 1},
        headers=bob,
    )
    assert response.status_code == 422


async def test_upload_version(client):
    doc, (_, alice), (_, bob), _ = await _setup(client)
    await client.post(
        f"/api/documents/{doc['id']}/approval",
        json={"action": "reject", "version": 1, "reason": "typo"},
        headers=bob,
    )

    response = await client.post(
        f"/api/documents/{doc['id']}/versions",
        data={"expected_version": "1"},
        files={"file": ("contract-v2.pdf", PDF_BYTES, "application/pdf")},
        headers=alice,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["current_version"] == 2
    assert updated["status"] == "pending"

    shares = (await client.get(f"/api/documents/{doc['id']}/shares", headers=alice)).json()
    assert {s["approval_status"] for s in shares} == {"pending"}
    assert {s["current_version"] for s in shares} == {2}

    versions = (await client.get(f"/api/documents/{doc['id']}/versions", headers=alice)).json()
    assert [v["version"] for v in versions] == [2, 1]
    assert versions[0]["file_url"] == updated["file_url"]
    assert versions[1]["file_url"] == doc["file_url"]


async def test_upload_version_stale(client):
    doc, (_, alice), _, _ = await _setup(client)
    url = f"/api/documents/{doc['id']}/versions"
    files = {"file": ("v2.pdf", PDF_BYTES, "application/pdf")}

    first = await client.post(url, data={"expected_version": "1"}, files=files, headers=alice)
    assert first.status_code == 200
    second = await client.post(url, data={"expected_version": "1"}, files=files, headers=alice)
    assert second.status_code == 409


async def test_upload_version_by_recipient(client):
    doc, _, (_, bob), _ = await _setup(client)
    response = await client.post(
        f"/api/documents/{doc['id']}/versions",
        files={"file": ("v2.pdf", PDF_BYTES, "application/pdf")},
        headers=bob,
    )
    assert response.status_code == 403


async def test_versions_of_unknown_document(client):
    _, headers = await create_user_and_get_headers(client, "alice")
    response = await client.get(
        "/api/documents/00000000-0000-0000-0000-000000000001/versions", headers=headers
    )
    assert response.status_code == 200
    assert response.json() == []


async def test_delete_document(client, blob_dir):
    doc, (_, alice), (bob_id, bob), _ = await _setup(client)

    response = await client.delete(f"/api/documents/{doc['id']}", headers=bob)
    assert response.status_code == 403

    response = await client.delete(f"/api/documents/{doc['id']}", headers=alice)
    assert response.status_code == 204
    assert list(blob_dir.iterdir()) == []

    response = await client.get(f"/api/documents/{doc['id']}/shares", headers=alice)
    assert response.status_code == 404
    assert (await client.get(f"/api/documents/{bob_id}", headers=bob)).json() == []



async def test_document_detail(client):
    doc, (_, alice), (_, bob), _ = await _setup(client)
    for headers in (alice, bob):
        response = await client.get(f"/api/documents/{doc['id']}/detail", headers=headers)
        assert response.status_code == 200
        assert response.json()["title"] == "Contract"
        assert response.json()["uploader_username"] == "alice"


async def test_outsider_cannot_read_document(client):
    doc, _, (_, bob), _ = await _setup(client)
    await client.post(
        f"/api/documents/{doc['id']}/approval",
        json={"action": "reject", "version": 1, "reason": "private reason"},
        headers=bob,
    )
    _, mallory = await create_user_and_get_headers(client, "mallory")

    for suffix in ("detail", "versions", "history", "shares"):
        response = await client.get(f"/api/documents/{doc['id']}/{suffix}", headers=mallory)
        assert response.status_code == 403, suffix
        assert "private reason" not in response.text


async def test_outsider_cannot_delete_document(client, blob_dir):
    doc, _, _, _ = await _setup(client)
    _, mallory = await create_user_and_get_headers(client, "mallory")
    response = await client.delete(f"/api/documents/{doc['id']}", headers=mallory)
    assert response.status_code == 403
    assert len(list(blob_dir.iterdir())) == 1
