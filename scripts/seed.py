"""Seed script: creates demo users and shares sample documents via the REST API.

Usage:
    python scripts/seed.py              # uses http://localhost:5000
    python scripts/seed.py http://host  # custom base URL
"""

import sys

import httpx

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:5000"
PASSWORD = "password123"

USERS = ["alice", "bob", "carol"]

DOCUMENTS = [
    {"title": "Supplier Contract", "owner": "alice", "recipients": ["bob", "carol"]},
    {"title": "Quarterly Budget", "owner": "alice", "recipients": ["bob"]},
    {"title": "Hiring Plan", "owner": "bob", "recipients": ["alice", "carol"]},
]

# Minimal one-page PDF so viewers have something to render
SAMPLE_PDF = (
    b"%PDF-1.4\n1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[3 0 R]/Count 1>>endobj\n"
    b"3 0 obj<</Type/Page/Parent 2 0 R/MediaBox[0 0 612 792]>>endobj\n"
    b"trailer<</Root 1 0 R>>\n%%EOF\n"
)


def register(client: httpx.Client, username: str) -> None:
    resp = client.post(
        f"{BASE_URL}/api/auth/register",
        json={"username": username, "password": PASSWORD},
    )
    if resp.status_code == 201:
        print(f"  Registered {username}")
    elif resp.status_code == 409:
        print(f"  {username} already exists, skipping")
    else:
        resp.raise_for_status()


def login(client: httpx.Client, username: str) -> tuple[str, str]:
    resp = client.post(
        f"{BASE_URL}/api/login",
        json={"username": username, "password": PASSWORD},
    )
    resp.raise_for_status()
    data = resp.json()
    return data["user"]["id"], data["access_token"]


def create_document(
    client: httpx.Client, token: str, title: str, recipient_ids: list[str]
) -> str:
    resp = client.post(
        f"{BASE_URL}/api/documents",
        data={"title": title, "recipient_ids": recipient_ids},
        files={"file": (f"{title.lower().replace(' ', '-')}.pdf", SAMPLE_PDF, "application/pdf")},
        headers={"Authorization": f"Bearer {token}"},
    )
    resp.raise_for_status()
    doc_id = resp.json()["id"]
    print(f"  Created document '{title}' ({doc_id})")
    return doc_id


def approve(client: httpx.Client, token: str, doc_id: str) -> None:
    resp = client.post(
        f"{BASE_URL}/api/documents/{doc_id}/approval",
        json={"action": "approve", "version": 1},
        headers={"Authorization": f"Bearer {token}"},
    )
    resp.raise_for_status()


def main() -> None:
    print(f"Seeding against {BASE_URL}\n")

    with httpx.Client(timeout=10) as client:
        print("Users:")
        for username in USERS:
            register(client, username)

        accounts = {username: login(client, username) for username in USERS}

        print("\nDocuments:")
        created = []
        for doc in DOCUMENTS:
            _, token = accounts[doc["owner"]]
            recipient_ids = [accounts[name][0] for name in doc["recipients"]]
            created.append(
                (create_document(client, token, doc["title"], recipient_ids), doc["recipients"])
            )

        # First document ends up fully approved
        doc_id, recipients = created[0]
        for name in recipients:
            approve(client, accounts[name][1], doc_id)
        print(f"  Approved '{DOCUMENTS[0]['title']}' by {', '.join(recipients)}")

    print("\nDone!")


if __name__ == "__main__":
    main()
