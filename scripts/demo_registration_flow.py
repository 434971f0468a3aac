"""Demo: register a dojo, then walk the trial and subscription endpoints.

Runs in-process against the in-memory identity store using FastAPI
TestClient, so no database or Redis is needed.

Run with:
    python scripts/demo_registration_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app

REGISTRATION = {
    "organizationName": "Tiger Dojo",
    "businessType": "dojo",
    "martialArtTypes": ["Karate"],
    "numberOfSchools": 2,
    "estimatedStudents": 50,
    "email": "sensei@tiger-dojo.example",
    "phone": "+1 (555) 010-2000",
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
    "country": "USA",
    "firstName": "Mia",
    "lastName": "Tanaka",
    "password": "Passw0rd",
}


def main() -> None:
    client = TestClient(app)

    # ── Step 1: email availability ──────────────────────────────────
    r = client.post("/api/registration/check-email", json={"email": REGISTRATION["email"]})
    print(f"1. POST /check-email         → {r.status_code}  available={r.json()['available']}")

    # ── Step 2: register ────────────────────────────────────────────
    r = client.post("/api/registration/register", json=REGISTRATION)
    data = r.json()["data"]
    print(f"2. POST /register            → {r.status_code}  slug={data['organization']['slug']}")
    print(f"   first school: {data['school']['name']}  trial: {data['trial']['days']} days")
    headers = {"Authorization": f"Bearer {data['token']}"}

    # ── Step 3: duplicate email ─────────────────────────────────────
    r = client.post("/api/registration/register", json=REGISTRATION)
    print(f"3. POST /register (again)    → {r.status_code}  (email taken)")

    # ── Step 4: trial status ────────────────────────────────────────
    r = client.get("/api/registration/trial-status", headers=headers)
    print(f"4. GET  /trial-status        → {r.status_code}  {r.json()['data']}")

    # ── Step 5: extend trial ────────────────────────────────────────
    r = client.post("/api/registration/extend-trial", json={"days": 14}, headers=headers)
    print(f"5. POST /extend-trial (14)   → {r.status_code}  {r.json()['data']}")

    # ── Step 6: second school within quota ──────────────────────────
    r = client.post(
        "/api/schools",
        json={
            "name": "Tiger Dojo North",
            "address": "9 North Rd",
            "city": "Springfield",
            "state": "IL",
            "zipCode": "62702",
            "phone": "555-0101",
            "email": "north@tiger-dojo.example",
            "martialArts": ["Karate", "Judo"],
            "maxStudents": 40,
        },
        headers=headers,
    )
    print(f"6. POST /api/schools         → {r.status_code}  slug={r.json()['data']['slug']}")

    # ── Step 7: convert to premium ──────────────────────────────────
    r = client.post(
        "/api/registration/convert-subscription",
        json={"subscriptionType": "premium"},
        headers=headers,
    )
    body = r.json()["data"]
    print(f"7. POST /convert-subscription → {r.status_code}  {body['subscription']}")
    print(f"   settings: {body['settings']}")

    # ── Step 8: login with the new account ──────────────────────────
    r = client.post(
        "/api/auth/login",
        json={"email": REGISTRATION["email"], "password": REGISTRATION["password"]},
    )
    print(f"8. POST /api/auth/login      → {r.status_code}  role={r.json()['user']['role']}")


if __name__ == "__main__":
    main()
