from models import Activity, DeadLetter


def test_student_creates_and_lists_own_activities(client, make_user, auth_header):
    me, other = make_user(), make_user()
    h = auth_header(me)
    r = client.post("/api/activities", json={
        "name": " Robotics Club ", "category": "STEM", "totalHours": "12.5", "startDate": "2025-01-10",
    }, headers=h)
    assert r.status_code == 201
    created = r.get_json()["activity"]
    assert created["name"] == "Robotics Club"
    assert created["totalHours"] == 12.5
    assert created["status"] == "pending"

    client.post("/api/activities", json={"name": "Choir"}, headers=auth_header(other))
    mine = client.get("/api/activities", headers=h).get_json()["activities"]
    assert [a["id"] for a in mine] == [created["id"]]


def test_create_validation(client, make_user, auth_header):
    h = auth_header(make_user())
    assert client.post("/api/activities", json={}, headers=h).status_code == 400
    r = client.post("/api/activities", json={"name": "Tutoring", "totalHours": -3}, headers=h)
    assert r.status_code == 400
    assert r.get_json() == {"error": "Hours must be non-negative numbers"}


def test_only_students_create(client, make_user, auth_header):
    r = client.post("/api/activities", json={"name": "x"}, headers=auth_header(make_user(role="verifier")))
    assert r.status_code == 403


def test_verifier_reviews_activity(client, session, make_user, auth_header):
    student, verifier = make_user(), make_user(role="verifier")
    aid = client.post("/api/activities", json={"name": "Food bank"},
                      headers=auth_header(student)).get_json()["activity"]["id"]
    vh = auth_header(verifier)

    pending = client.get("/api/activities?status=pending", headers=vh).get_json()["activities"]
    assert [a["id"] for a in pending] == [aid]

    r = client.post(f"/api/activities/{aid}/verify", json={"status": "verified"}, headers=vh)
    assert r.status_code == 200
    assert r.get_json()["activity"]["status"] == "verified"
    assert session.get(Activity, aid).status == "verified"

    assert client.post(f"/api/activities/{aid}/verify", json={"status": "maybe"}, headers=vh).status_code == 400
    assert client.post("/api/activities/missing/verify", json={"status": "denied"}, headers=vh).status_code == 404


def test_students_cannot_verify(client, make_user, auth_header):
    student = make_user()
    h = auth_header(student)
    aid = client.post("/api/activities", json={"name": "Chess"}, headers=h).get_json()["activity"]["id"]
    assert client.post(f"/api/activities/{aid}/verify", json={"status": "verified"}, headers=h).status_code == 403


def test_reindex_without_embedding_key_is_skipped(client, session, make_user, auth_header):
    client.post("/api/activities", json={"name": "Chess"}, headers=auth_header(make_user()))
    assert session.query(DeadLetter).count() == 0


def test_student_deletes_own_activity_and_its_embedding(client, session, make_user, auth_header):
    from models import Embedding

    me, other = make_user(), make_user()
    aid = client.post("/api/activities", json={"name": "Chess"}, headers=auth_header(me)).get_json()["activity"]["id"]
    session.add(Embedding(model_name="Activity", record_id=aid, content="Activity: Chess", vector="[1.0]",
                          owner_id=me.id))
    session.commit()

    assert client.delete(f"/api/activities/{aid}", headers=auth_header(other)).status_code == 404
    assert client.delete(f"/api/activities/{aid}", headers=auth_header(me)).get_json() == {"success": True}
    session.expire_all()
    assert session.get(Activity, aid) is None
    assert session.query(Embedding).count() == 0
