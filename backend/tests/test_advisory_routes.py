import json

from models import Setting
from services.advisory_groups import advisory_groups_key, advisory_students_key


def _groups(client, h):
    return client.get("/api/advisory/groups", headers=h).get_json()["groups"]


class TestInvites:
    def test_invite_accept_flow(self, client, session, make_user, auth_header):
        teacher = make_user(role="teacher")
        student = make_user(email="Ada_Lovelace@school.edu")
        th, sh = auth_header(teacher), auth_header(student)

        r = client.post("/api/advisory", json={"email": " ada_lovelace@SCHOOL.edu "}, headers=th)
        assert r.status_code == 200, r.get_json()
        pending = client.get("/api/advisory", headers=th).get_json()["pendingRequests"]
        assert [p["email"] for p in pending] == ["ada_lovelace@school.edu"]

        invites = client.get("/api/student/advisory", headers=sh).get_json()["invites"]
        assert len(invites) == 1
        assert invites[0]["advisorId"] == teacher.id
        assert invites[0]["advisorName"] == teacher.name

        r = client.post("/api/student/advisory",
                        json={"requestKey": invites[0]["requestKey"], "action": "accept"}, headers=sh)
        assert r.get_json() == {"status": "accepted", "advisor": {"id": teacher.id, "name": teacher.name}}

        body = client.get("/api/advisory", headers=th).get_json()
        assert body["pendingRequests"] == []
        assert [s["id"] for s in body["students"]] == [student.id]
        legacy = session.query(Setting).filter(Setting.key == advisory_students_key(teacher.id)).first()
        assert json.loads(legacy.value) == [student.id]

    def test_invite_into_specific_group(self, client, make_user, auth_header):
        teacher = make_user(role="teacher")
        student = make_user()
        th, sh = auth_header(teacher), auth_header(student)
        seniors = client.post("/api/advisory/groups", json={"name": "Seniors"}, headers=th).get_json()["group"]

        client.post("/api/advisory", json={"email": student.email, "groupId": seniors["id"]}, headers=th)
        key = client.get("/api/student/advisory", headers=sh).get_json()["invites"][0]["requestKey"]
        client.post("/api/student/advisory", json={"requestKey": key, "action": "accept"}, headers=sh)

        by_name = {g["name"]: g["studentIds"] for g in _groups(client, th)}
        assert by_name == {"My Advisory": [], "Seniors": [student.id]}

    def test_decline_removes_invite(self, client, make_user, auth_header):
        teacher, student = make_user(role="teacher"), make_user()
        th, sh = auth_header(teacher), auth_header(student)
        client.post("/api/advisory", json={"email": student.email}, headers=th)
        key = client.get("/api/student/advisory", headers=sh).get_json()["invites"][0]["requestKey"]

        assert client.post("/api/student/advisory", json={"requestKey": key, "action": "decline"},
                           headers=sh).get_json() == {"status": "declined"}
        assert client.get("/api/student/advisory", headers=sh).get_json() == {"invites": []}
        again = client.post("/api/student/advisory", json={"requestKey": key, "action": "accept"}, headers=sh)
        assert again.status_code == 404

    def test_invite_validation(self, client, make_user, auth_header):
        teacher = make_user(role="teacher")
        student = make_user()
        th = auth_header(teacher)

        assert client.post("/api/advisory", json={"email": "nope"}, headers=th).status_code == 400
        assert client.post("/api/advisory", json={"email": "ghost@school.edu"}, headers=th).status_code == 404
        assert client.post("/api/advisory", json={"email": teacher.email}, headers=th).status_code == 404

        assert client.post("/api/advisory", json={"email": student.email}, headers=th).status_code == 200
        dup = client.post("/api/advisory", json={"email": student.email}, headers=th)
        assert dup.status_code == 400
        assert dup.get_json() == {"error": "Request already sent to this student"}

    def test_already_member(self, client, session, make_user, auth_header):
        teacher, student = make_user(role="teacher"), make_user()
        session.add(Setting(key=advisory_students_key(teacher.id), value=json.dumps([student.id])))
        session.commit()
        r = client.post("/api/advisory", json={"email": student.email}, headers=auth_header(teacher))
        assert r.status_code == 400
        assert r.get_json() == {"error": "Student is already in your advisory"}

    def test_another_student_cannot_answer(self, client, make_user, auth_header):
        teacher, student, other = make_user(role="teacher"), make_user(), make_user()
        client.post("/api/advisory", json={"email": student.email}, headers=auth_header(teacher))
        key = client.get("/api/student/advisory", headers=auth_header(student)).get_json()["invites"][0]["requestKey"]
        r = client.post("/api/student/advisory", json={"requestKey": key, "action": "accept"},
                        headers=auth_header(other))
        assert r.status_code == 404

    def test_roles_are_enforced(self, client, make_user, auth_header):
        student, teacher = make_user(), make_user(role="teacher")
        assert client.get("/api/advisory", headers=auth_header(student)).status_code == 403
        assert client.get("/api/student/advisory", headers=auth_header(teacher)).status_code == 403
        assert client.get("/api/advisory").status_code == 401


class TestGroups:
    def test_legacy_advisor_is_migrated_on_first_read(self, client, session, make_user, auth_header):
        teacher, s1, s2 = make_user(role="teacher"), make_user(), make_user()
        session.add(Setting(key=advisory_students_key(teacher.id), value=json.dumps([s1.id, s2.id])))
        session.commit()

        groups = _groups(client, auth_header(teacher))
        assert [(g["name"], g["studentIds"]) for g in groups] == [("My Advisory", [s1.id, s2.id])]
        session.expire_all()
        assert session.query(Setting).filter(Setting.key == advisory_groups_key(teacher.id)).first() is not None

    def test_rename_move_and_delete(self, client, session, make_user, auth_header):
        teacher, s1, s2 = make_user(role="teacher"), make_user(), make_user()
        session.add(Setting(key=advisory_students_key(teacher.id), value=json.dumps([s1.id, s2.id])))
        session.commit()
        th = auth_header(teacher)
        default = _groups(client, th)[0]

        r = client.patch(f"/api/advisory/groups/{default['id']}", json={"name": "Juniors"}, headers=th)
        assert r.get_json()["group"]["name"] == "Juniors"

        extra = client.post("/api/advisory/groups", json={"name": "Mentees"}, headers=th).get_json()["group"]
        client.patch(f"/api/advisory/groups/{extra['id']}", json={"studentIds": [s2.id, "stranger"]}, headers=th)
        client.patch(f"/api/advisory/groups/{default['id']}", json={"studentIds": [s1.id]}, headers=th)
        assert {g["name"]: g["studentIds"] for g in _groups(client, th)} == {"Juniors": [s1.id], "Mentees": [s2.id]}

        assert client.delete(f"/api/advisory/groups/{extra['id']}", headers=th).status_code == 200
        session.expire_all()
        legacy = session.query(Setting).filter(Setting.key == advisory_students_key(teacher.id)).first()
        assert json.loads(legacy.value) == [s1.id]

        last = client.delete(f"/api/advisory/groups/{default['id']}", headers=th)
        assert last.status_code == 400
        assert client.delete("/api/advisory/groups/missing", headers=th).status_code == 404

    def test_emptying_all_groups_drops_legacy_key(self, client, session, make_user, auth_header):
        teacher, s1 = make_user(role="teacher"), make_user()
        session.add(Setting(key=advisory_students_key(teacher.id), value=json.dumps([s1.id])))
        session.commit()
        th = auth_header(teacher)
        gid = _groups(client, th)[0]["id"]

        client.patch(f"/api/advisory/groups/{gid}", json={"studentIds": []}, headers=th)
        session.expire_all()
        assert session.query(Setting).filter(Setting.key == advisory_students_key(teacher.id)).first() is None

    def test_group_validation(self, client, make_user, auth_header):
        th = auth_header(make_user(role="teacher"))
        assert client.post("/api/advisory/groups", json={"name": "  "}, headers=th).status_code == 400
        gid = _groups(client, th)[0]["id"]
        assert client.patch(f"/api/advisory/groups/{gid}", json={}, headers=th).status_code == 400
        assert client.patch(f"/api/advisory/groups/{gid}", json={"studentIds": "x"}, headers=th).status_code == 400
        assert client.patch("/api/advisory/groups/missing", json={"name": "x"}, headers=th).status_code == 404


def test_stats_include_score_card(client, session, make_user, auth_header):
    from models import Activity

    teacher, s1 = make_user(role="teacher"), make_user()
    session.add(Setting(key=advisory_students_key(teacher.id), value=json.dumps([s1.id])))
    session.add(Activity(student_id=s1.id, name="Debate", status="verified", total_hours=3))
    session.commit()

    body = client.get("/api/advisory/stats", headers=auth_header(teacher)).get_json()
    assert body["studentCount"] == 1
    assert body["totalActivities"] == 1
    assert body["verifiedActivities"] == 1
    assert body["scoreCard"]["title"] == "Advisory engagement"
    assert 0 <= body["scoreCard"]["score"] <= 100


def test_stats_for_empty_advisory(client, make_user, auth_header):
    body = client.get("/api/advisory/stats", headers=auth_header(make_user(role="teacher"))).get_json()
    assert body["studentCount"] == 0
    assert body["scoreCard"]["score"] == 15
