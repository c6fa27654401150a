import json

from models import Setting
from services.advisory_groups import (
    DEFAULT_ADVISORY_NAME, AdvisoryGroupRecord, add_student_to_group,
    advisory_groups_key, advisory_students_key, build_advisory_request_key,
    flatten_group_student_ids, load_advisor_groups, parse_advisory_request_key,
    parse_advisory_request_value, parse_groups, save_advisor_groups,
)

ADVISOR = "adv1"


def _setting(session, key):
    return session.query(Setting).filter(Setting.key == key).first()


class TestLegacyMigration:
    def test_legacy_list_becomes_one_default_group(self, session):
        session.add(Setting(key=advisory_students_key(ADVISOR), value='["s1","s2"]'))
        session.commit()

        groups = load_advisor_groups(session, ADVISOR)
        session.commit()

        assert len(groups) == 1
        assert groups[0].name == DEFAULT_ADVISORY_NAME
        assert groups[0].student_ids == ["s1", "s2"]

        stored = json.loads(_setting(session, advisory_groups_key(ADVISOR)).value)
        assert [g["studentIds"] for g in stored] == [["s1", "s2"]]

        again = load_advisor_groups(session, ADVISOR)
        assert [g.id for g in again] == [groups[0].id]

    def test_nothing_stored_yields_empty_default_group(self, session):
        groups = load_advisor_groups(session, ADVISOR)
        session.commit()
        assert [(g.name, g.student_ids) for g in groups] == [(DEFAULT_ADVISORY_NAME, [])]
        assert _setting(session, advisory_students_key(ADVISOR)) is None

    def test_empty_group_blob_falls_back_to_legacy(self, session):
        session.add(Setting(key=advisory_groups_key(ADVISOR), value="[]"))
        session.add(Setting(key=advisory_students_key(ADVISOR), value='["s9"]'))
        session.commit()
        assert load_advisor_groups(session, ADVISOR)[0].student_ids == ["s9"]


class TestSave:
    def test_flattened_list_is_written_under_legacy_key(self, session):
        groups = [
            AdvisoryGroupRecord.new("A", ["s1", "s2"]),
            AdvisoryGroupRecord.new("B", ["s2", "s3"]),
        ]
        save_advisor_groups(session, ADVISOR, groups)
        session.commit()
        assert json.loads(_setting(session, advisory_students_key(ADVISOR)).value) == ["s1", "s2", "s3"]

    def test_empty_flattened_list_removes_legacy_key(self, session):
        save_advisor_groups(session, ADVISOR, [AdvisoryGroupRecord.new("A", ["s1"])])
        session.commit()
        assert _setting(session, advisory_students_key(ADVISOR)) is not None

        save_advisor_groups(session, ADVISOR, [AdvisoryGroupRecord.new("A", [])])
        session.commit()
        assert _setting(session, advisory_students_key(ADVISOR)) is None
        assert _setting(session, advisory_groups_key(ADVISOR)) is not None


class TestParsing:
    def test_group_fields_are_coerced(self):
        raw = json.dumps([
            {"name": "  ", "studentIds": ["s1", 7, None, "s2"]},
            {"id": "g2", "name": "Seniors", "studentIds": "nope", "createdAt": "2024-01-01T00:00:00+00:00"},
            "garbage",
        ])
        groups = parse_groups(raw)
        assert len(groups) == 2
        assert groups[0].id and groups[0].name == DEFAULT_ADVISORY_NAME
        assert groups[0].student_ids == ["s1", "s2"]
        assert groups[1].id == "g2" and groups[1].student_ids == []
        assert groups[1].created_at == "2024-01-01T00:00:00+00:00"

    def test_invalid_json_is_empty(self):
        assert parse_groups("{not json") == []
        assert parse_groups('{"id": "x"}') == []

    def test_flatten_keeps_first_seen_order(self):
        groups = [AdvisoryGroupRecord.new("A", ["b", "a"]), AdvisoryGroupRecord.new("B", ["c", "b"])]
        assert flatten_group_student_ids(groups) == ["b", "a", "c"]

    def test_request_key_round_trip_keeps_underscored_emails(self):
        key = build_advisory_request_key("adv1", "  First_Last@School.edu ")
        assert key == "advisory_request_adv1_first_last@school.edu"
        assert parse_advisory_request_key(key) == {"advisorId": "adv1", "studentEmail": "first_last@school.edu"}
        assert parse_advisory_request_key("advisory_students_adv1") is None

    def test_request_value_accepts_json_and_legacy(self):
        meta = parse_advisory_request_value('{"studentId": "s1", "groupId": "g1"}')
        assert (meta.student_id, meta.group_id) == ("s1", "g1")
        legacy = parse_advisory_request_value("s1")
        assert (legacy.student_id, legacy.group_id) == ("s1", None)


class TestAddStudent:
    def test_adds_to_requested_group(self):
        a, b = AdvisoryGroupRecord.new("A"), AdvisoryGroupRecord.new("B")
        out = add_student_to_group([a, b], "s1", b.id)
        assert out[0].student_ids == [] and out[1].student_ids == ["s1"]

    def test_unknown_group_falls_back_to_first(self):
        a, b = AdvisoryGroupRecord.new("A"), AdvisoryGroupRecord.new("B")
        out = add_student_to_group([a, b], "s1", "missing")
        assert out[0].student_ids == ["s1"]

    def test_existing_member_is_not_duplicated(self):
        a = AdvisoryGroupRecord.new("A", ["s1"])
        assert add_student_to_group([a], "s1")[0].student_ids == ["s1"]
