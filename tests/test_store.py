"""
Tests for PersistentStore: session flags and the versioned history record.
"""

from eduplan.database import Record, get_session
from eduplan.models import Session, Tier
from eduplan.store import AUTH_KEY, HISTORY_KEY, HISTORY_VERSION, TIER_KEY, PersistentStore


class TestSessionScope:
    def test_empty_scope_is_anonymous(self, db_engine):
        store = PersistentStore(db_engine, {})
        assert store.load_session() == Session()

    def test_save_and_load(self, db_engine):
        scope = {}
        store = PersistentStore(db_engine, scope)
        store.save_session(Session(authenticated=True, tier=Tier.ELEVATED))
        assert scope[AUTH_KEY] == "true"
        assert scope[TIER_KEY] == "elevated"
        assert store.load_session() == Session(authenticated=True, tier=Tier.ELEVATED)

    def test_unknown_tier_is_anonymous(self, db_engine):
        store = PersistentStore(db_engine, {AUTH_KEY: "true", TIER_KEY: "gold"})
        assert store.load_session().authenticated is False

    def test_auth_flag_must_be_true_string(self, db_engine):
        store = PersistentStore(db_engine, {AUTH_KEY: "yes", TIER_KEY: "standard"})
        assert store.load_session().authenticated is False

    def test_clear_session(self, db_engine):
        scope = {AUTH_KEY: "true", TIER_KEY: "standard", "other": 1}
        PersistentStore(db_engine, scope).clear_session()
        assert scope == {"other": 1}

    def test_saving_anonymous_session_clears(self, db_engine):
        scope = {AUTH_KEY: "true", TIER_KEY: "standard"}
        PersistentStore(db_engine, scope).save_session(Session())
        assert scope == {}


class TestHistory:
    def test_empty_history(self, store):
        assert store.load_history() == []

    def test_order_and_test_survive_reload(self, db_engine, build_plan, build_test):
        plans = [
            build_plan(plan_id="new", test=build_test(2)),
            build_plan(plan_id="old"),
        ]
        PersistentStore(db_engine, {}).save_history(plans)

        loaded = PersistentStore(db_engine, {}).load_history()
        assert [p.id for p in loaded] == ["new", "old"]
        assert loaded[0] == plans[0]
        assert loaded[1].test is None

    def test_save_replaces_whole_history(self, store, build_plan):
        store.save_history([build_plan(plan_id="a"), build_plan(plan_id="b")])
        store.save_history([build_plan(plan_id="c")])
        assert [p.id for p in store.load_history()] == ["c"]

    def test_update_history_starts_from_saved_copy(self, db_engine, build_plan):
        PersistentStore(db_engine, {}).save_history([build_plan(plan_id="a")])
        other_session = PersistentStore(db_engine, {})

        result = other_session.update_history(lambda plans: (build_plan(plan_id="b"),) + plans)

        assert [p.id for p in result] == ["b", "a"]
        assert [p.id for p in PersistentStore(db_engine, {}).load_history()] == ["b", "a"]

    def test_record_layout(self, store, db_engine, build_plan):
        store.save_history([build_plan(plan_id="a")])
        db = get_session(db_engine)
        try:
            record = db.get(Record, HISTORY_KEY)
            assert record.version == HISTORY_VERSION
            assert record.value["version"] == HISTORY_VERSION
            assert record.value["plans"][0]["id"] == "a"
            assert record.value["plans"][0]["planningType"] == "Individual"
        finally:
            db.close()

    def test_unknown_version_reads_empty(self, store, db_engine):
        db = get_session(db_engine)
        db.add(Record(key=HISTORY_KEY, version=99, value={"plans": [{"id": "x"}]}))
        db.commit()
        db.close()

        assert store.load_history() == []

    def test_unreadable_entry_skipped(self, store, db_engine, build_plan):
        good = build_plan(plan_id="good").to_dict()
        bad = dict(build_plan(plan_id="bad").to_dict(), test={"questions": [{"question": "no number"}]})
        db = get_session(db_engine)
        db.add(Record(key=HISTORY_KEY, version=HISTORY_VERSION, value={"plans": [good, bad]}))
        db.commit()
        db.close()

        assert [p.id for p in store.load_history()] == ["good"]
