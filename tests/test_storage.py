"""Tests for the key-value stores and the snapshot codec."""

import io

import pytest
from botocore.exceptions import ClientError

from categorizer import RuleTable
from config import Settings
from database import SqlStore
from storage import (
    LocalStore,
    MemoryStore,
    S3Store,
    get_store,
    load_snapshot,
    save_value,
)


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body):
        self.objects[(Bucket, Key)] = Body

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}


class TestStores:
    def test_memory_store(self):
        store = MemoryStore()
        assert store.get("x") is None
        store.set("x", b"1")
        assert store.get("x") == b"1"

    def test_local_store(self, tmp_path):
        store = LocalStore(tmp_path / "snap")
        assert store.get("rules") is None
        store.set("rules", b"[]")
        assert store.get("rules") == b"[]"
        assert (tmp_path / "snap" / "rules.json").exists()

    def test_sql_store(self, tmp_path):
        store = SqlStore(f"sqlite:///{tmp_path / 'kv.db'}")
        assert store.get("whatIf") is None
        store.set("whatIf", b"{}")
        store.set("whatIf", b'{"Food": 10}')
        assert store.get("whatIf") == b'{"Food": 10}'

    def test_s3_store(self):
        client = FakeS3()
        store = S3Store("bucket", prefix="users/me/", client=client)
        assert store.get("txns") is None
        store.set("txns", b"[]")
        assert client.objects[("bucket", "users/me/txns.json")] == b"[]"
        assert store.get("txns") == b"[]"

    def test_s3_other_errors_propagate(self):
        class Denied(FakeS3):
            def get_object(self, Bucket, Key):
                raise ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject")

        with pytest.raises(ClientError):
            S3Store("bucket", client=Denied()).get("txns")


class TestGetStore:
    def test_backends(self, tmp_path):
        assert isinstance(get_store(Settings(store_backend="memory")), MemoryStore)
        assert isinstance(get_store(Settings(store_backend="local", store_dir=str(tmp_path))), LocalStore)
        sql = get_store(Settings(store_backend="sqlite", database_url=f"sqlite:///{tmp_path / 'a.db'}"))
        assert isinstance(sql, SqlStore)

    def test_s3_needs_a_bucket(self):
        with pytest.raises(ValueError):
            get_store(Settings(store_backend="s3"))


class TestSnapshot:
    def test_defaults(self):
        snapshot = load_snapshot(MemoryStore())
        assert len(snapshot["txns"]) == 10
        assert snapshot["categories"][0] == "Food"
        assert snapshot["rules"] == RuleTable.default()
        assert snapshot["monthlyBudget"] == 0.0
        assert snapshot["categoryBudgets"] == {}
        assert snapshot["whatIf"] == {}
        assert snapshot["useSimulation"] is False

    def test_rules_round_trip_keeps_order(self):
        store = MemoryStore()
        table = RuleTable([("Zeta", ["z"]), ("Alpha", ["a"])])
        save_value(store, "rules", table)
        assert load_snapshot(store)["rules"].categories == ["Zeta", "Alpha"]

    def test_rules_accept_object_form(self):
        store = MemoryStore({"rules": b'{"Food": ["Pizza"], "Bills": []}'})
        rules = load_snapshot(store)["rules"]
        assert rules.to_mapping() == {"Food": ["pizza"], "Bills": []}

    @pytest.mark.parametrize(
        "key,raw",
        [
            ("txns", b'{"a": 1}'),
            ("categories", b"[1, 2]"),
            ("rules", b'"nope"'),
            ("monthlyBudget", b"-5"),
            ("monthlyBudget", b"Infinity"),
            ("monthlyBudget", b"NaN"),
            ("categoryBudgets", b'{"Food": -1}'),
            ("categoryBudgets", b'{"Food": Infinity}'),
            ("categoryBudgets", b'{"Food": NaN}'),
            ("whatIf", b'{"Food": 140}'),
            ("useSimulation", b"1"),
        ],
    )
    def test_bad_key_falls_back_alone(self, key, raw):
        defaults = load_snapshot(MemoryStore())
        store = MemoryStore({key: raw, "categories": b"[\"Food\", \"Other\"]"} if key != "categories" else {key: raw})
        snapshot = load_snapshot(store)
        assert snapshot[key] == defaults[key]
        if key != "categories":
            assert snapshot["categories"] == ["Food", "Other"]

    def test_transactions_round_trip(self, sample_transactions):
        store = MemoryStore()
        save_value(store, "txns", sample_transactions[:2])
        assert load_snapshot(store)["txns"] == sample_transactions[:2]

    def test_non_finite_values_are_never_written(self):
        store = MemoryStore()
        with pytest.raises(ValueError):
            save_value(store, "monthlyBudget", float("inf"))
        with pytest.raises(ValueError):
            save_value(store, "categoryBudgets", {"Food": float("nan")})
        assert store.get("monthlyBudget") is None
