# WORKFLOW: Tests for rule repositories, the rule loader and rule data validation.
# Used by: CI/CD pipelines, development testing
# Test scenarios:
# 1. JSON rule data -> validated RuleSnapshot
# 2. Seeding SQLite tables and reading the active version back
# 3. Reseeding a new version (copy-on-refresh, old rows deactivated)
# 4. Refresh failures keep the last good snapshot

import copy

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from compliance.exceptions import RuleRepositoryError
from compliance.models import ContentTier, RestrictionType, RuleSnapshot
from db.models import ComplianceRuleRow
from db.repository import InMemoryRuleRepository, SqlRuleRepository
from db.session import init_db
from etl.rule_loader import build_snapshot, load_rule_data, seed_database, snapshot_from_db
from etl.validators import validate_rule_data


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def test_snapshot_from_json(snapshot, rule_data):
    assert snapshot.version == rule_data["version"]
    assert len(snapshot.rules) == len(rule_data["rules"])
    assert all(rule.version == rule_data["version"] for rule in snapshot.rules)

    north_korea = next(p for p in snapshot.country_profiles if p.country_code == "KP")
    assert north_korea.restriction_type == RestrictionType.EMBARGOED

    firearm = next(t for t in snapshot.restricted_terms if t.term == "firearm")
    assert firearm.tier == ContentTier.PROHIBITED


def test_snapshot_is_immutable(snapshot):
    with pytest.raises(ValidationError):
        snapshot.version = "tampered"
    assert isinstance(snapshot.rules, tuple)


def test_invalid_rule_data_is_rejected(rule_data):
    broken = copy.deepcopy(rule_data)
    broken["rules"][0]["severity_on_violation"] = "catastrophic"

    assert not validate_rule_data(broken)["overall_valid"]
    with pytest.raises(RuleRepositoryError):
        build_snapshot(broken)


def test_empty_rule_families_are_valid():
    report = validate_rule_data({"version": "x", "rules": [], "country_profiles": [], "restricted_terms": []})

    assert report["overall_valid"]
    assert build_snapshot({"version": "x"}).rules == ()


def test_missing_rule_file_raises(tmp_path):
    with pytest.raises(RuleRepositoryError):
        load_rule_data(tmp_path / "missing.json")

    repository = InMemoryRuleRepository.from_file(str(tmp_path / "missing.json"))
    with pytest.raises(RuleRepositoryError):
        repository.snapshot()


class TestSqlRuleRepository:

    def test_seed_and_read_back(self, session_factory, rule_data):
        db = session_factory()
        try:
            version = seed_database(db, rule_data)
            snapshot = snapshot_from_db(db)
        finally:
            db.close()

        assert version == rule_data["version"]
        assert snapshot.version == rule_data["version"]
        assert len(snapshot.rules) == len(rule_data["rules"])
        assert len(snapshot.country_profiles) == len(rule_data["country_profiles"])
        assert len(snapshot.restricted_terms) == len(rule_data["restricted_terms"])

        eu = next(p for p in snapshot.country_profiles if p.country_code == "EU")
        assert "DE" in eu.member_codes

    def test_reseed_activates_new_version(self, session_factory, rule_data):
        newer = copy.deepcopy(rule_data)
        newer["version"] = "2099.1"
        newer["rules"] = newer["rules"][:-1]

        db = session_factory()
        try:
            seed_database(db, rule_data)
            seed_database(db, newer)
            snapshot = snapshot_from_db(db)
            inactive = db.query(ComplianceRuleRow).filter(ComplianceRuleRow.is_active.is_(False)).count()
        finally:
            db.close()

        assert snapshot.version == "2099.1"
        assert len(snapshot.rules) == len(rule_data["rules"]) - 1
        assert inactive == len(rule_data["rules"])

    def test_repository_refresh_swaps_snapshot(self, session_factory, rule_data):
        repository = SqlRuleRepository(session_factory=session_factory)
        empty = repository.snapshot()
        assert empty.version == "empty"
        assert repository.get_active_rules() == []

        db = session_factory()
        try:
            seed_database(db, rule_data)
        finally:
            db.close()

        assert repository.snapshot() is empty
        refreshed = repository.refresh()

        assert refreshed is not empty
        assert refreshed.version == rule_data["version"]
        assert len(repository.get_country_profiles()) == len(rule_data["country_profiles"])
        assert len(repository.get_restricted_terms()) == len(rule_data["restricted_terms"])


class TestRefreshFailure:

    def test_failed_refresh_keeps_last_snapshot(self, snapshot):
        attempts = []

        def loader():
            attempts.append(1)
            if len(attempts) > 1:
                raise OSError("rule store offline")
            return snapshot

        repository = InMemoryRuleRepository(loader=loader)
        first = repository.snapshot()

        assert repository.refresh() is first
        assert len(attempts) == 2

    def test_failed_first_load_raises(self):
        def loader():
            raise OSError("rule store offline")

        repository = InMemoryRuleRepository(loader=loader)

        with pytest.raises(RuleRepositoryError):
            repository.snapshot()

    def test_fixed_snapshot_repository(self):
        fixed = RuleSnapshot(version="fixed")
        repository = InMemoryRuleRepository(snapshot=fixed)

        assert repository.snapshot() is fixed
        assert repository.refresh().version == "fixed"
