import pytest

from compliance.pipeline import CompliancePipeline
from core.config import PROJECT_ROOT
from db.repository import InMemoryRuleRepository
from etl.rule_loader import build_snapshot, load_rule_data

RULES_PATH = PROJECT_ROOT / "data" / "compliance_rules.json"


@pytest.fixture(scope="session")
def rule_data():
    return load_rule_data(RULES_PATH)


@pytest.fixture(scope="session")
def snapshot(rule_data):
    return build_snapshot(rule_data)


@pytest.fixture
def repository(snapshot):
    return InMemoryRuleRepository(snapshot=snapshot)


@pytest.fixture
def pipeline(repository):
    return CompliancePipeline(repository)

