# WORKFLOW: Load versioned rule data from JSON and seed the rule tables.
# Used by: InMemoryRuleRepository (JSON source), SqlRuleRepository (seeding), scripts, tests
# Functions:
# 1. load_rule_data() - Read the rule data JSON document
# 2. build_snapshot() - Validate and convert rule data into an immutable RuleSnapshot
# 3. seed_database() - Write a rule data version into the tables and make it active
# 4. snapshot_from_db() - Build a RuleSnapshot from the active table rows
#
# Loading flow: JSON -> validate_rule_data() report -> pydantic models -> RuleSnapshot
# Seeding flow: JSON -> deactivate current rows -> insert new version -> commit

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from compliance.exceptions import RuleRepositoryError
from compliance.models import (
    CountryProfile,
    RestrictedContentTerm,
    RuleConstraint,
    RuleDefinition,
    RuleSnapshot,
)
from core.config import settings
from db.models import ComplianceRuleRow, CountryProfileRow, RestrictedTermRow
from etl.validators import validate_rule_data

logger = logging.getLogger(__name__)


def load_rule_data(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Read a rule data document.

    Args:
        path: JSON file path (defaults to settings.rules_data_path)

    Returns:
        Rule data dictionary

    Raises:
        RuleRepositoryError: If the file is missing or not valid JSON
    """
    path = Path(path or settings.rules_data_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load rule data from {path}: {e}")
        raise RuleRepositoryError(f"Cannot load rule data from {path}: {e}") from e

    logger.info(f"Loaded rule data version {data.get('version')} from {path}")
    return data


def build_snapshot(data: Dict[str, Any]) -> RuleSnapshot:
    """
    Convert rule data into an immutable snapshot.

    Args:
        data: Rule data dictionary

    Returns:
        RuleSnapshot

    Raises:
        RuleRepositoryError: If the data fails validation
    """
    report = validate_rule_data(data)
    if not report['overall_valid']:
        logger.error(f"Rule data validation failed: {report['summary']}")
        raise RuleRepositoryError(f"Invalid rule data: {report['datasets']}")

    try:
        return RuleSnapshot(
            version=str(data.get('version', 'unversioned')),
            rules=tuple(
                RuleDefinition(**{'version': str(data.get('version', '1')), **rule}) for rule in data.get('rules', [])
            ),
            country_profiles=tuple(CountryProfile(**profile) for profile in data.get('country_profiles', [])),
            restricted_terms=tuple(RestrictedContentTerm(**term) for term in data.get('restricted_terms', [])),
        )
    except (ValidationError, TypeError) as e:
        logger.error(f"Rule data could not be parsed: {e}")
        raise RuleRepositoryError(f"Invalid rule data: {e}") from e


def seed_database(db: Session, data: Dict[str, Any]) -> str:
    """
    Seed the rule tables with one rule data version and make it the active one.

    Args:
        db: Database session
        data: Rule data dictionary

    Returns:
        The seeded version string
    """
    snapshot = build_snapshot(data)
    version = snapshot.version

    try:
        for model in (ComplianceRuleRow, CountryProfileRow, RestrictedTermRow):
            db.query(model).filter(model.version == version).delete(synchronize_session=False)
            db.query(model).filter(model.is_active.is_(True)).update(
                {model.is_active: False}, synchronize_session=False
            )

        db.add_all([
            ComplianceRuleRow(
                rule_id=rule.id,
                field_key=rule.field_key,
                category=rule.category,
                required=rule.required,
                constraint_type=rule.constraint.type.value if rule.constraint else None,
                constraint_value=rule.constraint.value if rule.constraint else None,
                severity_on_violation=rule.severity_on_violation.value,
                message=rule.message,
                version=version,
                is_active=True,
            )
            for rule in snapshot.rules
        ])
        db.add_all([
            CountryProfileRow(
                country_code=profile.country_code,
                country_name=profile.country_name,
                restriction_type=profile.restriction_type.value,
                required_doc_fields=list(profile.required_doc_fields),
                aliases=list(profile.aliases),
                member_codes=list(profile.member_codes),
                notes=profile.notes,
                version=version,
                is_active=True,
            )
            for profile in snapshot.country_profiles
        ])
        db.add_all([
            RestrictedTermRow(
                term=term.term,
                tier=term.tier.value,
                message=term.message,
                applies_to=list(term.applies_to),
                version=version,
                is_active=True,
            )
            for term in snapshot.restricted_terms
        ])
        db.commit()
    except Exception as e:
        logger.error(f"Failed to seed rule data version {version}: {e}")
        db.rollback()
        raise

    logger.info(
        f"Seeded rule data version {version}: {len(snapshot.rules)} rules, "
        f"{len(snapshot.country_profiles)} country profiles, {len(snapshot.restricted_terms)} terms"
    )
    return version


def snapshot_from_db(db: Session) -> RuleSnapshot:
    """Build a RuleSnapshot from the active rows."""
    rules = db.query(ComplianceRuleRow).filter(ComplianceRuleRow.is_active.is_(True)).order_by(ComplianceRuleRow.id).all()
    profiles = db.query(CountryProfileRow).filter(CountryProfileRow.is_active.is_(True)).order_by(CountryProfileRow.id).all()
    terms = db.query(RestrictedTermRow).filter(RestrictedTermRow.is_active.is_(True)).order_by(RestrictedTermRow.id).all()

    versions = {row.version for row in [*rules, *profiles, *terms]}
    version = ",".join(sorted(versions)) if versions else "empty"

    return RuleSnapshot(
        version=version,
        rules=tuple(
            RuleDefinition(
                id=row.rule_id,
                field_key=row.field_key,
                category=row.category,
                required=bool(row.required),
                constraint=(
                    RuleConstraint(type=row.constraint_type, value=row.constraint_value)
                    if row.constraint_type else None
                ),
                severity_on_violation=row.severity_on_violation,
                message=row.message or "",
                version=row.version,
            )
            for row in rules
        ),
        country_profiles=tuple(
            CountryProfile(
                country_code=row.country_code,
                country_name=row.country_name,
                restriction_type=row.restriction_type,
                required_doc_fields=tuple(row.required_doc_fields or ()),
                aliases=tuple(row.aliases or ()),
                member_codes=tuple(row.member_codes or ()),
                notes=row.notes or "",
            )
            for row in profiles
        ),
        restricted_terms=tuple(
            RestrictedContentTerm(
                term=row.term,
                tier=row.tier,
                message=row.message or "",
                applies_to=tuple(row.applies_to or ()),
            )
            for row in terms
        ),
    )
