# WORKFLOW: Database models for versioned compliance rule data.
# Used by: SqlRuleRepository, rule loader (seeding), health checks
# Models represent:
# 1. compliance_rules - Field rule definitions (required/constraint/severity)
# 2. country_profiles - Destination restriction profiles and required documents
# 3. restricted_terms - Tiered prohibited/restricted content terms
#
# Data flow: JSON rule data -> Loader -> Tables -> SqlRuleRepository -> RuleSnapshot
# Rows are never updated in place by evaluation; a reseed writes a new version and flips is_active.

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class ComplianceRuleRow(Base):
    __tablename__ = "compliance_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_id = Column(String(50), nullable=False)
    field_key = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False, default="general")
    required = Column(Boolean, default=False)
    constraint_type = Column(String(20), nullable=True)
    constraint_value = Column(JSON, nullable=True)
    severity_on_violation = Column(String(20), nullable=False, default="warning")
    message = Column(Text, nullable=False, default="")
    version = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        Index('idx_rule_active_version', 'is_active', 'version'),
        Index('idx_rule_field', 'field_key'),
    )


class CountryProfileRow(Base):
    __tablename__ = "country_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    country_code = Column(String(8), nullable=False)
    country_name = Column(String(100), nullable=False)
    restriction_type = Column(String(20), nullable=False, default="none")
    required_doc_fields = Column(JSON, nullable=False, default=list)
    aliases = Column(JSON, nullable=False, default=list)
    member_codes = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=False, default="")
    version = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        Index('idx_country_active_code', 'is_active', 'country_code'),
    )


class RestrictedTermRow(Base):
    __tablename__ = "restricted_terms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    term = Column(String(100), nullable=False)
    tier = Column(String(20), nullable=False)
    message = Column(Text, nullable=False, default="")
    applies_to = Column(JSON, nullable=False, default=list)
    version = Column(String(50), nullable=False)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        Index('idx_term_active_tier', 'is_active', 'tier'),
    )
