# WORKFLOW: Data validation for rule data and CSV batch uploads.
# Used by: Rule loader (before seeding), CSV batch ingestion, data quality assurance
# Functions:
# 1. validate_rule_definitions() - Validate rule ids, field keys, constraints, severities
# 2. validate_country_profiles() - Validate country codes and restriction types
# 3. validate_restricted_terms() - Validate terms and tiers
# 4. validate_batch_frame() - Validate an uploaded CSV batch (empty/duplicate rows)
# 5. generate_validation_report() - Create validation summary
# 6. validate_rule_data() - Validate a complete rule data document
#
# Validation flow: Rule data -> DataFrames -> Column checks -> Business rules -> Report
# This identifies broken rule data before it becomes the active snapshot.

"""
Data validation for rule data and batch uploads.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Tuple

import pandas as pd

from compliance.models import ConstraintType, ContentTier, RestrictionType
from compliance.validators import validate_country_code

logger = logging.getLogger(__name__)

VALID_SEVERITIES = ['warning', 'non-compliant']


def _missing_columns(df: pd.DataFrame, required_columns: List[str]) -> List[str]:
    return [col for col in required_columns if col not in df.columns]


def validate_rule_definitions(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate rule definition data.

    Args:
        df: DataFrame containing rule definitions

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    try:
        missing_columns = _missing_columns(df, ['id', 'field_key'])
        if missing_columns:
            errors.append(f"Missing required columns: {missing_columns}")
            return False, errors

        duplicates = df[df['id'].duplicated()]
        if not duplicates.empty:
            errors.append(f"Duplicate rule ids: {duplicates['id'].tolist()[:10]}")

        empty_keys = df[df['field_key'].isna() | (df['field_key'] == '')]
        if not empty_keys.empty:
            errors.append(f"Empty field keys found in {len(empty_keys)} rows")

        if 'severity_on_violation' in df.columns:
            column = df['severity_on_violation']
            invalid = df[column.notna() & ~column.isin(VALID_SEVERITIES)]
            if not invalid.empty:
                errors.append(f"Invalid severities found in {len(invalid)} rows")

        if 'constraint' in df.columns:
            valid_types = [t.value for t in ConstraintType]
            for idx, constraint in df['constraint'].items():
                if not isinstance(constraint, dict):
                    continue
                if constraint.get('type') not in valid_types:
                    errors.append(f"Row {idx}: invalid constraint type {constraint.get('type')}")
                elif constraint.get('type') == 'pattern':
                    try:
                        re.compile(str(constraint.get('value')))
                    except re.error as e:
                        errors.append(f"Row {idx}: invalid pattern ({e})")

        logger.info(f"Rule definitions validation: {len(errors)} errors found")
        return len(errors) == 0, errors

    except Exception as e:
        errors.append(f"Validation error: {str(e)}")
        return False, errors


def validate_country_profiles(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate country profile data.

    Args:
        df: DataFrame containing country profiles

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    try:
        missing_columns = _missing_columns(df, ['country_code', 'country_name'])
        if missing_columns:
            errors.append(f"Missing required columns: {missing_columns}")
            return False, errors

        invalid_codes = [
            f"Row {idx}: {code}" for idx, code in df['country_code'].items()
            if not validate_country_code(str(code))
        ]
        if invalid_codes:
            errors.append(f"Invalid country codes: {invalid_codes[:10]}")

        duplicates = df[df['country_code'].duplicated()]
        if not duplicates.empty:
            errors.append(f"Duplicate country codes: {duplicates['country_code'].tolist()[:10]}")

        if 'restriction_type' in df.columns:
            valid_types = [t.value for t in RestrictionType]
            column = df['restriction_type']
            invalid = df[column.notna() & ~column.isin(valid_types)]
            if not invalid.empty:
                errors.append(f"Invalid restriction types found in {len(invalid)} rows")

        logger.info(f"Country profiles validation: {len(errors)} errors found")
        return len(errors) == 0, errors

    except Exception as e:
        errors.append(f"Validation error: {str(e)}")
        return False, errors


def validate_restricted_terms(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate restricted content terms.

    Args:
        df: DataFrame containing restricted terms

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    try:
        missing_columns = _missing_columns(df, ['term', 'tier'])
        if missing_columns:
            errors.append(f"Missing required columns: {missing_columns}")
            return False, errors

        empty_terms = df[df['term'].isna() | (df['term'].astype(str).str.strip() == '')]
        if not empty_terms.empty:
            errors.append(f"Empty terms found in {len(empty_terms)} rows")

        valid_tiers = [t.value for t in ContentTier]
        invalid = df[~df['tier'].isin(valid_tiers)]
        if not invalid.empty:
            errors.append(f"Invalid tiers found in {len(invalid)} rows")

        logger.info(f"Restricted terms validation: {len(errors)} errors found")
        return len(errors) == 0, errors

    except Exception as e:
        errors.append(f"Validation error: {str(e)}")
        return False, errors


def validate_batch_frame(df: pd.DataFrame) -> Tuple[bool, List[str]]:
    """
    Validate an uploaded CSV batch.

    Args:
        df: DataFrame of batch rows (all columns as strings)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    try:
        if df.empty:
            errors.append("Batch contains no rows")
            return False, errors

        unnamed = [col for col in df.columns if str(col).startswith('Unnamed')]
        if unnamed:
            errors.append(f"Columns without headers: {unnamed}")

        tracking_columns = [col for col in df.columns if 'tracking' in str(col).lower()]
        for col in tracking_columns:
            values = df[col][df[col] != '']
            duplicates = values[values.duplicated()]
            if not duplicates.empty:
                errors.append(f"Duplicate tracking numbers in '{col}': {duplicates.tolist()[:10]}")

        logger.info(f"Batch validation: {len(errors)} issues found")
        return len(errors) == 0, errors

    except Exception as e:
        errors.append(f"Validation error: {str(e)}")
        return False, errors


def generate_validation_report(validation_results: Dict[str, Tuple[bool, List[str]]]) -> Dict[str, Any]:
    """
    Generate validation report.

    Args:
        validation_results: Dictionary of validation results

    Returns:
        Validation report dictionary
    """
    report = {
        'timestamp': datetime.now().isoformat(),
        'overall_valid': True,
        'datasets': {},
        'summary': {
            'total_datasets': len(validation_results),
            'valid_datasets': 0,
            'invalid_datasets': 0,
            'total_errors': 0
        }
    }

    for dataset_name, (is_valid, errors) in validation_results.items():
        report['datasets'][dataset_name] = {
            'valid': is_valid,
            'error_count': len(errors),
            'errors': errors
        }

        if is_valid:
            report['summary']['valid_datasets'] += 1
        else:
            report['summary']['invalid_datasets'] += 1
            report['overall_valid'] = False

        report['summary']['total_errors'] += len(errors)

    logger.info(f"Validation report generated: {report['summary']}")
    return report


def validate_rule_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a complete rule data document.

    Args:
        data: Rule data with 'rules', 'country_profiles' and 'restricted_terms' lists

    Returns:
        Validation report
    """
    validators = {
        'rules': validate_rule_definitions,
        'country_profiles': validate_country_profiles,
        'restricted_terms': validate_restricted_terms,
    }

    validation_results = {}
    for key, validator in validators.items():
        records = data.get(key) or []
        if not records:
            # An empty list is allowed: no opinion from that rule family
            validation_results[key] = (True, [])
            continue
        validation_results[key] = validator(pd.DataFrame(records))

    return generate_validation_report(validation_results)
