# WORKFLOW: ETL (Extract, Transform, Load) package for rule data and batch uploads.
# Used by: Rule repositories, database seeding, CSV batch evaluation
# Modules include:
# 1. rule_loader.py - Load rule data JSON, build snapshots, seed and read the rule tables
# 2. validators.py - Validate rule data and batch frames before use
# 3. csv_batch.py - Turn CSV uploads into batch-row records and evaluate them concurrently
#
# ETL flow: Rule data JSON -> Validate -> RuleSnapshot / SQL tables
# Batch flow: CSV upload -> DataFrame -> Validate -> RawRecords -> Compliance pipeline

"""
ETL package for shipment compliance rule data and batch ingestion.
"""
