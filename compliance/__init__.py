# WORKFLOW: Compliance engine package for shipment record evaluation.
# Used by: API routers, CSV batch ingestion, tests
# Modules include:
# 1. normalizer.py - Map raw field names onto the canonical field vocabulary
# 2. validators.py - Built-in presence/format checks for canonical fields
# 3. rule_evaluator.py - Evaluate fields against repository rule definitions
# 4. content_scanner.py - Prohibited/restricted goods keyword scan
# 5. destination_resolver.py - Embargo/sanction/documentation profile checks
# 6. reconciler.py - Merge detector findings into one deduplicated result
# 7. stats.py - Compliance rate and confidence score
# 8. pipeline.py - evaluate() and stats() entry points
#
# Engine flow: RawRecord -> Normalize -> Detectors -> (Advisory) -> Reconcile -> Stats
# Every step is a pure function of the record and the active rule snapshot.

"""
Shipment compliance engine.
"""
