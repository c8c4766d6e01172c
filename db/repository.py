# WORKFLOW: Rule repository returning immutable snapshots of the active rule data.
# Used by: CompliancePipeline, /rules endpoints, health checks
# Classes:
# 1. RuleRepository - Read interface (snapshot, get_active_rules, get_country_profiles, refresh)
# 2. InMemoryRuleRepository - Snapshot from a loader callable (JSON file by default)
# 3. SqlRuleRepository - Snapshot from the active rows of the rule tables
# 4. create_rule_repository() - Factory honouring settings.rule_source
#
# Refresh flow: refresh() -> load new data -> build new RuleSnapshot -> swap reference
# Readers holding the previous snapshot keep a consistent view; snapshots are never mutated.

import logging
import threading
from typing import Callable, List, Optional

from compliance.exceptions import RuleRepositoryError
from compliance.models import CountryProfile, RestrictedContentTerm, RuleDefinition, RuleSnapshot
from core.config import settings

logger = logging.getLogger(__name__)


class RuleRepository:
    """Read interface over the currently active rule snapshot."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Optional[RuleSnapshot] = None

    def _load(self) -> RuleSnapshot:
        raise NotImplementedError

    def snapshot(self) -> RuleSnapshot:
        """Current snapshot, loading it on first use."""
        if self._snapshot is None:
            self.refresh()
        return self._snapshot

    def refresh(self) -> RuleSnapshot:
        """
        Load the rule data again and swap in a new snapshot.

        Returns:
            The new active snapshot (the previous one when loading fails and one exists)

        Raises:
            RuleRepositoryError: If loading fails and there is no previous snapshot
        """
        with self._lock:
            try:
                snapshot = self._load()
            except Exception as e:
                if self._snapshot is None:
                    logger.error(f"Rule repository load failed: {e}")
                    if isinstance(e, RuleRepositoryError):
                        raise
                    raise RuleRepositoryError(str(e)) from e
                logger.error(f"Rule repository refresh failed, keeping version {self._snapshot.version}: {e}")
                return self._snapshot

            self._snapshot = snapshot
            logger.info(
                f"Rule snapshot {snapshot.version} active: {len(snapshot.rules)} rules, "
                f"{len(snapshot.country_profiles)} country profiles, {len(snapshot.restricted_terms)} terms"
            )
            return snapshot

    def get_active_rules(self) -> List[RuleDefinition]:
        return list(self.snapshot().rules)

    def get_country_profiles(self) -> List[CountryProfile]:
        return list(self.snapshot().country_profiles)

    def get_restricted_terms(self) -> List[RestrictedContentTerm]:
        return list(self.snapshot().restricted_terms)


class InMemoryRuleRepository(RuleRepository):
    """Repository fed by a loader callable; defaults to a fixed snapshot."""

    def __init__(self, snapshot: Optional[RuleSnapshot] = None, loader: Optional[Callable[[], RuleSnapshot]] = None):
        super().__init__()
        if loader is None:
            fixed = snapshot or RuleSnapshot()
            loader = lambda: fixed.model_copy()  # noqa: E731
        self._loader = loader
        if snapshot is not None:
            self._snapshot = snapshot

    def _load(self) -> RuleSnapshot:
        return self._loader()

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "InMemoryRuleRepository":
        """Repository that (re)reads a rule data JSON file on every refresh."""
        from etl.rule_loader import build_snapshot, load_rule_data

        return cls(loader=lambda: build_snapshot(load_rule_data(path)))


class SqlRuleRepository(RuleRepository):
    """Repository reading the active rows of the rule tables."""

    def __init__(self, session_factory=None):
        super().__init__()
        if session_factory is None:
            from db.session import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory

    def _load(self) -> RuleSnapshot:
        from etl.rule_loader import snapshot_from_db

        db = self._session_factory()
        try:
            return snapshot_from_db(db)
        finally:
            db.close()


def create_rule_repository() -> RuleRepository:
    """Create the rule repository configured by settings.rule_source."""
    if settings.rule_source == "sql":
        return SqlRuleRepository()
    return InMemoryRuleRepository.from_file(settings.rules_data_path)
