"""
Plan catalog loader.

Loads the purchasable plans and their aliases from config/plans.yml.
Falls back to built-in defaults when the file is missing so plan
resolution never depends on the filesystem being present.

Usage:
    from vendafacil.config.plan_catalog import get_plan_catalog

    catalog = get_plan_catalog()
    plan = catalog.lookup("monthly")  # PlanDefinition(plan_type="mensal", ...)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanDefinition:
    """One canonical plan."""
    plan_type: str
    plan_name: str
    duration_days: int


_DEFAULT_PLANS: Dict[str, Dict[str, Any]] = {
    "semanal": {"name": "Semanal", "duration_days": 7, "aliases": ["weekly", "semanal"]},
    "mensal": {"name": "Mensal", "duration_days": 30, "aliases": ["monthly", "mensal"]},
    "anual": {"name": "Anual", "duration_days": 365, "aliases": ["yearly", "anual"]},
}

_DEFAULT_FALLBACK = PlanDefinition(plan_type="trial", plan_name="Avaliação", duration_days=7)


class PlanCatalogLoader:
    """
    Thread-safe singleton loader for config/plans.yml.

    Builds a lowercase alias -> PlanDefinition index.
    """

    _instance: Optional["PlanCatalogLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path
        self._by_alias: Dict[str, PlanDefinition] = {}
        self._fallback: PlanDefinition = _DEFAULT_FALLBACK
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    def _resolve_path(self) -> Path:
        if self._config_path:
            return Path(self._config_path)

        candidates = [
            Path(__file__).parent.parent.parent / "config" / "plans.yml",
            Path(os.getcwd()) / "config" / "plans.yml",
            Path(os.getcwd()) / "backend" / "config" / "plans.yml",
        ]

        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved

        raise FileNotFoundError(
            f"plans.yml not found in: {[str(p) for p in candidates]}"
        )

    def _load(self) -> None:
        with self._load_lock:
            try:
                path = self._resolve_path()
                logger.info("Loading plan catalog from %s", path)

                with open(path, "r", encoding="utf-8") as f:
                    raw = yaml.safe_load(f) or {}
            except FileNotFoundError:
                logger.warning("plans.yml not found, using built-in plan catalog")
                raw = {}

            self._build(raw)

    def _build(self, raw: Dict[str, Any]) -> None:
        plans = raw.get("plans") or _DEFAULT_PLANS
        by_alias: Dict[str, PlanDefinition] = {}

        for plan_type, entry in plans.items():
            definition = PlanDefinition(
                plan_type=plan_type,
                plan_name=entry.get("name", plan_type.capitalize()),
                duration_days=int(entry["duration_days"]),
            )
            for alias in set(entry.get("aliases", [])) | {plan_type}:
                by_alias[str(alias).strip().lower()] = definition

        fallback = raw.get("fallback")
        if fallback:
            self._fallback = PlanDefinition(
                plan_type=fallback.get("plan_type", _DEFAULT_FALLBACK.plan_type),
                plan_name=fallback.get("name", _DEFAULT_FALLBACK.plan_name),
                duration_days=int(fallback.get("duration_days", _DEFAULT_FALLBACK.duration_days)),
            )
        else:
            self._fallback = _DEFAULT_FALLBACK

        self._by_alias = by_alias
        logger.info(
            "Loaded plan catalog: aliases=%s, fallback=%s",
            sorted(by_alias.keys()),
            self._fallback.plan_type,
        )

    def reload(self) -> None:
        """Re-read the YAML from disk."""
        self._load()

    def lookup(self, plan_id: Optional[str]) -> Optional[PlanDefinition]:
        """Return the plan for an alias (case-insensitive), or None."""
        if not plan_id:
            return None
        return self._by_alias.get(plan_id.strip().lower())

    @property
    def fallback(self) -> PlanDefinition:
        return self._fallback

    def aliases(self) -> Dict[str, str]:
        """alias -> plan_type, for diagnostics."""
        return {alias: plan.plan_type for alias, plan in self._by_alias.items()}


def get_plan_catalog(config_path: Optional[str] = None) -> PlanCatalogLoader:
    """Return the singleton PlanCatalogLoader."""
    if config_path is None:
        from vendafacil.config.settings import get_settings
        config_path = get_settings().plans_config_path
    return PlanCatalogLoader(config_path)


def reset_plan_catalog() -> None:
    """Reset singleton (for tests only)."""
    PlanCatalogLoader._instance = None
