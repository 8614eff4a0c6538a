"""Rule catalog loader.

Loads versioned rule catalogs from YAML and JSON files so reference data
can be maintained outside the code and swapped into a running engine with
``ValidationEngine.reload_rule_catalog``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from claims_compliance import config
from claims_compliance.schemas.catalog import RuleCatalogSchema, ThresholdSchema

from .catalog import RuleCatalog
from .engine import ValidationEngine
from .thresholds import ThresholdConfig

logger = logging.getLogger(__name__)

CATALOG_SUFFIXES = (".yaml", ".yml", ".json")


class CatalogValidationError(Exception):
    """Raised when a catalog file fails validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


def _schema_errors(e: ValidationError, source: str) -> list[dict[str, Any]]:
    return [
        {
            "file": source,
            "field": ".".join(str(part) for part in error["loc"]),
            "error": error["msg"],
        }
        for error in e.errors()
    ]


class CatalogLoader:
    """Loads and validates rule catalogs from files."""

    def __init__(self, config_dir: str | Path | None = None):
        """Initialize the loader.

        Args:
            config_dir: Directory containing catalog files.
                        Defaults to ./config/catalogs/
        """
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path("config/catalogs")

    def read_document(self, file_path: str | Path) -> dict[str, Any]:
        """Read a catalog file into a raw mapping.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the format is unsupported
            CatalogValidationError: If the document is not a mapping
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")

        suffix = path.suffix.lower()
        if suffix not in CATALOG_SUFFIXES:
            raise ValueError(f"Unsupported catalog format: {suffix}")

        with open(path) as f:
            if suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise CatalogValidationError(
                f"Invalid catalog format in {path}",
                errors=[{"file": str(path), "error": "Expected a mapping"}],
            )
        return data

    def load_file(self, file_path: str | Path) -> RuleCatalog:
        """Load one rule catalog.

        Args:
            file_path: Path to YAML or JSON catalog file

        Returns:
            Validated RuleCatalog

        Raises:
            CatalogValidationError: If validation fails
            FileNotFoundError: If file doesn't exist
        """
        data = self.read_document(file_path)
        # A thresholds section may travel with the catalog
        data = {key: value for key, value in data.items() if key != "thresholds"}

        try:
            schema = RuleCatalogSchema.model_validate(data)
        except ValidationError as e:
            errors = _schema_errors(e, str(file_path))
            raise CatalogValidationError(
                f"Validation failed for {len(errors)} item(s) in {file_path}",
                errors=errors,
            ) from e

        catalog = schema.to_catalog()
        logger.info(
            f"Loaded rule catalog {catalog.version} from {Path(file_path).name} "
            f"({len(catalog.necessity_rules)} necessity, "
            f"{len(catalog.frequency_rules)} frequency, "
            f"{len(catalog.payer_rules)} payer rules)"
        )
        return catalog

    def load_thresholds(self, file_path: str | Path) -> ThresholdConfig:
        """Load the ``thresholds`` section of a catalog file.

        Returns default thresholds when the file has no such section.
        """
        data = self.read_document(file_path).get("thresholds")
        if not data:
            return ThresholdConfig()

        try:
            schema = ThresholdSchema.model_validate(data)
        except ValidationError as e:
            errors = _schema_errors(e, str(file_path))
            raise CatalogValidationError(
                f"Invalid thresholds in {file_path}", errors=errors
            ) from e

        try:
            return ThresholdConfig.from_dict(schema.model_dump(exclude_none=True))
        except ValueError as e:
            raise CatalogValidationError(
                f"Invalid thresholds in {file_path}",
                errors=[{"file": str(file_path), "field": "thresholds", "error": str(e)}],
            ) from e

    def load_directory(self, directory: str | Path | None = None) -> list[RuleCatalog]:
        """Load all catalogs in a directory, oldest effective date first.

        Args:
            directory: Directory to scan. Defaults to self.config_dir.

        Raises:
            CatalogValidationError: If any file fails validation
        """
        catalog_dir = Path(directory) if directory else self.config_dir

        if not catalog_dir.exists():
            logger.warning(f"Catalog directory does not exist: {catalog_dir}")
            return []

        catalogs = []
        errors = []

        for file_path in sorted(catalog_dir.iterdir()):
            if file_path.suffix.lower() not in CATALOG_SUFFIXES:
                continue
            try:
                catalogs.append(self.load_file(file_path))
            except CatalogValidationError as e:
                errors.extend(e.errors)
            except (OSError, ValueError, yaml.YAMLError) as e:
                errors.append({"file": str(file_path), "error": str(e)})

        if errors:
            raise CatalogValidationError(
                f"Validation failed for {len(errors)} item(s)",
                errors=errors,
            )

        return sorted(catalogs, key=lambda c: (c.effective_date or date.min, c.version))


def select_effective(catalogs: Iterable[RuleCatalog], on_date: date) -> RuleCatalog | None:
    """Latest catalog in effect on ``on_date``.

    Catalogs without an effective date are always in effect but lose to any
    dated catalog that applies.
    """
    in_effect = [
        catalog
        for catalog in catalogs
        if catalog.effective_date is None or catalog.effective_date <= on_date
    ]
    if not in_effect:
        return None
    return max(in_effect, key=lambda c: (c.effective_date or date.min, c.version))


def load_catalog(path: str | Path) -> RuleCatalog:
    """Load a catalog from a file, or the latest one in effect from a directory."""
    path = Path(path)
    loader = CatalogLoader(path if path.is_dir() else path.parent)
    if path.is_dir():
        catalog = select_effective(loader.load_directory(), date.today())
        if catalog is None:
            raise CatalogValidationError(
                f"No catalog in effect under {path}",
                errors=[{"file": str(path), "error": "No catalog in effect"}],
            )
        return catalog
    return loader.load_file(path)


def build_engine(catalog_path: str | Path | None = None) -> ValidationEngine:
    """Build an engine from the environment configuration.

    Uses the built-in catalog when no catalog path is given or configured.
    """
    path = catalog_path or config.RULE_CATALOG_PATH
    if path:
        catalog = load_catalog(path)
        thresholds = CatalogLoader().load_thresholds(path) if Path(path).is_file() else None
    else:
        catalog = None
        thresholds = None
    return ValidationEngine(
        catalog=catalog,
        thresholds=thresholds,
        parallel=config.PARALLEL_VALIDATION,
        max_workers=config.MAX_WORKERS,
    )
