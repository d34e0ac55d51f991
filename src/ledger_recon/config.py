"""Configuration loader and validation for reconciliation settings."""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class StatementInputConfig(BaseModel):
    """Configuration for statement CSV parsing."""

    encoding: str = "utf-8"
    delimiter: str = ","
    date_formats: list[str] = Field(
        default_factory=lambda: ["%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"]
    )
    column_mappings: dict[str, str] = Field(
        default_factory=lambda: {
            "date": "Date",
            "description": "Description",
            "amount": "Amount",
            "debit": "Debit",
            "credit": "Credit",
            "status": "Status",
        }
    )
    pending_keywords: list[str] = Field(default_factory=lambda: ["processing", "pending"])


class InputConfig(BaseModel):
    """Configuration for input file parsing."""

    statement: StatementInputConfig = Field(default_factory=StatementInputConfig)


class MatchingSettings(BaseModel):
    """Settings for the reconciliation matcher."""

    date_tolerance_days: int = 3
    cleared_lookback_days: int = 60
    pending_limit: int = 200
    cleared_limit: int = 200
    history_limit: int = 100
    consume_matched_entries: bool = True
    description_similarity_threshold: float = 0.6


class TipSettings(BaseModel):
    """Tip/surcharge heuristic. Amount and percent bounds are inclusive."""

    vendor_patterns: list[str] = Field(
        default_factory=lambda: [
            r"\bdiner\b",
            r"\brestaurant\b",
            r"\bcafe\b",
            r"\bgrill\b",
            r"\bbistro\b",
            r"\bpizza",
            r"\btavern\b",
            r"\bbar\b",
            r"\bkitchen\b",
            r"\bsushi\b",
            r"\bjapanese\b",
            r"\bsteakhouse\b",
            r"\bbbq\b",
            r"\btaqueria\b",
            r"\bpub\b",
            r"\beatery\b",
            r"\bcoffee\b",
            r"\bbakery\b",
        ]
    )
    window_days: int = 3
    min_amount: Decimal = Decimal("1.00")
    max_amount: Decimal = Decimal("50.00")
    min_percent: Decimal = Decimal("5")
    max_percent: Decimal = Decimal("50")


class SuggestionSettings(BaseModel):
    """Settings for suggestions on new transactions."""

    min_similarity: float = 0.6


class DuplicateSettings(BaseModel):
    """Duplicate warning for manually entered transactions."""

    window_days: int = 3
    min_similarity: float = 0.6


class PostingSettings(BaseModel):
    """Tolerances used by the posting line builder."""

    balance_tolerance: Decimal = Decimal("0.01")
    split_tolerance: Decimal = Decimal("0.02")


class AccountCodes(BaseModel):
    """Chart-of-accounts codes the posting archetypes post to."""

    flip_rehab_labor: str = "62021"
    flip_rehab_materials: str = "62022"
    flip_services: str = "62023"
    flip_closing_costs: str = "62024"
    flip_holding_costs: str = "62025"
    flip_interest: str = "62026"
    flip_gain_on_sale: str = "41500"
    rental_mortgage_interest: str = "62012"
    rental_taxes_insurance: str = "62011"
    personal_mortgage_interest: str = "69012"
    personal_taxes_insurance: str = "69011"


class ReviewStateConfig(BaseModel):
    """Where the resumable review snapshot is kept."""

    path: str = ".ledger_recon/review_state.json"


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "review_{date}_{time}.xlsx"
    include_timestamp: bool = True


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    review: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Review"))
    warnings: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Warnings"))
    failures: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Commit Failures")
    )


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    tip: TipSettings = Field(default_factory=TipSettings)
    suggestions: SuggestionSettings = Field(default_factory=SuggestionSettings)
    duplicates: DuplicateSettings = Field(default_factory=DuplicateSettings)
    posting: PostingSettings = Field(default_factory=PostingSettings)
    account_codes: AccountCodes = Field(default_factory=AccountCodes)
    review_state: ReviewStateConfig = Field(default_factory=ReviewStateConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a plain dictionary."""
    config_dict = ReconConfig().model_dump(mode="json")
    config_dict.pop("config_file_path", None)
    return config_dict


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Ledger reconciliation and posting configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
