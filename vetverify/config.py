"""
Configuration for the verification service.

Settings come from three places, later ones winning:
- defaults below
- verification.yaml (shipped next to this file, or VETVERIFY_CONFIG)
- environment variables (a .env file is loaded first)
"""

import os
import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

from .models import UserRole, DocumentType, RejectionReason

DEFAULT_POLICY_FILE = Path(__file__).parent / "verification.yaml"
DATA_DIR = Path("data")


class ConfigurationError(RuntimeError):
    """Raised when the policy file is missing or malformed."""


@dataclass
class DocumentRequirement:
    """Which document types a role must upload before submitting."""
    required: list[DocumentType]
    minimum: int = 0  # Distinct required types needed; 0 means all of them

    @property
    def minimum_distinct(self) -> int:
        return self.minimum or len(self.required)

    def missing(self, uploaded: set[DocumentType]) -> list[DocumentType]:
        """Required types not uploaded, or [] when the minimum is met."""
        present = [t for t in self.required if t in uploaded]
        if len(present) >= self.minimum_distinct:
            return []
        return [t for t in self.required if t not in uploaded]


def _default_requirements() -> dict[UserRole, DocumentRequirement]:
    return {
        UserRole.VETERINARIAN: DocumentRequirement([DocumentType.LICENSE, DocumentType.DEGREE]),
        UserRole.VENDOR: DocumentRequirement([DocumentType.BUSINESS_LICENSE, DocumentType.GST_CERTIFICATE]),
    }


@dataclass
class Settings:
    """Runtime settings shared by the engine, projector, app and CLI."""
    backend: str = "json"
    data_dir: Path = DATA_DIR
    page_size: int = 10
    batch_workers: int = 4
    log_level: str = "INFO"
    reminder_window_days: int = 30
    requirements: dict[UserRole, DocumentRequirement] = field(default_factory=_default_requirements)
    rejection_reasons: list[str] = field(default_factory=lambda: [r.value for r in RejectionReason])

    def requirement_for(self, role: UserRole) -> Optional[DocumentRequirement]:
        return self.requirements.get(role)

    def is_known_reason(self, reason: str) -> bool:
        return reason.strip().lower() in {r.lower() for r in self.rejection_reasons}


def load_policy(path: Path) -> dict:
    """Load the YAML policy file."""
    if not path.exists():
        raise ConfigurationError(f"Policy file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"Policy file {path} must contain a mapping")
    return data


def _parse_requirements(raw: dict) -> dict[UserRole, DocumentRequirement]:
    requirements = {}
    for role_name, entry in raw.items():
        try:
            role = UserRole(role_name)
            required = [DocumentType(t) for t in entry.get("required", [])]
        except ValueError as e:
            raise ConfigurationError(f"Bad document requirement for '{role_name}': {e}") from e
        requirements[role] = DocumentRequirement(required=required, minimum=int(entry.get("minimum", 0)))
    return requirements


def load_settings(policy_path: Optional[Path] = None, env_file: Optional[Path] = None) -> Settings:
    """Build Settings from the policy file and the environment."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    settings = Settings()

    path = policy_path or Path(os.environ.get("VETVERIFY_CONFIG", DEFAULT_POLICY_FILE))
    policy = load_policy(path)

    if "documents" in policy:
        settings.requirements = _parse_requirements(policy["documents"])
    if "rejection_reasons" in policy:
        settings.rejection_reasons = [str(r) for r in policy["rejection_reasons"]]
    queue_cfg = policy.get("review_queue", {})
    settings.page_size = int(queue_cfg.get("page_size", settings.page_size))
    settings.batch_workers = int(queue_cfg.get("batch_workers", settings.batch_workers))
    settings.reminder_window_days = int(
        policy.get("reminders", {}).get("expiry_window_days", settings.reminder_window_days)
    )

    # Environment overrides
    settings.backend = os.environ.get("VETVERIFY_BACKEND", settings.backend)
    settings.data_dir = Path(os.environ.get("VETVERIFY_DATA_DIR", settings.data_dir))
    settings.page_size = int(os.environ.get("VETVERIFY_PAGE_SIZE", settings.page_size))
    settings.batch_workers = int(os.environ.get("VETVERIFY_BATCH_WORKERS", settings.batch_workers))
    settings.log_level = os.environ.get("VETVERIFY_LOG_LEVEL", settings.log_level).upper()

    if settings.page_size < 1:
        raise ConfigurationError("page_size must be at least 1")
    if settings.batch_workers < 1:
        raise ConfigurationError("batch_workers must be at least 1")

    return settings
