"""
Configuration management for the deal ownership reconciler.

Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration settings loaded from environment."""

    # Hosted Postgres: DATABASE_URL first, falls back to the Supabase-style name
    DATABASE_URL: str = os.getenv('DATABASE_URL', '') or os.getenv('SUPABASE_DB_URL', '')
    DATABASE_POOL_SIZE: int = int(os.getenv('DATABASE_POOL_SIZE', '2'))

    # Pipeline
    BATCH_SIZE: int = int(os.getenv('RECONCILER_BATCH_SIZE', '1000'))
    AUDIT_SAMPLE_SIZE: int = int(os.getenv('RECONCILER_AUDIT_SAMPLE_SIZE', '3'))
    REPORT_SAMPLE_LIMIT: int = int(os.getenv('RECONCILER_REPORT_SAMPLE_LIMIT', '10000'))
    PAGINATION_MODE: str = os.getenv('RECONCILER_PAGINATION', 'keyset')

    # Maintenance: employee hidden from UI listings by the visibility toggle
    HIDDEN_EMPLOYEE_ID: str = os.getenv('HIDDEN_EMPLOYEE_ID', 'sf-0053c00000Bx01UAAR')

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_JSON: bool = _env_flag('LOG_JSON')

    @classmethod
    def validate(cls) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            List of missing required configuration keys
        """
        missing = []
        if not cls.DATABASE_URL:
            missing.append('DATABASE_URL')
        return missing


# Singleton config instance
config = Config()
