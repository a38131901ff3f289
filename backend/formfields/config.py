"""
Configuration management for the Form Field Geometry service.
Loads API and pipeline settings from environment variables.
"""
import logging
import os
from typing import Any, Dict
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def _env_flag(name: str, default: str = 'true') -> bool:
    return os.getenv(name, default).lower() == 'true'


class Config:
    """Configuration class for API and pipeline settings."""

    # API Settings
    API_HOST: str = os.getenv('API_HOST', '0.0.0.0')
    API_PORT: int = int(os.getenv('API_PORT', '8000'))
    CORS_ORIGINS: list = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Uploads
    MAX_UPLOAD_MB: int = int(os.getenv('MAX_UPLOAD_MB', '20'))

    # Pipeline stages
    ENABLE_RTL_CALIBRATION: bool = _env_flag('ENABLE_RTL_CALIBRATION')
    ENABLE_RADIO_DETECTION: bool = _env_flag('ENABLE_RADIO_DETECTION')
    ENABLE_BOUNDARY_VALIDATION: bool = _env_flag('ENABLE_BOUNDARY_VALIDATION')
    ENABLE_OVERLAP_RESOLUTION: bool = _env_flag('ENABLE_OVERLAP_RESOLUTION')

    @classmethod
    def validate(cls) -> bool:
        """
        Validate that configuration values are usable.
        """
        if not 0 < cls.API_PORT < 65536:
            raise ValueError(f"API_PORT must be between 1 and 65535, got {cls.API_PORT}")

        if cls.MAX_UPLOAD_MB <= 0:
            raise ValueError(f"MAX_UPLOAD_MB must be positive, got {cls.MAX_UPLOAD_MB}")

        if not isinstance(logging.getLevelName(cls.LOG_LEVEL), int):
            raise ValueError(
                f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL, got {cls.LOG_LEVEL}"
            )
        return True

    @classmethod
    def max_upload_bytes(cls) -> int:
        return cls.MAX_UPLOAD_MB * 1024 * 1024

    @classmethod
    def get_pipeline_options(cls) -> Dict[str, Any]:
        """
        Get keyword arguments for FieldGeometryPipeline.
        """
        return {
            'enable_rtl_calibration': cls.ENABLE_RTL_CALIBRATION,
            'enable_radio_detection': cls.ENABLE_RADIO_DETECTION,
            'enable_boundary_validation': cls.ENABLE_BOUNDARY_VALIDATION,
            'enable_overlap_resolution': cls.ENABLE_OVERLAP_RESOLUTION
        }
