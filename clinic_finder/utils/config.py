"""
Configuration and secrets management for Men's Health Finder.

Values come from Streamlit's secrets (``.streamlit/secrets.toml``) with
defaults for everything, so the app runs locally without any secrets file.

Usage:
    from clinic_finder.utils.config import get_api_config, get_search_config

    geocoding_config = get_api_config("geocoding")
    user_agent = geocoding_config["user_agent"]

    page_size = get_search_config()["page_size"]
"""

import logging
from typing import Any, Dict

import streamlit as st

logger = logging.getLogger(__name__)

# Geographic centre of the contiguous United States
DEFAULT_CENTER = (39.8283, -98.5795)


def get_secret(key_path: str, default: Any = None) -> Any:
    """
    Safely retrieve a secret from Streamlit's secrets management.

    Args:
        key_path: Dot-notation path to the secret (e.g., 'geocoding.user_agent')
        default: Default value if secret is not found

    Returns:
        The secret value or default if not found

    Examples:
        >>> get_secret('s3.bucket_name', '')
        >>> get_secret('search.page_size', 20)
    """
    try:
        keys = key_path.split(".")
        value = st.secrets

        for key in keys:
            try:
                value = value[key]
            except Exception:
                return default

        return value
    except Exception as e:
        logger.warning(f"Failed to retrieve secret '{key_path}': {e}")
        return default


def get_api_config(api_name: str) -> Dict[str, Any]:
    """
    Get configuration for a specific external service.

    Args:
        api_name: Name of the service ('geocoding' or 's3')

    Returns:
        Dictionary containing the service configuration
    """
    if api_name == "geocoding":
        return {
            "user_agent": get_secret("geocoding.user_agent", "MensHealthFinder/1.0"),
            "domain": get_secret("geocoding.domain", "nominatim.openstreetmap.org"),
            "country_codes": get_secret("geocoding.country_codes", "us"),
            "request_timeout": get_secret("geocoding.request_timeout", 10),
            "rate_limit_delay": get_secret("geocoding.rate_limit_delay", 1.0),
            "max_retries": get_secret("geocoding.max_retries", 2),
            "default_lat": get_secret("geocoding.default_lat", DEFAULT_CENTER[0]),
            "default_lng": get_secret("geocoding.default_lng", DEFAULT_CENTER[1]),
        }
    elif api_name == "s3":
        return {
            "aws_access_key_id": get_secret("s3.aws_access_key_id", ""),
            "aws_secret_access_key": get_secret("s3.aws_secret_access_key", ""),
            "bucket_name": get_secret("s3.bucket_name", ""),
            "region_name": get_secret("s3.region_name", "us-east-1"),
            "clinics_folder": get_secret("s3.clinics_folder", "clinics"),
        }
    else:
        return {}


def get_search_config() -> Dict[str, Any]:
    """
    Get search and pagination defaults.

    Returns:
        Dictionary containing search configuration
    """
    return {
        "page_size": get_secret("search.page_size", 20),
        "default_radius_miles": get_secret("search.default_radius_miles", 50),
        "max_radius_miles": get_secret("search.max_radius_miles", 500),
        "suggestion_limit": get_secret("search.suggestion_limit", 5),
        "local_snapshot_path": get_secret("search.local_snapshot_path", "data/clinics.json"),
    }


def get_app_config() -> Dict[str, Any]:
    """
    Get general application configuration.

    Returns:
        Dictionary containing app configuration
    """
    return {
        "environment": get_secret("app.environment", "production"),
        "debug_mode": get_secret("app.debug_mode", False),
        "log_level": get_secret("app.log_level", "INFO"),
    }


def is_api_enabled(api_name: str) -> bool:
    """
    Check if a specific service is enabled and properly configured.

    Args:
        api_name: Name of the service to check

    Returns:
        True if the service has its required configuration
    """
    if api_name == "s3":
        config = get_api_config("s3")
        return (
            bool(config["aws_access_key_id"]) and bool(config["aws_secret_access_key"]) and bool(config["bucket_name"])
        )
    elif api_name == "geocoding":
        return bool(get_api_config("geocoding")["user_agent"])
    else:
        return False


def validate_configuration() -> Dict[str, str]:
    """
    Validate the application configuration and return any warnings or errors.

    Returns:
        Dictionary with configuration validation results
    """
    issues = {}

    geocoding_config = get_api_config("geocoding")
    if not geocoding_config["user_agent"]:
        issues["geocoding"] = "Nominatim requires a descriptive User-Agent; geocoding.user_agent is empty"

    search_config = get_search_config()
    try:
        if int(search_config["page_size"]) <= 0:
            issues["search"] = "search.page_size must be a positive integer"
    except (TypeError, ValueError):
        issues["search"] = f"search.page_size is not a number: {search_config['page_size']!r}"

    app_config = get_app_config()
    if app_config["environment"] not in ["development", "staging", "production"]:
        issues["app"] = f"Unknown environment: {app_config['environment']}"

    return issues
