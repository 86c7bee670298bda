import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))

dotenv_path = os.path.join(basedir, '.env')

load_dotenv(dotenv_path=dotenv_path)


class Config:
    """Base configuration class. Contains default settings."""

    DEBUG = False
    TESTING = False

    # --- Data ---
    DATA_PATH = os.getenv('DATA_PATH')
    DATA_CACHE_TTL_SECONDS = float(os.getenv('DATA_CACHE_TTL_SECONDS', 300))

    # --- Island configuration store ---
    # Unset keeps assignments in memory for the session only
    CONFIG_STORE_PATH = os.getenv('CONFIG_STORE_PATH')

    # --- Analysis ---
    DAY_NIGHT_CONVENTION = os.getenv('DAY_NIGHT_CONVENTION', 'plant_cycle').lower()

    # --- Logging ---
    LOGGING_LEVEL = os.getenv('LOGGING_LEVEL', 'INFO').upper()


class DevelopmentConfig(Config):
    """Configuration for development environment."""
    DEBUG = True
    LOGGING_LEVEL = os.getenv('LOGGING_LEVEL', 'DEBUG').upper()


class ProductionConfig(Config):
    """Configuration for production environment."""
    DEBUG = False


class TestingConfig(Config):
    """Configuration for testing."""
    TESTING = True
    CONFIG_STORE_PATH = None
    DATA_CACHE_TTL_SECONDS = 0.0


config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig,
    default=DevelopmentConfig
)


def get_config():
    """Gets the configuration class based on the VPD_ENV environment variable."""
    env_name = os.getenv('VPD_ENV', 'default').lower()
    config_class = config_by_name.get(env_name, DevelopmentConfig)

    if config_class.DAY_NIGHT_CONVENTION not in ('plant_cycle', 'simple'):
        raise ValueError(
            f"DAY_NIGHT_CONVENTION must be 'plant_cycle' or 'simple', got {config_class.DAY_NIGHT_CONVENTION!r}"
        )
    if config_class.DATA_CACHE_TTL_SECONDS < 0:
        raise ValueError("DATA_CACHE_TTL_SECONDS must not be negative")

    return config_class
