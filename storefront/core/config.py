"""
Configuration management for the storefront core.

Loads settings from YAML config file and provides typed access. Role
identifiers, status sentinels and backend error codes live here and are
passed into the catalog and cart components explicitly.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of storefront package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


def _default_roles() -> Dict[str, str]:
    return {
        "administrator": os.getenv("ROLE_ADMINISTRATOR", "administrator"),
        "shop_manager": os.getenv("ROLE_SHOPMANAGER", "shop_manager"),
        "super_subscriber": os.getenv("ROLE_SUPERSUBSCRIBER", "super_subscriber"),
        "subscriber": os.getenv("ROLE_SUBSCRIBER", "subscriber"),
    }


@dataclass
class StorefrontConfig:
    """Configuration for the catalog and cart components."""

    # Catalog navigation
    all_devices_slug: str = "alldevices"
    reserved_params: List[str] = field(default_factory=lambda: ["q", "page", "_"])

    # Product status / facet sentinels
    published_status: str = "Publish"
    flag_facet_values: List[str] = field(default_factory=lambda: ["Yes"])
    flag_true_values: List[str] = field(default_factory=lambda: ["Yes", "true"])
    custom_sentinel: str = "Custom"

    # Recognized role identifiers (role key -> identifier stored on profiles)
    roles: Dict[str, str] = field(default_factory=_default_roles)

    # Backend error codes (Postgres SQLSTATE / PostgREST)
    unique_violation_code: str = "23505"
    foreign_key_violation_code: str = "23503"
    no_rows_code: str = "PGRST116"

    # Tables
    products_table: str = "products"
    cart_table: str = "cart"
    audit_table: str = "logs"

    # Environment
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    app_url: str = field(default_factory=lambda: os.getenv("APP_URL", ""))
    request_timeout: float = 30.0

    # Per-user cart mirrors kept by the API server (least recently used evicted)
    max_cart_mirrors: int = 1000

    def is_recognized_role(self, role: Optional[str]) -> bool:
        return bool(role) and role in self.roles.values()

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "StorefrontConfig":
        """Load configuration from YAML file."""
        path = config_path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        catalog_config = data.get('catalog', {})
        backend_config = data.get('backend', {})
        tables_config = backend_config.get('tables', {})
        error_codes = backend_config.get('error_codes', {})
        roles_config = data.get('roles', {})
        server_config = data.get('server', {})

        defaults = cls()
        roles = dict(defaults.roles)
        for key, value in roles_config.items():
            # Environment overrides win over the file
            env_value = os.getenv(f"ROLE_{key.replace('_', '').upper()}")
            roles[key] = env_value or value

        return cls(
            all_devices_slug=catalog_config.get('all_devices_slug', defaults.all_devices_slug),
            reserved_params=list(catalog_config.get('reserved_params', defaults.reserved_params)),
            published_status=catalog_config.get('published_status', defaults.published_status),
            flag_facet_values=list(catalog_config.get('flag_facet_values', defaults.flag_facet_values)),
            flag_true_values=list(catalog_config.get('flag_true_values', defaults.flag_true_values)),
            custom_sentinel=catalog_config.get('custom_sentinel', defaults.custom_sentinel),
            roles=roles,
            unique_violation_code=str(error_codes.get('unique_violation', defaults.unique_violation_code)),
            foreign_key_violation_code=str(error_codes.get('foreign_key_violation', defaults.foreign_key_violation_code)),
            no_rows_code=str(error_codes.get('no_rows', defaults.no_rows_code)),
            products_table=tables_config.get('products', defaults.products_table),
            cart_table=tables_config.get('cart', defaults.cart_table),
            audit_table=tables_config.get('audit', defaults.audit_table),
            environment=os.getenv("APP_ENV") or data.get('environment', defaults.environment),
            app_url=os.getenv("APP_URL") or data.get('app_url', defaults.app_url),
            request_timeout=float(backend_config.get('timeout_seconds', defaults.request_timeout)),
            max_cart_mirrors=int(server_config.get('max_cart_mirrors', defaults.max_cart_mirrors)),
        )


# Global config instance
_config: Optional[StorefrontConfig] = None


def get_config() -> StorefrontConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = StorefrontConfig.from_yaml()
    return _config


def set_config(config: Optional[StorefrontConfig]) -> None:
    """Set the global configuration instance (None resets to the file defaults)."""
    global _config
    _config = config
