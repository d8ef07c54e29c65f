"""Profile configuration models, loader and resolver exports."""

from .loader import (
    CONFIG_JSON,
    CONFIG_YAML,
    PROFILES_JSON,
    ProfileConfigLoader,
    ProfileLoadError,
)
from .models import (
    OAUTH_PROVIDERS,
    LaunchParams,
    ProfileConfig,
    ProfileKind,
    ProfileReference,
)
from .resolver import (
    INSTANCES_DIR,
    InvalidProfileNameError,
    ProfileNotFoundError,
    ProfileResolver,
    find_similar,
)

__all__ = [
    "CONFIG_JSON",
    "CONFIG_YAML",
    "INSTANCES_DIR",
    "PROFILES_JSON",
    "InvalidProfileNameError",
    "LaunchParams",
    "OAUTH_PROVIDERS",
    "ProfileConfig",
    "ProfileConfigLoader",
    "ProfileKind",
    "ProfileLoadError",
    "ProfileNotFoundError",
    "ProfileReference",
    "ProfileResolver",
    "find_similar",
]
