from enum import Enum


class ExitCodes(Enum):
    """Process exit codes."""

    SUCCESS = 0
    FILE_ERROR = 1


DEFAULT_REGISTRY_URL = "https://registry.npmjs.org/"
REGISTRY_ENV_VARS = ["npm_config_registry", "NPM_CONFIG_REGISTRY"]

DEFAULT_TOP = 10
DEFAULT_SORT = "subdeps"

# Seconds. npm ls/outdated/audit can be slow on large trees.
NPM_TIMEOUT = 120
REGISTRY_TIMEOUT = 30.0
REGISTRY_CONCURRENCY = 16

DEPENDENCY_FIELDS = {
    "dependencies": "prod",
    "devDependencies": "dev",
    "optionalDependencies": "optional",
    "peerDependencies": "peer",
}
DEPENDENCY_CATEGORIES = ["dev", "optional", "peer"]

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
