"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    UNRESOLVED = 3
    CONFIG_ERROR = 4


class UpgradeStrategy(Enum):
    """Upgrade strategies accepted by the planner.

    Args:
        Enum (string): Strategy names as written on the command line.
    """

    FRAMEWORK_ONLY = "frameworkOnly"
    ALL = "all"


class DefaultFramework(Enum):
    """Default framework profile (Angular) used when no config overrides it.

    Args:
        Enum (tuple): Package names and prefixes of the profile.
    """

    CORE = ("@angular/", "@angular-devkit/", "@schematics/angular", "zone.js", "rxjs")
    COMPANIONS = ("@angular/cli",)
    PRIMARY = "@angular/core"
    LOCKSTEP = ("@angular/",)


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    SUPPORTED_STRATEGIES = [
        UpgradeStrategy.FRAMEWORK_ONLY.value,
        UpgradeStrategy.ALL.value,
    ]
    PACKAGE_JSON_FILE = "package.json"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "DEPSHIFT_LOG_LEVEL"
    CONFIG_ENV = "DEPSHIFT_CONFIG"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3

    # Resolution tunables
    DEFAULT_CONCURRENCY = 8
    DEFAULT_MAX_ROUNDS = 10
    PRERELEASE_MARKERS = (
        "alpha",
        "beta",
        "rc",
        "pre",
        "next",
        "canary",
        "dev",
        "nightly",
        "experimental",
    )
    MAX_PACKAGE_NAME_LENGTH = 214
