"""CLI command implementations for relflow.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .backups import backups_app
from .changelog import changelog_app
from .gpg import gpg_app
from .init import init
from .monitor import monitor
from .notify import notify
from .publish import publish
from .release import release
from .rollback import rollback
from .tag import tag_app
from .validate import validate
from .verify import verify
from .version import version_app

__all__ = [
    "backups_app",
    "changelog_app",
    "gpg_app",
    "init",
    "monitor",
    "notify",
    "publish",
    "release",
    "rollback",
    "tag_app",
    "validate",
    "verify",
    "version_app",
]
