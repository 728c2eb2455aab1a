"""Constants for relflow CLI."""

# Subprocess timeouts (seconds)
GIT_TIMEOUT = 30
NPM_TIMEOUT = 120
NPM_PUBLISH_TIMEOUT = 300
NPM_INSTALL_TIMEOUT = 180
GPG_TIMEOUT = 60
GH_TIMEOUT = 60
CHECKS_TIMEOUT = 300  # 5 minutes for test/build commands
INIT_TOOL_CHECK_TIMEOUT = 10

# HTTP timeouts (seconds)
HTTP_TIMEOUT = 15.0
HTTP_CONNECT_TIMEOUT = 5.0

# Publication polling
PUBLISH_VERIFY_ATTEMPTS = 6
PUBLISH_VERIFY_DELAY = 10.0

# Directory layout under the repository root
RELFLOW_DIR = ".relflow"
CONFIG_FILE = "config.toml"
REPORTS_DIR = "reports"
BACKUPS_DIR = "backups"
MONITORING_DIR = "monitoring"

# Environment variables consulted for secrets
DISCORD_WEBHOOK_ENV = "RELFLOW_DISCORD_WEBHOOK"
SLACK_WEBHOOK_ENV = "RELFLOW_SLACK_WEBHOOK"
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"

# Files that must never end up in a published tarball
SENSITIVE_FILE_PATTERNS = (
    "*.pem",
    "*.key",
    "*.p12",
    ".env",
    ".env.*",
    "*.env",
    ".npmrc",
    "id_rsa*",
    "secrets/*",
)
