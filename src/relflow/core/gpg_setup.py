"""GPG signing setup checks and git configuration."""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..services import git
from ..services.gpg import GpgError, can_sign, find_secret_key, gpg_available, list_secret_keys

logger = logging.getLogger(__name__)


@dataclass
class GpgFinding:
    """One GPG setup check."""

    name: str
    ok: bool
    message: str


def verify_gpg_setup(repo_root: Path | None = None, exec_path: str = "gpg") -> list[GpgFinding]:
    """Check that tags can be signed from this repository."""
    findings = []
    if not gpg_available(exec_path):
        return [GpgFinding("gpg", False, f"{exec_path} not found in PATH")]
    findings.append(GpgFinding("gpg", True, f"{exec_path} available"))

    try:
        keys = list_secret_keys(exec_path)
    except GpgError as e:
        keys = []
        logger.debug("Listing keys failed: %s", e)
    if keys:
        findings.append(GpgFinding("secret keys", True, f"{len(keys)} secret key(s)"))
    else:
        findings.append(GpgFinding("secret keys", False, "No secret keys; run 'relflow gpg generate'"))

    signing_key = git.get_config("user.signingkey", cwd=repo_root)
    if not signing_key:
        findings.append(
            GpgFinding("user.signingkey", False, "Not set; run 'relflow gpg configure --key ID'")
        )
    elif not any(k.matches(signing_key) for k in keys):
        findings.append(
            GpgFinding("user.signingkey", False, f"{signing_key} is not in the secret keyring")
        )
    else:
        findings.append(GpgFinding("user.signingkey", True, signing_key))
        signs = can_sign(signing_key, exec_path)
        findings.append(
            GpgFinding(
                "signing",
                signs,
                "Test signature succeeded" if signs else "Test signature failed (check gpg-agent)",
            )
        )

    tag_sign = git.get_config("tag.gpgsign", cwd=repo_root)
    findings.append(
        GpgFinding(
            "tag.gpgsign",
            tag_sign == "true",
            "enabled" if tag_sign == "true" else "disabled; tags are only signed by relflow",
        )
    )
    return findings


def configure_signing(
    key: str,
    global_scope: bool = False,
    repo_root: Path | None = None,
    exec_path: str = "gpg",
) -> list[tuple[str, str]]:
    """Point git at a signing key and enable commit and tag signing.

    Returns:
        The (key, value) pairs written

    Raises:
        GpgError: If the key is not in the secret keyring
    """
    found = find_secret_key(key, exec_path)
    if found is None:
        raise GpgError(f"Secret key {key} not found")
    settings = [
        ("user.signingkey", found.key_id),
        ("commit.gpgsign", "true"),
        ("tag.gpgsign", "true"),
    ]
    for name, value in settings:
        git.set_config(name, value, global_scope=global_scope, cwd=repo_root)
    logger.info("Configured git to sign with %s", found.key_id)
    return settings
