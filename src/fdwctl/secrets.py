"""Credential resolution.

Resolves a ``Secret`` to its string value.  Sources are tried in a fixed,
short-circuiting order:

1. ``value``     -- returned verbatim
2. ``from_env``  -- environment variable (falls through when unset)
3. ``from_file`` -- file contents, verbatim (not stripped)
4. ``from_k8s``  -- ``kubectl get secret`` output, base64-decoded

Only the Kubernetes path has a side effect (it spawns ``kubectl``); the
subprocess is killed if the awaiting task is cancelled.

Usage:
    from fdwctl.models import Secret
    from fdwctl.secrets import get_secret

    password = await get_secret(Secret(fromEnv="REMOTE_PASSWORD"))
"""

import asyncio
import base64
import binascii
import logging
import os
from pathlib import Path

from fdwctl.errors import SecretUnresolvedError
from fdwctl.models import Secret, SecretK8s

logger = logging.getLogger(__name__)

KUBECTL = "kubectl"


def secret_is_defined(secret: Secret | None) -> bool:
    """True if ``secret`` has at least one usable source configured."""
    return secret is not None and secret.is_defined()


def _kubectl_args(k8s: SecretK8s) -> list[str]:
    return [
        "-n",
        k8s.namespace,
        "get",
        "secret",
        k8s.secret_name,
        "-o",
        f"jsonpath={{.data.{k8s.secret_key}}}",
    ]


async def _read_k8s_secret(k8s: SecretK8s) -> str:
    """Fetch and decode a credential from a Kubernetes secret via kubectl."""
    args = _kubectl_args(k8s)
    ref = f"{k8s.namespace}/{k8s.secret_name}:{k8s.secret_key}"
    logger.debug("command: %s %s", KUBECTL, " ".join(args))
    try:
        proc = await asyncio.create_subprocess_exec(
            KUBECTL,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SecretUnresolvedError(
            f"error spawning {KUBECTL}: {e}", operation="get_secret", name=ref
        ) from e
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise
    if proc.returncode != 0:
        raise SecretUnresolvedError(
            f"{KUBECTL} exited with status {proc.returncode}: "
            f"{stderr.decode(errors='replace').strip()}",
            operation="get_secret",
            name=ref,
        )
    try:
        raw = base64.b64decode(stdout.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise SecretUnresolvedError(
            f"error decoding base64: {e}", operation="get_secret", name=ref
        ) from e
    try:
        return raw.decode()
    except UnicodeDecodeError as e:
        raise SecretUnresolvedError(
            f"secret {ref} is not valid UTF-8: {e}", operation="get_secret", name=ref
        ) from e


async def get_secret(secret: Secret) -> str:
    """Resolve ``secret`` to its credential value.

    Args:
        secret: The secret configuration.

    Returns:
        The credential as a string.

    Raises:
        SecretUnresolvedError: If no source is configured, or the configured
            file/Kubernetes source cannot produce a value.

    Example:
        >>> import asyncio
        >>> asyncio.run(get_secret(Secret(value="v", fromEnv="E")))
        'v'
    """
    # (1) Explicit value
    if secret.value:
        logger.debug("returning value")
        return secret.value
    # (2) Environment variable
    if secret.from_env:
        env_value = os.environ.get(secret.from_env)
        if env_value is not None:
            logger.debug("returning from_env")
            return env_value
        logger.debug("environment variable %s is not set", secret.from_env)
    # (3) Flat file
    if secret.from_file:
        try:
            contents = Path(secret.from_file).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SecretUnresolvedError(
                f"error reading file {secret.from_file}: {e}",
                operation="get_secret",
                name=secret.from_file,
            ) from e
        logger.debug("returning from_file")
        return contents
    # (4) Kubernetes secret
    if secret.from_k8s.is_defined():
        value = await _read_k8s_secret(secret.from_k8s)
        logger.debug("returning from_k8s")
        return value
    raise SecretUnresolvedError(
        "unable to get value for secret", operation="get_secret"
    )
