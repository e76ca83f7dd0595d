"""Tests for credential resolution."""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fdwctl.errors import SecretUnresolvedError
from fdwctl.models import Secret, SecretK8s
from fdwctl.secrets import _kubectl_args, get_secret, secret_is_defined

K8S = {"namespace": "fdw", "secretName": "remote-db", "secretKey": "password"}


def _fake_process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.returncode = returncode
    proc.wait = AsyncMock(return_value=returncode)
    return proc


# ============================================================================
# Test: Source Precedence
# ============================================================================


class TestSecretPrecedence:
    """Verify the fixed value -> env -> file -> k8s order."""

    @pytest.mark.asyncio
    async def test_value_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FDW_PW", "from-env")
        assert await get_secret(Secret(value="explicit", fromEnv="FDW_PW")) == "explicit"

    @pytest.mark.asyncio
    async def test_env_used_when_no_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FDW_PW", "from-env")
        assert await get_secret(Secret(fromEnv="FDW_PW")) == "from-env"

    @pytest.mark.asyncio
    async def test_unset_env_falls_through_to_file(self, tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FDW_PW", raising=False)
        secret_file = tmp_path / "pw"
        secret_file.write_text("from-file")
        assert await get_secret(Secret(fromEnv="FDW_PW", fromFile=str(secret_file))) == "from-file"

    @pytest.mark.asyncio
    async def test_file_contents_are_not_stripped(self, tmp_path) -> None:
        secret_file = tmp_path / "pw"
        secret_file.write_text("s3cret\n")
        assert await get_secret(Secret(fromFile=str(secret_file))) == "s3cret\n"

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(SecretUnresolvedError) as exc_info:
            await get_secret(Secret(fromFile=str(tmp_path / "missing")))
        assert exc_info.value.operation == "get_secret"

    @pytest.mark.asyncio
    async def test_non_utf8_file_raises(self, tmp_path) -> None:
        secret_file = tmp_path / "pw"
        secret_file.write_bytes(b"\xff\xfe")
        with pytest.raises(SecretUnresolvedError) as exc_info:
            await get_secret(Secret(fromFile=str(secret_file)))
        assert exc_info.value.name == str(secret_file)
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    @pytest.mark.asyncio
    async def test_nothing_defined_raises(self) -> None:
        with pytest.raises(SecretUnresolvedError, match="unable to get value"):
            await get_secret(Secret())

    @pytest.mark.asyncio
    async def test_only_unset_env_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FDW_PW", raising=False)
        with pytest.raises(SecretUnresolvedError):
            await get_secret(Secret(fromEnv="FDW_PW"))

    def test_secret_is_defined(self) -> None:
        assert not secret_is_defined(None)
        assert not secret_is_defined(Secret())
        assert secret_is_defined(Secret(value="x"))


# ============================================================================
# Test: Kubernetes Source
# ============================================================================


class TestKubernetesSecret:
    """Verify kubectl invocation and output decoding."""

    def test_kubectl_args(self) -> None:
        args = _kubectl_args(SecretK8s.model_validate(K8S))
        assert args == [
            "-n",
            "fdw",
            "get",
            "secret",
            "remote-db",
            "-o",
            "jsonpath={.data.password}",
        ]

    @pytest.mark.asyncio
    async def test_decodes_base64_output(self) -> None:
        encoded = base64.b64encode(b"k8s-pass")
        with patch(
            "fdwctl.secrets.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_fake_process(stdout=encoded + b"\n")),
        ) as mock_exec:
            value = await get_secret(Secret.model_validate({"fromK8s": K8S}))

        assert value == "k8s-pass"
        assert mock_exec.call_args.args[0] == "kubectl"

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self) -> None:
        proc = _fake_process(stderr=b"secrets \"remote-db\" not found", returncode=1)
        with patch("fdwctl.secrets.asyncio.create_subprocess_exec", new=AsyncMock(return_value=proc)):
            with pytest.raises(SecretUnresolvedError, match="not found"):
                await get_secret(Secret.model_validate({"fromK8s": K8S}))

    @pytest.mark.asyncio
    async def test_invalid_base64_raises(self) -> None:
        proc = _fake_process(stdout=b"not base64!!")
        with patch("fdwctl.secrets.asyncio.create_subprocess_exec", new=AsyncMock(return_value=proc)):
            with pytest.raises(SecretUnresolvedError, match="base64"):
                await get_secret(Secret.model_validate({"fromK8s": K8S}))

    @pytest.mark.asyncio
    async def test_non_utf8_value_raises(self) -> None:
        proc = _fake_process(stdout=base64.b64encode(b"\xff"))
        with patch("fdwctl.secrets.asyncio.create_subprocess_exec", new=AsyncMock(return_value=proc)):
            with pytest.raises(SecretUnresolvedError, match="UTF-8"):
                await get_secret(Secret.model_validate({"fromK8s": K8S}))

    @pytest.mark.asyncio
    async def test_spawn_failure_raises(self) -> None:
        with patch(
            "fdwctl.secrets.asyncio.create_subprocess_exec",
            new=AsyncMock(side_effect=FileNotFoundError("kubectl")),
        ):
            with pytest.raises(SecretUnresolvedError, match="spawning"):
                await get_secret(Secret.model_validate({"fromK8s": K8S}))

    @pytest.mark.asyncio
    async def test_cancellation_kills_process(self) -> None:
        proc = _fake_process()
        proc.communicate = AsyncMock(side_effect=asyncio.CancelledError())
        with patch("fdwctl.secrets.asyncio.create_subprocess_exec", new=AsyncMock(return_value=proc)):
            with pytest.raises(asyncio.CancelledError):
                await get_secret(Secret.model_validate({"fromK8s": K8S}))

        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()
