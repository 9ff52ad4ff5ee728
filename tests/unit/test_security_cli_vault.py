"""Tests for the macOS ``security`` CLI backend with mocked subprocess calls."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from keychain_manager.errors import OSStatus
from keychain_manager.vault.security_cli import SecurityCLIVault, status_for_exit


def _proc(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> AsyncMock:
    mock_proc = AsyncMock()
    mock_proc.returncode = returncode
    mock_proc.communicate = AsyncMock(return_value=(stdout, stderr))
    return mock_proc


def _query(**extra: object) -> dict[str, object]:
    query: dict[str, object] = {"class": "genp", "svce": "com.example.test", "acct": "api_key", "sync": True}
    query.update(extra)
    return query


@pytest.fixture
def vault() -> SecurityCLIVault:
    return SecurityCLIVault()


class TestStatusForExit:
    def test_success(self) -> None:
        assert status_for_exit(0) == OSStatus.SUCCESS

    def test_low_byte_statuses(self) -> None:
        assert status_for_exit(44) == OSStatus.ITEM_NOT_FOUND
        assert status_for_exit(45) == OSStatus.DUPLICATE_ITEM
        assert status_for_exit(51) == OSStatus.AUTH_FAILED

    def test_unknown_exit_code_passes_through(self) -> None:
        assert status_for_exit(1) == 1


class TestAdd:
    @pytest.mark.asyncio
    async def test_add_calls_security_add(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc()) as mock_exec:
            status = await vault.add(_query(v_Data=b"sk-abc123"))

        assert status == OSStatus.SUCCESS
        mock_exec.assert_called_once()
        call_args = mock_exec.call_args[0]
        assert call_args[0] == "security"
        assert "add-generic-password" in call_args
        assert "-U" not in call_args
        assert "com.example.test" in call_args
        assert "api_key" in call_args
        assert b"sk-abc123".hex() in call_args

    @pytest.mark.asyncio
    async def test_add_duplicate(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(45)):
            assert await vault.add(_query(v_Data=b"x")) == OSStatus.DUPLICATE_ITEM

    @pytest.mark.asyncio
    async def test_add_passes_label(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc()) as mock_exec:
            await vault.add(_query(v_Data=b"x", labl="My token"))
        call_args = mock_exec.call_args[0]
        assert call_args[call_args.index("-l") + 1] == "My token"

    @pytest.mark.asyncio
    async def test_non_generic_class_unimplemented(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec") as mock_exec:
            status = await vault.add(_query(**{"class": "cert"}))
        assert status == OSStatus.UNIMPLEMENTED
        mock_exec.assert_not_called()

    @pytest.mark.asyncio
    async def test_keychain_path_appended(self) -> None:
        vault = SecurityCLIVault(keychain_path="/tmp/test.keychain-db")
        with patch("asyncio.create_subprocess_exec", return_value=_proc()) as mock_exec:
            await vault.add(_query(v_Data=b"x"))
        assert mock_exec.call_args[0][-1] == "/tmp/test.keychain-db"


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_checks_existence_first(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(44)) as mock_exec:
            status = await vault.update(_query(), {"v_Data": b"new"})
        assert status == OSStatus.ITEM_NOT_FOUND
        mock_exec.assert_called_once()
        assert "find-generic-password" in mock_exec.call_args[0]

    @pytest.mark.asyncio
    async def test_update_existing(self, vault: SecurityCLIVault) -> None:
        calls: list[tuple[object, ...]] = []

        async def mock_exec(*args: object, **kwargs: object) -> AsyncMock:
            calls.append(args)
            return _proc()

        with patch("asyncio.create_subprocess_exec", side_effect=mock_exec):
            status = await vault.update(_query(), {"v_Data": b"new"})

        assert status == OSStatus.SUCCESS
        assert len(calls) == 2
        assert "add-generic-password" in calls[1]
        assert "-U" in calls[1]
        assert b"new".hex() in calls[1]


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_calls_security_delete(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc()) as mock_exec:
            assert await vault.delete(_query()) == OSStatus.SUCCESS
        call_args = mock_exec.call_args[0]
        assert "delete-generic-password" in call_args
        assert "api_key" in call_args

    @pytest.mark.asyncio
    async def test_delete_nonexistent(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(44)):
            assert await vault.delete(_query()) == OSStatus.ITEM_NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_scope_repeats_until_empty(self, vault: SecurityCLIVault) -> None:
        call_count = 0

        async def mock_exec(*args: object, **kwargs: object) -> AsyncMock:
            nonlocal call_count
            call_count += 1
            assert "-a" not in args
            return _proc(0 if call_count <= 2 else 44)

        with patch("asyncio.create_subprocess_exec", side_effect=mock_exec):
            status = await vault.delete({"class": "genp", "svce": "com.example.test", "sync": "syna"})

        assert status == OSStatus.SUCCESS
        # Two deletes succeed, the third reports nothing left
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_delete_scope_empty(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(44)):
            status = await vault.delete({"class": "genp", "svce": "com.example.test", "sync": "syna"})
        assert status == OSStatus.ITEM_NOT_FOUND


class TestCopyMatching:
    @pytest.mark.asyncio
    async def test_copy_with_data(self, vault: SecurityCLIVault) -> None:
        stdout = b"sk-abc123".hex().encode() + b"\n"
        with patch("asyncio.create_subprocess_exec", return_value=_proc(stdout=stdout)) as mock_exec:
            status, result = await vault.copy_matching(_query(r_Attributes=True, r_Data=True))

        assert status == OSStatus.SUCCESS
        assert result == {"class": "genp", "svce": "com.example.test", "acct": "api_key", "v_Data": b"sk-abc123"}
        call_args = mock_exec.call_args[0]
        assert "find-generic-password" in call_args
        assert "-w" in call_args

    @pytest.mark.asyncio
    async def test_copy_not_found(self, vault: SecurityCLIVault) -> None:
        proc = _proc(44, stderr=b"security: SecKeychainSearchCopyNext: not found\n")
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            assert await vault.copy_matching(_query(r_Data=True)) == (OSStatus.ITEM_NOT_FOUND, None)

    @pytest.mark.asyncio
    async def test_copy_non_hex_password_is_decode_error(self, vault: SecurityCLIVault) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=_proc(stdout=b"plain text\n")):
            status, result = await vault.copy_matching(_query(r_Data=True))
        assert status == OSStatus.DECODE
        assert result is None

    @pytest.mark.asyncio
    async def test_copy_all_parses_dump_output(self, vault: SecurityCLIVault) -> None:
        dump_output = (
            b'keychain: "/Users/test/Library/Keychains/login.keychain-db"\n'
            b'class: "genp"\n'
            b'    "svce"<blob>="com.example.test"\n'
            b'    "acct"<blob>="key_one"\n'
            b'class: "genp"\n'
            b'    "acct"<blob>="key_two"\n'
            b'    "svce"<blob>="com.example.test"\n'
            b'class: "genp"\n'
            b'    "svce"<blob>="com.other.service"\n'
            b'    "acct"<blob>="key_three"\n'
            b'class: "inet"\n'
            b'    "svce"<blob>="com.example.test"\n'
            b'    "acct"<blob>="key_four"\n'
        )
        query = {"class": "genp", "svce": "com.example.test", "sync": True,
                 "r_Attributes": True, "m_Limit": "m_LimitAll"}
        with patch("asyncio.create_subprocess_exec", return_value=_proc(stdout=dump_output)):
            status, results = await vault.copy_matching(query)

        assert status == OSStatus.SUCCESS
        assert sorted(r["acct"] for r in results) == ["key_one", "key_two"]

    @pytest.mark.asyncio
    async def test_copy_all_empty_keychain(self, vault: SecurityCLIVault) -> None:
        query = {"class": "genp", "svce": "com.example.test", "r_Attributes": True, "m_Limit": "m_LimitAll"}
        with patch("asyncio.create_subprocess_exec", return_value=_proc()):
            assert await vault.copy_matching(query) == (OSStatus.ITEM_NOT_FOUND, None)
