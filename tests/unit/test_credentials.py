"""Unit tests for rider credential providers."""

import os
import stat

import pytest

from ridertrack.config import CredentialsConfig
from ridertrack.infrastructure.credentials import (
    ChainedCredentialProvider,
    EnvCredentialProvider,
    FileCredentialStore,
    StaticCredentialProvider,
    build_credential_provider,
)


class TestEnvCredentialProvider:
    def test_reads_each_call(self, monkeypatch):
        provider = EnvCredentialProvider("TEST_RIDER_TOKEN")
        monkeypatch.delenv("TEST_RIDER_TOKEN", raising=False)
        assert provider.get_token() is None

        monkeypatch.setenv("TEST_RIDER_TOKEN", "abc")
        assert provider.get_token() == "abc"

        monkeypatch.setenv("TEST_RIDER_TOKEN", "def")
        assert provider.get_token() == "def"

    def test_blank_is_missing(self, monkeypatch):
        monkeypatch.setenv("TEST_RIDER_TOKEN", "   ")
        assert EnvCredentialProvider("TEST_RIDER_TOKEN").get_token() is None


class TestFileCredentialStore:
    def test_missing_file(self, tmp_path):
        assert FileCredentialStore(tmp_path / "none").get_token() is None

    def test_set_get_clear(self, tmp_path):
        store = FileCredentialStore(tmp_path / "nested" / "rider_token")

        store.set_token("  tok-1 \n")
        assert store.get_token() == "tok-1"

        assert store.clear() is True
        assert store.get_token() is None
        assert store.clear() is False

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_is_private(self, tmp_path):
        store = FileCredentialStore(tmp_path / "rider_token")
        store.set_token("secret")

        mode = stat.S_IMODE(store.path.stat().st_mode)
        assert mode == 0o600

    def test_empty_token_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            FileCredentialStore(tmp_path / "t").set_token(" ")

    def test_change_picked_up(self, tmp_path):
        store = FileCredentialStore(tmp_path / "rider_token")
        store.set_token("old")
        (tmp_path / "rider_token").write_text("new", encoding="utf-8")

        assert store.get_token() == "new"


class TestChainedCredentialProvider:
    def test_first_token_wins(self):
        chain = ChainedCredentialProvider(
            StaticCredentialProvider(None),
            StaticCredentialProvider("b"),
            StaticCredentialProvider("c"),
        )
        assert chain.get_token() == "b"

    def test_none_when_all_empty(self):
        chain = ChainedCredentialProvider(StaticCredentialProvider(""))
        assert chain.get_token() is None

    def test_build_prefers_env(self, tmp_path, monkeypatch):
        cfg = CredentialsConfig(token_env="TEST_RIDER_TOKEN", token_file=tmp_path / "rider_token")
        FileCredentialStore(cfg.token_file).set_token("from-file")
        provider = build_credential_provider(cfg)

        monkeypatch.delenv("TEST_RIDER_TOKEN", raising=False)
        assert provider.get_token() == "from-file"

        monkeypatch.setenv("TEST_RIDER_TOKEN", "from-env")
        assert provider.get_token() == "from-env"
