from unittest.mock import MagicMock

import pytest

from proxyssh.core.exceptions import ConfigurationError, KeyLoadError
from proxyssh.domain.ssh import load_private_key


class TestLoadPrivateKey:
    def test_plain_rsa_key(self, tmp_path, client_key):
        path = tmp_path / "id_rsa"
        client_key.write_private_key_file(str(path))

        key = load_private_key(str(path))
        assert key.get_name() == "ssh-rsa"
        assert key.get_base64() == client_key.get_base64()

    def test_encrypted_key_asks_for_passphrase_once(self, tmp_path, client_key):
        path = tmp_path / "id_rsa"
        client_key.write_private_key_file(str(path), password="correct horse")
        callback = MagicMock(return_value="correct horse")

        key = load_private_key(str(path), passphrase_callback=callback)
        assert key.get_base64() == client_key.get_base64()
        callback.assert_called_once_with(str(path))

    def test_encrypted_key_without_callback(self, tmp_path, client_key):
        path = tmp_path / "id_rsa"
        client_key.write_private_key_file(str(path), password="pw")
        with pytest.raises(KeyLoadError, match="encrypted"):
            load_private_key(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(KeyLoadError, match="not found"):
            load_private_key(str(tmp_path / "nope"))

    def test_not_a_key(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("just some text\n")
        with pytest.raises(KeyLoadError):
            load_private_key(str(path))

    def test_key_errors_are_configuration_errors(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_private_key(str(tmp_path / "nope"))
