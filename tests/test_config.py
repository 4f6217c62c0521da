import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from keyring.errors import KeyringError

from s3_filesystem import config
from s3_filesystem.config import ConfStorage, KeychainStore, S3Conf


class FakeKeychain:
    def __init__(self):
        self.secrets = {}
        self.stored = []
        self.forgotten = []

    @staticmethod
    def account(conf):
        return KeychainStore.account(conf)

    def lookup(self, conf):
        return self.secrets.get(self.account(conf), "")

    def store(self, conf):
        self.stored.append((self.account(conf), conf.secret_key))
        self.secrets[self.account(conf)] = conf.secret_key

    def forget(self, conf):
        self.forgotten.append(self.account(conf))
        self.secrets.pop(self.account(conf), None)


class S3ConfTests(unittest.TestCase):
    def test_prefix_is_normalized_once(self):
        conf = S3Conf(endpoint="http://s3", bucket="b", prefix="/warehouse/")

        self.assertEqual("warehouse", conf.prefix)
        self.assertEqual("http://s3/b/warehouse/", conf.root_path)

    def test_explicit_root_gets_trailing_slash(self):
        conf = S3Conf(endpoint="http://s3", bucket="b", prefix="p", root_path="/data")

        self.assertEqual("/data/", conf.root_path)

    def test_sanitizes_numeric_settings(self):
        conf = S3Conf(
            endpoint="http://s3",
            bucket="b",
            executor_pool_size=0,
            max_connections=-1,
            multipart_threshold="bad",
            multipart_chunk_size=1024,
            max_concurrency=3,
        )

        self.assertEqual(config.DEFAULT_EXECUTOR_POOL_SIZE, conf.executor_pool_size)
        self.assertEqual(config.DEFAULT_MAX_CONNECTIONS, conf.max_connections)
        self.assertEqual(config.DEFAULT_MULTIPART_THRESHOLD, conf.multipart_threshold)
        self.assertEqual(config.MIN_MULTIPART_CHUNK_SIZE, conf.multipart_chunk_size)
        self.assertEqual(3, conf.max_concurrency)

    def test_to_string_hides_secret(self):
        conf = S3Conf(endpoint="http://s3", bucket="b", access_key="ak", secret_key="topsecret123")

        self.assertIn("endpoint=http://s3", conf.to_string())
        self.assertNotIn("topsecret123", conf.to_string())
        self.assertNotIn("topsecret123", repr(conf))

    def test_from_mapping_ignores_unknown_fields(self):
        conf = S3Conf.from_mapping({"endpoint": "e", "bucket": "b", "color": "blue"})

        self.assertEqual("b", conf.bucket)


class KeychainStoreTests(unittest.TestCase):
    def test_secrets_are_keyed_by_identifier_and_endpoint(self):
        store = KeychainStore(service_name="svc")
        one = S3Conf(endpoint="http://one", bucket="b", identifier="dev", secret_key="s1")
        two = S3Conf(endpoint="http://two", bucket="b", identifier="dev", secret_key="s2")

        with mock.patch("s3_filesystem.config.keyring") as keyring_mock:
            store.store(one)
            store.store(two)

        keyring_mock.set_password.assert_has_calls(
            [mock.call("svc", "dev@http://one", "s1"), mock.call("svc", "dev@http://two", "s2")]
        )

    def test_empty_secret_removes_entry(self):
        store = KeychainStore(service_name="svc")
        conf = S3Conf(endpoint="http://one", bucket="b", identifier="dev")

        with mock.patch("s3_filesystem.config.keyring") as keyring_mock:
            store.store(conf)

        keyring_mock.delete_password.assert_called_once_with("svc", "dev@http://one")
        keyring_mock.set_password.assert_not_called()

    def test_keyring_failures_read_as_missing_secret(self):
        store = KeychainStore()
        conf = S3Conf(endpoint="http://one", bucket="b", identifier="dev")

        with mock.patch("s3_filesystem.config.keyring.get_password", side_effect=KeyringError("locked")):
            self.assertEqual("", store.lookup(conf))

    def test_anonymous_configuration_never_touches_keyring(self):
        conf = S3Conf(endpoint="http://one", bucket="b", secret_key="s")

        with mock.patch("s3_filesystem.config.keyring") as keyring_mock:
            store = KeychainStore()
            store.store(conf)
            self.assertEqual("", store.lookup(conf))

        self.assertEqual([], keyring_mock.mock_calls)


class ConfStorageTests(unittest.TestCase):
    def test_load_returns_empty_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = ConfStorage(Path(tmp) / "confs.json", keychain=FakeKeychain())

            self.assertEqual({}, storage.load())

    def test_load_ignores_unreadable_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "confs.json"
            path.write_text("not json", encoding="utf-8")
            storage = ConfStorage(path, keychain=FakeKeychain())

            self.assertEqual({}, storage.load())

    def test_load_migrates_plaintext_secrets(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "confs.json"
            payload = [
                {
                    "identifier": "alpha",
                    "endpoint": "http://one",
                    "bucket": "b",
                    "prefix": "/p/",
                    "access_key": "a",
                    "secret_key": "secret",
                }
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            keychain = FakeKeychain()
            storage = ConfStorage(path, keychain=keychain)

            confs = storage.load()

            self.assertEqual("secret", confs["alpha"].secret_key)
            self.assertEqual("p", confs["alpha"].prefix)
            self.assertEqual([("alpha@http://one", "secret")], keychain.stored)
            sanitized = json.loads(path.read_text(encoding="utf-8"))
            self.assertNotIn("secret_key", sanitized[0])

    def test_load_skips_malformed_entries(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "confs.json"
            payload = [
                {"identifier": "alpha", "endpoint": "http://one"},
                {"endpoint": "http://two", "bucket": "b"},
                {"identifier": "gamma", "endpoint": "http://three", "bucket": "b"},
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            keychain = FakeKeychain()
            keychain.secrets["gamma@http://three"] = "stored"
            storage = ConfStorage(path, keychain=keychain)

            confs = storage.load()

            self.assertEqual(["gamma"], list(confs))
            self.assertEqual("stored", confs["gamma"].secret_key)

    def test_save_round_trips_and_deletes_removed_secrets(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "confs.json"
            payload = [
                {"identifier": "alpha", "endpoint": "http://one", "bucket": "b"},
                {"identifier": "beta", "endpoint": "http://two", "bucket": "b"},
            ]
            path.write_text(json.dumps(payload), encoding="utf-8")
            keychain = FakeKeychain()
            storage = ConfStorage(path, keychain=keychain)

            storage.save([S3Conf(endpoint="http://one", bucket="b", identifier="alpha", secret_key="s")])

            self.assertEqual(["beta@http://two"], keychain.forgotten)
            self.assertEqual([("alpha@http://one", "s")], keychain.stored)
            self.assertEqual("http://one", storage.get("alpha").endpoint)
            self.assertNotIn("secret_key", json.loads(path.read_text(encoding="utf-8"))[0])

    def test_get_unknown_identifier(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = ConfStorage(Path(tmp) / "confs.json", keychain=FakeKeychain())

            with self.assertRaises(ValueError):
                storage.get("missing")


if __name__ == "__main__":
    unittest.main()
