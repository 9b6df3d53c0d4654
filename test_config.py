"""
Operator config loading: yaml, environment overrides and deployment files
"""
import json
import os
import shutil
import tempfile
import unittest

from avs_operator.config import OperatorConfig
from avs_operator.exceptions import ConfigError

SERVICE_MANAGER = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TEST_KEY = "4c" * 32


def full_env(**overrides):
    env = {
        'RPC_URL': "http://localhost:8545",
        'PRIVATE_KEY': TEST_KEY,
        'SERVICE_MANAGER_ADDRESS': SERVICE_MANAGER,
        'VALUATION_API_URL': "http://localhost:8080",
    }
    env.update(overrides)
    return env


class TestOperatorConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def write(self, name, content):
        path = os.path.join(self.tmpdir, name)
        with open(path, 'w') as f:
            f.write(content)
        return path

    def test_defaults(self):
        config = OperatorConfig.load(self.write("operator.yaml", ""), env=full_env())

        self.assertEqual(config.poll_interval_seconds, 10.0)
        self.assertEqual(config.chunk_size, 100)
        self.assertEqual(config.gas_limit, 1_500_000)
        self.assertEqual(config.failure_threshold, 3)
        self.assertIsNone(config.initial_watermark)
        config.validate()

    def test_env_overrides_yaml(self):
        path = self.write("operator.yaml", "poll_interval_seconds: 5\nchunk_size: 50\n")

        config = OperatorConfig.load(path, env=full_env(POLL_INTERVAL_SECONDS="15"))

        self.assertEqual(config.poll_interval_seconds, 15.0)
        self.assertEqual(config.chunk_size, 50)

    def test_unknown_yaml_keys_warn(self):
        path = self.write("operator.yaml", "telegram_token: abc\n")

        with self.assertLogs('avs_operator.config', level='WARNING'):
            OperatorConfig.load(path, env=full_env())

    def test_missing_explicit_config_file(self):
        with self.assertRaises(ConfigError):
            OperatorConfig.load(os.path.join(self.tmpdir, "missing.yaml"), env=full_env())

    def test_non_numeric_value(self):
        with self.assertRaises(ConfigError):
            OperatorConfig.load(self.write("operator.yaml", ""), env=full_env(BLOCK_CHUNK_SIZE="lots"))

    def test_deployment_file_resolves_service_manager(self):
        deployment = self.write("31337.json", json.dumps({'addresses': {'serviceManager': SERVICE_MANAGER}}))
        env = full_env(DEPLOYMENT_FILE=deployment)
        del env['SERVICE_MANAGER_ADDRESS']

        config = OperatorConfig.load(self.write("operator.yaml", ""), env=env)

        self.assertEqual(config.service_manager_address, SERVICE_MANAGER)

    def test_deployment_file_without_address(self):
        deployment = self.write("31337.json", json.dumps({'addresses': {}}))
        env = full_env(DEPLOYMENT_FILE=deployment)
        del env['SERVICE_MANAGER_ADDRESS']

        with self.assertRaises(ConfigError):
            OperatorConfig.load(self.write("operator.yaml", ""), env=env)

    def test_private_key_gets_prefix(self):
        config = OperatorConfig.load(self.write("operator.yaml", ""), env=full_env())
        self.assertEqual(config.normalized_private_key, "0x" + TEST_KEY)

    def test_start_block_sets_watermark(self):
        config = OperatorConfig.load(self.write("operator.yaml", ""), env=full_env(START_BLOCK="500"))
        self.assertEqual(config.initial_watermark, 499)

    def test_validate_reports_every_problem(self):
        config = OperatorConfig.load(
            self.write("operator.yaml", ""),
            env={'PRIVATE_KEY': "0x1234", 'RESPONSE_GAS_LIMIT': "100"}
        )

        with self.assertRaises(ConfigError) as ctx:
            config.validate()

        message = str(ctx.exception)
        self.assertIn("RPC_URL is required", message)
        self.assertIn("PRIVATE_KEY must be 32 bytes of hex", message)
        self.assertIn("VALUATION_API_URL is required", message)
        self.assertIn("RESPONSE_GAS_LIMIT must be >= 21000", message)

    def test_chunk_size_above_log_query_limit_rejected(self):
        config = OperatorConfig.load(self.write("operator.yaml", ""), env=full_env(BLOCK_CHUNK_SIZE="500"))

        with self.assertRaises(ConfigError) as ctx:
            config.validate()

        self.assertIn("BLOCK_CHUNK_SIZE must be between 1 and 100", str(ctx.exception))

    def test_non_hex_private_key_rejected(self):
        config = OperatorConfig.load(self.write("operator.yaml", ""), env=full_env(PRIVATE_KEY="0x" + "zz" * 32))

        with self.assertRaises(ConfigError) as ctx:
            config.validate()

        self.assertIn("PRIVATE_KEY must be 32 bytes of hex", str(ctx.exception))

    def test_private_key_hidden_from_repr(self):
        config = OperatorConfig.load(self.write("operator.yaml", ""), env=full_env())
        self.assertNotIn(TEST_KEY, repr(config))


if __name__ == '__main__':
    unittest.main()
