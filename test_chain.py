"""
ChainClient: read failures become ChainAccessError, log filter shape
"""
import unittest
from unittest.mock import MagicMock, PropertyMock

import requests
from hexbytes import HexBytes
from web3 import Web3

from avs_operator.chain import ChainClient
from avs_operator.events import NEW_TASK_TOPIC
from avs_operator.exceptions import ChainAccessError

SERVICE_MANAGER = "0x5fbdb2315678afecb367f032d93f642f64180aa3"


class TestChainClientReads(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.w3 = MagicMock()
        self.client = ChainClient("http://localhost:8545", w3=self.w3)

    async def test_block_number(self):
        type(self.w3.eth).block_number = PropertyMock(return_value=250)
        self.assertEqual(await self.client.get_block_number(), 250)

    async def test_block_number_failure_is_chain_access_error(self):
        cause = requests.exceptions.ConnectionError("connection refused")
        type(self.w3.eth).block_number = PropertyMock(side_effect=cause)

        with self.assertRaises(ChainAccessError) as ctx:
            await self.client.get_block_number()

        self.assertIs(ctx.exception.__cause__, cause)

    async def test_get_logs_filter(self):
        self.w3.eth.get_logs.return_value = [{'blockNumber': 120, 'logIndex': 0}]

        logs = await self.client.get_logs(SERVICE_MANAGER, [NEW_TASK_TOPIC], 101, 200)

        self.assertEqual(logs, [{'blockNumber': 120, 'logIndex': 0}])
        self.w3.eth.get_logs.assert_called_once_with({
            'address': Web3.to_checksum_address(SERVICE_MANAGER),
            'fromBlock': 101,
            'toBlock': 200,
            'topics': [NEW_TASK_TOPIC.to_0x_hex()],
        })

    async def test_get_logs_keeps_string_topics(self):
        self.w3.eth.get_logs.return_value = []
        topic = HexBytes(NEW_TASK_TOPIC).to_0x_hex()

        await self.client.get_logs(SERVICE_MANAGER, [topic], 1, 100)

        self.assertEqual(self.w3.eth.get_logs.call_args[0][0]['topics'], [topic])

    async def test_get_logs_failure_is_chain_access_error(self):
        cause = ValueError({'code': -32005, 'message': 'query returned more than 10000 results'})
        self.w3.eth.get_logs.side_effect = cause

        with self.assertRaises(ChainAccessError) as ctx:
            await self.client.get_logs(SERVICE_MANAGER, [NEW_TASK_TOPIC], 201, 250)

        self.assertIs(ctx.exception.__cause__, cause)
        self.assertIn("[201, 250]", str(ctx.exception))


class TestChainClientConnection(unittest.TestCase):

    def test_connect_caches_chain_id(self):
        w3 = MagicMock()
        w3.is_connected.return_value = True
        w3.eth.chain_id = 31337
        client = ChainClient("http://localhost:8545", w3=w3)

        self.assertTrue(client.connect())
        self.assertEqual(client.chain_id, 31337)

    def test_connect_returns_false_when_unreachable(self):
        w3 = MagicMock()
        w3.is_connected.side_effect = requests.exceptions.ConnectionError("refused")
        client = ChainClient("http://localhost:8545", w3=w3)

        self.assertFalse(client.connect())


class TestChainClientWrites(unittest.IsolatedAsyncioTestCase):

    async def test_send_raw_transaction_returns_hex(self):
        w3 = MagicMock()
        w3.eth.send_raw_transaction.return_value = HexBytes(b'\xaa' * 32)
        client = ChainClient("http://localhost:8545", w3=w3)

        tx_hash = await client.send_raw_transaction(b'\x01\x02')

        self.assertEqual(tx_hash, "0x" + "aa" * 32)
        w3.eth.send_raw_transaction.assert_called_once_with(b'\x01\x02')


if __name__ == '__main__':
    unittest.main()
