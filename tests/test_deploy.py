import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch, MagicMock

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chain.deploy_certificate import load_artifact, deploy_contract
from chain.connect import load_contract_info

ADDRESS = '0x5FbDB2315678afecb367f032d93F642f64180aa3'
DEPLOYER = '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'
ABI = [{'type': 'function', 'name': 'owner', 'inputs': [], 'outputs': [{'type': 'address'}]}]


class DeployTestCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.artifact = os.path.join(self.tmpdir.name, 'CertificateVerifier.json')
        self.output = os.path.join(self.tmpdir.name, 'contract-info.json')

    def tearDown(self):
        self.tmpdir.cleanup()

    def write_artifact(self, payload):
        with open(self.artifact, 'w') as f:
            json.dump(payload, f)

    def test_load_hardhat_and_foundry_artifacts(self):
        self.write_artifact({'abi': ABI, 'bytecode': '0x6080'})
        self.assertEqual(load_artifact(self.artifact), (ABI, '0x6080'))

        self.write_artifact({'abi': ABI, 'bytecode': {'object': '0x6080'}})
        self.assertEqual(load_artifact(self.artifact), (ABI, '0x6080'))

    def test_artifact_without_bytecode(self):
        self.write_artifact({'abi': ABI})
        with self.assertRaises(ValueError):
            load_artifact(self.artifact)

    @patch('chain.deploy_certificate.get_private_key', return_value=None)
    @patch('chain.deploy_certificate.get_web3')
    def test_deploy_writes_contract_info(self, mock_get_web3, _):
        self.write_artifact({'abi': ABI, 'bytecode': '0x6080'})
        w3 = MagicMock()
        w3.eth.accounts = [DEPLOYER]
        factory = MagicMock()
        factory.constructor.return_value.transact.return_value = bytes.fromhex('cd' * 32)
        deployed = MagicMock()
        deployed.functions.owner.return_value.call.return_value = DEPLOYER
        w3.eth.contract.side_effect = [factory, deployed]
        w3.eth.wait_for_transaction_receipt.return_value = {'contractAddress': ADDRESS}
        mock_get_web3.return_value = w3

        address = deploy_contract(self.artifact, self.output)

        self.assertEqual(address, ADDRESS)
        factory.constructor.return_value.transact.assert_called_with({'from': DEPLOYER})
        self.assertEqual(load_contract_info(self.output), {'address': ADDRESS, 'abi': ABI})


if __name__ == '__main__':
    unittest.main()
