"""
Etherscan contract verification

Submits the Hardhat standard-JSON compiler input for a deployed contract
and polls until the explorer accepts it. Proxies are handled the way the
OpenZeppelin upgrades plugin does it: verify the implementation, verify
the proxy itself, then link the two on the explorer.
"""

import json
import logging
import time
from typing import Any, Dict, Optional, Sequence

import requests

from .artifacts import Blueprint, BlueprintRegistry
from .chain import ChainClient
from .errors import BlueprintNotFoundError, VerificationError
from .proxy import implementation_address

logger = logging.getLogger(__name__)

PENDING_MARKERS = ("pending", "in progress")
NOT_INDEXED_MARKER = "unable to locate contractcode"
ALREADY_VERIFIED_MARKER = "already verified"


class EtherscanVerifier:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        chain_id: int,
        registry: BlueprintRegistry,
        client: ChainClient,
        session: Optional[requests.Session] = None,
        poll_interval: int = 5,
        max_attempts: int = 20,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.chain_id = chain_id
        self.registry = registry
        self.client = client
        self.session = session or requests.Session()
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    def verify(self, address: str, contract_name: Optional[str] = None) -> None:
        """
        Verify a deployed contract that took no constructor arguments.

        If ``address`` is an EIP-1967 proxy, the implementation is verified
        (as ``contract_name`` when given, otherwise matched by bytecode), the
        proxy contract is verified with its creation arguments, and the
        explorer is told to link them.
        """
        try:
            implementation = implementation_address(self.client, address)
        except Exception as e:
            raise VerificationError(f"Could not read proxy slot of {address}: {e}") from e

        if implementation is None:
            logger.info(f"Verifying {address}...")
            blueprint = self._resolve(address, contract_name)
            self._verify_source(address, blueprint, "")
            return

        logger.info(f"{address} is a proxy for {implementation}")
        blueprint = self._resolve(implementation, contract_name)
        self._verify_source(implementation, blueprint, "")

        proxy_blueprint = self._resolve(address, None)
        self._verify_source(address, proxy_blueprint, self._creation_args(address, proxy_blueprint))
        self._link_proxy(address, implementation)
        logger.info(f"Verified proxy {address} and implementation {implementation}")

    def verify_with_args(self, address: str, contract_name: str, constructor_args: Sequence[Any]) -> None:
        """Verify a contract deployed with constructor arguments"""
        blueprint = self._resolve(address, contract_name)
        try:
            factory = self.client.contract_factory(blueprint.abi, blueprint.bytecode)
            data = factory.constructor(*constructor_args).data_in_transaction
        except Exception as e:
            raise VerificationError(
                f"Could not encode constructor arguments {tuple(constructor_args)} for {blueprint.name}: {e}"
            ) from e
        self._verify_source(address, blueprint, data[len(blueprint.bytecode):])

    def _resolve(self, address: str, contract_name: Optional[str]) -> Blueprint:
        if contract_name:
            try:
                return self.registry.get_blueprint(contract_name)
            except BlueprintNotFoundError as e:
                raise VerificationError(str(e)) from e

        try:
            code = self.client.get_code(address)
        except Exception as e:
            raise VerificationError(f"Could not fetch code at {address}: {e}") from e
        if not code:
            raise VerificationError(f"No contract code at {address}")

        blueprint = self.registry.find_by_deployed_code(code)
        if blueprint is None:
            raise VerificationError(f"No compiled artifact matches the code deployed at {address}")
        logger.info(f"Matched {address} to {blueprint.fully_qualified_name}")
        return blueprint

    def _creation_args(self, address: str, blueprint: Blueprint) -> str:
        """Constructor arguments recovered from the creation transaction"""
        params = {
            'module': 'contract',
            'action': 'getcontractcreation',
            'contractaddresses': address,
        }
        result = None
        for attempt in range(1, self.max_attempts + 1):
            payload = self._call(params)
            result = payload.get('result')
            if payload.get('status') == '1' and result:
                break
            # freshly deployed contracts are not indexed by the explorer yet
            logger.info(f"Explorer has no creation record for {address} yet (attempt {attempt})")
            time.sleep(self.poll_interval)
        else:
            raise VerificationError(f"Could not find the creation transaction of {address}: {result}")

        try:
            data = self.client.get_transaction_input(result[0]['txHash'])
        except Exception as e:
            raise VerificationError(f"Could not fetch the creation transaction of {address}: {e}") from e

        if not data.lower().startswith(blueprint.bytecode.lower()):
            raise VerificationError(
                f"Creation code of {address} does not match {blueprint.fully_qualified_name}"
            )
        return data[len(blueprint.bytecode):]

    def _verify_source(self, address: str, blueprint: Blueprint, constructor_args: str) -> None:
        try:
            build_info = self.registry.load_build_info(blueprint)
        except BlueprintNotFoundError as e:
            raise VerificationError(str(e)) from e

        params = {
            'module': 'contract',
            'action': 'verifysourcecode',
            'contractaddress': address,
            'sourceCode': json.dumps(build_info['input']),
            'codeformat': 'solidity-standard-json-input',
            'contractname': blueprint.fully_qualified_name,
            'compilerversion': f"v{build_info['solcLongVersion']}",
            'constructorArguements': constructor_args.removeprefix('0x'),
        }

        for attempt in range(1, self.max_attempts + 1):
            payload = self._call(params, method='POST')
            result = str(payload.get('result', ''))
            if payload.get('status') == '1':
                break
            if ALREADY_VERIFIED_MARKER in result.lower():
                logger.info(f"{blueprint.name} at {address} is already verified")
                return
            if NOT_INDEXED_MARKER in result.lower():
                # freshly deployed code is not indexed by the explorer yet
                logger.info(f"Explorer has not indexed {address} yet (attempt {attempt})")
                time.sleep(self.poll_interval)
                continue
            raise VerificationError(f"Verification of {address} rejected: {result}")
        else:
            raise VerificationError(f"Explorer never indexed {address}")

        logger.info(f"Submitted {blueprint.fully_qualified_name} at {address}, guid {result}")
        self._poll('checkverifystatus', result)
        logger.info(f"{blueprint.name} at {address} verified")

    def _link_proxy(self, address: str, implementation: str) -> None:
        payload = self._call({
            'module': 'contract',
            'action': 'verifyproxycontract',
            'address': address,
            'expectedimplementation': implementation,
        }, method='POST')
        result = str(payload.get('result', ''))
        if payload.get('status') != '1':
            raise VerificationError(f"Proxy link of {address} rejected: {result}")
        self._poll('checkproxyverification', result)

    def _poll(self, action: str, guid: str) -> str:
        for _ in range(self.max_attempts):
            time.sleep(self.poll_interval)
            payload = self._call({'module': 'contract', 'action': action, 'guid': guid})
            result = str(payload.get('result', ''))
            if any(marker in result.lower() for marker in PENDING_MARKERS):
                continue
            if payload.get('status') == '1' or ALREADY_VERIFIED_MARKER in result.lower():
                return result
            raise VerificationError(f"Verification failed: {result}")
        raise VerificationError(f"Verification {guid} still pending after {self.max_attempts} attempts")

    def _call(self, params: Dict[str, Any], method: str = 'GET') -> Dict[str, Any]:
        query = {'chainid': self.chain_id, 'apikey': self.api_key}
        try:
            if method == 'POST':
                response = self.session.post(self.api_url, params=query, data=params, timeout=30)
            else:
                response = self.session.get(self.api_url, params={**query, **params}, timeout=30)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Explorer request {params.get('action')} failed: {e}")
            raise VerificationError(f"Explorer request failed: {e}") from e
        except ValueError as e:
            raise VerificationError(f"Explorer returned invalid JSON: {e}") from e
