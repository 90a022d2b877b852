"""
Hardhat artifact registry

Resolves contract blueprints (ABI + creation bytecode) from a Hardhat
``artifacts/`` tree and follows the ``.dbg.json`` pointers to the
``build-info`` files that hold the compiler input needed for verification.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import BlueprintNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class Blueprint:
    """A compiled contract that can be deployed"""
    name: str
    source_name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    deployed_bytecode: str
    artifact_path: str
    build_info_path: Optional[str] = None

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.name}"


def strip_metadata(code: bytes) -> bytes:
    """Drop the CBOR metadata trailer solc appends to runtime code."""
    if len(code) < 2:
        return code
    length = int.from_bytes(code[-2:], "big")
    if length + 2 > len(code):
        return code
    return code[:-(length + 2)]


class BlueprintRegistry:
    """Lookup over the compiled artifacts of a Hardhat project"""

    def __init__(self, artifacts_dir: str = "artifacts"):
        self.artifacts_dir = Path(artifacts_dir)
        self._build_info_cache: Dict[str, Dict[str, Any]] = {}

    def get_blueprint(self, name: str) -> Blueprint:
        """
        Resolve a contract by name.

        Args:
            name: Contract name (``CrowdFunding``) or fully qualified name
                (``contracts/CrowdFunding.sol:CrowdFunding``)

        Returns:
            The compiled blueprint

        Raises:
            BlueprintNotFoundError: unknown, ambiguous, unreadable or abstract
        """
        if ":" in name:
            source_name, contract_name = name.rsplit(":", 1)
            candidates = [self.artifacts_dir / source_name / f"{contract_name}.json"]
            candidates = [path for path in candidates if path.is_file()]
        else:
            contract_name = name
            candidates = [
                path for path in self.artifacts_dir.glob(f"**/{contract_name}.json")
                if self._is_artifact_path(path)
            ]

        if not candidates:
            raise BlueprintNotFoundError(
                f"Artifact for contract \"{name}\" not found in {self.artifacts_dir}. "
                "Is it compiled?"
            )
        if len(candidates) > 1:
            names = ", ".join(sorted(self._qualified_name(path) for path in candidates))
            raise BlueprintNotFoundError(
                f"There are multiple artifacts for contract \"{name}\", "
                f"use one of the fully qualified names: {names}"
            )

        blueprint = self._load(candidates[0])
        if blueprint.bytecode in ("", "0x"):
            raise BlueprintNotFoundError(
                f"Contract \"{name}\" has no bytecode, it is abstract or an interface"
            )
        logger.debug(f"Resolved {name} from {blueprint.artifact_path}")
        return blueprint

    def iter_blueprints(self) -> Iterator[Blueprint]:
        """Yield every readable artifact under the artifacts directory"""
        for path in sorted(self.artifacts_dir.glob("**/*.json")):
            if not self._is_artifact_path(path):
                continue
            try:
                yield self._load(path)
            except BlueprintNotFoundError as e:
                logger.debug(f"Skipping {path}: {e}")

    def load_build_info(self, blueprint: Blueprint) -> Dict[str, Any]:
        """Load the build-info file (solc version, input and output) of a blueprint"""
        if not blueprint.build_info_path:
            raise BlueprintNotFoundError(
                f"No build-info recorded for {blueprint.fully_qualified_name}"
            )
        path = blueprint.build_info_path
        if path not in self._build_info_cache:
            try:
                with open(path, "r") as f:
                    self._build_info_cache[path] = json.load(f)
            except (OSError, ValueError) as e:
                raise BlueprintNotFoundError(f"Could not read build-info {path}: {e}") from e
        return self._build_info_cache[path]

    def immutable_ranges(self, blueprint: Blueprint) -> List[Tuple[int, int]]:
        """Byte ranges of the runtime code that hold immutable values"""
        try:
            build_info = self.load_build_info(blueprint)
        except BlueprintNotFoundError:
            return []
        contract = (
            build_info.get("output", {})
            .get("contracts", {})
            .get(blueprint.source_name, {})
            .get(blueprint.name, {})
        )
        references = contract.get("evm", {}).get("deployedBytecode", {}).get("immutableReferences", {})
        return [
            (ref["start"], ref["length"])
            for refs in references.values()
            for ref in refs
        ]

    def find_by_deployed_code(self, code: bytes) -> Optional[Blueprint]:
        """
        Find the blueprint whose runtime code matches on-chain code.

        Immutable slots and the metadata trailer are ignored, so a contract
        compiled from the same sources matches regardless of constructor
        values.
        """
        for blueprint in self.iter_blueprints():
            try:
                expected = bytes.fromhex(blueprint.deployed_bytecode[2:])
            except ValueError:
                # unlinked library placeholders
                continue
            if not expected or len(expected) != len(code):
                continue

            actual = bytearray(code)
            for start, length in self.immutable_ranges(blueprint):
                actual[start:start + length] = expected[start:start + length]

            if strip_metadata(bytes(actual)) == strip_metadata(expected):
                return blueprint
        return None

    def _is_artifact_path(self, path: Path) -> bool:
        if path.name.endswith(".dbg.json"):
            return False
        relative = path.relative_to(self.artifacts_dir)
        if relative.parts and relative.parts[0] == "build-info":
            return False
        return path.parent.suffix in (".sol", ".vy")

    def _qualified_name(self, path: Path) -> str:
        source_name = path.parent.relative_to(self.artifacts_dir).as_posix()
        return f"{source_name}:{path.stem}"

    def _load(self, path: Path) -> Blueprint:
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise BlueprintNotFoundError(f"Could not read artifact {path}: {e}") from e

        missing = [key for key in ("contractName", "abi", "bytecode") if key not in data]
        if missing:
            raise BlueprintNotFoundError(f"Artifact {path} is missing {', '.join(missing)}")

        return Blueprint(
            name=data["contractName"],
            source_name=data.get("sourceName", self._qualified_name(path).rsplit(":", 1)[0]),
            abi=data["abi"],
            bytecode=data["bytecode"],
            deployed_bytecode=data.get("deployedBytecode", "0x"),
            artifact_path=str(path),
            build_info_path=self._build_info_for(path),
        )

    def _build_info_for(self, path: Path) -> Optional[str]:
        dbg_path = path.with_name(f"{path.stem}.dbg.json")
        if not dbg_path.is_file():
            return None
        try:
            with open(dbg_path, "r") as f:
                build_info = json.load(f).get("buildInfo")
        except (OSError, ValueError):
            logger.warning(f"Could not read debug file {dbg_path}")
            return None
        if not build_info:
            return None
        return os.path.normpath(os.path.join(dbg_path.parent, build_info))
