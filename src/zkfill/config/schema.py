"""Pydantic models for zkfill.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field

from zkfill.orders import ZERO_ADDRESS


class CircuitConfig(BaseModel):
    """Circuit artifact configuration."""

    artifacts_dir: str = Field(
        default="~/.zkfill/circuit",
        description="Directory holding proving_key.json and verification_key.json",
    )
    setup_seed: str | None = Field(
        default=None,
        description="Deterministic setup seed (development only; leave unset in production)",
    )


class SnarkjsConfig(BaseModel):
    """External snarkjs prover configuration."""

    executable: str = Field(default="snarkjs", description="snarkjs command")
    wasm_path: str = Field(
        default="circuits/hidden_params_js/hidden_params.wasm",
        description="Compiled circuit",
    )
    zkey_path: str = Field(
        default="circuits/hidden_params_0001.zkey", description="snarkjs proving key"
    )


class ProverConfig(BaseModel):
    """Proof generation configuration."""

    backend: Literal["native", "snarkjs"] = Field(
        default="native",
        description="Proving backend to use",
    )
    timeout: float = Field(default=120.0, description="Proof generation timeout in seconds", gt=0)
    snarkjs: SnarkjsConfig = Field(default_factory=SnarkjsConfig)


class MakerConfig(BaseModel):
    """Maker service configuration."""

    private_key_env: str = Field(
        default="ZKFILL_MAKER_KEY",
        description="Environment variable holding the maker's signing key",
    )
    chain_id: int = Field(default=31337, description="Chain id of the settlement contract", ge=1)
    router: str = Field(
        default="0x111111125421cA6dc452d289314280a0f8842A65",
        description="Settlement contract (EIP-712 verifying contract)",
    )
    predicate_address: str = Field(
        default=ZERO_ADDRESS, description="Deployed predicate adapter address"
    )
    registry_path: str | None = Field(
        default=None,
        description="JSON file persisting registered orders and their secrets",
    )


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins (use ['*'] for development only)",
    )


class FillConfig(BaseModel):
    """Taker-side fill configuration."""

    maker_url: str = Field(default="http://localhost:8000", description="Maker service URL")
    timeout: float = Field(default=120.0, description="Authorization request timeout", gt=0)
    authorization_ttl: int = Field(
        default=300,
        description="Seconds an authorization stays usable for retries",
        ge=1,
    )


class ZkFillConfig(BaseModel):
    """Root configuration schema for zkfill."""

    circuit: CircuitConfig = Field(default_factory=CircuitConfig)
    prover: ProverConfig = Field(default_factory=ProverConfig)
    maker: MakerConfig = Field(default_factory=MakerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    fill: FillConfig = Field(default_factory=FillConfig)
