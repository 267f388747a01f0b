from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MoneroMeshSettings(BaseSettings):
    """MoneroMesh server configuration settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    host: str = Field(
        "127.0.0.1", description="The host address for the API server to listen on."
    )
    port: int = Field(3000, description="The port for the API server to listen on.")
    node_env: str = Field(
        "development", description="Deployment environment reported by health checks."
    )
    log_level: str = Field("INFO", description="Minimum loguru level for stderr.")
    log_debug_scopes: str = Field(
        "",
        description="Comma-separated module scopes logged at DEBUG, "
        "e.g. 'client.daemon_client,core.stats_cache'.",
    )

    monerod_rpc_url: str = Field(
        "http://localhost:18081/json_rpc",
        description="JSON-RPC endpoint of the monerod daemon.",
    )
    monerod_rpc_username: str = Field(
        "", description="Optional basic-auth username for monerod."
    )
    monerod_rpc_password: str = Field(
        "", description="Optional basic-auth password for monerod."
    )

    p2pool_rpc_url: str = Field(
        "http://localhost:18083", description="Base URL of the P2Pool stats API."
    )
    p2pool_rpc_username: str = Field(
        "", description="Optional basic-auth username for the P2Pool API."
    )
    p2pool_rpc_password: str = Field(
        "", description="Optional basic-auth password for the P2Pool API."
    )

    cache_ttl_ms: int = Field(
        30_000, description="Validity window of cached upstream statistics."
    )
    hashrate_block_count: int = Field(
        10, description="Number of recent blocks sampled for hashrate estimation."
    )
    request_timeout: float = Field(
        10.0, description="Total timeout in seconds for every upstream call."
    )
