from typing import Any, List, Optional, Union

from pydantic import AnyHttpUrl, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    ENVIRONMENT_NAME: str = "Development"

    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "YAP Rewards API"
    # BACKEND_CORS_ORIGINS is a JSON-formatted list of origins
    # e.g: '["http://localhost", "http://localhost:3000"]'
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "yap"
    SQLALCHEMY_DATABASE_URI: Optional[str] = None

    # Shared secret the scheduler sends as "Authorization: Bearer <CRON_SECRET>"
    CRON_SECRET: Optional[str] = None

    # SOLANA
    SOLANA_NETWORK: str = "devnet"
    SOLANA_RPC_URL: Optional[str] = None
    SOLANA_RPC_TIMEOUT_SECONDS: int = 30
    SOLANA_CONFIRM_TIMEOUT_SECONDS: int = 60
    YAP_PROGRAM_ID: str = "CP5uP8kmwMnRDLh2yfrbeZLByo2wNCUdmQqTz3bso5dy"
    # JSON array of the 64 secret key bytes of the merkle updater keypair
    MERKLE_UPDATER_SECRET_KEY: Optional[str] = None

    # Wallet sign-in messages older than this are rejected
    AUTH_MESSAGE_TTL_SECONDS: int = 60 * 60 * 24

    DISTRIBUTION_ALERTS_GROUP_CHATID: Optional[str] = None
    SYSTEM_ERROR_ALERTS_GROUP_CHATID: Optional[str] = None
    TELEGRAM_TOKEN: Optional[str] = None

    # Seq log
    SEQ_SERVER_URL: Optional[str] = None
    SEQ_SERVER_API_KEY: Optional[str] = None

    @field_validator("SOLANA_RPC_URL", mode="before")
    def assemble_rpc_url(cls, v: str | None, info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v
        if info.data.get("SOLANA_NETWORK") == "mainnet-beta":
            return "https://api.mainnet-beta.solana.com"
        return "https://api.devnet.solana.com"

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: str | None, info: ValidationInfo) -> Any:
        if isinstance(v, str):
            return v
        return str(
            PostgresDsn.build(
                scheme="postgresql+psycopg",
                username=info.data.get("POSTGRES_USER"),
                password=info.data.get("POSTGRES_PASSWORD"),
                host=info.data.get("POSTGRES_SERVER"),
                path=f"{info.data.get('POSTGRES_DB') or ''}",
            )
        )

    class Config:

        case_sensitive = True
        env_file = "../.env"
        extra = "allow"
        validate_default = True


settings = Settings()
