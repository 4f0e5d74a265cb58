from pydantic import BaseModel


class WalletAuth(BaseModel):
    message: str
    signature: str
    wallet_address: str
