import logging
import time
from typing import Annotated, Callable, Generator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlmodel import Session, select

from core.config import settings
from models.user import User
from notifications import telegram_bot
from schemas.wallet_auth import WalletAuth
from services.claim_ledger import ClaimLedger
from services.rate_limit_service import RateLimitService
from services.yap_program_service import YapProgramService, create_program_service
from utils.web3_utils import parse_auth_timestamp, verify_signature

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Generator[Session, None, None]:
    with Session(request.app.state.engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]


def get_program_service() -> YapProgramService:
    return create_program_service()


ProgramServiceDep = Annotated[YapProgramService, Depends(get_program_service)]


def get_rate_limit_service(program: ProgramServiceDep) -> RateLimitService:
    return RateLimitService(program)


RateLimitServiceDep = Annotated[RateLimitService, Depends(get_rate_limit_service)]


def get_claim_ledger(session: SessionDep) -> ClaimLedger:
    return ClaimLedger(session)


ClaimLedgerDep = Annotated[ClaimLedger, Depends(get_claim_ledger)]


def get_current_user(
    session: SessionDep,
    x_wallet_address: Annotated[Optional[str], Header()] = None,
    x_wallet_signature: Annotated[Optional[str], Header()] = None,
    x_wallet_message: Annotated[Optional[str], Header()] = None,
) -> User:
    if not (x_wallet_address and x_wallet_signature and x_wallet_message):
        raise HTTPException(status_code=401, detail="Unauthorized")

    # headers cannot carry raw newlines
    message = x_wallet_message.replace("\\n", "\n")
    timestamp = parse_auth_timestamp(message)
    if timestamp is None:
        raise HTTPException(status_code=401, detail="Invalid sign-in message")
    if abs(int(time.time()) - timestamp) > settings.AUTH_MESSAGE_TTL_SECONDS:
        raise HTTPException(status_code=401, detail="Sign-in message expired")

    auth = WalletAuth(
        message=message, signature=x_wallet_signature, wallet_address=x_wallet_address
    )
    if not verify_signature(auth.message, auth.signature, auth.wallet_address):
        raise HTTPException(status_code=401, detail="Invalid signature")

    user = session.exec(
        select(User).where(User.wallet_address == auth.wallet_address)
    ).first()
    if user is None:
        logger.info("Signed-in wallet %s has no account", auth.wallet_address)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_notifier() -> Callable[[str], None]:
    return telegram_bot.send_alert_sync


NotifierDep = Annotated[Callable[[str], None], Depends(get_notifier)]
