from __future__ import annotations

from typing import Optional

from models.db_storage import DBStorage
from models.token_store import RefreshTokenStore
from services.auth_service import AuthService
from services.issuer import TokenIssuer
from services.logout import LogoutHandler
from services.revocation import RevocationService
from services.rotation import RotationProtocol
from services.settings import TokenSettings
from utils.security import Clock


def build_auth_service(settings: TokenSettings, storage: DBStorage, clock: Optional[Clock] = None) -> AuthService:
    """Wire the token services around one store."""
    store = RefreshTokenStore(storage)
    issuer = TokenIssuer(settings, store, clock=clock)
    revocation = RevocationService(store)
    return AuthService(
        issuer=issuer,
        store=store,
        rotation=RotationProtocol(issuer, store, revocation),
        revocation=revocation,
        logout_handler=LogoutHandler(issuer.refresh_codec, store),
    )


__all__ = ["AuthService", "TokenSettings", "build_auth_service"]
