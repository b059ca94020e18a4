"""
AuthService: the operations the HTTP layer calls.

- login / register: start a new family and hand out the first pair
- refresh: RotationProtocol.rotate
- logout: LogoutHandler.logout (never raises)
- sign_out_everywhere / revoke_family: explicit security actions
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from models.refresh_token import RefreshToken
from models.token_store import RefreshTokenStore
from services.issuer import TokenIssuer
from services.logout import LogoutHandler
from services.revocation import RevocationService
from services.rotation import RotationProtocol, TokenPair

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        issuer: TokenIssuer,
        store: RefreshTokenStore,
        rotation: RotationProtocol,
        revocation: RevocationService,
        logout_handler: LogoutHandler,
    ):
        self.issuer = issuer
        self.store = store
        self.rotation = rotation
        self.revocation = revocation
        self.logout_handler = logout_handler

    @property
    def settings(self):
        return self.issuer.settings

    def _start_family(self, user_id: str, claims: Dict[str, Any]) -> TokenPair:
        family_id = self.issuer.new_family_id()
        access_token = self.issuer.issue_access_token(user_id, claims)
        refresh_token, jti = self.issuer.issue_refresh_token(user_id, claims, family_id)
        logger.info("started refresh token family %s for user %s", family_id, user_id)
        return TokenPair(access_token=access_token, refresh_token=refresh_token, family_id=family_id, jti=jti)

    def login(self, user_id: str, claims: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._start_family(str(user_id), claims or {}).as_dict()

    def register(self, user_id: str, claims: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Same contract as login, called once the account exists."""
        return self._start_family(str(user_id), claims or {}).as_dict()

    def refresh(self, raw_refresh_token: str) -> Dict[str, Any]:
        return self.rotation.rotate(raw_refresh_token).as_dict()

    def logout(self, raw_refresh_token: Optional[str] = None) -> None:
        self.logout_handler.logout(raw_refresh_token)

    def sign_out_everywhere(self, user_id: str) -> int:
        return self.revocation.revoke_user(str(user_id))

    def revoke_family(self, family_id: str) -> int:
        return self.revocation.revoke_family(family_id, reason="administrative")

    def family_records(self, family_id: str) -> List[RefreshToken]:
        return self.store.list_family(family_id)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        return self.issuer.access_codec.decode(token)
