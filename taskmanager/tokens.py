import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt as pyjwt

from .errors import TokenConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime
    lifetime_minutes: int


class TokenIssuer:
    """
    Signs access tokens for an authenticated ClaimsIdentity

    The payload carries no random claims (no jti), so the same identity,
    issuer, audience, key and `now` always produce the same token. The
    claim layout is the one Flask-JWT-Extended expects when it verifies
    the token on protected routes.
    """

    def __init__(self, secret, issuer, audience, lifetime_minutes, algorithm='HS256'):
        if not secret:
            raise TokenConfigurationError('JWT signing secret is not configured')
        self.secret = secret
        self.issuer = issuer
        self.audience = audience
        self.lifetime_minutes = int(lifetime_minutes)
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config):
        secret = config.get('JWT_SECRET_KEY')
        if not secret:
            logger.error("JWT_SECRET_KEY is missing from the configuration")
            raise TokenConfigurationError('JWT signing secret is not configured')

        return cls(
            secret=secret,
            issuer=config.get('JWT_ISSUER'),
            audience=config.get('JWT_AUDIENCE'),
            lifetime_minutes=config.get('JWT_ACCESS_TOKEN_EXPIRES_MINUTES', 60),
            algorithm=config.get('JWT_ALGORITHM', 'HS256'),
        )

    def build_payload(self, identity, now):
        expires = now + timedelta(minutes=self.lifetime_minutes)
        payload = {
            'sub': identity.name,
            'iss': self.issuer,
            'aud': self.audience,
            'iat': int(now.timestamp()),
            'nbf': int(now.timestamp()),
            'exp': int(expires.timestamp()),
            'type': 'access',
            'fresh': False,
        }
        payload.update(identity.claims())
        return payload, expires

    def issue(self, identity, now=None):
        """
        Sign a token for `identity`, valid from `now` for the configured lifetime

        `now` defaults to the current UTC time; naive datetimes are taken as UTC.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        payload, expires = self.build_payload(identity, now)
        token = pyjwt.encode(payload, self.secret, algorithm=self.algorithm)

        logger.info(f"Issued access token for {identity.name}, expires at {expires.isoformat()}")

        return IssuedToken(token=token, expires_at=expires, lifetime_minutes=self.lifetime_minutes)
