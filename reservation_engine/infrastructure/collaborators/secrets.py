import os

from reservation_engine.infrastructure.collaborators.interfaces import SecretProvider


class EnvSecretProvider(SecretProvider):
    """
    Reads ``RESERVATION_SECRET_<STAGE>``, falling back to
    ``RESERVATION_SECRET``. Looked up on every call so a rotated
    secret is picked up by the next invocation.
    """

    def __init__(self, stage: str):
        self.stage = stage

    def get_secret(self) -> str:
        stage_key = f"RESERVATION_SECRET_{self.stage.upper()}"
        secret = os.getenv(stage_key) or os.getenv("RESERVATION_SECRET")
        if not secret:
            raise RuntimeError(
                f"Signing secret not configured. Set {stage_key} or RESERVATION_SECRET."
            )
        return secret


class StaticSecretProvider(SecretProvider):

    def __init__(self, secret: str):
        self._secret = secret

    def get_secret(self) -> str:
        return self._secret
