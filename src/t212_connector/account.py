"""Account context from the environment"""

import os
import re
import uuid
import logging
from typing import Mapping, Optional

from broker_gateway import AccountContext, AccountContextProvider, SetupError

UUID_PATTERN = re.compile(r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$')


def _clean(value: Optional[str]) -> str:
    """Values copied out of browser storage arrive JSON-quoted"""
    return (value or '').replace('"', '').strip()


class EnvAccountContextProvider(AccountContextProvider):
    """Read account id, trading mode, session cookies and device id from environment variables

    T212_ACCOUNT_ID, T212_TRADING_MODE (LIVE or DEMO), T212_SESSION_COOKIE
    (the raw Cookie header) and optionally T212_DEVICE_ID.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None, logger: Optional[logging.Logger] = None):
        self.environ = environ if environ is not None else os.environ
        self.logger = logger or logging.getLogger(__name__)

    async def get_context(self) -> AccountContext:
        mode = _clean(self.environ.get('T212_TRADING_MODE')).upper()
        account_id = _clean(self.environ.get('T212_ACCOUNT_ID'))
        session_token = (self.environ.get('T212_SESSION_COOKIE') or '').strip()

        if not mode or not account_id:
            raise SetupError("Could not determine account mode or ID. Set T212_TRADING_MODE and T212_ACCOUNT_ID.")

        if mode not in ('LIVE', 'DEMO'):
            raise SetupError(f"Invalid account info: Mode='{mode}', AccountID='{account_id}'")

        if not session_token:
            raise SetupError("No Trading 212 session cookies found. Set T212_SESSION_COOKIE after logging in.")

        device_id = _clean(self.environ.get('T212_DEVICE_ID'))
        if not UUID_PATTERN.match(device_id):
            device_id = str(uuid.uuid4())
            self.logger.warning("No valid T212_DEVICE_ID found. Generated a new one for this session.")

        return AccountContext(
            account_id=account_id,
            trading_mode=mode,
            session_token=session_token,
            device_id=device_id
        )
