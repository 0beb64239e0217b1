import os
import logging
from urllib.parse import quote, urljoin
from dotenv import load_dotenv
from typing import Any, Hashable, Mapping, Optional

from .interface import PrizeTransfer
from .utils import open_session, get_jwt_token

logger = logging.getLogger(__name__)


class WalletClient(PrizeTransfer):
    """Pays prizes through an HTTP wallet service."""

    def __init__(self, base_fqdn: Optional[str] = None, timeout: int = 45):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("WALLET_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'WALLET_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        self.timeout = timeout
        session_info = open_session(self.base_url, timeout=timeout)
        if not session_info or len(session_info) != 2:
            raise ValueError("open_session() must return (session, csrf_token)")
        self.session, self.csrf = session_info
        self.jwt = get_jwt_token(self.session, self.base_url, timeout=timeout)

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self.jwt}"}

    @property
    def auth_csrf_headers(self) -> Mapping[str, str]:
        return {**self.auth_headers, "X-CSRFTOKEN": self.csrf}

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers or self.auth_headers,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def balance_of(self, recipient: Hashable) -> int:
        response = self._request(
            "GET", f"/api/v1/wallet/balance/{quote(str(recipient), safe='')}"
        )
        return int(response["balance"])

    def transfer(self, recipient: Hashable, amount: int) -> bool:
        """Send ``amount`` base units to ``recipient``.

        Returns ``True`` only when the service answers with
        ``{"status": "success"}``. HTTP errors propagate as
        :class:`requests.HTTPError`.
        """
        response = self._request(
            "POST",
            "/api/v1/wallet/transfer",
            headers=self.auth_csrf_headers,
            json={"recipient": str(recipient), "amount": str(amount)},
        )
        if not isinstance(response, dict) or response.get("status") != "success":
            message = response.get("message") if isinstance(response, dict) else None
            logger.warning(
                "Wallet transfer rejected" + (f": {message}" if message else "")
            )
            return False
        return True
