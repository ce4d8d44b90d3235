"""
HTTP clients for the notification providers (Resend email, Twilio SMS/voice).

Each client owns a ``requests.Session``; create once at process start and
close on shutdown (both support ``with``).

``timeout`` applies to connecting and, separately, to each wait for response
bytes. It is not a deadline on the whole call: a provider that keeps
trickling bytes can hold a send for longer.
"""
from typing import Any, Dict, Optional

import requests

from .exceptions import ProviderError, ProviderTimeout


RESEND_API_URL = "https://api.resend.com"
TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


def _error_detail(response: requests.Response) -> str:
    """Best-effort provider error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason or "").strip()[:300]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class _HttpProvider:
    name = "provider"

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self.session.post(url, timeout=(self.timeout, self.timeout), **kwargs)
        except requests.ConnectTimeout as e:
            raise ProviderTimeout(self.name, f"could not connect within {self.timeout}s") from e
        except requests.Timeout as e:
            raise ProviderTimeout(self.name, f"read stalled for {self.timeout}s") from e
        except requests.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        if not response.ok:
            raise ProviderError(self.name, _error_detail(response), status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, "response was not JSON", status_code=response.status_code) from e

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ResendClient(_HttpProvider):
    """Email provider: ``send(from, to, subject, html) -> id``"""

    name = "resend"

    def __init__(self, api_key: str, timeout: float = 10.0, base_url: str = RESEND_API_URL,
                 session: Optional[requests.Session] = None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip("/")
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def send(self, sender: str, to: str, subject: str, html: str) -> str:
        data = self._post(
            f"{self.base_url}/emails",
            json={"from": sender, "to": [to], "subject": subject, "html": html},
        )
        message_id = data.get("id")
        if not message_id:
            raise ProviderError(self.name, f"response missing message id: {data}")
        return str(message_id)


class TwilioClient(_HttpProvider):
    """SMS and voice provider: ``send_sms`` / ``send_call`` return the resource SID"""

    name = "twilio"

    def __init__(self, account_sid: str, auth_token: str, timeout: float = 10.0,
                 base_url: str = TWILIO_API_URL, session: Optional[requests.Session] = None):
        super().__init__(timeout=timeout, session=session)
        self.account_sid = account_sid
        self.base_url = base_url.rstrip("/")
        self.session.auth = (account_sid, auth_token)

    def _account_url(self, resource: str) -> str:
        return f"{self.base_url}/Accounts/{self.account_sid}/{resource}.json"

    def _sid(self, data: Dict[str, Any]) -> str:
        sid = data.get("sid")
        if not sid:
            raise ProviderError(self.name, f"response missing sid: {data}")
        return str(sid)

    def send_sms(self, sender: str, to: str, body: str) -> str:
        data = self._post(self._account_url("Messages"), data={"From": sender, "To": to, "Body": body})
        return self._sid(data)

    def send_call(self, sender: str, to: str, twiml: str) -> str:
        data = self._post(self._account_url("Calls"), data={"From": sender, "To": to, "Twiml": twiml})
        return self._sid(data)
