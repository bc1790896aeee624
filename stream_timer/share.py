import logging
from urllib.parse import urlencode

import requests
import requests.exceptions

from stream_timer.schedule import Section

log = logging.getLogger(__name__)

# --- Global Configurations ---
TIMEOUT = 5
CREATE_TOKEN_PATH = "/api/create_token"
DISPLAY_PATH = "/display"
HEADERS = {
    'User-Agent': 'stream-timer-share/1.0',
    'Accept': 'application/json',
}


def build_share_url(base_url, token):
    """Display URL carrying the token as a query parameter."""
    return f"{base_url.rstrip('/')}{DISPLAY_PATH}?{urlencode({'token': token})}"


def request_token(base_url, sections, timeout=TIMEOUT, retries=1, session=None):
    """Asks a running server to sign the given sections.

    Network errors and timeouts are retried ``retries`` more times. Returns
    the token, or None when the server is unreachable, refuses the request
    or answers without a token.
    """
    http = session or requests
    url = f"{base_url.rstrip('/')}{CREATE_TOKEN_PATH}"
    body = {'sections': [s.to_dict() if isinstance(s, Section) else s for s in sections]}

    for attempt in range(retries + 1):
        try:
            response = http.post(url, json=body, headers=HEADERS, timeout=timeout)
            response.raise_for_status()
            data = response.json()
            token = data.get('token') if isinstance(data, dict) else None
            if not token:
                log.warning(f"Server at {url} answered without a token")
            return token or None
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            log.warning(f"Token request refused by {url}: status {status}")
            return None
        except ValueError:
            log.warning(f"Server at {url} returned a response that is not JSON")
            return None
        except requests.exceptions.RequestException as e:
            if attempt < retries:
                log.warning(f"Token request to {url} failed ({e}), retrying")
                continue
            log.warning(f"Token request to {url} failed after {attempt + 1} attempt(s): {e}")
            return None
    return None
