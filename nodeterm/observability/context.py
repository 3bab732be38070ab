"""Application identity used to enrich logs.

The account id is looked up once from the EC2 instance identity document.
IMDSv1 is tried first; a 401 means IMDSv2 is enforced and a session token
is fetched before retrying.  Any failure yields ``None``.
"""

from __future__ import annotations

import httpx
import structlog

APPLICATION_NAME = "nomad-node-term-handler"

_IMDS_BASE = "http://169.254.169.254/latest"
_IDENTITY_URL = f"{_IMDS_BASE}/dynamic/instance-identity/document"
_TOKEN_URL = f"{_IMDS_BASE}/api/token"
_TOKEN_TTL_SECONDS = 21600

_log = structlog.get_logger(component="observability.context")


def application_version() -> str:
    from nodeterm import __version__

    return __version__


async def fetch_account_id(timeout: float = 1.0, client: httpx.AsyncClient | None = None) -> str | None:
    """Return the AWS account id of the instance this process runs on."""
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        response = await http.get(_IDENTITY_URL)
        if response.status_code == 401:
            token_response = await http.put(
                _TOKEN_URL,
                headers={"X-aws-ec2-metadata-token-ttl-seconds": str(_TOKEN_TTL_SECONDS)},
            )
            token_response.raise_for_status()
            response = await http.get(
                _IDENTITY_URL,
                headers={"X-aws-ec2-metadata-token": token_response.text},
            )
        response.raise_for_status()
        account_id = response.json().get("accountId")
        return str(account_id) if account_id else None
    except (httpx.HTTPError, ValueError) as exc:
        _log.debug("account_id_lookup_failed", error=str(exc))
        return None
    finally:
        if owns_client:
            await http.aclose()
