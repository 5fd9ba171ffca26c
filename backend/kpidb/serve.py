"""Run the KPI automation API under uvicorn.

Configuration is environment driven: HOST, PORT, RELOAD, LOG_LEVEL,
FORWARDED_ALLOW_IPS and the optional SSL_CERTFILE / SSL_KEYFILE pair.
"""

import logging
import os
from typing import Dict

import uvicorn

_TRUTHY = {"1", "true", "yes", "on"}


def _tls_options() -> Dict[str, str]:
    certfile = os.getenv("SSL_CERTFILE")
    keyfile = os.getenv("SSL_KEYFILE")
    if not certfile and not keyfile:
        return {}
    if not (certfile and keyfile):
        raise RuntimeError("SSL_CERTFILE and SSL_KEYFILE must be set together")
    return {"ssl_certfile": certfile, "ssl_keyfile": keyfile}


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "kpidb.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() in _TRUTHY,
        log_level=log_level,
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_tls_options(),
    )


if __name__ == "__main__":
    main()
