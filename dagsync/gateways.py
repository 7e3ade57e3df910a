"""Pre-warm public IPFS gateways for a published directory."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from .config import config
from .exceptions import DagSyncConfigError
from .models import ContentAddress
from .store import ContentStore

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of one gateway request."""

    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 400

    def to_dict(self) -> dict:
        return {"url": self.url, "status_code": self.status_code, "error": self.error}


def expand_template(template: str, address: ContentAddress) -> str:
    """Substitute the address encodings into a gateway URL template.

    Placeholders: ``{base32}`` (CIDv1 base32), ``{v0}`` (CIDv0, or the
    address as given when it has no CIDv0 form) and ``{cid}``.

    Raises:
        DagSyncConfigError: If the template has an unknown placeholder or
            unbalanced braces

    Examples:
        >>> addr = ContentAddress.parse("QmUNLLsPACCz1vLxQVkXqqLX5R1X345qqfHbsf67hvA3Nn")
        >>> expand_template("https://ipfs.io/ipfs/{v0}", addr)
        'https://ipfs.io/ipfs/QmUNLLsPACCz1vLxQVkXqqLX5R1X345qqfHbsf67hvA3Nn'
    """
    try:
        v0 = address.to_v0()
    except ValueError:
        v0 = str(address)
    try:
        return template.format(base32=address.to_base32(), v0=v0, cid=str(address))
    except KeyError as e:
        raise DagSyncConfigError(
            f"Unknown placeholder {{{e.args[0]}}} in gateway template {template!r}"
        ) from e
    except (AttributeError, IndexError, ValueError) as e:
        raise DagSyncConfigError(f"Invalid gateway template {template!r}: {e}") from e


class GatewayProber:
    """Issues read-only GETs so gateways cache a freshly published tree.

    Requests go to the root and to each of its immediate children. Failures
    are logged and reported in the results, never raised.
    """

    def __init__(
        self,
        store: ContentStore,
        templates: Optional[Iterable[str]] = None,
        timeout: float = 60.0,
        max_workers: int = 4,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the prober.

        Args:
            store: Content store used to list the root's children
            templates: Gateway URL templates (uses config if not provided)
            timeout: Per-request timeout in seconds
            max_workers: Number of concurrent requests
            transport: Optional httpx transport (used by tests)
        """
        self.store = store
        self.templates = tuple(templates) if templates is not None else config.gateways
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self._transport = transport

    def urls_for(
        self, address: ContentAddress, templates: Optional[Iterable[str]] = None
    ) -> list[str]:
        """Build the gateway URLs for the root and its immediate children.

        Raises:
            DagSyncConfigError: If a template cannot be expanded
        """
        templates = self.templates if templates is None else tuple(templates)
        directory = self.store.fetch_directory(address)
        targets = [address] + [link.target for link in directory.links]
        return [
            expand_template(template, target)
            for target in targets
            for template in templates
        ]

    def prime(self, address: ContentAddress) -> list[ProbeResult]:
        """Request every gateway URL for ``address`` once.

        Templates that cannot be expanded are reported as failed results
        ahead of the requests and are not used.

        Returns:
            One ProbeResult per unusable template, then one per URL in
            request order
        """
        templates = []
        failures = []
        for template in self.templates:
            try:
                expand_template(template, address)
            except DagSyncConfigError as e:
                logger.warning(f"Skipping gateway: {e}")
                failures.append(ProbeResult(url=template, error=str(e)))
            else:
                templates.append(template)

        urls = self.urls_for(address, templates)
        logger.debug(f"Priming {len(urls)} gateway URL(s) for {address}")

        with httpx.Client(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                probes = list(executor.map(lambda url: self._probe(client, url), urls))
        return failures + probes

    def _probe(self, client: httpx.Client, url: str) -> ProbeResult:
        # Only the status matters; the body of large files is not downloaded
        try:
            with client.stream("GET", url) as response:
                status_code = response.status_code
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"GET {url} failed: {e}")
            return ProbeResult(url=url, error=str(e))

        logger.info(f"GET {url} -> {status_code}")
        return ProbeResult(url=url, status_code=status_code)
