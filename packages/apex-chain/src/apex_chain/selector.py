"""
Endpoint selection with sequential first-success probing.

Candidates are probed strictly in configured order. The first endpoint whose
liveness probe (current block height) answers within the probe timeout wins
and gets a signing identity bound to it; later candidates are never touched.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional, Sequence

from apex_core.config import ApexSettings
from apex_core.exceptions import AllEndpointsUnavailableError, SignerNotConfiguredError

from .models import EndpointDescriptor
from .rpc_client import ChainRPCClient
from .signer import SigningIdentity

logger = logging.getLogger(__name__)

ClientFactory = Callable[[EndpointDescriptor], ChainRPCClient]


@dataclass(frozen=True)
class Connection:
    """A live client bound to exactly one endpoint."""
    endpoint: EndpointDescriptor
    client: ChainRPCClient = field(repr=False, compare=False)
    chain_id: int = 1
    probed_block: int = 0


@dataclass(frozen=True)
class ChainSession:
    """The process-wide Connection and SigningIdentity pair.

    Swapped as one object so the two are always present or absent together.
    """
    connection: Connection
    identity: SigningIdentity

    @property
    def client(self) -> ChainRPCClient:
        return self.connection.client

    @property
    def address(self) -> str:
        return self.identity.address

    async def close(self) -> None:
        await self.connection.client.close()


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of probing one candidate."""
    endpoint: EndpointDescriptor
    connection: Optional[Connection] = None
    error: Optional[str] = None


def endpoints_from_urls(urls: Sequence[str]) -> List[EndpointDescriptor]:
    """Build descriptors whose priority follows list order."""
    return [EndpointDescriptor(url=url, priority=i) for i, url in enumerate(urls)]


class EndpointSelector:
    """Picks the first responsive endpoint and binds the signing identity."""

    def __init__(
        self,
        candidates: Sequence[EndpointDescriptor],
        chain_id: int,
        private_key: Optional[str],
        probe_timeout_seconds: float = 5.0,
        rpc_timeout_seconds: float = 15.0,
        verify_chain_id: bool = False,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._candidates = sorted(candidates, key=lambda e: e.priority)
        self._chain_id = chain_id
        self._private_key = private_key
        self._probe_timeout = probe_timeout_seconds
        self._rpc_timeout = rpc_timeout_seconds
        self._verify_chain_id = verify_chain_id
        self._client_factory = client_factory or self._default_client

    @classmethod
    def from_settings(
        cls,
        settings: ApexSettings,
        client_factory: Optional[ClientFactory] = None,
    ) -> "EndpointSelector":
        private_key = (
            settings.signer_private_key.get_secret_value()
            if settings.signer_private_key is not None
            else None
        )
        return cls(
            candidates=endpoints_from_urls(settings.rpc_urls),
            chain_id=settings.chain_id,
            private_key=private_key,
            probe_timeout_seconds=settings.probe_timeout_seconds,
            rpc_timeout_seconds=settings.rpc_timeout_seconds,
            verify_chain_id=settings.verify_chain_id,
            client_factory=client_factory,
        )

    @property
    def candidates(self) -> List[EndpointDescriptor]:
        return list(self._candidates)

    @property
    def has_signer(self) -> bool:
        return self._private_key is not None

    def _default_client(self, endpoint: EndpointDescriptor) -> ChainRPCClient:
        return ChainRPCClient(
            endpoint.url,
            chain_id=self._chain_id,
            timeout_seconds=self._rpc_timeout,
        )

    async def _liveness(self, client: ChainRPCClient) -> int:
        block_number = await client.get_block_number()
        if self._verify_chain_id:
            await client.verify_chain_id()
        return block_number

    async def probe(self, endpoint: EndpointDescriptor) -> ProbeOutcome:
        """Probe a single candidate; the client is discarded on failure."""
        logger.info(f"Trying RPC: {endpoint.masked_url}")
        client = self._client_factory(endpoint)
        try:
            block_number = await asyncio.wait_for(
                self._liveness(client),
                timeout=self._probe_timeout,
            )
        except asyncio.TimeoutError:
            error = f"Timeout after {self._probe_timeout}s"
        except Exception as e:
            error = (str(e) or type(e).__name__).replace(endpoint.url, endpoint.masked_url)
        else:
            logger.info(f"Endpoint {endpoint.masked_url} alive at block {block_number}")
            return ProbeOutcome(
                endpoint=endpoint,
                connection=Connection(
                    endpoint=endpoint,
                    client=client,
                    chain_id=self._chain_id,
                    probed_block=block_number,
                ),
            )

        logger.warning(f"Probe failed for {endpoint.masked_url}: {error[:120]}")
        await client.close()
        return ProbeOutcome(endpoint=endpoint, error=error)

    async def _probe_in_order(
        self,
        candidates: Sequence[EndpointDescriptor],
    ) -> AsyncIterator[ProbeOutcome]:
        for endpoint in candidates:
            yield await self.probe(endpoint)

    async def acquire(
        self,
        candidates: Optional[Sequence[EndpointDescriptor]] = None,
    ) -> ChainSession:
        """
        Return a session on the first responsive candidate.

        Raises:
            SignerNotConfiguredError: If no signing credential is configured
            AllEndpointsUnavailableError: If every candidate failed its probe
        """
        if self._private_key is None:
            raise SignerNotConfiguredError()

        ordered = self._candidates if candidates is None else list(candidates)
        errors: List[tuple[str, str]] = []

        async with aclosing(self._probe_in_order(ordered)) as outcomes:
            async for outcome in outcomes:
                if outcome.connection is None:
                    errors.append((outcome.endpoint.masked_url, outcome.error or "unknown"))
                    continue

                identity = SigningIdentity.from_private_key(self._private_key)
                logger.info(
                    f"Connected: {outcome.endpoint.masked_url}",
                    extra={"signer_address": identity.address},
                )
                logger.info(f"Wallet: {identity.address}")
                return ChainSession(connection=outcome.connection, identity=identity)

        logger.error(f"All {len(ordered)} RPC endpoints failed")
        raise AllEndpointsUnavailableError(errors)
