"""
Tests for apex_chain.selector.

Tests cover:
- First responsive candidate wins, later candidates untouched
- Every candidate probed exactly once when all fail
- Probe timeout counts as failure
- Signing identity is stable across acquisitions
- Missing signing credential
"""
from __future__ import annotations

import asyncio

import httpx
import pytest
from eth_account import Account

from apex_core.exceptions import AllEndpointsUnavailableError, SignerNotConfiguredError
from apex_chain.rpc_client import ChainIDMismatchError, ChainRPCClient, RPCError
from apex_chain.selector import EndpointSelector, endpoints_from_urls

URL_A = "https://rpc-a.example/v1/secret-key-a"
URL_B = "https://rpc-b.example"
URL_C = "https://rpc-c.example"


async def hang_forever(*args, **kwargs):
    await asyncio.sleep(3600)


class TestEndpointsFromUrls:
    def test_priority_follows_list_order(self):
        endpoints = endpoints_from_urls([URL_B, URL_A])
        assert [e.url for e in endpoints] == [URL_B, URL_A]
        assert [e.priority for e in endpoints] == [0, 1]

    def test_masked_url_drops_path(self):
        endpoint = endpoints_from_urls([URL_A])[0]
        assert endpoint.masked_url == "https://rpc-a.example"


class TestAcquire:
    @pytest.mark.asyncio
    async def test_first_responsive_candidate_wins(self, network, make_selector, private_key):
        network.add(URL_A, block_number=1)
        network.add(URL_B, block_number=2)
        network.add(URL_C, block_number=3)

        session = await make_selector([URL_A, URL_B, URL_C]).acquire()

        assert session.connection.endpoint.url == URL_A
        assert session.connection.probed_block == 1
        assert session.address == Account.from_key(private_key).address
        assert network.created == [URL_A]

    @pytest.mark.asyncio
    async def test_failed_candidate_is_skipped_and_closed(self, network, make_selector):
        a = network.add(URL_A)
        a.get_block_number.side_effect = RPCError("upstream unavailable")
        network.add(URL_B, block_number=200)
        network.add(URL_C)

        session = await make_selector([URL_A, URL_B, URL_C]).acquire()

        assert session.connection.endpoint.url == URL_B
        assert network.created == [URL_A, URL_B]
        a.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, network, make_selector):
        a = network.add(URL_A)
        a.get_block_number.side_effect = hang_forever
        network.add(URL_B, block_number=100)

        session = await make_selector([URL_A, URL_B], probe_timeout=0.05).acquire()

        assert session.connection.endpoint.url == URL_B
        assert session.connection.probed_block == 100

    @pytest.mark.asyncio
    async def test_all_fail_probes_each_exactly_once(self, network, make_selector):
        for url in (URL_A, URL_B, URL_C):
            network.add(url).get_block_number.side_effect = RPCError(f"{url} down")

        with pytest.raises(AllEndpointsUnavailableError) as exc_info:
            await make_selector([URL_A, URL_B, URL_C]).acquire()

        assert network.created == [URL_A, URL_B, URL_C]
        for client in network.clients.values():
            client.get_block_number.assert_awaited_once()
        assert len(exc_info.value.errors) == 3
        assert exc_info.value.details["endpoints_tried"] == 3
        assert exc_info.value.http_status == 503

    @pytest.mark.asyncio
    async def test_all_fail_error_masks_urls(self, network, make_selector):
        network.add(URL_A).get_block_number.side_effect = hang_forever

        with pytest.raises(AllEndpointsUnavailableError) as exc_info:
            await make_selector([URL_A]).acquire()

        assert "secret-key-a" not in exc_info.value.message
        assert exc_info.value.errors[0][1].startswith("Timeout after")

    @pytest.mark.asyncio
    async def test_http_error_does_not_leak_url_path(self, private_key, caplog):
        secret_url = "https://rpc.example/v2/SECRETAPIKEY"
        transport = httpx.MockTransport(lambda request: httpx.Response(403))
        selector = EndpointSelector(
            endpoints_from_urls([secret_url]),
            chain_id=1,
            private_key=private_key,
            client_factory=lambda endpoint: ChainRPCClient(
                endpoint.url, chain_id=1, transport=transport
            ),
        )
        caplog.set_level("DEBUG", logger="apex_chain")

        with pytest.raises(AllEndpointsUnavailableError) as exc_info:
            await selector.acquire()

        assert "SECRETAPIKEY" not in exc_info.value.message
        assert "SECRETAPIKEY" not in caplog.text
        assert exc_info.value.errors == [("https://rpc.example", "HTTP 403 from https://rpc.example")]

    @pytest.mark.asyncio
    async def test_repeated_acquisition_yields_same_address(self, network, make_selector):
        network.add(URL_A)
        selector = make_selector([URL_A])

        first = await selector.acquire()
        second = await selector.acquire()

        assert first.address == second.address
        assert first is not second

    @pytest.mark.asyncio
    async def test_explicit_candidates_override_configured_list(self, network, make_selector):
        network.add(URL_A)
        network.add(URL_C)

        session = await make_selector([URL_A]).acquire(endpoints_from_urls([URL_C]))

        assert session.connection.endpoint.url == URL_C

    @pytest.mark.asyncio
    async def test_missing_signer_raises_before_probing(self, network, make_selector):
        network.add(URL_A)
        selector = make_selector([URL_A], key=None)

        assert selector.has_signer is False
        with pytest.raises(SignerNotConfiguredError):
            await selector.acquire()
        assert network.created == []

    @pytest.mark.asyncio
    async def test_private_key_never_logged(self, network, make_selector, private_key, caplog):
        network.add(URL_A)
        caplog.set_level("DEBUG")

        session = await make_selector([URL_A]).acquire()

        assert session.address in caplog.text
        assert private_key[2:] not in caplog.text
        assert private_key[2:] not in repr(session)


class TestChainIdVerification:
    @pytest.mark.asyncio
    async def test_mismatch_fails_probe(self, network, private_key):
        a = network.add(URL_A)
        a.verify_chain_id.side_effect = ChainIDMismatchError(URL_A, 1, 5)
        network.add(URL_B)

        selector = EndpointSelector(
            endpoints_from_urls([URL_A, URL_B]),
            chain_id=1,
            private_key=private_key,
            verify_chain_id=True,
            client_factory=network.factory,
        )
        session = await selector.acquire()

        assert session.connection.endpoint.url == URL_B
        network.clients[URL_B].verify_chain_id.assert_awaited_once()
