"""Tests for the withdrawal and balance routes."""
from __future__ import annotations

import re

import pytest
from eth_account import Account

from apex_chain.rpc_client import RPCError

DESTINATION = "0x1234567890123456789012345678901234567890"
TX_HASH_RE = re.compile(r"^0x[0-9a-f]{64}$")


class TestWithdraw:
    def test_success_shape(self, client, private_key):
        response = client.post("/withdraw", json={"toAddress": DESTINATION, "amountETH": "0.25"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert TX_HASH_RE.match(body["txHash"])
        assert body["from"] == Account.from_key(private_key).address
        assert body["to"] == DESTINATION
        assert body["amount"] == 0.25
        assert body["blockNumber"] == 100

    def test_alternate_field_names(self, client):
        response = client.post("/withdraw", json={"to": DESTINATION, "amount": 0.1})
        assert response.status_code == 200
        assert response.json()["to"] == DESTINATION

    @pytest.mark.parametrize("path", ["/send-eth", "/coinbase-withdraw", "/transfer"])
    def test_aliases_behave_like_withdraw(self, client, node, path):
        response = client.post(path, json={"toAddress": DESTINATION, "amountETH": "0.1"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        node.client.send_raw_transaction.assert_awaited_once()

    @pytest.mark.parametrize("payload", [
        {},
        {"toAddress": DESTINATION},
        {"amountETH": "0.1"},
        {"toAddress": DESTINATION, "amountETH": "abc"},
        {"toAddress": DESTINATION, "amountETH": "-1"},
    ])
    def test_invalid_input(self, client, node, payload):
        response = client.post("/withdraw", json=payload)

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"
        assert node.connections == 0

    def test_invalid_address(self, client, node):
        response = client.post("/withdraw", json={"toAddress": "0x123", "amountETH": "0.1"})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INVALID_ADDRESS"
        assert body["detail"] == "Invalid Ethereum address"
        assert node.connections == 0

    def test_insufficient_balance_reports_balance(self, client):
        response = client.post("/withdraw", json={"toAddress": DESTINATION, "amountETH": "0.996"})

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "INSUFFICIENT_BALANCE"
        assert body["balance"] == 1.0
        assert body["title"] == "Insufficient Balance"
        assert body["instance"] == "/withdraw"

    def test_network_unavailable(self, client, node):
        node.client.get_block_number.side_effect = RPCError("down")

        response = client.post("/withdraw", json={"toAddress": DESTINATION, "amountETH": "0.1"})

        assert response.status_code == 503
        assert response.json()["error_code"] == "NETWORK_UNAVAILABLE"

    def test_broadcast_rejected(self, client, node):
        node.client.send_raw_transaction.side_effect = RPCError("insufficient funds for gas")

        response = client.post("/withdraw", json={"toAddress": DESTINATION, "amountETH": "0.1"})

        assert response.status_code == 502
        assert response.json()["error_code"] == "SUBMISSION_ERROR"

    def test_confirmation_pending_exposes_hash(self, client, node):
        node.client.get_transaction_receipt.side_effect = RPCError("connection reset")

        response = client.post("/withdraw", json={"toAddress": DESTINATION, "amountETH": "0.1"})

        assert response.status_code == 504
        body = response.json()
        assert body["error_code"] == "CONFIRMATION_PENDING"
        assert TX_HASH_RE.match(body["details"]["tx_hash"])
        assert body["details"]["nonce"] == 0

    def test_signer_not_configured(self, unsigned_client):
        response = unsigned_client.post("/withdraw", json={"toAddress": DESTINATION, "amountETH": "0.1"})

        assert response.status_code == 503
        assert response.json()["error_code"] == "SIGNER_NOT_CONFIGURED"

    @pytest.mark.parametrize("amount", [True, False, ["0.1"], {"value": "0.1"}])
    def test_non_numeric_amount_is_invalid_input(self, client, node, amount):
        node.client.get_balance.return_value = 10 * 10**18

        response = client.post("/withdraw", json={"to": DESTINATION, "amount": amount})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"
        assert node.connections == 0
        node.client.send_raw_transaction.assert_not_awaited()

    @pytest.mark.parametrize("destination", [12345, ["0x123"], {"address": DESTINATION}])
    def test_non_string_destination_is_invalid_address(self, client, node, destination):
        response = client.post("/withdraw", json={"to": destination, "amount": "0.1"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_ADDRESS"
        assert node.connections == 0

    def test_sub_wei_amount_reported_before_bad_address(self, client, node):
        response = client.post(
            "/withdraw", json={"toAddress": "0x123", "amountETH": "0.0000000000000000001"}
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"
        assert node.connections == 0

    def test_non_object_body_is_validation_error(self, client):
        response = client.post("/withdraw", json=["0.1"])

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_problem_document_headers(self, client):
        response = client.post(
            "/withdraw",
            json={"toAddress": "0x123", "amountETH": "0.1"},
            headers={"X-Request-ID": "req_fixed"},
        )

        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.headers["X-Request-ID"] == "req_fixed"
        assert response.json()["request_id"] == "req_fixed"


class TestBalance:
    def test_balance_formatted_to_six_places(self, client, node, private_key):
        node.client.get_balance.return_value = 1234567891 * 10**9

        response = client.get("/balance")

        assert response.status_code == 200
        assert response.json() == {
            "address": Account.from_key(private_key).address,
            "balance": "1.234568",
        }

    def test_balance_network_failure(self, client, node):
        node.client.get_balance.side_effect = RPCError("down")

        response = client.get("/balance")

        assert response.status_code == 503
        assert response.json()["error_code"] == "NETWORK_UNAVAILABLE"
