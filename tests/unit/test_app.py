"""Unit tests for the HTTP routes and the /ws live channel."""

from __future__ import annotations

from unittest.mock import AsyncMock

import orjson
import pytest
from fastapi.testclient import TestClient

from livebid.auction.models import AuctionStatus, BidderProfile
from livebid.errors import PersistenceError
from livebid.main import app

from conftest import make_auction, make_bid


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _seed(client: TestClient, bids=(), auction=None) -> None:
    store = client.app.state.storage
    client.portal.call(store.create_auction, auction or make_auction())
    for bid in bids:
        client.portal.call(store.create_bid, bid)
    client.portal.call(
        store.create_bidder_profile,
        BidderProfile(user_id="u2", full_name="Bob Stone", email="bob@example.com"),
    )


def _send(ws, event, data) -> None:
    ws.send_text(orjson.dumps({"event": event, "data": data}).decode())


def _receive(ws) -> dict:
    return orjson.loads(ws.receive_text())


class TestMeta:
    def test_ping(self, client):
        response = client.get("/ping")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_root_reports_backend(self, client):
        assert client.get("/").json()["storage_backend"] == "in_memory"

    def test_admin_health(self, client):
        body = client.get("/admin/health").json()

        assert body["status"] == "healthy"
        assert body["connections"] == 0
        assert body["storage"] == {"backend": "in_memory", "reachable": True}

    def test_admin_health_reports_unreachable_storage(self, client):
        client.app.state.storage.ping = AsyncMock(side_effect=PersistenceError("connection refused"))

        body = client.get("/admin/health").json()

        assert body["status"] == "degraded"
        assert body["storage"]["reachable"] is False


class TestWinnerRoute:
    def test_resolves_highest_bid(self, client):
        _seed(client, [make_bid("b1", "u1", 100), make_bid("b2", "u2", 120, minutes=1)])

        body = client.post("/auctions/a1/winner").json()

        assert body["already_resolved"] is False
        assert body["winner"]["bid_id"] == "b2"
        assert body["winner"]["bidder"]["full_name"] == "Bob Stone"
        assert body["winner"]["auction"]["status"] == "ended"

    def test_second_request_reports_recorded_winner(self, client):
        _seed(client, [make_bid("b1", "u2", 100)])
        client.post("/auctions/a1/winner")

        body = client.post("/auctions/a1/winner").json()

        assert body["already_resolved"] is True
        assert body["winner"]["bid_id"] == "b1"

    def test_no_bids(self, client):
        _seed(client)

        body = client.post("/auctions/a1/winner").json()

        assert body == {"auction_id": "a1", "winner": None, "no_bid": True}

    def test_unknown_auction(self, client):
        assert client.post("/auctions/ghost/winner").status_code == 404

    def test_cancelled_auction(self, client):
        _seed(client, [make_bid("b1", "u2", 100)], auction=make_auction(status=AuctionStatus.CANCELLED))

        assert client.post("/auctions/a1/winner").status_code == 409

    def test_recorded_winner_missing_from_storage(self, client):
        _seed(client, auction=make_auction(status=AuctionStatus.ENDED, winning_bid_id="ghost"))

        response = client.post("/auctions/a1/winner")

        assert response.status_code == 500
        assert "ghost" in response.json()["detail"]

    def test_storage_outage(self, client):
        client.app.state.resolver = AsyncMock()
        client.app.state.resolver.resolve = AsyncMock(side_effect=PersistenceError("db down"))

        response = client.post("/auctions/a1/winner")

        assert response.status_code == 503

    def test_get_auction_includes_winner(self, client):
        _seed(client, [make_bid("b1", "u2", 100)])
        client.post("/auctions/a1/winner")

        body = client.get("/auctions/a1").json()

        assert body["auction"]["winning_bid_id"] == "b1"
        assert body["winner"]["bidder"]["email"] == "bob@example.com"


class TestStatusRoute:
    def test_live_to_ended(self, client):
        _seed(client)

        response = client.patch("/auctions/a1/status", json={"status": "ended"})

        assert response.status_code == 200
        assert response.json()["auction"]["status"] == "ended"

    def test_terminal_status_cannot_change(self, client):
        _seed(client, auction=make_auction(status=AuctionStatus.CANCELLED))

        response = client.patch("/auctions/a1/status", json={"status": "live"})

        assert response.status_code == 409

    def test_unknown_status_rejected(self, client):
        _seed(client)

        response = client.patch("/auctions/a1/status", json={"status": "paused"})

        assert response.status_code == 422


class TestLiveChannel:
    def test_join_is_acknowledged(self, client):
        with client.websocket_connect("/ws") as ws:
            _send(ws, "join", "u1")

            assert _receive(ws) == {"event": "joined", "data": {"user_id": "u1"}}
            assert client.get("/admin/connections").json()[0]["user_id"] == "u1"

    def test_bid_is_relayed_and_announced(self, client):
        _seed(client)
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
            _send(alice, "join", "u1")
            _receive(alice)
            _send(bob, "join", "u2")
            _receive(bob)

            _send(
                alice,
                "bidPlaced",
                {"bidder_id": "u1", "auction_id": "a1", "amount": 50, "bidder_name": "Alice"},
            )

            for ws in (alice, bob):
                assert _receive(ws)["event"] == "newBidData"
            assert _receive(alice)["data"]["message"] == "You placed a $50 bid on Vase"
            notification = _receive(bob)["data"]
            assert notification["message"] == "Alice placed a $50 bid on Vase"
            assert notification["link"] == "/single-auction-detail/a1"

    def test_select_winner_is_broadcast(self, client):
        _seed(client, [make_bid("b1", "u2", 100)])
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
            _send(alice, "join", "u1")
            _receive(alice)
            _send(bob, "join", "u2")
            _receive(bob)

            _send(alice, "selectWinner", "a1")

            for ws in (alice, bob):
                frame = _receive(ws)
                assert frame["event"] == "winnerSelected"
                assert frame["data"]["bidder"]["full_name"] == "Bob Stone"

    def test_malformed_frame_is_rejected(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")

            assert _receive(ws) == {"event": "error", "data": {"detail": "frame is not valid JSON"}}

    def test_binary_frame_is_decoded(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b'{"event": "join", "data": "u1"}')

            assert _receive(ws) == {"event": "joined", "data": {"user_id": "u1"}}

    def test_malformed_binary_frame_keeps_socket_open(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\x00\xff")

            assert _receive(ws)["event"] == "error"
            _send(ws, "join", "u1")
            assert _receive(ws)["event"] == "joined"

    def test_invalid_bid_is_rejected(self, client):
        with client.websocket_connect("/ws") as ws:
            _send(ws, "bidPlaced", {"bidder_id": "u1", "auction_id": "a1", "amount": 0, "bidder_name": "A"})

            assert _receive(ws)["event"] == "error"

    def test_unregistered_after_close(self, client):
        with client.websocket_connect("/ws") as ws:
            _send(ws, "join", "u1")
            _receive(ws)

        assert client.get("/admin/connections").json() == []


def test_admin_config_lists_schemas(client):
    body = client.get("/admin/config").json()

    assert body["storage_backend"] == "in_memory"
    assert body["schemas"] == ["bid_event", "join", "select_winner", "status_change"]
