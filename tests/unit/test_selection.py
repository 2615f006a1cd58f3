"""Unit tests for winner ranking."""

from __future__ import annotations

from itertools import permutations

from livebid.auction.selection import rank_bids, select_winner

from conftest import make_bid


class TestSelectWinner:
    def test_highest_amount_wins(self):
        bids = [make_bid("b1", "u1", 100), make_bid("b2", "u2", 300), make_bid("b3", "u3", 200)]

        assert select_winner(bids).bid_id == "b2"

    def test_earliest_placement_breaks_ties(self):
        """(A,100,t1), (B,150,t2), (C,150,t1) -> C."""
        bids = [
            make_bid("a", "A", 100, minutes=1),
            make_bid("b", "B", 150, minutes=2),
            make_bid("c", "C", 150, minutes=1),
        ]

        assert select_winner(bids).bidder_id == "C"

    def test_bid_id_breaks_exact_ties(self):
        bids = [make_bid("bid-9", "u1", 150, minutes=1), make_bid("bid-2", "u2", 150, minutes=1)]

        assert select_winner(bids).bid_id == "bid-2"

    def test_result_is_stable_under_reordering(self):
        bids = [
            make_bid("a", "A", 100, minutes=1),
            make_bid("b", "B", 150, minutes=2),
            make_bid("c", "C", 150, minutes=1),
            make_bid("d", "D", 150, minutes=1),
            make_bid("e", "E", 20, minutes=0),
        ]

        winners = {select_winner(list(order)).bid_id for order in permutations(bids)}

        assert winners == {"c"}

    def test_empty_input_has_no_winner(self):
        assert select_winner([]) is None

    def test_rank_bids_orders_full_set(self):
        bids = [
            make_bid("a", "A", 100, minutes=1),
            make_bid("b", "B", 150, minutes=2),
            make_bid("c", "C", 150, minutes=1),
        ]

        assert [bid.bid_id for bid in rank_bids(bids)] == ["c", "b", "a"]
