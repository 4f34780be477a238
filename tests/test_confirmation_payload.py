from __future__ import annotations

import unittest

from pydantic import ValidationError

from app.domain.reconciliation import MatchAction
from app.schemas.uploads import ConfirmationRequest


class TestConfirmationRequest(unittest.TestCase):
    def test_list_payload(self) -> None:
        request = ConfirmationRequest.model_validate(
            {
                "markets": [{"name": "Atlanta", "action": "create", "proposedId": 694}],
                "stores": [{"name": "Main St", "market": "Atlanta", "action": "map", "existingId": 31}],
                "advisors": [{"name": "Jane Doe", "action": "map_user", "existing_user_id": 5}],
            }
        )

        decisions = request.to_decisions()

        self.assertEqual(decisions.markets[0].proposed_id, 694)
        self.assertEqual(decisions.stores[0].existing_id, 31)
        self.assertEqual(decisions.stores[0].key, "Atlanta:Main St")
        self.assertEqual(decisions.advisors[0].existing_user_id, 5)

    def test_keyed_object_payload_is_normalized_to_list(self) -> None:
        request = ConfirmationRequest.model_validate(
            {
                "markets": {"Atlanta": {"action": "map", "existing_id": 7}},
                "stores": {"Atlanta:Main St": {"action": "create"}},
                "advisors": {"Jane Doe": {"action": "create", "proposedEmail": "jane@shop.test"}},
            }
        )

        decisions = request.to_decisions()

        self.assertEqual(decisions.markets[0].name, "Atlanta")
        self.assertEqual(decisions.markets[0].existing_id, 7)
        self.assertEqual(decisions.stores[0].name, "Main St")
        self.assertEqual(decisions.stores[0].market, "Atlanta")
        self.assertEqual(decisions.advisors[0].action, MatchAction.CREATE_USER)
        self.assertEqual(decisions.advisors[0].proposed_email, "jane@shop.test")

    def test_list_and_object_forms_are_equivalent(self) -> None:
        as_list = ConfirmationRequest.model_validate(
            {"advisors": [{"name": "Jane Doe", "action": "map", "existingId": 5}]}
        )
        as_object = ConfirmationRequest.model_validate(
            {"advisors": {"Jane Doe": {"action": "map_user", "existingUserId": 5}}}
        )

        self.assertEqual(as_list.to_decisions(), as_object.to_decisions())

    def test_missing_collections_default_to_empty(self) -> None:
        decisions = ConfirmationRequest.model_validate({"markets": None}).to_decisions()

        self.assertEqual(decisions.markets, ())
        self.assertEqual(decisions.stores, ())
        self.assertEqual(decisions.advisors, ())

    def test_non_numeric_proposed_market_id_is_dropped(self) -> None:
        request = ConfirmationRequest.model_validate(
            {
                "markets": {
                    "Atlanta": {"action": "create", "proposedId": "new_atlanta"},
                    "Macon": {"action": "create", "proposedId": "695"},
                    "Savannah": {"action": "create", "proposed_id": 696.0},
                }
            }
        )

        proposed = [m.proposed_id for m in request.to_decisions().markets]

        self.assertEqual(proposed, [None, 695, 696])

    def test_store_key_with_colons_uses_explicit_fields(self) -> None:
        request = ConfirmationRequest.model_validate(
            {
                "stores": {
                    "A:B:C": {"action": "create", "market": "A:B"},
                    "A:B:D": {"action": "create", "name": "B:D"},
                    "X:Y:Z": {"action": "create"},
                }
            }
        )

        stores = [(s.market, s.name) for s in request.to_decisions().stores]

        self.assertEqual(stores, [("A:B", "C"), ("A", "B:D"), ("X", "Y:Z")])

    def test_unknown_action_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            ConfirmationRequest.model_validate({"markets": [{"name": "Atlanta", "action": "merge"}]})


if __name__ == "__main__":
    unittest.main()
