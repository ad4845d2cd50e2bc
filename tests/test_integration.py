"""Integration tests for complete rule management workflows."""
import pytest
from rule_adapter.models import CasbinRule
from tests.conftest import ADMIN_HEADERS, TestingSessionLocal, client


@pytest.fixture(autouse=True)
def clean_rules(setup_db):
    """Every workflow starts from an empty rule table."""
    db = TestingSessionLocal()
    try:
        db.query(CasbinRule).delete()
        db.commit()
    finally:
        db.close()
    yield


def listed(ptype=None):
    params = {"ptype": ptype} if ptype else None
    response = client.get("/policies/", params=params, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    return response.json()


class TestIntegrationWorkflows:
    """Test complete end-to-end workflows."""

    def test_complete_rule_lifecycle(self):
        """Add, list, update and remove a rule through the API."""
        # Step 1: Add a permission rule and a grouping rule
        response = client.post("/policies/", json={
            "ptype": "p", "values": ["alice", "data1", "read"]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert response.json() == {"ptype": "p", "values": ["alice", "data1", "read"]}

        response = client.post("/policies/", json={
            "ptype": "g", "values": ["alice", "admin"]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200

        # Step 2: Both are loaded back
        body = listed()
        assert body["is_filtered"] is False
        assert body["lines"] == ["p, alice, data1, read", "g, alice, admin"]

        # Step 3: Update the permission rule
        response = client.put("/policies/", json={
            "ptype": "p",
            "old_values": ["alice", "data1", "read"],
            "new_values": ["alice", "data1", "write"]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert listed("p")["lines"] == ["p, alice, data1, write"]

        # Step 4: Remove it
        response = client.post("/policies/remove", json={
            "ptype": "p", "values": ["alice", "data1", "write"]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert listed("p")["rules"] == []
        assert listed("g")["lines"] == ["g, alice, admin"]

    def test_batch_workflow(self):
        """Batch add, update and remove in one commit each."""
        response = client.post("/policies/batch", json={
            "ptype": "p",
            "rules": [["alice", "data1", "read"], ["bob", "data2", "write"], ["carol", "data3", "read"]]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert len(response.json()) == 3

        response = client.put("/policies/batch", json={
            "ptype": "p",
            "old_rules": [["alice", "data1", "read"], ["bob", "data2", "write"]],
            "new_rules": [["alice", "data1", "write"], ["bob", "data2", "read"]]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200

        response = client.post("/policies/remove-batch", json={
            "ptype": "p", "rules": [["carol", "data3", "read"]]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert response.json()["count"] == 1

        assert listed()["lines"] == ["p, alice, data1, write", "p, bob, data2, read"]

    def test_filtered_removal_and_load_workflow(self):
        """Wildcard removal, then a sectioned filtered load."""
        client.post("/policies/batch", json={
            "ptype": "p",
            "rules": [["alice", "data1", "read"], ["alice", "data2", "write"], ["bob", "data1", "read"]]
        }, headers=ADMIN_HEADERS)
        client.post("/policies/batch", json={
            "ptype": "g", "rules": [["alice", "admin"], ["bob", "staff"]]
        }, headers=ADMIN_HEADERS)

        # Removes every rule whose second value is data1
        response = client.post("/policies/remove-filtered", json={
            "ptype": "p", "field_index": 1, "field_values": ["data1"]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert listed("p")["lines"] == ["p, alice, data2, write"]

        response = client.post("/policies/filter", json={
            "p": ["alice"], "g": ["bob"]
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["is_filtered"] is True
        assert body["lines"] == ["p, alice, data2, write", "g, bob, staff"]

    def test_mismatched_batch_update_changes_nothing(self):
        client.post("/policies/", json={"ptype": "p", "values": ["alice", "data1", "read"]},
                    headers=ADMIN_HEADERS)
        response = client.put("/policies/batch", json={
            "ptype": "p",
            "old_rules": [["alice", "data1", "read"]],
            "new_rules": []
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 200
        assert listed()["lines"] == ["p, alice, data1, read"]

    def test_duplicate_rows_are_all_removed(self):
        for _ in range(2):
            client.post("/policies/", json={"ptype": "p", "values": ["alice", "data1", "read"]},
                        headers=ADMIN_HEADERS)
        client.post("/policies/remove", json={"ptype": "p", "values": ["alice", "data1", "read"]},
                    headers=ADMIN_HEADERS)
        assert listed()["rules"] == []
