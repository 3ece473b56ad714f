import reconcile

BASE = "/users/test_user/dates"


def test_submit_hours_success(client):
    """Test first submission of direct hours."""
    response = client.put(
        f"{BASE}/2024-01-15/hours/direct",
        json={
            "hours": 3,
            "modality": "In-person",
            "population": "Adults",
            "setting": "Private Practice",
            "diagnosis": "Anxiety",
            "client_concerns": "Panic attacks",
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["previous_hours"] is None
    assert data["delta"] == 3
    assert data["entry"]["hours"] == 3
    assert data["entry"]["hour_type"] == "direct"
    assert data["entry"]["date"] == "2024-01-15"
    assert data["entry"]["modality"] == "In-person"
    assert data["totals"]["total_direct_hours"] == 3
    assert data["totals"]["total_indirect_hours"] == 0
    assert data["totals"]["remaining_direct_hours"] == 2997


def test_resubmit_reports_previous_hours(client):
    """Test editing hours already logged for a date."""
    client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 5, "modality": "Phone"})
    response = client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 8})

    assert response.status_code == 200
    data = response.json()
    assert data["previous_hours"] == 5
    assert data["delta"] == 3
    assert data["entry"]["modality"] == "Phone"
    assert data["totals"]["total_direct_hours"] == 8


def test_get_hours_for_date(client):
    """Test only logged hour types come back for a date."""
    client.put(f"{BASE}/2024-01-15/hours/indirect", json={"hours": 2, "notes": "Notes"})
    client.put(f"{BASE}/2024-01-15/hours/supervision", json={"hours": 1, "supervisor_name": "Dr. Lee"})
    client.put(f"{BASE}/2024-01-16/hours/direct", json={"hours": 4})

    response = client.get(f"{BASE}/2024-01-15/hours")
    assert response.status_code == 200
    data = response.json()
    assert data["date"] == "2024-01-15"
    assert set(data["hours"]) == {"indirect", "supervision"}
    assert data["hours"]["supervision"]["supervisor_name"] == "Dr. Lee"


def test_get_hours_for_empty_date(client):
    response = client.get(f"{BASE}/2024-03-01/hours")
    assert response.status_code == 200
    assert response.json()["hours"] == {}


def test_submit_invalid_hour_type(client):
    response = client.put(f"{BASE}/2024-01-15/hours/group", json={"hours": 2})
    assert response.status_code == 422
    assert client.get("/users/test_user/totals").status_code == 404


def test_submit_negative_hours(client):
    response = client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": -1})
    assert response.status_code == 422  # Validation error


def test_submit_invalid_dropdown_value(client):
    response = client.put(
        f"{BASE}/2024-01-15/hours/direct",
        json={"hours": 1, "modality": "Carrier pigeon"},
    )
    assert response.status_code == 422


def test_submit_field_for_other_hour_type(client):
    """Test indirect hours can't carry direct-only fields."""
    response = client.put(
        f"{BASE}/2024-01-15/hours/indirect",
        json={"hours": 1, "diagnosis": "Anxiety"},
    )
    assert response.status_code == 422
    assert "diagnosis" in response.json()["detail"]


def test_submit_invalid_date(client):
    response = client.put(f"{BASE}/not-a-date/hours/direct", json={"hours": 1})
    assert response.status_code == 400


def test_store_failure_returns_503(client, monkeypatch, store_down):
    client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 5})
    monkeypatch.setattr(reconcile, "_apply_delta", store_down)

    response = client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 8})
    assert response.status_code == 503

    monkeypatch.undo()
    data = client.get(f"{BASE}/2024-01-15/hours").json()
    assert data["hours"]["direct"]["hours"] == 5


def test_get_totals(client):
    client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 5})
    client.put(f"{BASE}/2024-01-16/hours/direct", json={"hours": 7})
    client.put(f"{BASE}/2024-01-16/hours/supervision", json={"hours": 120})

    response = client.get("/users/test_user/totals")
    assert response.status_code == 200
    data = response.json()
    assert data["total_direct_hours"] == 12
    assert data["total_supervision_hours"] == 120
    assert data["remaining_direct_hours"] == 2988
    assert data["remaining_indirect_hours"] == 500
    assert data["remaining_supervision_hours"] == 0


def test_get_totals_unknown_user(client):
    response = client.get("/users/nobody/totals")
    assert response.status_code == 404


def test_get_entries_with_filters(client):
    client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 1})
    client.put(f"{BASE}/2024-01-20/hours/direct", json={"hours": 2})

    response = client.get("/users/test_user/entries?date_from=2024-01-15&date_to=2024-01-16")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["date"] == "2024-01-15"


def test_consistency_and_recompute(client):
    client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 1})

    response = client.get("/admin/consistency")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "inconsistencies": []}

    response = client.post("/admin/users/test_user/recompute-totals")
    assert response.status_code == 200
    assert response.json()["total_direct_hours"] == 1


def test_recompute_unknown_user(client):
    response = client.post("/admin/users/nobody/recompute-totals")
    assert response.status_code == 404


def test_options(client):
    response = client.get("/options")
    assert response.status_code == 200
    data = response.json()
    assert data["hour_types"] == ["direct", "indirect", "supervision"]
    assert "Telehealth" in data["modalities"]
    assert data["category_fields"]["indirect"] == ["notes"]
    assert data["required_hours"]["supervision"] == 100


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "docs" in data


def test_submit_infinite_hours(client):
    """Test non-finite hours are rejected and leave nothing stored."""
    response = client.put(
        f"{BASE}/2024-01-15/hours/direct",
        content='{"hours": Infinity}',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 422
    assert client.get("/users/test_user/totals").status_code == 404

    response = client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 2})
    assert response.status_code == 200
    assert response.json()["totals"]["total_direct_hours"] == 2


def test_unexpected_error_returns_500(client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(reconcile, "submit", broken)

    response = client.put(f"{BASE}/2024-01-15/hours/direct", json={"hours": 1})
    assert response.status_code == 500
    assert response.json()["detail"] == "unexpected"
