import uuid

OPERATOR = {"X-Actor-Id": "operator-1"}


def supplier(sid):
    return {"X-Actor-Id": sid}


def setup_selection(client, criterion="por_item"):
    r = client.post(
        "/api/v1/processes",
        json={"number": f"PP-{uuid.uuid4().hex[:6]}", "title": "Hospital supplies", "judgment_criterion": criterion},
        headers=OPERATOR,
    )
    assert r.status_code == 201, r.text
    process_id = r.json()["id"]

    r = client.post(
        "/api/v1/selections",
        json={
            "process_id": process_id,
            "title": "Surgical gloves",
            "items": [
                {"item_number": 1, "description": "Gloves M", "quantity": "100", "unit": "box"},
                {"item_number": 2, "description": "Gloves L", "quantity": "50", "unit": "box"},
            ],
        },
        headers=OPERATOR,
    )
    assert r.status_code == 201, r.text
    sid = r.json()["id"]

    r = client.post(f"/api/v1/selections/{sid}/items/open", json={"item_numbers": [1, 2]}, headers=OPERATOR)
    assert r.status_code == 200, r.text
    return sid


def place(client, sid, supplier_id, value, item=1, bid_type="normal"):
    return client.post(
        f"/api/v1/selections/{sid}/bids",
        json={"item_number": item, "supplier_id": supplier_id, "value": str(value), "bid_type": bid_type},
        headers=supplier(supplier_id),
    )


def test_health_echoes_request_id(client):
    r = client.get("/api/v1/health", headers={"X-Request-Id": "req-123"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "request_id": "req-123"}
    assert r.headers["X-Request-Id"] == "req-123"


def test_disqualify_and_revert_flow(client):
    sid = setup_selection(client)

    assert place(client, sid, "A", 100).status_code == 201
    assert place(client, sid, "B", 90).status_code == 201

    ranking = client.get(f"/api/v1/selections/{sid}/ranking").json()
    assert ranking["items"][0]["winner"]["supplier_id"] == "B"
    assert ranking["unresolved_items"] == [2]

    r = client.post(
        f"/api/v1/selections/{sid}/disqualifications",
        json={"supplier_id": "B", "item_numbers": [1], "reason": "Expired license"},
        headers={"X-Actor-Id": "reviewer-1"},
    )
    assert r.status_code == 201, r.text
    disq_id = r.json()["id"]
    assert r.json()["created_by"] == "reviewer-1"

    winners = [b for b in client.get(f"/api/v1/selections/{sid}/bids").json() if b["is_winner"]]
    assert [w["supplier_id"] for w in winners] == ["A"]

    r = client.post(f"/api/v1/disqualifications/{disq_id}/revert", json={"reason": "Appeal"}, headers=OPERATOR)
    assert r.status_code == 200
    assert r.json()["reverted"] is True

    r = client.post(f"/api/v1/disqualifications/{disq_id}/revert", json={"reason": "Again"}, headers=OPERATOR)
    assert r.status_code == 409

    run = client.post(f"/api/v1/selections/{sid}/ranking/run", headers=OPERATOR).json()
    assert run["items"][0]["winner"]["supplier_id"] == "B"


def test_bid_errors_map_to_http_codes(client):
    sid = setup_selection(client)

    assert place(client, sid, "A", 10, item=9).status_code == 404
    assert place(client, sid, "A", 0).status_code == 422

    client.post(f"/api/v1/selections/{sid}/items/close", json={"item_numbers": [1]}, headers=OPERATOR)
    assert place(client, sid, "A", 10).status_code == 409

    assert client.get(f"/api/v1/selections/{uuid.uuid4()}").status_code == 404


def test_negotiation_endpoints(client):
    sid = setup_selection(client)
    place(client, sid, "A", 100)
    place(client, sid, "B", 90)

    r = client.post(f"/api/v1/selections/{sid}/items/1/negotiation/open", headers=OPERATOR)
    assert r.status_code == 200, r.text
    assert r.json()["negotiation_supplier_id"] == "B"

    assert place(client, sid, "A", 80, bid_type="negotiation").status_code == 403
    assert place(client, sid, "B", 89, bid_type="negotiation").status_code == 201

    r = client.post(f"/api/v1/selections/{sid}/items/1/negotiation/close", headers=OPERATOR)
    assert r.json()["negotiation_concluded"] is True

    assert client.post(f"/api/v1/selections/{sid}/items/1/negotiation/bogus", headers=OPERATOR).status_code == 404


def test_finalize_then_bids_rejected(client):
    sid = setup_selection(client)
    place(client, sid, "A", 100)

    r = client.post(f"/api/v1/selections/{sid}/finalize", headers=OPERATOR)
    assert r.status_code == 200
    assert r.json()["status"] == "finalized"

    assert place(client, sid, "B", 50).status_code == 409
    assert client.post(f"/api/v1/selections/{sid}/finalize", headers=OPERATOR).status_code == 409


def test_delete_bid(client):
    sid = setup_selection(client)
    place(client, sid, "A", 100)
    b = place(client, sid, "B", 90).json()

    r = client.delete(f"/api/v1/selections/{sid}/bids/{b['id']}", headers=OPERATOR)
    assert r.status_code == 204

    bids = client.get(f"/api/v1/selections/{sid}/bids").json()
    assert [(x["supplier_id"], x["is_winner"]) for x in bids] == [("A", True)]


def test_bid_submissions_are_rate_limited(client):
    sid = setup_selection(client)

    codes = [place(client, sid, "A", 100 - i).status_code for i in range(11)]

    assert codes[:10] == [201] * 10
    assert codes[10] == 429


def test_stream_unknown_selection_is_404(client):
    assert client.get(f"/api/v1/selections/{uuid.uuid4()}/ranking/stream").status_code == 404


def test_anonymous_bid_submissions_share_the_system_bucket(client):
    sid = setup_selection(client)

    codes = [
        client.post(
            f"/api/v1/selections/{sid}/bids",
            json={"item_number": 1, "supplier_id": f"S{i}", "value": str(100 - i)},
        ).status_code
        for i in range(11)
    ]

    assert codes[:10] == [201] * 10
    assert codes[10] == 429
    # a named actor still has its own bucket
    assert place(client, sid, "A", 50).status_code == 201


def test_out_of_range_inputs_are_422(client):
    sid = setup_selection(client)

    assert place(client, sid, "A", "0.00001").status_code == 422
    assert place(client, sid, "A", 10, item=0).status_code == 422
    assert place(client, sid, "   ", 10).status_code == 422
    assert place(client, sid, "", 10).status_code == 422
    assert client.get(f"/api/v1/selections/{sid}/bids").json() == []

    r = client.post(
        f"/api/v1/selections/{sid}/disqualifications",
        json={"supplier_id": "A", "item_numbers": [0], "reason": "Expired license"},
        headers=OPERATOR,
    )
    assert r.status_code == 422

    process_id = client.get(f"/api/v1/selections/{sid}").json()["process_id"]
    for item in (
        {"item_number": 1, "description": "Gloves", "quantity": "0", "unit": "box"},
        {"item_number": 0, "description": "Gloves", "quantity": "1", "unit": "box"},
    ):
        r = client.post(
            "/api/v1/selections",
            json={"process_id": process_id, "title": "Gloves", "items": [item]},
            headers=OPERATOR,
        )
        assert r.status_code == 422, item


def test_supplier_id_whitespace_is_stripped(client):
    sid = setup_selection(client)
    r = client.post(
        f"/api/v1/selections/{sid}/bids",
        json={"item_number": 1, "supplier_id": " A ", "value": "90"},
        headers=supplier("A"),
    )
    assert r.status_code == 201, r.text
    assert r.json()["supplier_id"] == "A"
    assert place(client, sid, "B", 100).status_code == 201

    r = client.post(
        f"/api/v1/selections/{sid}/disqualifications",
        json={"supplier_id": "A ", "item_numbers": [1], "reason": "Expired license"},
        headers=OPERATOR,
    )
    assert r.status_code == 201, r.text
    assert r.json()["supplier_id"] == "A"

    winners = [b["supplier_id"] for b in client.get(f"/api/v1/selections/{sid}/bids").json() if b["is_winner"]]
    assert winners == ["B"]


def test_stream_existence_check_uses_its_own_session(client, session_factory):
    from procurement.api.v1.ranking import _selection_exists

    sid = setup_selection(client)

    assert _selection_exists(session_factory, uuid.UUID(sid)) is True
    assert _selection_exists(session_factory, uuid.uuid4()) is False
