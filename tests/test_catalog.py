from conftest import auth_headers, make_customer, make_service_type


def test_health_needs_no_token(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert client.head("/health").status_code == 200


def test_customers_are_listed_by_name(client, session, auth_service, collaborator):
    make_customer(session, "Rafael")
    make_customer(session, "Alice", phone="11 99999-0000")
    resp = client.get("/customers", headers=auth_headers(auth_service, collaborator))
    assert resp.status_code == 200
    assert [c["name"] for c in resp.json()] == ["Alice", "Rafael"]
    assert resp.json()[0]["phone"] == "11 99999-0000"


def test_create_customer(client, auth_service, collaborator):
    resp = client.post("/customers", headers=auth_headers(auth_service, collaborator), json={"name": "Pedro", "phone": "11 98888-7777"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["id"] is not None
    assert data["name"] == "Pedro"
    assert data["phone"] == "11 98888-7777"


def test_create_customer_phone_is_optional(client, auth_service, collaborator):
    resp = client.post("/customers", headers=auth_headers(auth_service, collaborator), json={"name": "Pedro"})
    assert resp.status_code == 201
    assert resp.json()["phone"] is None


def test_create_customer_requires_name(client, auth_service, collaborator):
    resp = client.post("/customers", headers=auth_headers(auth_service, collaborator), json={"phone": "123"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Name is required"}


def test_service_types_are_listed_by_name(client, session, auth_service, collaborator):
    make_service_type(session, "Corte", "35.00")
    make_service_type(session, "Barba", "25.00")
    resp = client.get("/serviceTypes", headers=auth_headers(auth_service, collaborator))
    assert resp.json() == [
        {"id": 2, "name": "Barba", "defaultPrice": "25.00"},
        {"id": 1, "name": "Corte", "defaultPrice": "35.00"},
    ]


def test_create_service_type(client, auth_service, collaborator):
    resp = client.post("/serviceTypes", headers=auth_headers(auth_service, collaborator), json={"name": "Luzes", "defaultPrice": 80.5})
    assert resp.status_code == 201
    assert resp.json()["defaultPrice"] == "80.50"


def test_create_service_type_requires_name_and_price(client, auth_service, collaborator):
    headers = auth_headers(auth_service, collaborator)
    assert client.post("/serviceTypes", headers=headers, json={"name": "Luzes"}).status_code == 400
    assert client.post("/serviceTypes", headers=headers, json={"defaultPrice": 10}).status_code == 400
    assert client.post("/serviceTypes", headers=headers, json={"name": "Luzes", "defaultPrice": -1}).status_code == 400


def test_create_service_type_rejects_oversized_price(client, auth_service, collaborator):
    resp = client.post("/serviceTypes", headers=auth_headers(auth_service, collaborator), json={"name": "Luzes", "defaultPrice": 1e30})
    assert resp.status_code == 400
    assert resp.json() == {"error": "defaultPrice is too large"}


def test_malformed_body_is_a_bad_request(client, auth_service, collaborator):
    resp = client.post("/serviceTypes", headers=auth_headers(auth_service, collaborator), json={"name": "Luzes", "defaultPrice": "caro"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request data"
    assert resp.json()["details"][0]["field"] == "body.defaultPrice"
