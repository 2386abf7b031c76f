from datetime import datetime, timedelta

from tests.pos_checkout_helpers import create_product, create_service


def test_list_products_resolves_promotions(client, db_session):
    create_product(
        db_session,
        name="Phone case",
        price=20.0,
        stock=4,
        discount_active=True,
        discount_percentage=25.0,
        discount_label="Spring",
        discount_end_date=datetime.utcnow() + timedelta(days=3),
    )
    create_product(db_session, name="Charger", price=15.0, stock=2)

    response = client.get("/fixpos/catalog/products")

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 2
    rows = {row["name"]: row for row in payload["rows"]}
    assert rows["Phone case"]["unit_price"] == "15.00"
    assert rows["Phone case"]["list_price"] == "20.00"
    assert rows["Phone case"]["discounted"] is True
    assert rows["Phone case"]["promotion"]["label"] == "Spring"
    assert rows["Charger"]["discounted"] is False


def test_offers_only_and_search(client, db_session):
    create_product(
        db_session,
        name="Phone case",
        price=20.0,
        discount_active=True,
        discount_percentage=10.0,
    )
    create_product(db_session, name="Charger", price=15.0)
    create_product(db_session, name="Retired cable", price=5.0, active=False)

    offers = client.get("/fixpos/catalog/products", params={"offers_only": "true"}).json()
    assert [row["name"] for row in offers["rows"]] == ["Phone case"]

    search = client.get("/fixpos/catalog/products", params={"search": "charg"}).json()
    assert [row["name"] for row in search["rows"]] == ["Charger"]


def test_list_services(client, db_session):
    create_service(db_session, name="Battery replacement", price=45.0, code="BATT")
    create_service(db_session, name="Old service", price=5.0, code="OLD", active=False)

    payload = client.get("/fixpos/catalog/services", params={"search": "batt"}).json()

    assert payload["total"] == 1
    assert payload["rows"][0]["kind"] == "service"
    assert payload["rows"][0]["unit_price"] == "45.00"
    assert payload["rows"][0]["code"] == "BATT"
