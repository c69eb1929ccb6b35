import os
from types import SimpleNamespace

from bson import ObjectId

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

FORM = {
    "name": "Airpods Wireless Bluetooth Headphones",
    "price": "89.99",
    "brand": "Apple",
    "category": "Electronics",
    "countInStock": "10",
    "description": "Bluetooth technology lets you connect it with compatible devices wirelessly",
}


def create(client, headers, filename="air pods.png", mimetype="image/png", form=FORM):
    return client.post("/products", data=form, files={"image": (filename, PNG, mimetype)}, headers=headers)


def test_list_products_is_public_and_empty(client):
    res = client.get("/products")
    assert res.status_code == 200
    assert res.json() == []


def test_admin_creates_product_with_image(client, admin, admin_headers, settings):
    res = create(client, admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["name"] == FORM["name"]
    assert body["price"] == 89.99
    assert body["countInStock"] == 10
    assert body["user"] == admin["id"]
    assert body["numReviews"] == 0
    assert body["rating"] == 0
    assert body["reviews"] == []
    assert body["image"].startswith("http://testserver/public/uploads/air-pods.png-")
    assert body["image"].endswith(".png")

    filename = body["image"].rsplit("/", 1)[1]
    assert os.path.exists(os.path.join(settings.upload_dir, filename))
    assert client.get(f"/public/uploads/{filename}").content == PNG


def test_jpeg_upload_keeps_jpeg_extension(client, admin_headers):
    res = create(client, admin_headers, filename="photo.jpg", mimetype="image/jpeg")
    assert res.status_code == 200
    assert res.json()["image"].endswith(".jpeg")


def test_gif_upload_is_rejected_before_any_record(client, admin_headers, db):
    res = create(client, admin_headers, filename="anim.gif", mimetype="image/gif")
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid image type"
    assert db["product"].count_documents({}) == 0


def test_missing_image_is_rejected(client, admin_headers, db):
    res = client.post("/products", data=FORM, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "No image in the request"
    assert db["product"].count_documents({}) == 0


def test_negative_price_is_rejected(client, admin_headers, db):
    res = create(client, admin_headers, form={**FORM, "price": "-1"})
    assert res.status_code == 422
    assert db["product"].count_documents({}) == 0


def test_create_requires_admin(client, user_headers):
    assert create(client, {}).status_code == 401
    assert create(client, user_headers).status_code == 403


def test_get_product_by_id(client, admin_headers):
    product_id = create(client, admin_headers).json()["id"]
    res = client.get(f"/products/{product_id}")
    assert res.status_code == 200
    assert res.json()["brand"] == "Apple"


def test_get_unknown_product(client):
    res = client.get(f"/products/{ObjectId()}")
    assert res.status_code == 404
    assert res.json()["detail"] == "Resource not found"
    assert client.get("/products/bogus").status_code == 404


def test_update_replaces_fields_and_image(client, admin_headers):
    created = create(client, admin_headers).json()
    form = {**FORM, "name": "Renamed", "price": "79.5", "countInStock": "3"}
    res = client.put(f"/products/{created['id']}", data=form,
                     files={"image": ("new.png", PNG, "image/png")}, headers=admin_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["name"] == "Renamed"
    assert body["price"] == 79.5
    assert body["countInStock"] == 3
    assert "/public/uploads/new.png-" in body["image"]
    assert client.get(f"/products/{created['id']}").json()["name"] == "Renamed"


def test_update_without_image_keeps_existing(client, admin_headers):
    created = create(client, admin_headers).json()
    res = client.put(f"/products/{created['id']}", data={**FORM, "name": "Plain"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["image"] == created["image"]


def test_update_with_bad_image_type(client, admin_headers):
    created = create(client, admin_headers).json()
    res = client.put(f"/products/{created['id']}", data=FORM,
                     files={"image": ("x.gif", PNG, "image/gif")}, headers=admin_headers)
    assert res.status_code == 400
    assert client.get(f"/products/{created['id']}").json()["image"] == created["image"]


def test_update_unknown_product(client, admin_headers):
    res = client.put(f"/products/{ObjectId()}", data=FORM,
                     files={"image": ("new.png", PNG, "image/png")}, headers=admin_headers)
    assert res.status_code == 404


def test_delete_product(client, admin_headers):
    product_id = create(client, admin_headers).json()["id"]
    res = client.delete(f"/products/{product_id}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json() == {"message": "Product removed"}
    assert client.get(f"/products/{product_id}").status_code == 404
    res = client.delete(f"/products/{product_id}", headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Product not found"


def test_delete_requires_admin(client, admin_headers, user_headers):
    product_id = create(client, admin_headers).json()["id"]
    assert client.delete(f"/products/{product_id}", headers=user_headers).status_code == 403


def test_update_response_matches_stored_document(client, admin_headers):
    created = create(client, admin_headers).json()
    updated = client.put(f"/products/{created['id']}", data={**FORM, "name": "Fresh"}, headers=admin_headers).json()
    fetched = client.get(f"/products/{created['id']}").json()
    assert updated["createdAt"] == fetched["createdAt"]
    assert updated["updatedAt"] == fetched["updatedAt"]


def test_update_lost_to_delete_discards_new_image(client, app, admin_headers, settings, monkeypatch):
    created = create(client, admin_headers).json()
    before = sorted(os.listdir(settings.upload_dir))
    monkeypatch.setattr(app.state.products.collection, "update_one",
                        lambda *a, **kw: SimpleNamespace(matched_count=0))
    res = client.put(f"/products/{created['id']}", data=FORM,
                     files={"image": ("new.png", PNG, "image/png")}, headers=admin_headers)
    assert res.status_code == 404
    assert sorted(os.listdir(settings.upload_dir)) == before
