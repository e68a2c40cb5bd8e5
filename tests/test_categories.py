def test_category_crud(client, admin):
    created = client.post("/api/admin/add-category", json={"name": "  Data   Science ", "description": "Numbers"})
    assert created.status_code == 201
    category = created.json()["data"]
    assert category["name"] == "Data Science"
    assert "name_key" not in category

    assert client.post("/api/admin/add-category", json={"name": "data science"}).status_code == 409

    updated = client.post("/api/admin/update-category", json={
        "category_id": category["category_id"], "name": "Data Engineering",
    })
    assert updated.json()["data"]["name"] == "Data Engineering"

    listed = client.get("/api/admin/categories", params={"search": "engineer"}).json()
    assert [c["category_id"] for c in listed["data"]] == [category["category_id"]]
    assert listed["data"][0]["course_count"] == 0

    details = client.get("/api/admin/category", params={"id": category["category_id"]})
    assert details.json()["data"]["description"] == "Numbers"

    assert client.delete(f"/api/admin/delete-category/{category['category_id']}").status_code == 200
    assert client.get("/api/admin/category", params={"id": category["category_id"]}).status_code == 404


def test_category_in_use_cannot_be_deleted(client, admin, published_course, category):
    response = client.delete(f"/api/admin/delete-category/{category['category_id']}")

    assert response.status_code == 409


def test_rename_clash_and_empty_update(client, admin, category):
    other = client.post("/api/admin/add-category", json={"name": "Design"}).json()["data"]

    clash = client.post("/api/admin/update-category", json={"category_id": other["category_id"], "name": "PROGRAMMING"})
    assert clash.status_code == 409

    assert client.post("/api/admin/update-category", json={"category_id": other["category_id"]}).status_code == 400


def test_public_categories_hide_inactive(client, admin, category):
    client.post("/api/admin/add-category", json={"name": "Hidden", "is_active": False})

    names = [c["name"] for c in client.get("/api/load-categories").json()["data"]]

    assert names == ["Programming"]
