"""Item, size and shared-item endpoints."""


class TestCreateItem:
    def test_single_size_defaults_to_one_size(self, api, make_brand):
        brand = make_brand()
        response = api.post(f"/brands/{brand['id']}/items", json={"name": "Cap", "quantity": 25})
        assert response.status_code == 201
        data = response.json()

        assert data["brand_id"] == brand["id"]
        assert data["brand_name"] == brand["name"]
        assert data["product_id"]
        assert [s["size"] for s in data["sizes"]] == ["One Size"]
        size = data["sizes"][0]
        assert size["original_quantity"] == 25
        assert size["available_quantity"] == 25
        assert size["in_circulation"] == 0
        assert size["burned_quantity"] == 0

    def test_multiple_sizes_keep_their_order(self, api, make_brand, make_item):
        brand = make_brand()
        item = make_item(brand["id"], sizes=[("XL", 1), ("S", 4), ("M", 5)], product_id="TS-01")

        assert item["product_id"] == "TS-01"
        assert [s["size"] for s in item["sizes"]] == ["XL", "S", "M"]
        assert item["original_quantity"] == 10
        assert item["available_quantity"] == 10

    def test_duplicate_size_labels_rejected(self, api, make_brand):
        brand = make_brand()
        response = api.post(
            f"/brands/{brand['id']}/items",
            json={"name": "Shirt", "sizes": [{"size": "M", "quantity": 1}, {"size": "m", "quantity": 2}]},
        )
        assert response.status_code == 422

    def test_blank_size_label_rejected(self, api, make_brand):
        brand = make_brand()
        response = api.post(
            f"/brands/{brand['id']}/items",
            json={"name": "Shirt", "sizes": [{"size": " ", "quantity": 1}]},
        )
        assert response.status_code == 422

    def test_zero_total_quantity_rejected(self, api, make_brand):
        brand = make_brand()
        response = api.post(
            f"/brands/{brand['id']}/items",
            json={"name": "Shirt", "sizes": [{"size": "S", "quantity": 0}, {"size": "M", "quantity": 0}]},
        )
        assert response.status_code == 422

    def test_unknown_brand(self, api):
        response = api.post(
            "/brands/00000000-0000-0000-0000-000000000000/items",
            json={"name": "Cap", "quantity": 1},
        )
        assert response.status_code == 404


class TestBrandItems:
    def test_inactive_items_hidden_by_default(self, api, make_brand, make_item):
        brand = make_brand()
        shirt = make_item(brand["id"], name="Shirt")
        cap = make_item(brand["id"], name="Cap")
        api.post(f"/items/{cap['id']}/toggle-active")

        listed = [i["id"] for i in api.get(f"/brands/{brand['id']}/items").json()]
        assert listed == [shirt["id"]]

        everything = api.get(f"/brands/{brand['id']}/items", params={"include_inactive": True}).json()
        assert {i["id"] for i in everything} == {shirt["id"], cap["id"]}

    def test_brand_sizes_flatten_every_item(self, api, make_brand, make_item):
        brand = make_brand()
        make_item(brand["id"], name="Shirt", sizes=[("S", 1), ("M", 1)])
        make_item(brand["id"], name="Cap", quantity=3)

        sizes = api.get(f"/brands/{brand['id']}/sizes").json()
        assert sorted((s["item_name"], s["size"]) for s in sizes) == [
            ("Cap", "One Size"),
            ("Shirt", "M"),
            ("Shirt", "S"),
        ]


class TestSharedItems:
    def test_link_item_into_another_brand(self, api, make_brand, make_item):
        owner = make_brand("Owner")
        other = make_brand("Other")
        item = make_item(owner["id"], name="Event Tote")

        response = api.post(f"/brands/{other['id']}/shared-items", json={"item_id": item["id"]})
        assert response.status_code == 201
        assert response.json()["is_shared_instance"] is True

        listed = api.get(f"/brands/{other['id']}/items").json()
        assert len(listed) == 1
        assert listed[0]["id"] == item["id"]
        assert listed[0]["is_shared_instance"] is True
        assert listed[0]["brand_id"] == owner["id"]

        owned = api.get(f"/brands/{owner['id']}/items").json()
        assert owned[0]["is_shared"] is True
        assert owned[0]["is_shared_instance"] is False

    def test_shared_instance_uses_the_same_stock(self, api, make_brand, make_item, make_promoter):
        owner = make_brand("Owner")
        other = make_brand("Other")
        item = make_item(owner["id"], quantity=10)
        promoter = make_promoter()
        api.post(f"/brands/{other['id']}/shared-items", json={"item_id": item["id"]})

        api.post(
            "/transactions/take-out",
            json={"item_size_id": item["sizes"][0]["id"], "quantity": 4, "promoter_id": promoter["id"]},
        )

        shared = api.get(f"/brands/{other['id']}/items").json()[0]
        assert shared["available_quantity"] == 6
        assert shared["in_circulation"] == 4

    def test_link_twice_conflicts(self, api, make_brand, make_item):
        owner = make_brand("Owner")
        other = make_brand("Other")
        item = make_item(owner["id"])
        api.post(f"/brands/{other['id']}/shared-items", json={"item_id": item["id"]})

        response = api.post(f"/brands/{other['id']}/shared-items", json={"item_id": item["id"]})
        assert response.status_code == 409

    def test_link_into_owner_conflicts(self, api, make_brand, make_item):
        owner = make_brand("Owner")
        item = make_item(owner["id"])
        response = api.post(f"/brands/{owner['id']}/shared-items", json={"item_id": item["id"]})
        assert response.status_code == 409

    def test_unlink(self, api, make_brand, make_item):
        owner = make_brand("Owner")
        other = make_brand("Other")
        item = make_item(owner["id"])
        api.post(f"/brands/{other['id']}/shared-items", json={"item_id": item["id"]})

        response = api.delete(f"/brands/{other['id']}/shared-items/{item['id']}")
        assert response.status_code == 204
        assert api.get(f"/brands/{other['id']}/items").json() == []
        assert api.get(f"/items/{item['id']}").json()["is_shared"] is False

        again = api.delete(f"/brands/{other['id']}/shared-items/{item['id']}")
        assert again.status_code == 404

    def test_shared_search(self, api, make_brand, make_item):
        brand = make_brand()
        make_item(brand["id"], name="Event Tote", product_id="TOTE-01")
        make_item(brand["id"], name="Cap", product_id="CAP-01")

        by_name = api.get("/items/shared-search", params={"q": "tote"}).json()
        assert [i["name"] for i in by_name] == ["Event Tote"]
        assert by_name[0]["sizes"]

        by_product = api.get("/items/shared-search", params={"q": "cap-0"}).json()
        assert [i["name"] for i in by_product] == ["Cap"]

        assert api.get("/items/shared-search", params={"q": "  "}).json() == []

    def test_shared_search_treats_wildcards_literally(self, api, make_brand, make_item):
        brand = make_brand()
        make_item(brand["id"], name="Event Tote", product_id="TOTE-01")
        make_item(brand["id"], name="Cap_Black", product_id="CAP-01")

        assert api.get("/items/shared-search", params={"q": "%"}).json() == []
        underscored = api.get("/items/shared-search", params={"q": "_"}).json()
        assert [i["name"] for i in underscored] == ["Cap_Black"]


class TestItemUpdates:
    def test_patch_item(self, api, make_brand, make_item):
        brand = make_brand()
        item = make_item(brand["id"])
        response = api.patch(f"/items/{item['id']}", json={"name": "Renamed", "product_id": "NEW-1"})
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["product_id"] == "NEW-1"

    def test_toggle_active(self, api, make_brand, make_item):
        brand = make_brand()
        item = make_item(brand["id"])
        assert api.post(f"/items/{item['id']}/toggle-active").json()["is_active"] is False
        assert api.post(f"/items/{item['id']}/toggle-active").json()["is_active"] is True

    def test_add_size(self, api, make_brand, make_item):
        brand = make_brand()
        item = make_item(brand["id"], sizes=[("S", 1)])

        response = api.post(f"/items/{item['id']}/sizes", json={"size": "XXL", "quantity": 7})
        assert response.status_code == 201
        assert response.json()["original_quantity"] == 7
        assert response.json()["available_quantity"] == 7

        sizes = api.get(f"/items/{item['id']}/sizes").json()
        assert [s["size"] for s in sizes] == ["S", "XXL"]

    def test_add_duplicate_size(self, api, make_brand, make_item):
        brand = make_brand()
        item = make_item(brand["id"], sizes=[("S", 1)])
        response = api.post(f"/items/{item['id']}/sizes", json={"size": "s", "quantity": 1})
        assert response.status_code == 409


class TestDeleteItem:
    def test_delete_item_without_history(self, api, make_brand, make_item):
        brand = make_brand()
        item = make_item(brand["id"], sizes=[("S", 1), ("M", 1)])
        assert api.delete(f"/items/{item['id']}").status_code == 204
        assert api.get(f"/items/{item['id']}").status_code == 404

    def test_delete_item_with_history_conflicts(self, api, stocked):
        api.post(
            "/transactions/take-out",
            json={
                "item_size_id": stocked["size"]["id"],
                "quantity": 1,
                "promoter_id": stocked["promoter"]["id"],
            },
        )
        response = api.delete(f"/items/{stocked['item']['id']}")
        assert response.status_code == 409

    def test_item_history(self, api, stocked):
        api.post("/transactions/restock", json={"item_size_id": stocked["size"]["id"], "quantity": 5})
        page = api.get(f"/items/{stocked['item']['id']}/history").json()
        assert page["total_count"] == 1
        assert page["transactions"][0]["transaction_type"] == "restock"
        assert page["transactions"][0]["item_name"] == stocked["item"]["name"]
