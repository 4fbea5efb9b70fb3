"""End-to-end extraction over captured-style page fixtures."""

import json
import unittest

from app.extraction.errors import NoEmbeddedData, NoItemsDetected
from app.extraction.pipeline import MenuExtractor
from app.models.menu import ExistingItem, SourcePlatform


def next_data_html(payload, body=""):
    """Page with a Next.js __NEXT_DATA__ payload."""
    return (
        "<!DOCTYPE html><html><head><title>Menu</title></head><body>"
        f"<div id=\"__next\">{body}</div>"
        "<script id=\"__NEXT_DATA__\" type=\"application/json\">"
        f"{json.dumps(payload, ensure_ascii=False)}"
        "</script></body></html>"
    )


GRAB_URL = "https://food.grab.com/vn/en/restaurant/highlands-coffee-nguyen-hue-delivery/5-C2X"

GRAB_PAYLOAD = {
    "props": {
        "pageProps": {
            "merchant": {
                "ID": "5-C2X",
                "name": "Highlands Coffee - Nguyen Hue",
                "menu": {
                    "categories": [
                        {
                            "ID": "cat-1",
                            "name": "Cà Phê",
                            "items": [
                                {
                                    "ID": "i-1",
                                    "name": "Phin Sữa Đá",
                                    "priceInMinorUnit": 29000,
                                    "description": "Robusta phin with condensed milk",
                                    "imgHref": "https://food-cms.grab.com/items/phin.jpg",
                                    "available": True,
                                },
                                {
                                    "ID": "i-2",
                                    "name": "Bạc Xỉu",
                                    "priceInMinorUnit": 35000,
                                    "images": [{"url": "https://food-cms.grab.com/items/bacxiu.jpg"}],
                                },
                            ],
                        },
                        {
                            "ID": "cat-2",
                            "name": "Trà",
                            "items": [
                                {"ID": "i-3", "name": "Trà Sen Vàng", "priceInMinorUnit": 45000, "available": False},
                                {"ID": "i-4", "name": "Trà Thạch Đào", "priceInMinorUnit": 45000},
                                {"ID": "i-5", "name": "Trà Thanh Đào", "priceInMinorUnit": 45000, "status": "UNAVAILABLE"},
                            ],
                        },
                    ]
                },
            }
        }
    },
    "page": "/restaurant/[id]",
    "buildId": "abc123",
}

GRAB_BODY = (
    '<img alt="Grab logo" src="/static/logo.svg">'
    '<img alt="Trà Thạch Đào" src="/static/items/dao.png">'
)


class TestScenarios(unittest.TestCase):
    def setUp(self):
        self.extractor = MenuExtractor()

    def test_single_item_page(self):
        html = next_data_html({"item": {"name": "Iced Latte", "price": 45000}})
        result = self.extractor.extract(html, "https://example.com/menu")
        self.assertEqual(len(result.items), 1)
        latte = result.items[0]
        self.assertEqual((latte.name, latte.price), ("Iced Latte", 45000))
        self.assertIsNone(latte.category)
        self.assertIsNone(latte.image_url)
        self.assertEqual(result.skipped_count, 0)
        self.assertEqual(result.source, SourcePlatform.GENERIC)

    def test_grab_sold_out_item_is_excluded(self):
        payload = {"menu": [
            {"name": "Mango Smoothie", "priceInMinorUnit": 4500000, "isSoldOut": True},
            {"name": "Iced Tea", "priceInMinorUnit": 2500000},
        ]}
        result = self.extractor.extract(next_data_html(payload), "https://www.grab.com/vn/food/")
        self.assertEqual(result.source, SourcePlatform.GRABFOOD)
        self.assertEqual([i.name for i in result.items], ["Iced Tea"])

    def test_grab_page_with_only_sold_out_items(self):
        payload = {"item": {"name": "Mango Smoothie", "priceInMinorUnit": 4500000, "isSoldOut": True}}
        with self.assertRaises(NoItemsDetected):
            self.extractor.extract(next_data_html(payload), "https://www.grab.com/vn/food/")

    def test_page_without_marker(self):
        html = "<html><body><script>window.__INITIAL_STATE__ = {}</script></body></html>"
        with self.assertRaises(NoEmbeddedData) as ctx:
            self.extractor.extract(html, "https://example.com/menu")
        self.assertEqual(ctx.exception.message, "Could not locate embedded data on page")

        result = self.extractor.try_extract(html, "https://example.com/menu")
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, "no_embedded_data")
        self.assertEqual(result.items, [])

    def test_duplicated_nodes_collapse(self):
        tea = {"name": "Tea", "price": 20000}
        payload = {"featured": [dict(tea)], "fullMenu": {"items": [dict(tea)]}}
        result = self.extractor.extract(next_data_html(payload), "https://example.com/menu")
        self.assertEqual([(i.name, i.price) for i in result.items], [("Tea", 20000)])


class TestFailures(unittest.TestCase):
    def setUp(self):
        self.extractor = MenuExtractor()

    def test_invalid_json_payload(self):
        html = '<script id="__NEXT_DATA__" type="application/json">{"props": </script>'
        with self.assertRaises(NoEmbeddedData):
            self.extractor.extract(html, "https://example.com/menu")

    def test_marker_needs_json_type(self):
        html = '<script id="__NEXT_DATA__">{"item": {"name": "Tea", "price": 1}}</script>'
        with self.assertRaises(NoEmbeddedData):
            self.extractor.extract(html, "https://example.com/menu")

    def test_supported_page_with_empty_menu(self):
        html = next_data_html({"props": {"pageProps": {"title": "Closed for renovation"}}})
        with self.assertRaises(NoItemsDetected):
            self.extractor.extract(html, "https://example.com/menu")

        result = self.extractor.try_extract(html, "https://example.com/menu")
        self.assertEqual(result.error, "No menu items detected")
        self.assertEqual(result.error_code, "no_items_detected")

    def test_oversized_numbers_only_drop_their_own_node(self):
        huge = 10 ** 400
        for bad in (
            {"name": "Bad", "price": huge},
            {"name": "Bad", "priceInMinorUnit": huge},
            {"name": "Bad", "displayPrice": "9" * 400 + " đ"},
        ):
            html = next_data_html({"menu": [{"name": "Tea", "price": 20000}, bad]})
            result = self.extractor.extract(html, "https://www.grab.com/vn/food/")
            self.assertEqual([(i.name, i.price) for i in result.items], [("Tea", 20000)], bad)

    def test_only_zero_prices(self):
        html = next_data_html({"item": {"name": "Water", "price": 0}})
        with self.assertRaises(NoItemsDetected):
            self.extractor.extract(html, "https://example.com/menu")


class TestGrabFoodFixture(unittest.TestCase):
    def setUp(self):
        self.result = MenuExtractor().extract(next_data_html(GRAB_PAYLOAD, GRAB_BODY), GRAB_URL)

    def test_available_items_in_menu_order(self):
        self.assertEqual(
            [(i.name, i.price) for i in self.result.items],
            [("Phin Sữa Đá", 29000), ("Bạc Xỉu", 35000), ("Trà Thạch Đào", 45000)],
        )

    def test_categories(self):
        self.assertEqual([i.category for i in self.result.items], ["Cà Phê", "Cà Phê", "Trà"])

    def test_images_structured_and_fallback(self):
        self.assertEqual(
            [i.image_url for i in self.result.items],
            [
                "https://food-cms.grab.com/items/phin.jpg",
                "https://food-cms.grab.com/items/bacxiu.jpg",
                "https://food.grab.com/static/items/dao.png",
            ],
        )
        self.assertEqual(self.result.with_images, 3)

    def test_description(self):
        self.assertEqual(self.result.items[0].description, "Robusta phin with condensed milk")
        self.assertIsNone(self.result.items[1].description)


class TestShopeeFoodFixture(unittest.TestCase):
    URL = "https://shopeefood.vn/ho-chi-minh/phuc-long-nguyen-hue"

    PAYLOAD = {
        "props": {
            "initialState": {
                "delivery": {
                    "menu": [
                        {
                            "categoryName": "Trà Sữa",
                            "dishes": [
                                {"id": 1, "name": "Trà Sữa Phúc Long", "price": {"value": 55000, "text": "55.000đ"},
                                 "photos": [{"url": "https://images.foody.vn/res/g1/ts.jpg"}]},
                                {"id": 2, "name": "Trà Sữa Matcha", "price": {"value": 60000}, "isAvailable": False},
                                {"id": 3, "name": "Trà Sữa Ô Long", "price": {"value": 55000}, "soldOut": True},
                            ],
                        },
                        {
                            "categoryName": "Topping",
                            "dishes": [
                                {"id": 4, "name": "Trân Châu", "displayPrice": "10.000đ"},
                            ],
                        },
                    ]
                }
            }
        }
    }

    def test_shopeefood_page(self):
        result = MenuExtractor().extract(next_data_html(self.PAYLOAD), self.URL)
        self.assertEqual(result.source, SourcePlatform.SHOPEEFOOD)
        self.assertEqual(
            [(i.name, i.price, i.category) for i in result.items],
            [("Trà Sữa Phúc Long", 55000, "Trà Sữa"), ("Trân Châu", 10000, "Topping")],
        )
        self.assertEqual(result.items[0].image_url, "https://images.foody.vn/res/g1/ts.jpg")
        self.assertIsNone(result.items[1].image_url)


class TestExistingItems(unittest.TestCase):
    def setUp(self):
        self.extractor = MenuExtractor()
        self.html = next_data_html({"menu": [
            {"name": "Iced Latte", "price": 45000, "imageUrl": "/img/latte.png"},
            {"name": "Mocha", "price": 50000},
        ]})

    def test_existing_keys_are_reported_as_skipped(self):
        result = self.extractor.extract(
            self.html, "https://example.com/menu", existing_keys=[("ICED LATTE ", 45000)]
        )
        self.assertEqual([i.name for i in result.items], ["Mocha"])
        self.assertEqual(result.skipped_count, 1)

    def test_everything_already_stored_is_not_a_failure(self):
        result = self.extractor.extract(
            self.html,
            "https://example.com/menu",
            existing_keys=[("Iced Latte", 45000), ("Mocha", 50000)],
        )
        self.assertTrue(result.ok)
        self.assertEqual(result.items, [])
        self.assertEqual(result.skipped_count, 2)

    def test_backfill_from_existing_items(self):
        result = self.extractor.extract(
            self.html,
            "https://example.com/menu",
            existing_items=[ExistingItem(name="Iced Latte", price=45000)],
        )
        self.assertEqual(result.skipped_count, 1)
        self.assertEqual(len(result.backfill), 1)
        self.assertEqual(result.backfill[0].image_url, "https://example.com/img/latte.png")


if __name__ == "__main__":
    unittest.main()
