"""<img> tag scanning, URL resolution and alt-text image matching."""

import unittest

from app.extraction.image_fallback import (
    extract_img_tags,
    fill_missing_images,
    match_image,
    resolve_url,
)
from app.models.menu import ExtractedItem, ImgTag


PAGE_URL = "https://example.com/menu/page"


class TestExtractImgTags(unittest.TestCase):
    def test_source_preference(self):
        html = """
        <div>
          <img alt="Iced Latte" src="/img/latte.png" data-src="/lazy/latte.png">
          <img alt="Tea" src="" data-src="tea.jpg">
          <img alt="Mocha" srcset="m-1x.jpg 1x, m-2x.jpg 2x">
          <img alt="Cold Brew" data-srcset="cb-320.jpg 320w, cb-640.jpg 640w">
          <img alt="No source">
          <img src="/logo.svg">
        </div>
        """
        tags = extract_img_tags(html)
        self.assertEqual(
            [(t.alt, t.src) for t in tags],
            [
                ("Iced Latte", "/img/latte.png"),
                ("Tea", "tea.jpg"),
                ("Mocha", "m-2x.jpg"),
                ("Cold Brew", "cb-640.jpg"),
                ("", "/logo.svg"),
            ],
        )

    def test_empty_html(self):
        self.assertEqual(extract_img_tags(""), [])


class TestResolveUrl(unittest.TestCase):
    def test_relative_path(self):
        self.assertEqual(resolve_url("../img/a.png", PAGE_URL), "https://example.com/img/a.png")

    def test_absolute_and_protocol_relative(self):
        self.assertEqual(resolve_url("https://cdn.example.com/a.png", PAGE_URL), "https://cdn.example.com/a.png")
        self.assertEqual(resolve_url("//cdn.example.com/a.png", PAGE_URL), "https://cdn.example.com/a.png")

    def test_malformed_url_is_returned_unchanged(self):
        self.assertEqual(resolve_url("http://[::1", PAGE_URL), "http://[::1")

    def test_non_absolute_base_leaves_url_unchanged(self):
        self.assertEqual(resolve_url("a.png", "not a url"), "a.png")
        self.assertEqual(resolve_url("a.png", None), "a.png")

    def test_empty(self):
        self.assertIsNone(resolve_url(None, PAGE_URL))
        self.assertEqual(resolve_url("", PAGE_URL), "")


class TestMatchImage(unittest.TestCase):
    def setUp(self):
        self.tags = [
            ImgTag(alt="", src="/logo.png"),
            ImgTag(alt="Iced Latte Large", src="/img/latte-l.png"),
            ImgTag(alt="iced latte", src="/img/latte.png"),
            ImgTag(alt="Tea", src="/img/tea.png"),
        ]

    def test_alt_contains_name_first_match_wins(self):
        self.assertEqual(match_image("Iced Latte", self.tags).src, "/img/latte-l.png")

    def test_name_contains_alt(self):
        self.assertEqual(match_image("Peach Tea (L)", self.tags).src, "/img/tea.png")

    def test_case_and_whitespace_insensitive(self):
        self.assertEqual(match_image("  ICED LATTE LARGE ", self.tags).src, "/img/latte-l.png")

    def test_no_match(self):
        self.assertIsNone(match_image("Mocha", self.tags))
        self.assertIsNone(match_image("", self.tags))


class TestFillMissingImages(unittest.TestCase):
    HTML = """
    <img alt="Iced Latte" src="../img/latte.png">
    <img alt="Mango Smoothie" data-src="https://cdn.example.com/mango.jpg">
    """

    def test_fills_gaps_with_absolute_urls(self):
        items = [
            ExtractedItem(name="Iced Latte", price=45000),
            ExtractedItem(name="Mango Smoothie", price=50000),
            ExtractedItem(name="Mocha", price=50000),
        ]
        filled = fill_missing_images(self.HTML, PAGE_URL, items)
        self.assertEqual(filled, 2)
        self.assertEqual(items[0].image_url, "https://example.com/img/latte.png")
        self.assertEqual(items[1].image_url, "https://cdn.example.com/mango.jpg")
        self.assertIsNone(items[2].image_url)

    def test_never_overrides_structured_image(self):
        item = ExtractedItem(name="Iced Latte", price=45000, image_url="https://cdn.example.com/own.png")
        filled = fill_missing_images(self.HTML, PAGE_URL, [item])
        self.assertEqual(filled, 0)
        self.assertEqual(item.image_url, "https://cdn.example.com/own.png")

    def test_page_without_img_tags(self):
        item = ExtractedItem(name="Iced Latte", price=45000)
        self.assertEqual(fill_missing_images("<p>menu</p>", PAGE_URL, [item]), 0)
        self.assertIsNone(item.image_url)


if __name__ == "__main__":
    unittest.main()
