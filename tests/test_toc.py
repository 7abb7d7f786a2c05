import tempfile
import unittest
from pathlib import Path
import zipfile

from lxml import etree as LXML_ET

from epubmeta.container import member_index
from epubmeta.errors import MalformedXml, MissingTocReference
from epubmeta.models import Toc, TocNode
from epubmeta.package import parse_package
from epubmeta.toc import parse_nav, parse_ncx, resolve_toc, unmatched_hrefs

from epub_fixtures import epub2_files, epub3_files, nav_point, nav_xhtml, ncx_xml, package_xml, write_epub


def _nav_root(toc_list: str, **kwargs: str) -> LXML_ET._Element:
    return LXML_ET.fromstring(nav_xhtml(toc_list, **kwargs).encode("utf-8"))


class NcxTests(unittest.TestCase):
    def test_nested_nav_points(self) -> None:
        root = LXML_ET.fromstring(epub2_files()["OEBPS/toc.ncx"].encode("utf-8"))
        toc = parse_ncx(root, "/OEBPS/toc.ncx", 64)

        self.assertEqual(len(toc.contents), 3)
        self.assertEqual(toc.contents[0], TocNode(title="Preface", href="/OEBPS/text/preface.xhtml"))
        self.assertIsNone(toc.contents[0].children)
        part = toc.contents[1]
        self.assertEqual(part.title, "Part One")
        self.assertIsNotNone(part.children)
        self.assertEqual(len(part.children), 2)
        self.assertEqual(part.children[0].href, "/OEBPS/text/ch1.xhtml")
        self.assertEqual(part.children[1].href, "/OEBPS/text/ch 2.xhtml")
        self.assertIsNone(toc.contents[2].children)

    def test_ncx_hrefs_resolve_against_the_ncx_directory(self) -> None:
        root = LXML_ET.fromstring(ncx_xml(nav_point("a", "One", "../Text/one.xhtml")).encode("utf-8"))
        toc = parse_ncx(root, "/OEBPS/toc/toc.ncx", 64)
        self.assertEqual(toc.contents[0].href, "/OEBPS/Text/one.xhtml")

    def test_missing_nav_map(self) -> None:
        root = LXML_ET.fromstring(b"<ncx xmlns=\"http://www.daisy.org/z3986/2005/ncx/\"><head/></ncx>")
        with self.assertRaises(MalformedXml):
            parse_ncx(root, "/toc.ncx", 64)

    def test_depth_limit(self) -> None:
        nested = nav_point("c", "C", "c.xhtml")
        nested = nav_point("b", "B", "b.xhtml", nested)
        nested = nav_point("a", "A", "a.xhtml", nested)
        root = LXML_ET.fromstring(ncx_xml(nested).encode("utf-8"))
        self.assertEqual(parse_ncx(root, "/toc.ncx", 3).contents[0].children[0].children[0].title, "C")
        with self.assertRaises(MalformedXml):
            parse_ncx(root, "/toc.ncx", 2)


class NavTests(unittest.TestCase):
    def test_heading_only_entry_has_no_href(self) -> None:
        root = LXML_ET.fromstring(epub3_files()["OEBPS/nav.xhtml"].encode("utf-8"))
        toc = parse_nav(root, "/OEBPS/nav.xhtml", 64)

        self.assertEqual(
            toc,
            Toc(
                contents=(
                    TocNode(title="Front Matter"),
                    TocNode(title="Chapter One", href="/OEBPS/text/ch1.xhtml"),
                    TocNode(title="Chapter Two", href="/OEBPS/text/ch2.xhtml"),
                )
            ),
        )

    def test_nested_lists_and_text_normalization(self) -> None:
        toc_list = (
            "<ol>"
            "<li><a href=\"preface.xhtml\">Preface</a></li>"
            "<li><a href=\"title-page.xhtml\">Jane Eyre</a>"
            "<ol>"
            "<li><a href=\"chapter-1.xhtml\">Chapter 1</a></li>"
            "<li><a href=\"chapter-2.xhtml\"> Chapter 2 </a></li>"
            "<li><a href=\"chapter-3.xhtml\"><span>Chapter 3 </span></a></li>"
            "<li><a href=\"chapter-4.xhtml\"> <span> Chapter</span> 4</a></li>"
            "<li><span><span>Chapter</span> 5</span></li>"
            "</ol></li>"
            "<li>Appendices<ol></ol></li>"
            "</ol>"
        )
        toc = parse_nav(_nav_root(toc_list), "/epub/toc.xhtml", 64)

        self.assertEqual(len(toc.contents), 3)
        self.assertIsNone(toc.contents[0].children)
        chapters = toc.contents[1].children
        self.assertEqual([node.title for node in chapters], ["Chapter 1", "Chapter 2", "Chapter 3", "Chapter 4", "Chapter 5"])
        self.assertEqual(chapters[0].href, "/epub/chapter-1.xhtml")
        self.assertIsNone(chapters[4].href)
        self.assertEqual(toc.contents[2], TocNode(title="Appendices"))

    def test_nav_with_toc_id_is_accepted(self) -> None:
        toc_list = "<ol><li><a href=\"a.xhtml\">A</a></li></ol>"
        toc = parse_nav(_nav_root(toc_list, nav_attrs="id=\"toc\""), "/nav.xhtml", 64)
        self.assertEqual(toc.contents, (TocNode(title="A", href="/a.xhtml"),))

    def test_missing_toc_nav(self) -> None:
        root = LXML_ET.fromstring(b"<html xmlns=\"http://www.w3.org/1999/xhtml\"><body><p/></body></html>")
        with self.assertRaises(MissingTocReference):
            parse_nav(root, "/nav.xhtml", 64)

    def test_toc_nav_without_list(self) -> None:
        with self.assertRaises(MalformedXml):
            parse_nav(_nav_root("<p>empty</p>"), "/nav.xhtml", 64)


class ResolveTocTests(unittest.TestCase):
    def _resolve(self, files: dict) -> tuple[Toc, dict]:
        with tempfile.TemporaryDirectory() as tmp:
            path = write_epub(Path(tmp) / "book.epub", files)
            with zipfile.ZipFile(path, "r") as zf:
                index = member_index(zf)
                package = parse_package(zf.read("OEBPS/content.opf"), "/OEBPS/content.opf")
                return resolve_toc(package, zf, index, 64), package.manifest

    def test_epub2_uses_ncx(self) -> None:
        toc, manifest = self._resolve(epub2_files())
        self.assertEqual(len(toc.contents), 3)
        self.assertEqual(unmatched_hrefs(toc, manifest), [])

    def test_epub3_uses_nav_document(self) -> None:
        toc, manifest = self._resolve(epub3_files())
        self.assertIsNone(toc.contents[0].href)
        for node in toc.contents[1:]:
            self.assertIn(node.href, manifest)

    def test_epub3_ignores_legacy_ncx(self) -> None:
        files = epub3_files()
        files["OEBPS/content.opf"] = package_xml(
            version="3.0",
            items=[
                ("nav", "nav.xhtml", "application/xhtml+xml", "nav"),
                ("ncx", "toc.ncx", "application/x-dtbncx+xml", ""),
                ("ch1", "text/ch1.xhtml", "application/xhtml+xml", ""),
                ("ch2", "text/ch2.xhtml", "application/xhtml+xml", ""),
            ],
            spine=["ch1", "ch2"],
            spine_toc="ncx",
        )
        files["OEBPS/toc.ncx"] = ncx_xml(nav_point("x", "From NCX", "text/ch1.xhtml"))
        toc, _ = self._resolve(files)
        self.assertEqual(toc.contents[1].title, "Chapter One")

    def test_epub2_without_toc_attribute(self) -> None:
        files = epub2_files()
        files["OEBPS/content.opf"] = package_xml(
            version="2.0",
            items=[("ncx", "toc.ncx", "application/x-dtbncx+xml", ""), ("ch1", "text/ch1.xhtml", None, "")],
            spine=["ch1"],
        )
        with self.assertRaises(MissingTocReference):
            self._resolve(files)

    def test_epub2_toc_attribute_without_manifest_item(self) -> None:
        files = epub2_files()
        files["OEBPS/content.opf"] = package_xml(
            version="2.0",
            items=[("ch1", "text/ch1.xhtml", None, "")],
            spine=["ch1"],
            spine_toc="ncx",
        )
        with self.assertRaises(MissingTocReference):
            self._resolve(files)

    def test_epub3_without_nav_item(self) -> None:
        files = epub3_files()
        files["OEBPS/content.opf"] = package_xml(
            version="3.0",
            items=[("ch1", "text/ch1.xhtml", "application/xhtml+xml", "")],
            spine=["ch1"],
        )
        with self.assertRaises(MissingTocReference):
            self._resolve(files)

    def test_nav_item_missing_from_archive(self) -> None:
        files = epub3_files()
        del files["OEBPS/nav.xhtml"]
        with self.assertRaises(MissingTocReference):
            self._resolve(files)

    def test_unmatched_href_is_kept_and_logged(self) -> None:
        files = epub3_files()
        files["OEBPS/nav.xhtml"] = nav_xhtml(
            "<ol><li><a href=\"text/ch1.xhtml\">One</a></li><li><a href=\"text/lost.xhtml\">Lost</a></li></ol>"
        )
        with self.assertLogs("epubmeta.toc", level="WARNING") as logs:
            toc, manifest = self._resolve(files)
        self.assertEqual(toc.contents[1].href, "/OEBPS/text/lost.xhtml")
        self.assertEqual(unmatched_hrefs(toc, manifest), ["/OEBPS/text/lost.xhtml"])
        self.assertIn("/OEBPS/text/lost.xhtml", logs.output[0])


if __name__ == "__main__":
    unittest.main()
