"""
Unit tests for XML snapshot rendering and sanitization.
"""

import xml.etree.ElementTree as ET

from mediadb.media_store.models import Media
from mediadb.media_store.serialization import sanitize_for_xml_storage, sanitize_xml_text, to_xml
from mediadb.media_store.schema import FOLDER, IMAGE


def _photo():
    media = Media(
        name="Photo",
        parent_id=1000,
        content_type=IMAGE,
        id=1001,
        key="3b6f3a5e-6a1f-4c55-8f43-0d1d1b9d2e0a",
        path="-1,1000,1001",
        level=2,
        version="v1",
    )
    media.set_value("umbracoWidth", 800)
    media.set_value("tags", ["sea", "sky"])
    return media


class TestSanitize:
    """Tests for XML text sanitization."""

    def test_control_characters_removed(self):
        assert sanitize_xml_text("a\x00b\x08c\x1fd") == "abcd"

    def test_allowed_whitespace_kept(self):
        assert sanitize_xml_text("a\tb\nc\rd") == "a\tb\nc\rd"

    def test_non_ascii_kept(self):
        assert sanitize_xml_text("Fjällräven \U0001f4f7") == "Fjällräven \U0001f4f7"

    def test_entity_name_and_string_values(self):
        media = Media(name="Bad\x02Name", parent_id=-1, content_type=IMAGE)
        media.set_value("umbracoFile", "/media/\x1bphoto.jpg")
        media.set_value("umbracoWidth", 800)

        sanitize_for_xml_storage(media)

        assert media.name == "BadName"
        assert media.get_value("umbracoFile") == "/media/photo.jpg"
        assert media.get_value("umbracoWidth") == 800

    def test_text_values(self):
        media = Media(name="Folder", parent_id=-1, content_type=FOLDER)
        media.set_value("contents", "line\x0cbreak")

        sanitize_for_xml_storage(media)

        assert media.get_value("contents") == "linebreak"


class TestToXml:
    """Tests for to_xml."""

    def test_element_and_attributes(self):
        element = ET.fromstring(to_xml(_photo()))

        assert element.tag == "image"
        assert element.get("id") == "1001"
        assert element.get("parentID") == "1000"
        assert element.get("path") == "-1,1000,1001"
        assert element.get("nodeName") == "Photo"
        assert element.get("nodeType") == "1032"
        assert element.get("version") == "v1"

    def test_property_children(self):
        element = ET.fromstring(to_xml(_photo()))

        assert element.find("umbracoWidth").text == "800"
        assert element.find("tags").text == "sea,sky"
        assert element.find("umbracoFile").text is None

    def test_output_always_parses(self):
        media = _photo()
        media.name = "Broken\x00<name> & more"

        element = ET.fromstring(to_xml(media))

        assert element.get("nodeName") == "Broken<name> & more"
