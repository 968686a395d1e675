# =============================================================================
# Unit Tests: XML Parser
# =============================================================================

import pytest

from koordinates_ogc.parsers.xml_parser import parse_xml


WMTS_CAPABILITIES = b"""<?xml version="1.0" encoding="UTF-8"?>
<Capabilities xmlns="http://www.opengis.net/wmts/1.0"
              xmlns:ows="http://www.opengis.net/ows/1.1"
              version="1.0.0">
  <ows:ServiceIdentification>
    <ows:Title>LINZ Data Service</ows:Title>
    <ows:ServiceType>OGC WMTS</ows:ServiceType>
    <ows:ServiceTypeVersion>1.0.0</ows:ServiceTypeVersion>
  </ows:ServiceIdentification>
  <Contents>
    <Layer>
      <ows:Title>NZ 8m Digital Elevation Model (2012)</ows:Title>
      <ows:Identifier>layer-51768</ows:Identifier>
      <Style isDefault="true"><ows:Identifier>default</ows:Identifier></Style>
      <Format>image/png</Format>
    </Layer>
  </Contents>
</Capabilities>
"""


# =============================================================================
# Test: parse_xml
# =============================================================================

class TestParseXml:
    """Tests for parse_xml function."""

    def test_root_attributes(self):
        doc = parse_xml(WMTS_CAPABILITIES)
        assert doc["Capabilities"]["$"]["version"] == "1.0.0"

    def test_namespace_declarations_are_attributes(self):
        attrs = parse_xml(WMTS_CAPABILITIES)["Capabilities"]["$"]
        assert attrs["xmlns"] == "http://www.opengis.net/wmts/1.0"
        assert attrs["xmlns:ows"] == "http://www.opengis.net/ows/1.1"

    def test_prefixed_children_are_lists_of_text(self):
        service = parse_xml(WMTS_CAPABILITIES)["Capabilities"]["ows:ServiceIdentification"]
        assert len(service) == 1
        assert service[0]["ows:ServiceTypeVersion"] == ["1.0.0"]
        assert service[0]["ows:Title"] == ["LINZ Data Service"]

    def test_nested_element_with_attributes(self):
        layer = parse_xml(WMTS_CAPABILITIES)["Capabilities"]["Contents"][0]["Layer"][0]
        style = layer["Style"][0]
        assert style["$"] == {"isDefault": "true"}
        assert style["ows:Identifier"] == ["default"]
        assert layer["Format"] == ["image/png"]

    def test_repeated_elements(self):
        doc = parse_xml("<root><item>a</item><item>b</item></root>")
        assert doc == {"root": {"item": ["a", "b"]}}

    def test_text_with_attributes(self):
        doc = parse_xml('<root><name lang="en">Wellington</name></root>')
        assert doc["root"]["name"] == [{"$": {"lang": "en"}, "_": "Wellington"}]

    def test_empty_element(self):
        assert parse_xml("<root><empty/></root>") == {"root": {"empty": [""]}}

    def test_accepts_str(self):
        assert parse_xml("<root>value</root>") == {"root": "value"}

    def test_comments_are_ignored(self):
        assert parse_xml("<root><!-- note --><a>1</a></root>") == {"root": {"a": ["1"]}}

    def test_xml_lang_attribute(self):
        doc = parse_xml('<root xml:lang="mi">Aotearoa</root>')
        assert doc["root"] == {"$": {"xml:lang": "mi"}, "_": "Aotearoa"}

    def test_invalid_xml(self):
        with pytest.raises(ValueError, match="Invalid XML document"):
            parse_xml("<root><unclosed></root>")

    def test_empty_document(self):
        with pytest.raises(ValueError, match="empty"):
            parse_xml("   ")
