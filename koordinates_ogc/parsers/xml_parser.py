"""
XML Parser Module
=================

Capability documents returned by the OGC services of a Koordinates site
(WFS, WMTS and CS-W ``GetCapabilities`` responses) are XML.
:func:`parse_xml` turns such a document into plain Python containers so
that callers can navigate it without an XML API.

The layout of the result follows the widely used "xml2js" convention:

* the result is a one-key dict mapping the root tag to its content;
* tag names keep their namespace prefix (``ows:ServiceTypeVersion``);
* attributes, including namespace declarations, are grouped under
  ``"$"``;
* child elements are collected in lists under their tag name, even when
  they occur only once;
* an element with neither attributes nor children becomes its text (an
  empty string when it has none); otherwise its text, if any non-blank
  text exists, is stored under ``"_"``.

Example
-------
>>> doc = parse_xml('<Capabilities version="1.0.0"><Title>DEM</Title></Capabilities>')
>>> doc["Capabilities"]["$"]["version"]
'1.0.0'
>>> doc["Capabilities"]["Title"]
['DEM']
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from lxml import etree

ATTR_KEY = "$"
TEXT_KEY = "_"
XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

# Entities are never expanded and no external resource is fetched.
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)


def _tag_name(element: Any) -> str:
    localname = etree.QName(element).localname
    return f"{element.prefix}:{localname}" if element.prefix else localname


def _attribute_name(name: str, nsmap: Dict[Optional[str], str]) -> str:
    """Return ``prefix:local`` for a Clark-notation ``{uri}local`` name."""
    qname = etree.QName(name)
    if qname.namespace is None:
        return qname.localname
    if qname.namespace == XML_NAMESPACE:
        return f"xml:{qname.localname}"
    for prefix, uri in nsmap.items():
        if uri == qname.namespace and prefix:
            return f"{prefix}:{qname.localname}"
    return qname.localname


def _namespace_declarations(element: Any) -> Dict[str, str]:
    parent = element.getparent()
    inherited = parent.nsmap if parent is not None else {}
    declared = {}
    for prefix, uri in element.nsmap.items():
        if inherited.get(prefix) != uri:
            declared["xmlns" if prefix is None else f"xmlns:{prefix}"] = uri
    return declared


def _element_to_obj(element: Any) -> Union[str, Dict[str, Any]]:
    obj: Dict[str, Any] = {}

    attributes = _namespace_declarations(element)
    for name, value in element.attrib.items():
        attributes[_attribute_name(name, element.nsmap)] = value
    if attributes:
        obj[ATTR_KEY] = attributes

    texts = [element.text or ""]
    for child in element:
        # processing instructions have a non-string tag
        if isinstance(child.tag, str):
            key = _tag_name(child)
            obj.setdefault(key, []).append(_element_to_obj(child))
        texts.append(child.tail or "")
    text = "".join(texts)

    if not obj:
        return text
    if text.strip():
        obj[TEXT_KEY] = text
    return obj


def parse_xml(document: Union[str, bytes]) -> Dict[str, Any]:
    """Parse an XML document into nested dicts and lists.

    Parameters
    ----------
    document : str or bytes
        The XML text.  Bytes are preferred because they let the parser
        honour the encoding declared in the XML prolog.

    Returns
    -------
    dict
        A single-key dict ``{root_tag: content}``.

    Raises
    ------
    ValueError
        If ``document`` is empty or not well-formed XML.
    """
    if isinstance(document, str):
        document = document.encode("utf-8")
    if not document or not document.strip():
        raise ValueError("Cannot parse an empty XML document")
    try:
        root = etree.fromstring(document, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise ValueError(f"Invalid XML document: {exc}") from exc
    return {_tag_name(root): _element_to_obj(root)}


__all__ = ["parse_xml"]
