"""Parser modules for the koordinates_ogc project.

Parsing modules convert raw payloads (CSV, XML capability documents,
GeoJSON) into in-memory Python objects: lists of records, nested dicts
or GeoDataFrames.

Submodules are named ``<format>_parser.py``.
"""

from .csv_parser import MAX_BATCH_SIZE, count_records, read_csv_in_batches
from .xml_parser import parse_xml

__all__ = ["MAX_BATCH_SIZE", "count_records", "read_csv_in_batches", "parse_xml"]
