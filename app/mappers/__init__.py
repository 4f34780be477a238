"""
app/mappers package marker.
"""

from app.mappers.field_schema import FieldMapping, FieldSchema, ValueType, default_schema
from app.mappers.filename_parser import FileInfo, parse_upload_filename
from app.mappers.sheet_extractor import ExtractionResult, SheetExtractor, SheetTable
from app.mappers.upload_parser import ParsedUpload, parse_operations_tables, parse_services_tables
from app.mappers.workbook_reader import read_workbook

__all__ = [
    "ExtractionResult",
    "FieldMapping",
    "FieldSchema",
    "FileInfo",
    "ParsedUpload",
    "SheetExtractor",
    "SheetTable",
    "ValueType",
    "default_schema",
    "parse_operations_tables",
    "parse_services_tables",
    "parse_upload_filename",
    "read_workbook",
]
