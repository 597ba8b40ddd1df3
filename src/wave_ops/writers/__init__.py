"""Writers module for exporting derived wave tables."""

from wave_ops.writers.base import BaseWriter
from wave_ops.writers.table_writer import (
    CsvTableWriter,
    ParquetTableWriter,
    make_table_writer,
    station_rows,
    trip_rows,
)

__all__ = [
    "BaseWriter",
    "CsvTableWriter",
    "ParquetTableWriter",
    "make_table_writer",
    "station_rows",
    "trip_rows",
]
