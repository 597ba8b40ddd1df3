import logging

import numpy as np
import pandas as pd
import pytest

from wave_ops.domain.models import (
    InfeedHuRow,
    IntervalRow,
    LoadingRow,
    SortationRow,
    StationCompletionRow,
    TimelinePoint,
)
from wave_ops.ingest.readers import read_table, rows_from_frame, wave_macro_from_frame
from wave_ops.ingest.schemas import (
    FILE_SCHEMAS,
    FileKind,
    UnknownFileKindError,
    detect_file_kind,
    require_file_kind,
    validate_columns,
)


class TestDetectFileKind:
    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("wave_macros_20250314.xlsx", FileKind.WAVE_MACROS),
            ("updated_loading_dashboard_query_0900.xlsx", FileKind.LOADING),
            ("Secondary_Sortation.xlsx", FileKind.SORTATION),
            ("line_completion_2 (1).xlsx", FileKind.LINE_COMPLETION),
            ("station_wise_sbl_productivity.xlsx", FileKind.SBL_STATIONS),
            ("ptl_table_lines.csv", FileKind.PTL_STATIONS),
            ("sbl_productivity_withtime.xlsx", FileKind.SBL_TIMELINE),
            ("ptl_productivity.xlsx", FileKind.PTL_TIMELINE),
            ("sbl_infeed_skus.csv", FileKind.INFEED_SKUS),
            ("sbl_infeed_hus.csv", FileKind.INFEED_HUS),
        ],
    )
    def test_exact_tokens(self, filename, expected):
        assert detect_file_kind(filename) == expected

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("Wave-Macro export.xlsx", FileKind.WAVE_MACROS),
            ("loading_dashboard.xlsx", FileKind.LOADING),
            ("line_completion_v3.xlsx", FileKind.LINE_COMPLETION),
            ("infeed_sku_list.csv", FileKind.INFEED_SKUS),
            ("infeed_hu_dump.csv", FileKind.INFEED_HUS),
        ],
    )
    def test_loose_patterns(self, filename, expected):
        assert detect_file_kind(filename) == expected

    def test_unknown_name(self):
        assert detect_file_kind("quarterly_report.xlsx") is None

        with pytest.raises(UnknownFileKindError, match="quarterly_report.xlsx"):
            require_file_kind("quarterly_report.xlsx")


class TestValidateColumns:
    def test_aliases_satisfy_required_fields(self):
        result = validate_columns(
            FileKind.LOADING, ["Trip", "Sorted", "Staged", "Loaded", "Total"]
        )

        assert result.is_valid
        assert result.warnings == [
            "Missing optional column: dock_door_queue",
            "Missing optional column: vehicle_no",
        ]

    def test_missing_required(self):
        result = validate_columns(FileKind.SORTATION, ["mm_trip"])

        assert not result.is_valid
        assert result.errors == [
            "Missing required column: qc_count "
            "(accepted: number_of_chu_at_qc, QC, qc, qc_pending)"
        ]

    def test_first_alias_wins(self):
        resolved = FILE_SCHEMAS[FileKind.LOADING].resolve(["Trip", "mm_trip"])

        assert resolved["trip_id"] == "mm_trip"


class TestRowsFromFrame:
    def test_loading_rows(self):
        frame = pd.DataFrame(
            {
                "mm_trip": ["T-1", "T-2"],
                "crates_sorted": [10, "n/a"],
                "crates_staged": [5, 2],
                "crates_loaded": [1, 0],
                "total_crate_count": [20, 8],
                "dockdoorQueue": [3, None],
                "vehicleNo": ["KA01AB1234", None],
            }
        )

        rows = rows_from_frame(FileKind.LOADING, frame)

        assert rows == (
            LoadingRow("T-1", 10, 5, 1, 20, 3, "KA01AB1234"),
            LoadingRow("T-2", 0, 2, 0, 8, 0, None),
        )

    def test_rows_without_key_are_dropped(self, caplog):
        frame = pd.DataFrame({"Trip": ["T-1", None, "  "], "QC": [4, 2, 1]})

        with caplog.at_level(logging.WARNING):
            rows = rows_from_frame(FileKind.SORTATION, frame)

        assert rows == (SortationRow("T-1", 4),)
        assert "Dropped 2 rows without trip_id" in caplog.text

    def test_numeric_station_codes_become_text(self):
        frame = pd.DataFrame(
            {"code": [101.0], "total_demand_lines": [50], "total_demand_packed_lines": [20]}
        )

        (row,) = rows_from_frame(FileKind.LINE_COMPLETION, frame)

        assert row == StationCompletionRow("101", 50, 20)

    def test_station_intervals_need_interval_number(self):
        frame = pd.DataFrame(
            {
                "interval_no": [1, "x", 2],
                "zone_code": ["S1", "S1", "S2"],
                "total_line_count": [10, 10, 12],
                "productivity": [60, 60, 72],
            }
        )

        rows = rows_from_frame(FileKind.SBL_STATIONS, frame)

        assert rows == (
            IntervalRow(1, "S1", 10, 60),
            IntervalRow(2, "S2", 12, 72),
        )

    def test_timeline_without_line_counts(self):
        frame = pd.DataFrame({"Interval": [1, 2], "PTL Productivity": [150, 165]})

        rows = rows_from_frame(FileKind.PTL_TIMELINE, frame)

        assert rows == (TimelinePoint(1, 0, 150), TimelinePoint(2, 0, 165))

    def test_handling_units_normalize_statuses(self):
        frame = pd.DataFrame(
            {
                "hu_code": ["HU1", "HU2"],
                "sku_code": ["A", "A"],
                "qty": [10, 5],
                "blocked_status": ["Blocked", np.nan],
                "feed_status": ["fed", None],
                "sku_code_1": ["B", None],
            }
        )

        first, second = rows_from_frame(FileKind.INFEED_HUS, frame)

        assert first.blocked
        assert first.feed_status == "FED"
        assert first.scanned_sku_code == "B"
        assert second == InfeedHuRow("HU2", "A", qty=5)

    def test_empty_frame(self):
        assert rows_from_frame(FileKind.LOADING, pd.DataFrame()) == ()

    def test_wave_macros_are_not_row_data(self):
        with pytest.raises(ValueError):
            rows_from_frame(FileKind.WAVE_MACROS, pd.DataFrame({"wave_id": ["W"]}))


def test_wave_macro_from_frame():
    frame = pd.DataFrame(
        {
            "wave_id": ["W-1", "W-2"],
            "start_time": ["2025-03-14T06:00:00Z", "ignored"],
            "cutoff_time_iso": ["2025-03-14T14:00:00Z", "ignored"],
            "total_orders": [10, 1],
            "total_order_lines": [100, 1],
            "split_lines_sbl": [np.nan, 1],
        }
    )

    record = wave_macro_from_frame(frame)

    assert record["wave_id"] == "W-1"
    assert record["start_time_iso"] == "2025-03-14T06:00:00Z"
    assert record["split_lines_sbl"] is None
    assert record["total_order_value"] is None
    assert wave_macro_from_frame(pd.DataFrame()) is None


class TestReadTable:
    def test_excel_from_path(self, tmp_path):
        path = tmp_path / "secondary_sortation.xlsx"
        pd.DataFrame({" mm_trip ": ["T-1"], "number_of_chu_at_qc": [3]}).to_excel(
            path, index=False
        )

        frame = read_table(path)

        assert list(frame.columns) == ["mm_trip", "number_of_chu_at_qc"]
        assert frame.iloc[0]["number_of_chu_at_qc"] == 3

    def test_csv_from_bytes(self):
        content = b"mm_trip,number_of_chu_at_qc\nT-1,3\nT-2,0\n"

        frame = read_table(content, filename="secondary_sortation.csv")

        assert len(frame) == 2

    def test_bytes_need_filename(self):
        with pytest.raises(ValueError, match="filename"):
            read_table(b"a,b\n")

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported file type: .txt"):
            read_table(tmp_path / "notes.txt")
