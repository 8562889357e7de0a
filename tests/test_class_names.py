import logging

from src.classification.ClassNames import ClassNameTable


CLASS_MAP_CSV = (
    "index,mid,display_name\n"
    "0,/m/09x0r,Speech\n"
    '1,/m/0ytgt,"Child speech, kid speaking"\n'
    "2,/m/01h8n0\n"
    "3,/m/02zsn,Female speech\n"
)


class TestClassNameTable:

    def test_loads_display_names_in_order(self, tmp_path):
        path = tmp_path / "yamnet_class_map.csv"
        path.write_text(CLASS_MAP_CSV, encoding="utf-8")

        table = ClassNameTable.from_csv(path)

        assert len(table) == 4
        assert table.label(0) == "Speech"
        assert table.label(1) == "Child speech, kid speaking"
        assert table.label(3) == "Female speech"

    def test_short_row_keeps_alignment(self, tmp_path):
        path = tmp_path / "yamnet_class_map.csv"
        path.write_text(CLASS_MAP_CSV, encoding="utf-8")

        table = ClassNameTable.from_csv(path)

        assert table.label(2) == "Unknown"
        assert table.label(3) == "Female speech"

    def test_missing_file_gives_empty_table(self, tmp_path, caplog):
        with caplog.at_level(logging.ERROR):
            table = ClassNameTable.from_csv(tmp_path / "absent.csv")

        assert len(table) == 0
        assert "Failed to load class names" in caplog.text

    def test_out_of_range_lookups_use_placeholders(self):
        table = ClassNameTable(["Speech", "Music"])

        assert table.label(1) == "Music"
        assert table.label(2) == "Unknown"
        assert table.label(-1) == "Unknown"
        assert table.prediction_label(1) == "Music"
        assert table.prediction_label(520) == "Class_520"

    def test_empty_table(self):
        table = ClassNameTable()

        assert len(table) == 0
        assert table.label(0) == "Unknown"
        assert table.prediction_label(0) == "Class_0"
