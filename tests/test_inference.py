import pytest

from reflex_databoard.inference import INT32_MAX, infer_column_type, infer_setting
from reflex_databoard.models import ColumnType, RawColumn, Setting

# --- Text samples ---

@pytest.mark.parametrize(
    "sample",
    ["2024-01-05", "20240105", "2024/01/05", "2024.01.05", "24-01-05", "2024年01月05日", " 2024-01-05 "],
)
def test_text_dates(sample):
    """Date-looking strings of length >= 8 are dates."""
    assert infer_column_type("String", sample) == ColumnType.DATE


def test_nine_digit_numeral_is_int():
    """Length 9 is not a long string and fails the date pattern, so it is an int."""
    assert infer_column_type("String", "123456789") == ColumnType.INT


def test_long_text_is_string():
    assert infer_column_type("String", "1234567890") == ColumnType.STRING
    assert infer_column_type("String", "Hello world") == ColumnType.STRING


@pytest.mark.parametrize(
    ("sample", "expected"),
    [
        ("42", ColumnType.INT),
        ("  7 ", ColumnType.INT),
        ("3.14", ColumnType.FLOAT),
        ("50%", ColumnType.FLOAT),
        (".5", ColumnType.FLOAT),
        ("1.2.3", ColumnType.FLOAT),
        ("%", ColumnType.STRING),
        (".", ColumnType.STRING),
        ("-5", ColumnType.STRING),
        ("Alice", ColumnType.STRING),
        ("", ColumnType.STRING),
    ],
)
def test_short_text(sample, expected):
    assert infer_column_type("String", sample) == expected


def test_short_date_like_text_is_not_a_date():
    """Fewer than 8 characters never match the date rule."""
    assert infer_column_type("String", "24-1-5") == ColumnType.STRING


# --- Numeric samples ---

def test_numbers():
    assert infer_column_type("Int64", 5) == ColumnType.INT
    assert infer_column_type("Float64", 5.0) == ColumnType.INT
    assert infer_column_type("Float64", 2.5) == ColumnType.FLOAT
    assert infer_column_type("Float64", float("nan")) == ColumnType.FLOAT


def test_large_int64_goes_through_text_rules():
    """Ids beyond the 32-bit range are classified from their decimal text."""
    assert infer_column_type("Int64", INT32_MAX) == ColumnType.INT
    assert infer_column_type("Int64", INT32_MAX + 1) == ColumnType.STRING
    assert infer_column_type("Int64", 9_999_999_999) == ColumnType.STRING


def test_large_number_with_other_tag_stays_numeric():
    assert infer_column_type("Float64", 9_999_999_999) == ColumnType.INT


@pytest.mark.parametrize("sample", [None, True, False, {"a": 1}, [1, 2]])
def test_other_samples_are_strings(sample):
    assert infer_column_type("Boolean", sample) == ColumnType.STRING


def test_inference_is_deterministic():
    samples = ["2024-01-05", "42", 3.5, None, 2_147_483_648]
    first = [infer_column_type("Int64", s) for s in samples]
    assert first == [infer_column_type("Int64", s) for s in samples]


# --- Setting construction ---

def test_infer_setting_keeps_column_order():
    columns = [
        RawColumn(name="id", datatype="Int64", values=(5,)),
        RawColumn(name="name", datatype="String", values=("Alice",)),
        RawColumn(name="joined", datatype="String", values=("2023-03-01",)),
        RawColumn(name="empty", datatype="String", values=()),
    ]
    setting = infer_setting(columns)
    assert list(setting.columns.items()) == [
        ("id", ColumnType.INT),
        ("name", ColumnType.STRING),
        ("joined", ColumnType.DATE),
        ("empty", ColumnType.STRING),
    ]
    assert setting == Setting(columns=setting.columns)
    assert setting.active is False
