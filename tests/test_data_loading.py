from __future__ import annotations

from pathlib import Path

import pytest

from src.data import RatingRecord, load_ratings, records_from_frame, separator_pattern


BX_SAMPLE = (
    '"User-ID";"ISBN";"Book-Rating"\n'
    '"276725";"034545104X";"0"\n'
    '"276726";"0155061224";"5"\n'
    '"276727";"0446520802";"10"\n'
    '"276729";"NA";"3"\n'
)


def _write(tmp_path: Path, text: str, name: str = "ratings.csv") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


def test_load_book_crossing_style_file(tmp_path: Path) -> None:
    ratings = load_ratings(_write(tmp_path, BX_SAMPLE))

    assert list(ratings.columns) == ["userId", "itemId", "rating"]
    assert len(ratings) == 4
    assert ratings["itemId"].tolist() == ["034545104x", "0155061224", "0446520802", "na"]
    assert ratings["userId"].tolist()[0] == "276725"
    assert ratings["rating"].tolist() == [0, 5, 10, 3]
    assert str(ratings["rating"].dtype) == "int64"


def test_records_from_frame(tmp_path: Path) -> None:
    records = records_from_frame(load_ratings(_write(tmp_path, BX_SAMPLE)))

    assert records[1] == RatingRecord(user_id="276726", item_id="0155061224", rating=5)
    assert all(isinstance(r.rating, int) for r in records)


def test_custom_separators_and_no_header(tmp_path: Path) -> None:
    path = _write(tmp_path, "Alice,BookA,7\nBob,BookB,2\n")

    ratings = load_ratings(path, separators=",", n_header_rows=0)
    assert ratings["userId"].tolist() == ["alice", "bob"]
    assert ratings["itemId"].tolist() == ["booka", "bookb"]


def test_non_numeric_rating_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, '"User-ID";"ISBN";"Book-Rating"\n"1";"x";"great"\n')
    with pytest.raises(ValueError, match="non-numeric"):
        load_ratings(path)


def test_out_of_range_rating_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, '"User-ID";"ISBN";"Book-Rating"\n"1";"x";"11"\n"2";"y";"4"\n')
    with pytest.raises(ValueError, match="invalid rating values"):
        load_ratings(path)


def test_wrong_column_count_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "h\n1;2\n3;4\n")
    with pytest.raises(ValueError, match="expected 3 columns"):
        load_ratings(path)


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_ratings(tmp_path / "nope.csv")


def test_header_only_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_ratings(_write(tmp_path, '"User-ID";"ISBN";"Book-Rating"\n'))


def test_separator_pattern_escapes_regex_characters() -> None:
    assert separator_pattern('";\\') == '[";\\\\]+'
    with pytest.raises(ValueError):
        separator_pattern("")


@pytest.mark.parametrize("token", ["5.0", "-3", "7e0"])
def test_non_integer_rating_token_is_rejected(tmp_path: Path, token: str) -> None:
    path = _write(tmp_path, f'"User-ID";"ISBN";"Book-Rating"\n"1";"x";"{token}"\n"2";"y";"4"\n')
    with pytest.raises(ValueError, match="non-integer"):
        load_ratings(path)
