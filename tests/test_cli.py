"""Tests for the command line entry point."""

import json
from pathlib import Path

import pytest

from reviewscout.main import main

WORKED_EXAMPLE = "Amazing clean place with wonderful host and perfect hot tub view, highly recommend!"
PLAIN = "The place was fine for a short stay and we had no real issues at all."


@pytest.fixture
def reviews_file(tmp_path: Path) -> Path:
    path = tmp_path / "reviews.json"
    path.write_text(json.dumps([PLAIN, WORKED_EXAMPLE]), encoding="utf-8")
    return path


class TestCli:
    def test_analyze_prints_payload(self, reviews_file: Path, capsys) -> None:
        assert main(["analyze", str(reviews_file), "--top", "1", "--property-name", "Lake Cabin"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["topReviews"] == [WORKED_EXAMPLE]
        assert payload["propertyName"] == "Lake Cabin"

    def test_analyze_accepts_object_with_reviews(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "wrapped.json"
        path.write_text(json.dumps({"reviews": [PLAIN]}), encoding="utf-8")
        assert main(["analyze", str(path)]) == 0
        assert json.loads(capsys.readouterr().out)["totalReviews"] == 1

    def test_invalid_reviews_exit_code(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([PLAIN, 3]), encoding="utf-8")
        assert main(["analyze", str(path)]) == 2

    def test_rank(self, reviews_file: Path) -> None:
        assert main(["rank", str(reviews_file)]) == 0

    def test_no_command_prints_help(self) -> None:
        assert main([]) == 1

    @pytest.mark.parametrize("value", ["0", "-2"])
    def test_scrape_rejects_non_positive_max_reviews(self, value: str, capsys) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["scrape", "https://www.airbnb.com/rooms/1", "--max-reviews", value])
        assert exc.value.code == 2
        assert "must be >= 1" in capsys.readouterr().err
