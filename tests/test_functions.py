import pytest

from sheetcalc.errors import ErrorCode, EvaluationError
from sheetcalc.functions import (
    SHEET_FUNCTIONS,
    average,
    check_arity,
    count,
    get_function,
    is_supported,
    max_,
    min_,
    suggest_function,
    sum_,
)


class TestAggregates:
    def test_sum(self):
        assert sum_(1, 2, 3) == 6
        assert sum_() == 0
        # Ranges arrive as lists, only numbers count
        assert sum_(1, [2, "x", None, True], 3.5) == 6.5

    def test_average(self):
        assert average(10, 20, 30) == 20
        assert average([1, "skip", 2]) == 1.5
        assert average() == 0
        assert average("a", None) == 0

    def test_min_max(self):
        assert min_(5, 3, 7) == 3
        assert max_(5, 3, 7) == 7
        assert max_([1, 9], 2) == 9
        assert min_([-1, None], "text") == -1

    def test_min_max_without_numbers(self):
        assert min_() == 0
        assert max_("a", [None, False]) == 0

    def test_count(self):
        assert count(1, 2, "text", 3) == 4
        assert count(1, None, [None, 2, "x"], False) == 4
        assert count([None, None]) == 0


class TestRegistry:
    def test_lookup_is_case_insensitive(self):
        assert get_function("sum") is sum_
        assert get_function("Avg") is average
        assert get_function("AVERAGE") is average

    def test_registered_names(self):
        assert set(SHEET_FUNCTIONS) == {"SUM", "AVG", "AVERAGE", "MIN", "MAX", "COUNT"}

    def test_is_supported(self):
        assert is_supported("if")
        assert is_supported("count")
        assert not is_supported("VLOOKUP")

    def test_unknown_function(self):
        with pytest.raises(EvaluationError) as exc_info:
            get_function("UNKNOWN")
        assert exc_info.value.code == ErrorCode.EVAL
        assert "Unknown function: UNKNOWN" in str(exc_info.value)

    def test_unknown_function_suggestion(self):
        with pytest.raises(EvaluationError, match="did you mean SUM"):
            get_function("SUMM")

    def test_suggest_function(self):
        assert suggest_function("AVERAG") == "AVERAGE"
        assert suggest_function("iff") == "IF"
        assert suggest_function("XYZZY") is None

    def test_check_arity(self):
        check_arity("IF", (1, 2, 3), 3)
        with pytest.raises(EvaluationError, match="exactly 3 arguments, got 2"):
            check_arity("IF", (1, 2), 3)
