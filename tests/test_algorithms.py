import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import CalendarTools, SetupParser, WeightProgression


class WeightProgressionTestCase(unittest.TestCase):
    def test_small_increment_below_threshold(self) -> None:
        self.assertEqual(WeightProgression.increment_weight("9 plates"), "10 plates")
        self.assertEqual(WeightProgression.increment_weight("19.5 kg"), "20.5 kg")

    def test_large_increment_at_or_above_threshold(self) -> None:
        self.assertEqual(WeightProgression.increment_weight("22.5 plates"), "25 plates")
        self.assertEqual(WeightProgression.increment_weight("20 kg"), "22.5 kg")

    def test_label_without_digits_is_unchanged(self) -> None:
        self.assertEqual(WeightProgression.increment_weight("bodyweight"), "bodyweight")
        self.assertEqual(WeightProgression.increment_weight(""), "")

    def test_only_first_number_is_replaced(self) -> None:
        self.assertEqual(
            WeightProgression.increment_weight("pin 3 seat 12"), "pin 4 seat 12"
        )

    def test_custom_steps(self) -> None:
        self.assertEqual(
            WeightProgression.increment_weight("40 lb", threshold=50, small=5, large=10),
            "45 lb",
        )
        self.assertEqual(
            WeightProgression.increment_weight("50 lb", threshold=50, small=5, large=10),
            "60 lb",
        )


class CalendarToolsTestCase(unittest.TestCase):
    def test_days_between(self) -> None:
        self.assertEqual(CalendarTools.days_between("2024-01-02", "2024-01-01"), 1)
        self.assertEqual(CalendarTools.days_between("2024-03-01", "2024-02-28"), 2)
        self.assertEqual(CalendarTools.days_between("2024-01-01", "2024-01-01"), 0)

    def test_invalid_date(self) -> None:
        with self.assertRaises(ValueError):
            CalendarTools.parse("2024-13-01")
        for text in ("2024/01/01", "20240101", ""):
            with self.assertRaises(ValueError):
                CalendarTools.parse(text)

    def test_days_in_year(self) -> None:
        days = CalendarTools.days_in_year(2024)
        self.assertEqual(len(days), 366)
        self.assertEqual(days[0], "2024-01-01")
        self.assertEqual(days[-1], "2024-12-31")


class SetupParserTestCase(unittest.TestCase):
    def test_parse_and_summary(self) -> None:
        setup = SetupParser.parse("9 plates|1|6|12\n\n 7 plates | 2 | 6 | 12 ")
        self.assertEqual(len(setup), 2)
        self.assertEqual(setup[1].weight, "7 plates")
        self.assertEqual(setup[1].rounds, 2)
        self.assertEqual(
            SetupParser.summary(setup),
            "9 plates • 1r • 6-12 / 7 plates • 2r • 6-12",
        )
        self.assertEqual(SetupParser.to_text(setup), "9 plates|1|6|12\n7 plates|2|6|12")

    def test_invalid_line(self) -> None:
        with self.assertRaises(ValueError):
            SetupParser.parse("9 plates|one|6|12")


if __name__ == "__main__":
    unittest.main()
