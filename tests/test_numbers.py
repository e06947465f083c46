import unittest

from lottoshop.draw.errors import TicketParseError
from lottoshop.draw.numbers import (
    NumberEntry,
    WinningEntry,
    normalize_number,
    parse_number_entries,
    prefix_of,
    series_of,
    series_prefixes,
)


class TestNormalizeNumber(unittest.TestCase):
    def test_strips_separators(self):
        for raw in ("10-07", "10 07", "10/07", "10.07", "10_07", " 1007 ", 1007):
            with self.subTest(raw=raw):
                self.assertEqual(normalize_number(raw), "1007")

    def test_rejects_wrong_length_or_letters(self):
        for raw in ("107", "10070", "10-0a", "", None, True):
            with self.subTest(raw=raw):
                with self.assertRaises(TicketParseError):
                    normalize_number(raw)


class TestParseNumberEntries(unittest.TestCase):
    def test_native_list_of_objects(self):
        entries = parse_number_entries(
            [{"ticketNumber": "10-07", "quantity": 2}, {"number": "3011", "quantity": "3"}]
        )
        self.assertEqual(entries, [NumberEntry("1007", 2), NumberEntry("3011", 3)])

    def test_json_text(self):
        raw = '[{"ticketNumber": "50-99", "quantity": 1}, {"ticketNumber": "1007"}]'
        self.assertEqual(
            parse_number_entries(raw), [NumberEntry("5099", 1), NumberEntry("1007", 0)]
        )

    def test_pair_string(self):
        self.assertEqual(
            parse_number_entries("10-07:2, 30-11:1,"),
            [NumberEntry("1007", 2), NumberEntry("3011", 1)],
        )

    def test_plain_numbers_default_to_zero_quantity(self):
        self.assertEqual(parse_number_entries("1007"), [NumberEntry("1007", 0)])
        self.assertEqual(parse_number_entries(5099), [NumberEntry("5099", 0)])

    def test_duplicates_are_kept_in_order(self):
        entries = parse_number_entries("10-07:1,30-11:2,10-07:4")
        self.assertEqual([e.number for e in entries], ["1007", "3011", "1007"])

    def test_empty_values(self):
        self.assertEqual(parse_number_entries(None), [])
        self.assertEqual(parse_number_entries("  "), [])
        self.assertEqual(parse_number_entries([]), [])

    def test_invalid_encodings_raise(self):
        for raw in ("[{", "10-07:-1", "10-07:1.5", "10-07:x", "ab-cd:1", [3.5], object()):
            with self.subTest(raw=raw):
                with self.assertRaises(TicketParseError):
                    parse_number_entries(raw)


class TestSeriesHelpers(unittest.TestCase):
    def test_series_of(self):
        self.assertEqual(series_of("1000"), 10)
        self.assertEqual(series_of("1999"), 10)
        self.assertEqual(series_of("3450"), 30)
        self.assertEqual(series_of("5999"), 50)
        self.assertIsNone(series_of("2000"))
        self.assertIsNone(series_of("6000"))
        self.assertIsNone(series_of("0999"))

    def test_prefixes(self):
        self.assertEqual(prefix_of("3407"), 34)
        self.assertEqual(list(series_prefixes(50)), list(range(50, 60)))
        with self.assertRaises(ValueError):
            series_prefixes(20)

    def test_winning_entry_payout(self):
        entry = WinningEntry.for_quantity("1007", 3)
        self.assertEqual(entry.payout, 540)
        self.assertEqual(WinningEntry.filler("1007").to_dict(), {"number": "1007", "quantity": 0, "payout": 0})


if __name__ == "__main__":
    unittest.main()
