import unittest

from unitimetable.views import EMPTY, render_calendar, render_list
from tests.helpers import make_event


class TestViews(unittest.TestCase):
    def setUp(self) -> None:
        self.late = make_event(
            "Economics",
            1,
            "Statistics",
            start="2025-03-11T14:00:00",
            end="2025-03-11T16:00:00",
            instructor="Bianchi",
            cfu=6,
            rooms=({"des_edificio": "Building A", "des_piano": "Floor 1", "des_indirizzo": "Via Zamboni 33"},),
            teams_url="https://teams.example/x",
        )
        self.early = make_event("Economics", 2, "Public Economics", instructor="Rossi")

    def test_empty_views(self) -> None:
        self.assertEqual(render_list([]), EMPTY)
        self.assertEqual(render_calendar([]), EMPTY)

    def test_list_is_sorted_and_detailed(self) -> None:
        text = render_list([self.late, self.early])
        self.assertLess(text.index("Public Economics"), text.index("Statistics"))
        self.assertIn("2025-03-11 14:00 - 16:00  [Economics] Statistics (6 CFU)", text)
        self.assertIn("Teacher: Bianchi", text)
        self.assertIn("Room: Building A - Floor 1", text)
        self.assertIn("Address: Via Zamboni 33", text)
        self.assertIn("Teams: https://teams.example/x", text)

    def test_non_dict_first_room_shows_no_room(self) -> None:
        ev = make_event("Economics", 1, "Statistics", rooms=("junk", {"des_edificio": "Building B"}))
        self.assertNotIn("Building B", render_list([ev]))

    def test_calendar_groups_by_day(self) -> None:
        text = render_calendar([self.late, self.early])
        lines = text.splitlines()
        self.assertEqual(lines[0], "Monday 10 March 2025")
        self.assertEqual(lines[1], "  09:00 - 11:00  [Economics] Public Economics")
        self.assertIn("Tuesday 11 March 2025", lines)


if __name__ == "__main__":
    unittest.main()
