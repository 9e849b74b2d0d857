"""
Unit tests for facet derivation and the filtered view.

Definition used here:
- An event is visible iff its program has a filter state, its year is
  selected and its (title, year, program) course key is selected.
- Changing the selected years never leaves a selected course of an
  unselected year behind.
"""

import unittest

from unitimetable.filters import (
    derive_facets,
    display_title,
    filter_events,
    initial_filter_state,
    select_courses,
    select_years,
    sort_for_list,
    visible_courses,
)
from unitimetable.model import CourseKey, ProgramFilterState
from tests.helpers import make_event


class TestDeriveFacets(unittest.TestCase):
    def setUp(self) -> None:
        self.events = [
            make_event("P", 1, "A", instructor="Rossi", cfu=6),
            make_event("P", 1, "A", start="2025-03-11T09:00:00", end="2025-03-11T11:00:00", instructor="Bianchi"),
            make_event("P", 3, "B"),
            make_event("Q", 2, "C"),
        ]

    def test_years_and_courses_per_program(self) -> None:
        facets = derive_facets(self.events)
        self.assertEqual(list(facets), ["P", "Q"])
        self.assertEqual(facets["P"].years, (1, 3))
        self.assertEqual([c.key for c in facets["P"].courses], [CourseKey("A", 1, "P"), CourseKey("B", 3, "P")])
        # first occurrence provides the metadata
        self.assertEqual(facets["P"].courses[0].instructor, "Rossi")
        self.assertEqual(facets["P"].courses[0].cfu, 6)
        self.assertIsNone(facets["P"].configured_years)

    def test_override_gives_full_range(self) -> None:
        facets = derive_facets(self.events, {"P": 4})
        self.assertEqual(facets["P"].years, (1, 2, 3, 4))
        self.assertEqual(facets["P"].configured_years, 4)
        self.assertEqual(facets["Q"].years, (2,))

    def test_underscore_titles_do_not_collide(self) -> None:
        events = [make_event("P", 1, "Lab_2"), make_event("P", 2, "Lab")]
        facets = derive_facets(events)
        self.assertEqual(len(facets["P"].courses), 2)
        state = select_years(initial_filter_state(facets)["P"], [1])
        self.assertEqual(state.selected_courses, frozenset({CourseKey("Lab_2", 1, "P")}))

    def test_initial_state_selects_everything(self) -> None:
        states = initial_filter_state(derive_facets(self.events))
        self.assertEqual(states["P"].selected_years, frozenset({1, 3}))
        self.assertEqual(states["P"].selected_courses, frozenset({CourseKey("A", 1, "P"), CourseKey("B", 3, "P")}))
        self.assertEqual(filter_events(self.events, states), self.events)


class TestSelection(unittest.TestCase):
    def test_select_years_prunes_courses(self) -> None:
        state = ProgramFilterState(
            selected_years=frozenset({1, 2, 3}),
            selected_courses=frozenset({CourseKey("A", 1, "P"), CourseKey("B", 2, "P"), CourseKey("C", 3, "P")}),
        )
        for years in ([1], [2, 3], [], [1, 2, 3]):
            new = select_years(state, years)
            self.assertEqual(new.selected_years, frozenset(years))
            for key in new.selected_courses:
                self.assertIn(key.year, new.selected_years)
        self.assertEqual(select_years(state, [2]).selected_courses, frozenset({CourseKey("B", 2, "P")}))

    def test_reselecting_a_year_does_not_restore_courses(self) -> None:
        state = ProgramFilterState(frozenset({1, 2}), frozenset({CourseKey("A", 1, "P"), CourseKey("B", 2, "P")}))
        state = select_years(select_years(state, [1]), [1, 2])
        self.assertEqual(state.selected_courses, frozenset({CourseKey("A", 1, "P")}))

    def test_select_courses_ignores_unselected_years(self) -> None:
        state = ProgramFilterState(frozenset({1}), frozenset())
        new = select_courses(state, [CourseKey("A", 1, "P"), CourseKey("B", 2, "P")])
        self.assertEqual(new.selected_courses, frozenset({CourseKey("A", 1, "P")}))

    def test_visible_courses(self) -> None:
        facets = derive_facets([make_event("P", 1, "A"), make_event("P", 2, "B")])["P"]
        state = ProgramFilterState(frozenset({2}), frozenset())
        self.assertEqual([c.title for c in visible_courses(facets, state)], ["B"])


class TestFilterEvents(unittest.TestCase):
    def test_exact_intersection(self) -> None:
        a = make_event("P", 1, "A")
        b = make_event("P", 2, "B")
        c = make_event("Q", 1, "C")
        states = {"P": ProgramFilterState(frozenset({1}), frozenset({CourseKey("A", 1, "P")}))}
        self.assertEqual(filter_events([a, b, c], states), [a])

    def test_course_selected_but_year_not(self) -> None:
        a = make_event("P", 1, "A")
        states = {"P": ProgramFilterState(frozenset({2}), frozenset({CourseKey("A", 1, "P")}))}
        self.assertEqual(filter_events([a], states), [])

    def test_input_order_kept(self) -> None:
        late = make_event("P", 1, "A", start="2025-03-12T09:00:00", end="2025-03-12T10:00:00")
        early = make_event("P", 1, "A", start="2025-03-10T09:00:00", end="2025-03-10T10:00:00")
        states = initial_filter_state(derive_facets([late, early]))
        self.assertEqual(filter_events([late, early], states), [late, early])
        self.assertEqual(sort_for_list([late, early]), [early, late])

    def test_display_title(self) -> None:
        self.assertEqual(display_title(make_event("P", 1, "A")), "[P] A")


if __name__ == "__main__":
    unittest.main()
