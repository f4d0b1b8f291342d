"""Unit tests for the schedule reconciler."""

import json
from datetime import date, datetime, time, timedelta, timezone

import pytest

from models import ConstraintSet, EndBy, Meal, MealAt, StartAt, TripDay
from planner.errors import ParseError
from planner.reconciler import (
    RepairPolicy,
    ScheduleReconciler,
    cascade,
    extract_activities_payload,
    parse_activities_from_response,
    parse_time_value,
    process_activities,
)


def at(hour, minute=0, day=1):
    return datetime(2024, 6, day, hour, minute, tzinfo=timezone.utc)


def raw_activity(name, start, end, day_id="day-1", **extra):
    activity = {
        "day_id": day_id,
        "day_date": "2024-06-01",
        "name": name,
        "type": "sightseeing",
        "start_time": start,
        "end_time": end,
        "location": "Piazza Navona, Roma",
        "priority": 2,
        "cost": 12.5,
        "currency": "EUR",
        "notes": "Arrivare presto",
        "status": "planned",
    }
    activity.update(extra)
    return activity


def fenced(activities):
    return f"Ecco il programma:\n```json\n{json.dumps({'activities': activities})}\n```\n"


@pytest.fixture
def days():
    return [
        TripDay(id="day-1", day_date=date(2024, 6, 1)),
        TripDay(id="day-2", day_date=date(2024, 6, 2)),
    ]


def assert_no_overlap(activities):
    by_day = {}
    for activity in activities:
        by_day.setdefault(activity.day_date, []).append(activity)
    for day_activities in by_day.values():
        ordered = sorted(day_activities, key=lambda a: a.start_time)
        for previous, current in zip(ordered, ordered[1:]):
            assert previous.end_time <= current.start_time


class TestExtractPayload:
    def test_fenced_block(self):
        response = fenced([raw_activity("A", "2024-06-01T10:00:00Z", "2024-06-01T11:00:00Z")])
        assert len(extract_activities_payload(response)) == 1

    def test_bare_object_fallback(self, days):
        response = 'Certo! {"activities": [{"day_id": "day-1", "name": "Pantheon"}]} Buon viaggio'
        activities = parse_activities_from_response(response, days)
        assert [a.name for a in activities] == ["Pantheon"]

    def test_no_json(self):
        with pytest.raises(ParseError):
            extract_activities_payload("Mi dispiace, non posso aiutarti.")

    def test_invalid_json(self):
        with pytest.raises(ParseError) as exc_info:
            extract_activities_payload("```json\n{\"activities\": [\n```")
        assert exc_info.value.message == "Invalid response format"

    def test_missing_activities_array(self):
        with pytest.raises(ParseError):
            extract_activities_payload('{"items": []}')


class TestParseTimeValue:
    def test_iso_with_z(self):
        assert parse_time_value("2024-06-01T10:00:00Z", None) == at(10)

    def test_naive_is_utc(self):
        assert parse_time_value("2024-06-01T10:00:00", None) == at(10)

    def test_bare_time_anchored_to_day(self):
        assert parse_time_value("14:30", date(2024, 6, 1)) == at(14, 30)

    @pytest.mark.parametrize("value", [None, "", "domani", "25:00", 42])
    def test_unparsable(self, value):
        assert parse_time_value(value, date(2024, 6, 1)) is None


class TestRepair:
    def test_complete_activity_unchanged(self, days):
        raw = raw_activity("Colosseo", "2024-06-01T10:00:00Z", "2024-06-01T12:00:00Z")
        [activity] = process_activities([raw], days)

        assert activity.day_id == "day-1"
        assert activity.day_date == date(2024, 6, 1)
        assert activity.name == "Colosseo"
        assert activity.type == "sightseeing"
        assert activity.location == "Piazza Navona, Roma"
        assert activity.start_time == at(10)
        assert activity.end_time == at(12)
        assert activity.priority == 2
        assert activity.cost == 12.5
        assert activity.notes == "Arrivare presto"
        assert activity.status == "planned"

    def test_round_trip_only_reorders(self, days):
        late = raw_activity("Trastevere", "2024-06-01T18:00:00Z", "2024-06-01T20:00:00Z")
        early = raw_activity("Vaticano", "2024-06-01T09:00:00Z", "2024-06-01T12:00:00Z")
        activities = process_activities([late, early], days)

        assert [a.name for a in activities] == ["Vaticano", "Trastevere"]
        assert [(a.start_time, a.end_time) for a in activities] == [
            (at(9), at(12)),
            (at(18), at(20)),
        ]

    def test_backfill_times_by_index(self, days):
        raw = [{"day_id": "day-1", "name": f"Tappa {i}"} for i in range(3)]
        activities = process_activities(raw, days)

        assert activities[2].start_time == at(13)
        assert activities[2].end_time == at(14, 30)
        assert [a.start_time.hour for a in activities] == [9, 11, 13]

    def test_backfill_fields(self, days):
        [activity] = process_activities([{"day_id": "day-1"}], days)

        assert activity.name == "Attività 1"
        assert activity.type == "sightseeing"
        assert activity.location == "Da definire"
        assert activity.notes == "Visita a Da definire, un'attrazione imperdibile"
        assert activity.priority == 3
        assert activity.cost is None
        assert activity.currency == "EUR"
        assert activity.status == "planned"

    @pytest.mark.parametrize(
        "activity_type, expected",
        [
            ("food", "Gustare la cucina locale presso Trattoria da Enzo"),
            ("culture", "Esperienza culturale a Trattoria da Enzo"),
            ("shopping", "Shopping presso Trattoria da Enzo"),
            ("nature", "Esperienza nella natura a Trattoria da Enzo"),
            ("relax", "Attività di tipo relax a Trattoria da Enzo"),
        ],
    )
    def test_default_notes_by_type(self, days, activity_type, expected):
        raw = raw_activity(
            "Sosta", "10:00", "11:00",
            type=activity_type, location="Trattoria da Enzo", notes="  ",
        )
        [activity] = process_activities([raw], days)
        assert activity.notes == expected

    def test_unknown_day_reassigned(self, days):
        raw = raw_activity("Pincio", "2024-06-03T10:00:00Z", "2024-06-03T11:00:00Z", day_id="ghost")
        [activity] = process_activities([raw], days)
        assert activity.day_id == "day-1"
        assert activity.day_date == date(2024, 6, 1)

    def test_bare_times_anchored(self, days):
        raw = raw_activity("Mercato", "10:00", "11:30", day_id="day-2")
        [activity] = process_activities([raw], days)
        assert activity.start_time == at(10, day=2)
        assert activity.end_time == at(11, 30, day=2)

    def test_end_before_start_gets_default_duration(self, days):
        raw = raw_activity("Gelato", "2024-06-01T15:00:00Z", "2024-06-01T14:00:00Z")
        [activity] = process_activities([raw], days)
        assert activity.end_time == at(16, 30)

    def test_invalid_priority_and_cost(self, days):
        raw = raw_activity("Museo", "10:00", "11:00", priority=7, cost="gratis")
        [activity] = process_activities([raw], days)
        assert activity.priority == 3
        assert activity.cost is None

    def test_non_object_skipped(self, days):
        raw = ["testo", raw_activity("Museo", "10:00", "11:00")]
        assert [a.name for a in process_activities(raw, days)] == ["Museo"]


class TestStrictPolicy:
    def test_missing_field_rejected(self, days):
        with pytest.raises(ParseError):
            process_activities([{"day_id": "day-1"}], days, policy=RepairPolicy.strict())

    def test_unknown_day_rejected(self, days):
        raw = raw_activity("Pincio", "10:00", "11:00", day_id="ghost")
        with pytest.raises(ParseError):
            process_activities([raw], days, policy=RepairPolicy.strict())

    def test_inverted_times_rejected(self, days):
        raw = raw_activity("Gelato", "15:00", "14:00")
        with pytest.raises(ParseError):
            process_activities([raw], days, policy=RepairPolicy.strict())

    def test_complete_activity_accepted(self, days):
        raw = raw_activity("Colosseo", "10:00", "12:00")
        [activity] = process_activities([raw], days, policy=RepairPolicy.strict())
        assert activity.start_time == at(10)


class TestCascade:
    def test_overlap_pushed_after_buffer(self, days):
        raw = [
            raw_activity("Colosseo", "2024-06-01T10:00:00Z", "2024-06-01T11:00:00Z"),
            raw_activity("Foro Romano", "2024-06-01T10:30:00Z", "2024-06-01T11:30:00Z"),
        ]
        first, second = process_activities(raw, days)

        assert (first.start_time, first.end_time) == (at(10), at(11))
        assert (second.start_time, second.end_time) == (at(11, 30), at(12, 30))

    def test_touching_activities_get_buffer(self, days):
        raw = [
            raw_activity("A", "10:00", "11:00"),
            raw_activity("B", "11:00", "12:00"),
        ]
        _, second = process_activities(raw, days)
        assert (second.start_time, second.end_time) == (at(11, 30), at(12, 30))

    def test_chain(self, days):
        raw = [
            raw_activity("A", "10:00", "12:00"),
            raw_activity("B", "10:30", "11:00"),
            raw_activity("C", "11:00", "13:00"),
        ]
        activities = process_activities(raw, days)

        assert [(a.start_time, a.end_time) for a in activities] == [
            (at(10), at(12)),
            (at(12, 30), at(13)),
            (at(13, 30), at(15, 30)),
        ]
        assert_no_overlap(activities)

    def test_days_are_independent(self, days):
        raw = [
            raw_activity("A", "10:00", "11:00", day_id="day-1"),
            raw_activity("B", "10:00", "11:00", day_id="day-2"),
        ]
        activities = process_activities(raw, days)
        assert [a.start_time for a in activities] == [at(10), at(10, day=2)]

    def test_no_overlap_property(self, days):
        raw = [
            raw_activity(f"Tappa {i}", f"{9 + i % 3}:{15 * (i % 4):02d}", f"{10 + i % 3}:45",
                         day_id="day-1" if i % 2 else "day-2")
            for i in range(8)
        ]
        activities = process_activities(raw, days)

        assert len(activities) == 8
        assert_no_overlap(activities)

    def test_cascade_function_keeps_durations(self, days):
        reconciler = ScheduleReconciler(days)
        activities = [
            reconciler.repair(raw_activity("A", "10:00", "11:00"), 0),
            reconciler.repair(raw_activity("B", "10:15", "10:45"), 1),
        ]
        shifted = cascade(activities)
        assert shifted[1].start_time == at(11, 30)
        assert shifted[1].duration == timedelta(minutes=30)


class TestTimeConstraints:
    def test_start_at_shifts_first_activity(self, days):
        constraints = ConstraintSet(time_constraints=(StartAt(time=time(10, 0)),))
        raw = [
            raw_activity("A", "09:00", "10:00"),
            raw_activity("B", "10:30", "11:30"),
        ]
        first, second = process_activities(raw, days, constraints)

        assert (first.start_time, first.end_time) == (at(10), at(11))
        assert (second.start_time, second.end_time) == (at(11, 30), at(12, 30))

    def test_late_start_at_moves_whole_day(self, days):
        constraints = ConstraintSet(time_constraints=(StartAt(time=time(14, 0)),))
        raw = [
            raw_activity("A", "09:00", "10:00"),
            raw_activity("B", "10:00", "11:00"),
        ]
        activities = process_activities(raw, days, constraints)

        assert [(a.name, a.start_time, a.end_time) for a in activities] == [
            ("A", at(14), at(15)),
            ("B", at(15, 30), at(16, 30)),
        ]

    def test_start_at_with_earlier_meal_anchor(self, days):
        constraints = ConstraintSet(
            time_constraints=(
                StartAt(time=time(10, 0)),
                MealAt(meal=Meal.breakfast, time=time(8, 0)),
            )
        )
        raw = [
            raw_activity("Colazione al bar", "09:00", "09:30", type="food"),
            raw_activity("Musei Vaticani", "09:00", "12:00"),
            raw_activity("Pantheon", "13:00", "14:00"),
        ]
        activities = process_activities(raw, days, constraints)

        assert [(a.name, a.start_time, a.end_time) for a in activities] == [
            ("Colazione al bar", at(8), at(8, 30)),
            ("Musei Vaticani", at(10), at(13)),
            ("Pantheon", at(13, 30), at(14, 30)),
        ]

    def test_meal_label_matches_whole_words(self, days):
        constraints = ConstraintSet(time_constraints=(MealAt(meal=Meal.dinner, time=time(20, 0)),))
        raw = [
            raw_activity("Cenacolo Vinciano", "10:00", "12:00"),
            raw_activity("Teatro alla Scena", "15:00", "17:00"),
        ]
        activities = process_activities(raw, days, constraints)
        assert [a.start_time for a in activities] == [at(10), at(15)]

    def test_meal_label_as_word_matches(self, days):
        constraints = ConstraintSet(time_constraints=(MealAt(meal=Meal.dinner, time=time(20, 0)),))
        raw = [raw_activity("Cena a Trastevere", "18:00", "19:30")]
        [activity] = process_activities(raw, days, constraints)
        assert (activity.start_time, activity.end_time) == (at(20), at(21, 30))

    def test_start_at_applies_per_day(self, days):
        constraints = ConstraintSet(time_constraints=(StartAt(time=time(8, 30)),))
        raw = [
            raw_activity("A", "10:00", "11:00", day_id="day-1"),
            raw_activity("B", "11:00", "12:00", day_id="day-2"),
        ]
        activities = process_activities(raw, days, constraints)
        assert [a.start_time for a in activities] == [at(8, 30), at(8, 30, day=2)]

    def test_meal_anchor_by_name(self, days):
        constraints = ConstraintSet(time_constraints=(MealAt(meal=Meal.lunch, time=time(13, 0)),))
        raw = [
            raw_activity("Pranzo da Roscioli", "12:00", "13:00", type="food"),
            raw_activity("Galleria Borghese", "14:00", "16:00"),
        ]
        lunch, museum = process_activities(raw, days, constraints)

        assert (lunch.start_time, lunch.end_time) == (at(13), at(14))
        assert (museum.start_time, museum.end_time) == (at(14, 30), at(16, 30))

    def test_meal_anchor_by_food_category(self, days):
        constraints = ConstraintSet(
            time_constraints=(MealAt(meal=Meal.aperitivo, time=time(18, 0)),)
        )
        raw = [
            raw_activity("Spritz a Campo de' Fiori", "17:00", "18:00", type="food"),
            raw_activity("Osteria", "20:00", "21:30", type="food"),
        ]
        aperitivo, dinner = process_activities(raw, days, constraints)

        assert aperitivo.start_time == at(18)
        assert dinner.start_time == at(20)

    def test_unmatched_meal_leaves_schedule(self, days):
        constraints = ConstraintSet(time_constraints=(MealAt(meal=Meal.dinner, time=time(20, 0)),))
        raw = [raw_activity("Musei Capitolini", "10:00", "12:00")]
        [activity] = process_activities(raw, days, constraints)
        assert activity.start_time == at(10)

    def test_end_by_is_not_enforced(self, days):
        constraints = ConstraintSet(time_constraints=(EndBy(time=time(18, 0)),))
        raw = [raw_activity("A", "21:00", "22:00")]
        [activity] = process_activities(raw, days, constraints)
        assert (activity.start_time, activity.end_time) == (at(21), at(22))


class TestIdempotence:
    @pytest.mark.parametrize(
        "constraints",
        [
            ConstraintSet(),
            ConstraintSet(time_constraints=(StartAt(time=time(9, 30)),)),
            ConstraintSet(
                time_constraints=(
                    StartAt(time=time(9, 0)),
                    MealAt(meal=Meal.lunch, time=time(13, 0)),
                )
            ),
            ConstraintSet(time_constraints=(StartAt(time=time(14, 0)),)),
            ConstraintSet(
                time_constraints=(
                    StartAt(time=time(10, 0)),
                    MealAt(meal=Meal.breakfast, time=time(8, 0)),
                )
            ),
        ],
    )
    def test_second_pass_changes_nothing(self, days, constraints):
        raw = [
            raw_activity("Colazione al bar", "09:00", "09:30", type="food"),
            raw_activity("Colosseo", "10:00", "11:00"),
            raw_activity("Foro Romano", "10:30", "11:30"),
            raw_activity("Pranzo in Monti", "12:00", "13:30", type="food"),
            raw_activity("Pantheon", "13:00", "14:00"),
            {"day_id": "day-2", "name": "Trastevere"},
        ]
        first = process_activities(raw, days, constraints)
        second = process_activities(
            [a.model_dump(mode="json") for a in first], days, constraints
        )

        assert [(a.name, a.start_time, a.end_time) for a in second] == [
            (a.name, a.start_time, a.end_time) for a in first
        ]


class TestDayOverflow:
    def raw(self):
        return [
            raw_activity("Cena", "22:00", "23:30"),
            raw_activity("Locale", "22:30", "23:30"),
        ]

    def test_roll_keeps_activities(self, days):
        activities = process_activities(self.raw(), days, policy=RepairPolicy.lenient())
        assert activities[1].start_time == at(0, day=2)
        assert activities[1].day_date == date(2024, 6, 1)

    def test_clamp_drops_and_truncates(self, days):
        raw = [raw_activity("Concerto", "22:00", "2024-06-02T00:30:00Z"), *self.raw()[1:]]
        policy = RepairPolicy.lenient(day_overflow="clamp")
        activities = process_activities(raw, days, policy=policy)

        assert [a.name for a in activities] == ["Concerto"]
        assert activities[0].end_time == at(23, 59)

    def test_reject_raises(self, days):
        policy = RepairPolicy.lenient(day_overflow="reject")
        with pytest.raises(ParseError):
            process_activities(self.raw(), days, policy=policy)

    def test_policy_from_settings(self):
        class FakeSettings:
            repair_mode = "strict"
            day_overflow = "clamp"

        policy = RepairPolicy.from_settings(FakeSettings())
        assert policy.is_strict
        assert policy.day_overflow == "clamp"
