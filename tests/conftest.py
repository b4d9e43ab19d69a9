import pytest

from atelier_planner.models.scheduling_model import Day, Room, TimeSlot, Workshop
from atelier_planner.services.calendar_service import Calendar, default_week_slots

# Default week ids: Mon 1-3, Tue 4-6, Wed 7-8, Thu 9-11, Fri 12-14
MON = (1, 2, 3)
TUE = (4, 5, 6)
WED = (7, 8)


def workshop(id, duration=2, max_capacity=20, teachers=("T",), **kwargs):
    return Workshop(id=id, name=kwargs.pop("name", f"Workshop {id}"), duration=duration,
                    max_capacity=max_capacity, teachers=list(teachers), **kwargs)


def full_week(days=5, blocks=3):
    """Uniform calendar without a short day: days x blocks slots."""
    slots = []
    order = 1
    for day in list(Day)[:days]:
        for b in range(blocks):
            slots.append(TimeSlot(id=order, day=day, period=f"B{b + 1}", order=order))
            order += 1
    return slots


@pytest.fixture
def week_slots():
    return default_week_slots()


@pytest.fixture
def calendar(week_slots):
    return Calendar(week_slots)


@pytest.fixture
def rooms():
    return [
        Room(id=1, name="A101", capacity=25),
        Room(id=2, name="B12", capacity=15),
        Room(id=3, name="Lab", capacity=30, room_type="lab"),
    ]
