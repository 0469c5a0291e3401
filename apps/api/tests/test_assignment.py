"""Round-robin allocation and rotation cursor backends."""

import threading

from app.db.enums import Role
from app.services import assignment_service, counter_service
from app.services.assignment_service import (
    DatabaseRotationCursor,
    InMemoryRotationCursor,
    RedisRotationCursor,
)


class FakeRedis:
    """Minimal INCR-only Redis stand-in."""

    def __init__(self):
        self._values: dict[str, int] = {}
        self._lock = threading.Lock()

    def incr(self, key: str) -> int:
        with self._lock:
            self._values[key] = self._values.get(key, 0) + 1
            return self._values[key]


def test_rotation_cycles_agents_in_creation_order(db, hierarchy):
    cursor = InMemoryRotationCursor()
    picks = [assignment_service.next_agent(db, hierarchy.org.id, cursor=cursor) for _ in range(6)]

    expected = [hierarchy.a1.id, hierarchy.a2.id, hierarchy.a3.id]
    assert picks == expected + expected


def test_rotation_excludes_managers_owners_and_inactive_agents(db, factory, hierarchy):
    factory.user(hierarchy.org, Role.AGENT, created_by=hierarchy.m2, name="Gone", is_active=False)

    roster = assignment_service.list_rotation_agents(db, hierarchy.org.id)

    assert roster == [hierarchy.a1.id, hierarchy.a2.id, hierarchy.a3.id]


def test_empty_roster_returns_none_and_leaves_cursor_untouched(db, factory):
    org = factory.org()
    factory.user(org, Role.OWNER, name="Solo")
    cursor = InMemoryRotationCursor()

    assert assignment_service.next_agent(db, org.id, cursor=cursor) is None
    assert cursor.next_index(org.id) == 0


def test_rotation_survives_roster_shrinking(db, hierarchy):
    cursor = InMemoryRotationCursor()
    for _ in range(5):
        assignment_service.next_agent(db, hierarchy.org.id, cursor=cursor)

    hierarchy.a3.is_active = False
    db.commit()

    pick = assignment_service.next_agent(db, hierarchy.org.id, cursor=cursor)
    assert pick in {hierarchy.a1.id, hierarchy.a2.id}


def test_cursor_is_per_organization(db, factory, hierarchy):
    other_org = factory.org()
    other_agent = factory.user(other_org, Role.AGENT, name="Elsewhere")
    cursor = InMemoryRotationCursor()

    assert assignment_service.next_agent(db, hierarchy.org.id, cursor=cursor) == hierarchy.a1.id
    assert assignment_service.next_agent(db, other_org.id, cursor=cursor) == other_agent.id
    assert assignment_service.next_agent(db, hierarchy.org.id, cursor=cursor) == hierarchy.a2.id


def test_in_memory_cursor_never_hands_out_the_same_index_concurrently():
    cursor = InMemoryRotationCursor()
    org_id = "org"
    results: list[int] = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(16)

    def worker():
        barrier.wait()
        for _ in range(50):
            value = cursor.next_index(org_id)
            with results_lock:
                results.append(value)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == list(range(16 * 50))


def test_concurrent_allocations_cover_every_agent_exactly_once():
    agents = ["a1", "a2", "a3", "a4", "a5", "a6"]
    cursor = InMemoryRotationCursor()
    picks: list[str] = []
    picks_lock = threading.Lock()
    barrier = threading.Barrier(len(agents))

    def allocate():
        barrier.wait()
        index = cursor.next_index("org")
        with picks_lock:
            picks.append(agents[index % len(agents)])

    threads = [threading.Thread(target=allocate) for _ in agents]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(picks) == sorted(agents)


def test_redis_cursor_starts_at_zero():
    client = FakeRedis()
    cursor = RedisRotationCursor(client)

    assert [cursor.next_index("org-1") for _ in range(3)] == [0, 1, 2]
    assert cursor.next_index("org-2") == 0
    assert client._values[f"{assignment_service.REDIS_KEY_PREFIX}org-1"] == 3


def test_database_cursor_drives_rotation(db, hierarchy):
    cursor = DatabaseRotationCursor(db)
    picks = [assignment_service.next_agent(db, hierarchy.org.id, cursor=cursor) for _ in range(4)]
    db.commit()

    assert picks == [hierarchy.a1.id, hierarchy.a2.id, hierarchy.a3.id, hierarchy.a1.id]
    assert counter_service.increment(db, hierarchy.org.id, counter_service.ROTATION_COUNTER) == 5


def test_default_cursor_is_process_local_without_redis():
    assert assignment_service.get_rotation_cursor() is assignment_service._local_cursor


def test_ticket_numbers_are_sequential_per_org(db, factory):
    org_a = factory.org()
    org_b = factory.org()

    assert counter_service.generate_ticket_number(db, org_a.id) == "TKT-00001"
    assert counter_service.generate_ticket_number(db, org_a.id) == "TKT-00002"
    assert counter_service.generate_ticket_number(db, org_b.id) == "TKT-00001"
