"""Integration tests for RankService rank maintenance."""

import random
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from taskrank.errors import (
    InvalidRankError,
    NotFoundError,
    StorageTransactionError,
    TaskValidationError,
)
from taskrank.models import ShiftRange, Task
from taskrank.repositories import MemoryRankStore
from taskrank.services import RankService

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


def make_task(task_id: str, rank: int = 0, parent_id: str | None = None, **kwargs) -> Task:
    """Build a task with a deterministic creation time."""
    created = BASE_TIME + timedelta(minutes=len(task_id))
    return Task(
        id=task_id,
        title=task_id,
        rank=rank,
        parent_id=parent_id,
        created=created,
        updated=created,
        **kwargs,
    )


def ranks(store: MemoryRankStore, group_key: str | None = None) -> dict[str, int]:
    """Map of task ID to rank for a group's active tasks."""
    return {t.id: t.rank for t in store.within(group_key)}


@pytest.fixture
def store() -> MemoryRankStore:
    """Store with A..C at ranks 0..2 at top level."""
    return MemoryRankStore([make_task(name, rank) for rank, name in enumerate("ABC")])


@pytest.fixture
def service(store: MemoryRankStore) -> RankService:
    """RankService over the store."""
    return RankService(store)


class TestInsertAt:
    """Tests for insert_at."""

    def test_insert_in_middle_shifts_following_tasks(
        self, service: RankService, store: MemoryRankStore
    ):
        """Inserting D at 1 moves B and C down by one."""
        result = service.insert_at(make_task("D"), 1, None)

        assert ranks(store) == {"A": 0, "D": 1, "B": 2, "C": 3}
        assert result.task.rank == 1
        assert result.shifted_count == 2
        assert result.shift_range == ShiftRange(old_start=1, new_end=3)

    def test_insert_at_end_shifts_nothing(self, service: RankService, store: MemoryRankStore):
        """Appending reports no shift."""
        result = service.insert_at(make_task("D"), 3, None)

        assert ranks(store)["D"] == 3
        assert result.shifted_count == 0
        assert result.shift_range is None
        assert not result.shifted

    def test_insert_at_top(self, service: RankService, store: MemoryRankStore):
        """Inserting at 0 shifts every active task."""
        result = service.insert_at(make_task("D"), 0, None)

        assert ranks(store) == {"D": 0, "A": 1, "B": 2, "C": 3}
        assert result.shift_range == ShiftRange(old_start=0, new_end=3)

    def test_insert_into_empty_group(self, service: RankService, store: MemoryRankStore):
        """The first task of a group gets rank 0."""
        service.insert_at(make_task("child"), 0, "A")

        assert ranks(store, "A") == {"child": 0}
        assert store.get_item("child").parent_id == "A"

    def test_insert_beyond_end_rejected(self, service: RankService, store: MemoryRankStore):
        """Rank above n fails and changes nothing."""
        before = ranks(store)

        with pytest.raises(InvalidRankError):
            service.insert_at(make_task("D"), 5, None)

        assert ranks(store) == before
        assert store.get_item("D") is None

    def test_insert_negative_rank_rejected(self, service: RankService):
        """Negative ranks are rejected, not clamped."""
        with pytest.raises(InvalidRankError):
            service.insert_at(make_task("D"), -1, None)

    def test_insert_duplicate_id_rejected(self, service: RankService):
        """An ID that already exists cannot be inserted again."""
        with pytest.raises(TaskValidationError):
            service.insert_at(make_task("A"), 0, None)

    def test_insert_ignores_completed_tasks(self, store: MemoryRankStore):
        """Completed tasks in the group keep their frozen rank."""
        store.insert_item(make_task("done", 1, completed=True, completed_at=BASE_TIME))
        service = RankService(store)

        service.insert_at(make_task("D"), 0, None)

        assert store.get_item("done").rank == 1
        assert ranks(store) == {"D": 0, "A": 1, "B": 2, "C": 3}

    def test_insert_does_not_touch_other_groups(self, store: MemoryRankStore):
        """Shifts stay inside the target group."""
        store.insert_item(make_task("A1", 0, parent_id="A"))
        store.insert_item(make_task("A2", 1, parent_id="A"))
        service = RankService(store)

        service.insert_at(make_task("D"), 0, None)

        assert ranks(store, "A") == {"A1": 0, "A2": 1}

    def test_insert_forces_task_active(self, service: RankService):
        """An inserted task joins the active sequence."""
        result = service.insert_at(make_task("D", completed=True), 0, None)
        assert result.task.completed is False


class TestDeleteById:
    """Tests for delete_by_id."""

    def test_delete_closes_gap(self, store: MemoryRankStore):
        """Deleting B at rank 1 moves C and D up."""
        store.insert_item(make_task("D", 3))
        service = RankService(store)

        assert service.delete_by_id("B") is True
        assert ranks(store) == {"A": 0, "C": 1, "D": 2}

    def test_delete_missing_returns_false(self, service: RankService, store: MemoryRankStore):
        """Unknown IDs are a no-op."""
        before = ranks(store)
        assert service.delete_by_id("nope") is False
        assert ranks(store) == before

    def test_delete_completed_shifts_nothing(self, store: MemoryRankStore):
        """Deleting a completed task leaves active ranks alone."""
        store.insert_item(make_task("done", 0, completed=True, completed_at=BASE_TIME))
        service = RankService(store)

        service.delete_by_id("done")

        assert ranks(store) == {"A": 0, "B": 1, "C": 2}

    def test_delete_cascades_to_subtasks(self, store: MemoryRankStore):
        """Subtasks of a deleted task are removed with it."""
        store.insert_item(make_task("B1", 0, parent_id="B"))
        store.insert_item(make_task("B1a", 0, parent_id="B1"))
        service = RankService(store)

        service.delete_by_id("B")

        assert store.get_item("B1") is None
        assert store.get_item("B1a") is None
        assert ranks(store) == {"A": 0, "C": 1}

    def test_delete_leaves_completed_tasks_frozen(self, store: MemoryRankStore):
        """A completed task ranked after the deleted one keeps its rank."""
        store.insert_item(make_task("done", 2, completed=True, completed_at=BASE_TIME))
        service = RankService(store)

        service.delete_by_id("A")

        assert store.get_item("done").rank == 2


class TestMoveTo:
    """Tests for move_to."""

    @pytest.fixture
    def five(self) -> MemoryRankStore:
        """A..E at ranks 0..4."""
        return MemoryRankStore([make_task(name, rank) for rank, name in enumerate("ABCDE")])

    def test_move_up(self, five: MemoryRankStore):
        """Moving D from 3 to 1 shifts B and C down."""
        RankService(five).move_to("D", 1)
        assert ranks(five) == {"A": 0, "D": 1, "B": 2, "C": 3, "E": 4}

    def test_move_down(self, five: MemoryRankStore):
        """Moving B from 1 to 3 shifts C and D up."""
        RankService(five).move_to("B", 3)
        assert ranks(five) == {"A": 0, "C": 1, "D": 2, "B": 3, "E": 4}

    def test_move_to_same_rank_is_noop(self, five: MemoryRankStore):
        """No rank or timestamp changes when the rank is unchanged."""
        before = {t.id: t.updated for t in five.all_items()}
        RankService(five).move_to("C", 2)
        assert {t.id: t.updated for t in five.all_items()} == before

    def test_move_missing_raises(self, five: MemoryRankStore):
        """Unknown IDs raise NotFoundError."""
        with pytest.raises(NotFoundError):
            RankService(five).move_to("Z", 0)

    def test_move_out_of_range_raises(self, five: MemoryRankStore):
        """Ranks past the last position are rejected."""
        with pytest.raises(InvalidRankError):
            RankService(five).move_to("A", 5)
        assert ranks(five) == {"A": 0, "B": 1, "C": 2, "D": 3, "E": 4}

    def test_move_completed_raises(self, five: MemoryRankStore):
        """Completed tasks cannot be moved."""
        service = RankService(five)
        service.complete("E")
        with pytest.raises(InvalidRankError):
            service.move_to("E", 0)

    def test_move_touches_only_the_interval(self, five: MemoryRankStore):
        """Tasks outside [new, old] keep their stored copy untouched."""
        before = {t.id: t.updated for t in five.all_items()}
        RankService(five).move_to("D", 1)
        after = {t.id: t.updated for t in five.all_items()}

        assert after["A"] == before["A"]
        assert after["E"] == before["E"]


class TestComplete:
    """Tests for complete."""

    def test_complete_freezes_rank_and_closes_gap(
        self, service: RankService, store: MemoryRankStore
    ):
        """The completed task keeps its rank; the rest close up."""
        task = service.complete("A")

        assert task.completed is True
        assert task.completed_at is not None
        assert store.get_item("A").rank == 0
        assert ranks(store) == {"B": 0, "C": 1}

    def test_complete_twice_is_noop(self, service: RankService, store: MemoryRankStore):
        """Completing again shifts nothing."""
        service.complete("A")
        service.complete("A")
        assert ranks(store) == {"B": 0, "C": 1}

    def test_complete_missing_raises(self, service: RankService):
        """Unknown IDs raise NotFoundError."""
        with pytest.raises(NotFoundError):
            service.complete("nope")

    def test_completed_rank_never_shifts_again(self, service: RankService, store: MemoryRankStore):
        """Later inserts, moves and deletes leave the frozen rank alone."""
        service.complete("B")
        service.insert_at(make_task("D"), 0, None)
        service.move_to("C", 0)
        service.delete_by_id("A")

        assert store.get_item("B").rank == 1


class TestAtomicity:
    """Failed operations leave the stored ranks unchanged."""

    def test_failure_during_insert_rolls_back_shift(
        self, service: RankService, store: MemoryRankStore
    ):
        """If storing the new task fails, the shift is undone."""
        before = ranks(store)

        with patch.object(store, "insert_item", side_effect=RuntimeError("disk full")):
            with pytest.raises(StorageTransactionError):
                service.insert_at(make_task("D"), 0, None)

        assert ranks(store) == before

    def test_failure_during_delete_restores_task(
        self, service: RankService, store: MemoryRankStore
    ):
        """If the compacting shift fails, the deleted task comes back."""
        before = ranks(store)

        with patch.object(store, "bulk_reassign_ranks", side_effect=RuntimeError("conflict")):
            with pytest.raises(StorageTransactionError):
                service.delete_by_id("A")

        assert ranks(store) == before

    def test_retry_after_failure_applies_once(self, service: RankService, store: MemoryRankStore):
        """Retrying the whole operation has the same effect as one success."""
        original = store.insert_item
        calls = {"n": 0}

        def flaky(task):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("transient")
            return original(task)

        with patch.object(store, "insert_item", side_effect=flaky):
            with pytest.raises(StorageTransactionError):
                service.insert_at(make_task("D"), 1, None)
            service.insert_at(make_task("D"), 1, None)

        assert ranks(store) == {"A": 0, "D": 1, "B": 2, "C": 3}


class TestRenumber:
    """Tests for renumber and is_dense."""

    def test_renumber_closes_gaps(self):
        """Gapped ranks become 0..n-1 in the same order."""
        store = MemoryRankStore([make_task("A", 0), make_task("B", 4), make_task("C", 9)])
        service = RankService(store)

        assert not service.is_dense(None)
        assert service.renumber(None) == 2
        assert ranks(store) == {"A": 0, "B": 1, "C": 2}
        assert service.is_dense(None)

    def test_renumber_dense_group_changes_nothing(self, service: RankService):
        """A dense group is left alone."""
        assert service.renumber(None) == 0


class TestRankProperties:
    """Randomized operation sequences keep every group dense and isolated."""

    GROUPS = [None, "A", "B"]

    def _random_ops(self, seed: int, steps: int = 200) -> tuple[RankService, MemoryRankStore]:
        rng = random.Random(seed)
        store = MemoryRankStore(
            [make_task("A", 0), make_task("B", 1)]
        )
        service = RankService(store)
        counter = 0

        for _ in range(steps):
            group = rng.choice(self.GROUPS)
            active = store.within(group)
            op = rng.choice(["insert", "insert", "delete", "move", "complete"])

            before_other = {g: ranks(store, g) for g in self.GROUPS if g != group}
            frozen = {t.id: t.rank for t in store.completed_items()}

            if op == "insert":
                counter += 1
                service.insert_at(make_task(f"t{counter}"), rng.randint(0, len(active)), group)
            elif active and op == "delete":
                victim = rng.choice(active)
                if victim.id in ("A", "B"):
                    continue
                service.delete_by_id(victim.id)
            elif active and op == "move":
                mover = rng.choice(active)
                new_rank = rng.randint(0, len(active) - 1)
                old = {t.id: t.rank for t in active}
                service.move_to(mover.id, new_rank)
                self._check_move(old, ranks(store, group), mover.id, new_rank)
            elif active and op == "complete":
                victim = rng.choice(active)
                if victim.id in ("A", "B"):
                    continue
                service.complete(victim.id)

            for g in self.GROUPS:
                assert service.is_dense(g), f"group {g} not dense after {op}"
            for g, expected in before_other.items():
                assert ranks(store, g) == expected, f"group {g} changed by {op} in {group}"
            for task_id, rank in frozen.items():
                task = store.get_item(task_id)
                if task is not None:
                    assert task.rank == rank

        return service, store

    def _check_move(self, old: dict, new: dict, mover: str, new_rank: int) -> None:
        old_rank = old[mover]
        assert new[mover] == new_rank
        lo, hi = sorted((old_rank, new_rank))
        step = 1 if new_rank < old_rank else -1
        for task_id, rank in old.items():
            if task_id == mover:
                continue
            if lo <= rank <= hi:
                assert new[task_id] == rank + step
            else:
                assert new[task_id] == rank

    @pytest.mark.parametrize("seed", [1, 2, 3, 7, 42])
    def test_random_sequences_preserve_invariants(self, seed: int):
        """Density, isolation, frozen ranks and exact move shifts all hold."""
        self._random_ops(seed)
